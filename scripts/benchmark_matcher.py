"""
Micro-benchmark for the product text resolver.

Measures:
1. AttributeExtractor.extract_all() on representative inputs
2. Index builds + catalog enrichment on a synthetic 10k catalog
3. batch_match() end-to-end on a synthetic 200-line input list

Usage:
    python scripts/benchmark_matcher.py
"""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))
import time
import numpy as np
import pandas as pd
from attribute_extractor import AttributeExtractor
from catalog_models import BrandRecord, CatalogEntry
from catalog_preparer import CatalogPreparer
from match_orchestrator import create_orchestrator
from settings import default_text_mappings

BRANDS = [
    {'name': '华为', 'alternateSpelling': 'HUAWEI', 'displayColor': '#c7000b'},
    {'name': '小米', 'alternateSpelling': 'Xiaomi', 'displayColor': '#ff6900'},
    {'name': 'vivo', 'alternateSpelling': 'VIVO', 'displayColor': '#415fff'},
    {'name': 'OPPO', 'alternateSpelling': 'oppo', 'displayColor': '#1ba784'},
    {'name': '荣耀', 'alternateSpelling': 'HONOR', 'displayColor': '#000000'},
]
MODELS = {
    '华为': ['Mate 60', 'Mate 70', 'Pura 70', 'nova 12'],
    '小米': ['14', '15', 'Redmi K70'],
    'vivo': ['X100', 'X200', 'Y50', 'S19'],
    'OPPO': ['Find X7', 'Reno 12', 'A3'],
    '荣耀': ['Magic 6', '200', 'X60'],
}
SUFFIXES = ['', ' Pro', ' Pro+', ' Ultra']
SPECS = ['8GB+256GB', '12GB+256GB', '12GB+512GB', '16GB+1TB']
COLORS = ['雅川青', '曜石黑', '白沙银', '羽砂紫', '冰霜银', '雪域白']


def generate_synthetic_catalog(n_rows: int = 10000) -> list:
    """Generate a synthetic catalog snapshot (plain dicts, as the catalog service sends them)."""
    rng = np.random.default_rng(42)
    catalog = []
    for i in range(n_rows):
        brand = BRANDS[rng.integers(len(BRANDS))]['name']
        model = MODELS[brand][rng.integers(len(MODELS[brand]))] + SUFFIXES[rng.integers(len(SUFFIXES))]
        specs = rng.choice(SPECS, size=2, replace=False)
        colors = rng.choice(COLORS, size=2, replace=False)
        variants = [
            {'id': f'SKU-{i:05d}-{j}', 'color': str(c), 'spec': str(s), 'externalCodes': [f'69{i:08d}{j}']}
            for j, (c, s) in enumerate((c, s) for c in colors for s in specs)
        ]
        catalog.append({'id': f'SPU-{i:05d}', 'name': f'{brand} {model}', 'brand': brand, 'variants': variants})
    return catalog


def generate_synthetic_input(n_rows: int = 1000) -> pd.DataFrame:
    """Generate synthetic free-text order lines."""
    rng = np.random.default_rng(7)
    rows = []
    for _ in range(n_rows):
        record = BRANDS[rng.integers(len(BRANDS))]
        brand = record['name'] if rng.random() < 0.7 else record['alternateSpelling']
        model = MODELS[record['name']][rng.integers(len(MODELS[record['name']]))]
        model += SUFFIXES[rng.integers(len(SUFFIXES))]
        spec = SPECS[rng.integers(len(SPECS))]
        color = COLORS[rng.integers(len(COLORS))]
        rows.append({'Product Name': f"{brand}{model.replace(' ', '')} {spec} {color}"})
    return pd.DataFrame(rows)


def benchmark_function(func, *args, **kwargs):
    """Benchmark a function and return (result, elapsed_ms)."""
    start = time.perf_counter()
    result = func(*args, **kwargs)
    elapsed_ms = (time.perf_counter() - start) * 1000
    return result, elapsed_ms


def benchmark_extract_all(n_iterations: int = 2000):
    print("\n" + "="*70)
    print("BENCHMARK: AttributeExtractor.extract_all()")
    print("="*70)

    extractor = AttributeExtractor([BrandRecord.from_dict(b) for b in BRANDS], colors=COLORS)
    test_strings = [
        "华为 Mate 60 Pro 12GB+512GB 雅川青",
        "vivo Y50 5G 8+256 白沙银",
        "小米 14 Ultra 16GB+1TB 曜石黑 全网通5G",
        "HONOR Magic 6 Pro 礼盒版",
        "华为 Watch GT 5 46mm 复合编织表带",
    ]
    for text in test_strings:
        start = time.perf_counter()
        for _ in range(n_iterations):
            _ = extractor.extract_all(text)
        elapsed_ms = (time.perf_counter() - start) * 1000
        print(f"\nInput: {text}")
        print(f"  Total: {elapsed_ms:.2f}ms ({n_iterations} calls)")
        print(f"  Per call: {elapsed_ms * 1000 / n_iterations:.2f}μs")


def benchmark_catalog_preparation():
    print("\n" + "="*70)
    print("BENCHMARK: index builds + enrichment - 10k catalog")
    print("="*70)

    entries = [CatalogEntry.from_dict(e) for e in generate_synthetic_catalog(10000)]
    preparer = CatalogPreparer(
        [BrandRecord.from_dict(b) for b in BRANDS],
        capacity_normalizations=default_text_mappings().capacity_normalizations,
    )
    _, brand_ms = benchmark_function(preparer.build_brand_index, entries)
    _, model_ms = benchmark_function(preparer.build_model_index, entries)
    _, spec_ms = benchmark_function(preparer.build_spec_index, entries)
    enriched, enrich_ms = benchmark_function(preparer.preprocess_catalog, entries)

    print(f"  Brand index: {brand_ms:.2f}ms ({len(preparer.brand_index)} keys)")
    print(f"  Model index: {model_ms:.2f}ms ({len(preparer.model_index)} models)")
    print(f"  Spec index:  {spec_ms:.2f}ms")
    print(f"  Enrichment:  {enrich_ms:.2f}ms ({len(enriched)} entries, "
          f"{len(enriched) / (enrich_ms / 1000):.0f} rows/sec)")
    print("  Top specs: " + ', '.join(f"{i.value}({i.count})" for i in preparer.get_top_frequent_specs('spec', 5)))


def benchmark_batch_match():
    print("\n" + "="*70)
    print("BENCHMARK: batch_match() - 200 inputs against 2k catalog")
    print("="*70)

    orchestrator = create_orchestrator(mappings=default_text_mappings())
    _, init_ms = benchmark_function(orchestrator.initialize, BRANDS, generate_synthetic_catalog(2000))
    print(f"  initialize(): {init_ms:.2f}ms")

    df_input = generate_synthetic_input(200)
    batch, match_ms = benchmark_function(orchestrator.batch_match, df_input['Product Name'].tolist())
    print(f"  Matching time: {match_ms:.2f}ms")
    print(f"  Per-item time: {match_ms / len(df_input):.2f}ms")
    print(f"  Throughput: {len(df_input) / (match_ms / 1000):.0f} items/sec")

    df_result = batch.to_frame()
    print(f"\nMatch Results:")
    for status, count in df_result['status'].value_counts().items():
        print(f"  {status}: {count} ({count/len(df_result)*100:.1f}%)")
    print(f"  Mean similarity (matched): "
          f"{df_result.loc[df_result['status'] == 'matched', 'similarity'].mean():.3f}")


def main():
    print("="*70)
    print("PRODUCT TEXT RESOLVER PERFORMANCE BENCHMARK")
    print("="*70)

    benchmark_extract_all()
    benchmark_catalog_preparation()
    benchmark_batch_match()

    print("\n" + "="*70)
    print("BENCHMARK COMPLETE")
    print("="*70)


if __name__ == '__main__':
    main()
