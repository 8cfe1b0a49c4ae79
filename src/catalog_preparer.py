"""
Catalog preparation: indexes and per-entry enrichment.

Builds, from one catalog snapshot:
    - brand index   lower-cased brand key -> entries; canonical name and
                    alternate spelling both point at the same entries
    - model index   normalized model -> entries
    - spec indexes  color / spec / combo value -> entry ids, plus
                    count-descending frequency lists
    - enriched catalog (derived brand, model, normalized model, simplicity)

Every build call clears its index and repopulates it from scratch. A
malformed entry is skipped and counted; a build never fails because of
one bad entry. Builds are not safe to run while another thread matches
against the same instance.
"""

import logging
import re
import time
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Set

from catalog_models import BrandRecord, CatalogEntry, EnrichedCatalogEntry, SpecFrequencyItem
from settings import (
    BRAND_FAILURE_WARN_RATE, MODEL_FAILURE_WARN_RATE, PREPROCESS_WARN_SECONDS, TOP_ITEMS_LOGGED,
)
from text_policy import (
    collapse_whitespace, compact_model, find_brand_record, normalize_model_key,
    remove_brand_at_position, sort_brands_longest_first, strip_catalog_capacity,
    strip_color_glyph_runs, trim_separators,
)

logger = logging.getLogger(__name__)

SPEC_KIND_COLOR = "color"
SPEC_KIND_SPEC = "spec"
SPEC_KIND_COMBO = "combo"
SPEC_KINDS = (SPEC_KIND_COLOR, SPEC_KIND_SPEC, SPEC_KIND_COMBO)

_GB = re.compile('GB', re.IGNORECASE)
_TRAILING_G = re.compile(r'G(?=\+|\Z)', re.IGNORECASE)
_TB = re.compile('TB', re.IGNORECASE)


def format_bytes(num_bytes: float) -> str:
    for unit in ('B', 'KB', 'MB'):
        if num_bytes < 1024:
            return f"{num_bytes:.2f} {unit}" if unit != 'B' else f"{int(num_bytes)} B"
        num_bytes /= 1024
    return f"{num_bytes:.2f} GB"


def _estimate_memory(index: Dict) -> int:
    """Rough byte estimate: key strings, containers and per-item overhead."""
    total = 0
    for key, value in index.items():
        total += len(key) * 2 + 40
        if isinstance(value, set):
            total += len(value) * 50 + 40
        else:
            total += len(value) * 8 + 40
        total += 20
    return total


class CatalogPreparer:

    def __init__(self, brands: Optional[List[BrandRecord]] = None,
                 capacity_normalizations: Optional[Dict[str, str]] = None):
        self._brands: List[BrandRecord] = sort_brands_longest_first(brands or [])
        self._spec_map: Dict[str, str] = dict(capacity_normalizations or {})

        self.brand_index: Dict[str, List[CatalogEntry]] = {}
        self.model_index: Dict[str, List[CatalogEntry]] = {}
        self.spec_indexes: Dict[str, Dict[str, Set[str]]] = {kind: {} for kind in SPEC_KINDS}
        self.frequency_lists: Dict[str, List[SpecFrequencyItem]] = {kind: [] for kind in SPEC_KINDS}
        self.enriched_catalog: List[EnrichedCatalogEntry] = []
        self.statistics: Dict = {}

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_brand_list(self, brands: Iterable[BrandRecord]) -> None:
        self._brands = sort_brands_longest_first(brands)

    def set_capacity_normalizations(self, mapping: Optional[Dict[str, str]]) -> None:
        self._spec_map = dict(mapping or {})

    # ------------------------------------------------------------------
    # Spec normalization
    # ------------------------------------------------------------------

    def normalize_spec(self, spec: Optional[str]) -> str:
        """
        Canonical capacity form: '8GB+256GB' -> '8+256', '16GB+1TB' -> '16+1T'.

        Synonym table first (exact, then case-insensitive), then unit stripping.
        Returns the trimmed input when nothing applies. Never raises.
        """
        if not spec:
            return ''
        trimmed = spec.strip()
        if not trimmed:
            return ''

        if trimmed in self._spec_map:
            return self._spec_map[trimmed]
        lower = trimmed.lower()
        for key, value in self._spec_map.items():
            if key.lower() == lower:
                return value

        normalized = _GB.sub('', trimmed)
        normalized = _TRAILING_G.sub('', normalized)
        normalized = _TB.sub('T', normalized).strip()
        return normalized if normalized != trimmed else trimmed

    # ------------------------------------------------------------------
    # Brand / model derivation (index-time policy)
    # ------------------------------------------------------------------

    def extract_brand_from_name(self, name: str) -> Optional[str]:
        record = find_brand_record(name, self._brands)
        return record.name if record else None

    def effective_brand(self, entry: CatalogEntry) -> Optional[str]:
        return entry.brand or self.extract_brand_from_name(entry.name)

    def extract_model_from_entry(self, entry: CatalogEntry, brand: Optional[str] = None) -> Optional[str]:
        """
        Case-preserving model text: brand cut at its position, capacities and
        colors removed. 'Mate 60 Pro' from '华为 Mate 60 Pro 12GB+512GB 雅川青'.
        """
        name = (entry.name or '').strip()
        if not name:
            return None
        brand = brand or self.effective_brand(entry)
        if brand:
            name = remove_brand_at_position(name, brand, self._brands)
        name = strip_catalog_capacity(name)
        for variant in entry.variants:
            if variant.color and variant.color.strip():
                name = name.replace(variant.color.strip(), ' ')
        name = strip_color_glyph_runs(name)
        model = trim_separators(collapse_whitespace(name))
        return model or None

    def _brand_index_keys(self, brand: str) -> List[str]:
        keys = [brand.lower()]
        by_name = next((b for b in self._brands if b.name.lower() == brand.lower()), None)
        if by_name and by_name.alternate_spelling:
            for key in (by_name.alternate_spelling.lower(), by_name.name.lower()):
                if key not in keys:
                    keys.append(key)
        by_spell = next(
            (b for b in self._brands
             if b.alternate_spelling and b.alternate_spelling.lower() == brand.lower()),
            None,
        )
        if by_spell:
            for key in (by_spell.name.lower(), by_spell.alternate_spelling.lower()):
                if key not in keys:
                    keys.append(key)
        return keys

    # ------------------------------------------------------------------
    # Index builds
    # ------------------------------------------------------------------

    def build_brand_index(self, entries: List[CatalogEntry]) -> Dict[str, List[CatalogEntry]]:
        start = time.perf_counter()
        self.brand_index = {}
        brand_counts: Dict[str, int] = {}
        skipped = 0

        for entry in entries:
            brand = self.effective_brand(entry)
            if not brand:
                skipped += 1
                logger.warning("No brand for catalog entry '%s' (id %s); skipped", entry.name, entry.id)
                continue
            for key in self._brand_index_keys(brand):
                self.brand_index.setdefault(key, []).append(entry)
            brand_counts[brand.lower()] = brand_counts.get(brand.lower(), 0) + 1

        build_ms = (time.perf_counter() - start) * 1000
        memory = _estimate_memory(self.brand_index)
        top = sorted(brand_counts.items(), key=lambda kv: kv[1], reverse=True)
        self.statistics['brand_index'] = {
            'total_brands': len(brand_counts),
            'total_keys': len(self.brand_index),
            'indexed_entries': sum(brand_counts.values()),
            'skipped_entries': skipped,
            'brand_counts': brand_counts,
            'build_ms': build_ms,
            'memory_bytes': memory,
        }
        logger.info(
            "Brand index built: %d entries under %d keys (%d brands), %d skipped, %.1fms, ~%s",
            sum(brand_counts.values()), len(self.brand_index), len(brand_counts), skipped,
            build_ms, format_bytes(memory),
        )
        if top:
            logger.info("Top brands: %s", ', '.join(f"{b}({n})" for b, n in top[:TOP_ITEMS_LOGGED]))
        return self.brand_index

    def build_model_index(self, entries: List[CatalogEntry]) -> Dict[str, List[CatalogEntry]]:
        start = time.perf_counter()
        self.model_index = {}
        skipped = 0

        for entry in entries:
            model = self.extract_model_from_entry(entry)
            key = normalize_model_key(model) if model else ''
            if not key:
                skipped += 1
                logger.warning("No model for catalog entry '%s' (id %s); skipped", entry.name, entry.id)
                continue
            self.model_index.setdefault(key, []).append(entry)

        build_ms = (time.perf_counter() - start) * 1000
        memory = _estimate_memory(self.model_index)
        indexed = sum(len(v) for v in self.model_index.values())
        self.statistics['model_index'] = {
            'total_models': len(self.model_index),
            'indexed_entries': indexed,
            'skipped_entries': skipped,
            'avg_entries_per_model': indexed / len(self.model_index) if self.model_index else 0.0,
            'build_ms': build_ms,
            'memory_bytes': memory,
        }
        logger.info(
            "Model index built: %d entries under %d models, %d skipped, %.1fms, ~%s",
            indexed, len(self.model_index), skipped, build_ms, format_bytes(memory),
        )
        return self.model_index

    def build_spec_index(self, entries: List[CatalogEntry]) -> Dict[str, Dict[str, Set[str]]]:
        start = time.perf_counter()
        self.spec_indexes = {kind: {} for kind in SPEC_KINDS}
        # OrderedDict keeps first-seen order, which breaks count ties below
        frequency: Dict[str, Dict[str, int]] = {kind: OrderedDict() for kind in SPEC_KINDS}
        processed = skipped = variant_count = 0

        for entry in entries:
            if not entry.variants:
                skipped += 1
                continue
            processed += 1
            variant_count += len(entry.variants)
            seen: Dict[str, Set[str]] = {kind: set() for kind in SPEC_KINDS}

            for variant in entry.variants:
                for kind, value in self._variant_values(variant):
                    seen[kind].add(value)
                    frequency[kind][value] = frequency[kind].get(value, 0) + 1

            for kind in SPEC_KINDS:
                for value in seen[kind]:
                    self.spec_indexes[kind].setdefault(value, set()).add(entry.id)

        self.frequency_lists = {}
        for kind in SPEC_KINDS:
            # sorted() is stable, so equal counts stay in first-seen order
            ordered = sorted(frequency[kind].items(), key=lambda kv: kv[1], reverse=True)
            self.frequency_lists[kind] = [
                SpecFrequencyItem(value, count, sorted(self.spec_indexes[kind].get(value, set())))
                for value, count in ordered
            ]

        build_ms = (time.perf_counter() - start) * 1000
        memory = sum(_estimate_memory(self.spec_indexes[kind]) for kind in SPEC_KINDS)
        stats = {
            'processed_entries': processed,
            'skipped_entries': skipped,
            'total_variants': variant_count,
            'build_ms': build_ms,
            'memory_bytes': memory,
        }
        for kind in SPEC_KINDS:
            index = self.spec_indexes[kind]
            stats[f'total_{kind}s'] = len(index)
            stats[f'avg_entries_per_{kind}'] = (
                sum(len(ids) for ids in index.values()) / len(index) if index else 0.0
            )
        self.statistics['spec_index'] = stats

        logger.info(
            "Spec index built: %d entries (%d skipped, no variants), %d variants; "
            "%d colors, %d specs, %d combos; %.1fms, ~%s",
            processed, skipped, variant_count, stats['total_colors'], stats['total_specs'],
            stats['total_combos'], build_ms, format_bytes(memory),
        )
        for kind in SPEC_KINDS:
            top = self.frequency_lists[kind][:TOP_ITEMS_LOGGED]
            if top:
                logger.info("Top %ss: %s", kind, ', '.join(f"{i.value}({i.count})" for i in top))
        return self.spec_indexes

    def _variant_values(self, variant):
        if variant.color and variant.color.strip():
            yield SPEC_KIND_COLOR, variant.color.strip()
        if variant.spec and variant.spec.strip():
            yield SPEC_KIND_SPEC, self.normalize_spec(variant.spec)
        if variant.combo and variant.combo.strip():
            yield SPEC_KIND_COMBO, variant.combo.strip()

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    def _simplicity(self, entry: CatalogEntry, brand: Optional[str], model: Optional[str]) -> int:
        spec_values = {value for variant in entry.variants for _, value in self._variant_values(variant)}
        extra = len(entry.name) - len(brand or '') - len(model or '') - sum(len(v) for v in spec_values)
        return max(0, extra)

    def preprocess_catalog(self, entries: List[CatalogEntry]) -> List[EnrichedCatalogEntry]:
        """
        Enrich every entry with its brand, model, normalized model and
        simplicity (extra characters beyond brand, model and variant values).
        """
        start = time.perf_counter()
        enriched: List[EnrichedCatalogEntry] = []
        skipped = brand_failures = model_failures = 0

        for entry in entries:
            if not entry.name or not entry.name.strip():
                skipped += 1
                logger.warning("Catalog entry %s skipped: missing name", entry.id)
                continue

            brand = self.effective_brand(entry)
            if not brand:
                brand_failures += 1
                logger.warning("Brand extraction failed for '%s' (id %s)", entry.name, entry.id)

            model = self.extract_model_from_entry(entry, brand)
            if not model:
                model_failures += 1
                logger.warning("Model extraction failed for '%s' (id %s)", entry.name, entry.id)

            enriched.append(EnrichedCatalogEntry(
                entry=entry,
                extracted_brand=brand,
                extracted_model=model,
                normalized_model=compact_model(model) if model else None,
                simplicity=self._simplicity(entry, brand, model),
                preprocessed_at=time.time(),
            ))

        duration = time.perf_counter() - start
        self.enriched_catalog = enriched
        total = len(enriched)
        brand_rate = brand_failures / total if total else 0.0
        model_rate = model_failures / total if total else 0.0
        simplicities = [e.simplicity for e in enriched]
        self.statistics['preprocess'] = {
            'total_entries': len(entries),
            'enriched_entries': total,
            'skipped_entries': skipped,
            'brand_failures': brand_failures,
            'model_failures': model_failures,
            'duration_ms': duration * 1000,
            'min_simplicity': min(simplicities) if simplicities else 0,
            'max_simplicity': max(simplicities) if simplicities else 0,
            'avg_simplicity': sum(simplicities) / total if total else 0.0,
        }

        logger.info(
            "Catalog preprocessed: %d enriched, %d skipped, brand failures %d (%.1f%%), "
            "model failures %d (%.1f%%), %.1fms",
            total, skipped, brand_failures, brand_rate * 100, model_failures, model_rate * 100,
            duration * 1000,
        )
        if brand_rate > BRAND_FAILURE_WARN_RATE:
            logger.warning("Brand extraction failure rate %.1f%% is high; check the brand table", brand_rate * 100)
        if model_rate > MODEL_FAILURE_WARN_RATE:
            logger.warning("Model extraction failure rate %.1f%% is high; check catalog names", model_rate * 100)
        if duration > PREPROCESS_WARN_SECONDS:
            logger.warning("Catalog preprocessing took %.1fs", duration)
        for e in enriched[:3]:
            logger.debug("Example: '%s' -> brand=%s model=%s normalized=%s simplicity=%d",
                         e.name, e.extracted_brand, e.extracted_model, e.normalized_model, e.simplicity)
        return enriched

    # ------------------------------------------------------------------
    # Lookups and statistics
    # ------------------------------------------------------------------

    def lookup_brand(self, key: str) -> List[CatalogEntry]:
        return list(self.brand_index.get(key.lower(), []))

    def lookup_model(self, model: str) -> List[CatalogEntry]:
        return list(self.model_index.get(normalize_model_key(model), []))

    def lookup_spec(self, kind: str, value: str) -> Set[str]:
        if kind == SPEC_KIND_SPEC:
            value = self.normalize_spec(value)
        return set(self.spec_indexes[kind].get(value.strip(), set()))

    def indexed_entry_ids(self) -> Set[str]:
        """Ids of every entry reachable through the brand index."""
        return {entry.id for entries in self.brand_index.values() for entry in entries}

    def get_frequency_lists(self) -> Dict[str, List[SpecFrequencyItem]]:
        return {kind: list(items) for kind, items in self.frequency_lists.items()}

    def get_top_frequent_specs(self, kind: str, limit: int = 10) -> List[SpecFrequencyItem]:
        if kind not in SPEC_KINDS:
            raise ValueError(f"Unknown spec kind '{kind}'; expected one of {SPEC_KINDS}")
        return self.frequency_lists[kind][:limit]

    def get_statistics(self) -> Dict:
        stats = {name: dict(values) for name, values in self.statistics.items()}
        stats['overall'] = {
            'total_build_ms': sum(s.get('build_ms', 0) for s in self.statistics.values()),
            'memory_bytes': sum(s.get('memory_bytes', 0) for s in self.statistics.values()),
        }
        return stats

    def log_statistics_summary(self) -> None:
        overall = self.get_statistics()['overall']
        logger.info(
            "Catalog indexes ready: %d brand keys, %d models, %d colors, %d specs, %d combos; "
            "total build %.1fms, ~%s",
            len(self.brand_index), len(self.model_index),
            len(self.spec_indexes[SPEC_KIND_COLOR]), len(self.spec_indexes[SPEC_KIND_SPEC]),
            len(self.spec_indexes[SPEC_KIND_COMBO]),
            overall['total_build_ms'], format_bytes(overall['memory_bytes']),
        )
