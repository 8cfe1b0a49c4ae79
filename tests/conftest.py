"""Shared fixtures: a small brand table and catalog."""

import sys
from pathlib import Path

import pytest


def ensure_src_on_path() -> None:
    root = Path(__file__).resolve().parent.parent
    src_path = root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))


ensure_src_on_path()

from catalog_models import BrandRecord, CatalogEntry  # noqa: E402
from settings import TextMappings, default_text_mappings  # noqa: E402


BRAND_TABLE = [
    {'name': '华为', 'alternateSpelling': 'HUAWEI', 'displayColor': '#c7000b', 'order': 1},
    {'name': '小米', 'alternateSpelling': 'Xiaomi', 'displayColor': '#ff6900', 'order': 2},
    {'name': 'vivo', 'alternateSpelling': 'VIVO', 'displayColor': '#415fff', 'order': 3},
    {'name': 'OPPO', 'displayColor': '#1ba784'},
]

CATALOG = [
    {
        'id': 'spu-1', 'name': '华为 Mate 60 Pro 12GB+512GB 雅川青', 'brand': '华为',
        'variants': [
            {'id': 'sku-1a', 'color': '雅川青', 'spec': '12GB+512GB', 'externalCodes': ['6941487303211']},
            {'id': 'sku-1b', 'color': '雅丹黑', 'spec': '12GB+256GB'},
        ],
    },
    {
        'id': 'spu-2', 'name': '小米 14 Ultra', 'brand': '小米',
        'variants': [
            {'id': 'sku-2a', 'color': '黑色', 'spec': '16GB+1TB'},
            {'id': 'sku-2b', 'color': '白色', 'spec': '16GB+512GB'},
        ],
    },
    {
        'id': 'spu-3', 'name': 'vivo Y50 5G',
        'variants': [{'id': 'sku-3a', 'color': '黑色', 'spec': '8GB+256GB'}],
    },
    {'id': 'spu-4', 'name': 'HUAWEI Mate 60 Pro 礼盒版', 'variants': []},
]


@pytest.fixture
def brand_records():
    return [BrandRecord.from_dict(b) for b in BRAND_TABLE]


@pytest.fixture
def catalog_entries():
    return [CatalogEntry.from_dict(e) for e in CATALOG]


@pytest.fixture
def text_mappings() -> TextMappings:
    return default_text_mappings()


@pytest.fixture
def brand_table():
    return [dict(b) for b in BRAND_TABLE]


@pytest.fixture
def catalog_dicts():
    return [dict(e) for e in CATALOG]
