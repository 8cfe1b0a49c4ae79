"""
Shared catalog-text normalizer.

Both the attribute extractor (query time) and the catalog preparer (index
time) strip brands, capacities and colors out of product strings before
they look for a model code. The keyword tables and the stripping helpers
live here so the two sides cannot drift apart.

Brand removal differs on purpose between the two sides:

    QUERY_TIME  remove_brand_forms()
        Free text is messy ("华为HUAWEI Mate 60"), so the matched brand text,
        the alternate spelling and the canonical name are each cut out
        wherever they first occur.

    INDEX_TIME  remove_brand_at_position()
        Catalog names are curated ("华为 Mate 60 Pro"), so only the first
        occurrence of the canonical name is cut out, falling back to the
        alternate spelling. Case of the remaining text is preserved.
"""

import re
from typing import Iterable, List, Optional, Sequence

from catalog_models import BrandRecord

# ---------------------------------------------------------------------------
# Keyword tables
# ---------------------------------------------------------------------------

# Generic product words that never belong to a model code
MODEL_DESCRIPTOR_KEYWORDS = [
    '智能手机', '手机', '智能手表', '手表', '平板电脑', '平板', '笔记本电脑', '笔记本',
    '无线耳机', '耳机', '手环', '智能', '款', '版', '英寸', 'mm', 'gb', 'tb',
    '钛合金', '陶瓷', '素皮', '皮革', '玻璃', '金属', '塑料',
    '蓝牙', 'wifi', '5g', '4g', '3g', '全网通', 'esim',
    '年', '月', '日', '新品', '上市', '发布', '全',
]

# Model suffixes, in the order they are split off the preceding token
MODEL_SUFFIXES = ['pro', 'max', 'plus', 'ultra', 'mini', 'se', 'air', 'lite', 'note', 'turbo', 'fold', 'flip']

# Single-glyph color families
BASIC_COLOR_GLYPHS = ['黑', '白', '蓝', '红', '绿', '紫', '粉', '金', '银', '灰', '棕', '青', '橙', '黄']

RAM_STORAGE_PATTERN = re.compile(r'\d+\s*\+\s*\d+')
STORAGE_UNIT_PATTERN = re.compile(r'\d+\s*(?:gb|tb)', re.IGNORECASE)
# Word boundaries are ASCII so '256GB雅川青' still splits after 'GB'
CATALOG_CAPACITY_PATTERN = re.compile(
    r'\d+\s*(?:gb|g|tb|t)?\s*\+\s*\d+\s*(?:gb|g|tb|t)?|\b\d+\s*(?:gb|tb)\b',
    re.IGNORECASE | re.ASCII,
)

_WHITESPACE = re.compile(r'\s+')
_EDGE_SEPARATORS_START = re.compile(r'^[\s\-_]+')
_EDGE_SEPARATORS_END = re.compile(r'[\s\-_]+$')
_MODEL_KEY_DISALLOWED = re.compile(r'[^\w\s\-+]')
_MODEL_SEPARATORS = re.compile(r'[\s\-_]')
_DIGIT_LETTER = re.compile(r'(\d)([a-z])')
_LETTER_DIGIT = re.compile(r'([a-z])(\d)')
_SUFFIX_SPLITTERS = [
    (re.compile(r'(?<!\s)' + suffix, re.IGNORECASE), ' ' + suffix)
    for suffix in MODEL_SUFFIXES
]
_COLOR_GLYPH_RUNS = [
    re.compile('[一-龥]*' + glyph + '[一-龥]*') for glyph in BASIC_COLOR_GLYPHS
]


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(' ', text).strip()


# ---------------------------------------------------------------------------
# Brand lookup and removal
# ---------------------------------------------------------------------------

def sort_brands_longest_first(brands: Iterable[BrandRecord]) -> List[BrandRecord]:
    """Longer names first so '小米' cannot shadow '小米有品'. Stable for equal lengths."""
    return sorted(brands, key=lambda b: len(b.name), reverse=True)


def find_brand_record(text: str, sorted_brands: Sequence[BrandRecord]) -> Optional[BrandRecord]:
    """First brand (in the given order) whose name or alternate spelling occurs in text."""
    lower = text.lower()
    for record in sorted_brands:
        if record.name.lower() in lower:
            return record
        if record.alternate_spelling and record.alternate_spelling.lower() in lower:
            return record
    return None


def lookup_brand_record(brand: str, brands: Iterable[BrandRecord]) -> Optional[BrandRecord]:
    """Brand record whose canonical name or alternate spelling equals brand (case-insensitive)."""
    key = brand.lower()
    for record in brands:
        if record.name.lower() == key:
            return record
        if record.alternate_spelling and record.alternate_spelling.lower() == key:
            return record
    return None


def remove_brand_forms(lower_text: str, brand: str, brands: Iterable[BrandRecord]) -> str:
    """Query-time policy. Expects lower-cased text and returns lower-cased text."""
    text = lower_text.replace(brand.lower(), ' ', 1)
    record = lookup_brand_record(brand, brands)
    if record:
        if record.alternate_spelling:
            text = text.replace(record.alternate_spelling.lower(), ' ', 1)
        text = text.replace(record.name.lower(), ' ', 1)
    return text


def remove_brand_at_position(name: str, brand: str, brands: Iterable[BrandRecord]) -> str:
    """Index-time policy. Cuts out the first occurrence of brand, else of its alternate spelling."""
    lower = name.lower()
    index = lower.find(brand.lower())
    if index != -1:
        return name[:index] + name[index + len(brand):]

    record = next((b for b in brands if b.name.lower() == brand.lower()), None)
    if record and record.alternate_spelling:
        spell = record.alternate_spelling
        index = lower.find(spell.lower())
        if index != -1:
            return name[:index] + name[index + len(spell):]
    return name


# ---------------------------------------------------------------------------
# Stripping helpers
# ---------------------------------------------------------------------------

def strip_catalog_capacity(text: str) -> str:
    """Index-time capacity stripping, case-preserving ('12GB+512GB', '256GB')."""
    return CATALOG_CAPACITY_PATTERN.sub(' ', text)


def strip_descriptors(lower_text: str) -> str:
    for keyword in MODEL_DESCRIPTOR_KEYWORDS:
        lower_text = lower_text.replace(keyword, ' ')
    return lower_text


def strip_capacity(text: str) -> str:
    text = RAM_STORAGE_PATTERN.sub(' ', text)
    return STORAGE_UNIT_PATTERN.sub(' ', text)


def strip_color_glyph_runs(text: str) -> str:
    """Remove any ideograph run containing a basic color glyph ('雅川青', '曜石黑')."""
    for pattern in _COLOR_GLYPH_RUNS:
        text = pattern.sub(' ', text)
    return text


def trim_separators(text: str) -> str:
    text = _EDGE_SEPARATORS_START.sub('', text.strip())
    return _EDGE_SEPARATORS_END.sub('', text)


# ---------------------------------------------------------------------------
# Model normalization
# ---------------------------------------------------------------------------

def split_model_tokens(text: str) -> str:
    """
    Insert separators at suffix and digit/letter boundaries.

    'mate60pro' -> 'mate 60 pro', 'y50' -> 'y 50'.
    """
    for pattern, replacement in _SUFFIX_SPLITTERS:
        text = pattern.sub(replacement, text)
    text = _DIGIT_LETTER.sub(r'\1 \2', text)
    text = _LETTER_DIGIT.sub(r'\1 \2', text)
    return collapse_whitespace(text)


def normalize_model_key(model: str) -> str:
    """Model index key: lower case, single spaces, only word chars, spaces, '-' and '+'."""
    return _MODEL_KEY_DISALLOWED.sub('', collapse_whitespace(model.lower()))


def compact_model(model: str) -> str:
    """Separator-free comparison form: 'Mate 60 Pro' -> 'mate60pro'."""
    return _MODEL_SEPARATORS.sub('', model.lower())
