"""
Attribute extraction from free-form product text.

Pulls brand, model, color, capacity and version out of a single string
such as "华为 Mate 60 Pro 12GB+512GB 雅川青". Every result carries a
confidence and a provenance:

    exact     literal or alias containment
    fuzzy     pattern-derived guess
    inferred  nothing found (value None, confidence 0)

Model extraction is a two-phase pipeline. Phase one looks at the
normalized string (separators inserted at digit/letter and suffix
boundaries, 'mate60pro' -> 'mate 60 pro'); phase two falls back to
the raw stripped string so short letter-prefixed codes like 'y50'
survive, and only then accepts bare numbers. The order of the rules in
MODEL_RULES is what makes 'Mate 60 Pro' resolve to 'mate60pro' instead
of '60'.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from catalog_models import (
    BrandRecord, ExtractedInfo, ExtractionResult, VersionInfo,
    SOURCE_EXACT, SOURCE_FUZZY,
    PRODUCT_TYPE_PHONE, PRODUCT_TYPE_WATCH, PRODUCT_TYPE_BAND,
    PRODUCT_TYPE_TABLET, PRODUCT_TYPE_LAPTOP, PRODUCT_TYPE_EARBUDS,
)
from text_policy import (
    BASIC_COLOR_GLYPHS, MODEL_SUFFIXES,
    collapse_whitespace, remove_brand_forms, sort_brands_longest_first,
    split_model_tokens, strip_capacity, strip_color_glyph_runs, strip_descriptors,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Model patterns
# ---------------------------------------------------------------------------
_SUFFIX_ALTERNATION = '|'.join(MODEL_SUFFIXES)
COMPLEX_MODEL_PATTERN = re.compile(
    r'((?:[a-z]+\s+)*)([a-z]*\d+[a-z]*)\s+((?:(?:' + _SUFFIX_ALTERNATION + r')\s*)+)',
    re.IGNORECASE,
)
WORD_WORD_PATTERN = re.compile(r'([a-z]+)\s+([a-z]{2,})\s*(\d*)', re.IGNORECASE)
WORD_NUMBER_PATTERN = re.compile(r'([a-z]+)\s+(\d+)', re.IGNORECASE)
SIMPLE_MODEL_PATTERN = re.compile(r'\b([a-z]*)(\d+)([a-z]*)\b', re.IGNORECASE | re.ASCII)

# Words that form a model with a bare number ('band 8', 'watch 5')
PRODUCT_LINE_WORDS = ['band', 'watch', 'pad', 'book', 'buds', 'fit']

# ---------------------------------------------------------------------------
# Color tables
# ---------------------------------------------------------------------------
COLOR_NOISE_KEYWORDS = [
    # material
    '真皮', '素皮', '皮革', '陶瓷', '玻璃', '金属', '塑料', '硅胶', '软胶',
    '钛合金', '不锈钢', '铝合金', '碳纤维',
    # accessory
    '表带', '表盘', '手环', '耳机', '耳塞', '充电器', '数据线',
    '保护壳', '保护套', '手机壳', '手机套',
    # technical
    '蓝牙', '无线', '有线', '充电', '快充', '超级快充',
    '5G', '4G', '3G', '全网通', 'WiFi', 'NFC', 'eSIM',
    # product
    '智能', '手表', '手机', '平板', '笔记本', '电脑', '耳机',
]

# Trailing ideograph runs that look like colors but are editions or plans
COLOR_EXCLUDE_WORDS = {
    '全网通', '网通', '版本', '标准', '套餐', '蓝牙版',
    '活力版', '优享版', '尊享版', '标准版', '基础版',
    '青春版', '旗舰版', '至尊版', '典藏版', '限定版',
    '纪念版', '特别版', '定制版',
}
TRAILING_IDEOGRAPHS = re.compile('[一-龥]{2,5}$')

DEFAULT_BASIC_COLOR_MAP: Dict[str, List[str]] = {
    'black': ['黑', '深', '曜', '玄'],
    'white': ['白', '零', '雪', '空', '格', '告'],
    'blue': ['蓝', '天', '星', '冰'],
    'purple': ['紫', '灵', '龙', '流'],
}

# ---------------------------------------------------------------------------
# Capacity patterns
# ---------------------------------------------------------------------------
RAM_STORAGE_CAPTURE = re.compile(r'(\d+)\s*(?:gb|g)?\s*\+\s*(\d+)\s*(gb|g|tb|t)?', re.IGNORECASE)
SINGLE_STORAGE_CAPTURE = re.compile(r'\b(\d+)\s*(tb|t|gb|g)\b', re.IGNORECASE | re.ASCII)
CAPACITY_CONTEXT = re.compile(r'存储|内存|容量|storage|memory', re.IGNORECASE)
BARE_STORAGE_NUMBER = re.compile(r'\b(64|128|256|512|1024|2048)\b', re.ASCII)
BARE_TERABYTES = {'1024': '1T', '2048': '2T'}

# ---------------------------------------------------------------------------
# Version tiers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VersionRule:
    name: str
    keywords: tuple
    priority: int


@dataclass(frozen=True)
class VersionTier:
    label: str
    confidence: float
    rules: tuple


def _rule(name: str, priority: int, *keywords: str) -> VersionRule:
    return VersionRule(name, keywords or (name.lower(),), priority)


VERSION_TIERS = (
    VersionTier('network', 1.0, (
        _rule('全网通5G', 10), _rule('全网通版', 9), _rule('卫星通信版', 10),
        _rule('蓝牙版', 9), _rule('eSIM版', 9), _rule('WiFi版', 9),
        _rule('5G版', 9), _rule('4G版', 8), _rule('3G版', 7),
        _rule('5G', 9), _rule('4G', 8), _rule('3G', 7),
    )),
    VersionTier('standard', 0.95, (
        _rule('活力版', 5), _rule('优享版', 5), _rule('尊享版', 5),
        _rule('青春版', 5), _rule('轻享版', 5),
        _rule('标准版', 4), _rule('基础版', 4), _rule('普通版', 4),
        _rule('Pro版', 6),
    )),
    VersionTier('premium', 0.9, (
        _rule('旗舰版', 6), _rule('至尊版', 6),
        _rule('典藏版', 5), _rule('限定版', 5), _rule('纪念版', 5),
        _rule('特别版', 5), _rule('定制版', 5),
        _rule('礼盒版', 3, '礼盒版', '礼盒'), _rule('套装版', 3, '套装版', '套装'),
    )),
)

# 'Pro Max' / 'Pro Mini' is part of the model, not a Pro edition
PRO_MODEL_SUFFIX = re.compile(r'\bpro\s*(mini|max|plus|ultra|air|lite|se)\b', re.IGNORECASE | re.ASCII)

# ---------------------------------------------------------------------------
# Watch attributes
# ---------------------------------------------------------------------------
WATCH_MM_PATTERN = re.compile(r'(\d+)\s*mm\b', re.IGNORECASE | re.ASCII)
WATCH_INCH_PATTERN = re.compile(r'(\d+\.?\d*)\s*寸')
SPECIFIC_BAND_KEYWORDS = [
    '复合编织表带', '尼龙编织表带', '编织表带',
    '真皮表带', '素皮表带', '皮革表带',
    '不锈钢表带', '钛金属表带', '金属表带',
    '氟橡胶表带', '硅胶表带', '橡胶表带',
]
GENERIC_BAND_KEYWORDS = ['表带', '腕带', '表链']
PARENTHESIZED = re.compile(r'\([^)]*\)')

# Product type detection: (type, input keywords, model keywords), first hit wins
PRODUCT_TYPE_RULES = [
    (PRODUCT_TYPE_WATCH, ['watch', '手表'], ['watch', 'gt']),
    (PRODUCT_TYPE_BAND, ['band', '手环'], ['band']),
    (PRODUCT_TYPE_TABLET, ['pad', '平板', 'tablet'], ['pad']),
    (PRODUCT_TYPE_LAPTOP, ['book', '笔记本', 'laptop'], ['book']),
    (PRODUCT_TYPE_EARBUDS, ['buds', '耳机', 'earbuds', 'freebuds'], ['buds']),
]


def _complex_model(text: str) -> Optional[str]:
    m = COMPLEX_MODEL_PATTERN.search(text)
    if not m:
        return None
    return re.sub(r'\s+', '', (m.group(1) or '') + m.group(2) + m.group(3)).lower()


def _word_model(text: str) -> Optional[str]:
    m = WORD_WORD_PATTERN.search(text)
    if m:
        return (m.group(1) + m.group(2) + (m.group(3) or '')).lower()
    m = WORD_NUMBER_PATTERN.search(text)
    if m and m.group(1).lower() in PRODUCT_LINE_WORDS:
        return (m.group(1) + m.group(2)).lower()
    return None


def _simple_model(text: str) -> Optional[str]:
    m = SIMPLE_MODEL_PATTERN.search(text)
    if not m:
        return None
    prefix, number, suffix = m.group(1), m.group(2), m.group(3)
    model = (prefix + number + suffix).lower()
    if not prefix and not suffix:
        # Bare numbers are usually capacities or years
        if len(model) < 2 or not 10 <= int(number) <= 999:
            return None
    return model


def _simple_model_with_letter(text: str) -> Optional[str]:
    model = _simple_model(text)
    if model and re.search('[a-z]', model):
        return model
    return None


@dataclass(frozen=True)
class ModelRule:
    name: str
    phase: str        # 'normalized' or 'raw'
    confidence: float
    find: Callable[[str], Optional[str]]


# Evaluated top to bottom; the first hit wins
MODEL_RULES = (
    ModelRule('complex', 'normalized', 1.0, _complex_model),
    ModelRule('word', 'normalized', 0.85, _word_model),
    ModelRule('simple-raw', 'raw', 0.9, _simple_model_with_letter),
    ModelRule('simple-normalized', 'normalized', 0.85, _simple_model),
)


class AttributeExtractor:
    """
    Extracts product attributes from one input string.

    Configuration is replaced wholesale through the set_* methods; the
    extractor holds no other state, so one instance can serve any number
    of extract calls.
    """

    def __init__(
        self,
        brands: Optional[List[BrandRecord]] = None,
        colors: Optional[List[str]] = None,
        color_variants: Optional[Dict[str, List[str]]] = None,
        basic_color_map: Optional[Dict[str, List[str]]] = None,
    ):
        self._brands: List[BrandRecord] = []
        self._colors: List[str] = []
        self._color_variants: Dict[str, List[str]] = {}
        self._basic_color_map: Dict[str, List[str]] = dict(DEFAULT_BASIC_COLOR_MAP)
        if brands:
            self.set_brand_list(brands)
        if colors:
            self.set_color_list(colors)
        if color_variants:
            self.set_color_variants(color_variants)
        if basic_color_map:
            self.set_basic_color_map(basic_color_map)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_brand_list(self, brands: List[BrandRecord]) -> None:
        self._brands = sort_brands_longest_first(brands)

    def set_color_list(self, colors: List[str]) -> None:
        unique = {c.strip() for c in colors if c and c.strip()}
        self._colors = sorted(unique, key=len, reverse=True)

    def set_color_variants(self, color_variants: Dict[str, List[str]]) -> None:
        """Map of primary label -> alternate names that should resolve to it."""
        self._color_variants = {k: list(v) for k, v in color_variants.items()}

    def set_basic_color_map(self, basic_color_map: Dict[str, List[str]]) -> None:
        self._basic_color_map = {k: list(v) for k, v in basic_color_map.items()}

    @property
    def brands(self) -> List[BrandRecord]:
        return list(self._brands)

    @property
    def basic_color_map(self) -> Dict[str, List[str]]:
        return {k: list(v) for k, v in self._basic_color_map.items()}

    # ------------------------------------------------------------------
    # Brand
    # ------------------------------------------------------------------

    def extract_brand(self, text: str) -> ExtractionResult:
        """
        Canonical brand name for the first brand (longest name first) whose
        canonical name (1.0) or alternate spelling (0.95) occurs in text.
        """
        if not text or not text.strip():
            return ExtractionResult.none()
        if not self._brands:
            logger.warning("Brand table not loaded; brand extraction skipped")
            return ExtractionResult.none()

        lower = text.lower()
        for record in self._brands:
            if record.name.lower() in lower:
                return ExtractionResult(record.name, 1.0, SOURCE_EXACT)
            if record.alternate_spelling and record.alternate_spelling.lower() in lower:
                return ExtractionResult(record.name, 0.95, SOURCE_EXACT)
        return ExtractionResult.none()

    # ------------------------------------------------------------------
    # Model
    # ------------------------------------------------------------------

    def strip_for_model(self, text: str, brand: Optional[str] = None) -> str:
        """Raw phase input: lower case, brand/descriptors/capacity/color glyph runs removed."""
        stripped = text.lower().strip()
        if brand:
            stripped = remove_brand_forms(stripped, brand, self._brands)
        stripped = strip_descriptors(stripped)
        stripped = strip_capacity(stripped)
        stripped = strip_color_glyph_runs(stripped)
        return collapse_whitespace(stripped)

    def extract_model(self, text: str, brand: Optional[str] = None) -> ExtractionResult:
        if not text or not text.strip():
            return ExtractionResult.none()

        raw = self.strip_for_model(text, brand)
        if not raw:
            return ExtractionResult.none()

        phases = {'raw': raw, 'normalized': split_model_tokens(raw)}
        for rule in MODEL_RULES:
            model = rule.find(phases[rule.phase])
            if model:
                return ExtractionResult(model, rule.confidence, SOURCE_EXACT)
        return ExtractionResult.none()

    # ------------------------------------------------------------------
    # Color
    # ------------------------------------------------------------------

    def extract_color(self, text: str) -> ExtractionResult:
        if not text or not text.strip():
            return ExtractionResult.none()

        cleaned = text
        for keyword in COLOR_NOISE_KEYWORDS:
            cleaned = cleaned.replace(keyword, ' ')
        cleaned = collapse_whitespace(cleaned)
        if not cleaned:
            return ExtractionResult.none()

        for primary, alternates in self._color_variants.items():
            if primary in cleaned or any(alt in cleaned for alt in alternates):
                return ExtractionResult(primary, 1.0, SOURCE_EXACT)

        for color in self._colors:
            if color in cleaned:
                return ExtractionResult(color, 0.95, SOURCE_EXACT)

        m = TRAILING_IDEOGRAPHS.search(cleaned)
        if m and m.group(0) not in COLOR_EXCLUDE_WORDS:
            return ExtractionResult(m.group(0), 0.85, SOURCE_FUZZY)

        for glyph in BASIC_COLOR_GLYPHS:
            if glyph in cleaned:
                return ExtractionResult(glyph, 0.7, SOURCE_FUZZY)
        return ExtractionResult.none()

    # ------------------------------------------------------------------
    # Capacity
    # ------------------------------------------------------------------

    def extract_capacity(self, text: str) -> ExtractionResult:
        if not text or not text.strip():
            return ExtractionResult.none()

        normalized = text.lower().strip()

        m = RAM_STORAGE_CAPTURE.search(normalized)
        if m:
            ram, storage, unit = m.group(1), m.group(2), m.group(3) or ''
            if 't' in unit:
                storage += 'T'
            return ExtractionResult(f"{ram}+{storage}", 1.0, SOURCE_EXACT)

        m = SINGLE_STORAGE_CAPTURE.search(normalized)
        if m:
            value, unit = m.group(1), m.group(2)
            if 't' in unit:
                return ExtractionResult(value + 'T', 0.9, SOURCE_EXACT)
            if int(value) <= 32:
                # Small gigabyte counts are more often RAM than storage
                confidence = 0.8 if CAPACITY_CONTEXT.search(text) else 0.7
                return ExtractionResult(value, confidence, SOURCE_FUZZY)
            return ExtractionResult(value, 0.9, SOURCE_EXACT)

        if CAPACITY_CONTEXT.search(text):
            m = BARE_STORAGE_NUMBER.search(normalized)
            if m:
                value = BARE_TERABYTES.get(m.group(1), m.group(1))
                return ExtractionResult(value, 0.8, SOURCE_FUZZY)
        return ExtractionResult.none()

    # ------------------------------------------------------------------
    # Version
    # ------------------------------------------------------------------

    def extract_version(self, text: str) -> ExtractionResult:
        if not text or not text.strip():
            return ExtractionResult.none()

        normalized = text.lower().strip()
        pro_is_model = bool(PRO_MODEL_SUFFIX.search(text))

        for tier in VERSION_TIERS:
            candidates = [(kw, rule) for rule in tier.rules for kw in rule.keywords]
            # Longest keyword first; declaration order breaks ties
            candidates.sort(key=lambda c: len(c[0]), reverse=True)
            for keyword, rule in candidates:
                if keyword == 'pro版' and pro_is_model:
                    continue
                if keyword in normalized:
                    info = VersionInfo(rule.name, list(rule.keywords), rule.priority)
                    return ExtractionResult(info, tier.confidence, SOURCE_EXACT)
        return ExtractionResult.none()

    # ------------------------------------------------------------------
    # Watch attributes
    # ------------------------------------------------------------------

    def extract_watch_size(self, text: str) -> ExtractionResult:
        """Case size ('46mm') or screen size ('1.43寸')."""
        if not text or not text.strip():
            return ExtractionResult.none()
        m = WATCH_MM_PATTERN.search(text)
        if m:
            return ExtractionResult(f"{m.group(1)}mm", 1.0, SOURCE_EXACT)
        m = WATCH_INCH_PATTERN.search(text)
        if m:
            return ExtractionResult(f"{m.group(1)}寸", 1.0, SOURCE_EXACT)
        return ExtractionResult.none()

    def extract_watch_band(self, text: str) -> ExtractionResult:
        """Band description from the band keyword to the end of the string."""
        if not text or not text.strip():
            return ExtractionResult.none()
        for keywords, confidence, source in (
            (SPECIFIC_BAND_KEYWORDS, 1.0, SOURCE_EXACT),
            (GENERIC_BAND_KEYWORDS, 0.8, SOURCE_FUZZY),
        ):
            for keyword in keywords:
                index = text.find(keyword)
                if index != -1:
                    band = PARENTHESIZED.sub('', text[index:].strip()).strip()
                    return ExtractionResult(band or keyword, confidence, source)
        return ExtractionResult.none()

    # ------------------------------------------------------------------
    # All attributes
    # ------------------------------------------------------------------

    def detect_product_type(self, text: str, model: Optional[str]) -> str:
        lower_input = text.lower()
        lower_model = (model or '').lower()
        for product_type, input_keywords, model_keywords in PRODUCT_TYPE_RULES:
            if any(k in lower_input for k in input_keywords) or any(k in lower_model for k in model_keywords):
                return product_type
        return PRODUCT_TYPE_PHONE

    def extract_all(self, text: str, original: Optional[str] = None) -> ExtractedInfo:
        """
        original is the text before any external preprocessing; it defaults
        to text and is kept as original_input for the selectors.
        """
        preprocessed = collapse_whitespace(text or '')
        if original is None:
            original = text or ''

        brand = self.extract_brand(preprocessed)
        model = self.extract_model(preprocessed, brand.value)
        color = self.extract_color(preprocessed)
        capacity = self.extract_capacity(preprocessed)
        version = self.extract_version(preprocessed)
        product_type = self.detect_product_type(preprocessed, model.value)

        logger.debug(
            "Extracted from %r: brand=%s model=%s color=%s capacity=%s version=%s type=%s",
            original, brand.value, model.value, color.value, capacity.value,
            version.value.name if version.value else None, product_type,
        )
        return ExtractedInfo(
            original_input=original,
            preprocessed_input=preprocessed,
            brand=brand,
            model=model,
            color=color,
            capacity=capacity,
            version=version,
            product_type=product_type,
        )
