"""
Reference candidate selectors plugged into the match orchestrator.

SPU level (ExactSpuSelector):
    - skip gift boxes and accessories the input does not ask for
      (hooks.should_filter_spu)
    - brand must match, model must match after separator stripping
    - score = version score + keyword bonus (+ model detail bonus), capped at 1.0
    - optional same-brand fuzzy fallback using rapidfuzz token_sort_ratio
      when no exact model hit exists; fuzzy scores are discounted so they
      never outrank an exact hit
    - ties: higher priority wins, then the simpler (shorter) catalog name

SKU level (SpecSkuSelector):
    weighted per-field scores (color, capacity, version, and for watches
    size and band) over the chosen entry's variants.

Both are plain callables; the orchestrator only depends on their call
signatures, so any other implementation can be swapped in.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from rapidfuzz import fuzz, process

from attribute_extractor import VERSION_TIERS
from catalog_models import EnrichedCatalogEntry, ExtractedInfo, Variant, VersionInfo, PRODUCT_TYPE_WATCH
from settings import FUZZY_MODEL_THRESHOLD, FUZZY_SCORE_FACTOR, KEYWORD_BONUS_MAX, KEYWORD_BONUS_PER_TOKEN
from text_policy import BASIC_COLOR_GLYPHS, split_model_tokens
from version_matcher import VersionMatcher

logger = logging.getLogger(__name__)

MATCH_TYPE_EXACT = "exact"
MATCH_TYPE_FUZZY = "fuzzy"

SPU_PRIORITY_STANDARD = 3
SPU_PRIORITY_VERSION_MATCH = 2
SPU_PRIORITY_OTHER = 1

# Each group filters a catalog entry that carries one of its words unless
# the input carries one too
GIFT_KEYWORDS = ['礼盒', '套装', '系列', '礼品', '礼包']
MERCHANDISE_KEYWORDS = ['赠品', '定制', '限定', '立牌', '周边', '手办', '摆件']
DOCK_KEYWORDS = ['底座', '充电底座']
ACCESSORY_KEYWORDS = [
    '充电器', '充电线', '数据线', '耳机', '保护壳', '保护套',
    '保护膜', '贴膜', '钢化膜', '支架', '转接头', '适配器',
    '电源', '原装', '配件', '套餐', '底座', '充电底座', '无线充电',
]
# Connectivity editions that cannot stand in for each other
EXCLUSIVE_EDITIONS = [('蓝牙版', 'esim版')]
NETWORK_EDITION_KEYWORDS = ['蓝牙版', 'esim版', '5g版', '4g版', '3g版', '全网通版']
SPECIAL_EDITION_KEYWORDS = ['十周年', '周年', '纪念版', '限量版', '特别版']
MODEL_DETAIL_BONUS_MAX = 0.15

# SPU part rules, tried in order; the first hit ends the name
_FULL_NETWORK_5G = re.compile(r'(.+?)\s*全网通\s*5g(?:版)?\b', re.IGNORECASE | re.ASCII)
_NETWORK = re.compile(r'(.+?)\s*(?:5g|4g|3g|2g)(?:版)?\b', re.IGNORECASE | re.ASCII)
_RAM_STORAGE = re.compile(r'(.+?)\s*\(?\d+\s*(?:gb)?\s*\+\s*\d+\s*(?:gb)?\)?', re.IGNORECASE)
_WATCH_SIZE = re.compile(r'(.+?)\s+(\d+)\s*mm\b', re.IGNORECASE | re.ASCII)
_WATCH_WORDS = re.compile(r'watch|band|手表|手环', re.IGNORECASE)
_TRAILING_IDEOGRAPHS = re.compile('[一-龥]{2,4}$')
# Bare '5G' / '4G' / '3G' are handled by the network rule
_EDITION_KEYWORDS = [
    keyword
    for tier in VERSION_TIERS for rule in tier.rules if rule.name not in ('5G', '4G', '3G')
    for keyword in rule.keywords
]
_TOKEN_SEPARATORS = re.compile(r'[\s\-_,，、。；;]+')
_COMPARISON_SEPARATORS = re.compile(r'[\s\-_]')
_MODEL_CODE = re.compile(r'[a-z]{3}-[a-z]{2}\d{2}', re.IGNORECASE)

# Per product type field weights for variant scoring
SPEC_WEIGHTS: Dict[str, Dict[str, float]] = {
    'default': {'color': 0.3, 'capacity': 0.4, 'version': 0.3},
    PRODUCT_TYPE_WATCH: {'color': 0.3, 'version': 0.2, 'size': 0.3, 'band': 0.2},
}


# ---------------------------------------------------------------------------
# Callback bundle
# ---------------------------------------------------------------------------

def extract_spu_part(name: str) -> str:
    """
    Catalog name cut down to brand + model (+ edition).

    Network editions, 'ram+storage' and watch case sizes are SKU level, so
    the name ends right before the first of them:

        '华为 Mate 60 Pro 全网通5G 雅川青'   -> '华为 Mate 60 Pro'
        'vivo Y50 5G'                        -> 'vivo Y50'
        '小米 14 8GB+64GB 黑色'              -> '小米 14'
        '华为 Watch GT 5 46mm 复合编织表带'  -> '华为 Watch GT 5'

    Otherwise the name ends after the first edition keyword
    ('华为 Watch GT 5 eSIM版 曜石黑' -> '华为 Watch GT 5 eSIM版'), or loses its
    trailing color ('小米 14 Ultra 黑色' -> '小米 14 Ultra').
    """
    for pattern in (_FULL_NETWORK_5G, _NETWORK, _RAM_STORAGE):
        m = pattern.match(name)
        if m:
            return m.group(1).strip()

    m = _WATCH_SIZE.match(name)
    if m and _WATCH_WORDS.search(m.group(1)):
        return m.group(1).strip()

    lower = name.lower()
    for keyword in _EDITION_KEYWORDS:
        index = lower.find(keyword)
        if index != -1:
            return name[:index + len(keyword)].strip()
    return _TRAILING_IDEOGRAPHS.sub('', name).strip()


def is_brand_match(brand_a: Optional[str], brand_b: Optional[str]) -> bool:
    if not brand_a or not brand_b:
        return False
    return brand_a.lower() == brand_b.lower()


def _only_in_spu(keywords: List[str], lower_input: str, lower_spu: str) -> bool:
    return not any(k in lower_input for k in keywords) and any(k in lower_spu for k in keywords)


def should_filter_spu(input_text: str, spu_name: str) -> bool:
    """
    True when the catalog entry is a gift box, merchandise, dock or
    accessory the input did not ask for, or carries the connectivity
    edition that excludes the one in the input.
    """
    lower_input, lower_spu = input_text.lower(), spu_name.lower()

    for keywords in (GIFT_KEYWORDS, MERCHANDISE_KEYWORDS):
        if _only_in_spu(keywords, lower_input, lower_spu):
            return True

    for a, b in EXCLUSIVE_EDITIONS:
        if (a in lower_input and b in lower_spu) or (b in lower_input and a in lower_spu):
            return True

    for keywords in (DOCK_KEYWORDS, ACCESSORY_KEYWORDS):
        if _only_in_spu(keywords, lower_input, lower_spu):
            return True
    return False


def get_spu_priority(input_text: str, spu_name: str) -> int:
    """Plain entries first, then entries whose network edition the input also names."""
    lower_input, lower_spu = input_text.lower(), spu_name.lower()
    has_gift = any(k in lower_spu for k in GIFT_KEYWORDS)
    spu_editions = [k for k in NETWORK_EDITION_KEYWORDS if k in lower_spu]
    if not has_gift and not spu_editions:
        return SPU_PRIORITY_STANDARD
    if any(k in lower_input for k in spu_editions):
        return SPU_PRIORITY_VERSION_MATCH
    return SPU_PRIORITY_OTHER


def tokenize(text: str) -> List[str]:
    return [t for t in _TOKEN_SEPARATORS.split(text.lower()) if t]


@dataclass
class SelectorHooks:
    """Text helpers the orchestrator hands to the SPU selector."""
    extract_brand: Callable[[str], Optional[str]]
    extract_model: Callable[[str, Optional[str]], Optional[str]]
    extract_version: Callable[[str], Optional[VersionInfo]]
    extract_spu_part: Callable[[str], str] = extract_spu_part
    is_brand_match: Callable[[Optional[str], Optional[str]], bool] = is_brand_match
    should_filter_spu: Callable[[str, str], bool] = should_filter_spu
    get_spu_priority: Callable[[str, str], int] = get_spu_priority
    tokenize: Callable[[str], List[str]] = tokenize


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class SpuCandidate:
    entry: EnrichedCatalogEntry
    score: float
    explanation: str
    priority: int = SPU_PRIORITY_STANDARD
    match_type: str = MATCH_TYPE_EXACT


@dataclass
class VariantCandidate:
    variant: Variant
    score: float
    per_field_scores: Dict[str, float] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# SPU selection
# ---------------------------------------------------------------------------

def _compare_form(model: str) -> str:
    return _COMPARISON_SEPARATORS.sub('', model.lower())


def keyword_bonus(input_text: str, spu_name: str, tokenizer: Callable[[str], List[str]]) -> float:
    lower_name = spu_name.lower()
    hits = sum(1 for token in tokenizer(input_text) if len(token) > 2 and token in lower_name)
    return min(hits * KEYWORD_BONUS_PER_TOKEN, KEYWORD_BONUS_MAX)


def model_detail_bonus(input_model: Optional[str], spu_model: Optional[str]) -> float:
    """Bonus for matching model codes ('abc-de12') and shared special-edition words."""
    if not input_model or not spu_model:
        return 0.0
    a, b = input_model.lower(), spu_model.lower()
    bonus = 0.0
    code_a, code_b = _MODEL_CODE.search(a), _MODEL_CODE.search(b)
    if code_a and code_b and code_a.group(0) == code_b.group(0):
        bonus += 0.1
    for keyword in SPECIAL_EDITION_KEYWORDS:
        if keyword in a and keyword in b:
            bonus += 0.05
    return min(bonus, MODEL_DETAIL_BONUS_MAX)


class ExactSpuSelector:

    def __init__(self, version_matcher: Optional[VersionMatcher] = None, fuzzy_fallback: bool = True,
                 fuzzy_threshold: int = FUZZY_MODEL_THRESHOLD):
        self.version_matcher = version_matcher or VersionMatcher()
        self.fuzzy_fallback = fuzzy_fallback
        self.fuzzy_threshold = fuzzy_threshold

    def __call__(self, extracted: ExtractedInfo, catalog: List[EnrichedCatalogEntry],
                 hooks: SelectorHooks) -> Optional[SpuCandidate]:
        matches = self.find_matches(extracted, catalog, hooks)
        if matches:
            return matches[0]
        return None

    def find_matches(self, extracted: ExtractedInfo, catalog: List[EnrichedCatalogEntry],
                     hooks: SelectorHooks) -> List[SpuCandidate]:
        """All candidates, best first."""
        input_brand = extracted.brand.value
        input_model = extracted.model.value
        input_version = extracted.version.value
        original = extracted.original_input

        matches: List[SpuCandidate] = []
        same_brand: Dict[int, tuple] = {}
        filtered = brand_mismatch = 0

        for position, entry in enumerate(catalog):
            if hooks.should_filter_spu(original, entry.name):
                filtered += 1
                continue

            spu_part = hooks.extract_spu_part(entry.name)
            spu_brand = entry.brand or entry.extracted_brand or hooks.extract_brand(spu_part)
            if not hooks.is_brand_match(input_brand, spu_brand):
                brand_mismatch += 1
                continue

            spu_model = hooks.extract_model(spu_part, spu_brand)
            spu_version = hooks.extract_version(spu_part)
            if not (input_model and spu_model and _compare_form(input_model) == _compare_form(spu_model)):
                if spu_model:
                    same_brand[position] = (entry, spu_model, spu_version)
                continue

            version = self.version_matcher.match(input_version, spu_version)
            kw_bonus = keyword_bonus(original, entry.name, hooks.tokenize)
            detail_bonus = model_detail_bonus(input_model, spu_model)
            score = min(version.score + kw_bonus + detail_bonus, 1.0)
            explanation = (
                f'Exact match: brand="{spu_brand}", model="{spu_model}"; {version.explanation}; '
                f'base {version.score:.2f}, keyword +{kw_bonus:.2f}, model detail +{detail_bonus:.2f}'
            )
            matches.append(SpuCandidate(
                entry=entry, score=score, explanation=explanation,
                priority=hooks.get_spu_priority(original, entry.name),
            ))

        if not matches and self.fuzzy_fallback and input_model and same_brand:
            matches = self._fuzzy_matches(extracted, same_brand, hooks)

        logger.debug(
            "SPU selection for %r: %d candidates, %d filtered, %d brand mismatches",
            original, len(matches), filtered, brand_mismatch,
        )
        matches.sort(key=lambda c: (-c.score, -c.priority, c.entry.simplicity))
        return matches

    def _fuzzy_matches(self, extracted: ExtractedInfo, same_brand: Dict[int, tuple],
                       hooks: SelectorHooks) -> List[SpuCandidate]:
        query = split_model_tokens(extracted.model.value.lower())
        choices = {pos: split_model_tokens(model.lower()) for pos, (_, model, _) in same_brand.items()}
        hits = process.extract(
            query, choices, scorer=fuzz.token_sort_ratio,
            score_cutoff=self.fuzzy_threshold, limit=5,
        )
        candidates = []
        for choice, ratio, position in hits:
            entry, spu_model, spu_version = same_brand[position]
            version = self.version_matcher.match(extracted.version.value, spu_version)
            score = ratio / 100 * version.score * FUZZY_SCORE_FACTOR
            candidates.append(SpuCandidate(
                entry=entry, score=score,
                explanation=(
                    f'Fuzzy model match: "{extracted.model.value}" ~ "{spu_model}" ({ratio:.0f}%); '
                    f'{version.explanation}'
                ),
                priority=hooks.get_spu_priority(extracted.original_input, entry.name),
                match_type=MATCH_TYPE_FUZZY,
            ))
        return candidates


# ---------------------------------------------------------------------------
# SKU selection
# ---------------------------------------------------------------------------

def normalize_capacity(capacity: str) -> str:
    """'12GB+512GB' -> '12+512', '16GB+1TB' -> '16+1t'."""
    capacity = re.sub('GB', '', capacity, flags=re.I)
    capacity = re.sub('TB', 'T', capacity, flags=re.I)
    capacity = re.sub('G', '', capacity, flags=re.I)
    return re.sub(r'\s+', '', capacity).lower()


def score_color(input_color: Optional[str], variant_color: Optional[str]) -> float:
    if not input_color or not variant_color:
        return 0.0
    a, b = input_color.lower(), variant_color.lower()
    if a == b:
        return 1.0
    if a in b or b in a:
        return 0.8
    if any(g in a and g in b for g in BASIC_COLOR_GLYPHS):
        return 0.5
    return 0.0


def score_capacity(input_capacity: Optional[str], variant_spec: Optional[str]) -> float:
    if not input_capacity or not variant_spec:
        return 0.0
    a, b = normalize_capacity(input_capacity), normalize_capacity(variant_spec)
    if a == b:
        return 1.0
    # Same storage, different RAM
    if a.split('+')[-1] == b.split('+')[-1]:
        return 0.7
    return 0.0


def score_version(input_version: Optional[str], variant_combo: Optional[str]) -> float:
    if not input_version:
        return 0.8 if variant_combo and '标准' in variant_combo else 0.5
    if variant_combo:
        a, b = input_version.lower(), variant_combo.lower()
        if a in b or b in a:
            return 1.0
    return 0.0


def score_exact(a: Optional[str], b: Optional[str]) -> float:
    if not a or not b:
        return 0.0
    return 1.0 if a.lower() == b.lower() else 0.0


class SpecSkuSelector:
    """
    Picks the variant whose color, capacity and version best fit the input.

    Takes the attribute extractor for watch size/band; without it watches
    are scored on color and version only.
    """

    def __init__(self, extractor=None, weights: Optional[Dict[str, Dict[str, float]]] = None):
        self.extractor = extractor
        self.weights = weights or SPEC_WEIGHTS

    def __call__(self, entry: EnrichedCatalogEntry, extracted: ExtractedInfo,
                 product_type: str) -> Optional[VariantCandidate]:
        if not entry.variants:
            logger.debug("Catalog entry '%s' has no variants", entry.name)
            return None

        weights = self.weights.get(product_type, self.weights['default'])
        best: Optional[VariantCandidate] = None
        for variant in entry.variants:
            scores = self.field_scores(variant, extracted, product_type)
            total = self.weighted_score(scores, weights)
            if best is None or total > best.score:
                best = VariantCandidate(variant, total, scores)

        if best is None or best.score <= 0:
            return None
        return best

    def field_scores(self, variant: Variant, extracted: ExtractedInfo, product_type: str) -> Dict[str, float]:
        scores: Dict[str, float] = {}
        if extracted.color.value or variant.color:
            scores['color'] = score_color(extracted.color.value, variant.color)
        if extracted.capacity.value or variant.spec:
            scores['capacity'] = score_capacity(extracted.capacity.value, variant.spec)
        version_name = extracted.version.value.name if extracted.version.value else None
        if version_name or variant.combo:
            scores['version'] = score_version(version_name, variant.combo)

        if product_type == PRODUCT_TYPE_WATCH and self.extractor is not None:
            variant_text = ' '.join(v for v in (variant.spec, variant.combo, variant.color) if v)
            for name, extract in (('size', self.extractor.extract_watch_size),
                                  ('band', self.extractor.extract_watch_band)):
                wanted = extract(extracted.original_input).value
                offered = extract(variant_text).value if variant_text else None
                if wanted or offered:
                    scores[name] = score_exact(wanted, offered)
        return scores

    @staticmethod
    def weighted_score(scores: Dict[str, float], weights: Dict[str, float]) -> float:
        total = weight_sum = 0.0
        for name, score in scores.items():
            weight = weights.get(name, 0)
            if weight > 0:
                total += score * weight
                weight_sum += weight
        return total / weight_sum if weight_sum else 0.0
