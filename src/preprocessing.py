"""
Input text preprocessing ahead of attribute extraction.

    clean -> correct_typos -> expand_abbreviations -> apply_brand_aliases -> normalize

"华为 Mate 60 Pro（演示机）8GB+256GB 送充电器" becomes
"华为 Mate 60 Pro 8+256".
"""

import logging
import re
from typing import List, Optional, Tuple

from settings import TextMappings, load_text_mappings

logger = logging.getLogger(__name__)

DEMO_MARKERS = [
    '演示机', '样机', '展示机', '体验机', '试用机', '测试机',
    '演示', '样品', '展示', '体验', '试用', '测试',
]
GIFT_MARKERS = ['礼盒装', '礼盒', '套装', '礼品装', '礼品', '礼包', '系列', '组合', '套餐']
BUNDLED_ACCESSORIES = [
    '充电器', '充电线', '数据线', '耳机', '保护壳', '保护套',
    '保护膜', '贴膜', '钢化膜', '支架', '转接头', '适配器',
    '电源', '配件',
]

# '送充电器', '+赠耳机', ' 保护壳'
_ACCESSORY_PATTERNS = [
    re.compile(r'[+\s]*[送附赠带配][赠送]?\s*' + re.escape(k), re.IGNORECASE) for k in BUNDLED_ACCESSORIES
] + [
    re.compile(r'[+\s]+' + re.escape(k), re.IGNORECASE) for k in BUNDLED_ACCESSORIES
]
_BRACKETS = re.compile(r'[()（）\[\]【】「」『』“”‘’"\'《》<>{}]')
_TRAILING_PUNCTUATION = re.compile(r'[,，.。;；:：!！?？]+$')
_WHITESPACE = re.compile(r'\s+')

_RAM_STORAGE = re.compile(r'(\d+)\s*(?:gb|g)\s*\+\s*(\d+)\s*(gb|g|tb|t)', re.IGNORECASE)
_TERABYTES = re.compile(r'\b(\d+)\s*tb\b', re.IGNORECASE | re.ASCII)
_GIGABYTES = re.compile(r'\b(\d+)\s*gb\b', re.IGNORECASE | re.ASCII)
_PLUS = re.compile(r'\s*\+\s*')


def _ram_storage(m: re.Match) -> str:
    if m.group(3).lower().startswith('t'):
        return f"{m.group(1)}+{m.group(2)}T"
    return f"{m.group(1)}+{m.group(2)}"


class PreprocessingService:

    def __init__(self, mappings: Optional[TextMappings] = None):
        self.mappings = mappings or TextMappings()

    @classmethod
    def from_config(cls, path: Optional[str] = None) -> 'PreprocessingService':
        return cls(load_text_mappings(path))

    def clean(self, text: str) -> str:
        """Drop demo/gift markers, bundled accessories, brackets and trailing punctuation."""
        if not text or not text.strip():
            return ''
        cleaned = text
        for marker in DEMO_MARKERS + GIFT_MARKERS:
            cleaned = cleaned.replace(marker, '')
        for pattern in _ACCESSORY_PATTERNS:
            cleaned = pattern.sub('', cleaned)
        cleaned = _BRACKETS.sub(' ', cleaned)
        cleaned = _TRAILING_PUNCTUATION.sub('', cleaned)
        return _WHITESPACE.sub(' ', cleaned).strip()

    def correct_typos(self, text: str) -> str:
        if not text or not text.strip():
            return ''
        for typo, correction in self.mappings.typo_corrections.items():
            text = re.sub(re.escape(typo), correction, text, flags=re.IGNORECASE)
        return text

    def expand_abbreviations(self, text: str) -> str:
        if not text or not text.strip():
            return ''
        abbreviations = sorted(self.mappings.abbreviations.items(), key=lambda kv: len(kv[0]), reverse=True)
        for abbr, full in abbreviations:
            if full.lower() in text.lower():
                continue
            text = re.sub(r'\b' + re.escape(abbr) + r'\b', full, text, flags=re.IGNORECASE | re.ASCII)
        return text

    def apply_brand_aliases(self, text: str) -> str:
        """Replace brand aliases ('HUAWEI') with the canonical brand ('华为'), longest alias first."""
        if not text or not text.strip():
            return ''
        aliases: List[Tuple[str, str]] = [
            (alias, canonical)
            for canonical, names in self.mappings.brand_aliases.items()
            for alias in names
        ]
        aliases.sort(key=lambda pair: len(pair[0]), reverse=True)
        for alias, canonical in aliases:
            text = re.sub(r'\b' + re.escape(alias) + r'\b', canonical, text, flags=re.IGNORECASE | re.ASCII)
        return text

    def normalize(self, text: str) -> str:
        """Capacity spelling: '8GB+256GB' -> '8+256', '1TB' -> '1T', '256GB' -> '256'."""
        if not text or not text.strip():
            return ''
        rules = sorted(self.mappings.capacity_normalizations.items(), key=lambda kv: len(kv[0]), reverse=True)
        for pattern, replacement in rules:
            text = re.sub(re.escape(pattern), replacement, text, flags=re.IGNORECASE)
        text = _RAM_STORAGE.sub(_ram_storage, text)
        text = _TERABYTES.sub(r'\1T', text)
        text = _GIGABYTES.sub(r'\1', text)
        text = _PLUS.sub('+', text)
        return _WHITESPACE.sub(' ', text).strip()

    def preprocess(self, text: str) -> str:
        if not text or not text.strip():
            return ''
        processed = self.clean(text)
        processed = self.correct_typos(processed)
        processed = self.expand_abbreviations(processed)
        processed = self.apply_brand_aliases(processed)
        processed = self.normalize(processed)
        logger.debug("Preprocessed %r -> %r", text, processed)
        return processed
