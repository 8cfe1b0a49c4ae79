"""
Configuration for the product text resolver.

Thresholds live here as module constants. Text mappings (typo fixes,
abbreviations, brand aliases, capacity synonyms) are read from a JSON
file, by default config/text-mappings.json at the repository root; set
PRODUCT_RESOLVER_TEXT_MAPPINGS to point somewhere else.

A text-mappings file that is missing or unreadable is not fatal: the
loader logs the problem and hands back empty tables.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEXT_MAPPINGS_ENV_VAR = "PRODUCT_RESOLVER_TEXT_MAPPINGS"
DEFAULT_TEXT_MAPPINGS_PATH = os.path.join(REPO_ROOT, 'config', 'text-mappings.json')

# ---------------------------------------------------------------------------
# Catalog preparation
# ---------------------------------------------------------------------------
BRAND_FAILURE_WARN_RATE = 0.05   # warn when more than 5% of entries have no brand
MODEL_FAILURE_WARN_RATE = 0.10   # warn when more than 10% of entries have no model
PREPROCESS_WARN_SECONDS = 5.0
TOP_ITEMS_LOGGED = 5

# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------
BATCH_PROGRESS_INTERVAL = 10     # log batch progress every N inputs
FUZZY_MODEL_THRESHOLD = 85       # rapidfuzz score needed for a same-brand fallback candidate
FUZZY_SCORE_FACTOR = 0.8         # fuzzy candidates never outrank exact model hits
KEYWORD_BONUS_PER_TOKEN = 0.05
KEYWORD_BONUS_MAX = 0.1

TEXT_MAPPING_KEYS = {
    'typoCorrections': 'typo_corrections',
    'abbreviations': 'abbreviations',
    'brandAliases': 'brand_aliases',
    'capacityNormalizations': 'capacity_normalizations',
}


class ConfigurationError(ValueError):
    """A configuration payload is present but has the wrong shape."""


@dataclass
class TextMappings:
    typo_corrections: Dict[str, str] = field(default_factory=dict)
    abbreviations: Dict[str, str] = field(default_factory=dict)
    brand_aliases: Dict[str, List[str]] = field(default_factory=dict)
    capacity_normalizations: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict) -> 'TextMappings':
        if not isinstance(data, dict):
            raise ConfigurationError("Text mappings must be a JSON object")
        kwargs = {}
        for json_key, attr in TEXT_MAPPING_KEYS.items():
            value = data.get(json_key)
            if value is None:
                continue
            if not isinstance(value, dict):
                raise ConfigurationError(f"'{json_key}' must be an object, got {type(value).__name__}")
            kwargs[attr] = value
        for brand, aliases in kwargs.get('brand_aliases', {}).items():
            if not isinstance(aliases, list):
                raise ConfigurationError(f"Aliases for brand '{brand}' must be a list")
        return cls(**kwargs)


def default_text_mappings() -> TextMappings:
    """Built-in tables used when no mappings file is configured."""
    return TextMappings(
        typo_corrections={'雾松蓝': '雾凇蓝'},
        abbreviations={'GT5': 'Watch GT 5', 'NFC': 'NFC', 'eSIM': 'eSIM'},
        brand_aliases={
            '华为': ['HUAWEI', 'huawei', 'Huawei'],
            '小米': ['XIAOMI', 'xiaomi', 'Xiaomi', 'MI', 'mi'],
        },
        capacity_normalizations={'8GB+256GB': '8+256', '256GB': '256'},
    )


def text_mappings_path() -> str:
    return os.getenv(TEXT_MAPPINGS_ENV_VAR) or DEFAULT_TEXT_MAPPINGS_PATH


def load_text_mappings(path: Optional[str] = None) -> TextMappings:
    """
    Load text mappings from JSON.

    Returns empty tables (and logs why) when the file is missing, is not
    valid JSON, or has the wrong shape.
    """
    path = path or text_mappings_path()
    if not os.path.exists(path):
        logger.warning("Text mappings file not found at %s; continuing with empty tables", path)
        return TextMappings()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            mappings = TextMappings.from_dict(json.load(f))
    except (OSError, json.JSONDecodeError, ConfigurationError) as e:
        logger.error("Failed to load text mappings from %s: %s", path, e)
        return TextMappings()

    if not mappings.capacity_normalizations:
        logger.warning("No capacityNormalizations in %s", path)
    logger.info(
        "Loaded text mappings from %s: %d typo fixes, %d abbreviations, %d brands with aliases, %d capacity rules",
        path, len(mappings.typo_corrections), len(mappings.abbreviations),
        len(mappings.brand_aliases), len(mappings.capacity_normalizations),
    )
    return mappings
