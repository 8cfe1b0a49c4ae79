"""
Version compatibility scoring between an input version and a catalog version.

Decision order when both sides carry a version:
    1. same name                       -> matched, exact score
    2. mutually exclusive pair         -> not matched, mismatch score
    3. compatible (either direction)   -> matched, compatible score
    4. same priority and same category -> not matched, priority score
    5. anything else                   -> not matched, mismatch score

A missing catalog version scores high (catalog-only) because free text
often omits the version altogether.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from catalog_models import VersionInfo

KIND_NONE = "none"
KIND_INPUT_ONLY = "input-only"
KIND_CATALOG_ONLY = "catalog-only"
KIND_EXACT = "exact"
KIND_COMPATIBLE = "compatible"
KIND_PRIORITY = "priority"

CATEGORY_NETWORK = "network"
CATEGORY_STANDARD = "standard"
CATEGORY_PREMIUM = "premium"
CATEGORY_SPECIAL = "special"

# Declared source version -> versions it also satisfies
VERSION_COMPATIBILITY: Dict[str, List[str]] = {
    '全网通5G': ['5G', '5G版', '全网通版'],
    '5G版': ['5G'],
    '全网通版': ['5G', '4G', '3G'],
}

MUTUALLY_EXCLUSIVE_VERSIONS: List[FrozenSet[str]] = [
    frozenset({'蓝牙版', 'eSIM版'}),
    frozenset({'WiFi版', 'eSIM版'}),
    frozenset({'WiFi版', '蓝牙版'}),
]

VERSION_CATEGORIES: Dict[str, str] = {}
for _name in ('全网通5G', '全网通版', '卫星通信版', '蓝牙版', 'eSIM版', 'WiFi版',
              '5G版', '4G版', '3G版', '5G', '4G', '3G'):
    VERSION_CATEGORIES[_name] = CATEGORY_NETWORK
for _name in ('活力版', '优享版', '尊享版', '青春版', '轻享版', '标准版', '基础版', '普通版'):
    VERSION_CATEGORIES[_name] = CATEGORY_STANDARD
for _name in ('Pro版', '旗舰版', '至尊版', '典藏版', '限定版', '纪念版', '特别版', '定制版'):
    VERSION_CATEGORIES[_name] = CATEGORY_PREMIUM
for _name in ('礼盒版', '套装版'):
    VERSION_CATEGORIES[_name] = CATEGORY_SPECIAL


@dataclass(frozen=True)
class VersionMatchConfig:
    exact_score: float = 1.0
    compatible_score: float = 0.95
    priority_score: float = 0.83
    mismatch_score: float = 0.6
    no_version_score: float = 1.0
    input_only_score: float = 0.7
    catalog_only_score: float = 0.95


@dataclass(frozen=True)
class VersionMatchResult:
    matched: bool
    score: float
    kind: str
    explanation: str


def version_category(name: str) -> str:
    return VERSION_CATEGORIES.get(name, CATEGORY_STANDARD)


class VersionMatcher:

    def __init__(self, config: Optional[VersionMatchConfig] = None):
        self.config = config or VersionMatchConfig()

    def match(self, input_version: Optional[VersionInfo], catalog_version: Optional[VersionInfo]) -> VersionMatchResult:
        cfg = self.config

        if input_version is None and catalog_version is None:
            return VersionMatchResult(True, cfg.no_version_score, KIND_NONE, "Neither side has a version")
        if catalog_version is None:
            return VersionMatchResult(
                False, cfg.input_only_score, KIND_INPUT_ONLY,
                f'Input asks for "{input_version.name}" but the catalog entry has no version',
            )
        if input_version is None:
            return VersionMatchResult(
                False, cfg.catalog_only_score, KIND_CATALOG_ONLY,
                f'Input has no version; catalog entry is "{catalog_version.name}"',
            )

        a, b = input_version.name, catalog_version.name
        if a == b:
            return VersionMatchResult(True, cfg.exact_score, KIND_EXACT, f'Exact version match "{a}"')

        if self.is_mutually_exclusive(a, b):
            return VersionMatchResult(
                False, cfg.mismatch_score, KIND_EXACT,
                f'Mutually exclusive versions: input "{a}" vs catalog "{b}"',
            )

        reason = self._compatibility_reason(a, b)
        if reason:
            return VersionMatchResult(
                True, cfg.compatible_score, KIND_COMPATIBLE,
                f'Compatible versions: input "{a}", catalog "{b}" ({reason})',
            )

        if input_version.priority == catalog_version.priority and version_category(a) == version_category(b):
            return VersionMatchResult(
                False, cfg.priority_score, KIND_PRIORITY,
                f'Same priority {input_version.priority}: input "{a}", catalog "{b}"',
            )

        return VersionMatchResult(
            False, cfg.mismatch_score, KIND_EXACT,
            f'Version mismatch: input "{a}" (priority {input_version.priority}), '
            f'catalog "{b}" (priority {catalog_version.priority})',
        )

    def get_score(self, input_version: Optional[VersionInfo], catalog_version: Optional[VersionInfo]) -> float:
        return self.match(input_version, catalog_version).score

    def is_match(self, input_version: Optional[VersionInfo], catalog_version: Optional[VersionInfo]) -> bool:
        return self.match(input_version, catalog_version).matched

    @staticmethod
    def is_mutually_exclusive(a: str, b: str) -> bool:
        return frozenset({a, b}) in MUTUALLY_EXCLUSIVE_VERSIONS

    @staticmethod
    def _compatibility_reason(a: str, b: str) -> str:
        if b in VERSION_COMPATIBILITY.get(a, []):
            return f'"{a}" covers "{b}"'
        if a in VERSION_COMPATIBILITY.get(b, []):
            return f'"{b}" covers "{a}"'
        return ''
