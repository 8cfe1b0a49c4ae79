"""
Data model for the product text resolver.

Catalog snapshots and brand tables arrive as plain dicts (the shape the
catalog service hands over); from_dict() adapters turn them into the
dataclasses used throughout the engine.

    Catalog entry (SPU):  {id, name, brand?, variants?: [{id?, color?, spec?, combo?}]}
    Brand record:         {name, alternateSpelling?, displayColor, order?}
"""

from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, TypeVar

T = TypeVar('T')

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SOURCE_EXACT = "exact"        # literal or alias containment
SOURCE_FUZZY = "fuzzy"        # pattern-derived
SOURCE_INFERRED = "inferred"  # nothing found

PRODUCT_TYPE_PHONE = "phone"
PRODUCT_TYPE_WATCH = "watch"
PRODUCT_TYPE_BAND = "band"
PRODUCT_TYPE_TABLET = "tablet"
PRODUCT_TYPE_LAPTOP = "laptop"
PRODUCT_TYPE_EARBUDS = "earbuds"


@dataclass(frozen=True)
class Variant:
    """One sellable combination (SKU) under a catalog entry."""
    id: Optional[str] = None
    color: Optional[str] = None
    spec: Optional[str] = None
    combo: Optional[str] = None
    external_codes: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> 'Variant':
        codes = data.get('externalCodes') or data.get('external_codes') or []
        variant_id = data.get('id')
        return cls(
            id=str(variant_id) if variant_id is not None else None,
            color=data.get('color'),
            spec=data.get('spec'),
            combo=data.get('combo'),
            external_codes=[str(c) for c in codes],
        )


@dataclass(frozen=True)
class CatalogEntry:
    """A product model (SPU) with its ordered variants."""
    id: str
    name: str
    brand: Optional[str] = None
    variants: List[Variant] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> 'CatalogEntry':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name') or '',
            brand=data.get('brand') or None,
            variants=[Variant.from_dict(v) for v in (data.get('variants') or [])],
        )


@dataclass(frozen=True)
class BrandRecord:
    name: str
    alternate_spelling: Optional[str] = None
    display_color: str = ''
    order: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict) -> 'BrandRecord':
        return cls(
            name=data['name'],
            alternate_spelling=data.get('alternateSpelling') or data.get('alternate_spelling') or None,
            display_color=data.get('displayColor', '') or '',
            order=data.get('order'),
        )


@dataclass(frozen=True)
class ExtractionResult(Generic[T]):
    """
    An extracted attribute with its certainty.

    value None always comes with confidence 0 and source 'inferred';
    a non-null value always carries confidence > 0.
    """
    value: Optional[T]
    confidence: float
    source: str

    @classmethod
    def none(cls) -> 'ExtractionResult':
        return cls(None, 0.0, SOURCE_INFERRED)

    def __post_init__(self):
        if self.value is None and (self.confidence != 0 or self.source != SOURCE_INFERRED):
            raise ValueError("Empty extraction must have confidence 0 and source 'inferred'")
        if self.value is not None and not 0 < self.confidence <= 1:
            raise ValueError(f"Confidence out of range for {self.value!r}: {self.confidence}")

    def to_dict(self) -> Dict:
        return {'value': self.value, 'confidence': self.confidence, 'source': self.source}


@dataclass(frozen=True)
class VersionInfo:
    """A version descriptor: 'name' plus the keywords that imply it."""
    name: str
    keywords: List[str] = field(default_factory=list)
    priority: int = 0


@dataclass
class ExtractedInfo:
    """Everything extract_all() pulls out of one input string."""
    original_input: str
    preprocessed_input: str
    brand: ExtractionResult
    model: ExtractionResult
    color: ExtractionResult
    capacity: ExtractionResult
    version: ExtractionResult
    product_type: str = PRODUCT_TYPE_PHONE

    def to_dict(self) -> Dict:
        version = self.version.value
        return {
            'originalInput': self.original_input,
            'preprocessedInput': self.preprocessed_input,
            'brand': self.brand.to_dict(),
            'model': self.model.to_dict(),
            'color': self.color.to_dict(),
            'capacity': self.capacity.to_dict(),
            'version': {
                'value': version.name if version else None,
                'confidence': self.version.confidence,
                'source': self.version.source,
            },
            'productType': self.product_type,
        }


@dataclass
class EnrichedCatalogEntry:
    """A catalog entry plus the attributes derived during catalog preparation."""
    entry: CatalogEntry
    extracted_brand: Optional[str]
    extracted_model: Optional[str]
    normalized_model: Optional[str]
    simplicity: int
    preprocessed_at: float

    # Pass-throughs so selectors can treat enriched entries like plain ones
    @property
    def id(self) -> str:
        return self.entry.id

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def brand(self) -> Optional[str]:
        return self.entry.brand

    @property
    def variants(self) -> List[Variant]:
        return self.entry.variants


@dataclass(frozen=True)
class SpecFrequencyItem:
    value: str
    count: int
    entry_ids: List[str] = field(default_factory=list)
