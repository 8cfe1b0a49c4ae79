"""
Match orchestration: free text in, catalog match out.

Pipeline for one input:
    1. preprocessing   (demo/gift markers, typos, brand aliases, capacity spelling)
    2. extraction      (brand, model, color, capacity, version, product type)
    3. SPU selection   (pluggable; receives the enriched catalog and SelectorHooks)
    4. SKU selection   (pluggable; runs only when step 3 found a candidate)
    5. aggregation     matched / spu-matched / unmatched

Status:
    - matched:      a variant was selected; similarity = variant score
    - spu-matched:  only the catalog entry was found; similarity = entry score
    - unmatched:    nothing found; similarity = 0

initialize() must run once before any match. Matching is synchronous and
single-threaded; batch_match() processes inputs one at a time.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Union

import pandas as pd

from attribute_extractor import AttributeExtractor
from candidate_selectors import (
    ExactSpuSelector, SelectorHooks, SpecSkuSelector, SpuCandidate, VariantCandidate,
)
from catalog_models import BrandRecord, CatalogEntry, EnrichedCatalogEntry, ExtractedInfo
from catalog_preparer import CatalogPreparer
from preprocessing import PreprocessingService
from settings import BATCH_PROGRESS_INTERVAL, TextMappings, load_text_mappings
from version_matcher import VersionMatchConfig, VersionMatcher

logger = logging.getLogger(__name__)

MATCH_STATUS_MATCHED = "matched"
MATCH_STATUS_SPU_MATCHED = "spu-matched"
MATCH_STATUS_UNMATCHED = "unmatched"

SpuSelector = Callable[[ExtractedInfo, List[EnrichedCatalogEntry], SelectorHooks], Optional[SpuCandidate]]
SkuSelector = Callable[[EnrichedCatalogEntry, ExtractedInfo, str], Optional[VariantCandidate]]


class OrchestratorNotInitializedError(RuntimeError):
    """match()/batch_match() called before initialize()."""


class OrchestratorAlreadyInitializedError(RuntimeError):
    """initialize() called a second time on the same orchestrator."""


@dataclass
class MatchResult:
    input_text: str
    status: str
    similarity: float
    extracted: Optional[ExtractedInfo] = None
    candidate: Optional[SpuCandidate] = None
    variant: Optional[VariantCandidate] = None
    explanation: str = ''
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        extracted = self.extracted
        version = extracted.version.value if extracted else None
        entry = self.candidate.entry if self.candidate else None
        variant = self.variant.variant if self.variant else None
        return {
            'inputText': self.input_text,
            'candidateMatch': {
                'entry': {'id': entry.id, 'name': entry.name, 'brand': entry.extracted_brand} if entry else None,
                'score': self.candidate.score if self.candidate else 0.0,
                'explanation': self.candidate.explanation if self.candidate else self.explanation,
            },
            'variantMatch': {
                'variant': {
                    'id': variant.id, 'color': variant.color, 'spec': variant.spec, 'combo': variant.combo,
                } if variant else None,
                'score': self.variant.score if self.variant else 0.0,
                'perFieldScores': dict(self.variant.per_field_scores) if self.variant else {},
            },
            'status': self.status,
            'similarity': self.similarity,
            'extractedAttributes': {
                'brand': extracted.brand.value if extracted else None,
                'version': version.name if version else None,
                'capacity': extracted.capacity.value if extracted else None,
                'color': extracted.color.value if extracted else None,
            },
            'matchedIdentifiers': {
                'entryName': entry.name if entry else None,
                'variantId': variant.id if variant else None,
                'externalCodes': list(variant.external_codes) if variant else [],
            },
            'error': self.error,
        }


@dataclass
class BatchMatchResult:
    results: List[MatchResult] = field(default_factory=list)
    summary: Dict = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {'results': [r.to_dict() for r in self.results], 'summary': dict(self.summary)}

    def to_frame(self) -> pd.DataFrame:
        """One row per input, for review or export by the caller."""
        rows = []
        for r in self.results:
            d = r.to_dict()
            rows.append({
                'input_text': d['inputText'],
                'status': d['status'],
                'similarity': d['similarity'],
                'brand': d['extractedAttributes']['brand'],
                'version': d['extractedAttributes']['version'],
                'capacity': d['extractedAttributes']['capacity'],
                'color': d['extractedAttributes']['color'],
                'entry_name': d['matchedIdentifiers']['entryName'],
                'variant_id': d['matchedIdentifiers']['variantId'],
                'external_codes': ', '.join(d['matchedIdentifiers']['externalCodes']),
                'explanation': d['candidateMatch']['explanation'],
                'error': d['error'],
            })
        return pd.DataFrame(rows, columns=[
            'input_text', 'status', 'similarity', 'brand', 'version', 'capacity', 'color',
            'entry_name', 'variant_id', 'external_codes', 'explanation', 'error',
        ])


def _as_brand(record: Union[BrandRecord, Dict]) -> BrandRecord:
    return record if isinstance(record, BrandRecord) else BrandRecord.from_dict(record)


def _as_entry(entry: Union[CatalogEntry, Dict]) -> CatalogEntry:
    return entry if isinstance(entry, CatalogEntry) else CatalogEntry.from_dict(entry)


class MatchOrchestrator:

    def __init__(
        self,
        extractor: AttributeExtractor,
        preparer: CatalogPreparer,
        preprocessor: PreprocessingService,
        spu_selector: SpuSelector,
        sku_selector: SkuSelector,
    ):
        self.extractor = extractor
        self.preparer = preparer
        self.preprocessor = preprocessor
        self.spu_selector = spu_selector
        self.sku_selector = sku_selector
        self.catalog: List[EnrichedCatalogEntry] = []
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self, brands: Sequence[Union[BrandRecord, Dict]],
                   catalog: Sequence[Union[CatalogEntry, Dict]]) -> None:
        """Load the brand table and catalog, then build every index. Runs once."""
        if self._initialized:
            raise OrchestratorAlreadyInitializedError("MatchOrchestrator is already initialized")

        start = time.perf_counter()
        brand_records = [_as_brand(b) for b in brands]
        entries = [_as_entry(e) for e in catalog]

        self.extractor.set_brand_list(brand_records)
        self.extractor.set_color_list([v.color for e in entries for v in e.variants if v.color])
        self.preparer.set_brand_list(brand_records)

        self.preparer.build_brand_index(entries)
        self.preparer.build_model_index(entries)
        self.preparer.build_spec_index(entries)
        self.catalog = self.preparer.preprocess_catalog(entries)
        self.preparer.log_statistics_summary()

        self._initialized = True
        logger.info(
            "MatchOrchestrator initialized: %d brands, %d catalog entries (%d enriched) in %.1fms",
            len(brand_records), len(entries), len(self.catalog), (time.perf_counter() - start) * 1000,
        )

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise OrchestratorNotInitializedError("MatchOrchestrator is not initialized; call initialize() first")

    def selector_hooks(self) -> SelectorHooks:
        return SelectorHooks(
            extract_brand=lambda name: self.extractor.extract_brand(name).value,
            extract_model=lambda name, brand=None: self.extractor.extract_model(name, brand).value,
            extract_version=lambda name: self.extractor.extract_version(name).value,
        )

    def match(self, text: str) -> MatchResult:
        """
        Match one input. Problems inside the pipeline are logged and turned
        into an unmatched result; only a missing initialize() raises.
        """
        self._require_initialized()
        try:
            return self._match(text)
        except Exception as e:
            logger.exception("Matching failed for %r", text)
            return MatchResult(
                input_text=text, status=MATCH_STATUS_UNMATCHED, similarity=0.0,
                explanation='Matching failed', error=str(e),
            )

    def _match(self, text: str) -> MatchResult:
        start = time.perf_counter()
        preprocessed = self.preprocessor.preprocess(text)
        extracted = self.extractor.extract_all(preprocessed, original=text)

        candidate = self.spu_selector(extracted, self.catalog, self.selector_hooks())
        variant = None
        if candidate is not None:
            variant = self.sku_selector(candidate.entry, extracted, extracted.product_type)

        if variant is not None:
            status, similarity = MATCH_STATUS_MATCHED, variant.score
        elif candidate is not None:
            status, similarity = MATCH_STATUS_SPU_MATCHED, candidate.score
        else:
            status, similarity = MATCH_STATUS_UNMATCHED, 0.0

        logger.debug(
            "Matched %r -> %s (%.2f) entry=%s variant=%s in %.1fms",
            text, status, similarity,
            candidate.entry.name if candidate else None,
            variant.variant.id if variant else None,
            (time.perf_counter() - start) * 1000,
        )
        return MatchResult(
            input_text=text,
            status=status,
            similarity=similarity,
            extracted=extracted,
            candidate=candidate,
            variant=variant,
            explanation=candidate.explanation if candidate else 'No matching catalog entry',
        )

    def batch_match(self, texts: Sequence[str],
                    progress_callback: Optional[Callable[[int, int], None]] = None) -> BatchMatchResult:
        """
        Match inputs one after another.

        results[i] always belongs to texts[i]: an input that fails is kept
        as an unmatched placeholder carrying the error message.
        """
        self._require_initialized()
        start = time.perf_counter()
        total = len(texts)
        results: List[MatchResult] = []
        counts = {MATCH_STATUS_MATCHED: 0, MATCH_STATUS_SPU_MATCHED: 0, MATCH_STATUS_UNMATCHED: 0}
        failed = 0

        logger.info("Batch matching %d inputs", total)
        for i, text in enumerate(texts):
            try:
                result = self.match(text)
            except Exception as e:
                logger.exception("Batch item %d/%d failed: %r", i + 1, total, text)
                result = MatchResult(
                    input_text=text, status=MATCH_STATUS_UNMATCHED, similarity=0.0,
                    explanation='Matching failed', error=str(e),
                )
            if result.error:
                failed += 1
            results.append(result)
            counts[result.status] = counts.get(result.status, 0) + 1

            if (i + 1) % BATCH_PROGRESS_INTERVAL == 0:
                logger.info("Processed %d/%d inputs", i + 1, total)
            if progress_callback:
                progress_callback(i + 1, total)

        duration_ms = (time.perf_counter() - start) * 1000
        matched = counts[MATCH_STATUS_MATCHED]
        summary = {
            'total': total,
            'matched': matched,
            'candidateOnly': counts[MATCH_STATUS_SPU_MATCHED],
            'unmatched': counts[MATCH_STATUS_UNMATCHED],
            'failed': failed,
            'matchRate': (matched / total * 100) if total else 0.0,
            'durationMs': duration_ms,
        }
        logger.info(
            "Batch done: %d total, %d matched, %d entry-only, %d unmatched (%d failed), "
            "match rate %.2f%%, %.1fms",
            total, matched, summary['candidateOnly'], summary['unmatched'], failed,
            summary['matchRate'], duration_ms,
        )
        return BatchMatchResult(results=results, summary=summary)


def create_orchestrator(
    mappings: Optional[TextMappings] = None,
    mappings_path: Optional[str] = None,
    version_config: Optional[VersionMatchConfig] = None,
    spu_selector: Optional[SpuSelector] = None,
    sku_selector: Optional[SkuSelector] = None,
    fuzzy_fallback: bool = True,
) -> MatchOrchestrator:
    """
    Build an orchestrator with its collaborators wired together.

    Text mappings come from `mappings` when given, else from the JSON file
    at `mappings_path` (or the configured default path).
    """
    if mappings is None:
        mappings = load_text_mappings(mappings_path)
    extractor = AttributeExtractor()
    preparer = CatalogPreparer(capacity_normalizations=mappings.capacity_normalizations)
    version_matcher = VersionMatcher(version_config)
    return MatchOrchestrator(
        extractor=extractor,
        preparer=preparer,
        preprocessor=PreprocessingService(mappings),
        spu_selector=spu_selector or ExactSpuSelector(version_matcher, fuzzy_fallback=fuzzy_fallback),
        sku_selector=sku_selector or SpecSkuSelector(extractor),
    )
