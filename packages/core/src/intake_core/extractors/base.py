"""
Shared machinery for the deterministic fact extractors.

Every extractor follows the same path order and stops at the first path that
produces anything:

    1. docai_structured  - entities from a stored structured-OCR payload
    2. ocr_regex         - label patterns over OCR text, same line then cross-line
    3. ocr_generic_scan  - optional last resort, income statements only

``extract()`` is pure; ``run()`` extracts and performs the batch write.
Re-running an extractor over the same document overwrites rather than
duplicates, because facts are keyed on (document_id, fact_type, fact_key).
"""

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional

import structlog

from intake_core.docai import entity_to_money, extract_entities_flat
from intake_core.exceptions import PersistenceError
from intake_core.models.documents import clamp_confidence
from intake_core.models.facts import (
    Citation,
    ExtractedLineItem,
    ExtractionPath,
    ExtractionResult,
    FactProvenance,
    FactType,
    FinancialFact,
    OwnerType,
    RentRollRow,
    SourceType,
)
from intake_core.parsing import find_date_on_document, find_labeled_amount, normalize_period

if TYPE_CHECKING:
    from intake_core.store import IntakeStore

logger = structlog.get_logger()

Period = tuple[Optional[str], Optional[str]]


@dataclass
class ExtractorArgs:
    """Inputs shared by every deterministic extractor."""

    deal_id: str
    bank_id: str
    document_id: str
    ocr_text: str = ""
    docai_payload: Optional[Any] = None
    doc_year: Optional[int] = None
    owner_entity_id: Optional[str] = None

    @property
    def has_text(self) -> bool:
        return bool(self.ocr_text and self.ocr_text.strip())


@dataclass
class ExtractionOutcome:
    """What an extractor found, before anything is written."""

    path: ExtractionPath = ExtractionPath.OCR_REGEX
    items: list[ExtractedLineItem] = field(default_factory=list)
    rows: list[RentRollRow] = field(default_factory=list)
    as_of_date: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.items and not self.rows

    def values(self) -> dict[str, float]:
        """Fact key to value, convenient for assertions and logging."""
        return {item.fact_key: item.value for item in self.items}


@dataclass(frozen=True)
class LabelRule:
    """A fact key and the label patterns that locate it, tried in order."""

    key: str
    patterns: tuple[re.Pattern, ...]


def label_rule(key: str, *patterns: str) -> LabelRule:
    """Build a case-insensitive LabelRule."""
    return LabelRule(key, tuple(re.compile(p, re.IGNORECASE) for p in patterns))


def normalize_entity_type(entity_type: str) -> str:
    """Lower-case an entity or field name and collapse spaces/dashes to underscores."""
    return re.sub(r"[\s-]+", "_", (entity_type or "").lower())


def first_per_key(items: list[ExtractedLineItem]) -> list[ExtractedLineItem]:
    """Keep only the first item for each fact key, preserving order."""
    seen: set[str] = set()
    kept = []
    for item in items:
        if item.fact_key in seen:
            continue
        seen.add(item.fact_key)
        kept.append(item)
    return kept


# =============================================================================
# EXTRACTOR BASE
# =============================================================================

class DeterministicExtractor:
    """
    Base class for the line-item extractors.

    Subclasses declare their vocabulary as class attributes and override the
    path hooks only where their document family needs it.

    Attributes:
        name: Short extractor name, used in the versioned extractor id
        fact_type: Fact family written by this extractor
        owner_type: DEAL, or PERSONAL for borrower-level statements
        valid_keys: Closed key vocabulary; anything else is discarded
        docai_entity_map: Normalized entity type to fact key
        docai_confidence: Confidence used when an entity reports none
        label_rules: Ordered label patterns for the OCR regex path
        regex_confidence: Confidence of a same-line regex hit
        cross_line_confidence: Confidence of a cross-line hit, None to disable
    """

    name: str = ""
    fact_type: FactType
    owner_type: OwnerType = OwnerType.DEAL
    valid_keys: frozenset[str] = frozenset()
    docai_entity_map: dict[str, str] = {}
    docai_confidence: float = 0.7
    label_rules: list[LabelRule] = []
    regex_confidence: float = 0.55
    cross_line_confidence: Optional[float] = 0.50

    @property
    def extractor_id(self) -> str:
        return f"{self.name}Extractor:v2:deterministic"

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def extract(self, args: ExtractorArgs) -> ExtractionOutcome:
        """Run the extraction paths in order and return the first non-empty one."""
        if not args.has_text and not args.docai_payload:
            return ExtractionOutcome(path=ExtractionPath.OCR_REGEX)

        if args.docai_payload:
            items = first_per_key(self._from_docai(args))
            if items:
                return ExtractionOutcome(path=ExtractionPath.DOCAI_STRUCTURED, items=items)

        if args.has_text:
            items = first_per_key(self._from_ocr_regex(args))
            if items:
                return ExtractionOutcome(path=ExtractionPath.OCR_REGEX, items=items)

            items = first_per_key(self._from_generic_scan(args))
            if items:
                return ExtractionOutcome(path=ExtractionPath.OCR_GENERIC_SCAN, items=items)

        return ExtractionOutcome(path=ExtractionPath.OCR_REGEX)

    def run(self, args: ExtractorArgs, store: "IntakeStore") -> ExtractionResult:
        """Extract and upsert facts for one document.

        A write failure is reported on the result rather than raised.
        """
        outcome = self.extract(args)
        if not outcome.items:
            return ExtractionResult(ok=True, facts_written=0, extraction_path=outcome.path)

        facts = [self._to_fact(args, item) for item in outcome.items]
        try:
            written = store.upsert_facts(facts)
        except PersistenceError as e:
            logger.warning(
                "facts_write_failed",
                extractor=self.extractor_id,
                document_id=args.document_id,
                error=str(e),
            )
            return ExtractionResult(ok=False, extraction_path=outcome.path, error=str(e))

        logger.info(
            "facts_written",
            extractor=self.extractor_id,
            document_id=args.document_id,
            facts_written=written,
            extraction_path=outcome.path.value,
        )
        return ExtractionResult(ok=True, facts_written=written, extraction_path=outcome.path)

    # -------------------------------------------------------------------------
    # Path hooks
    # -------------------------------------------------------------------------

    def period(self, args: ExtractorArgs) -> Period:
        """Reporting period for every item of a document: the document date."""
        return normalize_period(find_date_on_document(args.ocr_text))

    def _from_docai(self, args: ExtractorArgs) -> list[ExtractedLineItem]:
        entities = extract_entities_flat(args.docai_payload)
        if not entities:
            return []

        period = self.period(args)
        items = []
        for entity in entities:
            key = self.docai_entity_map.get(normalize_entity_type(entity.type))
            if not key or key not in self.valid_keys:
                continue
            value = entity_to_money(entity)
            if value is None:
                continue
            confidence = clamp_confidence(entity.confidence or self.docai_confidence)
            items.append(self.make_item(
                args, key, value, confidence, period,
                entity.mention_text, ExtractionPath.DOCAI_STRUCTURED,
            ))
        return items

    def _from_ocr_regex(self, args: ExtractorArgs) -> list[ExtractedLineItem]:
        text = args.ocr_text
        period = self.period(args)
        items = []
        for rule in self.rules_for(args):
            if rule.key not in self.valid_keys:
                continue
            for pattern in rule.patterns:
                hit = find_labeled_amount(text, pattern)
                confidence = self.same_line_confidence(rule.key)
                if not hit.found and self.cross_line_confidence is not None:
                    hit = find_labeled_amount(text, pattern, cross_line=True)
                    confidence = self.cross_line_confidence_for(rule.key)
                if not hit.found:
                    continue
                items.append(self.make_item(
                    args, rule.key, hit.value, confidence, period,
                    hit.snippet, ExtractionPath.OCR_REGEX,
                ))
                break
        return items

    def _from_generic_scan(self, args: ExtractorArgs) -> list[ExtractedLineItem]:
        return []

    def rules_for(self, args: ExtractorArgs) -> list[LabelRule]:
        """Label rules for a document; form-aware extractors narrow them."""
        return self.label_rules

    def same_line_confidence(self, key: str) -> float:
        return self.regex_confidence

    def cross_line_confidence_for(self, key: str) -> float:
        return self.cross_line_confidence if self.cross_line_confidence is not None else 0.0

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def make_provenance(
        self,
        document_id: str,
        period_end: Optional[str],
        confidence: Optional[float],
        snippet: Optional[str],
        path: ExtractionPath,
    ) -> FactProvenance:
        return FactProvenance(
            source_type=SourceType.DOC_EXTRACT,
            source_ref=f"deal_documents:{document_id}",
            as_of_date=period_end,
            extractor=self.extractor_id,
            confidence=confidence,
            extraction_path=path,
            citations=[Citation(page=None, snippet=snippet)] if snippet else [],
            raw_snippets=[snippet] if snippet else [],
        )

    def make_item(
        self,
        args: ExtractorArgs,
        key: str,
        value: float,
        confidence: float,
        period: Period,
        snippet: Optional[str],
        path: ExtractionPath,
    ) -> ExtractedLineItem:
        start, end = period
        return ExtractedLineItem(
            fact_key=key,
            value=value,
            confidence=confidence,
            period_start=start,
            period_end=end,
            provenance=self.make_provenance(args.document_id, end, confidence, snippet, path),
        )

    def _to_fact(self, args: ExtractorArgs, item: ExtractedLineItem) -> FinancialFact:
        return FinancialFact(
            deal_id=args.deal_id,
            bank_id=args.bank_id,
            document_id=args.document_id,
            fact_type=self.fact_type,
            fact_key=item.fact_key,
            value=item.value,
            confidence=item.confidence,
            period_start=item.period_start,
            period_end=item.period_end,
            owner_type=self.owner_type,
            owner_entity_id=args.owner_entity_id if self.owner_type == OwnerType.PERSONAL else None,
            provenance=item.provenance,
        )


__all__ = [
    "DeterministicExtractor",
    "ExtractionOutcome",
    "ExtractorArgs",
    "LabelRule",
    "first_per_key",
    "label_rule",
    "normalize_entity_type",
]
