"""Tiered document classification engine.

The engine is an ordered list of strategies evaluated with short-circuit:
the first strategy to return a result wins. Trust decreases down the list:

    A. DocAiSignalStrategy - structured-OCR processor label (>= 0.75)
    B. RulesStrategy       - deterministic anchors (>= 0.65)
    C. LlmStrategy         - external LLM classifier
    D. FallbackStrategy    - best rules guess, else OTHER at 0.1

Each result records the tier that actually produced its doc_type. The
engine never raises: the fallback tier always returns.

Example:
    engine = ClassificationEngine(llm_client=create_llm_classifier(api_key))
    result = engine.classify(text, "2023_1120S.pdf", "application/pdf")
    print(result.doc_type, result.tier, result.confidence)
"""

import re
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

import structlog

from intake_core.llm_classifier import LlmClassifierClient
from intake_core.models.documents import (
    ClassificationResult,
    ClassificationTier,
    DocAiSignals,
    DocumentType,
)
from intake_core.rules import RulesResult, classify_by_rules

logger = structlog.get_logger()

DOCAI_ACCEPT_THRESHOLD = 0.75
RULES_ACCEPT_THRESHOLD = 0.65
NO_LLM_ERROR = "no LLM classifier configured"


def filename_only_text(filename: str) -> str:
    """Placeholder text that asks the LLM to go on the filename alone."""
    return f"[No OCR text available. Classify based on filename: {filename}]"


# Structured-OCR processor labels, matched after lower-casing and
# collapsing whitespace/dashes to underscores.
DOCAI_LABEL_MAP: dict[str, DocumentType] = {
    "tax_return_1040": DocumentType.IRS_PERSONAL,
    "tax_return_1120": DocumentType.IRS_BUSINESS,
    "tax_return_1120s": DocumentType.IRS_BUSINESS,
    "tax_return_1065": DocumentType.IRS_BUSINESS,
    "1040": DocumentType.IRS_PERSONAL,
    "1120": DocumentType.IRS_BUSINESS,
    "1120s": DocumentType.IRS_BUSINESS,
    "1065": DocumentType.IRS_BUSINESS,
    "personal_financial_statement": DocumentType.PFS,
    "rent_roll": DocumentType.RENT_ROLL,
    "operating_statement": DocumentType.T12,
    "income_statement": DocumentType.T12,
    "financial_statement": DocumentType.T12,
    "bank_statement": DocumentType.BANK_STATEMENT,
    "insurance_certificate": DocumentType.INSURANCE,
    "appraisal": DocumentType.APPRAISAL,
    "lease": DocumentType.LEASE,
    "k1": DocumentType.K1,
    "schedule_k1": DocumentType.K1,
    "w2": DocumentType.W2,
    "1099": DocumentType.FORM_1099,
}

_IRS_ISSUED = (DocumentType.IRS_PERSONAL, DocumentType.IRS_BUSINESS, DocumentType.K1)


def map_docai_label(label: str) -> Optional[DocumentType]:
    """Map a processor label onto the document vocabulary, or None."""
    normalized = re.sub(r"[\s-]+", "_", label.lower())
    return DOCAI_LABEL_MAP.get(normalized)


@dataclass
class ClassificationRequest:
    """One document moving through the strategy chain.

    The rules result is computed at most once and shared between tiers.
    Strategy errors are recorded here so the fallback tier can report them.
    """

    text: str
    filename: str
    mime_type: Optional[str] = None
    docai: Optional[DocAiSignals] = None
    errors: list[str] = field(default_factory=list)
    _rules: Optional[RulesResult] = field(default=None, init=False, repr=False)
    _rules_done: bool = field(default=False, init=False, repr=False)

    def rules(self) -> Optional[RulesResult]:
        """Return the memoised rules classification."""
        if not self._rules_done:
            self._rules = classify_by_rules(self.text, self.filename)
            self._rules_done = True
        return self._rules

    @property
    def last_error(self) -> str:
        return self.errors[-1] if self.errors else "unknown error"


def rules_to_classification(rules: RulesResult) -> ClassificationResult:
    """Convert a rules result into a Tier B classification."""
    return ClassificationResult(
        doc_type=rules.doc_type,
        confidence=rules.confidence,
        reason=rules.reason,
        tax_year=rules.tax_year,
        entity_type=rules.entity_type,
        form_numbers=rules.form_numbers,
        issuer="IRS" if rules.doc_type in _IRS_ISSUED else None,
        tier=ClassificationTier.RULES,
        model=f"rules:{rules.tier.value}",
        raw_extraction={"rules_tier": rules.tier.value},
    )


# =============================================================================
# STRATEGIES
# =============================================================================

@runtime_checkable
class ClassificationStrategy(Protocol):
    """One tier of the classification chain.

    Returns a result to stop the chain, or None to pass to the next tier.
    """

    name: str

    def classify(self, request: ClassificationRequest) -> Optional[ClassificationResult]:
        ...


class DocAiSignalStrategy:
    """Tier A: accept a confident structured-OCR label that maps to a known type.

    Rules run alongside only to backfill tax year, entity type and form
    numbers; they never override the type.
    """

    name = "docai"

    def __init__(self, threshold: float = DOCAI_ACCEPT_THRESHOLD):
        self.threshold = threshold

    def classify(self, request: ClassificationRequest) -> Optional[ClassificationResult]:
        signals = request.docai
        if not signals or not signals.label:
            return None
        confidence = signals.confidence or 0.0
        if confidence < self.threshold:
            return None
        mapped = map_docai_label(signals.label)
        if mapped is None or mapped == DocumentType.OTHER:
            return None

        rules = request.rules()
        return ClassificationResult(
            doc_type=mapped,
            confidence=confidence,
            reason=f'DocAI processor classified as "{signals.label}" (confidence {signals.confidence})',
            tax_year=rules.tax_year if rules else None,
            entity_type=rules.entity_type if rules else None,
            form_numbers=rules.form_numbers if rules else None,
            tier=ClassificationTier.DOCAI,
            model=f"docai:{signals.processor or 'unknown'}",
            raw_extraction={
                "docai_label": signals.label,
                "docai_confidence": signals.confidence,
                "docai_processor": signals.processor,
            },
        )


class RulesStrategy:
    """Tier B: accept a rules result at or above the acceptance threshold."""

    name = "rules"

    def __init__(self, threshold: float = RULES_ACCEPT_THRESHOLD):
        self.threshold = threshold

    def classify(self, request: ClassificationRequest) -> Optional[ClassificationResult]:
        rules = request.rules()
        if rules and rules.confidence >= self.threshold:
            return rules_to_classification(rules)
        return None


class LlmStrategy:
    """Tier C: ask the external LLM classifier.

    With no client configured the tier records an error and passes.
    A document without text is sent as the filename-only placeholder.
    Client failures propagate to the engine, which records them.
    """

    name = "llm"

    def __init__(self, client: Optional[LlmClassifierClient] = None):
        self.client = client

    def classify(self, request: ClassificationRequest) -> Optional[ClassificationResult]:
        if self.client is None:
            request.errors.append(NO_LLM_ERROR)
            return None
        text = request.text if request.text.strip() else filename_only_text(request.filename)
        return self.client.classify(text, request.filename, request.mime_type)


class FallbackStrategy:
    """Tier D: never raises, always returns.

    Prefers any rules result, even below the acceptance threshold, over a
    bare OTHER. A rules tier that raised is treated as no rules result.
    """

    name = "fallback"

    def classify(self, request: ClassificationRequest) -> ClassificationResult:
        try:
            rules = request.rules()
        except Exception as e:
            logger.warning("classification_fallback_rules_failed", filename=request.filename, error=str(e))
            request.errors.append(str(e))
            rules = None
        error = request.last_error
        if rules:
            logger.info(
                "classification_fallback_to_rules",
                filename=request.filename,
                rules_doc_type=rules.doc_type.value,
                rules_confidence=rules.confidence,
            )
            result = rules_to_classification(rules)
            return result.model_copy(update={
                "tier": ClassificationTier.FALLBACK,
                "model": f"fallback:{rules.tier.value}",
                "reason": f"{rules.reason} (LLM unavailable: {error})",
            })

        return ClassificationResult(
            doc_type=DocumentType.OTHER,
            confidence=0.1,
            reason=f"Classification failed: {error}",
            tier=ClassificationTier.FALLBACK,
            model="fallback:none",
            raw_extraction={"error": error},
        )


# =============================================================================
# ENGINE
# =============================================================================

class ClassificationEngine:
    """Evaluate classification strategies in trust order.

    Attributes:
        strategies: Tiers evaluated before the fallback, in order.
        fallback: The terminal tier.
    """

    def __init__(
        self,
        llm_client: Optional[LlmClassifierClient] = None,
        *,
        strategies: Optional[list[ClassificationStrategy]] = None,
        docai_threshold: float = DOCAI_ACCEPT_THRESHOLD,
        rules_threshold: float = RULES_ACCEPT_THRESHOLD,
    ):
        if strategies is None:
            strategies = [
                DocAiSignalStrategy(docai_threshold),
                RulesStrategy(rules_threshold),
                LlmStrategy(llm_client),
            ]
        self.strategies = strategies
        self.fallback = FallbackStrategy()

    def classify(
        self,
        text: str,
        filename: str,
        mime_type: Optional[str] = None,
        docai: Optional[DocAiSignals] = None,
    ) -> ClassificationResult:
        """Classify a document. Never raises."""
        request = ClassificationRequest(
            text=text or "",
            filename=filename or "",
            mime_type=mime_type,
            docai=docai,
        )

        for strategy in self.strategies:
            try:
                result = strategy.classify(request)
            except Exception as e:
                logger.warning(
                    "classification_tier_failed",
                    tier=strategy.name,
                    filename=request.filename,
                    error=str(e),
                )
                request.errors.append(str(e))
                continue
            if result is not None:
                logger.info(
                    "document_classified",
                    filename=request.filename,
                    doc_type=result.doc_type.value,
                    confidence=result.confidence,
                    tier=result.tier.value,
                )
                return result

        result = self.fallback.classify(request)
        logger.info(
            "document_classified",
            filename=request.filename,
            doc_type=result.doc_type.value,
            confidence=result.confidence,
            tier=result.tier.value,
        )
        return result


__all__ = [
    "DOCAI_LABEL_MAP",
    "ClassificationEngine",
    "ClassificationRequest",
    "ClassificationStrategy",
    "DocAiSignalStrategy",
    "FallbackStrategy",
    "LlmStrategy",
    "RulesStrategy",
    "filename_only_text",
    "map_docai_label",
    "rules_to_classification",
]
