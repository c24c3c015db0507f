"""Document classification models.

Closed vocabularies for document types and classification tiers, plus the
canonical classification result produced once per document.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class DocumentType(str, Enum):
    """Known document types in a commercial-lending file.

    OTHER is the explicit catch-all; every mapping table must handle it.
    """

    # Tax returns
    IRS_BUSINESS = "IRS_BUSINESS"
    IRS_PERSONAL = "IRS_PERSONAL"
    K1 = "K1"
    W2 = "W2"
    FORM_1099 = "1099"

    # Financial statements
    PFS = "PFS"
    RENT_ROLL = "RENT_ROLL"
    T12 = "T12"
    BANK_STATEMENT = "BANK_STATEMENT"
    SCHEDULE_OF_RE = "SCHEDULE_OF_RE"

    # Entity and legal
    ARTICLES = "ARTICLES"
    OPERATING_AGREEMENT = "OPERATING_AGREEMENT"
    BYLAWS = "BYLAWS"
    BUSINESS_LICENSE = "BUSINESS_LICENSE"
    LEASE = "LEASE"
    DRIVERS_LICENSE = "DRIVERS_LICENSE"

    # Property
    INSURANCE = "INSURANCE"
    APPRAISAL = "APPRAISAL"
    ENVIRONMENTAL = "ENVIRONMENTAL"

    OTHER = "OTHER"

    @classmethod
    def coerce(cls, value: Any) -> "DocumentType":
        """Map an arbitrary value onto the vocabulary, defaulting to OTHER."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.OTHER

    @property
    def is_tax_return(self) -> bool:
        """Whether this type is an IRS return or schedule."""
        return self in (DocumentType.IRS_BUSINESS, DocumentType.IRS_PERSONAL, DocumentType.K1)


class EntityType(str, Enum):
    """Whether a document belongs to a business or a person."""

    BUSINESS = "business"
    PERSONAL = "personal"


class ClassificationTier(str, Enum):
    """Which classification stage produced a result."""

    DOCAI = "docai"
    """Structured-OCR processor label."""

    RULES = "rules"
    """Deterministic anchor rules."""

    LLM = "llm"
    """External LLM classifier."""

    FALLBACK = "fallback"
    """Best-effort last resort."""


def clamp_confidence(value: Any) -> float:
    """Clamp an arbitrary value into [0, 1]; non-numeric values become 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))


class ClassificationResult(BaseModel):
    """Canonical classification of one document.

    Never persisted as its own row; the processor folds it into the source
    document and the artifact.

    Attributes:
        doc_type: Resolved document type
        confidence: Classifier confidence, always within [0, 1]
        reason: Human-readable explanation of the decision
        tax_year: Tax year, when one was found
        entity_name: Business or borrower name printed on the document
        entity_type: business or personal
        form_numbers: IRS form numbers visible in the document
        issuer: Issuing authority (e.g. "IRS")
        period_start: Reporting period start (ISO date)
        period_end: Reporting period end (ISO date)
        tier: The stage that actually produced doc_type
        model: Identifier of the concrete model or rule set
        raw_extraction: Audit payload from the producing stage
    """

    doc_type: DocumentType = DocumentType.OTHER
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reason: str = ""
    tax_year: Optional[int] = None
    entity_name: Optional[str] = None
    entity_type: Optional[EntityType] = None
    proposed_deal_name: Optional[str] = None
    proposed_deal_name_source: Optional[str] = None
    form_numbers: Optional[list[str]] = None
    issuer: Optional[str] = None
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    tier: ClassificationTier
    model: str = ""
    raw_extraction: dict[str, Any] = Field(default_factory=dict)

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp(cls, v: Any) -> float:
        """Clamp confidence into range instead of rejecting it."""
        return clamp_confidence(v)


class DocAiSignals(BaseModel):
    """Document-level label reported by a structured-OCR processor."""

    label: Optional[str] = None
    confidence: Optional[float] = None
    processor: Optional[str] = None
