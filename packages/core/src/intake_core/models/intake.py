"""Intake workflow models: source documents, artifacts, checklist state.

These are the rows the processor reads and writes. Every mutation goes
through the IntakeStore; nothing here performs I/O.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from intake_core.models.documents import DocumentType, EntityType
from intake_core.models.ledger import _utc_now


# =============================================================================
# ARTIFACTS
# =============================================================================

class ArtifactStatus(str, Enum):
    """Processing status of an artifact.

    matched and failed are terminal; failed is retryable up to the ceiling.
    """

    QUEUED = "queued"
    PROCESSING = "processing"
    CLASSIFIED = "classified"
    MATCHED = "matched"
    FAILED = "failed"


class SourceTable(str, Enum):
    """Which table an artifact's source document lives in."""

    DEAL_DOCUMENTS = "deal_documents"
    BORROWER_UPLOADS = "borrower_uploads"


class Artifact(BaseModel):
    """One unit of queued work wrapping a source document.

    Attributes:
        id: Artifact identifier
        deal_id: Owning deal
        bank_id: Owning tenant
        source_table: Table the source document lives in
        source_id: Identifier of the source document
        status: Processing status
        retry_count: Number of times the artifact was requeued after failure
        doc_type: Classified document type, once known
        doc_type_confidence: Classification confidence
        doc_type_reason: Classification explanation
        tax_year: Classified tax year
        entity_name: Entity named on the document
        entity_type: business or personal
        extraction_json: Audit payload from the classifier
        matched_checklist_key: First checklist key matched
        match_confidence: Confidence of the match
        match_reason: Match explanation or failure reason
        error_message: Last processing error
        created_at: When the artifact was enqueued
        processed_at: When the artifact was last claimed
    """

    id: str
    deal_id: str
    bank_id: str
    source_table: SourceTable = SourceTable.DEAL_DOCUMENTS
    source_id: str
    status: ArtifactStatus = ArtifactStatus.QUEUED
    retry_count: int = Field(default=0, ge=0)

    doc_type: Optional[DocumentType] = None
    doc_type_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    doc_type_reason: Optional[str] = None
    tax_year: Optional[int] = None
    entity_name: Optional[str] = None
    entity_type: Optional[EntityType] = None
    proposed_deal_name: Optional[str] = None
    proposed_deal_name_source: Optional[str] = None
    extraction_json: dict[str, Any] = Field(default_factory=dict)

    matched_checklist_key: Optional[str] = None
    match_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    match_reason: Optional[str] = None
    error_message: Optional[str] = None

    created_at: datetime = Field(default_factory=_utc_now)
    processed_at: Optional[datetime] = None


class EnqueueResult(BaseModel):
    """Outcome of an enqueue call."""

    ok: bool
    artifact_id: Optional[str] = None
    already_queued: bool = False
    error: Optional[str] = None


# =============================================================================
# SOURCE DOCUMENTS
# =============================================================================

class MatchSource(str, Enum):
    """Who last decided a document's type and checklist key."""

    MANUAL = "manual"
    AI_CLASSIFICATION = "ai_classification"


class SourceDocument(BaseModel):
    """An uploaded document and its stamped canonical fields.

    A document with match_source == MANUAL is immutable to automation.
    """

    id: str
    deal_id: str
    bank_id: str
    original_filename: str = ""
    mime_type: Optional[str] = None
    storage_path: Optional[str] = None
    docai_payload: Optional[Any] = None
    docai_processor: Optional[str] = None

    # Canonical fields
    match_source: Optional[MatchSource] = None
    document_type: Optional[str] = None
    doc_year: Optional[int] = None
    doc_years: Optional[list[int]] = None
    checklist_key: Optional[str] = None
    match_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    match_reason: Optional[str] = None
    finalized_at: Optional[datetime] = None

    # Raw classifier output
    ai_doc_type: Optional[DocumentType] = None
    ai_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    ai_model: Optional[str] = None
    ai_reason: Optional[str] = None
    ai_form_numbers: Optional[list[str]] = None
    ai_issuer: Optional[str] = None
    ai_tax_year: Optional[int] = None
    ai_period_start: Optional[str] = None
    ai_period_end: Optional[str] = None
    ai_extracted_json: Optional[dict[str, Any]] = None
    ai_business_name: Optional[str] = None
    ai_borrower_name: Optional[str] = None

    # Resolved typing
    canonical_type: Optional[str] = None
    routing_class: Optional[str] = None
    classification_confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    classification_reason: Optional[str] = None

    @property
    def is_manual(self) -> bool:
        """Whether a human has taken ownership of this document's typing."""
        return self.match_source == MatchSource.MANUAL


class OcrResult(BaseModel):
    """Cached extracted text for a source document."""

    document_id: str
    deal_id: str
    extracted_text: str
    provider: str = "unknown"
    page_count: Optional[int] = None
    created_at: datetime = Field(default_factory=_utc_now)


# =============================================================================
# CHECKLIST
# =============================================================================

class ChecklistStatus(str, Enum):
    """Status of a checklist slot."""

    MISSING = "missing"
    PENDING = "pending"
    RECEIVED = "received"
    SATISFIED = "satisfied"
    WAIVED = "waived"
    NEEDS_REVIEW = "needs_review"


class ChecklistItem(BaseModel):
    """A required-or-optional document slot on a deal.

    Attributes:
        deal_id: Owning deal
        checklist_key: Stable slot identifier (e.g. "IRS_BUSINESS_3Y")
        title: Display title
        required: Whether readiness depends on this slot
        status: Current slot status
        required_years: Tax years the slot needs, for year-keyed slots
        satisfied_years: Subset of required_years already received
        received_at: When the slot first flipped to received
    """

    deal_id: str
    checklist_key: str
    title: Optional[str] = None
    required: bool = True
    status: ChecklistStatus = ChecklistStatus.MISSING
    required_years: Optional[list[int]] = None
    satisfied_years: list[int] = Field(default_factory=list)
    received_at: Optional[datetime] = None


class MatchStatus(str, Enum):
    """Status of an artifact-to-checklist match."""

    PROPOSED = "proposed"
    AUTO_APPLIED = "auto_applied"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class ChecklistMatch(BaseModel):
    """Link between an artifact and a checklist slot it can satisfy.

    Unique on (artifact_id, checklist_key, tax_year).
    """

    id: str
    deal_id: str
    bank_id: str
    artifact_id: str
    checklist_key: str
    confidence: float = Field(ge=0.0, le=1.0)
    reason: Optional[str] = None
    match_source: MatchSource = MatchSource.AI_CLASSIFICATION
    tax_year: Optional[int] = None
    status: MatchStatus = MatchStatus.PROPOSED
    created_at: datetime = Field(default_factory=_utc_now)


class DealReadiness(BaseModel):
    """Whether a deal has every required document."""

    deal_id: str
    ready: bool
    required_total: int = 0
    required_complete: int = 0
    missing_keys: list[str] = Field(default_factory=list)
    computed_at: datetime = Field(default_factory=_utc_now)

    @property
    def percent_complete(self) -> float:
        """Share of required items complete, 0-100."""
        if self.required_total == 0:
            return 100.0
        return round(100.0 * self.required_complete / self.required_total, 1)
