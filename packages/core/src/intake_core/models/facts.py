"""Financial fact models produced by the deterministic extractors.

Every extracted number carries provenance: the source document, the versioned
extractor identifier, the extraction path taken, and the text that produced it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from intake_core.models.ledger import _utc_now


class FactType(str, Enum):
    """Families of canonical financial facts."""

    TAX_RETURN = "TAX_RETURN"
    INCOME_STATEMENT = "INCOME_STATEMENT"
    BALANCE_SHEET = "BALANCE_SHEET"
    PERSONAL_FINANCIAL_STATEMENT = "PERSONAL_FINANCIAL_STATEMENT"
    PERSONAL_INCOME = "PERSONAL_INCOME"


class OwnerType(str, Enum):
    """Who a fact describes."""

    DEAL = "DEAL"
    PERSONAL = "PERSONAL"


class ExtractionPath(str, Enum):
    """Which extractor path produced a fact."""

    DOCAI_STRUCTURED = "docai_structured"
    OCR_REGEX = "ocr_regex"
    OCR_GENERIC_SCAN = "ocr_generic_scan"
    NONE = "none"


class SourceType(str, Enum):
    """Where a fact value originated."""

    DOC_EXTRACT = "DOC_EXTRACT"
    MANUAL = "MANUAL"


class Citation(BaseModel):
    """A text excerpt that supports an extracted value."""

    page: Optional[int] = Field(default=None, ge=1)
    snippet: str


class FactProvenance(BaseModel):
    """Where an extracted fact came from.

    Attributes:
        source_type: Origin of the value (document extraction or manual)
        source_ref: Reference to the source row, e.g. "deal_documents:<id>"
        as_of_date: Period end the value describes (ISO date), when known
        extractor: Versioned extractor identifier
        confidence: Confidence of the producing path
        extraction_path: Which path produced the value
        citations: Supporting excerpts
        raw_snippets: Raw matched text
    """

    source_type: SourceType = SourceType.DOC_EXTRACT
    source_ref: str
    as_of_date: Optional[str] = None
    extractor: str
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    extraction_path: ExtractionPath
    citations: list[Citation] = Field(default_factory=list)
    raw_snippets: list[str] = Field(default_factory=list)


class ExtractedLineItem(BaseModel):
    """One canonical financial fact candidate.

    Values are signed: parenthetical and trailing-minus amounts arrive here
    already negative.
    """

    fact_key: str
    value: float
    confidence: float = Field(ge=0.0, le=1.0)
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    provenance: FactProvenance


class FinancialFact(BaseModel):
    """A persisted fact row, unique per (document_id, fact_type, fact_key)."""

    deal_id: str
    bank_id: str
    document_id: str
    fact_type: FactType
    fact_key: str
    value: float
    confidence: float = Field(ge=0.0, le=1.0)
    period_start: Optional[str] = None
    period_end: Optional[str] = None
    owner_type: OwnerType = OwnerType.DEAL
    owner_entity_id: Optional[str] = None
    provenance: FactProvenance
    updated_at: datetime = Field(default_factory=_utc_now)


class OccupancyStatus(str, Enum):
    """Normalized unit occupancy."""

    OCCUPIED = "OCCUPIED"
    VACANT = "VACANT"


class RentRollRow(BaseModel):
    """One unit record parsed from a rent roll."""

    unit_id: str
    unit_type: Optional[str] = None
    sqft: Optional[float] = None
    tenant_name: Optional[str] = None
    lease_start: Optional[str] = None
    lease_end: Optional[str] = None
    monthly_rent: Optional[float] = None
    annual_rent: Optional[float] = None
    market_rent_monthly: Optional[float] = None
    occupancy_status: OccupancyStatus = OccupancyStatus.OCCUPIED
    concessions_monthly: Optional[float] = None
    notes: Optional[str] = None


class StoredRentRollRow(RentRollRow):
    """A rent roll row as written for one deal and source document."""

    deal_id: str
    bank_id: str
    document_id: str
    as_of_date: str


class ExtractionResult(BaseModel):
    """Outcome of one extractor run, including its batch write."""

    ok: bool = True
    facts_written: int = 0
    extraction_path: ExtractionPath = ExtractionPath.NONE
    error: Optional[str] = None
