"""Data models for intake-core.

This package provides:
- Document types, classification tiers and results (documents.py)
- Canonical financial facts and rent roll rows (facts.py)
- Artifacts, source documents and checklist state (intake.py)
- Append-only ledger events (ledger.py)
"""

from intake_core.models.documents import (
    ClassificationResult,
    ClassificationTier,
    DocAiSignals,
    DocumentType,
    EntityType,
    clamp_confidence,
)
from intake_core.models.facts import (
    Citation,
    ExtractedLineItem,
    ExtractionPath,
    ExtractionResult,
    FactProvenance,
    FactType,
    FinancialFact,
    OccupancyStatus,
    OwnerType,
    RentRollRow,
    SourceType,
    StoredRentRollRow,
)
from intake_core.models.intake import (
    Artifact,
    ArtifactStatus,
    ChecklistItem,
    ChecklistMatch,
    ChecklistStatus,
    DealReadiness,
    EnqueueResult,
    MatchSource,
    MatchStatus,
    OcrResult,
    SourceDocument,
    SourceTable,
)
from intake_core.models.ledger import LedgerEvent, UiState

__all__ = [
    # Documents
    "ClassificationResult",
    "ClassificationTier",
    "DocAiSignals",
    "DocumentType",
    "EntityType",
    "clamp_confidence",
    # Facts
    "Citation",
    "ExtractedLineItem",
    "ExtractionPath",
    "ExtractionResult",
    "FactProvenance",
    "FactType",
    "FinancialFact",
    "OccupancyStatus",
    "OwnerType",
    "RentRollRow",
    "SourceType",
    "StoredRentRollRow",
    # Intake
    "Artifact",
    "ArtifactStatus",
    "ChecklistItem",
    "ChecklistMatch",
    "ChecklistStatus",
    "DealReadiness",
    "EnqueueResult",
    "MatchSource",
    "MatchStatus",
    "OcrResult",
    "SourceDocument",
    "SourceTable",
    # Ledger
    "LedgerEvent",
    "UiState",
]
