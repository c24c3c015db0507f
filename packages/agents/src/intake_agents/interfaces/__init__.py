"""Processor collaborator interfaces and result types.

Available Interfaces:
    OcrProvider: Produces text for a stored source document
    ChecklistReconcilerProtocol: Flips checklist items from matches
    ReadinessServiceProtocol: Recomputes deal readiness

Result Types:
    ProcessArtifactResult: Outcome of processing one artifact
    BatchResult: Summary of a batch run
"""

from intake_agents.interfaces.base import (
    ChecklistReconcilerProtocol,
    OcrProvider,
    ReadinessServiceProtocol,
)
from intake_agents.interfaces.types import BatchResult, ProcessArtifactResult

__all__ = [
    # Protocols
    "ChecklistReconcilerProtocol",
    "OcrProvider",
    "ReadinessServiceProtocol",
    # Results
    "BatchResult",
    "ProcessArtifactResult",
]
