"""Collaborator protocols for the artifact processor.

The processor depends on these structural interfaces rather than on the
concrete core classes, so tests and alternative backends can supply any
object with matching methods. No explicit inheritance is required.

Example Usage:
    ```python
    from intake_agents.interfaces.base import OcrProvider

    class ScannedPdfOcr:
        '''An OCR engine wrapper.'''

        name = "scanner"

        def run(self, document: SourceDocument) -> OcrResult:
            ...

    # ScannedPdfOcr is compatible with OcrProvider without inheriting it
    ```
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from intake_core.models import DealReadiness, OcrResult, SourceDocument


# =============================================================================
# OCR
# =============================================================================

@runtime_checkable
class OcrProvider(Protocol):
    """Produces text for a stored source document.

    Implementations raise on failure; the processor treats any exception
    as "no text" and falls back to classifying on the filename.
    """

    name: str

    def run(self, document: SourceDocument) -> OcrResult:
        """Extract the document's text."""
        ...


# =============================================================================
# CHECKLIST AND READINESS
# =============================================================================

@runtime_checkable
class ChecklistReconcilerProtocol(Protocol):
    """Flips checklist items from their matches, serialized per deal."""

    def reconcile(self, deal_id: str) -> int:
        """Reconcile one deal and return how many items changed status."""
        ...


@runtime_checkable
class ReadinessServiceProtocol(Protocol):
    """Recomputes and persists deal readiness."""

    def recompute(self, deal_id: str) -> DealReadiness:
        ...


__all__ = ["ChecklistReconcilerProtocol", "OcrProvider", "ReadinessServiceProtocol"]
