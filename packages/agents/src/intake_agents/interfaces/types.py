"""Result types returned by the artifact processor."""

from typing import Optional

from pydantic import BaseModel, Field

from intake_core.models import DocumentType


class ProcessArtifactResult(BaseModel):
    """Outcome of processing one artifact.

    Attributes:
        ok: Whether processing reached a terminal success state
        artifact_id: The processed artifact
        doc_type: Effective document type after the guardrail
        confidence: Classification confidence
        tax_year: Classified tax year
        matched_keys: Checklist keys a match was recorded for
        stamped: Whether canonical fields were written to the document
        ocr_triggered: Whether the OCR provider ran for this artifact
        facts_written: Facts or rent roll rows written by extraction
        skipped: True when a manual override short-circuited processing
        skip_reason: Why processing was skipped
        error: Failure message when ok is False
        duration_ms: Wall time spent on the artifact
    """

    ok: bool
    artifact_id: str
    doc_type: Optional[DocumentType] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    tax_year: Optional[int] = None
    matched_keys: list[str] = Field(default_factory=list)
    stamped: bool = False
    ocr_triggered: bool = False
    facts_written: int = 0
    skipped: bool = False
    skip_reason: Optional[str] = None
    error: Optional[str] = None
    duration_ms: Optional[float] = Field(default=None, ge=0)


class BatchResult(BaseModel):
    """Summary of a batch or concurrent run."""

    results: list[ProcessArtifactResult] = Field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


__all__ = ["BatchResult", "ProcessArtifactResult"]
