"""
Artifact queue: enqueue, claim and status transitions.

Status flow:

    queued -> processing -> classified -> matched
                 |               |
                 +-----> failed <+      (failed -> queued while retry_count < max_retries)

Claiming is a compare-and-swap from queued to processing under the store
lock, so at most one worker ever holds an artifact.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from intake_core.exceptions import PersistenceError
from intake_core.models.documents import ClassificationResult, DocumentType
from intake_core.models.intake import (
    Artifact,
    ArtifactStatus,
    ChecklistMatch,
    EnqueueResult,
    MatchSource,
    MatchStatus,
    SourceTable,
)
from intake_core.store import IntakeStore

logger = structlog.get_logger()

DEFAULT_MAX_RETRIES = 3
DEFAULT_AUTO_APPLY_THRESHOLD = 0.85


class ArtifactQueue:
    """Work queue of artifacts over the intake store.

    Attributes:
        store: Backing repository.
        max_retries: Requeue ceiling for failed artifacts.
        auto_apply_threshold: Minimum confidence for an auto-applied match.
    """

    def __init__(
        self,
        store: IntakeStore,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        auto_apply_threshold: float = DEFAULT_AUTO_APPLY_THRESHOLD,
    ):
        self.store = store
        self.max_retries = max_retries
        self.auto_apply_threshold = auto_apply_threshold

    def enqueue(
        self,
        deal_id: str,
        bank_id: str,
        source_table: SourceTable,
        source_id: str,
    ) -> EnqueueResult:
        """Queue a source document for processing.

        Idempotent on (source_table, source_id): an existing artifact is
        returned as already queued. A failed artifact still under the retry
        ceiling is requeued with its retry count incremented.
        """
        with self.store.transaction():
            existing = self.store.find_artifact_by_source(source_table, source_id)
            if existing is not None:
                if existing.status == ArtifactStatus.FAILED and existing.retry_count < self.max_retries:
                    self._requeue(existing)
                return EnqueueResult(ok=True, artifact_id=existing.id, already_queued=True)

            artifact = Artifact(
                id=str(uuid.uuid4()),
                deal_id=deal_id,
                bank_id=bank_id,
                source_table=source_table,
                source_id=source_id,
            )
            try:
                self.store.insert_artifact(artifact)
            except PersistenceError as e:
                logger.error("artifact_enqueue_failed", source_id=source_id, error=str(e))
                return EnqueueResult(ok=False, error=str(e))

        logger.info(
            "artifact_enqueued",
            artifact_id=artifact.id,
            deal_id=deal_id,
            source_table=source_table.value,
            source_id=source_id,
        )
        return EnqueueResult(ok=True, artifact_id=artifact.id, already_queued=False)

    def claim_next(self) -> Optional[Artifact]:
        """Atomically move the oldest queued artifact to processing.

        Returns:
            The claimed artifact, or None when nothing is queued.
        """
        with self.store.transaction():
            candidate = self.store.first_artifact(lambda a: a.status == ArtifactStatus.QUEUED)
            if candidate is None:
                return None
            return self.store.compare_and_set_artifact(
                candidate.id,
                ArtifactStatus.QUEUED,
                status=ArtifactStatus.PROCESSING,
                processed_at=datetime.now(timezone.utc),
            )

    def update_classification(
        self,
        artifact_id: str,
        classification: ClassificationResult,
        doc_type: Optional[DocumentType] = None,
    ) -> Artifact:
        """Record the classification; ``doc_type`` overrides the classifier's type."""
        return self.store.update_artifact(
            artifact_id,
            status=ArtifactStatus.CLASSIFIED,
            doc_type=doc_type or classification.doc_type,
            doc_type_confidence=classification.confidence,
            doc_type_reason=classification.reason,
            tax_year=classification.tax_year,
            entity_name=classification.entity_name,
            entity_type=classification.entity_type,
            proposed_deal_name=classification.proposed_deal_name,
            proposed_deal_name_source=classification.proposed_deal_name_source,
            extraction_json=_classification_audit(classification),
        )

    def update_matched(
        self,
        artifact_id: str,
        checklist_key: Optional[str],
        confidence: float,
        reason: str,
    ) -> Artifact:
        return self.store.update_artifact(
            artifact_id,
            status=ArtifactStatus.MATCHED,
            matched_checklist_key=checklist_key,
            match_confidence=confidence,
            match_reason=reason,
        )

    def mark_failed(self, artifact_id: str, error: str, *, match_reason: Optional[str] = None) -> Artifact:
        fields: dict[str, Any] = {"status": ArtifactStatus.FAILED, "error_message": error}
        if match_reason is not None:
            fields["match_reason"] = match_reason
        return self.store.update_artifact(artifact_id, **fields)

    def requeue_failed(self) -> list[Artifact]:
        """Requeue every failed artifact still under the retry ceiling."""
        requeued = []
        with self.store.transaction():
            for artifact in self.store.list_artifacts(status=ArtifactStatus.FAILED):
                if artifact.retry_count < self.max_retries:
                    requeued.append(self._requeue(artifact))
        return requeued

    def create_checklist_match(
        self,
        artifact: Artifact,
        checklist_key: str,
        confidence: float,
        reason: str,
        *,
        tax_year: Optional[int] = None,
        auto_apply: bool = False,
    ) -> ChecklistMatch:
        """Link an artifact to a checklist slot.

        The match is auto-applied only when requested and the confidence
        reaches the auto-apply threshold; otherwise it is proposed.
        """
        applied = auto_apply and confidence >= self.auto_apply_threshold
        match = ChecklistMatch(
            id=str(uuid.uuid4()),
            deal_id=artifact.deal_id,
            bank_id=artifact.bank_id,
            artifact_id=artifact.id,
            checklist_key=checklist_key,
            confidence=confidence,
            reason=reason,
            match_source=MatchSource.AI_CLASSIFICATION,
            tax_year=tax_year,
            status=MatchStatus.AUTO_APPLIED if applied else MatchStatus.PROPOSED,
        )
        return self.store.upsert_match(match)

    def _requeue(self, artifact: Artifact) -> Artifact:
        requeued = self.store.update_artifact(
            artifact.id,
            status=ArtifactStatus.QUEUED,
            retry_count=artifact.retry_count + 1,
            error_message=None,
        )
        logger.info("artifact_requeued", artifact_id=artifact.id, retry_count=requeued.retry_count)
        return requeued


def _classification_audit(classification: ClassificationResult) -> dict[str, Any]:
    return {
        "tier": classification.tier.value,
        "model": classification.model,
        "form_numbers": classification.form_numbers,
        "issuer": classification.issuer,
        "period_start": classification.period_start,
        "period_end": classification.period_end,
        "raw": classification.raw_extraction,
    }


__all__ = ["DEFAULT_AUTO_APPLY_THRESHOLD", "DEFAULT_MAX_RETRIES", "ArtifactQueue"]
