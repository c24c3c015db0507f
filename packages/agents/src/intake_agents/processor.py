"""
Artifact processor: the intake pipeline's orchestrator.

Processes one claimed artifact end to end: manual-override check, text
acquisition, classification, type guardrail, checklist matching, document
stamping, fact extraction, checklist reconciliation and readiness. Every
stage is recorded on the deal ledger.

Usage:
    store = IntakeStore()
    processor = ArtifactProcessor.from_config(store, IntakeConfig())
    processor.queue.enqueue(deal_id, bank_id, SourceTable.DEAL_DOCUMENTS, doc_id)
    processor.process_batch()
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from intake_agents.config import IntakeConfig, configure_logging
from intake_agents.interfaces.base import (
    ChecklistReconcilerProtocol,
    OcrProvider,
    ReadinessServiceProtocol,
)
from intake_agents.interfaces.types import BatchResult, ProcessArtifactResult
from intake_core.checklist import (
    ChecklistReconciler,
    DocTyping,
    ReadinessCalculator,
    map_doc_type_to_checklist_keys,
    resolve_doc_typing,
)
from intake_core.classification import ClassificationEngine
from intake_core.docai import extract_signals
from intake_core.exceptions import PersistenceError
from intake_core.extractors import ExtractorArgs, extract_for_document
from intake_core.ledger import LedgerWriter
from intake_core.llm_classifier import LlmClassifierClient, create_llm_classifier
from intake_core.models import (
    Artifact,
    ClassificationResult,
    ClassificationTier,
    MatchSource,
    SourceDocument,
    SourceTable,
    UiState,
)
from intake_core.pdf_text import PdfTextOcr, infer_mime_type
from intake_core.queue import ArtifactQueue
from intake_core.rules import FILENAME_CONFIDENCE
from intake_core.store import IntakeStore

logger = structlog.get_logger()

MANUAL_OVERRIDE = "manual_override"
STAMP_FAILED = "stamp_failed"
FILENAME_ONLY = "filename_only"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 1)


def filename_only_classification(classification: ClassificationResult) -> ClassificationResult:
    """Mark a classification made without any document text.

    Structured-OCR results keep their confidence. Every other tier is capped
    at the filename-anchor confidence, below the auto-apply threshold.
    """
    if classification.tier == ClassificationTier.DOCAI:
        return classification
    reason = f"{classification.reason} [{FILENAME_ONLY}: no document text]".lstrip()
    return classification.model_copy(update={
        "confidence": min(classification.confidence, FILENAME_CONFIDENCE),
        "reason": reason,
    })


class ArtifactProcessor:
    """Process queued artifacts against the intake store.

    Attributes:
        store: Backing repository.
        queue: Artifact queue over the same store.
        engine: Classification engine.
        ledger: Deal ledger writer.
        ocr_provider: Text provider for documents without cached text.
        reconciler: Checklist reconciler.
        readiness: Readiness calculator.
        config: Pipeline configuration.
    """

    def __init__(
        self,
        store: IntakeStore,
        *,
        engine: Optional[ClassificationEngine] = None,
        queue: Optional[ArtifactQueue] = None,
        ledger: Optional[LedgerWriter] = None,
        ocr_provider: Optional[OcrProvider] = None,
        reconciler: Optional[ChecklistReconcilerProtocol] = None,
        readiness: Optional[ReadinessServiceProtocol] = None,
        config: Optional[IntakeConfig] = None,
    ):
        self.config = config or IntakeConfig()
        pipeline = self.config.pipeline
        self.store = store
        self.engine = engine or ClassificationEngine(
            docai_threshold=pipeline.docai_accept_threshold,
            rules_threshold=pipeline.rules_accept_threshold,
        )
        self.queue = queue or ArtifactQueue(
            store,
            max_retries=pipeline.max_retries,
            auto_apply_threshold=pipeline.auto_apply_threshold,
        )
        self.ledger = ledger or LedgerWriter(store)
        self.ocr_provider = ocr_provider
        self.reconciler = reconciler or ChecklistReconciler(store)
        self.readiness = readiness or ReadinessCalculator(store)

    @classmethod
    def from_config(
        cls,
        store: IntakeStore,
        config: Optional[IntakeConfig] = None,
        *,
        llm_client: Optional[LlmClassifierClient] = None,
        ocr_provider: Optional[OcrProvider] = None,
    ) -> "ArtifactProcessor":
        """Build a processor and its collaborators from configuration.

        Without an explicit ``llm_client`` an Anthropic classifier is created
        when an API key is configured; otherwise the LLM tier is skipped.
        The configured log level is applied to structlog.
        """
        config = config or IntakeConfig()
        configure_logging(config)
        if llm_client is None:
            llm_client = create_llm_classifier(
                api_key=config.llm.api_key,
                model=config.llm.model,
                max_tokens=config.llm.max_tokens,
                temperature=config.llm.temperature,
                timeout=config.llm.timeout,
                max_document_chars=config.llm.max_document_chars,
            )
        if ocr_provider is None and config.ocr.enabled:
            ocr_provider = PdfTextOcr(
                min_text_chars=config.ocr.min_text_chars,
                base_dir=config.ocr.storage_dir,
            )
        engine = ClassificationEngine(
            llm_client,
            docai_threshold=config.pipeline.docai_accept_threshold,
            rules_threshold=config.pipeline.rules_accept_threshold,
        )
        return cls(store, engine=engine, ocr_provider=ocr_provider, config=config)

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    def process_next_artifact(self) -> Optional[ProcessArtifactResult]:
        """Claim the oldest queued artifact and process it.

        Returns:
            The result, or None when the queue is empty.
        """
        artifact = self.queue.claim_next()
        if artifact is None:
            return None
        logger.info("artifact_claimed", artifact_id=artifact.id, deal_id=artifact.deal_id)
        return self.process_artifact(artifact)

    def process_batch(self, max_items: Optional[int] = None) -> BatchResult:
        """Process up to ``max_items`` artifacts one after another."""
        limit = max_items if max_items is not None else self.config.pipeline.batch_size
        batch = BatchResult()
        while batch.processed < limit:
            result = self.process_next_artifact()
            if result is None:
                break
            batch.results.append(result)

        logger.info(
            "artifact_batch_completed",
            processed=batch.processed,
            succeeded=batch.succeeded,
            failed=batch.failed,
        )
        return batch

    def process_concurrently(
        self,
        max_items: Optional[int] = None,
        workers: Optional[int] = None,
    ) -> BatchResult:
        """Drain the queue with a pool of workers.

        Each worker loops on ``process_next_artifact`` until the queue is
        empty or ``max_items`` artifacts have been claimed in total. Two
        workers never hold the same artifact because claiming is atomic.
        """
        limit = max_items if max_items is not None else self.config.pipeline.batch_size
        worker_count = workers or self.config.pipeline.worker_count
        slots = {"remaining": limit}
        slots_lock = threading.Lock()
        batch = BatchResult()
        results_lock = threading.Lock()

        def take_slot() -> bool:
            with slots_lock:
                if slots["remaining"] <= 0:
                    return False
                slots["remaining"] -= 1
                return True

        def worker() -> None:
            while take_slot():
                result = self.process_next_artifact()
                if result is None:
                    return
                with results_lock:
                    batch.results.append(result)

        with ThreadPoolExecutor(max_workers=worker_count) as pool:
            futures = [pool.submit(worker) for _ in range(worker_count)]
            for future in futures:
                future.result()

        logger.info(
            "artifact_concurrent_run_completed",
            workers=worker_count,
            processed=batch.processed,
            succeeded=batch.succeeded,
            failed=batch.failed,
        )
        return batch

    # =========================================================================
    # PIPELINE
    # =========================================================================

    def process_artifact(self, artifact: Artifact) -> ProcessArtifactResult:
        """Run the full pipeline for one claimed artifact.

        Never raises: failures mark the artifact failed and are reported in
        the result.
        """
        started = time.monotonic()
        self._event(
            artifact,
            "artifact.processing.started",
            ui_state=UiState.WORKING,
            ui_message="Processing document",
            meta={
                "artifact_id": artifact.id,
                "source_table": artifact.source_table.value,
                "source_id": artifact.source_id,
                "retry_count": artifact.retry_count,
            },
        )

        try:
            document = self.store.get_document(artifact.source_id)
            if document is None:
                raise PersistenceError(
                    "Source document not found",
                    operation="get_document",
                    entity=artifact.source_table.value,
                    entity_id=artifact.source_id,
                )

            if document.is_manual:
                return self._skip_manual(artifact, document, started)

            text, ocr_triggered = self._document_text(artifact, document)

            docai = extract_signals(document.docai_payload, document.docai_processor) if document.docai_payload else None
            mime_type = infer_mime_type(document.original_filename, document.mime_type)
            classification = self.engine.classify(text, document.original_filename, mime_type, docai)
            if not text.strip():
                classification = filename_only_classification(classification)

            typing = resolve_doc_typing(classification)
            if typing.guardrail_applied:
                logger.warning(
                    "doc_type_guardrail_applied",
                    artifact_id=artifact.id,
                    original_doc_type=classification.doc_type.value,
                    overridden_to=typing.effective_doc_type.value,
                    reason=typing.guardrail_reason,
                )

            self.queue.update_classification(artifact.id, classification, typing.effective_doc_type)
            matched_keys = self._match_checklist(artifact, classification, typing)

            stamped = False
            if artifact.source_table == SourceTable.DEAL_DOCUMENTS:
                try:
                    stamped = self._stamp(document, classification, typing)
                except PersistenceError as e:
                    return self._stamp_failed(artifact, typing, classification, e, started)

            facts_written = 0
            if stamped and self.config.pipeline.extract_facts:
                facts_written = self._extract_facts(artifact, document, classification, typing, text)

            self._reconcile(artifact)

            result = ProcessArtifactResult(
                ok=True,
                artifact_id=artifact.id,
                doc_type=typing.effective_doc_type,
                confidence=classification.confidence,
                tax_year=classification.tax_year,
                matched_keys=matched_keys,
                stamped=stamped,
                ocr_triggered=ocr_triggered,
                facts_written=facts_written,
                duration_ms=_elapsed_ms(started),
            )
        except Exception as e:
            return self._fail(artifact, e, started)

        suffix = " (OCR triggered)" if ocr_triggered else ""
        self._event(
            artifact,
            "artifact.processed",
            ui_message=f"Document classified as {classification.doc_type.value}{suffix}",
            meta={
                "artifact_id": artifact.id,
                "doc_type": typing.effective_doc_type.value,
                "confidence": classification.confidence,
                "tax_year": classification.tax_year,
                "matched_keys": matched_keys,
                "stamped": stamped,
                "ocr_triggered": ocr_triggered,
            },
        )
        self._event(
            artifact,
            "artifact.processing.completed",
            ui_message=f"Document processing completed ({typing.effective_doc_type.value})",
            meta={
                "artifact_id": artifact.id,
                "doc_type": typing.effective_doc_type.value,
                "confidence": classification.confidence,
                "matched_keys": matched_keys,
                "duration_ms": result.duration_ms,
            },
        )
        return result

    # =========================================================================
    # STEPS
    # =========================================================================

    def _skip_manual(
        self,
        artifact: Artifact,
        document: SourceDocument,
        started: float,
    ) -> ProcessArtifactResult:
        self.queue.update_matched(artifact.id, document.checklist_key, 1.0, "Manual classification preserved")
        if document.finalized_at is None:
            self.store.update_document(document.id, finalized_at=_utc_now())

        logger.info("artifact_skipped_manual", artifact_id=artifact.id, document_id=document.id)
        self._event(
            artifact,
            "artifact.skipped_manual",
            ui_message="Manual classification preserved",
            meta={
                "artifact_id": artifact.id,
                "source_id": document.id,
                "checklist_key": document.checklist_key,
                "document_type": document.document_type,
            },
        )
        return ProcessArtifactResult(
            ok=True,
            artifact_id=artifact.id,
            skipped=True,
            skip_reason=MANUAL_OVERRIDE,
            duration_ms=_elapsed_ms(started),
        )

    def _document_text(self, artifact: Artifact, document: SourceDocument) -> tuple[str, bool]:
        """Cached text, else fresh OCR, else empty text.

        Empty text leaves the classifier with the filename alone.

        Returns:
            (text, ocr_triggered)
        """
        cached = self.store.get_ocr_result(document.id)
        if cached is not None and cached.extracted_text.strip():
            return cached.extracted_text, False

        if not self.config.ocr.enabled or self.ocr_provider is None:
            reason = "ocr_disabled" if not self.config.ocr.enabled else "no_ocr_provider"
            self._ocr_skipped(artifact, document, reason, None)
            return "", False

        self._event(
            artifact,
            "ocr.triggered",
            ui_state=UiState.WORKING,
            ui_message="Extracting document text",
            meta={"source_id": document.id, "provider": self.ocr_provider.name},
        )
        try:
            ocr = self.ocr_provider.run(document)
        except Exception as e:
            self._ocr_skipped(artifact, document, "ocr_error", str(e))
            return "", False

        try:
            self.store.save_ocr_result(ocr)
        except PersistenceError as e:
            logger.warning("ocr_result_save_failed", document_id=document.id, error=str(e))

        self._event(
            artifact,
            "ocr.completed",
            ui_message="Document text extracted",
            meta={
                "source_id": document.id,
                "provider": ocr.provider,
                "text_length": len(ocr.extracted_text),
                "page_count": ocr.page_count,
            },
        )
        return ocr.extracted_text, True

    def _ocr_skipped(
        self,
        artifact: Artifact,
        document: SourceDocument,
        reason: str,
        message: Optional[str],
    ) -> None:
        logger.warning(
            "ocr_skipped_filename_only",
            artifact_id=artifact.id,
            filename=document.original_filename,
            reason=reason,
            error=message,
        )
        self._event(
            artifact,
            "ocr.skipped",
            ui_message="Classifying from filename only",
            meta={
                "source_id": document.id,
                "filename": document.original_filename,
                "reason": reason,
                "ocr_message": message,
            },
        )

    def _match_checklist(
        self,
        artifact: Artifact,
        classification: ClassificationResult,
        typing: DocTyping,
    ) -> list[str]:
        keys = map_doc_type_to_checklist_keys(typing.effective_doc_type, classification.tax_year)
        if not keys:
            return []

        matched_keys = []
        for item in self.store.get_checklist_items(artifact.deal_id, keys):
            self.queue.create_checklist_match(
                artifact,
                item.checklist_key,
                classification.confidence,
                classification.reason,
                tax_year=classification.tax_year,
                auto_apply=classification.confidence >= self.queue.auto_apply_threshold,
            )
            matched_keys.append(item.checklist_key)

        if matched_keys:
            self.queue.update_matched(
                artifact.id,
                matched_keys[0],
                classification.confidence,
                f"Matched to {len(matched_keys)} checklist item(s)",
            )
        return matched_keys

    def _stamp(
        self,
        document: SourceDocument,
        classification: ClassificationResult,
        typing: DocTyping,
    ) -> bool:
        """Write canonical fields; False when a human took over meanwhile."""
        fields = stamp_fields(classification, typing)
        stamped = self.store.stamp_document(document.id, fields)
        if not stamped:
            logger.info("stamp_skipped_manual_override", document_id=document.id)
            return False

        logger.info(
            "document_stamped",
            document_id=document.id,
            checklist_key=typing.checklist_key,
            canonical_type=typing.canonical_type,
            routing_class=typing.routing_class,
        )
        return True

    def _stamp_failed(
        self,
        artifact: Artifact,
        typing: DocTyping,
        classification: ClassificationResult,
        error: PersistenceError,
        started: float,
    ) -> ProcessArtifactResult:
        reason = f"{STAMP_FAILED}: {error}"
        logger.error("stamp_failed", artifact_id=artifact.id, source_id=artifact.source_id, error=str(error))
        try:
            self.queue.mark_failed(artifact.id, reason, match_reason=reason)
        except PersistenceError as e:
            logger.error("artifact_mark_failed_failed", artifact_id=artifact.id, error=str(e))

        self._event(
            artifact,
            "artifact.stamp_failed",
            ui_state=UiState.ERROR,
            ui_message="Failed to stamp source document",
            meta={
                "artifact_id": artifact.id,
                "source_id": artifact.source_id,
                "error": {"message": str(error), "details": error.details},
                "attempted": {
                    "canonical_type": typing.canonical_type,
                    "checklist_key": typing.checklist_key,
                    "tax_year": classification.tax_year,
                    "guardrail": typing.guardrail_reason if typing.guardrail_applied else None,
                },
            },
        )
        return ProcessArtifactResult(
            ok=False,
            artifact_id=artifact.id,
            doc_type=typing.effective_doc_type,
            confidence=classification.confidence,
            tax_year=classification.tax_year,
            error=STAMP_FAILED,
            duration_ms=_elapsed_ms(started),
        )

    def _extract_facts(
        self,
        artifact: Artifact,
        document: SourceDocument,
        classification: ClassificationResult,
        typing: DocTyping,
        text: str,
    ) -> int:
        """Run deterministic extractors. Failures are logged and ignored."""
        args = ExtractorArgs(
            deal_id=artifact.deal_id,
            bank_id=artifact.bank_id,
            document_id=document.id,
            ocr_text=text,
            docai_payload=document.docai_payload,
            doc_year=classification.tax_year,
        )
        try:
            results = extract_for_document(typing.effective_doc_type, args, self.store)
        except Exception as e:
            logger.warning("fact_extraction_failed", artifact_id=artifact.id, document_id=document.id, error=str(e))
            return 0

        if not results:
            return 0

        facts_written = sum(r.facts_written for r in results.values())
        self._event(
            artifact,
            "facts.extracted",
            ui_message=f"{facts_written} fact(s) extracted",
            meta={
                "artifact_id": artifact.id,
                "document_id": document.id,
                "facts_written": facts_written,
                "extractors": {
                    extractor_id: {
                        "ok": r.ok,
                        "facts_written": r.facts_written,
                        "extraction_path": r.extraction_path.value,
                        "error": r.error,
                    }
                    for extractor_id, r in results.items()
                },
            },
        )
        return facts_written

    def _reconcile(self, artifact: Artifact) -> None:
        try:
            self.reconciler.reconcile(artifact.deal_id)
        except Exception as e:
            logger.warning("checklist_reconcile_failed", deal_id=artifact.deal_id, error=str(e))

        try:
            self.readiness.recompute(artifact.deal_id)
        except Exception as e:
            logger.warning("readiness_recompute_failed", deal_id=artifact.deal_id, error=str(e))

    def _fail(self, artifact: Artifact, error: Exception, started: float) -> ProcessArtifactResult:
        message = str(error) or type(error).__name__
        logger.error("artifact_processing_failed", artifact_id=artifact.id, error=message)

        retry_count = artifact.retry_count
        try:
            retry_count = self.queue.mark_failed(artifact.id, message).retry_count
        except PersistenceError as e:
            logger.error("artifact_mark_failed_failed", artifact_id=artifact.id, error=str(e))

        self._event(
            artifact,
            "artifact.failed",
            ui_state=UiState.ERROR,
            ui_message="Document classification failed",
            meta={"artifact_id": artifact.id, "error": message},
        )
        self._event(
            artifact,
            "artifact.processing.failed",
            ui_state=UiState.ERROR,
            ui_message="Document processing failed",
            meta={
                "artifact_id": artifact.id,
                "error": message,
                "retry_count": retry_count,
                "duration_ms": _elapsed_ms(started),
            },
        )
        return ProcessArtifactResult(
            ok=False,
            artifact_id=artifact.id,
            error=message,
            duration_ms=_elapsed_ms(started),
        )

    def _event(
        self,
        artifact: Artifact,
        event_key: str,
        *,
        ui_state: UiState = UiState.DONE,
        ui_message: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        self.ledger.log_event(
            artifact.deal_id,
            artifact.bank_id,
            event_key,
            ui_state=ui_state,
            ui_message=ui_message,
            meta=meta,
        )


def stamp_fields(classification: ClassificationResult, typing: DocTyping) -> dict[str, Any]:
    """Canonical document fields for an AI-classified document."""
    reason = classification.reason
    if typing.guardrail_applied:
        reason = f"{reason} [guardrail: {typing.guardrail_reason}]"

    fields: dict[str, Any] = {
        "document_type": typing.canonical_type,
        "doc_year": classification.tax_year,
        "doc_years": [classification.tax_year] if classification.tax_year else None,
        "checklist_key": typing.checklist_key,
        "match_source": MatchSource.AI_CLASSIFICATION,
        "match_confidence": classification.confidence,
        "match_reason": classification.reason,
        "finalized_at": _utc_now(),
        "ai_doc_type": classification.doc_type,
        "ai_confidence": classification.confidence,
        "ai_model": classification.model,
        "ai_reason": classification.reason,
        "ai_form_numbers": classification.form_numbers,
        "ai_issuer": classification.issuer,
        "ai_tax_year": classification.tax_year,
        "ai_period_start": classification.period_start,
        "ai_period_end": classification.period_end,
        "ai_extracted_json": classification.raw_extraction,
        "canonical_type": typing.canonical_type,
        "routing_class": typing.routing_class,
        "classification_confidence": classification.confidence,
        "classification_reason": reason,
    }

    if classification.entity_name:
        if typing.canonical_type == "BUSINESS_TAX_RETURN":
            fields["ai_business_name"] = classification.entity_name
        elif typing.canonical_type in ("PERSONAL_TAX_RETURN", "PFS"):
            fields["ai_borrower_name"] = classification.entity_name
    return fields


__all__ = ["ArtifactProcessor", "filename_only_classification", "stamp_fields"]
