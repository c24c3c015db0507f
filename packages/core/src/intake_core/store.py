"""
In-memory repository for intake state.

Holds source documents, OCR results, artifacts, checklist items and matches,
financial facts, rent roll rows, ledger events and deal readiness behind a
single re-entrant lock. Readers get copies; every mutation goes through a
method here so compare-and-swap operations stay atomic.

Any write may raise PersistenceError.
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from intake_core.exceptions import PersistenceError
from intake_core.models.facts import FactType, FinancialFact, StoredRentRollRow
from intake_core.models.intake import (
    Artifact,
    ArtifactStatus,
    ChecklistItem,
    ChecklistMatch,
    DealReadiness,
    OcrResult,
    SourceDocument,
    SourceTable,
)
from intake_core.models.ledger import LedgerEvent

MatchKey = tuple[str, str, Optional[int]]
FactKey = tuple[str, FactType, str]


class IntakeStore:
    """Thread-safe in-memory intake repository."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._documents: dict[str, SourceDocument] = {}
        self._ocr: dict[str, OcrResult] = {}
        self._artifacts: dict[str, Artifact] = {}
        self._artifact_sources: dict[tuple[SourceTable, str], str] = {}
        self._checklist: dict[str, dict[str, ChecklistItem]] = {}
        self._matches: dict[MatchKey, ChecklistMatch] = {}
        self._facts: dict[FactKey, FinancialFact] = {}
        self._rent_roll: dict[str, list[StoredRentRollRow]] = {}
        self._ledger: list[LedgerEvent] = []
        self._readiness: dict[str, DealReadiness] = {}

    @contextmanager
    def transaction(self) -> Iterator["IntakeStore"]:
        """Hold the store lock across several calls."""
        with self._lock:
            yield self

    # =========================================================================
    # SOURCE DOCUMENTS
    # =========================================================================

    def add_document(self, document: SourceDocument) -> SourceDocument:
        with self._lock:
            self._documents[document.id] = document.model_copy(deep=True)
            return document

    def get_document(self, document_id: str) -> Optional[SourceDocument]:
        with self._lock:
            doc = self._documents.get(document_id)
            return doc.model_copy(deep=True) if doc else None

    def update_document(self, document_id: str, **fields: Any) -> SourceDocument:
        """Apply field updates to a document.

        Raises:
            PersistenceError: If the document does not exist.
        """
        with self._lock:
            doc = self._require(self._documents, document_id, "update_document", "deal_documents")
            updated = doc.model_copy(update=fields)
            self._documents[document_id] = updated
            return updated.model_copy(deep=True)

    def stamp_document(self, document_id: str, fields: dict[str, Any]) -> bool:
        """Write canonical fields unless a human owns the document.

        The manual-override check and the write happen under one lock.

        Returns:
            True if stamped, False if the document is under manual override.

        Raises:
            PersistenceError: If the document does not exist.
        """
        with self._lock:
            doc = self._require(self._documents, document_id, "stamp_document", "deal_documents")
            if doc.is_manual:
                return False
            self._documents[document_id] = doc.model_copy(update=fields)
            return True

    # =========================================================================
    # OCR RESULTS
    # =========================================================================

    def get_ocr_result(self, document_id: str) -> Optional[OcrResult]:
        with self._lock:
            result = self._ocr.get(document_id)
            return result.model_copy() if result else None

    def save_ocr_result(self, result: OcrResult) -> None:
        with self._lock:
            self._ocr[result.document_id] = result.model_copy()

    # =========================================================================
    # ARTIFACTS
    # =========================================================================

    def insert_artifact(self, artifact: Artifact) -> Artifact:
        """Insert a new artifact, unique on (source_table, source_id).

        Raises:
            PersistenceError: If the id or source is already present.
        """
        with self._lock:
            source = (artifact.source_table, artifact.source_id)
            if artifact.id in self._artifacts or source in self._artifact_sources:
                raise PersistenceError(
                    "Artifact already exists",
                    operation="insert_artifact",
                    entity="document_artifacts",
                    entity_id=artifact.id,
                )
            self._artifacts[artifact.id] = artifact.model_copy(deep=True)
            self._artifact_sources[source] = artifact.id
            return artifact

    def get_artifact(self, artifact_id: str) -> Optional[Artifact]:
        with self._lock:
            artifact = self._artifacts.get(artifact_id)
            return artifact.model_copy(deep=True) if artifact else None

    def find_artifact_by_source(self, source_table: SourceTable, source_id: str) -> Optional[Artifact]:
        with self._lock:
            artifact_id = self._artifact_sources.get((source_table, source_id))
            return self.get_artifact(artifact_id) if artifact_id else None

    def list_artifacts(
        self,
        status: Optional[ArtifactStatus] = None,
        deal_id: Optional[str] = None,
    ) -> list[Artifact]:
        """List artifacts oldest first, optionally filtered."""
        with self._lock:
            artifacts = [
                a.model_copy(deep=True)
                for a in self._artifacts.values()
                if (status is None or a.status == status) and (deal_id is None or a.deal_id == deal_id)
            ]
        return sorted(artifacts, key=lambda a: a.created_at)

    def update_artifact(self, artifact_id: str, **fields: Any) -> Artifact:
        """Apply field updates to an artifact.

        Raises:
            PersistenceError: If the artifact does not exist.
        """
        with self._lock:
            artifact = self._require(self._artifacts, artifact_id, "update_artifact", "document_artifacts")
            updated = artifact.model_copy(update=fields)
            self._artifacts[artifact_id] = updated
            return updated.model_copy(deep=True)

    def compare_and_set_artifact(
        self,
        artifact_id: str,
        expected: ArtifactStatus,
        **fields: Any,
    ) -> Optional[Artifact]:
        """Update an artifact only if its status is still ``expected``.

        Returns:
            The updated artifact, or None when the status had changed.
        """
        with self._lock:
            artifact = self._artifacts.get(artifact_id)
            if artifact is None or artifact.status != expected:
                return None
            return self.update_artifact(artifact_id, **fields)

    def first_artifact(self, predicate: Callable[[Artifact], bool]) -> Optional[Artifact]:
        """Oldest artifact satisfying ``predicate``, evaluated under the lock."""
        with self._lock:
            candidates = sorted(
                (a for a in self._artifacts.values() if predicate(a)),
                key=lambda a: a.created_at,
            )
            return candidates[0].model_copy(deep=True) if candidates else None

    # =========================================================================
    # CHECKLIST
    # =========================================================================

    def upsert_checklist_item(self, item: ChecklistItem) -> ChecklistItem:
        with self._lock:
            self._checklist.setdefault(item.deal_id, {})[item.checklist_key] = item.model_copy(deep=True)
            return item

    def get_checklist_items(
        self,
        deal_id: str,
        keys: Optional[list[str]] = None,
    ) -> list[ChecklistItem]:
        """Checklist items for a deal, optionally restricted to ``keys``."""
        with self._lock:
            items = self._checklist.get(deal_id, {})
            if keys is None:
                selected = list(items.values())
            else:
                selected = [items[k] for k in keys if k in items]
            return [item.model_copy(deep=True) for item in selected]

    def update_checklist_item(self, deal_id: str, checklist_key: str, **fields: Any) -> ChecklistItem:
        """Apply field updates to a checklist item.

        Raises:
            PersistenceError: If the item does not exist.
        """
        with self._lock:
            item = self._checklist.get(deal_id, {}).get(checklist_key)
            if item is None:
                raise PersistenceError(
                    "Checklist item not found",
                    operation="update_checklist_item",
                    entity="deal_checklist_items",
                    entity_id=f"{deal_id}:{checklist_key}",
                )
            updated = item.model_copy(update=fields)
            self._checklist[deal_id][checklist_key] = updated
            return updated.model_copy(deep=True)

    def upsert_match(self, match: ChecklistMatch) -> ChecklistMatch:
        """Insert a match, or refresh the existing one for the same
        (artifact, checklist_key, tax_year), keeping its id."""
        with self._lock:
            key = (match.artifact_id, match.checklist_key, match.tax_year)
            existing = self._matches.get(key)
            if existing is not None:
                match = match.model_copy(update={"id": existing.id, "created_at": existing.created_at})
            self._matches[key] = match.model_copy(deep=True)
            return match

    def list_matches(
        self,
        deal_id: Optional[str] = None,
        artifact_id: Optional[str] = None,
    ) -> list[ChecklistMatch]:
        with self._lock:
            return [
                m.model_copy(deep=True)
                for m in self._matches.values()
                if (deal_id is None or m.deal_id == deal_id)
                and (artifact_id is None or m.artifact_id == artifact_id)
            ]

    def save_readiness(self, readiness: DealReadiness) -> None:
        with self._lock:
            self._readiness[readiness.deal_id] = readiness.model_copy(deep=True)

    def get_readiness(self, deal_id: str) -> Optional[DealReadiness]:
        with self._lock:
            readiness = self._readiness.get(deal_id)
            return readiness.model_copy(deep=True) if readiness else None

    # =========================================================================
    # FACTS AND RENT ROLLS
    # =========================================================================

    def upsert_facts(self, facts: list[FinancialFact]) -> int:
        """Upsert facts keyed on (document_id, fact_type, fact_key).

        Returns:
            Number of facts written.
        """
        with self._lock:
            for fact in facts:
                self._facts[(fact.document_id, fact.fact_type, fact.fact_key)] = fact.model_copy(deep=True)
            return len(facts)

    def list_facts(
        self,
        deal_id: Optional[str] = None,
        document_id: Optional[str] = None,
        fact_type: Optional[FactType] = None,
    ) -> list[FinancialFact]:
        with self._lock:
            return [
                f.model_copy(deep=True)
                for f in self._facts.values()
                if (deal_id is None or f.deal_id == deal_id)
                and (document_id is None or f.document_id == document_id)
                and (fact_type is None or f.fact_type == fact_type)
            ]

    def replace_rent_roll_rows(self, document_id: str, rows: list[StoredRentRollRow]) -> int:
        """Delete a document's rent roll rows, then insert ``rows``."""
        with self._lock:
            self._rent_roll[document_id] = [row.model_copy() for row in rows]
            return len(rows)

    def list_rent_roll_rows(self, document_id: str) -> list[StoredRentRollRow]:
        with self._lock:
            return [row.model_copy() for row in self._rent_roll.get(document_id, [])]

    # =========================================================================
    # LEDGER
    # =========================================================================

    def append_event(self, event: LedgerEvent) -> None:
        with self._lock:
            self._ledger.append(event.model_copy(deep=True))

    def list_events(
        self,
        deal_id: Optional[str] = None,
        event_key: Optional[str] = None,
    ) -> list[LedgerEvent]:
        with self._lock:
            return [
                e.model_copy(deep=True)
                for e in self._ledger
                if (deal_id is None or e.deal_id == deal_id)
                and (event_key is None or e.event_key == event_key)
            ]

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _require(table: dict[str, Any], key: str, operation: str, entity: str) -> Any:
        record = table.get(key)
        if record is None:
            raise PersistenceError(
                f"{entity} row not found",
                operation=operation,
                entity=entity,
                entity_id=key,
            )
        return record


__all__ = ["IntakeStore"]
