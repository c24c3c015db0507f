"""Append-only deal ledger.

Ledger events are observability, not state: a failed write is logged and
dropped, and processing continues.
"""

from typing import Any, Optional

import structlog

from intake_core.models.ledger import LedgerEvent, UiState
from intake_core.store import IntakeStore

logger = structlog.get_logger()


class LedgerWriter:
    """Write ledger events to the store and mirror them to the log."""

    def __init__(self, store: IntakeStore):
        self.store = store

    def log_event(
        self,
        deal_id: str,
        bank_id: str,
        event_key: str,
        *,
        ui_state: UiState = UiState.DONE,
        ui_message: Optional[str] = None,
        meta: Optional[dict[str, Any]] = None,
    ) -> Optional[LedgerEvent]:
        """Record one event. Never raises.

        Returns:
            The recorded event, or None if the write failed.
        """
        try:
            event = LedgerEvent(
                deal_id=deal_id,
                bank_id=bank_id,
                event_key=event_key,
                ui_state=ui_state,
                ui_message=ui_message,
                meta=meta or {},
            )
            self.store.append_event(event)
        except Exception as e:
            logger.warning("ledger_write_failed", deal_id=deal_id, event_key=event_key, error=str(e))
            return None

        log = logger.warning if ui_state == UiState.ERROR else logger.info
        log(
            "ledger_event",
            deal_id=deal_id,
            event_key=event_key,
            ui_state=ui_state.value,
            ui_message=ui_message,
            meta=meta or {},
        )
        return event


__all__ = ["LedgerWriter"]
