"""Ledger event models for the append-only intake audit trail."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    """Return current UTC datetime with timezone info."""
    return datetime.now(timezone.utc)


class UiState(str, Enum):
    """Display state a dashboard shows for a ledger event."""

    WORKING = "working"
    DONE = "done"
    ERROR = "error"


class LedgerEvent(BaseModel):
    """Single append-only record of something that happened to a deal.

    Attributes:
        deal_id: Deal the event belongs to
        bank_id: Owning tenant
        event_key: Dotted event name (e.g. "artifact.processed")
        ui_state: Display state
        ui_message: Short human-readable message
        meta: Structured event context
        created_at: When the event was recorded (UTC)
    """

    deal_id: str
    bank_id: str
    event_key: str
    ui_state: UiState = UiState.DONE
    ui_message: Optional[str] = None
    meta: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=_utc_now)

    def model_post_init(self, __context) -> None:
        """Ensure timestamp is timezone-aware."""
        if self.created_at.tzinfo is None:
            object.__setattr__(
                self,
                'created_at',
                self.created_at.replace(tzinfo=timezone.utc)
            )
