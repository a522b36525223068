"""Datenmodell für einzelne Sitzungen und ihren Verlauf (Pydantic v2)."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, model_validator


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    PENDING = "pending"        # vom Admin initiiert, noch nicht gestartet
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ABSENCE = "absence"        # Nichterscheinen

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    SessionStatus.COMPLETE,
    SessionStatus.CANCELLED,
    SessionStatus.ABSENCE,
})


class SessionAction(str, Enum):
    """Aktionen, die einen Statusübergang auslösen."""

    INITIATE = "initiate"
    START = "start"
    END = "end"
    CANCEL = "cancel"
    ABSENCE = "absence"
    RESCHEDULE = "reschedule"

    @classmethod
    def parse(cls, text: str) -> "SessionAction":
        key = str(text).strip().lower()
        # "leave" ist der historische Name der Absage
        if key == "leave":
            return cls.CANCEL
        try:
            return cls(key)
        except ValueError:
            raise ValueError(
                f"Unbekannte Aktion: '{text}' "
                f"(erlaubt: {', '.join(a.value for a in cls)}, leave)"
            ) from None


class SessionInstance(BaseModel):
    """Ein konkreter Termin eines Kurses mit absoluten UTC-Zeitpunkten."""

    id: str
    class_id: str
    start_instant: datetime
    end_instant: datetime
    timezone: str                 # Zone des Kurses, für lokale Datumsregeln
    status: SessionStatus = SessionStatus.SCHEDULED
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    actual_start_instant: Optional[datetime] = None
    actual_end_instant: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_instants(self):
        if self.start_instant >= self.end_instant:
            raise ValueError(
                f"Sitzung {self.id}: Beginn {self.start_instant.isoformat()} "
                f"nicht vor Ende {self.end_instant.isoformat()}."
            )
        return self

    @property
    def duration(self):
        return self.end_instant - self.start_instant

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class SessionHistoryEntry(BaseModel):
    """Protokolleintrag zu einem ausgeführten Übergang."""

    session_id: str
    action: SessionAction
    actor_id: str
    note: str
    created_at: datetime
