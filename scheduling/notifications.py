"""Benachrichtigungen über Statuswechsel und Verlegungen.

Die Zustellung (Push/E-Mail) liegt außerhalb dieses Projekts. Der Kern ruft
nur ``dispatch`` auf und hängt nicht vom Erfolg der Zustellung ab.
"""

import logging
from datetime import datetime
from typing import Optional, Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class NotificationEvent(BaseModel):
    """Eine Benachrichtigung an eine oder mehrere Personen."""

    kind: str                       # "session_status_changed", "reschedule_approved", ...
    recipients: list[str]
    title: str
    message: str
    level: str = "info"             # info / warning
    metadata: dict[str, str] = {}
    created_at: Optional[datetime] = None


class Notifier(Protocol):
    def dispatch(self, event: NotificationEvent) -> None: ...


class LoggingNotifier:
    """Schreibt Benachrichtigungen nur ins Log."""

    def dispatch(self, event: NotificationEvent) -> None:
        logger.info(
            f"[{event.kind}] an {', '.join(event.recipients) or '-'}: {event.message}"
        )


class InMemoryNotifier:
    """Sammelt Benachrichtigungen (für Tests und die CLI-Ausgabe)."""

    def __init__(self) -> None:
        self.events: list[NotificationEvent] = []

    def dispatch(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def of_kind(self, kind: str) -> list[NotificationEvent]:
        return [e for e in self.events if e.kind == kind]


def safe_dispatch(notifier: Optional[Notifier], event: NotificationEvent) -> None:
    """Fire-and-forget: Zustellfehler werden protokolliert, nie weitergereicht."""
    if notifier is None or not event.recipients:
        return
    try:
        notifier.dispatch(event)
    except Exception as e:
        logger.warning(f"Benachrichtigung '{event.kind}' nicht zugestellt: {e}")
