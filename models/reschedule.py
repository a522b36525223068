"""Datenmodell für Verlegungsanfragen."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ResolveDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class RescheduleRequest(BaseModel):
    """Anfrage eines Teilnehmers, eine Sitzung auf einen neuen Beginn zu verlegen.

    Die Dauer wird nicht angefragt: bei Genehmigung bleibt die Dauer der
    ursprünglichen Sitzung erhalten.
    """

    id: str
    session_id: str
    requester_id: str
    reason: str
    requested_start_instant: datetime
    status: RequestStatus = RequestStatus.PENDING
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: datetime
    # Gesetzt wenn eine neuere Anfrage diese ersetzt hat
    superseded_by: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != RequestStatus.PENDING
