"""Datenmodell für Anwesenheit pro (Sitzung, Teilnehmer)."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class PartyRole(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"
    ADMIN = "admin"


class AttendanceStatus(str, Enum):
    EXPECTED = "expected"
    PRESENT = "present"
    ABSENT = "absent"


class AttendanceRecord(BaseModel):
    """Genau ein Eintrag pro (session_id, party_id), angelegt mit Status "expected"."""

    session_id: str
    party_id: str
    party_role: PartyRole          # nur teacher / student
    attendance_status: AttendanceStatus = AttendanceStatus.EXPECTED
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.session_id, self.party_id)
