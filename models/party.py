"""Datenmodell für Personen (Lehrkraft, Schüler, Admin) und Lehrer-Verfügbarkeit."""

from pydantic import BaseModel, Field, field_validator

from models.attendance import PartyRole
from models.timeslot import TimeSlot, Weekday
from scheduling.timezones import validate_timezone


class Party(BaseModel):
    """Repräsentiert einen Teilnehmer oder Administrator."""

    id: str
    role: PartyRole
    display_name: str                              # "Müller, Anna"


class TeacherAvailability(BaseModel):
    """Wöchentliche Verfügbarkeitsfenster einer Lehrkraft in ihrer eigenen Zone.

    Ein Wochentag ohne Fenster bedeutet "an diesem Tag nicht verfügbar".
    """

    teacher_id: str
    timezone: str
    weekly_windows: dict[Weekday, list[TimeSlot]] = Field(default_factory=dict)

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        return validate_timezone(v)

    def windows_for(self, day: Weekday) -> list[TimeSlot]:
        return list(self.weekly_windows.get(day, []))
