"""Datenmodell für einen wiederkehrenden Kurs (Pydantic v2)."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models.timeslot import WeeklySchedule
from scheduling.timezones import validate_timezone


class ClassStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class ClassDefinition(BaseModel):
    """Ein wiederkehrendes Angebot: Zeitraum, Wochenraster, Zeitzone, Teilnehmer.

    Die Zeitzone wird hier validiert, also beim Anlegen des Kurses und nicht
    erst bei der Sitzungserzeugung.
    """

    id: str
    title: str
    subject: str
    start_date: date                        # inklusiv, lokales Datum
    end_date: Optional[date] = None         # inklusiv; None = offen (nur fensterweise)
    timezone: str                           # IANA-Name, z.B. "America/Toronto"
    weekly_schedule: WeeklySchedule
    assigned_teacher_ids: set[str] = Field(default_factory=set)
    assigned_student_ids: set[str] = Field(default_factory=set)
    status: ClassStatus = ClassStatus.ACTIVE
    # Letztes lokales Datum, bis zu dem Sitzungen erzeugt wurden
    generated_until: Optional[date] = None
    created_at: Optional[datetime] = None

    @field_validator("title", "subject")
    @classmethod
    def _strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("darf nicht leer sein")
        return v

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        return validate_timezone(v)

    @model_validator(mode="after")
    def _check_range_and_schedule(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError(
                f"Enddatum {self.end_date} liegt vor dem Startdatum {self.start_date}."
            )
        if self.weekly_schedule.is_empty():
            raise ValueError("Wochenraster enthält keinen Termin.")
        return self

    @property
    def participant_ids(self) -> set[str]:
        return self.assigned_teacher_ids | self.assigned_student_ids

    @property
    def is_open_ended(self) -> bool:
        return self.end_date is None
