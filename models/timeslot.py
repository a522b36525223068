"""Datenmodell für Wochentage, Zeitfenster und das Wochenraster eines Kurses."""

from datetime import date, time
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, model_validator


MIDNIGHT = time(0, 0)


class Weekday(str, Enum):
    """Fester Wochentag-Typ (statt freier Tagesnamen als Dict-Schlüssel)."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def index(self) -> int:
        """0=Montag … 6=Sonntag (wie ``date.weekday()``)."""
        return _WEEKDAY_ORDER.index(self)

    @property
    def short_label(self) -> str:
        """Abgekürzter deutscher Tagesname."""
        return ["Mo", "Di", "Mi", "Do", "Fr", "Sa", "So"][self.index]

    @classmethod
    def from_date(cls, day: date) -> "Weekday":
        return _WEEKDAY_ORDER[day.weekday()]

    @classmethod
    def parse(cls, text: Union[str, "Weekday"]) -> "Weekday":
        """Akzeptiert "monday", "Mon", "Mo", "Montag" (Groß-/Kleinschreibung egal)."""
        if isinstance(text, Weekday):
            return text
        key = str(text).strip().lower()
        if key in _DAY_MAP:
            return _WEEKDAY_ORDER[_DAY_MAP[key]]
        raise ValueError(f"Unbekannter Wochentag: '{text}'")


_WEEKDAY_ORDER = list(Weekday)

_DAY_MAP = {
    "monday": 0, "mon": 0, "mo": 0, "montag": 0,
    "tuesday": 1, "tue": 1, "di": 1, "dienstag": 1,
    "wednesday": 2, "wed": 2, "mi": 2, "mittwoch": 2,
    "thursday": 3, "thu": 3, "do": 3, "donnerstag": 3,
    "friday": 4, "fri": 4, "fr": 4, "freitag": 4,
    "saturday": 5, "sat": 5, "sa": 5, "samstag": 5,
    "sunday": 6, "sun": 6, "so": 6, "sonntag": 6,
}


class TimeSlot(BaseModel):
    """Ein lokales Zeitfenster (Wanduhrzeit, erst mit Zeitzone eindeutig).

    Invariante: start < end, außer end == 00:00 → das Fenster reicht bis
    Mitternacht und endet am Folgetag. Immutable, damit als Set-Element nutzbar.
    """

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @model_validator(mode="after")
    def _check_order(self):
        if self.start == self.end:
            raise ValueError(
                f"Zeitfenster {self}: Beginn und Ende sind identisch."
            )
        if self.end != MIDNIGHT and self.end < self.start:
            raise ValueError(
                f"Zeitfenster {self}: Ende liegt vor dem Beginn "
                "(über Mitternacht nur mit Ende 00:00 erlaubt)."
            )
        return self

    @property
    def spans_midnight(self) -> bool:
        """True wenn das Fenster um 00:00 des Folgetags endet."""
        return self.end == MIDNIGHT

    @property
    def start_minutes(self) -> int:
        return self.start.hour * 60 + self.start.minute

    @property
    def end_minutes(self) -> int:
        """Ende in Minuten ab Tagesbeginn; 00:00 als Ende zählt als 1440."""
        if self.spans_midnight:
            return 24 * 60
        return self.end.hour * 60 + self.end.minute

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes

    def contains(self, other: "TimeSlot") -> bool:
        """True wenn ``other`` vollständig in diesem Fenster liegt."""
        return (self.start_minutes <= other.start_minutes
                and other.end_minutes <= self.end_minutes)

    @classmethod
    def parse(cls, text: str) -> "TimeSlot":
        """Parst "09:00-10:00"."""
        try:
            start, end = (part.strip() for part in text.split("-"))
        except ValueError as e:
            raise ValueError(
                f"Zeitfenster '{text}' nicht im Format HH:MM-HH:MM"
            ) from e
        return cls(start=time.fromisoformat(start), end=time.fromisoformat(end))

    def __str__(self) -> str:
        return f"{self.start:%H:%M}-{self.end:%H:%M}"


SlotInput = Union[TimeSlot, str, dict]


class WeeklySchedule(BaseModel):
    """Wochenraster: höchstens ein Zeitfenster pro Wochentag."""

    monday: Optional[TimeSlot] = None
    tuesday: Optional[TimeSlot] = None
    wednesday: Optional[TimeSlot] = None
    thursday: Optional[TimeSlot] = None
    friday: Optional[TimeSlot] = None
    saturday: Optional[TimeSlot] = None
    sunday: Optional[TimeSlot] = None

    def slot_for(self, day: Weekday) -> Optional[TimeSlot]:
        return getattr(self, day.value)

    def entries(self) -> list[tuple[Weekday, TimeSlot]]:
        """Alle belegten Tage in Wochenreihenfolge."""
        return [(d, self.slot_for(d)) for d in Weekday if self.slot_for(d) is not None]

    def is_empty(self) -> bool:
        return not self.entries()

    @classmethod
    def from_mapping(cls, mapping: dict[Union[Weekday, str], SlotInput]) -> "WeeklySchedule":
        """Baut ein Raster aus {Tag: Zeitfenster}; Tage und Fenster dürfen Strings sein."""
        fields: dict[str, TimeSlot] = {}
        for key, value in mapping.items():
            day = Weekday.parse(key)
            if isinstance(value, str):
                value = TimeSlot.parse(value)
            elif isinstance(value, dict):
                value = TimeSlot(**value)
            fields[day.value] = value
        return cls(**fields)

    def __str__(self) -> str:
        return ", ".join(f"{d.short_label} {s}" for d, s in self.entries())
