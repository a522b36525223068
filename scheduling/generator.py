"""Erzeugung konkreter Sitzungen aus dem Wochenraster eines Kurses.

Iteriert über LOKALE Kalendertage (nicht über UTC-Tage), damit der Wochentag
jedes Termins dem Wochentag entspricht, den der Admin im Raster gemeint hat –
auch wenn der UTC-Zeitpunkt kurz vor/nach Mitternacht auf einen anderen
UTC-Tag fällt.

Lange oder offene Zeiträume werden fensterweise erzeugt
(``GenerationConfig.window_days``); ``extend`` schreibt das nächste Fenster fort.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterator, Optional

from config.schema import GenerationConfig
from models.attendance import AttendanceRecord, PartyRole
from models.class_definition import ClassDefinition
from models.session import SessionInstance, SessionStatus
from models.timeslot import Weekday, WeeklySchedule
from scheduling.timezones import get_zone, local_to_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExpandedSlot:
    """Ein Termin des Rasters an einem konkreten lokalen Datum."""

    local_date: date
    weekday: Weekday
    start_instant: datetime
    end_instant: datetime


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Alle Kalendertage von start bis end (inklusiv)."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def expand_schedule(
    schedule: WeeklySchedule, start_date: date, end_date: date, zone: str
) -> list[ExpandedSlot]:
    """Wandelt das Wochenraster im Zeitraum in UTC-Intervalle um.

    Ein Fenster mit Ende 00:00 endet am Folgetag. Tage ohne Eintrag im
    Raster erzeugen nichts.
    """
    get_zone(zone)
    slots: list[ExpandedSlot] = []
    for day in iter_dates(start_date, end_date):
        weekday = Weekday.from_date(day)
        slot = schedule.slot_for(weekday)
        if slot is None:
            continue
        start = local_to_utc(day, slot.start, zone)
        end_day = day + timedelta(days=1) if slot.spans_midnight else day
        end = local_to_utc(end_day, slot.end, zone)
        if end <= start:
            # Beginn in einer Sommerzeit-Lücke nach hinten verschoben → Nenndauer
            end = start + timedelta(minutes=slot.duration_minutes)
            logger.warning(
                f"{day.isoformat()} {slot}: Ende fiel durch Zeitumstellung vor den "
                f"Beginn, Nenndauer {slot.duration_minutes} min verwendet"
            )
        slots.append(ExpandedSlot(day, weekday, start, end))
    return slots


def session_id_for(class_id: str, local_day: date) -> str:
    """Sitzungs-ID: pro Kurs höchstens ein Termin je lokalem Tag."""
    return f"{class_id}_{local_day.isoformat()}"


@dataclass
class GenerationResult:
    """Entwürfe einer Erzeugung (noch nicht gespeichert)."""

    sessions: list[SessionInstance] = field(default_factory=list)
    attendance: list[AttendanceRecord] = field(default_factory=list)
    # Letzter lokaler Tag, der in diesem Lauf abgedeckt wurde (None = nichts zu tun)
    generated_until: Optional[date] = None
    # True wenn das Kursende erreicht ist
    complete: bool = False


class SessionGenerator:
    """Erzeugt Sitzungs- und Anwesenheitsentwürfe für einen Kurs."""

    def __init__(self, config: Optional[GenerationConfig] = None) -> None:
        self.config = config or GenerationConfig()

    def window_end(self, class_def: ClassDefinition, first_day: date) -> date:
        """Letzter Tag des Fensters, das an ``first_day`` beginnt."""
        limit = first_day + timedelta(days=self.config.window_days - 1)
        if class_def.end_date is None:
            return limit
        return min(limit, class_def.end_date)

    def generate(
        self, class_def: ClassDefinition, until: Optional[date] = None
    ) -> GenerationResult:
        """Erstes Fenster ab ``start_date``; ``until`` begrenzt zusätzlich."""
        return self._generate_range(class_def, class_def.start_date, until)

    def extend(self, class_def: ClassDefinition, until: date) -> GenerationResult:
        """Nächstes Fenster ab dem Tag nach ``generated_until`` bis höchstens ``until``."""
        if class_def.generated_until is None:
            first = class_def.start_date
        else:
            first = class_def.generated_until + timedelta(days=1)
        return self._generate_range(class_def, first, until)

    def _generate_range(
        self, class_def: ClassDefinition, first: date, until: Optional[date]
    ) -> GenerationResult:
        last = self.window_end(class_def, first)
        if until is not None:
            last = min(last, until)
        if last < first:
            done = class_def.end_date is not None and first > class_def.end_date
            return GenerationResult(complete=done)

        result = GenerationResult(generated_until=last)
        teachers = sorted(class_def.assigned_teacher_ids)
        students = sorted(class_def.assigned_student_ids)

        for slot in expand_schedule(class_def.weekly_schedule, first, last, class_def.timezone):
            session = SessionInstance(
                id=session_id_for(class_def.id, slot.local_date),
                class_id=class_def.id,
                start_instant=slot.start_instant,
                end_instant=slot.end_instant,
                timezone=class_def.timezone,
                status=SessionStatus.SCHEDULED,
            )
            result.sessions.append(session)
            for teacher_id in teachers:
                result.attendance.append(AttendanceRecord(
                    session_id=session.id, party_id=teacher_id, party_role=PartyRole.TEACHER,
                ))
            for student_id in students:
                result.attendance.append(AttendanceRecord(
                    session_id=session.id, party_id=student_id, party_role=PartyRole.STUDENT,
                ))

        result.complete = class_def.end_date is not None and last >= class_def.end_date
        logger.info(
            f"Kurs {class_def.id}: {len(result.sessions)} Sitzungen "
            f"{first.isoformat()} – {last.isoformat()} ({class_def.timezone})"
        )
        return result
