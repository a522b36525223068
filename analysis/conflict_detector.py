"""Konfliktprüfung für Kurszuweisungen.

Prüft ein Kandidaten-Wochenraster gegen alle bestehenden Sitzungen einer Person
(über alle Kurse hinweg) und gegen die hinterlegte Verfügbarkeit von
Lehrkräften. Rein lesend und beratend: Konflikte werden berichtet, nie
ausgelöst.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from typing import Iterable, Optional

from config.schema import ConflictConfig, GenerationConfig
from data.profiles import ProfileDirectory
from data.store import SchedulingStore
from models.class_definition import ClassDefinition
from models.conflict import AvailabilityIssue, ConflictCheckReport, ConflictReport
from models.session import SessionStatus
from models.timeslot import MIDNIGHT, TimeSlot, Weekday, WeeklySchedule
from scheduling.generator import ExpandedSlot, expand_schedule
from scheduling.timezones import utc_to_local

logger = logging.getLogger(__name__)


class ConflictDetector:
    """Findet Überschneidungen zwischen Kandidaten-Raster und bestehenden Sitzungen."""

    def __init__(
        self,
        store: SchedulingStore,
        profiles: ProfileDirectory,
        config: Optional[ConflictConfig] = None,
        window_days: int = GenerationConfig().window_days,
    ) -> None:
        self.store = store
        self.profiles = profiles
        self.config = config or ConflictConfig()
        self.window_days = window_days

    # ─── Einzelne Person ─────────────────────────────────────────────────────

    def check(
        self,
        party_id: str,
        candidate_schedule: WeeklySchedule,
        start_date: date,
        end_date: date,
        timezone: str,
        exclude_class_id: Optional[str] = None,
        exclude_session_id: Optional[str] = None,
    ) -> list[ConflictReport]:
        """Alle Überschneidungen des Rasters mit Sitzungen von ``party_id``.

        Überschneidung genau dann, wenn ``a.start < b.end and b.start < a.end``.
        Direkt aneinandergrenzende Termine sind kein Konflikt.
        """
        candidates = expand_schedule(candidate_schedule, start_date, end_date, timezone)
        return self._check_slots(party_id, candidates, exclude_class_id, exclude_session_id)

    def _check_slots(
        self,
        party_id: str,
        candidates: list[ExpandedSlot],
        exclude_class_id: Optional[str],
        exclude_session_id: Optional[str],
    ) -> list[ConflictReport]:
        existing = [
            s for s in self.store.sessions_for_party(party_id)
            if s.class_id != exclude_class_id
            and s.id != exclude_session_id
            and not (self.config.ignore_cancelled and s.status == SessionStatus.CANCELLED)
        ]
        reports: list[ConflictReport] = []
        if not existing or not candidates:
            return reports

        for slot in candidates:
            for session in existing:
                if session.start_instant < slot.end_instant and slot.start_instant < session.end_instant:
                    reports.append(ConflictReport(
                        party_id=party_id,
                        conflicting_session_id=session.id,
                        conflicting_class_id=session.class_id,
                        overlap_start=max(session.start_instant, slot.start_instant),
                        overlap_end=min(session.end_instant, slot.end_instant),
                        candidate_date=slot.local_date,
                        weekday=slot.weekday,
                    ))
        if reports:
            logger.info(f"{party_id}: {len(reports)} Überschneidung(en) gefunden")
        return reports

    # ─── Mehrere Personen ────────────────────────────────────────────────────

    def check_parties(
        self,
        party_ids: Iterable[str],
        candidate_schedule: WeeklySchedule,
        start_date: date,
        end_date: date,
        timezone: str,
        exclude_class_id: Optional[str] = None,
    ) -> dict[str, list[ConflictReport]]:
        """Prüft jede Person unabhängig (parallel, rein lesend)."""
        party_ids = sorted(set(party_ids))
        if not party_ids:
            return {}
        candidates = expand_schedule(candidate_schedule, start_date, end_date, timezone)
        workers = max(1, min(self.config.max_workers, len(party_ids)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pid: pool.submit(self._check_slots, pid, candidates, exclude_class_id, None)
                for pid in party_ids
            }
            return {pid: f.result() for pid, f in futures.items()}

    # ─── Ganzer Kurs ─────────────────────────────────────────────────────────

    def check_class(
        self, class_def: ClassDefinition, exclude_class_id: Optional[str] = None
    ) -> ConflictCheckReport:
        """Prüft Lehrer- und Schülerseite getrennt, dazu die Lehrer-Verfügbarkeit.

        Bei offenem Kursende wird das erste Erzeugungsfenster geprüft.
        """
        end_date = class_def.end_date
        if end_date is None:
            end_date = class_def.start_date + timedelta(days=self.window_days - 1)

        args = (class_def.weekly_schedule, class_def.start_date, end_date, class_def.timezone)
        teacher_conflicts = self.check_parties(
            class_def.assigned_teacher_ids, *args, exclude_class_id=exclude_class_id
        )
        student_conflicts = self.check_parties(
            class_def.assigned_student_ids, *args, exclude_class_id=exclude_class_id
        )

        issues: list[AvailabilityIssue] = []
        if self.config.check_availability:
            candidates = expand_schedule(*args)
            for teacher_id in sorted(class_def.assigned_teacher_ids):
                issues.extend(self.check_availability(teacher_id, candidates))

        report = ConflictCheckReport(
            teacher_conflicts={k: v for k, v in teacher_conflicts.items() if v},
            student_conflicts={k: v for k, v in student_conflicts.items() if v},
            availability_issues=issues,
        )
        logger.info(
            f"Konfliktprüfung Kurs {class_def.id}: "
            f"{'Konflikte' if report.has_conflicts else 'keine Konflikte'}"
        )
        return report

    def check_availability(
        self, teacher_id: str, candidates: list[ExpandedSlot]
    ) -> list[AvailabilityIssue]:
        """Jeder Termin muss in der Zone der Lehrkraft in einem Fenster liegen.

        Ohne hinterlegte Verfügbarkeit gibt es keine Einschränkung. Gleiche
        (Wochentag, Fenster)-Kombinationen werden nur einmal gemeldet.
        """
        availability = self.profiles.availability_for(teacher_id)
        if availability is None:
            return []

        issues: list[AvailabilityIssue] = []
        seen: set[tuple[Weekday, str]] = set()
        for slot in candidates:
            start_day, start_time = utc_to_local(slot.start_instant, availability.timezone)
            end_day, end_time = utc_to_local(slot.end_instant, availability.timezone)
            weekday = Weekday.from_date(start_day)
            windows = availability.windows_for(weekday)

            label = f"{start_time:%H:%M}-{end_time:%H:%M}"
            fits = False
            if end_day == start_day or (end_day == start_day + timedelta(days=1)
                                        and end_time == MIDNIGHT):
                local_slot = TimeSlot(start=start_time, end=end_time)
                label = str(local_slot)
                fits = any(w.contains(local_slot) for w in windows)

            if fits or (weekday, label) in seen:
                continue
            seen.add((weekday, label))
            issues.append(AvailabilityIssue(
                teacher_id=teacher_id,
                weekday=weekday,
                candidate=label,
                available=[str(w) for w in windows],
            ))
        return issues
