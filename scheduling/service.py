"""SchedulingService: Fassade über Erzeugung, Lebenszyklus, Verlegung und Konfliktprüfung.

Einziger Einstiegspunkt für CLI und Tests. Alle Zeitpunkte in der
Schnittstelle sind aware datetimes in UTC.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional, Union

from analysis.conflict_detector import ConflictDetector
from config.schema import TutoringConfig
from data.profiles import ProfileDirectory
from data.store import SchedulingStore
from models.attendance import AttendanceRecord, AttendanceStatus, PartyRole
from models.class_definition import ClassDefinition
from models.conflict import ConflictCheckReport, ConflictReport
from models.reschedule import RescheduleRequest, ResolveDecision
from models.session import SessionAction, SessionInstance
from models.timeslot import WeeklySchedule
from scheduling.errors import PartialFailure, ScheduleValidationError
from scheduling.generator import GenerationResult, SessionGenerator
from scheduling.lifecycle import SessionLifecycle
from scheduling.notifications import Notifier
from scheduling.reschedule import RescheduleWorkflow
from scheduling.timezones import now_utc

logger = logging.getLogger(__name__)


class SchedulingService:
    """Bündelt alle Operationen der Nachhilfe-Terminplanung."""

    def __init__(
        self,
        store: SchedulingStore,
        profiles: ProfileDirectory,
        config: Optional[TutoringConfig] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.profiles = profiles
        self.config = config or TutoringConfig()
        self.clock = clock
        self.generator = SessionGenerator(self.config.generation)
        self.lifecycle = SessionLifecycle(
            store, profiles, self.config.lifecycle, notifier=notifier, clock=clock
        )
        self.reschedules = RescheduleWorkflow(
            store, profiles, self.lifecycle, self.config.reschedule,
            notifier=notifier, clock=clock,
        )
        self.detector = ConflictDetector(
            store, profiles, self.config.conflicts,
            window_days=self.config.generation.window_days,
        )

    # ─── Erzeugung ───────────────────────────────────────────────────────────

    def generate_sessions(self, class_def: ClassDefinition) -> list[SessionInstance]:
        """Legt den Kurs an und erzeugt das erste Fenster an Sitzungen.

        Alles oder nichts: schlägt ein Schritt fehl, werden die vorherigen
        Schritte in umgekehrter Reihenfolge gelöscht und ``PartialFailure``
        ausgelöst.
        """
        self._check_participants(class_def)
        result = self.generator.generate(class_def)

        # Doppelte Kurs-ID scheitert hier, bevor etwas geschrieben ist
        self.store.insert_class(class_def)
        done: list[str] = ["class"]
        try:
            self._persist(class_def.id, result, done)
        except Exception as e:
            rolled_back = self._compensate(class_def.id, result, done)
            raise PartialFailure(
                f"Sitzungserzeugung für Kurs {class_def.id} fehlgeschlagen ({e}); "
                f"rückgängig gemacht: {', '.join(rolled_back) or 'nichts'}.",
                cause=e, rolled_back=rolled_back,
            ) from e

        logger.info(
            f"Kurs {class_def.id} angelegt: {len(result.sessions)} Sitzungen, "
            f"{len(result.attendance)} Anwesenheitseinträge"
        )
        return self.store.sessions_for_class(class_def.id)

    def extend_sessions(self, class_id: str, until: date) -> list[SessionInstance]:
        """Erzeugt das nächste Fenster bis höchstens ``until``; gibt nur die neuen Sitzungen zurück."""
        class_def = self.store.get_class(class_id)
        result = self.generator.extend(class_def, until)
        if not result.sessions and result.generated_until is None:
            logger.info(f"Kurs {class_id}: nichts zu erweitern")
            return []

        done: list[str] = []
        try:
            self._persist(class_id, result, done)
        except Exception as e:
            rolled_back = self._compensate(class_id, result, done, keep_class=True)
            raise PartialFailure(
                f"Erweiterung von Kurs {class_id} fehlgeschlagen ({e}); "
                f"rückgängig gemacht: {', '.join(rolled_back) or 'nichts'}.",
                cause=e, rolled_back=rolled_back,
            ) from e
        return [self.store.get_session(s.id) for s in result.sessions]

    def _persist(self, class_id: str, result: GenerationResult, done: list[str]) -> None:
        self.store.bulk_insert_sessions(result.sessions)
        done.append("sessions")
        self.store.bulk_insert_attendance(result.attendance)
        done.append("attendance")
        if result.generated_until is not None:
            self.store.update_class(class_id, generated_until=result.generated_until)
            done.append("generated_until")

    def _compensate(
        self, class_id: str, result: GenerationResult, done: list[str],
        keep_class: bool = False,
    ) -> list[str]:
        """Macht die Schritte in ``done`` rückwärts rückgängig."""
        session_ids = [s.id for s in result.sessions]
        rolled_back: list[str] = []
        for step in reversed(done):
            if step == "attendance":
                self.store.delete_attendance(session_ids)
            elif step == "sessions":
                self.store.delete_sessions(session_ids)
            elif step == "class" and not keep_class:
                self.store.delete_class(class_id)
            elif step == "generated_until":
                # Wird mit dem Kurs gelöscht bzw. bleibt beim Erweitern auf dem alten Stand
                continue
            rolled_back.append(step)
        logger.warning(f"Kurs {class_id}: kompensiert ({', '.join(rolled_back) or '-'})")
        return rolled_back

    def _check_participants(self, class_def: ClassDefinition) -> None:
        for ids, role in ((class_def.assigned_teacher_ids, PartyRole.TEACHER),
                          (class_def.assigned_student_ids, PartyRole.STUDENT)):
            for party_id in sorted(ids):
                if self.profiles.role_of(party_id) != role:
                    raise ScheduleValidationError(
                        f"{party_id} ist nicht als {role.value} erfasst.",
                        guard="wrong_role",
                    )

    def delete_class(self, class_id: str) -> dict[str, int]:
        """Löscht einen Kurs mit allen abhängigen Daten."""
        counts = self.store.delete_class(class_id)
        logger.info(
            f"Kurs {class_id} gelöscht: {counts['sessions']} Sitzungen, "
            f"{counts['attendance']} Anwesenheitseinträge, {counts['requests']} Anfragen"
        )
        return counts

    # ─── Lebenszyklus ────────────────────────────────────────────────────────

    def transition_session(
        self,
        session_id: str,
        action: Union[SessionAction, str],
        actor_id: str,
        reason: Optional[str] = None,
        *,
        new_start: Optional[datetime] = None,
        new_end: Optional[datetime] = None,
        deadline: Optional[datetime] = None,
    ) -> SessionInstance:
        return self.lifecycle.apply(
            session_id, action, actor_id, reason,
            new_start=new_start, new_end=new_end, deadline=deadline,
        )

    def mark_attendance(
        self, session_id: str, party_id: str, status: Union[AttendanceStatus, str]
    ) -> AttendanceRecord:
        return self.lifecycle.mark_attendance(session_id, party_id, AttendanceStatus(status))

    # ─── Konflikte ───────────────────────────────────────────────────────────

    def check_conflicts(
        self,
        party_id: str,
        candidate_schedule: WeeklySchedule,
        start_date: date,
        end_date: date,
        timezone: str,
        exclude_class_id: Optional[str] = None,
    ) -> list[ConflictReport]:
        return self.detector.check(
            party_id, candidate_schedule, start_date, end_date, timezone,
            exclude_class_id=exclude_class_id,
        )

    def check_class_conflicts(
        self, class_def: ClassDefinition, exclude_class_id: Optional[str] = None
    ) -> ConflictCheckReport:
        return self.detector.check_class(class_def, exclude_class_id=exclude_class_id)

    # ─── Verlegungen ─────────────────────────────────────────────────────────

    def submit_reschedule(
        self, session_id: str, requester_id: str, reason: str, requested_start: datetime
    ) -> RescheduleRequest:
        return self.reschedules.submit(session_id, requester_id, reason, requested_start)

    def resolve_reschedule(
        self, request_id: str, approver_id: str, decision: Union[ResolveDecision, str]
    ) -> Union[SessionInstance, RescheduleRequest]:
        return self.reschedules.resolve(request_id, approver_id, decision)
