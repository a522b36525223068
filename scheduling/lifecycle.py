"""Zustandsautomat einer Sitzung.

    scheduled ──initiate──▶ pending ──start──▶ running ──end──────▶ complete
        │                      │                  └─────absence──▶ absence
        └───────cancel─────────┴──────────────────────────────────▶ cancelled
    cancelled / scheduled ──reschedule──▶ scheduled (neue Zeitpunkte)

Jeder Übergang läuft unter dem Lock der Sitzung und wird per Compare-and-Set
auf den unmittelbar vorher gelesenen Status geschrieben. Von zwei
gleichzeitigen Übergängen gewinnt genau einer, der andere erhält
``ConcurrencyConflict`` bzw. ``PreconditionFailed``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

from config.schema import LifecycleConfig
from data.profiles import ProfileDirectory
from data.store import SchedulingStore
from models.attendance import AttendanceRecord, AttendanceStatus, PartyRole
from models.session import SessionAction, SessionHistoryEntry, SessionInstance, SessionStatus
from scheduling.errors import (
    DeadlineExceeded,
    PreconditionFailed,
    ScheduleValidationError,
)
from scheduling.notifications import NotificationEvent, Notifier, safe_dispatch
from scheduling.timezones import ensure_utc, local_date, now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    sources: frozenset
    target: SessionStatus
    note: str               # Verlaufseintrag


S = SessionStatus

TRANSITIONS: dict[SessionAction, Transition] = {
    SessionAction.INITIATE: Transition(frozenset({S.SCHEDULED}), S.PENDING, "Sitzung initiiert"),
    SessionAction.START: Transition(frozenset({S.PENDING}), S.RUNNING, "Sitzung gestartet"),
    SessionAction.END: Transition(frozenset({S.RUNNING}), S.COMPLETE, "Sitzung beendet"),
    SessionAction.CANCEL: Transition(frozenset({S.SCHEDULED, S.PENDING}), S.CANCELLED, "Sitzung abgesagt"),
    SessionAction.ABSENCE: Transition(frozenset({S.RUNNING}), S.ABSENCE, "Nichterscheinen gemeldet"),
    SessionAction.RESCHEDULE: Transition(frozenset({S.SCHEDULED, S.CANCELLED}), S.SCHEDULED, "Sitzung verlegt"),
}


def allowed_actions(status: SessionStatus) -> list[SessionAction]:
    """Aktionen, die im Status ``status`` grundsätzlich möglich sind."""
    return [a for a, t in TRANSITIONS.items() if status in t.sources]


class SessionLifecycle:
    """Prüft und führt Statusübergänge samt Nebeneffekten aus."""

    def __init__(
        self,
        store: SchedulingStore,
        profiles: ProfileDirectory,
        config: Optional[LifecycleConfig] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.profiles = profiles
        self.config = config or LifecycleConfig()
        self.notifier = notifier
        self.clock = clock

    # ─── Übergänge ───────────────────────────────────────────────────────────

    def apply(
        self,
        session_id: str,
        action: Union[SessionAction, str],
        actor_id: str,
        reason: Optional[str] = None,
        *,
        new_start: Optional[datetime] = None,
        new_end: Optional[datetime] = None,
        deadline: Optional[datetime] = None,
        notify: bool = True,
    ) -> SessionInstance:
        """Führt ``action`` auf der Sitzung aus und gibt die neue Sitzung zurück.

        Mit ``notify=False`` verschickt der Aufrufer die Benachrichtigung selbst
        (über ``notify_transition``), sobald seine eigenen Schreibzugriffe stehen.
        """
        if not isinstance(action, SessionAction):
            try:
                action = SessionAction.parse(action)
            except ValueError as e:
                raise ScheduleValidationError(str(e), guard="unknown_action") from e
        reason = reason.strip() if reason else None
        actor_role = self.profiles.role_of(actor_id)

        reschedule_updates: dict = {}
        if action == SessionAction.RESCHEDULE:
            reschedule_updates = self._reschedule_updates(new_start, new_end)

        transition = TRANSITIONS[action]
        with self.store.session_lock(session_id):
            session = self.store.get_session(session_id)
            self._check_status(session, action, transition)
            self._check_actor(session, actor_id, actor_role)
            now = self.clock()

            updates: dict = {"status": transition.target, "updated_at": now}
            if action == SessionAction.INITIATE:
                self._check_initiation_window(session, now)
            elif action == SessionAction.START:
                updates["actual_start_instant"] = now
            elif action == SessionAction.END:
                updates["actual_end_instant"] = now
            elif action == SessionAction.CANCEL:
                self._check_cancellation(session, actor_role, reason, now)
                updates["cancellation_reason"] = reason
                updates["cancelled_by"] = actor_id
            elif action == SessionAction.ABSENCE:
                updates["actual_end_instant"] = now
            elif action == SessionAction.RESCHEDULE:
                updates.update(reschedule_updates)

            self._check_deadline(deadline)

            if action == SessionAction.ABSENCE:
                # Anwesenheit zuerst; schlägt das fehl, bleibt der Status unverändert
                self.store.bulk_set_attendance(session_id, AttendanceStatus.ABSENT, now)

            updated = self.store.compare_and_set_session(session_id, session.status, **updates)
            note = transition.note + (f": {reason}" if reason else "")
            self.store.append_history(SessionHistoryEntry(
                session_id=session_id, action=action, actor_id=actor_id,
                note=note, created_at=now,
            ))

        logger.info(
            f"Sitzung {session_id}: {session.status.value} → {updated.status.value} "
            f"({action.value} durch {actor_id})"
        )
        if notify:
            self.notify_transition(updated, action, actor_id, previous=session)
        return updated

    def mark_attendance(
        self, session_id: str, party_id: str, status: AttendanceStatus
    ) -> AttendanceRecord:
        """Setzt die Anwesenheit einer Person; idempotent, nur in nicht-terminalen Status."""
        if status == AttendanceStatus.EXPECTED:
            raise ScheduleValidationError(
                "Anwesenheit kann nur auf 'present' oder 'absent' gesetzt werden.",
                guard="invalid_attendance_status",
            )
        with self.store.session_lock(session_id):
            session = self.store.get_session(session_id)
            if session.is_terminal:
                raise PreconditionFailed(
                    f"Sitzung {session_id} ist abgeschlossen (Status "
                    f"'{session.status.value}'); Anwesenheit nicht mehr änderbar.",
                    guard="session_terminal",
                )
            return self.store.set_attendance(session_id, party_id, status, self.clock())

    # ─── Bedingungen ─────────────────────────────────────────────────────────

    def _check_status(
        self, session: SessionInstance, action: SessionAction, transition: Transition
    ) -> None:
        if session.status in transition.sources:
            return
        if session.is_terminal and action != SessionAction.RESCHEDULE:
            raise PreconditionFailed(
                f"Sitzung {session.id} ist bereits abgeschlossen (Status "
                f"'{session.status.value}'); kein weiterer Übergang möglich.",
                guard="session_terminal",
            )
        if action == SessionAction.START and session.status == SessionStatus.SCHEDULED:
            raise PreconditionFailed(
                f"Sitzung {session.id} muss vor dem Start initiiert werden "
                "(scheduled → pending → running).",
                guard="not_initiated",
            )
        if action == SessionAction.CANCEL and session.status == SessionStatus.RUNNING:
            raise PreconditionFailed(
                f"Sitzung {session.id} läuft bereits; Absage nicht mehr möglich, "
                "bitte stattdessen Abwesenheit melden.",
                guard="cancel_running",
            )
        allowed = ", ".join(sorted(s.value for s in transition.sources))
        raise PreconditionFailed(
            f"Aktion '{action.value}' ist im Status '{session.status.value}' nicht möglich "
            f"(erlaubt aus: {allowed}).",
            guard="invalid_status",
        )

    def _check_actor(self, session: SessionInstance, actor_id: str, role: PartyRole) -> None:
        if role == PartyRole.ADMIN:
            return
        participants = {r.party_id for r in self.store.attendance_for_session(session.id)}
        if actor_id not in participants:
            raise PreconditionFailed(
                f"{actor_id} ist weder Admin noch Teilnehmer der Sitzung {session.id}.",
                guard="not_participant",
            )

    def _check_initiation_window(self, session: SessionInstance, now: datetime) -> None:
        lead = timedelta(minutes=self.config.initiation_lead_minutes)
        opens = session.start_instant - lead
        if now < opens:
            raise PreconditionFailed(
                f"Initiieren frühestens {self.config.initiation_lead_minutes} Minuten vor "
                f"Beginn möglich (ab {opens:%Y-%m-%d %H:%M} UTC).",
                guard="initiation_too_early",
            )
        if now > session.end_instant:
            raise PreconditionFailed(
                f"Sitzung {session.id} ist bereits vorbei "
                f"(Ende {session.end_instant:%Y-%m-%d %H:%M} UTC); Initiieren nicht mehr möglich.",
                guard="initiation_too_late",
            )

    def _check_cancellation(
        self, session: SessionInstance, role: PartyRole, reason: Optional[str], now: datetime
    ) -> None:
        today = local_date(now, session.timezone)
        session_day = local_date(session.start_instant, session.timezone)
        if today >= session_day:
            raise PreconditionFailed(
                f"Absage am Sitzungstag ({session_day.isoformat()}) oder danach nicht möglich; "
                "bitte stattdessen Abwesenheit melden.",
                guard="same_day_cancel",
            )
        if (role == PartyRole.TEACHER and self.config.teacher_cancel_requires_reason
                and not reason):
            raise ScheduleValidationError(
                "Lehrkräfte müssen eine Absage begründen.", guard="reason_required"
            )

    def _check_deadline(self, deadline: Optional[datetime]) -> None:
        if deadline is not None and self.clock() > ensure_utc(deadline):
            raise DeadlineExceeded(
                f"Frist {deadline.isoformat()} überschritten; nichts wurde geändert.",
                guard="deadline_exceeded",
            )

    def _reschedule_updates(
        self, new_start: Optional[datetime], new_end: Optional[datetime]
    ) -> dict:
        if new_start is None or new_end is None:
            raise ScheduleValidationError(
                "Für eine Verlegung sind neuer Beginn und neues Ende erforderlich.",
                guard="reschedule_instants_missing",
            )
        start, end = ensure_utc(new_start), ensure_utc(new_end)
        if start >= end:
            raise ScheduleValidationError(
                "Neuer Beginn muss vor dem neuen Ende liegen.", guard="inverted_instants"
            )
        return {
            "start_instant": start,
            "end_instant": end,
            "cancellation_reason": None,
            "cancelled_by": None,
            "actual_start_instant": None,
            "actual_end_instant": None,
        }

    # ─── Benachrichtigung ────────────────────────────────────────────────────

    def notify_transition(
        self, session: SessionInstance, action: SessionAction, actor_id: str,
        previous: SessionInstance,
    ) -> None:
        recipients = [
            r.party_id for r in self.store.attendance_for_session(session.id)
            if r.party_id != actor_id
        ]
        message = (
            f"Sitzung {session.id}: {previous.status.value} → {session.status.value}"
        )
        if action == SessionAction.RESCHEDULE:
            message += (
                f" (neu: {session.start_instant:%Y-%m-%d %H:%M} UTC, "
                f"vorher {previous.start_instant:%Y-%m-%d %H:%M} UTC)"
            )
        safe_dispatch(self.notifier, NotificationEvent(
            kind="session_status_changed",
            recipients=recipients,
            title="Sitzungsstatus geändert",
            message=message,
            metadata={"session_id": session.id, "action": action.value,
                      "status": session.status.value},
            created_at=self.clock(),
        ))
