"""Verlegungsanfragen: Einreichen durch Teilnehmer, Genehmigen/Ablehnen durch Admins.

Eine Genehmigung verlegt die Sitzung über den ``reschedule``-Übergang des
Zustandsautomaten. Die Dauer wird nicht angefragt, sondern von der
ursprünglichen Sitzung übernommen. Genehmigt/abgelehnt ist endgültig.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional, Union

from config.schema import RescheduleConfig, ReschedulePolicy
from data.profiles import ProfileDirectory
from data.store import SchedulingStore
from models.attendance import PartyRole
from models.reschedule import RequestStatus, RescheduleRequest, ResolveDecision
from models.session import SessionAction, SessionHistoryEntry, SessionInstance, SessionStatus
from scheduling.errors import (
    ConcurrencyConflict,
    ExpiredRequest,
    PreconditionFailed,
    ScheduleValidationError,
)
from scheduling.lifecycle import TRANSITIONS, SessionLifecycle
from scheduling.notifications import NotificationEvent, Notifier, safe_dispatch
from scheduling.timezones import ensure_utc, now_utc

logger = logging.getLogger(__name__)


class RescheduleWorkflow:
    """Genehmigungsablauf für Verlegungen."""

    def __init__(
        self,
        store: SchedulingStore,
        profiles: ProfileDirectory,
        lifecycle: SessionLifecycle,
        config: Optional[RescheduleConfig] = None,
        notifier: Optional[Notifier] = None,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.store = store
        self.profiles = profiles
        self.lifecycle = lifecycle
        self.config = config or RescheduleConfig()
        self.notifier = notifier
        self.clock = clock

    # ─── Einreichen ──────────────────────────────────────────────────────────

    def submit(
        self,
        session_id: str,
        requester_id: str,
        reason: str,
        requested_start: datetime,
    ) -> RescheduleRequest:
        reason = (reason or "").strip()
        if not reason:
            raise ScheduleValidationError(
                "Eine Verlegungsanfrage braucht eine Begründung.", guard="reason_required"
            )
        requested_start = ensure_utc(requested_start)
        now = self.clock()
        if requested_start <= now:
            raise ScheduleValidationError(
                f"Gewünschter Beginn {requested_start:%Y-%m-%d %H:%M} UTC liegt nicht in der Zukunft.",
                guard="requested_start_past",
            )
        role = self.profiles.role_of(requester_id)

        with self.store.session_lock(session_id):
            session = self.store.get_session(session_id)
            if session.is_terminal:
                raise PreconditionFailed(
                    f"Sitzung {session_id} ist abgeschlossen (Status "
                    f"'{session.status.value}'); keine Verlegung möglich.",
                    guard="session_terminal",
                )
            if session.status not in TRANSITIONS[SessionAction.RESCHEDULE].sources:
                raise PreconditionFailed(
                    f"Sitzung {session_id} ist bereits initiiert (Status "
                    f"'{session.status.value}'); Verlegung nur im Status 'scheduled' möglich.",
                    guard="session_not_scheduled",
                )
            if now >= session.start_instant:
                raise PreconditionFailed(
                    f"Sitzung {session_id} hat bereits begonnen; Verlegung nur vor Beginn möglich.",
                    guard="session_started",
                )
            if role != PartyRole.ADMIN:
                participants = {r.party_id for r in self.store.attendance_for_session(session_id)}
                if requester_id not in participants:
                    raise PreconditionFailed(
                        f"{requester_id} ist kein Teilnehmer der Sitzung {session_id}.",
                        guard="not_participant",
                    )

            request = RescheduleRequest(
                id=uuid.uuid4().hex[:12],
                session_id=session_id,
                requester_id=requester_id,
                reason=reason,
                requested_start_instant=requested_start,
                created_at=now,
            )

            existing = self.store.pending_request_for_session(session_id)
            if existing is not None:
                if self.config.policy == ReschedulePolicy.BLOCK:
                    raise PreconditionFailed(
                        f"Für Sitzung {session_id} liegt bereits eine offene Verlegungsanfrage "
                        f"vor ({existing.id}); bitte deren Entscheidung abwarten.",
                        guard="pending_request_exists",
                    )
                self.store.compare_and_set_request(
                    existing.id, RequestStatus.PENDING,
                    status=RequestStatus.REJECTED, processed_at=now,
                    superseded_by=request.id,
                )
                logger.info(f"Anfrage {existing.id} durch {request.id} ersetzt")

            stored = self.store.insert_request(request)

        logger.info(f"Verlegungsanfrage {stored.id} für Sitzung {session_id} von {requester_id}")
        safe_dispatch(self.notifier, NotificationEvent(
            kind="reschedule_requested",
            recipients=self.profiles.admin_ids(),
            title="Neue Verlegungsanfrage",
            message=(
                f"{self.profiles.display_name(requester_id)} möchte Sitzung {session_id} "
                f"von {session.start_instant:%Y-%m-%d %H:%M} auf "
                f"{requested_start:%Y-%m-%d %H:%M} UTC verlegen."
            ),
            level="warning",
            metadata={"request_id": stored.id, "session_id": session_id},
            created_at=now,
        ))
        return stored

    # ─── Entscheiden ─────────────────────────────────────────────────────────

    def resolve(
        self,
        request_id: str,
        approver_id: str,
        decision: Union[ResolveDecision, str],
    ) -> Union[SessionInstance, RescheduleRequest]:
        """Genehmigt (→ verlegte Sitzung) oder lehnt ab (→ Anfrage)."""
        decision = ResolveDecision(decision)
        if decision == ResolveDecision.APPROVE:
            return self.approve(request_id, approver_id)
        return self.reject(request_id, approver_id)

    def approve(self, request_id: str, approver_id: str) -> SessionInstance:
        self._check_admin(approver_id)
        with self._decision_locks(request_id):
            request = self._pending(request_id)
            now = self.clock()
            if request.requested_start_instant <= now:
                raise ExpiredRequest(
                    f"Gewünschter Beginn {request.requested_start_instant:%Y-%m-%d %H:%M} UTC "
                    "ist inzwischen vergangen; Anfrage ablehnen oder neu einreichen.",
                    guard="request_expired",
                )
            original = self.store.get_session(request.session_id)
            new_start = request.requested_start_instant
            new_end = new_start + original.duration

            session = self.lifecycle.apply(
                request.session_id, SessionAction.RESCHEDULE, approver_id,
                new_start=new_start, new_end=new_end, notify=False,
            )
            try:
                self.store.compare_and_set_request(
                    request_id, RequestStatus.PENDING,
                    status=RequestStatus.APPROVED, processed_by=approver_id, processed_at=now,
                )
            except ConcurrencyConflict:
                self._restore(original, approver_id, now)
                raise

        logger.info(f"Verlegungsanfrage {request_id} genehmigt durch {approver_id}")
        self.lifecycle.notify_transition(
            session, SessionAction.RESCHEDULE, approver_id, previous=original
        )
        participants = [r.party_id for r in self.store.attendance_for_session(session.id)]
        safe_dispatch(self.notifier, NotificationEvent(
            kind="reschedule_approved",
            recipients=participants,
            title="Sitzung verlegt",
            message=(
                f"Sitzung {session.id} wurde von {original.start_instant:%Y-%m-%d %H:%M} "
                f"auf {session.start_instant:%Y-%m-%d %H:%M} UTC verlegt."
            ),
            metadata={"request_id": request_id, "session_id": session.id},
            created_at=now,
        ))
        return session

    def reject(self, request_id: str, approver_id: str) -> RescheduleRequest:
        self._check_admin(approver_id)
        with self._decision_locks(request_id):
            self._pending(request_id)
            now = self.clock()
            request = self.store.compare_and_set_request(
                request_id, RequestStatus.PENDING,
                status=RequestStatus.REJECTED, processed_by=approver_id, processed_at=now,
            )
        logger.info(f"Verlegungsanfrage {request_id} abgelehnt durch {approver_id}")
        safe_dispatch(self.notifier, NotificationEvent(
            kind="reschedule_rejected",
            recipients=[request.requester_id],
            title="Verlegung abgelehnt",
            message=f"Die Verlegung der Sitzung {request.session_id} wurde abgelehnt.",
            metadata={"request_id": request_id, "session_id": request.session_id},
            created_at=now,
        ))
        return request

    # ─── Hilfsfunktionen ─────────────────────────────────────────────────────

    @contextmanager
    def _decision_locks(self, request_id: str) -> Iterator[None]:
        """Sperrt Sitzung und Anfrage, in derselben Reihenfolge wie ``submit``."""
        session_id = self.store.get_request(request_id).session_id
        with self.store.session_lock(session_id), self.store.request_lock(request_id):
            yield

    def _restore(self, original: SessionInstance, approver_id: str, now: datetime) -> None:
        # Anfrage wurde parallel entschieden → Verlegung zurücknehmen
        self.store.compare_and_set_session(
            original.id, SessionStatus.SCHEDULED, **original.model_dump()
        )
        self.store.append_history(SessionHistoryEntry(
            session_id=original.id, action=SessionAction.RESCHEDULE, actor_id=approver_id,
            note="Verlegung zurückgenommen", created_at=now,
        ))
        logger.warning(
            f"Sitzung {original.id}: Anfrage parallel entschieden, Verlegung zurückgenommen"
        )

    def _check_admin(self, approver_id: str) -> None:
        if self.profiles.role_of(approver_id) != PartyRole.ADMIN:
            raise PreconditionFailed(
                f"Nur Admins dürfen über Verlegungen entscheiden ({approver_id} ist kein Admin).",
                guard="admin_required",
            )

    def _pending(self, request_id: str) -> RescheduleRequest:
        request = self.store.get_request(request_id)
        if request.is_terminal:
            raise PreconditionFailed(
                f"Verlegungsanfrage {request_id} ist bereits entschieden "
                f"(Status '{request.status.value}').",
                guard="request_terminal",
            )
        return request
