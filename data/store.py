"""SchedulingStore: thread-sicherer Datenbestand für Kurse, Sitzungen, Anwesenheit
und Verlegungsanfragen.

Schreibende Statusänderungen laufen ausschließlich über Compare-and-Set
(``compare_and_set_session`` / ``compare_and_set_request``): der Wert wird nur
übernommen, wenn der gespeicherte Status dem erwarteten entspricht. Zusätzlich
gibt es pro Sitzung und pro Anfrage ein re-entrantes Lock, unter dem ein
kompletter Übergang (Prüfung + Nebeneffekte + Statuswechsel) läuft.

Alle Lesezugriffe liefern Kopien; Änderungen an zurückgegebenen Objekten
wirken nie auf den Bestand.
"""

import json
import threading
from collections import defaultdict
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional

from pydantic import BaseModel

from models.attendance import AttendanceRecord, AttendanceStatus
from models.class_definition import ClassDefinition
from models.party import Party, TeacherAvailability
from models.reschedule import RequestStatus, RescheduleRequest
from models.session import SessionHistoryEntry, SessionInstance, SessionStatus
from scheduling.errors import ConcurrencyConflict, NotFoundError, ScheduleValidationError


class StoreSnapshot(BaseModel):
    """Serialisierbarer Gesamtbestand (JSON-Datei)."""

    classes: list[ClassDefinition] = []
    sessions: list[SessionInstance] = []
    attendance: list[AttendanceRecord] = []
    requests: list[RescheduleRequest] = []
    history: list[SessionHistoryEntry] = []
    parties: list[Party] = []
    availability: list[TeacherAvailability] = []
    saved_at: Optional[datetime] = None
    data_version: str = "1.0"


class SchedulingStore:
    """In-Memory-Bestand mit atomaren bedingten Updates und Bulk-Inserts."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._classes: dict[str, ClassDefinition] = {}
        self._sessions: dict[str, SessionInstance] = {}
        self._attendance: dict[tuple[str, str], AttendanceRecord] = {}
        self._requests: dict[str, RescheduleRequest] = {}
        self._history: list[SessionHistoryEntry] = []
        self._session_locks: dict[str, threading.RLock] = defaultdict(threading.RLock)
        self._request_locks: dict[str, threading.RLock] = defaultdict(threading.RLock)

    # ─── Locks ───────────────────────────────────────────────────────────────

    @contextmanager
    def session_lock(self, session_id: str) -> Iterator[None]:
        """Gegenseitiger Ausschluss für alle Übergänge derselben Sitzung.

        Wer beide Locks braucht, nimmt zuerst den der Sitzung, dann den der Anfrage.
        """
        with self._lock:
            lock = self._session_locks[session_id]
        with lock:
            yield

    @contextmanager
    def request_lock(self, request_id: str) -> Iterator[None]:
        with self._lock:
            lock = self._request_locks[request_id]
        with lock:
            yield

    # ─── Kurse ───────────────────────────────────────────────────────────────

    def insert_class(self, class_def: ClassDefinition) -> ClassDefinition:
        with self._lock:
            if class_def.id in self._classes:
                raise ScheduleValidationError(
                    f"Kurs-ID '{class_def.id}' existiert bereits.", guard="duplicate_class"
                )
            self._classes[class_def.id] = class_def.model_copy(deep=True)
            return class_def.model_copy(deep=True)

    def get_class(self, class_id: str) -> ClassDefinition:
        with self._lock:
            if class_id not in self._classes:
                raise NotFoundError(f"Kurs '{class_id}' nicht gefunden.")
            return self._classes[class_id].model_copy(deep=True)

    def list_classes(self) -> list[ClassDefinition]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self._classes.values()]

    def update_class(self, class_id: str, **updates) -> ClassDefinition:
        with self._lock:
            current = self.get_class(class_id)
            updated = ClassDefinition.model_validate({**current.model_dump(), **updates})
            self._classes[class_id] = updated
            return updated.model_copy(deep=True)

    def delete_class(self, class_id: str) -> dict[str, int]:
        """Löscht einen Kurs samt Sitzungen, Anwesenheit, Verlauf und Anfragen."""
        with self._lock:
            if class_id not in self._classes:
                raise NotFoundError(f"Kurs '{class_id}' nicht gefunden.")
            session_ids = [s.id for s in self._sessions.values() if s.class_id == class_id]
            counts = self.delete_sessions(session_ids)
            del self._classes[class_id]
            return counts

    # ─── Sitzungen ───────────────────────────────────────────────────────────

    def bulk_insert_sessions(self, sessions: Iterable[SessionInstance]) -> list[SessionInstance]:
        """Fügt alle Sitzungen ein oder keine (Prüfung vor dem ersten Schreiben)."""
        batch = list(sessions)
        with self._lock:
            seen: set[str] = set()
            for s in batch:
                if s.class_id not in self._classes:
                    raise NotFoundError(f"Kurs '{s.class_id}' zu Sitzung {s.id} nicht gefunden.")
                if s.id in self._sessions or s.id in seen:
                    raise ScheduleValidationError(
                        f"Sitzungs-ID '{s.id}' ist doppelt.", guard="duplicate_session"
                    )
                seen.add(s.id)
            for s in batch:
                self._sessions[s.id] = s.model_copy(deep=True)
            return [s.model_copy(deep=True) for s in batch]

    def get_session(self, session_id: str) -> SessionInstance:
        with self._lock:
            if session_id not in self._sessions:
                raise NotFoundError(f"Sitzung '{session_id}' nicht gefunden.")
            return self._sessions[session_id].model_copy(deep=True)

    def sessions_for_class(self, class_id: str) -> list[SessionInstance]:
        with self._lock:
            found = [s for s in self._sessions.values() if s.class_id == class_id]
            return [s.model_copy(deep=True) for s in sorted(found, key=lambda s: s.start_instant)]

    def sessions_for_party(self, party_id: str) -> list[SessionInstance]:
        """Alle Sitzungen einer Person über alle Kurse (über die Anwesenheitseinträge)."""
        with self._lock:
            ids = {sid for (sid, pid) in self._attendance if pid == party_id}
            found = [self._sessions[sid] for sid in ids if sid in self._sessions]
            return [s.model_copy(deep=True) for s in sorted(found, key=lambda s: s.start_instant)]

    def compare_and_set_session(
        self, session_id: str, expected_status: SessionStatus, **updates
    ) -> SessionInstance:
        """Übernimmt ``updates`` nur, wenn der gespeicherte Status ``expected_status`` ist."""
        with self.session_lock(session_id), self._lock:
            current = self.get_session(session_id)
            if current.status != expected_status:
                raise ConcurrencyConflict(
                    f"Sitzung {session_id} hat inzwischen Status '{current.status.value}' "
                    f"(erwartet '{expected_status.value}'). Bitte neu laden.",
                    guard="status_changed",
                )
            updated = SessionInstance.model_validate({**current.model_dump(), **updates})
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)

    def delete_sessions(self, session_ids: Iterable[str]) -> dict[str, int]:
        ids = set(session_ids)
        with self._lock:
            n_sessions = 0
            for sid in ids:
                if self._sessions.pop(sid, None) is not None:
                    n_sessions += 1
            n_attendance = self.delete_attendance(ids)
            before_history = len(self._history)
            self._history = [h for h in self._history if h.session_id not in ids]
            request_ids = [r.id for r in self._requests.values() if r.session_id in ids]
            for rid in request_ids:
                del self._requests[rid]
            return {
                "sessions": n_sessions,
                "attendance": n_attendance,
                "history": before_history - len(self._history),
                "requests": len(request_ids),
            }

    # ─── Anwesenheit ─────────────────────────────────────────────────────────

    def bulk_insert_attendance(self, records: Iterable[AttendanceRecord]) -> list[AttendanceRecord]:
        batch = list(records)
        with self._lock:
            seen: set[tuple[str, str]] = set()
            for r in batch:
                if r.session_id not in self._sessions:
                    raise NotFoundError(f"Sitzung '{r.session_id}' nicht gefunden.")
                if r.key in self._attendance or r.key in seen:
                    raise ScheduleValidationError(
                        f"Anwesenheit für ({r.session_id}, {r.party_id}) existiert bereits.",
                        guard="duplicate_attendance",
                    )
                seen.add(r.key)
            for r in batch:
                self._attendance[r.key] = r.model_copy(deep=True)
            return [r.model_copy(deep=True) for r in batch]

    def attendance_for_session(self, session_id: str) -> list[AttendanceRecord]:
        with self._lock:
            found = [r for (sid, _), r in self._attendance.items() if sid == session_id]
            return [r.model_copy(deep=True) for r in sorted(found, key=lambda r: (r.party_role.value, r.party_id))]

    def get_attendance(self, session_id: str, party_id: str) -> AttendanceRecord:
        with self._lock:
            record = self._attendance.get((session_id, party_id))
            if record is None:
                raise NotFoundError(
                    f"{party_id} ist kein Teilnehmer der Sitzung {session_id}."
                )
            return record.model_copy(deep=True)

    def set_attendance(
        self, session_id: str, party_id: str, status: AttendanceStatus, at: datetime
    ) -> AttendanceRecord:
        with self._lock:
            record = self.get_attendance(session_id, party_id)
            updated = record.model_copy(update={"attendance_status": status, "updated_at": at})
            self._attendance[record.key] = updated
            return updated.model_copy(deep=True)

    def bulk_set_attendance(
        self, session_id: str, status: AttendanceStatus, at: datetime
    ) -> list[AttendanceRecord]:
        """Setzt alle Einträge einer Sitzung auf ``status`` (ein Schreibvorgang)."""
        with self._lock:
            keys = [k for k in self._attendance if k[0] == session_id]
            for k in keys:
                self._attendance[k] = self._attendance[k].model_copy(
                    update={"attendance_status": status, "updated_at": at}
                )
            return self.attendance_for_session(session_id)

    def delete_attendance(self, session_ids: Iterable[str]) -> int:
        ids = set(session_ids)
        with self._lock:
            keys = [k for k in self._attendance if k[0] in ids]
            for k in keys:
                del self._attendance[k]
            return len(keys)

    # ─── Verlegungsanfragen ──────────────────────────────────────────────────

    def insert_request(self, request: RescheduleRequest) -> RescheduleRequest:
        with self._lock:
            if request.id in self._requests:
                raise ScheduleValidationError(
                    f"Anfrage-ID '{request.id}' existiert bereits.", guard="duplicate_request"
                )
            if request.session_id not in self._sessions:
                raise NotFoundError(f"Sitzung '{request.session_id}' nicht gefunden.")
            self._requests[request.id] = request.model_copy(deep=True)
            return request.model_copy(deep=True)

    def get_request(self, request_id: str) -> RescheduleRequest:
        with self._lock:
            if request_id not in self._requests:
                raise NotFoundError(f"Verlegungsanfrage '{request_id}' nicht gefunden.")
            return self._requests[request_id].model_copy(deep=True)

    def list_requests(self, status: Optional[RequestStatus] = None) -> list[RescheduleRequest]:
        with self._lock:
            found = [r for r in self._requests.values() if status is None or r.status == status]
            return [r.model_copy(deep=True) for r in sorted(found, key=lambda r: r.created_at)]

    def pending_request_for_session(self, session_id: str) -> Optional[RescheduleRequest]:
        with self._lock:
            for r in self._requests.values():
                if r.session_id == session_id and r.status == RequestStatus.PENDING:
                    return r.model_copy(deep=True)
            return None

    def compare_and_set_request(
        self, request_id: str, expected_status: RequestStatus, **updates
    ) -> RescheduleRequest:
        with self.request_lock(request_id), self._lock:
            current = self.get_request(request_id)
            if current.status != expected_status:
                raise ConcurrencyConflict(
                    f"Verlegungsanfrage {request_id} hat inzwischen Status "
                    f"'{current.status.value}' (erwartet '{expected_status.value}').",
                    guard="request_status_changed",
                )
            updated = RescheduleRequest.model_validate({**current.model_dump(), **updates})
            self._requests[request_id] = updated
            return updated.model_copy(deep=True)

    # ─── Verlauf ─────────────────────────────────────────────────────────────

    def append_history(self, entry: SessionHistoryEntry) -> None:
        with self._lock:
            self._history.append(entry.model_copy(deep=True))

    def history_for_session(self, session_id: str) -> list[SessionHistoryEntry]:
        with self._lock:
            return [h.model_copy(deep=True) for h in self._history if h.session_id == session_id]

    # ─── Serialisierung ──────────────────────────────────────────────────────

    def snapshot(self) -> StoreSnapshot:
        with self._lock:
            return StoreSnapshot(
                classes=list(self._classes.values()),
                sessions=list(self._sessions.values()),
                attendance=list(self._attendance.values()),
                requests=list(self._requests.values()),
                history=list(self._history),
            ).model_copy(deep=True)

    @classmethod
    def from_snapshot(cls, snapshot: StoreSnapshot) -> "SchedulingStore":
        store = cls()
        for c in snapshot.classes:
            store._classes[c.id] = c
        for s in snapshot.sessions:
            store._sessions[s.id] = s
        for r in snapshot.attendance:
            store._attendance[r.key] = r
        for q in snapshot.requests:
            store._requests[q.id] = q
        store._history = list(snapshot.history)
        return store


def save_json(path: Path, store: SchedulingStore, profiles=None) -> None:
    """Speichert Bestand (und optional Profile) als JSON-Datei."""
    from scheduling.timezones import now_utc

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    snapshot = store.snapshot()
    if profiles is not None:
        snapshot.parties = profiles.parties()
        snapshot.availability = profiles.all_availability()
    snapshot.saved_at = now_utc()
    with open(path, "w", encoding="utf-8") as f:
        f.write(snapshot.model_dump_json(indent=2))


def load_json(path: Path):
    """Lädt Bestand und Profile aus einer JSON-Datei.

    Returns:
        (SchedulingStore, ProfileDirectory)
    """
    from data.profiles import ProfileDirectory

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Datenbestand nicht gefunden: {path}")
    with open(path, "r", encoding="utf-8") as f:
        snapshot = StoreSnapshot.model_validate(json.load(f))
    profiles = ProfileDirectory(snapshot.parties, snapshot.availability)
    return SchedulingStore.from_snapshot(snapshot), profiles
