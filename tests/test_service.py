"""Tests für SchedulingService: Anlegen mit Kompensation, Fortschreiben, Löschen."""

from datetime import date

import pytest

from config.schema import GenerationConfig, TutoringConfig
from data.store import SchedulingStore
from models.attendance import AttendanceStatus
from scheduling.errors import NotFoundError, PartialFailure, ScheduleValidationError
from scheduling.service import SchedulingService
from conftest import make_class


# ─── ANLEGEN ──────────────────────────────────────────────────────────────────

class TestGenerateSessions:
    def test_persists_class_sessions_and_attendance(self, service, store):
        sessions = service.generate_sessions(make_class(end=date(2024, 3, 25)))
        assert [s.id for s in sessions] == ["K1_2024-03-11", "K1_2024-03-18", "K1_2024-03-25"]
        assert store.get_class("K1").generated_until == date(2024, 3, 25)
        records = store.attendance_for_session("K1_2024-03-18")
        assert {r.party_id for r in records} == {"T01", "S01", "S02"}
        assert all(r.attendance_status == AttendanceStatus.EXPECTED for r in records)

    def test_failure_rolls_back_everything(self, profiles, clock):
        class FailingStore(SchedulingStore):
            def bulk_insert_attendance(self, records):
                raise RuntimeError("Verbindung verloren")

        store = FailingStore()
        service = SchedulingService(store, profiles, TutoringConfig(), clock=clock)
        with pytest.raises(PartialFailure) as exc:
            service.generate_sessions(make_class(end=date(2024, 3, 25)))

        assert isinstance(exc.value.cause, RuntimeError)
        assert exc.value.rolled_back == ["sessions", "class"]
        assert store.list_classes() == []
        assert store.sessions_for_class("K1") == []

    def test_failure_on_generated_until_rolls_back(self, profiles, clock):
        class FailingStore(SchedulingStore):
            def update_class(self, class_id, **updates):
                raise RuntimeError("Schreibfehler")

        store = FailingStore()
        service = SchedulingService(store, profiles, TutoringConfig(), clock=clock)
        with pytest.raises(PartialFailure) as exc:
            service.generate_sessions(make_class())
        assert exc.value.rolled_back == ["attendance", "sessions", "class"]
        assert store.attendance_for_session("K1_2024-03-11") == []

    def test_duplicate_class_id(self, service, store):
        service.generate_sessions(make_class())
        with pytest.raises(ScheduleValidationError) as exc:
            service.generate_sessions(make_class(end=date(2024, 3, 25)))
        assert exc.value.guard == "duplicate_class"
        assert len(store.sessions_for_class("K1")) == 1

    def test_unknown_participant(self, service, store):
        with pytest.raises(NotFoundError):
            service.generate_sessions(make_class(students=("S99",)))
        assert store.list_classes() == []

    def test_wrong_role(self, service):
        with pytest.raises(ScheduleValidationError) as exc:
            service.generate_sessions(make_class(teachers=("S01",), students=()))
        assert exc.value.guard == "wrong_role"

    def test_invalid_timezone_rejected_at_class_creation(self):
        with pytest.raises(ValueError):
            make_class(tz="Europe/Atlantis")

    def test_inverted_date_range_rejected(self):
        with pytest.raises(ValueError):
            make_class(start=date(2024, 3, 11), end=date(2024, 3, 1))


# ─── FORTSCHREIBEN ────────────────────────────────────────────────────────────

class TestExtendSessions:
    def test_extend_open_ended_class(self, store, profiles, clock):
        config = TutoringConfig(generation=GenerationConfig(window_days=7))
        service = SchedulingService(store, profiles, config, clock=clock)
        first = service.generate_sessions(make_class(end=None))
        assert [s.id for s in first] == ["K1_2024-03-11"]

        added = service.extend_sessions("K1", date(2024, 3, 31))
        assert [s.id for s in added] == ["K1_2024-03-18"]
        assert store.get_class("K1").generated_until == date(2024, 3, 24)
        assert len(store.sessions_for_class("K1")) == 2

    def test_extend_finished_class_is_noop(self, service):
        service.generate_sessions(make_class())
        assert service.extend_sessions("K1", date(2024, 12, 31)) == []

    def test_extend_unknown_class(self, service):
        with pytest.raises(NotFoundError):
            service.extend_sessions("K9", date(2024, 12, 31))


# ─── LÖSCHEN ──────────────────────────────────────────────────────────────────

class TestDeleteClass:
    def test_cascade(self, service, store):
        service.generate_sessions(make_class(end=date(2024, 3, 25)))
        service.transition_session("K1_2024-03-11", "cancel", "A01")
        service.submit_reschedule("K1_2024-03-18", "S01", "Klassenfahrt",
                                  store.get_session("K1_2024-03-25").start_instant)

        counts = service.delete_class("K1")
        assert counts == {"sessions": 3, "attendance": 9, "history": 1, "requests": 1}
        assert store.list_classes() == []
        assert store.sessions_for_party("S01") == []
        assert store.list_requests() == []

    def test_delete_keeps_other_classes(self, service, store):
        service.generate_sessions(make_class())
        service.generate_sessions(make_class("K2", schedule={"tuesday": "16:00-17:00"},
                                             start=date(2024, 3, 12), end=date(2024, 3, 12)))
        service.delete_class("K1")
        assert [s.id for s in store.sessions_for_party("T01")] == ["K2_2024-03-12"]

    def test_delete_unknown(self, service):
        with pytest.raises(NotFoundError):
            service.delete_class("K9")
