"""Tests für SchedulingStore und ProfileDirectory."""

from datetime import date
from pathlib import Path

import pytest

from data.store import SchedulingStore, load_json, save_json
from models.attendance import AttendanceStatus, PartyRole
from models.party import TeacherAvailability
from models.session import SessionInstance, SessionStatus
from models.timeslot import TimeSlot, Weekday
from scheduling.errors import ConcurrencyConflict, NotFoundError, ScheduleValidationError
from conftest import make_class, utc


def _session(session_id: str, class_id: str = "K1") -> SessionInstance:
    return SessionInstance(
        id=session_id, class_id=class_id,
        start_instant=utc(2024, 3, 11, 15, 0), end_instant=utc(2024, 3, 11, 16, 0),
        timezone="Europe/Berlin",
    )


# ─── SCHREIBEN ────────────────────────────────────────────────────────────────

class TestStoreWrites:
    def test_bulk_insert_validates_before_writing(self, store):
        store.insert_class(make_class())
        with pytest.raises(ScheduleValidationError):
            store.bulk_insert_sessions([_session("a"), _session("b"), _session("a")])
        assert store.sessions_for_class("K1") == []

    def test_bulk_insert_requires_class(self, store):
        with pytest.raises(NotFoundError):
            store.bulk_insert_sessions([_session("a", class_id="K9")])

    def test_reads_return_copies(self, store):
        store.insert_class(make_class())
        store.bulk_insert_sessions([_session("a")])
        copy = store.get_session("a")
        copy.status = SessionStatus.CANCELLED
        assert store.get_session("a").status == SessionStatus.SCHEDULED

    def test_compare_and_set(self, store):
        store.insert_class(make_class())
        store.bulk_insert_sessions([_session("a")])
        updated = store.compare_and_set_session("a", SessionStatus.SCHEDULED, status=SessionStatus.PENDING)
        assert updated.status == SessionStatus.PENDING
        with pytest.raises(ConcurrencyConflict):
            store.compare_and_set_session("a", SessionStatus.SCHEDULED, status=SessionStatus.CANCELLED)
        assert store.get_session("a").status == SessionStatus.PENDING

    def test_compare_and_set_validates_instants(self, store):
        store.insert_class(make_class())
        store.bulk_insert_sessions([_session("a")])
        with pytest.raises(ValueError):
            store.compare_and_set_session(
                "a", SessionStatus.SCHEDULED, end_instant=utc(2024, 3, 11, 14, 0),
            )

    def test_update_class(self, store):
        store.insert_class(make_class())
        updated = store.update_class("K1", generated_until=date(2024, 3, 11))
        assert updated.generated_until == date(2024, 3, 11)
        assert store.get_class("K1").generated_until == date(2024, 3, 11)


# ─── PERSISTENZ ───────────────────────────────────────────────────────────────

class TestPersistence:
    def test_save_and_load_json(self, service, store, profiles, tmp_path: Path):
        profiles.set_availability(TeacherAvailability(
            teacher_id="T01", timezone="Europe/Berlin",
            weekly_windows={Weekday.MONDAY: [TimeSlot.parse("14:00-20:00")]},
        ))
        service.generate_sessions(make_class(end=date(2024, 3, 25)))
        service.transition_session("K1_2024-03-11", "cancel", "S01")
        path = tmp_path / "data" / "bestand.json"
        save_json(path, store, profiles)
        assert path.exists()

        loaded, loaded_profiles = load_json(path)
        assert [s.id for s in loaded.sessions_for_class("K1")] == [
            s.id for s in store.sessions_for_class("K1")
        ]
        assert loaded.get_session("K1_2024-03-11").status == SessionStatus.CANCELLED
        assert loaded.get_session("K1_2024-03-18").start_instant == utc(2024, 3, 18, 15, 0)
        assert loaded.get_class("K1").assigned_student_ids == {"S01", "S02"}
        assert len(loaded.history_for_session("K1_2024-03-11")) == 1
        assert loaded_profiles.role_of("T01") == PartyRole.TEACHER
        assert loaded_profiles.availability_for("T01").windows_for(Weekday.MONDAY)[0].end_minutes == 20 * 60

    def test_load_json_nonexistent_raises(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_json(tmp_path / "fehlt.json")


# ─── PROFILE ──────────────────────────────────────────────────────────────────

class TestProfiles:
    def test_lookup(self, profiles):
        assert profiles.role_of("A01") == PartyRole.ADMIN
        assert profiles.admin_ids() == ["A01"]
        assert profiles.display_name("S01") == "Weber, Lena"
        assert profiles.display_name("X99") == "X99"
        assert len(profiles.parties(PartyRole.STUDENT)) == 3

    def test_unknown_party(self, profiles):
        with pytest.raises(NotFoundError) as exc:
            profiles.get("X99")
        assert "X99" in str(exc.value)

    def test_set_attendance_unknown_party(self, service, store):
        service.generate_sessions(make_class())
        with pytest.raises(NotFoundError):
            store.set_attendance("K1_2024-03-11", "S03", AttendanceStatus.PRESENT, utc(2024, 3, 1, 12, 0))
