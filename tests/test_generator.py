"""Tests für die Erzeugung wiederkehrender Sitzungen."""

from datetime import date, time, timedelta

import pytest

from config.schema import GenerationConfig
from models.attendance import AttendanceStatus, PartyRole
from models.session import SessionStatus
from models.timeslot import TimeSlot, Weekday, WeeklySchedule
from scheduling.generator import (
    SessionGenerator,
    expand_schedule,
    iter_dates,
    session_id_for,
)
from scheduling.timezones import utc_to_local
from conftest import make_class, utc


MON_WED_9 = {"monday": "09:00-10:00", "wednesday": "09:00-10:00"}


# ─── RASTER-EXPANSION ─────────────────────────────────────────────────────────

class TestExpandSchedule:
    def test_algebra_scenario(self):
        """Mo/Mi 09:00 Toronto, 08.–13.03.2024: Freitag ohne Termin, beide nach Umstellung."""
        schedule = WeeklySchedule.from_mapping(MON_WED_9)
        slots = expand_schedule(schedule, date(2024, 3, 8), date(2024, 3, 13), "America/Toronto")
        assert [s.local_date for s in slots] == [date(2024, 3, 11), date(2024, 3, 13)]
        assert [s.start_instant for s in slots] == [utc(2024, 3, 11, 13, 0), utc(2024, 3, 13, 13, 0)]
        assert all(s.end_instant - s.start_instant == timedelta(hours=1) for s in slots)

    def test_dst_spanning_range_changes_utc_offset(self):
        """Gleiche Wanduhrzeit, unterschiedliche UTC-Zeit vor und nach dem 10.03.2024."""
        schedule = WeeklySchedule.from_mapping(MON_WED_9)
        slots = expand_schedule(schedule, date(2024, 3, 4), date(2024, 3, 13), "America/Toronto")
        assert [s.start_instant for s in slots] == [
            utc(2024, 3, 4, 14, 0),
            utc(2024, 3, 6, 14, 0),
            utc(2024, 3, 11, 13, 0),
            utc(2024, 3, 13, 13, 0),
        ]
        for s in slots:
            assert utc_to_local(s.start_instant, "America/Toronto")[1] == time(9, 0)

    def test_friday_late_slot_ends_on_saturday(self):
        """Fr 23:30–00:00 endet lokal am Samstag um Mitternacht."""
        schedule = WeeklySchedule.from_mapping({"friday": "23:30-00:00"})
        slots = expand_schedule(schedule, date(2024, 1, 1), date(2024, 1, 7), "Europe/Berlin")
        assert len(slots) == 1
        slot = slots[0]
        assert slot.local_date == date(2024, 1, 5)
        assert slot.weekday == Weekday.FRIDAY
        assert slot.start_instant == utc(2024, 1, 5, 22, 30)
        assert slot.end_instant == utc(2024, 1, 5, 23, 0)
        assert utc_to_local(slot.end_instant, "Europe/Berlin") == (date(2024, 1, 6), time(0, 0))

    def test_local_weekday_kept_when_utc_day_differs(self):
        """Fr 23:30 Toronto liegt in UTC schon am Samstag; maßgeblich bleibt der Freitag."""
        schedule = WeeklySchedule.from_mapping({"friday": "23:30-00:00"})
        slots = expand_schedule(schedule, date(2024, 1, 5), date(2024, 1, 5), "America/Toronto")
        assert slots[0].local_date == date(2024, 1, 5)
        assert slots[0].start_instant == utc(2024, 1, 6, 4, 30)
        assert slots[0].end_instant == utc(2024, 1, 6, 5, 0)

    def test_count_matches_scheduled_weekdays(self):
        """Januar 2024: 5 Montage + 4 Donnerstage = 9 Termine."""
        schedule = WeeklySchedule.from_mapping({"mon": "16:00-17:00", "thu": "16:00-17:00"})
        start, end = date(2024, 1, 1), date(2024, 1, 31)
        slots = expand_schedule(schedule, start, end, "Europe/Berlin")
        expected = sum(1 for d in iter_dates(start, end) if d.weekday() in (0, 3))
        assert len(slots) == expected == 9

    def test_slot_in_dst_gap_keeps_nominal_duration(self):
        """Beginn 02:00 am Umstellungssonntag wird verschoben, Dauer bleibt 60 Minuten."""
        schedule = WeeklySchedule.from_mapping({"sunday": "02:00-03:00"})
        slots = expand_schedule(schedule, date(2024, 3, 31), date(2024, 3, 31), "Europe/Berlin")
        assert slots[0].start_instant == utc(2024, 3, 31, 1, 0)
        assert slots[0].end_instant - slots[0].start_instant == timedelta(minutes=60)

    def test_empty_range(self):
        schedule = WeeklySchedule.from_mapping(MON_WED_9)
        assert expand_schedule(schedule, date(2024, 3, 12), date(2024, 3, 12), "America/Toronto") == []


# ─── ZEITFENSTER-MODELL ───────────────────────────────────────────────────────

class TestTimeSlot:
    def test_parse_and_str(self):
        slot = TimeSlot.parse("09:00-10:30")
        assert slot.duration_minutes == 90
        assert str(slot) == "09:00-10:30"

    def test_midnight_end_allowed(self):
        slot = TimeSlot.parse("23:30-00:00")
        assert slot.spans_midnight
        assert slot.duration_minutes == 30

    def test_inverted_slot_rejected(self):
        with pytest.raises(ValueError):
            TimeSlot.parse("10:00-09:00")

    def test_equal_start_end_rejected(self):
        with pytest.raises(ValueError):
            TimeSlot.parse("10:00-10:00")

    def test_weekday_aliases(self):
        assert Weekday.parse("Mo") == Weekday.MONDAY
        assert Weekday.parse("thu") == Weekday.THURSDAY
        assert Weekday.parse("Sonntag") == Weekday.SUNDAY

    def test_unknown_weekday_rejected(self):
        with pytest.raises(ValueError):
            WeeklySchedule.from_mapping({"someday": "09:00-10:00"})


# ─── GENERATOR ────────────────────────────────────────────────────────────────

class TestSessionGenerator:
    def test_sessions_and_attendance_drafts(self):
        """Pro Sitzung ein 'expected'-Eintrag je Lehrkraft und Schüler."""
        class_def = make_class(
            schedule=MON_WED_9, start=date(2024, 3, 8), end=date(2024, 3, 13),
            tz="America/Toronto", teachers=("T01",), students=("S01", "S02"),
        )
        result = SessionGenerator().generate(class_def)
        assert [s.id for s in result.sessions] == ["K1_2024-03-11", "K1_2024-03-13"]
        assert all(s.status == SessionStatus.SCHEDULED for s in result.sessions)
        assert all(s.timezone == "America/Toronto" for s in result.sessions)
        assert len(result.attendance) == 6
        assert all(r.attendance_status == AttendanceStatus.EXPECTED for r in result.attendance)
        roles = [r.party_role for r in result.attendance if r.session_id == "K1_2024-03-11"]
        assert roles == [PartyRole.TEACHER, PartyRole.STUDENT, PartyRole.STUDENT]
        assert result.generated_until == date(2024, 3, 13)
        assert result.complete

    def test_session_id_is_local_date(self):
        assert session_id_for("K7", date(2024, 1, 5)) == "K7_2024-01-05"

    def test_open_ended_class_is_windowed(self):
        class_def = make_class(start=date(2024, 1, 1), end=None)
        generator = SessionGenerator(GenerationConfig(window_days=14))
        result = generator.generate(class_def)
        assert [s.id for s in result.sessions] == ["K1_2024-01-01", "K1_2024-01-08"]
        assert result.generated_until == date(2024, 1, 14)
        assert not result.complete

    def test_window_limited_by_end_date(self):
        class_def = make_class(start=date(2024, 1, 1), end=date(2024, 1, 10))
        result = SessionGenerator(GenerationConfig(window_days=30)).generate(class_def)
        assert result.generated_until == date(2024, 1, 10)
        assert result.complete

    def test_extend_continues_after_generated_until(self):
        class_def = make_class(start=date(2024, 1, 1), end=None)
        generator = SessionGenerator(GenerationConfig(window_days=7))
        first = generator.generate(class_def)
        assert [s.id for s in first.sessions] == ["K1_2024-01-01"]

        class_def = class_def.model_copy(update={"generated_until": first.generated_until})
        second = generator.extend(class_def, until=date(2024, 2, 1))
        assert [s.id for s in second.sessions] == ["K1_2024-01-08"]
        assert second.generated_until == date(2024, 1, 14)

    def test_extend_respects_until(self):
        class_def = make_class(start=date(2024, 1, 1), end=None, schedule={"tuesday": "16:00-17:00"})
        class_def = class_def.model_copy(update={"generated_until": date(2024, 1, 7)})
        result = SessionGenerator(GenerationConfig(window_days=30)).extend(class_def, until=date(2024, 1, 10))
        assert [s.id for s in result.sessions] == ["K1_2024-01-09"]
        assert result.generated_until == date(2024, 1, 10)

    def test_extend_past_end_date_is_noop(self):
        class_def = make_class(start=date(2024, 1, 1), end=date(2024, 1, 8))
        class_def = class_def.model_copy(update={"generated_until": date(2024, 1, 8)})
        result = SessionGenerator().extend(class_def, until=date(2024, 3, 1))
        assert result.sessions == []
        assert result.generated_until is None
        assert result.complete
