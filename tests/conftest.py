"""Gemeinsame Fixtures: Personen, feste Uhr, Kurs-Fabrik, Service."""

from datetime import date, datetime, timedelta

import pytest
import pytz

from config.schema import TutoringConfig
from data.profiles import ProfileDirectory
from data.store import SchedulingStore
from models.attendance import PartyRole
from models.class_definition import ClassDefinition
from models.party import Party
from models.timeslot import WeeklySchedule
from scheduling.notifications import InMemoryNotifier
from scheduling.service import SchedulingService


def utc(*args) -> datetime:
    return pytz.UTC.localize(datetime(*args))


class FixedClock:
    """Steuerbare Uhr für deterministische Tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_class(
    class_id: str = "K1",
    schedule=None,
    start: date = date(2024, 3, 11),
    end=date(2024, 3, 11),
    tz: str = "Europe/Berlin",
    teachers=("T01",),
    students=("S01", "S02"),
) -> ClassDefinition:
    """Standard: ein Montagstermin 16:00–17:00 Europe/Berlin (= 15:00–16:00 UTC)."""
    return ClassDefinition(
        id=class_id,
        title=f"Mathematik {class_id}",
        subject="Mathematik",
        start_date=start,
        end_date=end,
        timezone=tz,
        weekly_schedule=WeeklySchedule.from_mapping(schedule or {"monday": "16:00-17:00"}),
        assigned_teacher_ids=set(teachers),
        assigned_student_ids=set(students),
    )


def make_profiles() -> ProfileDirectory:
    return ProfileDirectory([
        Party(id="A01", role=PartyRole.ADMIN, display_name="Verwaltung"),
        Party(id="T01", role=PartyRole.TEACHER, display_name="Müller, Anna"),
        Party(id="T02", role=PartyRole.TEACHER, display_name="Schmidt, Peter"),
        Party(id="S01", role=PartyRole.STUDENT, display_name="Weber, Lena"),
        Party(id="S02", role=PartyRole.STUDENT, display_name="Koch, Tobias"),
        Party(id="S03", role=PartyRole.STUDENT, display_name="Braun, Zoe"),
    ])


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(utc(2024, 3, 1, 12, 0))


@pytest.fixture
def profiles() -> ProfileDirectory:
    return make_profiles()


@pytest.fixture
def store() -> SchedulingStore:
    return SchedulingStore()


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def config() -> TutoringConfig:
    return TutoringConfig()


@pytest.fixture
def service(store, profiles, config, notifier, clock) -> SchedulingService:
    return SchedulingService(store, profiles, config, notifier=notifier, clock=clock)
