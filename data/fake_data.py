"""Testdaten-Generator für die Nachhilfe-Terminplanung.

Erzeugt Lehrkräfte, Schüler, einen Admin, Verfügbarkeiten und Kurse mit
absichtlichen Engpässen, damit Konfliktprüfung und Zeitzonen-Logik etwas zu
tun haben.

Absichtliche Engpässe:
  1. Doppelbuchung: ein Schüler sitzt in zwei Kursen zur selben Zeit
  2. Eingeschränkte Lehrkraft: nur Di/Do verfügbar, bekommt aber einen Mo-Kurs
  3. Späte Kurse: Beginn 23:00 → Ende um Mitternacht am Folgetag
  4. Zonenmix: Kurse in Europe/Berlin, America/Toronto und Asia/Dubai
     (Sommerzeitumstellungen fallen auf verschiedene Wochenenden)
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
import random
from typing import Optional

from config.defaults import DEMO_TIMEZONES, START_TIMES, SUBJECT_METADATA
from config.schema import TutoringConfig
from models.attendance import PartyRole
from models.class_definition import ClassDefinition
from models.party import Party, TeacherAvailability
from models.timeslot import MIDNIGHT, TimeSlot, Weekday, WeeklySchedule

logger = logging.getLogger(__name__)

# ─── Namens-Listen ────────────────────────────────────────────────────────────

_FIRST_NAMES_M = [
    "Andreas", "Bernd", "Christian", "Dieter", "Franz", "Hans", "Jürgen",
    "Klaus", "Ludwig", "Markus", "Michael", "Norbert", "Peter", "Stefan",
    "Thomas", "Tobias", "Ulrich", "Werner", "Yusuf", "Martin", "Robert",
]

_FIRST_NAMES_F = [
    "Anna", "Birgit", "Christine", "Eva", "Gabi", "Iris", "Kathrin",
    "Karin", "Lena", "Maria", "Olga", "Renate", "Sandra", "Tanja",
    "Ulrike", "Vera", "Xenia", "Zoe", "Monika", "Sabine", "Heike",
]

_LAST_NAMES = [
    "Müller", "Schmidt", "Schneider", "Fischer", "Weber", "Meyer",
    "Wagner", "Becker", "Schulz", "Hoffmann", "Schäfer", "Koch",
    "Bauer", "Richter", "Klein", "Wolf", "Schröder", "Neumann",
    "Schwarz", "Zimmermann", "Braun", "Krüger", "Hofmann", "Hartmann",
    "Lange", "Schmitt", "Werner", "Schmitz", "Krause", "Meier",
]

# Werktage, an denen Demo-Kurse stattfinden
_WORKDAYS = [Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY,
             Weekday.THURSDAY, Weekday.FRIDAY]


@dataclass
class DemoData:
    """Ergebnis des Generators (noch nicht gespeichert)."""

    parties: list[Party] = field(default_factory=list)
    availability: list[TeacherAvailability] = field(default_factory=list)
    classes: list[ClassDefinition] = field(default_factory=list)

    def ids(self, role: PartyRole) -> list[str]:
        return [p.id for p in self.parties if p.role == role]


def _slot(start_text: str, minutes: int) -> TimeSlot:
    """Zeitfenster ab ``start_text``; was über Mitternacht hinausginge, endet um 00:00."""
    start = time.fromisoformat(start_text)
    begin = datetime.combine(date.min, start)
    end = begin + timedelta(minutes=minutes)
    if end.date() > begin.date():
        return TimeSlot(start=start, end=MIDNIGHT)
    return TimeSlot(start=start, end=end.time())


class FakeDataGenerator:
    """Generiert Personen und Kurse auf Basis der TutoringConfig."""

    def __init__(
        self,
        config: TutoringConfig,
        seed: Optional[int] = None,
        num_teachers: int = 6,
        num_students: int = 12,
        num_classes: int = 8,
        start_date: Optional[date] = None,
    ) -> None:
        self.config = config
        self.rng = random.Random(seed)
        self.num_teachers = num_teachers
        self.num_students = num_students
        self.num_classes = num_classes
        self.start_date = start_date or date.today() + timedelta(days=1)

    # ─── Personen ─────────────────────────────────────────────────────────────

    def _make_name(self) -> str:
        first_names = _FIRST_NAMES_F if self.rng.random() < 0.55 else _FIRST_NAMES_M
        return f"{self.rng.choice(_LAST_NAMES)}, {self.rng.choice(first_names)}"

    def _generate_parties(self) -> list[Party]:
        parties = [Party(id="A01", role=PartyRole.ADMIN, display_name="Verwaltung")]
        for i in range(1, self.num_teachers + 1):
            parties.append(Party(id=f"T{i:02d}", role=PartyRole.TEACHER,
                                 display_name=self._make_name()))
        for i in range(1, self.num_students + 1):
            parties.append(Party(id=f"S{i:02d}", role=PartyRole.STUDENT,
                                 display_name=self._make_name()))
        return parties

    # ─── Verfügbarkeit ────────────────────────────────────────────────────────

    def _generate_availability(self, teacher_ids: list[str]) -> list[TeacherAvailability]:
        """Werktags 13:00–24:00 in der eigenen Zone; die erste Lehrkraft nur Di/Do."""
        result = []
        for i, teacher_id in enumerate(teacher_ids):
            zone = self.rng.choice(DEMO_TIMEZONES)
            days = [Weekday.TUESDAY, Weekday.THURSDAY] if i == 0 else _WORKDAYS
            window = TimeSlot(start=time(13, 0), end=MIDNIGHT)
            result.append(TeacherAvailability(
                teacher_id=teacher_id,
                timezone=zone,
                weekly_windows={day: [window] for day in days},
            ))
        return result

    # ─── Kurse ────────────────────────────────────────────────────────────────

    def _random_schedule(self, subject: str) -> WeeklySchedule:
        days = self.rng.sample(_WORKDAYS, k=self.rng.choice([1, 2]))
        slot = _slot(self.rng.choice(START_TIMES), SUBJECT_METADATA[subject])
        return WeeklySchedule.from_mapping({day: slot for day in days})

    def _generate_classes(
        self, teacher_ids: list[str], student_ids: list[str]
    ) -> list[ClassDefinition]:
        classes = []
        subjects = list(SUBJECT_METADATA)
        for i in range(1, self.num_classes + 1):
            subject = self.rng.choice(subjects)
            length_weeks = self.rng.choice([6, 8, 12, None])
            end_date = (self.start_date + timedelta(weeks=length_weeks)
                        if length_weeks else None)
            classes.append(ClassDefinition(
                id=f"K{i:02d}",
                title=f"{subject} {self.rng.choice(['Grundkurs', 'Aufbaukurs', 'Prüfungsvorbereitung'])}",
                subject=subject,
                start_date=self.start_date,
                end_date=end_date,
                timezone=self.rng.choice(DEMO_TIMEZONES),
                weekly_schedule=self._random_schedule(subject),
                assigned_teacher_ids={self.rng.choice(teacher_ids)},
                assigned_student_ids=set(self.rng.sample(student_ids, k=self.rng.choice([1, 2, 3]))),
            ))

        if len(classes) >= 2:
            # Engpass 1: K02 übernimmt das Raster von K01 und teilt einen Schüler
            first, second = classes[0], classes[1]
            shared = sorted(first.assigned_student_ids)[0]
            classes[1] = second.model_copy(update={
                "weekly_schedule": first.weekly_schedule,
                "timezone": first.timezone,
                "assigned_student_ids": second.assigned_student_ids | {shared},
            })
        if classes and teacher_ids:
            # Engpass 2: eingeschränkte Lehrkraft bekommt einen Montagskurs
            last = classes[-1]
            classes[-1] = last.model_copy(update={
                "weekly_schedule": WeeklySchedule.from_mapping(
                    {Weekday.MONDAY: _slot("16:00", SUBJECT_METADATA[last.subject])}
                ),
                "assigned_teacher_ids": {teacher_ids[0]},
            })
        return classes

    # ─── Hauptmethode ─────────────────────────────────────────────────────────

    def generate(self) -> DemoData:
        """Erzeugt einen vollständigen Demo-Datenbestand."""
        parties = self._generate_parties()
        data = DemoData(parties=parties)
        teacher_ids = data.ids(PartyRole.TEACHER)
        student_ids = data.ids(PartyRole.STUDENT)
        data.availability = self._generate_availability(teacher_ids)
        data.classes = self._generate_classes(teacher_ids, student_ids)
        logger.info(
            f"Demo-Daten: {len(teacher_ids)} Lehrkräfte, {len(student_ids)} Schüler, "
            f"{len(data.classes)} Kurse"
        )
        return data

    # ─── Ausgabe ──────────────────────────────────────────────────────────────

    def print_summary(self, data: DemoData) -> None:
        """Gibt eine Rich-Tabelle mit Übersicht der erzeugten Daten aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        table = Table(title="Erzeugte Testdaten", box=box.ROUNDED)
        table.add_column("Kategorie", style="bold cyan")
        table.add_column("Anzahl", justify="right")
        table.add_column("Details")

        open_ended = sum(1 for c in data.classes if c.is_open_ended)
        zones = sorted({c.timezone for c in data.classes})
        table.add_row("Lehrkräfte", str(len(data.ids(PartyRole.TEACHER))),
                      f"{len(data.availability)} mit Verfügbarkeit")
        table.add_row("Schüler", str(len(data.ids(PartyRole.STUDENT))), "")
        table.add_row("Kurse", str(len(data.classes)),
                      f"{open_ended} ohne Enddatum; Zonen: {', '.join(zones)}")
        console.print(table)
