"""Ergebnis-Modelle der Konfliktprüfung (flüchtig, werden nie gespeichert)."""

from datetime import date, datetime

from pydantic import BaseModel

from models.attendance import PartyRole
from models.timeslot import Weekday


class ConflictReport(BaseModel):
    """Eine Überschneidung eines Kandidaten-Termins mit einer bestehenden Sitzung."""

    party_id: str
    conflicting_session_id: str
    conflicting_class_id: str
    overlap_start: datetime
    overlap_end: datetime
    candidate_date: date          # lokales Datum des Kandidaten-Termins
    weekday: Weekday


class AvailabilityIssue(BaseModel):
    """Ein Kandidaten-Zeitfenster liegt außerhalb der Verfügbarkeit einer Lehrkraft."""

    teacher_id: str
    weekday: Weekday              # Wochentag in der Zone der Lehrkraft
    candidate: str                # "09:00-10:00" in der Zone der Lehrkraft
    available: list[str]          # Verfügbare Fenster an diesem Tag


class ConflictCheckReport(BaseModel):
    """Gesamtergebnis der Prüfung einer Kurszuweisung.

    Lehrer- und Schülerseite werden getrennt geprüft und getrennt berichtet.
    Rein beratend: der Aufrufer entscheidet nach Bestätigung, ob er fortfährt.
    """

    teacher_conflicts: dict[str, list[ConflictReport]] = {}
    student_conflicts: dict[str, list[ConflictReport]] = {}
    availability_issues: list[AvailabilityIssue] = []

    @property
    def has_conflicts(self) -> bool:
        return (
            any(self.teacher_conflicts.values())
            or any(self.student_conflicts.values())
            or bool(self.availability_issues)
        )

    def conflicts_for(self, role: PartyRole) -> dict[str, list[ConflictReport]]:
        if role == PartyRole.TEACHER:
            return self.teacher_conflicts
        return self.student_conflicts

    def print_rich(self) -> None:
        """Gibt den Report formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        status = (
            "[bold yellow]⚠ KONFLIKTE GEFUNDEN[/bold yellow]"
            if self.has_conflicts
            else "[bold green]✓ KEINE KONFLIKTE[/bold green]"
        )
        n_teacher = sum(len(v) for v in self.teacher_conflicts.values())
        n_student = sum(len(v) for v in self.student_conflicts.values())
        lines = [
            status,
            f"Lehrkräfte: {n_teacher} | Schüler: {n_student} | "
            f"Verfügbarkeit: {len(self.availability_issues)}",
        ]
        console.print(Panel("\n".join(lines), title="Konfliktprüfung", border_style="cyan"))

        if n_teacher or n_student:
            table = Table(box=box.ROUNDED, show_lines=True)
            table.add_column("Seite", width=8)
            table.add_column("Person", width=12)
            table.add_column("Datum")
            table.add_column("Sitzung")
            table.add_column("Überschneidung (UTC)")
            for side, mapping in (("Lehrer", self.teacher_conflicts),
                                  ("Schüler", self.student_conflicts)):
                for party_id, reports in mapping.items():
                    for r in reports:
                        table.add_row(
                            side,
                            party_id,
                            f"{r.weekday.short_label} {r.candidate_date.isoformat()}",
                            f"{r.conflicting_session_id} ({r.conflicting_class_id})",
                            f"{r.overlap_start:%H:%M}-{r.overlap_end:%H:%M}",
                        )
            console.print(table)

        for issue in self.availability_issues:
            avail = ", ".join(issue.available) or "keine"
            console.print(
                f"  [yellow]• {issue.teacher_id}: {issue.weekday.short_label} "
                f"{issue.candidate} außerhalb der Verfügbarkeit ({avail})[/yellow]"
            )
