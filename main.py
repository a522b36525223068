"""Nachhilfe-Terminplanung: Haupt-CLI.

Verwendung:
  python main.py setup                              Standard-Konfiguration anlegen
  python main.py config show                        Konfiguration anzeigen
  python main.py generate                           Demo-Daten erzeugen
  python main.py class create ...                   Kurs anlegen (mit Konfliktprüfung)
  python main.py class list                         Kurse auflisten
  python main.py class extend <id> <bis>            Sitzungen fortschreiben
  python main.py class delete <id>                  Kurs samt Sitzungen löschen
  python main.py session list <kurs>                Sitzungen eines Kurses
  python main.py session transition <id> <aktion>   Statusübergang
  python main.py session attend <id> <person> <st>  Anwesenheit setzen
  python main.py conflicts <person> ...             Konfliktprüfung für ein Raster
  python main.py reschedule submit|resolve|list     Verlegungsanfragen
"""

import functools
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich import box

from scheduling.errors import SchedulingError

console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config_or_abort():
    """Lädt die Konfiguration oder bricht mit Fehlermeldung ab."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    if mgr.first_run_check():
        console.print(
            "[red]Keine Konfiguration gefunden.[/red]\n"
            "Führen Sie zunächst [bold]python main.py setup[/bold] aus."
        )
        sys.exit(1)
    try:
        config = mgr.load()
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    _configure_logging(config.logging.level)
    return mgr, config


def _open_service(config):
    """Lädt den Datenbestand (falls vorhanden) und baut den Service."""
    from data.profiles import ProfileDirectory
    from data.store import SchedulingStore, load_json
    from scheduling.notifications import LoggingNotifier
    from scheduling.service import SchedulingService

    path = Path(config.storage.data_path)
    if path.exists():
        store, profiles = load_json(path)
    else:
        store, profiles = SchedulingStore(), ProfileDirectory()
    return SchedulingService(store, profiles, config, notifier=LoggingNotifier())


def _save_service(service) -> None:
    from data.store import save_json

    path = Path(service.config.storage.data_path)
    save_json(path, service.store, service.profiles)
    console.print(f"[dim]Datenbestand gespeichert: {path}[/dim]")


def _abort_on_error(func):
    """Fachliche Fehler rot ausgeben und mit Exit-Code 1 beenden."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SchedulingError as e:
            console.print(f"[red bold]Abgelehnt:[/red bold] [red]{e}[/red]")
            sys.exit(1)
    return wrapper


def _parse_slots(values: tuple[str, ...]):
    """Parst Angaben wie "mon=09:00-10:00" zu einem WeeklySchedule."""
    from models.timeslot import WeeklySchedule

    mapping = {}
    for value in values:
        if "=" not in value:
            raise click.BadParameter(f"'{value}' nicht im Format tag=HH:MM-HH:MM", param_hint="--slot")
        day, slot = value.split("=", 1)
        mapping[day.strip()] = slot.strip()
    try:
        return WeeklySchedule.from_mapping(mapping)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--slot") from e


def _local_instant(value: datetime, zone: str) -> datetime:
    """Lokale Wanduhrzeit in ``zone`` → UTC."""
    from scheduling.timezones import local_to_utc
    return local_to_utc(value.date(), value.time(), zone)


def _fmt_local(instant: datetime, zone: str) -> str:
    from scheduling.timezones import utc_to_local
    day, clock = utc_to_local(instant, zone)
    return f"{day.isoformat()} {clock:%H:%M}"


# ─── SETUP ────────────────────────────────────────────────────────────────────

@click.command("setup")
def cmd_setup():
    """Ersteinrichtung: Standard-Konfiguration anlegen."""
    from config.defaults import default_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check():
        console.print("[yellow]Eine Konfiguration existiert bereits.[/yellow]")
        if not click.confirm("Mit Standardwerten überschreiben?", default=False):
            return

    mgr.save(default_config())
    console.print(f"[bold green]Einrichtung abgeschlossen![/bold green] ({mgr.DEFAULT_CONFIG})")
    console.print("Führen Sie jetzt [bold]python main.py generate[/bold] aus.")


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anzeigen."""


@cmd_config.command("show")
def config_show():
    """Zeigt die aktuelle Konfiguration an."""
    mgr, config = _load_config_or_abort()

    console.print(Panel(
        f"[bold]{config.organization_name}[/bold]  |  Standard-Zone {config.default_timezone}",
        title="Konfiguration",
        border_style="cyan",
    ))

    table = Table(box=box.ROUNDED)
    table.add_column("Bereich", style="bold")
    table.add_column("Einstellung")
    table.add_column("Wert")
    lc = config.lifecycle
    table.add_row("Lebenszyklus", "Vorlauf initiate", f"{lc.initiation_lead_minutes} min")
    table.add_row("", "Begründungspflicht Lehrkraft",
                  "ja" if lc.teacher_cancel_requires_reason else "nein")
    table.add_row("Erzeugung", "Fenster", f"{config.generation.window_days} Tage")
    table.add_row("Verlegungen", "Mehrfachanfragen", config.reschedule.policy.value)
    cc = config.conflicts
    table.add_row("Konflikte", "Parallele Prüfungen", str(cc.max_workers))
    table.add_row("", "Abgesagte ignorieren", "ja" if cc.ignore_cancelled else "nein")
    table.add_row("", "Verfügbarkeit prüfen", "ja" if cc.check_availability else "nein")
    table.add_row("Speicher", "Datenbestand", config.storage.data_path)
    table.add_row("Logging", "Level", config.logging.level)
    console.print(table)


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.option("--seed", default=42, help="Zufalls-Seed für reproduzierbare Daten.")
@_abort_on_error
def cmd_generate(seed: int):
    """Erzeugt Demo-Daten (Personen, Verfügbarkeiten, Kurse mit Sitzungen)."""
    mgr, config = _load_config_or_abort()
    from data.fake_data import FakeDataGenerator
    from data.profiles import ProfileDirectory
    from data.store import SchedulingStore
    from scheduling.notifications import LoggingNotifier
    from scheduling.service import SchedulingService

    console.print("[bold]Demo-Daten werden generiert...[/bold]")
    gen = FakeDataGenerator(config, seed=seed)
    data = gen.generate()
    gen.print_summary(data)

    service = SchedulingService(
        SchedulingStore(), ProfileDirectory(data.parties, data.availability),
        config, notifier=LoggingNotifier(),
    )
    for class_def in data.classes:
        report = service.check_class_conflicts(class_def)
        if report.has_conflicts:
            console.print(f"\n[bold]Kurs {class_def.id}[/bold] ({class_def.title})")
            report.print_rich()
        sessions = service.generate_sessions(class_def)
        console.print(f"[green]✓[/green] {class_def.id}: {len(sessions)} Sitzungen")

    _save_service(service)


# ─── CLASS ────────────────────────────────────────────────────────────────────

@click.group("class")
def cmd_class():
    """Kurse anlegen, auflisten, fortschreiben und löschen."""


@cmd_class.command("create")
@click.option("--id", "class_id", required=True, help="Kurs-ID, z.B. K10.")
@click.option("--title", required=True)
@click.option("--subject", required=True)
@click.option("--start", "start_date", required=True, type=click.DateTime(["%Y-%m-%d"]))
@click.option("--end", "end_date", default=None, type=click.DateTime(["%Y-%m-%d"]),
              help="Letzter Kurstag (ohne Angabe: offenes Ende).")
@click.option("--tz", "timezone", default=None, help="IANA-Zone (Standard aus Config).")
@click.option("--slot", "slots", multiple=True, required=True,
              help="Wochentermin, z.B. mon=09:00-10:00 (mehrfach).")
@click.option("--teacher", "teachers", multiple=True)
@click.option("--student", "students", multiple=True)
@click.option("--yes", is_flag=True, default=False, help="Trotz Konflikten ohne Rückfrage anlegen.")
@_abort_on_error
def class_create(class_id, title, subject, start_date, end_date, timezone, slots,
                 teachers, students, yes):
    """Legt einen Kurs an und erzeugt dessen Sitzungen."""
    mgr, config = _load_config_or_abort()
    from pydantic import ValidationError
    from models.class_definition import ClassDefinition

    service = _open_service(config)
    try:
        class_def = ClassDefinition(
            id=class_id,
            title=title,
            subject=subject,
            start_date=start_date.date(),
            end_date=end_date.date() if end_date else None,
            timezone=timezone or config.default_timezone,
            weekly_schedule=_parse_slots(slots),
            assigned_teacher_ids=set(teachers),
            assigned_student_ids=set(students),
        )
    except ValidationError as e:
        console.print(f"[red]Kursdaten ungültig:[/red]\n{e}")
        sys.exit(1)

    report = service.check_class_conflicts(class_def)
    report.print_rich()
    if report.has_conflicts and not yes:
        if not click.confirm("Konflikte gefunden. Kurs trotzdem anlegen?", default=False):
            console.print("[yellow]Abgebrochen.[/yellow]")
            return

    sessions = service.generate_sessions(class_def)
    console.print(f"[green]✓[/green] Kurs {class_id} angelegt: {len(sessions)} Sitzungen")
    _save_service(service)


@cmd_class.command("list")
def class_list():
    """Listet alle Kurse auf."""
    mgr, config = _load_config_or_abort()
    service = _open_service(config)
    classes = service.store.list_classes()
    if not classes:
        console.print("[dim]Keine Kurse vorhanden.[/dim]")
        return

    table = Table(title="Kurse", box=box.ROUNDED)
    table.add_column("ID", style="bold")
    table.add_column("Titel")
    table.add_column("Zeitraum")
    table.add_column("Zone")
    table.add_column("Raster")
    table.add_column("Lehrkraft")
    table.add_column("Schüler", justify="right")
    table.add_column("Erzeugt bis")
    for c in sorted(classes, key=lambda c: c.id):
        end = c.end_date.isoformat() if c.end_date else "offen"
        table.add_row(
            c.id, c.title, f"{c.start_date.isoformat()} – {end}", c.timezone,
            str(c.weekly_schedule),
            ", ".join(service.profiles.display_name(t) for t in sorted(c.assigned_teacher_ids)),
            str(len(c.assigned_student_ids)),
            c.generated_until.isoformat() if c.generated_until else "-",
        )
    console.print(table)


@cmd_class.command("extend")
@click.argument("class_id")
@click.argument("until", type=click.DateTime(["%Y-%m-%d"]))
@_abort_on_error
def class_extend(class_id, until):
    """Erzeugt weitere Sitzungen bis höchstens UNTIL."""
    mgr, config = _load_config_or_abort()
    service = _open_service(config)
    sessions = service.extend_sessions(class_id, until.date())
    console.print(f"[green]✓[/green] {len(sessions)} neue Sitzungen für {class_id}")
    _save_service(service)


@cmd_class.command("delete")
@click.argument("class_id")
@click.option("--yes", is_flag=True, default=False)
@_abort_on_error
def class_delete(class_id, yes):
    """Löscht einen Kurs samt Sitzungen, Anwesenheit und Anfragen."""
    mgr, config = _load_config_or_abort()
    service = _open_service(config)
    if not yes and not click.confirm(f"Kurs {class_id} wirklich löschen?", default=False):
        return
    counts = service.delete_class(class_id)
    console.print(
        f"[green]✓[/green] Kurs {class_id} gelöscht "
        f"({counts['sessions']} Sitzungen, {counts['requests']} Anfragen)"
    )
    _save_service(service)


# ─── SESSION ──────────────────────────────────────────────────────────────────

@click.group("session")
def cmd_session():
    """Sitzungen anzeigen und Status ändern."""


@cmd_session.command("list")
@click.argument("class_id")
@_abort_on_error
def session_list(class_id):
    """Listet die Sitzungen eines Kurses in dessen Zone und in UTC."""
    mgr, config = _load_config_or_abort()
    service = _open_service(config)
    class_def = service.store.get_class(class_id)
    sessions = service.store.sessions_for_class(class_id)

    table = Table(title=f"Sitzungen {class_id} ({class_def.timezone})", box=box.ROUNDED)
    table.add_column("ID", style="bold")
    table.add_column("Lokal")
    table.add_column("UTC")
    table.add_column("Dauer", justify="right")
    table.add_column("Status")
    for s in sessions:
        color = {"cancelled": "red", "absence": "red", "complete": "green"}.get(s.status.value, "white")
        table.add_row(
            s.id,
            _fmt_local(s.start_instant, s.timezone),
            f"{s.start_instant:%Y-%m-%d %H:%M}",
            f"{int(s.duration.total_seconds() // 60)} min",
            f"[{color}]{s.status.value}[/{color}]",
        )
    console.print(table)


@cmd_session.command("transition")
@click.argument("session_id")
@click.argument("action")
@click.option("--actor", required=True, help="Ausführende Person.")
@click.option("--reason", default=None, help="Begründung (bei Absage).")
@click.option("--new-start", default=None, type=click.DateTime(["%Y-%m-%d %H:%M"]),
              help="Neuer lokaler Beginn (nur reschedule).")
@click.option("--tz", "timezone", default=None, help="Zone für --new-start (Standard: Sitzungszone).")
@_abort_on_error
def session_transition(session_id, action, actor, reason, new_start, timezone):
    """Führt ACTION (initiate, start, end, cancel/leave, absence, reschedule) aus."""
    mgr, config = _load_config_or_abort()
    service = _open_service(config)

    new_start_utc = new_end_utc = None
    if new_start is not None:
        session = service.store.get_session(session_id)
        new_start_utc = _local_instant(new_start, timezone or session.timezone)
        new_end_utc = new_start_utc + session.duration

    session = service.transition_session(
        session_id, action, actor, reason, new_start=new_start_utc, new_end=new_end_utc,
    )
    console.print(f"[green]✓[/green] Sitzung {session.id}: [bold]{session.status.value}[/bold]")
    _save_service(service)


@cmd_session.command("attend")
@click.argument("session_id")
@click.argument("party_id")
@click.argument("status", type=click.Choice(["present", "absent"]))
@_abort_on_error
def session_attend(session_id, party_id, status):
    """Setzt die Anwesenheit einer Person."""
    mgr, config = _load_config_or_abort()
    service = _open_service(config)
    record = service.mark_attendance(session_id, party_id, status)
    console.print(
        f"[green]✓[/green] {service.profiles.display_name(party_id)}: "
        f"{record.attendance_status.value}"
    )
    _save_service(service)


# ─── CONFLICTS ────────────────────────────────────────────────────────────────

@click.command("conflicts")
@click.argument("party_id")
@click.option("--slot", "slots", multiple=True, required=True)
@click.option("--start", "start_date", required=True, type=click.DateTime(["%Y-%m-%d"]))
@click.option("--end", "end_date", required=True, type=click.DateTime(["%Y-%m-%d"]))
@click.option("--tz", "timezone", default=None)
@click.option("--exclude-class", default=None, help="Kurs bei der Prüfung ignorieren.")
@_abort_on_error
def cmd_conflicts(party_id, slots, start_date, end_date, timezone, exclude_class):
    """Prüft ein Wochenraster gegen die Sitzungen einer Person."""
    mgr, config = _load_config_or_abort()
    from models.attendance import PartyRole
    from models.conflict import ConflictCheckReport

    schedule = _parse_slots(slots)
    service = _open_service(config)
    role = service.profiles.role_of(party_id)
    reports = service.check_conflicts(
        party_id, schedule, start_date.date(), end_date.date(),
        timezone or config.default_timezone, exclude_class_id=exclude_class,
    )
    mapping = {party_id: reports} if reports else {}
    if role == PartyRole.TEACHER:
        result = ConflictCheckReport(teacher_conflicts=mapping)
    else:
        result = ConflictCheckReport(student_conflicts=mapping)
    result.print_rich()


# ─── RESCHEDULE ───────────────────────────────────────────────────────────────

@click.group("reschedule")
def cmd_reschedule():
    """Verlegungsanfragen stellen und entscheiden."""


@cmd_reschedule.command("submit")
@click.argument("session_id")
@click.option("--requester", required=True)
@click.option("--reason", required=True)
@click.option("--start", "requested", required=True, type=click.DateTime(["%Y-%m-%d %H:%M"]),
              help="Gewünschter lokaler Beginn.")
@click.option("--tz", "timezone", default=None, help="Zone für --start (Standard: Sitzungszone).")
@_abort_on_error
def reschedule_submit(session_id, requester, reason, requested, timezone):
    """Stellt eine Verlegungsanfrage für SESSION_ID."""
    mgr, config = _load_config_or_abort()
    service = _open_service(config)
    session = service.store.get_session(session_id)
    requested_utc = _local_instant(requested, timezone or session.timezone)
    request = service.submit_reschedule(session_id, requester, reason, requested_utc)
    console.print(f"[green]✓[/green] Anfrage [bold]{request.id}[/bold] eingereicht")
    _save_service(service)


@cmd_reschedule.command("resolve")
@click.argument("request_id")
@click.option("--approver", required=True)
@click.option("--approve/--reject", "approve", required=True)
@_abort_on_error
def reschedule_resolve(request_id, approver, approve):
    """Genehmigt oder lehnt eine Verlegungsanfrage ab."""
    mgr, config = _load_config_or_abort()
    service = _open_service(config)
    result = service.resolve_reschedule(request_id, approver, "approve" if approve else "reject")
    if approve:
        console.print(
            f"[green]✓[/green] Sitzung {result.id} verlegt auf "
            f"{_fmt_local(result.start_instant, result.timezone)} ({result.timezone})"
        )
    else:
        console.print(f"[yellow]Anfrage {result.id} abgelehnt.[/yellow]")
    _save_service(service)


@cmd_reschedule.command("list")
@click.option("--status", type=click.Choice(["pending", "approved", "rejected"]), default=None)
def reschedule_list(status):
    """Listet Verlegungsanfragen auf."""
    mgr, config = _load_config_or_abort()
    from models.reschedule import RequestStatus

    service = _open_service(config)
    requests = service.store.list_requests(RequestStatus(status) if status else None)
    if not requests:
        console.print("[dim]Keine Verlegungsanfragen vorhanden.[/dim]")
        return

    table = Table(title="Verlegungsanfragen", box=box.ROUNDED)
    table.add_column("ID", style="bold")
    table.add_column("Sitzung")
    table.add_column("Von")
    table.add_column("Gewünscht (UTC)")
    table.add_column("Status")
    table.add_column("Begründung")
    for r in requests:
        table.add_row(
            r.id, r.session_id, service.profiles.display_name(r.requester_id),
            f"{r.requested_start_instant:%Y-%m-%d %H:%M}", r.status.value, r.reason,
        )
    console.print(table)


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

@click.group()
def cli():
    """Terminplanung für Nachhilfekurse über Zeitzonen hinweg.

    Starten Sie mit: python main.py setup
    """


def main():
    """Einstiegspunkt. Legt beim ersten Aufruf die Standard-Konfiguration an."""
    from config.manager import ConfigManager
    mgr = ConfigManager()

    if len(sys.argv) == 1 and mgr.first_run_check():
        console.print(Panel(
            "[bold]Willkommen bei der Nachhilfe-Terminplanung![/bold]\n\n"
            "Keine Konfiguration gefunden.\n"
            "Die Standard-Konfiguration wird jetzt angelegt...",
            border_style="cyan",
        ))
        sys.argv.append("setup")

    cli()


# Befehle registrieren
cli.add_command(cmd_setup)
cli.add_command(cmd_config)
cli.add_command(cmd_generate)
cli.add_command(cmd_class)
cli.add_command(cmd_session)
cli.add_command(cmd_conflicts)
cli.add_command(cmd_reschedule)


if __name__ == "__main__":
    main()
