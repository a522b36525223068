"""Zeitumrechnung: lokale Uhrzeit in einer benannten Zone ↔ absoluter UTC-Zeitpunkt.

Verwendet die Regeln der tz-Datenbank (pytz), nicht einen festen Offset:
"14:00 America/Toronto" liegt im Sommer bei 18:00 UTC, im Winter bei 19:00 UTC.

Sonderfälle der Sommerzeit werden deterministisch aufgelöst:
  - Lücke (Uhr springt vor, lokale Zeit existiert nicht):
    um die Größe der Lücke nach vorne verschoben (02:30 → 03:30).
  - Überlappung (Uhr springt zurück, lokale Zeit existiert zweimal):
    das erste Auftreten (noch mit Sommerzeit-Offset) wird gewählt.
"""

from datetime import date, datetime, time

import pytz

from scheduling.errors import ScheduleValidationError


def get_zone(name: str) -> pytz.BaseTzInfo:
    """Liefert die Zeitzone zu einem IANA-Namen oder löst ScheduleValidationError aus."""
    if not name or not isinstance(name, str):
        raise ScheduleValidationError(
            "Zeitzone fehlt (IANA-Name wie 'Europe/Berlin' erwartet).",
            guard="invalid_timezone",
        )
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError as e:
        raise ScheduleValidationError(
            f"Unbekannte Zeitzone: '{name}'", guard="invalid_timezone"
        ) from e


def validate_timezone(name: str) -> str:
    """Prüft einen Zonennamen und gibt den kanonischen Namen zurück."""
    return get_zone(name).zone


def now_utc() -> datetime:
    """Aktueller Zeitpunkt als aware datetime in UTC."""
    return datetime.now(pytz.UTC)


def ensure_utc(instant: datetime) -> datetime:
    """Normalisiert einen aware Zeitpunkt nach UTC; naive Werte sind unzulässig."""
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ScheduleValidationError(
            f"Zeitpunkt ohne Zeitzone: {instant.isoformat()}",
            guard="naive_datetime",
        )
    return instant.astimezone(pytz.UTC)


def local_to_utc(day: date, local_time: time, zone: str) -> datetime:
    """Wandelt Datum + lokale Uhrzeit in der Zone in einen UTC-Zeitpunkt um."""
    tz = get_zone(zone)
    naive = datetime.combine(day, local_time.replace(tzinfo=None))
    try:
        aware = tz.localize(naive, is_dst=None)
    except pytz.NonExistentTimeError:
        # is_dst=False rechnet mit dem Offset vor der Umstellung → Verschiebung nach vorne
        aware = tz.normalize(tz.localize(naive, is_dst=False))
    except pytz.AmbiguousTimeError:
        aware = tz.localize(naive, is_dst=True)
    return aware.astimezone(pytz.UTC)


def utc_to_local(instant: datetime, zone: str) -> tuple[date, time]:
    """Wandelt einen Zeitpunkt in (lokales Datum, lokale Uhrzeit) der Zone um."""
    tz = get_zone(zone)
    local = ensure_utc(instant).astimezone(tz)
    return local.date(), local.time()


def local_date(instant: datetime, zone: str) -> date:
    """Lokales Kalenderdatum eines Zeitpunkts in der Zone."""
    return utc_to_local(instant, zone)[0]
