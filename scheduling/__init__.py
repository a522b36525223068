"""Terminplanungs-Kern: Zeitumrechnung, Sitzungserzeugung, Lebenszyklus, Verlegungen.

Hier werden nur die Blatt-Module re-exportiert; ``SchedulingService`` wird
explizit aus ``scheduling.service`` importiert, damit ``models`` die
Zeitzonenprüfung ohne Importzyklus nutzen kann.
"""

from .errors import (
    SchedulingError,
    ScheduleValidationError,
    PreconditionFailed,
    ConcurrencyConflict,
    ExpiredRequest,
    DeadlineExceeded,
    NotFoundError,
    PartialFailure,
)
from .timezones import local_to_utc, utc_to_local, validate_timezone, now_utc

__all__ = [
    "SchedulingError",
    "ScheduleValidationError",
    "PreconditionFailed",
    "ConcurrencyConflict",
    "ExpiredRequest",
    "DeadlineExceeded",
    "NotFoundError",
    "PartialFailure",
    "local_to_utc",
    "utc_to_local",
    "validate_timezone",
    "now_utc",
]
