"""Fehlerhierarchie der Terminplanung.

Jede abgelehnte Aktion nennt in ihrer Meldung die verletzte Bedingung
("Absage am Sitzungstag nicht möglich ..."), nie nur "Fehler".
"""

from typing import Optional


class SchedulingError(Exception):
    """Basisklasse aller fachlichen Fehler der Terminplanung."""

    def __init__(self, message: str, guard: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        # Maschinenlesbarer Name der verletzten Bedingung, z.B. "same_day_cancel"
        self.guard = guard

    def __str__(self) -> str:
        return self.message


class ScheduleValidationError(SchedulingError, ValueError):
    """Ungültige Eingabe (Zeitzone, leere Begründung, Datumsbereich).

    Wird vor jedem Schreibzugriff ausgelöst.
    """


class PreconditionFailed(SchedulingError):
    """Eine Vorbedingung des Übergangs ist nicht erfüllt."""


class ConcurrencyConflict(SchedulingError):
    """Compare-and-Set verloren: der Status wurde zwischenzeitlich geändert."""


class ExpiredRequest(SchedulingError):
    """Der gewünschte Termin einer Verlegungsanfrage liegt inzwischen in der Vergangenheit."""


class DeadlineExceeded(SchedulingError):
    """Die vom Aufrufer gesetzte Frist ist vor dem Schreiben abgelaufen."""


class NotFoundError(SchedulingError, KeyError):
    """Kurs, Sitzung, Anfrage oder Teilnehmer existiert nicht."""

    def __str__(self) -> str:
        # KeyError würde die Meldung sonst in Anführungszeichen setzen
        return self.message


class PartialFailure(SchedulingError):
    """Sammelfehler bei der Sitzungserzeugung.

    Bereits geschriebene Teile wurden kompensierend gelöscht; ``rolled_back``
    listet die rückgängig gemachten Schritte.
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        rolled_back: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, guard="partial_failure")
        self.cause = cause
        self.rolled_back = rolled_back or []
