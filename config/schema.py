from pydantic import BaseModel, Field, field_validator
from enum import Enum

from scheduling.timezones import validate_timezone


class ReschedulePolicy(str, Enum):
    # Zweite offene Anfrage für dieselbe Sitzung wird abgelehnt
    BLOCK = "block"
    # Neue Anfrage ersetzt die offene (alte wird abgelehnt)
    SUPERSEDE = "supersede"


# ─── LEBENSZYKLUS ───

class LifecycleConfig(BaseModel):
    """Regeln für Statusübergänge einer Sitzung."""
    # Wie viele Minuten vor Beginn eine Sitzung initiiert werden darf
    initiation_lead_minutes: int = Field(5, ge=0, le=120,
        description="Vorlauf für 'initiate' in Minuten")
    # Lehrkräfte müssen eine Absage begründen
    teacher_cancel_requires_reason: bool = Field(True,
        description="Begründungspflicht bei Absage durch Lehrkraft")


# ─── SITZUNGSERZEUGUNG ───

class GenerationConfig(BaseModel):
    """Fensterweise Erzeugung für lange oder offene Zeiträume."""
    # Maximale Anzahl Kalendertage, für die auf einmal Sitzungen erzeugt werden
    window_days: int = Field(180, ge=7, le=3660,
        description="Erzeugungsfenster in Tagen")


# ─── VERLEGUNGEN ───

class RescheduleConfig(BaseModel):
    """Verhalten bei mehreren Verlegungsanfragen für dieselbe Sitzung."""
    policy: ReschedulePolicy = Field(ReschedulePolicy.BLOCK,
        description="block = zweite Anfrage ablehnen, supersede = ersetzen")


# ─── KONFLIKTPRÜFUNG ───

class ConflictConfig(BaseModel):
    """Konfliktprüfung bei der Zuweisung von Lehrkräften und Schülern."""
    # Parallele Prüfungen (eine pro Person)
    max_workers: int = Field(4, ge=1, le=64,
        description="Parallele Prüfungen (eine pro Person)")
    # Abgesagte Sitzungen belegen keine Zeit
    ignore_cancelled: bool = Field(True,
        description="Abgesagte Sitzungen ignorieren")
    # Verfügbarkeitsfenster der Lehrkräfte mitprüfen
    check_availability: bool = Field(True,
        description="Lehrer-Verfügbarkeit prüfen")


# ─── SPEICHER ───

class StorageConfig(BaseModel):
    """Ablage des Datenbestands."""
    data_path: str = Field("output/tutoring_data.json",
        description="JSON-Datei des Datenbestands")


# ─── LOGGING ───

class LoggingConfig(BaseModel):
    level: str = Field("INFO", description="DEBUG, INFO, WARNING oder ERROR")

    @field_validator("level")
    @classmethod
    def _check_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise ValueError(f"Unbekanntes Log-Level: {v}")
        return v


# ─── GESAMT-CONFIG ───

class TutoringConfig(BaseModel):
    """Gesamtkonfiguration der Nachhilfe-Terminplanung."""
    # Name der Einrichtung
    organization_name: str = Field("Muster-Nachhilfe",
        description="Name der Einrichtung")
    # Zeitzone für neue Kurse, wenn keine angegeben ist
    default_timezone: str = Field("Europe/Berlin",
        description="Standard-Zeitzone (IANA)")
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    reschedule: RescheduleConfig = Field(default_factory=RescheduleConfig)
    conflicts: ConflictConfig = Field(default_factory=ConflictConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("default_timezone")
    @classmethod
    def _check_timezone(cls, v: str) -> str:
        return validate_timezone(v)
