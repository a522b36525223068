from config.schema import (
    ConflictConfig,
    GenerationConfig,
    LifecycleConfig,
    LoggingConfig,
    RescheduleConfig,
    ReschedulePolicy,
    StorageConfig,
    TutoringConfig,
)


def default_config() -> TutoringConfig:
    """Standard-Konfiguration einer Nachhilfe-Einrichtung.

    Lebenszyklus:
      - 'initiate' frühestens 5 Minuten vor Beginn, spätestens bis zum Ende
      - Absage durch Lehrkräfte nur mit Begründung

    Erzeugung:
      - Sitzungen werden für höchstens 180 Tage im Voraus angelegt,
        längere Kurse werden mit 'class extend' fortgeschrieben.

    Verlegungen:
      - Pro Sitzung höchstens eine offene Anfrage (weitere werden abgelehnt).
    """
    return TutoringConfig(
        organization_name="Muster-Nachhilfe",
        default_timezone="Europe/Berlin",
        lifecycle=LifecycleConfig(
            initiation_lead_minutes=5,
            teacher_cancel_requires_reason=True,
        ),
        generation=GenerationConfig(window_days=180),
        reschedule=RescheduleConfig(policy=ReschedulePolicy.BLOCK),
        conflicts=ConflictConfig(max_workers=4, ignore_cancelled=True,
                                 check_availability=True),
        storage=StorageConfig(data_path="output/tutoring_data.json"),
        logging=LoggingConfig(level="INFO"),
    )


# ─── Fächer für Demo-Daten ────────────────────────────────────────────────────
# Fach → typische Dauer einer Sitzung in Minuten

SUBJECT_METADATA: dict[str, int] = {
    "Mathematik": 60,
    "Deutsch": 60,
    "Englisch": 45,
    "Physik": 60,
    "Chemie": 60,
    "Latein": 45,
    "Französisch": 45,
    "Informatik": 90,
}

# Übliche Beginnzeiten nachmittags und abends (lokal)
START_TIMES: list[str] = [
    "14:00", "15:00", "15:30", "16:00", "17:00", "18:00", "19:30", "23:00",
]

# Zonen, aus denen Demo-Kurse gebucht werden
DEMO_TIMEZONES: list[str] = [
    "Europe/Berlin",
    "America/Toronto",
    "Asia/Dubai",
]
