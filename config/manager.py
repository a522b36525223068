"""Konfigurationsmanager: Laden, Speichern und Validieren.

Nutzt ruamel.yaml für YAML-Serialisierung mit Kommentaren.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Optional

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.schema import TutoringConfig

logger = logging.getLogger(__name__)

yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


# ─── YAML-KOMMENTAR-AUFBAU ───

_YAML_HEADER = f"""\
# ============================================
# Nachhilfe-Terminplanung: Konfiguration
# Version: 1.0
# Erstellt: {date.today().isoformat()}
# ============================================
"""

_SECTION_COMMENTS = {
    "lifecycle": (
        "Lebenszyklus",
        "Vorlauf für 'initiate' und Begründungspflicht bei Absagen.",
    ),
    "generation": (
        "Sitzungserzeugung",
        "Lange oder offene Kurse werden fensterweise erzeugt.",
    ),
    "reschedule": (
        "Verlegungen",
        "block = zweite offene Anfrage ablehnen, supersede = ersetzen.",
    ),
    "conflicts": (
        "Konfliktprüfung",
        None,
    ),
    "storage": (
        "Speicher",
        None,
    ),
    "logging": (
        "Logging",
        None,
    ),
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "tutoring_config.yaml"

    def __init__(self, config_path: Optional[Path] = None) -> None:
        if config_path is not None:
            self.DEFAULT_CONFIG = Path(config_path)

    def first_run_check(self) -> bool:
        """Gibt True zurück wenn noch keine Config existiert (Erstaufruf)."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Laden ───

    def load(self, path: Optional[Path] = None) -> TutoringConfig:
        """Lade Config aus YAML. Validiert automatisch via Pydantic."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {target}\n"
                f"Führen Sie 'python main.py setup' aus, um die Konfiguration anzulegen."
            )
        with open(target, "r", encoding="utf-8") as f:
            raw = yaml.load(f)
        try:
            config = TutoringConfig.model_validate(dict(raw or {}))
            return config
        except Exception as e:
            raise ValueError(
                f"Konfigurationsdatei ungültig: {target}\n"
                f"Pydantic-Fehler: {e}"
            ) from e

    # ─── Speichern ───

    def save(self, config: TutoringConfig, path: Optional[Path] = None) -> None:
        """Speichere Config als YAML mit deutschen Kommentaren."""
        target = path or self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_YAML_HEADER + "\n")
            yaml.dump(data, f)

        logger.info(f"Konfiguration gespeichert: {target}")

    def _build_commented_yaml(self, config: TutoringConfig) -> CommentedMap:
        """Baut die YAML-Struktur mit Kommentaren auf."""
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for field, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        # Inline-Kommentar für den Vorlauf
        if "lifecycle" in cm:
            lifecycle_map = CommentedMap(cm["lifecycle"])
            lifecycle_map.yaml_add_eol_comment("Minuten vor Beginn", "initiation_lead_minutes")
            cm["lifecycle"] = lifecycle_map

        return cm
