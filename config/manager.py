"""Konfigurationsmanager: Laden, Speichern und Validieren der Standort-Konfiguration.

Nutzt ruamel.yaml für YAML-Serialisierung mit Kommentaren.
"""

import json
from datetime import date
from pathlib import Path
from typing import Optional

from pydantic import ValidationError
from rich.console import Console
from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from config.schema import PlacementConfig

console = Console()
yaml = YAML()
yaml.default_flow_style = False
yaml.width = 120


# ─── YAML-KOMMENTAR-AUFBAU ───

def _yaml_header() -> str:
    return (
        "# ============================================\n"
        "# Förder-Sitzungsplanung: Standort-Konfiguration\n"
        f"# Erstellt: {date.today().isoformat()}\n"
        "# ============================================\n"
    )


_SECTION_COMMENTS = {
    "school_site": (
        "Standort",
        None,
    ),
    "constraints": (
        "Harte Regeln",
        "Ein Slot, der eine Regel verletzt, wird nicht vorgeschlagen.\n"
        "Überlappung mit einer eigenen Sitzung des Kindes ist immer kritisch.",
    ),
    "distribution": (
        "Verteilung",
        "strategy: auto | even | grade-grouped | two-pass | spread | compact",
    ),
    "check_work_location": (
        "Einsatzorte",
        "true = Slots nur an Tagen, an denen die Förderkraft vor Ort ist.",
    ),
}

_INLINE_COMMENTS = {
    "constraints": {
        "max_concurrent_sessions": "alle Kinder, gleicher Zeitraum",
        "max_consecutive_minutes": "pro Kind, ohne Lücke",
        "min_break_minutes": "0 < Lücke < Wert ist verboten",
    },
    "distribution": {
        "max_sessions_per_slot": "Belegung, ab der ein Slot als voll gilt",
        "first_pass_limit": "Zwei-Pass: Grenze im ersten Durchlauf",
        "second_pass_limit": "Zwei-Pass: Grenze im zweiten Durchlauf",
    },
}


class ConfigManager:
    CONFIG_DIR = Path("config")
    DEFAULT_CONFIG = CONFIG_DIR / "placement_config.yaml"

    def first_run_check(self) -> bool:
        """True, solange am Standard-Pfad noch keine Konfiguration liegt."""
        return not self.DEFAULT_CONFIG.exists()

    # ─── Laden ───

    def load(self, path: Optional[Path] = None) -> PlacementConfig:
        """Liest die Standort-Konfiguration und validiert sie über PlacementConfig."""
        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            raise FileNotFoundError(
                f"Konfigurationsdatei nicht gefunden: {target}\n"
                f"Führen Sie 'python main.py config init' aus, um sie anzulegen."
            )
        with open(target, "r", encoding="utf-8") as f:
            raw = yaml.load(f)
        if raw is None:
            raise ValueError(f"Konfigurationsdatei ist leer: {target}")
        try:
            return PlacementConfig.model_validate(dict(raw))
        except ValidationError as e:
            raise ValueError(
                f"Konfigurationsdatei ungültig: {target}\n"
                f"{e}"
            ) from e

    def load_or_default(self, path: Optional[Path] = None) -> PlacementConfig:
        """Wie load(), aber mit Standardwerten falls keine Datei existiert."""
        from config.defaults import default_placement_config

        target = path or self.DEFAULT_CONFIG
        if not target.exists():
            return default_placement_config()
        return self.load(target)

    # ─── Speichern ───

    def save(self, config: PlacementConfig, path: Optional[Path] = None) -> Path:
        """Schreibt die Konfiguration als kommentiertes YAML; gibt den Pfad zurück."""
        target = path or self.DEFAULT_CONFIG
        target.parent.mkdir(parents=True, exist_ok=True)

        data = self._build_commented_yaml(config)

        with open(target, "w", encoding="utf-8") as f:
            f.write(_yaml_header() + "\n")
            yaml.dump(data, f)

        console.print(f"[green]✓[/green] Konfiguration gespeichert: {target}")
        return target

    def _build_commented_yaml(self, config: PlacementConfig) -> CommentedMap:
        """Abschnitts- und Zeilenkommentare an die serialisierte Config hängen."""
        raw = json.loads(config.model_dump_json())
        cm = CommentedMap(raw)

        for section, comments in _INLINE_COMMENTS.items():
            sub = CommentedMap(cm[section])
            for key, comment in comments.items():
                if key in sub:
                    sub.yaml_add_eol_comment(comment, key)
            cm[section] = sub

        for field, (label, comment) in _SECTION_COMMENTS.items():
            cm.yaml_set_comment_before_after_key(
                field,
                before=f"\n─── {label} ───" + (f"\n{comment}" if comment else ""),
            )

        return cm
