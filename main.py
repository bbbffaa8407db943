"""Förder-Sitzungsplanung: Haupt-CLI.

Verwendung:
  python main.py config init                       Standard-Konfiguration anlegen
  python main.py config show                       Konfiguration anzeigen
  python main.py generate                          Demo-Snapshot erzeugen
  python main.py check <snapshot> <kind> <tag> <beginn>
                                                   Einen Slot vollständig prüfen
  python main.py place <snapshot>                  Alle Kinder platzieren
  python main.py place <snapshot> --student S001   Nur einzelne Kinder
  python main.py --verbose ...                     Mit Log-Ausgabe
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

console = Console()

# Standard-Pfad für den Demo-Snapshot
DEFAULT_SNAPSHOT_JSON = Path("output/snapshot.json")


def _setup_logging(verbose: bool) -> None:
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _load_config():
    """Konfiguration aus YAML oder Standardwerte (ohne Datei)."""
    from config.manager import ConfigManager
    mgr = ConfigManager()
    try:
        return mgr.load_or_default()
    except ValueError as e:
        console.print(f"[red bold]Konfiguration fehlerhaft:[/red bold]\n{e}")
        sys.exit(1)


def _load_snapshot_or_abort(path: Path):
    """Lädt einen Snapshot oder bricht mit Fehlermeldung ab."""
    from models.snapshot import SchoolSnapshot, SnapshotImportError

    try:
        return SchoolSnapshot.load_json(path)
    except FileNotFoundError as e:
        console.print(
            f"[red]{e}[/red]\n"
            "Erzeugen Sie Demo-Daten mit [bold]python main.py generate[/bold]."
        )
        sys.exit(1)
    except SnapshotImportError as e:
        console.print(f"[red bold]Import fehlgeschlagen:[/red bold]\n{e}")
        sys.exit(1)


# ─── CONFIG ───────────────────────────────────────────────────────────────────

@click.group("config")
def cmd_config():
    """Konfiguration anzeigen oder anlegen."""


@cmd_config.command("show")
def config_show():
    """Zeigt die aktuelle Konfiguration an."""
    from config.manager import ConfigManager

    config = _load_config()
    source = (
        "Standardwerte (keine Datei)"
        if ConfigManager().first_run_check()
        else str(ConfigManager.DEFAULT_CONFIG)
    )
    console.print(Panel(
        f"[bold]{config.school_site}[/bold]  |  Quelle: {source}",
        title="Standort-Konfiguration",
        border_style="cyan",
    ))

    cc = config.constraints
    table = Table(title="Harte Regeln", box=box.ROUNDED)
    table.add_column("Regel")
    table.add_column("Wert", justify="right")
    table.add_row("Max. gleichzeitige Sitzungen", str(cc.max_concurrent_sessions))
    table.add_row("Max. Minuten am Stück", str(cc.max_consecutive_minutes))
    table.add_row("Mindestpause (min)", str(cc.min_break_minutes))
    table.add_row("Fallback-Schulzeit", f"{cc.default_school_start}-{cc.default_school_end}")
    table.add_row("Einsatzort prüfen", "ja" if config.check_work_location else "nein")
    console.print(table)

    dc = config.distribution
    pref = "vormittags" if dc.prefer_morning else "nachmittags" if dc.prefer_afternoon else "-"
    table2 = Table(title="Verteilung", box=box.ROUNDED)
    table2.add_column("Parameter")
    table2.add_column("Wert", justify="right")
    table2.add_row("Strategie", dc.strategy.value)
    table2.add_row("Max. Sitzungen pro Slot", str(dc.max_sessions_per_slot))
    table2.add_row("Max. Sitzungen pro Tag", str(dc.max_sessions_per_day))
    table2.add_row("Tageszeit-Präferenz", pref)
    table2.add_row("Jahrgangs-Gruppierung", "ja" if dc.grade_grouping_enabled else "nein")
    table2.add_row("Zwei-Pass-Grenzen", f"{dc.first_pass_limit} / {dc.second_pass_limit}")
    console.print(table2)


@cmd_config.command("init")
@click.option("--site", default=None, help="Standort / Schule.")
@click.option("--force", is_flag=True, default=False,
              help="Bestehende Konfiguration überschreiben.")
def config_init(site: Optional[str], force: bool):
    """Legt eine Konfiguration mit Standardwerten an."""
    from config.defaults import default_placement_config
    from config.manager import ConfigManager

    mgr = ConfigManager()
    if not mgr.first_run_check() and not force:
        console.print(
            "[yellow]Eine Konfiguration existiert bereits.[/yellow]\n"
            "Verwenden Sie [bold]--force[/bold] zum Überschreiben."
        )
        sys.exit(1)
    config = default_placement_config(site) if site else default_placement_config()
    mgr.save(config)


# ─── GENERATE ─────────────────────────────────────────────────────────────────

@click.command("generate")
@click.option("--seed", default=42, help="Zufalls-Seed für reproduzierbare Daten.")
@click.option("--students", "num_students", default=16, help="Anzahl Kinder.")
@click.option("--output", "-o", default=str(DEFAULT_SNAPSHOT_JSON),
              help="Pfad für den JSON-Snapshot.")
def cmd_generate(seed: int, num_students: int, output: str):
    """Erzeugt einen Demo-Snapshot (Kinder, Sitzungen, Referenzdaten, Kandidaten)."""
    from data.fake_data import FakeDataGenerator

    config = _load_config()
    console.print("[bold]Testdaten werden generiert...[/bold]")
    snapshot = FakeDataGenerator(
        seed=seed, school_site=config.school_site, num_students=num_students
    ).generate()
    snapshot.print_summary()

    out_path = Path(output)
    snapshot.save_json(out_path)
    console.print(f"[green]✓[/green] Snapshot gespeichert: {out_path}")


# ─── CHECK ────────────────────────────────────────────────────────────────────

@click.command("check")
@click.argument("snapshot_path", type=click.Path(path_type=Path))
@click.argument("student_id")
@click.argument("day", type=click.IntRange(1, 7))
@click.argument("start")
def cmd_check(snapshot_path: Path, student_id: str, day: int, start: str):
    """Prüft einen Slot (TAG 1=Mo..7=So, BEGINN HH:MM) für ein Kind."""
    from analysis.constraint_validator import ConstraintValidator
    from models.timeslot import TimeSlot, add_minutes

    config = _load_config()
    snapshot = _load_snapshot_or_abort(snapshot_path)
    try:
        student = snapshot.get_student(student_id)
        slot = TimeSlot(day, start, add_minutes(start, student.minutes_per_session))
    except (KeyError, ValueError) as e:
        console.print(f"[red bold]Ungültige Eingabe:[/red bold] {e}")
        sys.exit(1)

    context = snapshot.to_context()
    slot = slot.with_capacity(context.occupancy(slot))
    validator = ConstraintValidator(config.constraints)
    if config.check_work_location:
        result = validator.validate_with_work_location(slot, student, context)
    else:
        result = validator.validate(slot, student, context)

    result.print_rich(title=f"{student.label} (Jg. {student.grade_level}) {slot}")
    sys.exit(0 if result.is_valid else 1)


# ─── PLACE ────────────────────────────────────────────────────────────────────

@click.command("place")
@click.argument("snapshot_path", type=click.Path(path_type=Path))
@click.option("--strategy", default=None,
              type=click.Choice(["auto", "even", "grade-grouped", "two-pass", "spread", "compact"]),
              help="Strategie erzwingen (Standard: aus Konfiguration).")
@click.option("--student", "student_ids", multiple=True,
              help="Nur diese Kinder platzieren (mehrfach möglich).")
@click.option("--save", "save_path", default=None, type=click.Path(path_type=Path),
              help="Snapshot inkl. neuer Sitzungen hier speichern.")
@click.option("--metrics", "show_metrics", is_flag=True, default=False,
              help="Laufzeit-Kennzahlen anzeigen.")
def cmd_place(
    snapshot_path: Path,
    strategy: Optional[str],
    student_ids: tuple[str, ...],
    save_path: Optional[Path],
    show_metrics: bool,
):
    """Platziert alle (oder einzelne) Kinder eines Snapshots."""
    from analysis.metrics import MetricsCollector
    from config.schema import DistributionStrategy
    from solver.placement import PlacementPlanner

    config = _load_config()
    snapshot = _load_snapshot_or_abort(snapshot_path)
    if strategy:
        config = config.model_copy(update={
            "distribution": config.distribution.model_copy(
                update={"strategy": DistributionStrategy(strategy)}
            ),
        })

    metrics = MetricsCollector()
    planner = PlacementPlanner(config, metrics)
    try:
        batch = planner.plan_batch(snapshot, list(student_ids) or None)
    except KeyError as e:
        console.print(f"[red bold]Ungültige Eingabe:[/red bold] {e}")
        sys.exit(1)

    batch.print_rich()
    if show_metrics:
        metrics.snapshot().print_rich()

    if save_path is not None:
        updated = snapshot.model_copy(
            update={"sessions": [*snapshot.sessions, *batch.new_sessions]}
        )
        updated.save_json(save_path)
        console.print(f"[green]✓[/green] Snapshot mit neuen Sitzungen gespeichert: {save_path}")


# ─── HAUPT-CLI ────────────────────────────────────────────────────────────────

@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False,
              help="Ausführliche Log-Ausgabe (DEBUG).")
def cli(verbose: bool):
    """Förder-Sitzungsplanung: prüft Kandidaten-Slots und verteilt Sitzungen.

    Starten Sie mit: python main.py generate
    """
    _setup_logging(verbose)


def main():
    """Einstiegspunkt."""
    cli()


# Befehle registrieren
cli.add_command(cmd_config)
cli.add_command(cmd_generate)
cli.add_command(cmd_check)
cli.add_command(cmd_place)


if __name__ == "__main__":
    main()
