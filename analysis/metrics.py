"""Laufzeit-Kennzahlen von Validator und Verteiler.

Der MetricsCollector ist das einzige zustandsbehaftete Objekt der Planung.
Er wird explizit übergeben (Validator, Verteiler, PlacementPlanner);
es gibt keine modulweiten Zähler.
"""

from collections import Counter

from pydantic import BaseModel, Field


class MetricsSnapshot(BaseModel):
    """Momentaufnahme der gesammelten Kennzahlen."""

    validation_count: int = 0
    average_validation_time_ms: float = 0.0
    distribution_count: int = 0
    average_distribution_time_ms: float = 0.0
    strategy_usage: dict[str, int] = Field(default_factory=dict)
    grade_grouping_attempts: int = 0
    two_pass_runs: int = 0

    def print_rich(self) -> None:
        """Gibt die Kennzahlen als Rich-Tabelle aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        console = Console()
        table = Table(title="Laufzeit-Kennzahlen", box=box.SIMPLE)
        table.add_column("Kennzahl", style="bold")
        table.add_column("Wert", justify="right")
        table.add_row("Slot-Prüfungen", str(self.validation_count))
        table.add_row("Ø Prüfzeit", f"{self.average_validation_time_ms:.3f} ms")
        table.add_row("Verteilungen", str(self.distribution_count))
        table.add_row("Ø Verteilzeit", f"{self.average_distribution_time_ms:.3f} ms")
        table.add_row("Jahrgangs-Gruppierungen", str(self.grade_grouping_attempts))
        table.add_row("Zwei-Pass-Läufe", str(self.two_pass_runs))
        for strategy, count in sorted(self.strategy_usage.items()):
            table.add_row(f"  Strategie {strategy}", str(count))
        console.print(table)


class MetricsCollector:
    """Sammelt Zählwerte und Laufzeiten über mehrere Aufrufe."""

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._validation_count = 0
        self._validation_time_ms = 0.0
        self._distribution_count = 0
        self._distribution_time_ms = 0.0
        self._strategy_usage: Counter[str] = Counter()
        self._grade_grouping_attempts = 0
        self._two_pass_runs = 0

    # ─── Meldungen ───

    def record_validation(self, elapsed_ms: float) -> None:
        self._validation_count += 1
        self._validation_time_ms += elapsed_ms

    def record_distribution(self, strategy: str, elapsed_ms: float) -> None:
        self._distribution_count += 1
        self._distribution_time_ms += elapsed_ms
        self._strategy_usage[strategy] += 1

    def record_grade_grouping(self) -> None:
        self._grade_grouping_attempts += 1

    def record_two_pass(self) -> None:
        self._two_pass_runs += 1

    # ─── Auswertung ───

    def snapshot(self) -> MetricsSnapshot:
        """Aktueller Stand; Durchschnitte sind 0.0 solange nichts gemessen wurde."""
        return MetricsSnapshot(
            validation_count=self._validation_count,
            average_validation_time_ms=(
                self._validation_time_ms / self._validation_count
                if self._validation_count else 0.0
            ),
            distribution_count=self._distribution_count,
            average_distribution_time_ms=(
                self._distribution_time_ms / self._distribution_count
                if self._distribution_count else 0.0
            ),
            strategy_usage=dict(self._strategy_usage),
            grade_grouping_attempts=self._grade_grouping_attempts,
            two_pass_runs=self._two_pass_runs,
        )
