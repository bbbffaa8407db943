"""Ergebnis-Strukturen von Validator und Verteiler (Pydantic v2)."""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.timeslot import TimeSlot


class ConstraintType(str, Enum):
    SCHOOL_HOURS = "school_hours"
    BELL_SCHEDULE = "bell_schedule"
    SPECIAL_ACTIVITY = "special_activity"
    CONCURRENT_SESSIONS = "concurrent_sessions"
    CONSECUTIVE_SESSIONS = "consecutive_sessions"
    BREAK_REQUIREMENT = "break_requirement"
    SESSION_OVERLAP = "session_overlap"
    WORK_LOCATION = "work_location"


class TimeRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str


class ViolationDetails(BaseModel):
    """Zusatzinfos zu einer Verletzung (Konfliktobjekt, Zeitfenster, Vorschlag)."""

    model_config = ConfigDict(frozen=True)

    conflicting_item: Optional[dict[str, Any]] = None
    time_range: Optional[TimeRange] = None
    suggestion: Optional[str] = None


class ValidationViolation(BaseModel):
    """Eine einzelne Regelverletzung eines Kandidaten-Slots.

    severity:
      "error"    – Richtlinien-Verstoß, Verwaltung kann übersteuern
      "critical" – echte Doppelbuchung, darf NIE festgeschrieben werden
    """

    model_config = ConfigDict(frozen=True)

    type: ConstraintType
    message: str
    severity: Literal["error", "critical"] = "error"
    details: Optional[ViolationDetails] = None


class ValidationMetadata(BaseModel):
    constraints_checked: list[str] = Field(default_factory=list)
    execution_time_ms: float = 0.0


class ValidationResult(BaseModel):
    """Vollständige Diagnose eines Slots (kein Abbruch beim ersten Fehler)."""

    is_valid: bool
    errors: list[ValidationViolation] = Field(default_factory=list)
    metadata: ValidationMetadata = Field(default_factory=ValidationMetadata)

    @classmethod
    def from_errors(
        cls,
        errors: list[ValidationViolation],
        metadata: Optional[ValidationMetadata] = None,
    ) -> "ValidationResult":
        return cls(
            is_valid=not errors,
            errors=errors,
            metadata=metadata or ValidationMetadata(),
        )

    @property
    def has_critical(self) -> bool:
        """True bei mindestens einer Doppelbuchung."""
        return any(e.severity == "critical" for e in self.errors)

    def errors_of(self, constraint: ConstraintType) -> list[ValidationViolation]:
        return [e for e in self.errors if e.type == constraint]

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Kombiniert zwei Ergebnisse (z.B. validate_all + Work-Location)."""
        errors = [*self.errors, *other.errors]
        metadata = ValidationMetadata(
            constraints_checked=[
                *self.metadata.constraints_checked,
                *other.metadata.constraints_checked,
            ],
            execution_time_ms=self.metadata.execution_time_ms + other.metadata.execution_time_ms,
        )
        return ValidationResult.from_errors(errors, metadata)

    def print_rich(self, title: str = "Slot-Prüfung") -> None:
        """Gibt die Diagnose formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        status = (
            "[bold green]✓ ZULÄSSIG[/bold green]"
            if self.is_valid
            else "[bold red]✗ VERLETZUNGEN GEFUNDEN[/bold red]"
        )
        lines = [
            status,
            f"Geprüft: {', '.join(self.metadata.constraints_checked) or '-'}",
            f"Dauer: {self.metadata.execution_time_ms:.2f} ms",
        ]
        console.print(Panel("\n".join(lines), title=title, border_style="cyan"))

        if not self.errors:
            return

        table = Table(box=box.ROUNDED, show_lines=True)
        table.add_column("Typ", width=9)
        table.add_column("Regel", width=22)
        table.add_column("Beschreibung")
        table.add_column("Hinweis")
        for e in self.errors:
            color = "red" if e.severity == "critical" else "yellow"
            hint = ""
            if e.details is not None:
                if e.details.suggestion:
                    hint = e.details.suggestion
                elif e.details.time_range is not None:
                    hint = f"{e.details.time_range.start}-{e.details.time_range.end}"
            table.add_row(
                f"[{color}]{e.severity.upper()}[/{color}]",
                e.type.value,
                e.message,
                hint,
            )
        console.print(table)


# ─── Verteilung ───────────────────────────────────────────────────────────────

class SlotScore(BaseModel):
    """Bewertung eines Slots bei der Jahrgangs-Gruppierung."""

    slot: TimeSlot
    score: float
    grade_alignment: float
    capacity: float
    time_preference: float
    overlapping_sessions: int


class DistributionMetrics(BaseModel):
    average_sessions_per_day: float = 0.0
    max_sessions_on_any_day: int = 0
    distribution_balance: float = 0.0     # 1.0 = alle Tage gleich belegt
    grade_grouping_score: float = 0.0     # 0.0–1.0


class DistributionResult(BaseModel):
    """Gewählte Slots + Wochenverteilung + Qualitätsmetriken."""

    slots: list[TimeSlot]
    distribution: dict[int, list[TimeSlot]]   # Tag → Slots
    metrics: DistributionMetrics
    strategy: str
    requested: int

    @property
    def shortfall(self) -> int:
        """Fehlende Sitzungen (0 = Bedarf vollständig gedeckt)."""
        return max(0, self.requested - len(self.slots))

    def print_rich(self, title: str = "Verteilung") -> None:
        """Gibt die Verteilung formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        m = self.metrics
        balance_color = (
            "green" if m.distribution_balance >= 0.9
            else "yellow" if m.distribution_balance >= 0.6
            else "red"
        )
        placed = f"{len(self.slots)}/{self.requested}"
        if self.shortfall:
            placed = f"[red]{placed}[/red]"
        console.print(Panel(
            f"Strategie: [bold]{self.strategy}[/bold] | Platziert: {placed}\n"
            f"Ø Sitzungen/Tag: {m.average_sessions_per_day:.2f} | "
            f"Max/Tag: {m.max_sessions_on_any_day}\n"
            f"Balance: [{balance_color}]{m.distribution_balance:.3f}[/{balance_color}] | "
            f"Jahrgangs-Gruppierung: {m.grade_grouping_score:.3f}",
            title=title,
            border_style="cyan",
        ))

        table = Table(box=box.SIMPLE)
        table.add_column("Tag")
        table.add_column("Slots")
        for day in sorted(self.distribution):
            slots = self.distribution[day]
            table.add_row(
                slots[0].day_name if slots else str(day),
                ", ".join(f"{s.start_time}-{s.end_time}" for s in slots),
            )
        console.print(table)
