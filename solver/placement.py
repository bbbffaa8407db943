"""Platzierungs-Pipeline: Kandidaten prüfen → verteilen → neue Sitzungen.

Referenz-Ablauf für CLI und Stapelläufe. Die Pipeline schreibt nichts fest;
die erzeugten ScheduleSession-Objekte übernimmt der Aufrufer.

Stapellauf (plan_batch):
  1. Kinder nach Schwierigkeit sortieren (schwierigste zuerst)
  2. pro Kind: frischer Kontext inkl. aller bisher platzierten Sitzungen
  3. Kandidaten-Belegung aus dem Kontext neu berechnen, prüfen, verteilen
"""

import logging
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from analysis.constraint_validator import ConstraintValidator
from analysis.metrics import MetricsCollector
from config.schema import PlacementConfig
from models.context import SchedulingContext
from models.results import DistributionResult, ValidationResult
from models.session import ScheduleSession
from models.snapshot import SchoolSnapshot
from models.student import Student
from models.timeslot import TimeSlot
from solver.session_distributor import SessionDistributor, build_metrics, group_slots_by_day

logger = logging.getLogger(__name__)

# Zuschlag für K/TK (eigene AM/PM-Schulzeiten, weniger Kandidaten)
KINDERGARTEN_DIFFICULTY_BONUS = 5


def sessions_still_needed(student: Student, context: SchedulingContext) -> int:
    """Soll-Sitzungen minus bereits bestehende Sitzungen (nie negativ)."""
    return max(0, student.sessions_per_week - len(context.sessions_for_student(student.id)))


def scheduling_difficulty(student: Student) -> float:
    """2 × Sitzungen + Minuten/15 + Gesamtminuten/30 (+5 für K/TK)."""
    score = (
        student.sessions_per_week * 2
        + student.minutes_per_session / 15
        + student.total_minutes_per_week / 30
    )
    if student.is_kindergarten:
        score += KINDERGARTEN_DIFFICULTY_BONUS
    return score


def order_students_by_difficulty(students: Iterable[Student]) -> list[Student]:
    """Schwierigste zuerst; gleiche Schwierigkeit behält die Eingabereihenfolge."""
    return sorted(students, key=scheduling_difficulty, reverse=True)


# ─── Ergebnis-Modelle ─────────────────────────────────────────────────────────

class RejectedSlot(BaseModel):
    slot: TimeSlot
    result: ValidationResult


class StudentPlacement(BaseModel):
    """Ergebnis der Platzierung eines Kindes."""

    student: Student
    sessions_needed: int
    valid_slots: list[TimeSlot] = Field(default_factory=list)
    rejected: list[RejectedSlot] = Field(default_factory=list)
    distribution: Optional[DistributionResult] = None
    new_sessions: list[ScheduleSession] = Field(default_factory=list)

    @property
    def placed(self) -> int:
        return len(self.new_sessions)

    @property
    def shortfall(self) -> int:
        return max(0, self.sessions_needed - self.placed)

    @property
    def success(self) -> bool:
        """True wenn der gesamte Restbedarf platziert wurde."""
        return self.shortfall == 0


class BatchPlacement(BaseModel):
    """Ergebnis eines Stapellaufs über alle Kinder eines Snapshots."""

    school_site: str
    placements: list[StudentPlacement] = Field(default_factory=list)

    @property
    def total_needed(self) -> int:
        return sum(p.sessions_needed for p in self.placements)

    @property
    def total_placed(self) -> int:
        return sum(p.placed for p in self.placements)

    @property
    def new_sessions(self) -> list[ScheduleSession]:
        return [s for p in self.placements for s in p.new_sessions]

    @property
    def failed(self) -> list[StudentPlacement]:
        return [p for p in self.placements if not p.success]

    def print_rich(self) -> None:
        """Gibt das Ergebnis formatiert über Rich aus."""
        from rich.console import Console
        from rich.panel import Panel
        from rich.table import Table
        from rich import box

        console = Console()
        ok = not self.failed
        status = (
            "[bold green]✓ VOLLSTÄNDIG PLATZIERT[/bold green]"
            if ok
            else f"[bold yellow]⚠ {len(self.failed)} Kind(er) unvollständig[/bold yellow]"
        )
        console.print(Panel(
            f"{status}\n"
            f"Standort: {self.school_site} | "
            f"Platziert: {self.total_placed}/{self.total_needed}",
            title="Platzierung",
            border_style="cyan",
        ))

        table = Table(box=box.ROUNDED, show_lines=False)
        table.add_column("Kind", style="bold")
        table.add_column("Jg.", justify="center")
        table.add_column("Bedarf", justify="right")
        table.add_column("Platziert", justify="right")
        table.add_column("Zulässig", justify="right")
        table.add_column("Strategie")
        table.add_column("Slots")
        for p in self.placements:
            color = "green" if p.success else "red"
            table.add_row(
                p.student.label,
                p.student.grade_level,
                str(p.sessions_needed),
                f"[{color}]{p.placed}[/{color}]",
                str(len(p.valid_slots)),
                p.distribution.strategy if p.distribution else "-",
                ", ".join(
                    f"{s.day_of_week}:{s.start_time}" for s in p.new_sessions
                ) or "-",
            )
        console.print(table)


# ─── Planer ───────────────────────────────────────────────────────────────────

class PlacementPlanner:
    """Verbindet Validator und Verteiler zu einem Platzierungsschritt."""

    def __init__(
        self,
        config: PlacementConfig,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self.metrics = metrics
        self.validator = ConstraintValidator(config.constraints, metrics)
        self.distributor = SessionDistributor(config.distribution, metrics)

    def plan_student(
        self,
        student: Student,
        candidates: list[TimeSlot],
        context: SchedulingContext,
    ) -> StudentPlacement:
        """Prüft alle Kandidaten und verteilt den Restbedarf auf die zulässigen."""
        needed = sessions_still_needed(student, context)
        placement = StudentPlacement(student=student, sessions_needed=needed)
        if needed == 0:
            logger.info(f"{student.label}: bereits vollständig eingeplant")
            return placement

        for slot in candidates:
            if self.config.check_work_location:
                result = self.validator.validate_with_work_location(slot, student, context)
            else:
                result = self.validator.validate(slot, student, context)
            if result.is_valid:
                placement.valid_slots.append(slot)
            else:
                placement.rejected.append(RejectedSlot(slot=slot, result=result))

        accepted: list[TimeSlot] = []
        remaining = list(placement.valid_slots)
        strategy: Optional[str] = None

        # Runden: verteilen, Vorschläge einzeln gegen die bereits angenommenen
        # prüfen, abgelehnte verwerfen und aus dem Rest nachfüllen
        while len(accepted) < needed and remaining:
            round_context = context.with_sessions(self._as_sessions(student, accepted))
            remaining = [s.with_capacity(round_context.occupancy(s)) for s in remaining]
            proposal = self.distributor.distribute(
                student, remaining, round_context, sessions_needed=needed - len(accepted)
            )
            strategy = strategy or proposal.strategy
            if not proposal.slots:
                break
            proposed = {s.key for s in proposal.slots}
            remaining = [s for s in remaining if s.key not in proposed]

            for slot in proposal.slots:
                if len(accepted) >= needed:
                    break
                if self._fits(slot, student, context, accepted):
                    accepted.append(slot)

        if len(accepted) < needed:
            logger.warning(
                f"{student.label}: {needed - len(accepted)} Sitzung(en) ohne zulässigen Slot"
            )

        placement.distribution = DistributionResult(
            slots=accepted,
            distribution=group_slots_by_day(accepted),
            metrics=build_metrics(accepted, student.grade_level, context),
            strategy=strategy or self.distributor.choose_strategy(student, []).value,
            requested=needed,
        )
        placement.new_sessions = self._as_sessions(student, accepted)
        return placement

    @staticmethod
    def _as_sessions(student: Student, slots: list[TimeSlot]) -> list[ScheduleSession]:
        return [ScheduleSession.from_slot(student, slot) for slot in slots]

    def _fits(
        self,
        slot: TimeSlot,
        student: Student,
        context: SchedulingContext,
        accepted: list[TimeSlot],
    ) -> bool:
        """Tageslimit und harte Regeln inkl. der bereits angenommenen Slots."""
        same_day = len(context.sessions_for_student(student.id, slot.day_of_week)) + sum(
            1 for s in accepted if s.day_of_week == slot.day_of_week
        )
        if same_day >= self.config.distribution.max_sessions_per_day:
            logger.debug(f"{student.label} {slot}: Tageslimit erreicht ({same_day})")
            return False

        pick_context = context.with_sessions(self._as_sessions(student, accepted))
        result = self.validator.validate(slot, student, pick_context)
        if not result.is_valid:
            logger.debug(
                f"{student.label} {slot}: verworfen "
                f"({', '.join(sorted({e.type.value for e in result.errors}))})"
            )
        return result.is_valid

    def plan_batch(
        self,
        snapshot: SchoolSnapshot,
        student_ids: Optional[list[str]] = None,
    ) -> BatchPlacement:
        """Platziert alle (oder die genannten) Kinder nacheinander.

        Nach jedem Kind wird der Kontext mit den neuen Sitzungen neu gebaut.
        """
        students = snapshot.students
        if student_ids:
            students = [snapshot.get_student(sid) for sid in student_ids]

        batch = BatchPlacement(school_site=snapshot.school_site)
        placed_so_far: list[ScheduleSession] = []

        for student in order_students_by_difficulty(students):
            context = snapshot.to_context(extra_sessions=placed_so_far)
            candidates = snapshot.candidates_for(student, context)
            placement = self.plan_student(student, candidates, context)
            placed_so_far.extend(placement.new_sessions)
            batch.placements.append(placement)

        logger.info(
            f"Stapellauf {snapshot.school_site}: "
            f"{batch.total_placed}/{batch.total_needed} Sitzungen platziert"
        )
        return batch
