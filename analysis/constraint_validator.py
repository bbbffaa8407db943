"""Constraint-Validator: prüft einen Kandidaten-Slot gegen alle harten Regeln.

Jede Regel ist eine eigenständige, reine Funktion. validate_all() ruft sie
der Reihe nach auf und sammelt ALLE Verletzungen (kein Abbruch beim ersten
Fehler), damit eine Oberfläche pro Slot die vollständige Diagnose zeigen kann.

Regelverletzungen werfen keine Exceptions; sie stehen im ValidationResult.
"""

import logging
import time
from typing import Iterable, Optional

from analysis.metrics import MetricsCollector
from config.defaults import KINDERGARTEN_GRADES
from config.schema import ConstraintConfig
from models.context import SchedulingContext, SiteDayKey
from models.reference import AvailabilitySlot, BellSchedule, SchoolHours, SpecialActivity
from models.results import (
    ConstraintType,
    TimeRange,
    ValidationMetadata,
    ValidationResult,
    ValidationViolation,
    ViolationDetails,
)
from models.session import ScheduleSession
from models.student import Student
from models.timeslot import TimeSlot, minutes_to_time, time_to_minutes

logger = logging.getLogger(__name__)

# Reihenfolge, in der validate_all() die Regeln prüft
CHECK_ORDER = [
    ConstraintType.SCHOOL_HOURS,
    ConstraintType.BELL_SCHEDULE,
    ConstraintType.SPECIAL_ACTIVITY,
    ConstraintType.CONCURRENT_SESSIONS,
    ConstraintType.CONSECUTIVE_SESSIONS,
    ConstraintType.BREAK_REQUIREMENT,
    ConstraintType.SESSION_OVERLAP,
]


def _result(errors: list[ValidationViolation], constraint: ConstraintType) -> ValidationResult:
    return ValidationResult.from_errors(
        errors, ValidationMetadata(constraints_checked=[constraint.value])
    )


def _day_intervals(
    slot: TimeSlot, student_sessions: Iterable[ScheduleSession]
) -> list[tuple[int, int]]:
    """Kandidat + eigene Sitzungen des Kindes am selben Tag, nach Beginn sortiert."""
    intervals = [
        (time_to_minutes(s.start_time), time_to_minutes(s.end_time))
        for s in student_sessions
        if s.day_of_week == slot.day_of_week
    ]
    intervals.append((slot.start_minutes, slot.end_minutes))
    intervals.sort(key=lambda iv: iv[0])
    return intervals


# ─── Schulzeiten ──────────────────────────────────────────────────────────────

def resolve_school_hours(
    grade: str, slot: TimeSlot, school_hours: Iterable[SchoolHours]
) -> tuple[str, Optional[SchoolHours]]:
    """Ermittelt die maßgebliche Schulzeit-Zeile für (Jahrgang, Tag).

    Reihenfolge:
      1. K/TK: "<Jahrgang>-AM" bzw. "-PM" (Beginn vor/ab 12 Uhr)
      2. Zeile für den Jahrgang selbst
      3. "default" (nur für Jahrgänge außer K/TK)
    Rückgabe: (verwendete Jahrgangs-Bezeichnung, Zeile oder None)
    """
    rows = [h for h in school_hours if h.day_of_week == slot.day_of_week]
    grade = grade.strip().upper()

    if grade in KINDERGARTEN_GRADES:
        am_pm = f"{grade}-{'AM' if slot.is_morning else 'PM'}"
        for row in rows:
            if row.grade_level == am_pm:
                return am_pm, row

    for row in rows:
        if row.grade_level == grade:
            return grade, row

    if grade not in KINDERGARTEN_GRADES:
        for row in rows:
            if row.grade_level == "default":
                return grade, row

    return grade, None


def validate_school_hours(
    slot: TimeSlot,
    student: Student,
    school_hours: Iterable[SchoolHours],
    config: Optional[ConstraintConfig] = None,
) -> ValidationResult:
    """Der Slot muss vollständig innerhalb der Schulzeit des Jahrgangs liegen."""
    config = config or ConstraintConfig()
    errors: list[ValidationViolation] = []
    target_grade, row = resolve_school_hours(student.grade_level, slot, school_hours)

    if row is None:
        start, end = config.default_school_start, config.default_school_end
        message = f"Sitzung außerhalb der Standard-Schulzeit ({start} - {end})"
    else:
        start, end = row.start_time, row.end_time
        message = (
            f"Sitzung außerhalb der Schulzeit für Jahrgang {target_grade} ({start} - {end})"
        )

    if slot.start_minutes < time_to_minutes(start) or slot.end_minutes > time_to_minutes(end):
        errors.append(ValidationViolation(
            type=ConstraintType.SCHOOL_HOURS,
            message=message,
            details=ViolationDetails(time_range=TimeRange(start=start, end=end)),
        ))
    return _result(errors, ConstraintType.SCHOOL_HOURS)


# ─── Klingelplan + Sonderaktivitäten ──────────────────────────────────────────

def validate_bell_schedule_conflicts(
    slot: TimeSlot, student: Student, context: SchedulingContext
) -> ValidationResult:
    """Ein Fehler pro überlappendem Klingelplan-Block des Jahrgangs."""
    errors: list[ValidationViolation] = []
    bells: list[BellSchedule] = context.bell_schedules_for(student.grade_level, slot.day_of_week)
    for bell in bells:
        if slot.overlaps(bell.start_time, bell.end_time):
            errors.append(ValidationViolation(
                type=ConstraintType.BELL_SCHEDULE,
                message=f"Kollidiert mit {bell.period_name} (Jahrgang {student.grade_level})",
                details=ViolationDetails(
                    conflicting_item=bell.model_dump(),
                    time_range=TimeRange(start=bell.start_time, end=bell.end_time),
                ),
            ))
    return _result(errors, ConstraintType.BELL_SCHEDULE)


def validate_special_activity_conflicts(
    slot: TimeSlot, student: Student, context: SchedulingContext
) -> ValidationResult:
    """Ein Fehler pro überlappender Aktivität der Klassenlehrkraft.

    Ohne Klassenlehrkraft gibt es nichts zu prüfen.
    """
    errors: list[ValidationViolation] = []
    if not student.teacher_name:
        return _result(errors, ConstraintType.SPECIAL_ACTIVITY)

    activities: list[SpecialActivity] = context.special_activities_for(
        student.teacher_name, slot.day_of_week
    )
    for activity in activities:
        if slot.overlaps(activity.start_time, activity.end_time):
            errors.append(ValidationViolation(
                type=ConstraintType.SPECIAL_ACTIVITY,
                message=(
                    f"Kollidiert mit {activity.activity_name} "
                    f"(Lehrkraft {student.teacher_name})"
                ),
                details=ViolationDetails(
                    conflicting_item=activity.model_dump(),
                    time_range=TimeRange(start=activity.start_time, end=activity.end_time),
                ),
            ))
    return _result(errors, ConstraintType.SPECIAL_ACTIVITY)


# ─── Belegung ─────────────────────────────────────────────────────────────────

def validate_concurrent_session_limits(
    slot: TimeSlot,
    existing_sessions: Iterable[ScheduleSession],
    max_concurrent: int = 8,
) -> ValidationResult:
    """Fehler, wenn bereits max_concurrent Sitzungen (alle Kinder) überlappen."""
    errors: list[ValidationViolation] = []
    overlapping = [
        s for s in existing_sessions
        if s.day_of_week == slot.day_of_week and slot.overlaps(s.start_time, s.end_time)
    ]
    if len(overlapping) >= max_concurrent:
        errors.append(ValidationViolation(
            type=ConstraintType.CONCURRENT_SESSIONS,
            message=f"Slot ausgelastet: {len(overlapping)}/{max_concurrent} gleichzeitige Sitzungen",
            details=ViolationDetails(suggestion="Anderen Zeitraum wählen"),
        ))
    return _result(errors, ConstraintType.CONCURRENT_SESSIONS)


# ─── Pro Kind: Blocklänge, Pausen, Doppelbuchung ──────────────────────────────

def validate_consecutive_session_limits(
    slot: TimeSlot,
    student_sessions: Iterable[ScheduleSession],
    max_consecutive_minutes: int = 60,
) -> ValidationResult:
    """Max. Minuten am Stück pro Kind.

    Ein Block setzt sich nur fort, wenn das Ende der vorigen Sitzung exakt
    dem Beginn der nächsten entspricht. Höchstens ein Fehler pro Prüfung.
    """
    errors: list[ValidationViolation] = []
    block_start = block_minutes = 0
    last_end: Optional[int] = None

    for start, end in _day_intervals(slot, student_sessions):
        if last_end == start:
            block_minutes += end - start
        else:
            block_start, block_minutes = start, end - start

        if block_minutes > max_consecutive_minutes:
            errors.append(ValidationViolation(
                type=ConstraintType.CONSECUTIVE_SESSIONS,
                message=(
                    f"Sitzungen am Stück überschreiten {max_consecutive_minutes} Minuten "
                    f"({block_minutes} min)"
                ),
                details=ViolationDetails(
                    time_range=TimeRange(
                        start=minutes_to_time(block_start), end=minutes_to_time(end)
                    ),
                    suggestion="Pause zwischen den Sitzungen einplanen",
                ),
            ))
            break
        last_end = end

    return _result(errors, ConstraintType.CONSECUTIVE_SESSIONS)


def validate_break_requirements(
    slot: TimeSlot,
    student_sessions: Iterable[ScheduleSession],
    min_break_minutes: int = 30,
) -> ValidationResult:
    """Zwischen getrennten Sitzungen liegen mindestens min_break_minutes.

    Lücke 0 (direkt anschließend) regelt allein die Blocklängen-Prüfung.
    """
    errors: list[ValidationViolation] = []
    intervals = _day_intervals(slot, student_sessions)

    for (_, current_end), (next_start, _) in zip(intervals, intervals[1:]):
        gap = next_start - current_end
        if 0 < gap < min_break_minutes:
            errors.append(ValidationViolation(
                type=ConstraintType.BREAK_REQUIREMENT,
                message=f"Pause zu kurz: {gap} Minuten (mindestens {min_break_minutes})",
                details=ViolationDetails(
                    time_range=TimeRange(
                        start=minutes_to_time(current_end), end=minutes_to_time(next_start)
                    ),
                    suggestion=f"Lücke auf mindestens {min_break_minutes} Minuten vergrößern",
                ),
            ))
    return _result(errors, ConstraintType.BREAK_REQUIREMENT)


def validate_session_overlap(
    slot: TimeSlot, student: Student, existing_sessions: Iterable[ScheduleSession]
) -> ValidationResult:
    """Doppelbuchung desselben Kindes: kritisch, ein Fehler pro Sitzung."""
    errors: list[ValidationViolation] = []
    for session in existing_sessions:
        if session.student_id != student.id or session.day_of_week != slot.day_of_week:
            continue
        if slot.overlaps(session.start_time, session.end_time):
            errors.append(ValidationViolation(
                type=ConstraintType.SESSION_OVERLAP,
                message=(
                    f"Überschneidet bestehende Sitzung "
                    f"{session.start_time} - {session.end_time}"
                ),
                severity="critical",
                details=ViolationDetails(
                    conflicting_item=session.model_dump(),
                    time_range=TimeRange(start=session.start_time, end=session.end_time),
                ),
            ))
    return _result(errors, ConstraintType.SESSION_OVERLAP)


# ─── Einsatzort (separat, nicht Teil von validate_all) ────────────────────────

def validate_work_location(
    slot: TimeSlot,
    student: Student,
    provider_availability: dict[SiteDayKey, list[AvailabilitySlot]],
) -> ValidationResult:
    """Die Förderkraft muss am Standort des Kindes an diesem Tag eingeplant sein."""
    errors: list[ValidationViolation] = []
    if not provider_availability.get((student.school_site, slot.day_of_week)):
        errors.append(ValidationViolation(
            type=ConstraintType.WORK_LOCATION,
            message=(
                f"Förderkraft ist am {slot.day_name} nicht am Standort "
                f"{student.school_site}"
            ),
        ))
    return _result(errors, ConstraintType.WORK_LOCATION)


# ─── Gesamtprüfung ────────────────────────────────────────────────────────────

def validate_all(
    slot: TimeSlot,
    student: Student,
    context: SchedulingContext,
    config: Optional[ConstraintConfig] = None,
    metrics: Optional[MetricsCollector] = None,
) -> ValidationResult:
    """Prüft alle Regeln (ohne Einsatzort) und sammelt sämtliche Verletzungen."""
    config = config or ConstraintConfig()
    t0 = time.perf_counter()
    own_sessions = context.sessions_for_student(student.id)

    results = [
        validate_school_hours(slot, student, context.school_hours, config),
        validate_bell_schedule_conflicts(slot, student, context),
        validate_special_activity_conflicts(slot, student, context),
        validate_concurrent_session_limits(
            slot, context.existing_sessions, config.max_concurrent_sessions
        ),
        validate_consecutive_session_limits(
            slot, own_sessions, config.max_consecutive_minutes
        ),
        validate_break_requirements(slot, own_sessions, config.min_break_minutes),
        validate_session_overlap(slot, student, context.existing_sessions),
    ]

    errors = [e for r in results for e in r.errors]
    elapsed_ms = (time.perf_counter() - t0) * 1000
    if metrics is not None:
        metrics.record_validation(elapsed_ms)
    if errors:
        logger.debug(
            f"{student.label} {slot}: abgelehnt ({', '.join(sorted({e.type.value for e in errors}))})"
        )

    return ValidationResult.from_errors(
        errors,
        ValidationMetadata(
            constraints_checked=[c.value for c in CHECK_ORDER],
            execution_time_ms=elapsed_ms,
        ),
    )


class ConstraintValidator:
    """Hält Konfiguration und optionalen MetricsCollector für wiederholte Prüfungen."""

    def __init__(
        self,
        config: Optional[ConstraintConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or ConstraintConfig()
        self.metrics = metrics

    def validate(
        self, slot: TimeSlot, student: Student, context: SchedulingContext
    ) -> ValidationResult:
        return validate_all(slot, student, context, self.config, self.metrics)

    def validate_with_work_location(
        self, slot: TimeSlot, student: Student, context: SchedulingContext
    ) -> ValidationResult:
        """validate() plus Einsatzort-Prüfung."""
        return self.validate(slot, student, context).merge(
            validate_work_location(slot, student, context.provider_availability)
        )

    def filter_valid(
        self,
        slots: Iterable[TimeSlot],
        student: Student,
        context: SchedulingContext,
        check_work_location: bool = False,
    ) -> list[TimeSlot]:
        """Zulässige Teilmenge der Kandidaten, Reihenfolge bleibt erhalten."""
        check = self.validate_with_work_location if check_work_location else self.validate
        return [s for s in slots if check(s, student, context).is_valid]
