"""Tests für den Constraint-Validator (harte Regeln pro Kandidaten-Slot)."""

from typing import Optional

import pytest

from analysis.constraint_validator import (
    CHECK_ORDER,
    ConstraintValidator,
    resolve_school_hours,
    validate_all,
    validate_bell_schedule_conflicts,
    validate_break_requirements,
    validate_concurrent_session_limits,
    validate_consecutive_session_limits,
    validate_school_hours,
    validate_session_overlap,
    validate_special_activity_conflicts,
    validate_work_location,
)
from analysis.metrics import MetricsCollector
from config.schema import ConstraintConfig
from models.context import build_scheduling_context
from models.reference import AvailabilitySlot, BellSchedule, SchoolHours, SpecialActivity
from models.results import ConstraintType
from models.session import ScheduleSession
from models.student import Student
from models.timeslot import TimeSlot


# ─── Testdaten-Hilfsfunktionen ────────────────────────────────────────────────

SITE = "Grundschule Am Park"


def _make_student(id: str = "S1", grade: str = "3", teacher: Optional[str] = "Fr. Berger") -> Student:
    return Student(
        id=id, grade_level=grade, sessions_per_week=2, minutes_per_session=30,
        school_site=SITE, teacher_name=teacher,
    )


def _make_session(student_id: str, day: int, start: str, end: str) -> ScheduleSession:
    return ScheduleSession(student_id=student_id, day_of_week=day, start_time=start, end_time=end)


def _make_hours(grade: str, start: str, end: str, day: int = 1) -> SchoolHours:
    return SchoolHours(grade_level=grade, day_of_week=day, start_time=start, end_time=end)


def _make_bell(grade: str, start: str, end: str, name: str = "Pause", day: int = 1) -> BellSchedule:
    return BellSchedule(
        grade_level=grade, day_of_week=day, period_name=name, start_time=start, end_time=end
    )


def _make_activity(start: str, end: str, teacher: str = "Fr. Berger", day: int = 1) -> SpecialActivity:
    return SpecialActivity(
        teacher_name=teacher, day_of_week=day, activity_name="Sport",
        start_time=start, end_time=end,
    )


def _ctx(**kwargs):
    return build_scheduling_context(SITE, **kwargs)


# ─── SCHULZEITEN ──────────────────────────────────────────────────────────────

class TestSchoolHours:
    def test_fallback_window(self):
        """Ohne Schulzeit-Zeilen gilt 08:00-15:00."""
        student = _make_student()
        assert validate_school_hours(TimeSlot(1, "08:00", "08:30"), student, []).is_valid
        assert validate_school_hours(TimeSlot(1, "14:30", "15:00"), student, []).is_valid
        assert not validate_school_hours(TimeSlot(1, "07:30", "08:00"), student, []).is_valid
        assert not validate_school_hours(TimeSlot(1, "14:45", "15:15"), student, []).is_valid

    def test_fallback_window_configurable(self):
        config = ConstraintConfig(default_school_start="09:00", default_school_end="12:00")
        result = validate_school_hours(TimeSlot(1, "08:30", "09:00"), _make_student(), [], config)
        assert not result.is_valid
        assert result.errors[0].details.time_range.start == "09:00"

    def test_grade_row_beats_default(self):
        hours = [_make_hours("default", "08:00", "15:00"), _make_hours("3", "08:00", "12:00")]
        result = validate_school_hours(TimeSlot(1, "13:00", "13:30"), _make_student(), hours)
        assert not result.is_valid
        assert result.errors[0].type == ConstraintType.SCHOOL_HOURS
        assert "3" in result.errors[0].message

    def test_default_row_for_regular_grade(self):
        hours = [_make_hours("default", "09:00", "14:00")]
        result = validate_school_hours(TimeSlot(1, "08:30", "09:00"), _make_student(), hours)
        assert not result.is_valid

    def test_default_row_ignored_for_kindergarten(self):
        """K/TK nutzen die default-Zeile nicht, sondern die Fallback-Zeit."""
        hours = [_make_hours("default", "09:00", "14:00")]
        result = validate_school_hours(TimeSlot(1, "08:30", "09:00"), _make_student(grade="K"), hours)
        assert result.is_valid

    def test_kindergarten_am_pm(self):
        hours = [
            _make_hours("K-AM", "08:00", "11:30"),
            _make_hours("K-PM", "12:00", "14:30"),
        ]
        student = _make_student(grade="K")
        assert validate_school_hours(TimeSlot(1, "11:00", "11:30"), student, hours).is_valid
        assert validate_school_hours(TimeSlot(1, "12:00", "12:30"), student, hours).is_valid
        result = validate_school_hours(TimeSlot(1, "14:30", "15:00"), student, hours)
        assert not result.is_valid
        assert "K-PM" in result.errors[0].message

    def test_kindergarten_falls_back_to_plain_grade(self):
        hours = [_make_hours("TK-AM", "08:00", "11:00"), _make_hours("TK", "08:00", "13:00")]
        grade, row = resolve_school_hours("TK", TimeSlot(1, "12:00", "12:30"), hours)
        assert grade == "TK"
        assert row is not None and row.end_time == "13:00"

    def test_rows_of_other_days_ignored(self):
        hours = [_make_hours("3", "08:00", "10:00", day=2)]
        grade, row = resolve_school_hours("3", TimeSlot(1, "13:00", "13:30"), hours)
        assert row is None


# ─── KLINGELPLAN + SONDERAKTIVITÄTEN ──────────────────────────────────────────

class TestBellSchedule:
    def test_one_error_per_overlapping_period(self):
        ctx = _ctx(bell_schedules=[
            _make_bell("3", "10:00", "10:15", "Pause"),
            _make_bell("3", "10:20", "10:40", "Snack"),
            _make_bell("3", "11:30", "12:00", "Mittagessen"),
        ])
        result = validate_bell_schedule_conflicts(TimeSlot(1, "10:00", "11:00"), _make_student(), ctx)
        assert len(result.errors) == 2
        assert all(e.type == ConstraintType.BELL_SCHEDULE for e in result.errors)
        assert result.errors[0].details.conflicting_item["period_name"] == "Pause"

    def test_touching_period_ok(self):
        ctx = _ctx(bell_schedules=[_make_bell("3", "10:00", "10:15")])
        assert validate_bell_schedule_conflicts(
            TimeSlot(1, "10:15", "10:45"), _make_student(), ctx
        ).is_valid

    def test_comma_separated_grades(self):
        ctx = _ctx(bell_schedules=[_make_bell("1,2,3", "10:00", "10:15")])
        assert not validate_bell_schedule_conflicts(
            TimeSlot(1, "10:00", "10:30"), _make_student(grade="3"), ctx
        ).is_valid
        assert validate_bell_schedule_conflicts(
            TimeSlot(1, "10:00", "10:30"), _make_student(grade="4"), ctx
        ).is_valid


class TestSpecialActivity:
    def test_overlapping_activity(self):
        ctx = _ctx(special_activities=[_make_activity("09:00", "09:45")])
        result = validate_special_activity_conflicts(
            TimeSlot(1, "09:30", "10:00"), _make_student(), ctx
        )
        assert len(result.errors) == 1
        assert result.errors[0].details.conflicting_item["activity_name"] == "Sport"

    def test_student_without_teacher_skipped(self):
        ctx = _ctx(special_activities=[_make_activity("09:00", "09:45")])
        assert validate_special_activity_conflicts(
            TimeSlot(1, "09:00", "09:30"), _make_student(teacher=None), ctx
        ).is_valid

    def test_other_teacher_ignored(self):
        ctx = _ctx(special_activities=[_make_activity("09:00", "09:45", teacher="Hr. Roth")])
        assert validate_special_activity_conflicts(
            TimeSlot(1, "09:00", "09:30"), _make_student(), ctx
        ).is_valid


# ─── GLEICHZEITIGE SITZUNGEN ──────────────────────────────────────────────────

class TestConcurrentSessions:
    def _sessions(self, n: int) -> list[ScheduleSession]:
        return [_make_session(f"X{i}", 1, "09:00", "09:30") for i in range(n)]

    def test_below_limit(self):
        assert validate_concurrent_session_limits(TimeSlot(1, "09:00", "09:30"), self._sessions(7)).is_valid

    def test_at_limit(self):
        result = validate_concurrent_session_limits(TimeSlot(1, "09:00", "09:30"), self._sessions(8))
        assert not result.is_valid
        assert "8/8" in result.errors[0].message

    def test_custom_limit(self):
        assert not validate_concurrent_session_limits(
            TimeSlot(1, "09:00", "09:30"), self._sessions(2), max_concurrent=2
        ).is_valid

    def test_other_day_not_counted(self):
        sessions = [_make_session(f"X{i}", 2, "09:00", "09:30") for i in range(8)]
        assert validate_concurrent_session_limits(TimeSlot(1, "09:00", "09:30"), sessions).is_valid


# ─── AM STÜCK + PAUSEN ────────────────────────────────────────────────────────

class TestConsecutiveAndBreaks:
    def test_three_back_to_back_blocks(self):
        """90 Minuten ohne Lücke → consecutive_sessions, aber kein Pausenfehler."""
        own = [_make_session("S1", 1, "09:00", "09:30"), _make_session("S1", 1, "09:30", "10:00")]
        slot = TimeSlot(1, "10:00", "10:30")
        consecutive = validate_consecutive_session_limits(slot, own)
        assert len(consecutive.errors) == 1
        assert consecutive.errors[0].details.time_range.start == "09:00"
        assert consecutive.errors[0].details.time_range.end == "10:30"
        assert validate_break_requirements(slot, own).is_valid

    def test_three_blocks_with_gaps(self):
        """Gleiche Sitzungen mit 30-Minuten-Lücken → weder Block- noch Pausenfehler."""
        own = [_make_session("S1", 1, "09:00", "09:30"), _make_session("S1", 1, "10:00", "10:30")]
        slot = TimeSlot(1, "11:00", "11:30")
        assert validate_consecutive_session_limits(slot, own).is_valid
        assert validate_break_requirements(slot, own).is_valid

    def test_sixty_minutes_allowed(self):
        own = [_make_session("S1", 1, "09:00", "09:30")]
        assert validate_consecutive_session_limits(TimeSlot(1, "09:30", "10:00"), own).is_valid

    def test_long_single_slot(self):
        assert not validate_consecutive_session_limits(TimeSlot(1, "09:00", "10:30"), []).is_valid

    def test_only_one_consecutive_error(self):
        own = [
            _make_session("S1", 1, "08:00", "08:30"),
            _make_session("S1", 1, "08:30", "09:00"),
            _make_session("S1", 1, "09:00", "09:30"),
            _make_session("S1", 1, "09:30", "10:00"),
        ]
        result = validate_consecutive_session_limits(TimeSlot(1, "10:00", "10:30"), own)
        assert len(result.errors) == 1

    def test_other_day_sessions_ignored(self):
        own = [_make_session("S1", 2, "09:00", "09:30"), _make_session("S1", 2, "09:30", "10:00")]
        assert validate_consecutive_session_limits(TimeSlot(1, "10:00", "10:30"), own).is_valid

    @pytest.mark.parametrize("start, end, valid", [
        ("10:00", "10:30", True),    # Lücke 30
        ("09:59", "10:29", False),   # Lücke 29
        ("09:30", "10:00", True),    # Lücke 0: nur Blocklänge zählt
    ])
    def test_break_boundary(self, start, end, valid):
        own = [_make_session("S1", 1, "09:00", "09:30")]
        assert validate_break_requirements(TimeSlot(1, start, end), own).is_valid is valid

    def test_one_break_error_per_pair(self):
        own = [_make_session("S1", 1, "09:00", "09:30"), _make_session("S1", 1, "10:10", "10:40")]
        result = validate_break_requirements(TimeSlot(1, "09:40", "10:00"), own)
        assert len(result.errors) == 2
        assert result.errors[0].details.time_range.start == "09:30"
        assert result.errors[0].details.time_range.end == "09:40"

    def test_custom_break(self):
        own = [_make_session("S1", 1, "09:00", "09:30")]
        assert validate_break_requirements(TimeSlot(1, "09:45", "10:15"), own, min_break_minutes=15).is_valid


# ─── DOPPELBUCHUNG ────────────────────────────────────────────────────────────

class TestSessionOverlap:
    def test_overlap_is_critical(self):
        sessions = [_make_session("S1", 1, "09:00", "09:30"), _make_session("S1", 1, "09:30", "10:00")]
        result = validate_session_overlap(TimeSlot(1, "09:15", "09:45"), _make_student(), sessions)
        assert len(result.errors) == 2
        assert all(e.severity == "critical" for e in result.errors)
        assert result.has_critical

    def test_other_student_not_counted(self):
        sessions = [_make_session("S2", 1, "09:00", "09:30")]
        assert validate_session_overlap(TimeSlot(1, "09:00", "09:30"), _make_student(), sessions).is_valid

    def test_touching_not_overlap(self):
        sessions = [_make_session("S1", 1, "09:00", "09:30")]
        assert validate_session_overlap(TimeSlot(1, "09:30", "10:00"), _make_student(), sessions).is_valid


# ─── EINSATZORT ───────────────────────────────────────────────────────────────

class TestWorkLocation:
    def test_missing_availability(self):
        result = validate_work_location(TimeSlot(5, "09:00", "09:30"), _make_student(), {})
        assert not result.is_valid
        assert result.errors[0].type == ConstraintType.WORK_LOCATION

    def test_available(self):
        ctx = _ctx(provider_availability=[AvailabilitySlot(school_site=SITE, day_of_week=5)])
        assert validate_work_location(
            TimeSlot(5, "09:00", "09:30"), _make_student(), ctx.provider_availability
        ).is_valid

    def test_not_part_of_validate_all(self):
        result = validate_all(TimeSlot(5, "09:00", "09:30"), _make_student(), _ctx())
        assert result.is_valid
        assert "work_location" not in result.metadata.constraints_checked


# ─── GESAMTPRÜFUNG ────────────────────────────────────────────────────────────

class TestValidateAll:
    def test_clean_slot_is_valid(self):
        """Keine überschneidenden Einträge → zulässig."""
        ctx = _ctx(
            existing_sessions=[_make_session("S2", 1, "13:00", "13:30")],
            bell_schedules=[_make_bell("3", "10:00", "10:15")],
            special_activities=[_make_activity("11:00", "11:45")],
        )
        result = validate_all(TimeSlot(1, "09:00", "09:30"), _make_student(), ctx)
        assert result.is_valid
        assert result.errors == []
        assert result.metadata.constraints_checked == [c.value for c in CHECK_ORDER]
        assert result.metadata.execution_time_ms >= 0

    def test_accumulates_all_violations(self):
        """Kein Abbruch beim ersten Fehler."""
        ctx = _ctx(
            existing_sessions=[_make_session("S1", 1, "10:00", "10:30")],
            bell_schedules=[_make_bell("3", "10:00", "10:15")],
            special_activities=[_make_activity("10:00", "10:30")],
        )
        result = validate_all(TimeSlot(1, "10:00", "10:30"), _make_student(), ctx)
        types = {e.type for e in result.errors}
        assert types == {
            ConstraintType.BELL_SCHEDULE,
            ConstraintType.SPECIAL_ACTIVITY,
            ConstraintType.SESSION_OVERLAP,
        }
        assert result.has_critical

    def test_consecutive_via_context(self):
        ctx = _ctx(existing_sessions=[
            _make_session("S1", 1, "09:00", "09:30"),
            _make_session("S1", 1, "09:30", "10:00"),
            _make_session("S2", 1, "10:00", "10:30"),
        ])
        result = validate_all(TimeSlot(1, "10:00", "10:30"), _make_student(), ctx)
        assert [e.type for e in result.errors] == [ConstraintType.CONSECUTIVE_SESSIONS]

    def test_config_thresholds_used(self):
        ctx = _ctx(existing_sessions=[_make_session("S2", 1, "09:00", "09:30")])
        config = ConstraintConfig(max_concurrent_sessions=1)
        result = validate_all(TimeSlot(1, "09:00", "09:30"), _make_student(), ctx, config)
        assert [e.type for e in result.errors] == [ConstraintType.CONCURRENT_SESSIONS]

    def test_metrics_recorded(self):
        metrics = MetricsCollector()
        for _ in range(3):
            validate_all(TimeSlot(1, "09:00", "09:30"), _make_student(), _ctx(), metrics=metrics)
        snap = metrics.snapshot()
        assert snap.validation_count == 3
        assert snap.average_validation_time_ms >= 0


class TestConstraintValidator:
    def test_filter_valid_keeps_order(self):
        ctx = _ctx(bell_schedules=[_make_bell("3", "10:00", "10:15")])
        slots = [
            TimeSlot(1, "11:00", "11:30"),
            TimeSlot(1, "10:00", "10:30"),
            TimeSlot(1, "08:00", "08:30"),
        ]
        valid = ConstraintValidator().filter_valid(slots, _make_student(), ctx)
        assert valid == [slots[0], slots[2]]

    def test_filter_with_work_location(self):
        ctx = _ctx(provider_availability=[AvailabilitySlot(school_site=SITE, day_of_week=1)])
        slots = [TimeSlot(1, "09:00", "09:30"), TimeSlot(2, "09:00", "09:30")]
        validator = ConstraintValidator()
        assert validator.filter_valid(slots, _make_student(), ctx) == slots
        assert validator.filter_valid(
            slots, _make_student(), ctx, check_work_location=True
        ) == [slots[0]]

    def test_validate_with_work_location_merges(self):
        result = ConstraintValidator().validate_with_work_location(
            TimeSlot(1, "09:00", "09:30"), _make_student(), _ctx()
        )
        assert not result.is_valid
        assert result.metadata.constraints_checked[-1] == "work_location"

    def test_metrics_injected(self):
        metrics = MetricsCollector()
        validator = ConstraintValidator(metrics=metrics)
        validator.filter_valid([TimeSlot(1, "09:00", "09:30")] * 4, _make_student(), _ctx())
        assert metrics.snapshot().validation_count == 4
