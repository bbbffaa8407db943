"""Tests für die Platzierungs-Pipeline und den Demo-Datengenerator."""

from collections import Counter

import pytest

from analysis.constraint_validator import (
    validate_break_requirements,
    validate_consecutive_session_limits,
    validate_session_overlap,
)

from analysis.metrics import MetricsCollector
from config.defaults import default_placement_config
from config.schema import ConstraintConfig, DistributionConfig, DistributionStrategy
from data.fake_data import FakeDataGenerator
from models.context import build_scheduling_context
from models.reference import AvailabilitySlot
from models.results import ConstraintType
from models.session import ScheduleSession
from models.snapshot import SchoolSnapshot
from models.student import Student
from models.timeslot import TimeSlot, add_minutes, time_to_minutes
from solver.placement import (
    PlacementPlanner,
    order_students_by_difficulty,
    scheduling_difficulty,
    sessions_still_needed,
)


# ─── Testdaten-Hilfsfunktionen ────────────────────────────────────────────────

SITE = "Grundschule Am Park"


def _make_student(
    id: str = "S1", grade: str = "3", sessions: int = 2, minutes: int = 30
) -> Student:
    return Student(
        id=id, grade_level=grade, sessions_per_week=sessions,
        minutes_per_session=minutes, school_site=SITE,
    )


def _make_config(**constraint_kwargs):
    config = default_placement_config(SITE)
    if constraint_kwargs:
        config = config.model_copy(update={"constraints": ConstraintConfig(**constraint_kwargs)})
    return config


def _slot_grid(days: list[int], minutes: int, step: int = 30) -> list[TimeSlot]:
    """Kandidaten im Raster von 08:00 bis 15:00, Tage nacheinander."""
    slots = []
    for day in days:
        start = "08:00"
        while time_to_minutes(start) + minutes <= time_to_minutes("15:00"):
            slots.append(TimeSlot(day, start, add_minutes(start, minutes)))
            start = add_minutes(start, step)
    return slots


def _own_rule_errors(
    new_sessions: list[ScheduleSession], all_sessions: list[ScheduleSession]
) -> list[tuple[str, str, list[str]]]:
    """Prüft jede neue Sitzung gegen alle übrigen Sitzungen desselben Kindes."""
    failures = []
    for session in new_sessions:
        others = [s for s in all_sessions if s.student_id == session.student_id and s is not session]
        slot = TimeSlot(session.day_of_week, session.start_time, session.end_time)
        student = _make_student(id=session.student_id)
        errors = [
            *validate_session_overlap(slot, student, others).errors,
            *validate_consecutive_session_limits(slot, others).errors,
            *validate_break_requirements(slot, others).errors,
        ]
        if errors:
            failures.append((session.student_id, str(slot), [e.type.value for e in errors]))
    return failures


def _with_day_limit(limit: int):
    return _make_config().model_copy(update={
        "distribution": DistributionConfig(max_sessions_per_day=limit),
    })


# ─── SCHWIERIGKEIT ────────────────────────────────────────────────────────────

class TestDifficulty:
    def test_regular_grade(self):
        """2 × 30 Minuten: 4 + 2 + 2 = 8."""
        assert scheduling_difficulty(_make_student()) == pytest.approx(8.0)

    def test_kindergarten_bonus(self):
        assert scheduling_difficulty(_make_student(grade="K")) == pytest.approx(13.0)
        assert scheduling_difficulty(_make_student(grade="TK")) == pytest.approx(13.0)

    def test_order_hardest_first(self):
        easy = _make_student("A", sessions=1)
        hard = _make_student("B", sessions=4)
        kinder = _make_student("C", grade="K")
        same_as_kinder = _make_student("D", grade="K")
        ordered = order_students_by_difficulty([easy, kinder, hard, same_as_kinder])
        assert [s.id for s in ordered] == ["B", "C", "D", "A"]

    def test_sessions_still_needed(self):
        student = _make_student(sessions=2)
        ctx = build_scheduling_context(SITE, existing_sessions=[
            ScheduleSession(student_id="S1", day_of_week=1, start_time="09:00", end_time="09:30"),
            ScheduleSession(student_id="S1", day_of_week=2, start_time="09:00", end_time="09:30"),
            ScheduleSession(student_id="S1", day_of_week=3, start_time="09:00", end_time="09:30"),
        ])
        assert sessions_still_needed(student, ctx) == 0
        assert sessions_still_needed(student, build_scheduling_context(SITE)) == 2


# ─── EINZELNES KIND ───────────────────────────────────────────────────────────

class TestPlanStudent:
    def test_places_needed_sessions(self):
        planner = PlacementPlanner(_make_config())
        candidates = [
            TimeSlot(1, "07:00", "07:30"),   # vor Schulbeginn
            TimeSlot(1, "09:00", "09:30"),
            TimeSlot(2, "09:00", "09:30"),
            TimeSlot(3, "09:00", "09:30"),
        ]
        placement = planner.plan_student(_make_student(), candidates, build_scheduling_context(SITE))
        assert placement.sessions_needed == 2
        assert placement.placed == 2
        assert placement.success
        assert len(placement.valid_slots) == 3
        assert len(placement.rejected) == 1
        assert placement.rejected[0].result.errors[0].type == ConstraintType.SCHOOL_HOURS
        assert all(s.student_id == "S1" for s in placement.new_sessions)
        assert placement.distribution is not None
        assert placement.distribution.strategy == "grade-grouped"

    def test_already_scheduled(self):
        ctx = build_scheduling_context(SITE, existing_sessions=[
            ScheduleSession(student_id="S1", day_of_week=1, start_time="09:00", end_time="09:30"),
        ])
        planner = PlacementPlanner(_make_config())
        placement = planner.plan_student(
            _make_student(sessions=1), [TimeSlot(2, "09:00", "09:30")], ctx
        )
        assert placement.sessions_needed == 0
        assert placement.new_sessions == []
        assert placement.distribution is None
        assert placement.success

    def test_only_remaining_sessions_placed(self):
        ctx = build_scheduling_context(SITE, existing_sessions=[
            ScheduleSession(student_id="S1", day_of_week=1, start_time="13:00", end_time="13:30"),
        ])
        planner = PlacementPlanner(_make_config())
        candidates = [TimeSlot(2, "09:00", "09:30"), TimeSlot(3, "09:00", "09:30")]
        placement = planner.plan_student(_make_student(sessions=2), candidates, ctx)
        assert placement.sessions_needed == 1
        assert placement.placed == 1

    def test_work_location_rejection(self):
        config = _make_config().model_copy(update={"check_work_location": True})
        ctx = build_scheduling_context(
            SITE, provider_availability=[AvailabilitySlot(school_site=SITE, day_of_week=1)]
        )
        candidates = [TimeSlot(1, "09:00", "09:30"), TimeSlot(2, "09:00", "09:30")]
        placement = PlacementPlanner(config).plan_student(_make_student(), candidates, ctx)
        assert placement.valid_slots == [candidates[0]]
        assert placement.rejected[0].result.errors[0].type == ConstraintType.WORK_LOCATION
        assert placement.shortfall == 1
        assert not placement.success

    def test_metrics_shared(self):
        metrics = MetricsCollector()
        planner = PlacementPlanner(_make_config(), metrics)
        candidates = [TimeSlot(1, "09:00", "09:30"), TimeSlot(2, "09:00", "09:30")]
        planner.plan_student(_make_student(), candidates, build_scheduling_context(SITE))
        snap = metrics.snapshot()
        assert snap.validation_count == 4   # 2 Kandidaten + 2 angenommene Slots
        assert snap.distribution_count == 1


# ─── STAPELLAUF ───────────────────────────────────────────────────────────────

class TestPlanBatch:
    def _snapshot(self) -> SchoolSnapshot:
        return SchoolSnapshot(
            school_site=SITE,
            students=[_make_student("A", sessions=1), _make_student("B", sessions=1)],
            candidate_slots=[TimeSlot(1, "09:00", "09:30")],
        )

    def test_later_students_see_earlier_placements(self):
        """Ein Slot, max. 1 gleichzeitig: das erste Kind bekommt ihn, das zweite nicht."""
        planner = PlacementPlanner(_make_config(max_concurrent_sessions=1))
        batch = planner.plan_batch(self._snapshot())

        first, second = batch.placements
        assert first.student.id == "A"
        assert first.placed == 1
        assert second.placed == 0
        assert second.rejected[0].slot.capacity == 1
        assert second.rejected[0].result.errors_of(ConstraintType.CONCURRENT_SESSIONS)
        assert batch.total_needed == 2
        assert batch.total_placed == 1
        assert [p.student.id for p in batch.failed] == ["B"]
        assert len(batch.new_sessions) == 1

    def test_student_filter(self):
        planner = PlacementPlanner(_make_config(max_concurrent_sessions=1))
        batch = planner.plan_batch(self._snapshot(), ["B"])
        assert [p.student.id for p in batch.placements] == ["B"]
        assert batch.total_placed == 1

    def test_unknown_student(self):
        planner = PlacementPlanner(_make_config())
        with pytest.raises(KeyError):
            planner.plan_batch(self._snapshot(), ["X"])

    def test_candidates_filtered_by_duration(self):
        snapshot = SchoolSnapshot(
            school_site=SITE,
            students=[_make_student("A", sessions=1, minutes=60)],
            candidate_slots=[TimeSlot(1, "09:00", "09:30"), TimeSlot(2, "09:00", "10:00")],
        )
        batch = PlacementPlanner(_make_config()).plan_batch(snapshot)
        assert [s.day_of_week for s in batch.new_sessions] == [2]

    def test_fake_data_batch(self):
        snapshot = FakeDataGenerator(seed=42).generate()
        batch = PlacementPlanner(_make_config()).plan_batch(snapshot)
        assert len(batch.placements) == len(snapshot.students)
        assert batch.total_placed > 0
        assert batch.total_placed <= batch.total_needed

    def test_explicit_strategy(self):
        config = _make_config().model_copy(update={
            "distribution": DistributionConfig(strategy=DistributionStrategy.SPREAD),
        })
        snapshot = FakeDataGenerator(seed=7).generate()
        batch = PlacementPlanner(config).plan_batch(snapshot)
        strategies = {p.distribution.strategy for p in batch.placements if p.distribution}
        assert strategies <= {"spread"}


# ─── AUSWAHL INNERHALB EINES KINDES ───────────────────────────────────────────

class TestPicksWithinStudent:
    """Jeder Vorschlag wird gegen die bereits angenommenen Slots desselben Kindes geprüft."""

    def test_overlapping_candidates_not_double_booked(self):
        """60-Minuten-Slots im 30-Minuten-Raster: keine zwei neuen Sitzungen überlappen."""
        student = _make_student(sessions=4, minutes=60)
        planner = PlacementPlanner(_make_config())
        placement = planner.plan_student(
            student, _slot_grid([1, 2], 60), build_scheduling_context(SITE)
        )

        assert placement.distribution.strategy == "two-pass"
        assert placement.placed == 4
        assert [(s.day_of_week, s.start_time) for s in placement.new_sessions] == [
            (1, "08:00"), (1, "09:30"), (2, "08:00"), (2, "09:30"),
        ]
        assert _own_rule_errors(placement.new_sessions, placement.new_sessions) == []

    @pytest.mark.parametrize("limit", [2, 4])
    def test_two_pass_respects_block_length(self, limit: int):
        """4 × 30 Minuten lückenlos angeboten: kein Block über 60 Minuten."""
        student = _make_student(sessions=4, minutes=30)
        placement = PlacementPlanner(_with_day_limit(limit)).plan_student(
            student, _slot_grid([1, 2, 3], 30), build_scheduling_context(SITE)
        )

        assert placement.distribution.strategy == "two-pass"
        assert placement.placed == 4
        failures = _own_rule_errors(placement.new_sessions, placement.new_sessions)
        assert not [f for f in failures if "consecutive_sessions" in f[2]]
        assert failures == []
        per_day = Counter(s.day_of_week for s in placement.new_sessions)
        assert max(per_day.values()) <= limit

    def test_two_pass_day_limit_moves_to_next_day(self):
        student = _make_student(sessions=4, minutes=30)
        placement = PlacementPlanner(_make_config()).plan_student(
            student, _slot_grid([1, 2, 3], 30), build_scheduling_context(SITE)
        )
        assert [(s.day_of_week, s.start_time) for s in placement.new_sessions] == [
            (1, "08:00"), (1, "08:30"), (2, "08:00"), (2, "08:30"),
        ]

    def test_fake_data_batch_own_rules(self):
        """Demo-Daten: neue Sitzungen verletzen keine Regel gegen eigene Sitzungen."""
        snapshot = FakeDataGenerator(seed=42).generate()
        config = _make_config()
        batch = PlacementPlanner(config).plan_batch(snapshot)
        all_sessions = [*snapshot.sessions, *batch.new_sessions]

        assert _own_rule_errors(batch.new_sessions, all_sessions) == []
        new_days = {(s.student_id, s.day_of_week) for s in batch.new_sessions}
        per_day = Counter((s.student_id, s.day_of_week) for s in all_sessions)
        for key in new_days:
            assert per_day[key] <= config.distribution.max_sessions_per_day


# ─── TAGESLIMIT ───────────────────────────────────────────────────────────────

class TestDayLimit:
    CANDIDATES = [
        TimeSlot(1, "08:00", "08:30"),
        TimeSlot(1, "09:00", "09:30"),
        TimeSlot(1, "10:30", "11:00"),
        TimeSlot(1, "13:00", "13:30"),
    ]

    def test_default_two_per_day(self):
        """Nur Montag verfügbar: höchstens 2 Sitzungen, der Rest bleibt offen."""
        placement = PlacementPlanner(_make_config()).plan_student(
            _make_student(sessions=3), self.CANDIDATES, build_scheduling_context(SITE)
        )
        assert placement.distribution.strategy == "grade-grouped"
        assert len(placement.valid_slots) == 4
        assert placement.placed == 2
        assert placement.shortfall == 1
        assert not placement.success

    def test_configured_limit(self):
        placement = PlacementPlanner(_with_day_limit(3)).plan_student(
            _make_student(sessions=3), self.CANDIDATES, build_scheduling_context(SITE)
        )
        assert placement.placed == 3
        assert [s.start_time for s in placement.new_sessions] == ["08:00", "09:00", "10:30"]

    def test_existing_sessions_count(self):
        ctx = build_scheduling_context(SITE, existing_sessions=[
            ScheduleSession(student_id="S1", day_of_week=1, start_time="13:00", end_time="13:30"),
        ])
        candidates = [
            TimeSlot(1, "08:00", "08:30"),
            TimeSlot(1, "09:00", "09:30"),
            TimeSlot(2, "08:00", "08:30"),
        ]
        placement = PlacementPlanner(_make_config()).plan_student(
            _make_student(sessions=3), candidates, ctx
        )
        assert placement.sessions_needed == 2
        assert [s.day_of_week for s in placement.new_sessions] == [1, 2]


# ─── DEMO-DATEN ───────────────────────────────────────────────────────────────

class TestFakeData:
    def test_deterministic(self):
        a = FakeDataGenerator(seed=42).generate()
        b = FakeDataGenerator(seed=42).generate()
        assert a.model_dump() == b.model_dump()

    def test_contents(self):
        snapshot = FakeDataGenerator(seed=1, num_students=10).generate()
        assert len(snapshot.students) == 10
        assert len({s.id for s in snapshot.students}) == 10
        assert snapshot.candidate_slots
        assert {a.day_of_week for a in snapshot.provider_availability} == {1, 2, 3, 4}
        assert all(s.student_id in {st.id for st in snapshot.students} for s in snapshot.sessions)

    def test_candidates_inside_default_window(self):
        snapshot = FakeDataGenerator(seed=3).generate()
        assert all(s.start_time >= "08:00" and s.end_time <= "15:00" for s in snapshot.candidate_slots)
        assert {s.duration_minutes for s in snapshot.candidate_slots} == {30, 60}
