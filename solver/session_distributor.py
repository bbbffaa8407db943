"""Session-Distributor: wählt aus bereits zulässigen Slots die Wochenverteilung.

Strategien:
  even           – Round-Robin über die Tage (wenigste Kandidaten zuerst)
  grade-grouped  – Bewertung nach Jahrgangs-Nähe, Belegung, Tageszeit
  two-pass       – erst gering belegte Slots, dann bis zur zweiten Grenze
  spread         – pro Tag frühester + spätester Slot (große Lücken)
  compact        – Sitzungen möglichst dicht am selben Tag

Der Verteiler prüft die Kandidaten NICHT erneut; werden weniger Slots
zurückgegeben als angefordert, fehlt zulässige Kapazität.
"""

import logging
import time
from collections import defaultdict, deque
from typing import Iterable, Optional

from analysis.metrics import MetricsCollector
from config.defaults import GRADE_ORDER
from config.schema import DistributionConfig, DistributionStrategy
from models.context import SchedulingContext
from models.results import DistributionMetrics, DistributionResult, SlotScore
from models.session import ScheduleSession
from models.student import Student
from models.timeslot import TimeSlot, add_minutes, has_time_overlap

logger = logging.getLogger(__name__)

# Gewichte der Jahrgangs-Bewertung
WEIGHT_GRADE_ALIGNMENT = 0.4
WEIGHT_CAPACITY = 0.3
WEIGHT_TIME_PREFERENCE = 0.3

# Zeitfenster (ab Slot-Beginn) für sort_slots_with_grade_preference
GRADE_PREFERENCE_WINDOW_MINUTES = 30

# Max. Abstand (Minuten) zwischen zwei Slots bei compact
COMPACT_MAX_GAP_MINUTES = 60


# ─── Hilfsfunktionen ──────────────────────────────────────────────────────────

def group_slots_by_day(slots: Iterable[TimeSlot]) -> dict[int, list[TimeSlot]]:
    """Tag → Slots, Reihenfolge innerhalb eines Tages bleibt erhalten."""
    grouped: dict[int, list[TimeSlot]] = defaultdict(list)
    for slot in slots:
        grouped[slot.day_of_week].append(slot)
    return dict(grouped)


def are_grades_adjacent(grade1: str, grade2: str) -> bool:
    """Nachbar-Jahrgänge in TK < K < 1 < ... < 5. Jahrgänge 6-8 haben keine Nachbarn."""
    if grade1 not in GRADE_ORDER or grade2 not in GRADE_ORDER:
        return False
    return abs(GRADE_ORDER.index(grade1) - GRADE_ORDER.index(grade2)) == 1


def _overlapping(
    slot: TimeSlot, existing_sessions: Iterable[ScheduleSession]
) -> list[ScheduleSession]:
    return [
        s for s in existing_sessions
        if s.day_of_week == slot.day_of_week and slot.overlaps(s.start_time, s.end_time)
    ]


def time_preference_score(slot: TimeSlot, config: DistributionConfig) -> float:
    """1.0 wenn der Slot zur Tageszeit-Präferenz passt, sonst 0.5."""
    if config.prefer_morning and slot.is_morning:
        return 1.0
    if config.prefer_afternoon and not slot.is_morning:
        return 1.0
    return 0.5


# ─── Strategiewahl ────────────────────────────────────────────────────────────

def choose_strategy(
    student: Student,
    slots: list[TimeSlot],
    config: Optional[DistributionConfig] = None,
) -> DistributionStrategy:
    """Explizite Strategie aus der Config, sonst automatische Wahl.

    Auto: two-pass bei hohem Bedarf (> 3 Sitzungen oder > 120 Minuten),
    sonst grade-grouped (falls aktiv), sonst even bei < 5 Kandidaten pro Tag,
    sonst spread.
    """
    config = config or DistributionConfig()
    if config.strategy != DistributionStrategy.AUTO:
        return config.strategy

    if student.sessions_per_week > 3 or student.total_minutes_per_week > 120:
        return DistributionStrategy.TWO_PASS
    if config.grade_grouping_enabled:
        return DistributionStrategy.GRADE_GROUPED

    days = group_slots_by_day(slots)
    avg_per_day = len(slots) / len(days) if days else 0.0
    if avg_per_day < 5:
        return DistributionStrategy.EVEN
    return DistributionStrategy.SPREAD


# ─── Strategien ───────────────────────────────────────────────────────────────

def distribute_evenly(sessions_needed: int, slots: list[TimeSlot]) -> list[TimeSlot]:
    """Round-Robin über die Tage, Tage mit wenigen Kandidaten zuerst."""
    by_day = {day: deque(day_slots) for day, day_slots in group_slots_by_day(slots).items()}
    days = sorted(by_day, key=lambda d: (len(by_day[d]), d))

    result: list[TimeSlot] = []
    while len(result) < sessions_needed and any(by_day.values()):
        for day in days:
            if len(result) >= sessions_needed:
                break
            if by_day[day]:
                result.append(by_day[day].popleft())
    return result


def score_slots_by_grade_alignment(
    slots: list[TimeSlot],
    target_grade: str,
    student_grade_map: dict[str, str],
    existing_sessions: Iterable[ScheduleSession],
    config: Optional[DistributionConfig] = None,
) -> list[SlotScore]:
    """Bewertet jeden Slot; Reihenfolge entspricht der Eingabe.

    score = 0.4 * grade_alignment + 0.3 * capacity + 0.3 * time_preference
      grade_alignment: (2 je gleicher Jahrgang + 1 je Nachbar-Jahrgang)
                       / max(1, Anzahl überlappender Sitzungen)
      capacity:        freie Plätze / max_sessions_per_slot (min. 0)
    """
    config = config or DistributionConfig()
    existing = list(existing_sessions)
    target_grade = target_grade.strip().upper()
    scores: list[SlotScore] = []

    for slot in slots:
        overlapping = _overlapping(slot, existing)
        points = 0
        for session in overlapping:
            grade = student_grade_map.get(session.student_id)
            if grade == target_grade:
                points += 2
            elif grade and are_grades_adjacent(target_grade, grade):
                points += 1
        grade_alignment = points / max(1, len(overlapping))
        capacity = max(0, config.max_sessions_per_slot - slot.capacity) / config.max_sessions_per_slot
        time_pref = time_preference_score(slot, config)

        scores.append(SlotScore(
            slot=slot,
            score=(
                WEIGHT_GRADE_ALIGNMENT * grade_alignment
                + WEIGHT_CAPACITY * capacity
                + WEIGHT_TIME_PREFERENCE * time_pref
            ),
            grade_alignment=grade_alignment,
            capacity=capacity,
            time_preference=time_pref,
            overlapping_sessions=len(overlapping),
        ))
    return scores


def distribute_with_grade_grouping(
    sessions_needed: int,
    slots: list[TimeSlot],
    target_grade: str,
    student_grade_map: dict[str, str],
    existing_sessions: Iterable[ScheduleSession],
    config: Optional[DistributionConfig] = None,
) -> list[TimeSlot]:
    """Top-N nach Score; bei Gleichstand gewinnt die frühere Eingabeposition."""
    scores = score_slots_by_grade_alignment(
        slots, target_grade, student_grade_map, existing_sessions, config
    )
    ranked = sorted(scores, key=lambda s: -s.score)
    return [s.slot for s in ranked[:sessions_needed]]


def distribute_two_pass(
    sessions_needed: int,
    slots: list[TimeSlot],
    first_pass_limit: int = 3,
    second_pass_limit: int = 6,
) -> list[TimeSlot]:
    """Pass 1: Belegung <= first_pass_limit; Pass 2 (falls nötig): <= second_pass_limit."""
    result = [s for s in slots if s.capacity <= first_pass_limit][:sessions_needed]
    if len(result) < sessions_needed:
        used = set(result)
        result += [
            s for s in slots
            if s not in used and s.capacity <= second_pass_limit
        ][:sessions_needed - len(result)]
    return result


def distribute_spread(sessions_needed: int, slots: list[TimeSlot]) -> list[TimeSlot]:
    """Pro Tag (aufsteigend) frühester Slot und, falls noch nötig, spätester."""
    result: list[TimeSlot] = []
    by_day = group_slots_by_day(slots)
    for day in sorted(by_day):
        if len(result) >= sessions_needed:
            break
        day_slots = sorted(by_day[day], key=lambda s: s.start_minutes)
        result.append(day_slots[0])
        if len(result) < sessions_needed and len(day_slots) > 1:
            result.append(day_slots[-1])
    return result[:sessions_needed]


def distribute_compact(sessions_needed: int, slots: list[TimeSlot]) -> list[TimeSlot]:
    """Dicht gepackt: gleicher Tag, Beginn max. 60 Minuten nach Ende des Vorgängers.

    Reicht das nicht, wird aus der sortierten Liste aufgefüllt.
    """
    ordered = sorted(slots, key=lambda s: (s.day_of_week, s.start_minutes))
    result: list[TimeSlot] = []

    for slot in ordered:
        if len(result) >= sessions_needed:
            break
        if not result:
            result.append(slot)
            continue
        last = result[-1]
        gap = slot.start_minutes - last.end_minutes
        if slot.day_of_week == last.day_of_week and 0 <= gap <= COMPACT_MAX_GAP_MINUTES:
            result.append(slot)

    for slot in ordered:
        if len(result) >= sessions_needed:
            break
        if slot not in result:
            result.append(slot)
    return result


def sort_slots_with_grade_preference(
    slots: list[TimeSlot],
    day: int,
    target_grade: str,
    context: SchedulingContext,
) -> list[TimeSlot]:
    """Slots eines Tages sortiert nach (wenigste Sitzungen, meiste gleicher
    Jahrgang, frühester Beginn). Gezählt wird in den ersten 30 Minuten des Slots."""
    target_grade = target_grade.strip().upper()
    day_sessions = context.sessions_on_day(day)

    def sort_key(slot: TimeSlot) -> tuple[int, int, int]:
        window_end = add_minutes(slot.start_time, GRADE_PREFERENCE_WINDOW_MINUTES)
        overlapping = [
            s for s in day_sessions
            if has_time_overlap(slot.start_time, window_end, s.start_time, s.end_time)
        ]
        same_grade = sum(
            1 for s in overlapping
            if context.student_grade_map.get(s.student_id) == target_grade
        )
        return (len(overlapping), -same_grade, slot.start_minutes)

    return sorted((s for s in slots if s.day_of_week == day), key=sort_key)


# ─── Kennzahlen ───────────────────────────────────────────────────────────────

def calculate_balance(session_counts: list[int]) -> float:
    """max(0, 1 - Varianz/Mittelwert); 1.0 = alle Tage gleich belegt."""
    if not session_counts:
        return 0.0
    mean = sum(session_counts) / len(session_counts)
    if mean == 0:
        return 0.0
    variance = sum((c - mean) ** 2 for c in session_counts) / len(session_counts)
    return max(0.0, 1 - variance / mean)


def calculate_grade_grouping_score(
    slots: list[TimeSlot],
    target_grade: str,
    student_grade_map: dict[str, str],
    existing_sessions: Iterable[ScheduleSession],
) -> float:
    """Mittel über Slots mit Überlappung: Anteil der Sitzungen des gleichen Jahrgangs."""
    existing = list(existing_sessions)
    target_grade = target_grade.strip().upper()
    fractions: list[float] = []
    for slot in slots:
        overlapping = _overlapping(slot, existing)
        if not overlapping:
            continue
        same = sum(1 for s in overlapping if student_grade_map.get(s.student_id) == target_grade)
        fractions.append(same / len(overlapping))
    return sum(fractions) / len(fractions) if fractions else 0.0


def build_metrics(
    slots: list[TimeSlot],
    target_grade: str,
    context: SchedulingContext,
) -> DistributionMetrics:
    counts = [len(day_slots) for day_slots in group_slots_by_day(slots).values()]
    return DistributionMetrics(
        average_sessions_per_day=sum(counts) / len(counts) if counts else 0.0,
        max_sessions_on_any_day=max(counts, default=0),
        distribution_balance=calculate_balance(counts),
        grade_grouping_score=calculate_grade_grouping_score(
            slots, target_grade, context.student_grade_map, context.existing_sessions
        ),
    )


# ─── Orchestrierung ───────────────────────────────────────────────────────────

def optimize_distribution(
    student: Student,
    slots: list[TimeSlot],
    context: SchedulingContext,
    config: Optional[DistributionConfig] = None,
    metrics: Optional[MetricsCollector] = None,
    sessions_needed: Optional[int] = None,
) -> DistributionResult:
    """Strategie wählen, ausführen, Kennzahlen berechnen.

    sessions_needed: Standard ist sessions_per_week des Kindes.
    """
    config = config or DistributionConfig()
    needed = student.sessions_per_week if sessions_needed is None else sessions_needed
    strategy = choose_strategy(student, slots, config)
    t0 = time.perf_counter()

    if strategy == DistributionStrategy.TWO_PASS:
        chosen = distribute_two_pass(
            needed, slots, config.first_pass_limit, config.second_pass_limit
        )
        if metrics is not None:
            metrics.record_two_pass()
    elif strategy == DistributionStrategy.GRADE_GROUPED:
        chosen = distribute_with_grade_grouping(
            needed, slots, student.grade_level,
            context.student_grade_map, context.existing_sessions, config,
        )
        if metrics is not None:
            metrics.record_grade_grouping()
    elif strategy == DistributionStrategy.EVEN:
        chosen = distribute_evenly(needed, slots)
    elif strategy == DistributionStrategy.COMPACT:
        chosen = distribute_compact(needed, slots)
    else:
        chosen = distribute_spread(needed, slots)

    elapsed_ms = (time.perf_counter() - t0) * 1000
    if metrics is not None:
        metrics.record_distribution(strategy.value, elapsed_ms)

    logger.info(
        f"{student.label}: Strategie {strategy.value}, "
        f"{len(chosen)}/{needed} Sitzungen aus {len(slots)} Kandidaten"
    )
    if len(chosen) < needed:
        logger.warning(
            f"{student.label}: {needed - len(chosen)} Sitzung(en) nicht platzierbar "
            f"(zu wenig zulässige Kapazität)"
        )

    return DistributionResult(
        slots=chosen,
        distribution=group_slots_by_day(chosen),
        metrics=build_metrics(chosen, student.grade_level, context),
        strategy=strategy.value,
        requested=needed,
    )


class SessionDistributor:
    """Hält DistributionConfig und optionalen MetricsCollector."""

    def __init__(
        self,
        config: Optional[DistributionConfig] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or DistributionConfig()
        self.metrics = metrics

    def choose_strategy(self, student: Student, slots: list[TimeSlot]) -> DistributionStrategy:
        return choose_strategy(student, slots, self.config)

    def distribute(
        self,
        student: Student,
        slots: list[TimeSlot],
        context: SchedulingContext,
        sessions_needed: Optional[int] = None,
    ) -> DistributionResult:
        return optimize_distribution(
            student, slots, context, self.config, self.metrics, sessions_needed
        )
