"""SchedulingContext: schreibgeschützter Schnappschuss für EINEN Planungsdurchlauf.

Die Indizes werden bei jedem Aufruf von build_scheduling_context() neu
aufgebaut. Es gibt keinen langlebigen Cache: nach jeder Änderung an
Sitzungen oder Referenzdaten wird einfach ein neuer Kontext gebaut.
"""

from collections import defaultdict
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from models.reference import AvailabilitySlot, BellSchedule, SchoolHours, SpecialActivity
from models.session import ScheduleSession
from models.timeslot import TimeSlot, has_time_overlap

# Schlüssel-Typen der Indizes
GradeDayKey = tuple[str, int]      # (Jahrgang, Tag)
TeacherDayKey = tuple[str, int]    # (Lehrkraft, Tag)
SiteDayKey = tuple[str, int]       # (Standort, Tag)


@dataclass(frozen=True)
class SchedulingContext:
    """Vom Aufrufer zusammengestellte Referenzdaten für einen Durchlauf."""

    school_site: str
    existing_sessions: tuple[ScheduleSession, ...] = ()
    bell_schedules_by_grade_day: dict[GradeDayKey, list[BellSchedule]] = field(default_factory=dict)
    special_activities_by_teacher_day: dict[TeacherDayKey, list[SpecialActivity]] = field(default_factory=dict)
    student_grade_map: dict[str, str] = field(default_factory=dict)
    school_hours: tuple[SchoolHours, ...] = ()
    provider_availability: dict[SiteDayKey, list[AvailabilitySlot]] = field(default_factory=dict)

    def bell_schedules_for(self, grade: str, day: int) -> list[BellSchedule]:
        """O(1)-Lookup über (Jahrgang, Tag)."""
        return self.bell_schedules_by_grade_day.get((grade, day), [])

    def special_activities_for(self, teacher: str, day: int) -> list[SpecialActivity]:
        """O(1)-Lookup über (Lehrkraft, Tag)."""
        return self.special_activities_by_teacher_day.get((teacher, day), [])

    def sessions_for_student(
        self, student_id: str, day: Optional[int] = None
    ) -> list[ScheduleSession]:
        """Alle bestehenden Sitzungen eines Kindes (optional nur an einem Tag)."""
        return [
            s for s in self.existing_sessions
            if s.student_id == student_id and (day is None or s.day_of_week == day)
        ]

    def sessions_on_day(self, day: int) -> list[ScheduleSession]:
        return [s for s in self.existing_sessions if s.day_of_week == day]

    def overlapping_sessions(
        self, day: int, start_time: str, end_time: str
    ) -> list[ScheduleSession]:
        """Alle Sitzungen (beliebiger Kinder), die [start, end) an `day` überlappen."""
        return [
            s for s in self.existing_sessions
            if s.day_of_week == day
            and has_time_overlap(start_time, end_time, s.start_time, s.end_time)
        ]

    def occupancy(self, slot: TimeSlot) -> int:
        """Aktuelle Belegung eines Slots (Anzahl überlappender Sitzungen)."""
        return len(self.overlapping_sessions(slot.day_of_week, slot.start_time, slot.end_time))

    def with_sessions(self, sessions: Iterable[ScheduleSession]) -> "SchedulingContext":
        """Kopie mit zusätzlichen Sitzungen; die Indizes werden übernommen."""
        return replace(self, existing_sessions=(*self.existing_sessions, *sessions))


# ─── Index-Aufbau ─────────────────────────────────────────────────────────────

def index_bell_schedules(
    bell_schedules: Iterable[BellSchedule],
) -> dict[GradeDayKey, list[BellSchedule]]:
    """(Jahrgang, Tag) → Klingelplan-Blöcke. Komma-Listen werden aufgefächert."""
    index: dict[GradeDayKey, list[BellSchedule]] = defaultdict(list)
    for bell in bell_schedules:
        for grade in bell.grades:
            index[(grade, bell.day_of_week)].append(bell)
    return dict(index)


def index_special_activities(
    activities: Iterable[SpecialActivity],
) -> dict[TeacherDayKey, list[SpecialActivity]]:
    """(Lehrkraft, Tag) → Sonderaktivitäten."""
    index: dict[TeacherDayKey, list[SpecialActivity]] = defaultdict(list)
    for activity in activities:
        index[(activity.teacher_name, activity.day_of_week)].append(activity)
    return dict(index)


def index_availability(
    availability: Iterable[AvailabilitySlot],
) -> dict[SiteDayKey, list[AvailabilitySlot]]:
    """(Standort, Tag) → Einsatzzeiten der Förderkraft."""
    index: dict[SiteDayKey, list[AvailabilitySlot]] = defaultdict(list)
    for item in availability:
        index[(item.school_site, item.day_of_week)].append(item)
    return dict(index)


def build_scheduling_context(
    school_site: str,
    existing_sessions: Iterable[ScheduleSession] = (),
    bell_schedules: Iterable[BellSchedule] = (),
    special_activities: Iterable[SpecialActivity] = (),
    student_grade_map: Optional[dict[str, str]] = None,
    school_hours: Iterable[SchoolHours] = (),
    provider_availability: Iterable[AvailabilitySlot] = (),
) -> SchedulingContext:
    """Baut einen frischen Kontext inkl. aller Indizes auf."""
    grade_map = {
        sid: grade.strip().upper() for sid, grade in (student_grade_map or {}).items()
    }
    return SchedulingContext(
        school_site=school_site,
        existing_sessions=tuple(existing_sessions),
        bell_schedules_by_grade_day=index_bell_schedules(bell_schedules),
        special_activities_by_teacher_day=index_special_activities(special_activities),
        student_grade_map=grade_map,
        school_hours=tuple(school_hours),
        provider_availability=index_availability(provider_availability),
    )
