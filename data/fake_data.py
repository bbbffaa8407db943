"""Testdaten-Generator für die Förder-Sitzungsplanung.

Erzeugt einen reproduzierbaren SchoolSnapshot (gleicher Seed → gleiche Daten)
mit absichtlichen Engpässen:

  1. Mittagspause 11:30-12:15 für alle Jahrgänge → keine Slots mittags
  2. K/TK: getrennte Vormittags-/Nachmittags-Schulzeiten (K-AM, TK-PM, ...)
  3. Sport/Bibliothek der Klassenlehrkräfte blockieren einzelne Vormittage
  4. Freitag: Förderkraft ist nicht am Standort (Einsatzort-Prüfung)
  5. Vorbelegung: einige Kinder haben bereits Sitzungen
"""

import random
from typing import Optional

from config.defaults import SCHOOL_DAYS
from models.reference import AvailabilitySlot, BellSchedule, SchoolHours, SpecialActivity
from models.session import ScheduleSession
from models.snapshot import SchoolSnapshot
from models.student import Student
from models.timeslot import TimeSlot, add_minutes, time_to_minutes

# ─── Namens-Listen ────────────────────────────────────────────────────────────

_FIRST_NAMES = [
    "Anna", "Ben", "Clara", "David", "Emma", "Finn", "Greta", "Hannah",
    "Ida", "Jonas", "Karl", "Lena", "Mia", "Noah", "Ole", "Paul",
    "Romy", "Sophie", "Tim", "Yusuf", "Zoe", "Leon", "Mila", "Elias",
]

_LAST_NAMES = [
    "Müller", "Schmidt", "Schneider", "Fischer", "Weber", "Meyer",
    "Wagner", "Becker", "Schulz", "Hoffmann", "Koch", "Bauer",
    "Richter", "Klein", "Wolf", "Neumann", "Schwarz", "Braun",
]

_TEACHER_NAMES = [
    "Fr. Berger", "Hr. Roth", "Fr. Vogel", "Hr. Engel", "Fr. Huber",
    "Hr. Frank", "Fr. Lange", "Hr. Krause",
]

# Jahrgänge und Gewichte (mehr Kinder in den unteren Jahrgängen)
_GRADES: list[tuple[str, int]] = [
    ("TK", 2), ("K", 3), ("1", 4), ("2", 4), ("3", 4), ("4", 3), ("5", 3),
]

# (Sitzungen/Woche, Minuten/Sitzung) mit Gewicht
_SERVICE_PLANS: list[tuple[tuple[int, int], int]] = [
    ((2, 30), 6),
    ((3, 30), 4),
    ((1, 30), 2),
    ((4, 30), 2),
    ((2, 60), 1),
]

_ACTIVITIES = ["Sport", "Bibliothek", "Musik", "Kunst"]

# Kandidaten-Raster
_SLOT_START = "08:00"
_SLOT_END = "15:00"
_SLOT_STEP_MINUTES = 30


class FakeDataGenerator:
    """Generiert einen vollständigen Snapshot für einen Standort."""

    def __init__(
        self,
        seed: Optional[int] = None,
        school_site: str = "Grundschule Am Park",
        num_students: int = 16,
    ) -> None:
        self.rng = random.Random(seed)
        self.school_site = school_site
        self.num_students = num_students

    # ─── Kinder ───────────────────────────────────────────────────────────────

    def _generate_students(self) -> list[Student]:
        grades = [g for g, _ in _GRADES]
        grade_weights = [w for _, w in _GRADES]
        plans = [p for p, _ in _SERVICE_PLANS]
        plan_weights = [w for _, w in _SERVICE_PLANS]

        students = []
        for i in range(self.num_students):
            first = self.rng.choice(_FIRST_NAMES)
            last = self.rng.choice(_LAST_NAMES)
            grade = self.rng.choices(grades, weights=grade_weights)[0]
            sessions, minutes = self.rng.choices(plans, weights=plan_weights)[0]
            students.append(Student(
                id=f"S{i + 1:03d}",
                grade_level=grade,
                sessions_per_week=sessions,
                minutes_per_session=minutes,
                school_site=self.school_site,
                teacher_name=self._teacher_for_grade(grade),
                initials=f"{first[0]}{last[0]}",
            ))
        return students

    def _teacher_for_grade(self, grade: str) -> str:
        """Eine Klassenlehrkraft pro Jahrgang (deterministisch)."""
        index = [g for g, _ in _GRADES].index(grade)
        return _TEACHER_NAMES[index % len(_TEACHER_NAMES)]

    # ─── Referenzdaten ────────────────────────────────────────────────────────

    def _generate_school_hours(self) -> list[SchoolHours]:
        """default 08:00-15:00; K/TK mit Vormittags- und Nachmittagsgruppe."""
        hours = []
        for day in SCHOOL_DAYS:
            hours.append(SchoolHours(
                grade_level="default", day_of_week=day, start_time="08:00", end_time="15:00"
            ))
            for grade in ("K", "TK"):
                hours.append(SchoolHours(
                    grade_level=f"{grade}-AM", day_of_week=day,
                    start_time="08:00", end_time="11:30",
                ))
                hours.append(SchoolHours(
                    grade_level=f"{grade}-PM", day_of_week=day,
                    start_time="12:00", end_time="14:30",
                ))
        return hours

    def _generate_bell_schedules(self) -> list[BellSchedule]:
        """Pause und Mittagessen als Komma-Liste über alle Jahrgänge."""
        all_grades = ",".join(g for g, _ in _GRADES)
        bells = []
        for day in SCHOOL_DAYS:
            bells.append(BellSchedule(
                grade_level=all_grades, day_of_week=day, period_name="Pause",
                start_time="10:00", end_time="10:15",
            ))
            bells.append(BellSchedule(
                grade_level=all_grades, day_of_week=day, period_name="Mittagessen",
                start_time="11:30", end_time="12:15",
            ))
        return bells

    def _generate_special_activities(self) -> list[SpecialActivity]:
        """Pro Lehrkraft zwei feste Termine (45 Minuten) an zufälligen Tagen."""
        activities = []
        used_teachers = sorted({self._teacher_for_grade(g) for g, _ in _GRADES})
        for teacher in used_teachers:
            for day in sorted(self.rng.sample(SCHOOL_DAYS, 2)):
                start = self.rng.choice(["08:30", "09:00", "13:00", "13:30"])
                activities.append(SpecialActivity(
                    teacher_name=teacher,
                    day_of_week=day,
                    activity_name=self.rng.choice(_ACTIVITIES),
                    start_time=start,
                    end_time=add_minutes(start, 45),
                ))
        return activities

    def _generate_availability(self) -> list[AvailabilitySlot]:
        """Förderkraft Mo-Do am Standort, freitags woanders."""
        return [
            AvailabilitySlot(school_site=self.school_site, day_of_week=day)
            for day in SCHOOL_DAYS[:4]
        ]

    def _generate_candidate_slots(self) -> list[TimeSlot]:
        """30- und 60-Minuten-Slots im 30-Minuten-Raster, Mo-Fr."""
        slots = []
        end = time_to_minutes(_SLOT_END)
        for day in SCHOOL_DAYS:
            for duration in (30, 60):
                start = _SLOT_START
                while time_to_minutes(start) + duration <= end:
                    slots.append(TimeSlot(day, start, add_minutes(start, duration)))
                    start = add_minutes(start, _SLOT_STEP_MINUTES)
        return slots

    def _generate_existing_sessions(self, students: list[Student]) -> list[ScheduleSession]:
        """Jedes vierte Kind hat bereits eine Sitzung am frühen Nachmittag."""
        sessions = []
        for student in students[::4]:
            day = self.rng.choice(SCHOOL_DAYS[:4])
            start = "12:30" if not student.is_kindergarten else "12:00"
            sessions.append(ScheduleSession(
                student_id=student.id,
                day_of_week=day,
                start_time=start,
                end_time=add_minutes(start, student.minutes_per_session),
                id=f"sess-{student.id}",
            ))
        return sessions

    # ─── Vollständiger Datensatz ──────────────────────────────────────────────

    def generate(self) -> SchoolSnapshot:
        """Erzeugt den vollständigen Datensatz als SchoolSnapshot."""
        students = self._generate_students()
        return SchoolSnapshot(
            school_site=self.school_site,
            students=students,
            sessions=self._generate_existing_sessions(students),
            bell_schedules=self._generate_bell_schedules(),
            special_activities=self._generate_special_activities(),
            school_hours=self._generate_school_hours(),
            provider_availability=self._generate_availability(),
            candidate_slots=self._generate_candidate_slots(),
        )
