"""SchoolSnapshot: alle Eingaben eines Standorts als JSON-Datei.

Ein Snapshot ist der Datenstand, den die Datenhaltung an die Planung
übergibt: Kinder, bestehende Sitzungen, Referenzdaten und Kandidaten-Slots.
"""

from pathlib import Path
from typing import Iterable, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from models.context import SchedulingContext, build_scheduling_context
from models.reference import AvailabilitySlot, BellSchedule, SchoolHours, SpecialActivity
from models.session import ScheduleSession
from models.student import Student
from models.timeslot import TimeSlot


class SnapshotImportError(Exception):
    """Fehler beim Einlesen eines Snapshots."""


class SchoolSnapshot(BaseModel):
    """Vollständiger Datenstand eines Standorts für einen Planungsdurchlauf."""

    school_site: str
    students: list[Student] = Field(default_factory=list)
    sessions: list[ScheduleSession] = Field(default_factory=list)
    bell_schedules: list[BellSchedule] = Field(default_factory=list)
    special_activities: list[SpecialActivity] = Field(default_factory=list)
    school_hours: list[SchoolHours] = Field(default_factory=list)
    provider_availability: list[AvailabilitySlot] = Field(default_factory=list)
    candidate_slots: list[TimeSlot] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_references(self):
        """Sitzungen dürfen nur auf bekannte Kinder verweisen; IDs eindeutig."""
        ids = [s.id for s in self.students]
        duplicates = {i for i in ids if ids.count(i) > 1}
        if duplicates:
            raise ValueError(f"Doppelte Schüler-IDs: {sorted(duplicates)}")
        known = set(ids)
        unknown = {s.student_id for s in self.sessions if s.student_id not in known}
        if unknown:
            raise ValueError(f"Sitzungen für unbekannte Schüler-IDs: {sorted(unknown)}")
        return self

    # ─── Abfragen ───

    def get_student(self, student_id: str) -> Student:
        for student in self.students:
            if student.id == student_id:
                return student
        raise KeyError(f"Schüler '{student_id}' nicht im Snapshot")

    @property
    def student_grade_map(self) -> dict[str, str]:
        return {s.id: s.grade_level for s in self.students}

    def to_context(self, extra_sessions: Iterable[ScheduleSession] = ()) -> SchedulingContext:
        """Baut einen frischen SchedulingContext (inkl. zusätzlicher Sitzungen)."""
        return build_scheduling_context(
            school_site=self.school_site,
            existing_sessions=[*self.sessions, *extra_sessions],
            bell_schedules=self.bell_schedules,
            special_activities=self.special_activities,
            student_grade_map=self.student_grade_map,
            school_hours=self.school_hours,
            provider_availability=self.provider_availability,
        )

    def candidates_for(
        self, student: Student, context: Optional[SchedulingContext] = None
    ) -> list[TimeSlot]:
        """Kandidaten mit passender Dauer; Belegung aus dem Kontext neu berechnet."""
        context = context or self.to_context()
        return [
            slot.with_capacity(context.occupancy(slot))
            for slot in self.candidate_slots
            if slot.duration_minutes == student.minutes_per_session
        ]

    def summary(self) -> dict:
        """Kennzahlen für die Übersicht."""
        return {
            "school_site": self.school_site,
            "students": len(self.students),
            "sessions": len(self.sessions),
            "sessions_needed": sum(s.sessions_per_week for s in self.students),
            "bell_schedules": len(self.bell_schedules),
            "special_activities": len(self.special_activities),
            "school_hours": len(self.school_hours),
            "provider_availability": len(self.provider_availability),
            "candidate_slots": len(self.candidate_slots),
        }

    def print_summary(self) -> None:
        """Gibt eine Übersicht des Snapshots über Rich aus."""
        from rich.console import Console
        from rich.table import Table
        from rich import box

        labels = {
            "students": "Kinder",
            "sessions": "Bestehende Sitzungen",
            "sessions_needed": "Sitzungen/Woche (Soll)",
            "bell_schedules": "Klingelplan-Blöcke",
            "special_activities": "Sonderaktivitäten",
            "school_hours": "Schulzeit-Zeilen",
            "provider_availability": "Einsatzzeiten",
            "candidate_slots": "Kandidaten-Slots",
        }
        data = self.summary()
        table = Table(title=f"Snapshot: {self.school_site}", box=box.SIMPLE)
        table.add_column("Bereich", style="bold")
        table.add_column("Anzahl", justify="right")
        for key, label in labels.items():
            table.add_row(label, str(data[key]))
        Console().print(table)

    # ─── Persistenz ───

    def save_json(self, path: Path) -> None:
        """Speichert den Snapshot als JSON-Datei."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.model_dump_json(indent=2))

    @classmethod
    def load_json(cls, path: Path) -> "SchoolSnapshot":
        """Lädt einen Snapshot aus JSON."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Snapshot nicht gefunden: {path}")
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise SnapshotImportError(f"Snapshot ungültig: {path}\n{e}") from e
