"""Bestehende (festgeschriebene) Förder-Sitzung (Pydantic v2)."""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.student import Student
from models.timeslot import TimeSlot, normalize_time, time_to_minutes


class ScheduleSession(BaseModel):
    """Eine festgeschriebene wöchentliche Sitzung.

    Wird extern gespeichert; der Kern liest sie nur.
    """

    model_config = ConfigDict(frozen=True)

    student_id: str
    day_of_week: int = Field(ge=1, le=7)   # ISO: 1=Mo .. 7=So
    start_time: str
    end_time: str
    delivered_by: Literal["provider", "sea", "specialist"] = "provider"
    id: Optional[str] = None
    provider_id: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_time(cls, v: str) -> str:
        return normalize_time(v)

    @model_validator(mode="after")
    def _check_order(self):
        if time_to_minutes(self.start_time) >= time_to_minutes(self.end_time):
            raise ValueError(
                f"Sitzung {self.start_time}-{self.end_time}: Beginn muss vor Ende liegen"
            )
        return self

    @classmethod
    def from_slot(
        cls,
        student: Student,
        slot: TimeSlot,
        provider_id: Optional[str] = None,
    ) -> "ScheduleSession":
        """Erzeugt eine neue Sitzung aus einem gewählten Slot."""
        return cls(
            student_id=student.id,
            day_of_week=slot.day_of_week,
            start_time=slot.start_time,
            end_time=slot.end_time,
            provider_id=provider_id,
        )

    @property
    def duration_minutes(self) -> int:
        return time_to_minutes(self.end_time) - time_to_minutes(self.start_time)

    def __str__(self) -> str:
        return f"{self.student_id}: Tag {self.day_of_week} {self.start_time}-{self.end_time}"
