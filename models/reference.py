"""Referenzdaten der Schule: Klingelplan, Sonderaktivitäten, Schulzeiten, Einsatzorte."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from models.timeslot import normalize_time, time_to_minutes


class _TimedBlock(BaseModel):
    """Gemeinsame Basis: fester Block an einem Wochentag."""

    model_config = ConfigDict(frozen=True)

    day_of_week: int = Field(ge=1, le=7)   # ISO: 1=Mo .. 7=So
    start_time: str
    end_time: str

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_time(cls, v: str) -> str:
        return normalize_time(v)

    @model_validator(mode="after")
    def _check_order(self):
        if time_to_minutes(self.start_time) >= time_to_minutes(self.end_time):
            raise ValueError(
                f"{type(self).__name__} {self.start_time}-{self.end_time}: "
                f"Beginn muss vor Ende liegen"
            )
        return self


class BellSchedule(_TimedBlock):
    """Jahrgangsweiter Fixblock (Pause, Mittagessen, ...).

    grade_level darf eine Komma-Liste sein ("1,2,3"); der Block gilt dann
    für jeden genannten Jahrgang.
    """

    grade_level: str
    period_name: str

    @property
    def grades(self) -> list[str]:
        """Einzelne Jahrgänge aus grade_level ("1, 2" → ["1", "2"])."""
        return [g.strip().upper() for g in self.grade_level.split(",") if g.strip()]


class SpecialActivity(_TimedBlock):
    """Fester Termin einer Klassenlehrkraft (Sport, Bibliothek, Vorbereitung)."""

    teacher_name: str
    activity_name: str

    @field_validator("teacher_name")
    @classmethod
    def _strip_teacher(cls, v: str) -> str:
        return v.strip()


class SchoolHours(_TimedBlock):
    """Unterrichtszeit für (Jahrgang, Tag).

    grade_level: "3", "K", "K-AM", "TK-PM" oder "default" (alle außer K/TK).
    """

    grade_level: str

    @field_validator("grade_level")
    @classmethod
    def _normalize_grade(cls, v: str) -> str:
        v = v.strip()
        return v if v == "default" else v.upper()


class AvailabilitySlot(BaseModel):
    """Einsatzzeit der Förderkraft an einem Standort (Work-Location)."""

    model_config = ConfigDict(frozen=True)

    school_site: str
    day_of_week: int = Field(ge=1, le=7)
    start_time: Optional[str] = None
    end_time: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_time(cls, v: Optional[str]) -> Optional[str]:
        return normalize_time(v) if v is not None else None
