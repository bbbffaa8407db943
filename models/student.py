"""Datenmodell für eine Schülerin / einen Schüler mit Förderbedarf (Pydantic v2)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from config.defaults import KINDERGARTEN_GRADES


class Student(BaseModel):
    """Ein Kind mit N wiederkehrenden Förder-Sitzungen pro Woche."""

    model_config = ConfigDict(frozen=True)

    id: str
    grade_level: str                          # "TK", "K", "1".."8"
    sessions_per_week: int = Field(gt=0)
    minutes_per_session: int = Field(gt=0)
    school_site: str
    teacher_name: Optional[str] = None        # Klassenlehrkraft (für Sonderaktivitäten)
    initials: Optional[str] = None            # Anzeige, z.B. "JS"

    @field_validator("grade_level")
    @classmethod
    def normalize_grade(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("teacher_name")
    @classmethod
    def normalize_teacher(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @property
    def total_minutes_per_week(self) -> int:
        """Gesamtminuten pro Woche (Sitzungen × Dauer)."""
        return self.sessions_per_week * self.minutes_per_session

    @property
    def is_kindergarten(self) -> bool:
        """True für K und TK (eigene AM/PM-Schulzeiten möglich)."""
        return self.grade_level in KINDERGARTEN_GRADES

    @property
    def label(self) -> str:
        return self.initials or self.id
