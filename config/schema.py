from pydantic import BaseModel, Field, field_validator, model_validator
from enum import Enum

from models.timeslot import normalize_time, time_to_minutes


class DistributionStrategy(str, Enum):
    AUTO = "auto"
    EVEN = "even"
    GRADE_GROUPED = "grade-grouped"
    TWO_PASS = "two-pass"
    SPREAD = "spread"
    COMPACT = "compact"


# ─── HARTE REGELN (Validator) ───

class ConstraintConfig(BaseModel):
    """Schwellwerte des Constraint-Validators.

    Alle Regeln sind hart: ein Slot, der eine davon verletzt, gilt als
    unzulässig. Die Werte sind die Richtlinien des Förderdienstes.
    """
    # Max. gleichzeitige Sitzungen (alle Kinder) im selben Zeitraum
    max_concurrent_sessions: int = Field(8, ge=1,
        description="Max. gleichzeitige Sitzungen")
    # Max. Minuten ohne Lücke für dasselbe Kind
    max_consecutive_minutes: int = Field(60, ge=1,
        description="Max. Minuten am Stück pro Kind")
    # Mindestpause zwischen zwei nicht direkt anschließenden Sitzungen
    min_break_minutes: int = Field(30, ge=0,
        description="Mindestpause zwischen Sitzungen")
    # Fallback-Schulzeit, wenn für (Jahrgang, Tag) nichts hinterlegt ist
    default_school_start: str = Field("08:00",
        description="Fallback-Schulbeginn")
    default_school_end: str = Field("15:00",
        description="Fallback-Schulende")

    @field_validator("default_school_start", "default_school_end")
    @classmethod
    def normalize_times(cls, v: str) -> str:
        return normalize_time(v)

    @model_validator(mode='after')
    def validate_school_window(self):
        if time_to_minutes(self.default_school_start) >= time_to_minutes(self.default_school_end):
            raise ValueError(
                f"Fallback-Schulzeit {self.default_school_start}-{self.default_school_end}: "
                f"Beginn muss vor Ende liegen")
        return self


# ─── VERTEILUNG (Distributor) ───

class DistributionConfig(BaseModel):
    """Einstellungen der Verteilungsstrategien.

    strategy=auto wählt die Strategie anhand von Bedarf und Kandidaten
    (siehe solver.session_distributor.choose_strategy). Jeder andere Wert
    erzwingt die genannte Strategie.
    """
    # Strategie (auto = automatische Wahl)
    strategy: DistributionStrategy = DistributionStrategy.AUTO
    # Belegung, ab der ein Slot als voll gilt (Kapazitäts-Score = 0)
    max_sessions_per_slot: int = Field(6, ge=1,
        description="Max. Sitzungen pro Slot")
    # Richtwert: max. Sitzungen desselben Kindes pro Tag
    max_sessions_per_day: int = Field(2, ge=1,
        description="Max. Sitzungen pro Tag")
    # Zeitpräferenz (höchstens eine von beiden)
    prefer_morning: bool = False
    prefer_afternoon: bool = False
    # Jahrgangs-Gruppierung in der Auto-Wahl
    grade_grouping_enabled: bool = True
    # Zwei-Pass: Belegungsgrenzen für Pass 1 und Pass 2
    first_pass_limit: int = Field(3, ge=0,
        description="Max. Belegung im ersten Pass")
    second_pass_limit: int = Field(6, ge=0,
        description="Max. Belegung im zweiten Pass")

    @model_validator(mode='after')
    def validate_preferences(self):
        if self.prefer_morning and self.prefer_afternoon:
            raise ValueError(
                "prefer_morning und prefer_afternoon schließen sich gegenseitig aus")
        if self.second_pass_limit < self.first_pass_limit:
            raise ValueError(
                f"second_pass_limit ({self.second_pass_limit}) muss >= "
                f"first_pass_limit ({self.first_pass_limit}) sein")
        return self


# ─── GESAMT-KONFIGURATION ───

class PlacementConfig(BaseModel):
    """Gesamtkonfiguration eines Standorts."""
    # Standort (Schule), an dem geplant wird
    school_site: str = Field(min_length=1, description="Standort / Schule")
    constraints: ConstraintConfig = Field(default_factory=ConstraintConfig)
    distribution: DistributionConfig = Field(default_factory=DistributionConfig)
    # Einsatzorte der Förderkraft zusätzlich prüfen
    check_work_location: bool = False
