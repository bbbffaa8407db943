"""Datenmodell für einen Kandidaten-Zeitslot im Wochenraster + Zeit-Hilfsfunktionen."""

from dataclasses import dataclass

from config.defaults import DAY_NAMES


def normalize_time(value: str) -> str:
    """Normalisiert "H:MM", "HH:MM" oder "HH:MM:SS" auf "HH:MM"."""
    parts = value.strip().split(":")
    if len(parts) < 2:
        raise ValueError(f"Ungültige Uhrzeit: {value!r} (erwartet HH:MM)")
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError as e:
        raise ValueError(f"Ungültige Uhrzeit: {value!r} (erwartet HH:MM)") from e
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Uhrzeit außerhalb des Tages: {value!r}")
    return f"{hours:02d}:{minutes:02d}"


def time_to_minutes(value: str) -> int:
    """Uhrzeit → Minuten seit Mitternacht ("09:30" → 570)."""
    hours, minutes = normalize_time(value).split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time(minutes: int) -> str:
    """570 → "09:30"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def add_minutes(value: str, minutes: int) -> str:
    """Addiert Minuten auf eine Uhrzeit ("09:00" + 30 → "09:30")."""
    return minutes_to_time(time_to_minutes(value) + minutes)


def has_time_overlap(start1: str, end1: str, start2: str, end2: str) -> bool:
    """Halboffene Intervalle [s1,e1) und [s2,e2) überlappen.

    Sich berührende Intervalle (09:00-09:30 / 09:30-10:00) überlappen NICHT.
    """
    s1, e1 = time_to_minutes(start1), time_to_minutes(end1)
    s2, e2 = time_to_minutes(start2), time_to_minutes(end2)
    return not (e1 <= s2 or s1 >= e2)


@dataclass(frozen=True)
class TimeSlot:
    """Ein wöchentlich wiederkehrender Kandidaten-Slot an einem Wochentag.

    Immutable (frozen=True) damit er als Dict-Key / Set-Element nutzbar ist.
    """

    # Wochentag nach ISO (1=Montag, 2=Dienstag, ..., 7=Sonntag)
    day_of_week: int
    # Beginn "HH:MM"
    start_time: str
    # Ende "HH:MM" (exklusiv)
    end_time: str
    # Aktuelle Belegung: Anzahl bestehender Sitzungen in diesem Zeitraum
    capacity: int = 0

    def __post_init__(self) -> None:
        if not 1 <= self.day_of_week <= 7:
            raise ValueError(
                f"day_of_week muss 1 (Mo) .. 7 (So) sein, nicht {self.day_of_week}"
            )
        # Frozen: normalisierte Zeiten über object.__setattr__ setzen
        object.__setattr__(self, "start_time", normalize_time(self.start_time))
        object.__setattr__(self, "end_time", normalize_time(self.end_time))
        if self.start_minutes >= self.end_minutes:
            raise ValueError(
                f"start_time ({self.start_time}) muss vor end_time ({self.end_time}) liegen"
            )
        if self.capacity < 0:
            raise ValueError(f"capacity darf nicht negativ sein ({self.capacity})")

    @property
    def start_minutes(self) -> int:
        return time_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_to_minutes(self.end_time)

    @property
    def duration_minutes(self) -> int:
        """Dauer des Slots in Minuten."""
        return self.end_minutes - self.start_minutes

    @property
    def is_morning(self) -> bool:
        """True wenn der Slot vor 12 Uhr beginnt."""
        return self.start_minutes < 12 * 60

    @property
    def key(self) -> tuple[int, str, str]:
        """Identität ohne Belegung: (Tag, Beginn, Ende)."""
        return (self.day_of_week, self.start_time, self.end_time)

    @property
    def day_name(self) -> str:
        """Abgekürzter Tagesname."""
        return DAY_NAMES.get(self.day_of_week, str(self.day_of_week))

    def with_capacity(self, capacity: int) -> "TimeSlot":
        """Kopie mit neuer Belegung."""
        return TimeSlot(self.day_of_week, self.start_time, self.end_time, capacity)

    def overlaps(self, start_time: str, end_time: str) -> bool:
        return has_time_overlap(self.start_time, self.end_time, start_time, end_time)

    def __repr__(self) -> str:
        return f"TimeSlot({self.day_name}, {self.start_time}-{self.end_time}, belegt={self.capacity})"

    def __str__(self) -> str:
        return f"{self.day_name} {self.start_time}-{self.end_time}"
