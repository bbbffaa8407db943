from models.timeslot import TimeSlot
from models.student import Student
from models.session import ScheduleSession
from models.reference import AvailabilitySlot, BellSchedule, SchoolHours, SpecialActivity
from models.context import SchedulingContext, build_scheduling_context
from models.results import (
    ConstraintType,
    DistributionMetrics,
    DistributionResult,
    SlotScore,
    ValidationResult,
    ValidationViolation,
)
from models.snapshot import SchoolSnapshot, SnapshotImportError

__all__ = [
    "TimeSlot",
    "Student",
    "ScheduleSession",
    "AvailabilitySlot",
    "BellSchedule",
    "SchoolHours",
    "SpecialActivity",
    "SchedulingContext",
    "build_scheduling_context",
    "ConstraintType",
    "DistributionMetrics",
    "DistributionResult",
    "SlotScore",
    "ValidationResult",
    "ValidationViolation",
    "SchoolSnapshot",
    "SnapshotImportError",
]
