"""
Domain layer - Pure business logic without external dependencies.
"""

from .models import (
    Appointment,
    AppointmentRequest,
    AppointmentStatus,
    BulkFailure,
    BulkRescheduleResult,
    DayHours,
    EditMode,
    RequestStatus,
    Slot,
    TimeRange,
    Weekday,
    WorkingHoursPolicy,
    default_policy,
)
from .recurrence import Frequency, RecurrenceRule
from .slot_calculator import SlotCalculator
from .slot_generator import SlotGenerator

__all__ = [
    "Appointment",
    "AppointmentRequest",
    "AppointmentStatus",
    "BulkFailure",
    "BulkRescheduleResult",
    "DayHours",
    "EditMode",
    "Frequency",
    "RecurrenceRule",
    "RequestStatus",
    "Slot",
    "SlotCalculator",
    "SlotGenerator",
    "TimeRange",
    "Weekday",
    "WorkingHoursPolicy",
    "default_policy",
]
