"""
Domain models for working hours, appointments and bookable slots.
"""

from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Dict, List, Optional

import pendulum
from pendulum import DateTime

from .exceptions import InvalidInterval, PartialBulkFailure


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def from_duration(cls, start: DateTime, duration_minutes: int) -> "TimeRange":
        """Build a range starting at ``start`` lasting ``duration_minutes``."""
        return cls(start=start, end=start.add(minutes=duration_minutes))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Ranges are half-open, so touching ends do not overlap.
        """
        return self.start < other.end and self.end > other.start

    def expanded(self, minutes: int) -> "TimeRange":
        """Return a copy widened by ``minutes`` on both ends."""
        if minutes <= 0:
            return self
        return TimeRange(
            start=self.start.subtract(minutes=minutes),
            end=self.end.add(minutes=minutes),
        )

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


class Weekday(str, Enum):
    """Weekday keys used by the working-hours configuration."""
    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @classmethod
    def for_date(cls, day: date) -> "Weekday":
        """Return the weekday of a calendar date."""
        # date.weekday() counts from Monday
        return _WEEKDAYS_FROM_MONDAY[day.weekday()]


_WEEKDAYS_FROM_MONDAY = [
    Weekday.MONDAY,
    Weekday.TUESDAY,
    Weekday.WEDNESDAY,
    Weekday.THURSDAY,
    Weekday.FRIDAY,
    Weekday.SATURDAY,
    Weekday.SUNDAY,
]


@dataclass(frozen=True)
class DayHours:
    """
    Open and close time for one weekday.

    Invariant: start must be before end. Hours crossing midnight are not
    supported and are rejected rather than wrapped.
    """
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInterval(
                f"Opening time {self.start.strftime('%H:%M')} must be before "
                f"closing time {self.end.strftime('%H:%M')}"
            )

    def on(self, day: date, timezone: str) -> TimeRange:
        """Anchor the hours to a calendar date in the given timezone."""
        return TimeRange(
            start=_at(day, self.start, timezone),
            end=_at(day, self.end, timezone),
        )


def _at(day: date, time_of_day: time, timezone: str) -> DateTime:
    return pendulum.datetime(
        day.year,
        day.month,
        day.day,
        time_of_day.hour,
        time_of_day.minute,
        tz=timezone,
    )


@dataclass
class WorkingHoursPolicy:
    """
    Per-therapist working hours plus buffer rules.

    A weekday missing from ``per_weekday`` is closed. ``max_daily_appointments``
    is carried for the settings screen only; slot computation never reads it.
    """
    per_weekday: Dict[Weekday, DayHours] = field(default_factory=dict)
    buffer_minutes: int = 0
    allow_back_to_back: bool = False
    max_daily_appointments: Optional[int] = None
    timezone: str = "America/New_York"
    default_duration_minutes: int = 60

    def __post_init__(self):
        if self.buffer_minutes < 0:
            raise ValueError(f"buffer_minutes must not be negative, got {self.buffer_minutes}")
        if self.max_daily_appointments is not None and self.max_daily_appointments <= 0:
            raise ValueError("max_daily_appointments must be positive when set")
        if self.default_duration_minutes <= 0:
            raise ValueError("default_duration_minutes must be greater than zero")
        try:
            pendulum.timezone(self.timezone)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {self.timezone}") from exc
        self.per_weekday = {Weekday(day): hours for day, hours in self.per_weekday.items()}

    @property
    def effective_buffer_minutes(self) -> int:
        """Buffer applied around existing appointments (zero when back-to-back is allowed)."""
        if self.allow_back_to_back:
            return 0
        return self.buffer_minutes

    def get_day_config(self, weekday: Weekday) -> DayHours | None:
        """Return the hours configured for a weekday, or None when closed."""
        return self.per_weekday.get(Weekday(weekday))

    def get_hours_for_date(self, day: date) -> TimeRange | None:
        """
        Get the open range for a specific calendar date.
        Returns None if the practice is closed that day.
        """
        hours = self.get_day_config(Weekday.for_date(day))
        if hours is None:
            return None
        return hours.on(day, self.timezone)


def default_policy(timezone: str = "America/New_York") -> WorkingHoursPolicy:
    """Policy handed to a therapist who opens their preferences for the first time."""
    weekdays = [
        Weekday.MONDAY,
        Weekday.TUESDAY,
        Weekday.WEDNESDAY,
        Weekday.THURSDAY,
        Weekday.FRIDAY,
    ]
    return WorkingHoursPolicy(
        per_weekday={day: DayHours(start=time(9, 0), end=time(17, 0)) for day in weekdays},
        buffer_minutes=15,
        allow_back_to_back=False,
        max_daily_appointments=None,
        timezone=timezone,
        default_duration_minutes=60,
    )


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Appointment:
    """
    A booked session.

    Recurring series share ``parent_appointment_id``: the root has none and
    every child points at the root's id.
    """
    id: str
    therapist_id: str
    client_id: str
    start: DateTime
    duration_minutes: int
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    parent_appointment_id: Optional[str] = None
    recurrence_end_date: Optional[date] = None
    recurrence_rule: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {self.duration_minutes}")

    @property
    def end(self) -> DateTime:
        return self.start.add(minutes=self.duration_minutes)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def blocks_time(self) -> bool:
        """Cancelled appointments never block a slot."""
        return self.status != AppointmentStatus.CANCELLED

    @property
    def is_series_root(self) -> bool:
        return self.parent_appointment_id is None

    @property
    def series_root_id(self) -> str:
        return self.parent_appointment_id or self.id


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


@dataclass(frozen=True)
class AppointmentRequest:
    """A client's request for a slot, answered once by the therapist."""
    id: str
    client_id: str
    therapist_id: str
    requested_start: DateTime
    duration_minutes: int
    status: RequestStatus = RequestStatus.PENDING
    therapist_note: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_actionable(self) -> bool:
        return self.status == RequestStatus.PENDING

    @property
    def time_range(self) -> TimeRange:
        return TimeRange.from_duration(self.requested_start, self.duration_minutes)


@dataclass(frozen=True)
class Slot:
    """
    A candidate bookable start of fixed duration. Derived, never persisted.
    """
    start: DateTime
    duration_minutes: int

    @property
    def date(self) -> date:
        return self.start.date()

    @property
    def time_of_day(self) -> time:
        return time(self.start.hour, self.start.minute)

    @property
    def end(self) -> DateTime:
        return self.start.add(minutes=self.duration_minutes)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def label(self) -> str:
        return self.start.format("HH:mm")

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:mm - HH:mm (N min)
        """
        weekday = Weekday.for_date(self.date).value.capitalize()
        date_str = self.start.format("YYYY-MM-DD")
        time_str = f"{self.start.format('HH:mm')} - {self.end.format('HH:mm')}"
        return f"{weekday}, {date_str} | {time_str} ({self.duration_minutes} min)"


@dataclass(frozen=True)
class BulkFailure:
    appointment_id: str
    reason: str


@dataclass
class BulkRescheduleResult:
    """Outcome of applying one change to every occurrence of a series."""
    succeeded: List[str] = field(default_factory=list)
    failed: List[BulkFailure] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def raise_for_failures(self) -> None:
        """Raise PartialBulkFailure if any occurrence could not be updated."""
        if self.failed:
            raise PartialBulkFailure(self)


class EditMode(str, Enum):
    VIEWING = "viewing"
    EDITING = "editing"
