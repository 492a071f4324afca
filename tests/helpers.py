"""
Shared builders for the test suite.
"""

from datetime import time
from typing import Optional

import pendulum
from pendulum import DateTime

from therapyslots.domain.models import (
    Appointment,
    AppointmentStatus,
    DayHours,
    Weekday,
    WorkingHoursPolicy,
)

TZ = "America/New_York"
MONDAY = pendulum.date(2024, 11, 25)
TUESDAY = pendulum.date(2024, 11, 26)
SUNDAY = pendulum.date(2024, 11, 24)
THERAPIST = "t-1"
CLIENT = "c-1"


def at(hour: int, minute: int = 0, day=MONDAY) -> DateTime:
    """Local time on a given day in the test timezone."""
    return pendulum.datetime(day.year, day.month, day.day, hour, minute, tz=TZ)


def make_policy(
    buffer_minutes: int = 15,
    allow_back_to_back: bool = False,
    max_daily_appointments: Optional[int] = None,
    timezone: str = TZ,
    **hours: DayHours,
) -> WorkingHoursPolicy:
    """Policy open Monday and Tuesday 09:00-17:00 unless ``hours`` overrides days."""
    per_weekday = {
        Weekday.MONDAY: DayHours(start=time(9, 0), end=time(17, 0)),
        Weekday.TUESDAY: DayHours(start=time(9, 0), end=time(17, 0)),
    }
    per_weekday.update({Weekday(day): value for day, value in hours.items()})
    return WorkingHoursPolicy(
        per_weekday=per_weekday,
        buffer_minutes=buffer_minutes,
        allow_back_to_back=allow_back_to_back,
        max_daily_appointments=max_daily_appointments,
        timezone=timezone,
    )


def make_appointment(
    start: DateTime,
    duration_minutes: int = 60,
    *,
    id: str = "",
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
    therapist_id: str = THERAPIST,
    client_id: str = CLIENT,
    parent_appointment_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> Appointment:
    return Appointment(
        id=id,
        therapist_id=therapist_id,
        client_id=client_id,
        start=start,
        duration_minutes=duration_minutes,
        status=status,
        parent_appointment_id=parent_appointment_id,
        notes=notes,
    )
