"""
Row models for the backend tables.

Rows are validated here, at the boundary, so malformed working-hours blobs
never reach the slot generator. Column names follow the backend schema
(``appointment_date``, ``buffer_time``, ...).
"""

from datetime import date, datetime, time
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

import pendulum
from pendulum import DateTime
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ..domain.exceptions import StorageError
from ..domain.models import (
    Appointment,
    AppointmentRequest,
    AppointmentStatus,
    DayHours,
    RequestStatus,
    Weekday,
    WorkingHoursPolicy,
)


class DayHoursRecord(BaseModel):
    """One weekday entry of the ``working_hours`` JSON column."""
    start: time
    end: time
    enabled: bool = True

    @field_serializer("start", "end")
    def serialize_time(self, value: time) -> str:
        return value.strftime("%H:%M")


class PolicyRecord(BaseModel):
    """A ``calendar_preferences`` row."""
    model_config = ConfigDict(extra="ignore")

    therapist_id: Optional[str] = None
    working_hours: Dict[Weekday, Optional[DayHoursRecord]] = Field(default_factory=dict)
    buffer_time: int = Field(default=0, ge=0)
    allow_back_to_back: bool = False
    max_daily_appointments: Optional[int] = Field(default=None, gt=0)
    timezone: str = "America/New_York"
    default_appointment_duration: int = Field(default=60, gt=0)

    @field_validator("working_hours", mode="before")
    @classmethod
    def normalize_weekday_keys(cls, value: Any) -> Any:
        """Accept a missing blob and weekday keys in any case."""
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {_weekday_key(key): entry for key, entry in value.items()}
        return value

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def to_domain(self) -> WorkingHoursPolicy:
        """
        Convert to the domain policy.

        Disabled and null weekdays are dropped (closed).

        Raises:
            InvalidInterval: If an enabled weekday does not open before it closes
        """
        per_weekday = {
            weekday: DayHours(start=entry.start, end=entry.end)
            for weekday, entry in self.working_hours.items()
            if entry is not None and entry.enabled
        }
        return WorkingHoursPolicy(
            per_weekday=per_weekday,
            buffer_minutes=self.buffer_time,
            allow_back_to_back=self.allow_back_to_back,
            max_daily_appointments=self.max_daily_appointments,
            timezone=self.timezone,
            default_duration_minutes=self.default_appointment_duration,
        )

    @classmethod
    def from_domain(cls, therapist_id: str, policy: WorkingHoursPolicy) -> "PolicyRecord":
        return cls(
            therapist_id=therapist_id,
            working_hours={
                weekday: DayHoursRecord(start=hours.start, end=hours.end)
                for weekday, hours in policy.per_weekday.items()
            },
            buffer_time=policy.buffer_minutes,
            allow_back_to_back=policy.allow_back_to_back,
            max_daily_appointments=policy.max_daily_appointments,
            timezone=policy.timezone,
            default_appointment_duration=policy.default_duration_minutes,
        )

    def to_row(self) -> Dict[str, Any]:
        row = self.model_dump(mode="json")
        row["working_hours"] = {
            weekday: {"start": entry["start"], "end": entry["end"]}
            for weekday, entry in row["working_hours"].items()
            if entry is not None and entry.get("enabled", True)
        }
        return row


class AppointmentRecord(BaseModel):
    """An ``appointments`` row."""
    model_config = ConfigDict(extra="ignore")

    id: str
    therapist_id: str
    client_id: str
    appointment_date: datetime
    duration_minutes: int = Field(gt=0)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    parent_appointment_id: Optional[str] = None
    recurrence_end_date: Optional[date] = None
    recurrence_rule: Optional[str] = None
    notes: Optional[str] = None

    def to_domain(self) -> Appointment:
        return Appointment(
            id=self.id,
            therapist_id=self.therapist_id,
            client_id=self.client_id,
            start=_as_pendulum(self.appointment_date),
            duration_minutes=self.duration_minutes,
            status=self.status,
            parent_appointment_id=self.parent_appointment_id,
            recurrence_end_date=self.recurrence_end_date,
            recurrence_rule=self.recurrence_rule,
            notes=self.notes,
        )

    @staticmethod
    def row_from_domain(appointment: Appointment) -> Dict[str, Any]:
        """Serialize an appointment for insertion; an empty id is left to the backend."""
        row: Dict[str, Any] = {
            "therapist_id": appointment.therapist_id,
            "client_id": appointment.client_id,
            "appointment_date": iso_utc(appointment.start),
            "duration_minutes": appointment.duration_minutes,
            "status": AppointmentStatus(appointment.status).value,
            "parent_appointment_id": appointment.parent_appointment_id,
            "recurrence_end_date": (
                appointment.recurrence_end_date.isoformat()
                if appointment.recurrence_end_date
                else None
            ),
            "recurrence_rule": appointment.recurrence_rule,
            "notes": appointment.notes,
        }
        if appointment.id:
            row["id"] = appointment.id
        return row


class AppointmentRequestRecord(BaseModel):
    """An ``appointment_requests`` row."""
    model_config = ConfigDict(extra="ignore")

    id: str
    client_id: str
    therapist_id: str
    requested_date: datetime
    duration_minutes: int = Field(gt=0)
    status: RequestStatus = RequestStatus.PENDING
    therapist_note: Optional[str] = None
    notes: Optional[str] = None

    def to_domain(self) -> AppointmentRequest:
        return AppointmentRequest(
            id=self.id,
            client_id=self.client_id,
            therapist_id=self.therapist_id,
            requested_start=_as_pendulum(self.requested_date),
            duration_minutes=self.duration_minutes,
            status=self.status,
            therapist_note=self.therapist_note,
            notes=self.notes,
        )

    @staticmethod
    def row_from_domain(request: AppointmentRequest) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "client_id": request.client_id,
            "therapist_id": request.therapist_id,
            "requested_date": iso_utc(request.requested_start),
            "duration_minutes": request.duration_minutes,
            "status": RequestStatus(request.status).value,
            "therapist_note": request.therapist_note,
            "notes": request.notes,
        }
        if request.id:
            row["id"] = request.id
        return row


RecordT = TypeVar("RecordT", PolicyRecord, AppointmentRecord, AppointmentRequestRecord)


def decode_row(record_cls: Type[RecordT], row: Mapping[str, Any], **defaults: Any):
    """
    Validate a backend row and convert it to its domain object.

    Raises:
        StorageError: If the row is malformed
    """
    try:
        return record_cls.model_validate({**defaults, **row}).to_domain()
    except ValueError as exc:
        raise StorageError(f"Malformed {record_cls.__name__} row: {exc}") from exc


def _weekday_key(key: Any) -> str:
    if isinstance(key, Weekday):
        return key.value
    return str(key).strip().lower()


def _as_pendulum(value: datetime) -> DateTime:
    # Naive timestamps are stored in UTC
    return pendulum.instance(value)


def iso_utc(value: DateTime) -> str:
    """Serialize a timestamp the way the backend stores it (UTC, ISO 8601)."""
    return value.in_timezone("UTC").to_iso8601_string()
