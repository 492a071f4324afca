"""
In-memory scheduling store, optionally seeded from a JSON fixture file.
"""

import json
import logging
import threading
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from pendulum import DateTime

from ..domain.exceptions import ConflictAtCommit, StorageError
from ..domain.models import (
    Appointment,
    AppointmentRequest,
    RequestStatus,
    WorkingHoursPolicy,
)
from .records import (
    AppointmentRecord,
    AppointmentRequestRecord,
    PolicyRecord,
    decode_row,
)

logger = logging.getLogger(__name__)


class InMemorySchedulingStore:
    """
    Store that keeps preferences, appointments and requests in dictionaries.

    Used by the CLI's ``--mock`` mode and by tests. The fixture format mirrors
    the backend tables::

        {
            "calendar_preferences": [{"therapist_id": "...", "working_hours": {...}}],
            "appointments": [{"id": "...", "appointment_date": "...", ...}],
            "appointment_requests": [...]
        }

    Guarded inserts check and write under one lock, which is the atomic
    conditional insert the availability resolver relies on.
    """

    def __init__(self, default_timezone: str = "America/New_York"):
        self.default_timezone = default_timezone
        self._policies: Dict[str, WorkingHoursPolicy] = {}
        self._appointments: Dict[str, Appointment] = {}
        self._requests: Dict[str, AppointmentRequest] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_json(cls, data_file: Path, default_timezone: str = "America/New_York") -> "InMemorySchedulingStore":
        """
        Load a store from a JSON fixture file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            StorageError: If the file or one of its rows is malformed
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Mock data file not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Invalid JSON in {data_file}: {exc}") from exc

        store = cls(default_timezone=default_timezone)
        store.load_data(data)
        return store

    def load_data(self, data: Mapping[str, Any]) -> None:
        """Seed the store from fixture data (see class docstring for the format)."""
        for row in data.get("calendar_preferences", []):
            therapist_id = row.get("therapist_id")
            if not therapist_id:
                raise StorageError("calendar_preferences row without therapist_id")
            self._policies[therapist_id] = decode_row(
                PolicyRecord, row, timezone=self.default_timezone
            )

        for row in data.get("appointments", []):
            self.add_appointment(decode_row(AppointmentRecord, row))

        for row in data.get("appointment_requests", []):
            request = decode_row(AppointmentRequestRecord, row)
            self._requests[request.id] = request

        logger.debug(
            "Loaded %d policies, %d appointments, %d requests",
            len(self._policies),
            len(self._appointments),
            len(self._requests),
        )

    def to_data(self) -> Dict[str, List[Dict[str, Any]]]:
        """Dump the store in fixture format."""
        appointments = sorted(self._appointments.values(), key=lambda a: a.start)
        return {
            "calendar_preferences": [
                PolicyRecord.from_domain(therapist_id, policy).to_row()
                for therapist_id, policy in self._policies.items()
            ],
            "appointments": [AppointmentRecord.row_from_domain(a) for a in appointments],
            "appointment_requests": [
                AppointmentRequestRecord.row_from_domain(r) for r in self._requests.values()
            ],
        }

    def save_json(self, data_file: Path) -> None:
        with open(data_file, "w", encoding="utf-8") as f:
            json.dump(self.to_data(), f, indent=2)

    def add_policy(self, therapist_id: str, policy: WorkingHoursPolicy) -> None:
        self._policies[therapist_id] = policy

    def add_appointment(self, appointment: Appointment) -> Appointment:
        """Store an appointment unconditionally, assigning an id if it has none."""
        if not appointment.id:
            appointment = replace(appointment, id=_new_id())
        self._appointments[appointment.id] = appointment
        return appointment

    async def get_policy(self, therapist_id: str) -> Optional[WorkingHoursPolicy]:
        return self._policies.get(therapist_id)

    async def save_policy(self, therapist_id: str, policy: WorkingHoursPolicy) -> WorkingHoursPolicy:
        self._policies[therapist_id] = policy
        return policy

    async def list_appointments(
        self,
        therapist_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        matches = [
            appointment
            for appointment in self._appointments.values()
            if appointment.therapist_id == therapist_id
            and appointment.blocks_time
            and start <= appointment.start < end
        ]
        return sorted(matches, key=lambda a: a.start)

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    async def list_series(self, root_id: str) -> List[Appointment]:
        return [
            appointment
            for appointment in self._appointments.values()
            if appointment.id == root_id or appointment.parent_appointment_id == root_id
        ]

    async def insert_appointment(
        self,
        appointment: Appointment,
        *,
        guard_buffer_minutes: Optional[int] = None,
    ) -> Appointment:
        with self._lock:
            if guard_buffer_minutes is not None:
                self._ensure_free(appointment, guard_buffer_minutes)
            return self.add_appointment(appointment)

    async def update_appointment(
        self,
        appointment_id: str,
        *,
        start: DateTime,
        duration_minutes: int,
        notes: Optional[str],
    ) -> Appointment:
        with self._lock:
            current = self._appointments.get(appointment_id)
            if current is None:
                raise StorageError(f"Appointment {appointment_id} not found")
            updated = replace(current, start=start, duration_minutes=duration_minutes, notes=notes)
            self._appointments[appointment_id] = updated
            return updated

    async def delete_series(self, root_id: str) -> int:
        with self._lock:
            doomed = [
                appointment_id
                for appointment_id, appointment in self._appointments.items()
                if appointment_id == root_id or appointment.parent_appointment_id == root_id
            ]
            for appointment_id in doomed:
                del self._appointments[appointment_id]
            return len(doomed)

    async def get_request(self, request_id: str) -> Optional[AppointmentRequest]:
        return self._requests.get(request_id)

    async def insert_request(self, request: AppointmentRequest) -> AppointmentRequest:
        if not request.id:
            request = replace(request, id=_new_id())
        self._requests[request.id] = request
        return request

    async def update_request(
        self,
        request_id: str,
        *,
        status: RequestStatus,
        therapist_note: Optional[str],
    ) -> AppointmentRequest:
        with self._lock:
            current = self._requests.get(request_id)
            if current is None:
                raise StorageError(f"Appointment request {request_id} not found")
            updated = replace(current, status=status, therapist_note=therapist_note)
            self._requests[request_id] = updated
            return updated

    def _ensure_free(self, appointment: Appointment, buffer_minutes: int) -> None:
        interval = appointment.time_range
        for existing in self._appointments.values():
            if existing.therapist_id != appointment.therapist_id or not existing.blocks_time:
                continue
            if interval.overlaps(existing.time_range.expanded(buffer_minutes)):
                raise ConflictAtCommit(
                    f"Slot no longer available: overlaps appointment {existing.id}",
                    interval,
                )


def _new_id() -> str:
    return uuid.uuid4().hex
