"""
Protocols describing the collaborators the services depend on.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from pendulum import DateTime

from ..domain.models import (
    Appointment,
    AppointmentRequest,
    RequestStatus,
    WorkingHoursPolicy,
)


class SchedulingStoreProtocol(Protocol):
    """
    Persistence behaviour needed by the scheduling services.

    Implementations raise ``StorageError`` when the backend cannot be reached
    and ``ConflictAtCommit`` when a guarded insert would overlap an existing
    booking.
    """

    async def get_policy(self, therapist_id: str) -> Optional[WorkingHoursPolicy]:
        """Return the therapist's policy, or None when not configured."""

    async def save_policy(self, therapist_id: str, policy: WorkingHoursPolicy) -> WorkingHoursPolicy:
        """Replace the therapist's policy as a whole."""

    async def list_appointments(
        self,
        therapist_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        """Return non-cancelled appointments whose start lies in ``[start, end)``."""

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return one appointment by id."""

    async def list_series(self, root_id: str) -> List[Appointment]:
        """Return the root and every appointment whose parent is ``root_id``."""

    async def insert_appointment(
        self,
        appointment: Appointment,
        *,
        guard_buffer_minutes: Optional[int] = None,
    ) -> Appointment:
        """
        Persist a new appointment.

        When ``guard_buffer_minutes`` is given the insert must fail with
        ``ConflictAtCommit`` if it would overlap an existing booking widened
        by that buffer.
        """

    async def update_appointment(
        self,
        appointment_id: str,
        *,
        start: DateTime,
        duration_minutes: int,
        notes: Optional[str],
    ) -> Appointment:
        """Update time, duration and notes of a single appointment."""

    async def delete_series(self, root_id: str) -> int:
        """Delete the root and all its children, returning the number removed."""

    async def get_request(self, request_id: str) -> Optional[AppointmentRequest]:
        """Return one appointment request by id."""

    async def insert_request(self, request: AppointmentRequest) -> AppointmentRequest:
        """Persist a new appointment request."""

    async def update_request(
        self,
        request_id: str,
        *,
        status: RequestStatus,
        therapist_note: Optional[str],
    ) -> AppointmentRequest:
        """Record the therapist's answer to a request."""


class NotifierProtocol(Protocol):
    """Delivery sink for user-facing notifications."""

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        *,
        kind: str = "info",
        link: Optional[str] = None,
    ) -> None:
        """Send a notification; failures may raise and are handled by callers."""
