"""
Booking workflows built on top of the availability resolver.

Covers client appointment requests and their approval, direct bookings by a
therapist, and creation of recurring series.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pendulum import DateTime

from ..domain.exceptions import ConflictAtCommit, RequestNotActionable, SchedulingError
from ..domain.models import (
    Appointment,
    AppointmentRequest,
    AppointmentStatus,
    RequestStatus,
    TimeRange,
)
from ..domain.recurrence import RecurrenceRule
from .availability_resolver import AvailabilityResolver
from .protocols import NotifierProtocol, SchedulingStoreProtocol

logger = logging.getLogger(__name__)


class BookingService:
    """
    Turns availability answers into persisted requests and appointments.

    Availability is read from a snapshot, so every commit path re-checks the
    exact interval and inserts with a store-level guard; losing a race
    surfaces as ``ConflictAtCommit``.
    """

    def __init__(
        self,
        store: SchedulingStoreProtocol,
        resolver: AvailabilityResolver,
        *,
        notifier: NotifierProtocol | None = None,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._notifier = notifier

    async def submit_request(
        self,
        *,
        client_id: str,
        therapist_id: str,
        start: DateTime,
        duration_minutes: int,
        notes: Optional[str] = None,
    ) -> AppointmentRequest:
        """
        Record a client's request for one of the currently open slots.

        ``start`` may be in any timezone; the slot is looked up on its date
        in the therapist's timezone.

        Raises:
            ConflictAtCommit: If the slot is not open any more
        """
        policy = await self._store.get_policy(therapist_id)
        local_day = start.in_timezone(policy.timezone).date() if policy else start.date()
        slots = await self._resolver.list_open_slots(therapist_id, local_day, duration_minutes)
        if not any(slot.start == start for slot in slots):
            raise ConflictAtCommit(
                "The selected time is no longer available",
                TimeRange.from_duration(start, duration_minutes),
            )

        request = await self._store.insert_request(
            AppointmentRequest(
                id="",
                client_id=client_id,
                therapist_id=therapist_id,
                requested_start=start,
                duration_minutes=duration_minutes,
                status=RequestStatus.PENDING,
                notes=notes.strip() if notes else None,
            )
        )
        logger.info("Client %s requested %s with therapist %s", client_id, start, therapist_id)

        await self._notify(
            therapist_id,
            "New Appointment Request",
            f"A client has requested an appointment on {start.format('YYYY-MM-DD')} "
            f"at {start.format('HH:mm')}",
            kind="info",
            link="/appointments?tab=requests",
        )
        return request

    async def approve_request(
        self,
        request_id: str,
        therapist_note: Optional[str] = None,
    ) -> Appointment:
        """
        Approve a pending request and create its appointment.

        Raises:
            RequestNotActionable: If the request is missing or already answered
            ConflictAtCommit: If the requested interval was booked meanwhile
        """
        request = await self._pending_request(request_id)

        conflicts = await self._resolver.find_conflicts(
            request.therapist_id,
            request.requested_start,
            request.duration_minutes,
        )
        if conflicts:
            raise ConflictAtCommit(
                "Slot no longer available: it overlaps an existing appointment",
                request.time_range,
            )

        appointment = await self._store.insert_appointment(
            Appointment(
                id="",
                therapist_id=request.therapist_id,
                client_id=request.client_id,
                start=request.requested_start,
                duration_minutes=request.duration_minutes,
                status=AppointmentStatus.SCHEDULED,
                notes=request.notes,
            ),
            guard_buffer_minutes=await self._guard_buffer(request.therapist_id),
        )
        await self._store.update_request(
            request_id,
            status=RequestStatus.APPROVED,
            therapist_note=_clean(therapist_note),
        )
        logger.info("Approved request %s as appointment %s", request_id, appointment.id)

        await self._notify(
            request.client_id,
            "Appointment Request Approved",
            _clean(therapist_note) or "Your appointment request has been approved",
            kind="success",
            link="/client-portal?tab=appointments",
        )
        return appointment

    async def deny_request(
        self,
        request_id: str,
        therapist_note: Optional[str] = None,
    ) -> AppointmentRequest:
        """Decline a pending request."""
        await self._pending_request(request_id)

        answered = await self._store.update_request(
            request_id,
            status=RequestStatus.DENIED,
            therapist_note=_clean(therapist_note),
        )
        logger.info("Denied request %s", request_id)

        await self._notify(
            answered.client_id,
            "Appointment Request Declined",
            _clean(therapist_note) or "Your appointment request has been denied",
            kind="warning",
            link="/client-portal?tab=appointments",
        )
        return answered

    async def book_directly(
        self,
        *,
        therapist_id: str,
        client_id: str,
        start: DateTime,
        duration_minutes: int,
        notes: Optional[str] = None,
        enforce_availability: bool = False,
    ) -> Appointment:
        """
        Create an appointment on the therapist's own authority.

        Availability is advisory unless ``enforce_availability`` is set, in
        which case conflicts raise ``ConflictAtCommit``.
        """
        guard: Optional[int] = None
        if enforce_availability:
            if not await self._resolver.check_slot(therapist_id, start, duration_minutes):
                raise ConflictAtCommit(
                    "Slot no longer available",
                    TimeRange.from_duration(start, duration_minutes),
                )
            guard = await self._guard_buffer(therapist_id)

        return await self._store.insert_appointment(
            Appointment(
                id="",
                therapist_id=therapist_id,
                client_id=client_id,
                start=start,
                duration_minutes=duration_minutes,
                notes=notes,
            ),
            guard_buffer_minutes=guard,
        )

    async def create_series(
        self,
        *,
        therapist_id: str,
        client_id: str,
        first_start: DateTime,
        duration_minutes: int,
        rule: RecurrenceRule,
        notes: Optional[str] = None,
    ) -> List[Appointment]:
        """
        Create a recurring series: a root carrying the rule, then one child
        per further occurrence pointing back at the root.
        """
        starts = rule.occurrence_starts(first_start)
        if not starts:
            raise ValueError(f"Recurrence ends on {rule.end_date}, before the first occurrence")

        root = await self._store.insert_appointment(
            Appointment(
                id="",
                therapist_id=therapist_id,
                client_id=client_id,
                start=starts[0],
                duration_minutes=duration_minutes,
                recurrence_rule=rule.to_rule_string(),
                recurrence_end_date=rule.end_date,
                notes=notes,
            )
        )

        series = [root]
        for start in starts[1:]:
            child = await self._store.insert_appointment(
                Appointment(
                    id="",
                    therapist_id=therapist_id,
                    client_id=client_id,
                    start=start,
                    duration_minutes=duration_minutes,
                    parent_appointment_id=root.id,
                    notes=notes,
                )
            )
            series.append(child)

        logger.info("Created series %s with %d occurrence(s)", root.id, len(series))
        return series

    async def _pending_request(self, request_id: str) -> AppointmentRequest:
        request = await self._store.get_request(request_id)
        if request is None:
            raise RequestNotActionable(f"No appointment request with id {request_id}")
        if not request.is_actionable:
            raise RequestNotActionable(
                f"Request {request_id} was already {request.status.value}"
            )
        return request

    async def _guard_buffer(self, therapist_id: str) -> int:
        policy = await self._store.get_policy(therapist_id)
        if policy is None:
            return 0
        return policy.effective_buffer_minutes

    async def _notify(self, recipient_id: str, title: str, message: str, *, kind: str, link: str) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(recipient_id, title, message, kind=kind, link=link)
        except SchedulingError as exc:
            logger.warning("Notification to %s failed: %s", recipient_id, exc)


def _clean(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    return note.strip() or None
