"""
Application service answering availability questions for a therapist.

The resolver loads the therapist's working-hours policy and existing
appointments through a store adapter and delegates the actual filtering to
the domain-level ``SlotCalculator``. Listing slots for a date and deciding
whether a date is open at all go through the same per-day evaluation, so the
two answers cannot disagree.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import ConfigurationMissing, StorageError
from ..domain.models import Appointment, Slot, TimeRange, WorkingHoursPolicy
from ..domain.slot_calculator import SlotCalculator
from ..domain.slot_generator import SlotGenerator
from .protocols import SchedulingStoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_MAX_APPOINTMENT_MINUTES = 240


class AvailabilityOutcome(str, Enum):
    OPEN = "open"
    FULLY_BOOKED = "fully_booked"
    CLOSED_DAY = "closed_day"
    NOT_CONFIGURED = "not_configured"
    LOAD_FAILED = "load_failed"


@dataclass
class AvailabilityResult:
    """Open slots for one day plus the reason when there are none."""
    outcome: AvailabilityOutcome
    slots: List[Slot] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return bool(self.slots)


class AvailabilityResolver:
    """
    Computes open slots on demand from a snapshot of the store.

    Slots are not reserved. A booking committed by another caller after this
    resolver read its snapshot is invisible to it, so a slot reported open
    can be taken before the caller commits. Exclusivity has to be enforced by
    the store at insert time (see ``SchedulingStoreProtocol.insert_appointment``);
    callers must treat ``ConflictAtCommit`` from the commit path as a signal
    to query again.

    Query operations fail closed: a therapist without a policy, or a storage
    failure while loading, yields no availability instead of an error.
    ``max_daily_appointments`` is not consulted.
    """

    def __init__(
        self,
        store: SchedulingStoreProtocol,
        *,
        generator: SlotGenerator | None = None,
        max_appointment_minutes: int = DEFAULT_MAX_APPOINTMENT_MINUTES,
        fetch_padding_minutes: Optional[int] = None,
    ) -> None:
        padding = max_appointment_minutes if fetch_padding_minutes is None else fetch_padding_minutes
        if padding < max_appointment_minutes:
            raise ValueError(
                "fetch_padding_minutes must cover max_appointment_minutes "
                f"({padding} < {max_appointment_minutes})"
            )
        self._store = store
        self._generator = generator or SlotGenerator()
        self._fetch_padding_minutes = padding

    @classmethod
    def from_config(cls, store: SchedulingStoreProtocol, config) -> "AvailabilityResolver":
        """Build a resolver from an ``AvailabilityConfig`` section."""
        return cls(
            store,
            generator=SlotGenerator(config.slot_granularity_minutes),
            max_appointment_minutes=config.max_appointment_minutes,
            fetch_padding_minutes=config.fetch_padding_minutes,
        )

    async def list_open_slots(
        self,
        therapist_id: str,
        day: date,
        requested_duration_minutes: int,
    ) -> List[Slot]:
        """Open slots on ``day`` for a session of the requested length, ascending."""
        result = await self.resolve(therapist_id, day, requested_duration_minutes)
        return result.slots

    async def is_date_open(
        self,
        therapist_id: str,
        day: date,
        requested_duration_minutes: int,
    ) -> bool:
        """True iff ``list_open_slots`` for the same arguments is non-empty."""
        slots = await self.list_open_slots(therapist_id, day, requested_duration_minutes)
        return len(slots) > 0

    async def resolve(
        self,
        therapist_id: str,
        day: date,
        requested_duration_minutes: int,
    ) -> AvailabilityResult:
        """
        Evaluate one day and report why it has no slots when it has none.
        """
        _validate_duration(requested_duration_minutes)

        policy = await self._load_policy_or_none(therapist_id)
        if isinstance(policy, AvailabilityResult):
            return policy

        if policy.get_hours_for_date(day) is None:
            return AvailabilityResult(outcome=AvailabilityOutcome.CLOSED_DAY)

        try:
            appointments = await self._load_appointments(therapist_id, policy, day, day)
        except StorageError as exc:
            logger.warning("Could not load appointments for therapist %s: %s", therapist_id, exc)
            return AvailabilityResult(outcome=AvailabilityOutcome.LOAD_FAILED)

        return self._evaluate_day(policy, day, appointments, requested_duration_minutes)

    async def open_dates(
        self,
        therapist_id: str,
        start_date: date,
        end_date: date,
        requested_duration_minutes: int,
    ) -> Dict[date, bool]:
        """
        Map every date in ``[start_date, end_date]`` to whether it has an opening.

        One snapshot is loaded for the whole range; each day is then evaluated
        exactly as ``list_open_slots`` would evaluate it.
        """
        _validate_duration(requested_duration_minutes)
        if end_date < start_date:
            raise ValueError(f"end_date {end_date} is before start_date {start_date}")

        days = _date_range(start_date, end_date)
        closed = {day: False for day in days}

        policy = await self._load_policy_or_none(therapist_id)
        if isinstance(policy, AvailabilityResult):
            return closed

        try:
            appointments = await self._load_appointments(therapist_id, policy, start_date, end_date)
        except StorageError as exc:
            logger.warning("Could not load appointments for therapist %s: %s", therapist_id, exc)
            return closed

        return {
            day: self._evaluate_day(policy, day, appointments, requested_duration_minutes).is_open
            for day in days
        }

    async def find_conflicts(
        self,
        therapist_id: str,
        start: DateTime,
        duration_minutes: int,
    ) -> List[Appointment]:
        """
        Appointments that block a single requested interval.

        Working hours are not checked here, only overlap with existing
        bookings (buffer applied per policy; no policy means no buffer).
        This feeds mutations, so storage failures propagate.
        """
        _validate_duration(duration_minutes)
        interval = TimeRange.from_duration(start, duration_minutes)

        try:
            policy = await self._load_policy(therapist_id)
        except ConfigurationMissing:
            policy = WorkingHoursPolicy()

        window = self._fetch_window(interval.start, interval.end, policy)
        appointments = await self._store.list_appointments(therapist_id, window.start, window.end)

        calculator = SlotCalculator(policy, self._generator)
        return calculator.conflicts_with(interval, appointments)

    async def check_slot(
        self,
        therapist_id: str,
        start: DateTime,
        duration_minutes: int,
    ) -> bool:
        """True when the single interval starting at ``start`` is still free."""
        conflicts = await self.find_conflicts(therapist_id, start, duration_minutes)
        return not conflicts

    def _evaluate_day(
        self,
        policy: WorkingHoursPolicy,
        day: date,
        appointments: Sequence[Appointment],
        requested_duration_minutes: int,
    ) -> AvailabilityResult:
        if policy.get_hours_for_date(day) is None:
            return AvailabilityResult(outcome=AvailabilityOutcome.CLOSED_DAY)

        calculator = SlotCalculator(policy, self._generator)
        slots = calculator.find_open_slots(day, appointments, requested_duration_minutes)
        if not slots:
            return AvailabilityResult(outcome=AvailabilityOutcome.FULLY_BOOKED)
        return AvailabilityResult(outcome=AvailabilityOutcome.OPEN, slots=slots)

    async def _load_policy(self, therapist_id: str) -> WorkingHoursPolicy:
        policy = await self._store.get_policy(therapist_id)
        if policy is None:
            raise ConfigurationMissing(therapist_id)
        return policy

    async def _load_policy_or_none(self, therapist_id: str):
        """Return the policy, or a closed AvailabilityResult explaining why not."""
        try:
            return await self._load_policy(therapist_id)
        except ConfigurationMissing:
            logger.info("Therapist %s has no working hours configured", therapist_id)
            return AvailabilityResult(outcome=AvailabilityOutcome.NOT_CONFIGURED)
        except StorageError as exc:
            logger.warning("Could not load working hours for therapist %s: %s", therapist_id, exc)
            return AvailabilityResult(outcome=AvailabilityOutcome.LOAD_FAILED)

    async def _load_appointments(
        self,
        therapist_id: str,
        policy: WorkingHoursPolicy,
        first_day: date,
        last_day: date,
    ) -> List[Appointment]:
        day_start = _start_of(first_day, policy.timezone)
        day_end = _start_of(last_day, policy.timezone).add(days=1)
        window = self._fetch_window(day_start, day_end, policy)
        return await self._store.list_appointments(therapist_id, window.start, window.end)

    def _fetch_window(self, start: DateTime, end: DateTime, policy: WorkingHoursPolicy) -> TimeRange:
        """
        Widen a query range so every appointment that can reach into it is fetched.

        An appointment touches the range only if it starts no earlier than
        one maximum appointment length plus the buffer before it, and no later
        than the buffer after it.
        """
        buffer_minutes = policy.effective_buffer_minutes
        return TimeRange(
            start=start.subtract(minutes=self._fetch_padding_minutes + buffer_minutes),
            end=end.add(minutes=buffer_minutes),
        )


def _validate_duration(duration_minutes: int) -> None:
    if duration_minutes <= 0:
        raise ValueError(f"Requested duration must be positive, got {duration_minutes}")


def _start_of(day: date, timezone: str) -> DateTime:
    return pendulum.datetime(day.year, day.month, day.day, tz=timezone)


def _date_range(start_date: date, end_date: date) -> List[date]:
    days: List[date] = []
    current = pendulum.date(start_date.year, start_date.month, start_date.day)
    while current <= end_date:
        days.append(current)
        current = current.add(days=1)
    return days
