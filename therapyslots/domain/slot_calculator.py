"""
Core business logic for turning candidate starts into open slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from datetime import date
from typing import Iterable, List

from .models import Appointment, Slot, TimeRange, WorkingHoursPolicy
from .slot_generator import SlotGenerator


class SlotCalculator:
    """
    Filters candidate slots against existing appointments.

    Algorithm:
    1. Generate candidate starts for the day from the working hours
    2. Drop cancelled appointments
    3. Widen each remaining appointment by the effective buffer
    4. Keep candidates whose interval overlaps none of the busy ranges
    5. Return the survivors in ascending order

    Only the existing appointments are widened, never the candidate itself.
    """

    def __init__(self, policy: WorkingHoursPolicy, generator: SlotGenerator | None = None):
        self.policy = policy
        self.generator = generator or SlotGenerator()

    def find_open_slots(
        self,
        day: date,
        appointments: Iterable[Appointment],
        requested_duration_minutes: int,
    ) -> List[Slot]:
        """
        Find all open slots on a single day.

        Args:
            day: Calendar date in the policy's timezone
            appointments: Existing appointments (any status, any day)
            requested_duration_minutes: Length of the session to place

        Returns:
            List of Slot objects in ascending start order
        """
        busy = self.busy_ranges(appointments)

        slots: List[Slot] = []
        for start in self.generator.candidates(day, self.policy, requested_duration_minutes):
            candidate = TimeRange.from_duration(start, requested_duration_minutes)
            if not self._collides(candidate, busy):
                slots.append(Slot(start=start, duration_minutes=requested_duration_minutes))

        return slots

    def busy_ranges(self, appointments: Iterable[Appointment]) -> List[TimeRange]:
        """
        Occupied ranges of all blocking appointments, buffer applied.

        Returns ranges sorted by start time.
        """
        buffer_minutes = self.policy.effective_buffer_minutes
        ranges = [
            appointment.time_range.expanded(buffer_minutes)
            for appointment in appointments
            if appointment.blocks_time
        ]
        return sorted(ranges, key=lambda r: r.start)

    def conflicts_with(
        self,
        interval: TimeRange,
        appointments: Iterable[Appointment],
    ) -> List[Appointment]:
        """Return the blocking appointments whose buffered range overlaps ``interval``."""
        buffer_minutes = self.policy.effective_buffer_minutes
        return [
            appointment
            for appointment in appointments
            if appointment.blocks_time
            and interval.overlaps(appointment.time_range.expanded(buffer_minutes))
        ]

    def is_interval_open(
        self,
        interval: TimeRange,
        appointments: Iterable[Appointment],
    ) -> bool:
        """Check a single interval against existing appointments."""
        return not self.conflicts_with(interval, appointments)

    @staticmethod
    def _collides(candidate: TimeRange, busy: List[TimeRange]) -> bool:
        for busy_range in busy:
            if busy_range.start >= candidate.end:
                # Sorted by start, nothing later can overlap
                return False
            if candidate.overlaps(busy_range):
                return True
        return False
