"""
Candidate slot generation from working hours alone.
"""

from datetime import date
from typing import Iterator

from pendulum import DateTime

from .models import WorkingHoursPolicy

DEFAULT_GRANULARITY_MINUTES = 30


class CandidateStarts:
    """
    Lazy, finite sequence of candidate start times for one day.

    Every iteration starts again from the opening time, so the same object
    can be consumed more than once.
    """

    def __init__(
        self,
        day: date,
        policy: WorkingHoursPolicy,
        granularity_minutes: int,
        duration_minutes: int,
    ):
        self.day = day
        self.duration_minutes = duration_minutes
        self._policy = policy
        self._granularity = granularity_minutes

    def __iter__(self) -> Iterator[DateTime]:
        hours = self._policy.get_hours_for_date(self.day)
        if hours is None:
            return

        current = hours.start
        while current.add(minutes=self.duration_minutes) <= hours.end:
            yield current
            current = current.add(minutes=self._granularity)


class SlotGenerator:
    """
    Produces fixed-spaced candidate starts implied by a policy.

    Booked appointments are ignored here; conflict filtering happens in
    ``SlotCalculator``.
    """

    def __init__(self, granularity_minutes: int = DEFAULT_GRANULARITY_MINUTES):
        if granularity_minutes <= 0:
            raise ValueError(f"granularity_minutes must be positive, got {granularity_minutes}")
        self.granularity_minutes = granularity_minutes

    def candidates(
        self,
        day: date,
        policy: WorkingHoursPolicy,
        requested_duration_minutes: int,
    ) -> CandidateStarts:
        """
        Candidate starts for ``day``.

        Starts run from the configured opening time in steps of the
        granularity while ``start + requested_duration_minutes`` still fits
        before closing. A closed weekday yields nothing.
        """
        if requested_duration_minutes <= 0:
            raise ValueError(
                f"requested_duration_minutes must be positive, got {requested_duration_minutes}"
            )
        return CandidateStarts(
            day=day,
            policy=policy,
            granularity_minutes=self.granularity_minutes,
            duration_minutes=requested_duration_minutes,
        )
