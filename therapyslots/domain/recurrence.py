"""
Occurrence generation for recurring appointment series.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import List, Optional

from pendulum import DateTime


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class RecurrenceRule:
    """
    How often a series repeats.

    ``occurrences`` caps the series length; ``end_date`` (inclusive) cuts it
    short when reached first.
    """
    frequency: Frequency = Frequency.WEEKLY
    interval: int = 1
    occurrences: int = 10
    end_date: Optional[date] = None

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError(f"interval must be positive, got {self.interval}")
        if self.occurrences <= 0:
            raise ValueError(f"occurrences must be positive, got {self.occurrences}")

    def to_rule_string(self) -> str:
        """Compact rule stored on the series root, e.g. ``FREQ=WEEKLY;INTERVAL=1``."""
        return f"FREQ={Frequency(self.frequency).value.upper()};INTERVAL={self.interval}"

    def occurrence_starts(self, first_start: DateTime) -> List[DateTime]:
        """
        Start times of every occurrence, the first one included.

        Each start is computed from ``first_start`` rather than from the
        previous occurrence, so monthly series do not drift after a short
        month.
        """
        starts: List[DateTime] = []
        for index in range(self.occurrences):
            start = self._nth(first_start, index)
            if self.end_date is not None and start.date() > self.end_date:
                break
            starts.append(start)
        return starts

    def _nth(self, first_start: DateTime, index: int) -> DateTime:
        step = index * self.interval
        frequency = Frequency(self.frequency)
        if frequency == Frequency.DAILY:
            return first_start.add(days=step)
        if frequency == Frequency.WEEKLY:
            return first_start.add(weeks=step)
        if frequency == Frequency.BIWEEKLY:
            return first_start.add(weeks=2 * step)
        return first_start.add(months=step)
