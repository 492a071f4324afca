"""
Tests for candidate slot generation.
"""

from datetime import time

import pytest

from therapyslots.domain.models import DayHours
from therapyslots.domain.slot_generator import SlotGenerator
from tests.helpers import MONDAY, SUNDAY, at, make_policy


class TestSlotGenerator:
    """Tests for SlotGenerator."""

    def test_hourly_sessions_fill_the_day(self):
        """Test a 09:00-17:00 day with 60 minute sessions."""
        starts = list(SlotGenerator().candidates(MONDAY, make_policy(), 60))

        assert len(starts) == 15
        assert starts[0] == at(9)
        assert starts[-1] == at(16)

    def test_starts_spaced_by_granularity(self):
        starts = list(SlotGenerator().candidates(MONDAY, make_policy(), 60))

        for earlier, later in zip(starts, starts[1:]):
            assert (later - earlier).in_minutes() == 30

    def test_last_start_must_finish_by_closing(self):
        """A 90 minute session cannot start after 15:30."""
        starts = list(SlotGenerator().candidates(MONDAY, make_policy(), 90))

        assert starts[-1] == at(15, 30)
        assert len(starts) == 14

    def test_partial_slot_at_closing_excluded(self):
        """A 45 minute session on a day closing at 10:00 fits only at 09:00."""
        policy = make_policy(monday=DayHours(start=time(9, 0), end=time(10, 0)))

        starts = list(SlotGenerator().candidates(MONDAY, policy, 45))

        assert starts == [at(9)]

    def test_session_longer_than_day_yields_nothing(self):
        policy = make_policy(monday=DayHours(start=time(9, 0), end=time(10, 0)))

        assert list(SlotGenerator().candidates(MONDAY, policy, 90)) == []

    def test_closed_day_yields_nothing(self):
        assert list(SlotGenerator().candidates(SUNDAY, make_policy(), 60)) == []

    def test_non_aligned_opening_time(self):
        """Starts count from the opening time, not from the top of the hour."""
        policy = make_policy(monday=DayHours(start=time(9, 15), end=time(11, 0)))

        starts = list(SlotGenerator().candidates(MONDAY, policy, 60))

        assert starts == [at(9, 15), at(9, 45)]

    def test_sequence_is_restartable(self):
        candidates = SlotGenerator().candidates(MONDAY, make_policy(), 60)

        assert list(candidates) == list(candidates)

    def test_custom_granularity(self):
        starts = list(SlotGenerator(granularity_minutes=60).candidates(MONDAY, make_policy(), 60))

        assert len(starts) == 8

    def test_invalid_granularity_rejected(self):
        with pytest.raises(ValueError):
            SlotGenerator(granularity_minutes=0)

    def test_invalid_duration_rejected(self):
        with pytest.raises(ValueError):
            SlotGenerator().candidates(MONDAY, make_policy(), 0)
