"""
Tests for the slot calculator - the core business logic.
"""

from therapyslots.domain.models import AppointmentStatus, TimeRange
from therapyslots.domain.slot_calculator import SlotCalculator
from tests.helpers import MONDAY, SUNDAY, TUESDAY, at, make_appointment, make_policy


def labels(slots):
    return [slot.label for slot in slots]


class TestSlotCalculator:
    """Tests for SlotCalculator."""

    def test_empty_calendar_returns_all_candidates(self):
        """Test with no appointments - every candidate is open."""
        calculator = SlotCalculator(make_policy())

        slots = calculator.find_open_slots(MONDAY, [], 60)

        assert len(slots) == 15
        assert slots[0].start == at(9)
        assert slots[-1].start == at(16)

    def test_buffer_blocks_neighbouring_starts(self):
        """
        Appointment 10:00-11:00 with a 15 minute buffer blocks 09:45-11:15.
        Every 60 minute candidate from 09:00 to 11:00 overlaps it.
        """
        calculator = SlotCalculator(make_policy(buffer_minutes=15))

        slots = calculator.find_open_slots(MONDAY, [make_appointment(at(10))], 60)

        assert labels(slots) == [
            "11:30", "12:00", "12:30", "13:00", "13:30",
            "14:00", "14:30", "15:00", "15:30", "16:00",
        ]

    def test_touching_buffer_boundary_is_open(self):
        """
        Appointment 10:45-11:45 buffered by 15 blocks 10:30-12:00.
        A 09:30-10:30 candidate only touches that range and stays open.
        """
        calculator = SlotCalculator(make_policy(buffer_minutes=15))

        slots = calculator.find_open_slots(MONDAY, [make_appointment(at(10, 45))], 60)

        assert "09:30" in labels(slots)
        assert "10:00" not in labels(slots)
        assert "11:30" not in labels(slots)
        assert "12:00" in labels(slots)

    def test_back_to_back_ignores_buffer(self):
        """Test that allow_back_to_back disables the buffer entirely."""
        calculator = SlotCalculator(make_policy(buffer_minutes=30, allow_back_to_back=True))

        slots = calculator.find_open_slots(MONDAY, [make_appointment(at(10))], 60)

        assert "09:00" in labels(slots)
        assert "11:00" in labels(slots)
        assert "09:30" not in labels(slots)
        assert "10:30" not in labels(slots)
        assert len(slots) == 12

    def test_buffer_applied_when_back_to_back_disallowed(self):
        calculator = SlotCalculator(make_policy(buffer_minutes=30))

        slots = calculator.find_open_slots(MONDAY, [make_appointment(at(10))], 60)

        assert "09:00" not in labels(slots)
        assert "11:00" not in labels(slots)
        assert "11:30" in labels(slots)

    def test_cancelled_appointment_does_not_block(self):
        calculator = SlotCalculator(make_policy())
        cancelled = make_appointment(at(10), status=AppointmentStatus.CANCELLED)

        slots = calculator.find_open_slots(MONDAY, [cancelled], 60)

        assert len(slots) == 15

    def test_appointments_on_other_days_ignored(self):
        calculator = SlotCalculator(make_policy())

        slots = calculator.find_open_slots(MONDAY, [make_appointment(at(10, day=TUESDAY))], 60)

        assert len(slots) == 15

    def test_fully_booked_day(self):
        calculator = SlotCalculator(make_policy(buffer_minutes=0))
        appointments = [make_appointment(at(hour)) for hour in range(9, 17)]

        assert calculator.find_open_slots(MONDAY, appointments, 60) == []

    def test_closed_day_has_no_slots(self):
        calculator = SlotCalculator(make_policy())

        assert calculator.find_open_slots(SUNDAY, [], 60) == []

    def test_daily_cap_is_not_enforced(self):
        """max_daily_appointments is informational only."""
        calculator = SlotCalculator(make_policy(buffer_minutes=0, max_daily_appointments=1))

        slots = calculator.find_open_slots(MONDAY, [make_appointment(at(9))], 60)

        assert len(slots) == 13

    def test_unsorted_input_handled(self):
        calculator = SlotCalculator(make_policy(buffer_minutes=0))
        appointments = [make_appointment(at(15)), make_appointment(at(9))]

        slots = calculator.find_open_slots(MONDAY, appointments, 60)

        assert "09:00" not in labels(slots)
        assert "15:00" not in labels(slots)
        assert "12:00" in labels(slots)

    def test_results_never_overlap_busy_ranges(self):
        calculator = SlotCalculator(make_policy(buffer_minutes=10))
        appointments = [make_appointment(at(9, 20), 50), make_appointment(at(13, 40), 30)]

        slots = calculator.find_open_slots(MONDAY, appointments, 45)
        busy = calculator.busy_ranges(appointments)

        assert slots
        for slot in slots:
            assert not any(slot.time_range.overlaps(b) for b in busy)

    def test_busy_ranges_sorted_and_buffered(self):
        calculator = SlotCalculator(make_policy(buffer_minutes=15))
        appointments = [
            make_appointment(at(14)),
            make_appointment(at(10)),
            make_appointment(at(12), status=AppointmentStatus.CANCELLED),
        ]

        busy = calculator.busy_ranges(appointments)

        assert busy == [
            TimeRange(start=at(9, 45), end=at(11, 15)),
            TimeRange(start=at(13, 45), end=at(15, 15)),
        ]

    def test_conflicts_with(self):
        calculator = SlotCalculator(make_policy(buffer_minutes=15))
        blocking = make_appointment(at(10), id="a-1")
        appointments = [blocking, make_appointment(at(14), id="a-2")]

        conflicts = calculator.conflicts_with(TimeRange.from_duration(at(11), 60), appointments)

        assert conflicts == [blocking]
        assert calculator.is_interval_open(TimeRange.from_duration(at(12), 60), appointments)
