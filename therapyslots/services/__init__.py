"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .availability_resolver import AvailabilityOutcome, AvailabilityResolver, AvailabilityResult
from .booking import BookingService
from .preferences import PreferencesService
from .protocols import NotifierProtocol, SchedulingStoreProtocol
from .series_editor import RecurringSeriesEditor, SeriesEditSession

__all__ = [
    "AvailabilityOutcome",
    "AvailabilityResolver",
    "AvailabilityResult",
    "BookingService",
    "NotifierProtocol",
    "PreferencesService",
    "RecurringSeriesEditor",
    "SchedulingStoreProtocol",
    "SeriesEditSession",
]
