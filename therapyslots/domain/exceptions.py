"""
Domain-specific exception hierarchy for the scheduling engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover
    from .models import BulkRescheduleResult, TimeRange


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class StorageError(SchedulingError):
    """Raised when the persistence backend cannot be read or written."""


class ConfigurationMissing(SchedulingError):
    """Raised internally when a therapist has no working-hours policy yet."""

    def __init__(self, therapist_id: str):
        super().__init__(f"No working-hours policy configured for therapist {therapist_id}")
        self.therapist_id = therapist_id


class InvalidInterval(SchedulingError, ValueError):
    """Raised when a working-hours entry does not open before it closes."""


class ConflictAtCommit(SchedulingError):
    """
    Raised when the requested interval is no longer free at commit time.

    The caller is expected to query availability again and re-prompt.
    """

    retryable = True

    def __init__(self, message: str, interval: Optional["TimeRange"] = None):
        super().__init__(message)
        self.interval = interval


class RequestNotActionable(SchedulingError):
    """Raised when an appointment request has already been answered."""


class SeriesNotFound(SchedulingError):
    """Raised when no appointment matches a recurring series identifier."""


class PartialBulkFailure(SchedulingError):
    """Raised on demand when a bulk reschedule left some occurrences untouched."""

    def __init__(self, result: "BulkRescheduleResult"):
        failed_ids = ", ".join(failure.appointment_id for failure in result.failed)
        super().__init__(
            f"{result.succeeded_count} occurrence(s) updated, "
            f"{len(result.failed)} failed: {failed_ids}"
        )
        self.result = result
