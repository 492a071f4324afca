"""
Bulk edits and deletes across a recurring appointment series.
"""

from __future__ import annotations

import logging
from datetime import time
from typing import List, Optional

from ..domain.exceptions import SchedulingError, SeriesNotFound
from ..domain.models import Appointment, BulkFailure, BulkRescheduleResult, EditMode
from .protocols import NotifierProtocol, SchedulingStoreProtocol

logger = logging.getLogger(__name__)


class RecurringSeriesEditor:
    """
    Applies one change to every occurrence of a series.

    A series is a root appointment plus the children whose
    ``parent_appointment_id`` is the root's id. Updates are independent
    per-row writes: a failing row is reported and already-applied rows stay
    applied. Availability is not re-checked; callers who care about conflicts
    introduced by a reschedule must check beforehand.
    """

    def __init__(
        self,
        store: SchedulingStoreProtocol,
        *,
        notifier: NotifierProtocol | None = None,
        timezone: str = "America/New_York",
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._timezone = timezone

    async def load_series(self, member_id: str) -> List[Appointment]:
        """
        Resolve the whole series from the id of the root or of any child.

        Raises:
            SeriesNotFound: If no appointment has that id
            StorageError: If the store cannot be read
        """
        member = await self._store.get_appointment(member_id)
        if member is None:
            raise SeriesNotFound(f"No appointment with id {member_id}")

        series = await self._store.list_series(member.series_root_id)
        if not series:
            raise SeriesNotFound(f"No appointments in series {member.series_root_id}")

        return sorted(series, key=lambda appointment: appointment.start)

    async def bulk_reschedule(
        self,
        parent_id: str,
        new_time_of_day: time,
        new_duration_minutes: int,
        new_notes: Optional[str],
    ) -> BulkRescheduleResult:
        """
        Move every occurrence to ``new_time_of_day`` on its own date.

        Duration and notes are replaced uniformly. Loading the series raises on
        failure; individual row failures are collected in the result.
        """
        if new_duration_minutes <= 0:
            raise ValueError(f"new_duration_minutes must be positive, got {new_duration_minutes}")

        series = await self.load_series(parent_id)
        timezone = await self._series_timezone(series[0])

        result = BulkRescheduleResult()
        for occurrence in series:
            new_start = occurrence.start.in_timezone(timezone).set(
                hour=new_time_of_day.hour,
                minute=new_time_of_day.minute,
                second=0,
                microsecond=0,
            )
            try:
                await self._store.update_appointment(
                    occurrence.id,
                    start=new_start,
                    duration_minutes=new_duration_minutes,
                    notes=new_notes,
                )
            except SchedulingError as exc:
                logger.warning("Could not reschedule occurrence %s: %s", occurrence.id, exc)
                result.failed.append(BulkFailure(appointment_id=occurrence.id, reason=str(exc)))
                continue
            result.succeeded.append(occurrence.id)

        logger.info(
            "Rescheduled series %s: %d updated, %d failed",
            series[0].series_root_id,
            result.succeeded_count,
            len(result.failed),
        )
        await self._notify_client(
            series[0],
            "Recurring appointments updated",
            f"{result.succeeded_count} of your recurring appointments now start at "
            f"{new_time_of_day.strftime('%H:%M')}",
        )
        return result

    async def bulk_delete(self, parent_id: str) -> int:
        """Delete the root and all children; returns how many were removed."""
        series = await self.load_series(parent_id)
        root_id = series[0].series_root_id

        deleted = await self._store.delete_series(root_id)
        logger.info("Deleted %d appointment(s) in series %s", deleted, root_id)

        await self._notify_client(
            series[0],
            "Recurring appointments cancelled",
            f"{deleted} recurring appointment(s) were removed from your schedule",
        )
        return deleted

    async def _series_timezone(self, occurrence: Appointment) -> str:
        policy = await self._store.get_policy(occurrence.therapist_id)
        if policy is None:
            return self._timezone
        return policy.timezone

    async def _notify_client(self, occurrence: Appointment, title: str, message: str) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify(
                occurrence.client_id,
                title,
                message,
                kind="info",
                link="/client-portal?tab=appointments",
            )
        except SchedulingError as exc:
            logger.warning("Notification to client %s failed: %s", occurrence.client_id, exc)


class SeriesEditSession:
    """
    View/edit toggle around one series, scoped to a single invocation.
    """

    def __init__(self, editor: RecurringSeriesEditor, parent_id: str):
        self.editor = editor
        self.parent_id = parent_id
        self.mode = EditMode.VIEWING

    def begin_edit(self) -> None:
        self.mode = EditMode.EDITING

    def cancel_edit(self) -> None:
        self.mode = EditMode.VIEWING

    async def save(
        self,
        new_time_of_day: time,
        new_duration_minutes: int,
        new_notes: Optional[str],
    ) -> BulkRescheduleResult:
        """Apply the edit and return to viewing."""
        if self.mode != EditMode.EDITING:
            raise RuntimeError("Call begin_edit() before saving changes")
        result = await self.editor.bulk_reschedule(
            self.parent_id,
            new_time_of_day,
            new_duration_minutes,
            new_notes,
        )
        self.mode = EditMode.VIEWING
        return result
