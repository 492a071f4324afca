"""
Scheduling store backed by a PostgREST-style HTTP API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import ConflictAtCommit, StorageError
from ..domain.models import (
    Appointment,
    AppointmentRequest,
    RequestStatus,
    TimeRange,
    WorkingHoursPolicy,
)
from .records import (
    AppointmentRecord,
    AppointmentRequestRecord,
    PolicyRecord,
    decode_row,
    iso_utc,
)

logger = logging.getLogger(__name__)

Params = Sequence[Tuple[str, str]]


class RestSchedulingStore:
    """
    Client for the hosted backend's REST tables.

    Uses the ``calendar_preferences``, ``appointments``,
    ``appointment_requests`` and ``notifications`` tables. Blocking HTTP calls
    run in a worker thread so the async services are not stalled.

    Overlap exclusivity is expected from the database (an exclusion
    constraint on appointments); a ``409 Conflict`` on insert is reported as
    ``ConflictAtCommit``.
    """

    REST_PATH = "/rest/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        timeout: float = 30,
        default_timezone: str = "America/New_York",
    ):
        """
        Initialize the REST client.

        Args:
            base_url: Project URL, e.g. https://xyz.example.co
            api_key: Public API key sent as ``apikey``
            access_token: User JWT; falls back to the API key
            timeout: Per-request timeout in seconds
            default_timezone: Used for preference rows without a timezone
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.default_timezone = default_timezone
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
        }

    async def get_policy(self, therapist_id: str) -> Optional[WorkingHoursPolicy]:
        rows = await self._call(
            "GET",
            "calendar_preferences",
            params=[("therapist_id", f"eq.{therapist_id}"), ("select", "*")],
        )
        if not rows:
            return None
        return decode_row(PolicyRecord, rows[0], timezone=self.default_timezone)

    async def save_policy(self, therapist_id: str, policy: WorkingHoursPolicy) -> WorkingHoursPolicy:
        payload = PolicyRecord.from_domain(therapist_id, policy).to_row()
        rows = await self._call(
            "POST",
            "calendar_preferences",
            payload=payload,
            prefer="resolution=merge-duplicates,return=representation",
        )
        if not rows:
            return policy
        return decode_row(PolicyRecord, rows[0], timezone=self.default_timezone)

    async def list_appointments(
        self,
        therapist_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Appointment]:
        rows = await self._call(
            "GET",
            "appointments",
            params=[
                ("therapist_id", f"eq.{therapist_id}"),
                ("status", "neq.cancelled"),
                ("appointment_date", f"gte.{iso_utc(start)}"),
                ("appointment_date", f"lt.{iso_utc(end)}"),
                ("order", "appointment_date.asc"),
            ],
        )
        return [decode_row(AppointmentRecord, row) for row in rows]

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        rows = await self._call("GET", "appointments", params=[("id", f"eq.{appointment_id}")])
        if not rows:
            return None
        return decode_row(AppointmentRecord, rows[0])

    async def list_series(self, root_id: str) -> List[Appointment]:
        rows = await self._call(
            "GET",
            "appointments",
            params=[_series_filter(root_id), ("order", "appointment_date.asc")],
        )
        return [decode_row(AppointmentRecord, row) for row in rows]

    async def insert_appointment(
        self,
        appointment: Appointment,
        *,
        guard_buffer_minutes: Optional[int] = None,
    ) -> Appointment:
        if guard_buffer_minutes is not None:
            logger.debug(
                "Guarded insert for therapist %s relies on the database overlap constraint",
                appointment.therapist_id,
            )
        rows = await self._call(
            "POST",
            "appointments",
            payload=AppointmentRecord.row_from_domain(appointment),
            prefer="return=representation",
            conflict_interval=appointment.time_range,
        )
        if not rows:
            raise StorageError("Backend returned no row for inserted appointment")
        return decode_row(AppointmentRecord, rows[0])

    async def update_appointment(
        self,
        appointment_id: str,
        *,
        start: DateTime,
        duration_minutes: int,
        notes: Optional[str],
    ) -> Appointment:
        rows = await self._call(
            "PATCH",
            "appointments",
            params=[("id", f"eq.{appointment_id}")],
            payload={
                "appointment_date": iso_utc(start),
                "duration_minutes": duration_minutes,
                "notes": notes,
            },
            prefer="return=representation",
        )
        if not rows:
            raise StorageError(f"Appointment {appointment_id} not found")
        return decode_row(AppointmentRecord, rows[0])

    async def delete_series(self, root_id: str) -> int:
        rows = await self._call(
            "DELETE",
            "appointments",
            params=[_series_filter(root_id)],
            prefer="return=representation",
        )
        return len(rows)

    async def get_request(self, request_id: str) -> Optional[AppointmentRequest]:
        rows = await self._call("GET", "appointment_requests", params=[("id", f"eq.{request_id}")])
        if not rows:
            return None
        return decode_row(AppointmentRequestRecord, rows[0])

    async def insert_request(self, request: AppointmentRequest) -> AppointmentRequest:
        rows = await self._call(
            "POST",
            "appointment_requests",
            payload=AppointmentRequestRecord.row_from_domain(request),
            prefer="return=representation",
        )
        if not rows:
            raise StorageError("Backend returned no row for inserted request")
        return decode_row(AppointmentRequestRecord, rows[0])

    async def update_request(
        self,
        request_id: str,
        *,
        status: RequestStatus,
        therapist_note: Optional[str],
    ) -> AppointmentRequest:
        rows = await self._call(
            "PATCH",
            "appointment_requests",
            params=[("id", f"eq.{request_id}")],
            payload={
                "status": RequestStatus(status).value,
                "therapist_note": therapist_note,
                "responded_at": _now_iso(),
            },
            prefer="return=representation",
        )
        if not rows:
            raise StorageError(f"Appointment request {request_id} not found")
        return decode_row(AppointmentRequestRecord, rows[0])

    async def notify(
        self,
        recipient_id: str,
        title: str,
        message: str,
        *,
        kind: str = "info",
        link: Optional[str] = None,
    ) -> None:
        await self._call(
            "POST",
            "notifications",
            payload={
                "user_id": recipient_id,
                "title": title,
                "message": message,
                "type": kind,
                "link": link,
            },
        )

    async def _call(self, method: str, table: str, **kwargs: Any) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._request, method, table, **kwargs)

    def _request(
        self,
        method: str,
        table: str,
        *,
        params: Optional[Params] = None,
        payload: Optional[Dict[str, Any]] = None,
        prefer: Optional[str] = None,
        conflict_interval: Optional[TimeRange] = None,
    ) -> List[Dict[str, Any]]:
        """
        Perform one HTTP call against a table.

        Raises:
            ConflictAtCommit: On 409 when ``conflict_interval`` is given
            StorageError: On any other transport or HTTP failure
        """
        url = f"{self.base_url}{self.REST_PATH}/{table}"
        headers = dict(self.headers)
        if prefer:
            headers["Prefer"] = prefer

        try:
            response = requests.request(
                method,
                url,
                headers=headers,
                params=list(params) if params else None,
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise StorageError(f"{method} {table} failed: {e}") from e

        if response.status_code == 409 and conflict_interval is not None:
            raise ConflictAtCommit(
                f"Slot no longer available: {conflict_interval}",
                conflict_interval,
            )

        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise StorageError(f"{method} {table} failed: {e}") from e

        if not response.content:
            return []

        try:
            data = response.json()
        except requests.exceptions.JSONDecodeError as e:
            raise StorageError(f"{method} {table} returned a malformed body: {e}") from e

        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise StorageError(f"{method} {table} returned unexpected JSON: {data!r}")
        return data


def _series_filter(root_id: str) -> Tuple[str, str]:
    return ("or", f"(id.eq.{root_id},parent_appointment_id.eq.{root_id})")


def _now_iso() -> str:
    return pendulum.now("UTC").to_iso8601_string()
