"""
Tests for the REST scheduling store with the HTTP layer stubbed out.
"""

import asyncio
import json
from datetime import time
from typing import Any, Dict, List

import pytest
import requests

from therapyslots.adapters import rest_store
from therapyslots.adapters.rest_store import RestSchedulingStore
from therapyslots.domain.exceptions import ConflictAtCommit, StorageError
from therapyslots.domain.models import RequestStatus
from therapyslots.services.series_editor import RecurringSeriesEditor
from tests.helpers import THERAPIST, at, make_appointment, make_policy

APPOINTMENT_ROW = {
    "id": "a-1",
    "therapist_id": "t-1",
    "client_id": "c-1",
    "appointment_date": "2024-11-25T15:00:00Z",
    "duration_minutes": 60,
    "status": "scheduled",
}


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None):
        self.status_code = status_code
        self.content = b"" if body is None else json.dumps(body).encode()
        self._body = body

    def json(self):
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Error")


class FakeHttp:
    """Replaces requests.request and records every call."""

    def __init__(self, *responses: FakeResponse):
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def store():
    return RestSchedulingStore("https://db.example.co/", "anon-key", access_token="user-jwt")


def _install(monkeypatch, *responses) -> FakeHttp:
    fake = FakeHttp(*responses)
    monkeypatch.setattr(rest_store.requests, "request", fake)
    return fake


def test_headers_and_url(store, monkeypatch):
    http = _install(monkeypatch, FakeResponse(body=[]))

    asyncio.run(store.get_policy(THERAPIST))

    call = http.calls[0]
    assert call["url"] == "https://db.example.co/rest/v1/calendar_preferences"
    assert call["headers"]["apikey"] == "anon-key"
    assert call["headers"]["Authorization"] == "Bearer user-jwt"
    assert ("therapist_id", "eq.t-1") in call["params"]
    assert call["timeout"] == 30


def test_access_token_defaults_to_api_key(monkeypatch):
    http = _install(monkeypatch, FakeResponse(body=[]))

    asyncio.run(RestSchedulingStore("https://db.example.co", "anon-key").get_policy(THERAPIST))

    assert http.calls[0]["headers"]["Authorization"] == "Bearer anon-key"


def test_get_policy_missing_returns_none(store, monkeypatch):
    _install(monkeypatch, FakeResponse(body=[]))

    assert asyncio.run(store.get_policy(THERAPIST)) is None


def test_get_policy_decodes_row(store, monkeypatch):
    row = {"therapist_id": "t-1", "working_hours": {"monday": {"start": "09:00", "end": "17:00"}}, "buffer_time": 10}
    _install(monkeypatch, FakeResponse(body=[row]))

    policy = asyncio.run(store.get_policy(THERAPIST))

    assert policy.buffer_minutes == 10
    assert policy.timezone == "America/New_York"


def test_save_policy_upserts(store, monkeypatch):
    http = _install(monkeypatch, FakeResponse(status_code=201, body=[]))

    policy = make_policy()
    assert asyncio.run(store.save_policy(THERAPIST, policy)) is policy

    call = http.calls[0]
    assert call["method"] == "POST"
    assert "merge-duplicates" in call["headers"]["Prefer"]
    assert call["json"]["working_hours"]["monday"] == {"start": "09:00", "end": "17:00"}


def test_list_appointments_filters(store, monkeypatch):
    http = _install(monkeypatch, FakeResponse(body=[APPOINTMENT_ROW]))

    appointments = asyncio.run(store.list_appointments(THERAPIST, at(0), at(23)))

    assert [a.id for a in appointments] == ["a-1"]
    params = http.calls[0]["params"]
    assert ("status", "neq.cancelled") in params
    assert ("appointment_date", "gte.2024-11-25T05:00:00Z") in params
    assert ("appointment_date", "lt.2024-11-26T04:00:00Z") in params


def test_list_series_uses_or_filter(store, monkeypatch):
    http = _install(monkeypatch, FakeResponse(body=[APPOINTMENT_ROW]))

    asyncio.run(store.list_series("a-1"))

    assert ("or", "(id.eq.a-1,parent_appointment_id.eq.a-1)") in http.calls[0]["params"]


def test_insert_conflict_maps_to_conflict_at_commit(store, monkeypatch):
    _install(monkeypatch, FakeResponse(status_code=409, body={"message": "overlap"}))

    with pytest.raises(ConflictAtCommit):
        asyncio.run(store.insert_appointment(make_appointment(at(10)), guard_buffer_minutes=15))


def test_insert_returns_backend_row(store, monkeypatch):
    http = _install(monkeypatch, FakeResponse(status_code=201, body=[APPOINTMENT_ROW]))

    inserted = asyncio.run(store.insert_appointment(make_appointment(at(10))))

    assert inserted.id == "a-1"
    assert "id" not in http.calls[0]["json"]


def test_update_missing_row_raises(store, monkeypatch):
    _install(monkeypatch, FakeResponse(body=[]))

    with pytest.raises(StorageError):
        asyncio.run(store.update_appointment("gone", start=at(9), duration_minutes=60, notes=None))


def test_delete_series_counts_returned_rows(store, monkeypatch):
    http = _install(monkeypatch, FakeResponse(body=[APPOINTMENT_ROW, {**APPOINTMENT_ROW, "id": "a-2"}]))

    assert asyncio.run(store.delete_series("a-1")) == 2
    assert http.calls[0]["method"] == "DELETE"


def test_update_request_stamps_response_time(store, monkeypatch):
    row = {
        "id": "r-1",
        "client_id": "c-1",
        "therapist_id": "t-1",
        "requested_date": "2024-11-25T16:00:00Z",
        "duration_minutes": 60,
        "status": "approved",
    }
    http = _install(monkeypatch, FakeResponse(body=[row]))

    answered = asyncio.run(store.update_request("r-1", status=RequestStatus.APPROVED, therapist_note=None))

    assert answered.status == RequestStatus.APPROVED
    assert http.calls[0]["json"]["status"] == "approved"
    assert "responded_at" in http.calls[0]["json"]


def test_http_error_maps_to_storage_error(store, monkeypatch):
    _install(monkeypatch, FakeResponse(status_code=500, body={"message": "boom"}))

    with pytest.raises(StorageError):
        asyncio.run(store.list_appointments(THERAPIST, at(0), at(23)))


def test_transport_error_maps_to_storage_error(store, monkeypatch):
    _install(monkeypatch, requests.exceptions.ConnectionError("refused"))

    with pytest.raises(StorageError, match="refused"):
        asyncio.run(store.get_appointment("a-1"))


def test_notify_posts_notification(store, monkeypatch):
    http = _install(monkeypatch, FakeResponse(status_code=201))

    asyncio.run(store.notify("c-1", "Hello", "World", kind="success", link="/x"))

    assert http.calls[0]["url"].endswith("/notifications")
    assert http.calls[0]["json"] == {
        "user_id": "c-1",
        "title": "Hello",
        "message": "World",
        "type": "success",
        "link": "/x",
    }


class HtmlResponse(FakeResponse):
    """A 200 whose body is not JSON, as sent by a misconfigured proxy."""

    def __init__(self):
        super().__init__(status_code=200)
        self.content = b"<html>"

    def json(self):
        raise requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)


def test_malformed_body_maps_to_storage_error(store, monkeypatch):
    _install(monkeypatch, HtmlResponse())

    with pytest.raises(StorageError, match="malformed body"):
        asyncio.run(store.get_appointment("a-1"))


def test_malformed_update_reported_in_bulk_result(store, monkeypatch):
    """One unreadable PATCH response leaves the rest of the series updated."""
    child_row = {**APPOINTMENT_ROW, "id": "a-2", "parent_appointment_id": "a-1",
                 "appointment_date": "2024-12-02T15:00:00Z"}
    _install(
        monkeypatch,
        FakeResponse(body=[APPOINTMENT_ROW]),
        FakeResponse(body=[APPOINTMENT_ROW, child_row]),
        FakeResponse(body=[]),
        HtmlResponse(),
        FakeResponse(body=[child_row]),
    )
    editor = RecurringSeriesEditor(store)

    result = asyncio.run(editor.bulk_reschedule("a-1", time(14, 0), 60, None))

    assert result.succeeded == ["a-2"]
    assert [failure.appointment_id for failure in result.failed] == ["a-1"]
