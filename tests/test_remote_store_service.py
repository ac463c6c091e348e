"""Tests for the HTTP remote store adapter; the requests session is mocked."""

import json
from datetime import date, datetime, timezone
from unittest.mock import Mock

import pytest
import requests

from timeclock.exceptions import RemoteStoreError, RemoteStoreUnavailable
from timeclock.models import AttendanceRecord, AttendanceStatus
from timeclock.services import HttpRemoteStore

DAY = date(2026, 3, 2)


def make_response(status_code, body):
    response = Mock()
    response.status_code = status_code
    response.text = json.dumps(body) if body is not None else ""
    if body is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = body
    return response


def checked_in_record(version=1):
    return AttendanceRecord(
        worker_id="w-1",
        date=DAY,
        status=AttendanceStatus.CHECKED_IN,
        check_in_time=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc),
        version=version,
    )


@pytest.fixture
def session():
    return Mock()


@pytest.fixture
def store(session):
    return HttpRemoteStore(
        "https://attendance.example.com/api/",
        api_key="secret-key",
        device_id="kiosk-7",
        timeout=2.5,
        session=session,
    )


def test_read_parses_record(store, session):
    session.request.return_value = make_response(
        200, {"status": 200, "data": checked_in_record().to_dict()}
    )

    record = store.read("w-1", DAY)

    assert record == checked_in_record()
    method, url = session.request.call_args.args
    assert method == "GET"
    assert url == "https://attendance.example.com/api/attendance/w-1/2026-03-02"
    kwargs = session.request.call_args.kwargs
    assert kwargs["timeout"] == 2.5
    assert kwargs["headers"]["x-api-key"] == "secret-key"
    assert kwargs["headers"]["x-device-id"] == "kiosk-7"


def test_read_missing_record(store, session):
    session.request.return_value = make_response(200, {"status": 200, "data": None})
    assert store.read("w-1", DAY) is None

    session.request.return_value = make_response(404, {"status": 404, "message": "not found"})
    assert store.read("w-1", DAY) is None


def test_worker_id_is_quoted(store, session):
    session.request.return_value = make_response(200, {"status": 200, "data": None})

    store.read("team a/7", DAY)

    assert session.request.call_args.args[1].endswith("/attendance/team%20a%2F7/2026-03-02")


@pytest.mark.parametrize(
    "failure",
    [requests.exceptions.Timeout("slow"), requests.exceptions.ConnectionError("refused")],
)
def test_network_failures_are_unavailable(store, session, failure):
    session.request.side_effect = failure

    with pytest.raises(RemoteStoreUnavailable):
        store.read("w-1", DAY)


def test_server_errors_are_unavailable(store, session):
    session.request.return_value = make_response(503, None)

    with pytest.raises(RemoteStoreUnavailable):
        store.read("w-1", DAY)


def test_malformed_payload_is_an_error(store, session):
    session.request.return_value = make_response(200, {"data": {"worker_id": "w-1"}})

    with pytest.raises(RemoteStoreError):
        store.read("w-1", DAY)


def test_record_breaking_invariants_is_an_error(store, session):
    broken = checked_in_record().to_dict()
    broken["check_in_time"] = None
    session.request.return_value = make_response(200, {"status": 200, "data": broken})

    with pytest.raises(RemoteStoreError):
        store.read("w-1", DAY)


def test_apply_sends_expected_version(store, session):
    record = checked_in_record()
    session.request.return_value = make_response(200, {"status": 200, "data": record.to_dict()})

    result = store.apply(record, expected_version=0)

    assert result.applied is True
    assert result.record == record
    method, url = session.request.call_args.args
    assert (method, url) == ("POST", "https://attendance.example.com/api/attendance/apply")
    payload = session.request.call_args.kwargs["json"]
    assert payload["expected_version"] == 0
    assert payload["record"]["status"] == "checked_in"


def test_apply_version_conflict_returns_current(store, session):
    current = checked_in_record(version=2)
    session.request.return_value = make_response(409, {"status": 409, "data": current.to_dict()})

    result = store.apply(checked_in_record(), expected_version=0)

    assert result.applied is False
    assert result.conflict is True
    assert result.record == current


def test_apply_client_error_raises(store, session):
    session.request.return_value = make_response(400, {"status": 400, "message": "bad record"})

    with pytest.raises(RemoteStoreError):
        store.apply(checked_in_record(), expected_version=0)


def test_unconfigured_store_is_offline(session):
    store = HttpRemoteStore("", session=session)

    with pytest.raises(RemoteStoreUnavailable):
        store.read("w-1", DAY)
    assert store.ping() is False
    session.request.assert_not_called()


def test_ping(store, session):
    session.request.return_value = make_response(200, {"status": 200})
    assert store.ping() is True

    session.request.side_effect = requests.exceptions.ConnectionError("down")
    assert store.ping() is False
