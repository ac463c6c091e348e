"""Tests for remote store payload validation."""

from timeclock.schemas import attendance_record_schema, envelope_schema, validate_data


def test_valid_envelope():
    body = {
        "status": 200,
        "data": {"worker_id": "w-1", "date": "2026-03-02", "status": "checked_in", "version": 1},
    }

    assert validate_data(body, envelope_schema) == (True, None)
    assert validate_data({"status": 200, "data": None}, envelope_schema) == (True, None)


def test_error_names_the_offending_field():
    record = {"worker_id": "w-1", "date": "2026-03-02", "status": "asleep", "version": 1}

    valid, error = validate_data(record, attendance_record_schema)

    assert valid is False
    assert error.startswith("status:")


def test_missing_envelope_status():
    valid, error = validate_data({"data": None}, envelope_schema)

    assert valid is False
    assert error.startswith("<root>:")
