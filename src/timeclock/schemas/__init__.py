from typing import Any, Dict, Optional, Tuple

from jsonschema import Draft7Validator

from timeclock.schemas.attendance_record import envelope_schema
from timeclock.schemas.attendance_record import schema as attendance_record_schema

_validators: Dict[int, Draft7Validator] = {}


def _validator_for(schema: Dict[str, Any]) -> Draft7Validator:
    validator = _validators.get(id(schema))
    if validator is None:
        validator = _validators[id(schema)] = Draft7Validator(schema)
    return validator


def validate_data(data, schema) -> Tuple[bool, Optional[str]]:
    """Return (True, None) or (False, "<path>: <first error>")"""
    errors = sorted(_validator_for(schema).iter_errors(data), key=lambda e: [str(part) for part in e.path])
    if not errors:
        return True, None
    error = errors[0]
    location = "/".join(str(part) for part in error.path) or "<root>"
    return False, f"{location}: {error.message}"


__all__ = [
    "attendance_record_schema",
    "envelope_schema",
    "validate_data",
]
