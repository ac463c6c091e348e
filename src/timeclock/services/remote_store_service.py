import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Dict, Optional
from urllib.parse import quote

import requests

from timeclock.exceptions import InvariantViolation, RemoteStoreError, RemoteStoreUnavailable
from timeclock.models import AttendanceRecord
from timeclock.schemas import envelope_schema, validate_data
from timeclock.shared.logger import app_logger


@dataclass
class ApplyResult:
    """Outcome of a conditional write against the remote store"""

    applied: bool
    record: Optional[AttendanceRecord] = None

    @property
    def conflict(self) -> bool:
        return not self.applied


class RemoteStore(ABC):
    """Authoritative attendance store"""

    @abstractmethod
    def read(self, worker_id: str, work_date: date) -> Optional[AttendanceRecord]:
        """Return the stored record for (worker_id, work_date), or None"""

    @abstractmethod
    def apply(self, record: AttendanceRecord, expected_version: int) -> ApplyResult:
        """Store record only if the remote version still equals expected_version"""

    @abstractmethod
    def ping(self) -> bool:
        """Return True when the store is reachable"""


class HttpRemoteStore(RemoteStore):
    """Remote store reached over the attendance gateway's JSON API"""

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        device_id: str = "",
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.device_id = device_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def _make_request(self, method: str, endpoint: str, payload: Dict = None) -> requests.Response:
        if not self.base_url:
            raise RemoteStoreUnavailable("TIMECLOCK_REMOTE_URL is not configured")

        url = self.base_url + endpoint

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key
        if self.device_id:
            headers["x-device-id"] = self.device_id

        redacted_headers = {
            key: ("***" if key.lower() in {"x-api-key", "authorization"} else value)
            for key, value in headers.items()
        }
        app_logger.debug(
            f"Remote Store Request -> Method: {method}, URL: {url}, Headers: {redacted_headers}"
        )
        if payload is not None:
            app_logger.debug(f"Remote Store Payload -> {json.dumps(payload, default=str)[:2000]}")

        try:
            response = self.session.request(
                method, url, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.exceptions.Timeout as e:
            app_logger.warning(f"Remote Store timed out after {self.timeout}s: {e}")
            raise RemoteStoreUnavailable(f"timeout calling {endpoint}") from e
        except requests.exceptions.RequestException as e:
            app_logger.warning(f"Remote Store unreachable: {e}")
            raise RemoteStoreUnavailable(str(e)) from e

        response_preview = response.text.strip()
        if len(response_preview) > 1000:
            response_preview = response_preview[:1000] + "...[truncated]"
        app_logger.debug(
            "Remote Store Response <- Status %s: %s", response.status_code, response_preview
        )

        if response.status_code >= 500:
            raise RemoteStoreUnavailable(
                f"remote store returned {response.status_code} for {endpoint}"
            )
        return response

    def _parse_envelope(self, response: requests.Response) -> Optional[AttendanceRecord]:
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteStoreError(f"invalid JSON from remote store: {e}") from e

        valid, error = validate_data(body, envelope_schema)
        if not valid:
            raise RemoteStoreError(f"unexpected remote store payload: {error}")

        data = body.get("data")
        if not data:
            return None
        try:
            return AttendanceRecord.from_dict(data).copy(pending_sync=False).validate()
        except (InvariantViolation, ValueError) as e:
            raise RemoteStoreError(f"remote store returned an invalid record: {e}") from e

    def read(self, worker_id: str, work_date: date) -> Optional[AttendanceRecord]:
        endpoint = f"/attendance/{quote(str(worker_id), safe='')}/{work_date.isoformat()}"
        response = self._make_request("GET", endpoint)
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise RemoteStoreError(
                f"remote store rejected read with {response.status_code}"
            )
        return self._parse_envelope(response)

    def apply(self, record: AttendanceRecord, expected_version: int) -> ApplyResult:
        payload = {
            "record": record.copy(pending_sync=False).to_dict(),
            "expected_version": expected_version,
        }
        response = self._make_request("POST", "/attendance/apply", payload)

        if response.status_code == 409:
            current = self._parse_envelope(response)
            app_logger.info(
                f"Remote Store version conflict for {record.worker_id} on {record.date}: "
                f"expected {expected_version}, remote {current.version if current else 0}"
            )
            return ApplyResult(applied=False, record=current)
        if response.status_code >= 400:
            raise RemoteStoreError(
                f"remote store rejected write with {response.status_code}"
            )

        stored = self._parse_envelope(response)
        return ApplyResult(applied=True, record=stored or record.copy(pending_sync=False))

    def ping(self) -> bool:
        try:
            response = self._make_request("GET", "/health")
        except RemoteStoreError:
            return False
        return response.status_code < 400
