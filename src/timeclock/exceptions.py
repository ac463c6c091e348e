class TimeclockError(Exception):
    """Base exception for the attendance core."""


class InvariantViolation(TimeclockError):
    """Raised when an attendance record breaks one of its at-rest invariants."""


class RemoteStoreError(TimeclockError):
    """Raised when the remote attendance store cannot serve a request."""


class RemoteStoreUnavailable(RemoteStoreError):
    """Raised on timeouts, connection failures and server-side errors."""
