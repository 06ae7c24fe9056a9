"""Error taxonomy shared by the steward components."""

from __future__ import annotations


class StewardError(Exception):
    """Base class for errors raised by the activity steward."""


class TransientNetworkError(StewardError):
    """A Graph API call failed; the current operation is abandoned, the process keeps running."""

    def __init__(self, operation: str, status: int | None = None, detail: str | None = None) -> None:
        self.operation = operation
        self.status = status
        self.detail = detail
        message = f"{operation} failed"
        if status is not None:
            message += f" with status {status}"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class RequestTimeout(TransientNetworkError):
    """A Graph API call exceeded the configured timeout."""


class MalformedEventError(StewardError):
    """An inbound webhook payload carried an unrecognised shape, object, field or event."""


class ConfigurationError(StewardError):
    """Required settings are missing at startup."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__("missing required settings: " + ", ".join(missing))


class PersistenceError(StewardError):
    """The activity ledger could not be read or written."""


class SweepCancelled(StewardError):
    """A roster sweep was interrupted because the host is shutting down."""
