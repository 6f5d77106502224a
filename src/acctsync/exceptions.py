"""Custom exceptions for acctsync."""


class AcctSyncError(Exception):
    """Base exception for all acctsync errors."""

    pass


class InvalidArgumentError(AcctSyncError, ValueError):
    """Raised when a required record is missing or malformed."""

    pass


class TimestampParseError(AcctSyncError, ValueError):
    """Raised when a timestamp does not match the expected wire format."""

    def __init__(self, value: object, message: str | None = None) -> None:
        self.value = value
        super().__init__(message or f"Invalid timestamp: {value!r}")


class JobTimeoutError(AcctSyncError, TimeoutError):
    """Raised when a batch job does not terminate within the allotted wait."""

    pass


class JobFailedError(AcctSyncError):
    """Raised when a batch job terminates as failed."""

    pass


class ConfigError(AcctSyncError):
    """Raised when configuration loading fails."""

    pass
