"""Error taxonomy for an audit report run."""

from __future__ import annotations


class AuditRunError(Exception):
    """Base class for all errors raised by a report run."""


class ConfigurationError(AuditRunError):
    pass


class InvalidRangeError(AuditRunError):
    """Requested date range is unusable; raised before any query is issued."""


class OutOfRetentionRangeError(InvalidRangeError):
    pass


class TransientThrottlingError(AuditRunError):
    """Upstream rejected the query because of rate limiting."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RecordParseError(AuditRunError):
    def __init__(self, message: str, record_key: str | None = None) -> None:
        super().__init__(message)
        self.record_key = record_key


class UpstreamFatalError(AuditRunError):
    """Authentication, query or unclassified upstream failure. Aborts the run."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SinkWriteError(AuditRunError):
    pass
