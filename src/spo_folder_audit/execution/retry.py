"""Retry and pacing policy for audit source calls."""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from spo_folder_audit.config import RetrySettings
from spo_folder_audit.domain.models import RawAuditRecord
from spo_folder_audit.errors import TransientThrottlingError
from spo_folder_audit.source.base import received_count

logger = logging.getLogger(__name__)

_THROTTLE_PATTERN = re.compile(
    r"throttl|rate[ -]?limit|too many requests|\b429\b|server (is )?busy",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class Success:
    records: list[RawAuditRecord]
    received: int


@dataclass(frozen=True)
class RetryableFailure:
    reason: str
    retry_after: float | None = None


@dataclass(frozen=True)
class FatalFailure:
    reason: str
    error: BaseException


CallResult = Success | RetryableFailure | FatalFailure


def is_throttling(exc: BaseException) -> bool:
    if isinstance(exc, TransientThrottlingError):
        return True
    return bool(_THROTTLE_PATTERN.search(str(exc)))


class RetryPolicy:
    """Classifies call outcomes and owns the two waits of the query loop.

    Throttled calls are retried after ``backoff_seconds`` until
    ``max_consecutive_throttles`` throttles in a row have been seen; any other
    failure is fatal on the first occurrence.
    """

    def __init__(
        self,
        backoff_seconds: float = 30.0,
        inter_call_delay_seconds: float = 0.5,
        max_consecutive_throttles: int = 10,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_consecutive_throttles < 1:
            raise ValueError("max_consecutive_throttles must be at least 1")
        self.backoff_seconds = backoff_seconds
        self.inter_call_delay_seconds = inter_call_delay_seconds
        self.max_consecutive_throttles = max_consecutive_throttles
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: RetrySettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "RetryPolicy":
        return cls(
            backoff_seconds=settings.backoff_seconds,
            inter_call_delay_seconds=settings.inter_call_delay_ms / 1000.0,
            max_consecutive_throttles=settings.max_consecutive_throttles,
            sleep=sleep,
        )

    def execute(self, call: Callable[[], list[RawAuditRecord]]) -> CallResult:
        try:
            records = call()
        except Exception as exc:
            if is_throttling(exc):
                retry_after = getattr(exc, "retry_after", None)
                return RetryableFailure(reason=str(exc), retry_after=retry_after)
            return FatalFailure(reason=str(exc) or type(exc).__name__, error=exc)
        return Success(records=list(records), received=received_count(records))

    def exhausted(self, consecutive_throttles: int) -> bool:
        return consecutive_throttles >= self.max_consecutive_throttles

    def backoff(self, failure: RetryableFailure) -> float:
        delay = self.backoff_seconds
        if failure.retry_after is not None:
            delay = max(delay, failure.retry_after)
        logger.warning("Audit query throttled (%s); retrying in %.1fs", failure.reason, delay)
        self._sleep(delay)
        return delay

    def pace(self) -> None:
        if self.inter_call_delay_seconds > 0:
            self._sleep(self.inter_call_delay_seconds)
