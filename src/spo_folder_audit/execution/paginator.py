"""Time-windowed pagination over the audit source."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from spo_folder_audit.domain.models import AuditQuery, RawAuditRecord, TimeWindow
from spo_folder_audit.errors import (
    AuditRunError,
    InvalidRangeError,
    OutOfRetentionRangeError,
    UpstreamFatalError,
)
from spo_folder_audit.execution.retry import FatalFailure, RetryableFailure, RetryPolicy
from spo_folder_audit.source.base import AuditSource
from spo_folder_audit.utils.time import RETENTION_DAYS, ensure_utc, retention_boundary

logger = logging.getLogger(__name__)

PAGE_SIZE_CAP = 5000


class PaginatorState(str, Enum):
    QUERYING = "querying"
    BACKOFF = "backoff"
    ADVANCING = "advancing"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class WindowPage:
    window: TimeWindow
    records: list[RawAuditRecord]
    page_number: int
    saturated: bool
    window_complete: bool


def validate_range(
    start: datetime,
    end: datetime,
    now: datetime,
    retention_days: int = RETENTION_DAYS,
) -> None:
    start = ensure_utc(start)
    end = ensure_utc(end)
    if end < start:
        raise InvalidRangeError(
            f"End date {end.isoformat()} precedes start date {start.isoformat()}"
        )
    boundary = retention_boundary(now, retention_days)
    if start < boundary:
        raise OutOfRetentionRangeError(
            f"Start date {start.isoformat()} is older than the {retention_days}-day "
            f"retention boundary ({boundary.isoformat()})"
        )


class WindowPaginator:
    """Walks the requested range window by window.

    A page holding ``page_size`` records means the window may hold more, so the
    identical window is queried again and the upstream session returns the next
    page. A smaller page exhausts the window and the paginator advances. A
    re-issued window whose page contains nothing new is treated as exhausted.
    """

    def __init__(
        self,
        source: AuditSource,
        retry_policy: RetryPolicy,
        operations: frozenset[str],
        session_id: str,
        interval_minutes: int,
        page_size: int = PAGE_SIZE_CAP,
    ) -> None:
        if not 1 <= page_size <= PAGE_SIZE_CAP:
            raise ValueError(f"page_size must be between 1 and {PAGE_SIZE_CAP}")
        if interval_minutes < 1:
            raise ValueError("interval_minutes must be at least 1")
        self._source = source
        self._retry = retry_policy
        self._operations = operations
        self._session_id = session_id
        self._interval = timedelta(minutes=interval_minutes)
        self._page_size = page_size
        self.state = PaginatorState.DONE
        self.current_window: TimeWindow | None = None
        self.calls_issued = 0

    def _query(self, window: TimeWindow) -> AuditQuery:
        return AuditQuery(
            window=window,
            operations=self._operations,
            session_id=self._session_id,
            result_size=self._page_size,
        )

    def _next_window(self, start: datetime, overall_end: datetime) -> TimeWindow:
        return TimeWindow(start, min(start + self._interval, overall_end))

    def pages(self, overall_start: datetime, overall_end: datetime) -> Iterator[WindowPage]:
        if overall_end < overall_start:
            raise InvalidRangeError(
                f"End date {overall_end.isoformat()} precedes start date {overall_start.isoformat()}"
            )
        if overall_start == overall_end:
            self.state = PaginatorState.DONE
            return

        window = self._next_window(overall_start, overall_end)
        seen: set[str] = set()
        # Keys from the previous window catch records an inclusive upstream
        # returns on both sides of a window boundary.
        previous_seen: set[str] = set()
        page_number = 0
        throttles = 0
        pending: RetryableFailure | None = None
        last_call_succeeded = False
        self.current_window = window
        self.state = PaginatorState.QUERYING

        while self.state is not PaginatorState.DONE:
            if self.state is PaginatorState.QUERYING:
                if last_call_succeeded:
                    self._retry.pace()
                query = self._query(window)
                self.calls_issued += 1
                result = self._retry.execute(lambda: self._source.query(query))

                if isinstance(result, RetryableFailure):
                    last_call_succeeded = False
                    throttles += 1
                    if self._retry.exhausted(throttles):
                        self.state = PaginatorState.ABORTED
                        raise UpstreamFatalError(
                            f"Audit query for {window.label} still throttled after "
                            f"{throttles} attempts: {result.reason}"
                        )
                    pending = result
                    self.state = PaginatorState.BACKOFF
                    continue

                if isinstance(result, FatalFailure):
                    self.state = PaginatorState.ABORTED
                    if isinstance(result.error, AuditRunError):
                        raise result.error
                    raise UpstreamFatalError(result.reason) from result.error

                last_call_succeeded = True
                throttles = 0
                page_number += 1
                saturated = result.received >= self._page_size
                fresh: list[RawAuditRecord] = []
                for record in result.records:
                    key = record.key
                    if key in seen or key in previous_seen:
                        continue
                    seen.add(key)
                    fresh.append(record)

                if saturated and fresh:
                    complete = False
                elif saturated:
                    logger.warning(
                        "Window %s returned a full page with no new records; advancing",
                        window.label,
                    )
                    complete = True
                else:
                    complete = True

                if len(fresh) < len(result.records):
                    logger.info(
                        "Skipped %d already-seen records in %s",
                        len(result.records) - len(fresh),
                        window.label,
                    )

                self.state = PaginatorState.ADVANCING if complete else PaginatorState.QUERYING
                yield WindowPage(
                    window=window,
                    records=fresh,
                    page_number=page_number,
                    saturated=saturated,
                    window_complete=complete,
                )

            elif self.state is PaginatorState.BACKOFF:
                assert pending is not None
                self._retry.backoff(pending)
                pending = None
                self.state = PaginatorState.QUERYING

            elif self.state is PaginatorState.ADVANCING:
                if window.end >= overall_end:
                    self.state = PaginatorState.DONE
                    continue
                window = self._next_window(window.end, overall_end)
                self.current_window = window
                previous_seen, seen = seen, set()
                page_number = 0
                self.state = PaginatorState.QUERYING

            else:
                raise RuntimeError(f"Paginator cannot continue from state {self.state.value}")
