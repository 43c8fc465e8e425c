"""Coordinates one pull-filter-report pass over the audit trail."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from spo_folder_audit.domain.models import ReportRow, RunState
from spo_folder_audit.domain.parameters import RunParameters
from spo_folder_audit.errors import AuditRunError
from spo_folder_audit.execution.paginator import (
    PAGE_SIZE_CAP,
    WindowPaginator,
    validate_range,
)
from spo_folder_audit.execution.retry import RetryPolicy
from spo_folder_audit.pipeline.enrich import FilterEnrichPipeline
from spo_folder_audit.source.base import AuditSource
from spo_folder_audit.utils.time import utc_now

logger = logging.getLogger(__name__)


class ReportSink(Protocol):
    path: Path

    def append(self, rows: Sequence[ReportRow]) -> None: ...


@dataclass(frozen=True)
class RunSummary:
    session_id: str
    report_path: Path
    rows_written: int
    windows_completed: int
    pages_fetched: int
    records_dropped: int
    parse_warnings: int


class ReportRunner:
    def __init__(
        self,
        source: AuditSource,
        sink: ReportSink,
        retry_policy: RetryPolicy,
        params: RunParameters,
        site_allow_list: frozenset[str] = frozenset(),
        now: datetime | None = None,
        tz: tzinfo | None = None,
        page_size: int = PAGE_SIZE_CAP,
        session_id: str | None = None,
    ) -> None:
        self._source = source
        self._sink = sink
        self._retry = retry_policy
        self._params = params
        self._site_allow_list = site_allow_list
        self._now = now or utc_now()
        self._tz = tz
        self._page_size = page_size
        self.session_id = session_id or str(uuid4())
        self.state = RunState()

    def run(self) -> RunSummary:
        """Run the pass; rows appended before a fatal error stay in the report."""
        try:
            self._run()
        except AuditRunError as exc:
            logger.error("Audit run aborted: %s", exc)
            raise
        finally:
            self._teardown()

        logger.info(
            "Audit run finished: %d rows in %d windows (%d pages)",
            self.state.rows_written,
            self.state.windows_completed,
            self.state.pages_fetched,
        )
        return RunSummary(
            session_id=self.session_id,
            report_path=self._sink.path,
            rows_written=self.state.rows_written,
            windows_completed=self.state.windows_completed,
            pages_fetched=self.state.pages_fetched,
            records_dropped=self.state.records_dropped,
            parse_warnings=self.state.parse_warnings,
        )

    def _run(self) -> None:
        params = self._params
        start, end = params.resolve_range(self._now)
        validate_range(start, end, self._now)

        pipeline = FilterEnrichPipeline(
            criteria=params.criteria(self._site_allow_list),
            now=self._now,
            max_workers=params.throttle_limit,
            tz=self._tz,
        )
        paginator = WindowPaginator(
            source=self._source,
            retry_policy=self._retry,
            operations=params.operations,
            session_id=self.session_id,
            interval_minutes=params.interval_minutes,
            page_size=self._page_size,
        )

        logger.info(
            "Retrieving folder activity %s -> %s in %d windows of %d minutes (session %s)",
            start.isoformat(),
            end.isoformat(),
            math.ceil((end - start) / timedelta(minutes=params.interval_minutes)),
            params.interval_minutes,
            self.session_id,
        )
        self.state.position = start

        for page in paginator.pages(start, end):
            self.state.current_window = page.window
            self.state.pages_fetched += 1

            batch = pipeline.process(page.records)
            self.state.records_dropped += batch.rejected + batch.failed
            self.state.parse_warnings += batch.failed
            if batch.rows:
                self._sink.append(batch.rows)
                self.state.rows_written += len(batch.rows)

            if page.window_complete:
                self.state.windows_completed += 1
                self.state.position = page.window.end
                logger.info(
                    "Window %s done: %d rows so far",
                    page.window.label,
                    self.state.rows_written,
                )
            else:
                logger.info(
                    "Window %s page %d is full; fetching the next page",
                    page.window.label,
                    page.page_number,
                )

    def _teardown(self) -> None:
        try:
            self._source.close()
        except Exception as exc:
            logger.warning("Failed to close audit source session: %s", exc)
