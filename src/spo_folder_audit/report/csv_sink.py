"""CSV report artifact."""

from __future__ import annotations

import csv
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from spo_folder_audit.domain.models import ReportRow
from spo_folder_audit.errors import SinkWriteError
from spo_folder_audit.utils.time import report_timestamp

logger = logging.getLogger(__name__)

REPORT_PREFIX = "Audit_SPO_Folder_Activity_Report"

REPORT_COLUMNS: tuple[str, ...] = (
    "Activity Time",
    "Activity",
    "Folder Name",
    "Performed By",
    "Folder URL",
    "Site URL",
    "Workload",
    "Risk Score",
    "Duration (Days)",
    "More Info",
)

_ACTIVITY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def report_filename(started_at: datetime) -> str:
    return f"{REPORT_PREFIX}_{report_timestamp(started_at)}.csv"


def row_values(row: ReportRow) -> list[str]:
    return [
        row.activity_time.strftime(_ACTIVITY_TIME_FORMAT),
        row.activity,
        row.folder_name,
        row.performed_by,
        row.folder_url,
        row.site_url,
        row.workload,
        row.risk_score.value,
        f"{row.duration_days:.1f}",
        row.raw_detail,
    ]


class CsvReportSink:
    """Appends rows to one CSV file; the header is written once per file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.rows_written = 0

    @classmethod
    def for_run(cls, output_dir: str | Path, started_at: datetime) -> "CsvReportSink":
        return cls(Path(output_dir) / report_filename(started_at))

    def _needs_header(self) -> bool:
        return not self.path.exists() or self.path.stat().st_size == 0

    def append(self, rows: Sequence[ReportRow]) -> None:
        if not rows:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            write_header = self._needs_header()
            with self.path.open("a", encoding="utf-8", newline="") as handle:
                writer = csv.writer(handle)
                if write_header:
                    writer.writerow(REPORT_COLUMNS)
                writer.writerows(row_values(row) for row in rows)
        except OSError as exc:
            raise SinkWriteError(f"Cannot write report {self.path}: {exc}") from exc
        self.rows_written += len(rows)
        logger.debug("Appended %d rows to %s", len(rows), self.path)
