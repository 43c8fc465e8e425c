from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path

import pytest

from spo_folder_audit.domain.models import ReportRow, RiskScore
from spo_folder_audit.errors import SinkWriteError
from spo_folder_audit.report.csv_sink import (
    REPORT_COLUMNS,
    CsvReportSink,
    report_filename,
    row_values,
)


def _row(name: str = "Projects", risk: RiskScore = RiskScore.HIGH) -> ReportRow:
    return ReportRow(
        activity_time=datetime(2025, 1, 1, 10, 5, 30, tzinfo=timezone.utc),
        activity="FolderDeleted",
        folder_name=name,
        performed_by="user1@domain.com",
        folder_url=f"https://contoso.sharepoint.com/sites/a/Shared Documents/{name}",
        site_url="https://contoso.sharepoint.com/sites/a/",
        workload="SharePoint",
        risk_score=risk,
        duration_days=9.6,
        raw_detail='{"Id": "1", "Note": "comma, and \\"quotes\\""}',
    )


def _read(path: Path) -> list[list[str]]:
    with path.open("r", encoding="utf-8", newline="") as handle:
        return list(csv.reader(handle))


def test_report_filename_pattern() -> None:
    started = datetime(2025, 3, 4, 5, 6, 7)

    assert report_filename(started) == "Audit_SPO_Folder_Activity_Report_2025-03-04_050607.csv"


def test_for_run_places_report_in_output_dir(tmp_path: Path) -> None:
    sink = CsvReportSink.for_run(tmp_path / "out", datetime(2025, 3, 4, 5, 6, 7))

    assert sink.path == tmp_path / "out" / "Audit_SPO_Folder_Activity_Report_2025-03-04_050607.csv"


def test_header_written_once_across_appends(tmp_path: Path) -> None:
    sink = CsvReportSink(tmp_path / "report.csv")

    sink.append([_row("first")])
    sink.append([_row("second"), _row("third", RiskScore.LOW)])

    rows = _read(sink.path)
    assert rows[0] == list(REPORT_COLUMNS)
    assert [row[2] for row in rows[1:]] == ["first", "second", "third"]
    assert sum(1 for row in rows if row == list(REPORT_COLUMNS)) == 1
    assert sink.rows_written == 3


def test_row_values_follow_column_order() -> None:
    values = row_values(_row())

    assert len(values) == len(REPORT_COLUMNS)
    assert values[0] == "2025-01-01 10:05:30"
    assert values[REPORT_COLUMNS.index("Risk Score")] == "High"
    assert values[REPORT_COLUMNS.index("Duration (Days)")] == "9.6"
    assert values[REPORT_COLUMNS.index("Workload")] == "SharePoint"


def test_raw_detail_round_trips_through_csv_quoting(tmp_path: Path) -> None:
    sink = CsvReportSink(tmp_path / "report.csv")
    row = _row()

    sink.append([row])

    assert _read(sink.path)[1][-1] == row.raw_detail


def test_empty_append_creates_nothing(tmp_path: Path) -> None:
    sink = CsvReportSink(tmp_path / "report.csv")

    sink.append([])

    assert not sink.path.exists()


def test_existing_artifact_is_appended_not_rewritten(tmp_path: Path) -> None:
    path = tmp_path / "report.csv"
    CsvReportSink(path).append([_row("earlier")])

    CsvReportSink(path).append([_row("later")])

    rows = _read(path)
    assert [row[2] for row in rows[1:]] == ["earlier", "later"]


def test_unwritable_target_raises_sink_write_error(tmp_path: Path) -> None:
    target = tmp_path / "report.csv"
    target.mkdir()

    with pytest.raises(SinkWriteError):
        CsvReportSink(target).append([_row()])
