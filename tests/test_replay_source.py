from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from spo_folder_audit.domain.models import AuditQuery, TimeWindow
from spo_folder_audit.errors import ConfigurationError
from spo_folder_audit.source.replay import ReplayAuditSource

UTC = timezone.utc
DAY = TimeWindow(datetime(2025, 1, 1, tzinfo=UTC), datetime(2025, 1, 2, tzinfo=UTC))


def _line(record_id: str, creation_time: str, operation: str = "FolderCreated") -> str:
    return json.dumps(
        {
            "UserIds": "user1@domain.com",
            "Operations": operation,
            "AuditData": {"Id": record_id, "CreationTime": creation_time, "Workload": "OneDrive"},
        }
    )


def _write(tmp_path: Path, lines: list[str]) -> Path:
    path = tmp_path / "export.jsonl"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _query(window: TimeWindow = DAY, size: int = 5000, session: str = "s1") -> AuditQuery:
    return AuditQuery(
        window=window,
        operations=frozenset({"FolderCreated", "FolderDeleted"}),
        session_id=session,
        result_size=size,
    )


def test_pages_continue_within_session(tmp_path: Path) -> None:
    lines = [_line(str(index), f"2025-01-01T0{index}:00:00") for index in range(5)]
    source = ReplayAuditSource.from_jsonl(_write(tmp_path, lines))

    pages = [source.query(_query(size=2)) for _ in range(4)]

    assert [len(page) for page in pages] == [2, 2, 1, 0]
    keys = [record.key for page in pages for record in page]
    assert keys == ["0", "1", "2", "3", "4"]


def test_new_session_starts_from_first_page(tmp_path: Path) -> None:
    lines = [_line(str(index), "2025-01-01T01:00:00") for index in range(3)]
    source = ReplayAuditSource.from_jsonl(_write(tmp_path, lines))

    source.query(_query(size=2, session="s1"))

    assert len(source.query(_query(size=2, session="s2"))) == 2


def test_windows_are_half_open(tmp_path: Path) -> None:
    lines = [
        _line("start", "2025-01-01T00:00:00"),
        _line("end", "2025-01-02T00:00:00"),
    ]
    source = ReplayAuditSource.from_jsonl(_write(tmp_path, lines))

    assert [record.key for record in source.query(_query())] == ["start"]


def test_operation_filter(tmp_path: Path) -> None:
    lines = [
        _line("kept", "2025-01-01T01:00:00", "FolderDeleted"),
        _line("skipped", "2025-01-01T02:00:00", "FileAccessed"),
    ]
    source = ReplayAuditSource.from_jsonl(_write(tmp_path, lines))

    assert [record.key for record in source.query(_query())] == ["kept"]


def test_creation_date_column_takes_precedence(tmp_path: Path) -> None:
    line = json.dumps(
        {
            "CreationDate": "2025-01-01T05:00:00Z",
            "UserIds": "u@d.com",
            "Operations": "FolderCreated",
            "AuditData": json.dumps({"Id": "x", "CreationTime": "2024-12-01T00:00:00"}),
        }
    )
    source = ReplayAuditSource.from_jsonl(_write(tmp_path, [line]))

    assert len(source.query(_query())) == 1


def test_malformed_lines_are_skipped(tmp_path: Path) -> None:
    lines = [
        "{not json",
        "[1, 2]",
        json.dumps({"UserIds": "u", "Operations": "FolderCreated", "AuditData": "{}"}),
        _line("good", "2025-01-01T01:00:00"),
    ]
    source = ReplayAuditSource.from_jsonl(_write(tmp_path, lines))

    assert [record.key for record in source.query(_query())] == ["good"]


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        ReplayAuditSource.from_jsonl(tmp_path / "missing.jsonl")
