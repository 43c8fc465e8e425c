"""Offline audit source backed by a JSON-lines export."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from spo_folder_audit.domain.models import AuditQuery, RawAuditRecord
from spo_folder_audit.errors import ConfigurationError
from spo_folder_audit.logging_utils import records_logger
from spo_folder_audit.utils.time import parse_creation_time

logger = logging.getLogger(__name__)
record_logger = records_logger()

_PageKey = tuple[str, datetime, datetime, frozenset[str]]


def _creation_time(item: dict, audit_data: str) -> datetime | None:
    value = item.get("CreationDate")
    if not value:
        try:
            payload = json.loads(audit_data)
        except ValueError:
            return None
        value = payload.get("CreationTime") if isinstance(payload, dict) else None
    if not value:
        return None
    try:
        return parse_creation_time(str(value))
    except ValueError:
        return None


class ReplayAuditSource:
    """Serves queries from exported records with the upstream paging semantics.

    Windows are half-open: a record is returned for ``start <= time < end`` so a
    record on a window boundary belongs to exactly one window.
    """

    def __init__(self, records: list[tuple[datetime, RawAuditRecord]]) -> None:
        self._records = sorted(records, key=lambda pair: pair[0])
        self._offsets: dict[_PageKey, int] = {}
        self.calls: list[AuditQuery] = []

    @classmethod
    def from_jsonl(cls, path: str | Path) -> "ReplayAuditSource":
        source_path = Path(path)
        if not source_path.exists():
            raise ConfigurationError(f"Replay file not found: {source_path}")
        records: list[tuple[datetime, RawAuditRecord]] = []
        with source_path.open("r", encoding="utf-8-sig") as handle:
            for line_no, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    item = json.loads(line)
                except ValueError:
                    record_logger.warning("Skipping malformed replay line %d in %s", line_no, source_path)
                    continue
                if not isinstance(item, dict):
                    record_logger.warning("Skipping non-object replay line %d in %s", line_no, source_path)
                    continue
                audit_data = item.get("AuditData", "")
                if not isinstance(audit_data, str):
                    audit_data = json.dumps(audit_data, ensure_ascii=False)
                created = _creation_time(item, audit_data)
                if created is None:
                    record_logger.warning("Skipping replay line %d without a creation time", line_no)
                    continue
                records.append(
                    (
                        created,
                        RawAuditRecord(
                            user_ids=str(item.get("UserIds") or ""),
                            operations=str(item.get("Operations") or ""),
                            audit_data_json=audit_data,
                        ),
                    )
                )
        logger.info("Loaded %d replay records from %s", len(records), source_path)
        return cls(records)

    def query(self, query: AuditQuery) -> list[RawAuditRecord]:
        self.calls.append(query)
        window = query.window
        matching = [
            record
            for created, record in self._records
            if window.start <= created < window.end and record.operations in query.operations
        ]
        key: _PageKey = (query.session_id, window.start, window.end, query.operations)
        offset = self._offsets.get(key, 0)
        page = matching[offset : offset + query.result_size]
        self._offsets[key] = offset + len(page)
        return page

    def close(self) -> None:
        self._offsets.clear()
