"""Domain objects for folder audit records and report rows."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class WorkloadScope(str, Enum):
    ALL = "All"
    SHAREPOINT_ONLY = "SharePointOnly"
    ONEDRIVE_ONLY = "OneDriveOnly"

    @property
    def workload(self) -> str | None:
        """Workload name this scope admits, or ``None`` for all workloads."""
        if self is WorkloadScope.SHAREPOINT_ONLY:
            return "SharePoint"
        if self is WorkloadScope.ONEDRIVE_ONLY:
            return "OneDrive"
        return None


class RiskScore(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Window start {self.start} is after end {self.end}")

    @property
    def label(self) -> str:
        return f"{self.start.isoformat()} -> {self.end.isoformat()}"


@dataclass(frozen=True)
class RawAuditRecord:
    user_ids: str
    operations: str
    audit_data_json: str

    @property
    def key(self) -> str:
        """Stable identity used to recognise the same record across pages."""
        try:
            payload = json.loads(self.audit_data_json)
        except ValueError:
            payload = None
        if isinstance(payload, dict) and payload.get("Id"):
            return str(payload["Id"])
        material = "\x1f".join((self.user_ids, self.operations, self.audit_data_json))
        return hashlib.sha256(material.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class FilterCriteria:
    include_system_events: bool = False
    performed_by: str | None = None
    workload_scope: WorkloadScope = WorkloadScope.ALL
    site_url: str | None = None
    site_allow_list: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ReportRow:
    activity_time: datetime
    activity: str
    folder_name: str
    performed_by: str
    folder_url: str
    site_url: str
    workload: str
    risk_score: RiskScore
    duration_days: float
    raw_detail: str


@dataclass(frozen=True)
class AuditQuery:
    window: TimeWindow
    operations: frozenset[str]
    session_id: str
    session_mode: str = "ReturnLargeSet"
    result_size: int = 5000


@dataclass
class RunState:
    """Mutable progress of a single run. Only the coordinating loop writes it."""

    current_window: TimeWindow | None = None
    position: datetime | None = None
    rows_written: int = 0
    pages_fetched: int = 0
    windows_completed: int = 0
    records_dropped: int = 0
    parse_warnings: int = 0
