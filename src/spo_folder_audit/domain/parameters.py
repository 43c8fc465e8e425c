"""Run parameters supplied by the caller for one report run."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from spo_folder_audit.domain.models import FilterCriteria, WorkloadScope
from spo_folder_audit.domain.operations import FOLDER_OPERATIONS
from spo_folder_audit.utils.time import RETENTION_DAYS

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_SITE_URL_PATTERN = re.compile(
    r"^https://[a-z0-9-]+(-my)?\.sharepoint\.com(/.*)?$",
    re.IGNORECASE,
)


class RunParameters(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: datetime | None = Field(default=None)
    end_date: datetime | None = Field(default=None)
    performed_by: str | None = Field(default=None, description="UPN of the acting user")
    site_url: str | None = Field(default=None)
    import_sites_csv: Path | None = Field(default=None)
    sharepoint_online: bool = Field(default=False)
    onedrive: bool = Field(default=False)
    include_system_events: bool = Field(default=False)
    interval_minutes: int = Field(default=60, ge=1, le=10080)
    throttle_limit: int = Field(default=10, ge=1, le=100)
    output_path: Path | None = Field(default=None)
    operations: frozenset[str] = Field(default=FOLDER_OPERATIONS)

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalise_dates(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        # Naive input is the operator's wall-clock time.
        if value.tzinfo is None:
            value = value.astimezone()
        return value.astimezone(timezone.utc)

    @field_validator("performed_by")
    @classmethod
    def _validate_performed_by(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not _EMAIL_PATTERN.match(value):
            raise ValueError(f"performed_by must be an email address, got {value!r}")
        return value

    @field_validator("site_url")
    @classmethod
    def _validate_site_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not _SITE_URL_PATTERN.match(value):
            raise ValueError(f"site_url must be a SharePoint Online URL, got {value!r}")
        return value

    @field_validator("operations")
    @classmethod
    def _validate_operations(cls, value: frozenset[str]) -> frozenset[str]:
        cleaned = frozenset(op.strip() for op in value if op and op.strip())
        if not cleaned:
            raise ValueError("At least one operation name is required")
        return cleaned

    @model_validator(mode="after")
    def _validate_workload_switches(self) -> "RunParameters":
        if self.sharepoint_online and self.onedrive:
            raise ValueError("sharepoint_online and onedrive are mutually exclusive")
        return self

    @property
    def workload_scope(self) -> WorkloadScope:
        if self.sharepoint_online:
            return WorkloadScope.SHAREPOINT_ONLY
        if self.onedrive:
            return WorkloadScope.ONEDRIVE_ONLY
        return WorkloadScope.ALL

    def resolve_range(self, now: datetime) -> tuple[datetime, datetime]:
        """Return the requested ``(start, end)`` with defaults applied against ``now``."""
        end = self.end_date or now
        start = self.start_date or now - timedelta(days=RETENTION_DAYS)
        return start, end

    def criteria(self, site_allow_list: frozenset[str] = frozenset()) -> FilterCriteria:
        return FilterCriteria(
            include_system_events=self.include_system_events,
            performed_by=self.performed_by,
            workload_scope=self.workload_scope,
            site_url=self.site_url,
            site_allow_list=site_allow_list,
        )
