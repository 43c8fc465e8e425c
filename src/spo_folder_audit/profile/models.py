"""Run profile models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def _ensure_list(v: Any) -> list:
    if v is None:
        return []
    return v


class ProfileFilters(BaseModel):
    include_system_events: bool | None = Field(default=None)
    performed_by: str | None = Field(default=None)
    workload: Literal["All", "SharePoint", "OneDrive"] | None = Field(default=None)
    site_url: str | None = Field(default=None)
    sites_csv: str | None = Field(default=None)


class RunProfile(BaseModel):
    """Reusable defaults for a report run; command-line flags take precedence."""

    version: int = Field(default=1)
    operations: list[str] = Field(default_factory=list)
    filters: ProfileFilters = Field(default_factory=ProfileFilters)
    interval_minutes: int | None = Field(default=None, ge=1, le=10080)
    throttle_limit: int | None = Field(default=None, ge=1, le=100)
    output_path: str | None = Field(default=None)

    @field_validator("operations", mode="before")
    @classmethod
    def _validate_operations(cls, v: Any) -> list:
        return _ensure_list(v)

    @field_validator("filters", mode="before")
    @classmethod
    def _validate_filters(cls, v: Any) -> Any:
        if v is None:
            return {}
        return v

    @classmethod
    def from_yaml(cls, data: dict[str, object]) -> "RunProfile":
        return cls.model_validate(data)
