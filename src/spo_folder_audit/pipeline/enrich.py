"""Filter, enrich and classify raw audit records into report rows."""

from __future__ import annotations

import json
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, tzinfo

from spo_folder_audit.domain.models import (
    FilterCriteria,
    RawAuditRecord,
    ReportRow,
    RiskScore,
    WorkloadScope,
)
from spo_folder_audit.domain.operations import is_system_principal
from spo_folder_audit.errors import RecordParseError
from spo_folder_audit.logging_utils import records_logger
from spo_folder_audit.utils.time import ensure_utc, parse_creation_time, to_local

logger = records_logger()

MAX_WORKERS = 100

# Evaluated in order; the first matching pattern decides.
RISK_RULES: tuple[tuple[re.Pattern[str], RiskScore], ...] = (
    (re.compile(r"Deleted|Recycled", re.IGNORECASE), RiskScore.HIGH),
    (re.compile(r"Modified|Renamed", re.IGNORECASE), RiskScore.MEDIUM),
)


def classify_risk(operation: str) -> RiskScore:
    for pattern, score in RISK_RULES:
        if pattern.search(operation):
            return score
    return RiskScore.LOW


def duration_days(activity_time: datetime, now: datetime) -> float:
    elapsed = ensure_utc(now) - ensure_utc(activity_time)
    return round(elapsed.total_seconds() / 86400, 1)


def _decode_payload(record: RawAuditRecord) -> dict:
    try:
        payload = json.loads(record.audit_data_json)
    except ValueError as exc:
        raise RecordParseError(f"AuditData is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise RecordParseError(f"AuditData decoded to {type(payload).__name__}, expected object")
    return payload


def _text(payload: dict, *keys: str) -> str:
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return str(value)
    return ""


def matches_criteria(record: RawAuditRecord, payload: dict, criteria: FilterCriteria) -> bool:
    if not criteria.include_system_events and is_system_principal(record.user_ids):
        return False
    if criteria.performed_by is not None and record.user_ids != criteria.performed_by:
        return False
    if criteria.workload_scope is not WorkloadScope.ALL:
        workload = _text(payload, "Workload")
        if workload.lower() != (criteria.workload_scope.workload or "").lower():
            return False
    site_url = _text(payload, "SiteUrl")
    if criteria.site_url is not None and site_url != criteria.site_url:
        return False
    if criteria.site_allow_list and site_url not in criteria.site_allow_list:
        return False
    return True


def enrich_record(
    record: RawAuditRecord,
    criteria: FilterCriteria,
    now: datetime,
    tz: tzinfo | None = None,
) -> ReportRow | None:
    """Return the report row for ``record``, or ``None`` when a filter rejects it.

    Raises ``RecordParseError`` when the payload cannot be decoded. The result
    depends only on the arguments, so the same inputs always produce the same row.
    """
    payload = _decode_payload(record)
    if not matches_criteria(record, payload, criteria):
        return None

    creation_time = _text(payload, "CreationTime")
    if not creation_time:
        raise RecordParseError("AuditData has no CreationTime")
    try:
        created = parse_creation_time(creation_time)
    except ValueError as exc:
        raise RecordParseError(f"Invalid CreationTime {creation_time!r}") from exc

    return ReportRow(
        activity_time=to_local(created, tz),
        activity=record.operations,
        folder_name=_text(payload, "SourceFileName"),
        performed_by=record.user_ids,
        folder_url=_text(payload, "ObjectId", "ObjectID"),
        site_url=_text(payload, "SiteUrl"),
        workload=_text(payload, "Workload"),
        risk_score=classify_risk(record.operations),
        duration_days=duration_days(created, now),
        raw_detail=record.audit_data_json,
    )


@dataclass
class BatchResult:
    rows: list[ReportRow] = field(default_factory=list)
    rejected: int = 0
    failed: int = 0


@dataclass(frozen=True)
class _Outcome:
    row: ReportRow | None
    error: Exception | None = None


class FilterEnrichPipeline:
    """Runs ``enrich_record`` over a batch on a bounded worker pool.

    Workers only read the immutable criteria and return private results; the
    batch result is assembled by the calling thread in input order.
    """

    def __init__(
        self,
        criteria: FilterCriteria,
        now: datetime,
        max_workers: int = 10,
        tz: tzinfo | None = None,
    ) -> None:
        if not 1 <= max_workers <= MAX_WORKERS:
            raise ValueError(f"max_workers must be between 1 and {MAX_WORKERS}")
        self.criteria = criteria
        self.now = now
        self.tz = tz
        self.max_workers = max_workers

    def _evaluate(self, record: RawAuditRecord) -> _Outcome:
        try:
            return _Outcome(row=enrich_record(record, self.criteria, self.now, self.tz))
        except Exception as exc:
            return _Outcome(row=None, error=exc)

    def process(self, records: list[RawAuditRecord]) -> BatchResult:
        result = BatchResult()
        if not records:
            return result

        if self.max_workers == 1 or len(records) == 1:
            outcomes = [self._evaluate(record) for record in records]
        else:
            workers = min(self.max_workers, len(records))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="enrich") as pool:
                outcomes = list(pool.map(self._evaluate, records))

        for record, outcome in zip(records, outcomes):
            if outcome.error is not None:
                result.failed += 1
                logger.warning(
                    "Dropping %s record by %s: %s",
                    record.operations or "unknown",
                    record.user_ids or "unknown",
                    outcome.error,
                )
            elif outcome.row is None:
                result.rejected += 1
            else:
                result.rows.append(outcome.row)
        return result
