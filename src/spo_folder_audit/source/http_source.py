"""HTTP audit search client."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from spo_folder_audit.config import SourceSettings
from spo_folder_audit.domain.models import AuditQuery, RawAuditRecord
from spo_folder_audit.errors import (
    ConfigurationError,
    TransientThrottlingError,
    UpstreamFatalError,
)
from spo_folder_audit.logging_utils import records_logger
from spo_folder_audit.source.base import AuditPage

logger = logging.getLogger(__name__)
record_logger = records_logger()

_MAX_ERROR_BODY_CHARS = 500


def _retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        text = response.text
    else:
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            text = str(error.get("message") or error.get("code") or error)
        elif error:
            text = str(error)
        else:
            text = json.dumps(body)
    if len(text) > _MAX_ERROR_BODY_CHARS:
        text = text[: _MAX_ERROR_BODY_CHARS - 3] + "..."
    return f"HTTP {response.status_code}: {text}"


def _record_from_item(item: Any) -> RawAuditRecord | None:
    if not isinstance(item, dict):
        return None
    audit_data = item.get("AuditData", "")
    if not isinstance(audit_data, str):
        audit_data = json.dumps(audit_data, ensure_ascii=False)
    return RawAuditRecord(
        user_ids=str(item.get("UserIds") or ""),
        operations=str(item.get("Operations") or ""),
        audit_data_json=audit_data,
    )


class HttpAuditSource:
    """Queries an audit search endpoint that speaks the ReturnLargeSet session protocol."""

    def __init__(
        self,
        settings: SourceSettings,
        client: httpx.Client | None = None,
    ) -> None:
        if not settings.endpoint:
            raise ConfigurationError("No audit source endpoint configured (AUDIT_SOURCE_ENDPOINT)")
        self._endpoint = settings.endpoint
        self._headers = {"Accept": "application/json"}
        if settings.token:
            self._headers["Authorization"] = f"Bearer {settings.token}"
        self._owns_client = client is None
        if client is None:
            client = httpx.Client(
                timeout=settings.timeout_seconds,
                transport=httpx.HTTPTransport(retries=settings.max_retries),
            )
        self._client = client

    def query(self, query: AuditQuery) -> AuditPage:
        payload = {
            "startDate": query.window.start.isoformat(),
            "endDate": query.window.end.isoformat(),
            "operations": sorted(query.operations),
            "sessionId": query.session_id,
            "sessionCommand": query.session_mode,
            "resultSize": query.result_size,
        }
        try:
            response = self._client.post(self._endpoint, json=payload, headers=self._headers)
        except httpx.TransportError as exc:
            raise UpstreamFatalError(f"Audit search request failed: {exc}") from exc

        if response.status_code == 429:
            raise TransientThrottlingError(
                _error_message(response),
                retry_after=_retry_after_seconds(response),
            )
        if response.is_error:
            raise UpstreamFatalError(_error_message(response), status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamFatalError("Audit search returned a non-JSON body") from exc

        items = body.get("value", []) if isinstance(body, dict) else body
        if not isinstance(items, list):
            raise UpstreamFatalError("Audit search response has no record list")

        page = AuditPage(received=len(items))
        for position, item in enumerate(items):
            record = _record_from_item(item)
            if record is None:
                record_logger.warning(
                    "Skipping item %d of %s page: expected an object, got %s",
                    position,
                    query.window.label,
                    type(item).__name__,
                )
                continue
            page.append(record)
        logger.debug(
            "Fetched %d of %d records for %s (session %s)",
            len(page),
            page.received,
            query.window.label,
            query.session_id,
        )
        return page

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
