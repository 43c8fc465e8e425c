from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest

from spo_folder_audit import config
from spo_folder_audit.domain.models import RawAuditRecord


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in config.ENV_KEYS.values():
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda **_: False)
    config._load_settings_cached.cache_clear()
    yield
    config._load_settings_cached.cache_clear()


def build_record(
    operations: str = "FolderDeleted",
    user_ids: str = "user1@domain.com",
    workload: str = "OneDrive",
    site_url: str = "https://contoso-my.sharepoint.com/personal/user1_domain_com/",
    creation_time: str = "2025-01-01T10:00:00",
    folder: str = "Projects",
    record_id: str | None = None,
    **extra: Any,
) -> RawAuditRecord:
    payload: dict[str, Any] = {
        "CreationTime": creation_time,
        "Workload": workload,
        "SiteUrl": site_url,
        "ObjectId": f"{site_url}Documents/{folder}",
        "SourceFileName": folder,
        "Operation": operations,
        "UserId": user_ids,
    }
    if record_id is not None:
        payload["Id"] = record_id
    payload.update(extra)
    return RawAuditRecord(
        user_ids=user_ids,
        operations=operations,
        audit_data_json=json.dumps(payload),
    )


@pytest.fixture
def make_record() -> Callable[..., RawAuditRecord]:
    return build_record
