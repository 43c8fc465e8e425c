"""Interface of the paged, rate-limited audit query upstream."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from spo_folder_audit.domain.models import AuditQuery, RawAuditRecord


class AuditPage(list):
    """Records of one upstream page.

    ``received`` counts every item the upstream sent, including items that were
    dropped as unusable, so a full page stays recognisable as full.
    """

    def __init__(self, records: Iterable[RawAuditRecord] = (), received: int | None = None) -> None:
        super().__init__(records)
        self.received = len(self) if received is None else received


def received_count(records: Sequence[RawAuditRecord]) -> int:
    if isinstance(records, AuditPage):
        return records.received
    return len(records)


class AuditSource(Protocol):
    """Returns at most ``query.result_size`` records per call.

    Repeating an identical query with the same ``session_id`` continues from
    where the previous page stopped.
    """

    def query(self, query: AuditQuery) -> list[RawAuditRecord]: ...

    def close(self) -> None: ...
