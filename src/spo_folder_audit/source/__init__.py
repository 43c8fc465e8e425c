"""Audit record sources."""

from spo_folder_audit.source.base import AuditSource
from spo_folder_audit.source.http_source import HttpAuditSource
from spo_folder_audit.source.replay import ReplayAuditSource

__all__ = [
    "AuditSource",
    "HttpAuditSource",
    "ReplayAuditSource",
]
