"""Audited folder operations and well-known principals."""

from __future__ import annotations

FOLDER_OPERATIONS: frozenset[str] = frozenset(
    {
        "FolderCreated",
        "FolderModified",
        "FolderRenamed",
        "FolderCopied",
        "FolderMoved",
        "FolderDeleted",
        "FolderRecycled",
        "FolderDeletedFirstStageRecycleBin",
        "FolderDeletedSecondStageRecycleBin",
        "FolderRestored",
    }
)

# Compared case-insensitively; the audit feed is not consistent about casing.
SYSTEM_PRINCIPALS: frozenset[str] = frozenset({"app@sharepoint", "sharepoint\\system"})


def is_system_principal(user_ids: str) -> bool:
    return user_ids.strip().lower() in SYSTEM_PRINCIPALS
