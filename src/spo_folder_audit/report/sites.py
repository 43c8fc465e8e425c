"""Site allow-list import."""

from __future__ import annotations

import csv
from pathlib import Path

from spo_folder_audit.errors import ConfigurationError

SITE_URL_COLUMN = "SiteUrl"


def load_site_allow_list(path: str | Path) -> frozenset[str]:
    csv_path = Path(path)
    if not csv_path.is_file():
        raise ConfigurationError(f"Site list file not found: {csv_path}")
    with csv_path.open("r", encoding="utf-8-sig", newline="") as handle:
        reader = csv.DictReader(handle)
        fieldnames = [name.strip() for name in reader.fieldnames or []]
        if SITE_URL_COLUMN not in fieldnames:
            raise ConfigurationError(f"Site list {csv_path} has no '{SITE_URL_COLUMN}' column")
        reader.fieldnames = fieldnames
        sites = {
            (row.get(SITE_URL_COLUMN) or "").strip()
            for row in reader
        }
    sites.discard("")
    return frozenset(sites)
