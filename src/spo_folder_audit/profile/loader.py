"""Run profile loader for profile YAML files."""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from spo_folder_audit.errors import ConfigurationError
from spo_folder_audit.profile.models import RunProfile


def load_profile(path: str) -> RunProfile:
    profile_path = Path(path)
    if not profile_path.exists():
        raise ConfigurationError(f"Profile file not found: {profile_path}")
    with profile_path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Profile {profile_path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Profile {profile_path} must contain a mapping")
    try:
        return RunProfile.from_yaml(data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid profile {profile_path}: {exc}") from exc
