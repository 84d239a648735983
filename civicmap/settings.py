"""Settings loading: TOML file, `.env` and environment overrides."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import tomllib
from pydantic import BaseModel, Field

DEFAULT_SETTINGS_PATH = Path("config/settings.toml")
DEFAULT_LOGGING_PATH = Path("config/logging.yaml")

_ENV_OVERRIDES: List[Tuple[str, str, str]] = [
    ("CIVICMAP_SUPABASE_URL", "storage", "base_url"),
    ("CIVICMAP_SUPABASE_KEY", "storage", "api_key"),
    ("CIVICMAP_PHOTO_BUCKET", "storage", "bucket"),
]


class ResolverSettings(BaseModel):
    """Tunable constants for location resolution."""

    default_latitude: float = 20.5937
    default_longitude: float = 78.9629
    jitter: float = Field(default=0.0005, ge=0)
    fallback_multiplier: int = Field(default=123456789, gt=0)
    fallback_window: int = Field(default=1_000_000, gt=1)
    fallback_spread: float = Field(default=3.0, gt=0)
    places_file: Optional[Path] = None


class StorageSettings(BaseModel):
    """Connection details for the hosted issue table and photo bucket."""

    base_url: str = "http://localhost:54321"
    api_key: str = ""
    bucket: str = "issue-photos"
    bucket_public: bool = True
    bucket_prefixes: List[str] = Field(default_factory=lambda: ["issue-photos", "issue_photos"])
    signed_url_ttl: int = Field(default=3600, gt=0)
    issues_table: str = "issues"
    timeout_seconds: float = Field(default=15.0, gt=0)
    poll_interval_seconds: float = Field(default=10.0, gt=0)


class DashboardSettings(BaseModel):
    """Presentation defaults for the map surfaces."""

    surface: str = Field(default="geo", pattern=r"^(geo|heuristic)$")
    overview_zoom: int = 13
    focus_zoom: int = 15
    recent_limit: int = Field(default=4, gt=0)


class AppSettings(BaseModel):
    geo: ResolverSettings = Field(default_factory=ResolverSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    dashboard: DashboardSettings = Field(default_factory=DashboardSettings)


def load_settings(path: Path = DEFAULT_SETTINGS_PATH) -> Dict[str, object]:
    """Read the TOML configuration file, returning an empty mapping when absent."""
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def apply_env_overrides(raw: Dict[str, object]) -> Dict[str, object]:
    """Overlay secrets from the environment onto the raw settings mapping."""
    merged: Dict[str, object] = {key: dict(value) if isinstance(value, dict) else value for key, value in raw.items()}
    for env_name, section, key in _ENV_OVERRIDES:
        value = os.getenv(env_name)
        if value:
            merged.setdefault(section, {})
            merged[section][key] = value  # type: ignore[index]
    return merged


def build_settings(raw: Dict[str, object]) -> AppSettings:
    """Validate a raw settings mapping into typed sections."""
    return AppSettings(**apply_env_overrides(raw))
