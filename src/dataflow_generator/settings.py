"""Generator settings.

Settings come from an optional YAML file, overridden by ``DATAFLOW_*``
environment variables (``.env`` files are loaded by the CLI).  Invalid
settings fail fast with a pydantic ``ValidationError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, field_validator

from dataflow_generator.platforms import DEFAULT_PLATFORMS

ENV_PREFIX = "DATAFLOW_"

# env var suffix -> settings field
_ENV_FIELDS = {
    "LOG_LEVEL": "log_level",
    "OUTPUT_DIR": "output_dir",
    "SPEC_FORMAT": "spec_format",
    "DATABASE_URL": "database_url",
    "DB_TIMEOUT": "db_timeout_seconds",
    "STRICT_PLACEHOLDERS": "strict_placeholders",
    "CHECK_CONNECTIONS": "check_connections",
}


class GeneratorSettings(BaseModel):
    log_level: str = "INFO"
    output_dir: str = "build"
    spec_format: Literal["yaml", "json"] = "yaml"
    strict_placeholders: bool = False
    check_connections: bool = False
    database_url: str | None = None
    db_timeout_seconds: float = 5.0
    platforms: dict[str, dict[str, str]] = {
        key: dict(info) for key, info in DEFAULT_PLATFORMS.items()
    }

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("db_timeout_seconds")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("db_timeout_seconds must be greater than 0")
        return v


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for suffix, field in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value not in (None, ""):
            overrides[field] = value
    return overrides


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> GeneratorSettings:
    """Load settings from *path* (optional) and the environment.

    Platforms listed in the file are merged over the built-in catalog.
    """
    raw: dict[str, Any] = {}
    if path is not None:
        loaded = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(
                f"Settings root must be a mapping, got {type(loaded).__name__}"
            )
        raw.update(loaded)

    if "platforms" in raw:
        merged = {key: dict(info) for key, info in DEFAULT_PLATFORMS.items()}
        merged.update(raw["platforms"] or {})
        raw["platforms"] = merged

    raw.update(_env_overrides(os.environ if environ is None else environ))
    return GeneratorSettings.model_validate(raw)
