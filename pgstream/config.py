"""Settings for pgstream: defaults, optional YAML file, environment, overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pgstream.identifiers import ALL_OPERATIONS, Operation


class ConfigLoadError(ValueError):
    """Raised when the settings YAML cannot be parsed."""


class StreamSettings(BaseSettings):
    """Runtime settings for change streams.

    Environment variables use the ``PGSTREAM_`` prefix; the database URL
    also falls back to ``DATABASE_URL``.
    """

    model_config = SettingsConfigDict(env_prefix="PGSTREAM_", extra="ignore", populate_by_name=True)

    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("PGSTREAM_DATABASE_URL", "DATABASE_URL", "database_url"),
        description="PostgreSQL URL used for setup and listening connections.",
    )
    connect_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait when connecting.")
    default_operations: list[Operation] = Field(
        default_factory=lambda: list(ALL_OPERATIONS),
        min_length=1,
        description="Operations streamed when the caller does not choose any.",
    )
    log_payloads: bool = Field(default=False, description="Debug-log every raw notification payload.")


def config_path(path: str | Path | None = None) -> Path:
    """Explicit path, else ``PGSTREAM_CONFIG``, else ``pgstream.yaml`` in the cwd."""
    if path is not None and str(path).strip():
        return Path(path)
    return Path(os.environ.get("PGSTREAM_CONFIG", "").strip() or "pgstream.yaml")


def _read_yaml(target: Path) -> dict[str, Any]:
    if not target.is_file():
        return {}
    try:
        data = yaml.safe_load(target.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        where = f"{target}:{mark.line + 1}:{mark.column + 1}" if mark is not None else str(target)
        raise ConfigLoadError(f"Invalid YAML at {where}") from exc
    if data is None:
        return {}
    # Settings may sit at the root or under a ``pgstream:`` key.
    if isinstance(data, dict):
        data = data.get("pgstream", data)
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Settings in {target} must be a mapping")
    return data


def load_settings(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> StreamSettings:
    """Build settings from YAML, then environment, then explicit overrides.

    A missing or empty file contributes nothing.

    Raises:
        ConfigLoadError: The file is not valid YAML or not a mapping.
    """
    yaml_data = _read_yaml(config_path(path))
    env_data = StreamSettings().model_dump(exclude_unset=True)
    return StreamSettings(**{**yaml_data, **env_data, **(overrides or {})})
