"""Configuration management for the group membership service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path

_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class ServiceConfig:
    """Runtime settings for the HTTP service and its database."""

    database_path: Path
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    @property
    def logging_level(self) -> int:
        return getattr(logging, self.log_level)

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "ServiceConfig":
        """Create a :class:`ServiceConfig` from raw dictionary data."""

        raw_db_path = data.get("database_path")
        if raw_db_path:
            candidate = Path(str(raw_db_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        return ServiceConfig(
            database_path=database_path,
            host=str(data.get("host", "127.0.0.1")),
            port=_parse_port(data.get("port", 8000)),
            log_level=_parse_log_level(data.get("log_level", "INFO")),
        )


def _parse_port(value: object) -> int:
    try:
        port = int(str(value))
    except ValueError as exc:
        raise ValueError(f"Port must be an integer, got {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def _parse_log_level(value: object) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level {value!r}")
    return level


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "grouphub.yaml").resolve(strict=False)


def load_service_config(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> ServiceConfig:
    """Load settings from YAML and apply ``GROUPHUB_*`` environment overrides."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("GROUPHUB_CONFIG"))

    raw: Dict[str, object] = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")
        raw = loaded

    config = ServiceConfig.from_dict(raw, base_path=path.parent)

    overrides: Dict[str, object] = {}
    if env.get("GROUPHUB_DB_PATH"):
        overrides["database_path"] = resolve_database_path(env["GROUPHUB_DB_PATH"])
    if env.get("GROUPHUB_HOST"):
        overrides["host"] = env["GROUPHUB_HOST"].strip()
    if env.get("GROUPHUB_PORT"):
        overrides["port"] = _parse_port(env["GROUPHUB_PORT"])
    if env.get("GROUPHUB_LOG_LEVEL"):
        overrides["log_level"] = _parse_log_level(env["GROUPHUB_LOG_LEVEL"])

    return replace(config, **overrides) if overrides else config


__all__ = ["ServiceConfig", "load_service_config", "resolve_config_path"]
