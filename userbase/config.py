"""Configuration management for the user directory service."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import MEMORY_DATABASE, resolve_database_path

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _parse_flag(value: object, *, setting: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value for {setting}: {value!r}")


def _parse_port(value: object) -> int:
    try:
        port = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid port: {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ValueError(f"Port must be between 1 and 65535, got {port}")
    return port


def _parse_log_level(value: object) -> str:
    level = str(value).strip().upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"Unknown log level: {value!r}")
    return level


def _resolve_path(raw: str, base_path: Path | None) -> Path:
    if raw == MEMORY_DATABASE:
        return Path(raw)
    candidate = Path(raw).expanduser()
    if candidate.is_absolute() or base_path is None:
        return candidate.resolve(strict=False)
    return (base_path / candidate).resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service."""

    database_path: Path
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    seed_sample_data: bool = True

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw configuration file data."""

        unknown = set(data.keys()) - {"database_path", "host", "port", "log_level", "seed_sample_data"}
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        raw_path = data.get("database_path")
        if raw_path:
            database_path = _resolve_path(str(raw_path), base_path)
        else:
            database_path = resolve_database_path(None)

        return Settings(
            database_path=database_path,
            host=str(data.get("host", "0.0.0.0")),
            port=_parse_port(data.get("port", 3000)),
            log_level=_parse_log_level(data.get("log_level", "INFO")),
            seed_sample_data=_parse_flag(data.get("seed_sample_data", True), setting="seed_sample_data"),
        )

    def with_environment(self, environ: Mapping[str, str]) -> "Settings":
        """Return a copy with environment variable overrides applied."""

        overrides: Dict[str, object] = {}
        db_path = environ.get("USERBASE_DB_PATH")
        if db_path:
            overrides["database_path"] = _resolve_path(db_path, None)
        host = environ.get("USERBASE_HOST")
        if host:
            overrides["host"] = host.strip()
        port = environ.get("PORT")
        if port:
            overrides["port"] = _parse_port(port)
        log_level = environ.get("USERBASE_LOG_LEVEL")
        if log_level:
            overrides["log_level"] = _parse_log_level(log_level)
        seed = environ.get("USERBASE_SEED_SAMPLE_DATA")
        if seed:
            overrides["seed_sample_data"] = _parse_flag(seed, setting="USERBASE_SEED_SAMPLE_DATA")
        return replace(self, **overrides)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the YAML configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "userbase.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from a YAML file (if present) and the environment.

    Environment variables take precedence over values from the file. A missing
    configuration file is not an error; the defaults are used instead.
    """
    if environ is None:
        environ = os.environ
    if config_path is None:
        config_path = resolve_config_path(environ.get("USERBASE_CONFIG"))

    raw: Dict[str, object] = {}
    if config_path.is_file():
        with config_path.open("r", encoding="utf-8") as handle:
            loaded = yaml.safe_load(handle) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        raw = loaded

    settings = Settings.from_dict(raw, base_path=config_path.parent)
    return settings.with_environment(environ)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
