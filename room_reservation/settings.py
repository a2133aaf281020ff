"""Runtime configuration.

Values come from, in increasing priority: dataclass defaults, the YAML file
named by ``ROOM_RESERVATION_CONFIG`` and ``ROOM_RESERVATION_*`` environment
variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

ENV_PREFIX = "ROOM_RESERVATION_"
CONFIG_PATH_ENV = "ROOM_RESERVATION_CONFIG"
BACKENDS = ("memory", "yaml", "sqlite")


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    backend: str = "memory"
    data_dir: str = "data"
    database_path: str = "data/reservations.sqlite3"
    lock_timeout_seconds: float = 60.0
    idempotency_ttl_seconds: float = 24 * 60 * 60
    idempotency_max_entries: int = 10_000
    auto_create_rooms: bool = False


def validate_settings(settings: Settings) -> None:
    if settings.backend not in BACKENDS:
        raise ValueError(f"backend must be one of {', '.join(BACKENDS)}; got '{settings.backend}'")
    if settings.lock_timeout_seconds <= 0:
        raise ValueError("lock_timeout_seconds must be greater than zero")
    if settings.idempotency_ttl_seconds <= 0:
        raise ValueError("idempotency_ttl_seconds must be greater than zero")
    if settings.idempotency_max_entries <= 0:
        raise ValueError("idempotency_max_entries must be greater than zero")


def _coerce(name: str, raw: Any) -> Any:
    default = getattr(Settings, name)
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return str(raw)


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as error:
        raise ValueError(f"Failed to read config file: {path}") from error

    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return payload


def load_settings(
    config_path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    env = os.environ if environ is None else environ
    known = {item.name for item in fields(Settings)}
    values: dict[str, Any] = {}

    path = config_path or env.get(CONFIG_PATH_ENV)
    if path:
        for key, raw in _read_config_file(Path(path)).items():
            if key not in known:
                raise ValueError(f"Unknown setting in config file: {key}")
            values[key] = _coerce(key, raw)

    for name in known:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is not None:
            values[name] = _coerce(name, raw)

    settings = Settings(**values)
    validate_settings(settings)
    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
