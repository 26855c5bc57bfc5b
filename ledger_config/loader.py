"""
Configuration loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file, applies environment overrides, and parses
the result into the frozen dataclasses of ``ledger_config.schema``.  The
runtime entry point is ``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Every parse error raises ``ValueError`` with a descriptive message:
  unknown sections or keys, non-positive bounds, unknown log levels.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective configuration.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any, Mapping
from uuid import UUID

import yaml

from ledger_config.schema import (
    LOG_LEVELS,
    DatabaseConfig,
    EngineConfig,
    LoggingConfig,
    SweepConfig,
)

# (environment variable, section, key, parser)
ENV_OVERRIDES: tuple[tuple[str, str, str, Any], ...] = (
    ("LEDGER_DATABASE_URL", "database", "url", str),
    ("LEDGER_SWEEP_MAX_CATCH_UP", "sweep", "max_catch_up_iterations", int),
    ("LEDGER_SWEEP_TICK_SECONDS", "sweep", "tick_interval_seconds", float),
    ("LEDGER_LOG_LEVEL", "logging", "level", str),
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def apply_env_overrides(
    data: Mapping[str, Any], environ: Mapping[str, str],
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied.

    ``DATABASE_URL`` is honoured when ``LEDGER_DATABASE_URL`` is not set.
    """
    result: dict[str, Any] = {
        section: dict(values or {}) for section, values in data.items()
    }

    for var, section, key, parser in ENV_OVERRIDES:
        raw = environ.get(var)
        if raw is None and var == "LEDGER_DATABASE_URL":
            var, raw = "DATABASE_URL", environ.get("DATABASE_URL")
        if raw is None or raw == "":
            continue
        try:
            value = parser(raw)
        except ValueError:
            raise ValueError(f"{var}={raw!r} is not a valid {parser.__name__}") from None
        result.setdefault(section, {})[key] = value

    return result


def parse_engine_config(
    data: Mapping[str, Any], source: str | None = None,
) -> EngineConfig:
    """
    Parse and validate an ``EngineConfig`` from a dict.

    Raises:
        ValueError: On unknown sections/keys or out-of-range values.
    """
    sections = {"database": DatabaseConfig, "sweep": SweepConfig, "logging": LoggingConfig}
    unknown = set(data) - set(sections)
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    parsed: dict[str, Any] = {}
    for name, cls in sections.items():
        values = data.get(name) or {}
        if not isinstance(values, Mapping):
            raise ValueError(f"Section '{name}' must be a mapping")
        allowed = {f.name for f in fields(cls)}
        extra = set(values) - allowed
        if extra:
            raise ValueError(f"Unknown keys in '{name}': {sorted(extra)}")
        parsed[name] = cls(**values)

    database = _validate_database(parsed["database"])
    sweep = _validate_sweep(parsed["sweep"])
    logging_config = _validate_logging(parsed["logging"])

    config = EngineConfig(
        database=database,
        sweep=sweep,
        logging=logging_config,
        source=source,
    )
    return replace(config, checksum=compute_checksum(config))


def compute_checksum(config: EngineConfig) -> str:
    """
    SHA-256 of the canonical JSON serialization of ``config``.

    ``source`` and ``checksum`` are excluded: the same effective settings
    always give the same checksum wherever they were loaded from.
    """
    data = asdict(config)
    data.pop("source", None)
    data.pop("checksum", None)
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _validate_database(config: DatabaseConfig) -> DatabaseConfig:
    if not config.url or not isinstance(config.url, str):
        raise ValueError("database.url must be a non-empty string")
    for name in ("pool_size", "pool_timeout", "pool_recycle"):
        _require_int(f"database.{name}", getattr(config, name), minimum=1)
    _require_int("database.max_overflow", config.max_overflow, minimum=0)
    if not isinstance(config.echo, bool):
        raise ValueError(f"database.echo must be a boolean, got {config.echo!r}")
    return config


def _validate_sweep(config: SweepConfig) -> SweepConfig:
    _require_int("sweep.max_catch_up_iterations", config.max_catch_up_iterations, minimum=1)
    interval = config.tick_interval_seconds
    if isinstance(interval, bool) or not isinstance(interval, (int, float)) or interval <= 0:
        raise ValueError(f"sweep.tick_interval_seconds must be positive, got {interval!r}")
    try:
        actor_id = config.actor_id if isinstance(config.actor_id, UUID) else UUID(str(config.actor_id))
    except ValueError:
        raise ValueError(f"sweep.actor_id must be a UUID, got {config.actor_id!r}") from None
    return SweepConfig(
        tick_interval_seconds=interval,
        max_catch_up_iterations=config.max_catch_up_iterations,
        actor_id=actor_id,
    )


def _validate_logging(config: LoggingConfig) -> LoggingConfig:
    level = str(config.level).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {config.level!r}")
    return LoggingConfig(level=level)


def _require_int(name: str, value: Any, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be at least {minimum}, got {value}")
