"""
Engine configuration schema.

Frozen dataclasses parsed from a YAML configuration set by
``ledger_config.loader``.  Defaults here are the values used when a key is
absent from the YAML file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

# Stamped as created_by_id on rows written by the sweep.
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///ledger.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class SweepConfig:
    """Sweep driver settings."""

    tick_interval_seconds: float = 60
    max_catch_up_iterations: int = 24
    actor_id: UUID = SYSTEM_ACTOR_ID


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


@dataclass(frozen=True)
class EngineConfig:
    """Effective configuration of the recurring engine."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    sweep: SweepConfig = field(default_factory=SweepConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    source: str | None = None
    checksum: str = ""
