"""
ledger_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_config()``: a YAML configuration set, overridden by
    environment variables, parsed into a frozen ``EngineConfig``.

Architecture position:
    Configuration.  Imports from ``ledger_kernel`` (logging) only; the kernel
    never imports from ``ledger_config``.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``ValueError`` -- unknown keys or invalid values (in the file or in
      an environment override).

Audit relevance:
    Every successful ``get_active_config()`` call emits a ``config_loaded``
    log entry with the source path and checksum of the effective config.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from ledger_kernel.logging_config import get_logger

from ledger_config.loader import (
    apply_env_overrides,
    compute_checksum,
    load_yaml_file,
    parse_engine_config,
)
from ledger_config.schema import (
    DatabaseConfig,
    EngineConfig,
    LoggingConfig,
    SweepConfig,
)

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """Load the effective engine configuration.

    Args:
        path: YAML file to load.  Defaults to ledger_config/sets/default.yaml.
        environ: Environment mapping for overrides.  Defaults to os.environ.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If validation fails.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(source)
    data = apply_env_overrides(data, os.environ if environ is None else environ)
    config = parse_engine_config(data, source=str(source))

    _logger.info(
        "config_loaded",
        extra={
            "source": str(source),
            "checksum": config.checksum,
            "max_catch_up_iterations": config.sweep.max_catch_up_iterations,
            "tick_interval_seconds": config.sweep.tick_interval_seconds,
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "EngineConfig",
    "LoggingConfig",
    "SweepConfig",
    "compute_checksum",
    "get_active_config",
]
