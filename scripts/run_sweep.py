#!/usr/bin/env python3
"""
Run the recurring-transaction sweep: materialize every due occurrence.

Loads the engine configuration (get_active_config), initializes the database
engine, and either sweeps once or polls every sweep.tick_interval_seconds
until interrupted.

Usage:
    python3 scripts/run_sweep.py --once [options]
    python3 scripts/run_sweep.py [options]          # polling loop

Examples:
    # One sweep for today (UTC); exit code 1 if any definition failed
    python3 scripts/run_sweep.py --once

    # Create tables first, sweep as of a date, for a single user
    python3 scripts/run_sweep.py --once --create-tables --as-of 2024-04-30 \\
        --user 3f2c1b0e-0000-0000-0000-000000000000

    # Polling loop with a custom config file and a smaller catch-up bound
    python3 scripts/run_sweep.py --config ./sweep.yaml --max-catch-up 6
"""

from __future__ import annotations

import argparse
import json
import sys
import time
from dataclasses import replace
from datetime import date
from pathlib import Path
from uuid import UUID

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from ledger_config import get_active_config  # noqa: E402
from ledger_kernel.db.engine import (  # noqa: E402
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from ledger_kernel.logging_config import configure_logging, get_logger, set_level  # noqa: E402
from ledger_recurring.services.sweep import SweepDriver  # noqa: E402

logger = get_logger("scripts.run_sweep")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Materialize due recurring transactions.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (default: ledger_config/sets/default.yaml).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit (non-zero if any definition failed).",
    )
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="Reference date YYYY-MM-DD (default: today, UTC).",
    )
    parser.add_argument(
        "--user",
        type=UUID,
        default=None,
        help="Only sweep this user's definitions.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before sweeping.",
    )
    parser.add_argument(
        "--max-catch-up",
        type=_positive_int,
        default=None,
        help="Override sweep.max_catch_up_iterations.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)

    # Before loading, so config_loaded is emitted as JSON.
    configure_logging()
    try:
        config = get_active_config(args.config)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    if args.max_catch_up is not None:
        config = replace(
            config,
            sweep=replace(config.sweep, max_catch_up_iterations=args.max_catch_up),
        )

    set_level(config.logging.level)

    db = config.database
    init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    if args.create_tables:
        create_tables()

    driver = SweepDriver.from_config(config, get_session_factory())

    if args.once:
        result = driver.tick(as_of=args.as_of, user_id=args.user)
        print(json.dumps({
            "sweep_id": str(result.sweep_id),
            "as_of": result.as_of.isoformat(),
            "examined": result.examined,
            "materialized": result.materialized,
            "deferred": result.deferred,
            "exhausted": result.exhausted,
            "conflicts": result.conflicts,
            "failed": [str(d) for d in result.failed_definition_ids],
        }))
        return 1 if result.failed else 0

    if args.as_of is not None or args.user is not None:
        logger.warning(
            "polling_ignores_filters",
            extra={"as_of": args.as_of, "user_id": str(args.user) if args.user else None},
        )

    driver.start()
    try:
        while driver.is_running:
            time.sleep(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        driver.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
