"""Maintenance commands for the vocabulary review database.

Usage:
    vocab-maintenance init-db
    vocab-maintenance sweep-sessions
    vocab-maintenance sweep-sessions --config path/to/config.yaml

sweep-sessions is meant to be run periodically (e.g. from cron) to close
review sessions that were abandoned without being completed.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from vocab.config import load_config
from vocab.constants import CONFIG_PATH
from vocab.database import init_db
from vocab.review_service import timeout_expired_sessions
from util.logging_util import setup_logger

logger = setup_logger(__name__)


def run_init_db() -> int:
    init_db()
    print("Database schema created")
    return 0


def run_sweep_sessions(config_path: Path) -> int:
    try:
        config = load_config(config_path)
    except (ValueError, OSError) as e:
        logger.error(f"Invalid config {config_path}: {e}")
        return 1

    closed = timeout_expired_sessions(config=config)
    logger.info(f"Session sweep finished, timeout {config.sessions.session_timeout_hours}h")
    print(f"Closed {len(closed)} expired review sessions")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Maintenance tasks for the vocabulary review database"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create the database schema")

    sweep = subparsers.add_parser(
        "sweep-sessions",
        help="Complete review sessions that have been open longer than the timeout",
    )
    sweep.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help=f"YAML config file (default: {CONFIG_PATH})",
    )

    args = parser.parse_args(argv)

    match args.command:
        case "init-db":
            return run_init_db()
        case "sweep-sessions":
            return run_sweep_sessions(args.config)

    parser.error(f"Unknown command: {args.command}")


if __name__ == "__main__":
    sys.exit(main())
