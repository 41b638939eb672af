from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from datetime import datetime
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any, Dict, Optional, Sequence
from zoneinfo import ZoneInfo

from croniter import croniter

from .config import ConfigurationError, RunConfig, build_config, read_config_file
from .github.api import ListError
from .logger import configure_logging
from .orchestrator import BackupOrchestrator

DESCRIPTION = "Mirror every GitHub repository of a user or organization into a local directory."


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="ghbackup", description=DESCRIPTION)
    parser.add_argument(
        "directory",
        nargs="?",
        help="Path to save the repositories to (may be set in the config file instead).",
    )
    parser.add_argument(
        "--config",
        default=os.getenv("GHBACKUP_CONFIG"),
        help="Path to configuration YAML file.",
    )
    parser.add_argument("--account", help="GitHub user or organization name to get repositories from.")
    parser.add_argument(
        "--secret",
        help="Password or personal access token for the GitHub API (default: $GHBACKUP_SECRET).",
    )
    parser.add_argument(
        "--scope",
        choices=["account", "authenticated"],
        help="List the account's repositories, or every repository the secret can access.",
    )
    parser.add_argument(
        "--filter-by-owner",
        action="store_true",
        default=None,
        help="With --scope authenticated, keep only repositories owned by --account.",
    )
    parser.add_argument("--workers", type=int, help="Number of repositories to sync concurrently (default 10).")
    parser.add_argument("--api-url", help="GitHub API base URL (default https://api.github.com).")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Log level (default INFO).",
    )
    parser.add_argument("--silent", action="store_true", help="Only log warnings and errors.")
    parser.add_argument("--version", action="store_true", help="Print version and exit.")
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    values = {
        "directory": args.directory,
        "account": args.account,
        "secret": args.secret,
        "scope": args.scope,
        "filter_by_owner": args.filter_by_owner,
        "workers": args.workers,
        "api_url": args.api_url,
    }
    return {key: value for key, value in values.items() if value is not None}


def load_configuration(args: argparse.Namespace, *, exit_on_error: bool = True) -> RunConfig:
    try:
        raw: Dict[str, Any] = read_config_file(Path(args.config).expanduser()) if args.config else {}
        raw.update(_overrides(args))
        return build_config(raw)
    except ConfigurationError as exc:
        if exit_on_error:
            raise SystemExit(f"Configuration error: {exc}") from exc
        raise


def run_backup(config: RunConfig) -> int:
    orchestrator = BackupOrchestrator(config=config)
    try:
        summary = orchestrator.run()
    except ListError as exc:
        logging.error("Cannot list repositories: %s", exc)
        return 1
    except OSError as exc:
        logging.error("Cannot prepare backup directory %s: %s", config.directory, exc)
        return 1

    if summary.error:
        logging.error("%s", summary.error)
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    if args.version:
        print(f"ghbackup {_package_version()}")
        return 0

    try:
        configure_logging("WARNING" if args.silent else args.log_level)
    except ValueError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc
    config = load_configuration(args)

    if config.scheduler:
        return run_with_scheduler(args=args, initial_config=config)
    return run_backup(config)


def run_with_scheduler(
    args: argparse.Namespace,
    initial_config: RunConfig,
    stop_event: Optional[threading.Event] = None,
) -> int:
    """Run backups on the configured cron schedule until stopped.

    The configuration is re-read before every run. Returns the exit code of the
    last backup, or 0 if none ran.
    """
    stop_event = stop_event or threading.Event()
    _stop_on_signals(stop_event)

    config = initial_config
    schedule = config.scheduler
    zone = ZoneInfo(schedule.timezone)
    due = datetime.now(zone)
    if not schedule.run_on_startup:
        due = _next_run(schedule.cron, due)
    logging.info("First backup at %s", due.isoformat())

    last_exit = 0
    while not stop_event.is_set():
        now = datetime.now(zone)
        if now < due:
            stop_event.wait(min((due - now).total_seconds(), 60))
            continue

        config = _reload(args, config)
        if not config.scheduler:
            logging.info("Scheduler removed from configuration; stopping")
            break
        schedule = config.scheduler
        zone = ZoneInfo(schedule.timezone)

        last_exit = run_backup(config)
        if last_exit:
            logging.warning("Scheduled backup failed with exit code %s", last_exit)

        due = _next_run(schedule.cron, datetime.now(zone))
        logging.info("Next backup at %s", due.isoformat())

    logging.info("Scheduler stopped")
    return last_exit


def _stop_on_signals(stop_event: threading.Event) -> None:
    def _handle_signal(signum: int, _frame: Optional[object]) -> None:
        logging.info("Received signal %s; stopping scheduler", signum)
        stop_event.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)


def _reload(args: argparse.Namespace, previous: RunConfig) -> RunConfig:
    try:
        return load_configuration(args, exit_on_error=False)
    except ConfigurationError as exc:
        logging.error("Failed to reload configuration: %s; keeping previous settings", exc)
        return previous


def _next_run(cron_expression: str, reference: datetime) -> datetime:
    return croniter(cron_expression, reference).get_next(datetime)


def _package_version() -> str:
    try:
        return version("ghbackup")
    except PackageNotFoundError:
        return "unknown"


if __name__ == "__main__":
    sys.exit(main())
