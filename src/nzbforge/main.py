"""Command line entry point for the binary and release passes."""

from __future__ import annotations

import argparse
import logging
from typing import Callable, Optional, Sequence

from apscheduler.schedulers.blocking import BlockingScheduler
from dotenv import load_dotenv

from .binaries import group_binaries
from .config import settings
from .db import Store
from .errors import PersistenceError, WriterBusyError
from .logging import DebugQueryLogger, setup_logging
from .releases import promote_ready_binaries

logger = logging.getLogger(__name__)


def _createdb(store: Store, _args: argparse.Namespace) -> None:
    store.create_schema()


def _makebinaries(store: Store, _args: argparse.Namespace) -> None:
    group_binaries(store)


def _makereleases(store: Store, args: argparse.Namespace) -> None:
    promote_ready_binaries(store, threshold=args.threshold)


def _update(store: Store, args: argparse.Namespace) -> None:
    group_binaries(store)
    promote_ready_binaries(store, threshold=args.threshold)


def _listparts(store: Store, _args: argparse.Namespace) -> None:
    for summary in store.list_parts():
        print(f"Part: {summary.subject}")
        print(f"  Segments: {summary.total_segments}")
        print(f"  Available Segments: {summary.available_segments}")


def _schedule(store: Store, args: argparse.Namespace) -> None:
    scheduler = BlockingScheduler()

    def run() -> None:
        try:
            _update(store, args)
        except (PersistenceError, WriterBusyError):
            logger.exception("scheduled_update_failed")

    scheduler.add_job(
        run,
        "interval",
        seconds=args.interval,
        max_instances=1,
        coalesce=True,
    )
    logger.info(
        "scheduler_started",
        extra={"event": "scheduler_started", "interval": args.interval},
    )
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown()


COMMANDS: dict[str, tuple[str, Callable[[Store, argparse.Namespace], None]]] = {
    "createdb": ("Create database and tables.", _createdb),
    "makebinaries": ("Create binaries from parts.", _makebinaries),
    "makereleases": ("Create releases from complete binaries.", _makereleases),
    "update": ("Create binaries, then releases.", _update),
    "listparts": ("List parts and their segment availability.", _listparts),
    "schedule": ("Run update on a fixed interval.", _schedule),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nzbforge", description="A usenet indexer")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument(
        "--debugdb",
        action="store_true",
        help="Log database queries (noisy).",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="Database URL or SQLite path (defaults to DATABASE_URL).",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    for name, (help_text, _func) in COMMANDS.items():
        cmd = sub.add_parser(name, help=help_text)
        if name in {"makereleases", "update", "schedule"}:
            cmd.add_argument(
                "--threshold",
                type=int,
                default=None,
                help="Completion percentage required (defaults to COMPLETION_THRESHOLD).",
            )
        if name == "schedule":
            cmd.add_argument(
                "--interval",
                type=int,
                default=settings.schedule_interval_seconds,
                help="Seconds between runs.",
            )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run one command and return its exit status."""
    load_dotenv()
    settings.reload()
    args = build_parser().parse_args(argv)
    debug_sql = args.debugdb or settings.db_echo
    setup_logging("DEBUG" if args.debug or debug_sql else None, debug_sql=debug_sql)

    store = Store(
        args.database_url,
        query_logger=DebugQueryLogger() if debug_sql else None,
    )
    _help, func = COMMANDS[args.command]
    try:
        func(store, args)
    except (PersistenceError, WriterBusyError) as exc:
        logger.error(
            "command_failed",
            extra={"event": "command_failed", "command": args.command, "error": str(exc)},
        )
        return 1
    finally:
        store.dispose()
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry
    raise SystemExit(main())
