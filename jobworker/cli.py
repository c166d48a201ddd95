#!/usr/bin/env python
"""
CLI for running the worker and the reconciliation loops.

Usage:
    python -m jobworker.cli run-once [--batch-size N]
    python -m jobworker.cli run
    python -m jobworker.cli schedule
    python -m jobworker.cli reconcile-webhooks [--limit N]
    python -m jobworker.cli scan-ops

Examples:
    # Process one batch of 50 jobs and print the run summary
    python -m jobworker.cli run-once --batch-size 50

    # Long-running worker (stops on SIGINT / SIGTERM)
    python -m jobworker.cli run
"""

import argparse
import asyncio
import json
import signal
import sys
from typing import Any, Optional

import structlog

from jobworker.config import get_settings
from jobworker.core.lifespan import create_db_pool
from jobworker.core.logging import configure_logging
from jobworker.core.sentry import init_sentry
from jobworker.jobs.errors import JobEngineError
from jobworker.jobs.handlers.reconciliation import build_reconciler, build_scanner
from jobworker.jobs.scheduler import Scheduler
from jobworker.jobs.worker import WorkerRunner
from jobworker.repositories.audit import AuditRepository
from jobworker.repositories.jobs import JobRepository
from jobworker.repositories.ops_inbox import OpsInboxRepository

import jobworker.jobs.handlers  # noqa: F401  registers built-in handlers

logger = structlog.get_logger(__name__)


def _print(result: dict[str, Any]) -> None:
    print(json.dumps(result, indent=2, default=str))


async def cmd_run_once(args: argparse.Namespace, pool, settings) -> int:
    """Process one batch."""
    runner = WorkerRunner(pool, settings=settings)
    try:
        summary = await runner.run_once(args.batch_size)
    except JobEngineError as e:
        logger.error("Run aborted", error=str(e))
        return 1
    _print(summary.to_dict())
    return 0


async def cmd_run(args: argparse.Namespace, pool, settings) -> int:
    """Poll until interrupted."""
    runner = WorkerRunner(pool, settings=settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.ensure_future(runner.stop()))
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    await runner.start()
    return 0


async def cmd_schedule(args: argparse.Namespace, pool, settings) -> int:
    """Enqueue the periodic maintenance jobs."""
    enqueued = await Scheduler(JobRepository(pool)).tick()
    _print({"enqueued": enqueued})
    return 0


async def cmd_reconcile_webhooks(args: argparse.Namespace, pool, settings) -> int:
    """Run one webhook reconciliation sweep."""
    reconciler = build_reconciler(
        pool, AuditRepository(pool), OpsInboxRepository(pool), settings
    )
    result = await reconciler.sweep(args.limit or settings.webhook_retry_limit)
    _print(result.to_dict())
    return 0


async def cmd_scan_ops(args: argparse.Namespace, pool, settings) -> int:
    """Run the ops inbox scanner once."""
    result = await build_scanner(pool, OpsInboxRepository(pool), settings).scan()
    _print(result.to_dict())
    return 1 if result.errors else 0


COMMANDS = {
    "run-once": cmd_run_once,
    "run": cmd_run,
    "schedule": cmd_schedule,
    "reconcile-webhooks": cmd_reconcile_webhooks,
    "scan-ops": cmd_scan_ops,
}


async def _dispatch(args: argparse.Namespace) -> int:
    settings = get_settings()
    try:
        pool = await create_db_pool(settings)
    except Exception as e:
        logger.error("Database connection failed", error=str(e))
        return 1

    try:
        return await COMMANDS[args.command](args, pool, settings)
    finally:
        await pool.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="jobworker CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_once_parser = subparsers.add_parser("run-once", help="Process one batch of due jobs")
    run_once_parser.add_argument(
        "--batch-size",
        "-b",
        type=int,
        help="Jobs to claim (default: WORKER_BATCH_SIZE)",
    )

    subparsers.add_parser("run", help="Run the polling worker loop")
    subparsers.add_parser("schedule", help="Enqueue periodic maintenance jobs")

    webhook_parser = subparsers.add_parser(
        "reconcile-webhooks", help="Retry failed webhook events that are due"
    )
    webhook_parser.add_argument(
        "--limit",
        "-l",
        type=int,
        help="Maximum events per sweep (default: WEBHOOK_RETRY_LIMIT)",
    )

    subparsers.add_parser("scan-ops", help="Run the ops inbox scanner")
    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, console=True)
    init_sentry(settings)

    sys.exit(asyncio.run(_dispatch(args)))


if __name__ == "__main__":
    main()
