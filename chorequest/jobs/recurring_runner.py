"""
Recurring Quest Runner
======================

Process entry point that drives the recurring quest engine.

USAGE:
  python -m chorequest.jobs.recurring_runner                  # one tick
  python -m chorequest.jobs.recurring_runner --loop           # tick every N seconds
  python -m chorequest.jobs.recurring_runner --only expire    # expiration only
  python -m chorequest.jobs.recurring_runner --repair-pointers

A tick runs generation, then expiration, then resumes any expiration side
effects a previous tick left unfinished. Results are logged; the exit code is
non-zero when the last tick reported a failure.

Lifecycle
---------
1. Validate configuration
2. Initialize DatabaseService and ConfigManager
3. Run ticks until done (or until SIGTERM/SIGINT in loop mode)
4. Shut down gracefully
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import List, Optional, Tuple

from chorequest.core.config.config import Config
from chorequest.core.config.manager import ConfigManager
from chorequest.core.database.service import DatabaseService
from chorequest.core.event import event_bus
from chorequest.core.exceptions import DatabaseError
from chorequest.core.logging.logger import LogContext, get_logger, shutdown_logging
from chorequest.modules.recurring import (
    QuestExpirationService,
    RecurringQuestGenerationService,
)

logger = get_logger(__name__)

JOB_GENERATE = "generate"
JOB_EXPIRE = "expire"


# ============================================================================
# Arguments
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chorequest.jobs.recurring_runner",
        description="Generate and expire recurring quests.",
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep running, one tick every --interval seconds",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Seconds between ticks in loop mode (default: RECURRING_RUN_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--only",
        choices=[JOB_GENERATE, JOB_EXPIRE],
        default=None,
        help="Run a single job instead of both",
    )
    parser.add_argument(
        "--repair-pointers",
        action="store_true",
        help="Also clear dangling active family quest pointers each tick",
    )
    parser.add_argument(
        "--create-schema",
        action="store_true",
        help="Create missing tables before the first tick",
    )
    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.interval is not None and args.interval <= 0:
        parser.error("--interval must be a positive number of seconds")
    return args


# ============================================================================
# Ticks
# ============================================================================


def build_services() -> Tuple[RecurringQuestGenerationService, QuestExpirationService]:
    generation = RecurringQuestGenerationService(
        config_manager=ConfigManager,
        event_bus=event_bus,
        logger=get_logger("chorequest.modules.recurring.generation_service"),
    )
    expiration = QuestExpirationService(
        config_manager=ConfigManager,
        event_bus=event_bus,
        logger=get_logger("chorequest.modules.recurring.expiration_service"),
    )
    return generation, expiration


async def run_tick(
    generation: RecurringQuestGenerationService,
    expiration: QuestExpirationService,
    only: Optional[str] = None,
    repair_pointers: bool = False,
) -> bool:
    """Run one pass of the selected jobs. Returns True when every job succeeded."""
    success = True

    if only in (None, JOB_GENERATE):
        async with LogContext(job=JOB_GENERATE, component="recurring_runner"):
            generated = await generation.generate()
            success = success and generated.success

    if only in (None, JOB_EXPIRE):
        async with LogContext(job=JOB_EXPIRE, component="recurring_runner"):
            expired = await expiration.expire()
            resumed = await expiration.resume_pending_cascades()
            success = success and expired.success and resumed.success

    if repair_pointers:
        async with LogContext(job="repair_pointers", component="recurring_runner"):
            repaired = await expiration.repair_dangling_family_pointers()
            success = success and repaired.success

    return success


# ============================================================================
# Bootstrap / Shutdown
# ============================================================================


async def _startup(create_schema: bool) -> None:
    logger.info("========== RECURRING QUEST RUNNER START ==========")

    Config.validate()
    logger.info("✓ Configuration validated", extra=Config.get_config_summary())

    try:
        await DatabaseService.initialize()
        if create_schema:
            await DatabaseService.create_schema()
    except Exception as exc:
        raise DatabaseError("runner startup", exc) from exc

    if not await DatabaseService.health_check():
        raise DatabaseError("runner startup", RuntimeError("database health check failed"))
    logger.info("✓ Database service initialized")

    ConfigManager.initialize()
    logger.info("✓ Config manager initialized")


async def _shutdown() -> None:
    try:
        await DatabaseService.shutdown()
        logger.info("✓ Database service shut down")
    except Exception as exc:
        logger.error(f"Database service shutdown error: {exc}", exc_info=True)

    logger.info("========== RECURRING QUEST RUNNER STOPPED ==========")


def _install_signal_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            logger.debug("Signal handlers not supported on this platform")
            return


async def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    interval = args.interval or Config.RECURRING_RUN_INTERVAL_SECONDS

    try:
        await _startup(args.create_schema)
        generation, expiration = build_services()
    except Exception as exc:
        logger.critical(f"Runner startup failed: {exc}", exc_info=True)
        await _shutdown()
        return 1

    stop = asyncio.Event()
    if args.loop:
        _install_signal_handlers(stop)

    success = False
    try:
        while True:
            success = await run_tick(
                generation, expiration, only=args.only, repair_pointers=args.repair_pointers
            )
            if not args.loop:
                break

            logger.info("Next tick scheduled", extra={"interval_seconds": interval})
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
            logger.info("Stop signal received")
            break
    finally:
        await _shutdown()

    return 0 if success else 1


def cli() -> None:
    """Console script entry point."""
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Runner manually stopped via keyboard interrupt.")
        exit_code = 130
    finally:
        shutdown_logging()
    sys.exit(exit_code)


if __name__ == "__main__":
    cli()
