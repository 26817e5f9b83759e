"""Job scheduler using APScheduler."""

import asyncio
import logging
from typing import NoReturn

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from cardroom.config import Settings
from cardroom.context import CardroomContext, get_context
from cardroom.table.exceptions import TableError

logger = logging.getLogger(__name__)


async def _play_autoplay_round(ctx: CardroomContext):
    autoplay = ctx.settings.autoplay
    try:
        return await ctx.orchestrator.play_vs_run(autoplay.agent_a, autoplay.agent_b, rounds=1)
    finally:
        # Pending audit posts are cancelled when the loop closes
        await ctx.audit.drain()


def autoplay_job(ctx: CardroomContext | None = None) -> None:
    """Play one VS round between the configured agents (blocking)."""
    ctx = ctx or get_context()
    try:
        result = asyncio.run(_play_autoplay_round(ctx))
    except TableError as e:
        logger.error(f"Auto-play rejected: {e}")
        return
    except Exception as e:
        logger.error(f"Auto-play failed: {e}", exc_info=True)
        return

    if result.stop_reason == "insufficient_bankroll":
        # Bankrolls reseed tomorrow
        logger.info(f"Auto-play skipped: {result.error}")
    elif result.stop_reason == "aborted":
        logger.warning(f"Auto-play round aborted: {result.error}")
    else:
        logger.info(f"✓ Auto-play: {len(result.records)} hands settled")


def settlement_job(ctx: CardroomContext | None = None) -> None:
    """Settle every wager that has become due."""
    ctx = ctx or get_context()
    try:
        summary = ctx.market.settle_due()
        logger.info(
            f"✓ Settlement sweep: {summary.performance_settled} performance, "
            f"{summary.head_to_head_settled} head-to-head"
        )
    except Exception as e:
        logger.error(f"Settlement sweep failed: {e}", exc_info=True)


def register_jobs(scheduler: BlockingScheduler, settings: Settings) -> None:
    """Add the cardroom jobs to a scheduler."""
    if settings.autoplay.enabled:
        scheduler.add_job(
            autoplay_job,
            IntervalTrigger(minutes=settings.autoplay.interval_minutes),
            id="autoplay-vs",
            name="Table: VS Auto-play",
            max_instances=1,
        )
        logger.info(
            f"Registered job: VS Auto-play {settings.autoplay.agent_a} vs "
            f"{settings.autoplay.agent_b} (every {settings.autoplay.interval_minutes} min)"
        )
    else:
        logger.info("Auto-play disabled")

    scheduler.add_job(
        settlement_job,
        IntervalTrigger(minutes=settings.autoplay.settlement_sweep_minutes),
        id="settlement-sweep",
        name="Market: Settlement Sweep",
        max_instances=1,
    )
    logger.info(
        f"Registered job: Settlement Sweep (every {settings.autoplay.settlement_sweep_minutes} min)"
    )


def start_scheduler(settings: Settings) -> NoReturn:
    """Start the APScheduler with configured jobs."""
    scheduler = BlockingScheduler()
    register_jobs(scheduler, settings)

    try:
        logger.info("✓ Scheduler starting...")
        logger.info(f"✓ {len(scheduler.get_jobs())} jobs registered")
        logger.info("Press Ctrl+C to stop\n")

        scheduler.start()

    except (KeyboardInterrupt, SystemExit):
        logger.info("\nReceived interrupt signal")
        scheduler.shutdown()
        logger.info("✓ Scheduler stopped cleanly")
