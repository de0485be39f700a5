"""
backend/matchsync/main.py

Purpose:
    Process entrypoint: logging bootstrap, index creation, and the scheduler
    that fires one sync batch every SYNC_INTERVAL_SECONDS.

Dependencies:
    - apscheduler
    - matchsync.database
    - matchsync.workers.match_sync
"""

import argparse
import asyncio
import logging
import signal
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from matchsync.config import Settings, settings
from matchsync.database import ensure_indexes, open_stores
from matchsync.logging_setup import setup_logging
from matchsync.providers.football_data import FootballDataFeed
from matchsync.workers._state import recently_synced
from matchsync.workers.match_sync import WORKER_ID, run_sync_cycle

logger = logging.getLogger("matchsync")


async def _startup(cfg: Settings) -> bool:
    """Ensure indexes. Returns True when the previous run synced within one interval."""
    async with open_stores(cfg) as stores:
        await ensure_indexes(stores)
        return await recently_synced(
            stores.match_db, WORKER_ID, timedelta(seconds=cfg.SYNC_INTERVAL_SECONDS),
        )


async def run(cfg: Settings, once: bool = False) -> int:
    feed = FootballDataFeed(cfg)
    try:
        fresh = await _startup(cfg)

        if once:
            result = await run_sync_cycle(cfg, feed)
            return 0 if result is not None else 1

        if not fresh:
            await run_sync_cycle(cfg, feed)

        scheduler = AsyncIOScheduler()
        scheduler.add_job(
            run_sync_cycle,
            "interval",
            seconds=cfg.SYNC_INTERVAL_SECONDS,
            args=[cfg, feed],
            id=WORKER_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        logger.info("Match sync scheduled every %ds", cfg.SYNC_INTERVAL_SECONDS)

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass  # Windows: rely on KeyboardInterrupt
        await stop.wait()

        scheduler.shutdown(wait=False)
        logger.info("Match sync stopped")
        return 0
    finally:
        await feed.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Match lifecycle synchronization worker")
    parser.add_argument("--once", action="store_true", help="Run a single sync batch and exit")
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL)
    try:
        return asyncio.run(run(settings, once=args.once))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
