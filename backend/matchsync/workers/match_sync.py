"""Match sync worker.

One scheduler tick = one batch: pull the update feed, then run every update
through the sync engine with freshly acquired store connections. Never
raises; a failed batch is retried on the next tick.
"""

import logging
from datetime import timedelta

from matchsync.config import Settings
from matchsync.database import open_stores
from matchsync.errors import FeedError
from matchsync.providers.football_data import FootballDataFeed
from matchsync.services.slip_reconciler import SlipReconciler
from matchsync.services.sync_engine import MatchSyncEngine, SyncResult
from matchsync.workers._state import set_synced

logger = logging.getLogger("matchsync.match_sync")

WORKER_ID = "match_sync"


async def run_sync_cycle(
    settings: Settings,
    feed: FootballDataFeed,
    stores_factory=open_stores,
) -> SyncResult | None:
    try:
        updates = await feed.fetch_updates()
    except FeedError as e:
        logger.warning("Feed unavailable, batch aborted: %s", e)
        return None

    if not updates:
        logger.debug("Feed returned no updates")
        return None

    try:
        async with stores_factory(settings) as stores:
            engine = MatchSyncEngine(
                stores.matches,
                SlipReconciler(stores.slip_cache),
                stores.settlement,
            )
            result = await engine.process_batch(updates)
            await stores.slip_cache.purge_stale(timedelta(hours=settings.SLIP_CACHE_TTL_HOURS))
            await set_synced(stores.match_db, WORKER_ID, dict(result))
    except Exception as e:
        logger.error("Sync batch failed: %s", e)
        return None

    return result
