"""
backend/matchsync/database.py

Purpose:
    MongoDB connection scoping and index management for the canonical match
    store and the slip cache. Connections are acquired per sync batch and
    always released.

Dependencies:
    - motor.motor_asyncio
    - pymongo
    - matchsync.config
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, OperationFailure

from matchsync.config import Settings
from matchsync.services.match_store import MatchStore
from matchsync.services.settlement_service import SettlementService
from matchsync.services.slip_cache import SlipCache

logger = logging.getLogger("matchsync.database")


@dataclass
class Stores:
    match_db: AsyncIOMotorDatabase
    cache_db: AsyncIOMotorDatabase
    matches: MatchStore
    slip_cache: SlipCache
    settlement: SettlementService


def _client(uri: str) -> AsyncIOMotorClient:
    return AsyncIOMotorClient(uri, maxPoolSize=10, serverSelectionTimeoutMS=10000)


@asynccontextmanager
async def open_stores(settings: Settings) -> AsyncIterator[Stores]:
    """Acquire the match store and slip cache connections for one batch."""
    match_client = _client(settings.MONGO_URI)
    cache_client = None
    try:
        cache_client = _client(settings.slip_cache_uri)
        match_db = match_client[settings.MONGO_DB]
        cache_db = cache_client[settings.SLIP_CACHE_DB]
        matches = MatchStore(
            match_db.matches,
            id_window=timedelta(days=settings.NEXT_ID_WINDOW_DAYS),
        )
        yield Stores(
            match_db=match_db,
            cache_db=cache_db,
            matches=matches,
            slip_cache=SlipCache(cache_db.pending_slips),
            settlement=SettlementService(match_db.slips, match_db.customers, matches),
        )
    finally:
        if cache_client is not None:
            cache_client.close()
        match_client.close()


async def ensure_indexes(stores: Stores) -> None:
    """Create indexes on startup. Idempotent, safe to run repeatedly."""

    # ---- Matches ----

    await stores.match_db.matches.create_index("match_id", unique=True)
    natural_key = [("match_date", 1), ("team_home", 1), ("team_away", 1)]
    try:
        await stores.match_db.matches.create_index(natural_key, unique=True)
    except (DuplicateKeyError, OperationFailure) as exc:
        logger.warning(
            "Skipped unique natural-key index on matches due to duplicate data: %s", exc,
        )
        await stores.match_db.matches.create_index(
            natural_key, name="natural_key_lookup", unique=False,
        )
    # Postponement candidates
    await stores.match_db.matches.create_index(
        [("competition_id", 1), ("team_home", 1), ("team_away", 1), ("status", 1)]
    )
    # Windowed max(match_id)
    await stores.match_db.matches.create_index([("match_date", -1), ("match_id", -1)])

    # ---- Confirmed slips ----

    await stores.match_db.slips.create_index([("username", 1), ("slip_id", 1)], unique=True)
    await stores.match_db.slips.create_index([("bets.match_id", 1), ("win", 1)])
    await stores.match_db.customers.create_index("username", unique=True)

    # ---- Slip cache ----

    await stores.cache_db.pending_slips.create_index(
        [("username", 1), ("slip_id", 1)], unique=True,
    )
    await stores.cache_db.pending_slips.create_index(
        [("confirmed_at", 1), ("updated_at", 1)]
    )
