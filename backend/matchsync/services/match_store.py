"""
backend/matchsync/services/match_store.py

Purpose:
    Canonical match store access: dense integer id assignment, natural-key
    dedup/lookup, validated inserts and targeted field patches on the
    ``matches`` collection.

Dependencies:
    - motor (AsyncIOMotorCollection)
    - pymongo
    - matchsync.services.multiplier_service
    - matchsync.utils
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta
from typing import Any, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from matchsync.errors import DuplicateMatchError
from matchsync.models.match import MatchStatus, MatchUpdate
from matchsync.services.multiplier_service import generate_multipliers
from matchsync.utils import ensure_utc, utcnow

logger = logging.getLogger("matchsync.match_store")

_ID_ONLY = {"match_id": 1, "_id": 0}


def natural_key_query(match_date: datetime, team_home: str, team_away: str) -> dict:
    return {"match_date": match_date, "team_home": team_home, "team_away": team_away}


def is_valid_update(update: MatchUpdate) -> bool:
    """Basic write-boundary checks: teams present, date parsed, goals non-negative."""
    if not update.team_home.strip() or not update.team_away.strip():
        return False
    if not isinstance(update.match_date, datetime):
        return False
    for goals in (update.home_goals, update.away_goals):
        if goals is not None and goals < 0:
            return False
    return True


class MatchStore:
    def __init__(
        self,
        collection,
        *,
        id_window: timedelta = timedelta(days=60),
        rng: Optional[random.Random] = None,
    ):
        self._coll = collection
        self._id_window = id_window
        self._rng = rng

    # ---------- Id assignment ----------

    async def last_id(self) -> int | None:
        """Biggest match_id in the store, or None when the store is empty.

        Tries the recent window first (cheap on the match_date index), then
        falls back to a full scan.
        """
        windowed = await self._max_id({"match_date": {"$gt": utcnow() - self._id_window}})
        if windowed is not None:
            return windowed
        return await self._max_id({})

    async def next_id(self) -> int:
        last = await self.last_id()
        return 0 if last is None else last + 1

    async def _max_id(self, query: dict) -> int | None:
        docs = await (
            self._coll.find(query, _ID_ONLY)
            .sort("match_id", DESCENDING)
            .limit(1)
            .to_list(length=1)
        )
        if not docs:
            return None
        return int(docs[0]["match_id"])

    # ---------- Lookups ----------

    async def find(self, query: dict, projection: dict | None = None) -> list[dict]:
        return await self._coll.find(query, projection or {"_id": 0}).to_list(length=None)

    async def find_by_natural_key(
        self, match_date: datetime, team_home: str, team_away: str
    ) -> list[dict]:
        return await self.find(natural_key_query(match_date, team_home, team_away))

    async def find_id_by_natural_key(
        self, match_date: datetime, team_home: str, team_away: str
    ) -> int | None:
        doc = await self._coll.find_one(
            natural_key_query(match_date, team_home, team_away), _ID_ONLY
        )
        return int(doc["match_id"]) if doc else None

    async def find_open_in_competition(
        self, competition_id: int, team_home: str, team_away: str
    ) -> list[dict]:
        """TIMED matches of a competition for a team pair (postponement candidates)."""
        return await self.find({
            "competition_id": competition_id,
            "team_home": team_home,
            "team_away": team_away,
            "status": MatchStatus.timed.value,
        })

    async def get_match(self, match_id: int) -> dict | None:
        return await self._coll.find_one({"match_id": match_id}, {"_id": 0})

    # ---------- Writes ----------

    async def insert(self, update: MatchUpdate) -> int | None:
        """Insert a new TIMED match.

        Returns the assigned id, or None when the update fails validation.
        Raises DuplicateMatchError when the natural key is already taken.
        """
        if not is_valid_update(update):
            logger.debug("Rejected invalid match %s", update.describe())
            return None

        if await self.find_id_by_natural_key(*update.natural_key) is not None:
            raise DuplicateMatchError(update.describe())

        now = utcnow()
        match_id = await self.next_id()
        doc: dict[str, Any] = {
            "match_id": match_id,
            "competition_id": update.competition_id,
            "team_home": update.team_home,
            "team_away": update.team_away,
            "match_date": update.match_date,
            "status": MatchStatus.timed.value,
            "home_goals": update.home_goals or 0,
            "away_goals": update.away_goals or 0,
            "multipliers": generate_multipliers(self._rng),
            "settled_at": None,
            "created_at": now,
            "updated_at": now,
        }
        try:
            await self._coll.insert_one(doc)
        except DuplicateKeyError as exc:
            if await self.find_id_by_natural_key(*update.natural_key) is not None:
                raise DuplicateMatchError(update.describe()) from exc
            # The windowed max can miss a higher id dated outside the window;
            # retry once with the unscoped max.
            last = await self._max_id({})
            match_id = 0 if last is None else last + 1
            doc.pop("_id", None)
            doc["match_id"] = match_id
            try:
                await self._coll.insert_one(doc)
            except DuplicateKeyError as retry_exc:
                logger.warning(
                    "Insert of %s hit a unique index: %s", update.describe(), retry_exc,
                )
                return None

        logger.info("Created match %d: %s", match_id, update.describe())
        return match_id

    async def update_date(self, match_id: int, new_date: datetime) -> None:
        await self._coll.update_one(
            {"match_id": match_id},
            {"$set": {
                "match_date": ensure_utc(new_date),
                "status": MatchStatus.timed.value,
                "updated_at": utcnow(),
            }},
        )

    async def update_status_and_score(
        self, match_id: int, status: str, home_goals: int | None, away_goals: int | None
    ) -> None:
        await self._coll.update_one(
            {"match_id": match_id},
            {"$set": {
                "status": status,
                "home_goals": home_goals or 0,
                "away_goals": away_goals or 0,
                "updated_at": utcnow(),
            }},
        )

    async def delete_by_natural_key(
        self, match_date: datetime, team_home: str, team_away: str
    ) -> bool:
        deleted = await self._coll.find_one_and_delete(
            natural_key_query(match_date, team_home, team_away)
        )
        return deleted is not None

    # ---------- Settlement marker ----------

    async def claim_settlement(self, match_id: int) -> bool:
        """Atomically mark a FINISHED match as settled. False if already claimed."""
        doc = await self._coll.find_one_and_update(
            {
                "match_id": match_id,
                "status": MatchStatus.finished.value,
                "settled_at": None,
            },
            {"$set": {"settled_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return doc is not None

    async def release_settlement(self, match_id: int) -> None:
        await self._coll.update_one(
            {"match_id": match_id},
            {"$set": {"settled_at": None}},
        )
