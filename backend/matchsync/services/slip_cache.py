"""
backend/matchsync/services/slip_cache.py

Purpose:
    Access to the ephemeral slip cache: unconfirmed betting slips keyed by
    (username, slip_id). A slip never exists with zero bets; removing the
    last bet deletes the slip.

Dependencies:
    - motor (AsyncIOMotorCollection)
    - pydantic
    - matchsync.models.slip
"""

from __future__ import annotations

import logging
from datetime import timedelta

from pydantic import ValidationError
from pymongo import ASCENDING

from matchsync.models.slip import BetInDB, SlipInDB, compute_payout
from matchsync.utils import utcnow

logger = logging.getLogger("matchsync.slip_cache")


def _slip_key(username: str, slip_id: int) -> dict:
    return {"username": username, "slip_id": slip_id}


class SlipCache:
    def __init__(self, collection):
        self._coll = collection

    async def list_usernames(self) -> set[str]:
        names = await self._coll.distinct("username")
        return {n for n in names if n}

    async def list_slips(self, username: str) -> list[SlipInDB]:
        """Unconfirmed slips of a user, ordered by slip_id. Malformed documents are skipped."""
        docs = await (
            self._coll.find({"username": username, "confirmed_at": None}, {"_id": 0})
            .sort("slip_id", ASCENDING)
            .to_list(length=None)
        )
        slips: list[SlipInDB] = []
        for doc in docs:
            try:
                slips.append(SlipInDB.model_validate(doc))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed cached slip %s of %s: %s",
                    doc.get("slip_id"), username, exc.error_count(),
                )
        return slips

    async def remove_bet(self, username: str, slip_id: int, bet: BetInDB) -> int | None:
        """Remove the first bet equal to ``bet`` from a slip.

        Returns how many bets the cached slip still holds; 0 means the slip
        was deleted because that bet was its last one. None when the slip or
        the bet no longer exists.
        """
        doc = await self._coll.find_one(_slip_key(username, slip_id), {"_id": 0})
        if not doc:
            return None

        bets = list(doc.get("bets") or [])
        target = bet.model_dump()
        index = next(
            (i for i, raw in enumerate(bets) if _same_bet(raw, target)),
            None,
        )
        if index is None:
            return None

        del bets[index]
        if not bets:
            await self.delete_slip(username, slip_id)
            return 0

        await self._coll.update_one(
            _slip_key(username, slip_id),
            {"$set": {
                "bets": bets,
                "payout": compute_payout(float(doc.get("stake", 0.0)), bets),
                "updated_at": utcnow(),
            }},
        )
        return len(bets)

    async def delete_slip(self, username: str, slip_id: int) -> bool:
        result = await self._coll.delete_one(_slip_key(username, slip_id))
        return bool(result.deleted_count)

    async def purge_stale(self, max_age: timedelta) -> int:
        """Drop unconfirmed slips not touched within ``max_age``."""
        cutoff = utcnow() - max_age
        result = await self._coll.delete_many({
            "confirmed_at": None,
            "updated_at": {"$lte": cutoff},
        })
        if result.deleted_count:
            logger.info("Purged %d stale cached slips", result.deleted_count)
        return result.deleted_count


def _same_bet(raw: dict, target: dict) -> bool:
    return (
        raw.get("match_id") == target["match_id"]
        and raw.get("team_home") == target["team_home"]
        and raw.get("team_away") == target["team_away"]
        and raw.get("chosen_multiplier_name") == target["chosen_multiplier_name"]
    )
