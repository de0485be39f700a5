"""
backend/matchsync/services/settlement_service.py

Purpose:
    Settlement side of the match lifecycle on confirmed slips: resolve bets of
    a finished match, drop bets of a cancelled match (refunding slips left
    empty), and follow a postponed match's new date.

Dependencies:
    - motor (AsyncIOMotorCollection)
    - matchsync.services.match_store
    - matchsync.services.multiplier_service
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from matchsync.models.match import MatchStatus
from matchsync.models.slip import LOST, WON, compute_payout
from matchsync.services.match_store import MatchStore
from matchsync.services.multiplier_service import check_multiplier_win
from matchsync.utils import ensure_utc, utcnow

logger = logging.getLogger("matchsync.settlement")


def evaluate_slip(bets: list[dict]) -> Optional[int]:
    """Slip outcome from its bets: lost on any lost bet, won when all won."""
    outcomes = [b.get("win") for b in bets]
    if any(o == LOST for o in outcomes):
        return LOST
    if outcomes and all(o == WON for o in outcomes):
        return WON
    return None


class SettlementService:
    def __init__(self, slips, customers, match_store: MatchStore):
        self._slips = slips
        self._customers = customers
        self._matches = match_store

    async def _open_slips_with_match(self, match_id: int) -> list[dict]:
        return await self._slips.find(
            {"bets.match_id": match_id, "win": None},
        ).to_list(length=None)

    async def settle_bets_for_match(self, match_id: int) -> int:
        """Resolve every unresolved bet on a finished match. Returns slips touched."""
        match = await self._matches.get_match(match_id)
        if not match or match.get("status") != MatchStatus.finished.value:
            logger.warning("Settlement skipped: match %s is not FINISHED", match_id)
            return 0

        home_goals = int(match.get("home_goals") or 0)
        away_goals = int(match.get("away_goals") or 0)
        now = utcnow()
        touched = 0
        won = 0

        for slip in await self._open_slips_with_match(match_id):
            changed = False
            for bet in slip.get("bets", []):
                if bet.get("match_id") != match_id or bet.get("win") is not None:
                    continue
                try:
                    bet["win"] = check_multiplier_win(
                        bet.get("chosen_multiplier_name", ""), home_goals, away_goals,
                    )
                except ValueError as exc:
                    logger.warning(
                        "Slip %s of %s: %s", slip.get("slip_id"), slip.get("username"), exc,
                    )
                    continue
                changed = True

            if not changed:
                continue

            slip["win"] = evaluate_slip(slip["bets"])
            await self._persist(slip, now)
            touched += 1
            if slip["win"] == WON:
                await self._credit(slip["username"], float(slip.get("payout", 0.0)))
                won += 1

        logger.info(
            "Settled match %d (%d-%d): %d slips updated, %d won",
            match_id, home_goals, away_goals, touched, won,
        )
        return touched

    async def remove_all_bets_for_match(self, match_id: int) -> int:
        """Drop a cancelled match from unresolved confirmed slips. Returns slips touched."""
        now = utcnow()
        touched = 0
        for slip in await self._open_slips_with_match(match_id):
            remaining = [b for b in slip.get("bets", []) if b.get("match_id") != match_id]
            stake = float(slip.get("stake", 0.0))
            touched += 1

            if not remaining:
                await self._slips.delete_one(
                    {"username": slip["username"], "slip_id": slip["slip_id"]}
                )
                await self._credit(slip["username"], stake)
                logger.info(
                    "Deleted slip %s of %s (only bet on cancelled match %d), refunded %.2f",
                    slip["slip_id"], slip["username"], match_id, stake,
                )
                continue

            slip["bets"] = remaining
            slip["payout"] = compute_payout(stake, remaining)
            slip["win"] = evaluate_slip(remaining)
            await self._persist(slip, now)
            if slip["win"] == WON:
                await self._credit(slip["username"], slip["payout"])

        return touched

    async def reschedule_bets_for_match(self, match_id: int, new_date: datetime) -> int:
        """Rewrite the denormalized match_date of bets on a postponed match."""
        new_date = ensure_utc(new_date)
        now = utcnow()
        touched = 0
        for slip in await self._open_slips_with_match(match_id):
            for bet in slip.get("bets", []):
                if bet.get("match_id") == match_id:
                    bet["match_date"] = new_date
            await self._persist(slip, now)
            touched += 1
        return touched

    async def _persist(self, slip: dict, now: datetime) -> None:
        await self._slips.update_one(
            {"username": slip["username"], "slip_id": slip["slip_id"]},
            {"$set": {
                "bets": slip["bets"],
                "payout": slip.get("payout", 0.0),
                "win": slip.get("win"),
                "updated_at": now,
            }},
        )

    async def _credit(self, username: str, amount: float) -> None:
        if amount <= 0:
            return
        await self._customers.update_one(
            {"username": username},
            {"$inc": {"credit": round(amount, 2)}},
        )
