"""
backend/matchsync/services/slip_reconciler.py

Purpose:
    Removes pending bets on a match that can no longer be bet on (cancelled,
    postponed, or kicked off) from every unconfirmed slip in the slip cache.

Dependencies:
    - matchsync.services.slip_cache
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from matchsync.services.slip_cache import SlipCache

logger = logging.getLogger("matchsync.slip_reconciler")


@dataclass
class ReconcileResult:
    bets_removed: int = 0
    slips_deleted: int = 0


class SlipReconciler:
    """Full scan: usernames -> unconfirmed slips -> bets, in list order.

    The cache only holds unconfirmed slips, so the working set stays small and
    no match -> slip index is maintained. Running twice for the same team pair
    is a no-op the second time.
    """

    def __init__(self, slip_cache: SlipCache):
        self._cache = slip_cache

    async def reconcile(self, team_home: str, team_away: str) -> ReconcileResult:
        result = ReconcileResult()

        for username in sorted(await self._cache.list_usernames()):
            for slip in await self._cache.list_slips(username):
                # Iterate over a copy; slip.bets tracks what is left in the cache.
                for bet in list(slip.bets):
                    if not bet.same_match(team_home, team_away):
                        continue
                    if len(slip.bets) > 1:
                        remaining = await self._cache.remove_bet(username, slip.slip_id, bet)
                        slip.bets.remove(bet)
                        if remaining is None:
                            continue
                        if remaining == 0:
                            # The cached slip was down to this bet.
                            result.slips_deleted += 1
                            slip.bets.clear()
                            break
                        result.bets_removed += 1
                    else:
                        if await self._cache.delete_slip(username, slip.slip_id):
                            result.slips_deleted += 1
                        slip.bets.clear()
                        break

        if result.bets_removed or result.slips_deleted:
            logger.info(
                "Reconciled %s vs %s: %d bets removed, %d slips deleted",
                team_home, team_away, result.bets_removed, result.slips_deleted,
            )
        return result
