"""
backend/matchsync/services/sync_engine.py

Purpose:
    Match-lifecycle synchronization engine. Classifies each feed update by
    status and applies its side effects to the canonical match store, the
    slip cache, and the settlement service, one update at a time in feed
    order. A failure on one update is logged and counted; the batch goes on.

Dependencies:
    - matchsync.services.match_store
    - matchsync.services.slip_reconciler
    - matchsync.services.settlement_service
    - matchsync.services.postponement
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypedDict

from matchsync.errors import DuplicateMatchError
from matchsync.models.match import MatchStatus, MatchUpdate
from matchsync.services.match_store import MatchStore
from matchsync.services.postponement import nearest_match
from matchsync.services.settlement_service import SettlementService
from matchsync.services.slip_reconciler import ReconcileResult, SlipReconciler

logger = logging.getLogger("matchsync.sync_engine")


class SyncResult(TypedDict):
    processed: int
    created: int
    duplicates: int
    cancelled: int
    postponed: int
    finished: int
    settled: int
    live_updates: int
    skipped: int
    failed: int
    bets_removed: int
    slips_deleted: int


def empty_result() -> SyncResult:
    return {
        "processed": 0,
        "created": 0,
        "duplicates": 0,
        "cancelled": 0,
        "postponed": 0,
        "finished": 0,
        "settled": 0,
        "live_updates": 0,
        "skipped": 0,
        "failed": 0,
        "bets_removed": 0,
        "slips_deleted": 0,
    }


class MatchSyncEngine:
    def __init__(
        self,
        match_store: MatchStore,
        reconciler: SlipReconciler,
        settlement: SettlementService,
    ):
        self._matches = match_store
        self._reconciler = reconciler
        self._settlement = settlement
        self._handlers: dict[str, Callable[[MatchUpdate, SyncResult], Awaitable[None]]] = {
            MatchStatus.timed.value: self._handle_timed,
            MatchStatus.canceled.value: self._handle_canceled,
            MatchStatus.postponed.value: self._handle_postponed,
            MatchStatus.finished.value: self._handle_finished,
            MatchStatus.in_play.value: self._handle_live,
            MatchStatus.paused.value: self._handle_live,
        }

    async def process_batch(self, updates: list[MatchUpdate]) -> SyncResult:
        result = empty_result()
        for update in updates:
            result["processed"] += 1
            handler = self._handlers.get(update.status)
            if handler is None:
                logger.debug("Ignoring status %s for %s", update.status, update.describe())
                result["skipped"] += 1
                continue
            try:
                await handler(update, result)
            except Exception as e:
                result["failed"] += 1
                logger.error(
                    "Update %s for %s failed: %s", update.status, update.describe(), e,
                )

        logger.info(
            "Sync batch: %d processed | %d created, %d cancelled, %d postponed, "
            "%d finished (%d settled), %d live | %d bets removed, %d slips deleted | "
            "%d skipped, %d failed",
            result["processed"], result["created"], result["cancelled"],
            result["postponed"], result["finished"], result["settled"],
            result["live_updates"], result["bets_removed"], result["slips_deleted"],
            result["skipped"], result["failed"],
        )
        return result

    async def _reconcile(self, update: MatchUpdate, result: SyncResult) -> None:
        outcome: ReconcileResult = await self._reconciler.reconcile(
            update.team_home, update.team_away,
        )
        result["bets_removed"] += outcome.bets_removed
        result["slips_deleted"] += outcome.slips_deleted

    # ---------- Handlers ----------

    async def _handle_timed(self, update: MatchUpdate, result: SyncResult) -> None:
        try:
            match_id = await self._matches.insert(update)
        except DuplicateMatchError:
            result["duplicates"] += 1
            return
        if match_id is None:
            result["skipped"] += 1
        else:
            result["created"] += 1

    async def _handle_canceled(self, update: MatchUpdate, result: SyncResult) -> None:
        await self._reconcile(update, result)

        match_id = await self._matches.find_id_by_natural_key(*update.natural_key)
        if match_id is None:
            return
        await self._settlement.remove_all_bets_for_match(match_id)
        await self._matches.delete_by_natural_key(*update.natural_key)
        result["cancelled"] += 1
        logger.info("Cancelled match %d: %s", match_id, update.describe())

    async def _handle_postponed(self, update: MatchUpdate, result: SyncResult) -> None:
        candidates = await self._matches.find_open_in_competition(
            update.competition_id, update.team_home, update.team_away,
        )
        target = nearest_match(update.match_date, candidates)
        if target is None:
            logger.debug("No open match to postpone for %s, waiting", update.describe())
            result["skipped"] += 1
            return

        match_id = int(target["match_id"])
        await self._matches.update_date(match_id, update.match_date)
        await self._settlement.reschedule_bets_for_match(match_id, update.match_date)
        await self._reconcile(update, result)
        result["postponed"] += 1
        logger.info("Postponed match %d to %s", match_id, update.match_date.isoformat())

    async def _handle_finished(self, update: MatchUpdate, result: SyncResult) -> None:
        match_id = await self._matches.find_id_by_natural_key(*update.natural_key)
        if match_id is None:
            logger.debug("Finished match %s not in store", update.describe())
            result["skipped"] += 1
            return

        await self._matches.update_status_and_score(
            match_id, MatchStatus.finished.value, update.home_goals, update.away_goals,
        )
        result["finished"] += 1

        if not await self._matches.claim_settlement(match_id):
            return
        try:
            await self._settlement.settle_bets_for_match(match_id)
        except Exception:
            # Let the next poll retry the settlement.
            await self._matches.release_settlement(match_id)
            raise
        result["settled"] += 1

    async def _handle_live(self, update: MatchUpdate, result: SyncResult) -> None:
        found = await self._matches.find_by_natural_key(*update.natural_key)
        if not found:
            result["skipped"] += 1
            return

        for match in found:
            if match.get("status") == MatchStatus.timed.value:
                # Kicked off: no longer bettable.
                await self._reconcile(update, result)

        await self._matches.update_status_and_score(
            int(found[0]["match_id"]), update.status, update.home_goals, update.away_goals,
        )
        result["live_updates"] += 1
