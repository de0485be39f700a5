"""
backend/matchsync/providers/football_data.py

Purpose:
    Update feed source over football-data.org v4: fetches the matches of the
    configured competitions around today and normalizes them into
    MatchUpdate records for the sync engine.

Dependencies:
    - httpx (via matchsync.providers.http_client)
    - pydantic
    - matchsync.config
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from matchsync.config import Settings
from matchsync.errors import FeedError
from matchsync.models.match import MatchUpdate
from matchsync.providers.http_client import ResilientClient
from matchsync.utils import utcnow

logger = logging.getLogger("matchsync.football_data")

PROVIDER_NAME = "football_data"


def parse_match(raw: dict[str, Any], fallback_competition_id: Optional[int] = None) -> Optional[MatchUpdate]:
    """Normalize one football-data.org match object. None when mandatory fields are missing."""
    competition = raw.get("competition") or {}
    score = (raw.get("score") or {}).get("fullTime") or {}
    try:
        return MatchUpdate(
            status=raw.get("status"),
            competition_id=competition.get("id", fallback_competition_id),
            team_home=(raw.get("homeTeam") or {}).get("name"),
            team_away=(raw.get("awayTeam") or {}).get("name"),
            match_date=raw.get("utcDate"),
            home_goals=score.get("home") or 0,
            away_goals=score.get("away") or 0,
        )
    except ValidationError as exc:
        logger.warning(
            "Dropping feed match %s: %d invalid fields", raw.get("id"), exc.error_count(),
        )
        return None


class FootballDataFeed:
    """football-data.org feed of match updates for a set of competitions."""

    def __init__(self, settings: Settings, client: Optional[ResilientClient] = None):
        self._settings = settings
        self._client = client or ResilientClient(
            PROVIDER_NAME,
            timeout=settings.FEED_TIMEOUT_SECONDS,
            max_retries=settings.FEED_MAX_RETRIES,
            base_delay=settings.FEED_BASE_DELAY_SECONDS,
        )

    async def fetch_updates(self) -> list[MatchUpdate]:
        """All updates for the configured competitions, in feed order.

        Raises FeedError when any competition cannot be fetched or parsed.
        """
        updates: list[MatchUpdate] = []
        for code in self._settings.feed_competitions:
            updates.extend(await self._fetch_competition(code))
        logger.debug("Feed returned %d updates", len(updates))
        return updates

    async def _fetch_competition(self, code: str) -> list[MatchUpdate]:
        now = utcnow()
        params = {
            "dateFrom": (now - timedelta(days=self._settings.FEED_DAYS_BACK)).strftime("%Y-%m-%d"),
            "dateTo": (now + timedelta(days=self._settings.FEED_DAYS_AHEAD)).strftime("%Y-%m-%d"),
        }
        headers = {}
        if self._settings.FOOTBALL_DATA_ORG_API_KEY:
            headers["X-Auth-Token"] = self._settings.FOOTBALL_DATA_ORG_API_KEY

        url = f"{self._settings.FOOTBALL_DATA_ORG_BASE_URL}/competitions/{code}/matches"
        try:
            resp = await self._client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise FeedError(f"{code}: feed unreachable: {exc}") from exc

        if resp.status_code >= 400:
            raise FeedError(f"{code}: feed returned HTTP {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError as exc:
            raise FeedError(f"{code}: feed body is not JSON") from exc

        matches = payload.get("matches") if isinstance(payload, dict) else None
        if not isinstance(matches, list):
            raise FeedError(f"{code}: feed body has no match list")

        fallback_id = (payload.get("competition") or {}).get("id")
        parsed = [parse_match(raw, fallback_id) for raw in matches if isinstance(raw, dict)]
        return [u for u in parsed if u is not None]

    async def aclose(self) -> None:
        await self._client.aclose()
