from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, field_validator

from matchsync.utils import parse_utc


class MatchStatus(str, Enum):
    timed = "TIMED"
    in_play = "IN_PLAY"
    paused = "PAUSED"
    finished = "FINISHED"
    postponed = "POSTPONED"      # Transient: the match is moved back to TIMED with a new date
    canceled = "CANCELED"


# Provider spellings folded onto the lifecycle statuses above.
_STATUS_ALIASES = {
    "SCHEDULED": "TIMED",
    "LIVE": "IN_PLAY",
    "CANCELLED": "CANCELED",
}


class Multiplier(BaseModel):
    """Named payout multiplier, e.g. {"name": "1X", "value": 1.69}."""
    name: str
    value: float


class MatchInDB(BaseModel):
    """Canonical match document as stored in MongoDB.

    Identified by the dense integer ``match_id`` and, when the id is unknown,
    by the natural key (match_date, team_home, team_away).
    """
    match_id: int
    competition_id: int
    team_home: str
    team_away: str
    match_date: datetime
    status: MatchStatus = MatchStatus.timed
    home_goals: int = 0
    away_goals: int = 0
    multipliers: List[Multiplier] = []   # Generated once at insert, never recomputed
    settled_at: Optional[datetime] = None  # Settlement idempotency marker
    created_at: datetime
    updated_at: datetime


class MatchUpdate(BaseModel):
    """One record of the update feed."""
    status: str
    competition_id: int
    team_home: str
    team_away: str
    match_date: datetime
    home_goals: Optional[int] = 0
    away_goals: Optional[int] = 0

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value) -> str:
        raw = str(value or "").strip().upper()
        return _STATUS_ALIASES.get(raw, raw)

    @field_validator("match_date", mode="before")
    @classmethod
    def _utc_date(cls, value):
        if not isinstance(value, (str, datetime)):
            raise ValueError("match_date must be an ISO 8601 string or datetime")
        return parse_utc(value)

    @property
    def natural_key(self) -> tuple[datetime, str, str]:
        return self.match_date, self.team_home, self.team_away

    def describe(self) -> str:
        return f"{self.team_home} vs {self.team_away} ({self.match_date.isoformat()})"
