from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

# Bet/slip outcome is tri-state: None = unresolved, 0 = lost, 1 = won.
LOST = 0
WON = 1


class BetInDB(BaseModel):
    """One bet inside a slip.

    Carries a denormalized snapshot of the match so slips can be rendered and
    reconciled without a join against the match store.
    """
    match_id: int
    match_date: datetime
    competition_id: Optional[int] = None
    team_home: str
    team_away: str
    chosen_multiplier_name: str
    chosen_multiplier_value: float
    win: Optional[int] = None

    def same_match(self, team_home: str, team_away: str) -> bool:
        return self.team_home == team_home and self.team_away == team_away


class SlipInDB(BaseModel):
    """Betting slip document, pending (slip cache) or confirmed (slips collection)."""
    slip_id: int
    username: str
    bets: List[BetInDB] = []
    stake: float = 0.0
    payout: float = 0.0          # stake * product of chosen multiplier values
    win: Optional[int] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def compute_payout(stake: float, bets: List[dict]) -> float:
    """Return stake times the product of the chosen multiplier values."""
    total = 1.0
    for bet in bets:
        total *= float(bet.get("chosen_multiplier_value", 1.0))
    return round(stake * total, 2)
