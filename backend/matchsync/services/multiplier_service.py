"""
backend/matchsync/services/multiplier_service.py

Purpose:
    Payout multipliers attached to a match at creation time and the win rule
    of each multiplier name against a final score.

Dependencies:
    - random
    - matchsync.models.slip
"""

from __future__ import annotations

import random
from typing import Optional

from matchsync.models.slip import LOST, WON

TOTALS_LINE = 2.5

# Name -> (low, high) band for the randomized value.
MULTIPLIER_BANDS: dict[str, tuple[float, float]] = {
    "1": (1.20, 4.50),
    "X": (2.60, 4.20),
    "2": (1.20, 6.50),
    "1X": (1.05, 2.10),
    "X2": (1.05, 2.60),
    "12": (1.05, 1.60),
    "U2.5": (1.40, 2.80),
    "O2.5": (1.40, 2.80),
    "GG": (1.45, 2.40),
    "NG": (1.45, 2.40),
}


def generate_multipliers(rng: Optional[random.Random] = None) -> list[dict]:
    """Draw one value per multiplier name, rounded to two decimals."""
    rng = rng or random.Random()
    return [
        {"name": name, "value": round(rng.uniform(low, high), 2)}
        for name, (low, high) in MULTIPLIER_BANDS.items()
    ]


def check_multiplier_win(name: str, home_goals: int, away_goals: int) -> int:
    """Return WON or LOST for a multiplier name given the final score.

    Raises ValueError for names without a rule.
    """
    if home_goals > away_goals:
        outcome = "1"
    elif away_goals > home_goals:
        outcome = "2"
    else:
        outcome = "X"
    total = home_goals + away_goals

    if name in ("1", "X", "2"):
        won = name == outcome
    elif name in ("1X", "X2", "12"):
        won = outcome in name
    elif name == "U2.5":
        won = total < TOTALS_LINE
    elif name == "O2.5":
        won = total > TOTALS_LINE
    elif name == "GG":
        won = home_goals > 0 and away_goals > 0
    elif name == "NG":
        won = home_goals == 0 or away_goals == 0
    else:
        raise ValueError(f"Unknown multiplier: {name}")

    return WON if won else LOST
