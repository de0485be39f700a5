from __future__ import annotations

from datetime import datetime
from typing import Optional

from matchsync.utils import ensure_utc


def nearest_match(reference: datetime, candidates: list[dict]) -> Optional[dict]:
    """Pick the candidate whose match_date is closest to ``reference``.

    Ties keep the first candidate in input order. An empty list yields None:
    the postponement waits for a later poll.
    """
    best: Optional[dict] = None
    best_delta: Optional[float] = None
    ref = ensure_utc(reference)
    for candidate in candidates:
        delta = abs((ensure_utc(candidate["match_date"]) - ref).total_seconds())
        if best_delta is None or delta < best_delta:
            best, best_delta = candidate, delta
    return best
