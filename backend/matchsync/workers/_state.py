"""Persistent worker state: tracks synced_at and the last batch summary per worker.

Uses a lightweight `worker_state` collection in the match database.
"""

from datetime import datetime, timedelta

from matchsync.utils import ensure_utc, utcnow


async def get_synced_at(db, worker_id: str) -> datetime | None:
    """Get the last synced_at timestamp for a worker."""
    doc = await db.worker_state.find_one({"_id": worker_id})
    return ensure_utc(doc["synced_at"]) if doc else None


async def set_synced(db, worker_id: str, summary: dict | None = None) -> None:
    """Mark a worker as just synced."""
    fields: dict = {"synced_at": utcnow()}
    if summary is not None:
        fields["last_result"] = summary
    await db.worker_state.update_one(
        {"_id": worker_id},
        {"$set": fields},
        upsert=True,
    )


async def recently_synced(db, worker_id: str, max_age: timedelta) -> bool:
    """Check if a worker synced within the given time window."""
    last = await get_synced_at(db, worker_id)
    if not last:
        return False
    return (utcnow() - last) < max_age
