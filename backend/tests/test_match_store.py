"""
backend/tests/test_match_store.py

Purpose:
    Unit tests for MatchStore id assignment, natural-key dedup, validation at
    the write boundary, field patches and the settlement marker.
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from _fakes import FakeCollection
from matchsync.errors import DuplicateMatchError
from matchsync.models.match import MatchUpdate
from matchsync.services.match_store import MatchStore
from matchsync.utils import utcnow


def _update(home="Inter", away="Milan", date=None, **kwargs) -> MatchUpdate:
    return MatchUpdate(
        status=kwargs.pop("status", "TIMED"),
        competition_id=kwargs.pop("competition_id", 2019),
        team_home=home,
        team_away=away,
        match_date=date or utcnow() + timedelta(days=2),
        **kwargs,
    )


def _store(docs=None) -> tuple[MatchStore, FakeCollection]:
    coll = FakeCollection(docs, unique=[("match_id",), ("match_date", "team_home", "team_away")])
    return MatchStore(coll, rng=random.Random(7)), coll


@pytest.mark.asyncio
async def test_next_id_starts_at_zero_on_empty_store():
    store, _ = _store()
    assert await store.last_id() is None
    assert await store.next_id() == 0


@pytest.mark.asyncio
async def test_next_id_falls_back_to_unscoped_scan_when_window_is_empty():
    old = datetime(2020, 5, 1, 18, 0, tzinfo=timezone.utc)
    store, _ = _store([
        {"match_id": 41, "match_date": old, "team_home": "A", "team_away": "B"},
        {"match_id": 7, "match_date": old - timedelta(days=3), "team_home": "C", "team_away": "D"},
    ])
    assert await store.next_id() == 42


@pytest.mark.asyncio
async def test_next_id_prefers_recent_window():
    recent = utcnow() - timedelta(days=3)
    store, _ = _store([
        {"match_id": 12, "match_date": recent, "team_home": "A", "team_away": "B"},
        {"match_id": 3, "match_date": recent - timedelta(days=400), "team_home": "C", "team_away": "D"},
    ])
    assert await store.next_id() == 13


@pytest.mark.asyncio
async def test_sequential_inserts_get_consecutive_ids():
    store, coll = _store([
        {"match_id": 5, "match_date": utcnow(), "team_home": "X", "team_away": "Y"},
    ])
    base = utcnow() + timedelta(days=1)
    ids = [
        await store.insert(_update("T%d" % i, "U%d" % i, base + timedelta(hours=i)))
        for i in range(4)
    ]
    assert ids == [6, 7, 8, 9]
    assert len({d["match_id"] for d in coll.docs}) == 5


@pytest.mark.asyncio
async def test_insert_rejects_duplicate_natural_key():
    store, coll = _store()
    date = utcnow() + timedelta(days=1)
    assert await store.insert(_update(date=date)) == 0
    with pytest.raises(DuplicateMatchError):
        await store.insert(_update(date=date, competition_id=99))
    assert len(coll.docs) == 1


@pytest.mark.asyncio
async def test_insert_recovers_when_highest_id_is_outside_the_window():
    # id 5 was postponed into the window, id 6 has aged out of it
    store, coll = _store([
        {"match_id": 5, "match_date": utcnow() + timedelta(days=20), "team_home": "A", "team_away": "B"},
        {"match_id": 6, "match_date": utcnow() - timedelta(days=70), "team_home": "C", "team_away": "D"},
    ])

    match_id = await store.insert(_update("Roma", "Lazio"))

    assert match_id == 7
    assert sorted(d["match_id"] for d in coll.docs) == [5, 6, 7]
    assert await store.next_id() == 8


@pytest.mark.asyncio
async def test_insert_populates_multipliers_and_cleans_goals():
    store, coll = _store()
    match_id = await store.insert(_update(home_goals=None, away_goals=None))
    doc = coll.docs[0]
    assert doc["match_id"] == match_id
    assert doc["status"] == "TIMED"
    assert doc["home_goals"] == 0 and doc["away_goals"] == 0
    names = [m["name"] for m in doc["multipliers"]]
    assert "1X" in names and "O2.5" in names
    assert all(m["value"] > 1.0 for m in doc["multipliers"])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"home": "  "},
        {"away": ""},
        {"home_goals": -1},
        {"away_goals": -3},
    ],
)
async def test_insert_rejects_invalid_match_without_partial_write(kwargs):
    store, coll = _store()
    assert await store.insert(_update(**kwargs)) is None
    assert coll.docs == []


@pytest.mark.asyncio
async def test_insert_reports_duplicate_when_concurrent_writer_wins():
    store, coll = _store()
    date = utcnow() + timedelta(days=1)
    await store.insert(_update(date=date))

    real_lookup = store.find_id_by_natural_key
    calls = []

    async def _stale_first(*args):
        calls.append(args)
        if len(calls) == 1:
            return None  # the other writer has not committed yet
        return await real_lookup(*args)

    store.find_id_by_natural_key = _stale_first
    with pytest.raises(DuplicateMatchError):
        await store.insert(_update(date=date))
    assert len(coll.docs) == 1


@pytest.mark.asyncio
async def test_update_date_patches_without_touching_multipliers():
    store, coll = _store()
    match_id = await store.insert(_update())
    before = list(coll.docs[0]["multipliers"])
    new_date = utcnow() + timedelta(days=10)

    await store.update_date(match_id, new_date)

    doc = coll.docs[0]
    assert doc["match_date"] == new_date
    assert doc["status"] == "TIMED"
    assert doc["multipliers"] == before


@pytest.mark.asyncio
async def test_find_id_by_natural_key_and_delete():
    store, _ = _store()
    update = _update()
    match_id = await store.insert(update)
    assert await store.find_id_by_natural_key(*update.natural_key) == match_id
    assert await store.delete_by_natural_key(*update.natural_key) is True
    assert await store.find_id_by_natural_key(*update.natural_key) is None
    assert await store.delete_by_natural_key(*update.natural_key) is False


@pytest.mark.asyncio
async def test_claim_settlement_only_once_and_only_when_finished():
    store, _ = _store()
    match_id = await store.insert(_update())
    assert await store.claim_settlement(match_id) is False

    await store.update_status_and_score(match_id, "FINISHED", 2, 1)
    assert await store.claim_settlement(match_id) is True
    assert await store.claim_settlement(match_id) is False

    await store.release_settlement(match_id)
    assert await store.claim_settlement(match_id) is True
