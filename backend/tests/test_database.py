"""
backend/tests/test_database.py

Purpose:
    Connection scoping (release on every exit path) and index bootstrap.
"""

from __future__ import annotations

import pytest

from _fakes import FakeDB
from matchsync import database
from matchsync.config import Settings


class _FakeClient:
    instances: list["_FakeClient"] = []

    def __init__(self, uri):
        self.uri = uri
        self.closed = False
        self._dbs: dict[str, FakeDB] = {}
        _FakeClient.instances.append(self)

    def __getitem__(self, name):
        return self._dbs.setdefault(name, FakeDB())

    def close(self):
        self.closed = True


@pytest.fixture(autouse=True)
def _fake_clients(monkeypatch):
    _FakeClient.instances = []
    monkeypatch.setattr(database, "_client", _FakeClient)


@pytest.mark.asyncio
async def test_open_stores_uses_separate_cache_uri_and_closes_both():
    cfg = Settings(MONGO_URI="mongodb://matches", SLIP_CACHE_URI="mongodb://cache")
    async with database.open_stores(cfg) as stores:
        assert stores.matches is not None
        assert stores.slip_cache is not None

    uris = [c.uri for c in _FakeClient.instances]
    assert uris == ["mongodb://matches", "mongodb://cache"]
    assert all(c.closed for c in _FakeClient.instances)


@pytest.mark.asyncio
async def test_open_stores_releases_connections_when_batch_raises():
    cfg = Settings(MONGO_URI="mongodb://matches")
    with pytest.raises(RuntimeError):
        async with database.open_stores(cfg):
            raise RuntimeError("boom")

    assert [c.uri for c in _FakeClient.instances] == ["mongodb://matches", "mongodb://matches"]
    assert all(c.closed for c in _FakeClient.instances)


@pytest.mark.asyncio
async def test_ensure_indexes_declares_unique_natural_key():
    cfg = Settings(MONGO_URI="mongodb://matches")
    async with database.open_stores(cfg) as stores:
        await database.ensure_indexes(stores)
        match_indexes = stores.match_db.matches.indexes
        cache_indexes = stores.cache_db.pending_slips.indexes

    assert (("match_id",), {"unique": True}) in match_indexes
    assert (("match_date", "team_home", "team_away"), {"unique": True}) in match_indexes
    assert (("username", "slip_id"), {"unique": True}) in cache_indexes
