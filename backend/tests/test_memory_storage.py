from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from quillpost.errors import Conflict
from quillpost.schemas import LikeCreate
from quillpost.storage import MemoryStorage
from tests.factories import make_user


def _attempt(coro_factory):
    try:
        return asyncio.run(coro_factory())
    except Conflict:
        return None


def test_concurrent_user_creation_admits_one_winner():
    storage = MemoryStorage()
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: _attempt(lambda: storage.create_user(make_user("alice"))), range(32)))

    winners = [r for r in results if r is not None]
    assert len(winners) == 1
    assert len(storage.users) == 1


def test_concurrent_likes_admit_one_winner():
    storage = MemoryStorage()
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(
            pool.map(lambda _: _attempt(lambda: storage.create_like(LikeCreate(user_id=1, blog_id=1))), range(32))
        )

    assert sum(r is not None for r in results) == 1
    assert len(storage.likes) == 1


async def test_concurrent_tasks_on_one_loop():
    storage = MemoryStorage()
    results = await asyncio.gather(
        *(storage.create_like(LikeCreate(user_id=1, blog_id=1)) for _ in range(10)),
        return_exceptions=True,
    )
    assert sum(not isinstance(r, Exception) for r in results) == 1
    assert all(isinstance(r, Conflict) for r in results if isinstance(r, Exception))


async def test_failed_create_leaves_store_untouched():
    storage = MemoryStorage()
    await storage.create_user(make_user("alice"))
    before = storage.users.all()
    with pytest.raises(Conflict):
        await storage.create_user(make_user("alice", uid="uid-2", email="a2@example.com"))
    assert storage.users.all() == before
