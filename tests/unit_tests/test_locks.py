"""Tests for the keyed asyncio lock."""

import asyncio

import pytest

from app.errors import LockTimeoutError
from app.services.locks import KeyedLock


@pytest.mark.asyncio
async def test_same_key_runs_one_at_a_time():
    locks = KeyedLock()
    events: list[str] = []

    async def worker(name: str) -> None:
        async with locks.hold("2026-03-04/soir"):
            events.append(f"{name}:in")
            await asyncio.sleep(0.01)
            events.append(f"{name}:out")

    await asyncio.gather(worker("a"), worker("b"))

    assert events == ["a:in", "a:out", "b:in", "b:out"]


@pytest.mark.asyncio
async def test_different_keys_do_not_wait():
    locks = KeyedLock(timeout=0.1)

    async with locks.hold(("2026-03-04", "soir")):
        async with locks.hold(("2026-03-04", "midi")):
            assert locks.locked(("2026-03-04", "soir"))
            assert locks.locked(("2026-03-04", "midi"))


@pytest.mark.asyncio
async def test_entries_dropped_when_unused():
    locks = KeyedLock()

    async with locks.hold("k"):
        assert len(locks) == 1

    assert len(locks) == 0
    assert not locks.locked("k")


@pytest.mark.asyncio
async def test_timeout_raises_and_cleans_up():
    locks = KeyedLock(timeout=0.01)

    async with locks.hold("k"):
        with pytest.raises(LockTimeoutError) as exc_info:
            async with locks.hold("k"):
                pass  # pragma: no cover
        assert exc_info.value.key == "k"
        assert len(locks) == 1

    assert len(locks) == 0


@pytest.mark.asyncio
async def test_exception_inside_releases_lock():
    locks = KeyedLock(timeout=0.1)

    with pytest.raises(RuntimeError):
        async with locks.hold("k"):
            raise RuntimeError("boom")

    async with locks.hold("k"):
        assert locks.locked("k")
    assert len(locks) == 0
