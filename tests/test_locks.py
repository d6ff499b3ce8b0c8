"""Tests for per-identity transition locks"""
import asyncio

import pytest

from storefront.cart import IdentityRef, TransitionLocks


@pytest.mark.asyncio
async def test_lock_dropped_after_release(locks, user):
    async with locks.hold(user):
        assert locks.is_held(user)
        assert len(locks) == 1

    assert not locks.is_held(user)
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_lock_dropped_after_error(locks, user):
    with pytest.raises(RuntimeError):
        async with locks.hold(user):
            raise RuntimeError("boom")

    assert len(locks) == 0


@pytest.mark.asyncio
async def test_waiter_keeps_lock_alive(locks, user):
    """The lock survives its first holder while someone is queued on it."""
    first_in = asyncio.Event()
    let_go = asyncio.Event()
    order = []

    async def first():
        async with locks.hold(user):
            order.append("first")
            first_in.set()
            await let_go.wait()

    async def second():
        await first_in.wait()
        async with locks.hold(user):
            order.append("second")
            assert len(locks) == 1

    tasks = [asyncio.create_task(first()), asyncio.create_task(second())]
    await first_in.wait()
    await asyncio.sleep(0)
    let_go.set()
    await asyncio.gather(*tasks)

    assert order == ["first", "second"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_identities_lock_independently(locks):
    alice = IdentityRef.user("alice")
    bob = IdentityRef.user("bob")

    async with locks.hold(alice):
        async with locks.hold(bob):
            assert len(locks) == 2


@pytest.mark.asyncio
async def test_wait_idle_on_free_identity_creates_nothing(user):
    locks = TransitionLocks()

    await locks.wait_idle(user)

    assert len(locks) == 0
