"""
Unit tests for the in-memory session store.
"""
import asyncio

import pytest

from astroai.models.chat import ChatMessage, ChatSession
from astroai.services.chat.session_store import InMemorySessionStore


def _session():
    return ChatSession(messages=[ChatMessage(role="assistant", content="Hello!")])


@pytest.mark.asyncio
async def test_save_and_get_round_trip(clock):
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    session = _session()

    await store.save(session)
    loaded = await store.get(session.id)

    assert loaded == session
    assert await store.count() == 1


@pytest.mark.asyncio
async def test_returned_sessions_are_copies(clock):
    store = InMemorySessionStore(clock=clock)
    session = _session()
    await store.save(session)

    loaded = await store.get(session.id)
    loaded.messages.append(ChatMessage(role="user", content="mutated"))
    session.status = "closed"

    stored = await store.get(session.id)
    assert len(stored.messages) == 1
    assert stored.status == "active"


@pytest.mark.asyncio
async def test_expired_session_is_not_found(clock):
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    session = _session()
    await store.save(session)

    clock.advance(61)

    assert await store.get(session.id) is None


@pytest.mark.asyncio
async def test_ttl_slides_on_save(clock):
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    session = _session()
    await store.save(session)

    clock.advance(50)
    await store.save(session)
    clock.advance(50)

    assert await store.get(session.id) is not None


@pytest.mark.asyncio
async def test_sweep_evicts_expired(clock):
    store = InMemorySessionStore(ttl_seconds=10, clock=clock)
    for _ in range(3):
        await store.save(_session())
    clock.advance(11)
    await store.save(_session())

    assert store.sweep() == 3
    assert len(store.session_ids()) == 1


@pytest.mark.asyncio
async def test_delete(clock):
    store = InMemorySessionStore(clock=clock)
    session = _session()
    await store.save(session)

    assert await store.delete(session.id) is True
    assert await store.get(session.id) is None


@pytest.mark.asyncio
async def test_start_and_shutdown_sweep_task():
    store = InMemorySessionStore(sweep_interval_seconds=0.01)

    await store.start()
    assert store._sweep_task is not None
    await asyncio.sleep(0.03)
    await store.shutdown()

    assert store._sweep_task is None


@pytest.mark.asyncio
async def test_zero_interval_disables_sweep():
    store = InMemorySessionStore(sweep_interval_seconds=0)

    await store.start()

    assert store._sweep_task is None
