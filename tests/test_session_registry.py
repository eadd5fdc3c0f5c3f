from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from src.db.items import create_collection, get_item
from src.engine.due import SelectionSource
from src.engine.errors import CollectionNotFound, EmptyDeck, SessionNotFound
from src.engine.outcomes import ReviewMode
from src.engine.session import SessionState
from src.services import ReviewApplier, SessionRegistry


def _registry(session_factory, **kwargs) -> SessionRegistry:
    return SessionRegistry(session_factory, ReviewApplier(session_factory), **kwargs)


@pytest.mark.asyncio
async def test_start_prefers_due_items_then_whole_deck(session_factory, seed_collection) -> None:
    now = datetime.now(timezone.utc)
    collection_id, item_ids = await seed_collection(["ένα", "δύο", "τρία"], now=now)
    registry = _registry(session_factory)

    async with session_factory() as session:
        async with session.begin():
            for item_id in item_ids[1:]:
                (await get_item(session, item_id)).next_review_at = now + timedelta(days=2)

    due = await registry.start(collection_id, "binary", now=now)
    assert due.source is SelectionSource.DUE
    assert [item.id for item in due.review.items] == [item_ids[0]]

    later = now - timedelta(days=1)
    fallback = await registry.start(collection_id, ReviewMode.GRADED, now=later)
    assert fallback.source is SelectionSource.ALL
    assert [item.id for item in fallback.review.items] == item_ids
    assert len(registry) == 1
    with pytest.raises(SessionNotFound):
        registry.get(due.session_id)


@pytest.mark.asyncio
async def test_explicit_selection_and_limit(session_factory, seed_collection) -> None:
    collection_id, item_ids = await seed_collection([f"λέξη {index}" for index in range(6)])
    registry = _registry(session_factory, batch_limit=3, shuffle=True, rng=random.Random(3))

    chosen = await registry.start(collection_id, "graded", [item_ids[4], item_ids[1]], shuffle=False)
    assert chosen.source is SelectionSource.EXPLICIT
    assert [item.id for item in chosen.review.items] == [item_ids[1], item_ids[4]]

    limited = await registry.start(collection_id, "graded")
    assert len(limited.review.items) == 3
    assert set(item.id for item in limited.review.items) <= set(item_ids)


@pytest.mark.asyncio
async def test_empty_collection_cannot_start(session_factory) -> None:
    async with session_factory() as session:
        async with session.begin():
            collection = await create_collection(session, 101, "Empty")

    with pytest.raises(EmptyDeck):
        await _registry(session_factory).start(collection.id, "graded")


@pytest.mark.asyncio
async def test_full_session_round_trip(session_factory, seed_collection) -> None:
    collection_id, item_ids = await seed_collection(["γάτα", "σκύλος", "ψάρι"])
    registry = _registry(session_factory)

    active = await registry.start(collection_id, "binary")
    async with active.lock:
        for item_id, judgement in zip(item_ids, ("learned", "still_learning", "learned")):
            await active.review.record_outcome(item_id, judgement)

    assert active.review.state is SessionState.COMPLETE
    assert active.review.summary().percentage == 67

    retry = registry.restart_with_negatives(active.session_id)
    assert retry.session_id != active.session_id
    assert retry.source is SelectionSource.EXPLICIT
    assert [item.id for item in retry.review.items] == [item_ids[1]]
    with pytest.raises(SessionNotFound):
        registry.get(active.session_id)

    registry.discard(retry.session_id)
    assert len(registry) == 0
    with pytest.raises(SessionNotFound):
        registry.discard(retry.session_id)


@pytest.mark.asyncio
async def test_each_learner_keeps_one_live_session(session_factory, seed_collection) -> None:
    first_id, _ = await seed_collection(["μήλο"], owner_id=101, name="Fruit")
    second_id, _ = await seed_collection(["πράσινο"], owner_id=101, name="Colours")
    other_id, _ = await seed_collection(["κόκκινο"], owner_id=202, name="Colours")
    registry = _registry(session_factory)

    for _ in range(10):
        await registry.start(first_id, "binary")
    latest = await registry.start(second_id, "graded")
    neighbour = await registry.start(other_id, "graded")

    assert len(registry) == 2
    assert registry.get(latest.session_id).collection_id == second_id
    assert registry.get(neighbour.session_id).owner_id == 202


@pytest.mark.asyncio
async def test_idle_sessions_are_evicted(session_factory, seed_collection) -> None:
    collection_id, _ = await seed_collection(["βουνό"], owner_id=101)
    other_id, _ = await seed_collection(["ποτάμι"], owner_id=202, name="Nature")
    clock = [datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)]
    registry = _registry(session_factory, idle_timeout=timedelta(minutes=30), clock=lambda: clock[0])

    idle = await registry.start(collection_id, "graded")
    busy = await registry.start(other_id, "graded")

    clock[0] += timedelta(minutes=20)
    registry.get(busy.session_id)
    clock[0] += timedelta(minutes=20)

    assert registry.get(busy.session_id) is busy
    with pytest.raises(SessionNotFound):
        registry.get(idle.session_id)
    assert len(registry) == 1


@pytest.mark.asyncio
async def test_start_checks_the_collection_owner(session_factory, seed_collection) -> None:
    collection_id, _ = await seed_collection(["αστέρι"], owner_id=101)
    registry = _registry(session_factory)

    with pytest.raises(CollectionNotFound):
        await registry.start(collection_id, "binary", owner_id=999)
    assert len(registry) == 0

    owned = await registry.start(collection_id, "binary", owner_id=101)
    assert owned.owner_id == 101


@pytest.mark.asyncio
async def test_deleted_items_and_collections_leave_sessions(session_factory, seed_collection) -> None:
    collection_id, item_ids = await seed_collection(["πρωί", "βράδυ"], owner_id=101)
    other_id, _ = await seed_collection(["νύχτα"], owner_id=202, name="Time")
    registry = _registry(session_factory)

    active = await registry.start(collection_id, "binary")
    untouched = await registry.start(other_id, "binary")

    registry.drop_item(item_ids[0])
    assert active.review.current_item.id == item_ids[1]
    assert len(active.review.items) == 1

    registry.discard_collection(collection_id)
    with pytest.raises(SessionNotFound):
        registry.get(active.session_id)
    assert registry.get(untouched.session_id) is untouched
