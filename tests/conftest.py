from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from src.db import Base, enable_sqlite_foreign_keys
from src.db.items import ItemPayload, add_item, create_collection


SeedCollection = Callable[..., Awaitable[Tuple[int, List[int]]]]


@pytest_asyncio.fixture
async def session_factory() -> async_sessionmaker:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def seed_collection(session_factory) -> SeedCollection:
    """Create a collection with the given terms and return ``(collection_id, item_ids)``."""

    async def _seed(
        terms: Sequence[str],
        *,
        owner_id: int = 101,
        name: str = "Greek basics",
        now: Optional[datetime] = None,
    ) -> Tuple[int, List[int]]:
        created_at = now or datetime.now(timezone.utc)
        async with session_factory() as session:
            async with session.begin():
                collection = await create_collection(session, owner_id, name)
                item_ids = []
                for term in terms:
                    item = await add_item(session, collection.id, ItemPayload(term=term), now=created_at)
                    item_ids.append(item.id)
        return collection.id, item_ids

    return _seed
