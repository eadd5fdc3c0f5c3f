"""Persistence helpers for collections and their learnable items."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.engine.due import as_utc, is_due
from src.engine.errors import CollectionNotFound, Conflict, DuplicateCollection, ItemNotFound
from src.engine.mastery import LEARNING_THRESHOLD, MASTERED_THRESHOLD, clamp
from src.engine.proficiency import mean_score

from . import Collection, LearnableItem
from .learners import ensure_learner


ITEM_KINDS = frozenset({"vocabulary", "grammar"})


@dataclass(slots=True)
class ItemPayload:
    """Content of a learnable item before it is stored."""

    term: str
    kind: str = "vocabulary"
    meaning: Optional[str] = None
    example: Optional[str] = None
    note: Optional[str] = None
    level: Optional[str] = None
    tags: Optional[str] = None

    def normalized(self) -> "ItemPayload":
        """Return a payload with leading/trailing whitespace stripped."""
        return ItemPayload(
            term=self.term.strip(),
            kind=self.kind.strip().lower(),
            meaning=self.meaning.strip() if isinstance(self.meaning, str) else self.meaning,
            example=self.example.strip() if isinstance(self.example, str) else self.example,
            note=self.note.strip() if isinstance(self.note, str) else self.note,
            level=self.level.strip().upper() if isinstance(self.level, str) else self.level,
            tags=self.tags.strip() if isinstance(self.tags, str) else self.tags,
        )


@dataclass(slots=True)
class CollectionSummary:
    id: int
    name: str
    kind: str
    color: str
    count: int
    mastered: int


@dataclass(slots=True)
class CollectionStats:
    """Aggregated mastery numbers for one collection."""

    total: int
    mastered: int
    learning: int
    new: int
    avg_mastery: int
    due_count: int


def _validate_kind(kind: str) -> str:
    normalized = kind.strip().lower()
    if normalized not in ITEM_KINDS:
        raise ValueError(f"Unsupported item kind {kind!r}; expected one of {sorted(ITEM_KINDS)}.")
    return normalized


async def create_collection(
    session: AsyncSession,
    owner_id: int,
    name: str,
    kind: str = "vocabulary",
    color: Optional[str] = None,
) -> Collection:
    """Create a collection for a learner, registering the learner when unknown.

    Name uniqueness per learner is enforced by the database, so two concurrent
    requests for the same name end with one ``DuplicateCollection``. The
    session's transaction must be rolled back after that error.
    """
    cleaned_name = name.strip()
    if not cleaned_name:
        raise ValueError("Collection name must not be empty.")
    normalized_kind = _validate_kind(kind)

    await ensure_learner(session, owner_id)
    collection = Collection(
        owner_id=owner_id,
        name=cleaned_name,
        kind=normalized_kind,
        color=(color or "primary").strip() or "primary",
    )
    session.add(collection)
    try:
        await session.flush()
    except IntegrityError as exc:
        raise DuplicateCollection(f"Collection {cleaned_name!r} already exists.") from exc
    return collection


async def get_collection(session: AsyncSession, collection_id: int) -> Collection:
    collection = await session.get(Collection, collection_id)
    if collection is None:
        raise CollectionNotFound(collection_id)
    return collection


async def list_collections(session: AsyncSession, owner_id: int) -> List[CollectionSummary]:
    """Return the learner's collections with item and mastered counts."""
    mastered = func.coalesce(
        func.sum(case((LearnableItem.mastery_level >= MASTERED_THRESHOLD, 1), else_=0)),
        0,
    )
    stmt = (
        select(Collection, func.count(LearnableItem.id), mastered)
        .outerjoin(LearnableItem, LearnableItem.collection_id == Collection.id)
        .where(Collection.owner_id == owner_id)
        .group_by(Collection.id)
        .order_by(Collection.created_at, Collection.id)
    )
    result = await session.execute(stmt)
    return [
        CollectionSummary(
            id=collection.id,
            name=collection.name,
            kind=collection.kind,
            color=collection.color,
            count=int(count),
            mastered=int(mastered_count),
        )
        for collection, count, mastered_count in result.all()
    ]


async def delete_collection(session: AsyncSession, collection_id: int) -> None:
    """Delete a collection; its items go with it."""
    collection = await get_collection(session, collection_id)
    await session.delete(collection)
    await session.flush()


async def add_item(
    session: AsyncSession,
    collection_id: int,
    payload: ItemPayload,
    now: Optional[datetime] = None,
) -> LearnableItem:
    """Store a new item; it starts at mastery 0 and is due immediately."""
    if now is None:
        now = datetime.now(timezone.utc)

    await get_collection(session, collection_id)
    normalized = payload.normalized()
    if not normalized.term:
        raise ValueError("Item term must not be empty.")

    item = LearnableItem(
        collection_id=collection_id,
        kind=_validate_kind(normalized.kind),
        term=normalized.term,
        meaning=normalized.meaning,
        example=normalized.example,
        note=normalized.note,
        level=normalized.level,
        tags=normalized.tags,
        mastery_level=0,
        last_reviewed_at=None,
        next_review_at=now,
        starred=False,
        version=1,
    )
    session.add(item)
    await session.flush()
    return item


async def get_item(session: AsyncSession, item_id: int, *, refresh: bool = False) -> LearnableItem:
    item = await session.get(LearnableItem, item_id, populate_existing=refresh)
    if item is None:
        raise ItemNotFound(item_id)
    return item


async def load_items(session: AsyncSession, collection_id: int) -> List[LearnableItem]:
    """Return every item of a collection in insertion order."""
    await get_collection(session, collection_id)
    result = await session.execute(
        select(LearnableItem)
        .where(LearnableItem.collection_id == collection_id)
        .order_by(LearnableItem.id)
    )
    return list(result.scalars().all())


async def load_due(
    session: AsyncSession,
    collection_id: int,
    now: Optional[datetime] = None,
) -> List[LearnableItem]:
    """Return the collection's items whose next review time has passed."""
    if now is None:
        now = datetime.now(timezone.utc)

    await get_collection(session, collection_id)
    result = await session.execute(
        select(LearnableItem)
        .where(
            LearnableItem.collection_id == collection_id,
            LearnableItem.next_review_at.is_not(None),
            LearnableItem.next_review_at <= as_utc(now),
        )
        .order_by(LearnableItem.id)
    )
    return list(result.scalars().all())


async def update_item_mastery(
    session: AsyncSession,
    item_id: int,
    mastery_level: int,
    reviewed_at: datetime,
    next_review_at: Optional[datetime],
    expected_version: int,
) -> LearnableItem:
    """Write new mastery state if the item still has ``expected_version``.

    Raises ``Conflict`` when another writer got there first and ``ItemNotFound``
    when the item is gone.
    """
    stmt = (
        update(LearnableItem)
        .where(LearnableItem.id == item_id, LearnableItem.version == expected_version)
        .values(
            mastery_level=clamp(mastery_level),
            last_reviewed_at=reviewed_at,
            next_review_at=next_review_at,
            version=LearnableItem.version + 1,
            updated_at=reviewed_at,
        )
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount == 0:
        exists = await session.execute(select(LearnableItem.id).where(LearnableItem.id == item_id))
        if exists.scalar() is None:
            raise ItemNotFound(item_id)
        raise Conflict(item_id, expected_version)

    return await get_item(session, item_id, refresh=True)


async def delete_item(session: AsyncSession, item_id: int) -> None:
    result = await session.execute(delete(LearnableItem).where(LearnableItem.id == item_id))
    if result.rowcount == 0:
        raise ItemNotFound(item_id)


async def toggle_star(session: AsyncSession, item_id: int) -> LearnableItem:
    """Flip the starred flag; mastery state is left untouched."""
    item = await get_item(session, item_id)
    item.starred = not item.starred
    await session.flush()
    return item


def summarize_items(items: Sequence[LearnableItem], now: datetime) -> CollectionStats:
    levels = [item.mastery_level for item in items]
    return CollectionStats(
        total=len(levels),
        mastered=sum(1 for level in levels if level >= MASTERED_THRESHOLD),
        learning=sum(1 for level in levels if LEARNING_THRESHOLD <= level < MASTERED_THRESHOLD),
        new=sum(1 for level in levels if level < LEARNING_THRESHOLD),
        avg_mastery=mean_score(levels),
        due_count=sum(1 for item in items if is_due(item, now)),
    )


async def collection_stats(
    session: AsyncSession,
    collection_id: int,
    now: Optional[datetime] = None,
) -> CollectionStats:
    if now is None:
        now = datetime.now(timezone.utc)
    items = await load_items(session, collection_id)
    return summarize_items(items, now)
