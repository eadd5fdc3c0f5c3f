"""Learner records and the review progress counters kept on them."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from . import Collection, Learner


@dataclass(slots=True)
class LearnerProgress:
    learner_id: int
    display_name: Optional[str]
    items_reviewed: int
    items_mastered: int
    collections: int


async def ensure_learner(
    session: AsyncSession,
    learner_id: int,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> Learner:
    """Return the learner, creating it on first contact.

    Names are only overwritten by non-empty values, so callers that know just
    the id (such as the HTTP API creating a collection) never blank them.
    """
    learner = await session.get(Learner, learner_id)
    if learner is None:
        learner = Learner(id=learner_id, first_name=first_name, last_name=last_name)
        session.add(learner)
        await session.flush()
        return learner

    names = {"first_name": first_name, "last_name": last_name}
    changed = {key: value for key, value in names.items() if value and getattr(learner, key) != value}
    for key, value in changed.items():
        setattr(learner, key, value)
    if changed:
        await session.flush()
    return learner


async def record_review(session: AsyncSession, learner_id: int, *, reached_mastery: bool) -> None:
    """Count one committed review, and a newly mastered item when it crossed the threshold."""
    values = {
        "items_reviewed": Learner.items_reviewed + 1,
        "updated_at": datetime.now(timezone.utc),
    }
    if reached_mastery:
        values["items_mastered"] = Learner.items_mastered + 1

    await session.execute(
        update(Learner)
        .where(Learner.id == learner_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )


async def get_learner_progress(session: AsyncSession, learner_id: int) -> Optional[LearnerProgress]:
    learner = await session.get(Learner, learner_id, populate_existing=True)
    if learner is None:
        return None

    collections = await session.scalar(
        select(func.count(Collection.id)).where(Collection.owner_id == learner_id)
    )
    display_name = " ".join(part for part in (learner.first_name, learner.last_name) if part) or None
    return LearnerProgress(
        learner_id=learner.id,
        display_name=display_name,
        items_reviewed=learner.items_reviewed,
        items_mastered=learner.items_mastered,
        collections=int(collections or 0),
    )
