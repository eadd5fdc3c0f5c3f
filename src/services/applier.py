"""The only writer of mastery state: optimistic updates with bounded retries."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db import Collection, ItemReview, LearnableItem
from src.db.items import get_item, update_item_mastery
from src.db.learners import record_review
from src.engine.errors import Conflict, RetriesExhausted
from src.engine.mastery import clamp, is_mastered
from src.engine.outcomes import Judgement, ReviewMode, apply_outcome, delta_for, parse_judgement, parse_mode
from src.engine.schedule import calculate_next_review


LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


@dataclass(slots=True)
class AppliedOutcome:
    """Result of committing one review outcome."""

    item: LearnableItem
    delta: int
    mastery_before: int
    mastery_after: int
    attempts: int

    @property
    def mastery_level(self) -> int:
        return self.mastery_after


class ReviewApplier:
    """Commits review outcomes to stored items without losing concurrent updates."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1.")
        self._session_factory = session_factory
        self._max_retries = max_retries

    @property
    def max_retries(self) -> int:
        return self._max_retries

    async def apply(
        self,
        item_id: int,
        mode: ReviewMode | str,
        judgement: Judgement | str,
        now: Optional[datetime] = None,
    ) -> AppliedOutcome:
        """Apply ``judgement`` to the item, recomputing from fresh state on conflict."""
        review_mode = parse_mode(mode)
        validated = parse_judgement(review_mode, judgement)
        if now is None:
            now = datetime.now(timezone.utc)

        last_conflict: Optional[Conflict] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await self._apply_once(session, item_id, review_mode, validated, now, attempt)
            except Conflict as exc:
                last_conflict = exc
                LOGGER.warning(
                    "Concurrent update on item %s (attempt %s of %s); retrying with fresh state.",
                    item_id,
                    attempt,
                    self._max_retries,
                )

        LOGGER.error("Giving up on item %s after %s conflicting attempts.", item_id, self._max_retries)
        raise RetriesExhausted(item_id, self._max_retries) from last_conflict

    async def set_mastery(
        self,
        item_id: int,
        mastery_level: int,
        timestamp: Optional[datetime] = None,
        expected_version: Optional[int] = None,
    ) -> LearnableItem:
        """Store an already computed mastery level in a single attempt.

        Without ``expected_version`` the version read inside the transaction is
        used. A ``Conflict`` is raised to the caller rather than retried, since
        only the caller knows how the level was derived.
        """
        if timestamp is None:
            timestamp = datetime.now(timezone.utc)

        async with self._session_factory() as session:
            async with session.begin():
                item = await get_item(session, item_id, refresh=True)
                version = item.version if expected_version is None else expected_version
                level = clamp(mastery_level)
                schedule = calculate_next_review(level, timestamp)
                return await update_item_mastery(
                    session,
                    item_id,
                    level,
                    reviewed_at=timestamp,
                    next_review_at=schedule.next_review_at,
                    expected_version=version,
                )

    async def _apply_once(
        self,
        session: AsyncSession,
        item_id: int,
        mode: ReviewMode,
        judgement: Judgement,
        now: datetime,
        attempt: int,
    ) -> AppliedOutcome:
        item = await get_item(session, item_id, refresh=True)
        mastery_before = item.mastery_level
        mastery_after = apply_outcome(mastery_before, judgement, mode)
        schedule = calculate_next_review(mastery_after, now)

        updated = await update_item_mastery(
            session,
            item_id,
            mastery_after,
            reviewed_at=now,
            next_review_at=schedule.next_review_at,
            expected_version=item.version,
        )
        delta = delta_for(judgement, mode)
        session.add(
            ItemReview(
                item_id=item_id,
                mode=mode.value,
                judgement=judgement.value,
                delta=delta,
                mastery_before=mastery_before,
                mastery_after=mastery_after,
                reviewed_at=now,
            )
        )

        owner_id = await self._owner_of(session, updated)
        if owner_id is not None:
            await record_review(
                session,
                owner_id,
                reached_mastery=is_mastered(mastery_after) and not is_mastered(mastery_before),
            )
        await session.flush()

        LOGGER.debug(
            "Item %s %s -> %s after %s (%s).", item_id, mastery_before, mastery_after, judgement.value, mode.value
        )
        return AppliedOutcome(
            item=updated,
            delta=delta,
            mastery_before=mastery_before,
            mastery_after=mastery_after,
            attempts=attempt,
        )

    @staticmethod
    async def _owner_of(session: AsyncSession, item: LearnableItem) -> Optional[int]:
        result = await session.execute(select(Collection.owner_id).where(Collection.id == item.collection_id))
        return result.scalar()
