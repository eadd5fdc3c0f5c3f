"""In-memory registry of live review sessions shared by the presentation layers."""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Collection, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.items import get_collection, load_items
from src.engine.due import SelectionSource, select_batch
from src.engine.errors import CollectionNotFound, EmptyDeck, SessionNotFound
from src.engine.outcomes import ReviewMode, parse_mode
from src.engine.session import OutcomeApplier, ReviewSession


LOGGER = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = timedelta(hours=2)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class ActiveSession:
    """A running review session plus the context it was started with."""

    session_id: str
    collection_id: int
    owner_id: int
    source: SelectionSource
    review: ReviewSession
    last_used_at: datetime
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def mode(self) -> ReviewMode:
        return self.review.mode


class SessionRegistry:
    """Starts, tracks and discards review sessions by id.

    A learner has at most one live session: starting another replaces it.
    Sessions untouched for longer than ``idle_timeout`` are evicted.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        applier: OutcomeApplier,
        *,
        batch_limit: Optional[int] = None,
        shuffle: bool = False,
        rng: Optional[random.Random] = None,
        idle_timeout: Optional[timedelta] = DEFAULT_IDLE_TIMEOUT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._session_factory = session_factory
        self._applier = applier
        self._batch_limit = batch_limit
        self._shuffle = shuffle
        self._rng = rng
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: Dict[str, ActiveSession] = {}
        self._by_owner: Dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def start(
        self,
        collection_id: int,
        mode: ReviewMode | str,
        selection: Optional[Collection[int]] = None,
        *,
        owner_id: Optional[int] = None,
        shuffle: Optional[bool] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ActiveSession:
        """Build a batch for the collection and open a session over it.

        When ``owner_id`` is given the collection must belong to that learner;
        otherwise ``CollectionNotFound`` is raised. Raises ``EmptyDeck`` only
        when the collection holds no items at all; a collection with nothing
        due falls back to its whole deck.
        """
        review_mode = parse_mode(mode)
        if now is None:
            now = datetime.now(timezone.utc)

        async with self._session_factory() as session:
            collection = await get_collection(session, collection_id)
            if owner_id is not None and collection.owner_id != owner_id:
                LOGGER.warning(
                    "Learner %s tried to review collection %s owned by %s.",
                    owner_id,
                    collection_id,
                    collection.owner_id,
                )
                raise CollectionNotFound(collection_id)
            items = await load_items(session, collection_id)

        batch = select_batch(
            items,
            now,
            selection,
            shuffle=self._shuffle if shuffle is None else shuffle,
            rng=self._rng,
            limit=limit or self._batch_limit,
        )
        if batch.is_empty:
            raise EmptyDeck(f"Collection {collection_id} has no items to review.")

        review = ReviewSession(review_mode, self._applier)
        review.start(batch.items)
        return self._register(collection_id, collection.owner_id, batch.source, review)

    def get(self, session_id: str) -> ActiveSession:
        self._evict_idle()
        active = self._sessions.get(session_id)
        if active is None:
            raise SessionNotFound(session_id)
        active.last_used_at = self._clock()
        return active

    def restart_with_negatives(self, session_id: str) -> ActiveSession:
        """Replace a completed session with one over its flagged items."""
        previous = self.get(session_id)
        review = previous.review.restart_with_negatives()
        return self._register(previous.collection_id, previous.owner_id, SelectionSource.EXPLICIT, review)

    def discard(self, session_id: str) -> None:
        """Abandon a session; outcomes already committed stay committed."""
        if self._remove(session_id) is None:
            raise SessionNotFound(session_id)
        LOGGER.info("Review session %s discarded.", session_id)

    def drop_item(self, item_id: int) -> None:
        """Take a deleted item out of every live session still waiting on it."""
        for active in self._sessions.values():
            if active.review.drop_item(item_id):
                LOGGER.info("Item %s removed from review session %s.", item_id, active.session_id)

    def discard_collection(self, collection_id: int) -> None:
        stale = [key for key, active in self._sessions.items() if active.collection_id == collection_id]
        for session_id in stale:
            self._remove(session_id)
        if stale:
            LOGGER.info("Discarded %s review sessions of deleted collection %s.", len(stale), collection_id)

    def _remove(self, session_id: str) -> Optional[ActiveSession]:
        active = self._sessions.pop(session_id, None)
        if active is not None and self._by_owner.get(active.owner_id) == session_id:
            del self._by_owner[active.owner_id]
        return active

    def _evict_idle(self) -> None:
        if self._idle_timeout is None:
            return
        cutoff = self._clock() - self._idle_timeout
        expired: List[str] = [
            session_id for session_id, active in self._sessions.items() if active.last_used_at < cutoff
        ]
        for session_id in expired:
            self._remove(session_id)
        if expired:
            LOGGER.info("Evicted %s idle review sessions.", len(expired))

    def _register(
        self,
        collection_id: int,
        owner_id: int,
        source: SelectionSource,
        review: ReviewSession,
    ) -> ActiveSession:
        self._evict_idle()
        replaced = self._by_owner.get(owner_id)
        if replaced is not None:
            self._remove(replaced)
            LOGGER.info("Review session %s replaced for learner %s.", replaced, owner_id)

        session_id = uuid.uuid4().hex
        active = ActiveSession(
            session_id=session_id,
            collection_id=collection_id,
            owner_id=owner_id,
            source=source,
            review=review,
            last_used_at=self._clock(),
        )
        self._sessions[session_id] = active
        self._by_owner[owner_id] = session_id
        LOGGER.info(
            "Review session %s started for collection %s (%s, %s items, %s).",
            session_id,
            collection_id,
            review.mode.value,
            len(review.items),
            source.value,
        )
        return active
