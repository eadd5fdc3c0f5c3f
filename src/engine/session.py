"""Review session coordinator: one ordered pass over a batch of items."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Protocol, Sequence, Set

from src.engine.errors import CursorMismatch, EmptyDeck, SessionStateError
from src.engine.mastery import MasteryCategory, category_of
from src.engine.outcomes import Judgement, ReviewMode, delta_for, is_positive, parse_judgement, parse_mode


LOGGER = logging.getLogger(__name__)


class ReviewItem(Protocol):
    id: int
    mastery_level: int


class AppliedResult(Protocol):
    mastery_before: int
    mastery_after: int


class OutcomeApplier(Protocol):
    """Durable writer the coordinator commits every outcome through."""

    async def apply(
        self,
        item_id: int,
        mode: ReviewMode,
        judgement: Judgement,
        now: Optional[datetime] = None,
    ) -> AppliedResult:
        ...


class SessionState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


@dataclass(slots=True)
class SessionTallies:
    positive: int = 0
    negative: int = 0

    @property
    def total(self) -> int:
        return self.positive + self.negative


@dataclass(frozen=True, slots=True)
class SessionSummary:
    positive: int
    negative: int
    percentage: int

    def as_dict(self) -> Dict[str, int]:
        return {"positive": self.positive, "negative": self.negative, "percentage": self.percentage}


@dataclass(frozen=True, slots=True)
class OutcomeResult:
    """What a single recorded outcome did to an item."""

    item_id: int
    judgement: Judgement
    delta: int
    positive: bool
    mastery_before: int
    mastery_after: int
    category_before: MasteryCategory
    category_after: MasteryCategory
    completed: bool


def summarize(tallies: SessionTallies) -> SessionSummary:
    """Build a summary; the percentage rounds half up."""
    total = tallies.total
    percentage = math.floor(tallies.positive * 100 / total + 0.5) if total else 0
    return SessionSummary(positive=tallies.positive, negative=tallies.negative, percentage=percentage)


class ReviewSession:
    """Sequences items through ``start -> record_outcome* -> summary``."""

    def __init__(self, mode: ReviewMode | str, applier: OutcomeApplier) -> None:
        self._mode = parse_mode(mode)
        self._applier = applier
        self._items: List[ReviewItem] = []
        self._cursor = 0
        self._state = SessionState.NOT_STARTED
        self._outcomes: Dict[int, int] = {}
        self._tallies = SessionTallies()
        self._negatives: Set[int] = set()

    @property
    def mode(self) -> ReviewMode:
        return self._mode

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def items(self) -> Sequence[ReviewItem]:
        return tuple(self._items)

    @property
    def outcomes(self) -> Dict[int, int]:
        return dict(self._outcomes)

    @property
    def tallies(self) -> SessionTallies:
        return SessionTallies(self._tallies.positive, self._tallies.negative)

    @property
    def negative_item_ids(self) -> Set[int]:
        return set(self._negatives)

    @property
    def current_item(self) -> Optional[ReviewItem]:
        if self._state is not SessionState.IN_PROGRESS:
            return None
        return self._items[self._cursor]

    @property
    def remaining(self) -> int:
        if self._state is not SessionState.IN_PROGRESS:
            return 0
        return len(self._items) - self._cursor

    def start(self, items: Sequence[ReviewItem]) -> None:
        if self._state is not SessionState.NOT_STARTED:
            raise SessionStateError("Session has already been started.")
        if not items:
            raise EmptyDeck("Cannot start a review session without items.")
        self._items = list(items)
        self._cursor = 0
        self._state = SessionState.IN_PROGRESS
        LOGGER.debug("Started %s session with %s items.", self._mode.value, len(self._items))

    def advance(self) -> None:
        self._require(SessionState.IN_PROGRESS, "advance")
        if self._cursor + 1 < len(self._items):
            self._cursor += 1
            return
        self._state = SessionState.COMPLETE
        LOGGER.debug(
            "Session complete: %s positive, %s negative.",
            self._tallies.positive,
            self._tallies.negative,
        )

    async def record_outcome(
        self,
        item_id: int,
        judgement: Judgement | str,
        now: Optional[datetime] = None,
    ) -> OutcomeResult:
        """Commit an outcome for the current item and move the cursor on.

        When the applier fails the error propagates and the cursor stays put, so
        the same card can be submitted again.
        """
        self._require(SessionState.IN_PROGRESS, "record an outcome")
        current = self._items[self._cursor]
        if current.id != item_id:
            raise CursorMismatch(current.id, item_id)

        validated = parse_judgement(self._mode, judgement)
        delta = delta_for(validated, self._mode)
        positive = is_positive(validated, self._mode)
        if now is None:
            now = datetime.now(timezone.utc)

        applied = await self._applier.apply(item_id, self._mode, validated, now)

        self._outcomes[item_id] = delta
        if positive:
            self._tallies.positive += 1
            self._negatives.discard(item_id)
        else:
            self._tallies.negative += 1
            self._negatives.add(item_id)

        self.advance()
        return OutcomeResult(
            item_id=item_id,
            judgement=validated,
            delta=delta,
            positive=positive,
            mastery_before=applied.mastery_before,
            mastery_after=applied.mastery_after,
            category_before=category_of(applied.mastery_before),
            category_after=category_of(applied.mastery_after),
            completed=self._state is SessionState.COMPLETE,
        )

    def drop_item(self, item_id: int) -> bool:
        """Remove an item that no longer exists from the unreviewed part of the session.

        Already recorded outcomes are kept, but the item is no longer flagged for
        a restart. Returns whether anything changed.
        """
        if self._state is SessionState.NOT_STARTED:
            return False

        changed = item_id in self._negatives
        self._negatives.discard(item_id)
        if self._state is SessionState.COMPLETE:
            return changed

        pending = self._items[self._cursor:]
        kept = [item for item in pending if item.id != item_id]
        if len(kept) == len(pending):
            return changed

        self._items = self._items[: self._cursor] + kept
        if self._cursor >= len(self._items):
            self._state = SessionState.COMPLETE
            LOGGER.debug("Session complete after item %s was removed.", item_id)
        return True

    def summary(self) -> SessionSummary:
        self._require(SessionState.COMPLETE, "summarize")
        return summarize(self._tallies)

    def restart_with_negatives(self) -> "ReviewSession":
        """Return a fresh session over the items flagged in this one."""
        self._require(SessionState.COMPLETE, "restart")
        flagged = [item for item in self._items if item.id in self._negatives]
        session = ReviewSession(self._mode, self._applier)
        session.start(flagged)
        return session

    def _require(self, expected: SessionState, action: str) -> None:
        if self._state is not expected:
            raise SessionStateError(
                f"Cannot {action} while the session is {self._state.value}."
            )
