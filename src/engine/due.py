"""Selection of the items a review session should cover."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Collection, Generic, Iterable, List, Optional, Protocol, Sequence, TypeVar


class SchedulableItem(Protocol):
    id: int
    next_review_at: Optional[datetime]


ItemT = TypeVar("ItemT", bound=SchedulableItem)


class SelectionSource(str, Enum):
    """Which rule produced a batch."""

    EXPLICIT = "explicit"
    DUE = "due"
    ALL = "all"


@dataclass(slots=True)
class BatchSelection(Generic[ItemT]):
    """Items chosen for a session and the rule that chose them."""

    items: List[ItemT]
    source: SelectionSource

    @property
    def is_empty(self) -> bool:
        return not self.items


def as_utc(moment: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def is_due(item: SchedulableItem, now: datetime) -> bool:
    if item.next_review_at is None:
        return False
    return as_utc(item.next_review_at) <= as_utc(now)


def select_due(items: Iterable[ItemT], now: datetime) -> List[ItemT]:
    """Return items whose next review time has passed, preserving order."""
    return [item for item in items if is_due(item, now)]


def select_explicit(items: Iterable[ItemT], ids: Collection[int]) -> List[ItemT]:
    """Return the items the caller picked by id, preserving input order."""
    wanted = set(ids)
    return [item for item in items if item.id in wanted]


def select_batch(
    items: Sequence[ItemT],
    now: datetime,
    ids: Optional[Collection[int]] = None,
    *,
    shuffle: bool = False,
    rng: Optional[random.Random] = None,
    limit: Optional[int] = None,
) -> BatchSelection[ItemT]:
    """Pick a session batch: explicit ids, else due items, else the whole deck.

    The result is only empty when ``items`` itself is empty.
    """
    chosen: List[ItemT] = select_explicit(items, ids) if ids else []
    source = SelectionSource.EXPLICIT
    if not chosen:
        chosen = select_due(items, now)
        source = SelectionSource.DUE
    if not chosen:
        chosen = list(items)
        source = SelectionSource.ALL

    if shuffle:
        (rng or random.Random()).shuffle(chosen)
    if limit is not None and limit > 0:
        chosen = chosen[:limit]

    return BatchSelection(items=chosen, source=source)
