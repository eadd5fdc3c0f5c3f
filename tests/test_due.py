from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from src.engine.due import SelectionSource, is_due, select_batch, select_due


@dataclass
class _Item:
    id: int
    next_review_at: Optional[datetime]


NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_select_due_includes_now_and_past() -> None:
    items = [
        _Item(1, NOW - timedelta(seconds=1)),
        _Item(2, NOW),
        _Item(3, NOW + timedelta(hours=1)),
    ]

    assert [item.id for item in select_due(items, NOW)] == [1, 2]


def test_naive_timestamps_are_treated_as_utc() -> None:
    naive = _Item(1, (NOW - timedelta(minutes=1)).replace(tzinfo=None))
    assert is_due(naive, NOW)
    assert not is_due(_Item(2, None), NOW)


def test_explicit_selection_wins_and_keeps_order() -> None:
    items = [_Item(index, NOW + timedelta(days=1)) for index in range(1, 6)]

    batch = select_batch(items, NOW, ids=[4, 2])

    assert batch.source is SelectionSource.EXPLICIT
    assert [item.id for item in batch.items] == [2, 4]


def test_unknown_ids_fall_back_to_due_items() -> None:
    items = [_Item(1, NOW - timedelta(days=1)), _Item(2, NOW + timedelta(days=1))]

    batch = select_batch(items, NOW, ids=[99])

    assert batch.source is SelectionSource.DUE
    assert [item.id for item in batch.items] == [1]


def test_nothing_due_falls_back_to_whole_deck() -> None:
    items = [_Item(1, NOW + timedelta(days=2)), _Item(2, NOW + timedelta(days=3))]

    batch = select_batch(items, NOW)

    assert batch.source is SelectionSource.ALL
    assert [item.id for item in batch.items] == [1, 2]


def test_empty_deck_gives_empty_batch() -> None:
    batch = select_batch([], NOW)
    assert batch.is_empty


def test_shuffle_uses_injected_rng_and_limit_applies_after() -> None:
    items = [_Item(index, NOW) for index in range(1, 11)]

    first = select_batch(items, NOW, shuffle=True, rng=random.Random(7), limit=4)
    second = select_batch(items, NOW, shuffle=True, rng=random.Random(7), limit=4)

    assert [item.id for item in first.items] == [item.id for item in second.items]
    assert len(first.items) == 4
    assert [item.id for item in items] == list(range(1, 11))
