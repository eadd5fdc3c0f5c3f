from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest

from src.engine.errors import CursorMismatch, EmptyDeck, InvalidJudgement, SessionStateError
from src.engine.mastery import MasteryCategory
from src.engine.outcomes import BinaryJudgement, Judgement, ReviewMode, apply_outcome
from src.engine.session import ReviewSession, SessionState


@dataclass
class _Item:
    id: int
    mastery_level: int


@dataclass
class _Applied:
    mastery_before: int
    mastery_after: int


class _StubApplier:
    """Keeps mastery in a dict the way the real applier keeps it in the database."""

    def __init__(self, levels: Dict[int, int]) -> None:
        self.levels = dict(levels)
        self.calls: List[Tuple[int, ReviewMode, Judgement]] = []
        self.fail_next: Optional[Exception] = None

    async def apply(self, item_id: int, mode: ReviewMode, judgement: Judgement, now: Optional[datetime] = None) -> _Applied:
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error
        self.calls.append((item_id, mode, judgement))
        before = self.levels[item_id]
        after = apply_outcome(before, judgement, mode)
        self.levels[item_id] = after
        return _Applied(before, after)


def _deck(count: int, mastery: int = 50) -> List[_Item]:
    return [_Item(index, mastery) for index in range(1, count + 1)]


@pytest.mark.asyncio
async def test_binary_session_summary_and_restart() -> None:
    items = _deck(10)
    applier = _StubApplier({item.id: item.mastery_level for item in items})
    session = ReviewSession(ReviewMode.BINARY, applier)
    session.start(items)

    flagged = {3, 6, 9}
    for item in items:
        judgement = BinaryJudgement.STILL_LEARNING if item.id in flagged else BinaryJudgement.LEARNED
        await session.record_outcome(item.id, judgement)

    assert session.state is SessionState.COMPLETE
    assert session.summary().as_dict() == {"positive": 7, "negative": 3, "percentage": 70}
    assert applier.levels[3] == 50
    assert applier.levels[1] == 60

    retry = session.restart_with_negatives()
    assert retry.state is SessionState.IN_PROGRESS
    assert [item.id for item in retry.items] == [3, 6, 9]
    assert retry.mode is ReviewMode.BINARY


@pytest.mark.asyncio
async def test_graded_outcome_reports_category_change() -> None:
    applier = _StubApplier({1: 72, 2: 72})
    session = ReviewSession("graded", applier)
    session.start([_Item(1, 72), _Item(2, 72)])

    first = await session.record_outcome(1, "good")
    assert first.mastery_after == 77
    assert first.category_after is MasteryCategory.CONFIDENT
    assert not first.completed
    assert session.current_item.id == 2

    second = await session.record_outcome(2, "perfect")
    assert second.category_before is MasteryCategory.CONFIDENT
    assert second.category_after is MasteryCategory.MASTERED
    assert second.completed
    assert session.remaining == 0


@pytest.mark.asyncio
async def test_out_of_order_outcome_is_rejected() -> None:
    applier = _StubApplier({1: 0, 2: 0})
    session = ReviewSession(ReviewMode.GRADED, applier)
    session.start(_deck(2, mastery=0))

    with pytest.raises(CursorMismatch):
        await session.record_outcome(2, "good")

    assert session.cursor == 0
    assert applier.calls == []


@pytest.mark.asyncio
async def test_invalid_judgement_leaves_cursor_in_place() -> None:
    applier = _StubApplier({1: 0})
    session = ReviewSession(ReviewMode.BINARY, applier)
    session.start(_deck(1, mastery=0))

    with pytest.raises(InvalidJudgement):
        await session.record_outcome(1, "perfect")

    assert session.cursor == 0
    assert session.state is SessionState.IN_PROGRESS


@pytest.mark.asyncio
async def test_failed_commit_allows_resubmission() -> None:
    applier = _StubApplier({1: 40, 2: 40})
    session = ReviewSession(ReviewMode.GRADED, applier)
    session.start(_deck(2, mastery=40))

    applier.fail_next = RuntimeError("database unavailable")
    with pytest.raises(RuntimeError):
        await session.record_outcome(1, "easy")

    assert session.cursor == 0
    assert session.tallies.total == 0

    result = await session.record_outcome(1, "easy")
    assert result.mastery_after == 55
    assert session.cursor == 1


def test_empty_deck_and_state_errors() -> None:
    session = ReviewSession(ReviewMode.GRADED, _StubApplier({}))

    with pytest.raises(EmptyDeck):
        session.start([])
    with pytest.raises(SessionStateError):
        session.summary()
    with pytest.raises(SessionStateError):
        session.advance()

    session.start(_deck(1))
    with pytest.raises(SessionStateError):
        session.start(_deck(1))
    with pytest.raises(SessionStateError):
        session.restart_with_negatives()


@pytest.mark.asyncio
async def test_restart_without_negatives_is_empty() -> None:
    applier = _StubApplier({1: 0})
    session = ReviewSession(ReviewMode.BINARY, applier)
    session.start(_deck(1, mastery=0))
    await session.record_outcome(1, "learned")

    assert session.summary().percentage == 100
    with pytest.raises(EmptyDeck):
        session.restart_with_negatives()


@pytest.mark.asyncio
async def test_summary_percentage_rounds_half_up() -> None:
    applier = _StubApplier({index: 0 for index in range(1, 9)})
    session = ReviewSession(ReviewMode.QUIZ, applier)
    session.start(_deck(8, mastery=0))

    for index in range(1, 9):
        await session.record_outcome(index, "correct" if index == 1 else "incorrect")

    summary = session.summary()
    assert (summary.positive, summary.negative, summary.percentage) == (1, 7, 13)
    assert session.negative_item_ids == set(range(2, 9))


@pytest.mark.asyncio
async def test_dropping_the_current_item_moves_to_the_next() -> None:
    items = _deck(3)
    session = ReviewSession(ReviewMode.BINARY, _StubApplier({item.id: item.mastery_level for item in items}))
    session.start(items)

    assert session.drop_item(1) is True
    assert session.current_item.id == 2
    assert session.remaining == 2

    await session.record_outcome(2, "learned")
    assert session.drop_item(3) is True
    assert session.state is SessionState.COMPLETE
    assert session.summary().as_dict() == {"positive": 1, "negative": 0, "percentage": 100}


@pytest.mark.asyncio
async def test_dropped_item_is_not_offered_again() -> None:
    items = _deck(3)
    session = ReviewSession(ReviewMode.BINARY, _StubApplier({item.id: item.mastery_level for item in items}))
    session.start(items)
    for item_id, judgement in ((1, "still_learning"), (2, "still_learning"), (3, "learned")):
        await session.record_outcome(item_id, judgement)

    assert session.drop_item(1) is True
    assert session.drop_item(3) is False
    assert session.summary().negative == 2
    assert [item.id for item in session.restart_with_negatives().items] == [2]


@pytest.mark.asyncio
async def test_dropping_unknown_or_reviewed_items_changes_nothing() -> None:
    items = _deck(3)
    session = ReviewSession(ReviewMode.GRADED, _StubApplier({item.id: item.mastery_level for item in items}))
    assert session.drop_item(1) is False

    session.start(items)
    await session.record_outcome(1, "good")

    assert session.drop_item(1) is False
    assert session.drop_item(42) is False
    assert [item.id for item in session.items] == [1, 2, 3]
    assert session.current_item.id == 2
