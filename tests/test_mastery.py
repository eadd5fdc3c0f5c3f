from __future__ import annotations

import pytest

from src.engine.mastery import MasteryCategory, category_of, clamp, is_mastered


def test_clamp_bounds_and_rounding() -> None:
    assert clamp(-15) == 0
    assert clamp(0) == 0
    assert clamp(55) == 55
    assert clamp(100) == 100
    assert clamp(140) == 100
    assert clamp(41.6) == 42


@pytest.mark.parametrize("value", ["50", None, True])
def test_clamp_rejects_non_numeric(value) -> None:
    with pytest.raises(TypeError):
        clamp(value)


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        (0, MasteryCategory.NEW),
        (19, MasteryCategory.NEW),
        (20, MasteryCategory.LEARNING),
        (39, MasteryCategory.LEARNING),
        (40, MasteryCategory.FAMILIAR),
        (59, MasteryCategory.FAMILIAR),
        (60, MasteryCategory.CONFIDENT),
        (79, MasteryCategory.CONFIDENT),
        (80, MasteryCategory.MASTERED),
        (100, MasteryCategory.MASTERED),
    ],
)
def test_category_boundaries(level: int, expected: MasteryCategory) -> None:
    assert category_of(level) is expected


def test_every_level_has_exactly_one_category() -> None:
    categories = [category_of(level) for level in range(0, 101)]
    assert all(isinstance(category, MasteryCategory) for category in categories)
    assert set(categories) == set(MasteryCategory)


def test_mastered_threshold() -> None:
    assert not is_mastered(79)
    assert is_mastered(80)
    assert MasteryCategory.CONFIDENT.label == "Confident"
