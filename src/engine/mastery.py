"""Mastery scale for learnable items and its derived category buckets."""

from __future__ import annotations

from enum import Enum
from numbers import Real


MIN_MASTERY = 0
MAX_MASTERY = 100
MASTERED_THRESHOLD = 80
LEARNING_THRESHOLD = 20


class MasteryCategory(str, Enum):
    """Coarse bucket a mastery level falls into."""

    NEW = "new"
    LEARNING = "learning"
    FAMILIAR = "familiar"
    CONFIDENT = "confident"
    MASTERED = "mastered"

    @property
    def label(self) -> str:
        return self.value.capitalize()


# Lower bounds, evaluated high-to-low.
_CATEGORY_FLOORS = (
    (80, MasteryCategory.MASTERED),
    (60, MasteryCategory.CONFIDENT),
    (40, MasteryCategory.FAMILIAR),
    (20, MasteryCategory.LEARNING),
    (0, MasteryCategory.NEW),
)


def clamp(value: Real) -> int:
    """Round ``value`` to an integer inside ``[MIN_MASTERY, MAX_MASTERY]``."""
    if isinstance(value, bool) or not isinstance(value, Real):
        raise TypeError(f"Mastery must be numeric, got {type(value).__name__}.")
    return max(MIN_MASTERY, min(MAX_MASTERY, int(round(value))))


def category_of(mastery_level: Real) -> MasteryCategory:
    """Return the category for a mastery level."""
    level = clamp(mastery_level)
    for floor, category in _CATEGORY_FLOORS:
        if level >= floor:
            return category
    return MasteryCategory.NEW  # pragma: no cover - clamp keeps level >= 0


def is_mastered(mastery_level: Real) -> bool:
    return clamp(mastery_level) >= MASTERED_THRESHOLD
