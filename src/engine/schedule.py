"""Next-review policy keyed on the mastery category reached after a review."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from src.engine.mastery import MasteryCategory, category_of


REVIEW_INTERVAL_DAYS: Dict[MasteryCategory, int] = {
    MasteryCategory.NEW: 1,
    MasteryCategory.LEARNING: 2,
    MasteryCategory.FAMILIAR: 4,
    MasteryCategory.CONFIDENT: 7,
    MasteryCategory.MASTERED: 14,
}


@dataclass(slots=True)
class ReviewSchedule:
    """When an item should come back after reaching ``category``."""

    next_review_at: datetime
    interval_days: int
    category: MasteryCategory


def calculate_next_review(mastery_level: int, now: Optional[datetime] = None) -> ReviewSchedule:
    """Return the review schedule for an item that now sits at ``mastery_level``."""
    if now is None:
        now = datetime.now(timezone.utc)

    category = category_of(mastery_level)
    interval = REVIEW_INTERVAL_DAYS[category]
    return ReviewSchedule(
        next_review_at=now + timedelta(days=interval),
        interval_days=interval,
        category=category,
    )
