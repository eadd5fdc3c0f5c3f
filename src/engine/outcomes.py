"""Mapping of review judgements to fixed mastery deltas."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Type, Union

from src.engine.errors import InvalidJudgement
from src.engine.mastery import clamp


class ReviewMode(str, Enum):
    """Judgement vocabulary a review session uses."""

    GRADED = "graded"
    BINARY = "binary"
    QUIZ = "quiz"


class GradedJudgement(str, Enum):
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"
    PERFECT = "perfect"


class BinaryJudgement(str, Enum):
    STILL_LEARNING = "still_learning"
    LEARNED = "learned"


class QuizJudgement(str, Enum):
    INCORRECT = "incorrect"
    CORRECT = "correct"


Judgement = Union[GradedJudgement, BinaryJudgement, QuizJudgement]

_JUDGEMENTS: Dict[ReviewMode, Type[Enum]] = {
    ReviewMode.GRADED: GradedJudgement,
    ReviewMode.BINARY: BinaryJudgement,
    ReviewMode.QUIZ: QuizJudgement,
}

_DELTAS: Dict[Enum, int] = {
    GradedJudgement.AGAIN: -20,
    GradedJudgement.HARD: -10,
    GradedJudgement.GOOD: 5,
    GradedJudgement.EASY: 15,
    GradedJudgement.PERFECT: 25,
    # StillLearning only flags the card for another pass.
    BinaryJudgement.STILL_LEARNING: 0,
    BinaryJudgement.LEARNED: 10,
    QuizJudgement.INCORRECT: -10,
    QuizJudgement.CORRECT: 15,
}


def parse_mode(raw: Union[str, ReviewMode]) -> ReviewMode:
    """Convert a wire value into a ``ReviewMode``."""
    if isinstance(raw, ReviewMode):
        return raw
    try:
        return ReviewMode(str(raw).strip().lower())
    except ValueError as exc:
        raise InvalidJudgement(f"Unknown review mode {raw!r}.") from exc


def _normalize(raw: str) -> str:
    collapsed = raw.strip().replace("-", "_").replace(" ", "_")
    if "_" in collapsed or collapsed.isupper():
        return collapsed.lower()
    # Accept CamelCase spellings such as "StillLearning".
    snake = "".join(
        f"_{char.lower()}" if char.isupper() and index else char.lower()
        for index, char in enumerate(collapsed)
    )
    return "_".join(part for part in snake.split("_") if part)


def parse_judgement(mode: Union[str, ReviewMode], raw: Union[str, Enum]) -> Judgement:
    """Resolve ``raw`` inside the vocabulary of ``mode`` or raise ``InvalidJudgement``."""
    review_mode = parse_mode(mode)
    vocabulary = _JUDGEMENTS[review_mode]
    if isinstance(raw, Enum):
        if isinstance(raw, vocabulary):
            return raw
        raise InvalidJudgement(f"{raw.value!r} is not a {review_mode.value} judgement.")
    if not isinstance(raw, str):
        raise InvalidJudgement(f"Judgement must be a string, got {type(raw).__name__}.")
    try:
        return vocabulary(_normalize(raw))
    except ValueError as exc:
        raise InvalidJudgement(f"{raw!r} is not a {review_mode.value} judgement.") from exc


def judgements_for(mode: Union[str, ReviewMode]) -> tuple:
    """Return every judgement accepted in ``mode``, in ascending delta order."""
    return tuple(_JUDGEMENTS[parse_mode(mode)])


def delta_for(judgement: Judgement, mode: Union[str, ReviewMode]) -> int:
    """Return the mastery delta for a judgement in the given mode."""
    validated = parse_judgement(mode, judgement)
    return _DELTAS[validated]


def apply_outcome(mastery_level: int, judgement: Judgement, mode: Union[str, ReviewMode]) -> int:
    """Return the clamped mastery after applying ``judgement``."""
    return clamp(mastery_level + delta_for(judgement, mode))


def is_positive(judgement: Judgement, mode: Union[str, ReviewMode]) -> bool:
    """Whether an outcome counts toward the session's positive tally."""
    validated = parse_judgement(mode, judgement)
    if validated is BinaryJudgement.STILL_LEARNING:
        return False
    return _DELTAS[validated] >= 0
