"""Mastery and spaced-repetition scheduling core."""

from .due import BatchSelection, SelectionSource, select_batch, select_due, select_explicit
from .mastery import MasteryCategory, category_of, clamp
from .outcomes import (
    BinaryJudgement,
    GradedJudgement,
    QuizJudgement,
    ReviewMode,
    apply_outcome,
    delta_for,
    parse_judgement,
)
from .proficiency import Assessment, ProficiencyBand, assess, band
from .schedule import ReviewSchedule, calculate_next_review
from .session import ReviewSession, SessionState, SessionSummary

__all__ = [
    "Assessment",
    "BatchSelection",
    "BinaryJudgement",
    "GradedJudgement",
    "MasteryCategory",
    "ProficiencyBand",
    "QuizJudgement",
    "ReviewMode",
    "ReviewSchedule",
    "ReviewSession",
    "SelectionSource",
    "SessionState",
    "SessionSummary",
    "apply_outcome",
    "assess",
    "band",
    "calculate_next_review",
    "category_of",
    "clamp",
    "delta_for",
    "parse_judgement",
    "select_batch",
    "select_due",
    "select_explicit",
]
