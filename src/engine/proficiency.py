"""CEFR banding of aggregate scores."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple, Union

from src.engine.mastery import clamp


SKILLS: Tuple[str, ...] = ("vocabulary", "grammar", "reading", "listening", "speaking", "writing")


@dataclass(frozen=True, slots=True)
class ProficiencyBand:
    band: str
    description: str
    threshold_low: int


# Evaluated high-to-low; the first threshold the score reaches wins.
BANDS: Tuple[ProficiencyBand, ...] = (
    ProficiencyBand("C2", "Proficient - Mastery", 90),
    ProficiencyBand("C1", "Proficient - Advanced", 80),
    ProficiencyBand("B2", "Independent - Upper Intermediate", 70),
    ProficiencyBand("B1", "Independent - Intermediate", 55),
    ProficiencyBand("A2", "Basic - Elementary", 40),
    ProficiencyBand("A1", "Basic - Beginner", 0),
)


@dataclass(frozen=True, slots=True)
class SkillBand:
    skill: str
    score: int
    band: ProficiencyBand


@dataclass(frozen=True, slots=True)
class Assessment:
    overall_score: int
    overall: ProficiencyBand
    per_skill: List[SkillBand]


def band(score: Union[int, float]) -> ProficiencyBand:
    """Return the CEFR band for a 0-100 score; out-of-range scores are clamped."""
    value = clamp(score)
    for candidate in BANDS:
        if value >= candidate.threshold_low:
            return candidate
    return BANDS[-1]  # pragma: no cover - A1 threshold is 0


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def mean_score(scores: Iterable[Union[int, float]]) -> int:
    values = [clamp(score) for score in scores]
    if not values:
        return 0
    return _round_half_up(sum(values) / len(values))


def assess(scores: Union[Mapping[str, Union[int, float]], Sequence[Mapping[str, object]]]) -> Assessment:
    """Band each skill and the unweighted mean across skills.

    ``scores`` is either ``{skill: score}`` or a list of ``{"skill", "score"}``
    records as produced by a placement test. A repeated skill keeps its last score.
    """
    collected: Dict[str, int] = {}
    if isinstance(scores, Mapping):
        entries = [{"skill": skill, "score": score} for skill, score in scores.items()]
    else:
        entries = list(scores)

    for entry in entries:
        skill = str(entry["skill"]).strip().lower()
        if not skill:
            raise ValueError("Skill name must not be empty.")
        collected[skill] = clamp(entry["score"])

    per_skill = [SkillBand(skill=skill, score=score, band=band(score)) for skill, score in collected.items()]
    overall_score = mean_score(collected.values())
    return Assessment(overall_score=overall_score, overall=band(overall_score), per_skill=per_skill)


def band_for_mastery(levels: Iterable[int]) -> Tuple[int, ProficiencyBand]:
    """Band the rounded average mastery of a set of items."""
    average = mean_score(levels)
    return average, band(average)
