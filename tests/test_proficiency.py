from __future__ import annotations

import pytest

from src.engine.proficiency import assess, band, band_for_mastery, mean_score


@pytest.mark.parametrize(
    ("score", "expected"),
    [(0, "A1"), (39, "A1"), (40, "A2"), (54, "A2"), (55, "B1"), (69, "B1"), (70, "B2"), (79, "B2"), (80, "C1"), (89, "C1"), (90, "C2"), (100, "C2")],
)
def test_band_boundaries(score: int, expected: str) -> None:
    assert band(score).band == expected


def test_out_of_range_scores_are_clamped() -> None:
    assert band(-5).band == "A1"
    assert band(130).band == "C2"
    assert band(79.6).band == "C1"


def test_mean_score_rounds_half_up() -> None:
    assert mean_score([]) == 0
    assert mean_score([70, 71]) == 71
    assert mean_score([10, 20, 30]) == 20


def test_assess_placement_results() -> None:
    result = assess(
        [
            {"skill": "Vocabulary", "score": 85},
            {"skill": "grammar", "score": 60},
            {"skill": "reading", "score": 72},
        ]
    )

    assert result.overall_score == 72
    assert result.overall.band == "B2"
    assert [(entry.skill, entry.band.band) for entry in result.per_skill] == [
        ("vocabulary", "C1"),
        ("grammar", "B1"),
        ("reading", "B2"),
    ]


def test_assess_mapping_and_repeated_skill() -> None:
    result = assess([{"skill": "grammar", "score": 30}, {"skill": "grammar", "score": 95}])
    assert len(result.per_skill) == 1
    assert result.overall.band == "C2"

    assert assess({"listening": 40}).overall.description == "Basic - Elementary"


def test_assess_without_scores_is_a1() -> None:
    result = assess([])
    assert result.overall_score == 0
    assert result.overall.band == "A1"


def test_assess_rejects_blank_skill() -> None:
    with pytest.raises(ValueError):
        assess([{"skill": "  ", "score": 50}])


def test_band_for_mastery() -> None:
    average, value = band_for_mastery([100, 80, 60])
    assert average == 80
    assert value.band == "C1"
