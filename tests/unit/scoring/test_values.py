"""
Tests for CCIS value types.
"""

import math

import pytest

from ccis.scoring.values import CCISLevel, CompetencyId, ConfidenceScore, PersonId, TaskId
from ccis.shared.exceptions import InvalidValueError


@pytest.mark.parametrize("level", [0, 5, -1])
def test_level_out_of_range(level):
    """Test that levels outside 1-4 are rejected."""
    with pytest.raises(InvalidValueError):
        CCISLevel(level)


def test_level_rejects_non_integers():
    with pytest.raises(InvalidValueError):
        CCISLevel(2.0)
    with pytest.raises(InvalidValueError):
        CCISLevel(True)


def test_level_ordering_and_advancement():
    """Test comparison and single-step advancement."""
    one, two, three = CCISLevel(1), CCISLevel(2), CCISLevel(3)

    assert one < two < three
    assert CCISLevel(2) == two
    assert one.can_advance_to(two)
    assert not one.can_advance_to(three)
    assert one.is_min_level()
    assert CCISLevel(4).is_max_level()


def test_level_descriptions():
    level = CCISLevel(3)

    assert level.display_name == "Self-directed Performer"
    assert level.percentage_range == (50, 85)
    assert int(level) == 3
    assert str(level) == "Level 3: Self-directed Performer"


@pytest.mark.parametrize("value,band", [
    (0.0, "low"),
    (0.39, "low"),
    (0.4, "moderate"),
    (0.69, "moderate"),
    (0.7, "high"),
    (0.9, "very_high"),
    (1.0, "very_high"),
])
def test_confidence_bands(value, band):
    """Test confidence band boundaries."""
    assert ConfidenceScore(value).band == band


def test_confidence_validation():
    """Test that out-of-range confidences are rejected."""
    for bad in (-0.01, 1.01, math.nan, "0.5"):
        with pytest.raises(InvalidValueError):
            ConfidenceScore(bad)


def test_confidence_helpers():
    score = ConfidenceScore(0.75)

    assert score.percentage == 75
    assert score.is_reliable()
    assert score.allows_progression()
    assert not ConfidenceScore(0.35).allows_progression()
    assert float(score) == 0.75


@pytest.mark.parametrize("cls", [PersonId, CompetencyId, TaskId])
def test_identifiers_must_be_non_empty(cls):
    """Test that blank identifiers are rejected."""
    with pytest.raises(InvalidValueError):
        cls("")
    with pytest.raises(InvalidValueError):
        cls("   ")

    assert str(cls("abc")) == "abc"
