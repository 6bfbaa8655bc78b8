"""
Tests for behavioral signals and the weighted scoring engine.
"""

import math

import pytest

from ccis.scoring.signal import (
    BehavioralSignal,
    SIGNAL_WEIGHTS,
    classify_level,
)
from ccis.shared.config import ScoringConfig
from ccis.shared.exceptions import InvalidValueError


def test_weights_sum_to_one():
    """Test that the seven weights add up to 100%."""
    assert sum(SIGNAL_WEIGHTS.values()) == pytest.approx(1.0)
    assert len(SIGNAL_WEIGHTS) == 7


@pytest.mark.parametrize("score,expected", [
    (0.0, 1),
    (0.2499, 1),
    (0.25, 2),
    (0.4999, 2),
    (0.5, 3),
    (0.8499, 3),
    (0.85, 4),
    (1.0, 4),
])
def test_level_boundaries(score, expected):
    """Test that each band includes its lower bound."""
    assert classify_level(score).level == expected


def test_level_thresholds_are_configurable():
    """Test classification against custom thresholds."""
    config = ScoringConfig(level_2_threshold=0.3, level_3_threshold=0.6, level_4_threshold=0.9)

    assert classify_level(0.25, config).level == 1
    assert classify_level(0.65, config).level == 3


def test_thresholds_must_increase():
    """Test that out-of-order thresholds are rejected."""
    with pytest.raises(ValueError):
        ScoringConfig(level_2_threshold=0.6, level_3_threshold=0.5)


def test_neutral_signal_scores_half(make_signal):
    """Test that all-0.5 measures score 0.5 with full confidence and no gaming."""
    signal = make_signal()

    assert signal.weighted_score() == pytest.approx(0.5)
    assert signal.confidence() == pytest.approx(1.0)
    assert signal.detects_gaming() is False
    assert signal.needs_intervention() is False


def test_score_stays_in_range(make_signal):
    """Test that extreme signals stay within [0, 1]."""
    best = make_signal(
        hint_request_frequency=0.0,
        error_recovery_speed=1.0,
        transfer_success_rate=1.0,
        metacognitive_accuracy=1.0,
        task_completion_efficiency=1.0,
        help_seeking_quality=1.0,
        self_assessment_alignment=1.0,
    )
    worst = make_signal(
        hint_request_frequency=1.0,
        error_recovery_speed=0.0,
        transfer_success_rate=0.0,
        metacognitive_accuracy=0.0,
        task_completion_efficiency=0.0,
        help_seeking_quality=0.0,
        self_assessment_alignment=0.0,
    )

    assert best.weighted_score() == pytest.approx(1.0)
    assert best.level().level == 4
    assert worst.weighted_score() == pytest.approx(0.0)
    assert worst.level().level == 1


def test_hint_frequency_is_inverted(make_signal):
    """Test that fewer hints raise the score."""
    frequent = make_signal(hint_request_frequency=0.9)
    rare = make_signal(hint_request_frequency=0.1)

    assert rare.weighted_score() > frequent.weighted_score()
    assert rare.weighted_score() - frequent.weighted_score() == pytest.approx(0.8 * 0.35)


def test_confidence_rewards_coverage_and_duration(make_signal):
    """Test that short, single-task signals are trusted less."""
    full = make_signal()
    thin = make_signal(assessment_duration=1, task_count=1)

    assert thin.confidence() == pytest.approx(0.6 + 0.25 / 5 + 0.15 / 15)
    assert thin.confidence() < full.confidence()


def test_near_perfect_recovery_is_gaming(make_signal):
    """Test that recovery above 0.95 is flagged."""
    assert make_signal(error_recovery_speed=0.96).detects_gaming() is True
    assert make_signal(error_recovery_speed=0.95).detects_gaming() is False


def test_no_hints_with_skill_gap_is_gaming(make_signal):
    """Test the hint-avoidance plus transfer/recovery gap pattern."""
    signal = make_signal(hint_request_frequency=0.0, error_recovery_speed=0.0)
    assert signal.detects_gaming() is True

    without_gap = make_signal(hint_request_frequency=0.0)
    assert without_gap.detects_gaming() is False


def uniform_signal(make_signal, level, **overrides):
    """Every independence-oriented measure at the same level."""
    values = {
        "hint_request_frequency": round(1.0 - level, 2),
        "error_recovery_speed": level,
        "transfer_success_rate": level,
        "metacognitive_accuracy": level,
        "task_completion_efficiency": level,
        "help_seeking_quality": level,
        "self_assessment_alignment": level,
    }
    values.update(overrides)
    return make_signal(**values)


def test_too_consistent_high_score_is_gaming(make_signal):
    """Test that a uniform profile scoring above 0.8 with full confidence is flagged."""
    signal = uniform_signal(make_signal, 0.9)

    assert signal.confidence() == pytest.approx(1.0)
    assert signal.weighted_score() == pytest.approx(0.9)
    assert signal.detects_gaming() is True


def test_consistent_moderate_score_is_not_gaming(make_signal):
    signal = uniform_signal(make_signal, 0.78)

    assert signal.confidence() == pytest.approx(1.0)
    assert signal.weighted_score() == pytest.approx(0.78)
    assert signal.detects_gaming() is False


def test_high_score_with_thin_coverage_is_not_gaming(make_signal):
    """Test that the consistency rule needs confidence above 0.95."""
    signal = uniform_signal(make_signal, 0.9, task_count=1)

    assert signal.confidence() == pytest.approx(0.8)
    assert signal.detects_gaming() is False


def test_metacognitive_mismatch_is_gaming(make_signal):
    """Test that metacognition far from transfer success is flagged."""
    signal = make_signal(metacognitive_accuracy=1.0, transfer_success_rate=0.4)
    assert signal.detects_gaming() is True


def test_intervention_needs_two_indicators(make_signal):
    """Test that one struggle indicator alone does not trigger intervention."""
    assert make_signal(hint_request_frequency=0.9).needs_intervention() is False
    assert make_signal(
        hint_request_frequency=0.9,
        error_recovery_speed=0.1,
    ).needs_intervention() is True
    assert make_signal(
        error_recovery_speed=0.1,
        transfer_success_rate=0.2,
    ).needs_intervention() is True


@pytest.mark.parametrize("field,value", [
    ("hint_request_frequency", 1.5),
    ("error_recovery_speed", -0.1),
    ("transfer_success_rate", math.nan),
    ("metacognitive_accuracy", math.inf),
    ("help_seeking_quality", "0.5"),
])
def test_invalid_measures_rejected(make_signal, field, value):
    """Test that out-of-range or non-numeric measures are rejected."""
    with pytest.raises(InvalidValueError):
        make_signal(**{field: value})


def test_duration_and_task_count_minimums(make_signal):
    """Test the minimum duration and task count."""
    with pytest.raises(InvalidValueError):
        make_signal(assessment_duration=0.5)

    with pytest.raises(InvalidValueError):
        make_signal(task_count=0)

    # InvalidValueError is also a ValueError
    with pytest.raises(ValueError):
        make_signal(task_count=1.5)


def test_from_raw_data_normalizes():
    """Test building a signal from raw counts and timings."""
    signal = BehavioralSignal.from_raw_data(
        hints_requested=2,
        total_available_hints=10,
        error_recovery_time_ms=30000,
        max_recovery_time_ms=60000,
        transfer_tasks_successful=3,
        total_transfer_tasks=4,
        self_assessment_score=0.7,
        actual_performance_score=0.8,
        task_completion_time_ms=120000,
        optimal_completion_time_ms=60000,
        strategic_help_requests=1,
        total_help_requests=2,
        self_prediction_accuracy=0.6,
        assessment_duration_minutes=10,
        task_count=2,
    )

    assert signal.hint_request_frequency == pytest.approx(0.2)
    assert signal.error_recovery_speed == pytest.approx(0.5)
    assert signal.transfer_success_rate == pytest.approx(0.75)
    assert signal.metacognitive_accuracy == pytest.approx(0.9)
    assert signal.task_completion_efficiency == pytest.approx(0.5)
    assert signal.help_seeking_quality == pytest.approx(0.5)
    assert signal.self_assessment_alignment == pytest.approx(0.6)


def test_from_raw_data_caps_and_defaults():
    """Test capping of overflowing ratios and the no-help default."""
    signal = BehavioralSignal.from_raw_data(
        hints_requested=20,
        total_available_hints=10,
        error_recovery_time_ms=90000,
        max_recovery_time_ms=60000,
        transfer_tasks_successful=1,
        total_transfer_tasks=1,
        self_assessment_score=0.5,
        actual_performance_score=0.5,
        task_completion_time_ms=30000,
        optimal_completion_time_ms=60000,
        strategic_help_requests=0,
        total_help_requests=0,
        self_prediction_accuracy=0.5,
        assessment_duration_minutes=5,
        task_count=1,
    )

    assert signal.hint_request_frequency == 1.0
    assert signal.error_recovery_speed == 0.0
    assert signal.task_completion_efficiency == 1.0
    assert signal.help_seeking_quality == 1.0


def test_from_raw_data_rejects_zero_denominators():
    """Test that zero denominators are rejected."""
    with pytest.raises(InvalidValueError):
        BehavioralSignal.from_raw_data(
            hints_requested=0,
            total_available_hints=0,
            error_recovery_time_ms=0,
            max_recovery_time_ms=60000,
            transfer_tasks_successful=0,
            total_transfer_tasks=1,
            self_assessment_score=0.5,
            actual_performance_score=0.5,
            task_completion_time_ms=1000,
            optimal_completion_time_ms=1000,
            strategic_help_requests=0,
            total_help_requests=0,
            self_prediction_accuracy=0.5,
            assessment_duration_minutes=5,
            task_count=1,
        )


def test_strongest_and_weakest(make_signal):
    """Test ranking uses independence-oriented values."""
    signal = make_signal(hint_request_frequency=0.0, error_recovery_speed=0.1)

    strongest = signal.strongest_signal()
    weakest = signal.weakest_signal()

    assert strongest["signal"] == "independence"
    assert strongest["value"] == 1.0
    assert strongest["weight"] == 0.35
    assert weakest["signal"] == "error_recovery"
    assert weakest["value"] == 0.1


def test_ties_resolve_to_first(make_signal):
    """Test that equal values rank the first measure."""
    signal = make_signal()
    assert signal.strongest_signal()["signal"] == "independence"
    assert signal.weakest_signal()["signal"] == "independence"


def test_to_dict(make_signal):
    """Test the serialized signal summary."""
    data = make_signal(hint_request_frequency=0.2).to_dict()

    assert set(data["signals"]) == set(SIGNAL_WEIGHTS)
    assert data["ccis_level"] in (1, 2, 3, 4)
    assert data["metadata"]["task_count"] == 5
    assert "timestamp" in data["metadata"]
