"""
Behavioral signals and the weighted CCIS scoring engine.

A BehavioralSignal is the normalized 7-measure record derived from one
completed task interaction. Everything here is pure: scoring, level
classification, confidence, gaming and intervention heuristics all read
only the signal's own fields.

Weights:
    hint request frequency     35%  (inverted: fewer hints = more independent)
    error recovery speed       25%
    transfer success rate      20%
    metacognitive accuracy     10%
    task completion efficiency  5%
    help-seeking quality        3%
    self-assessment alignment   2%

Score to level:
    [0.00, 0.25) -> 1  Dependent Learner
    [0.25, 0.50) -> 2  Guided Practitioner
    [0.50, 0.85) -> 3  Self-directed Performer
    [0.85, 1.00] -> 4  Autonomous Expert
"""

import math
import statistics
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from ccis.scoring.values import CCISLevel, ConfidenceScore
from ccis.shared.config import ScoringConfig
from ccis.shared.exceptions import InvalidValueError


HINT_FREQUENCY_WEIGHT = 0.35
ERROR_RECOVERY_WEIGHT = 0.25
TRANSFER_SUCCESS_WEIGHT = 0.20
METACOGNITIVE_WEIGHT = 0.10
EFFICIENCY_WEIGHT = 0.05
HELP_SEEKING_WEIGHT = 0.03
SELF_ASSESSMENT_WEIGHT = 0.02

SIGNAL_WEIGHTS: Dict[str, float] = {
    "hint_request_frequency": HINT_FREQUENCY_WEIGHT,
    "error_recovery_speed": ERROR_RECOVERY_WEIGHT,
    "transfer_success_rate": TRANSFER_SUCCESS_WEIGHT,
    "metacognitive_accuracy": METACOGNITIVE_WEIGHT,
    "task_completion_efficiency": EFFICIENCY_WEIGHT,
    "help_seeking_quality": HELP_SEEKING_WEIGHT,
    "self_assessment_alignment": SELF_ASSESSMENT_WEIGHT,
}

MEASURE_NAMES = tuple(SIGNAL_WEIGHTS)

MIN_ASSESSMENT_DURATION = 1  # minutes
MIN_TASK_COUNT = 1

# Gaming thresholds
GAMING_HINT_THRESHOLD = 0.05
GAMING_RECOVERY_THRESHOLD = 0.95
GAMING_SKILL_GAP = 0.4
GAMING_CONSISTENT_CONFIDENCE = 0.95
GAMING_CONSISTENT_SCORE = 0.8
GAMING_METACOGNITIVE_GAP = 0.5

# Intervention thresholds
INTERVENTION_HINT_THRESHOLD = 0.8
INTERVENTION_RECOVERY_THRESHOLD = 0.2
INTERVENTION_TRANSFER_THRESHOLD = 0.3

# Confidence composition
CONSISTENCY_WEIGHT = 0.60
COVERAGE_WEIGHT = 0.25
DURATION_WEIGHT = 0.15
IDEAL_TASK_COUNT = 5
IDEAL_DURATION_MINUTES = 15

_DEFAULT_SCORING = ScoringConfig()


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


def classify_level(score: float, config: Optional[ScoringConfig] = None) -> CCISLevel:
    """
    Map a [0, 1] score to a CCIS level.

    Each band includes its lower bound, so a score of exactly 0.25 is Level 2.
    """
    cfg = config or _DEFAULT_SCORING
    if score < cfg.level_2_threshold:
        return CCISLevel(1)
    if score < cfg.level_3_threshold:
        return CCISLevel(2)
    if score < cfg.level_4_threshold:
        return CCISLevel(3)
    return CCISLevel(4)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BehavioralSignal:
    """Normalized behavioral measures for one completed task interaction."""
    hint_request_frequency: float
    error_recovery_speed: float
    transfer_success_rate: float
    metacognitive_accuracy: float
    task_completion_efficiency: float
    help_seeking_quality: float
    self_assessment_alignment: float
    assessment_duration: float
    task_count: int
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        for name in MEASURE_NAMES:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidValueError(f"{name} must be a valid number")
            if not math.isfinite(value):
                raise InvalidValueError(f"{name} must be a finite number")
            if not 0.0 <= value <= 1.0:
                raise InvalidValueError(f"{name} must be between 0.0 and 1.0")

        duration = self.assessment_duration
        if isinstance(duration, bool) or not isinstance(duration, (int, float)) or not math.isfinite(duration):
            raise InvalidValueError("assessment_duration must be a finite number")
        if duration < MIN_ASSESSMENT_DURATION:
            raise InvalidValueError(
                f"Assessment duration must be at least {MIN_ASSESSMENT_DURATION} minute"
            )

        if isinstance(self.task_count, bool) or not isinstance(self.task_count, int):
            raise InvalidValueError("task_count must be an integer")
        if self.task_count < MIN_TASK_COUNT:
            raise InvalidValueError(f"Task count must be at least {MIN_TASK_COUNT}")

        if not isinstance(self.timestamp, datetime):
            raise InvalidValueError("timestamp must be a datetime")

    @classmethod
    def from_raw_data(
        cls,
        hints_requested: int,
        total_available_hints: int,
        error_recovery_time_ms: float,
        max_recovery_time_ms: float,
        transfer_tasks_successful: int,
        total_transfer_tasks: int,
        self_assessment_score: float,
        actual_performance_score: float,
        task_completion_time_ms: float,
        optimal_completion_time_ms: float,
        strategic_help_requests: int,
        total_help_requests: int,
        self_prediction_accuracy: float,
        assessment_duration_minutes: float,
        task_count: int,
        timestamp: Optional[datetime] = None,
    ) -> "BehavioralSignal":
        """
        Build a signal from raw counts and timings, normalizing each to [0, 1].

        Denominators other than the help-request total must be positive.
        """
        for name, denominator in (
            ("total_available_hints", total_available_hints),
            ("max_recovery_time_ms", max_recovery_time_ms),
            ("total_transfer_tasks", total_transfer_tasks),
            ("task_completion_time_ms", task_completion_time_ms),
        ):
            if denominator <= 0:
                raise InvalidValueError(f"{name} must be positive")

        help_quality = (
            strategic_help_requests / total_help_requests
            if total_help_requests > 0
            else 1.0
        )

        return cls(
            hint_request_frequency=min(hints_requested / total_available_hints, 1.0),
            error_recovery_speed=1.0 - min(error_recovery_time_ms / max_recovery_time_ms, 1.0),
            transfer_success_rate=transfer_tasks_successful / total_transfer_tasks,
            metacognitive_accuracy=1.0 - abs(self_assessment_score - actual_performance_score),
            task_completion_efficiency=min(optimal_completion_time_ms / task_completion_time_ms, 1.0),
            help_seeking_quality=help_quality,
            self_assessment_alignment=self_prediction_accuracy,
            assessment_duration=assessment_duration_minutes,
            task_count=task_count,
            timestamp=timestamp or _utcnow(),
        )

    # Scoring

    def weighted_score(self) -> float:
        """Weighted CCIS score in [0, 1]."""
        independence = 1.0 - self.hint_request_frequency
        score = (
            independence * HINT_FREQUENCY_WEIGHT
            + self.error_recovery_speed * ERROR_RECOVERY_WEIGHT
            + self.transfer_success_rate * TRANSFER_SUCCESS_WEIGHT
            + self.metacognitive_accuracy * METACOGNITIVE_WEIGHT
            + self.task_completion_efficiency * EFFICIENCY_WEIGHT
            + self.help_seeking_quality * HELP_SEEKING_WEIGHT
            + self.self_assessment_alignment * SELF_ASSESSMENT_WEIGHT
        )
        return _clamp(score)

    def level(self, config: Optional[ScoringConfig] = None) -> CCISLevel:
        return classify_level(self.weighted_score(), config)

    def independence_values(self) -> Dict[str, float]:
        """Measures oriented so that higher always means more independent."""
        return {
            "independence": 1.0 - self.hint_request_frequency,
            "error_recovery": self.error_recovery_speed,
            "transfer_success": self.transfer_success_rate,
            "metacognitive": self.metacognitive_accuracy,
            "efficiency": self.task_completion_efficiency,
            "help_seeking": self.help_seeking_quality,
            "self_assessment": self.self_assessment_alignment,
        }

    def confidence(self) -> float:
        """
        Trust in this signal's classification.

        Consistency across the seven measures dominates; task coverage and
        assessment duration top it up.
        """
        values = list(self.independence_values().values())
        variance = statistics.pvariance(values)

        consistency = max(0.0, 1.0 - variance * 2)
        coverage = min(self.task_count / IDEAL_TASK_COUNT, 1.0)
        duration = min(self.assessment_duration / IDEAL_DURATION_MINUTES, 1.0)

        return _clamp(
            consistency * CONSISTENCY_WEIGHT
            + coverage * COVERAGE_WEIGHT
            + duration * DURATION_WEIGHT
        )

    def confidence_score(self) -> ConfidenceScore:
        return ConfidenceScore(self.confidence())

    # Heuristics

    def detects_gaming(self) -> bool:
        """True when the measures look manipulated rather than earned."""
        perfect_recovery = self.error_recovery_speed > GAMING_RECOVERY_THRESHOLD

        too_few_hints = self.hint_request_frequency < GAMING_HINT_THRESHOLD
        skill_gap = abs(self.transfer_success_rate - self.error_recovery_speed) > GAMING_SKILL_GAP

        too_consistent = (
            self.confidence() > GAMING_CONSISTENT_CONFIDENCE
            and self.weighted_score() > GAMING_CONSISTENT_SCORE
        )

        metacognitive_mismatch = (
            abs(self.metacognitive_accuracy - self.transfer_success_rate) > GAMING_METACOGNITIVE_GAP
        )

        return (
            perfect_recovery
            or (too_few_hints and skill_gap)
            or too_consistent
            or metacognitive_mismatch
        )

    def needs_intervention(self) -> bool:
        """True when at least two struggle indicators hold."""
        struggling = [
            self.hint_request_frequency > INTERVENTION_HINT_THRESHOLD,
            self.error_recovery_speed < INTERVENTION_RECOVERY_THRESHOLD,
            self.transfer_success_rate < INTERVENTION_TRANSFER_THRESHOLD,
        ]
        return sum(struggling) >= 2

    # Analysis

    def _ranked(self) -> List[Dict[str, Any]]:
        weights = list(SIGNAL_WEIGHTS.values())
        return [
            {"signal": name, "value": value, "weight": weight}
            for (name, value), weight in zip(self.independence_values().items(), weights)
        ]

    def strongest_signal(self) -> Dict[str, Any]:
        """Highest independence-oriented measure (first wins on ties)."""
        ranked = self._ranked()
        strongest = ranked[0]
        for entry in ranked[1:]:
            if entry["value"] > strongest["value"]:
                strongest = entry
        return strongest

    def weakest_signal(self) -> Dict[str, Any]:
        """Lowest independence-oriented measure (first wins on ties)."""
        ranked = self._ranked()
        weakest = ranked[0]
        for entry in ranked[1:]:
            if entry["value"] < weakest["value"]:
                weakest = entry
        return weakest

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signals": {name: getattr(self, name) for name in MEASURE_NAMES},
            "weighted_score": self.weighted_score(),
            "ccis_level": self.level().level,
            "confidence": self.confidence(),
            "detects_gaming": self.detects_gaming(),
            "needs_intervention": self.needs_intervention(),
            "strongest_signal": self.strongest_signal(),
            "weakest_signal": self.weakest_signal(),
            "metadata": {
                "assessment_duration": self.assessment_duration,
                "task_count": self.task_count,
                "timestamp": self.timestamp.isoformat(),
            },
        }

    def __str__(self) -> str:
        score = self.weighted_score()
        return (
            f"Behavioral Signal: CCIS Level {self.level().level} "
            f"({round(score * 100)}%, {round(self.confidence() * 100)}% confidence)"
        )
