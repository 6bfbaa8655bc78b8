"""
Derivation formulas that turn task telemetry into the seven signal measures.

Each formula is a plain function over a TelemetrySnapshot, grouped in a
SignalFormulas bundle so a single formula can be replaced without touching
TaskInteraction or the scoring engine. transfer_success_rate and
self_assessment_alignment are stand-ins until transfer tasks and
prediction-accuracy tracking exist.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Tuple


DIFFICULTY_BASE_MINUTES: Dict[str, float] = {
    "beginner": 10,
    "intermediate": 15,
    "advanced": 20,
    "expert": 30,
}

HINTS_PER_MINUTE_CEILING = 2.0  # 2 hints/minute saturates the frequency
RECOVERY_MINUTES_FLOOR = 5.0  # 5 minute average recovery scores 0
MIN_DURATION_MINUTES = 0.1
NEUTRAL_METACOGNITION = 0.5


@dataclass(frozen=True)
class TelemetrySnapshot:
    """Read-only view of an interaction's accumulated telemetry."""
    duration_minutes: float
    hint_count: int
    strategic_hint_count: int
    recovery_times_ms: Tuple[float, ...]
    metacognitive_scores: Tuple[float, ...]
    task_difficulty: str
    scaffolding_level: int

    @property
    def error_count(self) -> int:
        return len(self.recovery_times_ms)


def hint_request_frequency(t: TelemetrySnapshot) -> float:
    """Hints per minute scaled so the independence term (1 - frequency) bottoms out at 2/min."""
    hints_per_minute = t.hint_count / max(t.duration_minutes, MIN_DURATION_MINUTES)
    return min(1.0, hints_per_minute / HINTS_PER_MINUTE_CEILING)


def error_recovery_speed(t: TelemetrySnapshot) -> float:
    if not t.recovery_times_ms:
        return 1.0
    avg_ms = sum(t.recovery_times_ms) / len(t.recovery_times_ms)
    return max(0.0, 1.0 - (avg_ms / 60000) / RECOVERY_MINUTES_FLOOR)


def proxy_transfer_success_rate(t: TelemetrySnapshot) -> float:
    """Error and hint counts as a proxy for transfer to novel problems."""
    error_score = 1.0 if t.error_count == 0 else max(0.0, 1.0 - t.error_count / 3)
    hint_score = max(0.0, 1.0 - t.hint_count / 5)
    return (error_score + hint_score) / 2


def metacognitive_accuracy(t: TelemetrySnapshot) -> float:
    if not t.metacognitive_scores:
        return NEUTRAL_METACOGNITION
    return sum(t.metacognitive_scores) / len(t.metacognitive_scores)


def expected_duration_minutes(task_difficulty: str, scaffolding_level: int) -> float:
    base = DIFFICULTY_BASE_MINUTES.get(task_difficulty, DIFFICULTY_BASE_MINUTES["intermediate"])
    return base * (1 + scaffolding_level * 0.1)


def task_completion_efficiency(t: TelemetrySnapshot) -> float:
    if t.duration_minutes <= 0:
        return 0.0
    expected = expected_duration_minutes(t.task_difficulty, t.scaffolding_level)
    return max(0.0, min(1.0, expected / t.duration_minutes))


def help_seeking_quality(t: TelemetrySnapshot) -> float:
    if t.hint_count == 0:
        return 1.0
    return t.strategic_hint_count / t.hint_count


def metacognitive_self_assessment_alignment(t: TelemetrySnapshot) -> float:
    """Reuses metacognitive accuracy until predictions are scored separately."""
    return metacognitive_accuracy(t)


Formula = Callable[[TelemetrySnapshot], float]


@dataclass(frozen=True)
class SignalFormulas:
    """Bundle of derivation strategies, one per measure."""
    hint_request_frequency: Formula = hint_request_frequency
    error_recovery_speed: Formula = error_recovery_speed
    transfer_success_rate: Formula = proxy_transfer_success_rate
    metacognitive_accuracy: Formula = metacognitive_accuracy
    task_completion_efficiency: Formula = task_completion_efficiency
    help_seeking_quality: Formula = help_seeking_quality
    self_assessment_alignment: Formula = metacognitive_self_assessment_alignment

    def derive(self, telemetry: TelemetrySnapshot) -> Dict[str, float]:
        """Apply every formula and return the measures keyed by signal field name."""
        return {
            "hint_request_frequency": self.hint_request_frequency(telemetry),
            "error_recovery_speed": self.error_recovery_speed(telemetry),
            "transfer_success_rate": self.transfer_success_rate(telemetry),
            "metacognitive_accuracy": self.metacognitive_accuracy(telemetry),
            "task_completion_efficiency": self.task_completion_efficiency(telemetry),
            "help_seeking_quality": self.help_seeking_quality(telemetry),
            "self_assessment_alignment": self.self_assessment_alignment(telemetry),
        }


DEFAULT_FORMULAS = SignalFormulas()
