"""
Self-validating value types consumed by the scoring engine and sessions.
"""

import math
from dataclasses import dataclass
from typing import Dict, Tuple

from ccis.shared.exceptions import InvalidValueError


def _require_identifier(kind: str, value: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise InvalidValueError(f"{kind} must be a non-empty string")


@dataclass(frozen=True)
class PersonId:
    """Opaque learner identifier."""
    value: str

    def __post_init__(self):
        _require_identifier("PersonId", self.value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CompetencyId:
    """Opaque competency identifier."""
    value: str

    def __post_init__(self):
        _require_identifier("CompetencyId", self.value)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TaskId:
    """Opaque task identifier."""
    value: str

    def __post_init__(self):
        _require_identifier("TaskId", self.value)

    def __str__(self) -> str:
        return self.value


_LEVEL_NAMES: Dict[int, str] = {
    1: "Dependent Learner",
    2: "Guided Practitioner",
    3: "Self-directed Performer",
    4: "Autonomous Expert",
}

_LEVEL_DESCRIPTIONS: Dict[int, str] = {
    1: "0-25% mastery with high scaffolding needed",
    2: "25-50% mastery with moderate scaffolding needed",
    3: "50-85% mastery with minimal scaffolding needed",
    4: "85-100% mastery with no scaffolding needed",
}

_LEVEL_RANGES: Dict[int, Tuple[int, int]] = {
    1: (0, 25),
    2: (25, 50),
    3: (50, 85),
    4: (85, 100),
}


@dataclass(frozen=True, order=True)
class CCISLevel:
    """Confidence-Competence Independence Scale level (1-4)."""
    level: int

    MIN_LEVEL = 1
    MAX_LEVEL = 4

    def __post_init__(self):
        if isinstance(self.level, bool) or not isinstance(self.level, int):
            raise InvalidValueError("CCIS level must be an integer")
        if not self.MIN_LEVEL <= self.level <= self.MAX_LEVEL:
            raise InvalidValueError(
                f"CCIS level must be between {self.MIN_LEVEL} and {self.MAX_LEVEL}"
            )

    @property
    def display_name(self) -> str:
        return _LEVEL_NAMES[self.level]

    @property
    def description(self) -> str:
        return _LEVEL_DESCRIPTIONS[self.level]

    @property
    def percentage_range(self) -> Tuple[int, int]:
        """(min, max) mastery percentage covered by this level."""
        return _LEVEL_RANGES[self.level]

    def can_advance_to(self, other: "CCISLevel") -> bool:
        """True when `other` is exactly the next level."""
        return other.level == self.level + 1

    def is_max_level(self) -> bool:
        return self.level == self.MAX_LEVEL

    def is_min_level(self) -> bool:
        return self.level == self.MIN_LEVEL

    def __int__(self) -> int:
        return self.level

    def __str__(self) -> str:
        return f"Level {self.level}: {self.display_name}"


@dataclass(frozen=True, order=True)
class ConfidenceScore:
    """Statistical trust in a level classification, in [0, 1]."""
    value: float

    LOW_THRESHOLD = 0.4
    MODERATE_THRESHOLD = 0.7
    HIGH_THRESHOLD = 0.9
    MIN_PROGRESSION_CONFIDENCE = 0.4
    MIN_RELIABLE_CONFIDENCE = 0.7

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise InvalidValueError("Confidence must be a number")
        if not math.isfinite(self.value):
            raise InvalidValueError("Confidence must be finite")
        if not 0.0 <= self.value <= 1.0:
            raise InvalidValueError("Confidence must be between 0.0 and 1.0")

    @property
    def percentage(self) -> int:
        return round(self.value * 100)

    @property
    def band(self) -> str:
        """One of low, moderate, high, very_high."""
        if self.value < self.LOW_THRESHOLD:
            return "low"
        if self.value < self.MODERATE_THRESHOLD:
            return "moderate"
        if self.value < self.HIGH_THRESHOLD:
            return "high"
        return "very_high"

    def is_reliable(self) -> bool:
        return self.value >= self.MIN_RELIABLE_CONFIDENCE

    def allows_progression(self) -> bool:
        return self.value >= self.MIN_PROGRESSION_CONFIDENCE

    def __float__(self) -> float:
        return float(self.value)

    def __str__(self) -> str:
        return f"{self.percentage}% ({self.band})"
