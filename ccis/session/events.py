"""
Transition outcomes recorded by an assessment session.

Sessions append these to an outbox; callers drain it with
AssessmentSession.pull_events() and forward them to whatever delivers
notifications.
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union


class GamingDetectionKind(str, Enum):
    INDIVIDUAL_SIGNAL_GAMING = "INDIVIDUAL_SIGNAL_GAMING"
    PATTERN_INCONSISTENCY = "PATTERN_INCONSISTENCY"


def _serialize(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class _SessionEventBase:
    session_id: str
    person_id: str
    competency_id: str
    occurred_at: datetime

    event_type = "SESSION_EVENT"

    def to_dict(self) -> Dict[str, Any]:
        data = {key: _serialize(value) for key, value in asdict(self).items()}
        data["event_type"] = self.event_type
        return data


@dataclass(frozen=True)
class SessionStarted(_SessionEventBase):
    session_type: str = ""
    max_duration_minutes: int = 0

    event_type = "SESSION_STARTED"


@dataclass(frozen=True)
class LevelAchieved(_SessionEventBase):
    previous_level: int = 1
    new_level: int = 1
    confidence: float = 0.0

    event_type = "LEVEL_ACHIEVED"


@dataclass(frozen=True)
class GamingDetected(_SessionEventBase):
    kind: GamingDetectionKind = GamingDetectionKind.INDIVIDUAL_SIGNAL_GAMING
    signal_score: float = 0.0
    score_variance: Optional[float] = None

    event_type = "GAMING_DETECTED"


@dataclass(frozen=True)
class InterventionTriggered(_SessionEventBase):
    intervention_type: str = ""
    current_level: int = 1
    confidence: float = 0.0

    event_type = "INTERVENTION_TRIGGERED"


@dataclass(frozen=True)
class SessionCompleted(_SessionEventBase):
    final_level: int = 1
    confidence: float = 0.0
    signal_count: int = 0
    improvement_rate: float = 0.0
    analytics: Dict[str, Any] = field(default_factory=dict)

    event_type = "SESSION_COMPLETED"


@dataclass(frozen=True)
class SessionTerminated(_SessionEventBase):
    reason: str = ""
    previous_status: str = ""

    event_type = "SESSION_TERMINATED"


SessionEvent = Union[
    SessionStarted,
    LevelAchieved,
    GamingDetected,
    InterventionTriggered,
    SessionCompleted,
    SessionTerminated,
]
