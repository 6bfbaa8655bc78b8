"""
Task interaction tracking and behavioral signal derivation.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ccis.scoring.signal import BehavioralSignal, MIN_ASSESSMENT_DURATION
from ccis.signals.formulas import (
    DEFAULT_FORMULAS,
    DIFFICULTY_BASE_MINUTES,
    SignalFormulas,
    TelemetrySnapshot,
)
from ccis.shared.exceptions import InvalidValueError, StateViolationError
from ccis.shared.logging import get_logger, log_with_context

logger = get_logger(__name__)

Clock = Callable[[], datetime]


def utc_clock() -> datetime:
    return datetime.now(timezone.utc)


class InteractionStatus(str, Enum):
    """Task interaction lifecycle states."""
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"
    FLAGGED = "FLAGGED"
    UNDER_REVIEW = "UNDER_REVIEW"


class HintType(str, Enum):
    CONCEPTUAL_HELP = "CONCEPTUAL_HELP"
    PROCEDURAL_GUIDANCE = "PROCEDURAL_GUIDANCE"
    EXAMPLE_REQUEST = "EXAMPLE_REQUEST"
    CLARIFICATION = "CLARIFICATION"
    RESOURCE_POINTER = "RESOURCE_POINTER"
    STRATEGY_SUGGESTION = "STRATEGY_SUGGESTION"


class ErrorType(str, Enum):
    CALCULATION_ERROR = "CALCULATION_ERROR"
    CONCEPTUAL_MISUNDERSTANDING = "CONCEPTUAL_MISUNDERSTANDING"
    PROCEDURAL_MISTAKE = "PROCEDURAL_MISTAKE"
    INTERPRETATION_ERROR = "INTERPRETATION_ERROR"
    CARELESS_MISTAKE = "CARELESS_MISTAKE"
    INCOMPLETE_SOLUTION = "INCOMPLETE_SOLUTION"


class ErrorSeverity(str, Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    MAJOR = "major"
    CRITICAL = "critical"


# Statuses that still accept telemetry
OPEN_STATUSES = frozenset({InteractionStatus.IN_PROGRESS, InteractionStatus.FLAGGED})

TRANSITIONS: Dict[InteractionStatus, frozenset] = {
    InteractionStatus.IN_PROGRESS: frozenset({
        InteractionStatus.COMPLETED,
        InteractionStatus.ABANDONED,
        InteractionStatus.FLAGGED,
        InteractionStatus.UNDER_REVIEW,
    }),
    InteractionStatus.FLAGGED: frozenset({
        InteractionStatus.COMPLETED,
        InteractionStatus.ABANDONED,
        InteractionStatus.FLAGGED,
        InteractionStatus.UNDER_REVIEW,
    }),
    InteractionStatus.COMPLETED: frozenset({InteractionStatus.UNDER_REVIEW}),
    InteractionStatus.ABANDONED: frozenset(),
    InteractionStatus.UNDER_REVIEW: frozenset(),
}

RAPID_HINT_COUNT = 3
RAPID_HINT_WINDOW_MS = 30000
EXCESSIVE_HINT_COUNT = 10
REPEATED_ERROR_COUNT = 3
MAX_SCAFFOLDING_LEVEL = 5


@dataclass(frozen=True)
class HintRequest:
    hint_type: HintType
    request_time_ms: float
    strategic: bool
    content: Optional[str] = None


@dataclass(frozen=True)
class ErrorRecovery:
    error_type: ErrorType
    error_time_ms: float
    recovery_time_ms: float
    self_corrected: bool
    strategy: str
    severity: ErrorSeverity


@dataclass(frozen=True)
class SelfAssessment:
    confidence_prediction: float
    difficulty_prediction: float
    actual_confidence: float
    actual_difficulty: float
    metacognitive_accuracy: float
    reflection: Optional[str] = None


@dataclass(frozen=True)
class ResourceAccess:
    resource_type: str
    access_time_ms: float


@dataclass(frozen=True)
class PeerConsultation:
    consultation_type: str
    duration_ms: float


@dataclass(frozen=True)
class InteractionEvent:
    timestamp: datetime
    event_type: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PerformanceMetrics:
    """Interaction-level performance summary, each value in [0, 1]."""
    accuracy: float
    efficiency: float
    independence: float
    persistence: float
    metacognition: float
    transferability: float
    collaboration: float


def classify_error_severity(recovery_time_ms: float) -> ErrorSeverity:
    recovery_minutes = recovery_time_ms / 60000
    if recovery_minutes < 0.5:
        return ErrorSeverity.MINOR
    if recovery_minutes < 2:
        return ErrorSeverity.MODERATE
    if recovery_minutes < 5:
        return ErrorSeverity.MAJOR
    return ErrorSeverity.CRITICAL


class TaskInteraction:
    """
    One learner's attempt at one task inside an assessment session.

    Collects hint, error, self-assessment, resource and peer telemetry while
    open, runs interaction-level gaming checks as telemetry arrives, and on
    completion derives exactly one BehavioralSignal.
    """

    def __init__(
        self,
        interaction_id: str,
        session_id: str,
        task_id: str,
        person_id: str,
        competency_id: str,
        task_difficulty: str = "intermediate",
        scaffolding_level: int = 0,
        prior_attempts: int = 0,
        clock: Optional[Clock] = None,
        formulas: Optional[SignalFormulas] = None,
    ):
        for name, value in (
            ("interaction_id", interaction_id),
            ("session_id", session_id),
            ("task_id", task_id),
            ("person_id", person_id),
            ("competency_id", competency_id),
        ):
            if not value:
                raise InvalidValueError(f"Task interaction requires {name}")

        if task_difficulty not in DIFFICULTY_BASE_MINUTES:
            raise InvalidValueError(
                f"Task difficulty must be one of: {', '.join(DIFFICULTY_BASE_MINUTES)}"
            )

        if not isinstance(scaffolding_level, int) or not 0 <= scaffolding_level <= MAX_SCAFFOLDING_LEVEL:
            raise InvalidValueError(
                f"Scaffolding level must be between 0 and {MAX_SCAFFOLDING_LEVEL}"
            )

        self.interaction_id = interaction_id
        self.session_id = session_id
        self.task_id = task_id
        self.person_id = person_id
        self.competency_id = competency_id
        self.task_difficulty = task_difficulty
        self.scaffolding_level = scaffolding_level
        self.prior_attempts = prior_attempts

        self._clock = clock or utc_clock
        self._formulas = formulas or DEFAULT_FORMULAS

        self.start_time = self._clock()
        self._end_time: Optional[datetime] = None
        self._status = InteractionStatus.IN_PROGRESS

        self._hints: List[HintRequest] = []
        self._errors: List[ErrorRecovery] = []
        self._self_assessments: List[SelfAssessment] = []
        self._resources: List[ResourceAccess] = []
        self._peer_consultations: List[PeerConsultation] = []
        self._flags: List[str] = []
        self._events: List[InteractionEvent] = []

        self._performance: Optional[PerformanceMetrics] = None
        self._signal: Optional[BehavioralSignal] = None

        self._log_event("INTERACTION_STARTED", {
            "competency_id": competency_id,
            "task_difficulty": task_difficulty,
            "scaffolding_level": scaffolding_level,
        })

    # Recording

    def record_hint_request(
        self,
        hint_type: HintType,
        request_time_ms: float,
        strategic: bool = False,
        content: Optional[str] = None,
    ) -> None:
        """Record a hint request at an offset (ms) from the interaction start."""
        self._ensure_open()

        self._hints.append(HintRequest(HintType(hint_type), request_time_ms, strategic, content))
        self._log_event("HINT_REQUESTED", {
            "hint_type": HintType(hint_type).value,
            "request_time_ms": request_time_ms,
            "strategic": strategic,
            "total_hints": len(self._hints),
        })

        self._check_hint_patterns()

    def record_error_recovery(
        self,
        error_type: ErrorType,
        error_time_ms: float,
        recovery_time_ms: float,
        self_corrected: bool = True,
        strategy: Optional[str] = None,
    ) -> None:
        """Record an error and how long the learner took to recover from it."""
        self._ensure_open()
        if recovery_time_ms < 0:
            raise InvalidValueError("Recovery time cannot be negative")

        severity = classify_error_severity(recovery_time_ms)
        self._errors.append(ErrorRecovery(
            error_type=ErrorType(error_type),
            error_time_ms=error_time_ms,
            recovery_time_ms=recovery_time_ms,
            self_corrected=self_corrected,
            strategy=strategy or "unknown",
            severity=severity,
        ))
        self._log_event("ERROR_RECOVERY", {
            "error_type": ErrorType(error_type).value,
            "recovery_time_ms": recovery_time_ms,
            "self_corrected": self_corrected,
            "severity": severity.value,
        })

        self._check_error_patterns()

    def record_self_assessment(
        self,
        confidence_prediction: float,
        difficulty_prediction: float,
        actual_confidence: float,
        actual_difficulty: float,
        reflection: Optional[str] = None,
    ) -> SelfAssessment:
        """
        Record a before/after self-assessment.

        Confidences are on a 0-1 scale, difficulties on a 1-5 scale.
        """
        self._ensure_open()
        for name, value in (
            ("confidence_prediction", confidence_prediction),
            ("actual_confidence", actual_confidence),
        ):
            if not 0.0 <= value <= 1.0:
                raise InvalidValueError(f"{name} must be between 0 and 1")
        for name, value in (
            ("difficulty_prediction", difficulty_prediction),
            ("actual_difficulty", actual_difficulty),
        ):
            if not 1.0 <= value <= 5.0:
                raise InvalidValueError(f"{name} must be between 1 and 5")

        confidence_accuracy = 1 - abs(confidence_prediction - actual_confidence)
        difficulty_accuracy = 1 - abs(difficulty_prediction - actual_difficulty) / 4
        assessment = SelfAssessment(
            confidence_prediction=confidence_prediction,
            difficulty_prediction=difficulty_prediction,
            actual_confidence=actual_confidence,
            actual_difficulty=actual_difficulty,
            metacognitive_accuracy=(confidence_accuracy + difficulty_accuracy) / 2,
            reflection=reflection,
        )
        self._self_assessments.append(assessment)

        self._log_event("SELF_ASSESSMENT", {
            "metacognitive_accuracy": assessment.metacognitive_accuracy,
            "confidence_gap": actual_confidence - confidence_prediction,
            "difficulty_gap": actual_difficulty - difficulty_prediction,
        })
        return assessment

    def record_resource_access(self, resource_type: str, access_time_ms: float) -> None:
        self._ensure_open()
        self._resources.append(ResourceAccess(resource_type, access_time_ms))
        self._log_event("RESOURCE_ACCESSED", {
            "resource_type": resource_type,
            "access_time_ms": access_time_ms,
            "total_resources": len(self._resources),
        })

    def record_peer_consultation(self, consultation_type: str, duration_ms: float) -> None:
        self._ensure_open()
        self._peer_consultations.append(PeerConsultation(consultation_type, duration_ms))
        self._log_event("PEER_CONSULTATION", {
            "consultation_type": consultation_type,
            "duration_ms": duration_ms,
            "total_consultations": len(self._peer_consultations),
        })

    # Lifecycle

    def complete_interaction(self, accuracy: float, actual_difficulty: float) -> BehavioralSignal:
        """
        Close the interaction and derive its behavioral signal.

        Args:
            accuracy: Graded accuracy of the final answer (0-1)
            actual_difficulty: Learner-perceived difficulty (1-5)

        Returns:
            The derived BehavioralSignal
        """
        self._ensure_open()
        if not 0.0 <= accuracy <= 1.0:
            raise InvalidValueError("Accuracy must be between 0 and 1")
        if not 1.0 <= actual_difficulty <= 5.0:
            raise InvalidValueError("actual_difficulty must be between 1 and 5")

        # State changes only after the signal is built
        end_time = self._clock()
        telemetry = self._telemetry(end_time)
        measures = self._formulas.derive(telemetry)
        signal = self._build_signal(measures, telemetry, end_time)
        performance = self._calculate_performance(accuracy, measures)

        self._transition(InteractionStatus.COMPLETED)
        self._end_time = end_time
        self._performance = performance
        self._signal = signal

        self._log_event("INTERACTION_COMPLETED", {
            "duration_ms": self.duration_ms,
            "accuracy": accuracy,
            "actual_difficulty": actual_difficulty,
            "weighted_score": signal.weighted_score(),
        })
        log_with_context(
            logger, logging.INFO,
            f"Interaction {self.interaction_id} completed",
            person_id=self.person_id,
            action="interaction_completed",
            session_id=self.session_id,
            task_id=self.task_id,
            flags=len(self._flags),
        )
        return signal

    def abandon(self) -> None:
        """Close the interaction without producing a signal."""
        self._transition(InteractionStatus.ABANDONED)
        self._end_time = self._clock()
        self._log_event("INTERACTION_ABANDONED", {"duration_ms": self.duration_ms})

    def flag_for_review(self, reason: str) -> None:
        """
        Flag the interaction as suspicious.

        Telemetry keeps flowing and the interaction can still complete.
        """
        self._transition(InteractionStatus.FLAGGED)
        if reason in self._flags:
            return

        self._flags.append(reason)
        self._log_event("INTERACTION_FLAGGED", {
            "reason": reason,
            "total_flags": len(self._flags),
        })
        log_with_context(
            logger, logging.WARNING,
            f"Interaction {self.interaction_id} flagged: {reason}",
            person_id=self.person_id,
            action="interaction_flagged",
            session_id=self.session_id,
        )

    def mark_under_review(self) -> None:
        """Escalate the interaction for human review; no further telemetry."""
        self._transition(InteractionStatus.UNDER_REVIEW)
        self._log_event("INTERACTION_UNDER_REVIEW", {"flags": list(self._flags)})

    def generate_behavioral_signal(self) -> BehavioralSignal:
        """Return the signal derived when the interaction completed."""
        if self._signal is None:
            raise StateViolationError(
                "Cannot generate behavioral signal for incomplete interaction"
            )
        return self._signal

    # Read accessors

    @property
    def status(self) -> InteractionStatus:
        return self._status

    @property
    def end_time(self) -> Optional[datetime]:
        return self._end_time

    @property
    def duration_ms(self) -> float:
        end = self._end_time or self._clock()
        return max((end - self.start_time).total_seconds() * 1000, 0.0)

    @property
    def hint_requests(self) -> Tuple[HintRequest, ...]:
        return tuple(self._hints)

    @property
    def error_recoveries(self) -> Tuple[ErrorRecovery, ...]:
        return tuple(self._errors)

    @property
    def self_assessments(self) -> Tuple[SelfAssessment, ...]:
        return tuple(self._self_assessments)

    @property
    def resource_accesses(self) -> Tuple[ResourceAccess, ...]:
        return tuple(self._resources)

    @property
    def peer_consultations(self) -> Tuple[PeerConsultation, ...]:
        return tuple(self._peer_consultations)

    @property
    def gaming_flags(self) -> Tuple[str, ...]:
        return tuple(self._flags)

    @property
    def interaction_events(self) -> Tuple[InteractionEvent, ...]:
        return tuple(self._events)

    def performance_metrics(self) -> PerformanceMetrics:
        if self._performance is None:
            raise StateViolationError(
                "Performance metrics not available for incomplete interaction"
            )
        return self._performance

    def summary(self) -> Dict[str, Any]:
        return {
            "interaction_id": self.interaction_id,
            "status": self._status.value,
            "duration_ms": self.duration_ms,
            "hints_used": len(self._hints),
            "errors_recovered": len(self._errors),
            "resources_accessed": len(self._resources),
            "peer_consultations": len(self._peer_consultations),
            "gaming_flags": len(self._flags),
            "performance_score": self._performance.accuracy if self._performance else 0.0,
        }

    # Internals

    def _telemetry(self, end_time: Optional[datetime] = None) -> TelemetrySnapshot:
        end = end_time or self._end_time or self._clock()
        elapsed_ms = max((end - self.start_time).total_seconds() * 1000, 0.0)
        return TelemetrySnapshot(
            duration_minutes=elapsed_ms / 60000,
            hint_count=len(self._hints),
            strategic_hint_count=sum(1 for h in self._hints if h.strategic),
            recovery_times_ms=tuple(e.recovery_time_ms for e in self._errors),
            metacognitive_scores=tuple(s.metacognitive_accuracy for s in self._self_assessments),
            task_difficulty=self.task_difficulty,
            scaffolding_level=self.scaffolding_level,
        )

    def _build_signal(
        self,
        measures: Dict[str, float],
        telemetry: TelemetrySnapshot,
        end_time: datetime,
    ) -> BehavioralSignal:
        return BehavioralSignal(
            **measures,
            assessment_duration=max(telemetry.duration_minutes, MIN_ASSESSMENT_DURATION),
            task_count=1,
            timestamp=end_time,
        )

    def _calculate_performance(self, accuracy: float, measures: Dict[str, float]) -> PerformanceMetrics:
        return PerformanceMetrics(
            accuracy=accuracy,
            efficiency=measures["task_completion_efficiency"],
            independence=1.0 - measures["hint_request_frequency"],
            persistence=measures["error_recovery_speed"],
            metacognition=measures["metacognitive_accuracy"],
            transferability=measures["transfer_success_rate"],
            collaboration=0.8 if self._peer_consultations else 0.5,
        )

    def _check_hint_patterns(self) -> None:
        if len(self._hints) >= RAPID_HINT_COUNT:
            recent = self._hints[-RAPID_HINT_COUNT:]
            span = recent[-1].request_time_ms - recent[0].request_time_ms
            if span < RAPID_HINT_WINDOW_MS:
                self.flag_for_review("RAPID_HINT_REQUESTS")

        if len(self._hints) > EXCESSIVE_HINT_COUNT:
            self.flag_for_review("EXCESSIVE_HINT_DEPENDENCY")

    def _check_error_patterns(self) -> None:
        counts = Counter(e.error_type for e in self._errors)
        for error_type, count in counts.items():
            if count >= REPEATED_ERROR_COUNT:
                self.flag_for_review(f"REPEATED_{error_type.value}_ERRORS")

    def _ensure_open(self) -> None:
        if self._status not in OPEN_STATUSES:
            raise StateViolationError(
                f"Cannot record telemetry on a {self._status.value} interaction"
            )

    def _transition(self, target: InteractionStatus) -> None:
        if target not in TRANSITIONS[self._status]:
            raise StateViolationError(
                f"Cannot move interaction from {self._status.value} to {target.value}"
            )
        self._status = target

    def _log_event(self, event_type: str, data: Dict[str, Any]) -> None:
        self._events.append(InteractionEvent(self._clock(), event_type, data))
