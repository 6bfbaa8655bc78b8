"""
Assessment session: aggregates behavioral signals into a CCIS level.

The session is the consistency boundary for one learner's assessment. It
accepts signals while ACTIVE, keeps a confidence-weighted running level,
watches for gaming, raises interventions (each at most once), and records
every notable transition in an outbox that callers drain with pull_events().
"""

import logging
import math
import statistics
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ccis.scoring.signal import BehavioralSignal, classify_level
from ccis.scoring.values import CCISLevel, CompetencyId, ConfidenceScore, PersonId
from ccis.session.events import (
    GamingDetected,
    GamingDetectionKind,
    InterventionTriggered,
    LevelAchieved,
    SessionCompleted,
    SessionEvent,
    SessionStarted,
    SessionTerminated,
)
from ccis.session.snapshots import (
    AssessmentReliability,
    CompetencyProgress,
    SessionAnalytics,
    SessionProgress,
)
from ccis.signals.interaction import Clock, utc_clock
from ccis.shared.config import ScoringConfig, SessionConfig, get_settings
from ccis.shared.exceptions import InvalidValueError, StateViolationError
from ccis.shared.logging import get_logger, log_with_context

logger = get_logger(__name__)


class SessionStatus(str, Enum):
    """Assessment session lifecycle states."""
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    TERMINATED = "TERMINATED"
    UNDER_REVIEW = "UNDER_REVIEW"


class SessionType(str, Enum):
    MICRO_TASK = "MICRO_TASK"
    FUSION_TASK = "FUSION_TASK"
    PORTFOLIO = "PORTFOLIO"
    PEER_ASSESSMENT = "PEER_ASSESSMENT"
    SELF_ASSESSMENT = "SELF_ASSESSMENT"
    DIAGNOSTIC = "DIAGNOSTIC"
    FORMATIVE = "FORMATIVE"
    SUMMATIVE = "SUMMATIVE"


class InterventionType(str, Enum):
    SCAFFOLDING_INCREASE = "SCAFFOLDING_INCREASE"
    SCAFFOLDING_DECREASE = "SCAFFOLDING_DECREASE"
    HINT_AVAILABILITY = "HINT_AVAILABILITY"
    PEER_SUPPORT = "PEER_SUPPORT"
    INSTRUCTOR_REVIEW = "INSTRUCTOR_REVIEW"
    ALTERNATIVE_PATHWAY = "ALTERNATIVE_PATHWAY"
    BREAK_RECOMMENDATION = "BREAK_RECOMMENDATION"
    GAMING_INTERVENTION = "GAMING_INTERVENTION"


TERMINAL_STATUSES = frozenset({SessionStatus.COMPLETED, SessionStatus.TERMINATED})

TRANSITIONS: Dict[SessionStatus, frozenset] = {
    SessionStatus.PLANNED: frozenset({SessionStatus.ACTIVE, SessionStatus.TERMINATED}),
    SessionStatus.ACTIVE: frozenset({
        SessionStatus.PAUSED,
        SessionStatus.COMPLETED,
        SessionStatus.TERMINATED,
        SessionStatus.UNDER_REVIEW,
    }),
    SessionStatus.PAUSED: frozenset({SessionStatus.ACTIVE, SessionStatus.TERMINATED}),
    SessionStatus.UNDER_REVIEW: frozenset({SessionStatus.ACTIVE, SessionStatus.TERMINATED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.TERMINATED: frozenset(),
}


@dataclass(frozen=True)
class GamingDetectionRecord:
    detected_at: datetime
    kind: GamingDetectionKind
    signal_score: float
    score_variance: Optional[float] = None


def _mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


class AssessmentSession:
    """Aggregate root for one learner's CCIS assessment."""

    def __init__(
        self,
        person_id: Union[PersonId, str],
        competency_id: Union[CompetencyId, str],
        session_type: SessionType = SessionType.FORMATIVE,
        max_duration_minutes: int = 60,
        session_id: Optional[str] = None,
        target_level: Optional[CCISLevel] = None,
        metadata: Optional[Dict[str, Any]] = None,
        clock: Optional[Clock] = None,
        config: Optional[SessionConfig] = None,
        scoring: Optional[ScoringConfig] = None,
    ):
        self.config = config or get_settings().session
        self.scoring = scoring or get_settings().scoring

        limit = self.config.max_duration_limit_minutes
        if (
            isinstance(max_duration_minutes, bool)
            or not isinstance(max_duration_minutes, int)
            or not 1 <= max_duration_minutes <= limit
        ):
            raise InvalidValueError(f"Maximum duration must be between 1 and {limit} minutes")

        self.session_id = session_id or uuid.uuid4().hex
        self.person_id = person_id if isinstance(person_id, PersonId) else PersonId(person_id)
        self.competency_id = (
            competency_id if isinstance(competency_id, CompetencyId) else CompetencyId(competency_id)
        )
        self.session_type = SessionType(session_type)
        self.max_duration_minutes = max_duration_minutes
        self.target_level = target_level
        self._metadata: Dict[str, Any] = dict(metadata or {})

        self._clock = clock or utc_clock
        self.created_at = self._clock()
        self._start_time: Optional[datetime] = None
        self._end_time: Optional[datetime] = None
        self._status = SessionStatus.PLANNED
        self._termination_reason: Optional[str] = None
        self._review_reason: Optional[str] = None

        self._signals: List[BehavioralSignal] = []
        self._total_interactions = 0
        self._current_level = CCISLevel(1)
        self._overall_score = 0.0
        self._overall_confidence = 0.0

        self._competency_progress: Dict[str, CompetencyProgress] = {}
        self._interventions: List[InterventionType] = []
        self._gaming_detected = False
        self._gaming_history: List[GamingDetectionRecord] = []

        self._analytics = SessionAnalytics()
        self._outbox: List[SessionEvent] = []

    # Lifecycle

    def start_session(self) -> None:
        """PLANNED -> ACTIVE. Starts the duration clock."""
        self._transition(SessionStatus.ACTIVE, allowed_from={SessionStatus.PLANNED})
        self._start_time = self._clock()

        self._emit(
            SessionStarted,
            session_type=self.session_type.value,
            max_duration_minutes=self.max_duration_minutes,
        )
        self._log(logging.INFO, "Assessment session started", "session_started")

    def pause_session(self) -> None:
        self._transition(SessionStatus.PAUSED, allowed_from={SessionStatus.ACTIVE})
        self._log(logging.INFO, "Assessment session paused", "session_paused")

    def resume_session(self) -> None:
        """Return a paused (or reviewed) session to ACTIVE unless it has run out of time."""
        if self._status not in (SessionStatus.PAUSED, SessionStatus.UNDER_REVIEW):
            raise StateViolationError(
                f"Cannot resume a session that is {self._status.value}"
            )
        if self.session_duration_minutes() >= self.max_duration_minutes:
            raise StateViolationError("Session has exceeded maximum duration")

        self._transition(SessionStatus.ACTIVE)
        self._review_reason = None
        self._log(logging.INFO, "Assessment session resumed", "session_resumed")

    def mark_under_review(self, reason: str) -> None:
        """Hold an ACTIVE session for human review."""
        self._transition(SessionStatus.UNDER_REVIEW, allowed_from={SessionStatus.ACTIVE})
        self._review_reason = reason
        self._log(logging.WARNING, f"Assessment session under review: {reason}", "session_under_review")

    def complete_session(self) -> SessionAnalytics:
        """
        Finalize an ACTIVE session.

        Requires enough signals and enough overall confidence for the level to
        be trusted.

        Returns:
            The finalized analytics snapshot
        """
        self._ensure_status(SessionStatus.ACTIVE)

        signal_count = len(self._signals)
        if signal_count < self.config.min_signals_for_completion:
            raise StateViolationError(
                f"Minimum {self.config.min_signals_for_completion} signal collections "
                f"required for session completion (have {signal_count})"
            )
        if self._overall_confidence < self.config.min_completion_confidence:
            raise StateViolationError(
                "Assessment confidence too low for reliable completion"
            )

        self._transition(SessionStatus.COMPLETED)
        self._end_time = self._clock()
        self._finalize_analytics()

        analytics = self.analytics
        self._emit(
            SessionCompleted,
            final_level=self._current_level.level,
            confidence=self._overall_confidence,
            signal_count=signal_count,
            improvement_rate=analytics.learning_metrics.improvement_rate,
            analytics=analytics.model_dump(mode="json"),
        )
        self._log(
            logging.INFO, "Assessment session completed", "session_completed",
            ccis_level=self._current_level.level,
            confidence=round(self._overall_confidence, 3),
        )
        return analytics

    def terminate_session(self, reason: str) -> None:
        """
        Hard stop from any non-terminal state.

        Terminating twice is a no-op; a COMPLETED session cannot be terminated.
        """
        if self._status == SessionStatus.TERMINATED:
            return
        if self._status == SessionStatus.COMPLETED:
            raise StateViolationError("Cannot terminate a completed session")

        previous = self._status
        self._transition(SessionStatus.TERMINATED)
        self._end_time = self._clock()
        self._termination_reason = reason

        self._emit(SessionTerminated, reason=reason, previous_status=previous.value)
        self._log(logging.WARNING, f"Assessment session terminated: {reason}", "session_terminated")

    # Signal intake

    def register_interaction(self) -> int:
        """Count a task attempt; completion rate is signals over attempts."""
        self._ensure_status(SessionStatus.ACTIVE)
        self._total_interactions += 1
        return self._total_interactions

    def record_interaction_flags(self, flags: List[str]) -> None:
        """Roll interaction-level flags up into the session's error patterns."""
        self._ensure_status(SessionStatus.ACTIVE)
        patterns = self._analytics.learning_metrics.error_patterns
        for flag in flags:
            if flag not in patterns:
                patterns.append(flag)

    def add_behavioral_signal(self, signal: BehavioralSignal) -> None:
        """Fold one task's signal into the session state."""
        self._ensure_status(SessionStatus.ACTIVE)
        if not isinstance(signal, BehavioralSignal):
            raise InvalidValueError("Expected a BehavioralSignal")

        self._signals.append(signal)
        self._total_interactions = max(self._total_interactions, len(self._signals))

        self._recalculate_level()
        self._check_gaming_patterns(signal)
        self._update_competency_progress(signal)
        self._check_intervention_triggers()
        self._update_analytics(signal)

    # Read accessors

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def start_time(self) -> Optional[datetime]:
        return self._start_time

    @property
    def end_time(self) -> Optional[datetime]:
        return self._end_time

    @property
    def termination_reason(self) -> Optional[str]:
        return self._termination_reason

    @property
    def review_reason(self) -> Optional[str]:
        return self._review_reason

    @property
    def metadata(self) -> Dict[str, Any]:
        return dict(self._metadata)

    @property
    def signals(self) -> Tuple[BehavioralSignal, ...]:
        return tuple(self._signals)

    @property
    def signal_count(self) -> int:
        return len(self._signals)

    @property
    def total_interactions(self) -> int:
        return self._total_interactions

    @property
    def current_level(self) -> CCISLevel:
        return self._current_level

    @property
    def overall_score(self) -> float:
        return self._overall_score

    @property
    def overall_confidence(self) -> ConfidenceScore:
        return ConfidenceScore(self._overall_confidence)

    @property
    def interventions_triggered(self) -> List[InterventionType]:
        return list(self._interventions)

    @property
    def gaming_pattern_detected(self) -> bool:
        return self._gaming_detected

    @property
    def gaming_detection_history(self) -> Tuple[GamingDetectionRecord, ...]:
        return tuple(self._gaming_history)

    @property
    def competency_progress(self) -> Dict[str, CompetencyProgress]:
        return dict(self._competency_progress)

    @property
    def analytics(self) -> SessionAnalytics:
        return self._analytics.model_copy(deep=True)

    def session_duration_minutes(self) -> int:
        """Whole minutes since start, measured to the end time once finalized."""
        if self._start_time is None:
            return 0
        end = self._end_time or self._clock()
        return max(math.floor((end - self._start_time).total_seconds() / 60), 0)

    def assessment_reliability(self) -> AssessmentReliability:
        if len(self._signals) < self.config.reliability_min_signals:
            return AssessmentReliability.INSUFFICIENT_DATA
        if self._overall_confidence >= 0.8 and not self._gaming_detected:
            return AssessmentReliability.HIGH
        if self._overall_confidence >= 0.6 and not self._gaming_detected:
            return AssessmentReliability.MODERATE
        return AssessmentReliability.LOW

    def progress(self) -> SessionProgress:
        return SessionProgress(
            session_id=self.session_id,
            status=self._status.value,
            total_interactions=self._total_interactions,
            signal_collection_count=len(self._signals),
            current_ccis_level=self._current_level.level,
            overall_score=self._overall_score,
            overall_confidence=self._overall_confidence,
            competency_progress=dict(self._competency_progress),
            interventions_triggered=[i.value for i in self._interventions],
            gaming_pattern_detected=self._gaming_detected,
            assessment_reliability=self.assessment_reliability(),
        )

    def pull_events(self) -> List[SessionEvent]:
        """Drain the outbox."""
        events, self._outbox = self._outbox, []
        return events

    # Aggregation

    def _recalculate_level(self) -> None:
        scores = [s.weighted_score() for s in self._signals]
        confidences = [s.confidence() for s in self._signals]
        confidence_sum = sum(confidences)

        if confidence_sum > 0:
            overall_score = sum(sc * c for sc, c in zip(scores, confidences)) / confidence_sum
        else:
            overall_score = _mean(scores)

        previous_level = self._current_level
        self._overall_score = min(max(overall_score, 0.0), 1.0)
        self._overall_confidence = min(max(confidence_sum / len(self._signals), 0.0), 1.0)
        self._current_level = classify_level(self._overall_score, self.scoring)

        if self._current_level != previous_level:
            self._emit(
                LevelAchieved,
                previous_level=previous_level.level,
                new_level=self._current_level.level,
                confidence=self._overall_confidence,
            )
            self._log(
                logging.INFO,
                f"CCIS level changed {previous_level.level} -> {self._current_level.level}",
                "level_achieved",
            )

    def _check_gaming_patterns(self, signal: BehavioralSignal) -> None:
        if signal.detects_gaming():
            self._record_gaming(GamingDetectionKind.INDIVIDUAL_SIGNAL_GAMING, signal.weighted_score())
            self._trigger_intervention(InterventionType.GAMING_INTERVENTION)

        window = self.config.pattern_window
        if len(self._signals) >= window:
            recent = [s.weighted_score() for s in self._signals[-window:]]
            variance = statistics.pvariance(recent)
            if variance > self.config.pattern_variance_threshold:
                self._record_gaming(
                    GamingDetectionKind.PATTERN_INCONSISTENCY,
                    signal.weighted_score(),
                    score_variance=variance,
                )

    def _record_gaming(
        self,
        kind: GamingDetectionKind,
        signal_score: float,
        score_variance: Optional[float] = None,
    ) -> None:
        self._gaming_detected = True
        self._gaming_history.append(
            GamingDetectionRecord(self._clock(), kind, signal_score, score_variance)
        )
        self._emit(GamingDetected, kind=kind, signal_score=signal_score, score_variance=score_variance)
        self._log(logging.WARNING, f"Gaming pattern detected: {kind.value}", "gaming_detected")

    def _update_competency_progress(self, signal: BehavioralSignal) -> None:
        key = str(self.competency_id)
        current = self._competency_progress.get(key)
        self._competency_progress[key] = CompetencyProgress(
            ccis_level=signal.level(self.scoring).level,
            confidence=signal.confidence(),
            signal_count=(current.signal_count if current else 0) + 1,
            last_updated=self._clock(),
        )

    def _check_intervention_triggers(self) -> None:
        cfg = self.config
        confidence = self._overall_confidence
        signal_count = len(self._signals)

        if confidence < cfg.low_confidence_threshold and signal_count >= cfg.low_confidence_min_signals:
            self._trigger_intervention(InterventionType.SCAFFOLDING_INCREASE)

        if (
            self._overall_score * 100 >= cfg.scaffolding_decrease_percentage
            and confidence >= cfg.scaffolding_decrease_confidence
        ):
            self._trigger_intervention(InterventionType.SCAFFOLDING_DECREASE)

        if self.session_duration_minutes() >= self.max_duration_minutes * cfg.break_ratio:
            self._trigger_intervention(InterventionType.BREAK_RECOMMENDATION)

        if self._detect_plateau():
            self._trigger_intervention(InterventionType.ALTERNATIVE_PATHWAY)

    def _detect_plateau(self) -> bool:
        window = self.config.plateau_window
        if len(self._signals) < window:
            return False
        recent = [s.weighted_score() for s in self._signals[-window:]]
        return max(recent) - min(recent) < self.config.plateau_range

    def _trigger_intervention(self, intervention: InterventionType) -> None:
        if intervention in self._interventions:
            return

        self._interventions.append(intervention)
        self._emit(
            InterventionTriggered,
            intervention_type=intervention.value,
            current_level=self._current_level.level,
            confidence=self._overall_confidence,
        )
        self._log(logging.INFO, f"Intervention triggered: {intervention.value}", "intervention_triggered")

    # Analytics

    def _update_analytics(self, signal: BehavioralSignal) -> None:
        learning = self._analytics.learning_metrics
        learning.ccis_progression.append(self._current_level.level)
        learning.score_progression.append(self._overall_score)
        learning.confidence_progression.append(self._overall_confidence)

        behavioral = self._analytics.behavioral_metrics
        behavioral.hint_usage_pattern.append(signal.hint_request_frequency)
        behavioral.help_seeking_frequency = _mean(behavioral.hint_usage_pattern)
        behavioral.self_assessment_accuracy = _mean(
            [s.self_assessment_alignment for s in self._signals]
        )
        behavioral.metacognitive_awareness = _mean(
            [s.metacognitive_accuracy for s in self._signals]
        )

        engagement = self._analytics.engagement_metrics
        elapsed = self.session_duration_minutes()
        task_minutes = sum(s.assessment_duration for s in self._signals)
        engagement.total_time_spent = elapsed
        engagement.task_completion_rate = len(self._signals) / max(self._total_interactions, 1)
        engagement.average_response_time = task_minutes * 60 / len(self._signals)
        engagement.active_time_percentage = (
            min(task_minutes / elapsed * 100, 100.0) if elapsed > 0 else 100.0
        )

    def _finalize_analytics(self) -> None:
        learning = self._analytics.learning_metrics
        progression = learning.score_progression
        if len(progression) >= 2:
            first = progression[0] * 100
            last = progression[-1] * 100
            learning.improvement_rate = (last - first) / len(progression)
        else:
            learning.improvement_rate = 0.0

        engagement = self._analytics.engagement_metrics
        engagement.total_time_spent = self.session_duration_minutes()
        engagement.task_completion_rate = len(self._signals) / max(self._total_interactions, 1)

        predictive = self._analytics.predictive_metrics
        predictive.projected_ccis_level = self._current_level.level
        predictive.success_probability = self._overall_confidence
        predictive.intervention_likelihood = len(self._interventions) / max(len(self._signals), 1)
        predictive.time_to_completion = max(
            self.max_duration_minutes - self.session_duration_minutes(), 0
        )

    # State machine helpers

    def _ensure_status(self, required: SessionStatus) -> None:
        if self._status != required:
            raise StateViolationError(
                f"Session must be {required.value} for this operation (is {self._status.value})"
            )

    def _transition(self, target: SessionStatus, allowed_from: Optional[set] = None) -> None:
        if allowed_from is not None and self._status not in allowed_from:
            raise StateViolationError(
                f"Cannot move session from {self._status.value} to {target.value}"
            )
        if target not in TRANSITIONS[self._status]:
            raise StateViolationError(
                f"Cannot move session from {self._status.value} to {target.value}"
            )
        self._status = target

    def _emit(self, event_cls, **payload) -> None:
        self._outbox.append(event_cls(
            session_id=self.session_id,
            person_id=str(self.person_id),
            competency_id=str(self.competency_id),
            occurred_at=self._clock(),
            **payload,
        ))

    def _log(self, level: int, message: str, action: str, **extra) -> None:
        log_with_context(
            logger, level, message,
            person_id=str(self.person_id),
            action=action,
            session_id=self.session_id,
            **extra,
        )
