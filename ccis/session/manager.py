"""
In-memory assessment session manager.
"""

import uuid
from typing import Any, Dict, List, Optional

from ccis.scoring.signal import BehavioralSignal
from ccis.session.assessment import AssessmentSession, SessionStatus, SessionType
from ccis.session.events import SessionEvent
from ccis.session.snapshots import SessionAnalytics, SessionProgress
from ccis.signals.formulas import SignalFormulas
from ccis.signals.interaction import OPEN_STATUSES, Clock, TaskInteraction
from ccis.shared.config import CCISSettings, get_settings
from ccis.shared.exceptions import (
    InteractionNotFoundError,
    SessionNotFoundError,
    StateViolationError,
)
from ccis.shared.logging import get_logger, log_session_event

logger = get_logger(__name__)


class AssessmentSessionManager:
    """Owns assessment sessions and routes task interactions into them."""

    def __init__(
        self,
        settings: Optional[CCISSettings] = None,
        clock: Optional[Clock] = None,
        formulas: Optional[SignalFormulas] = None,
    ):
        self.settings = settings or get_settings()
        self._clock = clock
        self._formulas = formulas
        self._sessions: Dict[str, AssessmentSession] = {}
        self._interactions: Dict[str, TaskInteraction] = {}
        self._event_log: List[SessionEvent] = []

    def start_session(
        self,
        person_id: str,
        competency_id: str,
        session_type: SessionType = SessionType.FORMATIVE,
        max_duration_minutes: int = 60,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AssessmentSession:
        """Create a session and move it straight to ACTIVE."""
        session = AssessmentSession(
            person_id=person_id,
            competency_id=competency_id,
            session_type=session_type,
            max_duration_minutes=max_duration_minutes,
            metadata=metadata,
            clock=self._clock,
            config=self.settings.session,
            scoring=self.settings.scoring,
        )
        session.start_session()
        self._sessions[session.session_id] = session
        self._drain(session)
        return session

    def get_session(self, session_id: str) -> AssessmentSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(f"Assessment session {session_id} not found")
        return session

    def get_interaction(self, interaction_id: str) -> TaskInteraction:
        interaction = self._interactions.get(interaction_id)
        if interaction is None:
            raise InteractionNotFoundError(f"Task interaction {interaction_id} not found")
        return interaction

    def open_interaction(
        self,
        session_id: str,
        task_id: str,
        task_difficulty: str = "intermediate",
        scaffolding_level: int = 0,
        prior_attempts: int = 0,
    ) -> TaskInteraction:
        """Begin tracking a task attempt inside an ACTIVE session."""
        session = self.get_session(session_id)
        interaction = TaskInteraction(
            interaction_id=uuid.uuid4().hex,
            session_id=session.session_id,
            task_id=task_id,
            person_id=str(session.person_id),
            competency_id=str(session.competency_id),
            task_difficulty=task_difficulty,
            scaffolding_level=scaffolding_level,
            prior_attempts=prior_attempts,
            clock=self._clock,
            formulas=self._formulas,
        )
        session.register_interaction()
        self._interactions[interaction.interaction_id] = interaction
        return interaction

    def complete_interaction(
        self,
        interaction_id: str,
        accuracy: float,
        actual_difficulty: float,
    ) -> BehavioralSignal:
        """
        Close an interaction and feed its signal to the owning session.

        Interaction flags are rolled into the session's error patterns before
        the signal is scored.
        """
        interaction = self.get_interaction(interaction_id)
        session = self.get_session(interaction.session_id)
        if session.status != SessionStatus.ACTIVE:
            raise StateViolationError(
                f"Session must be ACTIVE to accept signals (is {session.status.value})"
            )

        signal = interaction.complete_interaction(accuracy, actual_difficulty)
        if interaction.gaming_flags:
            session.record_interaction_flags(list(interaction.gaming_flags))
        session.add_behavioral_signal(signal)

        del self._interactions[interaction_id]
        self._drain(session)
        return signal

    def abandon_interaction(self, interaction_id: str) -> None:
        interaction = self.get_interaction(interaction_id)
        interaction.abandon()
        del self._interactions[interaction_id]

    def add_signal(self, session_id: str, signal: BehavioralSignal) -> None:
        """Feed an externally derived signal to a session."""
        session = self.get_session(session_id)
        session.add_behavioral_signal(signal)
        self._drain(session)

    def pause_session(self, session_id: str) -> None:
        session = self.get_session(session_id)
        session.pause_session()
        self._drain(session)

    def resume_session(self, session_id: str) -> None:
        session = self.get_session(session_id)
        session.resume_session()
        self._drain(session)

    def complete_session(self, session_id: str) -> SessionAnalytics:
        session = self.get_session(session_id)
        analytics = session.complete_session()
        self._drain(session)
        return analytics

    def terminate_session(self, session_id: str, reason: str) -> None:
        session = self.get_session(session_id)
        session.terminate_session(reason)
        self._abandon_open_interactions(session_id)
        self._drain(session)

    def get_progress(self, session_id: str) -> SessionProgress:
        return self.get_session(session_id).progress()

    def active_sessions(self, person_id: Optional[str] = None) -> List[AssessmentSession]:
        return [
            s for s in self._sessions.values()
            if s.status == SessionStatus.ACTIVE
            and (person_id is None or str(s.person_id) == person_id)
        ]

    def events(self) -> List[SessionEvent]:
        """Every event drained so far, oldest first."""
        return list(self._event_log)

    def _abandon_open_interactions(self, session_id: str) -> None:
        for interaction_id, interaction in list(self._interactions.items()):
            if interaction.session_id != session_id:
                continue
            if interaction.status in OPEN_STATUSES:
                interaction.abandon()
            del self._interactions[interaction_id]

    def _drain(self, session: AssessmentSession) -> None:
        for event in session.pull_events():
            self._event_log.append(event)
            log_session_event(logger, event)
