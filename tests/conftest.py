"""
Pytest fixtures for CCIS tests.
"""

import pytest
from datetime import datetime, timedelta, timezone

from ccis.scoring.signal import BehavioralSignal
from ccis.shared.config import CCISSettings, ScoringConfig, SessionConfig


class FakeClock:
    """Deterministic clock; time only moves through advance()."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(minutes=minutes, seconds=seconds)


def build_signal(**overrides) -> BehavioralSignal:
    """Signal with every measure at 0.5, 15 minutes and 5 tasks unless overridden."""
    values = {
        "hint_request_frequency": 0.5,
        "error_recovery_speed": 0.5,
        "transfer_success_rate": 0.5,
        "metacognitive_accuracy": 0.5,
        "task_completion_efficiency": 0.5,
        "help_seeking_quality": 0.5,
        "self_assessment_alignment": 0.5,
        "assessment_duration": 15,
        "task_count": 5,
    }
    values.update(overrides)
    return BehavioralSignal(**values)


@pytest.fixture
def clock():
    """Controllable clock fixture."""
    return FakeClock()


@pytest.fixture
def make_signal():
    """Factory for behavioral signals with neutral defaults."""
    return build_signal


@pytest.fixture
def session_config():
    """Default session thresholds, independent of config/ccis.yaml."""
    return SessionConfig()


@pytest.fixture
def scoring_config():
    """Default level thresholds."""
    return ScoringConfig()


@pytest.fixture
def ccis_settings(session_config, scoring_config):
    """Settings object built from defaults only."""
    return CCISSettings(session=session_config, scoring=scoring_config)
