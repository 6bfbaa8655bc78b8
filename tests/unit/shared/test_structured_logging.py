"""
Tests for structured logging.
"""

import json
import logging
from datetime import datetime, timezone

from ccis.session.events import GamingDetected, GamingDetectionKind
from ccis.shared.logging import (
    StructuredFormatter,
    anonymize_id,
    log_session_event,
    log_with_context,
)


def test_person_id_is_anonymized(caplog):
    logger = logging.getLogger("ccis.test")

    with caplog.at_level(logging.INFO, logger="ccis.test"):
        log_with_context(
            logger, logging.INFO, "signal added",
            person_id="learner-7",
            action="signal_added",
            session_id="sess-1",
            ccis_level=2,
        )

    record = caplog.records[-1]
    assert record.person_id == anonymize_id("learner-7")
    assert record.person_id != "learner-7"
    assert record.action == "signal_added"
    assert record.ccis_level == 2


def test_formatter_emits_json():
    record = logging.LogRecord("ccis.test", logging.WARNING, __file__, 1, "gaming detected", None, None)
    record.person_id = anonymize_id("learner-7")
    record.action = "gaming_detected"
    record.session_id = "sess-1"
    record.kind = "PATTERN_INCONSISTENCY"

    data = json.loads(StructuredFormatter().format(record))

    assert data["level"] == "WARNING"
    assert data["message"] == "gaming detected"
    assert data["action"] == "gaming_detected"
    assert data["session_id"] == "sess-1"
    assert data["kind"] == "PATTERN_INCONSISTENCY"


def test_anonymize_is_stable():
    assert anonymize_id("a") == anonymize_id("a")
    assert anonymize_id("a") != anonymize_id("b")
    assert len(anonymize_id("a")) == 16


def test_session_events_logged_with_payload(caplog):
    """Test that gaming events log at WARNING with the serialized event."""
    event = GamingDetected(
        session_id="sess-1",
        person_id="learner-7",
        competency_id="comp-1",
        occurred_at=datetime(2024, 1, 15, tzinfo=timezone.utc),
        kind=GamingDetectionKind.INDIVIDUAL_SIGNAL_GAMING,
        signal_score=0.62,
    )
    logger = logging.getLogger("ccis.test.events")

    with caplog.at_level(logging.INFO, logger="ccis.test.events"):
        log_session_event(logger, event)

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert record.action == "gaming_detected"
    assert record.event["kind"] == "INDIVIDUAL_SIGNAL_GAMING"

    data = json.loads(StructuredFormatter().format(record))
    assert data["event"]["occurred_at"] == "2024-01-15T00:00:00+00:00"
