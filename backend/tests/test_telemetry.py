from __future__ import annotations

import logging
from datetime import datetime, timezone

import pytest

from competency_engine.assessment_models import Attempt, AttemptStatus
from competency_engine.attempt_lifecycle import Effect, save_answers
from competency_engine.telemetry import (
    TelemetryEvent,
    clear_listeners,
    emit_effects,
    emit_event,
    register_listener,
)


def test_failing_listener_does_not_block_others(caplog) -> None:
    clear_listeners()
    received: list[TelemetryEvent] = []

    def broken(event: TelemetryEvent) -> None:
        raise RuntimeError("listener down")

    register_listener(broken)
    register_listener(received.append)
    caplog.set_level(logging.INFO, logger="competency_engine.telemetry")
    try:
        emit_event(
            "attempt_submitted",
            attempt_id="a-1",
            status=AttemptStatus.SUBMITTED,
            submitted_at=datetime(2026, 1, 5, tzinfo=timezone.utc),
        )
    finally:
        clear_listeners()

    assert len(received) == 1
    assert received[0].payload == {
        "attempt_id": "a-1",
        "status": "SUBMITTED",
        "submitted_at": "2026-01-05T00:00:00+00:00",
    }
    assert "Telemetry listener failed for attempt_submitted" in caplog.text
    assert 'TELEMETRY {"event": "attempt_submitted"' in caplog.text


def test_listener_registered_once() -> None:
    clear_listeners()
    received: list[str] = []

    def listener(event: TelemetryEvent) -> None:
        received.append(event.name)

    register_listener(listener)
    register_listener(listener)
    try:
        emit_event("answers_saved")
    finally:
        clear_listeners()
    assert received == ["answers_saved"]


def test_event_carries_attempt_and_learner_ids() -> None:
    clear_listeners()
    received: list[TelemetryEvent] = []
    register_listener(received.append)
    try:
        emit_event("attempt_started", attempt_id="a-1", learner_id="teacher-1", attempt_number=1)
        emit_event("answers_saved", attempt_id=None)
    finally:
        clear_listeners()

    assert (received[0].attempt_id, received[0].learner_id) == ("a-1", "teacher-1")
    assert received[0].payload["attempt_number"] == 1
    assert received[1].attempt_id is None


def test_unknown_event_name_is_rejected() -> None:
    clear_listeners()
    received: list[TelemetryEvent] = []
    register_listener(received.append)
    try:
        with pytest.raises(ValueError, match="Unknown lifecycle event"):
            emit_event("attempt_teleported", attempt_id="a-1")
    finally:
        clear_listeners()
    assert received == []


def test_emit_effects_sends_only_notifications() -> None:
    clear_listeners()
    received: list[TelemetryEvent] = []
    register_listener(received.append)
    attempt = Attempt(learner_id="teacher-1", target_id="competency-v1")
    transition = save_answers(attempt, [])
    try:
        events = emit_effects(transition.effects + (Effect("persist", "append_result"),))
    finally:
        clear_listeners()

    assert [event.name for event in events] == ["answers_saved"]
    assert received == events
    assert received[0].attempt_id == attempt.attempt_id
    assert received[0].payload["status"] == "IN_PROGRESS"
