"""Lifecycle notifications: a fixed event vocabulary, listener fan-out and a log line.

Only the names in ``LIFECYCLE_EVENTS`` can be emitted. Each event carries the
attempt and learner it concerns, pulled out of the payload so listeners (the
audit pipeline in particular) do not have to dig for them.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel

from .attempt_lifecycle import Effect

logger = logging.getLogger("competency_engine.telemetry")

LIFECYCLE_EVENTS: FrozenSet[str] = frozenset(
    {
        "attempt_started",
        "answers_saved",
        "attempt_submitted",
        "evaluation_pending",
        "attempt_evaluated",
        "attempt_failed",
        "module_locked",
    }
)


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    payload: Dict[str, Any]
    attempt_id: Optional[str] = None
    learner_id: Optional[str] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[TelemetryEvent], None]

_listeners: List[Listener] = []
_lock = RLock()


def register_listener(listener: Listener) -> None:
    with _lock:
        if listener not in _listeners:
            _listeners.append(listener)


def unregister_listener(listener: Listener) -> None:
    with _lock:
        if listener in _listeners:
            _listeners.remove(listener)


def clear_listeners() -> None:
    with _lock:
        _listeners.clear()


def emit_event(name: str, **fields: Any) -> TelemetryEvent:
    """Build a ``TelemetryEvent`` and hand it to every listener.

    Unknown names raise ``ValueError``. A listener that raises is logged and
    skipped; the remaining listeners still run.
    """
    if name not in LIFECYCLE_EVENTS:
        raise ValueError(f"Unknown lifecycle event '{name}'")
    payload = {key: _plain(value) for key, value in fields.items()}
    attempt_id = payload.get("attempt_id")
    learner_id = payload.get("learner_id")
    event = TelemetryEvent(
        name=name,
        payload=payload,
        attempt_id=attempt_id if isinstance(attempt_id, str) else None,
        learner_id=learner_id if isinstance(learner_id, str) else None,
    )

    with _lock:
        listeners = list(_listeners)

    for listener in listeners:
        try:
            listener(event)
        except Exception:  # noqa: BLE001
            logger.exception("Telemetry listener failed for %s (attempt=%s)", name, event.attempt_id)

    logger.info("TELEMETRY %s", json.dumps({"event": name, **payload}, default=str))
    return event


def emit_effects(effects: Iterable[Effect]) -> List[TelemetryEvent]:
    """Emit the ``notify`` effects of a lifecycle transition, in order."""
    return [emit_event(effect.name, **effect.payload) for effect in effects if effect.kind == "notify"]


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


__all__ = [
    "LIFECYCLE_EVENTS",
    "TelemetryEvent",
    "clear_listeners",
    "emit_effects",
    "emit_event",
    "register_listener",
    "unregister_listener",
]
