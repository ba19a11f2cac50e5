"""Telemetry listener that persists every lifecycle event as an audit trail row."""

from __future__ import annotations

import logging
from typing import Optional

from .attempt_store import AttemptStore, attempt_store
from .telemetry import TelemetryEvent, register_listener, unregister_listener

logger = logging.getLogger(__name__)


class _AuditListener:
    def __init__(self, store: AttemptStore) -> None:
        self._store = store

    def __call__(self, event: TelemetryEvent) -> None:
        try:
            self._store.record_event(
                event.name,
                dict(event.payload),
                attempt_id=event.attempt_id,
                learner_id=event.learner_id,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Failed to persist %s event for attempt=%s", event.name, event.attempt_id)


_installed: Optional[_AuditListener] = None


def install_event_pipeline(store: Optional[AttemptStore] = None) -> None:
    """Persist audited events through ``store``. Reinstalling replaces the previous listener."""
    global _installed
    uninstall_event_pipeline()
    _installed = _AuditListener(store or attempt_store)
    register_listener(_installed)


def uninstall_event_pipeline() -> None:
    global _installed
    if _installed is not None:
        unregister_listener(_installed)
    _installed = None


__all__ = ["install_event_pipeline", "uninstall_event_pipeline"]
