"""Error taxonomy for the assessment engine.

Only ``StateConflictError`` and ``ModuleLockedError`` are meant to reach end
users. Evaluator failures are retried internally and surface as an attempt
that stays ``SUBMITTED``.
"""

from __future__ import annotations

from datetime import datetime


class CompetencyEngineError(Exception):
    """Base class for engine errors."""


class AssessmentValidationError(CompetencyEngineError, ValueError):
    """Malformed question, answer or attempt input."""


class AttemptNotFoundError(CompetencyEngineError, LookupError):
    """Unknown attempt, module or question identifier."""


class EvaluatorUnavailableError(CompetencyEngineError, RuntimeError):
    """The external rubric evaluator failed, timed out or returned garbage."""


class StateConflictError(CompetencyEngineError, RuntimeError):
    """An attempt is not in the lifecycle state the transition requires."""

    def __init__(self, message: str, *, attempt_id: str | None = None, status: str | None = None) -> None:
        super().__init__(message)
        self.attempt_id = attempt_id
        self.status = status


class ModuleLockedError(CompetencyEngineError):
    """PD-module attempts are exhausted and the cooldown has not elapsed."""

    def __init__(self, module_id: str, available_at: datetime) -> None:
        super().__init__(
            f"Module '{module_id}' is locked until {available_at.isoformat()}."
        )
        self.module_id = module_id
        self.available_at = available_at


__all__ = [
    "AssessmentValidationError",
    "AttemptNotFoundError",
    "CompetencyEngineError",
    "EvaluatorUnavailableError",
    "ModuleLockedError",
    "StateConflictError",
]
