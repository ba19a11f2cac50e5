"""Pure state transitions for assessment attempts.

Each transition takes the current ``Attempt`` and returns a ``Transition``:
the next attempt value plus the side effects the caller must apply (persist
the document, append an evaluation result, emit a notification). Nothing in
this module touches storage or the clock implicitly; ``now`` is passed in.

    IN_PROGRESS --save--> IN_PROGRESS --submit--> SUBMITTED --evaluate--> EVALUATED | FAILED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from .assessment_models import Answer, Attempt, AttemptKind, AttemptStatus, PdModule
from .assessment_result import EvaluationResult, QuestionResult
from .domain_scoring import exact_overall_percent
from .errors import AssessmentValidationError, ModuleLockedError, StateConflictError


logger = logging.getLogger(__name__)

EffectKind = Literal["persist", "notify"]


@dataclass(frozen=True)
class Effect:
    kind: EffectKind
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Transition:
    attempt: Attempt
    effects: Tuple[Effect, ...] = ()

    def effect_names(self) -> List[str]:
        return [effect.name for effect in self.effects]


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _require_status(attempt: Attempt, expected: AttemptStatus, action: str) -> None:
    if attempt.status is not expected:
        raise StateConflictError(
            f"Cannot {action} attempt '{attempt.attempt_id}' in state {attempt.status.value}; "
            f"expected {expected.value}.",
            attempt_id=attempt.attempt_id,
            status=attempt.status.value,
        )


def _notify(name: str, attempt: Attempt, **extra: Any) -> Effect:
    payload: Dict[str, Any] = {
        "attempt_id": attempt.attempt_id,
        "learner_id": attempt.learner_id,
        "target_id": attempt.target_id,
        "kind": attempt.kind,
        "attempt_number": attempt.attempt_number,
        "status": attempt.status.value,
    }
    payload.update(extra)
    return Effect("notify", name, payload)


def next_attempt_number(previous: Sequence[Attempt]) -> int:
    return max((attempt.attempt_number for attempt in previous), default=0) + 1


def lockout_until(latest: Attempt, module: PdModule) -> Optional[datetime]:
    """When ``latest`` exhausted the module's attempts, the time the cooldown ends."""
    if latest.status is not AttemptStatus.FAILED or latest.attempt_number < module.max_attempts:
        return None
    reference = latest.evaluated_at or latest.submitted_at or latest.created_at
    return reference + timedelta(hours=module.cooldown_hours)


def ensure_can_start(
    kind: AttemptKind,
    previous: Sequence[Attempt],
    *,
    module: Optional[PdModule] = None,
    now: Optional[datetime] = None,
) -> Optional[Attempt]:
    """Check start preconditions. Returns an in-progress attempt to resume, if any."""
    for attempt in previous:
        if attempt.status is AttemptStatus.IN_PROGRESS:
            return attempt

    for attempt in previous:
        if attempt.status is AttemptStatus.SUBMITTED:
            raise StateConflictError(
                f"Attempt '{attempt.attempt_id}' is awaiting evaluation.",
                attempt_id=attempt.attempt_id,
                status=attempt.status.value,
            )

    if kind == "competency":
        if previous:
            latest = max(previous, key=lambda item: item.attempt_number)
            raise StateConflictError(
                "The competency assessment has already been completed.",
                attempt_id=latest.attempt_id,
                status=latest.status.value,
            )
        return None

    if module is None or not module.active:
        raise AssessmentValidationError("PD module is unknown or inactive.")

    for attempt in previous:
        if attempt.status is AttemptStatus.EVALUATED and attempt.result is not None and attempt.result.passed:
            raise StateConflictError(
                f"Module '{module.module_id}' has already been passed.",
                attempt_id=attempt.attempt_id,
                status=attempt.status.value,
            )

    if previous:
        latest = max(previous, key=lambda item: item.attempt_number)
        available_at = lockout_until(latest, module)
        if available_at is not None and _now(now) < available_at:
            raise ModuleLockedError(module.module_id, available_at)
    return None


def start_attempt(
    learner_id: str,
    target_id: str,
    *,
    kind: AttemptKind,
    question_ids: Iterable[str],
    previous: Sequence[Attempt] = (),
    module: Optional[PdModule] = None,
    now: Optional[datetime] = None,
) -> Transition:
    existing = ensure_can_start(kind, previous, module=module, now=now)
    if existing is not None:
        logger.info("Resuming attempt %s for %s", existing.attempt_id, learner_id)
        return Transition(existing)

    attempt = Attempt(
        learner_id=learner_id,
        target_id=target_id,
        kind=kind,
        attempt_number=next_attempt_number(previous),
        question_ids=list(question_ids),
        created_at=_now(now),
    )
    return Transition(
        attempt,
        (Effect("persist", "create_attempt"), _notify("attempt_started", attempt)),
    )


def _merge_answers(attempt: Attempt, answers: Iterable[Answer]) -> Dict[str, Answer]:
    allowed = set(attempt.question_ids)
    merged = dict(attempt.answers)
    for answer in answers:
        if allowed and answer.question_id not in allowed:
            raise AssessmentValidationError(
                f"Question '{answer.question_id}' is not part of attempt '{attempt.attempt_id}'."
            )
        merged[answer.question_id] = answer.model_copy()
    return merged


def save_answers(attempt: Attempt, answers: Iterable[Answer]) -> Transition:
    _require_status(attempt, AttemptStatus.IN_PROGRESS, "save answers on")
    incoming = list(answers)
    updated = attempt.model_copy(update={"answers": _merge_answers(attempt, incoming)})
    return Transition(
        updated,
        (
            Effect("persist", "save_attempt"),
            _notify("answers_saved", updated, question_ids=[answer.question_id for answer in incoming]),
        ),
    )


def submit_attempt(
    attempt: Attempt,
    answers: Iterable[Answer] = (),
    *,
    require_complete: bool = False,
    now: Optional[datetime] = None,
) -> Transition:
    _require_status(attempt, AttemptStatus.IN_PROGRESS, "submit")
    merged = _merge_answers(attempt, answers)
    if not merged:
        raise AssessmentValidationError("At least one answer is required to submit an attempt.")
    if require_complete:
        missing = [question_id for question_id in attempt.question_ids if question_id not in merged]
        if missing:
            raise AssessmentValidationError(f"Unanswered questions: {', '.join(missing)}")

    updated = attempt.model_copy(
        update={
            "answers": merged,
            "status": AttemptStatus.SUBMITTED,
            "submitted_at": _now(now),
        }
    )
    return Transition(
        updated,
        (
            Effect("persist", "save_attempt"),
            _notify("attempt_submitted", updated, answer_count=len(merged)),
        ),
    )


def _cacheable(results: Iterable[QuestionResult]) -> Dict[str, QuestionResult]:
    return {result.question_id: result for result in results if not result.pending}


def record_pending_pass(
    attempt: Attempt,
    question_results: Iterable[QuestionResult],
    *,
    max_passes: int = 0,
    now: Optional[datetime] = None,
) -> Transition:
    """Keep a partially scored attempt in SUBMITTED, or fail it once ``max_passes`` is reached."""
    _require_status(attempt, AttemptStatus.SUBMITTED, "record an evaluation pass for")
    results = list(question_results)
    pending = [result.question_id for result in results if result.pending]
    cache = dict(attempt.question_results)
    cache.update(_cacheable(results))
    passes = attempt.evaluation_passes + 1

    if max_passes and passes >= max_passes:
        updated = attempt.model_copy(
            update={
                "question_results": cache,
                "evaluation_passes": passes,
                "status": AttemptStatus.FAILED,
                "failure_reason": "evaluator_unavailable",
                "evaluated_at": _now(now),
            }
        )
        logger.warning("Attempt %s failed after %d incomplete evaluation passes", attempt.attempt_id, passes)
        return Transition(
            updated,
            (
                Effect("persist", "save_attempt"),
                _notify("attempt_failed", updated, reason="evaluator_unavailable", pending_questions=pending),
            ),
        )

    updated = attempt.model_copy(update={"question_results": cache, "evaluation_passes": passes})
    return Transition(
        updated,
        (
            Effect("persist", "save_attempt"),
            _notify("evaluation_pending", updated, pending_questions=pending, passes=passes),
        ),
    )


def complete_evaluation(
    attempt: Attempt,
    result: EvaluationResult,
    *,
    module: Optional[PdModule] = None,
    now: Optional[datetime] = None,
) -> Transition:
    """Finalise a fully scored attempt.

    Competency attempts always end EVALUATED. PD-module attempts end EVALUATED
    when they pass and FAILED otherwise; a failure on the last allowed attempt
    also announces the lockout window.
    """
    _require_status(attempt, AttemptStatus.SUBMITTED, "evaluate")
    evaluated_at = _now(now)
    status = AttemptStatus.EVALUATED

    if attempt.kind == "pd_module":
        if module is None:
            raise AssessmentValidationError("PD-module attempts need their module to be evaluated.")
        passed = result.passed
        if passed is None:
            passed = exact_overall_percent(result) >= module.passing_score
        result = result.model_copy(update={"passed": passed, "evaluated_at": evaluated_at})
        if not passed:
            status = AttemptStatus.FAILED
    else:
        result = result.model_copy(update={"evaluated_at": evaluated_at})

    updated = attempt.model_copy(
        update={
            "status": status,
            "result": result,
            "question_results": {item.question_id: item for item in result.question_results},
            "evaluation_passes": attempt.evaluation_passes + 1,
            "evaluated_at": evaluated_at,
            "failure_reason": "below_passing_score" if status is AttemptStatus.FAILED else None,
        }
    )
    event = "attempt_evaluated" if status is AttemptStatus.EVALUATED else "attempt_failed"
    effects: List[Effect] = [
        Effect("persist", "save_attempt"),
        Effect("persist", "append_result"),
        _notify(
            event,
            updated,
            overall_score=result.overall_score,
            proficiency_level=result.proficiency_level,
            passed=result.passed,
        ),
    ]
    if status is AttemptStatus.FAILED and module is not None:
        available_at = lockout_until(updated, module)
        if available_at is not None:
            effects.append(_notify("module_locked", updated, available_at=available_at))
    return Transition(updated, tuple(effects))


__all__ = [
    "Effect",
    "Transition",
    "complete_evaluation",
    "ensure_can_start",
    "lockout_until",
    "next_attempt_number",
    "record_pending_pass",
    "save_answers",
    "start_attempt",
    "submit_attempt",
]
