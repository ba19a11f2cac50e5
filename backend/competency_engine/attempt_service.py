"""Applies lifecycle transitions against the store and runs evaluation batches."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from .assessment_grading import build_evaluation_result, run_evaluation_pass
from .assessment_models import Answer, Attempt, AttemptKind, AttemptStatus, PdModule
from .attempt_lifecycle import (
    Transition,
    complete_evaluation,
    record_pending_pass,
    save_answers,
    start_attempt,
    submit_attempt,
)
from .attempt_store import AttemptStore
from .config import Settings, get_settings
from .errors import AssessmentValidationError, StateConflictError
from .evaluator import RubricEvaluator
from .growth_signals import (
    BadgeEligibility,
    CohortPlacement,
    GrowthContext,
    UrgencyAlert,
    assign_cohort_role,
    evaluate_badge_eligibility,
    evaluate_urgency_alerts,
    overall_risk,
)
from .proficiency import BandGuidance, guidance_for_level
from .recommendations import LearningPathModule, build_learning_path
from .telemetry import emit_effects


logger = logging.getLogger(__name__)

AnswerInput = Union[Answer, Mapping[str, Any]]


class BatchSummary(BaseModel):
    processed: int = 0
    evaluated: int = 0
    failed: int = 0
    pending: int = 0
    errors: int = 0


class GrowthReport(BaseModel):
    guidance: BandGuidance
    badge: BadgeEligibility
    cohort: CohortPlacement
    alerts: List[UrgencyAlert]
    risk: str
    learning_path: List[LearningPathModule]


def _coerce_answers(answers: Iterable[AnswerInput]) -> List[Answer]:
    coerced: List[Answer] = []
    for answer in answers:
        if isinstance(answer, Answer):
            coerced.append(answer)
            continue
        try:
            coerced.append(Answer.model_validate(answer))
        except ValidationError as exc:
            raise AssessmentValidationError(f"Invalid answer payload: {exc}") from exc
    return coerced


class AttemptService:
    def __init__(
        self,
        store: AttemptStore,
        evaluator: RubricEvaluator,
        settings: Optional[Settings] = None,
    ) -> None:
        self._store = store
        self._evaluator = evaluator
        self._settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Learner actions
    # ------------------------------------------------------------------

    def start_attempt(
        self,
        learner_id: str,
        target_id: str,
        *,
        kind: AttemptKind = "competency",
        now: Optional[datetime] = None,
    ) -> Attempt:
        module = self._store.get_module(target_id) if kind == "pd_module" else None
        questions = self._store.get_questions(target_id)
        if not questions:
            raise AssessmentValidationError(f"No questions are configured for '{target_id}'.")
        transition = start_attempt(
            learner_id,
            target_id,
            kind=kind,
            question_ids=[question.question_id for question in questions],
            previous=self._store.list_attempts(learner_id, target_id),
            module=module,
            now=now,
        )
        return self._apply(transition)

    def save_progress(self, attempt_id: str, answers: Iterable[AnswerInput]) -> Attempt:
        attempt = self._store.get_attempt(attempt_id)
        return self._apply(save_answers(attempt, _coerce_answers(answers)))

    def submit(
        self,
        attempt_id: str,
        answers: Iterable[AnswerInput] = (),
        *,
        require_complete: bool = False,
        now: Optional[datetime] = None,
    ) -> Attempt:
        attempt = self._store.get_attempt(attempt_id)
        transition = submit_attempt(
            attempt,
            _coerce_answers(answers),
            require_complete=require_complete,
            now=now,
        )
        return self._apply(transition)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    async def evaluate(self, attempt_id: str, *, now: Optional[datetime] = None) -> Attempt:
        """Run one evaluation pass. Already evaluated or failed attempts are returned unchanged."""
        attempt = self._store.get_attempt(attempt_id)
        if attempt.status.is_terminal:
            logger.info("Attempt %s already %s; skipping evaluation", attempt_id, attempt.status.value)
            return attempt

        module: Optional[PdModule] = None
        if attempt.kind == "pd_module":
            module = self._store.get_module(attempt.target_id)

        if attempt.status is not AttemptStatus.SUBMITTED:
            raise StateConflictError(
                f"Attempt '{attempt_id}' must be submitted before evaluation.",
                attempt_id=attempt_id,
                status=attempt.status.value,
            )

        question_ids = list(dict.fromkeys([*attempt.question_ids, *attempt.answers]))
        questions = self._store.get_questions_by_id(question_ids)
        settings = self._settings
        evaluation = await run_evaluation_pass(
            attempt,
            questions,
            self._evaluator,
            concurrency=settings.question_concurrency,
            max_retries=settings.evaluator_max_retries,
            retry_delay_seconds=settings.evaluator_retry_delay_seconds,
        )

        if evaluation.complete:
            result = build_evaluation_result(
                attempt.attempt_id,
                evaluation.question_results,
                passing_score=module.passing_score if module else None,
            )
            transition = complete_evaluation(attempt, result, module=module, now=now)
        else:
            transition = record_pending_pass(
                attempt,
                evaluation.question_results,
                max_passes=settings.max_evaluation_passes,
                now=now,
            )

        try:
            return self._apply(transition)
        except StateConflictError:
            current = self._store.get_attempt(attempt_id)
            if current.status.is_terminal:
                logger.info("Attempt %s was finalised by a concurrent evaluation", attempt_id)
                return current
            raise

    async def process_submitted_attempts(
        self,
        *,
        batch_size: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> BatchSummary:
        """Evaluate up to ``batch_size`` submitted attempts with a bounded worker pool."""
        limit = batch_size or self._settings.batch_size
        attempts = self._store.list_by_status(AttemptStatus.SUBMITTED, limit)
        semaphore = asyncio.Semaphore(self._settings.batch_concurrency)
        summary = BatchSummary()

        async def _worker(attempt: Attempt) -> None:
            async with semaphore:
                try:
                    updated = await self.evaluate(attempt.attempt_id, now=now)
                except Exception:  # noqa: BLE001
                    logger.exception("Evaluation failed for attempt %s", attempt.attempt_id)
                    summary.errors += 1
                    return
            if updated.status is AttemptStatus.EVALUATED:
                summary.evaluated += 1
            elif updated.status is AttemptStatus.FAILED:
                summary.failed += 1
            else:
                summary.pending += 1

        await asyncio.gather(*(_worker(attempt) for attempt in attempts))
        summary.processed = len(attempts)
        logger.info(
            "Batch evaluation processed=%d evaluated=%d failed=%d pending=%d errors=%d",
            summary.processed,
            summary.evaluated,
            summary.failed,
            summary.pending,
            summary.errors,
        )
        return summary

    # ------------------------------------------------------------------
    # Growth signals
    # ------------------------------------------------------------------

    def growth_report(
        self,
        attempt_id: str,
        context: GrowthContext,
        *,
        now: Optional[datetime] = None,
    ) -> GrowthReport:
        attempt = self._store.get_attempt(attempt_id)
        if attempt.result is None:
            raise StateConflictError(
                f"Attempt '{attempt_id}' has no evaluation result yet.",
                attempt_id=attempt_id,
                status=attempt.status.value,
            )
        result = attempt.result
        failed = max(context.failed_attempts, self._store.count_failed_attempts(attempt.learner_id))
        context = context.model_copy(update={"failed_attempts": failed})
        alerts = evaluate_urgency_alerts(result, context, now=now)
        return GrowthReport(
            guidance=guidance_for_level(result.proficiency_level),
            badge=evaluate_badge_eligibility(result, context),
            cohort=assign_cohort_role(result.proficiency_level),
            alerts=alerts,
            risk=overall_risk(alerts),
            learning_path=build_learning_path(result),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply(self, transition: Transition) -> Attempt:
        attempt = transition.attempt
        for effect in transition.effects:
            if effect.name == "create_attempt":
                attempt = self._store.create_attempt(attempt)
            elif effect.name == "save_attempt":
                attempt = self._store.save(attempt)
            elif effect.name == "append_result":
                assert attempt.result is not None
                self._store.append_result(attempt.result)
            elif effect.kind == "notify":
                continue
            else:
                raise ValueError(f"Unknown effect {effect.kind}:{effect.name}")
        emit_effects(transition.effects)
        return attempt


__all__ = ["AttemptService", "BatchSummary", "GrowthReport"]
