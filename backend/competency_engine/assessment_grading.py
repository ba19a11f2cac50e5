"""Evaluation pass for submitted attempts.

Objective questions are scored inline; open-ended questions are scored
concurrently (bounded by a semaphore) and joined before any aggregation so
the overall score always sees the complete question set.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

from .answer_scoring import empty_answer_result, score_answer, score_mcq
from .assessment_models import Attempt, Question
from .assessment_result import EvaluationResult, QuestionResult
from .domain_scoring import aggregate_domain_scores, overall_score_percent
from .errors import AssessmentValidationError
from .evaluator import RubricEvaluator
from .proficiency import classify_proficiency, partition_domains
from .recommendations import recommend_micro_pds


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationPass:
    question_results: List[QuestionResult]

    @property
    def pending_question_ids(self) -> List[str]:
        return [result.question_id for result in self.question_results if result.pending]

    @property
    def complete(self) -> bool:
        return not self.pending_question_ids


def summarize_feedback(strength_domains: Sequence[str], gap_domains: Sequence[str]) -> str:
    strength_text = f"Strong performance in {', '.join(strength_domains)}." if strength_domains else ""
    gap_text = f"Areas for improvement: {', '.join(gap_domains)}." if gap_domains else ""
    return f"{strength_text} {gap_text}".strip() or "Assessment completed."


def _questions_for(attempt: Attempt, questions: Mapping[str, Question]) -> List[Question]:
    question_ids = list(attempt.question_ids) or list(attempt.answers)
    for question_id in attempt.answers:
        if question_id not in question_ids:
            question_ids.append(question_id)
    missing = [question_id for question_id in question_ids if question_id not in questions]
    if missing:
        raise AssessmentValidationError(
            f"Attempt '{attempt.attempt_id}' references unknown questions: {', '.join(missing)}"
        )
    return [questions[question_id] for question_id in question_ids]


async def run_evaluation_pass(
    attempt: Attempt,
    questions: Mapping[str, Question],
    evaluator: RubricEvaluator,
    *,
    concurrency: int = 4,
    max_retries: int = 2,
    retry_delay_seconds: float = 1.0,
) -> EvaluationPass:
    """Score every question of ``attempt`` once.

    Open-ended results cached on the attempt by an earlier pass are reused so
    re-evaluation does not re-query the evaluator for settled answers.
    """
    semaphore = asyncio.Semaphore(max(concurrency, 1))
    ordered = _questions_for(attempt, questions)
    results: Dict[str, QuestionResult] = {}
    to_score: List[Question] = []

    for question in ordered:
        answer = attempt.answers.get(question.question_id)
        cached = attempt.question_results.get(question.question_id)
        if question.question_type.is_objective:
            results[question.question_id] = score_mcq(question, answer)
        elif answer is None or answer.is_empty:
            results[question.question_id] = empty_answer_result(question)
        elif cached is not None and not cached.pending:
            results[question.question_id] = cached
        else:
            to_score.append(question)

    async def _score(question: Question) -> QuestionResult:
        async with semaphore:
            return await score_answer(
                question,
                attempt.answers.get(question.question_id),
                evaluator,
                max_retries=max_retries,
                retry_delay_seconds=retry_delay_seconds,
            )

    scored = await asyncio.gather(*(_score(question) for question in to_score))
    for result in scored:
        results[result.question_id] = result

    evaluation = EvaluationPass([results[question.question_id] for question in ordered])
    logger.info(
        "Evaluation pass for attempt %s: %d questions, %d sent to evaluator, %d pending",
        attempt.attempt_id,
        len(ordered),
        len(to_score),
        len(evaluation.pending_question_ids),
    )
    return evaluation


def build_evaluation_result(
    attempt_id: str,
    question_results: Sequence[QuestionResult],
    *,
    passing_score: Optional[float] = None,
) -> EvaluationResult:
    if any(result.pending for result in question_results):
        raise ValueError(f"Attempt '{attempt_id}' still has pending question results.")

    domain_scores = aggregate_domain_scores(question_results)
    overall = overall_score_percent(question_results)
    strengths, gaps = partition_domains(domain_scores)
    return EvaluationResult(
        attempt_id=attempt_id,
        overall_score=round(overall, 2),
        proficiency_level=classify_proficiency(overall),
        strength_domains=strengths,
        gap_domains=gaps,
        recommended_micro_pds=recommend_micro_pds(gaps),
        domain_scores=domain_scores,
        question_results=list(question_results),
        summary_feedback=summarize_feedback(strengths, gaps),
        passed=None if passing_score is None else overall >= passing_score,
    )


__all__ = [
    "EvaluationPass",
    "build_evaluation_result",
    "run_evaluation_pass",
    "summarize_feedback",
]
