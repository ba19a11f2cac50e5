"""Per-question scoring: exact match for MCQ, rubric conversion for open-ended answers."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, Mapping, Optional, Tuple

from .assessment_models import Answer, Question, normalize_option
from .assessment_result import QuestionResult
from .constants import EMPTY_ANSWER_FEEDBACK, MCQ_CORRECT_FEEDBACK, MCQ_INCORRECT_FEEDBACK, PENDING_FEEDBACK
from .errors import EvaluatorUnavailableError
from .evaluator import RubricEvaluator, RubricRequest, evaluate_with_retry
from .rubrics import normalize_dimension_key, rubric_for


logger = logging.getLogger(__name__)

_DIMENSION_MIN = 0
_DIMENSION_MAX = 3


def _result(question: Question, score: float, feedback: Optional[str], **extra: Any) -> QuestionResult:
    return QuestionResult(
        question_id=question.question_id,
        question_type=question.question_type,
        domain_key=question.domain_key,
        score=score,
        max_score=question.max_score,
        feedback=feedback,
        **extra,
    )


def empty_answer_result(question: Question) -> QuestionResult:
    return _result(question, 0.0, EMPTY_ANSWER_FEEDBACK)


def pending_result(question: Question) -> QuestionResult:
    return _result(question, 0.0, PENDING_FEEDBACK, pending=True)


def score_mcq(question: Question, answer: Optional[Answer]) -> QuestionResult:
    if answer is None or not answer.response.strip():
        return empty_answer_result(question)
    correct = question.correct_option or ""
    if normalize_option(answer.response) == normalize_option(correct):
        return _result(question, question.max_score, MCQ_CORRECT_FEEDBACK)
    return _result(question, 0.0, MCQ_INCORRECT_FEEDBACK.format(correct=correct))


def _coerce_dimension(question_id: str, key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        logger.warning("Rubric dimension %s for question %s is not numeric (%r); using 0", key, question_id, value)
        return _DIMENSION_MIN
    try:
        number = float(value)
    except ValueError:
        logger.warning("Rubric dimension %s for question %s is not numeric (%r); using 0", key, question_id, value)
        return _DIMENSION_MIN
    if not math.isfinite(number):
        logger.warning("Rubric dimension %s for question %s is not finite (%r); using 0", key, question_id, value)
        return _DIMENSION_MIN
    if number < _DIMENSION_MIN or number > _DIMENSION_MAX:
        logger.warning(
            "Rubric dimension %s for question %s out of range (%s); clamping", key, question_id, value
        )
    return int(round(min(max(number, _DIMENSION_MIN), _DIMENSION_MAX)))


def rubric_score(question: Question, raw_scores: Mapping[str, Any]) -> Tuple[float, Dict[str, int]]:
    """Convert evaluator dimension scores into points: sum / (3 * dimensions) * max score.

    Missing dimensions count as 0 and are logged rather than failing the pass.
    """
    rubric = rubric_for(question.question_type)
    lookup = {normalize_dimension_key(str(key)): value for key, value in raw_scores.items()}

    dimensions: Dict[str, int] = {}
    for key in rubric.keys:
        normalized = normalize_dimension_key(key)
        if normalized not in lookup:
            logger.warning(
                "Evaluator response for question %s omitted rubric dimension %s; defaulting to 0",
                question.question_id,
                key,
            )
            dimensions[key] = _DIMENSION_MIN
            continue
        dimensions[key] = _coerce_dimension(question.question_id, key, lookup[normalized])

    if question.max_score <= 0:
        return 0.0, dimensions
    score = sum(dimensions.values()) / rubric.max_points * question.max_score
    return min(max(score, 0.0), question.max_score), dimensions


async def score_answer(
    question: Question,
    answer: Optional[Answer],
    evaluator: RubricEvaluator,
    *,
    max_retries: int = 2,
    retry_delay_seconds: float = 1.0,
) -> QuestionResult:
    """Score one answer. Open-ended answers whose evaluator retries are exhausted come back pending."""
    if question.question_type.is_objective:
        return score_mcq(question, answer)
    if answer is None or answer.is_empty:
        return empty_answer_result(question)
    if question.max_score <= 0:
        return _result(question, 0.0, None)

    request = RubricRequest(
        question_id=question.question_id,
        question_type=question.question_type,
        domain_key=question.domain_key,
        prompt=question.prompt,
        response=answer.response,
        transcript=answer.transcript,
        max_score=question.max_score,
    )
    try:
        evaluation = await evaluate_with_retry(
            evaluator,
            request,
            max_retries=max_retries,
            retry_delay_seconds=retry_delay_seconds,
        )
    except EvaluatorUnavailableError:
        logger.warning("Question %s left pending after %d evaluator attempts", question.question_id, max_retries + 1)
        return pending_result(question)

    score, dimensions = rubric_score(question, evaluation.rubric_scores)
    return _result(question, score, evaluation.feedback or None, rubric_scores=dimensions)


__all__ = [
    "empty_answer_result",
    "pending_result",
    "rubric_score",
    "score_answer",
    "score_mcq",
]
