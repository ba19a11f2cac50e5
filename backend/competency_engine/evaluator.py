"""Rubric evaluator contract, OpenAI-backed implementation and retry helper."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Protocol

from openai import AsyncOpenAI, OpenAIError
from pydantic import BaseModel, Field, ValidationError

from .assessment_result import QuestionType
from .config import Settings
from .errors import EvaluatorUnavailableError
from .rubrics import EVALUATOR_SYSTEM_PROMPT, build_rubric_prompt


logger = logging.getLogger(__name__)


class RubricRequest(BaseModel):
    question_id: str
    question_type: QuestionType
    domain_key: str
    prompt: str
    response: str
    transcript: Optional[str] = None
    max_score: float

    def render_prompt(self) -> str:
        return build_rubric_prompt(
            self.question_type,
            prompt=self.prompt,
            response=self.response,
            domain_key=self.domain_key,
            max_score=self.max_score,
            transcript=self.transcript,
        )


class RubricEvaluation(BaseModel):
    """Raw evaluator verdict; the engine recomputes the score from ``rubric_scores``."""

    score: Optional[float] = None
    feedback: str = ""
    rubric_scores: Dict[str, Any] = Field(default_factory=dict)


class RubricEvaluator(Protocol):
    async def evaluate(self, request: RubricRequest) -> RubricEvaluation:  # pragma: no cover - protocol definition
        ...


def _first_json_object(text: str) -> Dict[str, Any]:
    start = text.find("{")
    if start == -1:
        raise EvaluatorUnavailableError("Evaluator response did not contain a JSON object.")
    try:
        data, _ = json.JSONDecoder().raw_decode(text, start)
    except json.JSONDecodeError as exc:
        raise EvaluatorUnavailableError(f"Evaluator returned malformed JSON: {exc}") from exc
    return data


def parse_rubric_response(text: str) -> RubricEvaluation:
    """Extract the first JSON object from free-form model output."""
    data = _first_json_object(text or "")
    rubric_scores = data.get("rubricScores", data.get("rubric_scores")) or {}
    if not isinstance(rubric_scores, dict):
        rubric_scores = {}
    feedback = data.get("feedback")
    try:
        return RubricEvaluation(
            score=data.get("score") if isinstance(data.get("score"), (int, float)) else None,
            feedback=feedback.strip() if isinstance(feedback, str) else "",
            rubric_scores=rubric_scores,
        )
    except ValidationError as exc:
        raise EvaluatorUnavailableError(f"Evaluator payload failed validation: {exc}") from exc


class OpenAIRubricEvaluator:
    """Scores open-ended answers with the OpenAI Responses API."""

    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None) -> None:
        self._settings = settings
        # Retries are handled by evaluate_with_retry.
        self._client = client or AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.evaluator_timeout_seconds,
            max_retries=0,
        )

    async def evaluate(self, request: RubricRequest) -> RubricEvaluation:
        try:
            response = await self._client.responses.create(
                model=self._settings.evaluator_model,
                instructions=EVALUATOR_SYSTEM_PROMPT,
                input=request.render_prompt(),
                temperature=self._settings.evaluator_temperature,
                max_output_tokens=self._settings.evaluator_max_output_tokens,
            )
        except OpenAIError as exc:
            raise EvaluatorUnavailableError(
                f"OpenAI evaluator call failed for question '{request.question_id}': {exc}"
            ) from exc
        return parse_rubric_response(response.output_text)


async def evaluate_with_retry(
    evaluator: RubricEvaluator,
    request: RubricRequest,
    *,
    max_retries: int,
    retry_delay_seconds: float,
) -> RubricEvaluation:
    """Call ``evaluator`` up to ``max_retries + 1`` times with linear backoff."""
    last_error: EvaluatorUnavailableError | None = None
    for attempt in range(max_retries + 1):
        try:
            return await evaluator.evaluate(request)
        except EvaluatorUnavailableError as exc:
            last_error = exc
            logger.error(
                "Rubric evaluation failed for question %s (attempt %d/%d): %s",
                request.question_id,
                attempt + 1,
                max_retries + 1,
                exc,
            )
            if attempt < max_retries and retry_delay_seconds > 0:
                await asyncio.sleep(retry_delay_seconds * (attempt + 1))
    assert last_error is not None
    raise last_error


__all__ = [
    "OpenAIRubricEvaluator",
    "RubricEvaluation",
    "RubricEvaluator",
    "RubricRequest",
    "evaluate_with_retry",
    "parse_rubric_response",
]
