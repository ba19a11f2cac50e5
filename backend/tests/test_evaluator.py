from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any, List

import pytest
from openai import OpenAIError

from competency_engine import evaluator as evaluator_module
from competency_engine.assessment_result import QuestionType
from competency_engine.config import Settings
from competency_engine.errors import EvaluatorUnavailableError
from competency_engine.evaluator import (
    OpenAIRubricEvaluator,
    RubricEvaluation,
    RubricRequest,
    evaluate_with_retry,
    parse_rubric_response,
)


def _request(question_type: QuestionType = QuestionType.SHORT_ANSWER) -> RubricRequest:
    return RubricRequest(
        question_id="q-7",
        question_type=question_type,
        domain_key="social_emotional_learning",
        prompt="A student shuts down after a poor grade. What do you say?",
        response="https://media.example.org/answer.m4a",
        transcript="I'd sit next to them and ask what happened.",
        max_score=6,
    )


class _FakeResponses:
    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome
        self.kwargs: List[dict] = []

    async def create(self, **kwargs: Any) -> Any:
        self.kwargs.append(kwargs)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return SimpleNamespace(output_text=self.outcome)


def test_parse_extracts_json_from_surrounding_prose() -> None:
    text = 'Here you go:\n```json\n{"score": 4, "feedback": " Warm tone. ", "rubricScores": {"empathyAndTone": 3}}\n```'
    evaluation = parse_rubric_response(text)
    assert evaluation.score == 4
    assert evaluation.feedback == "Warm tone."
    assert evaluation.rubric_scores == {"empathyAndTone": 3}


def test_parse_accepts_snake_case_rubric_key() -> None:
    evaluation = parse_rubric_response('{"feedback": "ok", "rubric_scores": {"logical_structure": 1}}')
    assert evaluation.rubric_scores == {"logical_structure": 1}
    assert evaluation.score is None


def test_parse_reads_only_the_first_json_object() -> None:
    text = (
        '{"feedback": "first", "rubricScores": {"clarityOfThought": 2}}\n'
        'Alternative: {"feedback": "second", "rubricScores": {"clarityOfThought": 0}}'
    )
    evaluation = parse_rubric_response(text)
    assert evaluation.feedback == "first"
    assert evaluation.rubric_scores == {"clarityOfThought": 2}


@pytest.mark.parametrize("text", ["", "no json here", "{not valid json}", "[1, 2]"])
def test_parse_rejects_unusable_output(text: str) -> None:
    with pytest.raises(EvaluatorUnavailableError):
        parse_rubric_response(text)


def test_openai_evaluator_sends_rubric_prompt() -> None:
    responses = _FakeResponses('{"score": 6, "feedback": "Great", "rubricScores": {"empathyAndTone": 3}}')
    client = SimpleNamespace(responses=responses)
    settings = Settings(COMPETENCY_EVALUATOR_MODEL="gpt-test", COMPETENCY_EVALUATOR_TEMPERATURE=0.1)
    evaluator = OpenAIRubricEvaluator(settings, client=client)  # type: ignore[arg-type]

    evaluation = asyncio.run(evaluator.evaluate(_request(QuestionType.AUDIO)))

    assert evaluation.feedback == "Great"
    sent = responses.kwargs[0]
    assert sent["model"] == "gpt-test"
    assert sent["temperature"] == 0.1
    assert "I'd sit next to them and ask what happened." in sent["input"]
    assert "AUDIO roleplay response" in sent["input"]
    assert "rubricScores" in sent["instructions"]


def test_openai_errors_become_evaluator_unavailable() -> None:
    client = SimpleNamespace(responses=_FakeResponses(OpenAIError("connection reset")))
    evaluator = OpenAIRubricEvaluator(Settings(), client=client)  # type: ignore[arg-type]
    with pytest.raises(EvaluatorUnavailableError):
        asyncio.run(evaluator.evaluate(_request()))


def test_retry_uses_linear_backoff_then_gives_up(monkeypatch) -> None:
    delays: List[float] = []

    async def fake_sleep(seconds: float) -> None:
        delays.append(seconds)

    monkeypatch.setattr(evaluator_module, "asyncio", SimpleNamespace(sleep=fake_sleep))

    class AlwaysDown:
        calls = 0

        async def evaluate(self, request: RubricRequest) -> RubricEvaluation:
            AlwaysDown.calls += 1
            raise EvaluatorUnavailableError("503")

    with pytest.raises(EvaluatorUnavailableError):
        asyncio.run(evaluate_with_retry(AlwaysDown(), _request(), max_retries=2, retry_delay_seconds=1.5))

    assert AlwaysDown.calls == 3
    assert delays == [1.5, 3.0]


def test_non_transient_errors_are_not_retried() -> None:
    class Broken:
        calls = 0

        async def evaluate(self, request: RubricRequest) -> RubricEvaluation:
            Broken.calls += 1
            raise KeyError("bug")

    with pytest.raises(KeyError):
        asyncio.run(evaluate_with_retry(Broken(), _request(), max_retries=2, retry_delay_seconds=0))
    assert Broken.calls == 1
