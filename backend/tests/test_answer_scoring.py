from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

import pytest

from competency_engine.answer_scoring import rubric_score, score_answer, score_mcq
from competency_engine.assessment_models import Answer, Question
from competency_engine.assessment_result import QuestionType
from competency_engine.errors import EvaluatorUnavailableError
from competency_engine.evaluator import RubricEvaluation, RubricRequest, parse_rubric_response


class ScriptedEvaluator:
    """Returns queued verdicts in order; an exception in the queue is raised instead."""

    def __init__(self, *outcomes: object) -> None:
        self.outcomes: List[object] = list(outcomes)
        self.requests: List[RubricRequest] = []

    async def evaluate(self, request: RubricRequest) -> RubricEvaluation:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        assert isinstance(outcome, RubricEvaluation)
        return outcome


def _mcq(max_score: float = 1.0) -> Question:
    return Question(
        question_id="mcq-1",
        domain_key="lesson_planning",
        question_type=QuestionType.MCQ,
        prompt="Which objective is measurable?",
        max_score=max_score,
        options=["Understand fractions", "Compare two fractions with unlike denominators"],
        correct_option="Compare two fractions with unlike denominators",
    )


def _open(question_type: QuestionType = QuestionType.SHORT_ANSWER, max_score: float = 5.0) -> Question:
    return Question(
        question_id="open-1",
        domain_key="reflective_practice",
        question_type=question_type,
        prompt="Describe a lesson that did not go as planned.",
        max_score=max_score,
    )


def _verdict(scores: Dict[str, object], feedback: str = "Thoughtful reflection.") -> RubricEvaluation:
    return RubricEvaluation(score=None, feedback=feedback, rubric_scores=scores)


def _score(question: Question, answer: Optional[Answer], evaluator: ScriptedEvaluator, **kwargs):
    kwargs.setdefault("retry_delay_seconds", 0)
    return asyncio.run(score_answer(question, answer, evaluator, **kwargs))


def test_mcq_match_ignores_case_and_whitespace() -> None:
    answer = Answer(question_id="mcq-1", response="  compare TWO fractions with unlike denominators ")
    result = score_mcq(_mcq(max_score=2), answer)
    assert result.score == 2
    assert result.feedback == "Correct answer."


def test_mcq_wrong_option_scores_zero_and_names_correct_answer() -> None:
    result = score_mcq(_mcq(), Answer(question_id="mcq-1", response="Understand fractions"))
    assert result.score == 0
    assert result.feedback == "Incorrect. The correct answer was: Compare two fractions with unlike denominators"


def test_mcq_never_calls_evaluator() -> None:
    evaluator = ScriptedEvaluator(EvaluatorUnavailableError("should not be called"))
    result = _score(_mcq(), Answer(question_id="mcq-1", response="Understand fractions"), evaluator)
    assert result.score == 0
    assert evaluator.requests == []


@pytest.mark.parametrize("answer", [None, Answer(question_id="open-1", response="   ")])
def test_empty_open_answer_scores_zero_without_evaluator(answer: Optional[Answer]) -> None:
    evaluator = ScriptedEvaluator(_verdict({}))
    result = _score(_open(), answer, evaluator)
    assert result.score == 0
    assert result.feedback == "No answer provided."
    assert evaluator.requests == []


def test_rubric_dimensions_convert_proportionally() -> None:
    evaluator = ScriptedEvaluator(
        _verdict({"depthOfReflection": 2, "growthOrientation": 3, "clarityOfThought": 3})
    )
    result = _score(_open(max_score=5), Answer(question_id="open-1", response="I re-planned the lesson."), evaluator)
    assert result.score == pytest.approx(8 / 9 * 5)
    assert result.rubric_scores == {
        "depth_of_reflection": 2,
        "growth_orientation": 3,
        "clarity_of_thought": 3,
    }
    assert result.feedback == "Thoughtful reflection."
    assert not result.pending


def test_evaluator_score_field_is_ignored() -> None:
    question = _open(max_score=9)
    verdict = RubricEvaluation(
        score=9,
        feedback="",
        rubric_scores={"depth_of_reflection": 1, "growth_orientation": 1, "clarity_of_thought": 1},
    )
    result = _score(question, Answer(question_id="open-1", response="Short answer"), ScriptedEvaluator(verdict))
    assert result.score == pytest.approx(3)
    assert result.feedback is None


def test_missing_dimension_defaults_to_zero_and_logs(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="competency_engine.answer_scoring")
    score, dimensions = rubric_score(_open(max_score=9), {"depthOfReflection": 3, "clarityOfThought": 3})
    assert score == pytest.approx(6)
    assert dimensions["growth_orientation"] == 0
    assert "omitted rubric dimension growth_orientation" in caplog.text


def test_out_of_range_dimensions_are_clamped() -> None:
    score, dimensions = rubric_score(
        _open(QuestionType.AUDIO, max_score=3),
        {"empathyAndTone": 7, "instructionalLanguage": -2, "logicalStructure": "2"},
    )
    assert dimensions == {"empathy_and_tone": 3, "instructional_language": 0, "logical_structure": 2}
    assert score == pytest.approx(5 / 9 * 3)


def test_zero_max_score_open_question_skips_evaluator() -> None:
    evaluator = ScriptedEvaluator(_verdict({}))
    result = _score(_open(max_score=0), Answer(question_id="open-1", response="Some text"), evaluator)
    assert result.score == 0
    assert evaluator.requests == []


def test_exhausted_retries_mark_question_pending() -> None:
    evaluator = ScriptedEvaluator(EvaluatorUnavailableError("timeout"))
    result = _score(_open(), Answer(question_id="open-1", response="Answer"), evaluator, max_retries=2)
    assert result.pending
    assert result.score == 0
    assert len(evaluator.requests) == 3


def test_transient_failure_is_retried() -> None:
    evaluator = ScriptedEvaluator(
        EvaluatorUnavailableError("rate limited"),
        _verdict({"depth_of_reflection": 3, "growth_orientation": 3, "clarity_of_thought": 3}),
    )
    result = _score(_open(max_score=4), Answer(question_id="open-1", response="Answer"), evaluator, max_retries=1)
    assert not result.pending
    assert result.score == pytest.approx(4)
    assert len(evaluator.requests) == 2


def test_video_answer_sends_transcript_to_evaluator() -> None:
    evaluator = ScriptedEvaluator(
        _verdict({"empathyAndTone": 3, "instructionalLanguage": 2, "logicalStructure": 1})
    )
    answer = Answer(
        question_id="open-1",
        response="https://media.example.org/roleplay.mp4",
        transcript="I would first acknowledge how the student feels.",
    )
    result = _score(_open(QuestionType.VIDEO, max_score=3), answer, evaluator)
    assert result.score == pytest.approx(2)
    prompt = evaluator.requests[0].render_prompt()
    assert "I would first acknowledge how the student feels." in prompt
    assert "roleplay.mp4" not in prompt
    assert "EMPATHY & TONE" in prompt


def test_non_finite_dimensions_score_zero_without_failing(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="competency_engine.answer_scoring")
    verdict = parse_rubric_response(
        '{"feedback": "ok", "rubricScores": {"depthOfReflection": NaN, "growthOrientation": Infinity, '
        '"clarityOfThought": 3}}'
    )
    result = _score(_open(max_score=9), Answer(question_id="open-1", response="A reflection"), ScriptedEvaluator(verdict))

    assert not result.pending
    assert result.rubric_scores == {"depth_of_reflection": 0, "growth_orientation": 0, "clarity_of_thought": 3}
    assert result.score == pytest.approx(3)
    assert "depth_of_reflection for question open-1 is not finite" in caplog.text
