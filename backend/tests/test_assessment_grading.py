from __future__ import annotations

import asyncio
from typing import Dict, List

import pytest

from competency_engine.assessment_grading import build_evaluation_result, run_evaluation_pass, summarize_feedback
from competency_engine.assessment_models import Answer, Attempt, AttemptStatus, Question
from competency_engine.assessment_result import QuestionType
from competency_engine.errors import AssessmentValidationError, EvaluatorUnavailableError
from competency_engine.evaluator import RubricEvaluation, RubricRequest

FULL_MARKS = {"depth_of_reflection": 3, "growth_orientation": 3, "clarity_of_thought": 3}


class FakeEvaluator:
    def __init__(self, scores: Dict[str, Dict[str, int]], failing: tuple[str, ...] = (), delay: float = 0.0) -> None:
        self.scores = scores
        self.failing = set(failing)
        self.delay = delay
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def evaluate(self, request: RubricRequest) -> RubricEvaluation:
        self.calls.append(request.question_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            if request.question_id in self.failing:
                raise EvaluatorUnavailableError("evaluator offline")
            return RubricEvaluation(feedback="ok", rubric_scores=self.scores[request.question_id])
        finally:
            self.in_flight -= 1


def _mcq(question_id: str, domain: str) -> Question:
    return Question(
        question_id=question_id,
        domain_key=domain,
        question_type=QuestionType.MCQ,
        max_score=1,
        options=["yes", "no"],
        correct_option="yes",
    )


def _short(question_id: str, domain: str, max_score: float = 5) -> Question:
    return Question(
        question_id=question_id,
        domain_key=domain,
        question_type=QuestionType.SHORT_ANSWER,
        prompt="Reflect on a recent lesson.",
        max_score=max_score,
    )


def _catalogue() -> Dict[str, Question]:
    questions = [
        _mcq("m1", "lesson_planning"),
        _mcq("m2", "lesson_planning"),
        _mcq("m3", "lesson_planning"),
        _short("s1", "reflective_practice"),
    ]
    return {question.question_id: question for question in questions}


def _submitted(answers: Dict[str, str], **overrides) -> Attempt:
    values = {
        "attempt_id": "attempt-42",
        "learner_id": "teacher-1",
        "target_id": "competency-v1",
        "status": AttemptStatus.SUBMITTED,
        "question_ids": ["m1", "m2", "m3", "s1"],
        "answers": {key: Answer(question_id=key, response=value) for key, value in answers.items()},
    }
    values.update(overrides)
    return Attempt(**values)


def _run(attempt: Attempt, evaluator: FakeEvaluator, **kwargs):
    kwargs.setdefault("retry_delay_seconds", 0)
    return asyncio.run(run_evaluation_pass(attempt, _catalogue(), evaluator, **kwargs))


def test_mixed_attempt_end_to_end() -> None:
    evaluator = FakeEvaluator({"s1": {"depthOfReflection": 2, "growthOrientation": 2, "clarityOfThought": 2}})
    attempt = _submitted({"m1": "yes", "m2": "YES ", "m3": "no", "s1": "I changed my questioning."})

    evaluation = _run(attempt, evaluator)
    assert evaluation.complete
    result = build_evaluation_result(attempt.attempt_id, evaluation.question_results)

    planning, reflection = result.domain_scores
    assert planning.domain_key == "lesson_planning"
    assert planning.score_percent == pytest.approx(200 / 3)
    assert reflection.raw_score == pytest.approx(30 / 9)
    assert reflection.score_percent == pytest.approx(200 / 3)
    # (2 + 10/3) / 8
    assert result.overall_score == 66.67
    assert result.proficiency_level == "Proficient"
    assert result.strength_domains == []
    assert result.gap_domains == ["lesson_planning", "reflective_practice"]
    assert result.recommended_micro_pds == [
        "mpd_backward_design",
        "mpd_learning_objectives",
        "mpd_reflection_journals",
    ]
    assert result.summary_feedback == "Areas for improvement: lesson_planning, reflective_practice."
    assert result.passed is None


def test_classification_uses_unrounded_overall() -> None:
    catalogue = {"s1": _short("s1", "ai_literacy", max_score=9000)}
    attempt = _submitted({"s1": "text"}, question_ids=["s1"])
    evaluator = FakeEvaluator({"s1": {"depth_of_reflection": 3, "growth_orientation": 3, "clarity_of_thought": 3}})
    evaluation = asyncio.run(run_evaluation_pass(attempt, catalogue, evaluator, retry_delay_seconds=0))
    rescaled = [
        item.model_copy(update={"score": 0.7999999 * item.max_score}) for item in evaluation.question_results
    ]
    result = build_evaluation_result("attempt-42", rescaled)
    assert result.overall_score == 80.0
    assert result.proficiency_level == "Proficient"


def test_unanswered_questions_score_zero() -> None:
    evaluator = FakeEvaluator({})
    evaluation = _run(_submitted({"m1": "yes"}), evaluator)
    by_id = {item.question_id: item for item in evaluation.question_results}
    assert by_id["s1"].score == 0
    assert by_id["s1"].feedback == "No answer provided."
    assert evaluator.calls == []


def test_unavailable_evaluator_leaves_question_pending() -> None:
    evaluator = FakeEvaluator({}, failing=("s1",))
    evaluation = _run(_submitted({"m1": "yes", "s1": "answer"}), evaluator, max_retries=1)
    assert not evaluation.complete
    assert evaluation.pending_question_ids == ["s1"]
    assert evaluator.calls == ["s1", "s1"]
    with pytest.raises(ValueError):
        build_evaluation_result("attempt-42", evaluation.question_results)


def test_cached_open_results_are_reused() -> None:
    first = _run(_submitted({"s1": "answer"}), FakeEvaluator({"s1": FULL_MARKS}))
    cached = {item.question_id: item for item in first.question_results if not item.pending}

    evaluator = FakeEvaluator({"s1": {"depth_of_reflection": 0, "growth_orientation": 0, "clarity_of_thought": 0}})
    second = _run(_submitted({"s1": "answer"}, question_results=cached), evaluator)

    assert evaluator.calls == []
    assert [item.score for item in second.question_results] == [item.score for item in first.question_results]


def test_open_questions_are_scored_concurrently_within_limit() -> None:
    questions = {f"s{index}": _short(f"s{index}", "ai_literacy") for index in range(6)}
    attempt = _submitted(
        {key: "answer" for key in questions},
        question_ids=list(questions),
    )
    evaluator = FakeEvaluator({key: FULL_MARKS for key in questions}, delay=0.01)
    evaluation = asyncio.run(
        run_evaluation_pass(attempt, questions, evaluator, concurrency=2, retry_delay_seconds=0)
    )
    assert evaluation.complete
    assert [item.question_id for item in evaluation.question_results] == list(questions)
    assert evaluator.max_in_flight == 2


def test_unknown_question_is_rejected() -> None:
    attempt = _submitted({"zz": "answer"}, question_ids=["zz"])
    with pytest.raises(AssessmentValidationError):
        _run(attempt, FakeEvaluator({}))


def test_build_result_sets_pass_flag_against_passing_score() -> None:
    evaluation = _run(_submitted({"m1": "yes", "m2": "yes", "m3": "yes", "s1": "x"}), FakeEvaluator({"s1": FULL_MARKS}))
    result = build_evaluation_result("attempt-42", evaluation.question_results, passing_score=100)
    assert result.overall_score == 100
    assert result.passed is True
    assert result.strength_domains == ["lesson_planning", "reflective_practice"]
    assert result.summary_feedback == "Strong performance in lesson_planning, reflective_practice."


def test_summary_fallback() -> None:
    assert summarize_feedback([], []) == "Assessment completed."
    assert summarize_feedback(["a"], ["b"]) == "Strong performance in a. Areas for improvement: b."
