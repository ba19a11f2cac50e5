"""Rubric catalogue and evaluator prompts for open-ended questions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .assessment_result import QuestionType


@dataclass(frozen=True)
class RubricDimension:
    key: str
    label: str
    descriptors: Tuple[str, str, str, str]


@dataclass(frozen=True)
class Rubric:
    name: str
    dimensions: Tuple[RubricDimension, RubricDimension, RubricDimension]

    @property
    def keys(self) -> Tuple[str, ...]:
        return tuple(dimension.key for dimension in self.dimensions)

    @property
    def max_points(self) -> int:
        return 3 * len(self.dimensions)


SHORT_ANSWER_RUBRIC = Rubric(
    name="reflection",
    dimensions=(
        RubricDimension(
            "depth_of_reflection",
            "DEPTH OF REFLECTION",
            (
                "No response or irrelevant answer",
                "Superficial response, minimal relevance",
                "General insights with some application",
                "Clear, detailed reflection with relevance",
            ),
        ),
        RubricDimension(
            "growth_orientation",
            "GROWTH ORIENTATION",
            (
                "Shows no self-improvement or insight",
                "Acknowledges problem but no clear learning",
                "Demonstrates learning from experience",
                "Demonstrates clear growth or change",
            ),
        ),
        RubricDimension(
            "clarity_of_thought",
            "CLARITY OF THOUGHT",
            (
                "Rambling or incoherent",
                "Somewhat understandable but vague",
                "Mostly clear, some minor issues",
                "Well-organized and articulate",
            ),
        ),
    ),
)

ROLEPLAY_RUBRIC = Rubric(
    name="roleplay",
    dimensions=(
        RubricDimension(
            "empathy_and_tone",
            "EMPATHY & TONE",
            (
                "Insensitive or dismissive tone",
                "Limited empathy or forced tone",
                "Generally warm and student-focused",
                "Empathetic, calm, and appropriate",
            ),
        ),
        RubricDimension(
            "instructional_language",
            "INSTRUCTIONAL LANGUAGE",
            (
                "No instructional terms or strategy mentioned",
                "Vague strategy mentioned with unclear terms",
                "Some relevant instructional language",
                "Effective use of educational vocabulary",
            ),
        ),
        RubricDimension(
            "logical_structure",
            "LOGICAL STRUCTURE",
            (
                "Completely illogical or unrelated",
                "Weak logic or partial mismatch",
                "Mostly logical flow with purpose",
                "Well-structured response with sound logic",
            ),
        ),
    ),
)

_RUBRICS: Dict[QuestionType, Rubric] = {
    QuestionType.SHORT_ANSWER: SHORT_ANSWER_RUBRIC,
    QuestionType.AUDIO: ROLEPLAY_RUBRIC,
    QuestionType.VIDEO: ROLEPLAY_RUBRIC,
}

EVALUATOR_SYSTEM_PROMPT = (
    "You are an expert educational assessment evaluator specializing in teacher competency evaluation. "
    "Score teacher responses objectively against the rubric dimensions provided, each on a 0-3 scale. "
    "Be fair and consistent, recognise both strengths and areas for improvement, and give specific, "
    "actionable feedback. "
    "Always respond with valid JSON only: "
    '{"score": <number>, "feedback": "<string>", "rubricScores": {"<dimension>": <0-3>, ...}}'
)

_INTROS: Dict[QuestionType, Tuple[str, str, str]] = {
    QuestionType.SHORT_ANSWER: (
        "Evaluate the following SHORT_ANSWER response for a teacher competency assessment.",
        "Question",
        "Teacher's Response",
    ),
    QuestionType.AUDIO: (
        "Evaluate the following AUDIO roleplay response (transcribed) for a teacher competency assessment. "
        "Evaluate based on the content of the transcription.",
        "Scenario/Prompt",
        "Teacher's Response (Transcribed)",
    ),
    QuestionType.VIDEO: (
        "Evaluate the following VIDEO roleplay response (transcribed audio) for a teacher competency assessment. "
        "Evaluate based on the verbal content.",
        "Scenario/Prompt",
        "Video Content (Transcribed Audio)",
    ),
}


def rubric_for(question_type: QuestionType) -> Rubric:
    try:
        return _RUBRICS[question_type]
    except KeyError:
        raise ValueError(f"No rubric applies to {question_type.value} questions.") from None


def normalize_dimension_key(value: str) -> str:
    """``depthOfReflection``, ``depth_of_reflection`` and ``Depth Of Reflection`` compare equal."""
    return "".join(ch for ch in value.lower() if ch.isalnum())


def build_rubric_prompt(
    question_type: QuestionType,
    *,
    prompt: str,
    response: str,
    domain_key: str,
    max_score: float,
    transcript: Optional[str] = None,
) -> str:
    rubric = rubric_for(question_type)
    intro, prompt_label, response_label = _INTROS[question_type]
    content = transcript if transcript and question_type is not QuestionType.SHORT_ANSWER else response

    lines = [
        intro,
        "",
        f"Domain: {domain_key}",
        f"Maximum Score: {max_score:g}",
        "",
        f"{prompt_label}:",
        prompt,
        "",
        f"{response_label}:",
        content,
        "",
        "RUBRIC-BASED EVALUATION (Score each dimension 0-3):",
    ]
    for index, dimension in enumerate(rubric.dimensions, start=1):
        lines.append("")
        lines.append(f"{index}. {dimension.label}:")
        for level, descriptor in enumerate(dimension.descriptors):
            lines.append(f"   - {level}: {descriptor}")
    lines.extend(
        [
            "",
            f"Calculate final score: (sum of rubric scores / {rubric.max_points}) * {max_score:g}",
            "",
            "Provide your evaluation as JSON with keys score, feedback and rubricScores "
            f"({', '.join(rubric.keys)}).",
        ]
    )
    return "\n".join(lines)


__all__ = [
    "EVALUATOR_SYSTEM_PROMPT",
    "ROLEPLAY_RUBRIC",
    "Rubric",
    "RubricDimension",
    "SHORT_ANSWER_RUBRIC",
    "build_rubric_prompt",
    "normalize_dimension_key",
    "rubric_for",
]
