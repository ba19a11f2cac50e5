"""Result models produced by an evaluation pass."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


ProficiencyLevel = Literal["Beginner", "Developing", "Proficient", "Advanced"]


class QuestionType(str, Enum):
    MCQ = "MCQ"
    SHORT_ANSWER = "SHORT_ANSWER"
    AUDIO = "AUDIO"
    VIDEO = "VIDEO"

    @property
    def is_objective(self) -> bool:
        return self is QuestionType.MCQ


class QuestionResult(BaseModel):
    """Score awarded to a single answered question.

    ``pending`` marks open-ended questions whose evaluator call exhausted its
    retries; their score is a placeholder and the attempt cannot be finalised.
    """

    question_id: str
    question_type: QuestionType
    domain_key: str
    score: float = Field(ge=0.0)
    max_score: float = Field(ge=0.0)
    feedback: Optional[str] = None
    rubric_scores: Dict[str, int] = Field(default_factory=dict)
    pending: bool = False

    @model_validator(mode="after")
    def _score_within_max(self) -> "QuestionResult":
        if self.score > self.max_score:
            raise ValueError(
                f"Score {self.score} exceeds max score {self.max_score} for question '{self.question_id}'."
            )
        return self


class DomainScore(BaseModel):
    """Raw and maximum points summed over one domain."""

    domain_key: str
    raw_score: float = Field(ge=0.0)
    max_score: float = Field(ge=0.0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def score_percent(self) -> float:
        if self.max_score <= 0:
            return 0.0
        return self.raw_score / self.max_score * 100.0


class EvaluationResult(BaseModel):
    """Immutable outcome of a completed evaluation pass."""

    model_config = ConfigDict(frozen=True)

    attempt_id: str
    overall_score: float = Field(ge=0.0, le=100.0)
    proficiency_level: ProficiencyLevel
    strength_domains: List[str] = Field(default_factory=list)
    gap_domains: List[str] = Field(default_factory=list)
    recommended_micro_pds: List[str] = Field(default_factory=list)
    domain_scores: List[DomainScore] = Field(default_factory=list)
    question_results: List[QuestionResult] = Field(default_factory=list)
    summary_feedback: Optional[str] = None
    passed: Optional[bool] = None
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


__all__ = [
    "DomainScore",
    "EvaluationResult",
    "ProficiencyLevel",
    "QuestionResult",
    "QuestionType",
]
