"""Domain models for questions, answers, attempts and PD modules."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from .assessment_result import EvaluationResult, QuestionResult, QuestionType


AttemptKind = Literal["competency", "pd_module"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_option(value: str) -> str:
    return value.strip().lower()


class AttemptStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    EVALUATED = "EVALUATED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (AttemptStatus.EVALUATED, AttemptStatus.FAILED)


class Question(BaseModel):
    question_id: str = Field(min_length=1)
    domain_key: str = Field(min_length=1)
    question_type: QuestionType
    prompt: str = ""
    max_score: float = Field(default=1.0, ge=0.0)
    options: List[str] = Field(default_factory=list)
    correct_option: Optional[str] = None

    @model_validator(mode="after")
    def _check_options(self) -> "Question":
        if self.question_type is QuestionType.MCQ:
            if not self.options or self.correct_option is None:
                raise ValueError(f"MCQ question '{self.question_id}' requires options and a correct option.")
            normalized = {normalize_option(option) for option in self.options}
            if normalize_option(self.correct_option) not in normalized:
                raise ValueError(
                    f"Correct option for question '{self.question_id}' is not one of its options."
                )
        elif self.options or self.correct_option is not None:
            raise ValueError(
                f"{self.question_type.value} question '{self.question_id}' cannot carry options."
            )
        return self


class Answer(BaseModel):
    """A learner's response. AUDIO/VIDEO responses are media URLs with an optional transcript."""

    question_id: str = Field(min_length=1)
    response: str = ""
    transcript: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not self.response.strip() and not (self.transcript or "").strip()


class PdModule(BaseModel):
    module_id: str = Field(min_length=1)
    title: str = ""
    domain_key: Optional[str] = None
    passing_score: float = Field(default=70.0, ge=0.0, le=100.0)
    max_attempts: int = Field(default=3, ge=1)
    cooldown_hours: float = Field(default=24.0, ge=0.0)
    active: bool = True


class Attempt(BaseModel):
    attempt_id: str = Field(default_factory=lambda: uuid4().hex)
    learner_id: str = Field(min_length=1)
    target_id: str = Field(min_length=1)
    kind: AttemptKind = "competency"
    attempt_number: int = Field(default=1, ge=1)
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    question_ids: List[str] = Field(default_factory=list)
    answers: Dict[str, Answer] = Field(default_factory=dict)
    question_results: Dict[str, QuestionResult] = Field(default_factory=dict)
    result: Optional[EvaluationResult] = None
    evaluation_passes: int = Field(default=0, ge=0)
    failure_reason: Optional[str] = None
    version: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    submitted_at: Optional[datetime] = None
    evaluated_at: Optional[datetime] = None


__all__ = [
    "Answer",
    "Attempt",
    "AttemptKind",
    "AttemptStatus",
    "PdModule",
    "Question",
    "QuestionType",
    "normalize_option",
]
