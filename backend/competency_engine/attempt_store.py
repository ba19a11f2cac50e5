"""SQLAlchemy-backed document store for questions, modules, attempts and results."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, Field
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from .assessment_models import Attempt, AttemptStatus, PdModule, Question
from .assessment_result import EvaluationResult
from .db.models import (
    AssessmentAttemptModel,
    AssessmentQuestionModel,
    AttemptEventModel,
    EvaluationResultModel,
    PdModuleModel,
)
from .db.session import session_scope
from .errors import AttemptNotFoundError, StateConflictError


logger = logging.getLogger(__name__)


class AttemptEvent(BaseModel):
    event_type: str
    attempt_id: Optional[str] = None
    learner_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class AttemptStore:
    """Attempts are stored whole, one JSON document per row.

    Writes use a ``version`` compare-and-set so two evaluators racing on the
    same attempt cannot both commit a transition.
    """

    # ------------------------------------------------------------------
    # Questions and modules
    # ------------------------------------------------------------------

    def add_questions(self, target_id: str, questions: Iterable[Question]) -> None:
        with session_scope() as session:
            for position, question in enumerate(questions):
                stmt = select(AssessmentQuestionModel).where(
                    AssessmentQuestionModel.question_id == question.question_id
                )
                model = session.execute(stmt).scalar_one_or_none()
                payload = question.model_dump(mode="json")
                if model is None:
                    session.add(
                        AssessmentQuestionModel(
                            target_id=target_id,
                            question_id=question.question_id,
                            position=position,
                            payload=payload,
                        )
                    )
                else:
                    model.target_id = target_id
                    model.position = position
                    model.payload = payload

    def get_questions(self, target_id: str) -> List[Question]:
        with session_scope(commit=False) as session:
            stmt = (
                select(AssessmentQuestionModel)
                .where(AssessmentQuestionModel.target_id == target_id)
                .order_by(AssessmentQuestionModel.position, AssessmentQuestionModel.id)
            )
            rows = session.execute(stmt).scalars().all()
            return [Question.model_validate(row.payload) for row in rows]

    def get_questions_by_id(self, question_ids: Sequence[str]) -> Dict[str, Question]:
        if not question_ids:
            return {}
        with session_scope(commit=False) as session:
            stmt = select(AssessmentQuestionModel).where(AssessmentQuestionModel.question_id.in_(list(question_ids)))
            rows = session.execute(stmt).scalars().all()
            return {row.question_id: Question.model_validate(row.payload) for row in rows}

    def upsert_module(self, module: PdModule) -> PdModule:
        with session_scope() as session:
            model = session.get(PdModuleModel, module.module_id)
            if model is None:
                model = PdModuleModel(module_id=module.module_id)
                session.add(model)
            model.title = module.title
            model.domain_key = module.domain_key
            model.passing_score = module.passing_score
            model.max_attempts = module.max_attempts
            model.cooldown_hours = module.cooldown_hours
            model.active = module.active
        return module

    def get_module(self, module_id: str) -> PdModule:
        with session_scope(commit=False) as session:
            model = session.get(PdModuleModel, module_id)
            if model is None:
                raise AttemptNotFoundError(f"PD module '{module_id}' does not exist.")
            return PdModule(
                module_id=model.module_id,
                title=model.title,
                domain_key=model.domain_key,
                passing_score=model.passing_score,
                max_attempts=model.max_attempts,
                cooldown_hours=model.cooldown_hours,
                active=model.active,
            )

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def create_attempt(self, attempt: Attempt) -> Attempt:
        stored = attempt.model_copy(update={"version": 1})
        try:
            with session_scope() as session:
                session.add(
                    AssessmentAttemptModel(
                        attempt_id=stored.attempt_id,
                        learner_id=stored.learner_id,
                        target_id=stored.target_id,
                        kind=stored.kind,
                        attempt_number=stored.attempt_number,
                        status=stored.status.value,
                        submitted_at=stored.submitted_at,
                        version=stored.version,
                        document=stored.model_dump(mode="json"),
                    )
                )
        except IntegrityError as exc:
            raise StateConflictError(
                f"Attempt {stored.attempt_number} for '{stored.learner_id}' on '{stored.target_id}' already exists.",
                attempt_id=stored.attempt_id,
            ) from exc
        logger.info(
            "Created attempt %s (#%d) for %s on %s",
            stored.attempt_id,
            stored.attempt_number,
            stored.learner_id,
            stored.target_id,
        )
        return stored

    def get_attempt(self, attempt_id: str) -> Attempt:
        with session_scope(commit=False) as session:
            model = session.get(AssessmentAttemptModel, attempt_id)
            if model is None:
                raise AttemptNotFoundError(f"Attempt '{attempt_id}' was not found.")
            return self._model_to_domain(model)

    def list_attempts(self, learner_id: str, target_id: str) -> List[Attempt]:
        with session_scope(commit=False) as session:
            stmt = (
                select(AssessmentAttemptModel)
                .where(
                    AssessmentAttemptModel.learner_id == learner_id,
                    AssessmentAttemptModel.target_id == target_id,
                )
                .order_by(AssessmentAttemptModel.attempt_number)
            )
            return [self._model_to_domain(row) for row in session.execute(stmt).scalars().all()]

    def list_by_status(self, status: AttemptStatus, limit: Optional[int] = None) -> List[Attempt]:
        with session_scope(commit=False) as session:
            stmt = (
                select(AssessmentAttemptModel)
                .where(AssessmentAttemptModel.status == status.value)
                .order_by(AssessmentAttemptModel.submitted_at, AssessmentAttemptModel.attempt_id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            return [self._model_to_domain(row) for row in session.execute(stmt).scalars().all()]

    def count_failed_attempts(self, learner_id: str) -> int:
        with session_scope(commit=False) as session:
            stmt = select(func.count()).select_from(AssessmentAttemptModel).where(
                AssessmentAttemptModel.learner_id == learner_id,
                AssessmentAttemptModel.status == AttemptStatus.FAILED.value,
            )
            return int(session.execute(stmt).scalar_one())

    def save(self, attempt: Attempt) -> Attempt:
        """Write ``attempt`` if the stored version still matches ``attempt.version``."""
        expected = attempt.version
        stored = attempt.model_copy(update={"version": expected + 1})
        with session_scope() as session:
            result = session.execute(
                update(AssessmentAttemptModel)
                .where(
                    AssessmentAttemptModel.attempt_id == attempt.attempt_id,
                    AssessmentAttemptModel.version == expected,
                )
                .values(
                    status=stored.status.value,
                    submitted_at=stored.submitted_at,
                    version=stored.version,
                    document=stored.model_dump(mode="json"),
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if result.rowcount != 1:
                raise StateConflictError(
                    f"Attempt '{attempt.attempt_id}' was modified concurrently (expected version {expected}).",
                    attempt_id=attempt.attempt_id,
                    status=attempt.status.value,
                )
        return stored

    # ------------------------------------------------------------------
    # Results and events
    # ------------------------------------------------------------------

    def append_result(self, result: EvaluationResult) -> None:
        with session_scope() as session:
            session.add(
                EvaluationResultModel(
                    attempt_id=result.attempt_id,
                    evaluated_at=result.evaluated_at,
                    payload=result.model_dump(mode="json"),
                )
            )

    def list_results(self, attempt_id: str) -> List[EvaluationResult]:
        with session_scope(commit=False) as session:
            stmt = (
                select(EvaluationResultModel)
                .where(EvaluationResultModel.attempt_id == attempt_id)
                .order_by(EvaluationResultModel.id)
            )
            rows = session.execute(stmt).scalars().all()
            return [EvaluationResult.model_validate(row.payload) for row in rows]

    def record_event(
        self,
        event_type: str,
        payload: Dict[str, Any],
        *,
        attempt_id: Optional[str] = None,
        learner_id: Optional[str] = None,
    ) -> None:
        with session_scope() as session:
            session.add(
                AttemptEventModel(
                    attempt_id=attempt_id,
                    learner_id=learner_id,
                    event_type=event_type,
                    payload=payload,
                )
            )

    def list_events(self, attempt_id: str) -> List[AttemptEvent]:
        with session_scope(commit=False) as session:
            stmt = (
                select(AttemptEventModel)
                .where(AttemptEventModel.attempt_id == attempt_id)
                .order_by(AttemptEventModel.id)
            )
            return [
                AttemptEvent(
                    event_type=row.event_type,
                    attempt_id=row.attempt_id,
                    learner_id=row.learner_id,
                    payload=dict(row.payload or {}),
                    created_at=row.created_at,
                )
                for row in session.execute(stmt).scalars().all()
            ]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _model_to_domain(self, model: AssessmentAttemptModel) -> Attempt:
        attempt = Attempt.model_validate(model.document)
        if attempt.version != model.version:
            attempt = attempt.model_copy(update={"version": model.version})
        return attempt


attempt_store = AttemptStore()

__all__ = ["AttemptEvent", "AttemptStore", "attempt_store"]
