"""Threshold predicates that turn evaluation results into growth signals.

Badge eligibility, cohort placement, urgency alerts and reflection quality are
all pure functions of an ``EvaluationResult`` plus a small ``GrowthContext``
describing learner activity outside the assessment.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from .assessment_result import EvaluationResult, ProficiencyLevel
from .domain_scoring import exact_overall_percent
from .constants import (
    ALERT_ACTIONS_BY_URGENCY,
    AMBASSADOR_MIN_SCORE,
    BEGINNER_DOMAIN_THRESHOLD_PERCENT,
    COHORT_PLACEMENT_RULES,
    HIGH_RISK_BEGINNER_DOMAIN_COUNT,
    INACTIVITY_TIERS,
    REFLECTION_QUALITY_BANDS,
    REFLECTION_TOP_QUALITY,
    REFLECTION_WEIGHTS,
    STANDARD_BADGE_MIN_SCORE,
    STRUGGLING_FAILED_ATTEMPTS,
    URGENCY_ORDER,
)


Urgency = Literal["low", "medium", "high", "critical"]
CohortRole = Literal["learner", "mentor", "leader"]


class GrowthContext(BaseModel):
    reflection_submitted: bool = False
    peer_interaction: bool = False
    leadership_activity: bool = False
    last_active_at: Optional[datetime] = None
    failed_attempts: int = Field(default=0, ge=0)


class BadgeEligibility(BaseModel):
    standard: bool
    ambassador: bool
    missing_criteria: List[str] = Field(default_factory=list)


class CohortPlacement(BaseModel):
    role: CohortRole
    can_mentor: bool
    can_lead: bool


class AlertTrigger(BaseModel):
    condition: str
    value: float
    threshold: float


class UrgencyAlert(BaseModel):
    alert_type: str
    urgency: Urgency
    title: str
    message: str
    trigger: AlertTrigger
    recommended_actions: List[str] = Field(default_factory=list)


class ReflectionAssessment(BaseModel):
    overall: int = Field(ge=0, le=100)
    quality: Literal["poor", "acceptable", "good", "excellent"]
    action: str
    rubric_scores: Dict[str, int] = Field(default_factory=dict)


_ALERT_TITLES: Dict[str, str] = {
    "high_risk_teacher": "High-Risk Teacher Alert",
    "inactivity_nudge": "Activity Reminder",
    "inactivity_warning": "Inactivity Warning",
    "inactivity_critical": "Critical Inactivity Alert",
    "struggling_teacher": "Teacher Needs Support",
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def evaluate_badge_eligibility(result: EvaluationResult, context: GrowthContext) -> BadgeEligibility:
    score = exact_overall_percent(result)
    missing: List[str] = []
    if score < STANDARD_BADGE_MIN_SCORE:
        missing.append(f"Score must be at least {STANDARD_BADGE_MIN_SCORE:g}% (current: {result.overall_score:g}%)")
    if not context.reflection_submitted:
        missing.append("Must complete a reflection task")
    if not context.peer_interaction:
        missing.append("Must have peer interaction in cohort")
    standard = not missing

    if score < AMBASSADOR_MIN_SCORE:
        missing.append(f"Ambassador nomination requires at least {AMBASSADOR_MIN_SCORE:g}%")
    if not context.leadership_activity:
        missing.append("Ambassador nomination requires a leadership activity")
    ambassador = standard and score >= AMBASSADOR_MIN_SCORE and context.leadership_activity

    return BadgeEligibility(standard=standard, ambassador=ambassador, missing_criteria=missing)


def assign_cohort_role(level: ProficiencyLevel) -> CohortPlacement:
    role, can_mentor, can_lead = COHORT_PLACEMENT_RULES[level]
    return CohortPlacement(role=role, can_mentor=can_mentor, can_lead=can_lead)  # type: ignore[arg-type]


def _alert(alert_type: str, urgency: str, message: str, trigger: AlertTrigger) -> UrgencyAlert:
    return UrgencyAlert(
        alert_type=alert_type,
        urgency=urgency,  # type: ignore[arg-type]
        title=_ALERT_TITLES[alert_type],
        message=message,
        trigger=trigger,
        recommended_actions=list(ALERT_ACTIONS_BY_URGENCY[urgency]),
    )


def days_inactive(last_active_at: datetime, now: Optional[datetime] = None) -> int:
    current = now or datetime.now(timezone.utc)
    if last_active_at.tzinfo is None:
        last_active_at = last_active_at.replace(tzinfo=timezone.utc)
    return max(int((current - last_active_at).total_seconds() // 86400), 0)


def evaluate_urgency_alerts(
    result: EvaluationResult,
    context: GrowthContext,
    *,
    now: Optional[datetime] = None,
) -> List[UrgencyAlert]:
    """Every trigger is checked independently; all that match are returned."""
    alerts: List[UrgencyAlert] = []

    beginner_domains = sum(
        1 for domain in result.domain_scores if domain.score_percent < BEGINNER_DOMAIN_THRESHOLD_PERCENT
    )
    if beginner_domains >= HIGH_RISK_BEGINNER_DOMAIN_COUNT:
        alerts.append(
            _alert(
                "high_risk_teacher",
                "high",
                f"Teacher has {beginner_domains} beginner-level domains and needs intensive support.",
                AlertTrigger(
                    condition="beginner_domain_count",
                    value=beginner_domains,
                    threshold=HIGH_RISK_BEGINNER_DOMAIN_COUNT,
                ),
            )
        )

    if context.last_active_at is not None:
        inactive = days_inactive(context.last_active_at, now)
        messages = {
            "inactivity_nudge": f"Teacher has been inactive for {inactive} days.",
            "inactivity_warning": f"Teacher has been inactive for {inactive} days. Please check in.",
            "inactivity_critical": f"Critical: Teacher has been inactive for {inactive} days.",
        }
        for threshold, alert_type, urgency in INACTIVITY_TIERS:
            if inactive >= threshold:
                alerts.append(
                    _alert(
                        alert_type,
                        urgency,
                        messages[alert_type],
                        AlertTrigger(condition="days_inactive", value=inactive, threshold=threshold),
                    )
                )

    if context.failed_attempts >= STRUGGLING_FAILED_ATTEMPTS:
        alerts.append(
            _alert(
                "struggling_teacher",
                "medium",
                f"Teacher has failed {context.failed_attempts} assessment attempts.",
                AlertTrigger(
                    condition="failed_attempts",
                    value=context.failed_attempts,
                    threshold=STRUGGLING_FAILED_ATTEMPTS,
                ),
            )
        )

    return alerts


def overall_risk(alerts: List[UrgencyAlert]) -> Urgency:
    highest = 0
    for alert in alerts:
        highest = max(highest, URGENCY_ORDER.index(alert.urgency))
    return URGENCY_ORDER[highest]  # type: ignore[return-value]


def assess_reflection(scores: Mapping[str, float]) -> ReflectionAssessment:
    """Weighted 0-3 reflection rubric mapped onto a 0-100 quality score."""
    rubric: Dict[str, int] = {}
    weighted = 0.0
    for key, weight in REFLECTION_WEIGHTS.items():
        value = int(min(max(scores.get(key, 0), 0), 3))
        rubric[key] = value
        weighted += value * weight
    overall = _round_half_up(weighted / 3 * 100)

    quality, action = REFLECTION_TOP_QUALITY
    for upper, band_quality, band_action in REFLECTION_QUALITY_BANDS:
        if overall < upper:
            quality, action = band_quality, band_action
            break
    return ReflectionAssessment(
        overall=overall,
        quality=quality,  # type: ignore[arg-type]
        action=action,
        rubric_scores=rubric,
    )


__all__ = [
    "AlertTrigger",
    "BadgeEligibility",
    "CohortPlacement",
    "GrowthContext",
    "ReflectionAssessment",
    "UrgencyAlert",
    "assess_reflection",
    "assign_cohort_role",
    "days_inactive",
    "evaluate_badge_eligibility",
    "evaluate_urgency_alerts",
    "overall_risk",
]
