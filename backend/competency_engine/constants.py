"""Static routing tables and thresholds for competency scoring and growth signals."""

from __future__ import annotations

from typing import Dict, List, Tuple

PROFICIENCY_BANDS: Tuple[Tuple[float, str], ...] = (
    (40.0, "Beginner"),
    (60.0, "Developing"),
    (80.0, "Proficient"),
)
TOP_PROFICIENCY_BAND = "Advanced"

STRENGTH_THRESHOLD_PERCENT = 90.0
BEGINNER_DOMAIN_THRESHOLD_PERCENT = 40.0

COMPETENCY_DOMAINS: Tuple[str, ...] = (
    "lesson_planning",
    "instructional_strategies",
    "classroom_management",
    "assessment_feedback",
    "facilitation_presentation",
    "edtech_fluency",
    "ai_literacy",
    "blended_online_instruction",
    "cybersecurity_digital_citizenship",
    "differentiated_instruction",
    "inclusive_education",
    "cultural_competence_dei",
    "social_emotional_learning",
    "reflective_practice",
    "lifelong_learning",
    "career_portfolio",
    "parent_stakeholder_communication",
    "professional_collaboration",
    "ethics_professionalism",
    "innovation_change_management",
    "critical_thinking_creativity",
    "global_citizenship_sustainability",
    "media_information_literacy",
    "child_development_psychology",
    "education_policy_governance",
)

PD_TRACKS: Dict[str, Dict[str, object]] = {
    "pedagogical_mastery": {
        "name": "Pedagogical Mastery",
        "badge": "Pedagogical Architect",
        "competencies": (
            "lesson_planning",
            "instructional_strategies",
            "classroom_management",
            "assessment_feedback",
            "facilitation_presentation",
        ),
    },
    "tech_ai_fluency": {
        "name": "AI & Tech",
        "badge": "AI-Enhanced Educator",
        "competencies": (
            "edtech_fluency",
            "ai_literacy",
            "blended_online_instruction",
            "cybersecurity_digital_citizenship",
        ),
    },
    "inclusive_practice": {
        "name": "Inclusive Practice",
        "badge": "Inclusive Classroom Champion",
        "competencies": (
            "differentiated_instruction",
            "inclusive_education",
            "cultural_competence_dei",
            "social_emotional_learning",
        ),
    },
    "professional_identity": {
        "name": "Professional Identity",
        "badge": "Professional Teacher Identity",
        "competencies": (
            "reflective_practice",
            "lifelong_learning",
            "career_portfolio",
            "parent_stakeholder_communication",
            "professional_collaboration",
            "ethics_professionalism",
        ),
    },
    "global_citizenship": {
        "name": "Global Citizenship",
        "badge": "Global & Future-Ready Educator",
        "competencies": (
            "innovation_change_management",
            "critical_thinking_creativity",
            "global_citizenship_sustainability",
            "media_information_literacy",
        ),
    },
    "educational_foundations": {
        "name": "Educational Foundations",
        "badge": "Certified Education Theorist",
        "competencies": (
            "child_development_psychology",
            "education_policy_governance",
        ),
    },
}

DOMAIN_TO_TRACK_MAP: Dict[str, str] = {
    domain: track_id
    for track_id, track in PD_TRACKS.items()
    for domain in track["competencies"]  # type: ignore[union-attr]
}

TRACK_MODULE_TYPES: Dict[str, List[str]] = {
    "pedagogical_mastery": ["Lesson Planning", "Engagement Strategies", "Assessment Design"],
    "tech_ai_fluency": ["AI Literacy", "EdTech Tools", "Digital Safety"],
    "inclusive_practice": ["UDL Design", "SEL Activities", "Differentiation"],
    "professional_identity": ["Reflection Journals", "Parent Communication", "Ethics"],
    "global_citizenship": ["PBL", "Creativity Frameworks", "Media Literacy"],
    "educational_foundations": ["Learning Theories", "Child Psychology", "Policy Awareness"],
}

# Gap domain -> micro-PD module identifiers, most foundational first.
DOMAIN_MICRO_PD_MAP: Dict[str, List[str]] = {
    "lesson_planning": ["mpd_backward_design", "mpd_learning_objectives"],
    "instructional_strategies": ["mpd_active_learning", "mpd_questioning_techniques"],
    "classroom_management": ["mpd_routines_procedures", "mpd_positive_behavior"],
    "assessment_feedback": ["mpd_formative_assessment", "mpd_effective_feedback"],
    "facilitation_presentation": ["mpd_facilitation_skills"],
    "edtech_fluency": ["mpd_edtech_integration"],
    "ai_literacy": ["mpd_ai_in_classroom", "mpd_prompting_basics"],
    "blended_online_instruction": ["mpd_blended_learning", "mpd_edtech_integration"],
    "cybersecurity_digital_citizenship": ["mpd_digital_safety"],
    "differentiated_instruction": ["mpd_differentiation", "mpd_udl_foundations"],
    "inclusive_education": ["mpd_udl_foundations", "mpd_inclusive_classroom"],
    "cultural_competence_dei": ["mpd_culturally_responsive_teaching"],
    "social_emotional_learning": ["mpd_sel_activities"],
    "reflective_practice": ["mpd_reflection_journals"],
    "lifelong_learning": ["mpd_growth_plan"],
    "career_portfolio": ["mpd_teaching_portfolio"],
    "parent_stakeholder_communication": ["mpd_parent_communication"],
    "professional_collaboration": ["mpd_professional_learning_communities"],
    "ethics_professionalism": ["mpd_professional_ethics"],
    "innovation_change_management": ["mpd_project_based_learning"],
    "critical_thinking_creativity": ["mpd_creativity_frameworks", "mpd_project_based_learning"],
    "global_citizenship_sustainability": ["mpd_global_citizenship"],
    "media_information_literacy": ["mpd_media_literacy"],
    "child_development_psychology": ["mpd_child_psychology", "mpd_learning_theories"],
    "education_policy_governance": ["mpd_policy_awareness"],
}

# Band label -> (routing label, urgency)
SCORE_BAND_GUIDANCE: Dict[str, Tuple[str, str]] = {
    "Beginner": ("High-Priority Gap", "high"),
    "Developing": ("Core Skill Builder", "medium"),
    "Proficient": ("Enhancement Track", "medium"),
    "Advanced": ("PD Ambassador Pipeline", "low"),
}

STANDARD_BADGE_MIN_SCORE = 70.0
AMBASSADOR_MIN_SCORE = 85.0

COHORT_PLACEMENT_RULES: Dict[str, Tuple[str, bool, bool]] = {
    "Beginner": ("learner", False, False),
    "Developing": ("learner", False, False),
    "Proficient": ("mentor", True, False),
    "Advanced": ("leader", True, True),
}

URGENCY_ORDER: Tuple[str, ...] = ("low", "medium", "high", "critical")

HIGH_RISK_BEGINNER_DOMAIN_COUNT = 3
STRUGGLING_FAILED_ATTEMPTS = 3
# (days inactive, alert type, urgency), ascending
INACTIVITY_TIERS: Tuple[Tuple[int, str, str], ...] = (
    (7, "inactivity_nudge", "medium"),
    (14, "inactivity_warning", "high"),
    (30, "inactivity_critical", "critical"),
)

ALERT_ACTIONS_BY_URGENCY: Dict[str, List[str]] = {
    "critical": ["escalate", "notify_admin", "assign_coach"],
    "high": ["notify_admin", "assign_coach"],
    "medium": ["send_nudge", "notify_admin"],
    "low": ["send_nudge"],
}

REFLECTION_WEIGHTS: Dict[str, float] = {
    "depth_of_insight": 0.3,
    "connection_to_practice": 0.3,
    "growth_mindset": 0.2,
    "clarity_expression": 0.2,
}
# (exclusive upper bound, quality, action); anything above the last bound is excellent
REFLECTION_QUALITY_BANDS: Tuple[Tuple[int, str, str], ...] = (
    (40, "poor", "retry_or_coach"),
    (70, "acceptable", "accepted_with_feedback"),
    (90, "good", "accepted"),
)
REFLECTION_TOP_QUALITY = ("excellent", "featured")

MCQ_CORRECT_FEEDBACK = "Correct answer."
MCQ_INCORRECT_FEEDBACK = "Incorrect. The correct answer was: {correct}"
EMPTY_ANSWER_FEEDBACK = "No answer provided."
PENDING_FEEDBACK = "Evaluation pending; the response will be scored on a later pass."
