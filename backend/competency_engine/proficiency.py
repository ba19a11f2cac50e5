"""Proficiency bands and the per-domain strength/gap split."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from .assessment_result import DomainScore, ProficiencyLevel
from .constants import PROFICIENCY_BANDS, SCORE_BAND_GUIDANCE, STRENGTH_THRESHOLD_PERCENT, TOP_PROFICIENCY_BAND


@dataclass(frozen=True)
class BandGuidance:
    level: ProficiencyLevel
    label: str
    urgency: str


def classify_proficiency(percent: float) -> ProficiencyLevel:
    for upper, level in PROFICIENCY_BANDS:
        if percent < upper:
            return level  # type: ignore[return-value]
    return TOP_PROFICIENCY_BAND  # type: ignore[return-value]


def partition_domains(domain_scores: Iterable[DomainScore]) -> Tuple[List[str], List[str]]:
    """Split domains into (strengths, gaps) at the 90% line, keeping input order."""
    strengths: List[str] = []
    gaps: List[str] = []
    for domain in domain_scores:
        if domain.score_percent >= STRENGTH_THRESHOLD_PERCENT:
            strengths.append(domain.domain_key)
        else:
            gaps.append(domain.domain_key)
    return strengths, gaps


def guidance_for_level(level: ProficiencyLevel) -> BandGuidance:
    label, urgency = SCORE_BAND_GUIDANCE[level]
    return BandGuidance(level=level, label=label, urgency=urgency)


def band_guidance(percent: float) -> BandGuidance:
    return guidance_for_level(classify_proficiency(percent))


__all__ = ["BandGuidance", "band_guidance", "classify_proficiency", "guidance_for_level", "partition_domains"]
