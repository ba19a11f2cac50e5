"""Aggregate question results into per-domain and overall scores."""

from __future__ import annotations

import math
from collections import defaultdict
from typing import Dict, Iterable, List

from .assessment_result import DomainScore, EvaluationResult, QuestionResult


def aggregate_domain_scores(results: Iterable[QuestionResult]) -> List[DomainScore]:
    """One ``DomainScore`` per domain present, in first-seen order.

    Sums use ``math.fsum`` so the totals do not depend on input order.
    """
    raw: Dict[str, List[float]] = defaultdict(list)
    maximum: Dict[str, List[float]] = defaultdict(list)
    for result in results:
        raw[result.domain_key].append(result.score)
        maximum[result.domain_key].append(result.max_score)

    return [
        DomainScore(
            domain_key=domain_key,
            raw_score=math.fsum(scores),
            max_score=math.fsum(maximum[domain_key]),
        )
        for domain_key, scores in raw.items()
    ]


def overall_score_percent(results: Iterable[QuestionResult]) -> float:
    """Total raw over total maximum across every question, not a mean of domain percentages."""
    materialized = list(results)
    total_max = math.fsum(result.max_score for result in materialized)
    if total_max <= 0:
        return 0.0
    return math.fsum(result.score for result in materialized) / total_max * 100.0


def exact_overall_percent(result: EvaluationResult) -> float:
    """Unrounded overall percentage of ``result``, rebuilt from its domain totals.

    ``overall_score`` is rounded for display; badge and pass thresholds
    compare against this value instead.
    """
    total_max = math.fsum(domain.max_score for domain in result.domain_scores)
    if total_max <= 0:
        return result.overall_score
    return math.fsum(domain.raw_score for domain in result.domain_scores) / total_max * 100.0


__all__ = ["aggregate_domain_scores", "exact_overall_percent", "overall_score_percent"]
