"""Route gap domains to micro-PD modules and track-level learning paths."""

from __future__ import annotations

import re
from statistics import mean
from typing import Dict, Iterable, List, Literal, Mapping, Sequence

from pydantic import BaseModel

from .assessment_result import EvaluationResult
from .constants import DOMAIN_MICRO_PD_MAP, DOMAIN_TO_TRACK_MAP, PD_TRACKS, TRACK_MODULE_TYPES


class LearningPathModule(BaseModel):
    module_id: str
    title: str
    track_id: str
    domain_key: str
    order: int
    status: Literal["unlocked", "locked"]


def recommend_micro_pds(
    gap_domains: Iterable[str],
    table: Mapping[str, Sequence[str]] = DOMAIN_MICRO_PD_MAP,
) -> List[str]:
    """Concatenate module ids for each gap domain, dropping repeats. Unknown domains add nothing."""
    seen: Dict[str, None] = {}
    for domain in gap_domains:
        for module_id in table.get(domain, ()):
            seen.setdefault(module_id, None)
    return list(seen)


def _slug(value: str) -> str:
    return re.sub(r"\s+", "_", value.strip().lower())


def build_learning_path(result: EvaluationResult) -> List[LearningPathModule]:
    """Group gap domains by track, weakest track first, and expand each track's module types.

    Only the first module starts unlocked. Gap domains outside every track are
    ignored; an empty list means there is nothing to remediate.
    """
    percents = {domain.domain_key: domain.score_percent for domain in result.domain_scores}
    track_domains: Dict[str, List[str]] = {}
    for domain in result.gap_domains:
        track_id = DOMAIN_TO_TRACK_MAP.get(domain)
        if track_id is None:
            continue
        track_domains.setdefault(track_id, []).append(domain)

    def _track_average(track_id: str) -> float:
        scores = [percents[domain] for domain in track_domains[track_id] if domain in percents]
        return mean(scores) if scores else 0.0

    ordered_tracks = sorted(track_domains, key=_track_average)

    modules: List[LearningPathModule] = []
    for track_id in ordered_tracks:
        track_name = str(PD_TRACKS[track_id]["name"])
        for module_type in TRACK_MODULE_TYPES.get(track_id, []):
            order = len(modules) + 1
            modules.append(
                LearningPathModule(
                    module_id=f"{track_id}_{_slug(module_type)}",
                    title=f"{track_name}: {module_type}",
                    track_id=track_id,
                    domain_key=track_domains[track_id][0],
                    order=order,
                    status="unlocked" if order == 1 else "locked",
                )
            )
    return modules


__all__ = ["LearningPathModule", "build_learning_path", "recommend_micro_pds"]
