from __future__ import annotations
from typing import Dict, List, Sequence
import logging

from .clusters import calculate_clusters
from .config import REVERSE_PIVOT
from .rounding import round_half_up
from .types import (
    Answers, Category, CategoryScore, ClusterScoring, Rating, ReverseScoring,
    Scores, ScoringSpec, TestDefinition, UnknownScoring, WeightedScoring,
)

log = logging.getLogger(__name__)


def calculate_sum(answers: Sequence[Rating]) -> int:
    return sum((v or 0) for v in answers)


def calculate_weighted_sum(answers: Sequence[Rating], weights: Sequence[float]) -> float:
    total = 0.0
    for idx, v in enumerate(answers):
        # missing (or zero) weight counts as 1
        w = weights[idx] if idx < len(weights) and weights[idx] else 1
        total += (v or 0) * w
    return total


def _reverse(answers: Sequence[Rating]) -> List[int]:
    return [(REVERSE_PIVOT - v) if v else 0 for v in answers]


def _avg(total: float, count: int) -> float:
    return round_half_up(total / count) if count > 0 else 0


def score_category(category: Category, answers: Sequence[Rating], scoring: ScoringSpec) -> CategoryScore:
    """
    Score one category. Never raises for the documented input shapes:
    unanswered slots are 0, missing weights are 1, unknown methods fall
    back to a plain sum.
    """
    raw = list(answers or [])
    clusters = None

    if isinstance(scoring, WeightedScoring):
        total = calculate_weighted_sum(raw, scoring.weights)
    elif isinstance(scoring, ReverseScoring):
        total = calculate_sum(_reverse(raw))
    elif isinstance(scoring, ClusterScoring):
        clusters = calculate_clusters(raw, scoring.clusters)
        total = calculate_sum(raw)
    else:
        if isinstance(scoring, UnknownScoring):
            log.warning("category %s: unknown scoring method %r, using sum", category.key, scoring.method)
        total = calculate_sum(raw)

    return CategoryScore(
        title=category.title,
        key=category.key,
        method=scoring.method,
        answers=raw,
        total=total,
        count=len(raw),
        avg=_avg(total, len(raw)),
        clusters=clusters,
    )


def calculate_section_scores(section, answers: Answers) -> Dict[str, CategoryScore]:
    out: Dict[str, CategoryScore] = {}
    for cat in section.categories:
        out[cat.key] = score_category(cat, answers.get(cat.key) or [], cat.scoring)
    return out


def calculate_scores(definition: TestDefinition, answers: Answers) -> Scores:
    """{sectionId: {categoryKey: CategoryScore}} in declaration order."""
    answers = answers or {}
    return {sec.section_id: calculate_section_scores(sec, answers) for sec in definition.sections}
