"""Report view-model assembly.

Turns per-section category scores into display-ready section views. Which
derived fields a section gets depends on the ``display`` tag of its reporting
entry; see ``_BUILDERS``. Cluster-based displays read the breakdown of the
section's first category, so a section using one of them is expected to hold a
single cluster-scored category.
"""
from __future__ import annotations
from typing import Any, Callable, Dict, List, Mapping, Optional
import logging

from . import config
from .ranking import bottom_n, rank_desc, top_n
from .types import (
    CategoryScore, ClusterScore, ClustersView, GroupedReverseView, GroupedThirdsView,
    RankedCategoriesView, RankedClustersView, ReportingSection, ReportView, Scores,
    SectionView, StrengthItem, TestDefinition, Top3Bottom2View, Top3Bottom3View, TotalOnlyView,
    CLUSTER_DISPLAYS,
)

log = logging.getLogger(__name__)


def _first(categories: List[CategoryScore]) -> Optional[CategoryScore]:
    return categories[0] if categories else None


def _first_clusters(categories: List[CategoryScore], rs: ReportingSection) -> List[ClusterScore]:
    if len(categories) > 1 and rs.display in CLUSTER_DISPLAYS:
        log.warning("section %s: display %r uses only the first of %d categories",
                    rs.section_id, rs.display, len(categories))
    first = _first(categories)
    if first is None or first.clusters is None:
        return []
    return list(first.clusters)


def top_strengths(definition: TestDefinition, category: Optional[CategoryScore],
                  n: int = config.TOP_STRENGTHS) -> List[StrengthItem]:
    """Highest individual answers of a category, labelled by question text."""
    if category is None:
        return []
    cat_def = definition.category(category.key)
    questions = list(cat_def.questions) if cat_def else []
    items = []
    for idx, score in enumerate(category.answers):
        text = questions[idx] if idx < len(questions) and questions[idx] else f"Strength {idx + 1}"
        items.append(StrengthItem(text=text, score=score or 0, index=idx))
    # stable: equal scores keep question order
    items.sort(key=lambda it: -it.score)
    return items[:n]


def _base(rs: ReportingSection, categories: List[CategoryScore]) -> Dict[str, Any]:
    return {"title": rs.title, "description": rs.description, "guidance": rs.guidance,
            "display": rs.display, "categories": categories}


def _top3_bottom3(d, rs, cats):
    return Top3Bottom3View(**_base(rs, cats), top3=top_n(cats, 3), bottom3=bottom_n(cats, 3))


def _top3_bottom2(d, rs, cats):
    return Top3Bottom2View(**_base(rs, cats), top3=top_n(cats, 3), bottom2=bottom_n(cats, 2))


def _all_ranked(d, rs, cats):
    first = _first(cats)
    if first is not None and first.clusters is not None:
        return RankedClustersView(**_base(rs, cats), all_clusters=rank_desc(first.clusters),
                                  top_strengths=top_strengths(d, first))
    return RankedCategoriesView(**_base(rs, cats), ranked=rank_desc(cats))


def _clusters(d, rs, cats):
    clusters = _first_clusters(cats, rs)
    first = _first(cats)
    # strengths follow whenever the first category is cluster-scored, even with no clusters
    strengths = top_strengths(d, first) if first is not None and first.clusters is not None else []
    return ClustersView(**_base(rs, cats), top_clusters=top_n(clusters, 3),
                        bottom_clusters=bottom_n(clusters, 3), top_strengths=strengths)


def _tiers(clusters: List[ClusterScore], count: int) -> List[List[ClusterScore]]:
    ranked = rank_desc(clusters)
    size = config.GROUPED_TIER_SIZE
    return [ranked[i * size:(i + 1) * size] for i in range(count)]


def _grouped_thirds(d, rs, cats):
    top, mid, bottom = _tiers(_first_clusters(cats, rs), 3)
    return GroupedThirdsView(**_base(rs, cats), top_third=top, mid_third=mid, bottom_third=bottom)


def _grouped_reverse(d, rs, cats):
    high, low = _tiers(_first_clusters(cats, rs), 2)
    return GroupedReverseView(**_base(rs, cats), high_growth=high, low_growth=low)


def _total_only(d, rs, cats):
    return TotalOnlyView(**_base(rs, cats), total=sum(c.total for c in cats))


_BUILDERS: Dict[str, Callable[[TestDefinition, ReportingSection, List[CategoryScore]], SectionView]] = {
    "top3-bottom3": _top3_bottom3,
    "top3-bottom2": _top3_bottom2,
    "all-ranked": _all_ranked,
    "clusters": _clusters,
    "grouped-thirds": _grouped_thirds,
    "grouped-reverse": _grouped_reverse,
    "total-only": _total_only,
}


def build_section_view(definition: TestDefinition, rs: ReportingSection,
                       categories: List[CategoryScore]) -> SectionView:
    builder = _BUILDERS.get(rs.display)
    if builder is None:
        log.warning("section %s: unknown display %r, emitting categories only", rs.section_id, rs.display)
        return SectionView(**_base(rs, categories))
    return builder(definition, rs, categories)


def prepare_report_data(definition: TestDefinition, scores: Scores,
                        demographics: Optional[Mapping[str, Any]] = None) -> ReportView:
    """
    Build the report view-model.
    Reporting entries without matching scores are skipped; sections keep the
    order of the reporting configuration. Pure: same inputs, equal output.
    """
    sections: Dict[str, SectionView] = {}
    for rs in definition.reporting_sections:
        section_scores = scores.get(rs.section_id)
        if section_scores is None:
            continue
        categories = list(section_scores.values())
        sections[rs.section_id] = build_section_view(definition, rs, categories)
        log.debug("section %s assembled as %s", rs.section_id, rs.display)
    return ReportView(demographics=dict(demographics or {}), sections=sections)
