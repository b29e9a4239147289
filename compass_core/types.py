from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Union

ScoringMethod = Literal["sum", "average", "weighted", "cluster", "reverse"]
DisplayMode = Literal[
    "top3-bottom3", "top3-bottom2", "all-ranked", "clusters",
    "grouped-thirds", "grouped-reverse", "total-only",
]
SCORING_METHODS: tuple[str, ...] = ("sum", "average", "weighted", "cluster", "reverse")
DISPLAY_MODES: tuple[str, ...] = (
    "top3-bottom3", "top3-bottom2", "all-ranked", "clusters",
    "grouped-thirds", "grouped-reverse", "total-only",
)
# display modes that read the first category's cluster breakdown
CLUSTER_DISPLAYS: tuple[str, ...] = ("clusters", "grouped-thirds", "grouped-reverse")

Rating = Optional[int]
Answers = Mapping[str, Sequence[Rating]]


# ---- scoring specs (closed family) ----
@dataclass(frozen=True)
class SumScoring:
    method: str = "sum"

@dataclass(frozen=True)
class AverageScoring:
    method: str = "average"

@dataclass(frozen=True)
class WeightedScoring:
    weights: List[float] = field(default_factory=list)
    method: str = "weighted"

@dataclass(frozen=True)
class ClusterDef:
    name: str
    indices: List[int] = field(default_factory=list)

@dataclass(frozen=True)
class ClusterScoring:
    clusters: List[ClusterDef] = field(default_factory=list)
    method: str = "cluster"

@dataclass(frozen=True)
class ReverseScoring:
    method: str = "reverse"

@dataclass(frozen=True)
class UnknownScoring:
    """A method name outside SCORING_METHODS; scored like ``sum``."""
    method: str

ScoringSpec = Union[SumScoring, AverageScoring, WeightedScoring, ClusterScoring, ReverseScoring, UnknownScoring]


# ---- definition ----
@dataclass(frozen=True)
class Category:
    key: str
    title: str
    questions: List[str] = field(default_factory=list)
    scoring: ScoringSpec = field(default_factory=SumScoring)

@dataclass(frozen=True)
class Pagination:
    type: str = "category"   # "category" | "chunk" | "all"
    chunk_size: int = 9

@dataclass(frozen=True)
class Section:
    section_id: str
    title: str = ""
    categories: List[Category] = field(default_factory=list)
    pagination: Pagination = field(default_factory=Pagination)

@dataclass(frozen=True)
class ReportingSection:
    section_id: str
    display: str
    title: str = ""
    description: str = ""
    guidance: str = ""

@dataclass(frozen=True)
class DemographicField:
    key: str
    label: str
    required: bool = False
    validation: Optional[str] = None   # "email" | "phone"

@dataclass(frozen=True)
class TestDefinition:
    test_id: str
    test_name: str
    sections: List[Section] = field(default_factory=list)
    reporting_sections: List[ReportingSection] = field(default_factory=list)
    demographic_fields: List[DemographicField] = field(default_factory=list)
    completion_title: str = ""
    completion_message: str = ""

    def category(self, key: str) -> Optional[Category]:
        for sec in self.sections:
            for cat in sec.categories:
                if cat.key == key:
                    return cat
        return None

@dataclass(frozen=True)
class Page:
    section_id: str
    category_key: str
    title: str
    questions: List[str]
    question_start_index: int = 0


# ---- derived score records ----
@dataclass(frozen=True)
class ClusterScore:
    name: str
    indices: List[int]
    total: float
    avg: float
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "indices": list(self.indices), "total": self.total,
                "avg": self.avg, "count": self.count}

@dataclass(frozen=True)
class CategoryScore:
    title: str
    key: str
    method: str
    answers: List[Rating]
    total: float
    count: int
    avg: float
    clusters: Optional[List[ClusterScore]] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "title": self.title, "key": self.key, "method": self.method,
            "answers": list(self.answers), "total": self.total,
            "count": self.count, "avg": self.avg,
        }
        if self.clusters is not None:
            out["clusters"] = [c.to_dict() for c in self.clusters]
        return out

SectionScores = Dict[str, CategoryScore]
Scores = Dict[str, SectionScores]

@dataclass(frozen=True)
class StrengthItem:
    text: str
    score: int
    index: int

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "score": self.score, "index": self.index}


def _dicts(items: Sequence[Any]) -> List[Dict[str, Any]]:
    return [it.to_dict() for it in items]


# ---- section views: one variant per display mode ----
@dataclass(frozen=True)
class SectionView:
    """Base view; also used as-is for display tags the assembler doesn't know."""
    title: str
    description: str
    guidance: str
    display: str
    categories: List[CategoryScore]

    def to_dict(self) -> Dict[str, Any]:
        out = {"title": self.title, "description": self.description, "guidance": self.guidance,
               "display": self.display, "categories": _dicts(self.categories)}
        out.update(self._extra())
        return out

    def _extra(self) -> Dict[str, Any]:
        return {}

@dataclass(frozen=True)
class Top3Bottom3View(SectionView):
    top3: List[CategoryScore] = field(default_factory=list)
    bottom3: List[CategoryScore] = field(default_factory=list)

    def _extra(self) -> Dict[str, Any]:
        return {"top3": _dicts(self.top3), "bottom3": _dicts(self.bottom3)}

@dataclass(frozen=True)
class Top3Bottom2View(SectionView):
    top3: List[CategoryScore] = field(default_factory=list)
    bottom2: List[CategoryScore] = field(default_factory=list)

    def _extra(self) -> Dict[str, Any]:
        return {"top3": _dicts(self.top3), "bottom2": _dicts(self.bottom2)}

@dataclass(frozen=True)
class RankedCategoriesView(SectionView):
    ranked: List[CategoryScore] = field(default_factory=list)

    def _extra(self) -> Dict[str, Any]:
        return {"ranked": _dicts(self.ranked)}

@dataclass(frozen=True)
class RankedClustersView(SectionView):
    all_clusters: List[ClusterScore] = field(default_factory=list)
    top_strengths: List[StrengthItem] = field(default_factory=list)

    def _extra(self) -> Dict[str, Any]:
        return {"allClusters": _dicts(self.all_clusters), "topStrengths": _dicts(self.top_strengths)}

@dataclass(frozen=True)
class ClustersView(SectionView):
    top_clusters: List[ClusterScore] = field(default_factory=list)
    bottom_clusters: List[ClusterScore] = field(default_factory=list)
    top_strengths: List[StrengthItem] = field(default_factory=list)

    def _extra(self) -> Dict[str, Any]:
        return {"topClusters": _dicts(self.top_clusters), "bottomClusters": _dicts(self.bottom_clusters),
                "topStrengths": _dicts(self.top_strengths)}

@dataclass(frozen=True)
class GroupedThirdsView(SectionView):
    top_third: List[ClusterScore] = field(default_factory=list)
    mid_third: List[ClusterScore] = field(default_factory=list)
    bottom_third: List[ClusterScore] = field(default_factory=list)

    def _extra(self) -> Dict[str, Any]:
        return {"topThird": _dicts(self.top_third), "midThird": _dicts(self.mid_third),
                "bottomThird": _dicts(self.bottom_third)}

@dataclass(frozen=True)
class GroupedReverseView(SectionView):
    high_growth: List[ClusterScore] = field(default_factory=list)
    low_growth: List[ClusterScore] = field(default_factory=list)

    def _extra(self) -> Dict[str, Any]:
        return {"highGrowth": _dicts(self.high_growth), "lowGrowth": _dicts(self.low_growth)}

@dataclass(frozen=True)
class TotalOnlyView(SectionView):
    total: float = 0

    def _extra(self) -> Dict[str, Any]:
        return {"total": self.total}


@dataclass(frozen=True)
class ReportView:
    demographics: Dict[str, Any]
    sections: Dict[str, SectionView]

    def to_dict(self) -> Dict[str, Any]:
        return {"demographics": dict(self.demographics or {}),
                "sections": {sid: view.to_dict() for sid, view in self.sections.items()}}


# ---- verdicts ----
@dataclass(frozen=True)
class IntegrityVerdict:
    valid: bool
    reason: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "reason": self.reason, "details": dict(self.details)}

@dataclass(frozen=True)
class SchemaCheck:
    valid: bool
    errors: List[str] = field(default_factory=list)


def scores_to_dict(scores: Scores) -> Dict[str, Dict[str, Any]]:
    return {sid: {key: rec.to_dict() for key, rec in cats.items()} for sid, cats in scores.items()}
