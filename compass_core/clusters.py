from __future__ import annotations
from typing import List, Sequence

from .rounding import round_half_up
from .types import ClusterDef, ClusterScore, Rating


def _at(answers: Sequence[Rating], idx: int) -> int:
    # out-of-range and unanswered slots both count as 0
    if 0 <= idx < len(answers):
        return answers[idx] or 0
    return 0


def calculate_clusters(answers: Sequence[Rating], cluster_indices: Sequence[ClusterDef]) -> List[ClusterScore]:
    """
    One record per cluster definition, in input order.
    The average divides by the size of the index list, not by the number of
    answered questions; an empty index list averages to 0.
    """
    out: List[ClusterScore] = []
    for cluster in cluster_indices:
        idxs = list(cluster.indices)
        vals = [_at(answers, i) for i in idxs]
        total = sum(vals)
        avg = round_half_up(total / len(vals)) if vals else 0
        out.append(ClusterScore(name=cluster.name, indices=idxs, total=total, avg=avg, count=len(vals)))
    return out
