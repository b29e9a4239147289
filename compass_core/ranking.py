"""Deterministic top/bottom selection over scored items.

Items are anything with a ``total`` and a label (``name`` for clusters,
``title`` for categories). Ties on ``total`` are broken by case-insensitive label in
both directions, so the order never depends on the input order.
"""
from __future__ import annotations
from typing import Any, List, Sequence, TypeVar

T = TypeVar("T")


def _label(item: Any) -> str:
    for attr in ("name", "title"):
        v = getattr(item, attr, None)
        if isinstance(v, str):
            return v
    return ""


def _total(item: Any) -> float:
    try:
        return float(getattr(item, "total", 0) or 0)
    except (TypeError, ValueError):
        return 0.0


def top_n(items: Sequence[T], n: int = 3) -> List[T]:
    ordered = sorted(items, key=lambda it: (-_total(it), _label(it).casefold(), _label(it)))
    return ordered[:max(0, n)]


def bottom_n(items: Sequence[T], n: int = 3) -> List[T]:
    ordered = sorted(items, key=lambda it: (_total(it), _label(it).casefold(), _label(it)))
    return ordered[:max(0, n)]


def rank_desc(items: Sequence[T]) -> List[T]:
    """Full descending ranking, same tie-break as ``top_n``."""
    return top_n(items, len(items))
