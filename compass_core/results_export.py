"""Flatten stored results into dashboard rows (JSON or CSV)."""
from __future__ import annotations

from typing import Iterable, List, Dict, Any
import csv
import io

_FIELDS: tuple[str, ...] = (
    "id",
    "testId",
    "submittedAt",
    "durationSec",
    "studentName",
    "email",
    "grade",
    "integrityValid",
    "integrityReason",
    "topCluster",
)


def _top_cluster(result: Dict[str, Any]) -> str:
    sections = ((result.get("report") or {}).get("sections") or {})
    top3 = (sections.get("section-a") or {}).get("top3") or []
    return str(top3[0].get("title", "")) if top3 else ""


def _normalize_result(result: Dict[str, Any]) -> Dict[str, Any]:
    demo = result.get("demographics") or {}
    integrity = result.get("integrity") or {}
    try:
        duration = int(result.get("durationSec"))
    except (TypeError, ValueError):
        duration = 0
    return {
        "id": str(result.get("id") or ""),
        "testId": str(result.get("testId") or ""),
        "submittedAt": str(result.get("submittedAt") or ""),
        "durationSec": duration,
        "studentName": str(demo.get("studentName") or ""),
        "email": str(demo.get("email") or ""),
        "grade": str(demo.get("grade") or ""),
        "integrityValid": bool(integrity.get("valid", True)),
        "integrityReason": str(integrity.get("reason") or ""),
        "topCluster": _top_cluster(result),
    }


def to_json(results: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    rows: List[Dict[str, Any]] = [_normalize_result(r or {}) for r in results]
    return {"rows": rows, "count": len(rows)}


def to_csv(results: Iterable[Dict[str, Any]]) -> str:
    """Render results as CSV with a fixed header."""

    rows = [_normalize_result(r or {}) for r in results]
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=_FIELDS)
    writer.writeheader()
    for row in rows:
        writer.writerow(row)
    return buf.getvalue()


__all__ = ["to_json", "to_csv"]
