from __future__ import annotations
from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, List, Optional

from .types import TestDefinition


def _as_dict(report: Any) -> Dict[str, Any]:
    return report.to_dict() if hasattr(report, "to_dict") else dict(report or {})


def _label(item: Dict[str, Any]) -> str:
    return str(item.get("name") or item.get("title") or "")


def report_summary(sections: Dict[str, Dict[str, Any]]) -> Optional[Dict[str, str]]:
    """
    Condensed summary read from the conventional section ids:
    section-a career clusters, section-b drivers, section-c strengths,
    section-d growth areas. None unless both a and b are present.
    """
    a = sections.get("section-a")
    b = sections.get("section-b")
    if not a or not b:
        return None
    c = sections.get("section-c") or {}
    d = sections.get("section-d") or {}
    top3 = a.get("top3") or []
    drivers = b.get("top3")
    return {
        "dominant_cluster": _label(top3[0]) if top3 else "N/A",
        "top_drivers": ", ".join(_label(x) for x in drivers) if drivers is not None else "N/A",
        "top_strengths": (", ".join(_label(x) for x in c["topThird"]) if c.get("topThird") is not None
                          else "See strength clusters above"),
        "top_growth_areas": (", ".join(_label(x) for x in d["highGrowth"]) if d.get("highGrowth") is not None
                             else "See growth areas above"),
    }


def _ol(items: List[Dict[str, Any]], fmt, start: int = 1) -> str:
    lis = "".join(f"<li>{fmt(it)}</li>" for it in items)
    attr = f' start="{start}"' if start != 1 else ""
    return f"<ol{attr}>{lis}</ol>"


def _total(it: Dict[str, Any]) -> str:
    return f"{escape(_label(it))} (Total: {it.get('total', 0)})"


def _cluster_line(it: Dict[str, Any]) -> str:
    return f"{escape(_label(it))} &mdash; Total: {it.get('total', 0)}, Avg: {it.get('avg', 0)}"


def _columns(*blocks: tuple[str, str, str]) -> str:
    cols = "".join(f'<div class="col {cls}"><h4>{head}</h4>{body}</div>' for cls, head, body in blocks)
    return f'<div class="cluster-group">{cols}</div>'


def _strengths(sec: Dict[str, Any]) -> str:
    items = sec.get("topStrengths") or []
    if not items:
        return ""
    lis = "".join(f"<li>{escape(str(s.get('text', '')))} ({s.get('score', 0)})</li>" for s in items)
    return f"<h4>Top strength statements</h4><ol>{lis}</ol>"


def _section_body(sec: Dict[str, Any]) -> str:
    display = sec.get("display")
    if display == "top3-bottom3":
        return _columns(("top", "Top 3", _ol(sec.get("top3") or [], _total)),
                        ("low", "Bottom 3", _ol(sec.get("bottom3") or [], _total)))
    if display == "top3-bottom2":
        return _columns(("top", "Top 3", _ol(sec.get("top3") or [], _total)),
                        ("low", "Bottom 2", _ol(sec.get("bottom2") or [], _total)))
    if display == "all-ranked":
        items = sec.get("allClusters") or sec.get("ranked") or []
        return _ol(items, _total) + _strengths(sec)
    if display == "clusters":
        return _columns(("top", "Top 3 strength clusters", _ol(sec.get("topClusters") or [], _cluster_line)),
                        ("low", "Lowest 3 strength clusters", _ol(sec.get("bottomClusters") or [], _cluster_line))
                        ) + _strengths(sec)
    if display == "grouped-thirds":
        return _columns(("top", "Top 3 Strengths", _ol(sec.get("topThird") or [], _total)),
                        ("mid", "Middle 3 Strengths", _ol(sec.get("midThird") or [], _total, 4)),
                        ("low", "Bottom 3 Strengths", _ol(sec.get("bottomThird") or [], _total, 7)))
    if display == "grouped-reverse":
        return _columns(("low", "Highest Growth Areas (Priority 1-3)", _ol(sec.get("highGrowth") or [], _total)),
                        ("mid", "Lower Growth Areas (Priority 4-6)", _ol(sec.get("lowGrowth") or [], _total, 4)))
    if display == "total-only":
        return f'<div class="metric"><strong>Overall total</strong><div>{sec.get("total", 0)}</div></div>'
    return ""


def render_sections(sections: Dict[str, Dict[str, Any]]) -> str:
    parts: List[str] = []
    for sec in sections.values():
        # description and guidance come from the trusted definition and may carry markup
        desc = f'<div class="description">{sec["description"]}</div>' if sec.get("description") else ""
        guide = f'<div class="guidance-box">{sec["guidance"]}</div>' if sec.get("guidance") else ""
        parts.append(
            '<div class="no-break">'
            f"<h3>{escape(str(sec.get('title') or ''))}</h3>{desc}{_section_body(sec)}{guide}"
            "</div>"
        )
    return "".join(parts)


def render_summary(sections: Dict[str, Dict[str, Any]]) -> str:
    summ = report_summary(sections)
    if summ is None:
        return ""
    rows = [
        ("Dominant career cluster (Top 1)", summ["dominant_cluster"]),
        ("Top 3 career drivers", summ["top_drivers"]),
        ("Top 3 strengths", summ["top_strengths"]),
        ("Top 3 growth areas", summ["top_growth_areas"]),
    ]
    body = "".join(f"<tr><td><strong>{k}</strong></td><td>{escape(v)}</td></tr>" for k, v in rows)
    return f'<h3>Report Summary</h3><table class="summary">{body}</table>'


_STYLE = """
 body{font-family:Arial,Helvetica,sans-serif;line-height:1.6;color:#0f1720;background:#f6fbfb}
 .wrap{max-width:800px;margin:0 auto;background:#fff;border-radius:14px;padding:30px}
 h1{color:#0b8f8f;border-bottom:2px solid #0b8f8f;padding-bottom:10px}
 .cluster-group{display:flex;gap:12px;flex-wrap:wrap}
 .col{flex:1;padding:12px;border-radius:10px}
 .col.top{background:rgba(148,196,148,.3)} .col.mid{background:#f1f1f1} .col.low{background:rgba(171,127,119,.2)}
 .guidance-box{margin-top:16px;padding:10px;background:#f8feff;border-radius:8px}
 table{border-collapse:collapse;width:100%} td,th{padding:8px;border:1px solid #ddd;text-align:left}
"""


def _page(title: str, body: str) -> str:
    return f"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8"/>
<title>{escape(title)}</title>
<style>{_STYLE}</style>
</head>
<body>
<div class="wrap">
{body}
</div>
</body>
</html>"""


def render_report_html(definition: TestDefinition, report: Any) -> str:
    data = _as_dict(report)
    sections = data.get("sections") or {}
    title = f"{definition.test_name} Results" if definition.test_name else "Assessment Results"
    body = f"<h1>{escape(title)}</h1>{render_sections(sections)}{render_summary(sections)}"
    return _page(title, body)


def build_email_report(definition: TestDefinition, report: Any, submitted_at: str | None = None) -> str:
    """Results page plus a student-details table, for the mailer."""
    data = _as_dict(report)
    demo = data.get("demographics") or {}
    sections = data.get("sections") or {}
    now = datetime.now(timezone.utc)
    stamp = submitted_at or now.strftime("%Y-%m-%d %H:%M:%S")
    rows = "".join(
        f"<tr><td>{escape(f.label)}</td><td>{escape(str(demo.get(f.key) or ''))}</td></tr>"
        for f in definition.demographic_fields
    )
    rows += f"<tr><td>Date</td><td>{escape(str(demo.get('date') or now.strftime('%Y-%m-%d')))}</td></tr>"
    title = f"{definition.test_name or 'Assessment'} Results"
    body = (
        f"<h1>{escape(title)}</h1>"
        f"<p>Submitted: {escape(stamp)}</p>"
        "<h2>Student Details</h2>"
        f"<table><tr><th>Field</th><th>Value</th></tr>{rows}</table>"
        f"{render_sections(sections)}{render_summary(sections)}"
    )
    return _page(title, body)


def export_report_html(definition: TestDefinition, report: Any, path: str) -> str:
    html = render_report_html(definition, report)
    with open(path, "w", encoding="utf-8") as f:
        f.write(html)
    return path
