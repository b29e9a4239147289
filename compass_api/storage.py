"""Flat-file persistence for submitted results, live sessions and analytics.

Results are one JSON file each under ``results/``; the file name carries the
result id so lookups are a glob rather than an index. Sessions live in a
single JSON map and expire after ``SESSION_TTL_DAYS`` of inactivity. Analytics
events are appended to a JSON-lines log.
"""

from __future__ import annotations

import json
import os
import re
import threading
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from compass_core import config
from compass_core.rounding import percent


DATA_ROOT = Path(os.getenv("DATA_DIR", "data")).resolve()
RESULTS_DIR = DATA_ROOT / "results"
ACTIVE_SESSIONS_PATH = DATA_ROOT / "sessions_active.json"
EVENTS_PATH = DATA_ROOT / "events.jsonl"

SORTS = ("date-desc", "date-asc", "name-asc", "name-desc")

_LOCK = threading.Lock()
_UNSAFE_RX = re.compile(r"[^a-zA-Z0-9_\- ]")


def _ensure_dirs() -> None:
    RESULTS_DIR.mkdir(parents=True, exist_ok=True)
    DATA_ROOT.mkdir(parents=True, exist_ok=True)


def _read_json(path: Path, default: Any) -> Any:
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return default


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_iso(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def duration_seconds(started_at: Any, ended_at: Any) -> Optional[int]:
    start, end = _parse_iso(started_at), _parse_iso(ended_at)
    if start is None or end is None:
        return None
    return max(0, round((end - start).total_seconds()))


def sanitize_filename(text: str) -> str:
    cleaned = _UNSAFE_RX.sub("", text or "").replace(" ", "_")
    return cleaned[:50]


def new_result_id(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"{now:%Y-%m-%d_%H%M%S}_{uuid.uuid4().hex[:13]}"


# ---- results ----
def _result_path(result_id: str) -> Optional[Path]:
    if not result_id or _UNSAFE_RX.search(result_id):
        return None
    matches = sorted(RESULTS_DIR.glob(f"{result_id}_*.json"))
    return matches[0] if matches else None


def save_result(data: Dict[str, Any]) -> Dict[str, str]:
    """Persist a submitted result; returns its id and file name."""

    _ensure_dirs()
    result_id = new_result_id()
    payload = dict(data)
    payload["id"] = result_id
    payload.setdefault("submittedAt", utcnow_iso())

    name = sanitize_filename(str((payload.get("demographics") or {}).get("studentName") or "Unknown"))
    test_id = sanitize_filename(str(payload.get("testId") or "unknown"))
    filename = f"{result_id}_{test_id}_{name}.json"
    _write_json(RESULTS_DIR / filename, payload)
    return {"id": result_id, "filename": filename}


def load_result(result_id: str) -> Optional[Dict[str, Any]]:
    path = _result_path(result_id)
    if path is None:
        return None
    data = _read_json(path, None)
    return data if isinstance(data, dict) else None


def delete_result(result_id: str) -> bool:
    path = _result_path(result_id)
    if path is None:
        return False
    with _LOCK:
        try:
            path.unlink()
        except FileNotFoundError:
            return False
    return True


def _all_results() -> List[Dict[str, Any]]:
    if not RESULTS_DIR.exists():
        return []
    out: List[Dict[str, Any]] = []
    for path in RESULTS_DIR.glob("*.json"):
        data = _read_json(path, None)
        if isinstance(data, dict):
            out.append(data)
    return out


def _student(r: Dict[str, Any]) -> str:
    return str((r.get("demographics") or {}).get("studentName") or "")


def _submitted(r: Dict[str, Any]) -> datetime:
    return _parse_iso(r.get("submittedAt")) or datetime.min.replace(tzinfo=timezone.utc)


def list_results(search: str | None = None, test_id: str | None = None,
                 sort: str = "date-desc") -> List[Dict[str, Any]]:
    """Dashboard listing: free-text search over name/email/grade, test filter, sort."""

    term = (search or "").strip().lower()
    out: List[Dict[str, Any]] = []
    for r in _all_results():
        if term:
            demo = r.get("demographics") or {}
            haystack = " ".join(str(demo.get(k) or "") for k in ("studentName", "email", "grade")).lower()
            if term not in haystack:
                continue
        if test_id and r.get("testId") != test_id:
            continue
        out.append(r)

    if sort == "date-asc":
        out.sort(key=_submitted)
    elif sort == "name-asc":
        out.sort(key=lambda r: _student(r).lower())
    elif sort == "name-desc":
        out.sort(key=lambda r: _student(r).lower(), reverse=True)
    else:
        out.sort(key=_submitted, reverse=True)
    return out


def result_stats(now: datetime | None = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    results = _all_results()
    week_ago = now - timedelta(days=7)
    return {
        "total": len(results),
        "by_test": dict(Counter(str(r.get("testId") or "unknown") for r in results)),
        "recent": sum(1 for r in results if _submitted(r) >= week_ago),
    }


# ---- active sessions ----
def _load_sessions() -> Dict[str, Dict[str, Any]]:
    data = _read_json(ACTIVE_SESSIONS_PATH, {})
    return data if isinstance(data, dict) else {}


def _expired(payload: Dict[str, Any], now: datetime) -> bool:
    last = _parse_iso(payload.get("lastUpdated"))
    return last is None or now - last > timedelta(days=config.SESSION_TTL_DAYS)


def record_active_session(session_id: str, payload: Dict[str, Any]) -> None:
    with _LOCK:
        sessions = _load_sessions()
        entry = dict(payload)
        entry.setdefault("lastUpdated", utcnow_iso())
        sessions[session_id] = entry
        _write_json(ACTIVE_SESSIONS_PATH, sessions)


def update_active_session(session_id: str, updates: Dict[str, Any]) -> None:
    with _LOCK:
        sessions = _load_sessions()
        if session_id not in sessions:
            return
        sessions[session_id].update(updates)
        sessions[session_id]["lastUpdated"] = updates.get("lastUpdated") or utcnow_iso()
        _write_json(ACTIVE_SESSIONS_PATH, sessions)


def load_active_session(session_id: str, now: datetime | None = None) -> Optional[Dict[str, Any]]:
    now = now or datetime.now(timezone.utc)
    payload = _load_sessions().get(session_id)
    if payload is None:
        return None
    if _expired(payload, now):
        clear_active_session(session_id)
        return None
    return payload


def clear_active_session(session_id: str) -> None:
    with _LOCK:
        sessions = _load_sessions()
        if session_id in sessions:
            sessions.pop(session_id, None)
            _write_json(ACTIVE_SESSIONS_PATH, sessions)


def cleanup_expired_sessions(now: datetime | None = None) -> int:
    now = now or datetime.now(timezone.utc)
    with _LOCK:
        sessions = _load_sessions()
        stale = [sid for sid, payload in sessions.items() if not isinstance(payload, dict) or _expired(payload, now)]
        for sid in stale:
            sessions.pop(sid, None)
        if stale:
            _write_json(ACTIVE_SESSIONS_PATH, sessions)
    return len(stale)


def load_all_active_sessions() -> Dict[str, Dict[str, Any]]:
    return _load_sessions()


# ---- analytics ----
def append_event(event: Dict[str, Any]) -> Dict[str, Any]:
    entry = dict(event)
    entry.setdefault("timestamp", utcnow_iso())
    with _LOCK:
        DATA_ROOT.mkdir(parents=True, exist_ok=True)
        with EVENTS_PATH.open("a", encoding="utf-8") as f:
            f.write(json.dumps(entry, ensure_ascii=False) + "\n")
    return entry


def load_events() -> List[Dict[str, Any]]:
    if not EVENTS_PATH.exists():
        return []
    out: List[Dict[str, Any]] = []
    for line in EVENTS_PATH.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        try:
            evt = json.loads(line)
        except ValueError:
            continue
        if isinstance(evt, dict):
            out.append(evt)
    return out


def analytics_summary() -> Dict[str, Any]:
    counts: Counter[str] = Counter()
    email_ok = email_fail = 0
    for evt in load_events():
        name = str(evt.get("eventName") or "")
        counts[name] += 1
        if name == "email_sent":
            if (evt.get("data") or {}).get("success"):
                email_ok += 1
            else:
                email_fail += 1
    started = counts.get("test_started", 0)
    completed = counts.get("test_completed", 0)
    return {
        "events": dict(counts),
        "test_started": started,
        "test_completed": completed,
        "completion_rate": percent(completed, started),
        "email_sent_success": email_ok,
        "email_sent_failure": email_fail,
    }
