from __future__ import annotations
from fastapi import Depends, FastAPI, HTTPException, Header, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
import hmac, logging, uuid, typing as t

from compass_core import config
from compass_core.config import load_config
from compass_core.definitions import DefinitionError, initialize_answers, load_test, read_raw_test
from compass_core.demographics import clean_demographics, validate_demographics
from compass_core.report import prepare_report_data
from compass_core.report_html import build_email_report, render_report_html, report_summary
from compass_core.results_export import to_csv as results_to_csv
from compass_core.scoring import calculate_scores
from compass_core.types import TestDefinition, scores_to_dict
from compass_core.validators import validate_answer_patterns
from .mailer import MailerError, send_report_email
from .storage import (
    analytics_summary,
    append_event,
    cleanup_expired_sessions,
    clear_active_session,
    delete_result,
    duration_seconds,
    list_results,
    load_all_active_sessions,
    load_active_session,
    load_result,
    record_active_session,
    result_stats,
    save_result,
    update_active_session,
    utcnow_iso,
)

log = logging.getLogger(__name__)

SESS: dict[str, dict[str, t.Any]] = {}
DEFS: dict[str, TestDefinition] = {}

app = FastAPI(title="Career Compass API")

ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8080",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


# ---- Schemas ----
class StartReq(BaseModel):
    test_id: str = config.DEFAULT_TEST_ID
    demographics: dict[str, t.Any] = Field(default_factory=dict)

class AnswerPageReq(BaseModel):
    category_key: str
    start_index: int = 0
    values: list[int | None]

class EventReq(BaseModel):
    event_name: str
    session_id: str | None = None
    test_id: str | None = None
    data: dict[str, t.Any] = Field(default_factory=dict)


# ---- Helpers ----
def _definition(test_id: str) -> TestDefinition:
    d = DEFS.get(test_id)
    if d is not None:
        return d
    try:
        d = load_test(test_id)
    except DefinitionError as exc:
        if exc.missing:
            raise HTTPException(404, "test not found")
        raise HTTPException(500, "Invalid test configuration. Please contact support.")
    DEFS[test_id] = d
    return d


def _session(sid: str) -> dict[str, t.Any]:
    sess = SESS.get(sid)
    if sess is None:
        stored = load_active_session(sid)
        if stored is None:
            raise HTTPException(404, "session not found")
        sess = SESS[sid] = stored
    return sess


def _track(event_name: str, sess: dict[str, t.Any] | None = None, **data: t.Any) -> None:
    append_event({
        "sessionId": (sess or {}).get("sessionId"),
        "testId": (sess or {}).get("testId"),
        "eventName": event_name,
        "data": data,
    })


def _require_access(x_access_key: str | None = Header(default=None)) -> None:
    expected = load_config().get("ACCESS_KEY") or ""
    if not expected or not x_access_key or not hmac.compare_digest(x_access_key, expected):
        raise HTTPException(403, "Invalid access key")


def _progress(sess: dict[str, t.Any]) -> dict[str, int]:
    slots = [v for seq in sess["answers"].values() for v in seq]
    return {"answered": sum(1 for v in slots if v is not None), "total": len(slots)}


def _send_email(definition: TestDefinition, report: t.Any, demographics: dict[str, t.Any],
                sess: dict[str, t.Any]) -> dict[str, t.Any]:
    if not config.SEND_EMAIL:
        return {"sent": False, "skipped": True}
    name = demographics.get("studentName") or "Unknown Student"
    subject = f"{definition.test_name} Assessment Results - {name}"
    try:
        send_report_email(subject, build_email_report(definition, report), load_config())
    except MailerError as exc:
        # never blocks completion; the result is still stored
        log.error("email sending failed for session %s: %s", sess.get("sessionId"), exc)
        _track("email_sent", sess, success=False, error=str(exc))
        return {"sent": False, "error": str(exc)}
    _track("email_sent", sess, success=True, error=None, hasPdfAttachment=config.GENERATE_PDF)
    return {"sent": True}


# ---- Health ----
@app.get("/")
def root():
    return {"status": "ok", "service": "career-compass-api"}

@app.get("/health")
def health():
    cfg = load_config()
    return {
        "store_results": config.STORE_RESULTS,
        "send_email": config.SEND_EMAIL,
        "mailer_configured": bool(cfg.get("MAILER_API_URL")),
        "dashboard_enabled": bool(cfg.get("ACCESS_KEY")),
        "active_sessions": len(load_all_active_sessions()),
    }

@app.get("/tests/{test_id}")
def get_test(test_id: str):
    _definition(test_id)
    return read_raw_test(test_id)


# ---- Assessment session ----
@app.post("/session/start")
def start(req: StartReq):
    definition = _definition(req.test_id)
    check = validate_demographics(req.demographics, definition.demographic_fields)
    if not check.valid:
        raise HTTPException(422, {"errors": check.errors})
    stale = cleanup_expired_sessions()
    if stale:
        log.info("dropped %d expired sessions", stale)
    sid = str(uuid.uuid4())
    started_at = utcnow_iso()
    demographics = clean_demographics(req.demographics, definition.demographic_fields)
    demographics["date"] = str(req.demographics.get("date") or started_at[:10])
    sess = {
        "sessionId": sid,
        "testId": definition.test_id,
        "demographics": demographics,
        "answers": initialize_answers(definition),
        "startedAt": started_at,
        "lastUpdated": started_at,
    }
    SESS[sid] = sess
    record_active_session(sid, sess)
    _track("test_started", sess)
    return {"session_id": sid, "progress": _progress(sess)}

@app.get("/session/{sid}")
def get_session(sid: str):
    sess = _session(sid)
    return {"session_id": sid, "test_id": sess["testId"], "answers": sess["answers"],
            "demographics": sess["demographics"], "progress": _progress(sess)}

@app.post("/session/{sid}/answers")
def answer_page(sid: str, req: AnswerPageReq):
    sess = _session(sid)
    slots = sess["answers"].get(req.category_key)
    if slots is None:
        raise HTTPException(400, f"unknown category {req.category_key}")
    if req.start_index < 0 or req.start_index + len(req.values) > len(slots):
        raise HTTPException(400, "answers exceed the category's question count")
    for v in req.values:
        if v is not None and not (config.RATING_MIN <= v <= config.RATING_MAX):
            raise HTTPException(400, f"ratings must be between {config.RATING_MIN} and {config.RATING_MAX}")
    slots[req.start_index:req.start_index + len(req.values)] = list(req.values)
    update_active_session(sid, {"answers": sess["answers"]})
    return {"ok": True, "progress": _progress(sess)}

@app.get("/session/{sid}/report/html")
def session_report_html(sid: str):
    sess = _session(sid)
    definition = _definition(sess["testId"])
    scores = calculate_scores(definition, sess["answers"])
    report = prepare_report_data(definition, scores, sess["demographics"])
    return {"html": render_report_html(definition, report)}

@app.post("/session/{sid}/finish")
def finish(sid: str):
    sess = _session(sid)
    definition = _definition(sess["testId"])
    answers = sess["answers"]
    demographics = sess["demographics"]

    scores = calculate_scores(definition, answers)
    report = prepare_report_data(definition, scores, demographics)
    report_dict = report.to_dict()
    verdict = validate_answer_patterns(answers)
    if not verdict.valid:
        log.info("session %s flagged: %s %s", sid, verdict.reason, verdict.details)

    email = _send_email(definition, report, demographics, sess)

    submitted_at = utcnow_iso()
    record = {
        "testId": definition.test_id,
        "testName": definition.test_name,
        "sessionId": sid,
        "startedAt": sess.get("startedAt"),
        "submittedAt": submitted_at,
        "durationSec": duration_seconds(sess.get("startedAt"), submitted_at) or 0,
        "demographics": demographics,
        "answers": answers,
        "scores": scores_to_dict(scores),
        "report": report_dict,
        "integrity": verdict.to_dict(),
    }
    saved = save_result(record) if config.STORE_RESULTS else None
    if saved:
        log.info("result %s saved for session %s", saved["id"], sid)

    _track("test_completed", sess, completionTimeSec=record["durationSec"],
           studentGrade=demographics.get("grade") or "unknown",
           integrityValid=verdict.valid)
    clear_active_session(sid)
    SESS.pop(sid, None)

    return {
        "id": saved["id"] if saved else None,
        "report": report_dict,
        "summary": report_summary(report_dict["sections"]),
        "integrity": verdict.to_dict(),
        "email": email,
        "show_results": config.SHOW_RESULTS_TO_USER,
        "completion": {"title": definition.completion_title, "message": definition.completion_message},
    }

@app.post("/events")
def track_event(req: EventReq):
    entry = append_event({
        "sessionId": req.session_id,
        "testId": req.test_id,
        "eventName": req.event_name,
        "data": req.data,
    })
    return {"ok": True, "timestamp": entry["timestamp"]}


# ---- Dashboard (access key required) ----
@app.get("/results", dependencies=[Depends(_require_access)])
def results(search: str | None = None, test_id: str | None = None,
            sort: str = Query("date-desc", pattern="^(date-desc|date-asc|name-asc|name-desc)$")):
    rows = list_results(search=search, test_id=test_id, sort=sort)
    return {"success": True, "data": rows, "count": len(rows), "stats": result_stats()}

@app.get("/results/export.csv", dependencies=[Depends(_require_access)])
def results_csv(search: str | None = None, test_id: str | None = None):
    body = results_to_csv(list_results(search=search, test_id=test_id))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=\"results.csv\""},
    )

@app.get("/results/{result_id}", dependencies=[Depends(_require_access)])
def get_result(result_id: str):
    result = load_result(result_id)
    if not result:
        raise HTTPException(404, "Result not found")
    return {"success": True, "data": result}

@app.get("/results/{result_id}/html", dependencies=[Depends(_require_access)])
def result_html(result_id: str):
    result = load_result(result_id)
    if not result:
        raise HTTPException(404, "Result not found")
    definition = _definition(str(result.get("testId") or ""))
    return {"html": render_report_html(definition, result.get("report") or {})}

@app.delete("/results/{result_id}", dependencies=[Depends(_require_access)])
def delete_result_endpoint(result_id: str):
    if not delete_result(result_id):
        raise HTTPException(404, "Result not found")
    return {"success": True}

@app.get("/analytics", dependencies=[Depends(_require_access)])
def analytics():
    return analytics_summary()
