from __future__ import annotations

import importlib
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from compass_core.definitions import load_test


_DEF_MODULES = [
    "compass_core.config",
    "compass_api.storage",
    "compass_api.app",
]

KEY = {"X-Access-Key": "secret"}

STUDENT = {
    "studentName": "Lerato Mokoena",
    "age": "16",
    "grade": "Grade 11",
    "school": "Northview High",
    "email": "lerato@example.com",
    "phone": "0812345678",
}


def _reload_app(tmp_path) -> tuple[object, object]:
    os.environ["DATA_DIR"] = str(tmp_path)
    os.environ["SEND_EMAIL"] = "false"
    for name in _DEF_MODULES:
        if name in sys.modules:
            importlib.reload(sys.modules[name])
        else:
            __import__(name)
    storage = sys.modules["compass_api.storage"]
    app_module = sys.modules["compass_api.app"]
    return storage, app_module


@pytest.fixture
def api(tmp_path, monkeypatch):
    monkeypatch.setenv("ACCESS_KEY", "secret")
    monkeypatch.delenv("TESTS_DIR", raising=False)
    storage, app_module = _reload_app(tmp_path)
    return storage, app_module, TestClient(app_module.app)


def _start(client) -> str:
    resp = client.post("/session/start", json={"test_id": "career-compass", "demographics": STUDENT})
    assert resp.status_code == 200
    return resp.json()["session_id"]


def _answer_all(client, sid: str, value=None) -> None:
    d = load_test("career-compass")
    for c_idx, sec in enumerate(d.sections):
        for cat in sec.categories:
            n = len(cat.questions)
            vals = [value] * n if value is not None else [((i * i + c_idx) % 5) + 1 for i in range(n)]
            resp = client.post(f"/session/{sid}/answers", json={"category_key": cat.key, "values": vals})
            assert resp.status_code == 200


def test_health_and_definition(api):
    _storage, _app, client = api
    assert client.get("/").json()["status"] == "ok"
    health = client.get("/health").json()
    assert health["send_email"] is False
    assert health["dashboard_enabled"] is True

    raw = client.get("/tests/career-compass").json()
    assert raw["testId"] == "career-compass"
    assert client.get("/tests/no-such-test").status_code == 404


def test_full_assessment_flow(api):
    storage, _app, client = api
    sid = _start(client)

    progress = client.get(f"/session/{sid}").json()["progress"]
    assert progress == {"answered": 0, "total": 89}

    _answer_all(client, sid)
    assert client.get(f"/session/{sid}").json()["progress"]["answered"] == 89

    html = client.get(f"/session/{sid}/report/html").json()["html"]
    assert "Your Career Interests" in html

    resp = client.post(f"/session/{sid}/finish")
    assert resp.status_code == 200
    body = resp.json()
    assert body["id"]
    assert list(body["report"]["sections"]) == [
        "section-a", "section-b", "section-c", "section-d", "section-e",
    ]
    assert body["report"]["demographics"]["studentName"] == "Lerato Mokoena"
    assert len(body["report"]["sections"]["section-c"]["topThird"]) == 3
    assert body["summary"]["dominant_cluster"]
    assert body["email"] == {"sent": False, "skipped": True}
    assert body["completion"]["title"] == "Thank you!"
    assert body["show_results"] is True

    stored = storage.load_result(body["id"])
    assert stored["testId"] == "career-compass"
    assert stored["scores"]["section-a"]["a_arts"]["count"] == 4
    assert stored["durationSec"] >= 0
    assert stored["integrity"]["reason"]

    # the session is gone after completion
    assert client.get(f"/session/{sid}").status_code == 404


def test_demographics_are_validated(api):
    _storage, _app, client = api
    bad = dict(STUDENT, email="not-an-email", age="7")
    resp = client.post("/session/start", json={"demographics": bad})
    assert resp.status_code == 422
    errors = resp.json()["detail"]["errors"]
    assert "Please enter a valid email address (e.g., name@example.com)" in errors
    assert "Please enter a valid age (10-100)" in errors


def test_unknown_test_is_404(api):
    _storage, _app, client = api
    resp = client.post("/session/start", json={"test_id": "missing", "demographics": STUDENT})
    assert resp.status_code == 404


def test_answer_page_validation(api):
    _storage, _app, client = api
    sid = _start(client)
    post = lambda payload: client.post(f"/session/{sid}/answers", json=payload)

    assert post({"category_key": "nope", "values": [1]}).status_code == 400
    assert post({"category_key": "a_arts", "values": [1, 7]}).status_code == 400
    assert post({"category_key": "a_arts", "start_index": 3, "values": [1, 2]}).status_code == 400

    ok = post({"category_key": "c_strengths", "start_index": 9, "values": [5, None, 4]})
    assert ok.status_code == 200
    answers = client.get(f"/session/{sid}").json()["answers"]["c_strengths"]
    assert answers[9:12] == [5, None, 4]
    assert answers[8] is None


def test_session_survives_restart(api):
    _storage, app_module, client = api
    sid = _start(client)
    client.post(f"/session/{sid}/answers", json={"category_key": "a_arts", "values": [4, 4, 5, 3]})
    app_module.SESS.clear()
    assert client.get(f"/session/{sid}").json()["answers"]["a_arts"] == [4, 4, 5, 3]


def test_unknown_session(api):
    _storage, _app, client = api
    assert client.post("/session/ghost/finish").status_code == 404


def test_flagged_answers_are_still_stored(api):
    storage, _app, client = api
    sid = _start(client)
    _answer_all(client, sid, value=3)
    body = client.post(f"/session/{sid}/finish").json()
    assert body["integrity"]["valid"] is False
    assert body["integrity"]["reason"] == "all_same_answer"
    assert storage.load_result(body["id"])["integrity"]["valid"] is False


def test_store_results_disabled(api, monkeypatch):
    _storage, app_module, client = api
    monkeypatch.setattr(app_module.config, "STORE_RESULTS", False)
    sid = _start(client)
    body = client.post(f"/session/{sid}/finish").json()
    assert body["id"] is None
    assert client.get("/results", headers=KEY).json()["count"] == 0


def test_email_failure_does_not_block_completion(api, monkeypatch):
    _storage, app_module, client = api
    monkeypatch.setattr(app_module.config, "SEND_EMAIL", True)

    def boom(*args, **kwargs):
        raise app_module.MailerError("mailer returned HTTP 502")

    monkeypatch.setattr(app_module, "send_report_email", boom)
    sid = _start(client)
    body = client.post(f"/session/{sid}/finish").json()
    assert body["id"]
    assert body["email"] == {"sent": False, "error": "mailer returned HTTP 502"}

    analytics = client.get("/analytics", headers=KEY).json()
    assert analytics["email_sent_failure"] == 1
    assert analytics["email_sent_success"] == 0


def test_email_success(api, monkeypatch):
    _storage, app_module, client = api
    monkeypatch.setattr(app_module.config, "SEND_EMAIL", True)
    sent = {}

    def fake_send(subject, html, cfg, **kwargs):
        sent["subject"] = subject
        sent["html"] = html
        return {"success": True}

    monkeypatch.setattr(app_module, "send_report_email", fake_send)
    sid = _start(client)
    body = client.post(f"/session/{sid}/finish").json()
    assert body["email"] == {"sent": True}
    assert sent["subject"] == "Career Compass Assessment Results - Lerato Mokoena"
    assert "Student Details" in sent["html"]
    assert client.get("/analytics", headers=KEY).json()["email_sent_success"] == 1


def test_dashboard_requires_access_key(api):
    _storage, _app, client = api
    assert client.get("/results").status_code == 403
    assert client.get("/results", headers={"X-Access-Key": "wrong"}).status_code == 403
    assert client.get("/analytics").status_code == 403
    assert client.get("/results", headers=KEY).status_code == 200


def test_dashboard_disabled_without_configured_key(api, monkeypatch):
    _storage, _app, client = api
    monkeypatch.delenv("ACCESS_KEY")
    assert client.get("/results", headers=KEY).status_code == 403


def test_dashboard_results(api):
    _storage, _app, client = api
    sid = _start(client)
    _answer_all(client, sid)
    rid = client.post(f"/session/{sid}/finish").json()["id"]

    listing = client.get("/results", headers=KEY, params={"search": "lerato"}).json()
    assert listing["count"] == 1
    assert listing["stats"]["total"] == 1
    assert client.get("/results", headers=KEY, params={"search": "nobody"}).json()["count"] == 0
    assert client.get("/results", headers=KEY, params={"sort": "sideways"}).status_code == 422

    one = client.get(f"/results/{rid}", headers=KEY).json()
    assert one["data"]["id"] == rid

    html = client.get(f"/results/{rid}/html", headers=KEY).json()["html"]
    assert "Your Strengths" in html

    csv_resp = client.get("/results/export.csv", headers=KEY)
    assert csv_resp.status_code == 200
    assert csv_resp.headers["content-type"].startswith("text/csv")
    lines = csv_resp.text.strip().splitlines()
    assert lines[0].startswith("id,testId,submittedAt")
    assert rid in lines[1]

    analytics = client.get("/analytics", headers=KEY).json()
    assert analytics["test_started"] == 1
    assert analytics["test_completed"] == 1
    assert analytics["completion_rate"] == 100

    assert client.delete(f"/results/{rid}", headers=KEY).json() == {"success": True}
    assert client.get(f"/results/{rid}", headers=KEY).status_code == 404
    assert client.delete(f"/results/{rid}", headers=KEY).status_code == 404


def test_track_event(api):
    storage, _app, client = api
    resp = client.post("/events", json={"event_name": "page_viewed", "session_id": "s1",
                                        "data": {"page": 3}})
    assert resp.status_code == 200
    assert resp.json()["timestamp"]
    events = storage.load_events()
    assert events[-1]["eventName"] == "page_viewed"
    assert events[-1]["data"] == {"page": 3}


def test_start_drops_expired_sessions(api):
    storage, _app, client = api
    old = (datetime.now(timezone.utc) - timedelta(days=30)).isoformat()
    storage.record_active_session("stale", {"lastUpdated": old})
    assert client.get("/health").json()["active_sessions"] == 1

    sid = _start(client)
    assert set(storage.load_all_active_sessions()) == {sid}
    assert client.get("/health").json()["active_sessions"] == 1
