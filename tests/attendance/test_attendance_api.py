from __future__ import annotations

from datetime import date

import pytest
from flask import Flask

from src.attendance_analytics.attendance_analytics.analytics.controller import register as register_analytics
from src.attendance_analytics.attendance_analytics.analytics.engine import AnalyticsEngine
from src.attendance_analytics.attendance_analytics.analytics.service import AnalyticsReportService
from src.attendance_analytics.attendance_analytics.attendance.controller import register as register_attendance
from src.attendance_analytics.attendance_analytics.attendance.service import AttendanceMarkingService
from src.attendance_analytics.attendance_analytics.common.errors import register_error_handlers
from src.attendance_analytics.attendance_analytics.container import Container
from src.attendance_analytics.attendance_analytics.core.enums import AttendanceStatus
from src.attendance_analytics.attendance_analytics.notifications.controller import register as register_notifications
from src.attendance_analytics.attendance_analytics.notifications.dispatcher import NotificationDispatcher
from src.attendance_analytics.attendance_analytics.notifications.model import ProviderResponse
from src.attendance_analytics.attendance_analytics.overrides.service import OverrideService
from tests.fakes import InMemoryAnalyticsRepository, InMemoryAttendanceStore, ScriptedTransport, SleepRecorder, TickingClock

TEACHER_USER = 501
HOD_USER = 900


@pytest.fixture
def store():
    s = InMemoryAttendanceStore()
    s.add_subject(1, "Maths")
    s.add_student(1, class_id=1, email="s1@example.com")
    s.add_student(2, class_id=1, email="s2@example.com")
    s.teachers_by_user[TEACHER_USER] = 9
    s.class_teachers[1] = TEACHER_USER
    return s


@pytest.fixture
def transport():
    return ScriptedTransport(per_recipient={"bounce@example.com": [ProviderResponse(400, "mailbox unavailable")]})


@pytest.fixture
def app(store, transport):
    repo = InMemoryAnalyticsRepository(store)
    dispatcher = NotificationDispatcher(transport, sleep=SleepRecorder(), clock=TickingClock())
    engine = AnalyticsEngine(repo, clock=TickingClock())
    container = Container(
        conn=None,
        attendance_store=store,
        analytics_repo=repo,
        dispatcher=dispatcher,
        analytics_engine=engine,
        analytics_report_service=AnalyticsReportService(repo),
        marking_service=AttendanceMarkingService(store, dispatcher, engine, clock=TickingClock()),
        override_service=OverrideService(store, engine, clock=TickingClock()),
    )

    app = Flask(__name__)
    app.secret_key = "test"
    app.config["TESTING"] = True
    register_error_handlers(app)
    register_attendance(app, container)
    register_analytics(app, container)
    register_notifications(app, container)
    return app


def _client(app, *, user_id=None, role=None):
    client = app.test_client()
    if user_id is not None:
        with client.session_transaction() as sess:
            sess["user_id"] = user_id
            sess["role"] = role
    return client


MARK = {
    "class_id": 1,
    "subject_id": 1,
    "date": "2026-03-02",
    "attendance": [{"student_id": 1, "status": "present"}, {"student_id": 2, "status": "absent"}],
}


def test_mark_then_duplicate(app, store):
    client = _client(app, user_id=TEACHER_USER, role="teacher")

    r = client.post("/api/attendance/mark", json=MARK)
    assert r.status_code == 201
    assert r.get_json() == {"count": 2}
    assert all(rec.teacher_id == 9 for rec in store.records.values())

    r = client.post("/api/attendance/mark", json=MARK)
    assert r.status_code == 409
    assert "already recorded" in r.get_json()["error"]

    r = client.get("/api/attendance/check", query_string={"class_id": 1, "subject_id": 1, "date": "2026-03-02"})
    assert r.get_json() == {"exists": True}


def test_mark_requires_login_and_teaching_role(app):
    assert _client(app).post("/api/attendance/mark", json=MARK).status_code == 401
    assert _client(app, user_id=101, role="student").post("/api/attendance/mark", json=MARK).status_code == 403


@pytest.mark.parametrize(
    "payload",
    [
        {**MARK, "date": "02/03/2026"},
        {**MARK, "attendance": "everyone present"},
        {k: v for k, v in MARK.items() if k != "subject_id"},
    ],
)
def test_mark_rejects_bad_payload(app, payload):
    r = _client(app, user_id=TEACHER_USER, role="teacher").post("/api/attendance/mark", json=payload)
    assert r.status_code == 400


def test_override_flow(app, store):
    client = _client(app, user_id=TEACHER_USER, role="class_teacher")
    body = {"student_id": 2, "date": "2026-03-02", "reason": "Medical certificate"}

    r = client.post("/api/attendance/override", json=body)
    assert r.status_code == 404

    client.post("/api/attendance/mark", json=MARK)
    r = client.post("/api/attendance/override", json=body)
    assert r.status_code == 200
    assert r.get_json() == {"overriddenCount": 1}

    (record,) = [rec for rec in store.records.values() if rec.student_id == 2]
    assert record.status == AttendanceStatus.PRESENT
    audit = client.get(f"/api/attendance/{record.record_id}/audit").get_json()
    assert [a["reason"] for a in audit] == ["Medical certificate"]


def test_override_by_other_teacher_is_forbidden(app, store):
    store.seed_record(student_id=2, subject_id=1, attendance_date=date(2026, 3, 2), status=AttendanceStatus.ABSENT)
    r = _client(app, user_id=777, role="teacher").post(
        "/api/attendance/override", json={"student_id": 2, "date": "2026-03-02", "reason": "Medical"}
    )
    assert r.status_code == 403


def test_student_sees_only_own_analytics_and_notifications(app):
    _client(app, user_id=TEACHER_USER, role="teacher").post("/api/attendance/mark", json=MARK)
    student2 = _client(app, user_id=102, role="student")

    r = student2.get("/api/analytics/student/2")
    assert r.status_code == 200
    assert r.get_json()["overall_pct"] == 0
    assert r.get_json()["risk_level"] == "high"

    assert student2.get("/api/analytics/student/1").status_code == 403
    assert student2.get("/api/students/1/notifications").status_code == 403

    (note,) = student2.get("/api/students/2/notifications").get_json()
    assert note["meta"]["riskCategory"] == "high"
    assert note["read"] is False


def test_dashboard_endpoints(app):
    _client(app, user_id=TEACHER_USER, role="teacher").post("/api/attendance/mark", json=MARK)
    hod = _client(app, user_id=HOD_USER, role="hod")

    assert hod.get("/api/analytics/risk-distribution").get_json() == {"safe": 1, "moderate": 0, "high": 1, "total": 2}
    assert [d["student_id"] for d in hod.get("/api/analytics/defaulters").get_json()] == [2]
    assert hod.post("/api/analytics/recompute").get_json() == {"recomputed": 2}
    assert _client(app, user_id=TEACHER_USER, role="teacher").post("/api/analytics/recompute").status_code == 403


def test_session_records_listing(app):
    teacher = _client(app, user_id=TEACHER_USER, role="teacher")
    query = {"class_id": 1, "subject_id": 1, "date": "2026-03-02"}

    assert teacher.get("/api/attendance/records", query_string=query).get_json() == []

    teacher.post("/api/attendance/mark", json=MARK)
    rows = teacher.get("/api/attendance/records", query_string=query).get_json()

    assert [(r["student_id"], r["roll_number"], r["status"]) for r in rows] == [(1, "R001", "present"), (2, "R002", "absent")]
    assert rows[1]["student_name"] == "Student 2"
    assert _client(app, user_id=102, role="student").get("/api/attendance/records", query_string=query).status_code == 403


@pytest.mark.parametrize(
    "method, url, kwargs",
    [
        ("post", "/api/attendance/mark", {"json": {**MARK, "class_id": "abc"}}),
        ("post", "/api/attendance/mark", {"json": {**MARK, "attendance": [{"student_id": "x", "status": "present"}]}}),
        ("post", "/api/attendance/override", {"json": {"student_id": "two", "date": "2026-03-02", "reason": "Medical"}}),
        ("get", "/api/attendance/check", {"query_string": {"class_id": 1, "subject_id": "maths", "date": "2026-03-02"}}),
        ("get", "/api/analytics/defaulters", {"query_string": {"class_id": "first"}}),
    ],
)
def test_non_numeric_ids_are_bad_requests(app, method, url, kwargs):
    client = _client(app, user_id=TEACHER_USER, role="class_teacher")

    r = getattr(client, method)(url, **kwargs)

    assert r.status_code == 400
    assert "Internal" not in r.get_json()["error"]


def test_invalid_student_id_has_its_own_message(app):
    payload = {**MARK, "attendance": [{"student_id": "x", "status": "present"}]}
    r = _client(app, user_id=TEACHER_USER, role="teacher").post("/api/attendance/mark", json=payload)
    assert r.get_json()["error"] == "Invalid student id: 'x'"


def test_provider_check_and_test_email_are_hod_only(app, transport):
    hod = _client(app, user_id=HOD_USER, role="hod")

    assert hod.get("/api/notifications/provider").get_json() == {"provider": "scripted", "ok": True, "reason": None}

    r = hod.post("/api/notifications/test-email", json={"to": "ops@example.com"})
    assert r.status_code == 200
    body = r.get_json()
    assert body["ok"] is True
    assert body["result"]["accepted"] == ["ops@example.com"]
    assert transport.sent[-1].subject == "WAA-100 Email Provider Test"

    teacher = _client(app, user_id=TEACHER_USER, role="teacher")
    assert teacher.get("/api/notifications/provider").status_code == 403
    assert teacher.post("/api/notifications/test-email", json={"to": "ops@example.com"}).status_code == 403


def test_test_email_failure_and_bad_address(app):
    hod = _client(app, user_id=HOD_USER, role="hod")

    r = hod.post("/api/notifications/test-email", json={"to": "bounce@example.com"})
    assert r.status_code == 502
    assert r.get_json()["ok"] is False
    assert "mailbox unavailable" in r.get_json()["error"]

    assert hod.post("/api/notifications/test-email", json={"to": "not-an-address"}).status_code == 400
