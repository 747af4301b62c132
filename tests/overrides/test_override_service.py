from __future__ import annotations

from datetime import date

import pytest

from src.attendance_analytics.attendance_analytics.core.enums import AttendanceStatus, Role
from src.attendance_analytics.attendance_analytics.core.exceptions import (
    ForbiddenError,
    NoAbsenceFoundError,
    NotFoundError,
    ValidationError,
)
from src.attendance_analytics.attendance_analytics.overrides.service import OverrideService
from tests.fakes import InMemoryAttendanceStore, InMemoryUnitOfWork, SpyAnalyticsEngine, TickingClock

DAY = date(2026, 3, 2)
CLASS_TEACHER_USER = 300


@pytest.fixture
def store():
    s = InMemoryAttendanceStore()
    for sid, name in ((1, "Maths"), (2, "Physics"), (3, "Chemistry")):
        s.add_subject(sid, name)
    s.add_student(7, class_id=1)
    s.class_teachers[1] = CLASS_TEACHER_USER
    return s


def _absent_all_day(store):
    return [
        store.seed_record(student_id=7, subject_id=subject_id, attendance_date=DAY, status=AttendanceStatus.ABSENT)
        for subject_id in (1, 2, 3)
    ]


def test_override_flips_every_absence_of_the_day(store):
    records = _absent_all_day(store)
    other_day = store.seed_record(student_id=7, subject_id=1, attendance_date=date(2026, 3, 3), status=AttendanceStatus.ABSENT)
    analytics = SpyAnalyticsEngine()
    svc = OverrideService(store, analytics, clock=TickingClock())

    count = svc.override_to_present(student_id=7, attendance_date=DAY, reason="Medical certificate", actor_user_id=1)

    assert count == 3
    for r in records:
        updated = store.records[r.record_id]
        assert updated.status == AttendanceStatus.PRESENT
        assert updated.override_reason == "Medical certificate"
    assert store.records[other_day.record_id].status == AttendanceStatus.ABSENT

    assert [a["attendance_record_id"] for a in store.audit_logs] == [r.record_id for r in records]
    assert {(a["previous_status"], a["new_status"]) for a in store.audit_logs} == {
        (AttendanceStatus.ABSENT, AttendanceStatus.PRESENT)
    }
    assert analytics.calls == [7]


def test_audit_trail_is_listed_per_record(store):
    (first, _, _) = _absent_all_day(store)
    svc = OverrideService(store, SpyAnalyticsEngine(), clock=TickingClock())
    svc.override_to_present(student_id=7, attendance_date=DAY, reason="Sports meet", actor_user_id=1)

    (entry,) = store.list_audit_logs(first.record_id)
    assert entry.actor_user_id == 1
    assert entry.reason == "Sports meet"
    assert entry.to_dict()["new_status"] == "present"


def test_no_absences_raises_and_writes_nothing(store):
    store.seed_record(student_id=7, subject_id=1, attendance_date=DAY, status=AttendanceStatus.PRESENT)
    analytics = SpyAnalyticsEngine()
    svc = OverrideService(store, analytics, clock=TickingClock())

    with pytest.raises(NoAbsenceFoundError):
        svc.override_to_present(student_id=7, attendance_date=DAY, reason="Medical", actor_user_id=1)

    assert store.audit_logs == []
    assert analytics.calls == []


def test_override_again_finds_nothing(store):
    _absent_all_day(store)
    svc = OverrideService(store, SpyAnalyticsEngine(), clock=TickingClock())
    svc.override_to_present(student_id=7, attendance_date=DAY, reason="Medical", actor_user_id=1)

    with pytest.raises(NoAbsenceFoundError):
        svc.override_to_present(student_id=7, attendance_date=DAY, reason="Medical", actor_user_id=1)
    assert len(store.audit_logs) == 3


@pytest.mark.parametrize("reason", ["", "  ", "ok"])
def test_reason_must_be_meaningful(store, reason):
    _absent_all_day(store)
    svc = OverrideService(store, SpyAnalyticsEngine(), clock=TickingClock())
    with pytest.raises(ValidationError):
        svc.override_to_present(student_id=7, attendance_date=DAY, reason=reason, actor_user_id=1)


def test_unknown_student(store):
    svc = OverrideService(store, SpyAnalyticsEngine(), clock=TickingClock())
    with pytest.raises(NotFoundError, match="Student not found"):
        svc.override_to_present(student_id=404, attendance_date=DAY, reason="Medical", actor_user_id=1)


@pytest.mark.parametrize(
    "role, actor, allowed",
    [
        (Role.HOD, 1, True),
        (Role.CLASS_TEACHER, CLASS_TEACHER_USER, True),
        (Role.TEACHER, CLASS_TEACHER_USER, True),
        (Role.TEACHER, 301, False),
        (Role.CLASS_TEACHER, 301, False),
        (Role.STUDENT, CLASS_TEACHER_USER, False),
    ],
)
def test_override_authorization(store, role, actor, allowed):
    _absent_all_day(store)
    svc = OverrideService(store, SpyAnalyticsEngine(), clock=TickingClock())

    if allowed:
        assert svc.override_to_present(
            student_id=7, attendance_date=DAY, reason="Medical", actor_user_id=actor, current_role=role
        ) == 3
    else:
        with pytest.raises(ForbiddenError):
            svc.override_to_present(
                student_id=7, attendance_date=DAY, reason="Medical", actor_user_id=actor, current_role=role
            )
        assert store.audit_logs == []


def test_analytics_failure_is_logged_not_raised(store, caplog):
    _absent_all_day(store)

    class BrokenAnalytics:
        def recompute_student_analytics(self, student_id):
            raise RuntimeError("cache unavailable")

    svc = OverrideService(store, BrokenAnalytics(), clock=TickingClock())

    assert svc.override_to_present(student_id=7, attendance_date=DAY, reason="Medical", actor_user_id=1) == 3
    assert "Analytics recompute failed" in caplog.text


def test_failure_midway_rolls_back_every_record(store, monkeypatch):
    records = _absent_all_day(store)
    original = InMemoryUnitOfWork.insert_audit_log
    calls = []

    def failing_second_audit(self, **kwargs):
        calls.append(kwargs["attendance_record_id"])
        if len(calls) == 2:
            raise RuntimeError("audit table unavailable")
        return original(self, **kwargs)

    monkeypatch.setattr(InMemoryUnitOfWork, "insert_audit_log", failing_second_audit)
    analytics = SpyAnalyticsEngine()
    svc = OverrideService(store, analytics, clock=TickingClock())

    with pytest.raises(RuntimeError):
        svc.override_to_present(student_id=7, attendance_date=DAY, reason="Medical", actor_user_id=1)

    assert all(store.records[r.record_id].status == AttendanceStatus.ABSENT for r in records)
    assert all(store.records[r.record_id].override_reason is None for r in records)
    assert store.audit_logs == []
    assert store.rollbacks == 1
    assert store.commits == 0
    assert analytics.calls == []
