from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta

import pytest

from src.attendance_analytics.attendance_analytics.analytics.engine import AnalyticsEngine
from src.attendance_analytics.attendance_analytics.core.enums import AttendanceStatus, RiskLevel
from tests.fakes import InMemoryAnalyticsRepository, InMemoryAttendanceStore, TickingClock

P = AttendanceStatus.PRESENT
A = AttendanceStatus.ABSENT


def _store_with_history(statuses, *, subject_ids=None):
    store = InMemoryAttendanceStore()
    store.add_subject(1, "Maths")
    store.add_subject(2, "Physics")
    store.add_student(7)
    start = date(2026, 1, 5)
    for i, status in enumerate(statuses):
        subject_id = subject_ids[i] if subject_ids else 1
        store.seed_record(student_id=7, subject_id=subject_id, attendance_date=start + timedelta(days=i), status=status)
    return store


def test_empty_history_writes_optimistic_default():
    repo = InMemoryAnalyticsRepository(_store_with_history([]))
    engine = AnalyticsEngine(repo, clock=TickingClock())

    cache = engine.recompute_student_analytics(7)

    assert cache.overall_pct == 100
    assert cache.risk_level == RiskLevel.SAFE
    assert cache.subject_wise == ()
    assert cache.weekly_avg == 100 and cache.term_avg == 100
    assert (cache.rate_of_decline, cache.acceleration, cache.variance) == (0, 0, 0)
    assert repo.get(7) == cache


def test_trend_statistics_over_declining_history():
    repo = InMemoryAnalyticsRepository(_store_with_history([P, P, A, A, A]))
    engine = AnalyticsEngine(repo, clock=TickingClock())

    cache = engine.recompute_student_analytics(7)

    # cumulative y = 100, 100, 66.67, 50, 40
    assert cache.overall_pct == pytest.approx(40.0)
    assert cache.risk_level == RiskLevel.HIGH
    assert cache.rate_of_decline == pytest.approx(-17.0)
    assert cache.acceleration == pytest.approx(-40 / 3)
    assert cache.variance == pytest.approx(775.5556, rel=1e-4)
    assert cache.weekly_avg == cache.overall_pct
    assert cache.term_avg == cache.overall_pct


def test_two_records_have_slope_and_variance_but_no_acceleration():
    repo = InMemoryAnalyticsRepository(_store_with_history([P, A]))
    cache = AnalyticsEngine(repo, clock=TickingClock()).recompute_student_analytics(7)

    assert cache.rate_of_decline == pytest.approx(-50.0)
    assert cache.acceleration == 0
    assert cache.variance == pytest.approx(1250.0)


def test_single_record_has_flat_trend():
    repo = InMemoryAnalyticsRepository(_store_with_history([A]))
    cache = AnalyticsEngine(repo, clock=TickingClock()).recompute_student_analytics(7)

    assert cache.overall_pct == 0
    assert (cache.rate_of_decline, cache.acceleration, cache.variance) == (0, 0, 0)


def test_trend_uses_only_last_five_records():
    # The two early absences fall outside the window: last five are all present.
    repo = InMemoryAnalyticsRepository(_store_with_history([A, A, P, P, P, P, P]))
    cache = AnalyticsEngine(repo, clock=TickingClock()).recompute_student_analytics(7)

    assert cache.overall_pct == pytest.approx(5 / 7 * 100)
    assert cache.risk_level == RiskLevel.HIGH
    assert cache.rate_of_decline == 0
    assert cache.variance == 0


def test_subject_breakdown():
    repo = InMemoryAnalyticsRepository(
        _store_with_history([P, A, P, P], subject_ids=[1, 1, 2, 2])
    )
    cache = AnalyticsEngine(repo, clock=TickingClock()).recompute_student_analytics(7)

    by_id = {s.subject_id: s for s in cache.subject_wise}
    assert (by_id[1].subject_name, by_id[1].attended, by_id[1].total, by_id[1].pct) == ("Maths", 1, 2, 50.0)
    assert (by_id[2].subject_name, by_id[2].attended, by_id[2].total, by_id[2].pct) == ("Physics", 2, 2, 100.0)
    assert cache.overall_pct == 75.0
    assert cache.risk_level == RiskLevel.MODERATE


def test_recompute_is_idempotent_apart_from_timestamp():
    repo = InMemoryAnalyticsRepository(_store_with_history([P, A, P, A, P, P]))
    engine = AnalyticsEngine(repo, clock=TickingClock())

    first = engine.recompute_student_analytics(7)
    second = engine.recompute_student_analytics(7)

    assert first.last_computed_at != second.last_computed_at
    assert replace(first, last_computed_at=second.last_computed_at) == second
    assert repo.upserts == 2


def test_sweep_recomputes_every_student_and_survives_failures():
    store = _store_with_history([P, A])
    store.add_student(8)
    store.add_student(9)

    class FlakyRepo(InMemoryAnalyticsRepository):
        def list_history(self, student_id):
            if student_id == 8:
                raise RuntimeError("boom")
            return super().list_history(student_id)

    repo = FlakyRepo(store)
    count = AnalyticsEngine(repo, clock=TickingClock()).recompute_all_students_analytics()

    assert count == 2
    assert set(repo.caches) == {7, 9}
    assert repo.caches[9].overall_pct == 100
