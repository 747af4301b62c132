from __future__ import annotations

from datetime import date

import pytest
from mysql.connector import errorcode, errors

from src.attendance_analytics.attendance_analytics.attendance.mysql_attendance_repository import MySQLAttendanceStore
from src.attendance_analytics.attendance_analytics.core.enums import AttendanceStatus
from src.attendance_analytics.attendance_analytics.core.exceptions import DuplicateSessionError


class FakeCursor:
    def __init__(self, insert_error=None):
        self.insert_error = insert_error
        self.statements = []
        self.lastrowid = 0

    def execute(self, sql, params=()):
        self.statements.append(" ".join(sql.split()))
        if "INSERT INTO attendance_records" in sql:
            if self.insert_error is not None:
                raise self.insert_error
            self.lastrowid += 1

    def fetchone(self):
        return None

    def fetchall(self):
        return []

    def close(self):
        pass


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor
        self.commits = 0
        self.rollbacks = 0

    def cursor(self, dictionary=True):
        return self._cursor

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        pass


class FakeConnectionFactory:
    def __init__(self, conn):
        self._conn = conn

    def connect(self):
        return self._conn


def _store(insert_error=None):
    cur = FakeCursor(insert_error)
    conn = FakeConnection(cur)
    return MySQLAttendanceStore(FakeConnectionFactory(conn)), conn, cur


def _insert(tx, student_id):
    return tx.insert_record(
        class_id=1,
        subject_id=1,
        teacher_id=9,
        student_id=student_id,
        attendance_date=date(2026, 3, 2),
        status=AttendanceStatus.PRESENT,
    )


@pytest.mark.parametrize(
    "error",
    [
        errors.IntegrityError(msg="Duplicate entry", errno=errorcode.ER_DUP_ENTRY, sqlstate="23000"),
        errors.InternalError(msg="Deadlock found when trying to get lock", errno=errorcode.ER_LOCK_DEADLOCK, sqlstate="40001"),
    ],
)
def test_losing_a_session_race_is_a_duplicate_session(error):
    store, conn, _ = _store(error)

    with pytest.raises(DuplicateSessionError):
        with store.transaction() as tx:
            _insert(tx, 1)

    assert conn.rollbacks == 1
    assert conn.commits == 0


def test_other_database_errors_pass_through():
    error = errors.ProgrammingError(msg="Table doesn't exist", errno=errorcode.ER_NO_SUCH_TABLE)
    store, conn, _ = _store(error)

    with pytest.raises(errors.ProgrammingError):
        with store.transaction() as tx:
            _insert(tx, 1)
    assert conn.rollbacks == 1


def test_in_transaction_session_check_takes_no_gap_lock():
    store, conn, cur = _store()

    with store.transaction() as tx:
        assert not tx.session_exists(class_id=1, subject_id=1, attendance_date=date(2026, 3, 2))
        rec = _insert(tx, 1)

    assert "FOR UPDATE" not in cur.statements[0]
    assert rec.record_id == 1
    assert conn.commits == 1
