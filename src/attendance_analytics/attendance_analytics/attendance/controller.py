from __future__ import annotations

from flask import Flask, jsonify, request, session

from ..common.auth import api_login_required, current_role, roles_required
from ..common.datetime_utils import parse_iso_date
from ..common.validators import require_int
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ValidationError

TEACHING_ROLES = (Role.TEACHER, Role.CLASS_TEACHER, Role.HOD)


def _require(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")


def _date(value: str):
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("Invalid date (YYYY-MM-DD)")


def _session_key(data) -> dict:
    _require(data, "class_id", "subject_id", "date")
    return {
        "class_id": require_int(data["class_id"], "class_id"),
        "subject_id": require_int(data["subject_id"], "subject_id"),
        "attendance_date": _date(data["date"]),
    }


def register(app: Flask, container: Container) -> None:
    @app.route("/api/attendance/check", methods=["GET"], endpoint="api_attendance_check")
    @api_login_required
    def attendance_check():
        exists = container.marking_service.has_session(**_session_key(request.args))
        return jsonify({"exists": exists})

    @app.route("/api/attendance/records", methods=["GET"], endpoint="api_attendance_records")
    @roles_required(TEACHING_ROLES)
    def attendance_records():
        rows = container.marking_service.list_session(**_session_key(request.args))
        return jsonify([r.to_dict() for r in rows])

    @app.route("/api/attendance/mark", methods=["POST"], endpoint="api_attendance_mark")
    @roles_required(TEACHING_ROLES)
    def attendance_mark():
        data = request.get_json(silent=True) or {}
        _require(data, "attendance")
        key = _session_key(data)

        rows = data["attendance"]
        if not isinstance(rows, list) or not all(isinstance(a, dict) and "student_id" in a for a in rows):
            raise ValidationError("attendance must be a list of {student_id, status}")
        attendance = {a["student_id"]: a.get("status") for a in rows}
        teacher_id = container.marking_service.teacher_id_for_user(int(session["user_id"]))

        created = container.marking_service.mark_attendance(teacher_id=teacher_id, attendance=attendance, **key)
        return jsonify({"count": len(created)}), 201

    @app.route("/api/attendance/override", methods=["POST"], endpoint="api_attendance_override")
    @api_login_required
    def attendance_override():
        data = request.get_json(silent=True) or {}
        _require(data, "student_id", "date", "reason")

        count = container.override_service.override_to_present(
            student_id=require_int(data["student_id"], "student_id"),
            attendance_date=_date(data["date"]),
            reason=str(data["reason"]),
            actor_user_id=int(session["user_id"]),
            current_role=current_role(),
        )
        return jsonify({"overriddenCount": count})

    @app.route("/api/attendance/<int:record_id>/audit", methods=["GET"], endpoint="api_attendance_audit")
    @roles_required(TEACHING_ROLES)
    def attendance_audit(record_id: int):
        entries = container.attendance_store.list_audit_logs(record_id)
        return jsonify([e.to_dict() for e in entries])
