from __future__ import annotations

from flask import Flask, jsonify, request, session

from ..common.auth import api_login_required, current_role, roles_required
from ..common.validators import require_int
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import ForbiddenError


def _class_filter():
    value = request.args.get("class_id")
    return require_int(value, "class_id") if value else None


def register(app: Flask, container: Container) -> None:
    @app.route("/api/analytics/student/<int:student_id>", methods=["GET"], endpoint="api_student_analytics")
    @api_login_required
    def student_analytics(student_id: int):
        if current_role() == Role.STUDENT:
            own = container.attendance_store.get_student(student_id)
            if not own or own.user_id != int(session["user_id"]):
                raise ForbiddenError("Forbidden")
        cache = container.analytics_report_service.get_student_analytics(student_id)
        return jsonify(cache.to_dict())

    @app.route("/api/analytics/risk-distribution", methods=["GET"], endpoint="api_risk_distribution")
    @roles_required((Role.TEACHER, Role.CLASS_TEACHER, Role.HOD))
    def risk_distribution():
        dist = container.analytics_report_service.risk_distribution(class_id=_class_filter())
        return jsonify(dist.to_dict())

    @app.route("/api/analytics/defaulters", methods=["GET"], endpoint="api_defaulters")
    @roles_required((Role.TEACHER, Role.CLASS_TEACHER, Role.HOD))
    def defaulters():
        return jsonify(container.analytics_report_service.list_defaulters(class_id=_class_filter()))

    @app.route("/api/analytics/recompute", methods=["POST"], endpoint="api_recompute_analytics")
    @roles_required((Role.HOD,))
    def recompute_all():
        count = container.analytics_engine.recompute_all_students_analytics()
        return jsonify({"recomputed": count})
