from __future__ import annotations

import logging

from flask import Flask, jsonify, request, session

from ..common.auth import api_login_required, current_role, roles_required
from ..container import Container
from ..core.enums import Role
from ..core.exceptions import EmailDeliveryError, ForbiddenError, ValidationError

logger = logging.getLogger(__name__)


def register(app: Flask, container: Container) -> None:
    @app.route("/api/students/<int:student_id>/notifications", methods=["GET"], endpoint="api_student_notifications")
    @api_login_required
    def student_notifications(student_id: int):
        if current_role() == Role.STUDENT:
            own = container.attendance_store.get_student(student_id)
            if not own or own.user_id != int(session["user_id"]):
                raise ForbiddenError("Forbidden")
        rows = container.attendance_store.list_notifications(student_id)
        return jsonify([n.to_dict() for n in rows])

    @app.route("/api/notifications/provider", methods=["GET"], endpoint="api_email_provider_check")
    @roles_required((Role.HOD,))
    def email_provider_check():
        return jsonify(container.dispatcher.verify().to_dict())

    @app.route("/api/notifications/test-email", methods=["POST"], endpoint="api_send_test_email")
    @roles_required((Role.HOD,))
    def send_test_email():
        data = request.get_json(silent=True) or {}
        to = str(data.get("to") or "").strip()
        if "@" not in to:
            raise ValidationError("A valid 'to' address is required")

        try:
            receipt = container.dispatcher.send_test_email(to)
        except EmailDeliveryError as e:
            logger.warning("Test email via %s failed: %s", container.dispatcher.provider_name, e)
            return jsonify({"ok": False, "provider": container.dispatcher.provider_name, "error": str(e)}), 502
        return jsonify({"ok": True, "provider": container.dispatcher.provider_name, "result": receipt.to_dict()})
