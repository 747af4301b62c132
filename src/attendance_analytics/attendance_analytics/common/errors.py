from __future__ import annotations

import logging

from flask import Flask, jsonify

from ..core.exceptions import ConflictError, DomainError, ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def _domain_error(e: DomainError):
        for error_type, status in _STATUS_BY_ERROR:
            if isinstance(e, error_type):
                return jsonify({"error": str(e)}), status
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        if hasattr(e, "code") and hasattr(e, "get_response"):
            # werkzeug HTTPException (404 routes, 405, ...)
            return e
        logger.exception("Unhandled error")
        return jsonify({"error": "Internal server error"}), 500
