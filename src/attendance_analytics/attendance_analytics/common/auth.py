from __future__ import annotations

from functools import wraps
from typing import Iterable, Optional

from flask import jsonify, session

from ..core.enums import Role


def current_role() -> Optional[Role]:
    try:
        return Role(session.get("role"))
    except ValueError:
        return None


def api_login_required(view):
    """Reject requests without a session identity (set by the external auth layer)."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        if "user_id" not in session or current_role() is None:
            return jsonify({"error": "Unauthorized"}), 401
        return view(*args, **kwargs)

    return wrapper


def roles_required(roles: Iterable[Role]):
    allowed = set(roles)

    def decorator(view):
        @wraps(view)
        @api_login_required
        def wrapper(*args, **kwargs):
            if current_role() not in allowed:
                return jsonify({"error": "Forbidden"}), 403
            return view(*args, **kwargs)

        return wrapper

    return decorator
