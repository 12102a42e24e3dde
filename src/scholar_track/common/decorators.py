from __future__ import annotations

from functools import wraps
from typing import Optional

from flask import jsonify, session

from ..core.enums import Role


def roles_required(*roles: Role):
    """Require a logged-in session whose role is one of ``roles``.

    Login itself happens elsewhere; the session must carry user_id and role.
    """

    allowed = {r.value for r in roles}

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return jsonify({"error": "Authentication required"}), 401
            if session.get("role") not in allowed:
                return jsonify({"error": "Insufficient permissions"}), 403
            return view(*args, **kwargs)

        return wrapper

    return decorator


def current_user_id() -> Optional[str]:
    user_id = session.get("user_id")
    return str(user_id) if user_id is not None else None


def teacher_scope() -> Optional[str]:
    """Teacher id limiting report queries; admins see every class."""

    if session.get("role") == Role.ADMIN.value:
        return None
    teacher_id = session.get("teacher_id", session.get("user_id"))
    return str(teacher_id) if teacher_id is not None else None
