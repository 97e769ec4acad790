"""Role-based access control helpers.

Roles are embedded in the JWT claims ('SUPER_ADMIN' or 'STAFF'). These
helpers standardize authorization checks across routes.
"""

from __future__ import annotations

from functools import wraps

from flask import jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity

from models.staff import StaffRole


def current_role() -> str:
    claims = get_jwt() or {}
    role = claims.get("role")
    return str(role or "").upper()


def current_staff_id() -> int:
    return int(get_jwt_identity())


def require_roles(*roles: str):
    """Decorator to require one of the allowed roles.

    Must be used with @jwt_required() on the route.
    """

    allowed = {str(r).upper() for r in roles if str(r).strip()}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if current_role() not in allowed:
                return jsonify({"success": False, "error": "Insufficient permissions"}), 403
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def require_staff(fn):
    """Any signed-in staff member, super-admins included."""
    return require_roles(StaffRole.SUPER_ADMIN.value, StaffRole.STAFF.value)(fn)


def require_super_admin(fn):
    return require_roles(StaffRole.SUPER_ADMIN.value)(fn)
