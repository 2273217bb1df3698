from functools import wraps
from flask import g, jsonify, request

from utils.audit import log_event


def require_roles(*role_names: str):
    """
    Usage: @require_roles("ADMIN")

    Anonymous callers get 401. Signed-in users without one of the roles get 403
    and the attempt lands in the audit trail as ACCESS_DENIED.
    """
    allowed = set(role_names)

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            if not allowed.intersection(user.role_names):
                log_event("ACCESS_DENIED", user_id=user.id,
                          metadata={"path": request.path, "required": sorted(allowed)})
                return jsonify(error="Admin only" if allowed == {"ADMIN"} else "Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
