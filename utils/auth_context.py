from dataclasses import dataclass
from functools import wraps
from flask import g, jsonify
from models import db
from models.user import User
from security.session import get_session_from_request


@dataclass(frozen=True)
class Identity:
    """Caller identity handed explicitly to every booking operation."""
    user_id: int
    role: str = "USER"

    @property
    def is_admin(self) -> bool:
        return self.role == "ADMIN"

    @classmethod
    def for_user(cls, user: User) -> "Identity":
        return cls(user_id=user.id, role="ADMIN" if user.is_admin else "USER")


def load_current_user():
    sess = get_session_from_request()
    if not sess:
        g.user = None
        g.session = None
        return
    g.session = sess
    g.user = db.session.get(User, sess.user_id)

def current_identity() -> Identity:
    return Identity.for_user(g.user)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
