import hashlib
import secrets
from datetime import datetime, timedelta
from flask import request, current_app

from models import db
from models.session import Session

def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def _cookie_name() -> str:
    return current_app.config.get("AUTH_COOKIE_NAME", "travelbook_session")

def create_session(user_id: int, provider: str = "local") -> str:
    """
    Creates a server-side session and returns the RAW token (to set as cookie).
    Only the hash is stored in DB.
    """
    raw_token = secrets.token_urlsafe(32)

    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 7 * 24 * 3600)
    user_agent = (request.headers.get("User-Agent") or "")[:255]

    db.session.add(Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        provider=provider,
        expires_at=datetime.utcnow() + timedelta(seconds=lifetime),
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
        user_agent=user_agent,
    ))
    db.session.commit()
    return raw_token

def set_session_cookie(resp, raw_token: str):
    resp.set_cookie(
        _cookie_name(),
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 7 * 24 * 3600),
        path="/",
    )
    return resp

def clear_session_cookie(resp):
    resp.delete_cookie(_cookie_name(), path="/")
    return resp

def get_session_from_request():
    raw_token = request.cookies.get(_cookie_name())
    if not raw_token:
        return None

    now = datetime.utcnow()
    sess = (
        Session.query
        .filter_by(token_hash=_hash_token(raw_token), revoked=False)
        .first()
    )
    idle_seconds = current_app.config.get("IDLE_TIMEOUT_SECONDS", 7200)
    if not sess or not sess.is_active(now, idle_seconds):
        return None

    sess.last_seen_at = now
    db.session.commit()
    return sess

def revoke_current_session() -> bool:
    raw_token = request.cookies.get(_cookie_name())
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if not sess:
        return False
    sess.revoked = True
    db.session.commit()
    return True
