from flask import Blueprint, request, jsonify, g

from models import db
from models.user import User, Role
from security.password import hash_password, validate_password
from security.session import create_session, set_session_cookie, clear_session_cookie, revoke_current_session
from security.csrf import issue_csrf_token, clear_csrf_token
from security.identity import AuthenticationFailed, get_provider
from utils.audit import log_event
from utils.auth_context import login_required
from utils.serializers import serialize_user


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _is_valid_email(email: str) -> bool:
    return isinstance(email, str) and "@" in email and len(email) <= 255


def _start_session(user: User, provider: str, status: int = 200):
    raw_token = create_session(user.id, provider=provider)
    resp = jsonify(message="Login OK", user=serialize_user(user))
    set_session_cookie(resp, raw_token)
    issue_csrf_token(resp)
    log_event("LOGIN_SUCCESS", user_id=user.id, metadata={"provider": provider})
    return resp, status


@auth_bp.post("/register")
def register():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip() or None
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not _is_valid_email(email):
        return jsonify(error="Invalid email"), 400
    errors = validate_password(password)
    if errors:
        return jsonify(error="Password does not meet policy", details=errors), 400

    if User.query.filter_by(email=email).first():
        log_event("REGISTER_FAIL_EMAIL_EXISTS", metadata={"email": email})
        return jsonify(error="Email already used"), 409

    user = User(name=name, email=email, password_hash=hash_password(password), provider="local")
    db.session.add(user)
    db.session.flush()

    user_role = Role.query.filter_by(name="USER").first()
    if user_role:
        user.roles.append(user_role)

    db.session.commit()
    log_event("REGISTER_SUCCESS", user_id=user.id)

    return _start_session(user, "local", 201)


def _login_with(provider_name: str):
    data = request.get_json(silent=True) or {}
    provider = get_provider(provider_name)
    try:
        user = provider.authenticate(data)
    except AuthenticationFailed as exc:
        email = (data.get("email") or "").strip().lower() or None
        log_event("LOGIN_FAIL", metadata={"provider": provider_name, "email": email})
        return jsonify(error=str(exc)), 401
    return _start_session(user, provider_name)


@auth_bp.post("/login")
def login():
    return _login_with("local")


@auth_bp.post("/google")
def google_login():
    return _login_with("google")


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(serialize_user(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_current_session()
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    clear_session_cookie(resp)
    clear_csrf_token(resp)
    return resp, 200
