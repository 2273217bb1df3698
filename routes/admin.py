import json

from flask import Blueprint, jsonify, g, request
from sqlalchemy import func

from models import db
from models.audit_log import AuditLog
from models.booking_request import BookingRequest
from models.user import User, Role
from security.password import hash_password, validate_password
from security.rbac import require_roles
from services.booking_lifecycle import BookingLifecycle
from utils.audit import log_event
from utils.auth_context import current_identity
from utils.pagination import paginate
from utils.serializers import serialize_request, serialize_user

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

SORTABLE_FIELDS = {
    "createdAt": BookingRequest.created_at,
    "created_at": BookingRequest.created_at,
    "updatedAt": BookingRequest.updated_at,
    "updated_at": BookingRequest.updated_at,
    "checkInDate": BookingRequest.check_in_date,
    "check_in_date": BookingRequest.check_in_date,
    "totalAmount": BookingRequest.total_amount,
    "total_amount": BookingRequest.total_amount,
    "status": BookingRequest.status,
}

ROLE_ALIASES = {"user": "USER", "admin": "ADMIN"}


def _status_counts():
    rows = (
        db.session.query(BookingRequest.status, func.count(BookingRequest.id))
        .group_by(BookingRequest.status)
        .all()
    )
    return {status: count for status, count in rows}


def _roles_for(name):
    role_name = ROLE_ALIASES.get((name or "user").strip().lower())
    if not role_name:
        return None
    return Role.query.filter_by(name=role_name).all()


# ---------- ADMIN: booking requests ----------
@admin_bp.get("/requests")
@require_roles("ADMIN")
def list_requests():
    status = request.args.get("status")
    search = (request.args.get("search") or "").strip()
    sort_by = request.args.get("sortBy") or request.args.get("sort_by") or "createdAt"
    sort_order = (request.args.get("sortOrder") or request.args.get("sort_order") or "desc").lower()

    column = SORTABLE_FIELDS.get(sort_by)
    if column is None:
        return jsonify(error="Invalid sort field"), 400

    q = BookingRequest.query
    if status:
        q = q.filter(BookingRequest.status == status)
    if search:
        q = q.filter(BookingRequest.package_title.ilike(f"%{search}%"))

    q = q.order_by(column.asc() if sort_order == "asc" else column.desc(), BookingRequest.id.desc())
    rows, pagination = paginate(q)

    return jsonify(
        success=True,
        requests=[serialize_request(r, include_owner=True) for r in rows],
        stats=_status_counts(),
        pagination=pagination,
    ), 200


@admin_bp.get("/requests/<int:request_id>")
@require_roles("ADMIN")
def get_request(request_id: int):
    req = BookingLifecycle().get_any(current_identity(), request_id)
    return jsonify(success=True, request=serialize_request(req, include_owner=True)), 200


@admin_bp.patch("/requests/<int:request_id>/respond")
@require_roles("ADMIN")
def respond_to_request(request_id: int):
    data = request.get_json(silent=True) or {}
    decision = data.get("status") or data.get("decision")
    message = data.get("message")

    req = BookingLifecycle().respond(current_identity(), request_id, decision, message)

    log_event("REQUEST_RESPOND", user_id=g.user.id, entity="booking_request", entity_id=req.id,
              metadata={"decision": decision, "status": req.status})
    label = "approved" if req.status == "payment_pending" else "rejected"
    return jsonify(
        success=True,
        message=f"Request {label} successfully",
        request=serialize_request(req, include_owner=True),
    ), 200


@admin_bp.patch("/requests/<int:request_id>")
@require_roles("ADMIN")
def update_request_status(request_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    note = data.get("note")

    req = BookingLifecycle().set_status(current_identity(), request_id, status, note)

    log_event("REQUEST_STATUS_SET", user_id=g.user.id, entity="booking_request", entity_id=req.id,
              metadata={"status": status, "note": bool(note)})
    return jsonify(
        success=True,
        message="Request updated successfully",
        request=serialize_request(req, include_owner=True),
    ), 200


@admin_bp.delete("/requests/<int:request_id>")
@require_roles("ADMIN")
def delete_request(request_id: int):
    BookingLifecycle().delete(current_identity(), request_id)
    log_event("REQUEST_DELETE", user_id=g.user.id, entity="booking_request", entity_id=request_id)
    return jsonify(success=True), 200


# ---------- ADMIN: users ----------
@admin_bp.get("/users")
@require_roles("ADMIN")
def list_users():
    users = User.query.order_by(User.created_at.desc()).all()
    return jsonify(success=True, users=[serialize_user(u) for u in users]), 200


@admin_bp.post("/users")
@require_roles("ADMIN")
def create_user():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not name or not email or not password:
        return jsonify(success=False, error="Name, email, and password are required"), 400
    errors = validate_password(password)
    if errors:
        return jsonify(success=False, error="Password does not meet policy", details=errors), 400

    roles = _roles_for(data.get("role"))
    if roles is None:
        return jsonify(success=False, error="role must be 'user' or 'admin'"), 400

    if User.query.filter_by(email=email).first():
        return jsonify(success=False, error="User with this email already exists"), 409

    user = User(name=name, email=email, password_hash=hash_password(password), provider="local")
    user.roles = roles
    db.session.add(user)
    db.session.commit()

    log_event("ADMIN_USER_CREATE", user_id=g.user.id, entity="user", entity_id=user.id)
    return jsonify(success=True, message="User added successfully", user=serialize_user(user)), 201


@admin_bp.get("/users/<int:user_id>")
@require_roles("ADMIN")
def get_user(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(success=False, error="User not found"), 404
    return jsonify(success=True, user=serialize_user(user)), 200


@admin_bp.put("/users/<int:user_id>")
@require_roles("ADMIN")
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}

    user = db.session.get(User, user_id)
    if not user:
        return jsonify(success=False, error="User not found"), 404

    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password")
    role = data.get("role")

    if name:
        user.name = name
    if email and email != user.email:
        if User.query.filter(User.email == email, User.id != user.id).first():
            return jsonify(success=False, error="Email already taken by another user"), 409
        user.email = email
    if password:
        errors = validate_password(password)
        if errors:
            return jsonify(success=False, error="Password does not meet policy", details=errors), 400
        user.password_hash = hash_password(password)
    if role:
        roles = _roles_for(role)
        if roles is None:
            return jsonify(success=False, error="role must be 'user' or 'admin'"), 400
        if user.id == g.user.id and not any(r.name == "ADMIN" for r in roles):
            return jsonify(success=False, error="Cannot remove your own ADMIN role"), 403
        user.roles = roles

    db.session.commit()
    log_event("ADMIN_USER_UPDATE", user_id=g.user.id, entity="user", entity_id=user.id)
    return jsonify(success=True, message="User updated successfully", user=serialize_user(user)), 200


@admin_bp.delete("/users/<int:user_id>")
@require_roles("ADMIN")
def delete_user(user_id: int):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify(success=False, error="User not found"), 404
    if user.id == g.user.id:
        return jsonify(success=False, error="You cannot delete your own account"), 400

    for req in BookingRequest.query.filter_by(user_id=user.id).all():
        db.session.delete(req)
    db.session.delete(user)
    db.session.commit()

    log_event("ADMIN_USER_DELETE", user_id=g.user.id, entity="user", entity_id=user_id)
    return jsonify(success=True, message="User deleted successfully"), 200


# ---------- ADMIN: login history (from the audit trail) ----------
@admin_bp.get("/logins")
@require_roles("ADMIN")
def login_history():
    q = (
        AuditLog.query
        .filter(AuditLog.action.in_(("LOGIN_SUCCESS", "LOGIN_FAIL")))
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
    )
    rows, pagination = paginate(q)

    users = {}
    user_ids = {r.user_id for r in rows if r.user_id}
    if user_ids:
        users = {u.id: u for u in User.query.filter(User.id.in_(user_ids)).all()}

    out = []
    for r in rows:
        meta = json.loads(r.metadata_json) if r.metadata_json else {}
        out.append({
            "id": r.id,
            "success": r.action == "LOGIN_SUCCESS",
            "provider": meta.get("provider"),
            "user": serialize_user(users.get(r.user_id), brief=True),
            "ip": r.ip,
            "userAgent": r.user_agent,
            "timestamp": r.timestamp.isoformat(),
        })
    return jsonify(success=True, logins=out, pagination=pagination), 200


@admin_bp.get("/audit-logs")
@require_roles("ADMIN")
def list_audit_logs():
    action = request.args.get("action")
    user_id = request.args.get("user_id", type=int)
    entity = request.args.get("entity")
    entity_id = request.args.get("entity_id")

    q = AuditLog.query
    if action:
        q = q.filter(AuditLog.action == action)
    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    if entity:
        q = q.filter(AuditLog.entity == entity)
    if entity_id:
        q = q.filter(AuditLog.entity_id == str(entity_id))

    rows, pagination = paginate(q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()))
    out = [
        {
            "id": r.id,
            "createdAt": r.timestamp.isoformat(),
            "userId": r.user_id,
            "action": r.action,
            "entity": r.entity,
            "entityId": r.entity_id,
            "ip": r.ip,
            "userAgent": r.user_agent,
            "metadata": json.loads(r.metadata_json) if r.metadata_json else None,
        }
        for r in rows
    ]
    return jsonify(success=True, logs=out, pagination=pagination), 200
