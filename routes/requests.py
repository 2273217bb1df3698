from flask import Blueprint, request, jsonify, g

from models.booking_request import BookingRequest
from services.booking_lifecycle import BookingLifecycle
from services.request_store import RequestStore
from utils.audit import log_event
from utils.auth_context import login_required, current_identity
from utils.pagination import paginate
from utils.serializers import serialize_request

requests_bp = Blueprint("requests", __name__, url_prefix="/api/requests")


# ---------- USERS: submit a booking request ----------
@requests_bp.post("")
@requests_bp.post("/")
@login_required
def create_request():
    data = request.get_json(silent=True) or {}
    req = BookingLifecycle().create_request(current_identity(), data)

    log_event("REQUEST_CREATE", user_id=g.user.id, entity="booking_request", entity_id=req.id,
              metadata={"total_amount": str(req.total_amount)})
    return jsonify(
        success=True,
        message="Booking request submitted successfully",
        request=serialize_request(req),
    ), 201


# ---------- USERS: my requests ----------
@requests_bp.get("/mine")
@login_required
def my_requests():
    status = request.args.get("status")
    q = RequestStore().query(owner_id=g.user.id, status=status)
    rows, pagination = paginate(q.order_by(BookingRequest.created_at.desc()))
    return jsonify(
        success=True,
        requests=[serialize_request(r) for r in rows],
        pagination=pagination,
    ), 200


# ---------- USERS: unread notifications across all my requests ----------
@requests_bp.get("/notifications/unread")
@login_required
def unread_notifications():
    notifications = BookingLifecycle().unread_notifications(current_identity())
    return jsonify(success=True, notifications=notifications), 200


@requests_bp.get("/<int:request_id>")
@login_required
def get_request(request_id: int):
    req = BookingLifecycle().get_owned(current_identity(), request_id)
    return jsonify(success=True, request=serialize_request(req)), 200


# ---------- USERS: cancel (pending / approved / payment_pending only) ----------
@requests_bp.patch("/<int:request_id>/cancel")
@login_required
def cancel_request(request_id: int):
    req = BookingLifecycle().cancel(current_identity(), request_id)

    log_event("REQUEST_CANCEL", user_id=g.user.id, entity="booking_request", entity_id=req.id)
    return jsonify(success=True, message="Request cancelled successfully", request=serialize_request(req)), 200


@requests_bp.patch("/<int:request_id>/notifications/read")
@login_required
def mark_notifications_read(request_id: int):
    changed = BookingLifecycle().mark_notifications_read(current_identity(), request_id)
    if changed:
        log_event("NOTIFICATIONS_READ", user_id=g.user.id, entity="booking_request", entity_id=request_id,
                  metadata={"count": changed})
    return jsonify(success=True, message="Notifications marked as read", updated=changed), 200
