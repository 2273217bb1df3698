from flask import Blueprint, request, jsonify, g, current_app

from models.booking_request import BookingRequest
from services.booking_lifecycle import BookingLifecycle
from services.payments import start_checkout
from services.request_store import RequestStore
from utils.audit import log_event
from utils.auth_context import login_required, current_identity
from utils.errors import AmountMismatchError, NotFoundError
from utils.pagination import paginate
from utils.serializers import serialize_request

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")

PURCHASED_STATUSES = ("paid", "completed")


def _request_id(data):
    request_id = data.get("requestId") or data.get("request_id")
    try:
        return int(request_id)
    except (TypeError, ValueError):
        return None


# ---------- USERS: approved requests waiting for payment ----------
@purchases_bp.get("/pending")
@login_required
def pending_payments():
    rows = (
        RequestStore().query(owner_id=g.user.id, status="payment_pending")
        .order_by(BookingRequest.created_at.desc())
        .all()
    )
    return jsonify(success=True, requests=[serialize_request(r) for r in rows]), 200


@purchases_bp.post("/initiate")
@login_required
def initiate_payment():
    data = request.get_json(silent=True) or {}
    request_id = _request_id(data)
    if request_id is None:
        return jsonify(error="requestId required"), 400

    req = BookingLifecycle().get_owned(current_identity(), request_id)
    session = start_checkout(req, payment_method=data.get("paymentMethod") or "card")

    log_event("PAYMENT_SESSION_CREATED", user_id=g.user.id, entity="booking_request", entity_id=req.id,
              metadata={"session_id": session["sessionId"], "provider": session["provider"]})
    return jsonify(
        success=True,
        message="Payment session created",
        paymentSession=session,
        request=serialize_request(req),
    ), 200


@purchases_bp.post("/confirm")
@login_required
def confirm_payment():
    data = request.get_json(silent=True) or {}
    request_id = _request_id(data)
    if request_id is None:
        return jsonify(error="requestId required"), 400

    try:
        req = BookingLifecycle().confirm_payment(
            current_identity(),
            request_id,
            data.get("amount"),
            payment_id=data.get("paymentId") or data.get("sessionId"),
            payment_method=data.get("paymentMethod") or "card",
            currency=current_app.config.get("DEFAULT_CURRENCY", "USD"),
        )
    except AmountMismatchError:
        log_event("PAYMENT_FAILED_AMOUNT_MISMATCH", user_id=g.user.id, entity="booking_request",
                  entity_id=request_id, metadata={"amount": data.get("amount")})
        raise

    log_event("PAYMENT_CONFIRMED", user_id=g.user.id, entity="booking_request", entity_id=req.id,
              metadata={"amount": str(req.payment_amount), "payment_id": req.payment_id})
    return jsonify(success=True, message="Payment confirmed successfully", request=serialize_request(req)), 200


@purchases_bp.post("/cancel")
@login_required
def cancel_payment():
    data = request.get_json(silent=True) or {}
    request_id = _request_id(data)
    if request_id is None:
        return jsonify(error="requestId required"), 400

    req = BookingLifecycle().cancel_payment(current_identity(), request_id, data.get("reason"))

    log_event("PAYMENT_CANCELLED", user_id=g.user.id, entity="booking_request", entity_id=req.id,
              metadata={"reason": data.get("reason")})
    return jsonify(success=True, message="Payment cancelled", request=serialize_request(req)), 200


# ---------- USERS: purchase history ----------
@purchases_bp.get("/history")
@login_required
def purchase_history():
    status = request.args.get("status")
    if status and status not in PURCHASED_STATUSES:
        return jsonify(error="status must be paid or completed"), 400

    q = RequestStore().query(owner_id=g.user.id, status=status or PURCHASED_STATUSES)
    rows, pagination = paginate(q.order_by(BookingRequest.paid_at.desc(), BookingRequest.id.desc()))
    return jsonify(
        success=True,
        purchases=[serialize_request(r) for r in rows],
        pagination=pagination,
    ), 200


@purchases_bp.get("/<int:request_id>")
@login_required
def get_purchase(request_id: int):
    req = BookingLifecycle().get_owned(current_identity(), request_id)
    if req.status not in PURCHASED_STATUSES:
        raise NotFoundError("Purchase not found")
    return jsonify(success=True, purchase=serialize_request(req)), 200
