import stripe
from flask import Blueprint, request, jsonify, current_app

from models import db
from models.user import User
from services.booking_lifecycle import BookingLifecycle
from services.payments import from_minor_units
from utils.audit import log_event
from utils.auth_context import Identity
from utils.errors import BookingError, StorageError

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


def _confirm_from_checkout(session):
    meta = session.get("metadata", {}) or {}
    request_id = meta.get("request_id")
    user_id = meta.get("user_id")
    if not request_id or not user_id:
        return

    user = db.session.get(User, int(user_id))
    if user is None:
        return

    amount = from_minor_units(session.get("amount_total") or 0)
    try:
        BookingLifecycle().confirm_payment(
            Identity.for_user(user),
            int(request_id),
            amount,
            payment_id=session.get("payment_intent") or session.get("id"),
            payment_method="stripe_checkout",
            currency=(session.get("currency") or current_app.config.get("DEFAULT_CURRENCY", "USD")).upper(),
        )
    except StorageError:
        raise
    except BookingError as exc:
        # recorded and acknowledged; only storage failures are left for Stripe to retry
        log_event("PAYMENT_WEBHOOK_REJECTED", user_id=user.id, entity="booking_request", entity_id=request_id,
                  metadata={"kind": exc.kind, "error": exc.message, "stripe_session_id": session.get("id")})
        return

    log_event("PAYMENT_CONFIRMED", user_id=user.id, entity="booking_request", entity_id=request_id,
              metadata={"amount": str(amount), "stripe_session_id": session.get("id")})


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.data

    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, endpoint_secret)
    except (ValueError, stripe.SignatureVerificationError):
        return jsonify(error="Invalid webhook signature"), 400

    if event["type"] == "checkout.session.completed":
        _confirm_from_checkout(event["data"]["object"])

    return jsonify(received=True), 200
