import secrets
from decimal import Decimal
from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import stripe
from flask import current_app

from utils.errors import InvalidTransitionError, StorageError


def _append_query(url: str, params: dict) -> str:
    if not url:
        return url
    parts = urlparse(url)
    query = dict(parse_qsl(parts.query))
    query.update({k: v for k, v in params.items() if v is not None})
    return urlunparse(parts._replace(query=urlencode(query)))


def to_minor_units(amount) -> int:
    # Stripe expects the smallest currency unit
    return int((Decimal(amount) * 100).to_integral_value())


def from_minor_units(value) -> Decimal:
    return (Decimal(int(value)) / 100).quantize(Decimal("0.01"))


def start_checkout(req, payment_method: str = "card") -> dict:
    """
    Open a payment session for a request awaiting payment.

    Uses Stripe Checkout when STRIPE_SECRET_KEY is configured; otherwise the
    session is simulated and the client confirms through /api/purchases/confirm.
    The request status is never changed here.
    """
    if req.status != "payment_pending":
        raise InvalidTransitionError(f"Request is not awaiting payment ({req.status})")

    currency = current_app.config.get("DEFAULT_CURRENCY", "USD")
    session = {
        "amount": float(req.total_amount),
        "currency": currency,
        "requestId": req.id,
        "paymentMethod": payment_method,
        "status": "pending",
    }

    api_key = current_app.config.get("STRIPE_SECRET_KEY")
    if not api_key:
        session["provider"] = "simulated"
        session["sessionId"] = f"pay_{secrets.token_hex(8)}"
        session["checkoutUrl"] = None
        return session

    success_url = current_app.config.get("STRIPE_SUCCESS_URL")
    cancel_url = current_app.config.get("STRIPE_CANCEL_URL")
    if not success_url or not cancel_url:
        raise StorageError("Stripe success/cancel URLs not configured")

    stripe.api_key = api_key
    try:
        checkout = stripe.checkout.Session.create(
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": currency.lower(),
                    "product_data": {"name": f"{req.package_title} ({req.guests} guest(s))"},
                    "unit_amount": to_minor_units(req.total_amount),
                },
                "quantity": 1,
            }],
            success_url=_append_query(success_url, {"request_id": str(req.id)}),
            cancel_url=_append_query(cancel_url, {"request_id": str(req.id)}),
            metadata={
                "request_id": str(req.id),
                "user_id": str(req.user_id),
            },
        )
    except stripe.StripeError as exc:
        raise StorageError("Payment provider unavailable") from exc

    session["provider"] = "stripe"
    session["sessionId"] = checkout["id"]
    session["checkoutUrl"] = checkout["url"]
    return session
