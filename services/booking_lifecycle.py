"""
Booking request lifecycle.

Owns the ``status`` of a booking request and the notifications appended as a
side effect of each transition:

    pending --respond(approved)--> payment_pending --confirm-payment--> paid
    pending --respond(rejected)--> rejected
    pending | approved | payment_pending --cancel--> cancelled
    any --set-status (admin)--> any

Guards are evaluated before the request is touched, so a rejected operation
leaves it unchanged. Each successful transition is persisted with one
``RequestStore.save``.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking_request import BookingRequest, REQUEST_STATUSES
from models.request_notification import RequestNotification
from services.request_store import RequestStore
from utils.errors import (
    AuthorizationError,
    AmountMismatchError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
)

CANCELLABLE_STATUSES = frozenset({"pending", "approved", "payment_pending"})

# admin decision -> resulting status
RESPOND_DECISIONS = {
    "approved": "payment_pending",
    "approve": "payment_pending",
    "rejected": "rejected",
    "reject": "rejected",
}

CENTS = Decimal("0.01")
# largest value a Numeric(12, 2) money column holds
MAX_AMOUNT = Decimal("9999999999.99")
MAX_GUESTS = 2 ** 31 - 1


def _parse_date(value, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")


def parse_money(value, field: str) -> Decimal:
    if value is None or value == "":
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} must not exceed {MAX_AMOUNT}")
    return amount


def _text(value, field: str, max_length: int = None) -> str:
    """Stripped string input; missing values become ""."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return value


def _parse_guests(value) -> int:
    if value is None or value == "":
        return 1
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError("guests must be a positive integer")
    try:
        guests = int(value)
    except (TypeError, ValueError):
        raise ValidationError("guests must be a positive integer")
    if guests < 1 or guests > MAX_GUESTS:
        raise ValidationError("guests must be a positive integer")
    return guests


class BookingLifecycle:
    def __init__(self, store: RequestStore = None):
        self.store = store or RequestStore()

    # ---------- lookups ----------

    def get_owned(self, identity, request_id):
        req = self.store.find_one(request_id, owner_id=identity.user_id)
        if req is None:
            raise NotFoundError("Request not found")
        return req

    def get_any(self, identity, request_id):
        self._require_admin(identity)
        req = self.store.find_one(request_id)
        if req is None:
            raise NotFoundError("Request not found")
        return req

    # ---------- user actions ----------

    def create_request(self, identity, data: dict, today: date = None):
        title = _text(data.get("packageTitle", data.get("package_title")), "packageTitle", 200)
        price = data.get("packagePrice", data.get("package_price"))
        check_in = data.get("checkInDate", data.get("check_in_date"))
        check_out = data.get("checkOutDate", data.get("check_out_date"))

        if not title or price in (None, "") or not check_in or not check_out:
            raise ValidationError("Package title, price, check-in and check-out dates are required")

        price = parse_money(price, "packagePrice").quantize(CENTS)
        if price <= 0:
            raise ValidationError("packagePrice must be a positive number")
        guests = _parse_guests(data.get("guests"))
        total = price * guests
        if total > MAX_AMOUNT:
            raise ValidationError(f"Total amount must not exceed {MAX_AMOUNT}")

        check_in = _parse_date(check_in, "checkInDate")
        check_out = _parse_date(check_out, "checkOutDate")
        today = today or date.today()
        if check_in < today:
            raise ValidationError("Check-in date cannot be in the past")
        if check_out <= check_in:
            raise ValidationError("Check-out date must be after check-in date")

        package_id = data.get("packageId", data.get("package_id"))
        note = _text(data.get("note"), "note") or None

        return self.store.create(
            user_id=identity.user_id,
            package_id=str(package_id) if package_id is not None else None,
            package_title=title,
            package_price=price,
            guests=guests,
            check_in_date=check_in,
            check_out_date=check_out,
            note=note,
            total_amount=total.quantize(CENTS),
            status="pending",
        )

    def cancel(self, identity, request_id):
        req = self.get_owned(identity, request_id)
        if req.status not in CANCELLABLE_STATUSES:
            raise InvalidTransitionError(f"Cannot cancel request in current status ({req.status})")

        with self.store.editing():
            req.status = "cancelled"
            self._notify(req, "You cancelled this booking request")
        return self.store.save(req)

    def confirm_payment(self, identity, request_id, amount, payment_id=None,
                        payment_method="card", currency=None):
        req = self.get_owned(identity, request_id)
        amount = parse_money(amount, "amount")

        if req.status != "payment_pending":
            raise InvalidTransitionError(f"Request is not awaiting payment ({req.status})")
        if amount != req.total_amount:
            raise AmountMismatchError("Payment amount mismatch")

        now = datetime.utcnow()
        with self.store.editing():
            req.status = "paid"
            req.payment_amount = amount
            req.payment_currency = currency or current_app.config.get("DEFAULT_CURRENCY", "USD")
            req.payment_id = payment_id
            req.payment_method = payment_method or "card"
            req.paid_at = now
            self._notify(req, f'Payment successful! Your booking for "{req.package_title}" is confirmed.', now)
        return self.store.save(req)

    def cancel_payment(self, identity, request_id, reason=None):
        # Status deliberately stays payment_pending; the user can still pay later.
        reason = _text(reason, "reason", 500)
        req = self.get_owned(identity, request_id)
        if req.status != "payment_pending":
            raise InvalidTransitionError(f"Payment is not pending for this request ({req.status})")

        with self.store.editing():
            self._notify(req, f'Payment cancelled for "{req.package_title}". {reason}'.strip())
        return self.store.save(req)

    # ---------- admin actions ----------

    def respond(self, identity, request_id, decision, message=None):
        self._require_admin(identity)
        decision = _text(decision, "status").lower()
        message = _text(message, "message", 500) or None
        if decision not in RESPOND_DECISIONS:
            raise ValidationError("Status must be 'approved' or 'rejected'")

        req = self.store.find_one(request_id)
        if req is None:
            raise NotFoundError("Request not found")
        if req.status != "pending":
            raise InvalidTransitionError("Can only respond to pending requests")

        approved = RESPOND_DECISIONS[decision] == "payment_pending"
        label = "approved" if approved else "rejected"
        now = datetime.utcnow()

        if approved:
            text = (f'Your booking request for "{req.package_title}" has been approved! '
                    "You can now proceed to payment.")
        else:
            text = f'Your booking request for "{req.package_title}" has been rejected. {message or ""}'.strip()

        with self.store.editing():
            req.status = RESPOND_DECISIONS[decision]
            req.admin_message = message or f"Request {label}"
            req.responded_by = identity.user_id
            req.responded_at = now
            self._notify(req, text, now)
        return self.store.save(req)

    def set_status(self, identity, request_id, status, note=None):
        """Unconstrained admin override; any known status is accepted from any state."""
        self._require_admin(identity)
        if status not in REQUEST_STATUSES:
            raise ValidationError("Invalid status")
        note = _text(note, "note")

        req = self.store.find_one(request_id)
        if req is None:
            raise NotFoundError("Request not found")

        with self.store.editing():
            req.status = status
            if note:
                self._notify(req, note)
            else:
                req.updated_at = datetime.utcnow()
        return self.store.save(req)

    def delete(self, identity, request_id):
        req = self.get_any(identity, request_id)
        self.store.delete(req)

    # ---------- notifications ----------

    def unread_notifications(self, identity):
        try:
            rows = (
                db.session.query(RequestNotification, BookingRequest)
                .join(BookingRequest, RequestNotification.request_id == BookingRequest.id)
                .filter(BookingRequest.user_id == identity.user_id, RequestNotification.read.is_(False))
                .order_by(RequestNotification.created_at.desc(), RequestNotification.id.desc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError("Booking store unavailable") from exc
        return [
            {
                "requestId": req.id,
                "packageTitle": req.package_title,
                "status": req.status,
                "message": n.message,
                "createdAt": n.created_at.isoformat(),
            }
            for n, req in rows
        ]

    def mark_notifications_read(self, identity, request_id) -> int:
        req = self.get_owned(identity, request_id)
        unread = [n for n in req.notifications if not n.read]
        if not unread:
            return 0
        with self.store.editing():
            for n in unread:
                n.read = True
            req.updated_at = datetime.utcnow()
        self.store.save(req)
        return len(unread)

    # ---------- helpers ----------

    @staticmethod
    def _require_admin(identity):
        if not identity.is_admin:
            raise AuthorizationError("Admin only")

    @staticmethod
    def _notify(req, message: str, now: datetime = None):
        now = now or datetime.utcnow()
        next_seq = max((n.seq for n in req.notifications), default=0) + 1
        req.notifications.append(RequestNotification(seq=next_seq, message=message, read=False, created_at=now))
        # touch the parent so the version check covers notification-only writes
        req.updated_at = now
