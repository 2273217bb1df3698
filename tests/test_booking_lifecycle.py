from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text

from conftest import request_payload
from models import db
from models.booking_request import BookingRequest
from models.request_notification import RequestNotification
from services.booking_lifecycle import BookingLifecycle
from utils.errors import (
    AmountMismatchError,
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def lifecycle(app_ctx):
    return BookingLifecycle()


@pytest.fixture
def pending(lifecycle, traveller):
    return lifecycle.create_request(traveller, request_payload())


@pytest.fixture
def awaiting_payment(lifecycle, admin, traveller, pending):
    return lifecycle.respond(admin, pending.id, "approved")


def _force_status(lifecycle, admin, req, status):
    return lifecycle.set_status(admin, req.id, status)


# ---------- create ----------

def test_total_amount_is_price_times_guests(lifecycle, traveller):
    req = lifecycle.create_request(traveller, request_payload(packagePrice="149.50", guests=3))

    assert req.status == "pending"
    assert req.total_amount == Decimal("448.50")
    assert req.user_id == traveller.user_id
    assert req.notifications == []


def test_guests_default_to_one(lifecycle, traveller):
    payload = request_payload()
    del payload["guests"]

    req = lifecycle.create_request(traveller, payload)

    assert req.guests == 1
    assert req.total_amount == Decimal("200")


def test_check_in_today_is_allowed(lifecycle, traveller):
    today = date.today()
    req = lifecycle.create_request(
        traveller,
        request_payload(checkInDate=today.isoformat(), checkOutDate=(today + timedelta(days=1)).isoformat()),
    )
    assert req.check_in_date == today


@pytest.mark.parametrize("overrides, message", [
    ({"checkInDate": (date.today() - timedelta(days=1)).isoformat()}, "Check-in date cannot be in the past"),
    ({"checkOutDate": (date.today() + timedelta(days=10)).isoformat()}, "Check-out date must be after check-in date"),
    ({"checkOutDate": (date.today() + timedelta(days=3)).isoformat()}, "Check-out date must be after check-in date"),
    ({"packageTitle": ""}, "required"),
    ({"packagePrice": None}, "required"),
    ({"packagePrice": -5}, "positive"),
    ({"packagePrice": "abc"}, "must be a number"),
    ({"guests": 0}, "guests"),
    ({"guests": 1.5}, "guests"),
    ({"checkInDate": "next tuesday"}, "ISO date"),
    ({"packagePrice": "1e30"}, "must not exceed"),
    ({"packagePrice": "12345678901234567.89"}, "must not exceed"),
    ({"packagePrice": "9999999999.99", "guests": 2}, "Total amount must not exceed"),
    ({"guests": 10 ** 12}, "guests"),
    ({"packageTitle": 123}, "packageTitle must be a string"),
    ({"packageTitle": "x" * 201}, "at most 200"),
    ({"note": ["sea", "view"]}, "note must be a string"),
])
def test_invalid_create_fails_and_persists_nothing(lifecycle, traveller, overrides, message):
    with pytest.raises(ValidationError, match=message):
        lifecycle.create_request(traveller, request_payload(**overrides))

    assert BookingRequest.query.count() == 0


# ---------- admin respond ----------

def test_approve_moves_to_payment_pending_with_one_notification(lifecycle, admin, pending):
    req = lifecycle.respond(admin, pending.id, "approved")

    assert req.status == "payment_pending"
    assert req.admin_message == "Request approved"
    assert req.responded_by == admin.user_id
    assert req.responded_at is not None
    assert len(req.notifications) == 1
    assert "has been approved" in req.notifications[0].message
    assert req.notifications[0].read is False


def test_reject_keeps_admin_message(lifecycle, admin, pending):
    req = lifecycle.respond(admin, pending.id, "reject", "Fully booked that week")

    assert req.status == "rejected"
    assert req.admin_message == "Fully booked that week"
    assert len(req.notifications) == 1
    assert req.notifications[0].message.endswith("has been rejected. Fully booked that week")


@pytest.mark.parametrize("status", ["approved", "rejected", "payment_pending", "paid", "completed", "cancelled"])
def test_respond_only_from_pending(lifecycle, admin, pending, status):
    _force_status(lifecycle, admin, pending, status)
    before = len(pending.notifications)

    with pytest.raises(InvalidTransitionError):
        lifecycle.respond(admin, pending.id, "approved")

    db.session.expire_all()
    req = db.session.get(BookingRequest, pending.id)
    assert req.status == status
    assert len(req.notifications) == before


def test_respond_rejects_unknown_decision(lifecycle, admin, pending):
    with pytest.raises(ValidationError):
        lifecycle.respond(admin, pending.id, "maybe")
    assert pending.status == "pending"


def test_respond_requires_admin(lifecycle, traveller, pending):
    with pytest.raises(AuthorizationError):
        lifecycle.respond(traveller, pending.id, "approved")


def test_respond_unknown_request(lifecycle, admin):
    with pytest.raises(NotFoundError):
        lifecycle.respond(admin, 9999, "approved")


# ---------- admin set-status ----------

def test_set_status_accepts_any_known_status_even_from_terminal(lifecycle, admin, pending):
    lifecycle.set_status(admin, pending.id, "cancelled")
    req = lifecycle.set_status(admin, pending.id, "pending")

    assert req.status == "pending"
    assert req.notifications == []


def test_set_status_with_note_appends_notification(lifecycle, admin, pending):
    req = lifecycle.set_status(admin, pending.id, "completed", note="Hope you enjoyed the trip")

    assert req.status == "completed"
    assert [n.message for n in req.notifications] == ["Hope you enjoyed the trip"]


def test_set_status_rejects_unknown_status(lifecycle, admin, pending):
    with pytest.raises(ValidationError):
        lifecycle.set_status(admin, pending.id, "archived")


# ---------- payment ----------

def test_confirm_payment_with_exact_amount(lifecycle, traveller, awaiting_payment):
    req = lifecycle.confirm_payment(traveller, awaiting_payment.id, 400, payment_id="pay_123")

    assert req.status == "paid"
    assert req.payment_amount == Decimal("400")
    assert req.payment_currency == "USD"
    assert req.payment_id == "pay_123"
    assert req.payment_method == "card"
    assert req.paid_at is not None
    assert len(req.notifications) == 2
    assert req.notifications[-1].message.startswith("Payment successful!")


@pytest.mark.parametrize("amount", [399.99, 400.01, "400.001", "200", 0])
def test_confirm_payment_amount_mismatch_keeps_payment_pending(lifecycle, traveller, awaiting_payment, amount):
    with pytest.raises(AmountMismatchError) as exc_info:
        lifecycle.confirm_payment(traveller, awaiting_payment.id, amount)

    assert isinstance(exc_info.value, InvalidTransitionError)
    db.session.expire_all()
    req = db.session.get(BookingRequest, awaiting_payment.id)
    assert req.status == "payment_pending"
    assert req.paid_at is None
    assert len(req.notifications) == 1


def test_confirm_payment_requires_payment_pending(lifecycle, traveller, pending):
    with pytest.raises(InvalidTransitionError):
        lifecycle.confirm_payment(traveller, pending.id, 400)
    assert pending.status == "pending"


def test_confirm_payment_requires_amount(lifecycle, traveller, awaiting_payment):
    with pytest.raises(ValidationError):
        lifecycle.confirm_payment(traveller, awaiting_payment.id, None)


def test_cancel_payment_keeps_status_and_notifies(lifecycle, traveller, awaiting_payment):
    req = lifecycle.cancel_payment(traveller, awaiting_payment.id, "Changed my mind")

    assert req.status == "payment_pending"
    assert req.notifications[-1].message == 'Payment cancelled for "Bali Getaway". Changed my mind'


def test_cancel_payment_outside_payment_pending(lifecycle, traveller, pending):
    with pytest.raises(InvalidTransitionError):
        lifecycle.cancel_payment(traveller, pending.id)


# ---------- user cancel ----------

@pytest.mark.parametrize("status", ["pending", "approved", "payment_pending"])
def test_cancel_allowed_states(lifecycle, admin, traveller, pending, status):
    _force_status(lifecycle, admin, pending, status)

    req = lifecycle.cancel(traveller, pending.id)

    assert req.status == "cancelled"
    assert req.notifications[-1].message == "You cancelled this booking request"


@pytest.mark.parametrize("status", ["rejected", "paid", "completed", "cancelled"])
def test_cancel_forbidden_states(lifecycle, admin, traveller, pending, status):
    _force_status(lifecycle, admin, pending, status)

    with pytest.raises(InvalidTransitionError):
        lifecycle.cancel(traveller, pending.id)

    db.session.expire_all()
    req = db.session.get(BookingRequest, pending.id)
    assert req.status == status
    assert req.notifications == []


def test_other_users_cannot_touch_request(lifecycle, stranger, pending):
    with pytest.raises(NotFoundError):
        lifecycle.get_owned(stranger, pending.id)
    with pytest.raises(NotFoundError):
        lifecycle.cancel(stranger, pending.id)
    with pytest.raises(NotFoundError):
        lifecycle.mark_notifications_read(stranger, pending.id)


# ---------- notifications ----------

def test_unread_notifications_newest_first_across_requests(lifecycle, admin, traveller, stranger):
    first = lifecycle.create_request(traveller, request_payload(packageTitle="Alps Ski Week"))
    second = lifecycle.create_request(traveller, request_payload(packageTitle="Nile Cruise"))
    theirs = lifecycle.create_request(stranger, request_payload(packageTitle="Not Mine"))

    lifecycle.respond(admin, first.id, "approved")
    lifecycle.respond(admin, second.id, "rejected", "No cabins left")
    lifecycle.respond(admin, theirs.id, "approved")

    unread = lifecycle.unread_notifications(traveller)

    assert [n["packageTitle"] for n in unread] == ["Nile Cruise", "Alps Ski Week"]
    assert unread[0]["requestId"] == second.id
    assert unread[0]["status"] == "rejected"
    assert unread[1]["status"] == "payment_pending"


def test_mark_read_is_idempotent(lifecycle, traveller, awaiting_payment):
    lifecycle.cancel_payment(traveller, awaiting_payment.id)

    assert lifecycle.mark_notifications_read(traveller, awaiting_payment.id) == 2
    version = awaiting_payment.version

    assert lifecycle.mark_notifications_read(traveller, awaiting_payment.id) == 0
    assert awaiting_payment.version == version
    assert lifecycle.unread_notifications(traveller) == []
    assert all(n.read for n in awaiting_payment.notifications)


def test_notifications_are_numbered_per_request(lifecycle, traveller, awaiting_payment):
    lifecycle.cancel_payment(traveller, awaiting_payment.id, "later")
    lifecycle.cancel(traveller, awaiting_payment.id)

    assert [n.seq for n in awaiting_payment.notifications] == [1, 2, 3]


# ---------- delete / concurrency ----------

def test_admin_delete_removes_request_and_notifications(lifecycle, admin, awaiting_payment):
    lifecycle.delete(admin, awaiting_payment.id)

    assert BookingRequest.query.count() == 0
    assert RequestNotification.query.count() == 0


def test_stale_write_is_rejected(lifecycle, traveller, pending):
    req = lifecycle.get_owned(traveller, pending.id)
    assert req.status == "pending"

    # another writer saved the request after we loaded it
    _bump_version(req.id)

    with pytest.raises(ConflictError):
        lifecycle.cancel(traveller, req.id)

    assert db.session.get(BookingRequest, req.id).status == "pending"


# ---------- end to end ----------

def test_request_to_paid_scenario(lifecycle, admin, traveller):
    req = lifecycle.create_request(traveller, request_payload(packagePrice=200, guests=2))
    assert req.total_amount == Decimal("400")

    req = lifecycle.respond(admin, req.id, "approved")
    assert req.status == "payment_pending"

    req = lifecycle.confirm_payment(traveller, req.id, 400)
    assert req.status == "paid"
    assert req.payment_amount == Decimal("400")


# ---------- input bounds ----------

def test_largest_storable_price_can_be_paid_exactly(lifecycle, admin, traveller):
    req = lifecycle.create_request(traveller, request_payload(packagePrice="9999999999.99", guests=1))
    lifecycle.respond(admin, req.id, "approved")

    req = lifecycle.confirm_payment(traveller, req.id, "9999999999.99")

    assert req.status == "paid"
    assert req.payment_amount == Decimal("9999999999.99")


@pytest.mark.parametrize("amount", ["1e30", "12345678901234567.89", "NaN", [400]])
def test_confirm_payment_rejects_unusable_amounts(lifecycle, traveller, awaiting_payment, amount):
    with pytest.raises(ValidationError):
        lifecycle.confirm_payment(traveller, awaiting_payment.id, amount)

    assert awaiting_payment.status == "payment_pending"


@pytest.mark.parametrize("call", [
    lambda lc, admin, user, rid: lc.cancel_payment(user, rid, reason=5),
    lambda lc, admin, user, rid: lc.cancel_payment(user, rid, reason="x" * 501),
    lambda lc, admin, user, rid: lc.set_status(admin, rid, "completed", note={"text": "hi"}),
    lambda lc, admin, user, rid: lc.respond(admin, rid, 1),
    lambda lc, admin, user, rid: lc.respond(admin, rid, "approved", message=5),
], ids=["reason-int", "reason-too-long", "note-dict", "decision-int", "message-int"])
def test_non_text_inputs_are_validation_errors(lifecycle, admin, traveller, awaiting_payment, call):
    with pytest.raises(ValidationError):
        call(lifecycle, admin, traveller, awaiting_payment.id)

    db.session.expire_all()
    req = db.session.get(BookingRequest, awaiting_payment.id)
    assert req.status == "payment_pending"
    assert len(req.notifications) == 1


# ---------- concurrent writers ----------

def _bump_version(request_id):
    db.session.execute(
        text("UPDATE booking_requests SET version = version + 1 WHERE id = :id"),
        {"id": request_id},
    )


@pytest.mark.parametrize("call", [
    lambda lc, admin, user, rid: lc.confirm_payment(user, rid, 400),
    lambda lc, admin, user, rid: lc.cancel_payment(user, rid, "later"),
    lambda lc, admin, user, rid: lc.cancel(user, rid),
    lambda lc, admin, user, rid: lc.set_status(admin, rid, "completed", note="done"),
    lambda lc, admin, user, rid: lc.mark_notifications_read(user, rid),
], ids=["confirm-payment", "cancel-payment", "cancel", "set-status", "mark-read"])
def test_stale_transition_is_a_conflict_and_rolls_back(lifecycle, admin, traveller, awaiting_payment, call):
    request_id = awaiting_payment.id
    assert awaiting_payment.status == "payment_pending"  # loaded before the other writer commits
    _bump_version(request_id)

    with pytest.raises(ConflictError):
        call(lifecycle, admin, traveller, request_id)

    req = db.session.get(BookingRequest, request_id)
    assert req.status == "payment_pending"
    assert [n.read for n in req.notifications] == [False]

    # the session was rolled back, so a fresh attempt goes through
    assert lifecycle.cancel(traveller, request_id).status == "cancelled"


def test_stale_respond_is_a_conflict(lifecycle, admin, pending):
    assert pending.status == "pending"
    _bump_version(pending.id)

    with pytest.raises(ConflictError):
        lifecycle.respond(admin, pending.id, "approved")

    req = db.session.get(BookingRequest, pending.id)
    assert req.status == "pending"
    assert req.notifications == []
