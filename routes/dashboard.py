from datetime import date

from flask import Blueprint, request, jsonify, g
from sqlalchemy import func

from models import db
from models.booking_request import BookingRequest, REQUEST_STATUSES
from models.request_notification import RequestNotification
from services.request_store import RequestStore
from utils.auth_context import login_required
from utils.pagination import paginate
from utils.serializers import serialize_request, serialize_user

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _unread_count(user_id: int) -> int:
    return (
        db.session.query(func.count(RequestNotification.id))
        .join(BookingRequest, RequestNotification.request_id == BookingRequest.id)
        .filter(BookingRequest.user_id == user_id, RequestNotification.read.is_(False))
        .scalar()
    ) or 0


@dashboard_bp.get("/overview")
@login_required
def overview():
    user_id = g.user.id

    stats = {status: 0 for status in REQUEST_STATUSES}
    rows = (
        db.session.query(BookingRequest.status, func.count(BookingRequest.id))
        .filter(BookingRequest.user_id == user_id)
        .group_by(BookingRequest.status)
        .all()
    )
    for status, count in rows:
        stats[status] = count

    recent = (
        BookingRequest.query
        .filter_by(user_id=user_id)
        .order_by(BookingRequest.updated_at.desc(), BookingRequest.id.desc())
        .limit(5)
        .all()
    )
    upcoming = (
        RequestStore().query(owner_id=user_id, status=("paid", "completed"))
        .filter(BookingRequest.check_in_date >= date.today())
        .order_by(BookingRequest.check_in_date.asc())
        .limit(3)
        .all()
    )

    return jsonify(
        success=True,
        dashboard={
            "stats": stats,
            "recentRequests": [
                {
                    "id": r.id,
                    "packageTitle": r.package_title,
                    "status": r.status,
                    "totalAmount": float(r.total_amount),
                    "createdAt": r.created_at.isoformat(),
                    "updatedAt": r.updated_at.isoformat(),
                }
                for r in recent
            ],
            "upcomingBookings": [serialize_request(r) for r in upcoming],
            "unreadNotifications": _unread_count(user_id),
        },
    ), 200


@dashboard_bp.get("/bookings")
@login_required
def bookings():
    raw = request.args.get("status") or "paid,completed"
    statuses = [s.strip() for s in raw.split(",") if s.strip()]
    unknown = [s for s in statuses if s not in REQUEST_STATUSES]
    if unknown:
        return jsonify(error="Unknown status", unknown=unknown), 400

    q = RequestStore().query(owner_id=g.user.id, status=statuses)
    rows, pagination = paginate(q.order_by(BookingRequest.check_in_date.desc(), BookingRequest.id.desc()))
    return jsonify(
        success=True,
        bookings=[serialize_request(r) for r in rows],
        pagination=pagination,
    ), 200


@dashboard_bp.get("/pending-requests")
@login_required
def pending_requests():
    rows = (
        RequestStore().query(owner_id=g.user.id, status=("pending", "payment_pending"))
        .order_by(BookingRequest.created_at.desc())
        .all()
    )
    return jsonify(success=True, requests=[serialize_request(r) for r in rows]), 200


@dashboard_bp.get("/profile")
@login_required
def profile():
    user_id = g.user.id
    total = BookingRequest.query.filter_by(user_id=user_id).count()
    completed = BookingRequest.query.filter_by(user_id=user_id, status="completed").count()
    spent = (
        db.session.query(func.coalesce(func.sum(BookingRequest.payment_amount), 0))
        .filter(BookingRequest.user_id == user_id, BookingRequest.status.in_(("paid", "completed")))
        .scalar()
    )

    return jsonify(
        success=True,
        profile={
            "user": serialize_user(g.user),
            "bookingStats": {
                "total": total,
                "completed": completed,
                "totalSpent": float(spent or 0),
            },
        },
    ), 200
