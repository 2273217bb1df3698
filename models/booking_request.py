from datetime import datetime
from models.db import db

REQUEST_STATUSES = (
    "pending",
    "approved",
    "rejected",
    "payment_pending",
    "paid",
    "completed",
    "cancelled",
)

class BookingRequest(db.Model):
    __tablename__ = "booking_requests"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    package_id = db.Column(db.String(80), nullable=True)
    package_title = db.Column(db.String(200), nullable=False)
    package_price = db.Column(db.Numeric(12, 2), nullable=False)
    guests = db.Column(db.Integer, nullable=False, default=1)
    check_in_date = db.Column(db.Date, nullable=False, index=True)
    check_out_date = db.Column(db.Date, nullable=False)
    note = db.Column(db.Text, nullable=True)

    # package_price * guests, fixed at creation
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    # admin response (approve/reject)
    admin_message = db.Column(db.String(500), nullable=True)
    responded_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    responded_at = db.Column(db.DateTime, nullable=True)

    # payment confirmation payload
    payment_amount = db.Column(db.Numeric(12, 2), nullable=True)
    payment_currency = db.Column(db.String(10), nullable=True)
    payment_id = db.Column(db.String(255), nullable=True)
    payment_method = db.Column(db.String(40), nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)

    # bumped on every write; a stale save raises StaleDataError
    version = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    owner = db.relationship("User", foreign_keys=[user_id])
    responder = db.relationship("User", foreign_keys=[responded_by])
    notifications = db.relationship(
        "RequestNotification",
        back_populates="request",
        order_by="RequestNotification.seq",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.CheckConstraint("guests >= 1", name="ck_booking_requests_guests_positive"),
        db.CheckConstraint("check_out_date > check_in_date", name="ck_booking_requests_date_order"),
    )
