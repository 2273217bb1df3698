from datetime import datetime
from models.db import db

class RequestNotification(db.Model):
    __tablename__ = "request_notifications"

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(
        db.Integer,
        db.ForeignKey("booking_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # position within the parent request, starting at 1
    seq = db.Column(db.Integer, nullable=False)

    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    request = db.relationship("BookingRequest", back_populates="notifications")

    __table_args__ = (
        # Two writers appending to the same request collide here instead of losing a row
        db.UniqueConstraint("request_id", "seq", name="uq_request_notification_seq"),
    )
