from datetime import datetime
from models.db import db


class AuditLog(db.Model):
    """Append-only trail of auth, booking and payment events."""
    __tablename__ = "audit_logs"
    __table_args__ = (
        # per-request history in /api/admin/audit-logs
        db.Index("ix_audit_logs_entity", "entity", "entity_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)  # null for anonymous events (failed logins)
    action = db.Column(db.String(80), nullable=False, index=True)  # LOGIN_SUCCESS, REQUEST_RESPOND, ...
    entity = db.Column(db.String(80), nullable=True)  # booking_request, user
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
