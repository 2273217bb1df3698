from .db import db
from .user import User, Role, user_roles
from .audit_log import AuditLog
from .session import Session
from .booking_request import BookingRequest, REQUEST_STATUSES
from .request_notification import RequestNotification
