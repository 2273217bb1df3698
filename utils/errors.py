"""
Error taxonomy shared by the booking engine and the HTTP layer.

Every error carries a stable machine-checkable ``kind`` and the HTTP status
the API answers with. ``register_error_handlers`` renders them in the same
``{"error": ...}`` body the routes use for their inline checks.
"""
from flask import jsonify


class BookingError(Exception):
    kind = "error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class ValidationError(BookingError):
    kind = "validation_error"
    status_code = 400


class AuthorizationError(BookingError):
    kind = "forbidden"
    status_code = 403


class NotFoundError(BookingError):
    kind = "not_found"
    status_code = 404


class InvalidTransitionError(BookingError):
    kind = "invalid_transition"
    status_code = 409


class AmountMismatchError(InvalidTransitionError):
    """Submitted payment amount differs from the request total."""


class StorageError(BookingError):
    kind = "storage_error"
    status_code = 503


class ConflictError(StorageError):
    kind = "conflict"
    status_code = 409


def register_error_handlers(app):
    @app.errorhandler(BookingError)
    def _booking_error(exc: BookingError):
        return jsonify(exc.to_dict()), exc.status_code
