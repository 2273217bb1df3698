from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from models import db
from models.booking_request import BookingRequest
from utils.errors import ConflictError, StorageError


class RequestStore:
    """
    Document-store style access to booking requests.

    ``save`` is a single commit of the whole request (status, response and
    payment fields, appended notifications); it either lands completely or
    the session is rolled back and a StorageError is raised.
    """

    def __init__(self, session=None):
        self.session = session or db.session

    def query(self, owner_id=None, status=None):
        q = BookingRequest.query
        if owner_id is not None:
            q = q.filter(BookingRequest.user_id == owner_id)
        if status:
            if isinstance(status, str):
                q = q.filter(BookingRequest.status == status)
            else:
                q = q.filter(BookingRequest.status.in_(list(status)))
        return q

    def find(self, owner_id=None, status=None):
        try:
            return self.query(owner_id=owner_id, status=status).order_by(BookingRequest.created_at.desc()).all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Booking store unavailable") from exc

    def find_one(self, request_id, owner_id=None):
        try:
            req = self.session.get(BookingRequest, request_id)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError("Booking store unavailable") from exc
        if req is None:
            return None
        if owner_id is not None and req.user_id != owner_id:
            return None
        return req

    def create(self, **fields) -> BookingRequest:
        req = BookingRequest(**fields)
        self.session.add(req)
        self._commit()
        return req

    def save(self, req: BookingRequest) -> BookingRequest:
        self._commit()
        return req

    @contextmanager
    def editing(self):
        """
        Scope for in-memory edits to a loaded request.

        Autoflush is off inside, so lazy loads (notifications) never push a
        half-applied transition; the first write to the database is the
        commit in ``save``.
        """
        try:
            with self.session.no_autoflush:
                yield
        except SQLAlchemyError as exc:
            self._raise_for(exc)

    def delete(self, req: BookingRequest):
        self.session.delete(req)
        self._commit()

    def _commit(self):
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self._raise_for(exc)

    def _raise_for(self, exc):
        self.session.rollback()
        if isinstance(exc, (StaleDataError, IntegrityError)):
            raise ConflictError("Request was modified concurrently, reload and retry") from exc
        raise StorageError("Could not save booking request") from exc
