"""
Shared fixtures: an app on in-memory SQLite, logged-in API clients that carry
the CSRF header, and helpers to create users and booking requests.
"""
from datetime import date, timedelta

import pytest

from app import create_app
from config import Config
from models import db
from models.user import User, Role
from utils.auth_context import Identity

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-123"
USER_PASSWORD = "traveller-pass-1"


class TestingConfig(Config):
    __test__ = False

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    CREATE_TABLES_ON_STARTUP = True
    BCRYPT_ROUNDS = 4
    ADMIN_EMAIL = ADMIN_EMAIL
    ADMIN_PASSWORD = ADMIN_PASSWORD
    ADMIN_NAME = "Admin"
    DEFAULT_CURRENCY = "USD"
    STRIPE_SECRET_KEY = None
    STRIPE_SUCCESS_URL = None
    STRIPE_CANCEL_URL = None
    STRIPE_WEBHOOK_SECRET = "whsec_test"
    FIREBASE_CREDENTIALS_FILE = None


def future(days=7):
    return (date.today() + timedelta(days=days)).isoformat()


def request_payload(**overrides):
    payload = {
        "packageId": "bali-7d",
        "packageTitle": "Bali Getaway",
        "packagePrice": 200,
        "guests": 2,
        "checkInDate": future(10),
        "checkOutDate": future(15),
        "note": "Sea view please",
    }
    payload.update(overrides)
    return payload


class ApiClient:
    """Test client wrapper that echoes the CSRF cookie on state-changing calls."""

    def __init__(self, client):
        self.client = client

    def _headers(self):
        cookie = self.client.get_cookie("csrf_token")
        return {"X-CSRF-Token": cookie.value} if cookie else {}

    def get(self, url, **kwargs):
        return self.client.get(url, **kwargs)

    def post(self, url, **kwargs):
        return self.client.post(url, headers=self._headers(), **kwargs)

    def patch(self, url, **kwargs):
        return self.client.patch(url, headers=self._headers(), **kwargs)

    def put(self, url, **kwargs):
        return self.client.put(url, headers=self._headers(), **kwargs)

    def delete(self, url, **kwargs):
        return self.client.delete(url, headers=self._headers(), **kwargs)

    # booking helpers
    def create_request(self, **overrides):
        resp = self.post("/api/requests", json=request_payload(**overrides))
        assert resp.status_code == 201, resp.get_json()
        return resp.get_json()["request"]


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def login(app, email, password):
    api = ApiClient(app.test_client())
    resp = api.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.get_json()
    return api


def register(app, email, name="Traveller"):
    api = ApiClient(app.test_client())
    resp = api.post("/auth/register", json={"name": name, "email": email, "password": USER_PASSWORD})
    assert resp.status_code == 201, resp.get_json()
    return api


@pytest.fixture
def user_api(app):
    return register(app, "traveller@example.com")


@pytest.fixture
def other_api(app):
    return register(app, "someone-else@example.com", name="Someone Else")


@pytest.fixture
def admin_api(app):
    return login(app, ADMIN_EMAIL, ADMIN_PASSWORD)


@pytest.fixture
def approved_request(user_api, admin_api):
    req = user_api.create_request()
    resp = admin_api.patch(f"/api/admin/requests/{req['id']}/respond", json={"status": "approved"})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()["request"]


# ---------- engine-level fixtures (no HTTP) ----------

@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


def make_identity(email, admin=False) -> Identity:
    user = User(email=email, name=email.split("@")[0], provider="local")
    role = Role.query.filter_by(name="ADMIN" if admin else "USER").first()
    user.roles.append(role)
    db.session.add(user)
    db.session.commit()
    return Identity.for_user(user)


@pytest.fixture
def traveller(app_ctx):
    return make_identity("engine-traveller@example.com")


@pytest.fixture
def stranger(app_ctx):
    return make_identity("engine-stranger@example.com")


@pytest.fixture
def admin(app_ctx):
    return make_identity("engine-admin@example.com", admin=True)
