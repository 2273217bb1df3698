import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as travelbook.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "travelbook.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Create tables at startup instead of running migrations (dev/tests only)
    CREATE_TABLES_ON_STARTUP = os.getenv("CREATE_TABLES_ON_STARTUP", "false").lower() == "true"

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "travelbook_session"

    # 7 days session lifetime
    SESSION_LIFETIME_SECONDS = 7 * 24 * 60 * 60

    # Idle timeout: 2 hours
    IDLE_TIMEOUT_SECONDS = 2 * 60 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Password hashing / policy
    BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
    PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))

    # Bootstrap admin account (seeded at startup when both are set)
    ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
    ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")
    ADMIN_NAME = os.getenv("ADMIN_NAME", "Admin")

    # Listing
    DEFAULT_PAGE_SIZE = 10
    MAX_PAGE_SIZE = 100

    # Payments
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_SUCCESS_URL = os.getenv("STRIPE_SUCCESS_URL")
    STRIPE_CANCEL_URL = os.getenv("STRIPE_CANCEL_URL")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")

    # Google sign-in (Firebase service account JSON)
    FIREBASE_CREDENTIALS_FILE = os.getenv("FIREBASE_CREDENTIALS_FILE")

    # Front end origin(s), comma separated
    CLIENT_ORIGIN = os.getenv("CLIENT_ORIGIN", "http://localhost:5173")

    # Basic app settings
    DEBUG = False
