"""
Identity providers.

Local email/password accounts and Google (Firebase) accounts are resolved
through the same interface once, at login. Whatever provider authenticated
the user, the rest of the app only ever sees the server-side session cookie
issued afterwards.
"""
import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from flask import current_app

from models import db
from models.user import User, Role
from security.password import verify_password


class AuthenticationFailed(Exception):
    pass


class IdentityProvider:
    name = "base"

    def authenticate(self, payload: dict) -> User:
        raise NotImplementedError


class PasswordIdentityProvider(IdentityProvider):
    name = "local"

    def authenticate(self, payload: dict) -> User:
        email = (payload.get("email") or "").strip().lower()
        password = payload.get("password") or ""

        user = User.query.filter_by(email=email).first()
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationFailed("Invalid credentials")
        return user


def _firebase_app():
    try:
        return firebase_admin.get_app()
    except ValueError:
        cred_file = current_app.config.get("FIREBASE_CREDENTIALS_FILE")
        cred = credentials.Certificate(cred_file) if cred_file else None
        return firebase_admin.initialize_app(cred)


class FirebaseIdentityProvider(IdentityProvider):
    name = "google"

    def verify(self, id_token: str) -> dict:
        return firebase_auth.verify_id_token(id_token, app=_firebase_app())

    def authenticate(self, payload: dict) -> User:
        id_token = payload.get("idToken") or payload.get("id_token")
        if not id_token:
            raise AuthenticationFailed("idToken required")

        try:
            claims = self.verify(id_token)
        except (ValueError, firebase_auth.InvalidIdTokenError,
                firebase_auth.ExpiredIdTokenError, firebase_auth.RevokedIdTokenError) as exc:
            raise AuthenticationFailed("Invalid Google token") from exc

        email = (claims.get("email") or "").strip().lower()
        if not email:
            raise AuthenticationFailed("Google account has no email")

        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(email=email, name=claims.get("name"), provider="google")
            db.session.add(user)
            db.session.flush()
            user_role = Role.query.filter_by(name="USER").first()
            if user_role:
                user.roles.append(user_role)
            db.session.commit()
        return user


PROVIDERS = {
    PasswordIdentityProvider.name: PasswordIdentityProvider,
    FirebaseIdentityProvider.name: FirebaseIdentityProvider,
}


def get_provider(name: str) -> IdentityProvider:
    return PROVIDERS[name]()
