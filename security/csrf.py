import secrets
from flask import g, request, jsonify, current_app

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"
STATE_CHANGING_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def issue_csrf_token(resp):
    """Double-submit token: readable cookie the SPA echoes back in X-CSRF-Token."""
    resp.set_cookie(
        CSRF_COOKIE,
        secrets.token_urlsafe(32),
        httponly=False,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
    )
    return resp


def clear_csrf_token(resp):
    resp.delete_cookie(CSRF_COOKIE, path="/")
    return resp


def csrf_failure(exempt_paths=()):
    """
    Check the current request; returns an error response or None.

    Only cookie-authenticated, state-changing requests are checked. Login,
    registration and the Stripe webhook carry no session yet and are exempt.
    """
    if request.method not in STATE_CHANGING_METHODS or request.path in exempt_paths:
        return None
    if getattr(g, "user", None) is None:
        return None

    cookie_token = request.cookies.get(CSRF_COOKIE)
    header_token = request.headers.get(CSRF_HEADER)
    if not cookie_token or not header_token or not secrets.compare_digest(cookie_token, header_token):
        return jsonify(error="CSRF validation failed"), 403
    return None
