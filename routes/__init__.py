from flask import Blueprint, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(ok=True, status="running"), 200


from .auth import auth_bp  # noqa: E402
from .requests import requests_bp  # noqa: E402
from .admin import admin_bp  # noqa: E402
from .purchases import purchases_bp  # noqa: E402
from .dashboard import dashboard_bp  # noqa: E402
from .stripe_webhook import webhook_bp  # noqa: E402
