import click
from flask import Flask, request, g

from config import Config
from models import db
from models.user import User, Role
from flask_migrate import Migrate
from routes import (
    health_bp,
    auth_bp,
    requests_bp,
    admin_bp,
    purchases_bp,
    dashboard_bp,
    webhook_bp,
)
from utils.seed import seed_roles, seed_admin
from utils.auth_context import load_current_user
from utils.errors import register_error_handlers
from security.csrf import csrf_failure


CSRF_EXEMPT_PATHS = {
    "/auth/login",
    "/auth/register",
    "/auth/google",
    "/health",
    "/webhooks/stripe",
}


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(requests_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(webhook_bp)

    register_error_handlers(app)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles and the bootstrap admin at startup (idempotent)
    with app.app_context():
        if app.config.get("CREATE_TABLES_ON_STARTUP"):
            db.create_all()
        seed_roles()
        seed_admin()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        return csrf_failure(CSRF_EXEMPT_PATHS)

    @app.after_request
    def add_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"

        # CORS for the SPA front end (cookie credentials included)
        origin = request.headers.get("Origin")
        allowed = [o.strip() for o in (app.config.get("CLIENT_ORIGIN") or "").split(",") if o.strip()]
        if origin and origin in allowed:
            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Access-Control-Allow-Credentials"] = "true"
            resp.headers["Access-Control-Allow-Headers"] = "Content-Type, X-CSRF-Token"
            resp.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            resp.headers["Vary"] = "Origin"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5000)
