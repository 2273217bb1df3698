from flask import current_app
from models import db
from models.user import User, Role
from security.password import hash_password

DEFAULT_ROLES = ["USER", "ADMIN"]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_admin():
    """Create (or promote) the bootstrap admin from ADMIN_EMAIL / ADMIN_PASSWORD."""
    email = (current_app.config.get("ADMIN_EMAIL") or "").strip().lower()
    password = current_app.config.get("ADMIN_PASSWORD")
    if not email or not password:
        current_app.logger.warning("ADMIN_EMAIL/ADMIN_PASSWORD not set; skipping admin seed")
        return None

    admin_role = Role.query.filter_by(name="ADMIN").first()
    user = User.query.filter_by(email=email).first()
    if user is None:
        user = User(
            email=email,
            name=current_app.config.get("ADMIN_NAME") or "Admin",
            password_hash=hash_password(password),
            provider="local",
        )
        db.session.add(user)
    if admin_role not in user.roles:
        user.roles.append(admin_role)
    db.session.commit()
    return user
