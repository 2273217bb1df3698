from datetime import datetime
from models.db import db

# association table for many-to-many User <-> Role
user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id"), primary_key=True),
)

class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    # null for accounts that only ever signed in through Google
    password_hash = db.Column(db.String(255), nullable=True)
    phone_number = db.Column(db.String(30), nullable=True)

    provider = db.Column(db.String(20), nullable=False, default="local")  # local, google
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    roles = db.relationship("Role", secondary=user_roles, back_populates="users")

    @property
    def role_names(self):
        return [r.name for r in self.roles]

    @property
    def is_admin(self) -> bool:
        return "ADMIN" in self.role_names

class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # USER, ADMIN

    users = db.relationship("User", secondary=user_roles, back_populates="roles")
