"""User model.

Created by the Cakto webhook on the first purchase for an unseen email.
password_hash stays NULL until the member completes the password setup
link ("pending first access"). Flask-Login integration via UserMixin.
"""

import uuid

from flask_login import UserMixin

from storefront.extensions import db


class User(UserMixin, db.Model):
    __tablename__ = "users"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email = db.Column(
        db.String(255), unique=True, nullable=False
    )  # always stored trimmed + lowercased
    name = db.Column(db.String(255))
    password_hash = db.Column(db.String(255), nullable=True)
    is_admin = db.Column(db.Boolean, default=False)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    purchases = db.relationship(
        "Purchase", back_populates="user", lazy="dynamic"
    )
    setup_tokens = db.relationship(
        "PasswordSetupToken", back_populates="user", lazy="dynamic"
    )
    audit_events = db.relationship(
        "AuditEvent", back_populates="actor", lazy="dynamic"
    )

    @property
    def is_pending_first_access(self):
        """True until the member sets a password through a setup link."""
        return self.password_hash is None

    @staticmethod
    def normalize_email(email):
        return (email or "").strip().lower()

    def __repr__(self):
        return f"<User {self.email}>"
