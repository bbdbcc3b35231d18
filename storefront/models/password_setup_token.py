"""Password setup token model.

Issued after a purchase (first access) and for password recovery.
Only the SHA-256 hash of the token is stored; the raw value lives in the
emailed link. Tokens expire 30 minutes after issue and can be used once.
"""

import uuid
from datetime import datetime, timezone

from storefront.extensions import db


class PasswordSetupToken(db.Model):
    __tablename__ = "password_setup_tokens"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True
    )
    token_hash = db.Column(
        db.String(64), unique=True, nullable=False
    )  # sha256 hex of the raw token
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    user = db.relationship("User", back_populates="setup_tokens")

    def is_expired(self, now=None):
        """Expired at or after expires_at (the boundary instant is expired)."""
        now = now or datetime.now(timezone.utc)
        expires = self.expires_at
        # SQLite returns naive datetimes; Postgres returns aware ones.
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return now >= expires

    @property
    def is_used(self):
        return self.used_at is not None

    def is_valid(self, now=None):
        return not self.is_used and not self.is_expired(now)

    def __repr__(self):
        return f"<PasswordSetupToken user={self.user_id} used={self.is_used}>"
