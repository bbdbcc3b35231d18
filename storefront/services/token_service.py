"""Password setup tokens: issue and consume.

Handles the lifecycle of the one-time links sent after a purchase and
for password recovery:
- issue: create a token for a user, store only its hash, return the raw value
- consume: check the token and set the user's password in one transaction

Issuing a token does not revoke earlier ones; each stays valid until it
is used or expires.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from urllib.parse import urlencode

from storefront.errors import TokenInvalid
from storefront.extensions import db
from storefront.models.audit import AuditEvent
from storefront.models.password_setup_token import PasswordSetupToken
from storefront.models.user import User

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24
DEFAULT_TTL_MINUTES = 30


def hash_token(raw_token):
    """One-way hash used as the lookup key for a raw token."""
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def issue_setup_token(user_id, ttl_minutes=DEFAULT_TTL_MINUTES, now=None):
    """Create a new setup token for ``user_id`` and return the raw value.

    The row is added to the current session and flushed; the caller owns
    the commit so the token lands together with whatever granted access.
    """
    now = now or datetime.now(timezone.utc)
    raw_token = secrets.token_hex(TOKEN_BYTES)
    token = PasswordSetupToken(
        user_id=user_id,
        token_hash=hash_token(raw_token),
        expires_at=now + timedelta(minutes=ttl_minutes),
    )
    db.session.add(token)
    db.session.flush()
    logger.info(f"Issued password setup token {token.id} for user {user_id}")
    return raw_token


def build_setup_url(base_url, raw_token):
    return f"{base_url.rstrip('/')}/definir-senha?{urlencode({'token': raw_token})}"


def find_valid_token(raw_token, now=None):
    """Return the PasswordSetupToken for ``raw_token`` if it is still usable."""
    if not raw_token:
        return None
    token = PasswordSetupToken.query.filter_by(
        token_hash=hash_token(raw_token)
    ).first()
    if token is None or not token.is_valid(now):
        return None
    return token


def consume_setup_token(raw_token, password_hash, now=None):
    """Set the user's password using a setup token.

    Marks the token used and updates the password in a single commit.
    The mark-used step is a conditional UPDATE, so of two concurrent
    requests with the same token only one changes a row; the other gets
    TokenInvalid and nothing it wrote is kept.

    Returns the User. Raises TokenInvalid for unknown, used or expired
    tokens without saying which.
    """
    now = now or datetime.now(timezone.utc)
    token = find_valid_token(raw_token, now)
    if token is None:
        raise TokenInvalid()

    claimed = (
        PasswordSetupToken.query
        .filter(
            PasswordSetupToken.id == token.id,
            PasswordSetupToken.used_at.is_(None),
            PasswordSetupToken.expires_at > now,
        )
        .update({"used_at": now}, synchronize_session=False)
    )
    if claimed != 1:
        db.session.rollback()
        raise TokenInvalid()

    user = db.session.get(User, token.user_id)
    user.password_hash = password_hash
    db.session.add(AuditEvent(
        actor_user_id=user.id,
        action="user.password_set",
        metadata_={"token_id": token.id},
    ))
    db.session.commit()

    logger.info(f"Password set for user {user.id} via setup token {token.id}")
    return user
