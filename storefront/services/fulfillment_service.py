"""Fulfillment service: Cakto webhook processing.

Responsible for:
- Checking the shared webhook secret
- Recording each event in webhook_events (idempotency gate)
- Dispatching to event-specific handlers
- Granting access on purchase_approved and revoking it on refund/chargeback
- Sending the access email after the grant is committed

Everything up to and including the password setup token commits in one
transaction. If any step fails the event row rolls back with it, so
Cakto's own retry reprocesses the event from scratch.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError

from storefront.extensions import db
from storefront.models.webhook_event import WebhookEvent
from storefront.services.catalog_service import ensure_product
from storefront.services.email_service import send_access_granted_email
from storefront.services.purchase_service import (
    REVOKING_EVENTS,
    log_audit,
    revoke_purchases,
    upsert_purchase,
    upsert_user,
)
from storefront.services.token_service import build_setup_url, issue_setup_token

logger = logging.getLogger(__name__)

PURCHASE_APPROVED = "purchase_approved"


@dataclass
class WebhookResult:
    ok: bool = True
    duplicate: bool = False
    setup_url: Optional[str] = None  # carries a raw token; kept out of to_dict()

    def to_dict(self):
        return {"ok": self.ok, "duplicate": self.duplicate}


def secret_matches(received, settings):
    """Exact comparison of the payload secret with the configured one."""
    return bool(settings.secret) and received.strip() == settings.secret


# ──────────────────────────────────────────────
# Idempotency gate
# ──────────────────────────────────────────────

def _is_unique_violation(error):
    orig = getattr(error, "orig", None)
    # psycopg2 exposes pgcode, psycopg 3 sqlstate; sqlite only has the message.
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return code == "23505"
    return "UNIQUE constraint failed" in str(orig)


def record_event(event):
    """Insert the webhook_events row for ``event``.

    Returns False if the event was already recorded (another delivery won
    the unique constraint). Other database errors propagate.
    """
    db.session.add(WebhookEvent(
        external_event_id=event.idempotency_key,
        external_order_id=event.order_id,
        event_type=event.event_type,
    ))
    try:
        db.session.flush()
    except IntegrityError as e:
        db.session.rollback()
        if _is_unique_violation(e):
            return False
        raise
    return True


# ──────────────────────────────────────────────
# Entry point
# ──────────────────────────────────────────────

def handle_webhook_event(event, settings):
    """Process a verified, parsed Cakto event.

    Returns a WebhookResult; duplicates are reported, not raised.
    """
    event_id = event.idempotency_key

    if not record_event(event):
        logger.info(f"Duplicate webhook event {event_id}, skipping")
        return WebhookResult(duplicate=True)

    if event.event_type == PURCHASE_APPROVED:
        user, setup_url = _handle_purchase_approved(event, settings)
        db.session.commit()
        _notify_access_granted(user, setup_url, event)
        return WebhookResult(setup_url=setup_url)

    if event.event_type in REVOKING_EVENTS:
        _handle_revocation(event)
    else:
        logger.info(f"Webhook event {event_id} of type {event.event_type} recorded, no handler")

    db.session.commit()
    return WebhookResult()


# ──────────────────────────────────────────────
# Event Handlers
# ──────────────────────────────────────────────

def _handle_purchase_approved(event, settings):
    """Grant access: product, user, purchase, setup token.

    Only flushes; handle_webhook_event commits.
    Returns (user, setup_url).
    """
    product = ensure_product(event.product_id, event.offer_id, settings)
    user = upsert_user(event.customer_email, event.customer_name)

    purchase = None
    if event.order_id:
        purchase = upsert_purchase(event.order_id, user.id, product.id)

    raw_token = issue_setup_token(user.id, ttl_minutes=settings.token_ttl_minutes)
    setup_url = build_setup_url(settings.base_url, raw_token)

    log_audit("purchase.approved", {
        "event_id": event.idempotency_key,
        "order_id": event.order_id,
        "user_id": user.id,
        "product_id": product.id,
        "purchase_id": purchase.id if purchase else None,
    })
    logger.info(
        f"Access granted: user {user.id} product {product.slug} order {event.order_id}"
    )
    return user, setup_url


def _handle_revocation(event):
    """Handle refund / chargeback for an order; no-op without an order id."""
    if not event.order_id:
        logger.info(f"{event.event_type} event {event.idempotency_key} has no order id")
        return

    changed = revoke_purchases(event.order_id, event.event_type)
    log_audit("purchase.revoked", {
        "event_id": event.idempotency_key,
        "order_id": event.order_id,
        "event_type": event.event_type,
        "purchases_changed": changed,
    })


# ──────────────────────────────────────────────
# Email Notifications
# ──────────────────────────────────────────────

def _notify_access_granted(user, setup_url, event):
    """Best-effort access email, sent after the grant is committed.

    A failure is logged and swallowed: the purchase stands, and the member
    can still request a recovery link later.
    """
    try:
        send_access_granted_email(user.email, user.name, setup_url)
    except Exception as e:
        logger.error(
            f"Failed to send access email: user_id={user.id} "
            f"order_id={event.order_id} event_id={event.idempotency_key}: {e}",
            exc_info=True,
        )
