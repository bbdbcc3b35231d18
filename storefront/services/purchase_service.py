"""Purchase reconciliation: users and purchases from webhook data.

Responsible for:
- Upserting the buyer (User) by normalized email
- Upserting the Purchase row keyed by Cakto order id
- Revoking purchases on refund / chargeback
- Logging purchase audit events
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import func

from storefront.extensions import db
from storefront.models.audit import AuditEvent
from storefront.models.purchase import Purchase
from storefront.models.user import User
from storefront.services.upsert import upsert

logger = logging.getLogger(__name__)

REVOKING_EVENTS = {
    "refund": Purchase.REFUNDED,
    "chargeback": Purchase.CHARGEBACK,
}


def upsert_user(email, name=None):
    """Create the user for ``email`` or update their name if one was sent.

    An existing name is never blanked by an event without one.
    """
    email = User.normalize_email(email)
    name = (name or "").strip() or None

    values = {"email": email, "name": name, "is_active": True, "is_admin": False}
    update = {"name": name, "updated_at": func.now()} if name else None
    return upsert(User, values=values, conflict_on=["email"], update=update)


def upsert_purchase(order_id, user_id, product_id, paid_at=None):
    """Create or reactivate the Purchase for a Cakto order id.

    Redelivery of the same order, or a new approval after a refund,
    updates the existing row: status back to ACTIVE with a fresh paid_at.
    """
    paid_at = paid_at or datetime.now(timezone.utc)
    return upsert(
        Purchase,
        values={
            "external_order_id": order_id,
            "user_id": user_id,
            "product_id": product_id,
            "status": Purchase.ACTIVE,
            "paid_at": paid_at,
        },
        conflict_on=["external_order_id"],
        update={
            "user_id": user_id,
            "product_id": product_id,
            "status": Purchase.ACTIVE,
            "paid_at": paid_at,
            "updated_at": func.now(),
        },
    )


def revoke_purchases(order_id, event_type):
    """Set every purchase with ``order_id`` to REFUNDED or CHARGEBACK.

    Returns the number of rows changed; zero when we never saw the order.
    """
    status = REVOKING_EVENTS[event_type]
    changed = (
        Purchase.query
        .filter_by(external_order_id=order_id)
        .update(
            {"status": status, "updated_at": func.now()},
            synchronize_session=False,
        )
    )
    if changed:
        logger.info(f"Order {order_id}: {changed} purchase(s) set to {status}")
    else:
        logger.info(f"Order {order_id}: no purchase to revoke for {event_type}")
    return changed


def log_audit(action, metadata=None, actor_user_id=None):
    """Log an audit event.

    Actor is None for webhook events, which are system-initiated.
    """
    event = AuditEvent(
        actor_user_id=actor_user_id,
        action=action,
        metadata_=metadata or {},
    )
    db.session.add(event)
    db.session.flush()
