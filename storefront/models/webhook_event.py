"""Webhook event model (idempotency table).

Every Cakto webhook is recorded by its event id before anything else
happens. The unique constraint on external_event_id is what picks a
single winner when the same event is delivered more than once, even
concurrently; the loser sees an IntegrityError and reports a duplicate.
Rows are never updated.
"""

import uuid

from storefront.extensions import db


class WebhookEvent(db.Model):
    __tablename__ = "webhook_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    external_event_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # Cakto event id, or "<event>:<order id or email>"
    external_order_id = db.Column(db.String(255), nullable=True)
    event_type = db.Column(
        db.String(64), nullable=False
    )  # e.g. "purchase_approved"
    received_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<WebhookEvent {self.external_event_id} ({self.event_type})>"
