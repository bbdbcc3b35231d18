"""Cakto webhook payload parsing.

Turns the raw JSON body into a CaktoEvent, rejecting anything that does
not match the shape Cakto sends:

    {
      "id": "evt_...",              # optional, string or number
      "event": "purchase_approved",
      "secret": "...",
      "data": {
        "id": "ORDER-1",            # optional, string or number
        "status": "paid",           # optional
        "customer": {"email": "a@x.com", "name": "Ana"},
        "product": {"id": "..."},   # optional
        "offer": {"id": "..."}      # optional
      }
    }

Unknown keys are ignored.
"""

import re
from dataclasses import dataclass
from typing import Optional

from storefront.errors import WebhookPayloadError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class CaktoEvent:
    event_type: str
    secret: str
    event_id: Optional[str]
    order_id: Optional[str]
    customer_email: str
    customer_name: Optional[str]
    product_id: Optional[str]
    offer_id: Optional[str]
    status: Optional[str] = None

    @property
    def idempotency_key(self):
        """Provider event id, or a key derived from the event and order/email."""
        if self.event_id:
            return self.event_id
        return f"{self.event_type}:{self.order_id or self.customer_email}"


def normalize_id(value):
    """Cakto sends ids as strings or numbers; store them as strings."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise WebhookPayloadError("Invalid id")
    if isinstance(value, (int, float)):
        return str(int(value)) if float(value).is_integer() else str(value)
    if isinstance(value, str):
        return value
    raise WebhookPayloadError("Invalid id")


def _optional_object(data, key):
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise WebhookPayloadError(f"'{key}' must be an object")
    return value


def _optional_string(data, key):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise WebhookPayloadError(f"'{key}' must be a string")
    return value


def parse_webhook_payload(body):
    """Validate a decoded JSON body and return a CaktoEvent.

    Raises WebhookPayloadError on any shape violation.
    """
    if not isinstance(body, dict):
        raise WebhookPayloadError("Body must be an object")

    event_type = body.get("event")
    secret = body.get("secret")
    if not isinstance(event_type, str) or not event_type:
        raise WebhookPayloadError("'event' is required")
    if not isinstance(secret, str):
        raise WebhookPayloadError("'secret' is required")

    data = body.get("data")
    if not isinstance(data, dict):
        raise WebhookPayloadError("'data' is required")

    customer = data.get("customer")
    if not isinstance(customer, dict):
        raise WebhookPayloadError("'data.customer' is required")
    email = customer.get("email")
    if not isinstance(email, str) or not EMAIL_RE.match(email.strip()):
        raise WebhookPayloadError("'data.customer.email' must be an email")

    return CaktoEvent(
        event_type=event_type,
        secret=secret,
        event_id=normalize_id(body.get("id")),
        order_id=normalize_id(data.get("id")),
        customer_email=email,
        customer_name=_optional_string(customer, "name"),
        product_id=normalize_id(_optional_object(data, "product").get("id")),
        offer_id=normalize_id(_optional_object(data, "offer").get("id")),
        status=_optional_string(data, "status"),
    )
