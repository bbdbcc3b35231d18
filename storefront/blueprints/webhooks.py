"""Webhooks blueprint: /webhooks/cakto

Receives Cakto purchase webhooks. CSRF-exempt.
Cakto authenticates with a shared secret inside the JSON body.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from storefront.config import FulfillmentSettings
from storefront.errors import WebhookPayloadError
from storefront.extensions import limiter
from storefront.services.cakto_payload import parse_webhook_payload
from storefront.services.fulfillment_service import handle_webhook_event, secret_matches

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/webhooks")


def _mask(value):
    if len(value) <= 8:
        return "***"
    return f"{value[:4]}...{value[-4:]}"


@webhooks_bp.route("/cakto", methods=["POST"])
@limiter.limit("120 per minute")
def cakto_webhook():
    """Receive and process Cakto webhook events.

    1. Parse + validate the JSON body
    2. Compare the body's secret with CAKTO_WEBHOOK_SECRET
    3. Pass to handle_webhook_event (idempotent via webhook_events table)
    4. Return 200 with the result, duplicates included

    CSRF is exempted for this blueprint in create_app().
    """
    settings = FulfillmentSettings.from_config(current_app.config)
    if not settings.secret:
        logger.error("CAKTO_WEBHOOK_SECRET is not configured")
        return jsonify({"ok": False, "error": "Webhook secret not configured."}), 500

    body = request.get_json(silent=True)
    if body is None:
        return jsonify({"ok": False, "error": "Invalid request body"}), 400

    try:
        event = parse_webhook_payload(body)
    except WebhookPayloadError as e:
        logger.warning(f"Rejected Cakto webhook payload: {e}")
        return jsonify({"ok": False, "error": "Invalid webhook payload"}), 400

    if not secret_matches(event.secret, settings):
        logger.warning(f"Cakto webhook secret mismatch for event {event.idempotency_key}")
        if current_app.debug:
            return jsonify({
                "ok": False,
                "error": "Webhook secret mismatch",
                "expected": _mask(settings.secret),
                "received": _mask(event.secret.strip()),
            }), 401
        return jsonify({"ok": False}), 401

    result = handle_webhook_event(event, settings)
    return jsonify(result.to_dict()), 200
