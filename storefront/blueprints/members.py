"""Members blueprint: /app/*

Protected member area. Every ebook route re-checks the purchase through
@product_access_required, so a refund or chargeback locks the member out
on their next request.

Route Map:
  GET  /app/                         - the member's active products
  GET  /app/ebooks/<slug>            - raw PDF, inline, never cached
  GET  /app/ebooks/<slug>/download   - watermarked PDF, attachment
  GET  /app/ebooks/<slug>/state      - saved reader progress and highlights
  PUT  /app/ebooks/<slug>/state      - replace reader progress and highlights
  POST /app/conta/senha              - change password (JSON)
"""

import logging

from flask import Blueprint, Response, abort, g, jsonify, request
from flask_login import current_user, login_required

from storefront.decorators import product_access_required
from storefront.errors import (
    EbookNotFound,
    PasswordChangeRejected,
    PersonalizationError,
    ReaderStateInvalid,
)
from storefront.extensions import limiter
from storefront.models.product import Product
from storefront.services import reader_state_service, storage_service
from storefront.services.access_service import list_active_products
from storefront.services.account_service import change_password
from storefront.services.watermark_service import personalize_pdf

logger = logging.getLogger(__name__)

members_bp = Blueprint("members", __name__, url_prefix="/app")

NO_STORE_HEADERS = {
    "Cache-Control": "private, no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _load_ebook_bytes():
    """Bytes of the PDF for g.access's product; 404 on any failure."""
    product = Product.query.filter_by(slug=g.access.product_slug).first()
    path = storage_service.resolve_ebook_path(product) if product else None
    if path is None:
        abort(404)
    try:
        return storage_service.read_ebook(path)
    except EbookNotFound:
        abort(404)


@members_bp.route("/")
@login_required
def home():
    """List the products the member can open."""
    products = list_active_products(current_user)
    return jsonify({
        "ok": True,
        "user": {"id": current_user.id, "email": current_user.email, "name": current_user.name},
        "products": [{"slug": p.slug, "title": p.title} for p in products],
    })


@members_bp.route("/ebooks/<slug>")
@product_access_required
def view_ebook(slug):
    """Serve the source PDF for the in-browser reader."""
    data = _load_ebook_bytes()
    return Response(
        data,
        mimetype="application/pdf",
        headers={
            **NO_STORE_HEADERS,
            "Content-Disposition": f'inline; filename="{slug}.pdf"',
        },
    )


@members_bp.route("/ebooks/<slug>/download")
@product_access_required
def download_ebook(slug):
    """Serve a copy stamped with the member's identity.

    Generated fresh for every request; the stamp includes the generation
    time, so a cached copy would carry the wrong one.
    """
    data = _load_ebook_bytes()
    access = g.access
    try:
        personalized = personalize_pdf(
            data, access.user_id, access.user_email, access.product_slug
        )
    except PersonalizationError:
        abort(404)

    return Response(
        personalized,
        mimetype="application/pdf",
        headers={
            **NO_STORE_HEADERS,
            "Content-Disposition": f'attachment; filename="{slug}-identificado.pdf"',
        },
    )


@members_bp.route("/ebooks/<slug>/state", methods=["GET"])
@product_access_required
def get_reader_state(slug):
    """Where the member stopped reading, plus their highlights."""
    state = reader_state_service.get_reader_state(g.access.user_id, g.access.product_id)
    return jsonify({"ok": True, "state": state}), 200, NO_STORE_HEADERS


@members_bp.route("/ebooks/<slug>/state", methods=["PUT"])
@product_access_required
def save_reader_state(slug):
    """Replace the member's reader state for this ebook."""
    try:
        payload = reader_state_service.parse_state_payload(request.get_json(silent=True))
    except ReaderStateInvalid as e:
        logger.info(f"Rejected reader state for user {g.access.user_id}: {e}")
        return jsonify({"ok": False, "error": "Invalid payload"}), 400

    reader_state_service.save_reader_state(
        g.access.user_id, g.access.product_id, payload
    )
    return jsonify({"ok": True})


@members_bp.route("/conta/senha", methods=["POST"])
@login_required
@limiter.limit("10 per minute")
def change_account_password():
    """Change the logged-in member's password."""
    body = request.get_json(silent=True) or {}
    try:
        change_password(
            current_user,
            body.get("currentPassword"),
            body.get("newPassword"),
            body.get("confirmPassword"),
        )
    except PasswordChangeRejected as e:
        return jsonify({"ok": False, "error": str(e)}), 400
    return jsonify({"ok": True})
