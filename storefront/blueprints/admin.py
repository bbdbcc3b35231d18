"""Admin blueprint: /admin/*

Operator actions that feed the fulfillment core. All routes protected by
@admin_required.

Route Map:
  POST /admin/products/<id>/ebook          - upload the product's PDF
  POST /admin/users/<id>/reset-password    - email a fresh setup link
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user

from storefront.blueprints.auth import send_recovery_link
from storefront.decorators import admin_required
from storefront.errors import UploadRejected
from storefront.extensions import db
from storefront.models.product import Product
from storefront.models.user import User
from storefront.services import storage_service
from storefront.services.purchase_service import log_audit

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.route("/products/<product_id>/ebook", methods=["POST"])
@admin_required
def upload_ebook(product_id):
    """Store a PDF and attach it to the product (replacing any previous one)."""
    product = db.session.get(Product, product_id)
    if product is None:
        return jsonify({"ok": False, "error": "Produto não encontrado."}), 404

    try:
        ebook = storage_service.save_ebook(request.files.get("file"), product.id)
    except UploadRejected as e:
        return jsonify({"ok": False, "error": str(e)}), 400

    file_path = ebook.file_path
    try:
        log_audit("product.ebook_uploaded", {
            "product_id": product.id,
            "file_path": file_path,
        }, actor_user_id=current_user.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        storage_service.discard_ebook(file_path)
        raise

    return jsonify({"ok": True, "file_path": file_path})


@admin_bp.route("/users/<user_id>/reset-password", methods=["POST"])
@admin_required
def reset_password(user_id):
    """Email the member a new password setup link."""
    user = db.session.get(User, user_id)
    if user is None:
        return jsonify({"ok": False, "error": "Usuário não encontrado."}), 404
    if not user.is_active:
        return jsonify({"ok": False, "error": "Usuário inativo."}), 400

    log_audit("user.password_reset_requested", {
        "user_id": user.id,
    }, actor_user_id=current_user.id)
    send_recovery_link(user)

    return jsonify({"ok": True})
