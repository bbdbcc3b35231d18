"""Tests for the admin blueprint.

Covers:
- Access control (anonymous, member, admin)
- Ebook upload (validation, storage, replacement, audit)
- Admin-initiated password reset link
"""

import io
import os
from unittest.mock import patch

import pytest

from conftest import login, make_pdf

from storefront.extensions import db
from storefront.models.audit import AuditEvent
from storefront.models.password_setup_token import PasswordSetupToken
from storefront.models.product import ProductEbook
from storefront.models.user import User


def _login_admin(client, seed_data):
    return login(client, seed_data["admin_email"], "admin123")


def _upload(client, product_id, data, filename="livro.pdf"):
    return client.post(
        f"/admin/products/{product_id}/ebook",
        data={"file": (io.BytesIO(data), filename)},
        content_type="multipart/form-data",
    )


def _stored_uploads(app, storage_root):
    upload_dir = os.path.join(storage_root, app.config["EBOOK_UPLOAD_DIR"])
    if not os.path.isdir(upload_dir):
        return []
    return os.listdir(upload_dir)


class TestAdminAccess:
    """Tests for @admin_required."""

    def test_anonymous_redirected_to_login(self, client, seed_data):
        resp = client.post(f"/admin/users/{seed_data['member_id']}/reset-password")
        assert resp.status_code == 302
        assert "/login" in resp.headers["Location"]

    def test_member_forbidden(self, client, seed_data):
        login(client, seed_data["member_email"])
        resp = client.post(f"/admin/users/{seed_data['member_id']}/reset-password")
        assert resp.status_code == 403


class TestEbookUpload:
    """Tests for POST /admin/products/<id>/ebook."""

    def test_upload_stores_file(self, client, app, seed_data, ebook_storage):
        _login_admin(client, seed_data)
        pdf = make_pdf()
        resp = _upload(client, seed_data["product_id"], pdf, "Meu Livro (v2).pdf")

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["ok"] is True

        relative = body["file_path"]
        assert relative.startswith(app.config["EBOOK_UPLOAD_DIR"])
        assert relative.endswith("Meu_Livro__v2_.pdf")
        with open(os.path.join(ebook_storage, relative), "rb") as f:
            assert f.read() == pdf

        with app.app_context():
            ebook = ProductEbook.query.filter_by(product_id=seed_data["product_id"]).one()
            assert ebook.file_path == relative
            assert ebook.file_name == "Meu Livro (v2).pdf"
            assert AuditEvent.query.filter_by(action="product.ebook_uploaded").count() == 1

    def test_second_upload_replaces_first(self, client, app, seed_data, ebook_storage):
        _login_admin(client, seed_data)
        _upload(client, seed_data["product_id"], make_pdf(pages=1), "um.pdf")
        resp = _upload(client, seed_data["product_id"], make_pdf(pages=2), "dois.pdf")
        assert resp.status_code == 200

        with app.app_context():
            ebooks = ProductEbook.query.filter_by(product_id=seed_data["product_id"]).all()
            assert len(ebooks) == 1
            assert ebooks[0].file_name == "dois.pdf"

    def test_rejects_non_pdf(self, client, seed_data, ebook_storage):
        _login_admin(client, seed_data)
        resp = _upload(client, seed_data["product_id"], make_pdf(), "livro.docx")
        assert resp.status_code == 400
        assert resp.get_json()["ok"] is False

    def test_rejects_tiny_file(self, client, seed_data, ebook_storage):
        _login_admin(client, seed_data)
        resp = _upload(client, seed_data["product_id"], b"%PDF-1.4", "livro.pdf")
        assert resp.status_code == 400

    def test_rejects_missing_file(self, client, seed_data, ebook_storage):
        _login_admin(client, seed_data)
        resp = client.post(f"/admin/products/{seed_data['product_id']}/ebook")
        assert resp.status_code == 400

    def test_unknown_product_404(self, client, seed_data, ebook_storage):
        _login_admin(client, seed_data)
        resp = _upload(client, "no-such-product", make_pdf())
        assert resp.status_code == 404

    def test_failed_row_write_removes_file(self, client, app, seed_data, ebook_storage):
        _login_admin(client, seed_data)
        with patch(
            "storefront.services.storage_service.upsert",
            side_effect=RuntimeError("db down"),
        ):
            with pytest.raises(RuntimeError):
                _upload(client, seed_data["product_id"], make_pdf())

        assert _stored_uploads(app, ebook_storage) == []

    def test_failed_commit_removes_file(self, client, app, seed_data, ebook_storage):
        """The file goes away with the rolled-back row."""
        _login_admin(client, seed_data)
        with patch(
            "storefront.blueprints.admin.log_audit",
            side_effect=RuntimeError("db down"),
        ):
            with pytest.raises(RuntimeError):
                _upload(client, seed_data["product_id"], make_pdf())

        assert _stored_uploads(app, ebook_storage) == []
        with app.app_context():
            assert ProductEbook.query.count() == 0


class TestAdminResetPassword:
    """Tests for POST /admin/users/<id>/reset-password."""

    @patch("storefront.blueprints.auth.send_password_recovery_email")
    def test_sends_setup_link(self, mock_send, client, app, seed_data):
        _login_admin(client, seed_data)
        resp = client.post(f"/admin/users/{seed_data['pending_id']}/reset-password")

        assert resp.status_code == 200
        assert resp.get_json() == {"ok": True}
        mock_send.assert_called_once()
        assert mock_send.call_args[0][0] == seed_data["pending_email"]

        with app.app_context():
            assert PasswordSetupToken.query.filter_by(
                user_id=seed_data["pending_id"]
            ).count() == 1
            audit = AuditEvent.query.filter_by(
                action="user.password_reset_requested"
            ).one()
            assert audit.actor_user_id == seed_data["admin_id"]

    @patch("storefront.blueprints.auth.send_password_recovery_email")
    def test_unknown_user_404(self, mock_send, client, seed_data):
        _login_admin(client, seed_data)
        resp = client.post("/admin/users/no-such-user/reset-password")
        assert resp.status_code == 404
        mock_send.assert_not_called()

    @patch("storefront.blueprints.auth.send_password_recovery_email")
    def test_inactive_user_400(self, mock_send, client, app, seed_data):
        with app.app_context():
            db.session.get(User, seed_data["member_id"]).is_active = False
            db.session.commit()

        _login_admin(client, seed_data)
        resp = client.post(f"/admin/users/{seed_data['member_id']}/reset-password")
        assert resp.status_code == 400
        mock_send.assert_not_called()
