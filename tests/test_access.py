"""Tests for the access guard and the member ebook routes.

Covers:
- check_access for active, refunded, inactive and anonymous members
- Revocation takes effect on the very next request
- /app/ebooks/<slug> inline reader and /download watermarked copy
- No-store caching headers on both
- Malformed slugs (404) vs no access (403)
"""

import io

from pypdf import PdfReader

from conftest import cakto_payload, login, make_pdf, post_cakto

from storefront.extensions import db
from storefront.models.product import Product, ProductEbook
from storefront.models.purchase import Purchase
from storefront.models.user import User
from storefront.services.access_service import check_access, list_active_products


class TestCheckAccess:
    """Tests for access_service.check_access."""

    def test_active_purchase_grants(self, app, seed_data):
        with app.app_context():
            user = db.session.get(User, seed_data["member_id"])
            grant = check_access(user, "ansiedade")
            assert grant is not None
            assert grant.user_id == seed_data["member_id"]
            assert grant.user_email == seed_data["member_email"]
            assert grant.product_id == seed_data["product_id"]
            assert grant.product_slug == "ansiedade"

    def test_refunded_purchase_denies(self, app, seed_data):
        with app.app_context():
            db.session.get(Purchase, seed_data["purchase_id"]).status = Purchase.REFUNDED
            db.session.commit()

            user = db.session.get(User, seed_data["member_id"])
            assert check_access(user, "ansiedade") is None

    def test_any_active_purchase_is_enough(self, app, seed_data):
        """One refunded order does not cancel another ACTIVE one."""
        with app.app_context():
            db.session.get(Purchase, seed_data["purchase_id"]).status = Purchase.CHARGEBACK
            db.session.add(Purchase(
                external_order_id="ORDER-2",
                user_id=seed_data["member_id"],
                product_id=seed_data["product_id"],
                status=Purchase.ACTIVE,
            ))
            db.session.commit()

            user = db.session.get(User, seed_data["member_id"])
            assert check_access(user, "ansiedade") is not None

    def test_inactive_user_denied(self, app, seed_data):
        with app.app_context():
            user = db.session.get(User, seed_data["member_id"])
            user.is_active = False
            db.session.commit()
            assert check_access(user, "ansiedade") is None

    def test_no_user_or_other_product_denied(self, app, seed_data):
        with app.app_context():
            user = db.session.get(User, seed_data["member_id"])
            assert check_access(None, "ansiedade") is None
            assert check_access(user, "outro-produto") is None

    def test_list_active_products(self, app, seed_data):
        with app.app_context():
            user = db.session.get(User, seed_data["member_id"])
            assert [p.slug for p in list_active_products(user)] == ["ansiedade"]

            pending = db.session.get(User, seed_data["pending_id"])
            assert list_active_products(pending) == []


class TestMemberHome:
    """Tests for GET /app/."""

    def test_requires_login(self, client, seed_data):
        resp = client.get("/app/")
        assert resp.status_code == 302
        assert "/login" in resp.headers["Location"]

    def test_lists_products(self, client, seed_data):
        login(client, seed_data["member_email"])
        resp = client.get("/app/")
        assert resp.status_code == 200
        assert resp.get_json()["products"] == [
            {"slug": "ansiedade", "title": "Como Derrotar a Ansiedade"}
        ]


class TestEbookRoutes:
    """Tests for /app/ebooks/<slug> and /app/ebooks/<slug>/download."""

    def test_view_inline_pdf(self, client, seed_data, ebook_storage):
        login(client, seed_data["member_email"])
        resp = client.get("/app/ebooks/ansiedade")

        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")
        assert resp.headers["Content-Disposition"] == 'inline; filename="ansiedade.pdf"'
        assert "no-store" in resp.headers["Cache-Control"]
        assert resp.headers["Pragma"] == "no-cache"

    def test_download_is_personalized(self, client, seed_data, ebook_storage):
        login(client, seed_data["member_email"])
        resp = client.get("/app/ebooks/ansiedade/download")

        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.headers["Content-Disposition"] == (
            'attachment; filename="ansiedade-identificado.pdf"'
        )
        assert "no-store" in resp.headers["Cache-Control"]

        reader = PdfReader(io.BytesIO(resp.data))
        assert len(reader.pages) == 2
        for page in reader.pages:
            assert seed_data["member_email"] in page.extract_text()

    def test_anonymous_gets_403(self, client, seed_data, ebook_storage):
        resp = client.get("/app/ebooks/ansiedade")
        assert resp.status_code == 403

    def test_logged_in_without_purchase_gets_403(self, client, seed_data, ebook_storage):
        login(client, seed_data["admin_email"], "admin123")
        resp = client.get("/app/ebooks/ansiedade/download")
        assert resp.status_code == 403

    def test_malformed_slug_is_404(self, client, seed_data):
        login(client, seed_data["member_email"])
        resp = client.get("/app/ebooks/Ansiedade_PDF")
        assert resp.status_code == 404

    def test_missing_file_is_404(self, client, app, seed_data, tmp_path, monkeypatch):
        """Access granted but no PDF on disk -> 404."""
        monkeypatch.setitem(app.config, "EBOOK_STORAGE_ROOT", str(tmp_path))
        login(client, seed_data["member_email"])
        assert client.get("/app/ebooks/ansiedade").status_code == 404
        assert client.get("/app/ebooks/ansiedade/download").status_code == 404

    def test_corrupt_file_download_is_404(self, client, app, seed_data, ebook_storage):
        (ebook_storage / app.config["PRIMARY_EBOOK_PATH"]).write_bytes(b"not a pdf")
        login(client, seed_data["member_email"])
        assert client.get("/app/ebooks/ansiedade/download").status_code == 404

    def test_uploaded_ebook_takes_precedence(self, client, app, seed_data, ebook_storage):
        (ebook_storage / "custom.pdf").write_bytes(make_pdf(pages=3))
        with app.app_context():
            db.session.add(ProductEbook(
                product_id=seed_data["product_id"],
                file_path="custom.pdf",
                file_name="custom.pdf",
            ))
            db.session.commit()

        login(client, seed_data["member_email"])
        resp = client.get("/app/ebooks/ansiedade/download")
        assert len(PdfReader(io.BytesIO(resp.data)).pages) == 3

    def test_non_primary_product_without_ebook_is_404(self, client, app, seed_data,
                                                      ebook_storage):
        with app.app_context():
            product = Product(slug="outro", title="Outro")
            db.session.add(product)
            db.session.flush()
            db.session.add(Purchase(
                external_order_id="ORDER-OUTRO",
                user_id=seed_data["member_id"],
                product_id=product.id,
            ))
            db.session.commit()

        login(client, seed_data["member_email"])
        assert client.get("/app/ebooks/outro").status_code == 404


class TestRevocationIsImmediate:
    """A refund locks the member out on their next request."""

    def test_refund_blocks_next_download(self, client, seed_data, ebook_storage):
        login(client, seed_data["member_email"])
        assert client.get("/app/ebooks/ansiedade").status_code == 200

        resp = post_cakto(client, cakto_payload(
            event="refund", event_id="evt_refund", order_id=seed_data["order_id"],
            email=seed_data["member_email"],
        ))
        assert resp.status_code == 200

        assert client.get("/app/ebooks/ansiedade").status_code == 403
        assert client.get("/app/ebooks/ansiedade/download").status_code == 403
