"""Shared test fixtures for the storefront test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, CSRF off)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- ebook_storage: EBOOK_STORAGE_ROOT pointed at a temp dir with the primary PDF
- seed_data: admin, a member with an ACTIVE purchase, a pending member
- make_pdf / post_cakto / login helpers
"""

import io
import os

import pytest
from reportlab.pdfgen import canvas
from werkzeug.security import generate_password_hash

from storefront import create_app
from storefront.extensions import db as _db
from storefront.models.product import Product
from storefront.models.purchase import Purchase
from storefront.models.user import User

WEBHOOK_SECRET = "cakto_test_secret"
MEMBER_PASSWORD = "senha-forte-123"


def make_pdf(pages=2, text="Capitulo de teste"):
    """Build a small real PDF with ReportLab."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=(595, 842))
    for number in range(1, pages + 1):
        pdf.setFont("Helvetica", 14)
        pdf.drawString(72, 760, f"{text} {number}")
        pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def cakto_payload(event="purchase_approved", event_id="evt_1", order_id="ORDER-1",
                  email="ana@example.com", name="Ana", product_id="ansiedade-prod-1",
                  offer_id="ansiedade-offer-1", secret=WEBHOOK_SECRET):
    """A Cakto webhook body; pass None to leave an optional field out."""
    data = {
        "status": "paid",
        "customer": {"email": email, "name": name},
    }
    if order_id is not None:
        data["id"] = order_id
    if product_id is not None:
        data["product"] = {"id": product_id}
    if offer_id is not None:
        data["offer"] = {"id": offer_id}

    body = {"event": event, "secret": secret, "data": data}
    if event_id is not None:
        body["id"] = event_id
    return body


def post_cakto(client, body):
    return client.post("/webhooks/cakto", json=body)


def login(client, email, password=MEMBER_PASSWORD):
    return client.post(
        "/login",
        data={"email": email, "password": password},
        follow_redirects=False,
    )


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def ebook_storage(app, tmp_path, monkeypatch):
    """Point ebook storage at tmp_path and write the primary product's PDF."""
    monkeypatch.setitem(app.config, "EBOOK_STORAGE_ROOT", str(tmp_path))
    primary = tmp_path / app.config["PRIMARY_EBOOK_PATH"]
    os.makedirs(primary.parent, exist_ok=True)
    primary.write_bytes(make_pdf())
    return tmp_path


@pytest.fixture
def seed_data(app, db_session):
    """Seed an admin, the primary product, and two members.

    - member: has a password and an ACTIVE purchase of the primary product
    - pending: bought but never set a password

    Returns plain ids/emails so tests can use them across contexts.
    """
    with app.app_context():
        admin = User(
            email="admin@storefront.local",
            name="Admin",
            password_hash=generate_password_hash("admin123"),
            is_admin=True,
        )
        member = User(
            email="ana@example.com",
            name="Ana",
            password_hash=generate_password_hash(MEMBER_PASSWORD),
        )
        pending = User(email="bia@example.com", name="Bia")
        product = Product(
            slug="ansiedade",
            title="Como Derrotar a Ansiedade",
            external_product_id="ansiedade-prod-1",
        )
        _db.session.add_all([admin, member, pending, product])
        _db.session.flush()

        purchase = Purchase(
            external_order_id="ORDER-SEED",
            user_id=member.id,
            product_id=product.id,
            status=Purchase.ACTIVE,
        )
        _db.session.add(purchase)
        _db.session.commit()

        return {
            "admin_id": admin.id,
            "admin_email": admin.email,
            "member_id": member.id,
            "member_email": member.email,
            "pending_id": pending.id,
            "pending_email": pending.email,
            "product_id": product.id,
            "product_slug": product.slug,
            "purchase_id": purchase.id,
            "order_id": purchase.external_order_id,
        }
