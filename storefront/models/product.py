"""Catalog models.

- Product: something a member can buy. The primary product is addressed
  by a fixed slug; others are created from Cakto product ids.
- Offer: a Cakto checkout offer attached to a product.
- ProductEbook: the stored PDF backing a product (one per product).
"""

import uuid

from storefront.extensions import db


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    slug = db.Column(db.String(120), unique=True, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    external_product_id = db.Column(
        db.String(255), unique=True, nullable=True
    )  # Cakto product id
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    offers = db.relationship("Offer", back_populates="product", lazy="dynamic")
    purchases = db.relationship(
        "Purchase", back_populates="product", lazy="dynamic"
    )
    ebook = db.relationship(
        "ProductEbook", back_populates="product", uselist=False
    )

    def __repr__(self):
        return f"<Product {self.slug}>"


class Offer(db.Model):
    __tablename__ = "offers"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    external_offer_id = db.Column(db.String(255), unique=True, nullable=False)
    product_id = db.Column(
        db.String(36), db.ForeignKey("products.id"), nullable=False
    )
    checkout_url = db.Column(db.String(500), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    product = db.relationship("Product", back_populates="offers")

    def __repr__(self):
        return f"<Offer {self.external_offer_id}>"


class ProductEbook(db.Model):
    __tablename__ = "product_ebooks"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    product_id = db.Column(
        db.String(36), db.ForeignKey("products.id"), unique=True, nullable=False
    )
    file_path = db.Column(
        db.String(500), nullable=False
    )  # relative to EBOOK_STORAGE_ROOT
    file_name = db.Column(db.String(255), nullable=False)  # original upload name
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", back_populates="ebook")

    def __repr__(self):
        return f"<ProductEbook {self.file_path}>"
