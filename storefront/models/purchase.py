"""Purchase model.

One row per Cakto order id. Status only moves through webhook events:
purchase_approved -> ACTIVE, refund -> REFUNDED, chargeback -> CHARGEBACK.
A member has access to a product while any of their rows for it is ACTIVE.
"""

import uuid

from storefront.extensions import db


class Purchase(db.Model):
    __tablename__ = "purchases"

    ACTIVE = "ACTIVE"
    REFUNDED = "REFUNDED"
    CHARGEBACK = "CHARGEBACK"
    STATUSES = [ACTIVE, REFUNDED, CHARGEBACK]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    external_order_id = db.Column(
        db.String(255), unique=True, nullable=True
    )  # Cakto order id
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id"), nullable=False, index=True
    )
    product_id = db.Column(
        db.String(36), db.ForeignKey("products.id"), nullable=False, index=True
    )
    status = db.Column(db.String(20), nullable=False, default=ACTIVE)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    user = db.relationship("User", back_populates="purchases")
    product = db.relationship("Product", back_populates="purchases")

    @property
    def is_active(self):
        return self.status == self.ACTIVE

    def __repr__(self):
        return f"<Purchase {self.external_order_id} {self.status}>"
