"""Member access checks.

A member may open a product while they hold at least one ACTIVE purchase
for it. The check runs on every protected request and is never cached,
so a refund or chargeback takes effect on the member's next request.
"""

from dataclasses import dataclass

from storefront.models.product import Product
from storefront.models.purchase import Purchase


@dataclass(frozen=True)
class AccessGrant:
    user_id: str
    user_email: str
    product_id: str
    product_slug: str


def check_access(user, product_slug):
    """Return an AccessGrant for ``user`` on ``product_slug``, or None.

    None covers every failure alike: no session, inactive account,
    unknown product, or no ACTIVE purchase.
    """
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    if not user.is_active:
        return None

    purchase = (
        Purchase.query
        .join(Product, Purchase.product_id == Product.id)
        .filter(
            Purchase.user_id == user.id,
            Purchase.status == Purchase.ACTIVE,
            Product.slug == product_slug,
        )
        .order_by(Purchase.paid_at.desc(), Purchase.created_at.desc())
        .first()
    )
    if purchase is None:
        return None

    return AccessGrant(
        user_id=user.id,
        user_email=user.email,
        product_id=purchase.product_id,
        product_slug=product_slug,
    )


def list_active_products(user):
    """Products the user can currently open, newest purchase first."""
    purchases = (
        Purchase.query
        .filter_by(user_id=user.id, status=Purchase.ACTIVE)
        .order_by(Purchase.paid_at.desc())
        .all()
    )
    seen = {}
    for purchase in purchases:
        seen.setdefault(purchase.product_id, purchase.product)
    return list(seen.values())
