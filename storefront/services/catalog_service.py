"""Catalog reconciliation for payment events.

Resolves the Product a Cakto event refers to, creating it on first
sight. Events for the primary product (the store's flagship ebook)
always land on one row addressed by slug, whatever product id they carry.
"""

import logging

from sqlalchemy import func

from storefront.errors import CatalogError
from storefront.extensions import db
from storefront.models.product import Offer, Product
from storefront.services.upsert import upsert

logger = logging.getLogger(__name__)


def is_primary_product(product_id, settings):
    """Decide whether an external product id maps to the primary product.

    An explicitly configured id wins; without one, ids containing the
    configured keyword match. Events with no product id at all are
    primary-product events. With PRIMARY_PRODUCT_SLUG blank the store has
    no primary product and nothing matches.
    """
    if not settings.primary_product_slug:
        return False
    if not product_id:
        return True
    if settings.primary_product_id:
        return product_id == settings.primary_product_id
    if settings.primary_product_match:
        return settings.primary_product_match.lower() in product_id.lower()
    return False


def ensure_product(product_id, offer_id, settings):
    """Return the Product for an event, creating it (and its Offer) if needed.

    Raises CatalogError when an event has no product id and the store has
    no primary product to route it to.
    """
    if is_primary_product(product_id, settings):
        return _upsert_primary_product(product_id, settings)

    if not product_id:
        raise CatalogError("Missing product id for a non-primary product.")

    existing = Product.query.filter_by(external_product_id=product_id).first()
    if existing:
        return existing

    product = upsert(
        Product,
        values={
            "slug": f"produto-{product_id}",
            "title": f"Produto {product_id}",
            "external_product_id": product_id,
        },
        conflict_on=["slug"],
        update={"external_product_id": product_id, "updated_at": func.now()},
    )
    logger.info(f"Created product {product.slug} for Cakto product {product_id}")

    if offer_id:
        upsert(
            Offer,
            values={
                "external_offer_id": offer_id,
                "product_id": product.id,
                "checkout_url": settings.offer_checkout_url,
            },
            conflict_on=["external_offer_id"],
            update={"product_id": product.id},
        )

    return product


def _upsert_primary_product(product_id, settings):
    values = {
        "slug": settings.primary_product_slug,
        "title": settings.primary_product_title,
    }
    update = {"title": settings.primary_product_title, "updated_at": func.now()}
    if product_id and not _external_id_taken(product_id, settings.primary_product_slug):
        values["external_product_id"] = product_id
        update["external_product_id"] = product_id

    return upsert(Product, values=values, conflict_on=["slug"], update=update)


def _external_id_taken(product_id, slug):
    """True if another product already owns this external id."""
    return db.session.query(
        Product.query
        .filter(Product.external_product_id == product_id, Product.slug != slug)
        .exists()
    ).scalar()
