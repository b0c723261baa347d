"""
Cross-sell Policy - suggestions shown in the add-to-cart popup.

Suggestions come from the categories of the most recently added product:
in-stock products sharing one of them that are not already in the cart,
with B2B-only products left out for customers who cannot see them.
"""
import logging
import random
from typing import Optional

from ..engine.catalog import Catalog
from ..engine.models import Cart, CustomerStatus, Product
from .visibility_policy import is_product_visible

logger = logging.getLogger(__name__)

DEFAULT_CROSS_SELL_LIMIT = 3


def last_added_product(cart: Cart, catalog: Catalog) -> Optional[Product]:
    """Catalog product of the last product line; incentive lines never count."""
    for line in reversed(cart.lines):
        if line.is_incentive:
            continue
        return catalog.get_product(line.product_id)
    return None


def cross_sell_candidates(
    cart: Cart,
    catalog: Catalog,
    customer_status: CustomerStatus,
    is_admin: bool = False
) -> list[Product]:
    """Every product eligible as a suggestion, in catalog order."""
    source = last_added_product(cart, catalog)
    if source is None or not source.categories:
        return []

    categories = set(source.categories)
    in_cart = {line.product_id for line in cart.lines}
    return [
        p for p in catalog
        if p.product_id not in in_cart
        and p.in_stock
        and categories.intersection(p.categories)
        and is_product_visible(p, customer_status, is_admin)
    ]


def cross_sell_ids(
    cart: Cart,
    catalog: Catalog,
    customer_status: CustomerStatus,
    limit: int = DEFAULT_CROSS_SELL_LIMIT,
    rng: Optional[random.Random] = None,
    is_admin: bool = False
) -> list[str]:
    """A random pick of up to `limit` suggested product ids."""
    candidates = cross_sell_candidates(cart, catalog, customer_status, is_admin)
    if limit <= 0 or not candidates:
        return []

    rng = rng or random.Random()
    picked = rng.sample(candidates, min(limit, len(candidates)))
    logger.debug("Cross-sells for %s: %s", customer_status.value, [p.product_id for p in picked])
    return [p.product_id for p in picked]
