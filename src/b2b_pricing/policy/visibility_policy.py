"""
Visibility Policy - B2B-only products and third-party plugin switches.

Products flagged b2b_only are hidden from every listing for customers who
are not accepted B2B customers (administrators always see them).
"""
from decimal import Decimal
from typing import Iterable, Optional

from ..config.settings import get_settings, Settings
from ..engine.catalog import Catalog
from ..engine.display import format_money
from ..engine.models import Cart, CustomerStatus, Product, ProductKind


def can_see_b2b_only(customer_status: CustomerStatus, is_admin: bool = False) -> bool:
    return is_admin or customer_status.is_b2b_accepted


def is_product_visible(product: Product, customer_status: CustomerStatus, is_admin: bool = False) -> bool:
    if not product.b2b_only:
        return True
    return can_see_b2b_only(customer_status, is_admin)


def filter_product_ids(
    product_ids: Iterable[str],
    catalog: Catalog,
    customer_status: CustomerStatus,
    is_admin: bool = False
) -> list[str]:
    """Drop B2B-only ids from related products, cross-sells and similar id lists."""
    product_ids = list(product_ids)
    if can_see_b2b_only(customer_status, is_admin):
        return product_ids

    visible = []
    for product_id in product_ids:
        product = catalog.get_product(product_id)
        # Unknown ids carry no B2B flag
        if product is None or not product.b2b_only:
            visible.append(product_id)
    return visible


def product_table_products(
    catalog: Catalog,
    customer_status: CustomerStatus,
    is_admin: bool = False
) -> list[Product]:
    """Listing for the product-table plugin: in stock, priced, simple and visible."""
    return [
        p for p in catalog
        if p.in_stock
        and p.gross_regular_price > 0
        and p.kind == ProductKind.SIMPLE
        and is_product_visible(p, customer_status, is_admin)
    ]


def product_table_cart_total(
    cart: Cart,
    customer_status: CustomerStatus,
    settings: Optional[Settings] = None
) -> str:
    """Cart total shown by the product table: net with a ' netto' suffix for B2B, gross otherwise."""
    settings = settings or get_settings()
    if not cart.lines:
        return format_money(Decimal('0'), settings.currency_symbol)

    if customer_status.is_b2b_accepted:
        return format_money(cart.net_subtotal(), settings.currency_symbol) + ' netto'
    return format_money(cart.gross_subtotal(), settings.currency_symbol)


def dynamic_pricing_enabled(customer_status: CustomerStatus) -> bool:
    """The third-party dynamic-pricing rules never run for accepted B2B customers."""
    return not customer_status.is_b2b_accepted
