"""
Price Resolver - net/gross unit price for a product and customer status.

Accepted B2B customers pay the product's net B2B price (plus tax) on simple
products; everyone else, and every composite product, keeps the catalog price.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional

from .models import CustomerStatus, Price, Product, ProductKind, to_money

logger = logging.getLogger(__name__)


def parse_b2b_price(value) -> Optional[Decimal]:
    """
    Parse a stored B2B net price.

    Missing, non-numeric and non-positive values are treated as absent.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        price = Decimal(str(value).strip().replace(',', '.'))
    except (InvalidOperation, ValueError):
        return None
    if not price.is_finite() or price <= 0:
        return None
    return price


def parse_tax_rate(value) -> Decimal:
    """Parse a tax rate in 0..1; missing or invalid rates mean no tax."""
    if value is None or isinstance(value, bool):
        return Decimal('0')
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal('0')
    if not rate.is_finite() or rate < 0:
        return Decimal('0')
    return rate


def calculate_gross(net: Decimal, tax_rate: Decimal) -> Decimal:
    """Gross price from net; unrounded."""
    if not tax_rate:
        return net
    return net * (1 + tax_rate)


def calculate_net(gross: Decimal, tax_rate: Decimal) -> Decimal:
    """Net price from gross; unrounded."""
    if not tax_rate:
        return gross
    return gross / (1 + tax_rate)


def resolve_price(
    product: Product,
    customer_status: CustomerStatus,
    rounding: str = ROUND_HALF_UP
) -> Price:
    """
    Resolve the unit price of a product for a customer status.

    Resolution order:
    1. Non-accepted customers or non-simple products: catalog gross price, unchanged
    2. Positive net B2B price: net = B2B price
    3. Otherwise: net derived from the catalog gross price
    Gross = net × (1 + tax rate), rounded to cents.
    """
    tax_rate = parse_tax_rate(product.tax_rate)
    catalog_gross = Decimal(str(product.gross_regular_price))

    if not customer_status.is_b2b_accepted or product.kind != ProductKind.SIMPLE:
        # Catalog gross passes through as stored
        return Price(
            net=to_money(calculate_net(catalog_gross, tax_rate), rounding),
            gross=catalog_gross,
            tax_rate=tax_rate,
            source="catalog",
        )

    b2b_net = parse_b2b_price(product.net_b2b_price)
    if b2b_net is not None:
        net = b2b_net
        source = "b2b"
    else:
        logger.debug("No B2B price for product %s, deriving net from gross", product.product_id)
        net = calculate_net(catalog_gross, tax_rate)
        source = "catalog"

    return Price(
        net=to_money(net, rounding),
        gross=to_money(calculate_gross(net, tax_rate), rounding),
        tax_rate=tax_rate,
        source=source,
    )
