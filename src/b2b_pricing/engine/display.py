"""Price display fragments (net/gross pair) for the product page."""
from decimal import Decimal
from typing import Optional

from .models import CustomerStatus, Product, ProductKind, to_money
from .price_resolver import calculate_gross, parse_b2b_price, parse_tax_rate


def format_money(amount: Decimal, currency: str = 'zł') -> str:
    """Format an amount as '1 234,50 zł'."""
    value = f"{to_money(amount):,.2f}"
    value = value.replace(',', ' ').replace('.', ',')
    return f"{value} {currency}"


def render_price_display(
    product: Product,
    customer_status: CustomerStatus,
    currency: str = 'zł'
) -> Optional[dict]:
    """
    Net/gross B2B price block for simple products with a B2B price.

    Returns None for everyone but accepted B2B customers.
    """
    if product.kind != ProductKind.SIMPLE or not customer_status.is_b2b_accepted:
        return None

    netto = parse_b2b_price(product.net_b2b_price)
    if netto is None:
        return None

    tax_rate = parse_tax_rate(product.tax_rate)
    brutto = to_money(calculate_gross(netto, tax_rate))

    fragment = {
        "title": "B2B Pricing",
        "netto": format_money(netto, currency),
        "brutto": format_money(brutto, currency),
        "tax_note": None,
    }
    if tax_rate > 0:
        fragment["tax_note"] = f"(incl. {tax_rate * 100:.2f}% VAT)"
    return fragment
