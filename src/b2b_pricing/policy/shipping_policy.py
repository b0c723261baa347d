"""
Shipping & Payment Policy - free-shipping overrides, gateway fees and coupons.
"""
import logging
from dataclasses import replace
from decimal import Decimal
from typing import Optional

from ..config.settings import get_settings, Settings
from ..engine.models import Cart, CustomerStatus, Fee, ShippingRate

logger = logging.getLogger(__name__)


def free_shipping_threshold(customer_status: CustomerStatus, settings: Optional[Settings] = None) -> Decimal:
    """Gross subtotal needed for free carrier shipping (1000 B2B, 600 otherwise by default)."""
    settings = settings or get_settings()
    return settings.free_shipping_threshold(customer_status.is_b2b_accepted)


def matches_carrier(rate: ShippingRate, pattern: str) -> bool:
    """Case-insensitive substring match of the carrier pattern in the rate label."""
    if not pattern:
        return False
    return pattern.lower() in (rate.label or '').lower()


def adjust_shipping(
    cart: Cart,
    customer_status: CustomerStatus,
    rates: list[ShippingRate],
    settings: Optional[Settings] = None
) -> list[ShippingRate]:
    """
    Zero the cost of carrier rates once the gross subtotal meets the threshold.

    Only rates whose label matches the configured carrier pattern change;
    the input rates are not modified.
    """
    settings = settings or get_settings()
    gross_subtotal = cart.gross_subtotal()
    threshold = free_shipping_threshold(customer_status, settings)

    if gross_subtotal < threshold:
        return [replace(rate) for rate in rates]

    adjusted = []
    for rate in rates:
        if matches_carrier(rate, settings.carrier_label_pattern):
            logger.debug("Free shipping on %s (subtotal %s >= %s)", rate.rate_id, gross_subtotal, threshold)
            adjusted.append(replace(rate, cost=Decimal('0.00')))
        else:
            adjusted.append(replace(rate))
    return adjusted


def free_shipping_applies(
    cart: Cart,
    customer_status: CustomerStatus,
    rates: list[ShippingRate],
    settings: Optional[Settings] = None
) -> bool:
    """True when the threshold is met and at least one offered rate is a matching carrier."""
    settings = settings or get_settings()
    if cart.gross_subtotal() < free_shipping_threshold(customer_status, settings):
        return False
    return any(matches_carrier(rate, settings.carrier_label_pattern) for rate in rates)


def shipping_progress_bar(customer_status: CustomerStatus, settings: Optional[Settings] = None) -> dict:
    """Storefront theme options for the free-shipping progress bar."""
    return {
        "shipping_progress_bar_calculation": "custom",
        "shipping_progress_bar_amount": free_shipping_threshold(customer_status, settings),
    }


def payment_fee(payment_method: Optional[str], settings: Optional[Settings] = None) -> Optional[Fee]:
    """Surcharge for the selected gateway, when it is the configured pay-on-delivery one."""
    settings = settings or get_settings()
    if not payment_method or payment_method != settings.pay_on_delivery_gateway:
        return None

    entry = settings.payment_fees.get(payment_method)
    if entry is None:
        logger.warning("No fee configured for pay-on-delivery gateway '%s'", payment_method)
        return None

    label, amount = entry
    return Fee(gateway_id=payment_method, label=label, amount=Decimal(str(amount)))


def coupons_enabled(customer_status: CustomerStatus, settings: Optional[Settings] = None) -> bool:
    """Coupons are switched off globally for accepted B2B customers."""
    settings = settings or get_settings()
    if settings.disable_coupons_for_b2b and customer_status.is_b2b_accepted:
        return False
    return True


def filter_payment_gateways(
    gateways: dict[str, str],
    customer_status: CustomerStatus,
    settings: Optional[Settings] = None
) -> dict[str, str]:
    """
    Filter available gateways (id -> title).

    B2B-only gateways are removed for everyone but accepted B2B customers,
    who see them under their B2B title.
    """
    settings = settings or get_settings()
    filtered = {}
    for gateway_id, title in gateways.items():
        b2b_title = settings.b2b_only_gateways.get(gateway_id)
        if b2b_title is None:
            filtered[gateway_id] = title
        elif customer_status.is_b2b_accepted:
            filtered[gateway_id] = b2b_title
    return filtered
