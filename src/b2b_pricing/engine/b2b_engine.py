"""
B2B Engine - cart pricing, incentive and checkout resolution with traceability.

Pipeline per recalculation:
1. Resolve each product line's unit price (cached per product and status)
2. Reconcile the free-sample incentive line (accepted B2B customers only)
3. At checkout: free shipping, pay-on-delivery fee and coupon policy
"""
import logging
from dataclasses import replace
from typing import Callable, Optional

from ..config.settings import get_settings, Settings
from ..policy.shipping_policy import (
    adjust_shipping,
    coupons_enabled,
    free_shipping_applies,
    free_shipping_threshold,
    payment_fee,
)
from ..policy.visibility_policy import is_product_visible
from .catalog import Catalog, PriceCache
from .incentives import RecalculationGuard, load_tiers, reconcile_incentive, select_tier
from .models import (
    Cart,
    CartResult,
    CheckoutResult,
    CustomerStatus,
    IncentiveTier,
    Price,
    ShippingRate,
)
from .price_resolver import resolve_price

logger = logging.getLogger(__name__)

RecalculationListener = Callable[['B2BEngine', CartResult], None]


class B2BEngine:
    """
    Core engine applying B2B pricing rules to carts.

    Resolution order for a product line:
    1. Product missing from the catalog: keep the cart price, add a warning
    2. B2B-only product for a non-B2B customer: same as missing
    3. Accepted B2B customer, simple product with a B2B price: net B2B price + tax
    4. Anything else: catalog gross price
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        catalog: Optional[Catalog] = None,
        tiers: Optional[list[IncentiveTier]] = None
    ):
        """Initialize engine with catalog and incentive tiers."""
        self.settings = settings or get_settings()
        self.catalog = catalog if catalog is not None else Catalog.from_csv(self.settings.catalog_csv)
        if tiers is None:
            tiers = load_tiers(self.settings.tiers_csv, self.settings.currency_symbol)
        self.tiers = sorted(tiers, key=lambda t: t.threshold_netto)

        self.price_cache = PriceCache()
        self.catalog.add_listener(self.price_cache.invalidate)
        self.guard = RecalculationGuard(self.settings.max_recalculation_depth)
        self._listeners: list[RecalculationListener] = []

    def reload_data(self):
        """Reload catalog and tiers from disk and drop cached prices."""
        self.catalog = Catalog.from_csv(self.settings.catalog_csv)
        self.catalog.add_listener(self.price_cache.invalidate)
        self.tiers = load_tiers(self.settings.tiers_csv, self.settings.currency_symbol)
        self.price_cache.clear()

    def add_recalculation_listener(self, listener: RecalculationListener):
        """Register a callback run after every recalculation pass."""
        self._listeners.append(listener)

    def resolve_product_price(self, product_id: str, status: CustomerStatus) -> Optional[Price]:
        """Resolve the unit price of a catalog product; None when the product is gone."""
        product_id = str(product_id).strip()

        def resolve() -> Optional[Price]:
            product = self.catalog.get_product(product_id)
            if product is None:
                return None
            return resolve_price(product, status, self.settings.rounding)

        return self.price_cache.get_or_resolve(product_id, status, resolve)

    def recalculate(self, cart: Cart, status: CustomerStatus) -> CartResult:
        """
        Recalculate cart prices and the incentive line.

        Nested calls (from listeners) past the recalculation cap return the
        cart untouched with skipped=True.
        """
        with self.guard.enter() as allowed:
            if not allowed:
                logger.debug("Skipping nested recalculation at depth %d", self.guard.depth)
                result = CartResult(
                    cart=cart,
                    customer_status=status,
                    net_subtotal=cart.net_subtotal(),
                    gross_subtotal=cart.gross_subtotal(),
                    skipped=True,
                )
                result.add_trace("Guard", "Nested recalculation skipped", str(self.guard.depth))
                return result

            result = self._recalculate(cart, status)
            for listener in self._listeners:
                listener(self, result)
            return result

    def _recalculate(self, cart: Cart, status: CustomerStatus) -> CartResult:
        trace = [("Customer", "Recalculating cart for status", status.value)]
        warnings = []

        priced_lines = []
        for line in cart.lines:
            if line.is_incentive:
                priced_lines.append(replace(line))
                continue

            product = self.catalog.get_product(line.product_id)
            if product is not None and not is_product_visible(product, status):
                warnings.append(f"Product {line.product_id} is not available for this customer, keeping cart price")
                trace.append(("Price Resolution", f"Product {line.product_id} is B2B-only", None))
                priced_lines.append(replace(line))
                continue

            price = self.resolve_product_price(line.product_id, status)
            if price is None:
                warnings.append(f"Product {line.product_id} not found, keeping cart price")
                trace.append(("Price Resolution", f"Product {line.product_id} missing from catalog", None))
                priced_lines.append(replace(line))
                continue

            priced_lines.append(replace(
                line,
                unit_gross_price=price.gross,
                unit_net_price=price.net,
            ))
            trace.append((
                "Price Resolution",
                f"{line.product_id} using {price.source} price",
                f"{price.net} net / {price.gross} gross",
            ))

        priced = Cart(lines=priced_lines)
        net_subtotal = priced.net_subtotal()
        trace.append(("Subtotal", "Net subtotal of product lines", str(net_subtotal)))

        tier = None
        if status.is_b2b_accepted:
            tier = select_tier(net_subtotal, self.tiers)
            reconciled = reconcile_incentive(priced, self.tiers, self.settings.sample_product_prefix)
            if tier:
                trace.append(("Incentive", f"Tier {tier.threshold_netto} reached", f"{tier.sample_count} samples"))
            else:
                trace.append(("Incentive", "No incentive tier reached", None))
        else:
            reconciled = Cart(lines=priced.product_lines)
            if len(reconciled.lines) != len(priced.lines):
                trace.append(("Incentive", "Incentive lines removed for non-B2B customer", None))

        result = CartResult(
            cart=reconciled,
            customer_status=status,
            net_subtotal=net_subtotal,
            gross_subtotal=reconciled.gross_subtotal(),
            tier=tier,
        )
        for step, desc, val in trace:
            result.add_trace(step, desc, val)
        for warning in warnings:
            logger.warning(warning)
            result.add_warning(warning)
        return result

    def checkout(
        self,
        cart: Cart,
        status: CustomerStatus,
        rates: list[ShippingRate],
        payment_method: Optional[str] = None
    ) -> CheckoutResult:
        """Recalculate the cart and apply shipping, fee and coupon policy."""
        cart_result = self.recalculate(cart, status)
        adjusted = adjust_shipping(cart_result.cart, status, rates, self.settings)
        threshold = free_shipping_threshold(status, self.settings)

        fees = []
        fee = payment_fee(payment_method, self.settings)
        if fee:
            fees.append(fee)
            cart_result.add_trace("Payment", f"Fee for {fee.gateway_id}", str(fee.amount))

        free_applied = free_shipping_applies(cart_result.cart, status, rates, self.settings)
        cart_result.add_trace(
            "Shipping",
            f"Gross subtotal {cart_result.cart.gross_subtotal()} vs threshold",
            str(threshold),
        )

        return CheckoutResult(
            cart_result=cart_result,
            shipping_rates=adjusted,
            fees=fees,
            coupons_enabled=coupons_enabled(status, self.settings),
            free_shipping_threshold=threshold,
            free_shipping_applied=free_applied,
        )
