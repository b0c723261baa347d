"""
Data models for the B2B pricing engine.

Uses dataclasses for structured, type-safe data representation.
Money values are Decimals rounded to two places.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from ..exceptions import InvalidStatusTransition

CENT = Decimal('0.01')


def to_money(value, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round a numeric value to two decimal places."""
    return Decimal(str(value)).quantize(CENT, rounding=rounding)


class CustomerStatus(str, Enum):
    """B2B status of a customer account."""
    GUEST = "guest"
    B2C = "b2c"
    B2B_PENDING = "b2b_pending"
    B2B_ACCEPTED = "b2b_accepted"

    @property
    def is_b2b_accepted(self) -> bool:
        return self is CustomerStatus.B2B_ACCEPTED

    def transition(self, event: str) -> 'CustomerStatus':
        """
        Apply a workflow event and return the new status.

        Raises InvalidStatusTransition for any pair not in STATUS_TRANSITIONS.
        """
        try:
            return STATUS_TRANSITIONS[(self, event)]
        except KeyError:
            raise InvalidStatusTransition(self, event) from None


SUBMIT_B2B_APPLICATION = "submit_b2b_application"
APPROVE = "approve"

STATUS_TRANSITIONS = {
    (CustomerStatus.GUEST, SUBMIT_B2B_APPLICATION): CustomerStatus.B2B_PENDING,
    (CustomerStatus.B2B_PENDING, APPROVE): CustomerStatus.B2B_ACCEPTED,
}


class ProductKind(str, Enum):
    SIMPLE = "simple"
    COMPOSITE = "composite"


@dataclass(frozen=True)
class Product:
    """A catalog product as seen by the pricing engine."""
    product_id: str
    name: str
    kind: ProductKind
    gross_regular_price: Decimal
    tax_rate: Decimal = Decimal('0')
    net_b2b_price: Optional[Decimal] = None
    b2b_only: bool = False
    in_stock: bool = True
    categories: tuple[str, ...] = ()


@dataclass(frozen=True)
class Price:
    """Resolved unit price for one product and customer status."""
    net: Decimal
    gross: Decimal
    tax_rate: Decimal
    source: str  # "b2b" or "catalog"


@dataclass
class CartLine:
    """A single line in a cart."""
    product_id: str
    quantity: int
    unit_gross_price: Decimal
    unit_net_price: Optional[Decimal] = None
    is_incentive: bool = False
    label: Optional[str] = None
    sample_count: Optional[int] = None

    @property
    def net_amount(self) -> Optional[Decimal]:
        """Net line amount; None when the net unit price is unknown."""
        if self.unit_net_price is None:
            return None
        return self.unit_net_price * self.quantity

    @property
    def gross_amount(self) -> Decimal:
        return self.unit_gross_price * self.quantity


@dataclass
class Cart:
    """Ordered cart lines; holds at most one incentive line after reconciliation."""
    lines: list[CartLine] = field(default_factory=list)

    @property
    def product_lines(self) -> list[CartLine]:
        return [line for line in self.lines if not line.is_incentive]

    @property
    def incentive_line(self) -> Optional[CartLine]:
        for line in self.lines:
            if line.is_incentive:
                return line
        return None

    def net_subtotal(self) -> Decimal:
        """
        Net subtotal of product lines.

        Incentive lines never count. Lines without a net unit price (unpriced
        or unavailable products) are left out.
        """
        amounts = [line.net_amount for line in self.product_lines]
        return to_money(sum((a for a in amounts if a is not None), Decimal('0')))

    def gross_subtotal(self) -> Decimal:
        """Gross subtotal (tax included) of product lines."""
        return to_money(sum((line.gross_amount for line in self.product_lines), Decimal('0')))


@dataclass(frozen=True)
class IncentiveTier:
    """Free-sample tier unlocked by a net cart subtotal."""
    threshold_netto: Decimal
    sample_count: int
    label: str


@dataclass
class ShippingRate:
    """A candidate shipping rate offered at checkout."""
    rate_id: str
    label: str
    cost: Decimal


@dataclass(frozen=True)
class Fee:
    """A checkout fee line (e.g. pay-on-delivery surcharge)."""
    gateway_id: str
    label: str
    amount: Decimal


@dataclass
class TraceStep:
    """A single step in the resolution trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class CartResult:
    """Complete result of a cart recalculation."""
    cart: Cart
    customer_status: CustomerStatus
    net_subtotal: Decimal
    gross_subtotal: Decimal
    tier: Optional[IncentiveTier] = None
    skipped: bool = False
    warnings: list[str] = field(default_factory=list)
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the result-level trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def add_warning(self, warning: str):
        """Add a result-level warning."""
        if warning not in self.warnings:
            self.warnings.append(warning)

    def get_trace_text(self) -> str:
        """Get human-readable result trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"• {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"• {t.step}: {t.description}")
        return "\n".join(lines)


@dataclass
class CheckoutResult:
    """Checkout-stage adjustments for a recalculated cart."""
    cart_result: CartResult
    shipping_rates: list[ShippingRate]
    fees: list[Fee]
    coupons_enabled: bool
    free_shipping_threshold: Decimal
    free_shipping_applied: bool

    @property
    def fees_total(self) -> Decimal:
        return sum((fee.amount for fee in self.fees), Decimal('0'))
