"""
Incentive reconciliation - tiered free-sample line for B2B carts.

The incentive line is a pure function of the net subtotal of product lines:
one line, quantity 1, matching the highest tier whose threshold is met.
"""
import logging
from contextlib import contextmanager
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Iterator, Optional

import pandas as pd

from .models import Cart, CartLine, IncentiveTier

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_PREFIX = 'b2b-sample'


def sample_label(threshold: Decimal, sample_count: int, currency: str = 'zł') -> str:
    """Default display name of a sample bundle."""
    return f"Mix próbek, {sample_count} próbek - przy zamówieniu {threshold:f} {currency}"


def default_tiers(currency: str = 'zł') -> list[IncentiveTier]:
    """Fallback tier table used when no tier file is configured."""
    table = [(1000, 5), (2000, 10), (3000, 15), (5000, 20)]
    return [
        IncentiveTier(
            threshold_netto=Decimal(threshold),
            sample_count=count,
            label=sample_label(Decimal(threshold), count, currency),
        )
        for threshold, count in table
    ]


def load_tiers(path: Optional[Path], currency: str = 'zł') -> list[IncentiveTier]:
    """
    Load the tier table from CSV (threshold_netto, sample_count, label).

    Falls back to default_tiers() only when no tier file exists. An existing
    file is authoritative: a table with every tier deleted or deactivated
    grants no samples. Inactive rows and rows with a non-numeric or
    non-positive threshold or sample count are skipped.
    """
    if path is None or not path.exists() or path.stat().st_size == 0:
        logger.info("No incentive tier file, using default tiers")
        return default_tiers(currency)

    df = pd.read_csv(path, dtype=str).fillna('')
    df.columns = [c.strip() for c in df.columns]

    tiers = []
    for _, row in df.iterrows():
        if row.get('active', '').strip().lower() == 'false':
            continue
        try:
            threshold = Decimal(row['threshold_netto'].strip())
            count = int(row['sample_count'].strip())
        except (ArithmeticError, KeyError, ValueError):
            threshold = None
        if threshold is None or not threshold.is_finite() or threshold <= 0 or count <= 0:
            logger.warning("Skipping invalid tier row: %s", dict(row))
            continue
        label = row.get('label', '').strip() or sample_label(threshold, count, currency)
        tiers.append(IncentiveTier(threshold_netto=threshold, sample_count=count, label=label))

    if not tiers:
        logger.warning("Incentive tier file %s has no active tiers", path)
    return sorted(tiers, key=lambda t: t.threshold_netto)


def select_tier(net_subtotal: Decimal, tiers: Iterable[IncentiveTier]) -> Optional[IncentiveTier]:
    """Highest tier whose threshold is at or below the subtotal (inclusive)."""
    selected = None
    for tier in tiers:
        if tier.threshold_netto <= net_subtotal:
            if selected is None or tier.threshold_netto > selected.threshold_netto:
                selected = tier
    return selected


def sample_product_id(tier: IncentiveTier, prefix: str = DEFAULT_SAMPLE_PREFIX) -> str:
    """Stable product id of the sample bundle for a tier."""
    return f"{prefix}-{tier.threshold_netto.normalize():f}"


def build_incentive_line(tier: IncentiveTier, prefix: str = DEFAULT_SAMPLE_PREFIX) -> CartLine:
    return CartLine(
        product_id=sample_product_id(tier, prefix),
        quantity=1,
        unit_gross_price=Decimal('0.00'),
        unit_net_price=Decimal('0.00'),
        is_incentive=True,
        label=tier.label,
        sample_count=tier.sample_count,
    )


def reconcile_incentive(
    cart: Cart,
    tiers: Iterable[IncentiveTier],
    prefix: str = DEFAULT_SAMPLE_PREFIX
) -> Cart:
    """
    Return a cart holding exactly the incentive line the subtotal earns.

    Product lines are kept in order. The first existing incentive line is
    updated in place (tier, label, quantity pinned to 1); extra incentive
    lines are dropped; a missing one is appended.
    """
    tier = select_tier(cart.net_subtotal(), tiers)
    target = build_incentive_line(tier, prefix) if tier else None

    lines = []
    placed = False
    for line in cart.lines:
        if not line.is_incentive:
            lines.append(replace(line))
            continue
        if target is None or placed:
            logger.debug("Removing incentive line %s", line.product_id)
            continue
        if line.quantity != 1:
            logger.debug("Pinning incentive quantity %s back to 1", line.quantity)
        lines.append(replace(target))
        placed = True

    if target is not None and not placed:
        lines.append(target)

    return Cart(lines=lines)


class RecalculationGuard:
    """
    Caps re-entrant cart recalculation within one cycle.

    Recalculation listeners may trigger another recalculation; passes nested
    deeper than max_depth are skipped.
    """

    def __init__(self, max_depth: int = 2):
        self.max_depth = max_depth
        self._depth = 0

    @property
    def depth(self) -> int:
        return self._depth

    @contextmanager
    def enter(self) -> Iterator[bool]:
        """Yield True when this pass may run."""
        self._depth += 1
        try:
            yield self._depth <= self.max_depth
        finally:
            self._depth -= 1
