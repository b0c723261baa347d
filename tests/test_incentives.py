from decimal import Decimal

import pytest

from b2b_pricing.engine.incentives import (
    RecalculationGuard,
    build_incentive_line,
    default_tiers,
    load_tiers,
    reconcile_incentive,
    sample_product_id,
    select_tier,
)
from b2b_pricing.engine.models import Cart, CartLine

from conftest import priced_line


def incentive_lines(cart):
    return [line for line in cart.lines if line.is_incentive]


@pytest.mark.parametrize("subtotal,expected_samples", [
    ("0", None),
    ("999.99", None),
    ("1000.00", 5),
    ("1999.99", 5),
    ("2000", 10),
    ("3000.00", 15),
    ("4999.99", 15),
    ("5000", 20),
    ("25000", 20),
])
def test_select_tier_boundaries(tiers, subtotal, expected_samples):
    tier = select_tier(Decimal(subtotal), tiers)
    if expected_samples is None:
        assert tier is None
    else:
        assert tier.sample_count == expected_samples


def test_sample_count_never_decreases(tiers):
    previous = 0
    for step in range(0, 6001, 125):
        tier = select_tier(Decimal(step), tiers)
        count = tier.sample_count if tier else 0
        assert count >= previous, f"Samples dropped at subtotal {step}"
        previous = count


def test_select_tier_ignores_input_order(tiers):
    assert select_tier(Decimal("2500"), list(reversed(tiers))).sample_count == 10


def test_incentive_appended_at_threshold(tiers):
    """Net subtotal exactly 1000.00 earns the 5-sample bundle."""
    cart = Cart(lines=[priced_line("P1", 10, "100.00")])

    result = reconcile_incentive(cart, tiers)

    lines = incentive_lines(result)
    assert len(lines) == 1
    assert lines[0].sample_count == 5
    assert lines[0].quantity == 1
    assert lines[0].unit_gross_price == Decimal("0.00")
    assert lines[0].product_id == "b2b-sample-1000"
    assert lines[0].label == tiers[0].label


def test_incentive_removed_below_threshold(tiers):
    stale = build_incentive_line(tiers[0])
    cart = Cart(lines=[priced_line("P1", 1, "999.99"), stale])

    result = reconcile_incentive(cart, tiers)

    assert incentive_lines(result) == []
    assert [line.product_id for line in result.lines] == ["P1"]


def test_stale_tier_replaced_in_place(tiers):
    """A 5-sample line in a 2000+ cart becomes the 10-sample line at the same position."""
    cart = Cart(lines=[
        priced_line("P1", 10, "100.00"),
        build_incentive_line(tiers[0]),
        priced_line("P2", 10, "100.00"),
    ])

    result = reconcile_incentive(cart, tiers)

    assert [line.product_id for line in result.lines] == ["P1", "b2b-sample-2000", "P2"]
    assert result.lines[1].sample_count == 10


def test_incentive_quantity_pinned_to_one(tiers):
    line = build_incentive_line(tiers[0])
    line.quantity = 4
    cart = Cart(lines=[priced_line("P1", 12, "100.00"), line])

    result = reconcile_incentive(cart, tiers)

    assert incentive_lines(result)[0].quantity == 1


def test_duplicate_incentive_lines_collapse(tiers):
    cart = Cart(lines=[
        priced_line("P1", 30, "100.00"),
        build_incentive_line(tiers[0]),
        build_incentive_line(tiers[1]),
        build_incentive_line(tiers[2]),
    ])

    result = reconcile_incentive(cart, tiers)

    lines = incentive_lines(result)
    assert len(lines) == 1
    assert lines[0].sample_count == 15


def test_reconcile_is_idempotent(tiers):
    cart = Cart(lines=[priced_line("P1", 21, "100.00"), priced_line("P2", 3, "33.33")])

    once = reconcile_incentive(cart, tiers)
    twice = reconcile_incentive(once, tiers)

    assert once == twice


def test_reconcile_does_not_mutate_input(tiers):
    line = build_incentive_line(tiers[0])
    line.quantity = 3
    cart = Cart(lines=[priced_line("P1", 10, "100.00"), line])

    reconcile_incentive(cart, tiers)

    assert cart.lines[1].quantity == 3


def test_incentive_lines_do_not_count_toward_subtotal(tiers):
    """A tampered incentive line priced at 5000 cannot unlock a higher tier."""
    tampered = CartLine(
        product_id="b2b-sample-5000",
        quantity=1,
        unit_gross_price=Decimal("5000"),
        unit_net_price=Decimal("5000"),
        is_incentive=True,
    )
    cart = Cart(lines=[priced_line("P1", 10, "100.00"), tampered])

    assert cart.net_subtotal() == Decimal("1000.00")
    assert incentive_lines(reconcile_incentive(cart, tiers))[0].sample_count == 5


def test_empty_cart_has_no_incentive(tiers):
    assert reconcile_incentive(Cart(), tiers).lines == []


def test_sample_product_id_uses_configured_prefix(tiers):
    assert sample_product_id(tiers[1]) == "b2b-sample-2000"
    assert sample_product_id(tiers[1], "probki") == "probki-2000"


def test_load_tiers_from_csv(tmp_path):
    path = tmp_path / "tiers.csv"
    path.write_text(
        "threshold_netto,sample_count,label,active\n"
        "1500,8,,true\n"
        "500,3,Starter mix,true\n"
        "abc,4,broken,true\n"
        "800,5,Disabled,false\n",
        encoding="utf-8",
    )

    tiers = load_tiers(path)

    assert [t.threshold_netto for t in tiers] == [Decimal("500"), Decimal("1500")]
    assert tiers[0].label == "Starter mix"
    assert tiers[1].label == "Mix próbek, 8 próbek - przy zamówieniu 1500 zł"


def test_load_tiers_falls_back_to_defaults(tmp_path):
    assert load_tiers(tmp_path / "missing.csv") == default_tiers()
    assert load_tiers(None) == default_tiers()
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    assert load_tiers(empty) == default_tiers()


def test_load_tiers_skips_non_positive_rows(tmp_path):
    path = tmp_path / "tiers.csv"
    path.write_text(
        "threshold_netto,sample_count,label,active\n"
        "0,5,,true\n"
        "-500,5,,true\n"
        "1000,-1,,true\n"
        "1500,0,,true\n"
        "2000,10,,true\n",
        encoding="utf-8",
    )

    assert [t.threshold_netto for t in load_tiers(path)] == [Decimal("2000")]


def test_existing_tier_file_without_tiers_grants_nothing(tmp_path):
    """A table emptied by the admin stays empty instead of reviving the defaults."""
    path = tmp_path / "tiers.csv"
    path.write_text("threshold_netto,sample_count,label,active\n", encoding="utf-8")

    assert load_tiers(path) == []


def test_recalculation_guard_caps_depth():
    guard = RecalculationGuard(max_depth=2)
    allowed = []

    with guard.enter() as first:
        allowed.append(first)
        with guard.enter() as second:
            allowed.append(second)
            with guard.enter() as third:
                allowed.append(third)

    assert allowed == [True, True, False]
    assert guard.depth == 0


def test_recalculation_guard_resets_after_error():
    guard = RecalculationGuard(max_depth=1)

    with pytest.raises(RuntimeError):
        with guard.enter():
            raise RuntimeError("listener failed")

    with guard.enter() as allowed:
        assert allowed
