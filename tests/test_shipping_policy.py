from decimal import Decimal

from b2b_pricing.engine.models import Cart, CustomerStatus, ShippingRate
from b2b_pricing.policy.shipping_policy import (
    adjust_shipping,
    coupons_enabled,
    filter_payment_gateways,
    free_shipping_threshold,
    matches_carrier,
    payment_fee,
    shipping_progress_bar,
)

from conftest import priced_line


def gross_cart(amount):
    return Cart(lines=[priced_line("P1", 1, amount, gross=amount)])


def rates():
    return [
        ShippingRate(rate_id="inpost_locker", label="InPost Paczkomaty", cost=Decimal("12.99")),
        ShippingRate(rate_id="inpost_courier", label="INPOST Kurier", cost=Decimal("16.99")),
        ShippingRate(rate_id="dpd", label="Kurier DPD", cost=Decimal("19.99")),
    ]


def costs(adjusted):
    return {rate.rate_id: rate.cost for rate in adjusted}


def test_thresholds_by_status(settings):
    assert free_shipping_threshold(CustomerStatus.B2B_ACCEPTED, settings) == Decimal("1000")
    assert free_shipping_threshold(CustomerStatus.B2B_PENDING, settings) == Decimal("600")
    assert free_shipping_threshold(CustomerStatus.GUEST, settings) == Decimal("600")


def test_b2b_at_threshold_gets_free_inpost(settings):
    adjusted = adjust_shipping(gross_cart("1000.00"), CustomerStatus.B2B_ACCEPTED, rates(), settings)

    assert costs(adjusted) == {
        "inpost_locker": Decimal("0.00"),
        "inpost_courier": Decimal("0.00"),
        "dpd": Decimal("19.99"),
    }


def test_650_gross_free_for_b2c_not_for_b2b(settings):
    b2c = adjust_shipping(gross_cart("650.00"), CustomerStatus.B2C, rates(), settings)
    b2b = adjust_shipping(gross_cart("650.00"), CustomerStatus.B2B_ACCEPTED, rates(), settings)

    assert costs(b2c)["inpost_locker"] == Decimal("0.00")
    assert costs(b2b)["inpost_locker"] == Decimal("12.99")


def test_below_threshold_rates_unchanged(settings):
    original = rates()

    adjusted = adjust_shipping(gross_cart("599.99"), CustomerStatus.GUEST, original, settings)

    assert costs(adjusted) == costs(original)
    assert adjusted[0] is not original[0]


def test_adjust_shipping_does_not_mutate_rates(settings):
    original = rates()

    adjust_shipping(gross_cart("2000.00"), CustomerStatus.B2C, original, settings)

    assert original[0].cost == Decimal("12.99")


def test_carrier_pattern_is_configurable(settings):
    settings.carrier_label_pattern = "dpd"

    adjusted = adjust_shipping(gross_cart("700.00"), CustomerStatus.B2C, rates(), settings)

    assert costs(adjusted)["dpd"] == Decimal("0.00")
    assert costs(adjusted)["inpost_locker"] == Decimal("12.99")


def test_matches_carrier_case_insensitive():
    rate = ShippingRate(rate_id="x", label="Paczkomaty InPost 24/7", cost=Decimal("1"))
    assert matches_carrier(rate, "inpost")
    assert matches_carrier(rate, "INPOST")
    assert not matches_carrier(rate, "dpd")
    assert not matches_carrier(rate, "")


def test_progress_bar_amount(settings):
    bar = shipping_progress_bar(CustomerStatus.B2B_ACCEPTED, settings)
    assert bar == {
        "shipping_progress_bar_calculation": "custom",
        "shipping_progress_bar_amount": Decimal("1000"),
    }


def test_pay_on_delivery_fee(settings):
    fee = payment_fee("cod", settings)

    assert fee.amount == Decimal("10.00")
    assert fee.label == "Opłata za pobranie"
    assert payment_fee("bacs", settings) is None
    assert payment_fee(None, settings) is None


def test_fee_amount_from_overrides(settings):
    settings.apply_overrides({"payment_fees": {"cod": ["Pobranie", "12.5"]}})

    assert payment_fee("cod", settings).amount == Decimal("12.5")


def test_coupons_disabled_for_b2b_only(settings):
    assert coupons_enabled(CustomerStatus.B2B_ACCEPTED, settings) is False
    assert coupons_enabled(CustomerStatus.B2B_PENDING, settings) is True
    assert coupons_enabled(CustomerStatus.B2C, settings) is True

    settings.disable_coupons_for_b2b = False
    assert coupons_enabled(CustomerStatus.B2B_ACCEPTED, settings) is True


def test_filter_payment_gateways(settings):
    gateways = {"cod": "Za pobraniem", "bacs": "Przelew bankowy", "p24": "Przelewy24"}

    b2c = filter_payment_gateways(gateways, CustomerStatus.B2C, settings)
    b2b = filter_payment_gateways(gateways, CustomerStatus.B2B_ACCEPTED, settings)

    assert b2c == {"cod": "Za pobraniem", "p24": "Przelewy24"}
    assert b2b["bacs"] == "Przelew bankowy z terminem 14 dni"
    assert len(b2b) == 3
