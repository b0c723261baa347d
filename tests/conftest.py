import os
import sys
from decimal import Decimal

import pytest

# Add src to path for internal imports
src_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src')
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from b2b_pricing.config.settings import Settings
from b2b_pricing.engine import B2BEngine, Catalog, Cart, CartLine, Product, ProductKind
from b2b_pricing.engine.incentives import default_tiers


def make_product(product_id, gross, tax="0.23", b2b=None, kind=ProductKind.SIMPLE, **kwargs):
    return Product(
        product_id=product_id,
        name=kwargs.pop('name', f"Product {product_id}"),
        kind=kind,
        gross_regular_price=Decimal(gross),
        tax_rate=Decimal(tax) if tax is not None else None,
        net_b2b_price=Decimal(b2b) if b2b is not None else None,
        **kwargs
    )


def make_cart(*items) -> Cart:
    """Cart from (product_id, quantity) pairs with placeholder prices."""
    return Cart(lines=[
        CartLine(product_id=pid, quantity=qty, unit_gross_price=Decimal('0'))
        for pid, qty in items
    ])


def priced_line(product_id, quantity, net, gross=None) -> CartLine:
    net = Decimal(net)
    return CartLine(
        product_id=product_id,
        quantity=quantity,
        unit_gross_price=Decimal(gross) if gross is not None else net,
        unit_net_price=net,
    )


@pytest.fixture
def settings(tmp_path):
    return Settings(
        project_root=tmp_path,
        catalog_csv=tmp_path / 'catalog.csv',
        tiers_csv=tmp_path / 'incentive_tiers.csv',
        customers_csv=tmp_path / 'customers.csv',
        build_report=tmp_path / 'outputs' / 'build_report.json',
        products_export=tmp_path / 'products_export.csv',
        b2b_fields_export=tmp_path / 'b2b_fields_export.csv',
        tax_rates_csv=tmp_path / 'tax_rates.csv',
    )


@pytest.fixture
def products():
    return [
        make_product("P1", "123.00", b2b="80.00"),
        make_product("P2", "100.00"),
        make_product("P3", "369.00", b2b="250.00", kind=ProductKind.COMPOSITE),
        make_product("P4", "50.00", tax=None, b2b="40.00"),
        make_product("SALON", "430.50", b2b="260.00", b2b_only=True),
        make_product("OOS", "61.50", in_stock=False),
    ]


@pytest.fixture
def catalog(products):
    return Catalog(products)


@pytest.fixture
def tiers():
    return default_tiers()


@pytest.fixture
def engine(settings, catalog, tiers):
    return B2BEngine(settings=settings, catalog=catalog, tiers=tiers)
