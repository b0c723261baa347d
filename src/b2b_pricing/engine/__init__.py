"""Engine subpackage - core B2B pricing and incentive logic."""
from .b2b_engine import B2BEngine
from .catalog import Catalog
from .models import Cart, CartLine, CartResult, CustomerStatus, Product, ProductKind, ShippingRate

__all__ = [
    'B2BEngine', 'Catalog', 'Cart', 'CartLine', 'CartResult',
    'CustomerStatus', 'Product', 'ProductKind', 'ShippingRate'
]
