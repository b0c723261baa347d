"""
Catalog - read-only product snapshot plus the per-process price cache.

The catalog CSV is produced by data/build_catalog.py; columns:
product_id, name, kind, gross_regular_price, tax_rate, net_b2b_price,
b2b_only, in_stock, categories.
"""
import logging
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

import pandas as pd

from .models import CustomerStatus, Price, Product, ProductKind
from .price_resolver import parse_b2b_price, parse_tax_rate

logger = logging.getLogger(__name__)

CATALOG_COLUMNS = [
    'product_id', 'name', 'kind', 'gross_regular_price', 'tax_rate',
    'net_b2b_price', 'b2b_only', 'in_stock', 'categories'
]

TRUE_VALUES = ('true', '1', 'yes', 'on')


def parse_bool(value, default: bool = False) -> bool:
    """Parse a boolean from CSV string."""
    if value is None or str(value).strip() == '':
        return default
    return str(value).strip().lower() in TRUE_VALUES


def parse_categories(value) -> tuple[str, ...]:
    """Comma-separated category names, as in the storefront export."""
    if value is None:
        return ()
    return tuple(c.strip() for c in str(value).split(',') if c.strip())


def product_from_row(product_id: str, row: dict) -> Optional[Product]:
    """Build a Product from a catalog row; rows without a usable gross price are skipped."""
    try:
        gross = Decimal(str(row.get('gross_regular_price', '')).strip())
    except (InvalidOperation, ValueError):
        logger.warning("Product %s has no usable gross price, skipping", product_id)
        return None
    if not gross.is_finite():
        logger.warning("Product %s has no usable gross price, skipping", product_id)
        return None

    kind_value = str(row.get('kind', '') or 'simple').strip().lower()
    try:
        kind = ProductKind(kind_value)
    except ValueError:
        kind = ProductKind.COMPOSITE

    return Product(
        product_id=str(product_id).strip(),
        name=str(row.get('name', '') or 'N/A'),
        kind=kind,
        gross_regular_price=gross,
        tax_rate=parse_tax_rate(row.get('tax_rate')),
        net_b2b_price=parse_b2b_price(row.get('net_b2b_price')),
        b2b_only=parse_bool(row.get('b2b_only')),
        in_stock=parse_bool(row.get('in_stock'), default=True),
        categories=parse_categories(row.get('categories')),
    )


class Catalog:
    """
    Product snapshot keyed by product id.

    Owned by the external store; the engine only reads it. Writers go through
    upsert_product/remove_product so listeners (the price cache) can invalidate.
    """

    def __init__(self, products: Iterable[Product] = ()):
        self._products: dict[str, Product] = {p.product_id: p for p in products}
        self._listeners: list[Callable[[str], None]] = []

    @classmethod
    def from_csv(cls, path: Path) -> 'Catalog':
        """Load the catalog snapshot from CSV."""
        if not path.exists():
            raise FileNotFoundError(
                f"catalog.csv not found at {path}. "
                "Execute scripts/build_all.py first."
            )

        df = pd.read_csv(path, dtype=str, index_col='product_id').fillna('')
        df.index = df.index.str.strip()
        # Handle potential duplicates by taking first entry
        df = df[~df.index.duplicated(keep='first')]

        products = []
        for product_id, row in df.iterrows():
            product = product_from_row(product_id, row.to_dict())
            if product:
                products.append(product)

        logger.info("Loaded %d products from %s", len(products), path)
        return cls(products)

    def __len__(self) -> int:
        return len(self._products)

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products.values())

    def __contains__(self, product_id: str) -> bool:
        return str(product_id).strip() in self._products

    def get_product(self, product_id: str) -> Optional[Product]:
        """Look up a product; None when it no longer exists."""
        return self._products.get(str(product_id).strip())

    def add_listener(self, listener: Callable[[str], None]):
        """Register a callback invoked with the product id of every change."""
        self._listeners.append(listener)

    def upsert_product(self, product: Product):
        self._products[product.product_id] = product
        self._notify(product.product_id)

    def remove_product(self, product_id: str) -> bool:
        removed = self._products.pop(str(product_id).strip(), None)
        if removed:
            self._notify(removed.product_id)
        return removed is not None

    def search(self, term: Optional[str] = None, limit: int = 100) -> list[Product]:
        """Case-insensitive search over product id and name."""
        products = list(self._products.values())
        if term:
            needle = term.lower()
            products = [
                p for p in products
                if needle in p.product_id.lower() or needle in p.name.lower()
            ]
        return products[:limit]

    def _notify(self, product_id: str):
        for listener in self._listeners:
            listener(product_id)


class PriceCache:
    """
    Memoized price lookups for one process.

    Keyed by (product_id, status) since the price depends on the customer status.
    """

    def __init__(self):
        self._prices: dict[tuple[str, CustomerStatus], Price] = {}
        self.hits = 0
        self.misses = 0

    def get_or_resolve(
        self,
        product_id: str,
        status: CustomerStatus,
        resolver: Callable[[], Optional[Price]]
    ) -> Optional[Price]:
        key = (product_id, status)
        if key in self._prices:
            self.hits += 1
            return self._prices[key]
        self.misses += 1
        price = resolver()
        if price is not None:
            self._prices[key] = price
        return price

    def invalidate(self, product_id: str):
        """Drop every cached price of a product."""
        for key in [k for k in self._prices if k[0] == product_id]:
            del self._prices[key]

    def clear(self):
        self._prices.clear()

    def __len__(self) -> int:
        return len(self._prices)
