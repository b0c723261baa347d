"""
Centralized settings and path configuration for the B2B pricing engine.
"""
import json
import logging
from decimal import Decimal, ROUND_HALF_UP
from pathlib import Path
from dataclasses import dataclass, field, fields
from typing import Optional

logger = logging.getLogger(__name__)

SETTINGS_FILE = 'b2b_settings.json'


def get_project_root() -> Path:
    """Get the project root directory (where the catalog or settings file lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / SETTINGS_FILE).exists() or (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 3 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def default_data_dir() -> Path:
    """Directory holding the sample catalog, tiers and customers shipped with the package."""
    return Path(__file__).resolve().parent.parent / 'data'


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path

    # Input files
    catalog_csv: Path
    tiers_csv: Path
    customers_csv: Path

    # Output files
    build_report: Path

    # Catalog build inputs
    products_export: Optional[Path] = None
    b2b_fields_export: Optional[Path] = None
    tax_rates_csv: Optional[Path] = None

    # Free shipping
    b2b_free_shipping_threshold: Decimal = Decimal('1000')
    default_free_shipping_threshold: Decimal = Decimal('600')
    carrier_label_pattern: str = 'inpost'

    # Payment: gateway id -> (label, fee amount)
    pay_on_delivery_gateway: str = 'cod'
    payment_fees: dict[str, tuple[str, Decimal]] = field(default_factory=lambda: {
        'cod': ('Opłata za pobranie', Decimal('10.00')),
    })
    # Gateways shown only to accepted B2B customers, with their B2B title
    b2b_only_gateways: dict[str, str] = field(default_factory=lambda: {
        'bacs': 'Przelew bankowy z terminem 14 dni',
    })

    # Coupons
    disable_coupons_for_b2b: bool = True

    # Money
    currency_symbol: str = 'zł'
    rounding: str = ROUND_HALF_UP

    # Incentive samples
    sample_product_prefix: str = 'b2b-sample'
    max_recalculation_depth: int = 2

    # Registration
    b2b_registration_form_id: int = 1
    admin_email: str = 'admin@example.com'

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure, applying b2b_settings.json overrides."""
        root = project_root or get_project_root()
        data_dir = root / 'data'
        if not (data_dir / 'catalog.csv').exists():
            data_dir = default_data_dir()

        settings = cls(
            project_root=root,
            catalog_csv=data_dir / 'catalog.csv',
            tiers_csv=data_dir / 'incentive_tiers.csv',
            customers_csv=data_dir / 'customers.csv',
            build_report=root / 'outputs' / 'build_report.json',
            products_export=root / 'products_export.csv',
            b2b_fields_export=root / 'b2b_fields_export.csv',
            tax_rates_csv=root / 'tax_rates.csv',
        )

        overrides_path = root / SETTINGS_FILE
        if overrides_path.exists():
            with open(overrides_path, 'r', encoding='utf-8') as f:
                settings.apply_overrides(json.load(f))
            logger.info("Loaded settings overrides from %s", overrides_path)

        return settings

    def apply_overrides(self, overrides: dict):
        """Apply scalar overrides (thresholds, patterns, flags) from a plain dict."""
        known = {f.name: f for f in fields(self)}
        for key, value in overrides.items():
            if key not in known:
                logger.warning("Ignoring unknown setting '%s'", key)
                continue
            current = getattr(self, key)
            if isinstance(current, Decimal):
                value = Decimal(str(value))
            elif isinstance(current, Path) or key.endswith(('_csv', '_export', '_report')):
                value = self.project_root / value
            elif key == 'payment_fees':
                value = {
                    gateway: (label, Decimal(str(amount)))
                    for gateway, (label, amount) in value.items()
                }
            setattr(self, key, value)

    def free_shipping_threshold(self, b2b_accepted: bool) -> Decimal:
        """Gross subtotal from which carrier rates become free."""
        if b2b_accepted:
            return self.b2b_free_shipping_threshold
        return self.default_free_shipping_threshold


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings
