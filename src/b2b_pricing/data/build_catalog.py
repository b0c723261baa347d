"""
Catalog Builder - Merges the storefront product export, B2B field export and tax rates.

Produces the catalog snapshot read by the engine with:
- Configuration-driven paths
- Build report generation
- Structured logging
"""
import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from ..config.settings import get_settings, Settings
from ..engine.catalog import CATALOG_COLUMNS

logger = logging.getLogger(__name__)

# Storefront export column -> catalog column
PRODUCT_EXPORT_COLUMNS = {
    'ID': 'product_id',
    'Name': 'name',
    'Type': 'kind',
    'Regular price': 'gross_regular_price',
    'Tax class': 'tax_class',
    'In stock?': 'in_stock',
}

CATEGORIES_COLUMN = 'Categories'

# B2B custom field export column -> catalog column
B2B_FIELD_COLUMNS = {
    'product_id': 'product_id',
    'justb2b_price': 'net_b2b_price',
    'justb2b_only_visible': 'b2b_only',
}


def get_file_hash(path: Path) -> str:
    """Get SHA256 hash of a file."""
    if not path.exists():
        return ""
    with open(path, 'rb') as f:
        return hashlib.sha256(f.read()).hexdigest()[:12]


def load_tax_rates(path: Optional[Path]) -> dict[str, float]:
    """
    Tax class -> rate in 0..1.

    The file lists rates in percent (tax_class, rate); the first rate of a class wins.
    The empty class is the standard rate.
    """
    if path is None or not path.exists():
        return {}
    df = pd.read_csv(path, dtype=str).fillna('')
    rates = {}
    for _, row in df.iterrows():
        tax_class = row['tax_class'].strip().lower()
        if tax_class in rates:
            continue
        rate = pd.to_numeric(row['rate'], errors='coerce')
        if pd.notna(rate):
            rates[tax_class] = float(rate) / 100
    return rates


def build_master_catalog(settings: Optional[Settings] = None, verbose: bool = True) -> dict:
    """
    Build the catalog snapshot from the storefront exports.

    Args:
        settings: Optional settings override
        verbose: Log progress messages at INFO instead of DEBUG

    Returns:
        Build report dictionary
    """
    settings = settings or get_settings()
    log = logger.info if verbose else logger.debug

    report = {
        "timestamp": datetime.now().isoformat(),
        "status": "pending",
        "input_files": {},
        "metrics": {},
        "warnings": [],
        "errors": []
    }

    products_file = settings.products_export

    if products_file is None or not products_file.exists():
        msg = f"CRITICAL ERROR: {products_file} not found."
        report["errors"].append(msg)
        report["status"] = "failed"
        logger.error(msg)
        return report

    report["input_files"]["products_export"] = {
        "path": str(products_file),
        "hash": get_file_hash(products_file)
    }

    try:
        df_products = pd.read_csv(products_file, dtype=str)
        catalog = df_products[list(PRODUCT_EXPORT_COLUMNS)].rename(columns=PRODUCT_EXPORT_COLUMNS)
        # Categories are optional in older exports
        catalog['categories'] = df_products[CATEGORIES_COLUMN] if CATEGORIES_COLUMN in df_products.columns else ''
        catalog['product_id'] = catalog['product_id'].str.strip()
        catalog = catalog.dropna(subset=['product_id'])

        report["metrics"]["initial_product_count"] = len(catalog)

        # Remove duplicate ids, keeping rows with actual names
        duplicates_before = catalog['product_id'].duplicated().sum()
        catalog = catalog.sort_values('name', ascending=False).drop_duplicates('product_id')

        report["metrics"]["duplicates_removed"] = int(duplicates_before)
        if duplicates_before > 0:
            log("Removed %d duplicate products (kept rows with names)", duplicates_before)

    except (KeyError, ValueError, pd.errors.ParserError) as e:
        msg = f"ERROR: Failed to process {products_file}. {e}"
        report["errors"].append(msg)
        report["status"] = "failed"
        logger.error(msg)
        return report

    catalog['kind'] = catalog['kind'].fillna('simple').str.strip().str.lower()
    catalog.loc[catalog['kind'] != 'simple', 'kind'] = 'composite'
    catalog['in_stock'] = catalog['in_stock'].fillna('1').str.strip().isin(['1', 'yes', 'true', 'instock'])
    catalog['categories'] = catalog['categories'].fillna('')

    # Tax rates by class
    tax_rates = load_tax_rates(settings.tax_rates_csv)
    if tax_rates:
        report["input_files"]["tax_rates"] = {
            "path": str(settings.tax_rates_csv),
            "hash": get_file_hash(settings.tax_rates_csv)
        }
    else:
        report["warnings"].append("WARNING: tax rates not found, products are untaxed")
        log("Tax rates not found - products are untaxed")

    tax_class = catalog['tax_class'].fillna('').str.strip().str.lower()
    catalog['tax_rate'] = tax_class.map(tax_rates).fillna(0.0)
    report["metrics"]["untaxed_products"] = int((catalog['tax_rate'] == 0).sum())

    # B2B fields (net price and visibility)
    fields_file = settings.b2b_fields_export
    if fields_file is not None and fields_file.exists():
        report["input_files"]["b2b_fields_export"] = {
            "path": str(fields_file),
            "hash": get_file_hash(fields_file)
        }
        df_fields = pd.read_csv(fields_file, dtype=str)
        df_fields = df_fields[list(B2B_FIELD_COLUMNS)].rename(columns=B2B_FIELD_COLUMNS)
        df_fields['product_id'] = df_fields['product_id'].str.strip()
        df_fields = df_fields.drop_duplicates('product_id')

        catalog = pd.merge(catalog, df_fields, on='product_id', how='left')

        net_prices = pd.to_numeric(catalog['net_b2b_price'], errors='coerce')
        # Non-numeric and non-positive B2B prices count as absent
        catalog['net_b2b_price'] = net_prices.where(net_prices > 0)
        catalog['b2b_only'] = catalog['b2b_only'].fillna('').str.strip().str.lower() == 'yes'

        priced = catalog['net_b2b_price'].notna() & (catalog['kind'] == 'simple')
        report["metrics"]["b2b_coverage"] = {
            "priced_products": int(priced.sum()),
            "coverage_pct": round(priced.sum() / max(len(catalog), 1) * 100, 1)
        }
        log("Integrated B2B fields. Coverage: %s%%", report["metrics"]["b2b_coverage"]["coverage_pct"])
    else:
        catalog['net_b2b_price'] = None
        catalog['b2b_only'] = False
        report["warnings"].append("WARNING: B2B field export not found")
        log("B2B field export not found - no B2B prices")

    report["metrics"]["final_product_count"] = len(catalog)

    # Check for missing gross prices
    missing_price = pd.to_numeric(catalog['gross_regular_price'], errors='coerce').isna().sum()
    report["metrics"]["missing_price"] = int(missing_price)
    if missing_price > 0:
        report["warnings"].append(f"{missing_price} products have no regular price")

    # Save catalog
    output_path = settings.catalog_csv
    output_path.parent.mkdir(parents=True, exist_ok=True)
    catalog[CATALOG_COLUMNS].to_csv(output_path, index=False)
    report["output_file"] = str(output_path)
    report["status"] = "success"

    log("PROCESS COMPLETE: %s generated with %d unique products.", output_path, len(catalog))

    # Save build report
    report_path = settings.build_report
    report_path.parent.mkdir(parents=True, exist_ok=True)
    with open(report_path, 'w') as f:
        json.dump(report, f, indent=2)

    log("Build report saved to: %s", report_path)

    return report


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    build_master_catalog()
