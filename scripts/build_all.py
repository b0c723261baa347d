#!/usr/bin/env python
"""
Build pipeline - builds the catalog snapshot and runs the test suite.

Usage:
    python scripts/build_all.py
"""
import logging
import subprocess
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from b2b_pricing.data.build_catalog import build_master_catalog


def main():
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    print("=" * 60)
    print("B2B PRICING BUILD PIPELINE")
    print("=" * 60)
    print()

    print("[1/2] Building catalog snapshot...")
    report = build_master_catalog(verbose=True)

    if report["status"] != "success":
        print("\n❌ BUILD FAILED")
        for error in report["errors"]:
            print(f"  ERROR: {error}")
        sys.exit(1)

    print()
    print("[2/2] Running tests...")

    test_result = subprocess.run(
        [sys.executable, '-m', 'pytest', 'tests', '-q', '--tb=short'],
        cwd=Path(__file__).parent.parent
    )

    if test_result.returncode != 0:
        print("\n❌ TESTS FAILED")
        sys.exit(1)

    metrics = report['metrics']
    print()
    print("=" * 60)
    print("✅ BUILD COMPLETE")
    print("=" * 60)
    print()
    print("Summary:")
    print(f"  Products: {metrics['final_product_count']}")
    print(f"  Duplicates removed: {metrics['duplicates_removed']}")
    print(f"  Missing price: {metrics['missing_price']}")
    print(f"  Untaxed: {metrics['untaxed_products']}")
    coverage = metrics.get('b2b_coverage')
    if coverage:
        print(f"  B2B prices: {coverage['coverage_pct']}% ({coverage['priced_products']} products)")


if __name__ == "__main__":
    main()
