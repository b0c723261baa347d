"""
B2B Pricing Package

Business-to-business pricing layer for a consumer storefront.
Resolves net B2B prices, tiered free-sample incentives and shipping/payment
adjustments using Catalog → Price → Cart → Shipping pipeline.
"""

__version__ = "1.0.0"
