"""
Shared engine and services used by the API routers.

Built lazily from settings; tests swap them through app.dependency_overrides.
"""
from typing import Optional

from ..config.settings import get_settings
from ..engine import B2BEngine
from ..services.customer_service import CustomerService
from ..services.tiers_service import TiersService

_engine: Optional[B2BEngine] = None
_customer_service: Optional[CustomerService] = None
_tiers_service: Optional[TiersService] = None


def get_engine() -> B2BEngine:
    global _engine
    if _engine is None:
        _engine = B2BEngine()
    return _engine


def get_customer_service() -> CustomerService:
    global _customer_service
    if _customer_service is None:
        settings = get_settings()
        _customer_service = CustomerService(settings.customers_csv, settings=settings)
    return _customer_service


def get_tiers_service() -> TiersService:
    global _tiers_service
    if _tiers_service is None:
        settings = get_settings()
        _tiers_service = TiersService(settings.tiers_csv, currency=settings.currency_symbol)
    return _tiers_service
