"""
B2B Pricing API - cart recalculation, checkout adjustments and catalog prices.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from b2b_pricing import __version__
from b2b_pricing.api.customers_api import router as customers_router
from b2b_pricing.api.state import get_customer_service, get_engine
from b2b_pricing.api.tiers_api import router as tiers_router
from b2b_pricing.engine import B2BEngine, Cart, CartLine, CustomerStatus, ShippingRate
from b2b_pricing.engine.display import render_price_display
from b2b_pricing.policy.billing_policy import (
    BILLING_FIELD_MAP, billing_data_for, billing_prefill, editable_billing_fields, pending_notice
)
from b2b_pricing.policy.cross_sell_policy import cross_sell_ids
from b2b_pricing.policy.shipping_policy import coupons_enabled, free_shipping_threshold
from b2b_pricing.policy.visibility_policy import dynamic_pricing_enabled, is_product_visible
from b2b_pricing.services.customer_service import CustomerService

logger = logging.getLogger(__name__)

app = FastAPI(
    title="B2B Pricing API",
    description="Net B2B pricing, free-sample incentives and checkout adjustments",
    version=__version__
)

# Enable CORS for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Tier and customer administration
app.include_router(tiers_router)
app.include_router(customers_router)


class CustomerContext(BaseModel):
    """Either an explicit status or a customer id resolved through the customer store."""
    customer_id: Optional[str] = None
    status: Optional[CustomerStatus] = None


class PriceRequest(CustomerContext):
    product_id: str


class LineIn(BaseModel):
    product_id: str
    quantity: int
    unit_gross_price: Decimal = Decimal('0')
    is_incentive: bool = False
    label: Optional[str] = None
    sample_count: Optional[int] = None


class CartRequest(CustomerContext):
    lines: List[LineIn]


class RateIn(BaseModel):
    rate_id: str
    label: str
    cost: Decimal


class CheckoutRequest(CartRequest):
    rates: List[RateIn] = []
    payment_method: Optional[str] = None
    billing: dict[str, str] = {}


def resolve_status(context: CustomerContext, customers: CustomerService) -> CustomerStatus:
    if context.status is not None:
        return context.status
    return customers.get_status(context.customer_id)


def to_cart(lines: List[LineIn]) -> Cart:
    return Cart(lines=[CartLine(**line.model_dump()) for line in lines])


@app.get("/")
async def root():
    return {"status": "online", "message": "B2B Pricing API Active"}


@app.post("/price")
async def get_price(
    req: PriceRequest,
    engine: B2BEngine = Depends(get_engine),
    customers: CustomerService = Depends(get_customer_service)
):
    status = resolve_status(req, customers)
    product = engine.catalog.get_product(req.product_id)
    # B2B-only products do not exist for anyone else
    if product is None or not is_product_visible(product, status):
        raise HTTPException(status_code=404, detail=f"Product '{req.product_id}' not found")

    price = engine.resolve_product_price(req.product_id, status)
    return jsonable_encoder({
        "product_id": product.product_id,
        "status": status,
        "net": price.net,
        "gross": price.gross,
        "tax_rate": price.tax_rate,
        "source": price.source,
        "display": render_price_display(product, status, engine.settings.currency_symbol),
    })


@app.post("/cart/recalculate")
async def recalculate_cart(
    req: CartRequest,
    engine: B2BEngine = Depends(get_engine),
    customers: CustomerService = Depends(get_customer_service)
):
    status = resolve_status(req, customers)
    try:
        result = engine.recalculate(to_cart(req.lines), status)
        return jsonable_encoder(result)
    except Exception as e:
        logger.exception("Cart recalculation failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/checkout")
async def checkout(
    req: CheckoutRequest,
    engine: B2BEngine = Depends(get_engine),
    customers: CustomerService = Depends(get_customer_service)
):
    status = resolve_status(req, customers)
    rates = [ShippingRate(**rate.model_dump()) for rate in req.rates]
    try:
        result = engine.checkout(to_cart(req.lines), status, rates, req.payment_method)
        payload = jsonable_encoder(result)
        payload["fees_total"] = jsonable_encoder(result.fees_total)
        customer = customers.get_customer(req.customer_id) if req.customer_id else None
        payload["billing"] = billing_data_for(customer, status, req.billing)
        return payload
    except Exception as e:
        logger.exception("Checkout adjustment failed")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/catalog")
async def get_catalog(
    search: Optional[str] = None,
    customer_id: Optional[str] = None,
    status: Optional[CustomerStatus] = None,
    engine: B2BEngine = Depends(get_engine),
    customers: CustomerService = Depends(get_customer_service)
):
    status = status or customers.get_status(customer_id)
    products = engine.catalog.search(search, limit=200 if search else 100)

    result = {}
    for product in products:
        if not is_product_visible(product, status):
            continue
        price = engine.resolve_product_price(product.product_id, status)
        result[product.product_id] = {
            "name": product.name,
            "kind": product.kind,
            "in_stock": product.in_stock,
            "net": price.net,
            "gross": price.gross,
            "source": price.source,
        }
    return jsonable_encoder(result)


@app.get("/customer/{customer_id}/policy")
async def get_customer_policy(
    customer_id: str,
    engine: B2BEngine = Depends(get_engine),
    customers: CustomerService = Depends(get_customer_service)
):
    status = customers.get_status(customer_id)
    return jsonable_encoder({
        "customer_id": customer_id,
        "status": status,
        "coupons_enabled": coupons_enabled(status, engine.settings),
        "free_shipping_threshold": free_shipping_threshold(status, engine.settings),
        "dynamic_pricing_enabled": dynamic_pricing_enabled(status),
    })


@app.post("/cart/cross-sells")
async def get_cross_sells(
    req: CartRequest,
    engine: B2BEngine = Depends(get_engine),
    customers: CustomerService = Depends(get_customer_service)
):
    status = resolve_status(req, customers)
    product_ids = cross_sell_ids(to_cart(req.lines), engine.catalog, status)

    result = []
    for product_id in product_ids:
        product = engine.catalog.get_product(product_id)
        price = engine.resolve_product_price(product_id, status)
        result.append({
            "product_id": product_id,
            "name": product.name,
            "net": price.net,
            "gross": price.gross,
        })
    return jsonable_encoder(result)


@app.get("/customer/{customer_id}/billing")
async def get_customer_billing(
    customer_id: str,
    customers: CustomerService = Depends(get_customer_service)
):
    customer = customers.get_customer(customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail=f"Customer '{customer_id}' not found")
    return {
        "customer_id": customer_id,
        "status": customer.status,
        "prefill": billing_prefill(customer),
        "editable_fields": editable_billing_fields(BILLING_FIELD_MAP, customer.status),
        "notice": pending_notice(customer.status),
    }


@app.get("/system/status")
async def get_status(engine: B2BEngine = Depends(get_engine)):
    return {
        "engine_active": True,
        "products_loaded": len(engine.catalog),
        "tiers_count": len(engine.tiers),
        "cached_prices": len(engine.price_cache),
        "catalog_last_build": (
            engine.settings.build_report.stat().st_mtime
            if engine.settings.build_report.exists() else None
        ),
    }
