"""
Customers API - FastAPI router for customer status and B2B applications.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..engine.models import CustomerStatus
from ..exceptions import CustomerNotFoundError, InvalidStatusTransition
from ..services.customer_service import BUSINESS_FIELDS, Customer, CustomerService
from .state import get_customer_service

router = APIRouter(prefix="/api/customers", tags=["customers"])


class RegistrationRequest(BaseModel):
    """Request model for a registration form submission."""
    customer_id: str
    email: str
    display_name: str = ""
    form_id: int
    business: dict[str, str] = {}


class StatusUpdate(BaseModel):
    status: CustomerStatus


class CustomerResponse(BaseModel):
    """Response model for a customer."""
    customer_id: str
    email: str
    display_name: str
    status: CustomerStatus
    business: dict[str, str] = {}


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    """Get a customer and their B2B status."""
    customer = service.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail=f"Customer '{customer_id}' not found")
    return CustomerResponse(**customer.__dict__)


@router.post("/register", response_model=CustomerResponse)
async def register(request: RegistrationRequest, service: CustomerService = Depends(get_customer_service)):
    """Store a registration; the B2B form puts the customer in review."""
    customer = Customer(
        customer_id=request.customer_id,
        email=request.email,
        display_name=request.display_name,
        business={k: v.strip() for k, v in request.business.items() if k in BUSINESS_FIELDS and v.strip()},
    )
    try:
        created = service.handle_registration(customer, request.form_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CustomerResponse(**created.__dict__)


@router.post("/{customer_id}/approve", response_model=CustomerResponse)
async def approve(customer_id: str, service: CustomerService = Depends(get_customer_service)):
    """Accept a pending B2B application."""
    try:
        customer = service.approve(customer_id)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CustomerResponse(**customer.__dict__)


@router.put("/{customer_id}/status", response_model=CustomerResponse)
async def update_status(
    customer_id: str,
    update: StatusUpdate,
    service: CustomerService = Depends(get_customer_service)
):
    """Administrative status change, limited to workflow transitions."""
    try:
        customer = service.set_status(customer_id, update.status)
    except CustomerNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CustomerResponse(**customer.__dict__)
