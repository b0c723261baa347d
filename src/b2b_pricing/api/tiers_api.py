"""
Tiers API - FastAPI router for incentive tier management.
"""
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..engine import B2BEngine
from ..exceptions import TierNotFoundError, TierValidationError
from ..services.tiers_service import Tier, TiersService
from .state import get_engine, get_tiers_service

router = APIRouter(prefix="/api/tiers", tags=["tiers"])


# Pydantic models for API
class TierCreate(BaseModel):
    """Request model for creating a tier."""
    threshold_netto: str
    sample_count: int
    label: str = ""
    active: bool = True


class TierUpdate(BaseModel):
    """Request model for updating a tier."""
    sample_count: Optional[int] = None
    label: Optional[str] = None
    active: Optional[bool] = None


class TierResponse(BaseModel):
    """Response model for a tier."""
    threshold_netto: str
    sample_count: int
    label: str
    active: bool


class ValidationResponse(BaseModel):
    """Response model for validation."""
    valid: bool
    errors: list[str]
    warnings: list[str]


class PreviewRequest(BaseModel):
    """Request model for previewing the tier of a subtotal."""
    net_subtotal: Decimal


class PreviewResponse(BaseModel):
    """Response model for a tier preview."""
    net_subtotal: Decimal
    threshold_netto: Optional[Decimal]
    sample_count: int
    label: Optional[str]


def refresh_engine_tiers(engine: B2BEngine, service: TiersService):
    """Point the running engine at the stored tier table, loaded the same way as on startup."""
    engine.tiers = service.active_tiers()


# Endpoints

@router.get("", response_model=list[TierResponse])
async def list_tiers(include_inactive: bool = True, service: TiersService = Depends(get_tiers_service)):
    """List all incentive tiers."""
    tiers = service.list_tiers(include_inactive=include_inactive)
    return [TierResponse(**tier.__dict__) for tier in tiers]


@router.get("/stats")
async def get_stats(service: TiersService = Depends(get_tiers_service)):
    """Get tier statistics."""
    return service.get_stats()


@router.get("/{threshold}", response_model=TierResponse)
async def get_tier(threshold: str, service: TiersService = Depends(get_tiers_service)):
    """Get a single tier by threshold."""
    tier = service.get_tier(threshold)
    if not tier:
        raise HTTPException(status_code=404, detail=f"Tier '{threshold}' not found")
    return TierResponse(**tier.__dict__)


@router.post("", response_model=TierResponse)
async def create_tier(
    tier_data: TierCreate,
    service: TiersService = Depends(get_tiers_service),
    engine: B2BEngine = Depends(get_engine)
):
    """Create a new incentive tier."""
    tier = Tier(**tier_data.model_dump())

    try:
        created = service.create_tier(tier)
    except TierValidationError as e:
        raise HTTPException(status_code=400, detail={"errors": e.errors})

    refresh_engine_tiers(engine, service)
    return TierResponse(**created.__dict__)


@router.put("/{threshold}", response_model=TierResponse)
async def update_tier(
    threshold: str,
    updates: TierUpdate,
    service: TiersService = Depends(get_tiers_service),
    engine: B2BEngine = Depends(get_engine)
):
    """Update an existing tier."""
    update_dict = updates.model_dump(exclude_unset=True)

    try:
        updated = service.update_tier(threshold, update_dict)
    except TierNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TierValidationError as e:
        raise HTTPException(status_code=400, detail={"errors": e.errors})

    refresh_engine_tiers(engine, service)
    return TierResponse(**updated.__dict__)


@router.delete("/{threshold}")
async def delete_tier(
    threshold: str,
    service: TiersService = Depends(get_tiers_service),
    engine: B2BEngine = Depends(get_engine)
):
    """Delete a tier."""
    try:
        service.delete_tier(threshold)
    except TierNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    refresh_engine_tiers(engine, service)
    return {"success": True, "message": f"Tier '{threshold}' deleted"}


@router.post("/validate", response_model=ValidationResponse)
async def validate_tier(tier_data: TierCreate, service: TiersService = Depends(get_tiers_service)):
    """Validate a tier without saving."""
    result = service.validate_tier(Tier(**tier_data.model_dump()))
    return ValidationResponse(valid=result.valid, errors=result.errors, warnings=result.warnings)


@router.post("/preview", response_model=PreviewResponse)
async def preview_tier(request: PreviewRequest, service: TiersService = Depends(get_tiers_service)):
    """Show which tier a cart with this net subtotal earns."""
    tier = service.preview(request.net_subtotal)
    return PreviewResponse(
        net_subtotal=request.net_subtotal,
        threshold_netto=tier.threshold_netto if tier else None,
        sample_count=tier.sample_count if tier else 0,
        label=tier.label if tier else None,
    )
