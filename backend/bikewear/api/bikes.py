"""
Bikes Routes
GET /api/bikes - List bikes for current user
POST /api/bikes - Create bike (builds its components)
GET /api/bikes/{bikeId} - Get bike with components
DELETE /api/bikes/{bikeId} - Delete bike
GET /api/bikes/{bikeId}/installs - Install history of a bike
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bikewear.db.database import get_db
from bikewear.dependencies import get_current_user
from bikewear.models.user import User
from bikewear.schemas.bike import BikeCreateRequest, BikeResponse
from bikewear.schemas.component import InstallRecordResponse
from bikewear.services.bike_service import create_bike, delete_bike, get_bike, list_bikes
from bikewear.services.component_factory import (
    ComponentOverride,
    PairedComponentConfig,
    PairedSideSpec,
)
from bikewear.services.component_service import get_install_history
from bikewear.utils.component_catalog import CatalogComponentData

logger = logging.getLogger(__name__)

router = APIRouter()


def _side(spec):
    return PairedSideSpec(brand=spec.brand, model=spec.model) if spec else None


# ============================================================================
# LIST BIKES - GET /api/bikes
# ============================================================================


@router.get(
    "",
    response_model=List[BikeResponse],
    summary="List bikes",
)
async def list_my_bikes(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [BikeResponse.model_validate(b) for b in list_bikes(db, current_user.id)]


# ============================================================================
# CREATE BIKE - POST /api/bikes
# ============================================================================


@router.post(
    "",
    response_model=BikeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create bike",
    description="Create a bike and its initial components from travel numbers and catalog data",
)
async def create_new_bike(
    request: BikeCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BikeResponse:
    """
    Create a bike.

    Example:
        POST /api/bikes
        {"manufacturer": "Santa Cruz", "model": "Hightower", "travel_fork_mm": 160}
    """
    logger.info(f"Creating bike for user {current_user.id}: {request.manufacturer} {request.model}")

    catalog = {
        key: CatalogComponentData(**data.model_dump())
        for key, data in (request.catalog_components or {}).items()
    }
    overrides = {
        component_type: ComponentOverride(**data.model_dump())
        for component_type, data in (request.component_overrides or {}).items()
    }
    paired = [
        PairedComponentConfig(
            type=config.type,
            use_same_spec=config.use_same_spec,
            front_spec=_side(config.front_spec),
            rear_spec=_side(config.rear_spec),
        )
        for config in (request.paired_component_configs or [])
    ]

    bike = create_bike(
        db,
        user_id=current_user.id,
        manufacturer=request.manufacturer,
        model=request.model,
        nickname=request.nickname,
        year=request.year,
        travel_fork_mm=request.travel_fork_mm,
        travel_shock_mm=request.travel_shock_mm,
        notes=request.notes,
        catalog_components=catalog,
        user_overrides=overrides,
        paired_configs=paired,
    )
    return BikeResponse.model_validate(bike)


# ============================================================================
# GET BIKE - GET /api/bikes/{bikeId}
# ============================================================================


@router.get("/{bike_id}", response_model=BikeResponse, summary="Get bike")
async def get_bike_details(
    bike_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BikeResponse:
    return BikeResponse.model_validate(get_bike(db, current_user.id, bike_id))


# ============================================================================
# DELETE BIKE - DELETE /api/bikes/{bikeId}
# ============================================================================


@router.delete("/{bike_id}", summary="Delete bike")
async def delete_my_bike(
    bike_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted_id = delete_bike(db, current_user.id, bike_id)
    return {"ok": True, "id": deleted_id}


# ============================================================================
# INSTALL HISTORY - GET /api/bikes/{bikeId}/installs
# ============================================================================


@router.get(
    "/{bike_id}/installs",
    response_model=List[InstallRecordResponse],
    summary="Install history of a bike",
)
async def bike_install_history(
    bike_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    installs = get_install_history(db, current_user.id, bike_id=bike_id)
    return [InstallRecordResponse.model_validate(i) for i in installs]
