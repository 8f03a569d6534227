"""
Components Routes
GET /api/components - List components (filter by bike / spares / types)
POST /api/components - Add component
PATCH /api/components/{componentId} - Partial update
DELETE /api/components/{componentId} - Delete spare
GET /api/components/{componentId}/pair - Paired component
GET /api/components/{componentId}/installs - Install history
POST /api/components/install - Install into a slot
POST /api/components/swap - Swap two slots
POST /api/components/{componentId}/replace - Replace with a new part
POST /api/components/{componentId}/service - Log service
POST /api/components/service/bulk - Log service for many
POST /api/components/baselines - Bulk baseline calibration
POST /api/components/migrate-paired - Split legacy unpaired components
POST /api/components/migrate-paired/seen - Dismiss migration notice
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bikewear.db.database import get_db
from bikewear.dependencies import get_current_user
from bikewear.models.component import ComponentType
from bikewear.models.user import User
from bikewear.schemas.component import (
    BulkBaselineRequest,
    BulkServiceRequest,
    BulkServiceResponse,
    ComponentCreateRequest,
    ComponentResponse,
    ComponentUpdateRequest,
    InstallComponentRequest,
    InstallRecordResponse,
    InstallResultResponse,
    LogServiceRequest,
    MigrationResultResponse,
    ReplaceComponentRequest,
    ReplaceResultResponse,
    ServiceLogResponse,
    SwapComponentsRequest,
    SwapResultResponse,
)
from bikewear.services import component_service, lifecycle_service
from bikewear.services.component_service import BaselineUpdate
from bikewear.services.lifecycle_service import NewComponentSpec

logger = logging.getLogger(__name__)

router = APIRouter()


def _spec(request) -> Optional[NewComponentSpec]:
    if request is None:
        return None
    return NewComponentSpec(brand=request.brand, model=request.model, is_stock=request.is_stock)


# ============================================================================
# LIST / ADD / UPDATE / DELETE
# ============================================================================


@router.get("", response_model=List[ComponentResponse], summary="List components")
async def list_my_components(
    bike_id: Optional[int] = Query(None, description="Only components mounted on this bike"),
    only_spare: bool = Query(False, description="Only spares (ignored with bike_id)"),
    types: Optional[List[ComponentType]] = Query(None),
    include_retired: bool = Query(True),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    components = component_service.list_components(
        db,
        current_user.id,
        bike_id=bike_id,
        only_spare=only_spare,
        types=types,
        include_retired=include_retired,
    )
    return [ComponentResponse.model_validate(c) for c in components]


@router.post(
    "",
    response_model=ComponentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add component",
)
async def add_new_component(
    request: ComponentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ComponentResponse:
    component = component_service.add_component(
        db,
        current_user.id,
        component_type=request.type,
        location=request.location,
        bike_id=request.bike_id,
        brand=request.brand,
        model=request.model,
        notes=request.notes,
        is_stock=request.is_stock,
        hours_used=request.hours_used,
        service_due_at_hours=request.service_due_at_hours,
    )
    return ComponentResponse.model_validate(component)


@router.patch("/{component_id}", response_model=ComponentResponse, summary="Update component")
async def update_my_component(
    component_id: int,
    request: ComponentUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ComponentResponse:
    """Only the fields sent in the body are touched; null clears a field."""
    changes = request.model_dump(exclude_unset=True)
    component = component_service.update_component(db, current_user.id, component_id, changes)
    return ComponentResponse.model_validate(component)


@router.delete("/{component_id}", summary="Delete spare component")
async def delete_my_component(
    component_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted_id = component_service.delete_component(db, current_user.id, component_id)
    return {"ok": True, "id": deleted_id}


@router.get("/{component_id}/pair", response_model=Optional[ComponentResponse], summary="Paired component")
async def paired_component(
    component_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    partner = component_service.get_paired_component(db, current_user.id, component_id)
    return ComponentResponse.model_validate(partner) if partner else None


@router.get(
    "/{component_id}/installs",
    response_model=List[InstallRecordResponse],
    summary="Install history of a component",
)
async def component_install_history(
    component_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    installs = component_service.get_install_history(db, current_user.id, component_id=component_id)
    return [InstallRecordResponse.model_validate(i) for i in installs]


# ============================================================================
# LIFECYCLE
# ============================================================================


@router.post("/install", response_model=InstallResultResponse, summary="Install component into a slot")
async def install(
    request: InstallComponentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> InstallResultResponse:
    """
    Install a spare or a new part, optionally into the paired slot too.

    Example:
        POST /api/components/install
        {"bike_id": 4, "slot_key": "TIRES:FRONT",
         "new_component": {"brand": "Maxxis", "model": "Assegai"}, "also_replace_pair": true}
    """
    logger.info(f"Install into {request.slot_key} on bike {request.bike_id} by user {current_user.id}")
    result = lifecycle_service.install_component(
        db,
        current_user.id,
        bike_id=request.bike_id,
        slot_key=request.slot_key,
        existing_component_id=request.existing_component_id,
        new_component=_spec(request.new_component),
        also_replace_pair=request.also_replace_pair,
        pair_new_component=_spec(request.pair_new_component),
        pair_existing_component_id=request.pair_existing_component_id,
    )
    return InstallResultResponse.model_validate(result)


@router.post("/swap", response_model=SwapResultResponse, summary="Swap two slots")
async def swap(
    request: SwapComponentsRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SwapResultResponse:
    result = lifecycle_service.swap_components(
        db,
        current_user.id,
        request.bike_id_a,
        request.slot_key_a,
        request.bike_id_b,
        request.slot_key_b,
    )
    return SwapResultResponse.model_validate(result)


@router.post("/{component_id}/replace", response_model=ReplaceResultResponse, summary="Replace component")
async def replace(
    component_id: int,
    request: ReplaceComponentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReplaceResultResponse:
    result = lifecycle_service.replace_component(
        db,
        current_user.id,
        component_id,
        new_brand=request.new_brand,
        new_model=request.new_model,
        also_replace_pair=request.also_replace_pair,
        pair_brand=request.pair_brand,
        pair_model=request.pair_model,
    )
    return ReplaceResultResponse.model_validate(result)


@router.post("/migrate-paired", response_model=MigrationResultResponse, summary="Pair legacy components")
async def migrate_paired(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MigrationResultResponse:
    result = lifecycle_service.migrate_paired_components(db, current_user.id)
    return MigrationResultResponse.model_validate(result)


@router.post("/migrate-paired/seen", summary="Dismiss pairing migration notice")
async def migrate_paired_seen(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = lifecycle_service.mark_paired_migration_seen(db, current_user.id)
    return {"ok": True, "seen_at": user.paired_component_migration_seen_at}


# ============================================================================
# SERVICE & BASELINES
# ============================================================================


@router.post(
    "/service/bulk",
    response_model=BulkServiceResponse,
    summary="Log service for many components",
)
async def log_bulk(
    request: BulkServiceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> BulkServiceResponse:
    count = component_service.log_bulk_service(
        db, current_user.id, request.component_ids, request.performed_at
    )
    return BulkServiceResponse(updated_count=count)


@router.post(
    "/{component_id}/service",
    response_model=ServiceLogResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Log service",
)
async def log_component_service(
    component_id: int,
    request: LogServiceRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ServiceLogResponse:
    log = component_service.log_service(
        db, current_user.id, component_id, performed_at=request.performed_at, notes=request.notes
    )
    return ServiceLogResponse.model_validate(log)


@router.post("/baselines", response_model=List[ComponentResponse], summary="Bulk baseline calibration")
async def update_baselines(
    request: BulkBaselineRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    updates = [
        BaselineUpdate(
            component_id=u.component_id,
            wear_percent=u.wear_percent,
            method=u.method,
            last_serviced_at=u.last_serviced_at,
        )
        for u in request.updates
    ]
    components = component_service.bulk_update_baselines(db, current_user.id, updates)
    return [ComponentResponse.model_validate(c) for c in components]
