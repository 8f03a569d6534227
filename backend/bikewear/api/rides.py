"""
Rides Routes
GET /api/rides - List rides
POST /api/rides - Log ride (adds wear hours)
PATCH /api/rides/{rideId} - Partial update (moves wear hours)
DELETE /api/rides/{rideId} - Delete ride (removes wear hours)
POST /api/rides/assign-bike - Assign a bike to unassigned rides
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bikewear.db.database import get_db
from bikewear.dependencies import get_current_user
from bikewear.models.user import User
from bikewear.schemas.ride import (
    AssignBikeRequest,
    AssignBikeResponse,
    RideCreateRequest,
    RideResponse,
    RideUpdateRequest,
)
from bikewear.services import ride_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[RideResponse], summary="List rides")
async def list_my_rides(
    bike_id: Optional[int] = Query(None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [RideResponse.model_validate(r) for r in ride_service.list_rides(db, current_user.id, bike_id)]


@router.post("", response_model=RideResponse, status_code=status.HTTP_201_CREATED, summary="Log ride")
async def create_new_ride(
    request: RideCreateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RideResponse:
    ride = ride_service.create_ride(
        db,
        current_user.id,
        start_time=request.start_time,
        duration_seconds=request.duration_seconds,
        distance_miles=request.distance_miles,
        bike_id=request.bike_id,
        notes=request.notes,
    )
    return RideResponse.model_validate(ride)


@router.patch("/{ride_id}", response_model=RideResponse, summary="Update ride")
async def update_my_ride(
    ride_id: int,
    request: RideUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RideResponse:
    ride = ride_service.update_ride(db, current_user.id, ride_id, request.model_dump(exclude_unset=True))
    return RideResponse.model_validate(ride)


@router.delete("/{ride_id}", summary="Delete ride")
async def delete_my_ride(
    ride_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted_id = ride_service.delete_ride(db, current_user.id, ride_id)
    return {"ok": True, "id": deleted_id}


@router.post("/assign-bike", response_model=AssignBikeResponse, summary="Assign bike to rides")
async def assign_bike(
    request: AssignBikeRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AssignBikeResponse:
    count = ride_service.assign_bike_to_rides(db, current_user.id, request.ride_ids, request.bike_id)
    return AssignBikeResponse(updated_count=count)
