"""
Ride Schemas
Pydantic models for ride request/response validation
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


# ============================================================================
# REQUESTS (What client sends to API)
# ============================================================================


class RideCreateRequest(BaseModel):
    """Log a ride"""

    start_time: datetime
    duration_seconds: int = Field(..., ge=0)
    distance_miles: float = Field(0.0, ge=0)
    bike_id: Optional[int] = None
    """Omit to auto-assign when the user has exactly one bike"""

    notes: Optional[str] = Field(None, max_length=2000)

    class Config:
        example = {
            "start_time": "2026-05-01T08:30:00Z",
            "duration_seconds": 5400,
            "distance_miles": 14.2,
            "bike_id": 4
        }


class RideUpdateRequest(BaseModel):
    """Partial update; bike_id: null unassigns the ride"""

    start_time: Optional[datetime] = None
    duration_seconds: Optional[int] = Field(None, ge=0)
    distance_miles: Optional[float] = Field(None, ge=0)
    bike_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)


class AssignBikeRequest(BaseModel):
    """Assign a bike to rides that have none"""

    ride_ids: List[int]
    bike_id: int


# ============================================================================
# RESPONSES (What API sends back to client)
# ============================================================================


class RideResponse(BaseModel):
    id: int
    user_id: int
    bike_id: Optional[int]
    start_time: datetime
    duration_seconds: int
    distance_miles: float
    notes: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class AssignBikeResponse(BaseModel):
    success: bool = True
    updated_count: int
