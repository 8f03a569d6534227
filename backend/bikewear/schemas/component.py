"""
Component Schemas
Pydantic models for component request/response validation
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from bikewear.models.component import (
    BaselineConfidence,
    BaselineMethod,
    ComponentLocation,
    ComponentStatus,
    ComponentType,
)


# ============================================================================
# REQUESTS (What client sends to API)
# ============================================================================


class ComponentCreateRequest(BaseModel):
    """Add a single component (on a bike or as a spare)"""

    type: ComponentType
    location: Optional[ComponentLocation] = None
    """FRONT/REAR for paired types, omitted otherwise"""

    bike_id: Optional[int] = None
    """Mount on this bike; omit to add a spare"""

    brand: Optional[str] = Field(None, max_length=120)
    model: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = Field(None, max_length=2000)
    is_stock: Optional[bool] = None
    hours_used: Optional[float] = None
    service_due_at_hours: Optional[float] = None

    class Config:
        example = {
            "type": "TIRES",
            "location": "REAR",
            "brand": "Maxxis",
            "model": "DHR II"
        }


class ComponentUpdateRequest(BaseModel):
    """
    Partial update. Only fields present in the request are applied;
    an explicit null clears the field.
    """

    brand: Optional[str] = Field(None, max_length=120)
    model: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = Field(None, max_length=2000)
    is_stock: Optional[bool] = None
    hours_used: Optional[float] = None
    service_interval_hours: Optional[float] = None
    service_due_at_hours: Optional[float] = None
    location: Optional[ComponentLocation] = None


class NewComponentRequest(BaseModel):
    """Brand/model for a part created by an install"""

    brand: str = Field(..., min_length=1, max_length=120)
    model: str = Field(..., min_length=1, max_length=120)
    is_stock: bool = False


class InstallComponentRequest(BaseModel):
    """Install a spare or a new part into a slot"""

    bike_id: int
    slot_key: str
    """Slot, e.g. FORK or TIRES:FRONT"""

    existing_component_id: Optional[int] = None
    new_component: Optional[NewComponentRequest] = None

    also_replace_pair: bool = False
    pair_new_component: Optional[NewComponentRequest] = None
    pair_existing_component_id: Optional[int] = None

    class Config:
        example = {
            "bike_id": 4,
            "slot_key": "TIRES:FRONT",
            "new_component": {"brand": "Maxxis", "model": "Assegai"},
            "also_replace_pair": True
        }


class SwapComponentsRequest(BaseModel):
    """Exchange the occupants of two same-type slots"""

    bike_id_a: int
    slot_key_a: str
    bike_id_b: int
    slot_key_b: str


class ReplaceComponentRequest(BaseModel):
    """Retire a component and create its successor in place"""

    new_brand: str = Field(..., min_length=1, max_length=120)
    new_model: str = Field(..., min_length=1, max_length=120)
    also_replace_pair: bool = False
    pair_brand: Optional[str] = Field(None, max_length=120)
    pair_model: Optional[str] = Field(None, max_length=120)


class LogServiceRequest(BaseModel):
    performed_at: Optional[datetime] = None
    """Defaults to now; not in the future, not older than 20 years"""

    notes: Optional[str] = Field(None, max_length=2000)


class BulkServiceRequest(BaseModel):
    component_ids: List[int]
    performed_at: datetime


class BaselineUpdateRequest(BaseModel):
    component_id: int
    wear_percent: float
    """0-100"""

    method: BaselineMethod
    last_serviced_at: Optional[datetime] = None


class BulkBaselineRequest(BaseModel):
    updates: List[BaselineUpdateRequest]


# ============================================================================
# RESPONSES (What API sends back to client)
# ============================================================================


class ComponentResponse(BaseModel):
    """Component data response"""

    id: int
    user_id: int
    bike_id: Optional[int]
    type: ComponentType
    location: ComponentLocation
    brand: str
    model: str
    notes: Optional[str]
    is_stock: bool

    hours_used: float
    service_interval_hours: Optional[float]
    service_due_at_hours: Optional[float]
    last_serviced_at: Optional[datetime]

    baseline_wear_percent: float
    baseline_method: BaselineMethod
    baseline_confidence: BaselineConfidence
    baseline_set_at: Optional[datetime]

    status: ComponentStatus
    installed_at: Optional[datetime]
    retired_at: Optional[datetime]
    replaced_by_id: Optional[int]
    pair_group_id: Optional[str]

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InstallRecordResponse(BaseModel):
    """One row of install history"""

    id: int
    bike_id: int
    component_id: int
    slot_key: str
    installed_at: datetime
    removed_at: Optional[datetime]

    class Config:
        from_attributes = True


class ServiceLogResponse(BaseModel):
    id: int
    component_id: int
    performed_at: datetime
    notes: Optional[str]
    hours_at_service: float

    class Config:
        from_attributes = True


class InstallResultResponse(BaseModel):
    installed: ComponentResponse
    displaced: Optional[ComponentResponse] = None
    paired_installed: Optional[ComponentResponse] = None
    paired_displaced: Optional[ComponentResponse] = None

    class Config:
        from_attributes = True


class SwapResultResponse(BaseModel):
    component_a: ComponentResponse
    component_b: ComponentResponse

    class Config:
        from_attributes = True


class ReplaceResultResponse(BaseModel):
    replaced: List[ComponentResponse]
    created: List[ComponentResponse]

    class Config:
        from_attributes = True


class MigrationResultResponse(BaseModel):
    migrated_count: int
    components: List[ComponentResponse]

    class Config:
        from_attributes = True


class BulkServiceResponse(BaseModel):
    success: bool = True
    updated_count: int
