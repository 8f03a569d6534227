"""
Bike Schemas
Pydantic models for bike request/response validation
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from bikewear.models.component import ComponentType
from bikewear.schemas.component import ComponentResponse


# ============================================================================
# REQUESTS (What client sends to API)
# ============================================================================


class CatalogComponentRequest(BaseModel):
    """Component data from the bike catalog lookup"""

    maker: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    kind: Optional[str] = None
    """Seatpost only: dropper | rigid"""


class ComponentOverrideRequest(BaseModel):
    """User-entered details for one component type"""

    brand: Optional[str] = Field(None, max_length=120)
    model: Optional[str] = Field(None, max_length=120)
    notes: Optional[str] = Field(None, max_length=2000)
    is_stock: Optional[bool] = None


class PairedSideRequest(BaseModel):
    brand: str = Field(..., max_length=120)
    model: str = Field(..., max_length=120)


class PairedComponentConfigRequest(BaseModel):
    """Front/rear specs for a paired type (tires, brake pads, ...)"""

    type: ComponentType
    use_same_spec: bool = True
    front_spec: Optional[PairedSideRequest] = None
    rear_spec: Optional[PairedSideRequest] = None


class BikeCreateRequest(BaseModel):
    """Create new bike request"""

    manufacturer: str = Field(..., min_length=1, max_length=120)
    model: str = Field(..., min_length=1, max_length=120)
    nickname: Optional[str] = Field(None, max_length=120)
    year: Optional[int] = None
    travel_fork_mm: Optional[int] = None
    travel_shock_mm: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)

    catalog_components: Optional[Dict[str, CatalogComponentRequest]] = None
    """Keyed by catalog key: fork, rearShock, brakes, seatpost, tires, ..."""

    component_overrides: Optional[Dict[ComponentType, ComponentOverrideRequest]] = None
    paired_component_configs: Optional[List[PairedComponentConfigRequest]] = None

    class Config:
        example = {
            "manufacturer": "Santa Cruz",
            "model": "Hightower",
            "year": 2024,
            "travel_fork_mm": 160,
            "travel_shock_mm": 150
        }


# ============================================================================
# RESPONSES (What API sends back to client)
# ============================================================================


class BikeResponse(BaseModel):
    """Bike with its mounted components"""

    id: int
    user_id: int
    manufacturer: str
    model: str
    nickname: Optional[str]
    year: Optional[int]
    travel_fork_mm: Optional[int]
    travel_shock_mm: Optional[int]
    notes: Optional[str]
    components: List[ComponentResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
