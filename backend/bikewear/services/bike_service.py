"""
Bike Service
Business logic for bike CRUD. Creating a bike builds its initial components.
"""

import logging
from typing import List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from bikewear.db.database import transaction
from bikewear.exceptions import InvalidInputError
from bikewear.models.base import utcnow
from bikewear.models.bike import Bike
from bikewear.models.component import Component, ComponentType
from bikewear.models.ride import Ride
from bikewear.services.component_factory import (
    ComponentOverride,
    PairedComponentConfig,
    build_bike_components,
)
from bikewear.services.permission_service import get_owned_bike, get_owned_user
from bikewear.services.prediction_cache import prediction_invalidation
from bikewear.utils.component_catalog import (
    CatalogComponentData,
    derive_bike_spec,
    parse_travel_from_description,
)
from bikewear.utils.text import MAX_LABEL_LEN, MAX_NOTES_LEN, clean_text

logger = logging.getLogger(__name__)

MIN_BIKE_YEAR = 1980


def clamp_year(value: Optional[int]) -> int:
    """Missing year -> this year; otherwise 1980..next year."""
    this_year = utcnow().year
    if value is None:
        return this_year
    return min(this_year + 1, max(MIN_BIKE_YEAR, int(value)))


def parse_travel(value: Optional[int], catalog_data: Optional[CatalogComponentData] = None) -> Optional[int]:
    """Explicit travel wins; otherwise try the catalog description ("Pike 140mm")."""
    if value is not None:
        return max(0, int(value))
    if catalog_data is not None:
        return parse_travel_from_description(catalog_data.description)
    return None


# ============================================================================
# CREATE BIKE
# ============================================================================


def create_bike(
    db: Session,
    user_id: int,
    manufacturer: str,
    model: str,
    nickname: Optional[str] = None,
    year: Optional[int] = None,
    travel_fork_mm: Optional[int] = None,
    travel_shock_mm: Optional[int] = None,
    notes: Optional[str] = None,
    catalog_components: Optional[Mapping[str, CatalogComponentData]] = None,
    user_overrides: Optional[Mapping[ComponentType, ComponentOverride]] = None,
    paired_configs: Optional[Sequence[PairedComponentConfig]] = None,
) -> Bike:
    """
    Create a bike and its initial component set in one transaction.

    Args:
        db: Database session
        user_id: Owner
        manufacturer: Required
        model: Required
        nickname, year, travel_fork_mm, travel_shock_mm, notes: Optional details
        catalog_components: Component data from the bike catalog, keyed by catalog key
        user_overrides: User-entered brand/model per component type
        paired_configs: Front/rear differentiation for pairing types

    Returns:
        Bike with its components

    Example:
        bike = create_bike(db, user_id=1, manufacturer="Santa Cruz", model="Hightower",
                           travel_fork_mm=160, travel_shock_mm=150)
    """
    get_owned_user(db, user_id)

    manufacturer = clean_text(manufacturer, MAX_LABEL_LEN)
    model = clean_text(model, MAX_LABEL_LEN)
    if not manufacturer:
        raise InvalidInputError("manufacturer is required")
    if not model:
        raise InvalidInputError("model is required")

    catalog_components = catalog_components or {}
    travel_fork_mm = parse_travel(travel_fork_mm, catalog_components.get("fork"))
    travel_shock_mm = parse_travel(travel_shock_mm, catalog_components.get("rearShock"))
    bike_spec = derive_bike_spec(travel_fork_mm, travel_shock_mm, catalog_components)

    with transaction(db):
        bike = Bike(
            user_id=user_id,
            manufacturer=manufacturer,
            model=model,
            nickname=clean_text(nickname, MAX_LABEL_LEN),
            year=clamp_year(year),
            travel_fork_mm=travel_fork_mm,
            travel_shock_mm=travel_shock_mm,
            notes=clean_text(notes, MAX_NOTES_LEN),
        )
        db.add(bike)
        db.flush()

        build_bike_components(
            db,
            bike_id=bike.id,
            user_id=user_id,
            bike_spec=bike_spec,
            catalog_components=catalog_components,
            user_overrides=user_overrides,
            paired_configs=paired_configs,
        )

    db.refresh(bike)
    logger.info(f"✅ Bike created: {manufacturer} {model} (ID: {bike.id}) for user {user_id}")
    return bike


# ============================================================================
# GET / LIST
# ============================================================================


def get_bike(db: Session, user_id: int, bike_id: int) -> Bike:
    return get_owned_bike(db, user_id, bike_id)


def list_bikes(db: Session, user_id: int) -> List[Bike]:
    return db.query(Bike).filter(Bike.user_id == user_id).order_by(Bike.created_at, Bike.id).all()


# ============================================================================
# DELETE BIKE
# ============================================================================


def delete_bike(db: Session, user_id: int, bike_id: int) -> int:
    """
    Delete a bike with its mounted components and install history.

    Rides stay and lose their bike; spares and retired parts are kept.
    """
    bike = get_owned_bike(db, user_id, bike_id)

    with prediction_invalidation(user_id, [bike_id]), transaction(db):
        mounted = db.query(Component).filter(Component.bike_id == bike_id).all()
        for component in mounted:
            db.delete(component)

        detached = db.query(Ride).filter(Ride.bike_id == bike_id).update(
            {Ride.bike_id: None},
            synchronize_session="fetch",
        )

        db.delete(bike)
        db.flush()

    logger.info(f"Bike {bike_id} deleted ({len(mounted)} components removed, {detached} rides detached)")
    return bike_id
