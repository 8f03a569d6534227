"""
Component Service
Maintenance operations on individual components: add, edit, delete,
service logging and baseline calibration.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Union

from sqlalchemy.orm import Session

from bikewear.config import settings
from bikewear.db.database import transaction
from bikewear.exceptions import ConflictError, InvalidInputError
from bikewear.models.base import to_naive_utc, utcnow
from bikewear.models.component import (
    BaselineConfidence,
    BaselineMethod,
    Component,
    ComponentLocation,
    ComponentStatus,
    ComponentType,
)
from bikewear.models.install import BikeComponentInstall
from bikewear.models.service_log import ServiceLog
from bikewear.services.lifecycle_service import find_partner, get_active_install
from bikewear.services.permission_service import (
    get_owned_bike,
    get_owned_component,
    get_owned_components,
)
from bikewear.services.prediction_cache import prediction_invalidation
from bikewear.utils.component_catalog import component_label
from bikewear.utils.slot_keys import slot_key
from bikewear.utils.text import MAX_LABEL_LEN, MAX_NOTES_LEN, clean_text

logger = logging.getLogger(__name__)

STOCK = "Stock"
MAX_SERVICE_AGE_YEARS = 20
DUPLICATE_COMPONENT_MESSAGE = "A component of this type already exists for this bike"

# Fields update_component accepts; anything else in `changes` is rejected
UPDATABLE_FIELDS = {
    "brand",
    "model",
    "notes",
    "is_stock",
    "hours_used",
    "service_interval_hours",
    "service_due_at_hours",
    "location",
}


@dataclass
class BaselineUpdate:
    component_id: int
    wear_percent: float
    method: BaselineMethod
    last_serviced_at: Optional[datetime] = None


# ============================================================================
# HELPERS
# ============================================================================


def _validate_service_date(performed_at: Optional[datetime], now: datetime) -> datetime:
    if performed_at is None:
        return now
    performed_at = to_naive_utc(performed_at)
    if performed_at > now:
        raise InvalidInputError("Service date cannot be in the future")
    # Leap-day safe "20 years ago"
    try:
        oldest = now.replace(year=now.year - MAX_SERVICE_AGE_YEARS)
    except ValueError:
        oldest = now.replace(year=now.year - MAX_SERVICE_AGE_YEARS, day=28)
    if performed_at < oldest:
        raise InvalidInputError("Service date is too far in the past")
    return performed_at


def _non_negative(value, label: str) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{label} must be a number")
    return max(0.0, number)


def _location(value) -> ComponentLocation:
    if value is None:
        return ComponentLocation.NONE
    try:
        return ComponentLocation(value)
    except ValueError:
        raise InvalidInputError(f"Unknown component location: {value}")


# ============================================================================
# ADD / UPDATE / DELETE
# ============================================================================


def add_component(
    db: Session,
    user_id: int,
    component_type: Union[ComponentType, str],
    location: Union[ComponentLocation, str, None] = None,
    bike_id: Optional[int] = None,
    brand: Optional[str] = None,
    model: Optional[str] = None,
    notes: Optional[str] = None,
    is_stock: Optional[bool] = None,
    hours_used: Optional[float] = None,
    service_due_at_hours: Optional[float] = None,
) -> Component:
    """
    Add a single component, mounted on a bike or as a spare.

    With bike_id the component is INSTALLED and gets an install record;
    without it the component goes to INVENTORY.

    Raises:
        NotFoundError: Bike missing / not owned
        InvalidInputError: Bad type/location combination, pivot bearings without a bike
        ConflictError: The bike already has a component in that slot

    Example:
        add_component(db, user_id=1, component_type="TIRES", location="REAR",
                      brand="Maxxis", model="DHR II")
    """
    try:
        component_type = ComponentType(component_type)
    except ValueError:
        raise InvalidInputError(f"Unknown component type: {component_type}")
    location = _location(location)

    if bike_id is not None:
        get_owned_bike(db, user_id, bike_id)
    elif component_type == ComponentType.PIVOT_BEARINGS:
        raise InvalidInputError("Pivot bearings must be attached to a bike")

    # Validates the location for the type
    key = slot_key(component_type, location)

    fallback = component_label(component_type)
    now = utcnow()

    with prediction_invalidation(user_id, [bike_id]), \
            transaction(db, conflict_message=DUPLICATE_COMPONENT_MESSAGE):
        if bike_id is not None and get_active_install(db, bike_id, key):
            raise ConflictError(DUPLICATE_COMPONENT_MESSAGE)

        component = Component(
            user_id=user_id,
            bike_id=bike_id,
            type=component_type,
            location=location,
            brand=clean_text(brand, MAX_LABEL_LEN) or (STOCK if brand is not None else fallback),
            model=clean_text(model, MAX_LABEL_LEN) or (STOCK if model is not None else fallback),
            notes=clean_text(notes, MAX_NOTES_LEN),
            is_stock=True if is_stock is None else bool(is_stock),
            hours_used=_non_negative(hours_used, "Hours used") or 0.0,
            service_due_at_hours=_non_negative(service_due_at_hours, "Service due hours"),
            status=ComponentStatus.INSTALLED if bike_id else ComponentStatus.INVENTORY,
            installed_at=now if bike_id else None,
        )
        db.add(component)
        db.flush()

        if bike_id is not None:
            db.add(BikeComponentInstall(
                user_id=user_id,
                bike_id=bike_id,
                component_id=component.id,
                slot_key=key,
                installed_at=now,
            ))
            db.flush()

    logger.info(f"Component added: {component_type.value} {location.value} (id={component.id}, bike={bike_id})")
    return component


def update_component(
    db: Session,
    user_id: int,
    component_id: int,
    changes: Mapping[str, Any],
) -> Component:
    """
    Apply a partial update.

    `changes` only holds the fields the caller set: an absent key leaves the
    field alone, None clears it. Cleared brand/model fall back to "Stock",
    hour values are floored at 0. Location can only change on a spare.

    Args:
        db: Database session
        user_id: Caller
        component_id: Component to update
        changes: Field -> new value (pydantic model_dump(exclude_unset=True))

    Returns:
        Updated component
    """
    component = get_owned_component(db, user_id, component_id)

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise InvalidInputError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    with prediction_invalidation(user_id, [component.bike_id]), \
            transaction(db, conflict_message=DUPLICATE_COMPONENT_MESSAGE):
        if "brand" in changes:
            component.brand = clean_text(changes["brand"], MAX_LABEL_LEN) or STOCK
        if "model" in changes:
            component.model = clean_text(changes["model"], MAX_LABEL_LEN) or STOCK
        if "notes" in changes:
            component.notes = clean_text(changes["notes"], MAX_NOTES_LEN)
        if "is_stock" in changes and changes["is_stock"] is not None:
            component.is_stock = bool(changes["is_stock"])
        if "hours_used" in changes:
            component.hours_used = _non_negative(changes["hours_used"], "Hours used") or 0.0
        if "service_interval_hours" in changes:
            component.service_interval_hours = _non_negative(
                changes["service_interval_hours"], "Service interval"
            )
        if "service_due_at_hours" in changes:
            component.service_due_at_hours = _non_negative(
                changes["service_due_at_hours"], "Service due hours"
            )
        if "location" in changes and changes["location"] is not None:
            location = _location(changes["location"])
            if location != component.location:
                if component.bike_id is not None:
                    raise InvalidInputError("Use install or swap to move a mounted component")
                slot_key(component.type, location)
                component.location = location
        db.flush()

    logger.debug(f"Component {component_id} updated: {sorted(changes)}")
    return component


def delete_component(db: Session, user_id: int, component_id: int) -> int:
    """Hard-delete a spare. Mounted and retired components are kept for history."""
    component = get_owned_component(db, user_id, component_id)
    if not component.is_spare:
        raise InvalidInputError("Only spare components can be deleted")

    with transaction(db):
        db.delete(component)

    logger.info(f"Component {component_id} deleted")
    return component_id


# ============================================================================
# SERVICE LOGGING
# ============================================================================


def log_service(
    db: Session,
    user_id: int,
    component_id: int,
    performed_at: Optional[datetime] = None,
    notes: Optional[str] = None,
) -> ServiceLog:
    """
    Record a service and reset the component's hours to 0.

    The log keeps the hours the component had before the reset.

    Raises:
        NotFoundError: Component missing / not owned
        InvalidInputError: Date in the future or more than 20 years ago
    """
    component = get_owned_component(db, user_id, component_id)
    performed_at = _validate_service_date(performed_at, utcnow())

    with prediction_invalidation(user_id, [component.bike_id]), transaction(db):
        log = ServiceLog(
            component_id=component.id,
            performed_at=performed_at,
            notes=clean_text(notes, MAX_NOTES_LEN),
            hours_at_service=component.hours_used or 0.0,
        )
        db.add(log)
        component.hours_used = 0.0
        component.last_serviced_at = performed_at
        db.flush()

    logger.info(f"Service logged for component {component_id} at {performed_at.isoformat()}")
    return log


def log_bulk_service(
    db: Session,
    user_id: int,
    component_ids: Sequence[int],
    performed_at: datetime,
) -> int:
    """
    Log the same service date for many components at once.

    All-or-nothing. Returns the number of components serviced.
    """
    if len(component_ids) > settings.MAX_BULK_COMPONENTS:
        raise InvalidInputError(
            f"Cannot log service for more than {settings.MAX_BULK_COMPONENTS} components at once"
        )
    if not component_ids:
        return 0

    if performed_at is None:
        raise InvalidInputError("Service date is required")
    performed_at = _validate_service_date(performed_at, utcnow())
    components = get_owned_components(db, user_id, component_ids)

    with prediction_invalidation(user_id, [c.bike_id for c in components]), transaction(db):
        for component in components:
            db.add(ServiceLog(
                component_id=component.id,
                performed_at=performed_at,
                hours_at_service=component.hours_used or 0.0,
            ))
            component.hours_used = 0.0
            component.last_serviced_at = performed_at
        db.flush()

    logger.info(f"Bulk service logged for {len(components)} components")
    return len(components)


# ============================================================================
# BASELINE CALIBRATION
# ============================================================================


def baseline_confidence(method: BaselineMethod, last_serviced_at: Optional[datetime]) -> BaselineConfidence:
    if method == BaselineMethod.DATES and last_serviced_at is not None:
        return BaselineConfidence.HIGH
    if method == BaselineMethod.SLIDER:
        return BaselineConfidence.MEDIUM
    return BaselineConfidence.LOW


def bulk_update_baselines(
    db: Session,
    user_id: int,
    updates: Sequence[BaselineUpdate],
) -> List[Component]:
    """
    Set the starting wear of many components.

    Confidence follows the method: DATES with a service date is HIGH,
    SLIDER is MEDIUM, anything else LOW. Backdating before the bike was
    added is allowed.

    Raises:
        InvalidInputError: Too many updates, wear outside 0..100, future date
        NotFoundError: Any component missing / not owned
    """
    if not updates:
        return []
    if len(updates) > settings.MAX_BULK_COMPONENTS:
        raise InvalidInputError(
            f"Cannot update more than {settings.MAX_BULK_COMPONENTS} components at once"
        )

    now = utcnow()
    prepared = []
    for update in updates:
        if update.wear_percent is None or not 0 <= update.wear_percent <= 100:
            raise InvalidInputError(
                f"wear_percent must be between 0 and 100, got {update.wear_percent}"
            )
        try:
            method = BaselineMethod(update.method)
        except ValueError:
            raise InvalidInputError(f"Unknown baseline method: {update.method}")
        last_serviced_at = to_naive_utc(update.last_serviced_at)
        if last_serviced_at is not None and last_serviced_at > now:
            raise InvalidInputError("last_serviced_at cannot be in the future")
        prepared.append((update.component_id, float(update.wear_percent), method, last_serviced_at))

    components = {c.id: c for c in get_owned_components(db, user_id, [p[0] for p in prepared])}

    with prediction_invalidation(user_id, [c.bike_id for c in components.values()]), transaction(db):
        for component_id, wear_percent, method, last_serviced_at in prepared:
            component = components[component_id]
            component.baseline_wear_percent = wear_percent
            component.baseline_method = method
            component.baseline_confidence = baseline_confidence(method, last_serviced_at)
            component.baseline_set_at = now
            component.last_serviced_at = last_serviced_at
        db.flush()

    logger.info(f"Baselines updated for {len(components)} components")
    return [components[p[0]] for p in prepared]


# ============================================================================
# QUERIES
# ============================================================================


def get_paired_component(db: Session, user_id: int, component_id: int) -> Optional[Component]:
    """The non-retired partner sharing this component's pair group, if any."""
    component = get_owned_component(db, user_id, component_id)
    return find_partner(db, component)


def list_components(
    db: Session,
    user_id: int,
    bike_id: Optional[int] = None,
    only_spare: bool = False,
    types: Optional[Sequence[Union[ComponentType, str]]] = None,
    include_retired: bool = True,
) -> List[Component]:
    """
    List the user's components, newest first.

    bike_id wins over only_spare when both are given.
    """
    query = db.query(Component).filter(Component.user_id == user_id)

    if bike_id is not None:
        query = query.filter(Component.bike_id == bike_id)
    elif only_spare:
        query = query.filter(Component.bike_id.is_(None), Component.status == ComponentStatus.INVENTORY)

    if types:
        try:
            query = query.filter(Component.type.in_([ComponentType(t) for t in types]))
        except ValueError as e:
            raise InvalidInputError(f"Unknown component type: {str(e)}")

    if not include_retired:
        query = query.filter(Component.status != ComponentStatus.RETIRED)

    return query.order_by(Component.created_at.desc(), Component.id.desc()).all()


def get_install_history(
    db: Session,
    user_id: int,
    bike_id: Optional[int] = None,
    component_id: Optional[int] = None,
) -> List[BikeComponentInstall]:
    """Install records for a bike and/or a component, most recent first."""
    if bike_id is None and component_id is None:
        raise InvalidInputError("Provide bike_id or component_id")

    query = db.query(BikeComponentInstall).filter(BikeComponentInstall.user_id == user_id)
    if bike_id is not None:
        get_owned_bike(db, user_id, bike_id)
        query = query.filter(BikeComponentInstall.bike_id == bike_id)
    if component_id is not None:
        get_owned_component(db, user_id, component_id)
        query = query.filter(BikeComponentInstall.component_id == component_id)

    return query.order_by(
        BikeComponentInstall.installed_at.desc(),
        BikeComponentInstall.id.desc(),
    ).all()
