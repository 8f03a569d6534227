"""
Component Factory
Builds the initial set of components for a bike from its BikeSpec,
optional catalog data and user overrides.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bikewear.db.errors import is_unique_violation
from bikewear.exceptions import InvalidInputError
from bikewear.models.base import utcnow
from bikewear.models.component import (
    BaselineConfidence,
    BaselineMethod,
    Component,
    ComponentLocation,
    ComponentStatus,
    ComponentType,
)
from bikewear.models.install import BikeComponentInstall
from bikewear.utils.component_catalog import (
    BikeSpec,
    CatalogComponentData,
    ComponentDefinition,
    component_label,
    get_applicable_components,
)
from bikewear.utils.slot_keys import slot_key
from bikewear.utils.text import MAX_LABEL_LEN, MAX_NOTES_LEN, clean_text

logger = logging.getLogger(__name__)

STOCK = "Stock"


# ============================================================================
# INPUT TYPES
# ============================================================================


@dataclass
class ComponentOverride:
    """User-entered brand/model for one component type."""
    brand: Optional[str] = None
    model: Optional[str] = None
    notes: Optional[str] = None
    is_stock: Optional[bool] = None

    def has_data(self) -> bool:
        # Real override: brand or model given, or explicitly aftermarket
        return bool(clean_text(self.brand) or clean_text(self.model)) or self.is_stock is False


@dataclass
class PairedSideSpec:
    brand: str
    model: str


@dataclass
class PairedComponentConfig:
    """Front/rear specs for a pairing type. use_same_spec ignores the side specs."""
    type: ComponentType
    use_same_spec: bool = True
    front_spec: Optional[PairedSideSpec] = None
    rear_spec: Optional[PairedSideSpec] = None


@dataclass
class _Identity:
    brand: str
    model: str
    notes: Optional[str]
    is_stock: bool


# ============================================================================
# BRAND / MODEL RESOLUTION
# ============================================================================


def normalize_override(component_type: ComponentType, override: ComponentOverride) -> _Identity:
    fallback = component_label(component_type)
    brand = clean_text(override.brand, MAX_LABEL_LEN)
    model = clean_text(override.model, MAX_LABEL_LEN)
    notes = clean_text(override.notes, MAX_NOTES_LEN)
    is_stock = override.is_stock if override.is_stock is not None else (not brand and not model)

    return _Identity(
        brand=brand or (STOCK if is_stock else fallback),
        model=model or (STOCK if is_stock else fallback),
        notes=notes,
        is_stock=is_stock,
    )


def extract_catalog_identity(
    data: Optional[CatalogComponentData],
    fallback_model: str,
) -> Optional[_Identity]:
    """
    Brand/model from catalog data, or None when nothing usable is present.

    Fallback chain:
        1. maker + model (description kept as notes)
        2. maker + description (description used as model)
        3. description only: first word is the brand, rest is the model
        4. single-word description: that word is the brand, fallback_model the model
    """
    if data is None:
        return None

    if data.maker and data.model:
        return _Identity(data.maker, data.model, data.description, True)

    if data.maker and data.description:
        return _Identity(data.maker, data.description, None, True)

    if data.description:
        parts = data.description.split()
        if len(parts) > 1:
            return _Identity(parts[0], " ".join(parts[1:]), None, True)
        if len(parts) == 1:
            return _Identity(parts[0], fallback_model, None, True)

    return None


def _resolve_identity(
    definition: ComponentDefinition,
    override: Optional[ComponentOverride],
    catalog_data: Optional[CatalogComponentData],
) -> _Identity:
    # user override > catalog data > generic stock placeholder
    if override is not None and override.has_data():
        return normalize_override(definition.type, override)

    extracted = extract_catalog_identity(catalog_data, definition.display_name)
    if extracted is not None:
        return extracted

    return _Identity(STOCK, definition.display_name, None, True)


def _paired_sides(
    identity: _Identity,
    config: Optional[PairedComponentConfig],
) -> Tuple[Tuple[str, str], Tuple[str, str]]:
    front = (identity.brand, identity.model)
    rear = (identity.brand, identity.model)
    if config is not None and not config.use_same_spec:
        if config.front_spec:
            front = (config.front_spec.brand, config.front_spec.model)
        if config.rear_spec:
            rear = (config.rear_spec.brand, config.rear_spec.model)
    return front, rear


# ============================================================================
# BUILD
# ============================================================================


def build_bike_components(
    db: Session,
    bike_id: int,
    user_id: int,
    bike_spec: BikeSpec,
    catalog_components: Optional[Mapping[str, CatalogComponentData]] = None,
    user_overrides: Optional[Mapping[ComponentType, ComponentOverride]] = None,
    paired_configs: Optional[Sequence[PairedComponentConfig]] = None,
) -> List[Component]:
    """
    Create the initial components for a bike and open their install records.

    Runs inside the caller's transaction (no commit). Safe to re-run: rows
    that already exist for (bike, type, location) are skipped, including
    ones inserted concurrently.

    Args:
        db: Database session
        bike_id: Bike to build for
        user_id: Owner
        bike_spec: Derived bike features (decides applicable types)
        catalog_components: Catalog data keyed by catalog key ("fork", "tires", ...)
        user_overrides: User-entered data keyed by component type
        paired_configs: Front/rear differentiation for pairing types

    Returns:
        Newly created components (pre-existing ones are not included)

    Example:
        spec = derive_bike_spec(travel_fork_mm=160, travel_shock_mm=150)
        build_bike_components(db, bike_id=bike.id, user_id=user.id, bike_spec=spec)
    """
    catalog_components = catalog_components or {}
    user_overrides = user_overrides or {}
    configs_by_type: Dict[ComponentType, PairedComponentConfig] = {
        ComponentType(c.type): c for c in (paired_configs or [])
    }

    # Every new component starts at 0% - ride backfill and service dates refine it later
    now = utcnow()

    existing = {
        (c.type, c.location): c
        for c in db.query(Component).filter(Component.bike_id == bike_id).all()
    }

    to_create: List[dict] = []

    def new_component(component_type, location, brand, model, identity, pair_group_id=None):
        if (component_type, location) in existing:
            return
        to_create.append(dict(
            type=component_type,
            location=location,
            bike_id=bike_id,
            user_id=user_id,
            brand=brand,
            model=model,
            notes=identity.notes,
            is_stock=identity.is_stock,
            hours_used=0.0,
            installed_at=now,
            status=ComponentStatus.INSTALLED,
            baseline_wear_percent=0.0,
            baseline_method=BaselineMethod.DEFAULT,
            baseline_confidence=BaselineConfidence.LOW,
            baseline_set_at=now,
            pair_group_id=pair_group_id,
        ))

    for definition in get_applicable_components(bike_spec):
        catalog_data = catalog_components.get(definition.catalog_key) if definition.catalog_key else None

        # A catalog "dropper" seatpost is tracked as DROPPER, not SEATPOST
        if (
            definition.type == ComponentType.SEATPOST
            and catalog_data is not None
            and catalog_data.kind == "dropper"
        ):
            continue

        identity = _resolve_identity(definition, user_overrides.get(definition.type), catalog_data)

        if definition.requires_pairing:
            (front_brand, front_model), (rear_brand, rear_model) = _paired_sides(
                identity, configs_by_type.get(definition.type)
            )
            # Reuse the surviving side's group when one side already exists
            sibling = existing.get((definition.type, ComponentLocation.FRONT)) or existing.get(
                (definition.type, ComponentLocation.REAR)
            )
            pair_group_id = (sibling.pair_group_id if sibling else None) or str(uuid.uuid4())

            new_component(definition.type, ComponentLocation.FRONT, front_brand, front_model, identity, pair_group_id)
            new_component(definition.type, ComponentLocation.REAR, rear_brand, rear_model, identity, pair_group_id)
        else:
            new_component(definition.type, ComponentLocation.NONE, identity.brand, identity.model, identity)

    created = _insert_skipping_duplicates(db, Component, to_create)
    opened = open_missing_installs(db, bike_id=bike_id, user_id=user_id)

    logger.info(
        f"✅ Built {len(created)} components for bike {bike_id} "
        f"({len(to_create) - len(created)} skipped, {len(opened)} installs opened)"
    )
    return created


def _insert_skipping_duplicates(db: Session, model, rows: List[dict]) -> List:
    """Insert rows in one batch; on a unique race retry one by one, skipping duplicates."""
    if not rows:
        return []

    try:
        with db.begin_nested():
            batch = [model(**row) for row in rows]
            db.add_all(batch)
            db.flush()
        return batch
    except IntegrityError as e:
        if not is_unique_violation(e):
            raise
        logger.info("Concurrent insert detected during batch create, retrying row by row")

    inserted = []
    for row in rows:
        try:
            with db.begin_nested():
                instance = model(**row)
                db.add(instance)
                db.flush()
            inserted.append(instance)
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            logger.debug(f"Skipped existing {model.__name__} row {row}")
    return inserted


def open_missing_installs(db: Session, bike_id: int, user_id: int) -> List[BikeComponentInstall]:
    """Open an install record for every mounted component on the bike that lacks one."""
    active_component_ids = {
        component_id
        for (component_id,) in db.query(BikeComponentInstall.component_id).filter(
            BikeComponentInstall.bike_id == bike_id,
            BikeComponentInstall.removed_at.is_(None),
        )
    }

    components = db.query(Component).filter(
        Component.bike_id == bike_id,
        Component.user_id == user_id,
        Component.retired_at.is_(None),
    ).all()

    rows = []
    for component in components:
        if component.id in active_component_ids:
            continue
        try:
            key = slot_key(component.type, component.location)
        except InvalidInputError:
            # Legacy unpaired row (e.g. TIRES at NONE); the pairing migration fixes it
            logger.debug(f"No slot for legacy component {component.id}, skipping install record")
            continue
        rows.append(dict(
            user_id=user_id,
            bike_id=bike_id,
            component_id=component.id,
            slot_key=key,
            installed_at=component.installed_at or component.created_at,
        ))

    return _insert_skipping_duplicates(db, BikeComponentInstall, rows)
