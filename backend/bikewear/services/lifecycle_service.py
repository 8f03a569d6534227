"""
Lifecycle Service
Install, swap, replace and pair-migration operations on bike slots.

Each operation is one transaction: either every component/install change
lands or none does. Install history is append-only; a slot change closes
the active BikeComponentInstall row and opens a new one.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from bikewear.config import settings
from bikewear.db.database import transaction
from bikewear.db.errors import is_unique_violation
from bikewear.exceptions import ConflictError, InvalidInputError
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
from bikewear.models.user import User
from bikewear.services.component_factory import open_missing_installs
from bikewear.services.permission_service import (
    get_owned_bike,
    get_owned_component,
    get_owned_user,
)
from bikewear.services.prediction_cache import AffectedBikes, prediction_invalidation
from bikewear.utils.component_catalog import paired_component_types, requires_pairing
from bikewear.utils.slot_keys import opposite_location, parse_slot_key
from bikewear.utils.slot_keys import slot_key as build_slot_key
from bikewear.utils.text import MAX_LABEL_LEN, clean_text

logger = logging.getLogger(__name__)

SLOT_CONFLICT_MESSAGE = "Slot was changed by another request, please retry"


# ============================================================================
# INPUT / RESULT TYPES
# ============================================================================


@dataclass
class NewComponentSpec:
    """Brand/model for a component created as part of an install."""
    brand: str
    model: str
    is_stock: bool = False


@dataclass
class InstallResult:
    installed: Component
    displaced: Optional[Component] = None
    paired_installed: Optional[Component] = None
    paired_displaced: Optional[Component] = None


@dataclass
class SwapResult:
    component_a: Component
    component_b: Component


@dataclass
class ReplaceResult:
    replaced: List[Component] = field(default_factory=list)
    created: List[Component] = field(default_factory=list)


@dataclass
class MigrationResult:
    migrated_count: int = 0
    components: List[Component] = field(default_factory=list)


# One side of an install: either an existing spare or a part to create
InstallSource = Union[Component, NewComponentSpec]


# ============================================================================
# INSTALL RECORD HELPERS
# ============================================================================


def get_active_install(db: Session, bike_id: int, key: str) -> Optional[BikeComponentInstall]:
    return db.query(BikeComponentInstall).filter(
        BikeComponentInstall.bike_id == bike_id,
        BikeComponentInstall.slot_key == key,
        BikeComponentInstall.removed_at.is_(None),
    ).first()


def get_active_install_for_component(db: Session, component_id: int) -> Optional[BikeComponentInstall]:
    return db.query(BikeComponentInstall).filter(
        BikeComponentInstall.component_id == component_id,
        BikeComponentInstall.removed_at.is_(None),
    ).first()


def _open_install(
    db: Session,
    user_id: int,
    bike_id: int,
    component_id: int,
    key: str,
    now: datetime,
) -> BikeComponentInstall:
    install = BikeComponentInstall(
        user_id=user_id,
        bike_id=bike_id,
        component_id=component_id,
        slot_key=key,
        installed_at=now,
    )
    db.add(install)
    return install


def find_partner(db: Session, component: Component) -> Optional[Component]:
    """The other non-retired member of the component's pair group."""
    if not component.pair_group_id:
        return None
    return db.query(Component).filter(
        Component.pair_group_id == component.pair_group_id,
        Component.id != component.id,
        Component.status != ComponentStatus.RETIRED,
    ).first()


def _clean_required(value, label: str) -> str:
    cleaned = clean_text(value, MAX_LABEL_LEN)
    if not cleaned:
        raise InvalidInputError(f"{label} is required")
    return cleaned


def _validate_spec(spec: Optional[NewComponentSpec], label: str) -> Optional[NewComponentSpec]:
    if spec is None:
        return None
    return NewComponentSpec(
        brand=_clean_required(spec.brand, f"{label} brand"),
        model=_clean_required(spec.model, f"{label} model"),
        is_stock=bool(spec.is_stock),
    )


def _check_installable(component: Component, slot_type: ComponentType) -> None:
    if component.type != slot_type:
        raise InvalidInputError(
            f"Component type {component.type.value} does not match slot type {slot_type.value}"
        )
    if component.status == ComponentStatus.RETIRED:
        raise InvalidInputError("Retired components cannot be installed")


# ============================================================================
# INSTALL
# ============================================================================


def _install_into_slot(
    db: Session,
    user_id: int,
    bike_id: int,
    key: str,
    source: InstallSource,
    now: datetime,
    affected: AffectedBikes,
):
    """
    Put source into one slot. Returns (installed, displaced).

    A new part retires the current occupant; an existing spare sends the
    occupant back to inventory.
    """
    slot_type, slot_location = parse_slot_key(key)
    is_new = isinstance(source, NewComponentSpec)

    # 1. Detach the spare from wherever it is mounted now
    if not is_new and source.bike_id is not None:
        previous = get_active_install_for_component(db, source.id)
        if previous:
            previous.removed_at = now
        affected.add(source.bike_id)
        source.bike_id = None
        source.status = ComponentStatus.INVENTORY
        db.flush()

    # 2. Remove the current occupant
    displaced = None
    current = get_active_install(db, bike_id, key)
    if current:
        current.removed_at = now
        displaced = db.query(Component).filter(Component.id == current.component_id).first()
    if displaced is not None:
        displaced.bike_id = None
        if is_new:
            displaced.status = ComponentStatus.RETIRED
            displaced.retired_at = now
        else:
            displaced.status = ComponentStatus.INVENTORY
            displaced.installed_at = None
    db.flush()

    # 3. Mount the incoming component
    if is_new:
        installed = Component(
            user_id=user_id,
            bike_id=bike_id,
            type=slot_type,
            location=slot_location,
            brand=source.brand,
            model=source.model,
            is_stock=source.is_stock,
            hours_used=0.0,
            status=ComponentStatus.INSTALLED,
            installed_at=now,
            # Brand new part: known to be at 0% wear
            baseline_wear_percent=0.0,
            baseline_method=BaselineMethod.DEFAULT,
            baseline_confidence=BaselineConfidence.HIGH,
            baseline_set_at=now,
        )
        db.add(installed)
        db.flush()
        if displaced is not None:
            displaced.replaced_by_id = installed.id
    else:
        installed = source
        installed.bike_id = bike_id
        installed.location = slot_location
        installed.status = ComponentStatus.INSTALLED
        installed.installed_at = now
        db.flush()

    # 4. Open the new install record
    _open_install(db, user_id, bike_id, installed.id, key, now)
    db.flush()

    return installed, displaced


def install_component(
    db: Session,
    user_id: int,
    bike_id: int,
    slot_key: str,
    existing_component_id: Optional[int] = None,
    new_component: Optional[NewComponentSpec] = None,
    also_replace_pair: bool = False,
    pair_new_component: Optional[NewComponentSpec] = None,
    pair_existing_component_id: Optional[int] = None,
) -> InstallResult:
    """
    Install a component into a bike slot, optionally doing the paired slot too.

    Exactly one of existing_component_id / new_component must be given.
    With also_replace_pair on a pairing slot the opposite location is filled
    from pair_existing_component_id, else pair_new_component, else a copy of
    new_component. Both installed parts then share a fresh pair group.

    Args:
        db: Database session
        user_id: Caller, must own the bike and any spare used
        bike_id: Target bike
        slot_key: Target slot ("FORK", "TIRES:FRONT", ...)
        existing_component_id: Spare (or component on another slot/bike) to move in
        new_component: Brand/model of a new part to create
        also_replace_pair: Also fill the opposite FRONT/REAR slot
        pair_new_component: Brand/model for the paired side
        pair_existing_component_id: Spare for the paired side

    Returns:
        InstallResult with installed/displaced components for each slot

    Raises:
        NotFoundError: Bike or component missing / not owned
        InvalidInputError: Bad source combination, type mismatch, retired spare
        ConflictError: Slot changed by a concurrent request

    Example:
        install_component(db, user_id=1, bike_id=4, slot_key="TIRES:FRONT",
                          new_component=NewComponentSpec("Maxxis", "Assegai"),
                          also_replace_pair=True)
    """
    if (existing_component_id is None) == (new_component is None):
        raise InvalidInputError("Provide exactly one of existing_component_id or new_component")
    if pair_existing_component_id is not None and pair_new_component is not None:
        raise InvalidInputError("Provide at most one of pair_existing_component_id or pair_new_component")

    slot_type, slot_location = parse_slot_key(slot_key)
    new_component = _validate_spec(new_component, "Component")
    pair_new_component = _validate_spec(pair_new_component, "Paired component")

    get_owned_bike(db, user_id, bike_id)

    source: InstallSource = new_component
    if existing_component_id is not None:
        source = get_owned_component(db, user_id, existing_component_id)
        _check_installable(source, slot_type)

    pair_key = None
    pair_source: Optional[InstallSource] = None
    if also_replace_pair and requires_pairing(slot_type):
        pair_key = build_slot_key(slot_type, opposite_location(slot_location))
        if pair_existing_component_id is not None:
            pair_source = get_owned_component(db, user_id, pair_existing_component_id, label="Paired component")
            _check_installable(pair_source, slot_type)
            if isinstance(source, Component) and pair_source.id == source.id:
                raise InvalidInputError("The same component cannot fill both slots of a pair")
        elif pair_new_component is not None:
            pair_source = pair_new_component
        elif new_component is not None:
            pair_source = NewComponentSpec(new_component.brand, new_component.model, new_component.is_stock)
        else:
            raise InvalidInputError(
                "Installing a spare with also_replace_pair requires a paired spare or paired component details"
            )

    with prediction_invalidation(user_id, [bike_id]) as affected, \
            transaction(db, conflict_message=SLOT_CONFLICT_MESSAGE):
        now = utcnow()
        installed, displaced = _install_into_slot(db, user_id, bike_id, slot_key, source, now, affected)

        paired_installed = paired_displaced = None
        if pair_source is not None:
            if isinstance(pair_source, Component) and pair_source.status == ComponentStatus.RETIRED:
                # The paired spare was the part just retired from the primary slot
                raise InvalidInputError("The paired component was retired by this install")
            paired_installed, paired_displaced = _install_into_slot(
                db, user_id, bike_id, pair_key, pair_source, now, affected
            )
            group = str(uuid.uuid4())
            installed.pair_group_id = group
            paired_installed.pair_group_id = group
        elif (
            requires_pairing(slot_type)
            and isinstance(source, NewComponentSpec)
            and displaced is not None
            and displaced.pair_group_id
        ):
            # New part takes the retired part's place; the surviving side joins a fresh group
            partner = find_partner(db, displaced)
            if partner is not None:
                group = str(uuid.uuid4())
                installed.pair_group_id = group
                partner.pair_group_id = group

        db.flush()

    logger.info(
        f"✅ Installed component {installed.id} into {slot_key} on bike {bike_id}"
        + (f" (+{pair_key}: {paired_installed.id})" if paired_installed is not None else "")
    )
    return InstallResult(
        installed=installed,
        displaced=displaced,
        paired_installed=paired_installed,
        paired_displaced=paired_displaced,
    )


# ============================================================================
# SWAP
# ============================================================================


def swap_components(
    db: Session,
    user_id: int,
    bike_id_a: int,
    slot_key_a: str,
    bike_id_b: int,
    slot_key_b: str,
) -> SwapResult:
    """
    Exchange the occupants of two same-type slots, on one bike or across two.

    Hours and baselines travel with the components. Pair groups stay with
    the slots, so a pair partner is always at the opposite location on the
    same bike.

    Raises:
        NotFoundError: Either bike missing / not owned
        InvalidInputError: Same slot twice, type mismatch, or an empty slot
        ConflictError: Slots changed by a concurrent request
    """
    if bike_id_a == bike_id_b and slot_key_a == slot_key_b:
        raise InvalidInputError("Cannot swap a slot with itself")

    type_a, location_a = parse_slot_key(slot_key_a)
    type_b, location_b = parse_slot_key(slot_key_b)
    if type_a != type_b:
        raise InvalidInputError(
            f"Cannot swap {type_a.value} with {type_b.value}: component types must match"
        )

    get_owned_bike(db, user_id, bike_id_a, label="First bike")
    get_owned_bike(db, user_id, bike_id_b, label="Second bike")

    with prediction_invalidation(user_id, [bike_id_a, bike_id_b]), \
            transaction(db, conflict_message=SLOT_CONFLICT_MESSAGE):
        install_a = get_active_install(db, bike_id_a, slot_key_a)
        install_b = get_active_install(db, bike_id_b, slot_key_b)
        if not install_a or not install_b:
            raise InvalidInputError("Both slots must have a component installed to swap")

        component_a = db.query(Component).filter(Component.id == install_a.component_id).first()
        component_b = db.query(Component).filter(Component.id == install_b.component_id).first()

        now = utcnow()
        install_a.removed_at = now
        install_b.removed_at = now

        # Clear both first so a same-bike swap never holds two rows at one slot
        component_a.bike_id = None
        component_b.bike_id = None
        db.flush()

        component_a.bike_id = bike_id_b
        component_a.location = location_b
        component_b.bike_id = bike_id_a
        component_b.location = location_a
        if requires_pairing(type_a):
            # Pair groups belong to the slots, so each part joins the group it moved into
            component_a.pair_group_id, component_b.pair_group_id = (
                component_b.pair_group_id,
                component_a.pair_group_id,
            )
        db.flush()

        _open_install(db, user_id, bike_id_b, component_a.id, slot_key_b, now)
        _open_install(db, user_id, bike_id_a, component_b.id, slot_key_a, now)
        db.flush()

    logger.info(
        f"✅ Swapped component {component_a.id} ({bike_id_a}/{slot_key_a}) "
        f"with {component_b.id} ({bike_id_b}/{slot_key_b})"
    )
    return SwapResult(component_a=component_a, component_b=component_b)


# ============================================================================
# REPLACE
# ============================================================================


def _retire_and_succeed(
    db: Session,
    user_id: int,
    component: Component,
    brand: str,
    model: str,
    pair_group_id: Optional[str],
    now: datetime,
) -> Component:
    bike_id = component.bike_id
    install = get_active_install_for_component(db, component.id)
    key = install.slot_key if install else None
    if install:
        install.removed_at = now

    component.status = ComponentStatus.RETIRED
    component.retired_at = now
    component.bike_id = None
    db.flush()

    successor = Component(
        user_id=user_id,
        bike_id=bike_id,
        type=component.type,
        location=component.location,
        brand=brand,
        model=model,
        is_stock=False,
        hours_used=0.0,
        status=ComponentStatus.INSTALLED if bike_id else ComponentStatus.INVENTORY,
        installed_at=now if bike_id else None,
        baseline_wear_percent=0.0,
        baseline_method=BaselineMethod.DEFAULT,
        baseline_confidence=BaselineConfidence.HIGH,
        baseline_set_at=now,
        pair_group_id=pair_group_id,
    )
    db.add(successor)
    db.flush()

    component.replaced_by_id = successor.id

    if bike_id:
        if key is None:
            try:
                key = build_slot_key(component.type, component.location)
            except InvalidInputError:
                # Legacy unpaired row, no slot to record until migrated
                key = None
        if key is not None:
            _open_install(db, user_id, bike_id, successor.id, key, now)
    db.flush()

    return successor


def replace_component(
    db: Session,
    user_id: int,
    component_id: int,
    new_brand: str,
    new_model: str,
    also_replace_pair: bool = False,
    pair_brand: Optional[str] = None,
    pair_model: Optional[str] = None,
) -> ReplaceResult:
    """
    Retire a component and create its successor in the same position.

    The successor starts at 0 hours with a HIGH-confidence DEFAULT baseline.
    For pairing types the successor gets a fresh pair group; the partner is
    either replaced too (also_replace_pair) or relinked to the new group.

    Raises:
        NotFoundError: Component missing / not owned
        InvalidInputError: Already retired, or brand/model missing
    """
    component = get_owned_component(db, user_id, component_id)
    if component.status == ComponentStatus.RETIRED:
        raise InvalidInputError("Component is already retired")

    brand = _clean_required(new_brand, "Brand")
    model = _clean_required(new_model, "Model")
    pair_brand = clean_text(pair_brand, MAX_LABEL_LEN) or brand
    pair_model = clean_text(pair_model, MAX_LABEL_LEN) or model

    result = ReplaceResult()
    with prediction_invalidation(user_id, [component.bike_id]) as affected, \
            transaction(db, conflict_message=SLOT_CONFLICT_MESSAGE):
        now = utcnow()
        group = str(uuid.uuid4()) if requires_pairing(component.type) else None
        partner = find_partner(db, component) if group else None

        result.replaced.append(component)
        result.created.append(
            _retire_and_succeed(db, user_id, component, brand, model, group, now)
        )

        if partner is not None and also_replace_pair:
            affected.add(partner.bike_id)
            result.replaced.append(partner)
            result.created.append(
                _retire_and_succeed(db, user_id, partner, pair_brand, pair_model, group, now)
            )
        elif partner is not None:
            partner.pair_group_id = group
            db.flush()

    logger.info(
        f"✅ Replaced components {[c.id for c in result.replaced]} "
        f"with {[c.id for c in result.created]}"
    )
    return result


# ============================================================================
# PAIRED COMPONENT MIGRATION
# ============================================================================


def _rear_clone(component: Component, pair_group_id: str) -> Component:
    return Component(
        user_id=component.user_id,
        bike_id=component.bike_id,
        type=component.type,
        location=ComponentLocation.REAR,
        brand=component.brand,
        model=component.model,
        notes=component.notes,
        is_stock=component.is_stock,
        hours_used=component.hours_used,
        service_interval_hours=component.service_interval_hours,
        service_due_at_hours=component.service_due_at_hours,
        last_serviced_at=component.last_serviced_at,
        baseline_wear_percent=component.baseline_wear_percent,
        baseline_method=component.baseline_method,
        baseline_confidence=component.baseline_confidence,
        baseline_set_at=component.baseline_set_at,
        status=component.status,
        installed_at=component.installed_at,
        pair_group_id=pair_group_id,
    )


def _has_paired_components(db: Session, user_id: int) -> bool:
    return db.query(Component.id).filter(
        Component.user_id == user_id,
        Component.pair_group_id.isnot(None),
    ).first() is not None


def user_row_lock(db: Session, user_id: int):
    """SELECT ... FOR UPDATE on the user row; concurrent migrations for one user queue here."""
    return db.query(User).filter(User.id == user_id).with_for_update()


def _mounted_side(db: Session, component: Component, location: ComponentLocation) -> Optional[Component]:
    if component.bike_id is None:
        return None
    return db.query(Component).filter(
        Component.bike_id == component.bike_id,
        Component.type == component.type,
        Component.location == location,
        Component.id != component.id,
    ).first()


def migrate_paired_components(db: Session, user_id: int) -> MigrationResult:
    """
    Split legacy unpaired rows (e.g. one TIRES at NONE) into FRONT + REAR.

    The original row becomes FRONT; a REAR clone copies its wear state and
    both share a new pair group. Runs once per user: if the user already
    has any paired component nothing happens.

    Sides added separately since the legacy row was created are reused:
    an existing REAR becomes the partner instead of a clone, an existing
    FRONT pushes the legacy row to REAR, and when both exist the legacy
    row goes to inventory before being split.

    Raises:
        NotFoundError: User missing
        ConflictError: A unique slot was taken by something other than a
            concurrent run of this migration

    Returns:
        MigrationResult(migrated_count, all components touched or created)
    """
    get_owned_user(db, user_id)

    result = MigrationResult()
    try:
        with prediction_invalidation(user_id) as affected, \
                transaction(db, timeout_ms=settings.MIGRATION_TIMEOUT_MS):
            user_row_lock(db, user_id).one()

            # Guard is evaluated inside the transaction, after the lock
            if _has_paired_components(db, user_id):
                logger.debug(f"User {user_id} already has paired components, skipping migration")
                return MigrationResult()

            legacy = db.query(Component).filter(
                Component.user_id == user_id,
                Component.type.in_(paired_component_types()),
                Component.location == ComponentLocation.NONE,
                Component.status != ComponentStatus.RETIRED,
            ).order_by(Component.id).all()

            now = utcnow()
            bike_ids = set()
            for component in legacy:
                affected.add(component.bike_id)
                group = str(uuid.uuid4())
                install = get_active_install_for_component(db, component.id)

                front = _mounted_side(db, component, ComponentLocation.FRONT)
                rear = _mounted_side(db, component, ComponentLocation.REAR)
                if front is not None and rear is not None:
                    # Both slots are taken; keep the legacy part as a spare pair
                    logger.warning(
                        f"Legacy component {component.id} has no free slot on bike {component.bike_id}, "
                        f"moving it to inventory"
                    )
                    if install:
                        install.removed_at = now
                        install = None
                    component.bike_id = None
                    component.status = ComponentStatus.INVENTORY
                    component.installed_at = None
                    front = rear = None

                location, partner = ComponentLocation.FRONT, rear
                if front is not None:
                    location, partner = ComponentLocation.REAR, front

                component.location = location
                component.pair_group_id = group
                if install:
                    install.slot_key = build_slot_key(component.type, location)
                db.flush()

                if partner is not None:
                    partner.pair_group_id = group
                else:
                    partner = _rear_clone(component, group)
                    db.add(partner)
                db.flush()

                if component.bike_id is not None and component.status == ComponentStatus.INSTALLED:
                    bike_ids.add(component.bike_id)
                result.components.extend([component, partner])
                result.migrated_count += 1

            for bike_id in sorted(bike_ids):
                open_missing_installs(db, bike_id=bike_id, user_id=user_id)
            db.flush()
    except IntegrityError as e:
        if not is_unique_violation(e):
            raise
        # Only a run that already paired this user's parts counts as a lost race
        if _has_paired_components(db, user_id):
            logger.warning(f"Paired component migration for user {user_id} lost a race, nothing migrated")
            return MigrationResult()
        logger.error(f"Paired component migration for user {user_id} failed: {str(e)}")
        raise ConflictError("Paired component migration conflicts with existing components") from e

    logger.info(f"✅ Migrated {result.migrated_count} legacy components to pairs for user {user_id}")
    return result


def mark_paired_migration_seen(db: Session, user_id: int):
    """Record that the user has seen the pairing-migration notice."""
    user = get_owned_user(db, user_id)
    with transaction(db):
        user.paired_component_migration_seen_at = utcnow()
    return user
