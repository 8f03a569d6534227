"""
Permission Service - Centralized ownership checks for bikes and components

Everything a user touches must belong to them. A record that exists but is
owned by someone else is reported exactly like a missing one.
"""

import logging
from typing import List, Sequence

from sqlalchemy.orm import Session

from bikewear.exceptions import NotFoundError, UnauthorizedError
from bikewear.models.bike import Bike
from bikewear.models.component import Component
from bikewear.models.user import User

logger = logging.getLogger(__name__)


def get_owned_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def get_owned_bike(db: Session, user_id: int, bike_id: int, label: str = "Bike") -> Bike:
    """
    Get a bike owned by user_id.

    Args:
        db: Database session
        user_id: Caller
        bike_id: Bike ID
        label: Name used in the error message ("Bike", "Target bike", ...)

    Returns:
        Bike object

    Raises:
        NotFoundError: Bike missing or owned by another user

    Example:
        bike = get_owned_bike(db=db, user_id=1, bike_id=4)
    """
    bike = db.query(Bike).filter(Bike.id == bike_id).first()
    if not bike:
        raise NotFoundError(f"{label} not found")
    if bike.user_id != user_id:
        logger.warning(f"User {user_id} tried to access bike {bike_id} owned by another user")
        raise UnauthorizedError(f"{label} not found")
    return bike


def get_owned_component(db: Session, user_id: int, component_id: int, label: str = "Component") -> Component:
    """
    Get a component owned by user_id.

    Raises:
        NotFoundError: Component missing or owned by another user
    """
    component = db.query(Component).filter(Component.id == component_id).first()
    if not component:
        raise NotFoundError(f"{label} not found")
    if component.user_id != user_id:
        logger.warning(f"User {user_id} tried to access component {component_id} owned by another user")
        raise UnauthorizedError(f"{label} not found")
    return component


def get_owned_components(db: Session, user_id: int, component_ids: Sequence[int]) -> List[Component]:
    """
    Get several components at once, in the order requested.

    All-or-nothing: one missing or foreign ID fails the whole lookup.
    """
    unique_ids = list(dict.fromkeys(component_ids))
    if not unique_ids:
        return []

    found = {
        c.id: c
        for c in db.query(Component).filter(
            Component.id.in_(unique_ids),
            Component.user_id == user_id,
        ).all()
    }

    missing = [cid for cid in unique_ids if cid not in found]
    if missing:
        raise NotFoundError(f"Components not found: {', '.join(str(cid) for cid in missing)}")

    return [found[cid] for cid in unique_ids]
