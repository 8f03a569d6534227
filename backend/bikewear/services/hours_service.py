"""
Hours Service
Wear-hour accounting for the components mounted on a bike
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from bikewear.models.component import Component

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


def duration_to_hours(duration_seconds) -> float:
    """Ride duration in seconds -> wear hours (negative durations count as 0)."""
    return max(0, duration_seconds or 0) / SECONDS_PER_HOUR


def _bike_components(db: Session, user_id: int, bike_id: int):
    return db.query(Component).filter(
        Component.user_id == user_id,
        Component.bike_id == bike_id,
    )


# ============================================================================
# INCREMENT
# ============================================================================


def increment_bike_component_hours(
    db: Session,
    user_id: int,
    bike_id: int,
    hours_delta: float,
) -> List[Component]:
    """
    Add hours_delta to every component currently mounted on the bike.

    Runs inside the caller's transaction (no commit). Wear accrues to
    whatever is mounted, regardless of which slot it occupies.

    Args:
        db: Database session
        user_id: Owner of the bike
        bike_id: Bike the ride was logged against
        hours_delta: Hours to add; <= 0 is a no-op

    Returns:
        The bike's components after the update

    Example:
        increment_bike_component_hours(db, user_id=1, bike_id=4, hours_delta=1.5)
    """
    if hours_delta is None or hours_delta <= 0:
        return []

    db.flush()
    updated = _bike_components(db, user_id, bike_id).update(
        {Component.hours_used: Component.hours_used + hours_delta},
        synchronize_session="fetch",
    )
    logger.debug(f"+{hours_delta:.3f}h on {updated} components of bike {bike_id}")

    return _bike_components(db, user_id, bike_id).populate_existing().all()


# ============================================================================
# DECREMENT
# ============================================================================


def decrement_bike_component_hours(
    db: Session,
    user_id: int,
    bike_id: int,
    hours_delta: float,
) -> List[Component]:
    """
    Remove hours_delta from every component currently mounted on the bike.

    Runs inside the caller's transaction (no commit). Followed in the same
    transaction by a clamp so hours_used never goes below zero.

    Args:
        db: Database session
        user_id: Owner of the bike
        bike_id: Bike that lost the ride
        hours_delta: Hours to remove; <= 0 is a no-op

    Returns:
        The bike's components after the update
    """
    if hours_delta is None or hours_delta <= 0:
        return []

    db.flush()
    updated = _bike_components(db, user_id, bike_id).update(
        {Component.hours_used: Component.hours_used - hours_delta},
        synchronize_session="fetch",
    )

    # Floor at zero
    clamped = _bike_components(db, user_id, bike_id).filter(
        Component.hours_used < 0
    ).update(
        {Component.hours_used: 0.0},
        synchronize_session="fetch",
    )
    logger.debug(
        f"-{hours_delta:.3f}h on {updated} components of bike {bike_id} ({clamped} clamped to 0)"
    )

    return _bike_components(db, user_id, bike_id).populate_existing().all()
