"""
Ride Service
Ride CRUD. Every change to a ride's bike or duration is mirrored onto the
wear hours of the components mounted on the affected bikes.
"""

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from bikewear.config import settings
from bikewear.db.database import transaction
from bikewear.exceptions import InvalidInputError, NotFoundError
from bikewear.models.base import to_naive_utc
from bikewear.models.bike import Bike
from bikewear.models.ride import Ride
from bikewear.services.hours_service import (
    decrement_bike_component_hours,
    duration_to_hours,
    increment_bike_component_hours,
)
from bikewear.services.permission_service import get_owned_bike
from bikewear.services.prediction_cache import prediction_invalidation
from bikewear.utils.text import MAX_NOTES_LEN, clean_text

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"start_time", "duration_seconds", "distance_miles", "bike_id", "notes"}


def get_owned_ride(db: Session, user_id: int, ride_id: int) -> Ride:
    ride = db.query(Ride).filter(Ride.id == ride_id).first()
    if not ride or ride.user_id != user_id:
        raise NotFoundError("Ride not found")
    return ride


def _duration(value) -> int:
    try:
        return max(0, int(value or 0))
    except (TypeError, ValueError):
        raise InvalidInputError("duration_seconds must be a number")


def _distance(value) -> float:
    try:
        return max(0.0, float(value or 0))
    except (TypeError, ValueError):
        raise InvalidInputError("distance_miles must be a number")


# ============================================================================
# CREATE RIDE
# ============================================================================


def create_ride(
    db: Session,
    user_id: int,
    start_time: datetime,
    duration_seconds: int,
    distance_miles: float = 0.0,
    bike_id: Optional[int] = None,
    notes: Optional[str] = None,
) -> Ride:
    """
    Log a ride and add its hours to the bike's mounted components.

    Without bike_id the ride goes to the user's only bike when they have
    exactly one; otherwise it stays unassigned.
    """
    if start_time is None:
        raise InvalidInputError("start_time is required")

    if bike_id is not None:
        get_owned_bike(db, user_id, bike_id)
    else:
        bike_ids = [b.id for b in db.query(Bike.id).filter(Bike.user_id == user_id).limit(2).all()]
        if len(bike_ids) == 1:
            bike_id = bike_ids[0]

    duration_seconds = _duration(duration_seconds)

    with prediction_invalidation(user_id, [bike_id]), transaction(db):
        ride = Ride(
            user_id=user_id,
            bike_id=bike_id,
            start_time=to_naive_utc(start_time),
            duration_seconds=duration_seconds,
            distance_miles=_distance(distance_miles),
            notes=clean_text(notes, MAX_NOTES_LEN),
        )
        db.add(ride)
        db.flush()

        if bike_id is not None:
            increment_bike_component_hours(db, user_id, bike_id, duration_to_hours(duration_seconds))

    logger.info(f"Ride {ride.id} logged ({duration_seconds}s, bike={bike_id})")
    return ride


# ============================================================================
# UPDATE RIDE
# ============================================================================


def update_ride(
    db: Session,
    user_id: int,
    ride_id: int,
    changes: Mapping[str, Any],
) -> Ride:
    """
    Partially update a ride.

    Bike reassignment and duration changes are handled independently:
    a bike change moves the full before/after hours between bikes, a pure
    duration change applies only the difference to the current bike.

    Args:
        db: Database session
        user_id: Caller
        ride_id: Ride to update
        changes: Field -> new value; absent keys are left alone, bike_id None unassigns
    """
    ride = get_owned_ride(db, user_id, ride_id)

    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise InvalidInputError(f"Cannot update fields: {', '.join(sorted(unknown))}")

    previous_bike_id = ride.bike_id
    next_bike_id = previous_bike_id
    if "bike_id" in changes:
        next_bike_id = changes["bike_id"]
        if next_bike_id is not None:
            get_owned_bike(db, user_id, next_bike_id)

    hours_before = duration_to_hours(ride.duration_seconds)
    duration_changed = "duration_seconds" in changes
    next_duration = _duration(changes["duration_seconds"]) if duration_changed else ride.duration_seconds
    hours_after = duration_to_hours(next_duration)
    hours_diff = hours_after - hours_before
    bike_changed = next_bike_id != previous_bike_id

    with prediction_invalidation(user_id, [previous_bike_id, next_bike_id]), transaction(db):
        if "start_time" in changes:
            if changes["start_time"] is None:
                raise InvalidInputError("start_time cannot be cleared")
            ride.start_time = to_naive_utc(changes["start_time"])
        if "distance_miles" in changes:
            ride.distance_miles = _distance(changes["distance_miles"])
        if "notes" in changes:
            ride.notes = clean_text(changes["notes"], MAX_NOTES_LEN)
        ride.duration_seconds = next_duration
        ride.bike_id = next_bike_id
        db.flush()

        if bike_changed:
            if previous_bike_id is not None:
                decrement_bike_component_hours(db, user_id, previous_bike_id, hours_before)
            if next_bike_id is not None:
                increment_bike_component_hours(db, user_id, next_bike_id, hours_after)
        elif duration_changed and next_bike_id is not None:
            if hours_diff > 0:
                increment_bike_component_hours(db, user_id, next_bike_id, hours_diff)
            elif hours_diff < 0:
                decrement_bike_component_hours(db, user_id, next_bike_id, -hours_diff)

    logger.debug(f"Ride {ride_id} updated: {sorted(changes)}")
    return ride


# ============================================================================
# DELETE RIDE
# ============================================================================


def delete_ride(db: Session, user_id: int, ride_id: int) -> int:
    """Delete a ride and take its hours back off the bike's mounted components."""
    ride = get_owned_ride(db, user_id, ride_id)
    bike_id = ride.bike_id

    with prediction_invalidation(user_id, [bike_id]), transaction(db):
        if bike_id is not None:
            decrement_bike_component_hours(db, user_id, bike_id, duration_to_hours(ride.duration_seconds))
        db.delete(ride)
        db.flush()

    logger.info(f"Ride {ride_id} deleted")
    return ride_id


# ============================================================================
# BULK ASSIGN
# ============================================================================


def assign_bike_to_rides(db: Session, user_id: int, ride_ids: Sequence[int], bike_id: int) -> int:
    """
    Assign a bike to rides that have none and add their total hours to it.

    All-or-nothing: any missing, foreign or already-assigned ride fails the
    whole request. Returns the number of rides assigned.
    """
    unique_ids = list(dict.fromkeys(ride_ids))
    if len(unique_ids) > settings.MAX_RIDES_PER_ASSIGNMENT:
        raise InvalidInputError(
            f"Cannot assign more than {settings.MAX_RIDES_PER_ASSIGNMENT} rides at once"
        )

    get_owned_bike(db, user_id, bike_id)
    if not unique_ids:
        return 0

    rides = db.query(Ride).filter(Ride.id.in_(unique_ids), Ride.user_id == user_id).all()
    if len(rides) != len(unique_ids):
        raise NotFoundError("One or more rides not found")
    if any(r.bike_id is not None for r in rides):
        raise InvalidInputError("One or more rides already have a bike assigned")

    total_hours = sum(duration_to_hours(r.duration_seconds) for r in rides)

    with prediction_invalidation(user_id, [bike_id]), transaction(db):
        for ride in rides:
            ride.bike_id = bike_id
        db.flush()
        increment_bike_component_hours(db, user_id, bike_id, total_hours)

    logger.info(f"Assigned bike {bike_id} to {len(rides)} rides (+{total_hours:.2f}h)")
    return len(rides)


def list_rides(db: Session, user_id: int, bike_id: Optional[int] = None) -> List[Ride]:
    query = db.query(Ride).filter(Ride.user_id == user_id)
    if bike_id is not None:
        query = query.filter(Ride.bike_id == bike_id)
    return query.order_by(Ride.start_time.desc(), Ride.id.desc()).all()
