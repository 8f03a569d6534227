"""
Slot keys identify a mounting position on a bike, independent of which
component currently occupies it.

    FORK          -> (FORK, NONE)
    TIRES:FRONT   -> (TIRES, FRONT)
"""

from typing import Tuple, Union

from bikewear.exceptions import InvalidInputError
from bikewear.models.component import ComponentLocation, ComponentType
from bikewear.utils.component_catalog import requires_pairing

SEPARATOR = ":"


def slot_key(
    component_type: Union[ComponentType, str],
    location: Union[ComponentLocation, str, None] = ComponentLocation.NONE,
) -> str:
    """Canonical slot key for a (type, location) pair."""
    component_type = _coerce_type(component_type)
    location = _coerce_location(location)

    if requires_pairing(component_type):
        if location == ComponentLocation.NONE:
            raise InvalidInputError(
                f"{component_type.value} requires a location (FRONT or REAR)"
            )
        return f"{component_type.value}{SEPARATOR}{location.value}"

    if location != ComponentLocation.NONE:
        raise InvalidInputError(f"{component_type.value} does not take a location")
    return component_type.value


def parse_slot_key(key: str) -> Tuple[ComponentType, ComponentLocation]:
    """Exact inverse of slot_key()."""
    if not key:
        raise InvalidInputError("Slot key is required")

    type_part, sep, location_part = key.partition(SEPARATOR)
    component_type = _coerce_type(type_part)
    location = _coerce_location(location_part) if sep else ComponentLocation.NONE

    # Round-trip check rejects e.g. "TIRES", "FORK:FRONT", "TIRES:NONE"
    if slot_key(component_type, location) != key:
        raise InvalidInputError(f"Invalid slot key: {key}")
    return component_type, location


def opposite_location(location: Union[ComponentLocation, str]) -> ComponentLocation:
    location = _coerce_location(location)
    if location == ComponentLocation.FRONT:
        return ComponentLocation.REAR
    if location == ComponentLocation.REAR:
        return ComponentLocation.FRONT
    raise InvalidInputError("Only FRONT/REAR locations have an opposite")


def _coerce_type(value) -> ComponentType:
    try:
        return ComponentType(value)
    except ValueError:
        raise InvalidInputError(f"Unknown component type: {value}")


def _coerce_location(value) -> ComponentLocation:
    if value is None or value == "":
        return ComponentLocation.NONE
    try:
        return ComponentLocation(value)
    except ValueError:
        raise InvalidInputError(f"Unknown component location: {value}")
