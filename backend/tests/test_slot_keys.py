import pytest

from bikewear.exceptions import InvalidInputError
from bikewear.models.component import ComponentLocation, ComponentType
from bikewear.utils.slot_keys import opposite_location, parse_slot_key, slot_key


def test_slot_key_for_unpaired_type_is_the_type_name():
    assert slot_key(ComponentType.FORK) == "FORK"
    assert slot_key("CHAIN", None) == "CHAIN"


def test_slot_key_for_paired_type_includes_location():
    assert slot_key(ComponentType.TIRES, ComponentLocation.FRONT) == "TIRES:FRONT"
    assert slot_key("BRAKE_PAD", "REAR") == "BRAKE_PAD:REAR"


def test_paired_type_without_location_is_rejected():
    with pytest.raises(InvalidInputError):
        slot_key(ComponentType.TIRES)


def test_unpaired_type_with_location_is_rejected():
    with pytest.raises(InvalidInputError):
        slot_key(ComponentType.FORK, ComponentLocation.FRONT)


def test_unknown_type_or_location_is_rejected():
    with pytest.raises(InvalidInputError):
        slot_key("WHEELIE_BAR")
    with pytest.raises(InvalidInputError):
        slot_key(ComponentType.TIRES, "MIDDLE")


def test_parse_is_the_inverse_of_slot_key():
    assert parse_slot_key("FORK") == (ComponentType.FORK, ComponentLocation.NONE)
    assert parse_slot_key("TIRES:REAR") == (ComponentType.TIRES, ComponentLocation.REAR)
    for component_type, location in [
        (ComponentType.SHOCK, ComponentLocation.NONE),
        (ComponentType.BRAKE_ROTOR, ComponentLocation.FRONT),
    ]:
        assert parse_slot_key(slot_key(component_type, location)) == (component_type, location)


@pytest.mark.parametrize("key", ["", "TIRES", "FORK:FRONT", "TIRES:NONE", "TIRES:", "BOGUS", "TIRES:FRONT:REAR"])
def test_parse_rejects_malformed_keys(key):
    with pytest.raises(InvalidInputError):
        parse_slot_key(key)


def test_opposite_location():
    assert opposite_location(ComponentLocation.FRONT) == ComponentLocation.REAR
    assert opposite_location("REAR") == ComponentLocation.FRONT
    with pytest.raises(InvalidInputError):
        opposite_location(ComponentLocation.NONE)
