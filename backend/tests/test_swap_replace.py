import pytest

from bikewear.exceptions import InvalidInputError, NotFoundError
from bikewear.models.component import BaselineConfidence, ComponentLocation, ComponentStatus, ComponentType
from bikewear.services.lifecycle_service import find_partner, replace_component, swap_components

from helpers import active_installs, add_spare, mounted


# ============================================================================
# SWAP
# ============================================================================


def test_swap_front_and_rear_on_one_bike(db, user, bike):
    front = mounted(db, bike.id, ComponentType.TIRES, ComponentLocation.FRONT)
    rear = mounted(db, bike.id, ComponentType.TIRES, ComponentLocation.REAR)
    front.hours_used = 10.0
    rear.hours_used = 30.0
    group = front.pair_group_id
    db.commit()

    result = swap_components(db, user.id, bike.id, "TIRES:FRONT", bike.id, "TIRES:REAR")

    assert result.component_a.id == front.id
    assert front.location == ComponentLocation.REAR
    assert rear.location == ComponentLocation.FRONT
    # Hours travel with the component; both slots still share one group
    assert front.hours_used == 10.0
    assert rear.hours_used == 30.0
    assert front.pair_group_id == rear.pair_group_id == group

    assert [i.slot_key for i in active_installs(db, component_id=front.id)] == ["TIRES:REAR"]
    assert [i.slot_key for i in active_installs(db, component_id=rear.id)] == ["TIRES:FRONT"]


def test_swap_across_bikes(db, user, make_bike, invalidations):
    first = make_bike()
    second = make_bike(model="Bronson")
    fork_a = mounted(db, first.id, ComponentType.FORK)
    fork_b = mounted(db, second.id, ComponentType.FORK)
    fork_a.hours_used = 12.0
    db.commit()

    swap_components(db, user.id, first.id, "FORK", second.id, "FORK")

    assert fork_a.bike_id == second.id
    assert fork_b.bike_id == first.id
    assert fork_a.hours_used == 12.0
    assert fork_a.status == fork_b.status == ComponentStatus.INSTALLED
    assert len(active_installs(db, bike_id=first.id)) == 25
    assert len(active_installs(db, bike_id=second.id)) == 25
    assert (user.id, first.id) in invalidations
    assert (user.id, second.id) in invalidations


def test_swap_keeps_pair_groups_with_their_slots(db, user, make_bike):
    first = make_bike()
    second = make_bike(model="Bronson")
    front_a = mounted(db, first.id, ComponentType.TIRES, ComponentLocation.FRONT)
    rear_a = mounted(db, first.id, ComponentType.TIRES, ComponentLocation.REAR)
    front_b = mounted(db, second.id, ComponentType.TIRES, ComponentLocation.FRONT)
    rear_b = mounted(db, second.id, ComponentType.TIRES, ComponentLocation.REAR)
    group_a, group_b = front_a.pair_group_id, front_b.pair_group_id

    swap_components(db, user.id, first.id, "TIRES:FRONT", second.id, "TIRES:REAR")

    # front_a now rides at the rear of the second bike
    partner = find_partner(db, front_a)
    assert partner.id == front_b.id
    assert partner.bike_id == front_a.bike_id == second.id
    assert partner.location == ComponentLocation.FRONT
    assert find_partner(db, rear_b).id == rear_a.id

    swap_components(db, user.id, first.id, "TIRES:FRONT", second.id, "TIRES:REAR")

    assert front_a.pair_group_id == rear_a.pair_group_id == group_a
    assert rear_b.pair_group_id == front_b.pair_group_id == group_b


def test_replacing_a_pair_after_a_swap_stays_on_one_bike(db, user, make_bike):
    first = make_bike()
    second = make_bike(model="Bronson")
    moved = mounted(db, first.id, ComponentType.TIRES, ComponentLocation.FRONT)
    swap_components(db, user.id, first.id, "TIRES:FRONT", second.id, "TIRES:REAR")

    result = replace_component(db, user.id, moved.id, "Maxxis", "DHR II", also_replace_pair=True)

    assert {c.location for c in result.created} == {ComponentLocation.FRONT, ComponentLocation.REAR}
    assert {c.bike_id for c in result.created} == {second.id}
    first_tires = [
        mounted(db, first.id, ComponentType.TIRES, location)
        for location in (ComponentLocation.FRONT, ComponentLocation.REAR)
    ]
    assert all(t.status == ComponentStatus.INSTALLED for t in first_tires)


def test_swap_with_itself_is_rejected(db, user, bike):
    with pytest.raises(InvalidInputError):
        swap_components(db, user.id, bike.id, "FORK", bike.id, "FORK")


def test_swap_requires_matching_types(db, user, bike):
    with pytest.raises(InvalidInputError):
        swap_components(db, user.id, bike.id, "FORK", bike.id, "SHOCK")


def test_swap_requires_both_slots_occupied(db, user, bike, make_bike):
    rigid = make_bike(travel_fork_mm=None, travel_shock_mm=None)
    fork = mounted(db, bike.id, ComponentType.FORK)

    with pytest.raises(InvalidInputError):
        swap_components(db, user.id, bike.id, "FORK", rigid.id, "FORK")

    db.refresh(fork)
    assert fork.bike_id == bike.id
    assert len(active_installs(db, component_id=fork.id)) == 1


def test_swap_checks_ownership_of_both_bikes(db, user, other_user, bike, make_bike):
    foreign = make_bike(owner=other_user)
    with pytest.raises(NotFoundError):
        swap_components(db, user.id, bike.id, "FORK", foreign.id, "FORK")


# ============================================================================
# REPLACE
# ============================================================================


def test_replace_mounted_component(db, user, bike):
    shock = mounted(db, bike.id, ComponentType.SHOCK)
    shock.hours_used = 80.0
    db.commit()

    result = replace_component(db, user.id, shock.id, "Fox", "Float X2")

    [successor] = result.created
    assert result.replaced == [shock]
    assert shock.status == ComponentStatus.RETIRED
    assert shock.bike_id is None
    assert shock.replaced_by_id == successor.id

    assert successor.bike_id == bike.id
    assert successor.status == ComponentStatus.INSTALLED
    assert (successor.brand, successor.model, successor.is_stock) == ("Fox", "Float X2", False)
    assert successor.hours_used == 0
    assert successor.baseline_confidence == BaselineConfidence.HIGH
    assert [i.slot_key for i in active_installs(db, component_id=successor.id)] == ["SHOCK"]
    assert active_installs(db, component_id=shock.id) == []


def test_replace_spare_keeps_successor_in_inventory(db, user):
    spare = add_spare(db, user, ComponentType.CHAIN)

    result = replace_component(db, user.id, spare.id, "KMC", "X12")

    successor = result.created[0]
    assert successor.bike_id is None
    assert successor.status == ComponentStatus.INVENTORY
    assert successor.installed_at is None
    assert active_installs(db, component_id=successor.id) == []


def test_replace_one_side_relinks_partner(db, user, bike):
    front = mounted(db, bike.id, ComponentType.BRAKE_ROTOR, ComponentLocation.FRONT)
    rear = mounted(db, bike.id, ComponentType.BRAKE_ROTOR, ComponentLocation.REAR)
    old_group = front.pair_group_id

    result = replace_component(db, user.id, front.id, "Shimano", "RT-MT900")

    successor = result.created[0]
    assert successor.location == ComponentLocation.FRONT
    assert successor.pair_group_id != old_group
    assert rear.pair_group_id == successor.pair_group_id
    assert rear.status == ComponentStatus.INSTALLED


def test_replace_both_sides(db, user, bike):
    front = mounted(db, bike.id, ComponentType.TIRES, ComponentLocation.FRONT)
    rear = mounted(db, bike.id, ComponentType.TIRES, ComponentLocation.REAR)

    result = replace_component(
        db, user.id, rear.id, "Maxxis", "DHR II", also_replace_pair=True, pair_model="Assegai"
    )

    assert [c.id for c in result.replaced] == [rear.id, front.id]
    new_rear, new_front = result.created
    assert new_rear.location == ComponentLocation.REAR
    assert new_front.location == ComponentLocation.FRONT
    assert (new_front.brand, new_front.model) == ("Maxxis", "Assegai")
    assert new_rear.pair_group_id == new_front.pair_group_id
    assert front.status == rear.status == ComponentStatus.RETIRED
    assert len(active_installs(db, bike_id=bike.id)) == 25


def test_replace_retired_component_is_rejected(db, user, bike):
    chain = mounted(db, bike.id, ComponentType.CHAIN)
    replace_component(db, user.id, chain.id, "SRAM", "GX")

    with pytest.raises(InvalidInputError):
        replace_component(db, user.id, chain.id, "SRAM", "XX1")


def test_replace_requires_brand_and_model(db, user, bike):
    chain = mounted(db, bike.id, ComponentType.CHAIN)
    with pytest.raises(InvalidInputError):
        replace_component(db, user.id, chain.id, "SRAM", "   ")
