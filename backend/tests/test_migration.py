from datetime import datetime

import pytest
from sqlalchemy.dialects import postgresql

from bikewear.exceptions import ConflictError, NotFoundError
from bikewear.models.bike import Bike
from bikewear.models.component import (
    BaselineConfidence,
    BaselineMethod,
    Component,
    ComponentLocation,
    ComponentStatus,
    ComponentType,
)
from bikewear.models.install import BikeComponentInstall
from bikewear.services import component_service, lifecycle_service
from bikewear.services.lifecycle_service import mark_paired_migration_seen, migrate_paired_components

from helpers import active_installs, days_ago


@pytest.fixture
def legacy_bike(db, user):
    """A bike from before front/rear pairing: one TIRES row at NONE, plus an unpaired fork."""
    bike = Bike(user_id=user.id, manufacturer="Yeti", model="SB130")
    db.add(bike)
    db.flush()

    installed_at = days_ago(90)
    tires = Component(
        user_id=user.id,
        bike_id=bike.id,
        type=ComponentType.TIRES,
        location=ComponentLocation.NONE,
        brand="Maxxis",
        model="Minion DHF",
        hours_used=33.0,
        last_serviced_at=days_ago(10),
        baseline_wear_percent=40.0,
        baseline_method=BaselineMethod.SLIDER,
        baseline_confidence=BaselineConfidence.MEDIUM,
        status=ComponentStatus.INSTALLED,
        installed_at=installed_at,
    )
    fork = Component(
        user_id=user.id,
        bike_id=bike.id,
        type=ComponentType.FORK,
        brand="Fox",
        model="34",
        status=ComponentStatus.INSTALLED,
        installed_at=installed_at,
    )
    db.add_all([tires, fork])
    db.flush()

    # Old-style install rows used the bare type as slot key
    db.add_all([
        BikeComponentInstall(user_id=user.id, bike_id=bike.id, component_id=tires.id,
                             slot_key="TIRES", installed_at=installed_at),
        BikeComponentInstall(user_id=user.id, bike_id=bike.id, component_id=fork.id,
                             slot_key="FORK", installed_at=installed_at),
    ])
    db.commit()
    return bike


def _tires(db, bike_id):
    return db.query(Component).filter(
        Component.bike_id == bike_id, Component.type == ComponentType.TIRES
    ).order_by(Component.location).all()


def test_legacy_component_is_split_into_front_and_rear(db, user, legacy_bike):
    result = migrate_paired_components(db, user.id)

    assert result.migrated_count == 1
    assert len(result.components) == 2

    front, rear = sorted(_tires(db, legacy_bike.id), key=lambda c: c.location.value)
    assert front.location == ComponentLocation.FRONT
    assert rear.location == ComponentLocation.REAR
    assert front.pair_group_id and front.pair_group_id == rear.pair_group_id

    # The rear side is a clone of the original wear state
    assert rear.id != front.id
    assert (rear.brand, rear.model) == ("Maxxis", "Minion DHF")
    assert rear.hours_used == 33.0
    assert rear.baseline_wear_percent == 40.0
    assert rear.baseline_method == BaselineMethod.SLIDER
    assert rear.baseline_confidence == BaselineConfidence.MEDIUM
    assert rear.last_serviced_at == front.last_serviced_at
    assert rear.installed_at == front.installed_at


def test_install_records_are_rekeyed_and_opened(db, user, legacy_bike):
    migrate_paired_components(db, user.id)

    slots = {i.slot_key for i in active_installs(db, bike_id=legacy_bike.id)}
    assert slots == {"FORK", "TIRES:FRONT", "TIRES:REAR"}


def test_unpaired_types_are_left_alone(db, user, legacy_bike):
    migrate_paired_components(db, user.id)

    fork = db.query(Component).filter(
        Component.bike_id == legacy_bike.id, Component.type == ComponentType.FORK
    ).one()
    assert fork.location == ComponentLocation.NONE
    assert fork.pair_group_id is None


def test_spares_and_retired_parts(db, user, legacy_bike):
    spare = Component(user_id=user.id, type=ComponentType.BRAKE_PAD, brand="SRAM", model="Organic",
                      status=ComponentStatus.INVENTORY)
    retired = Component(user_id=user.id, type=ComponentType.TIRES, brand="Old", model="Tire",
                        status=ComponentStatus.RETIRED, retired_at=datetime(2020, 1, 1))
    db.add_all([spare, retired])
    db.commit()

    result = migrate_paired_components(db, user.id)

    assert result.migrated_count == 2
    db.refresh(retired)
    assert retired.location == ComponentLocation.NONE
    assert retired.pair_group_id is None

    db.refresh(spare)
    assert spare.location == ComponentLocation.FRONT
    spare_rear = db.query(Component).filter(
        Component.pair_group_id == spare.pair_group_id, Component.id != spare.id
    ).one()
    assert spare_rear.bike_id is None
    assert spare_rear.status == ComponentStatus.INVENTORY


def test_migration_runs_only_once(db, user, legacy_bike):
    first = migrate_paired_components(db, user.id)
    second = migrate_paired_components(db, user.id)

    assert first.migrated_count == 1
    assert second.migrated_count == 0
    assert second.components == []
    assert len(_tires(db, legacy_bike.id)) == 2


def test_users_with_paired_components_are_skipped(db, user, bike, legacy_bike):
    # `bike` was built with front/rear pairs already
    result = migrate_paired_components(db, user.id)

    assert result.migrated_count == 0
    assert len(_tires(db, legacy_bike.id)) == 1


def test_migration_only_touches_the_caller(db, user, other_user, legacy_bike):
    result = migrate_paired_components(db, other_user.id)
    assert result.migrated_count == 0
    assert _tires(db, legacy_bike.id)[0].location == ComponentLocation.NONE


def test_migration_invalidates_touched_bikes(db, user, legacy_bike, invalidations):
    migrate_paired_components(db, user.id)
    assert invalidations.count((user.id, legacy_bike.id)) == 2


def test_mark_paired_migration_seen(db, user):
    assert user.paired_component_migration_seen_at is None

    marked = mark_paired_migration_seen(db, user.id)

    assert marked.id == user.id
    assert marked.paired_component_migration_seen_at is not None
    with pytest.raises(NotFoundError):
        mark_paired_migration_seen(db, 9999)


# ============================================================================
# SIDES ADDED AFTER THE LEGACY ROW
# ============================================================================


def test_existing_rear_side_becomes_the_partner(db, user, legacy_bike):
    rear = component_service.add_component(
        db, user.id, "TIRES", "REAR", bike_id=legacy_bike.id, brand="Maxxis", model="DHR II"
    )

    result = migrate_paired_components(db, user.id)

    assert result.migrated_count == 1
    front, rear_after = sorted(_tires(db, legacy_bike.id), key=lambda c: c.location.value)
    assert rear_after.id == rear.id
    assert front.location == ComponentLocation.FRONT
    assert front.pair_group_id == rear.pair_group_id
    assert {i.slot_key for i in active_installs(db, bike_id=legacy_bike.id)} == {
        "FORK", "TIRES:FRONT", "TIRES:REAR",
    }
    assert migrate_paired_components(db, user.id).migrated_count == 0


def test_existing_front_side_moves_the_legacy_row_to_rear(db, user, legacy_bike):
    front = component_service.add_component(db, user.id, "TIRES", "FRONT", bike_id=legacy_bike.id)

    migrate_paired_components(db, user.id)

    tires = _tires(db, legacy_bike.id)
    assert len(tires) == 2
    legacy = next(t for t in tires if t.id != front.id)
    assert legacy.location == ComponentLocation.REAR
    assert legacy.hours_used == 33.0
    assert legacy.pair_group_id == front.pair_group_id
    assert [i.slot_key for i in active_installs(db, component_id=legacy.id)] == ["TIRES:REAR"]


def test_legacy_row_goes_to_inventory_when_both_sides_exist(db, user, legacy_bike):
    front = component_service.add_component(db, user.id, "TIRES", "FRONT", bike_id=legacy_bike.id)
    rear = component_service.add_component(db, user.id, "TIRES", "REAR", bike_id=legacy_bike.id)
    legacy = db.query(Component).filter(
        Component.bike_id == legacy_bike.id, Component.type == ComponentType.TIRES,
        Component.location == ComponentLocation.NONE,
    ).one()

    result = migrate_paired_components(db, user.id)

    assert result.migrated_count == 1
    assert {t.id for t in _tires(db, legacy_bike.id)} == {front.id, rear.id}
    assert legacy.bike_id is None
    assert legacy.status == ComponentStatus.INVENTORY
    assert legacy.location == ComponentLocation.FRONT
    assert active_installs(db, component_id=legacy.id) == []

    clone = db.query(Component).filter(
        Component.pair_group_id == legacy.pair_group_id, Component.id != legacy.id
    ).one()
    assert clone.bike_id is None
    assert clone.status == ComponentStatus.INVENTORY
    assert clone.hours_used == 33.0


# ============================================================================
# FAILURES
# ============================================================================


def _clone_onto_front(monkeypatch):
    """Make the REAR clone land on the FRONT slot, which the original row now holds."""
    real_clone = lifecycle_service._rear_clone

    def clone_onto_front(component, pair_group_id):
        clone = real_clone(component, pair_group_id)
        clone.location = ComponentLocation.FRONT
        return clone

    monkeypatch.setattr(lifecycle_service, "_rear_clone", clone_onto_front)


def _assert_untouched(db, legacy_bike):
    db.expire_all()
    [tire] = _tires(db, legacy_bike.id)
    assert tire.location == ComponentLocation.NONE
    assert tire.pair_group_id is None
    assert {i.slot_key for i in active_installs(db, bike_id=legacy_bike.id)} == {"FORK", "TIRES"}
    assert db.query(Component).filter(Component.pair_group_id.isnot(None)).count() == 0


def test_slot_collision_is_a_conflict(db, user, legacy_bike, monkeypatch):
    _clone_onto_front(monkeypatch)

    with pytest.raises(ConflictError):
        migrate_paired_components(db, user.id)

    _assert_untouched(db, legacy_bike)


def test_collision_after_a_concurrent_run_reports_zero(db, user, legacy_bike, monkeypatch):
    _clone_onto_front(monkeypatch)
    # Guard passes, then the re-check after rollback sees the other run's pairs
    answers = iter([False, True])
    monkeypatch.setattr(lifecycle_service, "_has_paired_components", lambda db, user_id: next(answers))

    result = migrate_paired_components(db, user.id)

    assert result.migrated_count == 0
    assert result.components == []


def test_failure_mid_migration_changes_nothing(db, user, legacy_bike, monkeypatch):
    spare = Component(user_id=user.id, type=ComponentType.BRAKE_PAD, brand="SRAM", model="Organic",
                      status=ComponentStatus.INVENTORY)
    db.add(spare)
    db.commit()

    def broken(db, bike_id, user_id):
        raise RuntimeError("install sync failed")

    monkeypatch.setattr(lifecycle_service, "open_missing_installs", broken)

    with pytest.raises(RuntimeError):
        migrate_paired_components(db, user.id)

    _assert_untouched(db, legacy_bike)
    db.refresh(spare)
    assert spare.location == ComponentLocation.NONE
    assert db.query(Component).filter(Component.type == ComponentType.BRAKE_PAD).count() == 1


def test_user_row_is_locked_before_the_guard(db, user, legacy_bike, monkeypatch):
    statement = lifecycle_service.user_row_lock(db, user.id).statement
    assert "FOR UPDATE" in str(statement.compile(dialect=postgresql.dialect()))

    calls = []
    real_lock = lifecycle_service.user_row_lock
    real_guard = lifecycle_service._has_paired_components

    def recording_lock(db, user_id):
        calls.append("lock")
        return real_lock(db, user_id)

    def recording_guard(db, user_id):
        calls.append("guard")
        return real_guard(db, user_id)

    monkeypatch.setattr(lifecycle_service, "user_row_lock", recording_lock)
    monkeypatch.setattr(lifecycle_service, "_has_paired_components", recording_guard)

    migrate_paired_components(db, user.id)

    assert calls == ["lock", "guard"]
