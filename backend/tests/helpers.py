from datetime import datetime, timedelta

from bikewear.models.component import Component, ComponentLocation, ComponentStatus
from bikewear.models.install import BikeComponentInstall


def mounted(db, bike_id, component_type, location=ComponentLocation.NONE):
    return db.query(Component).filter(
        Component.bike_id == bike_id,
        Component.type == component_type,
        Component.location == location,
    ).one()


def active_installs(db, bike_id=None, component_id=None):
    query = db.query(BikeComponentInstall).filter(BikeComponentInstall.removed_at.is_(None))
    if bike_id is not None:
        query = query.filter(BikeComponentInstall.bike_id == bike_id)
    if component_id is not None:
        query = query.filter(BikeComponentInstall.component_id == component_id)
    return query.all()


def add_spare(db, user, component_type, location=ComponentLocation.NONE, **kwargs):
    spare = Component(
        user_id=user.id,
        type=component_type,
        location=location,
        brand=kwargs.pop("brand", "Spare"),
        model=kwargs.pop("model", "Part"),
        status=ComponentStatus.INVENTORY,
        **kwargs,
    )
    db.add(spare)
    db.commit()
    return spare


def days_ago(days):
    return datetime.utcnow() - timedelta(days=days)
