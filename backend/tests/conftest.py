import os

# Settings are read on import; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402

from bikewear.db.database import SessionLocal, engine, init_db  # noqa: E402
from bikewear.models.base import Base  # noqa: E402
from bikewear.models.user import User  # noqa: E402
from bikewear.services import prediction_cache  # noqa: E402
from bikewear.services.bike_service import create_bike  # noqa: E402


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def user(db):
    u = User(email="rider@example.com", display_name="Rider")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def other_user(db):
    u = User(email="someone@example.com", display_name="Someone")
    db.add(u)
    db.commit()
    return u


@pytest.fixture
def make_bike(db, user):
    """Create a full-suspension bike (or whatever the kwargs say) with its components."""

    def _make(owner=None, **kwargs):
        params = dict(manufacturer="Santa Cruz", model="Hightower", travel_fork_mm=160, travel_shock_mm=150)
        params.update(kwargs)
        return create_bike(db, user_id=(owner or user).id, **params)

    return _make


@pytest.fixture
def bike(make_bike):
    return make_bike()


@pytest.fixture
def invalidations():
    """Records every prediction-cache invalidation as (user_id, bike_id)."""
    calls = []

    def hook(user_id, bike_id):
        calls.append((user_id, bike_id))

    prediction_cache.register_invalidation_hook(hook)
    yield calls
    prediction_cache.unregister_invalidation_hook(hook)
