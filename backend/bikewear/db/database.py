"""
Database Configuration
PostgreSQL connection, session management, transactions and initialization
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from bikewear.config import settings
from bikewear.db.errors import is_unique_violation, constraint_name
from bikewear.exceptions import ConflictError
from bikewear.models.base import Base

logger = logging.getLogger(__name__)

# ============================================================================
# DATABASE ENGINE
# ============================================================================


def _engine_options(url: str) -> dict:
    """Pool/connect options per backend. SQLite is only used locally and in tests."""
    if url.startswith("sqlite"):
        return {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    return {
        # QueuePool: Connection pooling for concurrent requests
        "poolclass": QueuePool,
        "pool_size": settings.DATABASE_POOL_SIZE,
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_timeout": 30,
        "pool_pre_ping": True,  # Test connections before using them
        "connect_args": {
            "connect_timeout": 10,  # Connection timeout in seconds
        },
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.ENVIRONMENT == "development" and settings.LOG_LEVEL == "DEBUG",
    **_engine_options(settings.DATABASE_URL),
)


def configure_sqlite(sqlite_engine) -> None:
    """
    Make pysqlite honour SAVEPOINT and foreign keys.

    pysqlite's own transaction handling breaks begin_nested(), so BEGIN is
    emitted from the engine's begin event instead.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


if engine.dialect.name == "sqlite":
    configure_sqlite(engine)

# ============================================================================
# SESSION MANAGEMENT
# ============================================================================

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting database session in routes.

    Usage in routes:
        @router.get("/api/bikes/{bike_id}/components")
        async def list_bike_components(bike_id: int, db: Session = Depends(get_db)):
            ...

    Services own their commit/rollback (see transaction()); this only
    guarantees the session is rolled back on error and always closed.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        db.rollback()
        logger.error(f"Database error: {str(e)}")
        raise
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database session (for non-route code).

    Usage in scripts:
        with get_db_context() as db:
            migrate_paired_components(db, user_id=1)
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        db.rollback()
        logger.error(f"Database error: {str(e)}")
        raise
    finally:
        db.close()


# ============================================================================
# TRANSACTIONS
# ============================================================================


@contextmanager
def transaction(
    db: Session,
    timeout_ms: Optional[int] = None,
    conflict_message: Optional[str] = None,
) -> Generator[Session, None, None]:
    """
    Run a block as one all-or-nothing unit of work.

    Commits when the block exits cleanly, rolls back on any exception.
    Unique-constraint violations become ConflictError when conflict_message
    is given; everything else propagates untouched.

    Args:
        db: Database session
        timeout_ms: Statement timeout for long operations (PostgreSQL only)
        conflict_message: User-facing message for unique violations

    Example:
        with transaction(db, conflict_message="Slot already occupied"):
            db.add(install)
    """
    try:
        if timeout_ms and db.get_bind().dialect.name == "postgresql":
            db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if conflict_message and is_unique_violation(e):
            logger.warning(
                f"Unique constraint race ({constraint_name(e) or 'unknown'}): {conflict_message}"
            )
            raise ConflictError(conflict_message) from e
        raise
    except Exception:
        db.rollback()
        raise


# ============================================================================
# DATABASE INITIALIZATION
# ============================================================================


def init_db():
    """
    Initialize database - create all tables.

    Called on application startup via lifespan in main.py.
    Safe to call multiple times (idempotent).
    """
    try:
        # These imports register the models with the ORM metadata
        from bikewear.models.user import User  # noqa: F401
        from bikewear.models.bike import Bike  # noqa: F401
        from bikewear.models.component import Component  # noqa: F401
        from bikewear.models.install import BikeComponentInstall  # noqa: F401
        from bikewear.models.service_log import ServiceLog  # noqa: F401
        from bikewear.models.ride import Ride  # noqa: F401

        # Create all tables (idempotent - won't error if they exist)
        Base.metadata.create_all(bind=engine)

        logger.info("[OK] Database tables created successfully")

    except Exception as e:
        logger.error(f"[ERROR] Failed to initialize database: {str(e)}")
        raise


# ============================================================================
# CONNECTION POOLING EVENTS
# ============================================================================


@event.listens_for(QueuePool, "checkout")
def receive_checkout(dbapi_conn, connection_record, connection_proxy):
    """Called when a connection is taken from the pool"""
    logger.debug("[POOL] Connection checked out from pool")


@event.listens_for(QueuePool, "checkin")
def receive_checkin(dbapi_conn, connection_record):
    """Called when a connection is returned to the pool"""
    logger.debug("[POOL] Connection returned to pool")


# ============================================================================
# HEALTH CHECK
# ============================================================================


def health_check_db() -> bool:
    """Check if database is accessible."""
    try:
        with get_db_context() as db:
            db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def close_db():
    """
    Close all database connections.
    Called on application shutdown.
    """
    engine.dispose()
    logger.info("[OK] Database connections closed")
