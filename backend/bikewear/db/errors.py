"""
Constraint violation classification.

Drivers report unique violations differently; these helpers look at the
driver error kind (SQLSTATE / SQLite extended code) and constraint name
instead of parsing message text.
"""

from typing import Optional

from sqlalchemy.exc import IntegrityError

PG_UNIQUE_VIOLATION = "23505"
SQLITE_UNIQUE_VIOLATIONS = {"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"}


def is_unique_violation(error: IntegrityError) -> bool:
    orig = getattr(error, "orig", None)
    if orig is None:
        return False

    # psycopg2 / psycopg
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode is not None:
        return pgcode == PG_UNIQUE_VIOLATION

    # sqlite3 (Python 3.11+ exposes the extended error name)
    return getattr(orig, "sqlite_errorname", None) in SQLITE_UNIQUE_VIOLATIONS


def constraint_name(error: IntegrityError) -> Optional[str]:
    """Name of the violated constraint, when the driver reports it."""
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    return getattr(diag, "constraint_name", None)
