"""
Shared SQLAlchemy base and helpers.
"""
import uuid  # noqa: F401 - for default factories elsewhere
from sqlalchemy.orm import declarative_base
from datetime import datetime, UTC

# Registers SQLite compilers for PostgreSQL-only column types used by the models.
from .. import sqlite_compiler_shims  # noqa: F401


def now_utc():
    """Return an aware UTC datetime for default/updated timestamps."""
    return datetime.now(UTC)


def as_utc(value):
    """Attach UTC to naive datetimes read back from SQLite."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_past(value) -> bool:
    return value is not None and as_utc(value) <= now_utc()


Base = declarative_base()
