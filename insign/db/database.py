"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration with a test
fallback (SQLite in-memory) and exposes the FastAPI session dependency.
"""
import os
import sys
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


_POSTGRES_ENV = ("POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_DB")


def _get_database_url() -> str:
    """DATABASE_URL, else a postgres URL assembled from the POSTGRES_* variables."""
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    values = {name: os.getenv(name) for name in _POSTGRES_ENV}
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return "postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}".format(**values)


def _is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while a test runs, so engine creation
    at import time checks for the pytest module instead. ``PYTEST_RUNNING=1``
    forces the test path explicitly.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return "pytest" in sys.modules


# Test override strategy:
# 1. INSIGN_TEST_DB wins when set.
# 2. Else under pytest, force in-memory sqlite shared through a StaticPool.
# 3. Else use DATABASE_URL / POSTGRES_* components.
explicit_test_db = os.getenv("INSIGN_TEST_DB")

if explicit_test_db:
    DATABASE_URL = explicit_test_db
    _engine_kwargs = {"connect_args": {"check_same_thread": False}} if DATABASE_URL.startswith("sqlite") else {}
elif _is_pytest_runtime():
    DATABASE_URL = "sqlite+pysqlite:///:memory:"
    _engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
else:
    DATABASE_URL = _get_database_url()
    _engine_kwargs = {"pool_pre_ping": True}

engine = create_engine(DATABASE_URL, **_engine_kwargs)

# In-memory SQLite has no migrations; every pooled connection shares this schema.
if DATABASE_URL.startswith("sqlite") and ":memory:" in DATABASE_URL:
    from insign.db import models  # local import to avoid circular import at module load
    models.Base.metadata.create_all(bind=engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Dependency to get a database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
