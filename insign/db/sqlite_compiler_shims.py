"""SQLite compilation shim for the PostgreSQL JSONB type.

Installs a compiler for JSONB when the active dialect is SQLite so that
`Base.metadata.create_all()` succeeds in test runs that use an in-memory
SQLite database. JSONB operators and indexing are not emulated.

Usage: Imported for side-effects by insign.db.models.
"""
from __future__ import annotations

from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(element, compiler, **kw):  # pragma: no cover - trivial
    # Stored as TEXT-backed JSON; values round-trip as plain Python objects.
    return "JSON"
