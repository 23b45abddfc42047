"""
App assembly entry point.

Re-exports the FastAPI `app` from `insign.api.main` so the service can be
started with ``uvicorn app:app``.
"""

from insign.api.main import app  # noqa: F401
