"""
FastAPI app assembly: configuration, middleware, error handling and router
wiring.
"""
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

load_dotenv()

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)

from insign.api.api_keys import router as api_keys_router
from insign.api.audits import router as audits_router
from insign.api.auth import router as auth_router
from insign.api.document_permissions import router as document_permissions_router
from insign.api.documents import router as documents_router
from insign.api.folders import router as folders_router
from insign.api.notifications import router as notifications_router
from insign.api.orgs import router as orgs_router
from insign.api.roles import router as roles_router
from insign.api.shares import public_router as public_shares_router
from insign.api.shares import router as shares_router
from insign.api.signatures import router as signatures_router
from insign.api.signing import router as signing_router
from insign.api.tags import router as tags_router
from insign.api.users import router as users_router
from insign.api.versions import router as versions_router
from insign.api.webhooks import router as webhooks_router
from insign.errors import ServiceError
from insign.utils.runtime import dev_mode_requested

# Database schema is managed by Alembic migrations.

app = FastAPI(
    title="Insign",
    description="Multi-tenant document management and e-signature API.",
    version="1.0.0",
)

app.router.redirect_slashes = False

DEFAULT_ORIGINS = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:8000",
]


def cors_origins():
    configured = os.getenv("CORS_ORIGINS", "")
    extra = [o.strip() for o in configured.split(",") if o.strip()]
    return DEFAULT_ORIGINS + extra


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Writes reachable without credentials.
PUBLIC_WRITE_PREFIXES = (
    "/auth/signup",
    "/auth/login",
    "/auth/password-reset",
    "/auth/verify-email",
    "/auth/password-strength",
    "/sign/",
    "/share/",
)


def _is_public_write(path: str) -> bool:
    if path == "/auth/verify-email/send":
        return False
    return path.startswith(PUBLIC_WRITE_PREFIXES)


# Middleware: enforce read-only for unauthenticated requests
@app.middleware("http")
async def enforce_readonly_for_guests(request: Request, call_next):
    if request.method in ("POST", "PUT", "PATCH", "DELETE") and not dev_mode_requested():
        path = request.url.path or ""
        if not _is_public_write(path):
            h = request.headers
            user_present = h.get("x-auth-request-email") or h.get("x-forwarded-email")
            token_present = h.get("authorization") or h.get("x-api-key")
            if not user_present and not token_present:
                return JSONResponse(
                    {"detail": "Guest mode is read-only. Sign in to perform changes."},
                    status_code=status.HTTP_401_UNAUTHORIZED,
                )
    return await call_next(request)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error("service_error: %s %s -> %s", request.method, request.url.path, exc.message)
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


app.include_router(auth_router)
app.include_router(orgs_router)
app.include_router(users_router)
app.include_router(roles_router)
app.include_router(api_keys_router)
app.include_router(documents_router)
app.include_router(document_permissions_router)
app.include_router(versions_router)
app.include_router(shares_router)
app.include_router(public_shares_router)
app.include_router(folders_router)
app.include_router(tags_router)
app.include_router(signatures_router)
app.include_router(signing_router)
app.include_router(webhooks_router)
app.include_router(notifications_router)
app.include_router(audits_router)


@app.get("/health")
def health_check():
    return {"status": "ok", "service": "insign"}
