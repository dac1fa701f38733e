"""FastAPI application for PestHub.

Endpoints:
  POST   /api/auth/login                   - Exchange email/password for a token (local auth)
  GET    /api/auth/me                      - The caller's profile and capabilities
  GET    /api/users                        - Users the caller can manage
  POST   /api/users/create                 - Create a user with a generated password
  DELETE /api/users/delete                 - Delete a user
  POST   /api/users/reset-password         - Reset a user's password
  GET    /api/reports                      - List reports
  GET    /api/reports/{id}                 - A report with findings and materials
  POST   /api/reports                      - File a report
  PATCH  /api/reports/{id}                 - Update a report (author or elevated role)
  DELETE /api/reports/{id}                 - Delete a report (author or elevated role)
  POST   /api/reports/{id}/share           - Issue a share link
  POST   /api/reports/share/{token}/revoke - Revoke a share link
  GET    /reports/share/{token}            - Anonymous read-only report view
  GET    /api/comments                     - List comments (optionally ?report_id=)
  POST   /api/comments                     - Add a comment
  PATCH  /api/comments/{id}                - Update a comment (author or elevated role)
  DELETE /api/comments/{id}                - Delete a comment (author or elevated role)
  GET    /api/materials                    - List materials
  POST   /api/materials                    - Create a material (manager/admin)
  PATCH  /api/materials/{id}               - Update a material (manager/admin)
  DELETE /api/materials/{id}               - Delete a material (manager/admin)
  GET    /api/locations                    - List locations
  POST   /api/locations                    - Add a location (manager/admin)
  GET    /api/settings/branding            - Current company logo
  PUT    /api/settings/branding            - Replace or clear the logo (manager/admin)
  GET    /health                           - Health check
  GET    /metrics                          - Prometheus metrics
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

import pesthub
from pesthub.api.rate_limit import limiter
from pesthub.api.routes import auth as auth_routes
from pesthub.api.routes import branding as branding_routes
from pesthub.api.routes import comments as comment_routes
from pesthub.api.routes import locations as location_routes
from pesthub.api.routes import materials as material_routes
from pesthub.api.routes import reports as report_routes
from pesthub.api.routes import share as share_routes
from pesthub.api.routes import users as user_routes
from pesthub.config import settings
from pesthub.exceptions import PestHubError
from pesthub.logging_config import log_startup_info, setup_logging
from pesthub.notifications import LoggingNotifier, NullNotifier
from pesthub.services.records import RecordService
from pesthub.services.sharing import ShareService
from pesthub.services.users import UserManagementService
from pesthub.storage.database import Database

logger = logging.getLogger("pesthub")
_audit_logger = logging.getLogger("pesthub.audit")

_STARTUP_TIME: float = 0.0


def _create_database():
    """Create the database backend named by ``PH_STORAGE``.

    Checks os.environ directly as well (for tests that set PH_STORAGE
    after the settings singleton is created).
    """
    backend = os.environ.get("PH_STORAGE", settings.storage).lower()
    if backend == "supabase":
        from pesthub.storage.supabase_db import SupabaseDatabase

        return SupabaseDatabase(settings.supabase_url, settings.supabase_key)
    return Database(os.environ.get("PH_DB_PATH", settings.db_path))


def _create_identity(db):
    """Pick the identity backend that matches the storage backend."""
    from pesthub.storage.supabase_db import SupabaseDatabase

    if isinstance(db, SupabaseDatabase):
        from pesthub.identity.supabase_admin import SupabaseIdentityService

        return SupabaseIdentityService(db)
    from pesthub.identity.local import LocalIdentityService

    return LocalIdentityService(db)


def _create_notifier():
    return LoggingNotifier() if settings.welcome_notifications else NullNotifier()


_db = _create_database()
_identity = _create_identity(_db)
_users = UserManagementService(_db, _identity, _create_notifier())
_shares = ShareService(_db)
_records = RecordService(_db)


@asynccontextmanager
async def lifespan(app: FastAPI):
    global _STARTUP_TIME
    _STARTUP_TIME = time.monotonic()
    setup_logging()
    await _db.connect()
    log_startup_info()
    yield
    logger.info("Closing database connection")
    await _db.close()
    logger.info("Shutdown complete")


# ---------------------------------------------------------------------------
# OpenAPI tags
# ---------------------------------------------------------------------------
_OPENAPI_TAGS = [
    {"name": "Health", "description": "Health checks and version info"},
    {"name": "Auth", "description": "Sign-in and the caller's own profile"},
    {"name": "Users", "description": "Role-scoped user administration"},
    {"name": "Reports", "description": "Field reports and share links"},
    {"name": "Share", "description": "Anonymous read-only report views"},
    {"name": "Comments", "description": "Comments on locations and reports"},
    {"name": "Materials", "description": "Material inventory"},
    {"name": "Locations", "description": "Serviced sites"},
    {"name": "Branding", "description": "Company logo shown on reports"},
    {"name": "Metrics", "description": "Prometheus metrics endpoint"},
]

app = FastAPI(
    title="PestHub",
    description="Role-based access control core for pest-control field service.",
    version=pesthub.__version__,
    lifespan=lifespan,
    openapi_tags=_OPENAPI_TAGS,
)

app.state.limiter = limiter
app.state.db = _db
app.state.identity = _identity
app.state.users = _users
app.state.shares = _shares
app.state.records = _records


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
def _error_response(request: Request, status_code: int, error: str, message: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    return JSONResponse(
        status_code=status_code,
        content={"error": error, "message": message, "request_id": request_id},
    )


@app.exception_handler(PestHubError)
async def pesthub_error_handler(request: Request, exc: PestHubError) -> JSONResponse:
    """Centralized handler for custom PestHub exceptions."""
    return _error_response(request, exc.status_code, exc.error_type, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are reported as ``invalid_input``."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _error_response(request, 400, "invalid_input", message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with Retry-After header on rate limit."""
    _audit_logger.warning(
        "Rate limit exceeded: %s %s from %s",
        request.method,
        request.url.path,
        get_remote_address(request),
        extra={"event_category": "audit", "action": "rate_limit_exceeded"},
    )
    response = _error_response(request, 429, "rate_limit_exceeded", str(exc.detail))
    response.headers["Retry-After"] = "60"
    return response


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip compression for responses > 500 bytes
app.add_middleware(GZipMiddleware, minimum_size=500)


# ---------------------------------------------------------------------------
# Security headers middleware
# ---------------------------------------------------------------------------
@app.middleware("http")
async def security_headers_middleware(request: Request, call_next) -> Response:
    response: Response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    response.headers["Content-Security-Policy"] = (
        "default-src 'self'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; "
        "frame-ancestors 'none'"
    )
    return response


# ---------------------------------------------------------------------------
# Request logging middleware (also sets request_id on state for error handler)
# ---------------------------------------------------------------------------
@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    request_id = str(uuid4())[:8]
    request.state.request_id = request_id
    start = time.monotonic()
    try:
        response: Response = await call_next(request)
    except Exception:
        # Storage and identity outages end up here; the client sees a generic 500.
        logger.exception(
            "Unhandled error on %s %s [%s]",
            request.method,
            request.url.path,
            request_id,
            extra={"request_id": request_id, "path": request.url.path},
        )
        response = _error_response(request, 500, "internal_error", "Internal server error")
    elapsed_ms = round((time.monotonic() - start) * 1000, 1)
    logger.info(
        "%s %s %s %.1fms [%s]",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request_id,
        extra={
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "status_code": response.status_code,
            "duration_ms": elapsed_ms,
        },
    )
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Prometheus metrics
# ---------------------------------------------------------------------------
from prometheus_fastapi_instrumentator import Instrumentator  # noqa: E402

_instrumentator = Instrumentator(
    excluded_handlers=["/metrics"],
    should_respect_env_var=False,
)
_instrumentator.instrument(app).expose(app, endpoint="/metrics", tags=["Metrics"])


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"], summary="Health check")
async def health():
    count = await _db.get_profile_count()
    uptime_s = time.monotonic() - _STARTUP_TIME if _STARTUP_TIME > 0 else 0
    return {
        "status": "ok",
        "version": pesthub.__version__,
        "uptime_seconds": round(uptime_s, 1),
        "user_count": count,
        "storage_backend": os.environ.get("PH_STORAGE", settings.storage).lower(),
        "auth_provider": os.environ.get("PH_AUTH_PROVIDER", settings.auth_provider).lower(),
    }


app.include_router(auth_routes.router)
app.include_router(user_routes.router)
app.include_router(report_routes.router)
app.include_router(share_routes.router)
app.include_router(comment_routes.router)
app.include_router(material_routes.router)
app.include_router(location_routes.router)
app.include_router(branding_routes.router)
