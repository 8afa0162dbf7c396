"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from practice.core.config import settings
from practice.core.errors import (
    AuthorizationError,
    DuplicateNameError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from practice.core.structured_logging import build_log_context, configure_logging
from practice.db.session import engine

configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Practice API",
    description="Office-scoped patient records and treatment workflow API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
)

# ============================================================================
# Domain errors -> HTTP
# ============================================================================

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc), "field": exc.field})


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DuplicateNameError)
async def duplicate_name_error_handler(request: Request, exc: DuplicateNameError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(InvariantViolationError)
async def invariant_violation_handler(request: Request, exc: InvariantViolationError):
    # Details stay in the log; the client gets a generic message
    logger.error(
        "Tenancy invariant violation: %s",
        exc,
        extra={
            **build_log_context(route=request.url.path, method=request.method),
            "event": "tenancy_invariant_violation",
        },
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Data inconsistency detected. Contact an administrator."},
    )


# ============================================================================
# Routers
# ============================================================================

from practice.routers import milestones, offices, patients, staff, tasks

app.include_router(offices.router, prefix="/offices", tags=["offices"])
app.include_router(staff.router, prefix="/staff", tags=["staff"])
app.include_router(patients.router, prefix="/patients", tags=["patients"])
app.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
app.include_router(milestones.router, prefix="/milestones", tags=["milestones"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
