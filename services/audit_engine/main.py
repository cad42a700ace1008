"""
Audit Engine Service - Main Application
=======================================

FastAPI application for audit scoring, workflow and health scores.

Version: 0.1.0
"""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services.audit_engine.errors import (
    AuditEngineError,
    CAPAsNotClosed,
    IncompleteSubmission,
    InvalidTemplate,
    InvalidTransition,
)
from services.audit_engine.routes import audits, health_scores, templates
from shared.config import StoreBackend, WatermarkBackend, settings
from shared.database.postgres import PostgresClient
from shared.database.redis import RedisClient
from shared.logging import get_logger, setup_logging
from shared.models.common import ErrorResponse, HealthResponse

# Setup logging
setup_logging(
    log_level=settings.log_level.value,
    json_logs=settings.is_production,
    service_name="audit-engine",
)

logger = get_logger(__name__)


def _uses_postgres() -> bool:
    return settings.audit.store_backend == StoreBackend.POSTGRES


def _uses_redis() -> bool:
    return settings.audit.watermark_backend == WatermarkBackend.REDIS


@asynccontextmanager
async def lifespan(app: FastAPI) -> Any:
    """Application lifespan manager."""
    logger.info(
        "audit_engine_starting",
        environment=settings.environment.value,
        port=settings.ports.audit_engine,
    )

    # Startup
    try:
        if _uses_postgres():
            PostgresClient.get_engine()
            logger.info("postgres_connected")

        if _uses_redis():
            RedisClient.get_client()
            logger.info("redis_connected")

    except Exception as e:
        logger.error("startup_failed", error=str(e))
        raise

    yield

    # Shutdown
    logger.info("audit_engine_shutting_down")
    await PostgresClient.close()
    await RedisClient.close()


# Create FastAPI application
app = FastAPI(
    title="AuditOps Audit Engine Service",
    description="Audit scoring, findings and CAPA workflow, entity health scores",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors.origins_list,
    allow_credentials=settings.cors.allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    """
    Service health check.

    Returns health status of the service and the stores it is configured for.
    """
    components: dict[str, dict[str, Any]] = {}

    if _uses_postgres():
        components["postgres"] = await PostgresClient.health_check()

    if _uses_redis():
        components["redis"] = await RedisClient.health_check(settings.audit.watermark_key)

    return HealthResponse.from_components("audit-engine", "0.1.0", components)


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": "AuditOps Audit Engine Service",
        "version": "0.1.0",
        "docs": "/docs",
    }


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(
    templates.router,
    prefix="/api/v1/templates",
    tags=["Templates"],
)

app.include_router(
    audits.router,
    prefix="/api/v1/audits",
    tags=["Audits"],
)

app.include_router(
    health_scores.router,
    prefix="/api/v1/health-scores",
    tags=["Health Scores"],
)


# ============================================================================
# Error Handlers
# ============================================================================


def _error_details(exc: AuditEngineError) -> dict[str, Any] | None:
    if isinstance(exc, InvalidTemplate):
        return {"template_id": exc.template_id, "problems": exc.problems}
    if isinstance(exc, IncompleteSubmission):
        return {
            "item_id": exc.item_id,
            "reason": exc.reason,
            "required": exc.required,
            "attached": exc.attached,
        }
    if isinstance(exc, CAPAsNotClosed):
        return {"audit_id": exc.audit_id, "capa_ids": exc.capa_ids}
    if isinstance(exc, InvalidTransition):
        return {"subject": exc.subject, "status": exc.current, "action": exc.action}
    item_id = getattr(exc, "item_id", None)
    return {"item_id": item_id} if item_id else None


@app.exception_handler(AuditEngineError)
async def audit_engine_exception_handler(request: Request, exc: AuditEngineError) -> JSONResponse:
    """Map engine errors: conflicts with record state are 409, bad input is 422."""
    if isinstance(exc, CAPAsNotClosed | InvalidTransition):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    logger.warning(
        "audit_engine_error",
        error_type=type(exc).__name__,
        status_code=status_code,
        path=request.url.path,
    )

    body = ErrorResponse(
        error=str(exc),
        error_code=type(exc).__name__,
        status_code=status_code,
        details=_error_details(exc),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )
    body = ErrorResponse(error=str(exc.detail), status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
    )
    body = ErrorResponse(
        error="Internal server error",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    return JSONResponse(status_code=body.status_code, content=body.model_dump(mode="json"))


# ============================================================================
# Run with Uvicorn
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "services.audit_engine.main:app",
        host="0.0.0.0",
        port=settings.ports.audit_engine,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
