"""
Main FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lams import __version__
from lams.api.routes import (compensation, health, history, metrics,
                             notifications, parcels, possession, schemes,
                             service_requests, sia, sla)
from lams.core.config import get_settings
from lams.core.errors import (ConcurrentModification, Forbidden,
                              IllegalTransition, NotFound,
                              PreconditionFailed, ValidationError,
                              WorkflowError)
from lams.core.logging_config import LoggingConfig
from lams.core.middleware import LoggingContextMiddleware, MetricsMiddleware

# Configure logging first
LoggingConfig.configure()

logger = LoggingConfig.get_logger(__name__)

# Most specific first; first match wins
ERROR_STATUS_CODES = (
    (NotFound, 404),
    (Forbidden, 403),
    (IllegalTransition, 409),
    (ConcurrentModification, 409),
    (PreconditionFailed, 409),
    (ValidationError, 422),
)


def status_code_for(exc: WorkflowError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan events for FastAPI app"""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode...")
    yield
    logger.info(f"Shutting down {settings.app_name}...")


_settings = get_settings()
app = FastAPI(
    title=_settings.app_name,
    description="Land acquisition and property allotment workflow engine",
    version=__version__,
    lifespan=lifespan,
)

# Add logging context middleware (before CORS to capture all requests)
app.add_middleware(LoggingContextMiddleware)
app.add_middleware(MetricsMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    """Typed workflow errors map onto HTTP status codes"""
    status_code = status_code_for(exc)
    logger.info(
        f"Workflow error: {exc.code}",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler to log all unhandled errors"""
    logger.error(
        "Unhandled exception",
        exc_info=True,
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        }
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "type": type(exc).__name__
        }
    )


# Include routers
app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(parcels.router)
app.include_router(possession.router)
app.include_router(sia.router)
app.include_router(notifications.router)
app.include_router(compensation.router)
app.include_router(schemes.router)
app.include_router(service_requests.router)
app.include_router(sla.router)
app.include_router(history.router)


@app.get("/")
async def root():
    return {"service": _settings.app_name, "version": __version__}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "lams.main:app",
        host=_settings.api_host,
        port=_settings.api_port,
        log_level=_settings.log_level.lower(),
    )
