"""FastAPI application entrypoint for the GameNight service."""
import sys

# Ensure UTF-8 encoding
if sys.stdout:
    sys.stdout.reconfigure(encoding='utf-8')

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import time
import uuid

from app.api.routes import router
from app.core.logging import get_logger, setup_logging
from app.core.config import settings
from app.infrastructure.storage import build_gateway_factory

# Initialize structured logging
log_format = settings.environment == "production"
setup_logging(level=settings.log_level, json_format=log_format)
logger = get_logger(__name__)

# Application metadata
APP_VERSION = "1.0.0"
APP_NAME = "GameNight Service"

app = FastAPI(
    title=APP_NAME,
    description="Organise game nights and the players attending them",
    version=APP_VERSION,
    docs_url="/docs" if settings.environment != "production" else None,  # Disable in prod
    redoc_url="/redoc" if settings.environment != "production" else None,
)

# One factory per process; routes build a gateway handle per request from it
app.state.gateway_factory = build_gateway_factory(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Middleware to log all requests with timing and status code."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    request_log = get_logger(__name__, {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
    })

    start_time = time.time()
    request_log.info(f"Request started: {request.method} {request.url.path}")

    try:
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        request_log.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            }
        )

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id
        return response

    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        request_log.error(
            f"Request failed: {request.method} {request.url.path}",
            extra={
                "duration_ms": round(duration_ms, 2),
                "error_type": type(e).__name__,
            },
            exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "request_id": request_id},
            headers={"X-Request-ID": request_id},
        )


@app.on_event("startup")
async def startup_event():
    """Run on application startup."""
    logger.info("Application starting up", extra={"version": APP_VERSION})


@app.on_event("shutdown")
async def shutdown_event():
    """Run on application shutdown."""
    logger.info("Application shutting down")


app.include_router(router)


@app.get("/")
def root():
    """Root endpoint with basic service info."""
    return {
        "service": APP_NAME,
        "version": APP_VERSION,
        "status": "running",
        "environment": settings.environment
    }


@app.get("/health")
def health_check():
    """Liveness probe. Returns 200 whenever the process is serving requests."""
    return {
        "status": "healthy",
        "version": APP_VERSION,
        "checks": {
            "api": "ok",
            "storage_backend": settings.storage_backend
        }
    }


@app.get("/ready")
async def readiness_check(request: Request):
    """Readiness probe - verifies the storage backend answers."""
    gateway = request.app.state.gateway_factory()
    storage_ok = await gateway.ping()

    return {
        "status": "ready" if storage_ok else "degraded",
        "checks": {
            "storage": "ok" if storage_ok else "error",
            "storage_backend": type(gateway).__name__,
        }
    }
