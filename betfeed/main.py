"""
Main FastAPI application for the Betfeed sync and booking API.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from prometheus_fastapi_instrumentator import Instrumentator

from betfeed.core.config import settings
from betfeed.core.database import init_db
from betfeed.core.logging import configure_logging, get_logger
from betfeed.core.middleware import CorrelationIdMiddleware
from betfeed.core.rate_limit import limiter
from betfeed.api.routes import booking, events, games, health, sync
from betfeed.services.feed.feed_client import close_feed_client
from betfeed.services.sync.orchestrator import get_orchestrator

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    missing = settings.validate_required_secrets()
    if missing:
        logger.warning(f"Missing required settings: {', '.join(missing)}")

    init_db()
    logger.info("Application started")

    yield

    # Shutdown
    orchestrator = get_orchestrator()
    if orchestrator.active:
        orchestrator.stop()
        logger.info("Sync jobs stopped")
    await close_feed_client()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Virtual sports feed sync, results and bet slip booking",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Correlation ids must be set before CORS handles the request
app.add_middleware(CorrelationIdMiddleware)

# Prometheus metrics must be wired before routes are included
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)
logger.info("Prometheus metrics initialized at /metrics")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# ROUTE REGISTRATION
# ============================================================================
# Paths are fixed by the existing front end, so routers carry their own
# prefixes and are mounted without a version prefix.
app.include_router(health.router)
app.include_router(events.router)
app.include_router(games.router)
app.include_router(sync.router)
app.include_router(booking.router)


@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request):
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "endpoints": {
            "health": "/healthz",
            "test": "/test",
            "events": "/events",
            "events_with_results": "/api/events-with-results",
            "results": "/api/results",
            "games": "/api/games",
            "sync": "/api/robust-auto-sync",
            "booking": "/booking",
            "betslips": "/api/betslips",
            "metrics": "/metrics",
            "docs": "/docs",
        },
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Turn unhandled errors into the standard failure body."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})
