"""
FastAPI Server for the NFT cache reconciler
Serves the cache read API and the reconciliation admin endpoints
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from config.config import validate_config, WEBAPP_URL, ENABLE_SCHEDULER
from config.logging import setup_logging
from config.sentry import init_sentry
from src.database.engine import check_connection, dispose_engine
from src.api.router import router as api_router
from src.services.reconciliation.scheduler import ReconciliationScheduler

# Setup logging at module level (must run before app creation)
# This ensures logging works when uvicorn imports the module
setup_logging()
init_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events
    """
    # Startup
    logger.info("Starting NFT Cache Reconciler API...")

    # NOTE: Database tables managed by Alembic migrations
    # Run: alembic upgrade head
    if not await check_connection():
        logger.warning("Database unreachable at startup, requests will fail until it recovers")

    scheduler = None
    if ENABLE_SCHEDULER:
        scheduler = ReconciliationScheduler()
        scheduler.start()
    else:
        logger.info("Reconciliation scheduler disabled (ENABLE_SCHEDULER=false)")

    yield

    # Shutdown
    logger.info("Shutting down NFT Cache Reconciler API...")

    if scheduler is not None:
        scheduler.stop()

    await dispose_engine()
    logger.info("Database connections closed")


# Rate limiter, per client IP (configurable in .env)
rate_limit = os.getenv("API_RATE_LIMIT", "300/minute")

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[rate_limit],
    storage_uri="memory://",
)

app = FastAPI(
    title="NFT Cache Reconciler API",
    description="NFT cache reads and chain reconciliation admin",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# CORS for the frontend
allowed_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

if WEBAPP_URL and WEBAPP_URL not in allowed_origins:
    allowed_origins.append(WEBAPP_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# All API endpoints live under /api
app.include_router(api_router, prefix="/api")


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint
    """
    return {
        "service": "NFT Cache Reconciler API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


# Error handler for HTTPException (must be before generic Exception handler)
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Handle HTTPException properly - return correct status code and detail
    """
    # Log 4xx as warning, 5xx as error
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {exc.detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {exc.detail}")

    content = exc.detail if isinstance(exc.detail, dict) else {"detail": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=content
    )


# Error handler for unexpected exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unexpected errors
    """
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
        }
    )


if __name__ == "__main__":
    import uvicorn

    try:
        validate_config()
    except ValueError as e:
        logger.error(str(e))
        exit(1)

    logger.info("Configuration validated successfully")

    # Listen on localhost only, exposed through the reverse proxy
    uvicorn.run(
        "api_server:app",
        host="127.0.0.1",
        port=int(os.getenv("API_PORT", "8003")),
        log_level="info",
    )
