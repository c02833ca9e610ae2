"""
app/main.py

Purpose: Application entry point

- Initializes FastAPI app
- Loads configuration and logging
- Wires collaborators (SMS transport, token issuer, request counter)
- Registers API routes
- Manages application lifecycle (startup/shutdown, cleanup task)
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager, suppress
from datetime import timedelta
import asyncio
import time

from app.core.config import settings, validate_settings
from app.core.errors import add_exception_handlers
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health, get_accounts_collection
from app.db.indexes import create_indexes
from app.services.account_service import MongoAccountStore
from app.services.cleanup_service import code_cleanup_loop
from app.services.rate_limit_service import RequestCounter
from app.services.session_service import SessionIssuer
from app.services.sms_service import build_sms_transport
from app.api import auth

# Initialize logging first
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("🚀 Starting Phone Verification API...")
    cleanup_task = None

    try:
        logger.info("Validating configuration...")
        validate_settings()
        logger.info("✅ Configuration validated")

        logger.info("Connecting to MongoDB...")
        await connect_to_mongo()
        logger.info("✅ MongoDB connected")

        logger.info("Creating database indexes...")
        await create_indexes()
        logger.info("✅ Database indexes created")

        if settings.CODE_CLEANUP_INTERVAL_SECONDS > 0:
            cleanup_task = asyncio.create_task(
                code_cleanup_loop(
                    MongoAccountStore(get_accounts_collection()),
                    settings.CODE_CLEANUP_INTERVAL_SECONDS
                )
            )

        logger.info("🎉 Phone Verification API started successfully!")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        logger.info(f"SMS mock mode: {app.state.sms_transport.mock_mode}")

    except Exception as e:
        logger.critical(f"Failed to start application: {str(e)}", exc_info=True)
        raise

    yield  # Application runs here

    logger.info("🛑 Shutting down Phone Verification API...")

    try:
        if cleanup_task:
            cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cleanup_task
            logger.info("✅ Cleanup task stopped")

        await close_mongo_connection()
        logger.info("✅ MongoDB connection closed")

    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}", exc_info=True)


# Create FastAPI app with lifespan
app = FastAPI(
    title="Phone Verification API",
    description="Phone number verification with one-time SMS codes and session tokens",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs" if settings.is_development else None,  # Disable docs in production
    redoc_url="/redoc" if settings.is_development else None,
)

# Collaborators, resolved per request through app/api/deps.py
app.state.sms_transport = build_sms_transport(settings)
app.state.session_issuer = SessionIssuer.from_settings(settings)
app.state.request_counter = RequestCounter(
    max_requests=settings.IP_RATE_LIMIT_MAX_REQUESTS,
    window=timedelta(seconds=settings.IP_RATE_LIMIT_WINDOW_SECONDS),
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
    expose_headers=["X-New-Token"],
)


# Request timing middleware
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add processing time header to all responses."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    # Log slow requests
    if process_time > 5.0:
        logger.warning(
            f"Slow request detected: {request.method} {request.url.path}",
            extra={"process_time": process_time}
        )

    return response


add_exception_handlers(app)

app.include_router(auth.router, prefix=settings.API_PREFIX, tags=["Auth"])


# Root endpoint
@app.get("/", tags=["Health"])
async def root():
    """Root endpoint - basic info."""
    return {
        "name": "Phone Verification API",
        "version": "1.0.0",
        "status": "running",
        "environment": settings.ENVIRONMENT
    }


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Checks database connectivity and SMS transport mode.
    """
    health_status = {
        "status": "healthy",
        "timestamp": time.time(),
        "environment": settings.ENVIRONMENT,
        "version": "1.0.0",
        "checks": {}
    }

    db_healthy = await check_database_health()
    health_status["checks"]["database"] = "healthy" if db_healthy else "unhealthy"
    if not db_healthy:
        health_status["status"] = "degraded"

    health_status["checks"]["sms"] = "mock" if app.state.sms_transport.mock_mode else "twilio"

    status_code = 200 if health_status["status"] == "healthy" else 503
    return JSONResponse(content=health_status, status_code=status_code)


# Readiness probe (for Kubernetes/orchestration)
@app.get("/ready", tags=["Health"])
async def readiness_check():
    """
    Readiness probe - indicates if app is ready to receive traffic.
    """
    if await check_database_health():
        return {"status": "ready"}
    return JSONResponse(
        status_code=503,
        content={"status": "not_ready", "reason": "database_unavailable"}
    )


# Liveness probe (for Kubernetes/orchestration)
@app.get("/live", tags=["Health"])
async def liveness_check():
    """
    Liveness probe - indicates if app is alive.
    """
    return {"status": "alive"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower()
    )
