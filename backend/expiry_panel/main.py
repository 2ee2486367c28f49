"""
VPS Expiry Panel - FastAPI Main Application
"""
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import asyncio

from .config import settings
from .database import init_db
from .exceptions import (
    CollectionUnreadable,
    RecordNotFound,
    StorageUnavailableError,
    ValidationRejected,
)

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events - startup and shutdown
    """
    logger.info("Starting VPS Expiry Panel...")

    try:
        if init_db():
            logger.info("✅ Key-value store initialized")
        else:
            logger.warning("⚠️  Key-value store not configured - setup required")
    except Exception as e:
        logger.error(f"❌ Key-value store initialization failed: {e}")

    scheduler_task = None
    if settings.SCHEDULER_ENABLED:
        from .services.scheduler import scheduler
        scheduler_task = asyncio.create_task(scheduler.start())
        app.state.scheduler = scheduler
    else:
        logger.info("ℹ️  Expiry scheduler disabled (skipped)")

    logger.info("✅ VPS Expiry Panel started successfully!")

    yield

    logger.info("Shutting down VPS Expiry Panel...")
    if scheduler_task is not None:
        await app.state.scheduler.stop()
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass
        logger.info("✅ Expiry scheduler stopped")
    logger.info("✅ Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Server expiry tracking with Telegram reminders",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)

# Add Gzip compression
app.add_middleware(GZipMiddleware, minimum_size=1000)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


# Error handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Handle HTTP exceptions"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "status_code": exc.status_code
        },
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(ValidationRejected)
async def validation_rejected_handler(request, exc):
    """Rejected input: duplicate names, incomplete settings, bad dates"""
    return JSONResponse(
        status_code=400,
        content={"error": exc.reason, "status_code": 400}
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request, exc):
    """Malformed request bodies get the same shape as other rejections"""
    reasons = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        reasons.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return JSONResponse(
        status_code=422,
        content={"error": "; ".join(reasons) or "Invalid request", "status_code": 422}
    )


@app.exception_handler(RecordNotFound)
async def record_not_found_handler(request, exc):
    return JSONResponse(
        status_code=404,
        content={"error": str(exc), "status_code": 404}
    )


@app.exception_handler(CollectionUnreadable)
async def collection_unreadable_handler(request, exc):
    logger.error(f"Refused write: {exc}")
    return JSONResponse(
        status_code=409,
        content={"error": str(exc), "status_code": 409}
    )


@app.exception_handler(StorageUnavailableError)
async def storage_unavailable_handler(request, exc):
    """Storage missing: the client should send the operator to setup"""
    logger.error(f"Storage unavailable: {exc}")
    return JSONResponse(
        status_code=503,
        content={
            "error": "Storage unavailable",
            "detail": str(exc),
            "setup_required": True,
            "status_code": 503
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# Import and include routers
from .api import auth, servers, categories, notifications, data
from .api import settings as api_settings

app.include_router(auth.router, prefix=f"{settings.API_V1_PREFIX}/auth", tags=["Authentication"])
app.include_router(servers.router, prefix=f"{settings.API_V1_PREFIX}/servers", tags=["Servers"])
app.include_router(categories.router, prefix=f"{settings.API_V1_PREFIX}/categories", tags=["Categories"])
app.include_router(api_settings.router, prefix=f"{settings.API_V1_PREFIX}/settings", tags=["Settings"])
app.include_router(notifications.router, prefix=f"{settings.API_V1_PREFIX}/notifications", tags=["Notifications"])
app.include_router(data.router, prefix=f"{settings.API_V1_PREFIX}/data", tags=["Data"])


def run():
    import uvicorn
    uvicorn.run(
        "expiry_panel.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
