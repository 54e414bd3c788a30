from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from shipflow.config import settings
from shipflow.api.v1.router import api_router
from shipflow.database import init_db, async_session_factory


logger = logging.getLogger(__name__)


def courier_live_mode() -> bool:
    return bool(settings.DTDC_API_KEY and settings.DTDC_CUSTOMER_CODE) and not settings.COURIER_DEV_MODE


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    - Create tables for parties, pricing config and shipment records
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    await init_db()

    if not courier_live_mode():
        logger.warning("Courier credentials not configured, AWBs will be synthetic (fallback mode)")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")


API_DESCRIPTION = """
## Shipment Economics API

Classifies shipments, assigns the courier payer, resolves pricing, computes
itemized costs and insurance, and drives the courier for AWBs, labels and
tracking.

### Fallback mode

Without carrier credentials every AWB, label and tracking lookup is
synthetic and flagged with `fallback_mode: true`.
"""

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=API_DESCRIPTION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return unhandled errors as JSON."""
    if isinstance(exc, HTTPException):
        status_code = exc.status_code
        error_message = exc.detail
    else:
        status_code = 500
        error_message = str(exc)
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_message,
            "type": type(exc).__name__,
            "path": str(request.url.path),
            "method": request.method,
        }
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint with database validation."""
    courier_live = courier_live_mode()
    health_status = {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": "unknown",
            "courier": "live" if courier_live else "fallback",
        }
    }

    try:
        async with async_session_factory() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            health_status["checks"]["database"] = "connected"
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = f"error: {str(e)}"

    if health_status["status"] == "unhealthy":
        return JSONResponse(status_code=503, content=health_status)

    return health_status
