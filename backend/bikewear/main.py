"""
BikeWear FastAPI Application
Main entry point for the backend server
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bikewear.config import settings
from bikewear.db.database import close_db, health_check_db, init_db
from bikewear.exceptions import BikeWearError


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
    ],
)

logger = logging.getLogger(__name__)

# ============================================================================
# STARTUP & SHUTDOWN EVENTS
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle - startup and shutdown.

    Startup: Initialize database, log startup info
    Shutdown: Close connections
    """
    # === STARTUP ===
    logger.info("🚀 Starting BikeWear API...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'local'}")

    try:
        init_db()
        logger.info("✅ Database initialized successfully")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {str(e)}")
        raise

    yield

    # === SHUTDOWN ===
    logger.info("🛑 Shutting down BikeWear API...")
    close_db()


# ============================================================================
# CREATE FASTAPI APPLICATION
# ============================================================================

app = FastAPI(
    title="BikeWear API",
    description="Component lifecycle and wear tracking for bikes",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# ============================================================================
# MIDDLEWARE
# ============================================================================

# 1. CORS Middleware - Allow frontend to call backend
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",  # Development frontend
        "http://localhost:3000",  # Alternative port
        settings.FRONTEND_URL,
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 2. Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests and responses"""
    start_time = datetime.utcnow()

    logger.debug(f"{request.method} {request.url.path}")

    response = await call_next(request)

    duration = (datetime.utcnow() - start_time).total_seconds()

    logger.info(
        f"{request.method} {request.url.path} - {response.status_code} ({duration:.3f}s)"
    )

    return response

# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


@app.exception_handler(BikeWearError)
async def bikewear_exception_handler(request: Request, exc: BikeWearError):
    """Typed service errors -> 404 / 400 / 409"""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.error_code} {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.message,
            "error_code": exc.error_code,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle any unhandled exceptions globally"""
    logger.error(f"Global exception handler: {str(exc)}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error_code": "INTERNAL_ERROR",
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


# ============================================================================
# HEALTH CHECK ENDPOINTS
# ============================================================================


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint - API is running"""
    return {
        "message": "Welcome to BikeWear API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for monitoring"""
    db_ok = health_check_db()
    return JSONResponse(
        status_code=status.HTTP_200_OK if db_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "healthy" if db_ok else "degraded",
            "database": "ok" if db_ok else "unavailable",
            "timestamp": datetime.utcnow().isoformat(),
            "environment": settings.ENVIRONMENT,
        },
    )


# ============================================================================
# API ROUTERS
# ============================================================================

from bikewear.api import bikes, components, rides  # noqa: E402

app.include_router(bikes.router, prefix="/api/bikes", tags=["bikes"])
app.include_router(components.router, prefix="/api/components", tags=["components"])
app.include_router(rides.router, prefix="/api/rides", tags=["rides"])


# ============================================================================
# ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    # Run development server
    uvicorn.run(
        "bikewear.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Auto-reload on code changes
        log_level="info",
    )
