"""Main FastAPI application entry point."""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from sentinel.config import get_settings
from sentinel.database import close_database, get_database
from sentinel.limits import limiter

# Configure logging
logging.basicConfig(
    level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    logger.info("Starting Sentinel calendar sync...")
    logger.info(f"Database: {settings.database_path}")

    await get_database()
    logger.info("Database initialized")

    if os.path.exists(settings.encryption_key_file):
        try:
            from sentinel.config import get_encryption_key
            from sentinel.encryption import init_encryption_manager
            init_encryption_manager(get_encryption_key())
            logger.info("Encryption manager initialized")
        except Exception as e:
            logger.warning(f"Could not initialize encryption: {e}")
    else:
        logger.warning(f"No encryption key at {settings.encryption_key_file}; stored tokens cannot be read")

    yield

    logger.info("Shutting down...")
    await close_database()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Sentinel Calendar Sync",
    description="Mirrors subscription renewal and trial-end dates into Google Calendar",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

settings = get_settings()
allowed_origins = [settings.public_url]
if settings.public_url.startswith("http://localhost") or settings.public_url.startswith("https://localhost"):
    allowed_origins.extend([
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ])

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        db = await get_database()
        await db.execute("SELECT 1")
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "error": str(e)},
        )


from sentinel.api import api_router

app.include_router(api_router)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "sentinel.main:app",
        host="0.0.0.0",
        port=3000,
        log_level=settings.log_level.lower(),
        reload=False,
    )
