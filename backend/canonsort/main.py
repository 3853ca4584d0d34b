"""Playlist Canonicalizer - Backend API

FastAPI backend that puts a Spotify playlist into canonical order (artist,
release date, album, disc, track) using the reorder API, so tracks keep
their date_added.

Main Components:
    - OAuth authentication flow with a cached token
    - Owned playlist listing
    - Sort analysis and background sort jobs
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from logging.handlers import TimedRotatingFileHandler
from contextlib import asynccontextmanager
from datetime import datetime
from zoneinfo import ZoneInfo
from pathlib import Path

from canonsort.config import settings
from canonsort.routes import auth, playlists, sort
from canonsort.services.job_service import SortJobService


# Custom logging formatter with timezone support
class TimezoneFormatter(logging.Formatter):
    def __init__(self, fmt=None, datefmt=None, tz=None):
        super().__init__(fmt, datefmt)
        self.tz = ZoneInfo(tz) if tz else None

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat()


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Configure logging
handler = logging.StreamHandler()
handler.setFormatter(TimezoneFormatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT, tz=settings.log_timezone))

handlers = [handler]
if settings.log_file_enabled:
    try:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_dir / "canonsort.log",
            when="midnight",
            backupCount=7,
            encoding="utf-8"
        )
        file_handler.setFormatter(TimezoneFormatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT, tz=settings.log_timezone))
        handlers.append(file_handler)
    except (PermissionError, OSError) as e:
        # Fall back to console-only logging if file logging fails
        logging.warning(f"Failed to set up file logging: {e}. Using console only.")

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    handlers=handlers
)

logger = logging.getLogger(__name__)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("spotipy").setLevel(logging.WARNING)
logging.getLogger("spotipy.client").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events for the application."""
    logger.info("Starting Playlist Canonicalizer API")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Backend URL: {settings.backend_url}")

    # Sorts are never resumed across restarts
    recovered = SortJobService.recover_interrupted_jobs()
    if recovered > 0:
        logger.info(f"Marked {recovered} interrupted jobs as failed")

    yield

    logger.info("Shutting down Playlist Canonicalizer API")


app = FastAPI(
    title="Playlist Canonicalizer API",
    description="Sorts Spotify playlists into canonical album order with minimal reorder calls",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(playlists.router)
app.include_router(sort.router)


@app.get("/")
async def root():
    """Basic API information and status."""
    return {
        "name": "Playlist Canonicalizer API",
        "version": "1.0.0",
        "status": "running",
        "docs": f"{settings.backend_url}/docs" if settings.is_development else "disabled",
        "environment": settings.environment
    }


@app.get("/health")
async def health_check():
    """Simple health check for monitoring."""
    return {
        "status": "healthy",
        "environment": settings.environment
    }


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Catches unhandled exceptions and returns a formatted error response."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "message": "An unexpected error occurred",
            "detail": str(exc) if settings.is_development else None
        }
    )


def run():
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "canonsort.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
