"""
Session Migrator - Project Session Migration Service
FastAPI backend exposing snapshot capture and migration over JSON documents
"""

from contextlib import asynccontextmanager
from typing import Any, Dict

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .api.routes import migrations
from .core.config import MigrationConfig, get_settings
from .core.integrator import Integrator
from .core.logging import setup_logging

# Global settings
settings = get_settings()

# Setup logging
logger = setup_logging(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""
    logger.info(f"Starting {settings.APP_NAME} {settings.APP_VERSION}...")

    if not Integrator(settings=settings).validate_sections():
        raise RuntimeError("Section registry is incomplete")

    yield

    logger.info(f"{settings.APP_NAME} shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Session Migrator API",
    description="Migrate tracks, items, takes, tempo and markers between project documents",
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)


# Exception handlers
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "detail": str(exc)}
    )


@app.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint"""
    return {"status": "healthy", "version": settings.APP_VERSION}


@app.get("/api/info")
async def app_info() -> Dict[str, Any]:
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "config_domains": MigrationConfig.domains(),
    }


# API Routes
app.include_router(migrations.router, prefix="/api", tags=["Migrations"])


if __name__ == "__main__":
    uvicorn.run(
        "session_migrator.main:app",
        host="127.0.0.1",
        port=8000,
        reload=settings.is_development,
        log_level=settings.LOG_LEVEL.lower(),
    )
