#!/usr/bin/env python3
"""
Main entry point for Clip Library Analyzer service

This module creates and configures the FastAPI application, integrating the
frame analysis proxy, the clip library API, storage and error handling.
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.routes import api_router, proxy_router
from api.error_handlers import setup_error_handlers
from storage.file_manager import get_file_manager
from storage.video_library import get_video_library, VideoLibraryError
import config

# Configure logging based on environment
def setup_logging():
    """Configure logging for the application."""
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    # Configure root logger
    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(config.LOG_FILE) if not config.DEBUG else logging.NullHandler()
        ]
    )

    # Set specific logger levels
    logging.getLogger('uvicorn').setLevel(logging.INFO)
    logging.getLogger('fastapi').setLevel(logging.INFO)
    logging.getLogger('httpx').setLevel(logging.WARNING)

    return logging.getLogger(__name__)

logger = setup_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown procedures."""
    logger.info("Starting Clip Library Analyzer service...")

    # Prepare storage and drop uploads abandoned by a previous run
    file_manager = get_file_manager()
    file_manager.ensure_directories()
    file_manager.cleanup_temp_files(max_age_hours=config.FILE_RETENTION_HOURS)
    logger.info("File manager initialized")

    try:
        if get_video_library().health_check():
            logger.info("Clip library connected")
        else:
            logger.warning("Redis is not responding; library endpoints will return 503")
    except VideoLibraryError as e:
        logger.warning(f"Clip library unavailable at startup: {e}")

    if not config.QWEN_API_KEY:
        logger.warning("QWEN_API_KEY is not set; frame analysis requests will fail")

    yield

    logger.info("Service shutdown complete")

# Create FastAPI application with lifespan management
app = FastAPI(
    title="Clip Library Analyzer",
    description="Video asset library that classifies clips for people and burned-in subtitles",
    version="1.0.0",
    docs_url="/docs" if config.DEBUG else None,
    redoc_url="/redoc" if config.DEBUG else None,
    lifespan=lifespan
)

# Configure middleware based on environment
def setup_middleware(app: FastAPI):
    """Setup middleware for the application."""

    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=config.ALLOWED_HOSTS
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

setup_middleware(app)

# Security headers middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all responses."""
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    return response

# Setup error handlers
setup_error_handlers(app)

# Include API routes
app.include_router(proxy_router)
app.include_router(api_router)

@app.get("/health")
async def health_check():
    """Service health check with library and storage status"""
    health_status = {
        "status": "healthy",
        "version": "1.0.0",
        "environment": config.ENVIRONMENT,
        "services": {}
    }

    # Check clip library
    try:
        video_library = get_video_library()
        health_status["services"]["video_library"] = {
            "status": "healthy" if video_library.health_check() else "unhealthy",
            "stats": video_library.get_library_stats()
        }
    except VideoLibraryError as e:
        health_status["services"]["video_library"] = {
            "status": "unhealthy",
            "error": str(e)
        }

    # Check file storage
    try:
        file_manager = get_file_manager()
        health_status["services"]["file_manager"] = {
            "status": "healthy",
            "storage": file_manager.get_storage_info()
        }
    except OSError as e:
        health_status["services"]["file_manager"] = {
            "status": "unhealthy",
            "error": str(e)
        }

    health_status["services"]["analysis_proxy"] = {
        "status": "healthy" if config.QWEN_API_KEY else "unconfigured"
    }

    if any(service["status"] != "healthy" for service in health_status["services"].values()):
        health_status["status"] = "degraded"

    if health_status["services"]["video_library"]["status"] != "healthy":
        return JSONResponse(status_code=503, content=health_status)
    return health_status

# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests for monitoring."""
    start_time = asyncio.get_running_loop().time()

    logger.info(f"Request: {request.method} {request.url.path}")

    response = await call_next(request)

    process_time = asyncio.get_running_loop().time() - start_time
    logger.info(f"Response: {response.status_code} - {process_time:.3f}s")

    return response

def create_app() -> FastAPI:
    """Factory function to create the FastAPI application."""
    return app

if __name__ == "__main__":
    logger.info("Starting Clip Library Analyzer service...")

    try:
        uvicorn.run(
            "main:app",
            host=config.API_HOST,
            port=config.API_PORT,
            reload=config.DEBUG,
            log_level="debug" if config.DEBUG else "info",
            access_log=True
        )
    except KeyboardInterrupt:
        logger.info("Service interrupted by user")
