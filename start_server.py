#!/usr/bin/env python3
"""
Production startup script for Clip Library Analyzer service.

This script provides a production-ready way to start the service with
proper configuration, logging, and error handling.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import uvicorn

def setup_production_logging():
    """Setup production logging configuration."""
    import config

    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(config.LOG_FILE) if config.LOG_FILE else logging.NullHandler()
        ]
    )

    logging.getLogger('uvicorn').setLevel(logging.INFO)
    logging.getLogger('fastapi').setLevel(logging.INFO)

    return logging.getLogger(__name__)

def validate_environment():
    """Validate that the environment is properly configured."""
    import config

    logger = logging.getLogger(__name__)

    # Check required directories
    for directory in [config.STORAGE_DIR, config.TEMP_DIR]:
        try:
            Path(directory).mkdir(parents=True, exist_ok=True)
            logger.info(f"Directory ready: {directory}")
        except OSError as e:
            logger.error(f"Failed to create directory {directory}: {e}")
            return False

    # Check Redis connection
    from storage.video_library import get_video_library, VideoLibraryError
    try:
        if get_video_library().health_check():
            logger.info("Redis connection healthy")
        else:
            logger.warning("Redis connection unhealthy - clip library may not work")
    except VideoLibraryError as e:
        logger.warning(f"Redis check failed: {e}")

    # Check analysis proxy credential
    if not config.QWEN_API_KEY:
        if config.ENVIRONMENT == "production":
            logger.error("QWEN_API_KEY not set for production")
            return False
        logger.warning("QWEN_API_KEY not set - frame analysis will fail")
    else:
        logger.info("Analysis proxy credential configured")

    return True

def main():
    """Main entry point for the server."""
    parser = argparse.ArgumentParser(description="Clip Library Analyzer Service")
    parser.add_argument("--host", default=None, help="Host to bind to")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to")
    parser.add_argument("--workers", type=int, default=1, help="Number of worker processes")
    parser.add_argument("--env", choices=["development", "production", "testing"], default=None,
                        help="Configuration environment")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload (development only)")
    parser.add_argument("--log-level", default=None, help="Log level (debug, info, warning, error)")
    parser.add_argument("--validate-only", action="store_true", help="Only validate configuration and exit")

    args = parser.parse_args()

    # Environment and port must be chosen before config is first imported
    if args.env:
        os.environ["ENVIRONMENT"] = args.env
    if args.port:
        os.environ["API_PORT"] = str(args.port)

    logger = setup_production_logging()

    import config

    logger.info("Starting Clip Library Analyzer Service")
    logger.info(f"Environment: {config.ENVIRONMENT}")
    logger.info(f"Debug mode: {config.DEBUG}")
    logger.debug(f"Configuration: {config.get_config_instance().get_config_dict()}")

    if not validate_environment():
        logger.error("Environment validation failed")
        sys.exit(1)

    if args.validate_only:
        logger.info("Configuration validation complete")
        sys.exit(0)

    host = args.host or config.API_HOST
    port = args.port or config.API_PORT
    reload = args.reload or config.DEBUG
    log_level = args.log_level or config.LOG_LEVEL.lower()

    if config.ENVIRONMENT == "production" and reload:
        logger.warning("Auto-reload disabled in production")
        reload = False

    logger.info("Server configuration:")
    logger.info(f"  Host: {host}")
    logger.info(f"  Port: {port}")
    logger.info(f"  Workers: {args.workers}")
    logger.info(f"  Reload: {reload}")
    logger.info(f"  Log level: {log_level}")

    try:
        uvicorn.run(
            "main:app",
            host=host,
            port=port,
            workers=args.workers if not reload else 1,  # Workers don't work with reload
            reload=reload,
            log_level=log_level,
            access_log=True,
            server_header=False,
            date_header=False
        )
    except KeyboardInterrupt:
        logger.info("Service interrupted by user")

if __name__ == "__main__":
    main()
