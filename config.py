"""
Configuration settings for Clip Library Analyzer

This module provides configuration management for different environments
(development, testing, production) with environment variable support and
validation of the analysis policy values.
"""

import os
from pathlib import Path
from typing import Dict, Any, List
import logging

logger = logging.getLogger(__name__)


def _env_list(name: str, default: str) -> List[str]:
    """Split a comma separated environment variable into a list."""
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


class Config:
    """Base configuration class."""

    # Analysis pipeline policy
    SAMPLE_FRAMES = 6
    MAX_IMAGE_SIZE = 1024
    FRAME_JPEG_QUALITY = 85
    THUMBNAIL_MAX_EDGE = 360
    THUMBNAIL_JPEG_QUALITY = 60
    FACE_CONFIDENCE_MIN = 0.7
    FACE_MIN_FRAMES = 2
    SUBTITLE_CONFIDENCE_MIN = 0.7
    SUBTITLE_MIN_FRAMES = 2
    MAX_CONCURRENT_FRAME_REQUESTS = 6

    # Upstream multimodal model used by the analysis proxy
    DASHSCOPE_URL = "https://dashscope.aliyuncs.com/api/v1/services/aigc/multimodal-generation/generation"
    QWEN_MODEL = "qwen-vl-max"
    UPSTREAM_TIMEOUT = 120.0

    def __init__(self):
        self.validate_config()

    def validate_config(self):
        """Validate configuration settings."""
        for directory in [self.STORAGE_DIR, self.TEMP_DIR]:
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except Exception as e:
                logger.error(f"Failed to create directory {directory}: {e}")
                raise

        if not self.REDIS_HOST:
            raise ValueError("REDIS_HOST cannot be empty")

        if not (1 <= self.REDIS_PORT <= 65535):
            raise ValueError("REDIS_PORT must be between 1 and 65535")

        if self.SAMPLE_FRAMES < 1:
            raise ValueError("SAMPLE_FRAMES must be at least 1")

        for name in ("FACE_CONFIDENCE_MIN", "SUBTITLE_CONFIDENCE_MIN"):
            if not (0.0 <= getattr(self, name) <= 1.0):
                raise ValueError(f"{name} must be between 0.0 and 1.0")

        for name in ("FACE_MIN_FRAMES", "SUBTITLE_MIN_FRAMES", "MAX_CONCURRENT_FRAME_REQUESTS"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")

    @property
    def REDIS_URL(self) -> str:
        """Build the Redis connection URL."""
        auth = f":{self.REDIS_PASSWORD}@" if self.REDIS_PASSWORD else ""
        return f"redis://{auth}{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def ANALYZE_FRAME_URL(self) -> str:
        """Classifier endpoint, by default this service's own analyze-frame route."""
        return os.getenv("ANALYZE_FRAME_URL") or f"http://127.0.0.1:{self.API_PORT}/api/analyze-frame"

    def get_config_dict(self) -> Dict[str, Any]:
        """Get configuration as dictionary for logging/debugging."""
        return {
            "environment": self.ENVIRONMENT,
            "debug": self.DEBUG,
            "api_host": self.API_HOST,
            "api_port": self.API_PORT,
            "redis_host": self.REDIS_HOST,
            "redis_port": self.REDIS_PORT,
            "max_file_size": self.MAX_FILE_SIZE,
            "storage_dir": str(self.STORAGE_DIR),
            "temp_dir": str(self.TEMP_DIR),
            "analyze_frame_url": self.ANALYZE_FRAME_URL,
            "sample_frames": self.SAMPLE_FRAMES,
            "qwen_api_key_configured": bool(self.QWEN_API_KEY),
        }


class DevelopmentConfig(Config):
    """Development environment configuration."""

    # Environment
    ENVIRONMENT = "development"
    DEBUG = True

    # Base directories
    BASE_DIR = Path(__file__).parent
    STORAGE_DIR = BASE_DIR / "storage" / "clips"
    TEMP_DIR = BASE_DIR / "storage" / "temp"

    # File settings
    MAX_FILE_SIZE = 500 * 1024 * 1024  # 500MB

    # Redis settings
    REDIS_HOST = "localhost"
    REDIS_PORT = 6379
    REDIS_DB = 0
    REDIS_PASSWORD = None

    # Frame classification
    FRAME_REQUEST_TIMEOUT = 60.0
    FRAME_REQUEST_RETRIES = 0

    # Analysis proxy credential
    QWEN_API_KEY = os.getenv("QWEN_API_KEY") or os.getenv("VITE_QWEN_API_KEY")

    # API settings
    API_HOST = "0.0.0.0"
    API_PORT = int(os.getenv("API_PORT", 8000))
    CORS_ORIGINS = ["http://localhost:3000", "http://localhost:8000"]
    ALLOWED_HOSTS = ["*"]

    # Cleanup settings
    FILE_RETENTION_HOURS = 24

    # Logging
    LOG_LEVEL = "DEBUG"
    LOG_FILE = "app.log"


class ProductionConfig(Config):
    """Production environment configuration."""

    # Environment
    ENVIRONMENT = "production"
    DEBUG = False

    # Base directories
    BASE_DIR = Path(__file__).parent
    STORAGE_DIR = Path(os.getenv("STORAGE_DIR", BASE_DIR / "storage" / "clips"))
    TEMP_DIR = Path(os.getenv("TEMP_DIR", BASE_DIR / "storage" / "temp"))

    # File settings
    MAX_FILE_SIZE = int(os.getenv("MAX_FILE_SIZE", 500 * 1024 * 1024))

    # Redis settings
    REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
    REDIS_DB = int(os.getenv("REDIS_DB", 0))
    REDIS_PASSWORD = os.getenv("REDIS_PASSWORD")

    # Analysis pipeline policy
    SAMPLE_FRAMES = int(os.getenv("SAMPLE_FRAMES", 6))
    MAX_CONCURRENT_FRAME_REQUESTS = int(os.getenv("MAX_CONCURRENT_FRAME_REQUESTS", 6))

    # Frame classification
    FRAME_REQUEST_TIMEOUT = float(os.getenv("FRAME_REQUEST_TIMEOUT", 60.0))
    FRAME_REQUEST_RETRIES = int(os.getenv("FRAME_REQUEST_RETRIES", 1))

    # Analysis proxy credential
    QWEN_API_KEY = os.getenv("QWEN_API_KEY") or os.getenv("VITE_QWEN_API_KEY")
    QWEN_MODEL = os.getenv("QWEN_MODEL", Config.QWEN_MODEL)
    DASHSCOPE_URL = os.getenv("DASHSCOPE_URL", Config.DASHSCOPE_URL)

    # API settings
    API_HOST = os.getenv("API_HOST", "0.0.0.0")
    API_PORT = int(os.getenv("API_PORT", 8000))
    CORS_ORIGINS = _env_list("CORS_ORIGINS", "")
    ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", "localhost,127.0.0.1")

    # Cleanup settings
    FILE_RETENTION_HOURS = int(os.getenv("FILE_RETENTION_HOURS", 48))

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE", "/var/log/clip-library-analyzer.log")

    def validate_config(self):
        """Additional validation for production."""
        super().validate_config()

        if not self.QWEN_API_KEY:
            logger.warning("QWEN_API_KEY is not set; /api/analyze-frame will reject every request")

        if not self.ALLOWED_HOSTS:
            raise ValueError("ALLOWED_HOSTS must list at least one host in production")


class TestingConfig(Config):
    """Testing environment configuration."""

    # Environment
    ENVIRONMENT = "testing"
    DEBUG = True

    # Base directories
    BASE_DIR = Path(__file__).parent
    STORAGE_DIR = BASE_DIR / "test_storage" / "clips"
    TEMP_DIR = BASE_DIR / "test_storage" / "temp"

    # File settings
    MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB for testing

    # Redis settings (use different DB for testing)
    REDIS_HOST = "localhost"
    REDIS_PORT = 6379
    REDIS_DB = 1
    REDIS_PASSWORD = None

    # Frame classification
    ANALYZE_FRAME_URL = "http://analysis-proxy.test/api/analyze-frame"
    FRAME_REQUEST_TIMEOUT = 5.0
    FRAME_REQUEST_RETRIES = 0

    # Analysis proxy credential
    QWEN_API_KEY = "test-qwen-key"

    # API settings
    API_HOST = "127.0.0.1"
    API_PORT = 8001
    CORS_ORIGINS = ["http://localhost:3000"]
    ALLOWED_HOSTS = ["*"]

    # Cleanup settings
    FILE_RETENTION_HOURS = 1

    # Logging
    LOG_LEVEL = "DEBUG"
    LOG_FILE = "test.log"


# Configuration factory
def get_config() -> Config:
    """Get configuration based on environment."""
    env = os.getenv("ENVIRONMENT", "development").lower()

    config_map = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig
    }

    config_class = config_map.get(env, DevelopmentConfig)
    return config_class()


# Global configuration instance
_config = get_config()

# Export configuration attributes as module-level settings
ENVIRONMENT = _config.ENVIRONMENT
DEBUG = _config.DEBUG
BASE_DIR = _config.BASE_DIR
STORAGE_DIR = _config.STORAGE_DIR
TEMP_DIR = _config.TEMP_DIR
MAX_FILE_SIZE = _config.MAX_FILE_SIZE
REDIS_HOST = _config.REDIS_HOST
REDIS_PORT = _config.REDIS_PORT
REDIS_DB = _config.REDIS_DB
REDIS_PASSWORD = _config.REDIS_PASSWORD
REDIS_URL = _config.REDIS_URL
SAMPLE_FRAMES = _config.SAMPLE_FRAMES
MAX_IMAGE_SIZE = _config.MAX_IMAGE_SIZE
FRAME_JPEG_QUALITY = _config.FRAME_JPEG_QUALITY
THUMBNAIL_MAX_EDGE = _config.THUMBNAIL_MAX_EDGE
THUMBNAIL_JPEG_QUALITY = _config.THUMBNAIL_JPEG_QUALITY
FACE_CONFIDENCE_MIN = _config.FACE_CONFIDENCE_MIN
FACE_MIN_FRAMES = _config.FACE_MIN_FRAMES
SUBTITLE_CONFIDENCE_MIN = _config.SUBTITLE_CONFIDENCE_MIN
SUBTITLE_MIN_FRAMES = _config.SUBTITLE_MIN_FRAMES
MAX_CONCURRENT_FRAME_REQUESTS = _config.MAX_CONCURRENT_FRAME_REQUESTS
ANALYZE_FRAME_URL = _config.ANALYZE_FRAME_URL
FRAME_REQUEST_TIMEOUT = _config.FRAME_REQUEST_TIMEOUT
FRAME_REQUEST_RETRIES = _config.FRAME_REQUEST_RETRIES
QWEN_API_KEY = _config.QWEN_API_KEY
QWEN_MODEL = _config.QWEN_MODEL
DASHSCOPE_URL = _config.DASHSCOPE_URL
UPSTREAM_TIMEOUT = _config.UPSTREAM_TIMEOUT
API_HOST = _config.API_HOST
API_PORT = _config.API_PORT
CORS_ORIGINS = _config.CORS_ORIGINS
ALLOWED_HOSTS = _config.ALLOWED_HOSTS
FILE_RETENTION_HOURS = _config.FILE_RETENTION_HOURS
LOG_LEVEL = _config.LOG_LEVEL
LOG_FILE = _config.LOG_FILE


def get_config_instance() -> Config:
    """Get the current configuration instance."""
    return _config
