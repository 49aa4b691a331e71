"""
Centralized error handling for the Clip Library Analyzer API.

This module maps analysis, storage and validation failures to HTTP errors
with user-friendly messages and cleans up temporary files left behind by a
failed upload.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any, List
from datetime import datetime

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from models.validation import ValidationError, get_supported_formats, get_max_file_size_mb
from storage.file_manager import FileManager, FileValidationError
from storage.video_library import VideoLibraryError
from processing.frame_sampler import VideoLoadError
from processing.aggregator import AllFramesFailedError

logger = logging.getLogger(__name__)


class ErrorHandler:
    """Translates service exceptions into HTTP errors and cleans up after them."""

    def __init__(self, file_manager: Optional[FileManager] = None):
        """
        Initialize error handler.

        Args:
            file_manager: File manager used to remove temporary files
        """
        self.file_manager = file_manager

    def handle_analysis_error(self, error: Exception,
                              temp_files: Optional[List[Path]] = None) -> HTTPException:
        """
        Handle an error raised while uploading or analysing a clip.

        Args:
            error: The exception that occurred
            temp_files: Temporary files to clean up

        Returns:
            HTTPException with appropriate status code and message
        """
        if temp_files:
            for temp_file in temp_files:
                self._safe_cleanup_file(temp_file)

        return self.to_http_exception(error)

    def to_http_exception(self, error: Exception) -> HTTPException:
        """Map an exception to the HTTP error returned to the client."""
        if isinstance(error, HTTPException):
            return error

        if isinstance(error, ValidationError):
            return HTTPException(
                status_code=400,
                detail={
                    "error": "validation_error",
                    "message": f"File validation failed: {str(error)}",
                    "supported_formats": get_supported_formats(),
                    "max_file_size_mb": get_max_file_size_mb(),
                    "help": "Please check that your file is a valid video in a supported format."
                }
            )

        elif isinstance(error, (FileValidationError, VideoLoadError)):
            return HTTPException(
                status_code=422,
                detail={
                    "error": "file_validation_error",
                    "message": self._get_user_friendly_error_message(error),
                    "help": "The file appears to be corrupted or not a valid video file."
                }
            )

        elif isinstance(error, AllFramesFailedError):
            logger.error(f"Clip analysis failed: {error}")
            return HTTPException(
                status_code=502,
                detail={
                    "error": "analysis_failed",
                    "message": str(error),
                    "help": "The frame analysis service could not classify any frame. Please try again later."
                }
            )

        elif isinstance(error, VideoLibraryError):
            logger.error(f"Clip library unavailable: {error}")
            return HTTPException(
                status_code=503,
                detail={
                    "error": "service_unavailable",
                    "message": "The clip library is currently unavailable. Please try again later.",
                    "help": "This is a temporary issue. Please wait a few minutes and try again."
                }
            )

        logger.error(f"Unexpected error: {error}", exc_info=error)
        return HTTPException(
            status_code=500,
            detail={
                "error": "internal_error",
                "message": "An unexpected error occurred while handling the clip.",
                "help": "Please try again. If the problem persists, contact support."
            }
        )

    def _safe_cleanup_file(self, file_path: Path) -> bool:
        """
        Safely delete a file with error handling.

        Returns:
            True if file was deleted or didn't exist, False if deletion failed
        """
        if self.file_manager is not None:
            return self.file_manager.remove_file(file_path)
        try:
            Path(file_path).unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.error(f"Failed to cleanup file {file_path}: {e}")
            return False

    def _get_user_friendly_error_message(self, error: Exception) -> str:
        """
        Convert technical error messages to user-friendly messages.

        Args:
            error: The exception that occurred

        Returns:
            User-friendly error message
        """
        error_str = str(error).lower()

        if isinstance(error, VideoLoadError):
            if "duration" in error_str:
                return "The video has no playable duration. It may be empty or truncated."
            elif "decode" in error_str:
                return "The video frames could not be decoded. Please try a different video format."
            else:
                return "The video file could not be opened. It may be corrupted or in an unsupported format."

        elif "format" in error_str:
            return "File format could not be determined. The file may be corrupted or not a valid video file."

        elif "empty" in error_str:
            return "The uploaded file is empty."

        return f"File content validation failed: {str(error)}"


def create_error_response(error_type: str, message: str, status_code: int = 500,
                          help_text: Optional[str] = None, details: Optional[Any] = None) -> JSONResponse:
    """
    Create a standardized error response.

    Args:
        error_type: Type of error (e.g., "validation_error", "analysis_failed")
        message: Error message
        status_code: HTTP status code
        help_text: Optional help text for the user
        details: Optional additional details

    Returns:
        JSONResponse with standardized error format
    """
    response_data = {
        "error": error_type,
        "message": message,
        "timestamp": datetime.now().isoformat()
    }

    if help_text:
        response_data["help"] = help_text

    if details is not None:
        response_data["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=response_data
    )


def _http_error_body(detail: Any, status_code: int) -> Dict[str, Any]:
    """Shape an HTTPException detail into the standard error body."""
    if isinstance(detail, dict) and "error" in detail:
        body = dict(detail)
    else:
        body = {"error": "http_error", "message": detail}
    body["status_code"] = status_code
    body["timestamp"] = datetime.now().isoformat()
    return body


def setup_error_handlers(app):
    """
    Setup global error handlers for the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    from fastapi import Request
    from fastapi.exceptions import RequestValidationError
    from starlette.exceptions import HTTPException as StarletteHTTPException

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions, including 404 and 405 from routing."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_http_error_body(exc.detail, exc.status_code),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        return JSONResponse(
            status_code=422,
            content={
                "error": "validation_error",
                "message": "Request validation failed",
                "details": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
                    for err in exc.errors()
                ],
                "timestamp": datetime.now().isoformat()
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=exc)
        return create_error_response("internal_error", "An unexpected error occurred")

    logger.info("Error handlers setup complete")
