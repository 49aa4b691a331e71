"""Validation functions for uploaded clip files."""

import os
from pathlib import Path
from typing import List


class ValidationError(Exception):
    """Custom exception for validation errors."""
    pass


# Supported clip formats and their extensions
SUPPORTED_VIDEO_FORMATS = {
    'video/mp4': ['.mp4', '.m4v'],
    'video/quicktime': ['.mov'],
    'video/webm': ['.webm'],
    'video/x-msvideo': ['.avi']
}

# File size limits
MAX_FILE_SIZE_BYTES = 500 * 1024 * 1024  # 500 MB
MIN_FILE_SIZE_BYTES = 1024  # 1 KB


def validate_file_size(file_path: str, max_size: int = MAX_FILE_SIZE_BYTES) -> None:
    """
    Validate clip file size is within acceptable limits.

    Args:
        file_path: Path to the video file
        max_size: Upper bound in bytes

    Raises:
        ValidationError: If file size is outside acceptable range
        FileNotFoundError: If file doesn't exist
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    file_size = os.path.getsize(file_path)

    if file_size < MIN_FILE_SIZE_BYTES:
        raise ValidationError(
            f"File too small: {file_size} bytes. Minimum size: {MIN_FILE_SIZE_BYTES} bytes"
        )

    if file_size > max_size:
        max_size_mb = max_size / (1024 * 1024)
        current_size_mb = file_size / (1024 * 1024)
        raise ValidationError(
            f"File too large: {current_size_mb:.1f} MB. Maximum size: {max_size_mb:.1f} MB"
        )


def validate_filename(filename: str) -> None:
    """
    Validate filename for security and compatibility.

    Args:
        filename: Original filename

    Raises:
        ValidationError: If filename contains invalid characters
    """
    if not filename:
        raise ValidationError("Filename cannot be empty")

    # Check for dangerous characters
    dangerous_chars = ['..', '/', '\\', ':', '*', '?', '"', '<', '>', '|']
    for char in dangerous_chars:
        if char in filename:
            raise ValidationError(f"Filename contains invalid character: '{char}'")

    if len(filename) > 255:
        raise ValidationError("Filename too long (maximum 255 characters)")

    file_extension = Path(filename).suffix.lower()
    valid_extensions = get_supported_formats()

    if file_extension not in valid_extensions:
        raise ValidationError(
            f"Invalid file extension: {file_extension}. "
            f"Supported extensions: {', '.join(valid_extensions)}"
        )


def get_supported_formats() -> List[str]:
    """Get list of supported clip file extensions."""
    extensions = []
    for ext_list in SUPPORTED_VIDEO_FORMATS.values():
        extensions.extend(ext_list)
    return sorted(set(extensions))


def get_max_file_size_mb(max_size: int = MAX_FILE_SIZE_BYTES) -> float:
    """Get maximum file size in megabytes."""
    return max_size / (1024 * 1024)
