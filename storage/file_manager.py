"""
File storage for uploaded clips.

This module handles temporary upload files, permanent clip storage, container
format sniffing from file headers and cleanup of stale temporary files.
"""

import os
import tempfile
import shutil
import time
from pathlib import Path
from typing import Optional, Dict, Any
import logging
import uuid

logger = logging.getLogger(__name__)


class FileValidationError(Exception):
    """Raised when file validation fails."""
    pass


class FileManager:
    """
    Manages file operations for clip analysis.

    Uploads are written to a temporary directory, analysed, and moved into
    permanent storage once the clip has been accepted into the library.
    """

    # Extensions accepted for each sniffed container
    FORMAT_EXTENSIONS = {
        'mp4': {'.mp4', '.m4v', '.mov'},
        'mov': {'.mov', '.mp4'},
        'webm': {'.webm'},
        'avi': {'.avi'},
    }

    def __init__(self, base_storage_path: Optional[str] = None, temp_dir: Optional[str] = None):
        """
        Initialize FileManager with storage paths.

        Args:
            base_storage_path: Base directory for stored clips
            temp_dir: Directory for temporary files
        """
        self.base_storage_path = Path(base_storage_path or 'storage/clips')
        self.temp_dir = Path(temp_dir or Path(tempfile.gettempdir()) / 'clip_library_analyzer')
        self.ensure_directories()

    def ensure_directories(self) -> None:
        """Create storage directories if they don't exist."""
        self.base_storage_path.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    def detect_video_format(self, file_path: Path) -> Optional[str]:
        """
        Detect the container format from the file header.

        Args:
            file_path: Path to the file to analyze

        Returns:
            Detected format string or None if not recognized
        """
        try:
            with open(file_path, 'rb') as f:
                header = f.read(16)
        except OSError as e:
            logger.error(f"Failed to read header of {file_path}: {e}")
            return None

        if header[4:8] == b'ftyp':
            brand = header[8:12]
            return 'mov' if brand == b'qt  ' else 'mp4'
        if header[:4] == b'\x1a\x45\xdf\xa3':
            return 'webm'
        if header[:4] == b'RIFF' and header[8:12] == b'AVI ':
            return 'avi'
        return None

    def validate_video_file(self, file_path: Path) -> str:
        """
        Check that a file looks like a supported video container.

        Args:
            file_path: Path to the file to validate

        Returns:
            The detected container format

        Raises:
            FileValidationError: If the file is missing, empty or not a video
        """
        if not file_path.exists():
            raise FileValidationError(f"File does not exist: {file_path}")

        if file_path.stat().st_size == 0:
            raise FileValidationError("File is empty")

        detected_format = self.detect_video_format(file_path)
        if not detected_format:
            raise FileValidationError(
                "File format could not be determined from file content. "
                "File may be corrupted or not a valid video file."
            )

        if file_path.suffix.lower() not in self.FORMAT_EXTENSIONS[detected_format]:
            logger.warning(
                f"File extension {file_path.suffix} doesn't match detected format {detected_format}"
            )

        return detected_format

    def create_temp_file(self, suffix: str = '') -> Path:
        """
        Reserve a unique path in the temporary directory.

        Args:
            suffix: File suffix such as '.mp4'

        Returns:
            Path to the new (empty) temporary file
        """
        fd, temp_path = tempfile.mkstemp(suffix=suffix, dir=self.temp_dir)
        os.close(fd)
        logger.debug(f"Created temporary file: {temp_path}")
        return Path(temp_path)

    def store_uploaded_file(self, source_path: Path, original_filename: str) -> Path:
        """
        Move an analysed upload into permanent storage.

        Args:
            source_path: Temporary file holding the upload
            original_filename: Name the user uploaded the clip with

        Returns:
            Path of the stored clip
        """
        suffix = Path(original_filename).suffix.lower()
        destination = self.base_storage_path / f"{uuid.uuid4().hex}{suffix}"
        shutil.move(str(source_path), destination)
        logger.info(f"Stored clip {original_filename} at {destination}")
        return destination

    def remove_file(self, file_path: Optional[Path]) -> bool:
        """
        Delete a file, tolerating files that are already gone.

        Returns:
            True if the file was deleted or didn't exist, False if deletion failed
        """
        if file_path is None:
            return True
        try:
            Path(file_path).unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.error(f"Failed to remove file {file_path}: {e}")
            return False

    def cleanup_temp_files(self, max_age_hours: int = 24) -> int:
        """
        Remove temporary files older than the given age.

        Returns:
            Number of files removed
        """
        cutoff = time.time() - max_age_hours * 3600
        removed = 0
        for temp_file in self.temp_dir.iterdir():
            if temp_file.is_file() and temp_file.stat().st_mtime < cutoff:
                if self.remove_file(temp_file):
                    removed += 1

        if removed:
            logger.info(f"Cleaned up {removed} stale temporary files")
        return removed

    def get_storage_info(self) -> Dict[str, Any]:
        """Get usage figures for the storage directories."""
        def _usage(directory: Path) -> Dict[str, Any]:
            files = [p for p in directory.iterdir() if p.is_file()]
            size = sum(p.stat().st_size for p in files)
            return {"files": len(files), "size_mb": round(size / (1024 * 1024), 2)}

        disk = shutil.disk_usage(self.base_storage_path)
        return {
            "clips": _usage(self.base_storage_path),
            "temp": _usage(self.temp_dir),
            "disk_free_gb": round(disk.free / (1024 ** 3), 2)
        }


def get_file_manager() -> FileManager:
    """Build a FileManager for the configured directories."""
    import config
    return FileManager(base_storage_path=str(config.STORAGE_DIR), temp_dir=str(config.TEMP_DIR))
