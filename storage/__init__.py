# Clip file storage and library persistence

from .file_manager import FileManager, FileValidationError
from .video_library import VideoLibrary, VideoLibraryError, LibraryFilter

__all__ = ['FileManager', 'FileValidationError', 'VideoLibrary', 'VideoLibraryError', 'LibraryFilter']
