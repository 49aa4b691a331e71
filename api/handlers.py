"""
REST API handlers for the Clip Library Analyzer service.

This module contains the FastAPI route handlers for clip upload and
analysis, library browsing and management, and health checks.
"""

import logging
from pathlib import Path
from typing import Optional, Dict, Any, List
from datetime import datetime

from fastapi import HTTPException, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

import config
from models.video_record import VideoRecord
from models.validation import ValidationError, validate_filename, validate_file_size, get_supported_formats, get_max_file_size_mb
from processing.aggregator import AggregationPolicy
from processing.frame_classifier import FrameClassifierClient
from processing.frame_sampler import FrameSamplerConfig
from processing.video_analyzer import VideoAnalyzer, VideoAnalyzerConfig
from storage import file_manager as file_storage
from storage import video_library as library_storage
from storage.file_manager import FileManager
from storage.video_library import VideoLibrary, VideoLibraryError, LibraryFilter
from .error_handlers import ErrorHandler

logger = logging.getLogger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024


# Response models
class VideoResponse(BaseModel):
    """Response model for a clip in the library."""
    video_id: str
    title: str
    duration: str
    orientation: str
    has_human: bool
    has_subtitles: bool
    width: int
    height: int
    thumbnail: str
    upload_date: str
    created_at: datetime
    is_favorite: bool
    is_deleted: bool

    @classmethod
    def from_record(cls, record: VideoRecord) -> 'VideoResponse':
        return cls(
            video_id=record.video_id,
            title=record.title,
            duration=record.duration,
            orientation=record.orientation,
            has_human=record.has_human,
            has_subtitles=record.has_subtitles,
            width=record.width,
            height=record.height,
            thumbnail=record.thumbnail,
            upload_date=record.upload_date,
            created_at=record.created_at,
            is_favorite=record.is_favorite,
            is_deleted=record.is_deleted
        )


class AnalyzeResponse(BaseModel):
    """Response model for an uploaded and analysed clip."""
    video: VideoResponse
    analysis: Dict[str, Any]
    message: str


class VideoListResponse(BaseModel):
    """Response model for library listings."""
    videos: List[VideoResponse]
    total: int


class BatchUploadItem(BaseModel):
    """Outcome of one file in a batch upload."""
    filename: str
    status: str  # analysed, skipped or failed
    video: Optional[VideoResponse] = None
    error: Optional[Dict[str, Any]] = None


class BatchUploadResponse(BaseModel):
    """Response model for batch uploads."""
    results: List[BatchUploadItem]
    analysed: int
    skipped: int
    failed: int


class BatchDeleteRequest(BaseModel):
    """Request model for batch trash and delete."""
    video_ids: List[str]


class BatchDeleteItem(BaseModel):
    video_id: str
    status: str  # trashed, deleted or not_found


class BatchDeleteResponse(BaseModel):
    """Response model for batch trash and delete."""
    results: List[BatchDeleteItem]
    trashed: int
    deleted: int
    not_found: int


class VideoUpdateRequest(BaseModel):
    """Request model for favorite and trash changes."""
    is_favorite: Optional[bool] = None
    is_deleted: Optional[bool] = None


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    timestamp: datetime
    version: str
    redis_connected: bool
    analysis_proxy_configured: bool
    supported_formats: list
    max_file_size_mb: float


# Dependency injection
def get_video_library() -> VideoLibrary:
    """Get VideoLibrary instance."""
    try:
        return library_storage.get_video_library()
    except VideoLibraryError as e:
        raise ErrorHandler().to_http_exception(e)


def get_file_manager() -> FileManager:
    """Get FileManager instance."""
    return file_storage.get_file_manager()


def build_analyzer_config() -> VideoAnalyzerConfig:
    """Pipeline configuration from the active settings."""
    return VideoAnalyzerConfig(
        sampler_config=FrameSamplerConfig(
            sample_count=config.SAMPLE_FRAMES,
            jpeg_quality=config.FRAME_JPEG_QUALITY,
            thumbnail_max_edge=config.THUMBNAIL_MAX_EDGE,
            thumbnail_quality=config.THUMBNAIL_JPEG_QUALITY
        ),
        max_image_size=config.MAX_IMAGE_SIZE,
        jpeg_quality=config.FRAME_JPEG_QUALITY,
        max_concurrent_requests=config.MAX_CONCURRENT_FRAME_REQUESTS,
        policy=AggregationPolicy(
            face_confidence_min=config.FACE_CONFIDENCE_MIN,
            face_min_frames=config.FACE_MIN_FRAMES,
            subtitle_confidence_min=config.SUBTITLE_CONFIDENCE_MIN,
            subtitle_min_frames=config.SUBTITLE_MIN_FRAMES
        )
    )


async def get_video_analyzer():
    """Get a VideoAnalyzer whose HTTP session lives for one request."""
    classifier = FrameClassifierClient(
        endpoint_url=config.ANALYZE_FRAME_URL,
        timeout_seconds=config.FRAME_REQUEST_TIMEOUT,
        max_retries=config.FRAME_REQUEST_RETRIES
    )
    analyzer = VideoAnalyzer(build_analyzer_config(), classifier)
    try:
        yield analyzer
    finally:
        await analyzer.close()


class VideoAnalysisHandler:
    """Handler for clip uploads and analysis."""

    def __init__(self, video_library: VideoLibrary, file_manager: FileManager,
                 analyzer: VideoAnalyzer):
        self.video_library = video_library
        self.file_manager = file_manager
        self.analyzer = analyzer
        self.error_handler = ErrorHandler(file_manager)

    async def upload_video(self, file: UploadFile) -> AnalyzeResponse:
        """
        Validate, analyse and store an uploaded clip.

        Args:
            file: Uploaded video file

        Returns:
            AnalyzeResponse with the stored record and the analysis result

        Raises:
            HTTPException: For validation, analysis and storage errors
        """
        temp_files: List[Path] = []
        try:
            if not file.filename:
                raise ValidationError("No filename provided")
            validate_filename(file.filename)

            existing = self.video_library.find_by_title(file.filename)
            if existing:
                raise HTTPException(
                    status_code=409,
                    detail={
                        "error": "duplicate_clip",
                        "message": f"A clip named {file.filename} is already in the library",
                        "video_id": existing.video_id
                    }
                )

            temp_file = self.file_manager.create_temp_file(Path(file.filename).suffix.lower())
            temp_files.append(temp_file)

            with open(temp_file, "wb") as buffer:
                while True:
                    chunk = await file.read(UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    buffer.write(chunk)

            validate_file_size(str(temp_file), max_size=config.MAX_FILE_SIZE)
            detected_format = self.file_manager.validate_video_file(temp_file)
            logger.info(f"Analyzing upload {file.filename} ({detected_format})")

            result = await self.analyzer.analyze(temp_file)

            stored_path = self.file_manager.store_uploaded_file(temp_file, file.filename)
            record = VideoRecord.create_from_analysis(file.filename, result, str(stored_path))
            try:
                self.video_library.save_video(record)
            except VideoLibraryError:
                self.file_manager.remove_file(stored_path)
                raise

            logger.info(f"Clip {record.video_id} added to library from {file.filename}")
            return AnalyzeResponse(
                video=VideoResponse.from_record(record),
                analysis=result.to_dict(),
                message="Video analysed and added to the library"
            )

        except Exception as e:
            raise self.error_handler.handle_analysis_error(e, temp_files)

        finally:
            for temp_file in temp_files:
                self.file_manager.remove_file(temp_file)

    async def upload_batch(self, files: List[UploadFile]) -> BatchUploadResponse:
        """
        Upload several clips one after another.

        A clip whose name is already in the library is skipped, and a clip
        that fails validation or analysis is reported without stopping the
        rest of the batch.

        Args:
            files: Uploaded video files, in submission order

        Returns:
            BatchUploadResponse with one result per file
        """
        results: List[BatchUploadItem] = []

        for file in files:
            filename = file.filename or ""
            try:
                response = await self.upload_video(file)
            except HTTPException as e:
                detail = e.detail if isinstance(e.detail, dict) else {
                    "error": "http_error", "message": str(e.detail)
                }
                status = "skipped" if e.status_code == 409 else "failed"
                logger.warning(f"Batch upload {status} {filename}: {detail.get('message', detail)}")
                results.append(BatchUploadItem(filename=filename, status=status, error=detail))
                continue

            results.append(BatchUploadItem(filename=filename, status="analysed", video=response.video))

        counts = {status: sum(1 for r in results if r.status == status)
                  for status in ("analysed", "skipped", "failed")}
        logger.info(
            f"Batch upload of {len(files)} files: {counts['analysed']} analysed, "
            f"{counts['skipped']} skipped, {counts['failed']} failed"
        )
        return BatchUploadResponse(results=results, **counts)


class VideoLibraryHandler:
    """Handler for browsing and managing the clip library."""

    def __init__(self, video_library: VideoLibrary, file_manager: Optional[FileManager] = None):
        self.video_library = video_library
        self.file_manager = file_manager
        self.error_handler = ErrorHandler(file_manager)

    def list_videos(self, folder: str = "all", search: str = "", orientation: str = "all",
                    content: str = "all", subtitle: str = "all") -> VideoListResponse:
        """List clips matching the folder, search and tag filters."""
        try:
            filters = LibraryFilter(
                folder=folder, search=search, orientation=orientation,
                content=content, subtitle=subtitle
            )
        except ValueError as e:
            raise HTTPException(
                status_code=400,
                detail={"error": "validation_error", "message": str(e)}
            )

        try:
            records = self.video_library.list_videos(filters)
        except VideoLibraryError as e:
            raise self.error_handler.to_http_exception(e)

        return VideoListResponse(
            videos=[VideoResponse.from_record(r) for r in records],
            total=len(records)
        )

    def get_video(self, video_id: str) -> VideoResponse:
        """Get one clip by ID."""
        return VideoResponse.from_record(self._require_video(video_id))

    def download_video(self, video_id: str) -> FileResponse:
        """Return the stored clip file."""
        record = self._require_video(video_id)

        if not record.storage_path or not Path(record.storage_path).exists():
            logger.error(f"Stored file missing for clip {video_id}: {record.storage_path}")
            raise HTTPException(
                status_code=404,
                detail={
                    "error": "file_not_found",
                    "message": "The clip file is no longer available."
                }
            )

        return FileResponse(
            path=record.storage_path,
            filename=record.title,
            media_type="application/octet-stream",
            headers={"X-Video-ID": video_id}
        )

    def update_video(self, video_id: str, update: VideoUpdateRequest) -> VideoResponse:
        """Change the favorite and trash flags of a clip."""
        try:
            record = self.video_library.update_video(
                video_id, is_favorite=update.is_favorite, is_deleted=update.is_deleted
            )
        except VideoLibraryError as e:
            raise self.error_handler.to_http_exception(e)

        if record is None:
            raise self._not_found(video_id)
        return VideoResponse.from_record(record)

    def delete_video(self, video_id: str) -> Dict[str, Any]:
        """Remove a trashed clip and its stored file permanently."""
        record = self._require_video(video_id)

        if not record.is_deleted:
            raise HTTPException(
                status_code=409,
                detail={
                    "error": "clip_not_in_trash",
                    "message": "Move the clip to the trash before deleting it permanently",
                    "video_id": video_id
                }
            )

        try:
            self._purge(video_id)
        except VideoLibraryError as e:
            raise self.error_handler.to_http_exception(e)

        return {"status": "deleted", "video_id": video_id}

    def batch_delete(self, request: BatchDeleteRequest) -> BatchDeleteResponse:
        """
        Move clips to the trash, or delete them when they are already there.

        Args:
            request: IDs of the selected clips

        Returns:
            BatchDeleteResponse with one result per distinct ID
        """
        results: List[BatchDeleteItem] = []

        try:
            for video_id in dict.fromkeys(request.video_ids):
                record = self.video_library.get_video(video_id)
                if record is None:
                    status = "not_found"
                elif record.is_deleted:
                    self._purge(video_id)
                    status = "deleted"
                else:
                    self.video_library.update_video(video_id, is_deleted=True)
                    status = "trashed"
                results.append(BatchDeleteItem(video_id=video_id, status=status))
        except VideoLibraryError as e:
            raise self.error_handler.to_http_exception(e)

        counts = {status: sum(1 for r in results if r.status == status)
                  for status in ("trashed", "deleted", "not_found")}
        logger.info(
            f"Batch delete: {counts['trashed']} trashed, {counts['deleted']} deleted, "
            f"{counts['not_found']} not found"
        )
        return BatchDeleteResponse(results=results, **counts)

    def _purge(self, video_id: str) -> None:
        record = self.video_library.delete_video(video_id)
        if record and record.storage_path and self.file_manager is not None:
            self.file_manager.remove_file(Path(record.storage_path))

    def get_stats(self) -> Dict[str, Any]:
        """Get clip counts per folder and tag."""
        try:
            return self.video_library.get_library_stats()
        except VideoLibraryError as e:
            raise self.error_handler.to_http_exception(e)

    def _require_video(self, video_id: str) -> VideoRecord:
        try:
            record = self.video_library.get_video(video_id)
        except VideoLibraryError as e:
            raise self.error_handler.to_http_exception(e)

        if record is None:
            raise self._not_found(video_id)
        return record

    @staticmethod
    def _not_found(video_id: str) -> HTTPException:
        return HTTPException(
            status_code=404,
            detail={
                "error": "video_not_found",
                "message": f"Video with ID {video_id} not found"
            }
        )


class HealthCheckHandler:
    """Handler for health check and service information."""

    def __init__(self, video_library: VideoLibrary):
        self.video_library = video_library

    async def health_check(self) -> HealthResponse:
        """
        Perform health check and return service information.

        Returns:
            HealthResponse with service health information
        """
        redis_healthy = self.video_library.health_check()
        proxy_configured = bool(config.QWEN_API_KEY)

        status = "healthy" if redis_healthy and proxy_configured else "degraded"

        return HealthResponse(
            status=status,
            timestamp=datetime.now(),
            version="1.0.0",
            redis_connected=redis_healthy,
            analysis_proxy_configured=proxy_configured,
            supported_formats=get_supported_formats(),
            max_file_size_mb=get_max_file_size_mb(config.MAX_FILE_SIZE)
        )
