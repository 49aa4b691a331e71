"""
FastAPI routes for the Clip Library Analyzer API.

This module defines the REST API endpoints and integrates them
with the handler classes.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Request, UploadFile, File
from fastapi.responses import FileResponse, JSONResponse

from .frame_proxy import DashScopeProxy, get_frame_proxy
from .handlers import (
    VideoAnalysisHandler,
    VideoLibraryHandler,
    HealthCheckHandler,
    AnalyzeResponse,
    BatchUploadResponse,
    BatchDeleteRequest,
    BatchDeleteResponse,
    VideoResponse,
    VideoListResponse,
    VideoUpdateRequest,
    HealthResponse,
    get_video_library,
    get_file_manager,
    get_video_analyzer
)
from processing.video_analyzer import VideoAnalyzer
from storage.video_library import VideoLibrary
from storage.file_manager import FileManager

logger = logging.getLogger(__name__)

# Frame analysis proxy used by the classifier
proxy_router = APIRouter(prefix="/api", tags=["analysis-proxy"])

# Clip library API
api_router = APIRouter(prefix="/api/v1", tags=["clip-library"])


@proxy_router.post(
    "/analyze-frame",
    summary="Analyze one video frame",
    description="Forward a base64 frame to the hosted multimodal model and return its raw reply."
)
async def analyze_frame(
    request: Request,
    proxy: DashScopeProxy = Depends(get_frame_proxy)
) -> JSONResponse:
    """Proxy a single frame to the analysis model."""
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    status_code, body = await proxy.handle(payload)
    return JSONResponse(status_code=status_code, content=body)


@api_router.post(
    "/videos",
    response_model=AnalyzeResponse,
    status_code=201,
    summary="Upload and analyse a clip",
    description="Upload a video, classify it for people and subtitles, and add it to the library. "
                "Supported formats: MP4, M4V, MOV, WEBM, AVI."
)
async def upload_video(
    file: UploadFile = File(..., description="Video file to analyse"),
    video_library: VideoLibrary = Depends(get_video_library),
    file_manager: FileManager = Depends(get_file_manager),
    analyzer: VideoAnalyzer = Depends(get_video_analyzer)
) -> AnalyzeResponse:
    """Upload a clip, analyse it and store the result."""
    handler = VideoAnalysisHandler(video_library, file_manager, analyzer)
    return await handler.upload_video(file)


@api_router.post(
    "/videos/batch",
    response_model=BatchUploadResponse,
    summary="Upload and analyse several clips",
    description="Analyse each file in turn. Files named like an existing clip are skipped "
                "and a failed file does not stop the batch."
)
async def upload_videos(
    files: List[UploadFile] = File(..., description="Video files to analyse"),
    video_library: VideoLibrary = Depends(get_video_library),
    file_manager: FileManager = Depends(get_file_manager),
    analyzer: VideoAnalyzer = Depends(get_video_analyzer)
) -> BatchUploadResponse:
    """Upload a batch of clips."""
    handler = VideoAnalysisHandler(video_library, file_manager, analyzer)
    return await handler.upload_batch(files)


@api_router.post(
    "/videos/batch-delete",
    response_model=BatchDeleteResponse,
    summary="Trash or delete several clips",
    description="Move the selected clips to the trash. Clips already in the trash are deleted permanently."
)
async def batch_delete_videos(
    request: BatchDeleteRequest,
    video_library: VideoLibrary = Depends(get_video_library),
    file_manager: FileManager = Depends(get_file_manager)
) -> BatchDeleteResponse:
    """Trash or delete a selection of clips."""
    handler = VideoLibraryHandler(video_library, file_manager)
    return handler.batch_delete(request)


@api_router.get(
    "/videos",
    response_model=VideoListResponse,
    summary="List clips",
    description="List library clips, newest first, filtered by folder, title search and tags."
)
async def list_videos(
    folder: str = "all",
    search: str = "",
    orientation: str = "all",
    content: str = "all",
    subtitle: str = "all",
    video_library: VideoLibrary = Depends(get_video_library)
) -> VideoListResponse:
    """List clips in the library."""
    handler = VideoLibraryHandler(video_library)
    return handler.list_videos(folder, search, orientation, content, subtitle)


@api_router.get(
    "/videos/stats",
    summary="Get library statistics",
    description="Count clips per folder and tag."
)
async def get_library_stats(
    video_library: VideoLibrary = Depends(get_video_library)
) -> Dict[str, Any]:
    """Get library statistics."""
    handler = VideoLibraryHandler(video_library)
    return {
        "status": "success",
        "data": handler.get_stats()
    }


@api_router.get(
    "/videos/{video_id}",
    response_model=VideoResponse,
    summary="Get a clip"
)
async def get_video(
    video_id: str,
    video_library: VideoLibrary = Depends(get_video_library)
) -> VideoResponse:
    """Get one clip by ID."""
    handler = VideoLibraryHandler(video_library)
    return handler.get_video(video_id)


@api_router.get(
    "/videos/{video_id}/file",
    response_class=FileResponse,
    summary="Download a clip",
    description="Download the stored video file of a clip."
)
async def download_video(
    video_id: str,
    video_library: VideoLibrary = Depends(get_video_library),
    file_manager: FileManager = Depends(get_file_manager)
) -> FileResponse:
    """Download the stored clip file."""
    handler = VideoLibraryHandler(video_library, file_manager)
    return handler.download_video(video_id)


@api_router.patch(
    "/videos/{video_id}",
    response_model=VideoResponse,
    summary="Update a clip",
    description="Mark a clip as favorite, move it to the trash or restore it."
)
async def update_video(
    video_id: str,
    update: VideoUpdateRequest,
    video_library: VideoLibrary = Depends(get_video_library)
) -> VideoResponse:
    """Update the favorite and trash flags of a clip."""
    handler = VideoLibraryHandler(video_library)
    return handler.update_video(video_id, update)


@api_router.delete(
    "/videos/{video_id}",
    summary="Delete a clip",
    description="Permanently remove a clip in the trash and its stored file."
)
async def delete_video(
    video_id: str,
    video_library: VideoLibrary = Depends(get_video_library),
    file_manager: FileManager = Depends(get_file_manager)
) -> Dict[str, Any]:
    """Delete a clip permanently."""
    handler = VideoLibraryHandler(video_library, file_manager)
    return handler.delete_video(video_id)


@api_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check service health and get configuration information."
)
async def health_check(
    video_library: VideoLibrary = Depends(get_video_library)
) -> HealthResponse:
    """Perform health check and return service information."""
    handler = HealthCheckHandler(video_library)
    return await handler.health_check()
