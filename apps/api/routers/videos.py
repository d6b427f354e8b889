"""
Video router: draft records, video file upload and signed playback URLs.
"""

import logging
from datetime import timedelta
from functools import lru_cache
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from config import UploadPipelineConfig, settings
from database import get_db
from media.probe import FFprobeProber, Prober
from media.remux import FFmpegFastStartRemuxer, Remuxer
from models.video import Video
from routers.auth_scope import AuthContext, get_auth_context
from routers.rate_limit import rate_limit
from services.errors import UploadPipelineError
from services.object_store import ObjectStore, S3ObjectStore
from services.video_store import VideoRepository, parse_video_id
from services.video_upload import VideoUploadPipeline, signed_playback_url

router = APIRouter()
logger = logging.getLogger(__name__)


class CreateVideoRequest(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: Optional[str] = Field(default=None, max_length=5000)


class VideoResponse(BaseModel):
    id: str
    user_id: str
    title: str
    description: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UploadVideoResponse(VideoResponse):
    aspect_ratio: str
    file_size_bytes: int


def get_pipeline_config() -> UploadPipelineConfig:
    return UploadPipelineConfig.from_settings(settings)


@lru_cache(maxsize=1)
def _default_object_store() -> S3ObjectStore:
    return S3ObjectStore(UploadPipelineConfig.from_settings(settings))


def get_object_store() -> ObjectStore:
    return _default_object_store()


def get_prober(config: UploadPipelineConfig = Depends(get_pipeline_config)) -> Prober:
    return FFprobeProber(config.ffprobe_binary, config.media_tool_timeout_seconds)


def get_remuxer(config: UploadPipelineConfig = Depends(get_pipeline_config)) -> Remuxer:
    return FFmpegFastStartRemuxer(config.ffmpeg_binary, config.media_tool_timeout_seconds)


SERVER_ERROR_DETAIL = "Could not process video"


def _http_error(exc: UploadPipelineError) -> HTTPException:
    detail = exc.message
    if exc.status_code >= 500:
        # Tool stderr and temp paths stay in the log, not the response.
        logger.error("Video request failed at stage %s: %s", exc.stage, exc.message)
        detail = SERVER_ERROR_DETAIL
    return HTTPException(
        status_code=exc.status_code,
        detail=detail,
        headers={"X-Upload-Stage": exc.stage},
    )


def _serialize_video(video: Video, signed_url: Optional[str]) -> dict:
    return {
        "id": video.id,
        "user_id": video.user_id,
        "title": video.title,
        "description": video.description,
        "thumbnail_url": video.thumbnail_url,
        "video_url": signed_url,
        "created_at": video.created_at.isoformat() if video.created_at else None,
        "updated_at": video.updated_at.isoformat() if video.updated_at else None,
    }


def _present(video: Video, store: ObjectStore, ttl: timedelta) -> VideoResponse:
    try:
        signed_url = signed_playback_url(video, store, ttl)
    except UploadPipelineError as exc:
        raise _http_error(exc) from exc
    return VideoResponse(**_serialize_video(video, signed_url))


@router.post("", response_model=VideoResponse, status_code=201)
async def create_video(
    request: CreateVideoRequest,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Create a draft video record owned by the caller."""
    videos = VideoRepository(db)
    await videos.ensure_user(auth.user_id, auth.email)
    video = await videos.create_video(auth.user_id, request.title.strip(), request.description)
    return VideoResponse(**_serialize_video(video, None))


@router.get("", response_model=List[VideoResponse])
async def list_videos(
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    config: UploadPipelineConfig = Depends(get_pipeline_config),
    store: ObjectStore = Depends(get_object_store),
):
    """List the caller's videos with freshly signed playback URLs."""
    rows = await VideoRepository(db).list_videos(auth.user_id)
    return [_present(video, store, config.presign_ttl) for video in rows]


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(
    video_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    config: UploadPipelineConfig = Depends(get_pipeline_config),
    store: ObjectStore = Depends(get_object_store),
):
    """Get one video; the stored reference is re-signed on every read."""
    try:
        video = await VideoRepository(db).get_owned_video(parse_video_id(video_id), auth.user_id)
    except UploadPipelineError as exc:
        raise _http_error(exc) from exc
    return _present(video, store, config.presign_ttl)


@router.delete("/{video_id}", status_code=204)
async def delete_video(
    video_id: str,
    auth: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    """Delete a video record owned by the caller."""
    videos = VideoRepository(db)
    try:
        video = await videos.get_owned_video(parse_video_id(video_id), auth.user_id)
    except UploadPipelineError as exc:
        raise _http_error(exc) from exc
    await videos.delete_video(video)
    return Response(status_code=204)


@router.post("/{video_id}/upload", response_model=UploadVideoResponse)
async def upload_video(
    video_id: str,
    video: UploadFile = File(...),
    auth: AuthContext = Depends(get_auth_context),
    _rate_limit: None = Depends(rate_limit("video_upload", limit=30, window_seconds=3600)),
    db: AsyncSession = Depends(get_db),
    config: UploadPipelineConfig = Depends(get_pipeline_config),
    store: ObjectStore = Depends(get_object_store),
    prober: Prober = Depends(get_prober),
    remuxer: Remuxer = Depends(get_remuxer),
):
    """Process an mp4 for fast-start playback and store it under an aspect-ratio prefix."""
    pipeline = VideoUploadPipeline(config, prober, remuxer, store, VideoRepository(db))
    try:
        result = await pipeline.run(video_id, auth.user_id, video.content_type, video)
    except UploadPipelineError as exc:
        raise _http_error(exc) from exc
    finally:
        await video.close()

    return UploadVideoResponse(
        **_serialize_video(result.video, result.signed_url),
        aspect_ratio=result.aspect.value,
        file_size_bytes=result.size_bytes,
    )
