"""
Upload orchestration: stage -> probe -> remux -> upload -> record -> sign.

Each request owns its temporary files; they are removed on every exit path.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import tempfile
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Type

from config import UploadPipelineConfig
from media.probe import AspectClass, Prober
from media.remux import Remuxer, processing_path_for
from models.video import Video
from services.errors import (
    AuthError,
    PersistError,
    ProbeError,
    RemuxError,
    StagingError,
    StoreError,
    UploadPipelineError,
    UploadTooLargeError,
    ValidationError,
)
from services.object_store import ObjectStore, format_storage_reference, parse_storage_reference
from services.storage_keys import derive_storage_key, extension_for_content_type
from services.video_store import VideoRepository, parse_video_id

logger = logging.getLogger(__name__)

ACCEPTED_VIDEO_MIME_TYPE = "video/mp4"
STAGING_CHUNK_BYTES = 1024 * 1024
STAGING_PREFIX = "video-upload-"


class UploadStage(str, enum.Enum):
    RECEIVED = "received"
    STAGED = "staged"
    PROBED = "probed"
    REMUXED = "remuxed"
    UPLOADED = "uploaded"
    RECORDED = "recorded"
    DONE = "done"


class ByteSource(Protocol):
    async def read(self, size: int = -1) -> bytes:
        ...


@dataclass(frozen=True)
class UploadResult:
    video: Video
    bucket: str
    key: str
    aspect: AspectClass
    size_bytes: int
    signed_url: str


def media_type_essence(content_type: Optional[str]) -> str:
    """``video/MP4; codecs=avc1`` -> ``video/mp4``."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def signed_playback_url(video: Video, store: ObjectStore, ttl: timedelta) -> Optional[str]:
    """Presign the stored ``bucket,key`` reference of a video, if it has one."""
    reference = parse_storage_reference(video.video_url)
    if reference is None:
        return None
    bucket, key = reference
    return store.signed_get(bucket, key, ttl)


class VideoUploadPipeline:
    """Sequences one video upload. Not shared between requests."""

    def __init__(
        self,
        config: UploadPipelineConfig,
        prober: Prober,
        remuxer: Remuxer,
        store: ObjectStore,
        videos: VideoRepository,
    ):
        self.config = config
        self.prober = prober
        self.remuxer = remuxer
        self.store = store
        self.videos = videos

    async def authorize(self, video_id: str, user_id: Optional[str]) -> Video:
        if not user_id:
            raise AuthError("Missing authenticated user")
        video = await self.videos.get_video(parse_video_id(video_id))
        if video.user_id != user_id:
            raise AuthError("Not video owner")
        return video

    async def run(
        self,
        video_id: str,
        user_id: Optional[str],
        content_type: Optional[str],
        stream: ByteSource,
    ) -> UploadResult:
        video = await self.authorize(video_id, user_id)

        media_type = media_type_essence(content_type)
        if media_type != ACCEPTED_VIDEO_MIME_TYPE:
            raise ValidationError(f"Unsupported content type {content_type!r}; expected {ACCEPTED_VIDEO_MIME_TYPE}")

        logger.info("Uploading video %s for user %s", video.id, user_id)
        staged_path: Optional[Path] = None
        processed_path: Optional[Path] = None
        try:
            staged_path = self._create_staging_file()
            size_bytes = await self._copy_to_staging(stream, staged_path)
            logger.info("Video %s staged (%s bytes) at %s", video.id, size_bytes, staged_path)

            geometry = await self._call(UploadStage.PROBED, ProbeError, self.prober.probe, staged_path)
            aspect = geometry.aspect_class
            logger.info("Video %s probed: %sx%s (%s)", video.id, geometry.width, geometry.height, aspect.value)

            processed_path = await self._call(UploadStage.REMUXED, RemuxError, self.remuxer.remux, staged_path)
            key = derive_storage_key(aspect, extension_for_content_type(media_type))
            bucket = self.config.bucket

            await self._call(UploadStage.UPLOADED, StoreError, self._put_file, bucket, key, media_type, processed_path)
            logger.info("Video %s uploaded to s3://%s/%s", video.id, bucket, key)

            video.video_url = format_storage_reference(bucket, key)
            try:
                video = await self.videos.update_video(video)
            except PersistError:
                logger.warning(
                    "Video %s record update failed; object s3://%s/%s is orphaned", video.id, bucket, key
                )
                raise

            signed_url = self.store.signed_get(bucket, key, self.config.presign_ttl)
            return UploadResult(
                video=video,
                bucket=bucket,
                key=key,
                aspect=aspect,
                size_bytes=size_bytes,
                signed_url=signed_url,
            )
        finally:
            if staged_path is not None:
                self._cleanup(staged_path, processed_path)

    def _create_staging_file(self) -> Path:
        tmp_dir = Path(self.config.upload_tmp_dir)
        try:
            tmp_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(prefix=STAGING_PREFIX, suffix=".mp4", dir=str(tmp_dir))
            os.close(fd)
        except OSError as exc:
            raise StagingError(f"Could not create temp video file: {exc}") from exc
        return Path(name)

    async def _copy_to_staging(self, stream: ByteSource, path: Path) -> int:
        limit = self.config.max_upload_bytes
        total = 0
        try:
            with path.open("wb") as out:
                while True:
                    chunk = await stream.read(STAGING_CHUNK_BYTES)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > limit:
                        raise UploadTooLargeError(
                            f"File too large. Max upload size is {limit // (1024 * 1024)}MB."
                        )
                    out.write(chunk)
        except OSError as exc:
            raise StagingError(f"Could not write temp video file: {exc}") from exc
        return total

    def _put_file(self, bucket: str, key: str, content_type: str, path: Path) -> None:
        with path.open("rb") as body:
            self.store.put(bucket, key, content_type, body)

    async def _call(
        self,
        stage: UploadStage,
        error_cls: Type[UploadPipelineError],
        fn: Callable[..., Any],
        *args: Any,
    ) -> Any:
        """Run a blocking step in a worker thread, tagging failures with ``stage``."""
        try:
            return await asyncio.to_thread(fn, *args)
        except UploadPipelineError as exc:
            exc.stage = stage.value
            raise
        except Exception as exc:
            raise error_cls(f"{stage.value} step failed: {exc}", stage=stage.value) from exc

    @staticmethod
    def _cleanup(staged_path: Path, processed_path: Optional[Path] = None) -> None:
        paths = {staged_path, processing_path_for(staged_path)}
        if processed_path is not None:
            paths.add(Path(processed_path))
        for path in sorted(paths):
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not cleanup temp video file %s: %s", path, exc)
