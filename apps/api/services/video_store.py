"""Video metadata persistence keyed by video id."""

from __future__ import annotations

import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.user import User
from models.video import Video
from services.errors import AuthError, PersistError, ValidationError, VideoNotFoundError

logger = logging.getLogger(__name__)


def parse_video_id(value: str) -> str:
    """Normalize a path-supplied video id, rejecting anything that is not a UUID."""
    try:
        return str(uuid.UUID(str(value or "").strip()))
    except ValueError as exc:
        raise ValidationError("Invalid video id") from exc


class VideoRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def ensure_user(self, user_id: str, email: Optional[str] = None) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user:
            return user
        user = User(id=user_id, email=email or f"{user_id}@local.invalid")
        self.db.add(user)
        await self.db.flush()
        return user

    async def create_video(self, user_id: str, title: str, description: Optional[str] = None) -> Video:
        video = Video(
            id=str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            description=description,
        )
        self.db.add(video)
        await self.db.commit()
        await self.db.refresh(video)
        return video

    async def get_video(self, video_id: str) -> Video:
        result = await self.db.execute(select(Video).where(Video.id == video_id))
        video = result.scalar_one_or_none()
        if not video:
            raise VideoNotFoundError("Video not found")
        return video

    async def get_owned_video(self, video_id: str, user_id: str) -> Video:
        video = await self.get_video(video_id)
        if video.user_id != user_id:
            raise AuthError("Not video owner")
        return video

    async def list_videos(self, user_id: str) -> List[Video]:
        result = await self.db.execute(
            select(Video).where(Video.user_id == user_id).order_by(Video.created_at.desc())
        )
        return list(result.scalars().all())

    async def update_video(self, video: Video) -> Video:
        try:
            self.db.add(video)
            await self.db.commit()
            await self.db.refresh(video)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise PersistError(f"Could not update video {video.id}: {exc}") from exc
        return video

    async def delete_video(self, video: Video) -> None:
        await self.db.delete(video)
        await self.db.commit()
