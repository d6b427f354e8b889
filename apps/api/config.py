"""
Application configuration using Pydantic Settings.
"""

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import List, Optional
import tempfile

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./reelstore.db"
    
    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8091
    
    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    
    # Object storage
    S3_BUCKET: str = ""
    S3_REGION: str = "us-east-1"
    S3_ENDPOINT_URL: Optional[str] = None
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    VIDEO_URL_TTL_SECONDS: int = 3600
    
    # Upload processing
    MAX_VIDEO_UPLOAD_BYTES: int = 1 << 30  # 1 GiB
    UPLOAD_TMP_DIR: str = tempfile.gettempdir()
    FFPROBE_BINARY: str = "ffprobe"
    FFMPEG_BINARY: str = "ffmpeg"
    MEDIA_TOOL_TIMEOUT_SECONDS: int = 600
    
    # Security
    JWT_SECRET: str = "change_me_in_production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_HOURS: int = 24
    AUTO_CREATE_DB_SCHEMA: bool = True
    
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()


@dataclass(frozen=True)
class UploadPipelineConfig:
    """Immutable view of the settings the upload pipeline and object store need."""

    bucket: str
    region: str
    endpoint_url: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    presign_ttl: timedelta = timedelta(hours=1)
    max_upload_bytes: int = 1 << 30
    upload_tmp_dir: Path = Path(tempfile.gettempdir())
    ffprobe_binary: str = "ffprobe"
    ffmpeg_binary: str = "ffmpeg"
    media_tool_timeout_seconds: Optional[float] = None

    @classmethod
    def from_settings(cls, source: Settings) -> "UploadPipelineConfig":
        timeout = float(source.MEDIA_TOOL_TIMEOUT_SECONDS)
        return cls(
            bucket=source.S3_BUCKET,
            region=source.S3_REGION,
            endpoint_url=source.S3_ENDPOINT_URL or None,
            access_key_id=source.AWS_ACCESS_KEY_ID or None,
            secret_access_key=source.AWS_SECRET_ACCESS_KEY or None,
            presign_ttl=timedelta(seconds=max(int(source.VIDEO_URL_TTL_SECONDS), 1)),
            max_upload_bytes=max(int(source.MAX_VIDEO_UPLOAD_BYTES), 1),
            upload_tmp_dir=Path(source.UPLOAD_TMP_DIR),
            ffprobe_binary=source.FFPROBE_BINARY,
            ffmpeg_binary=source.FFMPEG_BINARY,
            media_tool_timeout_seconds=timeout if timeout > 0 else None,
        )


def require_s3_bucket() -> str:
    """Return configured bucket name or raise a configuration error."""
    bucket = (settings.S3_BUCKET or "").strip()
    if not bucket:
        raise ValueError("S3_BUCKET is not configured")
    return bucket


def validate_security_settings() -> None:
    """Fail fast when insecure default secrets are still configured."""
    insecure_values = {
        "",
        "change_me_in_production",
        "your_jwt_secret_change_in_production",
    }
    jwt_secret = (settings.JWT_SECRET or "").strip()

    if jwt_secret in insecure_values or len(jwt_secret) < 24:
        raise ValueError("JWT_SECRET is insecure. Configure a strong non-default secret (>=24 chars).")
