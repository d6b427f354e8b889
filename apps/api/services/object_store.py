"""S3 object store gateway: streamed puts and presigned GET URLs."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, BinaryIO, Optional, Protocol, Tuple

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from config import UploadPipelineConfig
from services.errors import SignError, StoreError

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    def put(self, bucket: str, key: str, content_type: str, body: BinaryIO) -> None:
        ...

    def signed_get(self, bucket: str, key: str, ttl: timedelta) -> str:
        ...


def format_storage_reference(bucket: str, key: str) -> str:
    """Persisted form of an object location: ``<bucket>,<key>``."""
    return f"{bucket},{key}"


def parse_storage_reference(value: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split ``<bucket>,<key>`` on the first comma; ``None`` when malformed."""
    if not value:
        return None
    bucket, sep, key = value.partition(",")
    if not sep or not bucket or not key:
        return None
    return bucket, key


def build_s3_client(config: UploadPipelineConfig) -> Any:
    kwargs: dict = {
        "region_name": config.region,
        "config": BotoConfig(signature_version="s3v4"),
    }
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    if config.access_key_id and config.secret_access_key:
        kwargs["aws_access_key_id"] = config.access_key_id
        kwargs["aws_secret_access_key"] = config.secret_access_key
    return boto3.client("s3", **kwargs)


class S3ObjectStore:
    """Thin wrapper over a boto3 S3 client. Performs no retries of its own."""

    def __init__(self, config: UploadPipelineConfig, client: Any = None):
        self.config = config
        self.client = client if client is not None else build_s3_client(config)

    def put(self, bucket: str, key: str, content_type: str, body: BinaryIO) -> None:
        # Body is a file handle, botocore streams it in chunks.
        try:
            self.client.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            logger.error("S3 put_object failed for s3://%s/%s: %s", bucket, key, exc)
            raise StoreError(f"Could not store object {key} in bucket {bucket}: {exc}") from exc

    def signed_get(self, bucket: str, key: str, ttl: timedelta) -> str:
        try:
            return self.client.generate_presigned_url(
                ClientMethod="get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=int(ttl.total_seconds()),
                HttpMethod="GET",
            )
        except (ClientError, BotoCoreError) as exc:
            raise SignError(f"Could not presign s3://{bucket}/{key}: {exc}") from exc
