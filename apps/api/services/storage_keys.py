"""Object storage key derivation for uploaded videos."""

from __future__ import annotations

import base64
import secrets
from typing import Callable, Union

from media.probe import AspectClass

TOKEN_BYTES = 16  # 128 bits


def extension_for_content_type(content_type: str) -> str:
    """Return the MIME subtype used as file extension, e.g. ``video/mp4`` -> ``mp4``."""
    essence = (content_type or "").split(";", 1)[0].strip().lower()
    _, _, subtype = essence.partition("/")
    if not subtype:
        raise ValueError(f"Cannot derive an extension from content type {content_type!r}")
    return subtype


def encode_token(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def derive_storage_key(
    aspect: Union[AspectClass, str],
    extension: str,
    token_bytes: Callable[[int], bytes] = secrets.token_bytes,
) -> str:
    """Build ``<aspect>/<random-token>.<ext>``.

    The token is 128 bits from the OS CSPRNG, base64url-encoded without padding.
    Keys are unique by randomness alone; nothing is derived from file content.
    """
    prefix = AspectClass(aspect).value
    ext = (extension or "").strip().lstrip(".").lower()
    if not ext:
        raise ValueError("extension is required")
    token = encode_token(token_bytes(TOKEN_BYTES))
    return f"{prefix}/{token}.{ext}"
