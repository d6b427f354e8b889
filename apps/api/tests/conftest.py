import io
import shutil
from datetime import timedelta
from pathlib import Path
from types import SimpleNamespace
from typing import BinaryIO, Dict, List, Optional, Tuple

import pytest

from main import app
from media.probe import StreamGeometry
from media.remux import processing_path_for
from routers import rate_limit


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit._local_counters.clear()
    yield
    rate_limit._local_counters.clear()
    app.state.disable_rate_limits = previous


class ByteStream:
    """Async byte source shaped like Starlette's UploadFile."""

    def __init__(self, data: bytes, fail_after: Optional[int] = None):
        self._buffer = io.BytesIO(data)
        self.fail_after = fail_after
        self.reads = 0

    async def read(self, size: int = -1) -> bytes:
        if self.fail_after is not None and self.reads >= self.fail_after:
            raise OSError("connection reset while reading upload")
        self.reads += 1
        return self._buffer.read(size)


class FakeProber:
    def __init__(self, geometry: StreamGeometry = StreamGeometry(1920, 1080), error: Optional[Exception] = None):
        self.geometry = geometry
        self.error = error
        self.calls: List[Path] = []

    def probe(self, path) -> StreamGeometry:
        self.calls.append(Path(path))
        if self.error is not None:
            raise self.error
        return self.geometry


class FakeRemuxer:
    """Copies the source to ``<src>.processing``; optionally fails after a partial write."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[Path] = []

    def remux(self, path) -> Path:
        source = Path(path)
        self.calls.append(source)
        output = processing_path_for(source)
        if self.error is not None:
            output.write_bytes(b"partial")
            raise self.error
        shutil.copyfile(source, output)
        return output


class FakeObjectStore:
    def __init__(self, put_error: Optional[Exception] = None, sign_error: Optional[Exception] = None):
        self.put_error = put_error
        self.sign_error = sign_error
        self.objects: Dict[Tuple[str, str], Tuple[str, bytes]] = {}

    def put(self, bucket: str, key: str, content_type: str, body: BinaryIO) -> None:
        if self.put_error is not None:
            raise self.put_error
        self.objects[(bucket, key)] = (content_type, body.read())

    def signed_get(self, bucket: str, key: str, ttl: timedelta) -> str:
        if self.sign_error is not None:
            raise self.sign_error
        return f"https://{bucket}.s3.amazonaws.com/{key}?X-Amz-Expires={int(ttl.total_seconds())}"


@pytest.fixture
def fakes():
    """Test doubles for the pipeline collaborators."""
    return SimpleNamespace(
        ByteStream=ByteStream,
        Prober=FakeProber,
        Remuxer=FakeRemuxer,
        ObjectStore=FakeObjectStore,
    )
