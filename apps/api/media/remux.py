"""
Fast-start remuxing: stream copy with the moov atom moved to the front.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Optional, Protocol, Union

import ffmpeg

from services.errors import RemuxError

logger = logging.getLogger(__name__)

PROCESSING_SUFFIX = ".processing"


class Remuxer(Protocol):
    def remux(self, path: Union[str, Path]) -> Path:
        ...


def processing_path_for(path: Union[str, Path]) -> Path:
    """Derived output path for a remux of ``path``."""
    source = Path(path)
    return source.with_name(source.name + PROCESSING_SUFFIX)


def _stderr_tail(stderr: Optional[bytes], limit: int = 2000) -> str:
    if not stderr:
        return ""
    return stderr.decode(errors="replace").strip()[-limit:]


class FFmpegFastStartRemuxer:
    """Copies streams into a new mp4 with ``-movflags faststart``; the source is left untouched."""

    def __init__(self, binary: str = "ffmpeg", timeout_seconds: Optional[float] = None):
        self.binary = binary
        self.timeout_seconds = timeout_seconds

    def remux(self, path: Union[str, Path]) -> Path:
        output_path = processing_path_for(path)

        # ffmpeg -i in.mp4 -c copy -movflags faststart -f mp4 in.mp4.processing
        stream = (
            ffmpeg
            .input(str(path))
            .output(str(output_path), c="copy", movflags="faststart", f="mp4")
            .overwrite_output()
        )
        try:
            process = stream.run_async(cmd=self.binary, pipe_stdout=True, pipe_stderr=True)
        except OSError as e:
            raise RemuxError(f"Could not run {self.binary}: {e}") from e

        try:
            _, stderr = process.communicate(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            logger.error("ffmpeg remux timed out after %ss for %s", self.timeout_seconds, path)
            raise RemuxError("ffmpeg remux timed out", timeout=True) from e

        if process.returncode != 0:
            detail = _stderr_tail(stderr)
            logger.error("ffmpeg remux failed for %s (exit %s): %s", path, process.returncode, detail)
            raise RemuxError(f"ffmpeg exited with status {process.returncode}: {detail}")

        return output_path
