"""
Stream geometry probing and aspect-ratio classification.
"""

from __future__ import annotations

import enum
import json
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from services.errors import ProbeError

logger = logging.getLogger(__name__)

LANDSCAPE_RATIO = 16.0 / 9.0
PORTRAIT_RATIO = 9.0 / 16.0
RATIO_TOLERANCE = 0.01


class AspectClass(str, enum.Enum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"
    OTHER = "other"


@dataclass(frozen=True)
class StreamGeometry:
    width: int
    height: int

    @property
    def aspect_class(self) -> AspectClass:
        return classify_aspect_ratio(self.width, self.height)


class Prober(Protocol):
    def probe(self, path: Union[str, Path]) -> StreamGeometry:
        ...


def classify_aspect_ratio(width: int, height: int) -> AspectClass:
    """Bucket a width/height pair into landscape (16:9), portrait (9:16) or other."""
    if height <= 0:
        return AspectClass.OTHER
    ratio = float(width) / float(height)
    if abs(ratio - LANDSCAPE_RATIO) < RATIO_TOLERANCE:
        return AspectClass.LANDSCAPE
    if abs(ratio - PORTRAIT_RATIO) < RATIO_TOLERANCE:
        return AspectClass.PORTRAIT
    return AspectClass.OTHER


def _first_stream_geometry(payload: Any) -> StreamGeometry:
    streams = payload.get("streams") if isinstance(payload, dict) else None
    if not streams:
        raise ProbeError("ffprobe reported no streams")

    # Streams without dimensions (audio first) classify as "other" rather than failing.
    first: Dict[str, Any] = streams[0] or {}
    width = first.get("width")
    height = first.get("height")
    return StreamGeometry(
        width=width if isinstance(width, int) else 0,
        height=height if isinstance(height, int) else 0,
    )


class FFprobeProber:
    """Runs ``ffprobe -v error -print_format json -show_streams`` against a local file."""

    def __init__(self, binary: str = "ffprobe", timeout_seconds: Optional[float] = None):
        self.binary = binary
        self.timeout_seconds = timeout_seconds

    def command(self, path: Union[str, Path]) -> List[str]:
        return [self.binary, "-v", "error", "-print_format", "json", "-show_streams", str(path)]

    def probe(self, path: Union[str, Path]) -> StreamGeometry:
        try:
            process = subprocess.Popen(self.command(path), stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise ProbeError(f"Could not run {self.binary}: {e}") from e

        try:
            stdout, stderr = process.communicate(timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            logger.error("ffprobe timed out after %ss for %s", self.timeout_seconds, path)
            raise ProbeError("ffprobe timed out", timeout=True) from e

        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip() if stderr else ""
            logger.error("ffprobe failed for %s (exit %s): %s", path, process.returncode, detail)
            raise ProbeError(f"ffprobe exited with status {process.returncode}: {detail}")

        try:
            payload = json.loads(stdout.decode("utf-8"))
        except ValueError as e:
            raise ProbeError(f"Could not parse ffprobe output: {e}") from e

        return _first_stream_geometry(payload)

    def aspect_class(self, path: Union[str, Path]) -> AspectClass:
        return self.probe(path).aspect_class
