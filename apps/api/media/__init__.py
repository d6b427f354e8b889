"""Local media inspection and container processing via ffmpeg."""

from .probe import AspectClass, FFprobeProber, Prober, StreamGeometry, classify_aspect_ratio
from .remux import FFmpegFastStartRemuxer, Remuxer, processing_path_for

__all__ = [
    "AspectClass",
    "FFprobeProber",
    "FFmpegFastStartRemuxer",
    "Prober",
    "Remuxer",
    "StreamGeometry",
    "classify_aspect_ratio",
    "processing_path_for",
]
