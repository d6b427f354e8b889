"""Models package."""

from .user import User
from .video import Video
