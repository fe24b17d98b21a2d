"""Tracking plus reframing for one source video."""

from .session import ReframeSession
from .video import VideoInfo, get_video_info

__all__ = [
    "ReframeSession",
    "VideoInfo",
    "get_video_info",
]
