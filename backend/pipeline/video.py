"""
Source video probing.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import cv2

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0


@dataclass
class VideoInfo:
    width: int
    height: int
    fps: float
    total_frames: int

    @property
    def duration(self) -> float:
        return self.total_frames / self.fps if self.fps else 0.0


def get_video_info(source: Union[str, Path]) -> VideoInfo | None:
    """
    Read frame size, rate and count from a video file.

    Args:
        source: Path to a local video file or a URL OpenCV can open.

    Returns:
        VideoInfo, or None if the source cannot be opened or reports no frame size.
    """
    if isinstance(source, Path):
        source = str(source)

    backend = cv2.CAP_FFMPEG if source.startswith(("http://", "https://")) else cv2.CAP_ANY
    cap = cv2.VideoCapture(source, backend)
    if not cap.isOpened():
        logger.warning("Could not open video source %s", source)
        return None

    try:
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = cap.get(cv2.CAP_PROP_FPS) or DEFAULT_FPS
        total_frames = max(int(cap.get(cv2.CAP_PROP_FRAME_COUNT)), 0)
    finally:
        cap.release()

    if width <= 0 or height <= 0:
        logger.warning("Video source %s reports no frame size", source)
        return None
    return VideoInfo(width=width, height=height, fps=fps, total_frames=total_frames)
