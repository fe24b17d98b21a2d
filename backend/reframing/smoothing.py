"""Low-pass filtering of the virtual camera path."""
from __future__ import annotations

from typing import Optional

from common.exceptions import InvalidInputError
from common.types import FrameTransform
from reframing import config


class CameraPathSmoother:
    """
    Exponential smoothing of camera center and zoom.

    smoothness=0 passes raw samples through; smoothness=1 keeps only
    (1 - MAX_DAMPING) of each new sample. An optional pan limit caps how far
    the center may move in one frame.
    """

    def __init__(self, smoothness: float, max_pan_per_frame: float | None = None):
        if not 0.0 <= smoothness <= 1.0:
            raise InvalidInputError(f"smoothness must be in [0, 1], got {smoothness}")
        self.smoothness = smoothness
        self.alpha = 1.0 - smoothness * config.MAX_DAMPING
        self.max_pan_per_frame = max_pan_per_frame
        self._state: Optional[FrameTransform] = None

    def reset(self) -> None:
        self._state = None

    def seed(self, transform: FrameTransform) -> None:
        """Continue smoothing from `transform`, e.g. after a manual correction."""
        self._state = transform

    def _clamp_pan(self, dx: float, dy: float) -> tuple[float, float]:
        if self.max_pan_per_frame is None:
            return dx, dy
        dist_sq = dx * dx + dy * dy
        max_sq = self.max_pan_per_frame ** 2
        if dist_sq <= max_sq:
            return dx, dy
        scale = (max_sq / dist_sq) ** 0.5
        return dx * scale, dy * scale

    def smooth(self, raw: FrameTransform) -> FrameTransform:
        prev = self._state
        if prev is None or (self.alpha >= 1.0 and self.max_pan_per_frame is None):
            self._state = raw
            return raw

        dx = self.alpha * (raw.x - prev.x)
        dy = self.alpha * (raw.y - prev.y)
        dx, dy = self._clamp_pan(dx, dy)
        smoothed = FrameTransform(
            x=prev.x + dx,
            y=prev.y + dy,
            scale=prev.scale + self.alpha * (raw.scale - prev.scale),
            rotation=raw.rotation,
        )
        self._state = smoothed
        return smoothed
