"""
Crop geometry: target boxes to a camera transform, and transforms to crop rectangles.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from common.exceptions import InvalidInputError
from common.types import BoundingBox, FrameTransform
from reframing import config


@dataclass(frozen=True)
class CropRect:
    """Source-frame rectangle sampled for one output frame."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def is_within(self, frame_width: float, frame_height: float, tolerance: float = config.BOUNDS_TOLERANCE_PX) -> bool:
        return (
            self.x >= -tolerance
            and self.y >= -tolerance
            and self.right <= frame_width + tolerance
            and self.bottom <= frame_height + tolerance
        )


def max_crop_size(frame_width: float, frame_height: float, aspect_ratio: float) -> Tuple[float, float]:
    """Largest width/height of `aspect_ratio` that fits inside the frame."""
    if frame_width / frame_height > aspect_ratio:
        height = float(frame_height)
        width = min(float(frame_width), height * aspect_ratio)
    else:
        width = float(frame_width)
        height = min(float(frame_height), width / aspect_ratio)
    return width, height


class FrameCalculator:
    """Maps targets to raw camera transforms and clamps transforms to the frame."""

    def __init__(
        self,
        frame_width: float,
        frame_height: float,
        output_aspect_ratio: float,
        max_zoom: float = config.DEFAULT_MAX_ZOOM,
    ):
        if frame_width <= 0 or frame_height <= 0:
            raise InvalidInputError(f"Frame size must be positive, got {frame_width}x{frame_height}")
        if output_aspect_ratio <= 0:
            raise InvalidInputError(f"Output aspect ratio must be positive, got {output_aspect_ratio}")
        self.frame_width = float(frame_width)
        self.frame_height = float(frame_height)
        self.aspect_ratio = float(output_aspect_ratio)
        self.max_zoom = max(1.0, float(max_zoom))
        self.max_crop_width, self.max_crop_height = max_crop_size(frame_width, frame_height, output_aspect_ratio)

    def default_transform(self) -> FrameTransform:
        """Widest crop centered on the frame."""
        return FrameTransform(x=self.frame_width / 2.0, y=self.frame_height / 2.0, scale=1.0)

    def calculate(
        self,
        targets: Sequence[BoundingBox],
        padding: float = 0.0,
        offset: Tuple[float, float] = (0.0, 0.0),
        fixed_scale: float | None = None,
    ) -> FrameTransform:
        """
        Raw (unclamped) transform framing all targets.

        The padded target box is widened or heightened to the output aspect
        ratio; zoom is the ratio of the widest crop to that box.
        """
        if not targets:
            return self.default_transform()

        min_x = min(t.x for t in targets)
        min_y = min(t.y for t in targets)
        max_x = max(t.x + t.width for t in targets)
        max_y = max(t.y + t.height for t in targets)
        center_x = (min_x + max_x) / 2.0 + offset[0]
        center_y = (min_y + max_y) / 2.0 + offset[1]

        if fixed_scale is not None:
            return FrameTransform(x=center_x, y=center_y, scale=min(fixed_scale, self.max_zoom))

        width = (max_x - min_x) * (1.0 + 2.0 * padding)
        height = (max_y - min_y) * (1.0 + 2.0 * padding)
        if width <= 0 and height <= 0:
            return FrameTransform(x=center_x, y=center_y, scale=self.max_zoom)
        if height <= 0 or width / height > self.aspect_ratio:
            height = width / self.aspect_ratio
        else:
            width = height * self.aspect_ratio

        scale = min(self.max_crop_width / width, self.max_zoom)
        return FrameTransform(x=center_x, y=center_y, scale=scale)

    def crop_size(self, scale: float) -> Tuple[float, float]:
        return self.max_crop_width / scale, self.max_crop_height / scale

    def clamp(self, transform: FrameTransform) -> FrameTransform:
        """
        Keep the crop inside the source frame.

        The center moves first; zoom changes only when the crop would be larger
        than the frame itself or smaller than the `max_zoom` crop.
        """
        scale = min(max(transform.scale, 1.0), self.max_zoom)
        crop_w, crop_h = self.crop_size(scale)
        half_w, half_h = crop_w / 2.0, crop_h / 2.0
        x = min(max(transform.x, half_w), self.frame_width - half_w)
        y = min(max(transform.y, half_h), self.frame_height - half_h)
        return FrameTransform(x=x, y=y, scale=scale, rotation=transform.rotation)

    def crop_rect(self, transform: FrameTransform) -> CropRect:
        crop_w, crop_h = self.crop_size(transform.scale)
        return CropRect(
            x=transform.x - crop_w / 2.0,
            y=transform.y - crop_h / 2.0,
            width=crop_w,
            height=crop_h,
        )
