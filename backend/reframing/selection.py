"""Pick the framing target(s) among one frame's boxes."""
from __future__ import annotations

import math
from typing import List, Optional, Sequence

from common.types import BoundingBox, TargetSelectionStrategy, TrackingMode
from reframing import config


class TargetSelector:
    """Per-frame target choice; ties go to the earliest box."""

    def select(
        self,
        boxes: Sequence[BoundingBox],
        strategy: TargetSelectionStrategy,
        frame_width: float,
        frame_height: float,
    ) -> Optional[BoundingBox]:
        if not boxes:
            return None
        if strategy == TargetSelectionStrategy.LARGEST:
            return self.largest(boxes)
        if strategy == TargetSelectionStrategy.CENTERED:
            return self.most_centered(boxes, frame_width, frame_height)
        if strategy == TargetSelectionStrategy.MOST_CONFIDENT:
            return self.most_confident(boxes)
        # Manual targets are resolved by the engine, not from frame contents.
        return None

    @staticmethod
    def largest(boxes: Sequence[BoundingBox]) -> BoundingBox:
        return max(boxes, key=lambda b: b.area)

    @staticmethod
    def most_centered(boxes: Sequence[BoundingBox], frame_width: float, frame_height: float) -> BoundingBox:
        cx, cy = frame_width / 2.0, frame_height / 2.0
        return min(boxes, key=lambda b: math.hypot(b.center[0] - cx, b.center[1] - cy))

    @staticmethod
    def most_confident(boxes: Sequence[BoundingBox]) -> BoundingBox:
        return max(boxes, key=lambda b: b.confidence)

    def targets_for_mode(
        self,
        boxes: Sequence[BoundingBox],
        mode: TrackingMode,
        strategy: TargetSelectionStrategy,
        frame_width: float,
        frame_height: float,
    ) -> List[BoundingBox]:
        """
        single: the strategy's pick. multi: every box.
        auto: the strategy's pick plus boxes whose centers are near it.
        """
        if mode == TrackingMode.MULTI:
            return list(boxes)

        primary = self.select(boxes, strategy, frame_width, frame_height)
        if primary is None:
            return []
        if mode == TrackingMode.SINGLE:
            return [primary]

        radius = min(frame_width, frame_height) * config.AUTO_NEARBY_FRACTION
        px, py = primary.center
        nearby = [
            b for b in boxes
            if b is not primary and math.hypot(b.center[0] - px, b.center[1] - py) < radius
        ]
        return [primary, *nearby]
