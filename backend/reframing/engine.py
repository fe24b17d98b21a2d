"""
Reframing engine: trajectories in, one clamped camera transform per output frame out.
"""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from common.exceptions import InvalidInputError
from common.types import (
    BoundingBox,
    Detection,
    FrameTransform,
    ReframingConfig,
    TargetSelectionStrategy,
    TrackedObject,
    parse_detection,
)
from reframing.framing import CropRect, FrameCalculator
from reframing.selection import TargetSelector
from reframing.smoothing import CameraPathSmoother
from reframing.trajectory import extract_trajectory, interpolate_trajectory

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class ReframingEngine:
    """
    Computes and caches a FrameTransform per output frame.

    Per frame: resolve the target box(es), hold the last target across short
    gaps, derive a raw camera from the padded target, smooth it over time and
    clamp the crop into the source frame. Manual per-frame overrides win over
    computed transforms until the next explicit `run()`.
    """

    def __init__(self, config: ReframingConfig, frame_width: int, frame_height: int):
        self.frame_width = frame_width
        self.frame_height = frame_height
        self._config = config
        self._selector = TargetSelector()
        self._transforms: Dict[int, FrameTransform] = {}
        self._overrides: Dict[int, FrameTransform] = {}
        self._manual_positions: Dict[int, BoundingBox] = {}
        self._last_targets: List[BoundingBox] = []
        self._last_target_frame: Optional[int] = None
        self.cancelled = False
        self._build()

    def _build(self) -> None:
        self._calculator = FrameCalculator(
            self.frame_width,
            self.frame_height,
            self._config.output_aspect_ratio,
            max_zoom=self._config.max_zoom,
        )
        self._smoother = CameraPathSmoother(self._config.smoothness, self._config.max_pan_per_frame)

    @property
    def config(self) -> ReframingConfig:
        return self._config

    @property
    def calculator(self) -> FrameCalculator:
        return self._calculator

    def update_config(self, **changes) -> ReframingConfig:
        """Apply a partial config update. Takes effect on the next run."""
        try:
            config = ReframingConfig.model_validate({**self._config.model_dump(), **changes})
        except ValidationError as exc:
            raise InvalidInputError(f"Invalid reframing config: {exc}") from exc
        self._config = config
        self._build()
        return config

    # ------------------------------------------------------------------
    # Target resolution
    # ------------------------------------------------------------------

    def _manual_track_id(self, selected: Optional[TrackedObject]) -> Optional[int]:
        if self._config.manual_track_id is not None:
            return self._config.manual_track_id
        return selected.id if selected is not None else None

    def _manual_trajectory(
        self, detections: Sequence[Detection], selected: Optional[TrackedObject]
    ) -> Dict[int, BoundingBox]:
        track_id = self._manual_track_id(selected)
        if track_id is None:
            return {}
        if selected is not None and selected.id == track_id:
            positions = dict(selected.positions)
        else:
            positions = extract_trajectory(detections, track_id)
        if self._config.interpolate_gaps:
            positions = interpolate_trajectory(positions, max_gap=self._config.max_hold_frames)
        return positions

    def resolve_targets(
        self,
        frame_number: int,
        boxes: Sequence[BoundingBox],
        selected: Optional[TrackedObject] = None,
    ) -> List[BoundingBox]:
        """
        Target boxes for one frame, before gap holding.

        The manual strategy uses the configured box, else the fixed or selected
        track and ignores every other box. Other strategies pick from `boxes`
        according to the tracking mode.
        """
        config = self._config
        if config.target_selection != TargetSelectionStrategy.MANUAL:
            return self._selector.targets_for_mode(
                boxes, config.tracking_mode, config.target_selection, self.frame_width, self.frame_height
            )

        if config.manual_box is not None:
            return [config.manual_box]
        box = self._manual_positions.get(frame_number)
        if box is None:
            track_id = self._manual_track_id(selected)
            if selected is not None and selected.id == track_id:
                box = selected.positions.get(frame_number)
            if box is None and track_id is not None:
                box = next((b for b in boxes if b.track_id == track_id), None)
        return [box] if box is not None else []

    # ------------------------------------------------------------------
    # Transform computation
    # ------------------------------------------------------------------

    def process_frame(
        self,
        frame_number: int,
        boxes: Sequence[BoundingBox] = (),
        selected: Optional[TrackedObject] = None,
    ) -> FrameTransform:
        """Compute, cache and return the transform for the next output frame."""
        config = self._config
        targets = self.resolve_targets(frame_number, boxes, selected)
        if targets:
            self._last_targets = targets
            self._last_target_frame = frame_number
        elif (
            self._last_target_frame is not None
            and frame_number - self._last_target_frame <= config.max_hold_frames
        ):
            targets = self._last_targets

        raw = self._calculator.calculate(
            targets,
            padding=config.padding_fraction,
            offset=config.box_offset,
            fixed_scale=config.reframe_box_scale,
        )
        transform = self._calculator.clamp(self._smoother.smooth(raw))

        override = self._overrides.get(frame_number)
        if override is not None:
            self._smoother.seed(override)
            return override
        self._transforms[frame_number] = transform
        return transform

    def run(
        self,
        detections: Iterable[Detection | dict],
        selected: Optional[TrackedObject] = None,
        total_frames: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        keep_overrides: bool = False,
    ) -> Dict[int, FrameTransform]:
        """
        Recompute every output frame from scratch.

        Frames without a Detection entry are gaps. Cancelling stops at the next
        frame boundary and leaves the frames computed so far cached.
        """
        frames = [parse_detection(d) for d in detections]
        by_frame = {d.frame_number: d.boxes for d in frames}
        if total_frames is None:
            total_frames = max(by_frame) + 1 if by_frame else 0

        self._transforms.clear()
        if not keep_overrides:
            self._overrides.clear()
        self._smoother.reset()
        self._last_targets = []
        self._last_target_frame = None
        self.cancelled = False
        if self._config.target_selection == TargetSelectionStrategy.MANUAL and self._config.manual_box is None:
            self._manual_positions = self._manual_trajectory(frames, selected)
        else:
            self._manual_positions = {}

        logger.info(
            "Reframing %d frames (%dx%d, aspect %.3f, strategy %s)",
            total_frames,
            self.frame_width,
            self.frame_height,
            self._config.output_aspect_ratio,
            self._config.target_selection.value,
        )
        for frame_number in range(total_frames):
            if cancel_event is not None and cancel_event.is_set():
                self.cancelled = True
                logger.info("Reframing cancelled after %d/%d frames", frame_number, total_frames)
                break
            self.process_frame(frame_number, by_frame.get(frame_number, ()), selected)
            if on_progress is not None:
                on_progress(frame_number + 1, total_frames)

        return self.get_all_transforms()

    # ------------------------------------------------------------------
    # Lookup and manual correction
    # ------------------------------------------------------------------

    def get_frame_transform(self, frame_index: int) -> Optional[FrameTransform]:
        """Transform for one output frame, or None when it has not been computed."""
        override = self._overrides.get(frame_index)
        if override is not None:
            return override
        return self._transforms.get(frame_index)

    def get_all_transforms(self) -> Dict[int, FrameTransform]:
        merged = {**self._transforms, **self._overrides}
        return dict(sorted(merged.items()))

    def crop_rect(self, frame_index: int) -> Optional[CropRect]:
        transform = self.get_frame_transform(frame_index)
        if transform is None:
            return None
        return self._calculator.crop_rect(transform)

    def update_transform(self, frame_index: int, transform: FrameTransform | dict) -> FrameTransform:
        """Pin a user-corrected transform for one frame, clamped into the source frame."""
        if frame_index < 0:
            raise InvalidInputError(f"Frame index must be >= 0, got {frame_index}")
        if not isinstance(transform, FrameTransform):
            try:
                transform = FrameTransform.model_validate(transform)
            except ValidationError as exc:
                raise InvalidInputError(f"Invalid frame transform: {exc}") from exc
        clamped = self._calculator.clamp(transform)
        self._overrides[frame_index] = clamped
        return clamped

    def clear_override(self, frame_index: int) -> None:
        self._overrides.pop(frame_index, None)

    def has_override(self, frame_index: int) -> bool:
        return frame_index in self._overrides

    def reset(self) -> None:
        self._transforms.clear()
        self._overrides.clear()
        self._manual_positions = {}
        self._smoother.reset()
        self._last_targets = []
        self._last_target_frame = None
        self.cancelled = False
