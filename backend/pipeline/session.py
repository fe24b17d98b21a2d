"""
Reframing session: one source video, one tracker, one reframing engine.

Detections are tracked first (the analyzing pass); the annotated frames then
drive the reframing pass. Both passes report progress and can be cancelled
between frames.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from common.exceptions import FrameProcessingError, InvalidInputError, NotInitializedError, ReframeError
from common.settings import ReframeSettings, TrackerSettings
from common.types import (
    Detection,
    FrameTransform,
    ProcessingStage,
    ProcessingStatus,
    ReframingConfig,
    TargetSelectionStrategy,
    TrackedObject,
    parse_detection,
)
from reframing.engine import ProgressCallback, ReframingEngine
from reframing.framing import CropRect
from reframing.presets import get_preset
from tracking.trackers import ByteTracker

logger = logging.getLogger(__name__)


class ReframeSession:
    """
    Owns all mutable state for reframing one video.

    Not thread-safe: feed frames from a single thread, in increasing order.
    Cancellation is requested through a threading.Event checked between frames.
    """

    def __init__(
        self,
        frame_width: int,
        frame_height: int,
        reframing_config: ReframingConfig | None = None,
        tracker_settings: TrackerSettings | None = None,
        reframe_settings: ReframeSettings | None = None,
    ):
        if reframing_config is None:
            reframe_settings = reframe_settings or ReframeSettings()
            reframing_config = get_preset(reframe_settings.preset, max_hold_frames=reframe_settings.max_hold_frames)
        self.frame_width = frame_width
        self.frame_height = frame_height
        self.tracker = ByteTracker(settings=tracker_settings)
        self.engine = ReframingEngine(reframing_config, frame_width, frame_height)
        self._detections: List[Detection] = []
        self.skipped_frames: List[int] = []
        self._analyzed = False
        self._status = ProcessingStatus()

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def status(self) -> ProcessingStatus:
        return self._status.model_copy()

    def _set_status(self, **changes) -> None:
        self._status = self._status.model_copy(update=changes)

    def _report(self, processed: int, total: int, on_progress: Optional[ProgressCallback]) -> None:
        progress = processed / total if total else 1.0
        self._set_status(processed=processed, total=total, progress=min(progress, 1.0))
        if on_progress is not None:
            on_progress(processed, total)

    # ------------------------------------------------------------------
    # Analyzing pass
    # ------------------------------------------------------------------

    def process_detections(
        self,
        frames: Iterable[Detection | dict],
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Detection]:
        """
        Track detector output frame by frame.

        A frame that fails validation or tracking is logged and skipped; the
        tracks are left as they were before that frame. May be called again
        with later frames to extend the session.
        """
        frames = list(frames)
        total = len(frames)
        self._set_status(
            stage=ProcessingStage.ANALYZING,
            progress=0.0,
            processed=0,
            total=total,
            message="Tracking subjects",
            error=None,
        )
        logger.info("Tracking %d detection frames", total)

        for index, raw in enumerate(frames):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Tracking cancelled after %d/%d frames", index, total)
                self._set_status(stage=ProcessingStage.CANCELLED, message="Tracking cancelled")
                self._analyzed = bool(self._detections)
                return self.detections
            try:
                detection = parse_detection(raw)
                self._detections.append(self.tracker.process(detection))
            except (FrameProcessingError, InvalidInputError) as exc:
                frame_number = getattr(exc, "frame_number", None)
                if frame_number is None and isinstance(raw, Detection):
                    frame_number = raw.frame_number
                elif frame_number is None and isinstance(raw, dict):
                    frame_number = raw.get("frame_number")
                logger.warning("Skipping frame %s: %s", frame_number, exc)
                if isinstance(frame_number, int):
                    self.skipped_frames.append(frame_number)
            self._report(index + 1, total, on_progress)

        self._analyzed = True
        self._set_status(message=f"Tracked {len(self.tracker.get_tracked_objects())} subjects")
        logger.info(
            "Tracking finished: %d frames, %d skipped, %d live tracks",
            len(self._detections),
            len(self.skipped_frames),
            len(self.tracker.get_tracked_objects()),
        )
        return self.detections

    @property
    def detections(self) -> List[Detection]:
        """Tracked frames, boxes annotated with track ids."""
        return list(self._detections)

    # ------------------------------------------------------------------
    # Reframing pass
    # ------------------------------------------------------------------

    def reframe(
        self,
        total_frames: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        keep_overrides: bool = False,
    ) -> Dict[int, FrameTransform]:
        """Compute transforms for every output frame from the tracked detections."""
        if not self._analyzed:
            raise NotInitializedError("process_detections() must run before reframe()")

        self._set_status(
            stage=ProcessingStage.REFRAMING,
            progress=0.0,
            processed=0,
            total=total_frames or 0,
            message="Computing camera path",
            error=None,
        )

        def progress(processed: int, total: int) -> None:
            self._report(processed, total, on_progress)

        try:
            transforms = self.engine.run(
                self._detections,
                selected=self.tracker.get_selected_track(),
                total_frames=total_frames,
                on_progress=progress,
                cancel_event=cancel_event,
                keep_overrides=keep_overrides,
            )
        except ReframeError as exc:
            logger.error("Reframing failed: %s", exc)
            self._set_status(stage=ProcessingStage.ERROR, error=str(exc), message="Reframing failed")
            raise

        if self.engine.cancelled:
            self._set_status(stage=ProcessingStage.CANCELLED, message="Reframing cancelled")
        else:
            self._set_status(stage=ProcessingStage.COMPLETE, progress=1.0, message="Reframing complete")
        return transforms

    def run(
        self,
        frames: Iterable[Detection | dict],
        total_frames: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Dict[int, FrameTransform]:
        """Analyzing pass followed by the reframing pass."""
        self.process_detections(frames, on_progress=on_progress, cancel_event=cancel_event)
        if self._status.stage == ProcessingStage.CANCELLED:
            return self.engine.get_all_transforms()
        return self.reframe(total_frames=total_frames, on_progress=on_progress, cancel_event=cancel_event)

    # ------------------------------------------------------------------
    # Tracks and selection
    # ------------------------------------------------------------------

    def tracked_objects(self) -> List[TrackedObject]:
        return self.tracker.get_tracked_objects()

    def select_track(self, track_id: int, follow: bool = True) -> bool:
        """
        Select a subject. With `follow`, the next reframe frames that subject.

        Returns False and changes nothing when the id is unknown.
        """
        if not self.tracker.select_track(track_id):
            return False
        if follow:
            self.engine.update_config(
                target_selection=TargetSelectionStrategy.MANUAL,
                manual_track_id=None,
                manual_box=None,
            )
        logger.info("Selected track %d", track_id)
        return True

    def set_match_threshold(self, value: float) -> None:
        self.tracker.set_match_threshold(value)

    def update_config(self, **changes) -> ReframingConfig:
        return self.engine.update_config(**changes)

    # ------------------------------------------------------------------
    # Transforms
    # ------------------------------------------------------------------

    def get_frame_transform(self, frame_index: int) -> Optional[FrameTransform]:
        return self.engine.get_frame_transform(frame_index)

    def crop_rect(self, frame_index: int) -> Optional[CropRect]:
        return self.engine.crop_rect(frame_index)

    def update_transform(self, frame_index: int, transform: FrameTransform | dict) -> FrameTransform:
        return self.engine.update_transform(frame_index, transform)

    def transforms(self) -> Dict[int, FrameTransform]:
        return self.engine.get_all_transforms()

    def reset(self) -> None:
        """Start over: no tracks, ids from 1, no cached transforms."""
        self.tracker.reset()
        self.engine.reset()
        self._detections = []
        self.skipped_frames = []
        self._analyzed = False
        self._status = ProcessingStatus()
        logger.info("Session reset")
