"""
Multi-subject tracker: predict, associate, update, spawn and retire tracks per frame.
"""
from __future__ import annotations

import itertools
import logging
from typing import Dict, Iterable, List, Optional

import numpy as np

from common.exceptions import FrameProcessingError, InvalidInputError
from common.settings import TrackerSettings
from common.types import BoundingBox, Detection, TrackedObject, parse_boxes
from tracking import config, matching
from tracking.kalman_filter import KalmanFilter
from tracking.track import STrack, TrackState

logger = logging.getLogger(__name__)


class ByteTracker:
    """
    Frame-by-frame tracker over detector boxes.

    Frames must arrive in strictly increasing order. Unmatched detections are
    activated immediately, so every input box leaves `update()` with a track id.
    A lost track is removed once more than `max_frames_lost` frames have passed
    since its last match.
    """

    def __init__(
        self,
        match_thresh: float | None = None,
        max_frames_lost: int | None = None,
        fuse_score: bool | None = None,
        assignment: str | None = None,
        settings: TrackerSettings | None = None,
    ):
        settings = settings or TrackerSettings()
        self.max_frames_lost = settings.max_frames_lost if max_frames_lost is None else max_frames_lost
        self.fuse_score = settings.fuse_score if fuse_score is None else fuse_score
        self.assignment = settings.assignment if assignment is None else assignment
        if self.assignment not in config.ASSIGNMENT_METHODS:
            raise InvalidInputError(f"Unknown assignment method: {self.assignment!r}")
        if self.max_frames_lost < 0:
            raise InvalidInputError("max_frames_lost must be >= 0")
        self._match_thresh = settings.match_thresh
        if match_thresh is not None:
            self.set_match_threshold(match_thresh)

        self.kalman_filter = KalmanFilter()
        self.tracked_stracks: List[STrack] = []
        self.lost_stracks: List[STrack] = []
        self._objects: Dict[int, TrackedObject] = {}
        self._id_counter = itertools.count(1)
        self._last_frame: Optional[int] = None
        self.frames_processed = 0

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def match_thresh(self) -> float:
        return self._match_thresh

    def set_match_threshold(self, value: float) -> None:
        """Change the association cost ceiling. Applies from the next frame."""
        if not 0.0 < value <= 1.0:
            raise InvalidInputError(f"match_thresh must be in (0, 1], got {value}")
        self._match_thresh = float(value)

    def _next_id(self) -> int:
        return next(self._id_counter)

    # ------------------------------------------------------------------
    # Per-frame update
    # ------------------------------------------------------------------

    def update(self, boxes: Iterable[BoundingBox | dict], frame_number: int) -> List[BoundingBox]:
        """
        Run one tracking cycle and return the input boxes annotated with track ids.

        Raises InvalidInputError for malformed boxes or out-of-order frames and
        FrameProcessingError when the motion model fails; in both cases no
        track state is changed.
        """
        detections = parse_boxes(boxes, frame_number)
        if self._last_frame is not None and frame_number <= self._last_frame:
            raise InvalidInputError(
                f"Frame {frame_number} received after frame {self._last_frame}; frames must be in increasing order"
            )

        pool = sorted(self.tracked_stracks + self.lost_stracks, key=lambda t: t.track_id)
        snapshot = [(track, dict(track.__dict__)) for track in pool]
        try:
            annotated = self._step(pool, detections, frame_number)
        except (ValueError, ArithmeticError, np.linalg.LinAlgError) as exc:
            for track, saved in snapshot:
                track.__dict__.clear()
                track.__dict__.update(saved)
            raise FrameProcessingError(frame_number, str(exc)) from exc

        self._last_frame = frame_number
        self.frames_processed += 1
        logger.debug(
            "Frame %d: %d detections, %d tracked, %d lost",
            frame_number,
            len(detections),
            len(self.tracked_stracks),
            len(self.lost_stracks),
        )
        return annotated

    def process(self, detection: Detection) -> Detection:
        """Track one detector frame and return it with annotated boxes."""
        boxes = self.update(detection.boxes, detection.frame_number)
        return detection.model_copy(update={"boxes": boxes})

    def _step(self, pool: List[STrack], detections: List[BoundingBox], frame_number: int) -> List[BoundingBox]:
        for track in pool:
            track.predict()

        dists = matching.iou_distance(pool, detections)
        if self.fuse_score:
            dists = matching.fuse_score(dists, [d.confidence for d in detections])
        result = matching.linear_assignment(dists, self._match_thresh, method=self.assignment)

        annotated: List[Optional[BoundingBox]] = [None] * len(detections)
        observed: List[tuple[STrack, BoundingBox]] = []

        for itrack, idet in result.matches:
            track = pool[itrack]
            det = detections[idet]
            if track.state == TrackState.TRACKED:
                track.update(det, frame_number)
            else:
                track.re_activate(det, frame_number, new_id=False)
            annotated[idet] = det.with_track_id(track.track_id)
            observed.append((track, annotated[idet]))

        removed: List[STrack] = []
        for itrack in result.unmatched_tracks:
            track = pool[itrack]
            if track.state != TrackState.LOST:
                track.mark_lost()
            if frame_number - track.frame_id > self.max_frames_lost:
                track.mark_removed()
                removed.append(track)

        new_tracks: List[STrack] = []
        for idet in result.unmatched_detections:
            det = detections[idet]
            track = STrack(det)
            track.activate(self.kalman_filter, frame_number, self._next_id)
            new_tracks.append(track)
            annotated[idet] = det.with_track_id(track.track_id)
            observed.append((track, annotated[idet]))

        # Commit: nothing below can fail
        active = pool + new_tracks
        self.tracked_stracks = [t for t in active if t.state == TrackState.TRACKED]
        self.lost_stracks = [t for t in active if t.state == TrackState.LOST]
        for track, box in observed:
            self._record(track, box, frame_number)
        for track in removed:
            self._objects.pop(track.track_id, None)
            logger.debug("Track %d removed at frame %d", track.track_id, frame_number)

        return [box for box in annotated if box is not None]

    def _record(self, track: STrack, box: BoundingBox, frame_number: int) -> None:
        obj = self._objects.get(track.track_id)
        if obj is None:
            obj = TrackedObject(
                id=track.track_id,
                first_frame=frame_number,
                last_frame=frame_number,
                label=track.label,
            )
            self._objects[track.track_id] = obj
        obj.positions[frame_number] = box
        obj.last_frame = frame_number

    # ------------------------------------------------------------------
    # Queries and selection
    # ------------------------------------------------------------------

    @property
    def last_frame(self) -> Optional[int]:
        return self._last_frame

    def get_tracked_objects(self) -> List[TrackedObject]:
        """
        Tracked and recently lost tracks, ordered by id.

        Returns snapshots; selection changes only through `select_track`.
        """
        return [self._objects[k].model_copy(deep=True) for k in sorted(self._objects)]

    def get_track(self, track_id: int) -> Optional[STrack]:
        for track in itertools.chain(self.tracked_stracks, self.lost_stracks):
            if track.track_id == track_id:
                return track
        return None

    def get_tracked_object(self, track_id: int) -> Optional[TrackedObject]:
        obj = self._objects.get(track_id)
        return obj.model_copy(deep=True) if obj is not None else None

    def select_track(self, track_id: int) -> bool:
        """
        Select one track and deselect all others.

        An unknown id is a no-op and leaves the current selection as it was.
        """
        if track_id not in self._objects:
            logger.debug("select_track(%s): no such track", track_id)
            return False
        for obj in self._objects.values():
            obj.selected = obj.id == track_id
        return True

    def clear_selection(self) -> None:
        for obj in self._objects.values():
            obj.selected = False

    def get_selected_track(self) -> Optional[TrackedObject]:
        for obj in self._objects.values():
            if obj.selected:
                return obj.model_copy(deep=True)
        return None

    def reset(self) -> None:
        """Drop every track and restart ids at 1 for a new session."""
        self.tracked_stracks = []
        self.lost_stracks = []
        self._objects = {}
        self._id_counter = itertools.count(1)
        self._last_frame = None
        self.frames_processed = 0
        logger.info("Tracker reset")
