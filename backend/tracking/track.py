"""
Single-subject track: motion state plus lifecycle bookkeeping.
"""
from __future__ import annotations

from enum import IntEnum
from typing import Callable, Optional

import numpy as np

from common.exceptions import NotInitializedError
from common.types import BoundingBox
from tracking.geometry import tlwh_to_tlbr, tlwh_to_xyah, xyah_to_tlwh
from tracking.kalman_filter import KalmanFilter


class TrackState(IntEnum):
    NEW = 0
    TRACKED = 1
    LOST = 2
    REMOVED = 3


class STrack:
    """
    One tracked subject.

    Holds the raw box it was created from until activation; afterwards the
    Kalman mean is the source of truth for its position.
    """

    def __init__(self, box: BoundingBox):
        self._tlwh = np.asarray(box.tlwh, dtype=float)
        self.box = box
        self.kalman_filter: Optional[KalmanFilter] = None
        self.mean: Optional[np.ndarray] = None
        self.covariance: Optional[np.ndarray] = None
        self.is_activated = False

        self.track_id = 0
        self.state = TrackState.NEW
        self.score = box.confidence
        self.label = box.class_label
        self.class_id = box.class_id
        self.frame_id = 0
        self.start_frame = 0
        self.tracklet_len = 0
        self._next_id: Optional[Callable[[], int]] = None

    def predict(self) -> None:
        if self.mean is None or self.kalman_filter is None:
            raise NotInitializedError("Track must be activated before predict()")
        mean_state = self.mean.copy()
        if self.state != TrackState.TRACKED:
            # No height velocity while unconfirmed
            mean_state[7] = 0
        self.mean, self.covariance = self.kalman_filter.predict(mean_state, self.covariance)

    def activate(self, kalman_filter: KalmanFilter, frame_id: int, next_id: Callable[[], int]) -> None:
        """Start a new tracklet with a fresh id from `next_id`."""
        self.kalman_filter = kalman_filter
        self._next_id = next_id
        self.track_id = next_id()
        self.mean, self.covariance = kalman_filter.initiate(tlwh_to_xyah(self._tlwh))

        self.tracklet_len = 0
        self.state = TrackState.TRACKED
        self.is_activated = True
        self.frame_id = frame_id
        self.start_frame = frame_id

    def re_activate(self, box: BoundingBox, frame_id: int, new_id: bool = False) -> None:
        """Re-establish a lost track from a fresh detection."""
        self._correct(box)
        self.tracklet_len = 0
        self.state = TrackState.TRACKED
        self.is_activated = True
        self.frame_id = frame_id
        if new_id:
            if self._next_id is None:
                raise NotInitializedError("Track was never activated, no id source")
            self.track_id = self._next_id()

    def update(self, box: BoundingBox, frame_id: int) -> None:
        """Correct a matched track with this frame's detection."""
        self.frame_id = frame_id
        self.tracklet_len += 1
        self._correct(box)
        self.state = TrackState.TRACKED
        self.is_activated = True

    def _correct(self, box: BoundingBox) -> None:
        if self.mean is None or self.kalman_filter is None:
            raise NotInitializedError("Track must be activated before it can be updated")
        self.mean, self.covariance = self.kalman_filter.update(
            self.mean, self.covariance, tlwh_to_xyah(box.tlwh)
        )
        self.box = box
        self.score = box.confidence
        self.label = box.class_label
        self.class_id = box.class_id

    def mark_lost(self) -> None:
        self.state = TrackState.LOST

    def mark_removed(self) -> None:
        self.state = TrackState.REMOVED

    @property
    def tlwh(self) -> np.ndarray:
        if self.mean is None:
            return self._tlwh.copy()
        return xyah_to_tlwh(self.mean[:4])

    @property
    def tlbr(self) -> np.ndarray:
        return tlwh_to_tlbr(self.tlwh)

    @property
    def xyah(self) -> np.ndarray:
        return tlwh_to_xyah(self.tlwh)

    @property
    def end_frame(self) -> int:
        return self.frame_id

    @property
    def age(self) -> int:
        return self.frame_id - self.start_frame

    def to_box(self) -> BoundingBox:
        """Current estimated box, clipped to non-negative size."""
        x, y, w, h = self.tlwh
        return BoundingBox(
            x=float(x),
            y=float(y),
            width=max(0.0, float(w)),
            height=max(0.0, float(h)),
            confidence=min(1.0, max(0.0, float(self.score))),
            class_label=self.label,
            class_id=self.class_id,
            track_id=self.track_id or None,
        )

    def __repr__(self) -> str:
        return f"OT_{self.track_id}_({self.start_frame}-{self.end_frame})"
