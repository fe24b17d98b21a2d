"""Per-track trajectories and gap filling between observed frames."""
from __future__ import annotations

from typing import Dict, Iterable, Mapping, Optional

from common.types import BoundingBox, Detection


def extract_trajectory(detections: Iterable[Detection], track_id: int) -> Dict[int, BoundingBox]:
    """Boxes carrying `track_id`, keyed and ordered by frame number."""
    points: Dict[int, BoundingBox] = {}
    for detection in detections:
        for box in detection.boxes:
            if box.track_id == track_id:
                points[detection.frame_number] = box
                break
    return dict(sorted(points.items()))


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def interpolate_box(start: BoundingBox, end: BoundingBox, t: float) -> BoundingBox:
    return BoundingBox(
        x=_lerp(start.x, end.x, t),
        y=_lerp(start.y, end.y, t),
        width=_lerp(start.width, end.width, t),
        height=_lerp(start.height, end.height, t),
        confidence=min(start.confidence, end.confidence),
        class_label=start.class_label,
        class_id=start.class_id,
        track_id=start.track_id,
    )


def interpolate_trajectory(
    positions: Mapping[int, BoundingBox],
    max_gap: Optional[int] = None,
) -> Dict[int, BoundingBox]:
    """
    Fill missing frames between consecutive observations by linear interpolation.

    Gaps longer than `max_gap` missing frames are left empty. Frames before the
    first or after the last observation are never filled.
    """
    frames = sorted(positions)
    filled: Dict[int, BoundingBox] = {frame: positions[frame] for frame in frames}
    for prev_frame, next_frame in zip(frames, frames[1:]):
        missing = next_frame - prev_frame - 1
        if missing <= 0 or (max_gap is not None and missing > max_gap):
            continue
        start, end = positions[prev_frame], positions[next_frame]
        span = next_frame - prev_frame
        for frame in range(prev_frame + 1, next_frame):
            filled[frame] = interpolate_box(start, end, (frame - prev_frame) / span)
    return dict(sorted(filled.items()))
