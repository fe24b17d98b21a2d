"""Trajectory extraction and gap interpolation."""
from __future__ import annotations

import pytest

from common.types import BoundingBox, Detection
from reframing.trajectory import extract_trajectory, interpolate_box, interpolate_trajectory


def _box(x: float, y: float, track_id: int | None = None, conf: float = 0.9) -> BoundingBox:
    return BoundingBox(x=x, y=y, width=10, height=20, confidence=conf, track_id=track_id)


class TestExtract:
    def test_picks_one_track_in_frame_order(self):
        detections = [
            Detection(frame_number=2, boxes=[_box(20, 0, 1), _box(0, 0, 2)]),
            Detection(frame_number=0, boxes=[_box(0, 0, 1)]),
            Detection(frame_number=1, boxes=[_box(5, 0, 2)]),
        ]
        trajectory = extract_trajectory(detections, 1)
        assert list(trajectory) == [0, 2]
        assert trajectory[2].x == 20

    def test_unknown_track(self):
        assert extract_trajectory([Detection(frame_number=0, boxes=[_box(0, 0, 1)])], 9) == {}


class TestInterpolate:
    def test_midpoint(self):
        mid = interpolate_box(_box(0, 0, 1, conf=0.8), _box(10, 20, 1, conf=0.6), 0.5)
        assert (mid.x, mid.y) == pytest.approx((5, 10))
        assert mid.confidence == 0.6
        assert mid.track_id == 1

    def test_fills_gaps(self):
        filled = interpolate_trajectory({0: _box(0, 0), 4: _box(40, 0)})
        assert list(filled) == [0, 1, 2, 3, 4]
        assert filled[1].x == pytest.approx(10)
        assert filled[3].x == pytest.approx(30)

    def test_long_gap_left_empty(self):
        filled = interpolate_trajectory({0: _box(0, 0), 10: _box(100, 0), 12: _box(120, 0)}, max_gap=3)
        assert list(filled) == [0, 10, 11, 12]

    def test_no_extrapolation(self):
        filled = interpolate_trajectory({3: _box(0, 0), 5: _box(20, 0)})
        assert min(filled) == 3
        assert max(filled) == 5

    def test_empty(self):
        assert interpolate_trajectory({}) == {}
