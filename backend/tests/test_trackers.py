"""ByteTracker: frame loop, lifecycle, ids, selection and error handling."""
from __future__ import annotations

import numpy as np
import pytest

from common.exceptions import FrameProcessingError, InvalidInputError
from common.types import BoundingBox, Detection
from tracking.kalman_filter import KalmanFilter
from tracking.track import TrackState
from tracking.trackers import ByteTracker


def _box(x: float, y: float, w: float = 100, h: float = 100, conf: float = 0.9) -> BoundingBox:
    return BoundingBox(x=x, y=y, width=w, height=h, confidence=conf)


def _ids(boxes: list[BoundingBox]) -> list[int]:
    return [b.track_id for b in boxes]


# ---------- Basic frame loop ----------

class TestNewTracks:
    def test_single_detection_creates_tracked_track(self, tracker):
        out = tracker.update([{"x": 0, "y": 0, "width": 100, "height": 100, "confidence": 0.9}], 0)

        assert _ids(out) == [1]
        objects = tracker.get_tracked_objects()
        assert len(objects) == 1
        assert objects[0].first_frame == objects[0].last_frame == 0
        assert tracker.get_track(1).state == TrackState.TRACKED

    def test_empty_frame_on_empty_tracker(self, tracker):
        assert tracker.update([], 0) == []
        assert tracker.get_tracked_objects() == []

    def test_input_boxes_are_not_mutated(self, tracker):
        original = _box(0, 0)
        out = tracker.update([original], 0)
        assert original.track_id is None
        assert out[0].track_id == 1
        assert out[0].tlwh == original.tlwh

    def test_output_keeps_input_order(self, tracker):
        tracker.update([_box(0, 0), _box(500, 500)], 0)
        out = tracker.update([_box(500, 500), _box(0, 0)], 1)
        assert _ids(out) == [2, 1]

    def test_process_detection(self, tracker):
        result = tracker.process(Detection(frame_number=0, timestamp=0.0, boxes=[_box(0, 0)]))
        assert result.frame_number == 0
        assert _ids(result.boxes) == [1]


class TestContinuity:
    def test_stationary_subject_keeps_id(self, tracker):
        for frame in range(10):
            out = tracker.update([_box(200, 200)], frame)
            assert _ids(out) == [1]
        obj = tracker.get_tracked_object(1)
        assert obj.first_frame == 0
        assert obj.last_frame == 9
        assert sorted(obj.positions) == list(range(10))

    def test_moving_subject_keeps_id(self, tracker):
        for frame in range(20):
            out = tracker.update([_box(100 + 8 * frame, 200)], frame)
            assert _ids(out) == [1]

    def test_lost_subject_recovers_same_id(self, tracker):
        tracker.update([_box(200, 200)], 0)
        tracker.update([_box(200, 200)], 1)
        for frame in range(2, 6):
            tracker.update([], frame)
        assert tracker.get_track(1).state == TrackState.LOST

        out = tracker.update([_box(200, 200)], 6)
        assert _ids(out) == [1]
        assert tracker.get_track(1).state == TrackState.TRACKED

    def test_positions_hold_observed_frames_only(self, tracker):
        tracker.update([_box(200, 200)], 0)
        tracker.update([], 1)
        tracker.update([_box(200, 200)], 2)
        assert sorted(tracker.get_tracked_object(1).positions) == [0, 2]


# ---------- Lifecycle ----------

class TestRemoval:
    def test_removed_after_max_frames_lost(self, tracker_factory):
        tracker = tracker_factory(max_frames_lost=10)
        for frame in range(6):
            tracker.update([_box(0, 0)], frame)

        for frame in range(6, 16):
            tracker.update([], frame)
            assert tracker.get_track(1).state == TrackState.LOST
            assert [o.id for o in tracker.get_tracked_objects()] == [1]

        tracker.update([], 16)
        assert tracker.get_track(1) is None
        assert tracker.get_tracked_objects() == []

        tracker.update([], 17)
        assert tracker.get_tracked_objects() == []

    def test_skipped_frame_numbers_count_as_elapsed(self, tracker_factory):
        tracker = tracker_factory(max_frames_lost=10)
        tracker.update([_box(0, 0)], 5)
        tracker.update([], 16)
        assert tracker.get_tracked_objects() == []

    def test_zero_frames_lost_removes_on_first_miss(self, tracker_factory):
        tracker = tracker_factory(max_frames_lost=0)
        tracker.update([_box(0, 0)], 0)
        tracker.update([], 1)
        assert tracker.get_tracked_objects() == []

    def test_removed_subject_gets_new_id(self, tracker_factory):
        tracker = tracker_factory(max_frames_lost=1)
        tracker.update([_box(0, 0)], 0)
        tracker.update([], 1)
        tracker.update([], 2)
        out = tracker.update([_box(0, 0)], 3)
        assert _ids(out) == [2]


class TestIds:
    def test_ids_unique_and_increasing(self, tracker):
        seen: list[int] = []
        out = tracker.update([_box(0, 0), _box(400, 0)], 0)
        seen.extend(_ids(out))
        out = tracker.update([_box(0, 0), _box(400, 0), _box(800, 0)], 1)
        assert _ids(out) == [1, 2, 3]
        seen.append(3)
        assert seen == sorted(seen)
        live = [o.id for o in tracker.get_tracked_objects()]
        assert len(live) == len(set(live))

    def test_separate_trackers_do_not_share_ids(self, tracker_factory):
        a, b = tracker_factory(), tracker_factory()
        assert _ids(a.update([_box(0, 0)], 0)) == [1]
        assert _ids(b.update([_box(0, 0)], 0)) == [1]

    def test_reset_restarts_ids(self, tracker):
        tracker.update([_box(0, 0), _box(400, 0)], 0)
        tracker.reset()
        assert tracker.get_tracked_objects() == []
        assert tracker.last_frame is None
        assert _ids(tracker.update([_box(0, 0)], 0)) == [1]


# ---------- Input validation and failures ----------

class TestErrors:
    def test_out_of_order_frame_rejected(self, tracker):
        tracker.update([_box(0, 0)], 5)
        with pytest.raises(InvalidInputError):
            tracker.update([_box(0, 0)], 5)
        with pytest.raises(InvalidInputError):
            tracker.update([_box(0, 0)], 3)
        assert tracker.last_frame == 5

    def test_malformed_box_leaves_state_intact(self, tracker):
        tracker.update([_box(0, 0)], 0)
        with pytest.raises(InvalidInputError):
            tracker.update([{"x": 0, "y": 0, "width": -5, "height": 10, "confidence": 0.9}], 1)
        with pytest.raises(InvalidInputError):
            tracker.update([{"x": 0, "y": 0, "width": 5, "height": 10, "confidence": 1.5}], 1)

        assert tracker.last_frame == 0
        assert tracker.get_track(1).frame_id == 0
        assert _ids(tracker.update([_box(0, 0)], 1)) == [1]

    @pytest.mark.parametrize("field, value", [
        ("x", float("nan")),
        ("y", float("-inf")),
        ("width", float("inf")),
        ("height", float("nan")),
    ])
    def test_non_finite_box_rejected(self, tracker, field, value):
        tracker.update([_box(0, 0)], 0)
        bad = {"x": 0, "y": 0, "width": 100, "height": 100, "confidence": 0.9, field: value}
        with pytest.raises(InvalidInputError):
            tracker.update([bad], 1)

        assert tracker.last_frame == 0
        assert np.all(np.isfinite(tracker.get_track(1).mean))
        assert _ids(tracker.update([_box(0, 0)], 1)) == [1]

    def test_motion_model_failure_rolls_back(self, tracker, monkeypatch):
        tracker.update([_box(0, 0)], 0)
        track = tracker.get_track(1)
        mean_before = track.mean.copy()

        def _broken_update(self, mean, covariance, measurement):
            raise np.linalg.LinAlgError("singular")

        monkeypatch.setattr(KalmanFilter, "update", _broken_update)
        with pytest.raises(FrameProcessingError) as exc_info:
            tracker.update([_box(0, 0)], 1)
        assert exc_info.value.frame_number == 1
        np.testing.assert_array_equal(tracker.get_track(1).mean, mean_before)
        assert tracker.last_frame == 0

        monkeypatch.undo()
        assert _ids(tracker.update([_box(0, 0)], 2)) == [1]


# ---------- Configuration ----------

class TestConfiguration:
    def test_set_match_threshold(self, tracker):
        tracker.set_match_threshold(0.3)
        assert tracker.match_thresh == 0.3

    @pytest.mark.parametrize("value", [0.0, -0.1, 1.5])
    def test_invalid_match_threshold(self, tracker, value):
        with pytest.raises(InvalidInputError):
            tracker.set_match_threshold(value)

    def test_stricter_threshold_splits_tracks(self, tracker_factory):
        # IoU of 50px-shifted 100px boxes is 1/3, cost 2/3
        lenient = tracker_factory(match_thresh=0.7)
        strict = tracker_factory(match_thresh=0.5)
        for t in (lenient, strict):
            t.update([_box(0, 0)], 0)
        assert _ids(lenient.update([_box(50, 0)], 1)) == [1]
        assert _ids(strict.update([_box(50, 0)], 1)) == [2]

    def test_fuse_score_rejects_low_confidence_match(self, tracker_factory):
        plain = tracker_factory(fuse_score=False)
        fused = tracker_factory(fuse_score=True)
        for t in (plain, fused):
            t.update([_box(0, 0, conf=0.9)], 0)
        assert _ids(plain.update([_box(0, 0, conf=0.2)], 1)) == [1]
        assert _ids(fused.update([_box(0, 0, conf=0.2)], 1)) == [2]

    def test_greedy_assignment(self, tracker_factory):
        tracker = tracker_factory(assignment="greedy")
        tracker.update([_box(0, 0), _box(400, 0)], 0)
        assert _ids(tracker.update([_box(400, 0), _box(0, 0)], 1)) == [2, 1]

    def test_unknown_assignment(self, tracker_factory):
        with pytest.raises(InvalidInputError):
            tracker_factory(assignment="auction")

    def test_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("REFRAME_MAX_FRAMES_LOST", "3")
        monkeypatch.setenv("REFRAME_MATCH_THRESH", "0.4")
        tracker = ByteTracker()
        assert tracker.max_frames_lost == 3
        assert tracker.match_thresh == 0.4


# ---------- Selection ----------

class TestSelection:
    def test_select_deselects_others(self, tracker):
        tracker.update([_box(0, 0), _box(400, 0)], 0)
        assert tracker.select_track(1)
        assert tracker.select_track(2)
        selected = [o.id for o in tracker.get_tracked_objects() if o.selected]
        assert selected == [2]
        assert tracker.get_selected_track().id == 2

    def test_unknown_id_is_noop(self, tracker):
        tracker.update([_box(0, 0)], 0)
        tracker.select_track(1)
        assert tracker.select_track(99) is False
        assert tracker.get_selected_track().id == 1

    def test_clear_selection(self, tracker):
        tracker.update([_box(0, 0)], 0)
        tracker.select_track(1)
        tracker.clear_selection()
        assert tracker.get_selected_track() is None

    def test_selection_survives_updates(self, tracker):
        tracker.update([_box(0, 0)], 0)
        tracker.select_track(1)
        tracker.update([_box(2, 0)], 1)
        assert tracker.get_selected_track().id == 1

    def test_returned_objects_are_snapshots(self, tracker):
        tracker.update([_box(0, 0), _box(400, 0)], 0)
        tracker.select_track(1)
        for obj in tracker.get_tracked_objects():
            obj.selected = True
            obj.positions.clear()
        tracker.get_tracked_object(2).selected = True

        assert [o.id for o in tracker.get_tracked_objects() if o.selected] == [1]
        assert sorted(tracker.get_tracked_object(2).positions) == [0]
