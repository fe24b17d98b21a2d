"""Shared test fixtures for tracking and reframing tests.

Environment-driven settings are cleared for every test so results do not
depend on the developer's shell or a local .env file.
"""
from __future__ import annotations

import pytest

from common.types import ReframingConfig
from tracking.trackers import ByteTracker

REFRAME_ENV_VARS = (
    "REFRAME_MATCH_THRESH",
    "REFRAME_MAX_FRAMES_LOST",
    "REFRAME_FUSE_SCORE",
    "REFRAME_ASSIGNMENT",
    "REFRAME_PRESET",
    "REFRAME_MAX_HOLD_FRAMES",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in REFRAME_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


# ---------- Tracker fixtures ----------

@pytest.fixture()
def tracker() -> ByteTracker:
    return ByteTracker(match_thresh=0.7, max_frames_lost=10, assignment="hungarian")


@pytest.fixture()
def tracker_factory():
    """Build trackers with explicit overrides; defaults match the shipped config."""
    def _factory(**kwargs) -> ByteTracker:
        return ByteTracker(**kwargs)

    return _factory


# ---------- Reframing fixtures ----------

@pytest.fixture()
def raw_config() -> ReframingConfig:
    """Unsmoothed single-subject config: transforms equal the raw framing."""
    return ReframingConfig(
        output_aspect_ratio="9:16",
        smoothness=0.0,
        padding_fraction=0.0,
        target_selection="largest",
        tracking_mode="single",
        max_hold_frames=2,
    )
