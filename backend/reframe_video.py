#!/usr/bin/env python3
"""
Subject-following reframing from detector output.

Reads per-frame detections (JSON), tracks subjects across frames, and writes
the tracks plus one virtual-camera transform per output frame (JSON).

Input is either a list of frames or an object with a "frames" list and
optional "width"/"height":

    [{"frame_number": 0, "boxes": [{"x": 10, "y": 20, "width": 50,
      "height": 120, "confidence": 0.9}]}, ...]
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

from common.exceptions import ReframeError
from common.settings import ReframeSettings, TrackerSettings
from common.types import ReframingConfig, TargetSelectionStrategy
from pipeline.session import ReframeSession
from pipeline.video import get_video_info
from reframing.presets import REFRAMING_PRESETS, get_output_dimensions, get_preset
from tracking import config as tracking_config

logger = logging.getLogger("reframe_video")


def load_detections(path: Path) -> Tuple[List[dict], Optional[int], Optional[int]]:
    """Return (frames, width, height) from a detections JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, list):
        return data, None, None
    if isinstance(data, dict) and isinstance(data.get("frames"), list):
        return data["frames"], data.get("width"), data.get("height")
    raise ValueError(f"{path}: expected a list of frames or an object with a 'frames' list")


def build_config(args: argparse.Namespace) -> ReframingConfig:
    overrides = {}
    if args.aspect is not None:
        overrides["output_aspect_ratio"] = args.aspect
    if args.smoothness is not None:
        overrides["smoothness"] = args.smoothness
    if args.padding is not None:
        overrides["padding_fraction"] = args.padding
    if args.mode is not None:
        overrides["tracking_mode"] = args.mode
    if args.strategy is not None:
        overrides["target_selection"] = args.strategy
    if args.track_id is not None:
        overrides["target_selection"] = TargetSelectionStrategy.MANUAL
        overrides["manual_track_id"] = args.track_id
    if args.max_pan is not None:
        overrides["max_pan_per_frame"] = args.max_pan

    preset = args.preset or ReframeSettings().preset
    return get_preset(preset, **overrides)


def build_tracker_settings(args: argparse.Namespace) -> TrackerSettings:
    overrides = {}
    if args.match_thresh is not None:
        overrides["match_thresh"] = args.match_thresh
    if args.max_frames_lost is not None:
        overrides["max_frames_lost"] = args.max_frames_lost
    if args.assignment is not None:
        overrides["assignment"] = args.assignment
    if args.fuse_score:
        overrides["fuse_score"] = True
    return TrackerSettings(**overrides)


def resolve_frame_size(
    args: argparse.Namespace, width: Optional[int], height: Optional[int]
) -> Tuple[int, int, Optional[int]]:
    """Frame size and frame count: flags win, then the detections file, then the video."""
    total_frames = None
    if args.video:
        info = get_video_info(args.video)
        if info is None:
            raise ValueError(f"Could not read video metadata from {args.video}")
        width = width or info.width
        height = height or info.height
        total_frames = info.total_frames or None
    width = args.width or width
    height = args.height or height
    if not width or not height:
        raise ValueError("Frame size unknown: pass --width/--height or --video")
    return int(width), int(height), total_frames


def write_result(path: Path, session: ReframeSession) -> None:
    config = session.engine.config
    out_w, out_h = get_output_dimensions(session.frame_width, session.frame_height, config.output_aspect_ratio)
    transforms = []
    for frame, transform in session.transforms().items():
        crop = session.crop_rect(frame)
        transforms.append({
            "frame": frame,
            **transform.model_dump(),
            "crop": {"x": crop.x, "y": crop.y, "width": crop.width, "height": crop.height},
        })

    result = {
        "frame_width": session.frame_width,
        "frame_height": session.frame_height,
        "output_width": out_w,
        "output_height": out_h,
        "config": config.model_dump(mode="json"),
        "skipped_frames": session.skipped_frames,
        "tracks": [obj.model_dump(mode="json") for obj in session.tracked_objects()],
        "transforms": transforms,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(result, f, indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Track subjects in detector output and compute a reframing camera path",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Vertical reel from a 1080p source
  python reframe_video.py --detections dets.json --width 1920 --height 1080

  # Frame size and length probed from the source video, square output
  python reframe_video.py --detections dets.json --video input.mp4 --aspect 1:1

  # Follow one subject
  python reframe_video.py --detections dets.json --video input.mp4 --track-id 3

Presets: {", ".join(sorted(REFRAMING_PRESETS))}

Tuning:
  --smoothness: 0 follows the subject exactly, 1 is maximally damped.
  --match-thresh: IoU cost ceiling; lower is stricter (default {tracking_config.MATCH_THRESH}).
  --max-frames-lost: frames a lost subject is kept before its id is retired.
        """,
    )

    parser.add_argument("--detections", required=True, type=Path, help="Detections JSON file")
    parser.add_argument("--out", type=Path, default=None,
                        help="Output JSON path (default: <detections>_reframe.json)")

    # Source
    parser.add_argument("--video", default=None, help="Source video, probed for frame size and length")
    parser.add_argument("--width", type=int, default=None, help="Source frame width in pixels")
    parser.add_argument("--height", type=int, default=None, help="Source frame height in pixels")

    # Reframing
    parser.add_argument("--preset", choices=sorted(REFRAMING_PRESETS), default=None,
                        help="Reframing preset (default: REFRAME_PRESET or instagram-reel)")
    parser.add_argument("--aspect", default=None, help="Output aspect ratio, e.g. 9:16 or 1.0")
    parser.add_argument("--smoothness", type=float, default=None, help="Camera smoothing in [0, 1]")
    parser.add_argument("--padding", type=float, default=None, help="Padding around the subject (fraction)")
    parser.add_argument("--mode", choices=["single", "multi", "auto"], default=None, help="Tracking mode")
    parser.add_argument("--strategy", choices=[s.value for s in TargetSelectionStrategy], default=None,
                        help="Target selection strategy")
    parser.add_argument("--track-id", type=int, default=None, help="Follow this track id")
    parser.add_argument("--max-pan", type=float, default=None, help="Max camera movement per frame (pixels)")

    # Tracking
    parser.add_argument("--match-thresh", type=float, default=None, help="Association cost threshold")
    parser.add_argument("--max-frames-lost", type=int, default=None, help="Frames to keep lost tracks")
    parser.add_argument("--assignment", choices=list(tracking_config.ASSIGNMENT_METHODS), default=None,
                        help="Assignment method")
    parser.add_argument("--fuse-score", action="store_true", help="Weight IoU by detector confidence")

    parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    out_path = args.out or args.detections.with_name(f"{args.detections.stem}_reframe.json")

    try:
        frames, width, height = load_detections(args.detections)
        width, height, total_frames = resolve_frame_size(args, width, height)
        session = ReframeSession(
            width,
            height,
            reframing_config=build_config(args),
            tracker_settings=build_tracker_settings(args),
        )
        session.run(frames, total_frames=total_frames)
    except (OSError, ValueError, ReframeError) as exc:
        logger.error("%s", exc)
        return 1

    write_result(out_path, session)
    logger.info("Wrote %d transforms and %d tracks to %s",
                len(session.transforms()), len(session.tracked_objects()), out_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
