"""
Pydantic models shared by the tracking and reframing packages.

All box coordinates are source-frame pixels with a top-left origin.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from common.exceptions import InvalidInputError
from reframing import config as reframing_config

# Named output aspect ratios (width / height)
ASPECT_RATIOS: Dict[str, float] = {
    "16:9": 16 / 9,
    "9:16": 9 / 16,
    "1:1": 1.0,
    "4:3": 4 / 3,
    "3:4": 3 / 4,
}


class TrackingMode(str, Enum):
    SINGLE = "single"
    MULTI = "multi"
    AUTO = "auto"


class TargetSelectionStrategy(str, Enum):
    LARGEST = "largest"
    CENTERED = "centered"
    MOST_CONFIDENT = "most-confident"
    MANUAL = "manual"


class ProcessingStage(str, Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    REFRAMING = "reframing"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"


class BoundingBox(BaseModel):
    """
    One detector box for one frame.
    The tracker never mutates a box; it returns copies carrying `track_id`.
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    x: float                                   # Top-left X (pixels)
    y: float                                   # Top-left Y (pixels)
    width: float = Field(..., ge=0)            # Box width (pixels)
    height: float = Field(..., ge=0)           # Box height (pixels)
    confidence: float = Field(..., ge=0, le=1) # Detector score (0-1)
    class_label: str = "person"
    class_id: int = 0
    track_id: int | None = None                # Set by the tracker for matched boxes

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @property
    def tlwh(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height

    @property
    def tlbr(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height

    def with_track_id(self, track_id: int) -> "BoundingBox":
        return self.model_copy(update={"track_id": track_id})


class Detection(BaseModel):
    """All detector boxes for a single frame."""
    frame_number: int = Field(..., ge=0)
    timestamp: float = 0.0  # Seconds from the start of the video
    boxes: List[BoundingBox] = Field(default_factory=list)


class FrameTransform(BaseModel):
    """
    Virtual camera for one output frame.

    `x`/`y` is the crop center in source pixels. `scale` is the zoom relative
    to the largest crop of the output aspect ratio that fits the source frame,
    so scale 1.0 is that largest crop and 2.0 is half its width and height.
    """
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    x: float
    y: float
    scale: float = Field(1.0, gt=0)
    rotation: float = 0.0


class TrackedObject(BaseModel):
    """Consumer-facing view of one track and its observed boxes."""
    id: int
    first_frame: int
    last_frame: int
    positions: Dict[int, BoundingBox] = Field(default_factory=dict)
    label: str = "person"
    selected: bool = False


class ReframingConfig(BaseModel):
    """Settings for one reframing run."""
    model_config = ConfigDict(allow_inf_nan=False)

    output_aspect_ratio: float = Field(9 / 16, gt=0)
    tracking_mode: TrackingMode = TrackingMode.SINGLE
    smoothness: float = Field(0.85, ge=0, le=1)
    padding_fraction: float = Field(0.15, ge=0)
    target_selection: TargetSelectionStrategy = TargetSelectionStrategy.LARGEST
    manual_track_id: int | None = None
    manual_box: BoundingBox | None = None
    box_offset: Tuple[float, float] = (0.0, 0.0)      # Camera center offset (pixels)
    reframe_box_scale: float | None = Field(None, gt=0)  # Fixed zoom, ignores target size
    max_hold_frames: int = Field(reframing_config.MAX_HOLD_FRAMES, ge=0)  # Hold last target across gaps
    max_pan_per_frame: float | None = Field(None, gt=0)  # Camera center pixels per frame
    max_zoom: float = Field(reframing_config.DEFAULT_MAX_ZOOM, ge=1)
    interpolate_gaps: bool = True

    @field_validator("output_aspect_ratio", mode="before")
    @classmethod
    def _named_aspect_ratio(cls, value: Any) -> Any:
        if isinstance(value, str):
            return parse_aspect_ratio(value)
        return value


class ProcessingStatus(BaseModel):
    stage: ProcessingStage = ProcessingStage.IDLE
    progress: float = Field(0.0, ge=0, le=1)
    processed: int = 0
    total: int = 0
    message: str = ""
    error: Optional[str] = None


def parse_aspect_ratio(value: str | float) -> float:
    """Accept '9:16', '16/9', a registered name, or a number."""
    if isinstance(value, (int, float)):
        ratio = float(value)
    elif value in ASPECT_RATIOS:
        ratio = ASPECT_RATIOS[value]
    else:
        sep = ":" if ":" in value else "/"
        parts = value.split(sep)
        try:
            if len(parts) == 2:
                ratio = float(parts[0]) / float(parts[1])
            else:
                ratio = float(value)
        except (ValueError, ZeroDivisionError) as exc:
            raise InvalidInputError(f"Invalid aspect ratio: {value!r}") from exc
    if ratio <= 0:
        raise InvalidInputError(f"Aspect ratio must be positive, got {value!r}")
    return ratio


def parse_boxes(boxes: Iterable[BoundingBox | dict], frame_number: int | None = None) -> List[BoundingBox]:
    """Validate detector output at the tracking boundary."""
    parsed: List[BoundingBox] = []
    for index, box in enumerate(boxes):
        if isinstance(box, BoundingBox):
            parsed.append(box)
            continue
        try:
            parsed.append(BoundingBox.model_validate(box))
        except ValidationError as exc:
            where = f"frame {frame_number}, box {index}" if frame_number is not None else f"box {index}"
            raise InvalidInputError(f"Malformed bounding box ({where}): {exc}") from exc
    return parsed


def parse_detection(data: Detection | dict) -> Detection:
    if isinstance(data, Detection):
        return data
    try:
        return Detection.model_validate(data)
    except ValidationError as exc:
        raise InvalidInputError(f"Malformed detection frame: {exc}") from exc
