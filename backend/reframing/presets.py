"""Named reframing presets and output size helpers."""
from __future__ import annotations

from typing import Dict, Tuple

from common.exceptions import InvalidInputError
from common.types import ASPECT_RATIOS, ReframingConfig, parse_aspect_ratio

REFRAMING_PRESETS: Dict[str, dict] = {
    "instagram-reel": {
        "output_aspect_ratio": "9:16",
        "tracking_mode": "single",
        "smoothness": 0.85,
        "padding_fraction": 0.15,
        "target_selection": "largest",
    },
    "youtube-short": {
        "output_aspect_ratio": "9:16",
        "tracking_mode": "single",
        "smoothness": 0.8,
        "padding_fraction": 0.2,
        "target_selection": "centered",
    },
    "instagram-post": {
        "output_aspect_ratio": "1:1",
        "tracking_mode": "single",
        "smoothness": 0.9,
        "padding_fraction": 0.1,
        "target_selection": "centered",
    },
    "tiktok": {
        "output_aspect_ratio": "9:16",
        "tracking_mode": "single",
        "smoothness": 0.75,
        "padding_fraction": 0.15,
        "target_selection": "largest",
    },
    "landscape-to-portrait": {
        "output_aspect_ratio": "9:16",
        "tracking_mode": "auto",
        "smoothness": 0.8,
        "padding_fraction": 0.2,
        "target_selection": "most-confident",
    },
    "portrait-to-landscape": {
        "output_aspect_ratio": "16:9",
        "tracking_mode": "auto",
        "smoothness": 0.85,
        "padding_fraction": 0.25,
        "target_selection": "centered",
    },
    "zoom-meeting": {
        "output_aspect_ratio": "16:9",
        "tracking_mode": "single",
        "smoothness": 0.95,
        "padding_fraction": 0.3,
        "target_selection": "largest",
    },
    "presentation": {
        "output_aspect_ratio": "16:9",
        "tracking_mode": "single",
        "smoothness": 0.98,
        "padding_fraction": 0.4,
        "target_selection": "centered",
    },
}


def get_preset(name: str, **overrides) -> ReframingConfig:
    """Build a ReframingConfig from a named preset, with optional field overrides."""
    preset = REFRAMING_PRESETS.get(name)
    if preset is None:
        raise InvalidInputError(f"Unknown preset {name!r}; choose from {sorted(REFRAMING_PRESETS)}")
    return ReframingConfig(**{**preset, **overrides})


def get_output_dimensions(input_width: int, input_height: int, output_ratio: str | float) -> Tuple[int, int]:
    """Largest output size of `output_ratio` that fits the input resolution."""
    if input_width <= 0 or input_height <= 0:
        raise InvalidInputError(f"Input size must be positive, got {input_width}x{input_height}")
    ratio = ASPECT_RATIOS.get(output_ratio) if isinstance(output_ratio, str) else None
    if ratio is None:
        ratio = parse_aspect_ratio(output_ratio)

    if input_width / input_height > ratio:
        # Input is wider than the output ratio
        height = float(input_height)
        width = height * ratio
    else:
        width = float(input_width)
        height = width / ratio
    return round(width), round(height)
