"""
Runtime settings resolved from the environment.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from reframing import config as reframing_config
from tracking import config as tracking_config

BASE_DIR = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=BASE_DIR / ".env")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_env_number(value: Any, env_name: str, cast: type) -> Any:
    # Environment values arrive as strings; explicit arguments pass through
    if not isinstance(value, str):
        return value
    try:
        return cast(value.strip())
    except ValueError as exc:
        raise ValueError(f"{env_name} must be {cast.__name__}, got {value!r}") from exc


class TrackerSettings(BaseModel):
    model_config = ConfigDict(validate_default=True, allow_inf_nan=False)

    match_thresh: float = Field(
        default_factory=lambda: os.getenv("REFRAME_MATCH_THRESH", str(tracking_config.MATCH_THRESH)),
        gt=0,
        le=1,
    )
    max_frames_lost: int = Field(
        default_factory=lambda: os.getenv("REFRAME_MAX_FRAMES_LOST", str(tracking_config.MAX_FRAMES_LOST)),
        ge=0,
    )
    fuse_score: bool = Field(default_factory=lambda: _env_bool("REFRAME_FUSE_SCORE", tracking_config.FUSE_SCORE))
    assignment: str = Field(
        default_factory=lambda: os.getenv("REFRAME_ASSIGNMENT", tracking_config.ASSIGNMENT_METHOD).strip().lower()
    )

    @field_validator("match_thresh", "max_frames_lost", mode="before")
    @classmethod
    def _env_number(cls, value: Any, info: ValidationInfo) -> Any:
        if info.field_name == "match_thresh":
            return _parse_env_number(value, "REFRAME_MATCH_THRESH", float)
        return _parse_env_number(value, "REFRAME_MAX_FRAMES_LOST", int)

    @field_validator("assignment")
    @classmethod
    def _known_method(cls, value: str) -> str:
        if value not in tracking_config.ASSIGNMENT_METHODS:
            raise ValueError(f"assignment must be one of {tracking_config.ASSIGNMENT_METHODS}, got {value!r}")
        return value


class ReframeSettings(BaseModel):
    model_config = ConfigDict(validate_default=True)

    preset: str = Field(default_factory=lambda: os.getenv("REFRAME_PRESET", reframing_config.DEFAULT_PRESET).strip())
    max_hold_frames: int = Field(
        default_factory=lambda: os.getenv("REFRAME_MAX_HOLD_FRAMES", str(reframing_config.MAX_HOLD_FRAMES)),
        ge=0,
    )

    @field_validator("max_hold_frames", mode="before")
    @classmethod
    def _env_hold_frames(cls, value: Any) -> Any:
        return _parse_env_number(value, "REFRAME_MAX_HOLD_FRAMES", int)
