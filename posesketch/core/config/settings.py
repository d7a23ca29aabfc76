"""Sketch configuration.

Settings are loaded from YAML defaults and overridden by environment variables
prefixed with `PSK_`.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from posesketch.core.config.presets import SKETCHES, SketchProfile, sketch_profile
from posesketch.core.overlay.render import MeasurementSpec


class SketchSettings(BaseSettings):
    """Runtime configuration loaded from YAML defaults and `PSK_` env overrides."""

    sketch: str = Field("skeleton", description="face|hand|skeleton|multi|blaze")
    video_source: str = Field("webcam", description="webcam|file")
    camera_index: int = 0
    video_path: str | None = None
    # Canvas and capture size.
    width: int = 640
    height: int = 480
    # Mirror the video (and therefore the keypoints) horizontally.
    flip_video: bool = True
    show_video: bool = True
    # None uses the sketch default (0.2 body, 0.5 hand, unused for face mesh).
    confidence_threshold: float | None = None
    # Ultralytics pose model used by the skeleton/multi sketches.
    model_name: str = "yolo11n-pose.pt"
    # Minimum per-entity score inside the model (poses/faces/hands below are dropped).
    min_score: float = 0.25
    max_entities: int = 4
    # Hand sketch measurement between two "<entity>:<keypoint>" selections.
    measure: str = Field("none", description="none|distance|angle")
    measure_from: str = "0:4"
    measure_to: str = "0:8"
    snapshot_dir: str = "snapshots"
    # Render cadence. 0 means "as fast as possible".
    target_fps: float = 30.0
    jpeg_quality: int = 80

    model_config = SettingsConfigDict(env_prefix="PSK_", validate_assignment=True)

    @field_validator("sketch")
    @classmethod
    def _validate_sketch(cls, v: str) -> str:
        v2 = str(v).strip().lower()
        if v2 not in SKETCHES:
            raise ValueError(f"sketch must be one of {'|'.join(SKETCHES)}")
        return v2

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v

    @field_validator("width", "height")
    @classmethod
    def _validate_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("width/height must be > 0")
        return v

    @field_validator("confidence_threshold")
    @classmethod
    def _validate_threshold(cls, v: float | None) -> float | None:
        if v is None:
            return v
        if not 0.0 <= float(v) <= 1.0:
            raise ValueError("confidence_threshold must be in [0, 1]")
        return float(v)

    @field_validator("min_score")
    @classmethod
    def _validate_min_score(cls, v: float) -> float:
        if not 0.0 < float(v) <= 1.0:
            raise ValueError("min_score must be in (0, 1]")
        return float(v)

    @field_validator("max_entities")
    @classmethod
    def _validate_max_entities(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_entities must be >= 1")
        return v

    @field_validator("measure")
    @classmethod
    def _validate_measure(cls, v: str) -> str:
        v2 = str(v).strip().lower()
        if v2 not in {"none", "distance", "angle"}:
            raise ValueError("measure must be none|distance|angle")
        return v2

    @field_validator("measure_from", "measure_to")
    @classmethod
    def _validate_selection(cls, v: str) -> str:
        parse_selection(v)  # will raise if invalid
        return v

    @field_validator("target_fps")
    @classmethod
    def _validate_target_fps(cls, v: float) -> float:
        if v < 0:
            raise ValueError("target_fps must be >= 0")
        return float(v)

    @field_validator("jpeg_quality")
    @classmethod
    def _validate_jpeg_quality(cls, v: int) -> int:
        if not 10 <= v <= 100:
            raise ValueError("jpeg_quality must be in [10, 100]")
        return v


def settings_to_dict(settings: SketchSettings) -> dict[str, Any]:
    return settings.model_dump()


def parse_selection(selection: str) -> tuple[int, int]:
    """Parse "<entity>:<keypoint>" (e.g. "0:4") into a pair of indices."""

    if ":" not in selection:
        raise ValueError("selection must be formatted as <entity>:<keypoint>, e.g., 0:4")
    entity_s, point_s = selection.split(":", 1)
    entity_i, point_i = int(entity_s), int(point_s)
    if entity_i < 0 or point_i < 0:
        raise ValueError("selection indices must be >= 0")
    return entity_i, point_i


def _config_path() -> Path:
    """Return the YAML configuration path (defaults to config/sketch.config.yml)."""

    return Path(os.getenv("PSK_CONFIG", "config/sketch.config.yml"))


def load_settings() -> SketchSettings:
    """Load settings from YAML and environment variables.

    YAML provides defaults; environment variables override.
    """

    data: dict[str, Any] = {}
    path = _config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    env_settings = SketchSettings()
    env_overrides: dict[str, Any] = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged = {**data, **env_overrides}
    return SketchSettings(**merged)


def profile_from_settings(settings: SketchSettings) -> SketchProfile:
    return sketch_profile(settings.sketch)


def threshold_from_settings(settings: SketchSettings) -> float | None:
    """Return the effective confidence threshold for the configured sketch."""

    if settings.confidence_threshold is not None:
        return settings.confidence_threshold
    return profile_from_settings(settings).threshold


def measurement_from_settings(settings: SketchSettings) -> MeasurementSpec | None:
    """Return the measurement to draw, or None when disabled/unsupported."""

    if settings.measure == "none" or not profile_from_settings(settings).supports_measurement:
        return None
    hand1, point1 = parse_selection(settings.measure_from)
    hand2, point2 = parse_selection(settings.measure_to)
    return MeasurementSpec(mode=settings.measure, hand1=hand1, point1=point1, hand2=hand2, point2=point2)
