"""Pydantic models for the HTTP/WS API."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from posesketch.core.config.presets import SKETCHES
from posesketch.core.config.settings import parse_selection


class KeypointSchema(BaseModel):
    """Keypoint payload (pixel coordinates)."""

    x: float
    y: float
    confidence: float | None = None
    name: str | None = None


class BoxSchema(BaseModel):
    x_min: float
    y_min: float
    x_max: float
    y_max: float


class EntitySchema(BaseModel):
    """Detected face/body/hand payload; absent keypoints are null."""

    keypoints: list[KeypointSchema | None]
    box: BoxSchema | None = None
    score: float | None = None


class FrameSchema(BaseModel):
    """Per-detection metadata payload."""

    frame_id: int
    detection_version: int
    sketch: str
    entities: list[EntitySchema]
    centroid: tuple[float, float] | list[float] | None = None
    show_video: bool
    detect_fps: float
    render_fps: float


class StatsSchema(BaseModel):
    """High-level summary stats payload."""

    sketch: str
    total_entities: int
    detect_fps: float
    render_fps: float
    show_video: bool
    error: str | None = None


class KeyResultSchema(BaseModel):
    key: str
    action: str
    show_video: bool
    snapshot: str | None = None


class ConfigSchema(BaseModel):
    """Runtime configuration payload."""

    sketch: str
    video_source: str = "webcam"
    camera_index: int = Field(default=0, ge=0)
    video_path: str | None = None
    width: int = Field(default=640, gt=0)
    height: int = Field(default=480, gt=0)
    flip_video: bool = True
    show_video: bool = True
    confidence_threshold: float | None = Field(default=None, ge=0.0, le=1.0)
    model_name: str = "yolo11n-pose.pt"
    min_score: float = Field(default=0.25, gt=0.0, le=1.0)
    max_entities: int = Field(default=4, ge=1)
    measure: str = "none"
    measure_from: str = "0:4"
    measure_to: str = "0:8"
    snapshot_dir: str = "snapshots"
    target_fps: float = Field(default=30.0, ge=0)
    jpeg_quality: int = Field(default=80, ge=10, le=100)

    @field_validator("sketch")
    @classmethod
    def _validate_sketch(cls, v: str) -> str:
        if v not in SKETCHES:
            raise ValueError(f"sketch must be one of {'|'.join(SKETCHES)}")
        return v

    @field_validator("video_source")
    @classmethod
    def _validate_source(cls, v: str) -> str:
        if v not in {"webcam", "file"}:
            raise ValueError("video_source must be webcam|file")
        return v

    @field_validator("measure")
    @classmethod
    def _validate_measure(cls, v: str) -> str:
        if v not in {"none", "distance", "angle"}:
            raise ValueError("measure must be none|distance|angle")
        return v

    @field_validator("measure_from", "measure_to")
    @classmethod
    def _validate_selection(cls, v: str) -> str:
        parse_selection(v)
        return v
