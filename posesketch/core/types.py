"""Shared type definitions used across the sketches.

This module centralizes the small, stable types (keypoints, boxes, detected
entities) so detector/cache/renderer code can stay strongly typed. Model output
arrives loosely shaped (objects, dicts, JSON); the `from_mapping` constructors are
the single place where that shape is checked.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

Frame = np.ndarray

Point = tuple[float, float]


def _field(raw: Any, *names: str) -> Any:
    """Return the first present attribute/key among `names` (or None)."""

    for name in names:
        if isinstance(raw, Mapping):
            if name in raw:
                return raw[name]
        elif hasattr(raw, name):
            return getattr(raw, name)
    return None


def _as_float(value: Any) -> float | None:
    """Coerce a model-provided number to a finite float (None when impossible)."""

    if value is None or isinstance(value, bool):
        return None
    try:
        out = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(out):
        return None
    return out


@dataclass(frozen=True)
class Keypoint:
    """A single landmark in pixel coordinates."""

    x: float
    y: float
    confidence: float | None = None
    name: str | None = None

    @property
    def xy(self) -> Point:
        return (self.x, self.y)

    @classmethod
    def from_mapping(cls, raw: Any) -> Keypoint | None:
        """Build a keypoint from model output; None when x/y are unusable."""

        if raw is None:
            return None
        if isinstance(raw, Keypoint):
            return raw
        x = _as_float(_field(raw, "x"))
        y = _as_float(_field(raw, "y"))
        if x is None or y is None:
            return None
        conf = _as_float(_field(raw, "confidence", "score"))
        name = _field(raw, "name")
        return cls(x=x, y=y, confidence=conf, name=str(name) if name is not None else None)


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in pixel coordinates."""

    x_min: float
    y_min: float
    x_max: float
    y_max: float

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    @property
    def center(self) -> Point:
        return ((self.x_min + self.x_max) / 2.0, (self.y_min + self.y_max) / 2.0)

    @classmethod
    def from_mapping(cls, raw: Any) -> BoundingBox | None:
        """Build a box from `xMin/yMin/xMax/yMax` (or snake_case) fields.

        `xMax`/`yMax` may be omitted when `width`/`height` are given.
        """

        if raw is None:
            return None
        if isinstance(raw, BoundingBox):
            return raw
        x_min = _as_float(_field(raw, "xMin", "x_min"))
        y_min = _as_float(_field(raw, "yMin", "y_min"))
        if x_min is None or y_min is None:
            return None
        x_max = _as_float(_field(raw, "xMax", "x_max"))
        y_max = _as_float(_field(raw, "yMax", "y_max"))
        if x_max is None:
            width = _as_float(_field(raw, "width"))
            x_max = x_min + width if width is not None else None
        if y_max is None:
            height = _as_float(_field(raw, "height"))
            y_max = y_min + height if height is not None else None
        if x_max is None or y_max is None:
            return None
        return cls(x_min=x_min, y_min=y_min, x_max=x_max, y_max=y_max)


@dataclass(frozen=True)
class Entity:
    """One detected subject (face, body or hand) in one frame.

    `keypoints` is indexed by the model's keypoint index; a missing or malformed
    keypoint is kept as `None` so later indices do not shift.
    """

    keypoints: tuple[Keypoint | None, ...] = ()
    box: BoundingBox | None = None
    score: float | None = None

    def keypoint(self, index: int) -> Keypoint | None:
        """Return keypoint `index`, or None when absent."""

        if index < 0 or index >= len(self.keypoints):
            return None
        return self.keypoints[index]

    def valid_keypoints(self) -> list[Keypoint]:
        return [kp for kp in self.keypoints if kp is not None]

    @classmethod
    def from_mapping(cls, raw: Any) -> Entity:
        """Convert raw entity data (`{keypoints, box, score}`) into an `Entity`."""

        if isinstance(raw, Entity):
            return raw
        raw_kps = _field(raw, "keypoints")
        keypoints: tuple[Keypoint | None, ...] = ()
        if isinstance(raw_kps, Iterable) and not isinstance(raw_kps, (str, bytes, Mapping)):
            keypoints = tuple(Keypoint.from_mapping(kp) for kp in raw_kps)
        return cls(
            keypoints=keypoints,
            box=BoundingBox.from_mapping(_field(raw, "box")),
            score=_as_float(_field(raw, "score", "confidence")),
        )


def coerce_entities(results: Any) -> list[Entity]:
    """Normalize a detection batch into a list of entities.

    `None` becomes an empty list. Mappings and objects exposing a `keypoints`
    attribute are converted; anything else is skipped.
    """

    if results is None:
        return []
    if isinstance(results, (Entity, Mapping)) or hasattr(results, "keypoints"):
        results = [results]
    elif not isinstance(results, Iterable) or isinstance(results, (str, bytes)):
        return []
    out: list[Entity] = []
    for item in results:
        if isinstance(item, Entity):
            out.append(item)
        elif isinstance(item, Mapping) or hasattr(item, "keypoints"):
            out.append(Entity.from_mapping(item))
    return out
