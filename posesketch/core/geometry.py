"""Box, centroid and measurement helpers.

All inputs are pixel coordinates in the video frame's space.
"""

from __future__ import annotations

import math
from collections.abc import Iterable

from posesketch.core.types import BoundingBox, Entity, Keypoint, Point


def derive_box(keypoints: Iterable[Keypoint | None]) -> BoundingBox | None:
    """Return the min/max envelope over all present keypoints."""

    pts = [kp for kp in keypoints if kp is not None]
    if not pts:
        return None
    xs = [kp.x for kp in pts]
    ys = [kp.y for kp in pts]
    return BoundingBox(x_min=min(xs), y_min=min(ys), x_max=max(xs), y_max=max(ys))


def entity_box(entity: Entity, derive: bool = True) -> BoundingBox | None:
    """Return the model's box, falling back to the keypoint envelope."""

    if entity.box is not None:
        return entity.box
    if not derive:
        return None
    return derive_box(entity.keypoints)


def centroid(box: BoundingBox) -> Point:
    return box.center


def distance(p1: Point, p2: Point) -> float:
    """Euclidean distance between two points."""

    return math.hypot(p2[0] - p1[0], p2[1] - p1[1])


def angle(base: Point, end: Point) -> float:
    """Angle of `base -> end` from the horizontal, in degrees within [0, 360).

    Image y grows downwards, so a point straight above the base reads 270.
    """

    deg = math.degrees(math.atan2(end[1] - base[1], end[0] - base[0]))
    if deg < 0:
        deg += 360.0
    return deg


def is_visible(keypoint: Keypoint | None, threshold: float | None) -> bool:
    """Return True when the keypoint should be drawn.

    The threshold is exclusive. Keypoints without a confidence are always
    visible, and a `None` threshold disables filtering.
    """

    if keypoint is None:
        return False
    if threshold is None or keypoint.confidence is None:
        return True
    return keypoint.confidence > threshold
