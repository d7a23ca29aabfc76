"""Turn cached detections into drawing commands.

`render_overlays` is a pure function of (entities, style, threshold, centroid,
measurement): it never mutates its inputs and never raises on partial detections.
Entities without a usable box skip the box layer; keypoints that are absent or not
visible are skipped; skeleton segments need both endpoints visible.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from posesketch.core.geometry import angle, distance, entity_box, is_visible
from posesketch.core.overlay.commands import (
    GREEN,
    ORANGE,
    ORANGE_FADED,
    RED,
    WHITE,
    YELLOW,
    Arc,
    Circle,
    DrawCommand,
    Line,
    Rect,
    Text,
)
from posesketch.core.skeleton import BODY_SKELETON
from posesketch.core.types import BoundingBox, Entity, Keypoint, Point

ARC_RADIUS = 30.0


@dataclass(frozen=True)
class OverlayStyle:
    """Per-sketch look of the overlay."""

    label: str = "Entity"
    # "above" | "inside" | "none"
    label_position: str = "inside"
    derive_boxes: bool = False
    box_thickness: int = 2
    show_dimensions: bool = False
    show_box_center: bool = False
    show_keypoints: bool = True
    max_keypoints: int | None = None
    point_diameter: float = 10.0
    show_index: bool = True
    show_names: bool = False
    coord_offset: float = 10.0
    draw_skeleton: bool = False
    show_centroid: bool = False


STYLES: dict[str, OverlayStyle] = {
    "face": OverlayStyle(
        label="Face",
        label_position="above",
        point_diameter=5.0,
        show_index=False,
        coord_offset=5.0,
    ),
    "hand": OverlayStyle(
        label="Hand",
        derive_boxes=True,
        show_dimensions=True,
        point_diameter=10.0,
        coord_offset=10.0,
    ),
    "skeleton": OverlayStyle(
        label="Person",
        show_dimensions=True,
        max_keypoints=17,
        point_diameter=20.0,
        show_names=True,
        coord_offset=15.0,
        draw_skeleton=True,
        show_centroid=True,
    ),
    "boxes": OverlayStyle(
        label="Person",
        label_position="none",
        box_thickness=5,
        show_box_center=True,
        show_keypoints=False,
    ),
}


@dataclass(frozen=True)
class MeasurementSpec:
    """Which two keypoints to measure, as (entity index, keypoint index) pairs."""

    mode: str = "none"  # "none" | "distance" | "angle"
    hand1: int = 0
    point1: int = 4
    hand2: int = 0
    point2: int = 8


def js_round(value: float) -> int:
    """Round half up (so 2.5 -> 3 and -2.5 -> -2), matching on-screen labels."""

    return int(math.floor(value + 0.5))


def format_xy(x: float, y: float) -> str:
    return f"({js_round(x)}, {js_round(y)})"


def _box_commands(index: int, box: BoundingBox, style: OverlayStyle) -> list[DrawCommand]:
    cmds: list[DrawCommand] = [
        Rect(box.x_min, box.y_min, box.width, box.height, GREEN, style.box_thickness)
    ]
    cx = box.x_min + box.width / 2.0
    if style.show_box_center:
        center_x, center_y = box.center
        cmds.append(
            Text(
                format_xy(center_x, center_y),
                (cx, box.y_min + box.height / 2.0),
                20,
                GREEN,
                align="center",
                valign="center",
            )
        )
    if style.show_dimensions:
        cmds.append(
            Text(
                f"Width: {js_round(box.width)}px",
                (cx, box.y_min - 10),
                12,
                GREEN,
                align="center",
                valign="center",
            )
        )
        cmds.append(
            Text(
                f"Height: {js_round(box.height)}px",
                (box.x_min - 10, box.y_min + box.height / 2.0),
                12,
                GREEN,
                align="center",
                valign="center",
                rotation=-90,
            )
        )
    if style.label_position == "above":
        cmds.append(
            Text(f"{style.label} {index}", (cx, box.y_min - 10), 12, GREEN, "center", "center")
        )
    elif style.label_position == "inside":
        cmds.append(
            Text(f"{style.label} {index}", (cx, box.y_min + 20), 12, GREEN, "center", "center")
        )
    return cmds


def _point_commands(index: int, kp: Keypoint, style: OverlayStyle) -> list[DrawCommand]:
    cmds: list[DrawCommand] = [Circle(kp.xy, style.point_diameter, GREEN)]
    if style.show_index:
        cmds.append(Text(str(index), kp.xy, 10, WHITE, "center", "center"))
    label = format_xy(kp.x, kp.y)
    if style.show_names and kp.name:
        label = f"{kp.name}\n{label}"
    cmds.append(Text(label, (kp.x, kp.y + style.coord_offset), 8, YELLOW, "center", "top"))
    return cmds


def _skeleton_commands(entity: Entity, threshold: float | None) -> list[DrawCommand]:
    cmds: list[DrawCommand] = []
    for start_idx, end_idx in BODY_SKELETON:
        start = entity.keypoint(start_idx)
        end = entity.keypoint(end_idx)
        if start is None or end is None:
            continue
        if not (is_visible(start, threshold) and is_visible(end, threshold)):
            continue
        cmds.append(Line(start.xy, end.xy, GREEN, 3))
    return cmds


def centroid_commands(center: Point) -> list[DrawCommand]:
    x, y = center
    return [
        Circle(center, 15, RED),
        Text("C", center, 10, WHITE, "center", "center"),
        Text(f"Centroid: {format_xy(x, y)}", (x, y + 15), 8, YELLOW, "center", "top"),
    ]


def select_keypoint(entities: Sequence[Entity], entity_index: int, point_index: int) -> Keypoint | None:
    """Return a keypoint by (entity, keypoint) index, or None when missing."""

    if entity_index < 0 or entity_index >= len(entities):
        return None
    return entities[entity_index].keypoint(point_index)


def measure(entities: Sequence[Entity], spec: MeasurementSpec) -> float | None:
    """Return the requested distance (px) or angle (degrees), or None."""

    if spec.mode not in {"distance", "angle"}:
        return None
    p1 = select_keypoint(entities, spec.hand1, spec.point1)
    p2 = select_keypoint(entities, spec.hand2, spec.point2)
    if p1 is None or p2 is None:
        return None
    if spec.mode == "distance":
        return distance(p1.xy, p2.xy)
    return angle(p1.xy, p2.xy)


def measurement_commands(entities: Sequence[Entity], spec: MeasurementSpec) -> list[DrawCommand]:
    if spec.mode not in {"distance", "angle"}:
        return []
    p1 = select_keypoint(entities, spec.hand1, spec.point1)
    p2 = select_keypoint(entities, spec.hand2, spec.point2)
    if p1 is None or p2 is None:
        return []
    if spec.mode == "distance":
        value = distance(p1.xy, p2.xy)
        mid = ((p1.x + p2.x) / 2.0, (p1.y + p2.y) / 2.0)
        return [
            Line(p1.xy, p2.xy, ORANGE, 2),
            Text(f"{js_round(value)}px", mid, 12, ORANGE, "center", "center"),
        ]
    value = angle(p1.xy, p2.xy)
    return [
        Arc(p1.xy, ARC_RADIUS, 0.0, value, ORANGE),
        Line(p1.xy, (p1.x + ARC_RADIUS, p1.y), ORANGE_FADED, 1),
        Text(f"{js_round(value)}°", (p1.x + ARC_RADIUS + 5, p1.y), 12, ORANGE, "left", "center"),
    ]


def render_overlays(
    entities: Sequence[Entity],
    style: OverlayStyle,
    threshold: float | None,
    centroid: Point | None = None,
    measurement: MeasurementSpec | None = None,
) -> list[DrawCommand]:
    """Build the overlay for one display frame.

    Boxes are drawn first, then keypoints and skeleton lines per entity, then the
    centroid marker and the measurement.
    """

    cmds: list[DrawCommand] = []
    for i, entity in enumerate(entities):
        box = entity_box(entity, derive=style.derive_boxes)
        if box is not None:
            cmds.extend(_box_commands(i, box, style))

    for entity in entities:
        if style.show_keypoints:
            keypoints = entity.keypoints
            if style.max_keypoints is not None:
                keypoints = keypoints[: style.max_keypoints]
            for idx, kp in enumerate(keypoints):
                if kp is not None and is_visible(kp, threshold):
                    cmds.extend(_point_commands(idx, kp, style))
        if style.draw_skeleton:
            cmds.extend(_skeleton_commands(entity, threshold))

    if style.show_centroid and centroid is not None:
        cmds.extend(centroid_commands(centroid))
    if measurement is not None:
        cmds.extend(measurement_commands(entities, measurement))
    return cmds
