from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from posesketch.core.interaction import KeyBindings


@dataclass(frozen=True)
class SketchProfile:
    """Everything that distinguishes one sketch from another.

    Notes:
    - threshold: default keypoint confidence threshold; None disables filtering
    - detector: "face_mesh" | "hands" | "yolo_pose" | "blazepose"
    - style: key into `posesketch.core.overlay.render.STYLES`
    - model_options: keyword arguments for the detector constructor
    """

    name: str
    label: str
    detector: str
    style: str
    threshold: float | None
    bindings: KeyBindings
    supports_measurement: bool = False
    model_options: dict[str, Any] = field(default_factory=dict)


# Face mesh applies no threshold at all; body and hand sketches default differently.
# Kept per sketch rather than unified.
SKETCHES: dict[str, SketchProfile] = {
    "face": SketchProfile(
        name="face",
        label="Face mesh",
        detector="face_mesh",
        style="face",
        threshold=None,
        bindings=KeyBindings(toggle_keys=("s",)),
        model_options={"refine_landmarks": True},
    ),
    "hand": SketchProfile(
        name="hand",
        label="Hand pose",
        detector="hands",
        style="hand",
        threshold=0.5,
        bindings=KeyBindings(toggle_keys=("s",), snapshot_keys=("p",)),
        supports_measurement=True,
    ),
    "skeleton": SketchProfile(
        name="skeleton",
        label="Body pose (skeleton)",
        detector="yolo_pose",
        style="skeleton",
        threshold=0.2,
        bindings=KeyBindings(toggle_keys=("s",)),
    ),
    "multi": SketchProfile(
        name="multi",
        label="Multi-person boxes",
        detector="yolo_pose",
        style="boxes",
        threshold=0.2,
        bindings=KeyBindings(toggle_keys=(" ",)),
    ),
    "blaze": SketchProfile(
        name="blaze",
        label="BlazePose boxes",
        detector="blazepose",
        style="boxes",
        threshold=0.2,
        bindings=KeyBindings(toggle_keys=(" ",)),
        model_options={"model_complexity": 1},
    ),
}


def list_sketches() -> list[dict[str, Any]]:
    return [
        {
            "id": sketch_id,
            "label": profile.label,
            "detector": profile.detector,
            "threshold": profile.threshold,
        }
        for sketch_id, profile in SKETCHES.items()
    ]


def sketch_profile(sketch_id: str) -> SketchProfile:
    if sketch_id not in SKETCHES:
        raise KeyError(sketch_id)
    return SKETCHES[sketch_id]
