"""Detector construction by sketch profile.

Backends are imported lazily so a sketch only pulls in the model library it uses.
"""

from __future__ import annotations

from posesketch.core.config.presets import SketchProfile
from posesketch.core.config.settings import SketchSettings
from posesketch.core.detectors.base import Detector


def make_detector(profile: SketchProfile, settings: SketchSettings) -> Detector:
    """Instantiate the detector a sketch profile asks for."""

    opts = dict(profile.model_options)
    if profile.detector == "yolo_pose":
        from posesketch.core.detectors.yolo import YoloPoseDetector

        return YoloPoseDetector(
            settings.model_name,
            conf=settings.min_score,
            max_entities=settings.max_entities,
            **opts,
        )
    if profile.detector == "face_mesh":
        from posesketch.core.detectors.mp_solutions import FaceMeshDetector

        return FaceMeshDetector(max_entities=settings.max_entities, min_score=settings.min_score, **opts)
    if profile.detector == "hands":
        from posesketch.core.detectors.mp_solutions import HandsDetector

        return HandsDetector(max_entities=settings.max_entities, min_score=settings.min_score, **opts)
    if profile.detector == "blazepose":
        from posesketch.core.detectors.mp_solutions import BlazePoseDetector

        return BlazePoseDetector(min_score=settings.min_score, **opts)
    raise ValueError(f"Unknown detector kind: {profile.detector}")
