"""MediaPipe solutions integration (face mesh, hands, BlazePose).

MediaPipe works on RGB images and returns normalized landmarks; everything is
converted to BGR-frame pixel coordinates here.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import cv2

from posesketch.core.detectors.base import Detector
from posesketch.core.geometry import derive_box
from posesketch.core.skeleton import BLAZEPOSE_KEYPOINTS, HAND_KEYPOINTS
from posesketch.core.types import Entity, Frame, Keypoint

logger = logging.getLogger(__name__)


def _import_mediapipe() -> Any:
    try:
        import mediapipe as mp
    except ImportError as e:
        raise RuntimeError(
            'MediaPipe is not installed. Install it with: pip install "posesketch[mediapipe]"'
        ) from e
    return mp


def landmarks_to_keypoints(
    landmarks: Sequence[Any],
    width: int,
    height: int,
    names: Sequence[str] | None = None,
    use_visibility: bool = False,
) -> tuple[Keypoint | None, ...]:
    """Scale normalized landmarks to pixels, optionally naming them."""

    out: list[Keypoint | None] = []
    for i, lm in enumerate(landmarks):
        raw = {
            "x": float(lm.x) * width,
            "y": float(lm.y) * height,
            "name": names[i] if names is not None and i < len(names) else None,
        }
        if use_visibility:
            raw["confidence"] = getattr(lm, "visibility", None)
        out.append(Keypoint.from_mapping(raw))
    return tuple(out)


class _MediaPipeDetector(Detector):
    _solution: Any = None

    def _process(self, frame: Frame) -> Any:
        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        rgb.flags.writeable = False
        return self._solution.process(rgb)

    def close(self) -> None:
        if self._solution is not None:
            self._solution.close()
            self._solution = None


class FaceMeshDetector(_MediaPipeDetector):
    """Face mesh: one entity per face with a dense keypoint set and a derived box."""

    name = "face_mesh"

    def __init__(
        self,
        max_entities: int = 4,
        refine_landmarks: bool = True,
        min_score: float = 0.5,
    ) -> None:
        mp = _import_mediapipe()
        self._solution = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=False,
            max_num_faces=int(max_entities),
            refine_landmarks=bool(refine_landmarks),
            min_detection_confidence=float(min_score),
            min_tracking_confidence=float(min_score),
        )
        logger.info("Loaded MediaPipe face mesh (max_faces=%s)", max_entities)

    def detect(self, frame: Frame) -> list[Entity]:
        h, w = frame.shape[:2]
        res = self._process(frame)
        faces = getattr(res, "multi_face_landmarks", None) or []
        out: list[Entity] = []
        for face in faces:
            keypoints = landmarks_to_keypoints(face.landmark, w, h)
            out.append(Entity(keypoints=keypoints, box=derive_box(keypoints)))
        return out


class HandsDetector(_MediaPipeDetector):
    """Hand pose: 21 named keypoints per hand, no box and no per-keypoint confidence."""

    name = "hands"

    def __init__(self, max_entities: int = 4, min_score: float = 0.5) -> None:
        mp = _import_mediapipe()
        self._solution = mp.solutions.hands.Hands(
            static_image_mode=False,
            max_num_hands=int(max_entities),
            min_detection_confidence=float(min_score),
            min_tracking_confidence=float(min_score),
        )
        logger.info("Loaded MediaPipe hands (max_hands=%s)", max_entities)

    def detect(self, frame: Frame) -> list[Entity]:
        h, w = frame.shape[:2]
        res = self._process(frame)
        hands = getattr(res, "multi_hand_landmarks", None) or []
        handedness = getattr(res, "multi_handedness", None) or []
        out: list[Entity] = []
        for i, hand in enumerate(hands):
            score = None
            if i < len(handedness) and handedness[i].classification:
                score = float(handedness[i].classification[0].score)
            keypoints = landmarks_to_keypoints(hand.landmark, w, h, names=HAND_KEYPOINTS)
            out.append(Entity(keypoints=keypoints, score=score))
        return out


class BlazePoseDetector(_MediaPipeDetector):
    """BlazePose: a single body with 33 named keypoints; visibility is the confidence."""

    name = "blazepose"

    def __init__(self, model_complexity: int = 1, min_score: float = 0.25) -> None:
        mp = _import_mediapipe()
        self._solution = mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=int(model_complexity),
            smooth_landmarks=True,
            enable_segmentation=False,
            min_detection_confidence=float(min_score),
            min_tracking_confidence=float(min_score),
        )
        logger.info("Loaded MediaPipe pose (model_complexity=%s)", model_complexity)

    def detect(self, frame: Frame) -> list[Entity]:
        h, w = frame.shape[:2]
        res = self._process(frame)
        pose = getattr(res, "pose_landmarks", None)
        if pose is None:
            return []
        keypoints = landmarks_to_keypoints(
            pose.landmark, w, h, names=BLAZEPOSE_KEYPOINTS, use_visibility=True
        )
        return [Entity(keypoints=keypoints, box=derive_box(keypoints))]
