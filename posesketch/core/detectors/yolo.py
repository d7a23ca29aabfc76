"""Ultralytics YOLO pose integration.

Pose models emit the 17 COCO keypoints in the same order as MoveNet, so the
skeleton table applies unchanged.
"""

from __future__ import annotations

import logging
from typing import Any

import numpy as np
from ultralytics import YOLO

from posesketch.core.detectors.base import Detector
from posesketch.core.skeleton import BODY_KEYPOINTS
from posesketch.core.types import BoundingBox, Entity, Frame, Keypoint

logger = logging.getLogger(__name__)

YOLO_POSE_DEFAULT_MODEL = "yolo11n-pose.pt"


def _to_numpy(value: Any) -> np.ndarray:
    if hasattr(value, "cpu"):
        value = value.cpu()
    return value.numpy() if hasattr(value, "numpy") else np.asarray(value)


def _keypoints_from_array(kp: np.ndarray | None) -> tuple[Keypoint | None, ...]:
    """Convert an (N, 2|3) keypoint array into named keypoints."""

    if kp is None or kp.ndim != 2 or kp.shape[1] < 2:
        return ()
    out: list[Keypoint | None] = []
    for i, row in enumerate(kp):
        name = BODY_KEYPOINTS[i] if i < len(BODY_KEYPOINTS) else None
        conf = float(row[2]) if row.shape[0] >= 3 else None
        out.append(Keypoint.from_mapping({"x": row[0], "y": row[1], "confidence": conf, "name": name}))
    return tuple(out)


class YoloPoseDetector(Detector):
    """Person pose detector wrapper around Ultralytics YOLO (CPU by default)."""

    name = "yolo_pose"

    def __init__(
        self,
        model_name: str = YOLO_POSE_DEFAULT_MODEL,
        conf: float = 0.25,
        max_entities: int = 4,
        device: str = "cpu",
    ) -> None:
        """Create a detector.

        Args:
            model_name: Model path/name understood by Ultralytics (e.g. `yolo11n-pose.pt`).
            conf: Minimum person score applied inside the Ultralytics predictor.
            max_entities: Maximum number of people reported per frame.
            device: Inference device passed to `predict`.
        """

        self.model_name = model_name
        self.model = YOLO(model_name)
        logger.info("Loaded pose model %s", model_name)
        self._predict_kwargs = {
            "conf": float(conf),
            "verbose": False,
            # COCO class 0 (person) only.
            "classes": [0],
            "device": device,
            "max_det": int(max_entities),
        }

    def detect(self, frame: Frame) -> list[Entity]:
        """Run inference on a single frame and return one entity per person."""

        results = self.model.predict(frame, **self._predict_kwargs)
        if not results:
            return []

        result = results[0]
        boxes = getattr(result, "boxes", None)
        if boxes is None or len(boxes) == 0:
            return []

        # Boxes.data = (x1, y1, x2, y2, conf, cls)
        data_np = _to_numpy(boxes.data)
        if data_np.ndim != 2 or data_np.shape[1] < 5:
            return []

        kpts_np = None
        kpts = getattr(result, "keypoints", None)
        if kpts is not None and getattr(kpts, "data", None) is not None:
            kpts_np = _to_numpy(kpts.data)

        out: list[Entity] = []
        for i, row in enumerate(data_np):
            kp = kpts_np[i] if kpts_np is not None and i < int(kpts_np.shape[0]) else None
            out.append(
                Entity(
                    keypoints=_keypoints_from_array(kp),
                    box=BoundingBox(
                        x_min=float(row[0]),
                        y_min=float(row[1]),
                        x_max=float(row[2]),
                        y_max=float(row[3]),
                    ),
                    score=float(row[4]),
                )
            )
        return out
