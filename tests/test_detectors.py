from dataclasses import replace
from types import SimpleNamespace

import numpy as np
import pytest

from posesketch.core.config.presets import sketch_profile
from posesketch.core.config.settings import SketchSettings
from posesketch.core.detectors import factory, mp_solutions, yolo
from posesketch.core.detectors.base import Detector
from posesketch.core.types import BoundingBox


class _FakeBoxes:
    def __init__(self, data):
        self.data = data

    def __len__(self):
        return int(self.data.shape[0])


class _FakeYOLO:
    last_kwargs: dict = {}

    def __init__(self, model_name):
        self.model_name = model_name
        self.results = []

    def predict(self, frame, **kwargs):
        _FakeYOLO.last_kwargs = kwargs
        return self.results


def _yolo_result(n: int = 1):
    boxes = np.array([[10, 20, 110, 220, 0.9, 0]] * n, dtype=np.float32)
    kpts = np.zeros((n, 17, 3), dtype=np.float32)
    kpts[:, :, 0] = np.arange(17)
    kpts[:, :, 1] = 5
    kpts[:, :, 2] = 0.8
    return SimpleNamespace(boxes=_FakeBoxes(boxes), keypoints=SimpleNamespace(data=kpts))


def test_yolo_detector_converts_boxes_and_keypoints(monkeypatch):
    monkeypatch.setattr(yolo, "YOLO", _FakeYOLO)
    det = yolo.YoloPoseDetector("m.pt", conf=0.3, max_entities=2)
    det.model.results = [_yolo_result(2)]

    entities = det.detect(np.zeros((240, 320, 3), dtype=np.uint8))
    assert len(entities) == 2
    e = entities[0]
    assert e.box == BoundingBox(10, 20, 110, 220)
    assert e.score == pytest.approx(0.9)
    assert len(e.keypoints) == 17
    assert e.keypoints[0].name == "nose"
    assert e.keypoints[16].name == "right_ankle"
    assert e.keypoints[3].xy == (3.0, 5.0)
    assert e.keypoints[3].confidence == pytest.approx(0.8)
    assert _FakeYOLO.last_kwargs["conf"] == 0.3
    assert _FakeYOLO.last_kwargs["max_det"] == 2
    assert _FakeYOLO.last_kwargs["classes"] == [0]


def test_yolo_detector_no_people(monkeypatch):
    monkeypatch.setattr(yolo, "YOLO", _FakeYOLO)
    det = yolo.YoloPoseDetector("m.pt")
    frame = np.zeros((10, 10, 3), dtype=np.uint8)
    assert det.detect(frame) == []
    det.model.results = [SimpleNamespace(boxes=None, keypoints=None)]
    assert det.detect(frame) == []
    det.model.results = [_yolo_result(0)]
    assert det.detect(frame) == []


def test_yolo_detector_without_keypoints(monkeypatch):
    monkeypatch.setattr(yolo, "YOLO", _FakeYOLO)
    det = yolo.YoloPoseDetector("m.pt")
    result = _yolo_result(1)
    result.keypoints = None
    det.model.results = [result]
    (entity,) = det.detect(np.zeros((10, 10, 3), dtype=np.uint8))
    assert entity.keypoints == ()
    assert entity.box is not None


class _FakeSolution:
    def __init__(self, result, **kwargs):
        self.kwargs = kwargs
        self.result = result
        self.closed = False
        self.seen_shape = None

    def process(self, rgb):
        self.seen_shape = rgb.shape
        return self.result

    def close(self):
        self.closed = True


def _fake_mp(result):
    def factory_fn(**kwargs):
        return _FakeSolution(result, **kwargs)

    return SimpleNamespace(
        solutions=SimpleNamespace(
            face_mesh=SimpleNamespace(FaceMesh=factory_fn),
            hands=SimpleNamespace(Hands=factory_fn),
            pose=SimpleNamespace(Pose=factory_fn),
        )
    )


def _lm(x, y, visibility=None):
    return SimpleNamespace(x=x, y=y, visibility=visibility)


def test_face_mesh_detector_scales_landmarks(monkeypatch):
    face = SimpleNamespace(landmark=[_lm(0.25, 0.5), _lm(0.5, 0.75)])
    result = SimpleNamespace(multi_face_landmarks=[face])
    monkeypatch.setattr(mp_solutions, "_import_mediapipe", lambda: _fake_mp(result))
    det = mp_solutions.FaceMeshDetector(max_entities=2)
    assert det._solution.kwargs["max_num_faces"] == 2
    assert det._solution.kwargs["refine_landmarks"] is True

    (entity,) = det.detect(np.zeros((100, 200, 3), dtype=np.uint8))
    assert entity.keypoints[0].xy == (50.0, 50.0)
    assert entity.keypoints[0].confidence is None
    assert entity.box == BoundingBox(50, 50, 100, 75)

    solution = det._solution
    det.close()
    assert solution.closed is True
    det.close()


def test_hands_detector_names_keypoints(monkeypatch):
    hand = SimpleNamespace(landmark=[_lm(0.1, 0.1)] * 21)
    handedness = SimpleNamespace(classification=[SimpleNamespace(score=0.97)])
    result = SimpleNamespace(multi_hand_landmarks=[hand], multi_handedness=[handedness])
    monkeypatch.setattr(mp_solutions, "_import_mediapipe", lambda: _fake_mp(result))
    det = mp_solutions.HandsDetector()

    (entity,) = det.detect(np.zeros((100, 100, 3), dtype=np.uint8))
    assert len(entity.keypoints) == 21
    assert entity.keypoints[0].name == "wrist"
    assert entity.keypoints[20].name == "pinky_finger_tip"
    assert entity.keypoints[4].confidence is None
    assert entity.box is None
    assert entity.score == pytest.approx(0.97)


def test_hands_detector_without_hands(monkeypatch):
    monkeypatch.setattr(mp_solutions, "_import_mediapipe", lambda: _fake_mp(SimpleNamespace()))
    det = mp_solutions.HandsDetector()
    assert det.detect(np.zeros((10, 10, 3), dtype=np.uint8)) == []


def test_blazepose_detector_uses_visibility(monkeypatch):
    pose = SimpleNamespace(landmark=[_lm(0.5, 0.5, 0.9)] * 33)
    monkeypatch.setattr(
        mp_solutions, "_import_mediapipe", lambda: _fake_mp(SimpleNamespace(pose_landmarks=pose))
    )
    det = mp_solutions.BlazePoseDetector(model_complexity=0)
    assert det._solution.kwargs["model_complexity"] == 0

    (entity,) = det.detect(np.zeros((100, 100, 3), dtype=np.uint8))
    assert len(entity.keypoints) == 33
    assert entity.keypoints[0].name == "nose"
    assert entity.keypoints[0].confidence == pytest.approx(0.9)
    assert entity.box == BoundingBox(50, 50, 50, 50)


def test_blazepose_detector_without_pose(monkeypatch):
    monkeypatch.setattr(
        mp_solutions, "_import_mediapipe", lambda: _fake_mp(SimpleNamespace(pose_landmarks=None))
    )
    assert mp_solutions.BlazePoseDetector().detect(np.zeros((10, 10, 3), dtype=np.uint8)) == []


def test_factory_builds_yolo_for_body_sketches(monkeypatch):
    monkeypatch.setattr(yolo, "YOLO", _FakeYOLO)
    settings = SketchSettings(sketch="multi", model_name="custom-pose.pt", max_entities=6)
    det = factory.make_detector(sketch_profile("multi"), settings)
    assert isinstance(det, yolo.YoloPoseDetector)
    assert det.model.model_name == "custom-pose.pt"
    assert det._predict_kwargs["max_det"] == 6


@pytest.mark.parametrize(
    "sketch, cls_name",
    [("face", "FaceMeshDetector"), ("hand", "HandsDetector"), ("blaze", "BlazePoseDetector")],
)
def test_factory_builds_mediapipe_detectors(monkeypatch, sketch, cls_name):
    monkeypatch.setattr(mp_solutions, "_import_mediapipe", lambda: _fake_mp(SimpleNamespace()))
    det = factory.make_detector(sketch_profile(sketch), SketchSettings(sketch=sketch))
    assert type(det).__name__ == cls_name
    assert isinstance(det, Detector)


def test_factory_rejects_unknown_detector():
    profile = replace(sketch_profile("face"), detector="magic")
    with pytest.raises(ValueError):
        factory.make_detector(profile, SketchSettings())
