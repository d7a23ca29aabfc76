import time

import numpy as np

from posesketch.core.config.settings import SketchSettings
from posesketch.core.detectors.base import Detector
from posesketch.core.interaction import KeyAction
from posesketch.core.sketch import DetectionWorker, Sketch
from posesketch.core.types import BoundingBox, Entity, Keypoint


class _FakeDetector(Detector):
    def __init__(self, batches=None, error=None):
        self.batches = list(batches or [])
        self.error = error
        self.frames = []
        self.closed = False

    def detect(self, frame):
        self.frames.append(frame)
        if self.error is not None:
            raise self.error
        return self.batches.pop(0) if self.batches else []

    def close(self):
        self.closed = True


def _person():
    kps = tuple(Keypoint(100 + 10 * i, 100 + 5 * i, 0.9) for i in range(17))
    return Entity(keypoints=kps, box=BoundingBox(50, 50, 300, 400), score=0.9)


def _frame():
    return np.zeros((480, 640, 3), dtype=np.uint8)


def test_worker_step_delivers_latest_frame_only():
    seen = []
    det = _FakeDetector(batches=[[_person()]])
    worker = DetectionWorker(det, seen.append)
    assert worker.step() is False

    first, second = _frame(), _frame()
    worker.submit(first)
    worker.submit(second)
    assert worker.step() is True
    assert det.frames == [second]
    assert len(seen) == 1 and len(seen[0]) == 1
    assert worker.step() is False


def test_worker_failure_keeps_previous_results():
    sketch = Sketch(SketchSettings(sketch="skeleton"), _FakeDetector(batches=[[_person()]]))
    sketch.tick(_frame())
    assert sketch.worker.step() is True
    assert sketch.cache.version() == 1

    sketch.worker.detector.error = RuntimeError("model crashed")
    sketch.tick(_frame())
    assert sketch.worker.step() is False
    assert sketch.last_error() == "Detection failed"
    assert sketch.cache.version() == 1
    assert len(sketch.cache.entities()) == 1


def test_worker_thread_updates_cache():
    sketch = Sketch(SketchSettings(sketch="skeleton"), _FakeDetector(batches=[[_person()]]))
    sketch.start()
    try:
        sketch.tick(_frame())
        deadline = time.time() + 2
        while sketch.cache.version() == 0 and time.time() < deadline:
            time.sleep(0.01)
        assert len(sketch.cache.entities()) == 1
    finally:
        sketch.stop()
    assert sketch.detector.closed is True


def test_tick_renders_from_cache_without_waiting():
    sketch = Sketch(SketchSettings(sketch="skeleton"), _FakeDetector())
    sketch.on_results([_person()])
    canvas = sketch.tick(_frame())
    assert canvas.shape == (480, 640, 3)
    # box edge drawn over the black video
    assert tuple(int(v) for v in canvas[50, 100]) == (0, 255, 0)
    assert sketch.last_canvas is canvas


def test_tick_without_new_frame_redraws_previous_frame():
    sketch = Sketch(SketchSettings(sketch="skeleton"))
    frame = _frame()
    frame[0, 0] = (1, 2, 3)
    sketch.tick(frame)
    again = sketch.tick(None)
    assert tuple(int(v) for v in again[0, 0]) == (1, 2, 3)


def test_toggle_changes_only_the_video_layer():
    sketch = Sketch(SketchSettings(sketch="skeleton"))
    sketch.on_results([_person()])
    before_cmds = sketch.commands()
    shown = sketch.tick(_frame())
    assert int(shown[0, 0, 0]) == 0

    assert sketch.handle_key("s") is KeyAction.TOGGLE_VIDEO
    hidden = sketch.tick(None)
    assert int(hidden[0, 0, 0]) == 255
    assert sketch.commands() == before_cmds

    sketch.handle_key("s")
    assert bool(sketch.show_video) is True


def test_space_toggles_multi_person_sketch():
    sketch = Sketch(SketchSettings(sketch="multi"))
    assert sketch.handle_key("s") is KeyAction.NONE
    assert sketch.handle_key(32) is KeyAction.TOGGLE_VIDEO
    assert bool(sketch.show_video) is False


def test_hand_snapshot_key_saves_canvas(tmp_path):
    sketch = Sketch(SketchSettings(sketch="hand", snapshot_dir=str(tmp_path)))
    sketch.tick(_frame())
    assert sketch.handle_key("p") is KeyAction.SNAPSHOT
    assert sketch.last_snapshot is not None
    assert sketch.last_snapshot.parent == tmp_path
    assert sketch.last_snapshot.exists()


def test_hand_measurement_is_drawn():
    settings = SketchSettings(sketch="hand", measure="distance")
    sketch = Sketch(settings)
    kps = [Keypoint(10, 10)] * 21
    kps[8] = Keypoint(40, 50)
    sketch.on_results([Entity(keypoints=tuple(kps))])
    texts = [getattr(c, "text", None) for c in sketch.commands()]
    assert "50px" in texts


def test_sketch_without_detector_reports_no_error():
    sketch = Sketch(SketchSettings(sketch="face"))
    assert sketch.worker is None
    assert sketch.threshold is None
    assert sketch.last_error() is None
    assert sketch.detect_fps() == 0.0
    sketch.start()
    sketch.stop()


def test_skeleton_without_model_box_draws_no_centroid():
    sketch = Sketch(SketchSettings(sketch="skeleton"))
    kps = tuple(Keypoint(100 + i, 100 + i, 0.9) for i in range(17))
    sketch.on_results([Entity(keypoints=kps)])
    assert sketch.cache.centroid() is None
    texts = [getattr(c, "text", None) for c in sketch.commands()]
    assert "C" not in texts
    assert not any(t and t.startswith("Centroid") for t in texts)


def test_hand_centroid_follows_derived_box():
    sketch = Sketch(SketchSettings(sketch="hand"))
    sketch.on_results([Entity(keypoints=(Keypoint(2, 5), Keypoint(8, 1), Keypoint(4, 9)))])
    assert sketch.cache.centroid() == (5.0, 5.0)
