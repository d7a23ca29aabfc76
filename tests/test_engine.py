import asyncio
import time

import numpy as np

from posesketch.api.services.engine import VideoEngine
from posesketch.core.config.settings import SketchSettings
from posesketch.core.detectors.base import Detector
from posesketch.core.interaction import KeyAction
from posesketch.core.types import BoundingBox, Entity
from posesketch.core.video_sources.base import VideoSource


class _FakeSource(VideoSource):
    def __init__(self):
        self.closed = False

    def read(self):
        return np.zeros((48, 64, 3), dtype=np.uint8)

    def close(self):
        self.closed = True


class _FakeDetector(Detector):
    def detect(self, frame):
        return [Entity(box=BoundingBox(1, 1, 10, 10), score=0.9)]


def _settings(**kw):
    return SketchSettings(sketch="multi", width=64, height=48, **kw)


def test_engine_reports_source_error():
    settings = SketchSettings(video_source="file", video_path="/nonexistent/video.mp4")
    engine = VideoEngine(settings)
    engine.start()
    assert engine.last_error == "Failed to initialize video source"
    assert engine.running is False
    engine.stop()


def test_engine_reports_model_error_and_closes_source():
    source = _FakeSource()

    def _boom(profile, settings):
        raise RuntimeError("weights missing")

    engine = VideoEngine(_settings(), detector_factory=_boom, source_factory=lambda s: source)
    engine.start()
    assert engine.error() == "Failed to load detection model"
    assert source.closed is True
    assert engine.source is None


def test_render_once_encodes_jpeg():
    engine = VideoEngine(
        _settings(),
        detector_factory=lambda p, s: _FakeDetector(),
        source_factory=lambda s: _FakeSource(),
    )
    assert engine.render_once() is False

    engine.start()
    try:
        assert engine.render_once() is True
        frame, frame_id = engine.latest_packet()
        assert frame is not None and frame[:2] == b"\xff\xd8"
        assert frame_id >= 1
    finally:
        engine.stop()


def test_engine_runs_render_and_detection_threads():
    source = _FakeSource()
    engine = VideoEngine(
        _settings(target_fps=100),
        detector_factory=lambda p, s: _FakeDetector(),
        source_factory=lambda s: source,
    )
    engine.start()
    try:
        deadline = time.time() + 3
        while time.time() < deadline:
            if engine.latest_frame() is not None and engine.metadata()["entities"]:
                break
            time.sleep(0.02)
        meta = engine.metadata()
        assert engine.latest_frame() is not None
        assert meta["sketch"] == "multi"
        assert meta["entities"][0]["box"]["x_max"] == 10
        assert meta["centroid"] == (5.5, 5.5)
        assert engine.error() is None
    finally:
        engine.stop()
    assert source.closed is True


def test_engine_routes_keys_to_sketch():
    engine = VideoEngine(
        _settings(), detector_factory=lambda p, s: None, source_factory=lambda s: _FakeSource()
    )
    assert engine.handle_key("space") is KeyAction.NONE
    engine.start()
    try:
        assert engine.handle_key("space") is KeyAction.TOGGLE_VIDEO
        assert engine.metadata()["show_video"] is False
    finally:
        engine.stop()


def test_metadata_without_sketch():
    engine = VideoEngine(_settings(show_video=False))
    meta = engine.metadata()
    assert meta["entities"] == []
    assert meta["detection_version"] == 0
    assert meta["show_video"] is False
    assert engine.detect_fps() == 0.0
    assert engine.render_fps() == 0.0


def test_metadata_stream_yields_first_payload_immediately():
    engine = VideoEngine(_settings())

    async def _first():
        gen = engine.metadata_stream()
        try:
            return await gen.__anext__()
        finally:
            await gen.aclose()

    payload = asyncio.run(_first())
    assert payload["frame_id"] == 0


def test_mjpeg_generator_wraps_latest_frame():
    engine = VideoEngine(_settings())
    engine._latest_frame = b"\xff\xd8jpeg"
    engine._frame_id = 7

    async def _first():
        gen = engine.mjpeg_generator()
        try:
            return await gen.__anext__()
        finally:
            await gen.aclose()

    chunk = asyncio.run(_first())
    assert chunk.startswith(b"--frame\r\n")
    assert b"X-Frame-Id: 7" in chunk
    assert chunk.endswith(b"\xff\xd8jpeg\r\n")
