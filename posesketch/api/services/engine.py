from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from collections.abc import AsyncGenerator, Callable
from dataclasses import asdict
from typing import Any

import cv2

from posesketch.core.config.presets import SketchProfile
from posesketch.core.config.settings import SketchSettings, profile_from_settings
from posesketch.core.detectors.base import Detector
from posesketch.core.detectors.factory import make_detector
from posesketch.core.interaction import KeyAction
from posesketch.core.sketch import Sketch
from posesketch.core.video_sources.base import VideoSource, open_source

logger = logging.getLogger(__name__)

DetectorFactory = Callable[[SketchProfile, SketchSettings], Detector | None]
SourceFactory = Callable[[SketchSettings], VideoSource]


class VideoEngine:
    """Runs a sketch headless for the browser preview.

    A render thread reads the newest frame, calls `Sketch.tick()` at the configured
    cadence (detection runs on the sketch's own worker thread) and keeps the latest
    JPEG-encoded canvas for MJPEG streaming.
    """

    def __init__(
        self,
        settings: SketchSettings,
        detector_factory: DetectorFactory = make_detector,
        source_factory: SourceFactory = open_source,
    ) -> None:
        self.settings = settings
        self._detector_factory = detector_factory
        self._source_factory = source_factory
        self.sketch: Sketch | None = None
        self.source: VideoSource | None = None
        self.running = False
        self.last_error: str | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._sketch_lock = threading.Lock()
        self._latest_frame: bytes | None = None
        self._frame_id = 0
        self._render_times: deque[float] = deque()
        self._render_fps = 0.0

    def start(self) -> None:
        """Open the source, load the model and start rendering.

        Safe to call multiple times; subsequent calls while running are ignored.
        """

        if self.running:
            return
        try:
            self.source = self._source_factory(self.settings)
        except Exception:
            self.last_error = "Failed to initialize video source"
            logger.exception(self.last_error)
            return
        try:
            detector = self._detector_factory(self.sketch_profile(), self.settings)
        except Exception:
            self.last_error = "Failed to load detection model"
            logger.exception(self.last_error)
            self.source.close()
            self.source = None
            return
        self.sketch = Sketch(self.settings, detector)
        self.sketch.start()
        self.running = True
        self.last_error = None
        self._thread = threading.Thread(target=self._render_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop rendering, stop detection and close the video source."""

        self.running = False
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2)
        if self.sketch is not None:
            self.sketch.stop()
        if self.source is not None:
            self.source.close()
            self.source = None

    def sketch_profile(self) -> SketchProfile:
        return profile_from_settings(self.settings)

    def render_once(self) -> bool:
        """Render and encode one canvas. Returns True when a new JPEG is available."""

        if self.sketch is None or self.source is None:
            return False
        frame = self.source.read()
        with self._sketch_lock:
            canvas = self.sketch.tick(frame)
        encode_param = [int(cv2.IMWRITE_JPEG_QUALITY), int(self.settings.jpeg_quality)]
        ok, jpg = cv2.imencode(".jpg", canvas, encode_param)
        if not ok:
            return False
        with self._lock:
            self._latest_frame = jpg.tobytes()
            self._frame_id += 1
        return True

    def _render_loop(self) -> None:
        logger.debug("Render loop started")
        target_fps = float(self.settings.target_fps)
        while self.running:
            start = time.perf_counter()
            try:
                rendered = self.render_once()
            except Exception:
                self.last_error = "Render failed"
                logger.exception(self.last_error)
                rendered = False
            now = time.perf_counter()
            if rendered:
                self._render_times.append(now)
                while self._render_times and (now - self._render_times[0]) > 1.0:
                    self._render_times.popleft()
                if len(self._render_times) >= 2:
                    span = now - self._render_times[0]
                    if span > 0:
                        self._render_fps = (len(self._render_times) - 1) / span
            if target_fps > 0:
                delay = (1.0 / target_fps) - (now - start)
                if delay > 0:
                    time.sleep(delay)

    def handle_key(self, key: str) -> KeyAction:
        """Route a key press from the browser to the sketch."""

        if self.sketch is None:
            return KeyAction.NONE
        with self._sketch_lock:
            return self.sketch.handle_key(key)

    def latest_frame(self) -> bytes | None:
        """Return the latest encoded JPEG bytes (or `None` if not ready)."""

        with self._lock:
            return self._latest_frame

    def latest_packet(self) -> tuple[bytes | None, int]:
        """Return (jpeg_bytes, frame_id) for the same canvas."""

        with self._lock:
            return self._latest_frame, self._frame_id

    def render_fps(self) -> float:
        return float(self._render_fps)

    def detect_fps(self) -> float:
        return self.sketch.detect_fps() if self.sketch is not None else 0.0

    def error(self) -> str | None:
        if self.last_error is not None:
            return self.last_error
        return self.sketch.last_error() if self.sketch is not None else None

    def metadata(self) -> dict[str, Any]:
        """Cached entities and sketch state as a JSON-able dict."""

        with self._lock:
            frame_id = self._frame_id
        if self.sketch is None:
            entities, center, show_video, version = (), None, bool(self.settings.show_video), 0
        else:
            entities, center = self.sketch.cache.snapshot()
            show_video = bool(self.sketch.show_video)
            version = self.sketch.cache.version()
        return {
            "frame_id": frame_id,
            "detection_version": version,
            "sketch": self.settings.sketch,
            "entities": [asdict(e) for e in entities],
            "centroid": center,
            "show_video": show_video,
            "detect_fps": self.detect_fps(),
            "render_fps": self.render_fps(),
        }

    async def mjpeg_generator(self) -> AsyncGenerator[bytes, None]:
        """Yield MJPEG multipart chunks for HTTP streaming."""

        last_id = -1
        while True:
            frame, frame_id = self.latest_packet()
            if frame is not None and frame_id != last_id:
                yield (
                    b"--frame\r\n"
                    b"Content-Type: image/jpeg\r\n"
                    + f"X-Frame-Id: {frame_id}\r\n".encode("ascii")
                    + f"Content-Length: {len(frame)}\r\n\r\n".encode("ascii")
                    + frame
                    + b"\r\n"
                )
                last_id = frame_id
            await asyncio.sleep(0.02)

    async def metadata_stream(self) -> AsyncGenerator[dict[str, Any], None]:
        """Yield a metadata payload whenever the detection cache changes."""

        last_version = -1
        while True:
            payload = self.metadata()
            if payload["detection_version"] != last_version:
                last_version = payload["detection_version"]
                yield payload
            await asyncio.sleep(0.02)
