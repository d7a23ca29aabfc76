"""Sketch runtime: detection handoff, per-frame rendering and key handling.

Two execution contexts meet here:
- the detection worker thread runs the model at its own (slower, variable) pace
  and overwrites the `DetectionCache` when a result is ready;
- the host calls `Sketch.tick()` at its render cadence, which hands the newest
  frame to the worker and renders from whatever the cache holds right now.

Rendering never waits for detection. A slow or failed detection leaves the cache
at its last value.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from pathlib import Path
from typing import Any

from posesketch.core.cache import DetectionCache
from posesketch.core.config.settings import (
    SketchSettings,
    measurement_from_settings,
    profile_from_settings,
    threshold_from_settings,
)
from posesketch.core.detectors.base import Detector
from posesketch.core.interaction import KeyAction, Toggle, save_snapshot
from posesketch.core.overlay.commands import DrawCommand
from posesketch.core.overlay.draw import compose_canvas, draw_overlays
from posesketch.core.overlay.render import STYLES, render_overlays
from posesketch.core.types import Entity, Frame

logger = logging.getLogger(__name__)


class DetectionWorker:
    """Runs a detector on the newest submitted frame in a background thread.

    Frames are handed over through a single slot: submitting a new frame before the
    previous one was picked up replaces it.
    """

    def __init__(self, detector: Detector, on_results: Callable[[list[Entity]], Any]) -> None:
        self.detector = detector
        self.on_results = on_results
        self.running = False
        self.last_error: str | None = None
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._pending: Frame | None = None
        self._thread: threading.Thread | None = None
        self._times: deque[float] = deque()
        self._fps = 0.0

    def start(self) -> None:
        """Start the worker thread (no-op when already running)."""

        if self.running:
            return
        self.running = True
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self.running = False
        self._event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=2)
        self._thread = None

    def submit(self, frame: Frame) -> None:
        with self._lock:
            self._pending = frame
            self._event.set()

    def _take(self) -> Frame | None:
        with self._lock:
            frame = self._pending
            self._pending = None
            self._event.clear()
        return frame

    def step(self) -> bool:
        """Run one detection on the pending frame. Returns True when results were delivered."""

        frame = self._take()
        if frame is None:
            return False
        try:
            entities = self.detector.detect(frame)
        except Exception:
            self.last_error = "Detection failed"
            logger.exception(self.last_error)
            return False
        self.last_error = None
        self.on_results(entities)

        now = time.perf_counter()
        self._times.append(now)
        while self._times and (now - self._times[0]) > 1.0:
            self._times.popleft()
        if len(self._times) >= 2:
            span = now - self._times[0]
            if span > 0:
                self._fps = (len(self._times) - 1) / span
        return True

    def fps(self) -> float:
        """Detections per second over the last second."""

        return float(self._fps)

    def _loop(self) -> None:
        logger.debug("Detection loop started")
        while self.running:
            if not self._event.wait(timeout=0.5):
                continue
            self.step()


class Sketch:
    """One running sketch: cache, renderer, video toggle and key bindings."""

    def __init__(self, settings: SketchSettings, detector: Detector | None = None) -> None:
        self.settings = settings
        self.profile = profile_from_settings(settings)
        self.style = STYLES[self.profile.style]
        self.threshold = threshold_from_settings(settings)
        self.measurement = measurement_from_settings(settings)
        self.cache = DetectionCache(derive_boxes=self.style.derive_boxes)
        self.show_video = Toggle(settings.show_video)
        self.detector = detector
        self.worker = DetectionWorker(detector, self.on_results) if detector is not None else None
        self.last_canvas: Frame | None = None
        self.last_snapshot: Path | None = None
        self._last_frame: Frame | None = None

    @property
    def size(self) -> tuple[int, int]:
        return (self.settings.width, self.settings.height)

    def start(self) -> None:
        if self.worker is not None:
            self.worker.start()

    def stop(self) -> None:
        if self.worker is not None:
            self.worker.stop()
        if self.detector is not None:
            self.detector.close()

    def on_results(self, results: Any) -> None:
        """Detection callback: overwrite the cache with the new batch."""

        self.cache.update(results)

    def commands(self) -> list[DrawCommand]:
        entities, center = self.cache.snapshot()
        return render_overlays(
            entities,
            self.style,
            self.threshold,
            centroid=center,
            measurement=self.measurement,
        )

    def render(self, frame: Frame | None) -> Frame:
        """Draw one display frame from the current cache."""

        canvas = compose_canvas(frame, bool(self.show_video), self.size)
        canvas = draw_overlays(canvas, self.commands())
        self.last_canvas = canvas
        return canvas

    def tick(self, frame: Frame | None) -> Frame:
        """Hand a new frame to detection (if any) and render.

        When no new frame arrived, the previous frame is drawn again.
        """

        if frame is not None:
            self._last_frame = frame
            if self.worker is not None:
                self.worker.submit(frame)
        return self.render(self._last_frame)

    def handle_key(self, key: str | int | None) -> KeyAction:
        """Apply the action bound to `key` and return it."""

        action = self.profile.bindings.resolve(key)
        if action is KeyAction.TOGGLE_VIDEO:
            self.show_video.flip()
            logger.debug("show_video=%s", self.show_video.value)
        elif action is KeyAction.SNAPSHOT:
            canvas = self.last_canvas if self.last_canvas is not None else self.render(self._last_frame)
            self.last_snapshot = save_snapshot(canvas, self.settings.snapshot_dir)
        return action

    def last_error(self) -> str | None:
        return self.worker.last_error if self.worker is not None else None

    def detect_fps(self) -> float:
        return self.worker.fps() if self.worker is not None else 0.0
