"""Video source abstractions.

Sketches consume frames through a small interface (`VideoSource`) so the capture
implementation (webcam/file) can be swapped without touching detection or
rendering. Mirroring happens here, so detectors and the canvas share one
coordinate space.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

import cv2

from posesketch.core.config.settings import SketchSettings
from posesketch.core.types import Frame

logger = logging.getLogger(__name__)


class VideoSource(ABC):
    """Base interface for anything that can produce video frames."""

    @abstractmethod
    def read(self) -> Frame | None:
        """Return the next frame, or `None` when unavailable."""

        raise NotImplementedError

    @abstractmethod
    def close(self) -> None:
        """Release any underlying resources."""

        raise NotImplementedError


class OpenCVSource(VideoSource):
    """A `VideoSource` backed by `cv2.VideoCapture`."""

    def __init__(self, source: str | int, mirror: bool = False) -> None:
        self.mirror = mirror
        self.cap = cv2.VideoCapture(source)
        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {source}")

    def _finish(self, frame: Frame) -> Frame:
        return cv2.flip(frame, 1) if self.mirror else frame

    def read(self) -> Frame | None:
        """Read the next frame from the underlying OpenCV capture."""

        ok, frame = self.cap.read()
        if not ok:
            return None
        return self._finish(frame)

    def close(self) -> None:
        """Release the underlying OpenCV capture."""

        self.cap.release()


class WebcamSource(OpenCVSource):
    """Webcam capture at a fixed resolution with low-latency buffering."""

    def __init__(
        self,
        index: int = 0,
        width: int = 640,
        height: int = 480,
        mirror: bool = True,
    ) -> None:
        """Create a webcam source.

        Tries a short list of backends to find a working camera, then spawns a
        reader thread that continuously drains the driver buffer and keeps only
        the latest frame.
        """

        self.mirror = mirror
        self.cap = None

        candidates = [
            (index, cv2.CAP_ANY),
            (index, getattr(cv2, "CAP_V4L2", cv2.CAP_ANY)),
            (index, getattr(cv2, "CAP_DSHOW", cv2.CAP_ANY)),
        ]

        for idx, backend in candidates:
            try:
                cap = cv2.VideoCapture(idx, backend)
                if cap.isOpened():
                    ret, _ = cap.read()
                    if ret:
                        self.cap = cap
                        logger.info("Opened camera index=%s backend=%s", idx, backend)
                        break
                    cap.release()
            except cv2.error:
                logger.debug("Camera backend %s failed for index %s", backend, idx, exc_info=True)
                continue

        if self.cap is None or not self.cap.isOpened():
            raise RuntimeError(f"Failed to open video source: {index}")

        # Keep the driver buffer minimal (ignored by some backends).
        self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        self._lock = threading.Lock()
        self._running = True
        self._latest_frame: Frame | None = None
        self._latest_seq = 0
        self._delivered_seq = 0
        self._reader_error: Exception | None = None
        self._reader_thread = threading.Thread(target=self._reader_loop, daemon=True)
        self._reader_thread.start()

    def _reader_loop(self) -> None:
        """Continuously drain the driver buffer and keep only the newest frame."""

        try:
            while self._running and self.cap is not None:
                ok, frame = self.cap.read()
                if ok:
                    with self._lock:
                        self._latest_frame = frame
                        self._latest_seq += 1
                else:
                    time.sleep(0.01)
        except cv2.error as e:
            logger.exception("Camera reader stopped")
            with self._lock:
                self._reader_error = e

    def close(self) -> None:
        """Stop the background reader thread and release the camera."""

        self._running = False
        try:
            if getattr(self, "_reader_thread", None) is not None and self._reader_thread.is_alive():
                self._reader_thread.join(timeout=1)
        finally:
            if self.cap is not None:
                self.cap.release()

    def read(self) -> Frame | None:
        """Return the most recent captured frame, or None when nothing new arrived."""

        with self._lock:
            frame = self._latest_frame
            seq = self._latest_seq
            reader_error = self._reader_error

        if reader_error is not None:
            return None
        if frame is None or seq == self._delivered_seq:
            return None
        self._delivered_seq = seq
        return self._finish(frame)


class FileSource(OpenCVSource):
    """Video file source played in real time, looping at EOF."""

    def __init__(self, path: str, mirror: bool = False) -> None:
        self._path = path
        self._start_perf: float | None = None
        self._frame_index = 0
        self._source_fps: float | None = None
        super().__init__(path, mirror=mirror)

        fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 0.0)
        if fps > 0.0:
            self._source_fps = fps

    def _pace(self) -> None:
        """Sleep so frames come out at the file's FPS."""

        if not self._source_fps or self._start_perf is None:
            return
        expected = self._frame_index / self._source_fps
        delay = expected - (time.perf_counter() - self._start_perf)
        if delay > 0:
            time.sleep(delay)

    def read(self) -> Frame | None:
        """Read the next frame; when EOF is reached, rewind and continue."""

        if self._start_perf is None:
            self._start_perf = time.perf_counter()
            self._frame_index = 0

        ok, frame = self.cap.read()
        if not ok:
            if not self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0):
                return None
            self._start_perf = time.perf_counter()
            self._frame_index = 0
            ok, frame = self.cap.read()
            if not ok:
                return None
        self._frame_index += 1
        self._pace()
        return self._finish(frame)


def open_source(settings: SketchSettings) -> VideoSource:
    """Instantiate the configured `VideoSource`."""

    if settings.video_source == "file" and settings.video_path:
        video_path = Path(settings.video_path)
        if not video_path.exists():
            raise RuntimeError(f"Video path not found: {video_path}")
        return FileSource(str(video_path), mirror=settings.flip_video)
    return WebcamSource(
        settings.camera_index,
        width=settings.width,
        height=settings.height,
        mirror=settings.flip_video,
    )
