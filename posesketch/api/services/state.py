"""Process-wide settings and preview engine shared by the API routes."""

from __future__ import annotations

from threading import RLock
from typing import Any

from posesketch.api.services.engine import VideoEngine
from posesketch.core.config.settings import SketchSettings, load_settings

_settings: SketchSettings | None = None
_engine: VideoEngine | None = None
_lock = RLock()


def get_settings() -> SketchSettings:
    """Return the active settings (YAML/env on first use)."""

    global _settings
    with _lock:
        if _settings is None:
            _settings = load_settings()
        return _settings


def apply_settings(data: dict[str, Any]) -> SketchSettings:
    """Validate and activate a full settings payload.

    A running engine is replaced by one built from the new settings, so a sketch
    switch takes effect on the next stream frame.
    """

    global _settings, _engine
    settings = SketchSettings(**data)
    with _lock:
        _settings = settings
        if _engine is not None:
            _engine.stop()
            _engine = VideoEngine(settings)
            _engine.start()
    return settings


def get_engine() -> VideoEngine:
    """Return the preview engine, starting it on first use."""

    global _engine
    with _lock:
        if _engine is None:
            _engine = VideoEngine(get_settings())
            _engine.start()
        return _engine


def stop_engine() -> None:
    global _engine
    with _lock:
        if _engine is not None:
            _engine.stop()
        _engine = None
