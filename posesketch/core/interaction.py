"""Keyboard interaction: video toggle, snapshots and quit."""

from __future__ import annotations

import datetime as dt
import enum
import logging
from dataclasses import dataclass
from pathlib import Path

import cv2

from posesketch.core.types import Frame

logger = logging.getLogger(__name__)

ESC = 27


class KeyAction(enum.Enum):
    NONE = "none"
    TOGGLE_VIDEO = "toggle_video"
    SNAPSHOT = "snapshot"
    QUIT = "quit"


class Toggle:
    """A boolean flag flipped by key presses."""

    def __init__(self, value: bool = True) -> None:
        self.value = bool(value)

    def flip(self) -> bool:
        self.value = not self.value
        return self.value

    def __bool__(self) -> bool:
        return self.value


def normalize_key(key: str | int | None) -> str | None:
    """Map an OpenCV key code or a character to a lower-case key name.

    OpenCV's `waitKey` returns -1 when no key was pressed; ESC maps to "esc".
    """

    if key is None:
        return None
    if isinstance(key, int):
        if key < 0:
            return None
        code = key & 0xFF
        if code == ESC:
            return "esc"
        return chr(code).lower()
    if not key:
        return None
    if key.lower() in {"esc", "escape"}:
        return "esc"
    if key.lower() == "space":
        return " "
    return key[0].lower() if len(key) == 1 else key.lower()


@dataclass(frozen=True)
class KeyBindings:
    toggle_keys: tuple[str, ...] = ("s",)
    snapshot_keys: tuple[str, ...] = ()
    quit_keys: tuple[str, ...] = ("q", "esc")

    def resolve(self, key: str | int | None) -> KeyAction:
        name = normalize_key(key)
        if name is None:
            return KeyAction.NONE
        if name in self.toggle_keys:
            return KeyAction.TOGGLE_VIDEO
        if name in self.snapshot_keys:
            return KeyAction.SNAPSHOT
        if name in self.quit_keys:
            return KeyAction.QUIT
        return KeyAction.NONE


def snapshot_path(directory: str | Path, now: dt.datetime | None = None) -> Path:
    """Return `<directory>/pose_YYYYMMDD_HHMMSS.png`."""

    stamp = (now or dt.datetime.now()).strftime("%Y%m%d_%H%M%S")
    return Path(directory) / f"pose_{stamp}.png"


def save_snapshot(canvas: Frame, directory: str | Path, now: dt.datetime | None = None) -> Path:
    """Write the current canvas as a timestamped PNG."""

    path = snapshot_path(directory, now)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not cv2.imwrite(str(path), canvas):
        raise RuntimeError(f"Failed to write snapshot: {path}")
    logger.info("Saved snapshot %s", path)
    return path
