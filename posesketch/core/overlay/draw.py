"""Overlay rasterization (OpenCV).

Draws renderer commands onto a BGR canvas. Text follows the renderer's anchor
conventions: horizontal/vertical alignment and an optional -90 degree rotation.
"""

from __future__ import annotations

from collections.abc import Sequence

import cv2
import numpy as np

from posesketch.core.overlay.commands import Arc, Circle, DrawCommand, Line, Rect, Text
from posesketch.core.types import Frame, Point

FONT = cv2.FONT_HERSHEY_SIMPLEX
# Hershey glyph height at fontScale=1 is ~22px; sketch sizes are em sizes.
FONT_PX_PER_SCALE = 28.0
LINE_GAP = 2
BACKGROUND = 255
# Keep coordinates well inside int32 for OpenCV.
_COORD_LIMIT = 1_000_000


def _px(v: float) -> int:
    return int(round(max(-_COORD_LIMIT, min(_COORD_LIMIT, v))))


def _pt(p: Point) -> tuple[int, int]:
    return _px(p[0]), _px(p[1])


def _ascii(text: str) -> str:
    # Hershey fonts only cover ASCII.
    return text.replace("°", " deg").encode("ascii", "replace").decode("ascii")


def _font_scale(size: float) -> float:
    return max(0.1, float(size) / FONT_PX_PER_SCALE)


def compose_canvas(frame: Frame | None, show_video: bool, size: tuple[int, int] = (640, 480)) -> Frame:
    """Return a white canvas of `size` (w, h), with the video frame when enabled."""

    w, h = size
    if show_video and frame is not None and frame.size > 0:
        if frame.shape[1] != w or frame.shape[0] != h:
            return cv2.resize(frame, (w, h), interpolation=cv2.INTER_LINEAR)
        return frame.copy()
    return np.full((h, w, 3), BACKGROUND, dtype=np.uint8)


def _text_block(text: Text) -> tuple[list[str], float, list[tuple[int, int]], int]:
    lines = _ascii(text.text).split("\n")
    scale = _font_scale(text.size)
    sizes = []
    for line in lines:
        (tw, th), _baseline = cv2.getTextSize(line, FONT, scale, 1)
        sizes.append((tw, th))
    line_h = max((th for _tw, th in sizes), default=0) + LINE_GAP * 2
    return lines, scale, sizes, line_h


def _put_text(img: np.ndarray, text: Text) -> None:
    lines, scale, sizes, line_h = _text_block(text)
    x, y = text.position
    total_h = line_h * len(lines)
    if text.valign == "top":
        top = y
    elif text.valign == "center":
        top = y - total_h / 2.0
    else:
        top = y - line_h + LINE_GAP
    for i, (line, (tw, th)) in enumerate(zip(lines, sizes, strict=False)):
        if text.align == "center":
            left = x - tw / 2.0
        elif text.align == "right":
            left = x - tw
        else:
            left = x
        baseline_y = top + i * line_h + LINE_GAP + th
        cv2.putText(img, line, (_px(left), _px(baseline_y)), FONT, scale, text.color, 1, cv2.LINE_AA)


def _put_rotated_text(img: np.ndarray, text: Text) -> None:
    """Draw text rotated by -90 degrees, centered on its anchor."""

    lines, scale, sizes, line_h = _text_block(text)
    block_w = max((tw for tw, _th in sizes), default=0)
    block_h = line_h * len(lines)
    if block_w <= 0 or block_h <= 0:
        return
    mask = np.zeros((block_h, block_w), dtype=np.uint8)
    for i, (line, (tw, th)) in enumerate(zip(lines, sizes, strict=False)):
        left = (block_w - tw) // 2
        cv2.putText(mask, line, (left, i * line_h + LINE_GAP + th), FONT, scale, 255, 1, cv2.LINE_AA)
    mask = cv2.rotate(mask, cv2.ROTATE_90_COUNTERCLOCKWISE)

    mh, mw = mask.shape[:2]
    x0 = _px(text.position[0] - mw / 2.0)
    y0 = _px(text.position[1] - mh / 2.0)
    h, w = img.shape[:2]
    # Clip the pasted block to the canvas.
    cx1, cy1 = max(0, x0), max(0, y0)
    cx2, cy2 = min(w, x0 + mw), min(h, y0 + mh)
    if cx2 <= cx1 or cy2 <= cy1:
        return
    sub = mask[cy1 - y0 : cy2 - y0, cx1 - x0 : cx2 - x0]
    roi = img[cy1:cy2, cx1:cx2]
    alpha = (sub.astype(np.float32) / 255.0)[..., None]
    color = np.array(text.color, dtype=np.float32).reshape(1, 1, -1)
    blended = roi.astype(np.float32) * (1.0 - alpha) + color * alpha
    img[cy1:cy2, cx1:cx2] = blended.astype(np.uint8)


def draw_commands(img: np.ndarray, commands: Sequence[DrawCommand]) -> np.ndarray:
    """Rasterize `commands` onto `img` in place and return it."""

    for cmd in commands:
        if isinstance(cmd, Rect):
            x1, y1 = _pt((cmd.x, cmd.y))
            x2, y2 = _pt((cmd.x + cmd.width, cmd.y + cmd.height))
            cv2.rectangle(img, (x1, y1), (x2, y2), cmd.color, cmd.thickness)
        elif isinstance(cmd, Circle):
            radius = max(1, _px(cmd.diameter / 2.0))
            thickness = -1 if cmd.filled else cmd.thickness
            cv2.circle(img, _pt(cmd.center), radius, cmd.color, thickness, cv2.LINE_AA)
        elif isinstance(cmd, Line):
            cv2.line(img, _pt(cmd.start), _pt(cmd.end), cmd.color, cmd.thickness, cv2.LINE_AA)
        elif isinstance(cmd, Arc):
            r = max(1, _px(cmd.radius))
            cv2.ellipse(
                img,
                _pt(cmd.center),
                (r, r),
                0.0,
                float(cmd.start_deg),
                float(cmd.end_deg),
                cmd.color,
                cmd.thickness,
                cv2.LINE_AA,
            )
        elif isinstance(cmd, Text):
            if cmd.rotation == -90:
                _put_rotated_text(img, cmd)
            else:
                _put_text(img, cmd)
    return img


def draw_overlays(frame: np.ndarray, commands: Sequence[DrawCommand]) -> np.ndarray:
    """Return a copy of `frame` with `commands` drawn (the frame itself when empty)."""

    if not commands:
        return frame
    return draw_commands(frame.copy(), commands)
