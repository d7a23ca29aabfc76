"""Vector drawing commands produced by the renderer.

Colors are BGR tuples (OpenCV order). Coordinates are floats in canvas pixels;
rounding happens at rasterization time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from posesketch.core.types import Point

Color = tuple[int, ...]

GREEN = (0, 255, 0)
WHITE = (255, 255, 255)
YELLOW = (0, 255, 255)
RED = (0, 0, 255)
ORANGE = (0, 165, 255)
ORANGE_FADED = (0, 82, 128)


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float
    color: Color
    thickness: int = 2


@dataclass(frozen=True)
class Circle:
    center: Point
    diameter: float
    color: Color
    filled: bool = True
    thickness: int = 1


@dataclass(frozen=True)
class Line:
    start: Point
    end: Point
    color: Color
    thickness: int = 2


@dataclass(frozen=True)
class Arc:
    """Arc of a circle, clockwise on screen from `start_deg` to `end_deg`."""

    center: Point
    radius: float
    start_deg: float
    end_deg: float
    color: Color
    thickness: int = 1


@dataclass(frozen=True)
class Text:
    """Text anchored at `position`.

    `align` is "left"|"center"|"right", `valign` is "top"|"center"|"baseline".
    `rotation` is 0 or -90 (reads bottom to top). `size` is the glyph height in
    pixels. Newlines start a new line below the previous one.
    """

    text: str
    position: Point
    size: float
    color: Color
    align: str = "left"
    valign: str = "baseline"
    rotation: int = 0


DrawCommand = Union[Rect, Circle, Line, Arc, Text]
