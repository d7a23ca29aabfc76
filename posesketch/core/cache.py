"""Single-slot store for the most recent detection result.

Lifecycle: created empty at startup, overwritten wholesale by the detection
callback, read (never mutated) once per render tick. The detection worker is the
only writer and the render loop the only reader; they run on different threads, so
the swap happens under a lock and readers get an immutable snapshot.
"""

from __future__ import annotations

import threading
import time
from typing import Any

from posesketch.core.geometry import centroid, entity_box
from posesketch.core.types import Entity, Point, coerce_entities


class DetectionCache:
    """Holds the latest detection batch and the centroid derived from it."""

    def __init__(self, derive_boxes: bool = True) -> None:
        self._lock = threading.Lock()
        self._derive_boxes = derive_boxes
        self._entities: tuple[Entity, ...] = ()
        self._centroid: Point | None = None
        self._version = 0
        self._updated_at: float | None = None

    def update(self, results: Any) -> tuple[Entity, ...]:
        """Replace the cached batch. `None` resets the cache to empty."""

        entities = tuple(coerce_entities(results))
        center: Point | None = None
        if entities:
            box = entity_box(entities[0], derive=self._derive_boxes)
            if box is not None:
                center = centroid(box)
        with self._lock:
            self._entities = entities
            self._centroid = center
            self._version += 1
            self._updated_at = time.monotonic()
        return entities

    def clear(self) -> None:
        self.update(None)

    def entities(self) -> tuple[Entity, ...]:
        with self._lock:
            return self._entities

    def centroid(self) -> Point | None:
        """Centroid of the first entity's box, or None when there is none."""

        with self._lock:
            return self._centroid

    def snapshot(self) -> tuple[tuple[Entity, ...], Point | None]:
        """Return (entities, centroid) read together."""

        with self._lock:
            return self._entities, self._centroid

    def version(self) -> int:
        with self._lock:
            return self._version

    def updated_at(self) -> float | None:
        with self._lock:
            return self._updated_at
