"""Detector interface shared by all perception backends."""

from __future__ import annotations

from abc import ABC, abstractmethod

from posesketch.core.types import Entity, Frame


class Detector(ABC):
    """Model adapter: one BGR frame in, a list of entities (pixel coordinates) out."""

    name: str = "detector"

    @abstractmethod
    def detect(self, frame: Frame) -> list[Entity]:
        raise NotImplementedError

    def close(self) -> None:
        """Release model resources (no-op by default)."""
