"""
Geometry and detection result types shared by the matcher and the engine.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass(frozen=True)
class Rect:
    """Axis aligned rectangle, right/bottom exclusive."""

    left: int
    top: int
    right: int
    bottom: int

    @classmethod
    def from_xywh(cls, x: int, y: int, w: int, h: int) -> "Rect":
        return cls(x, y, x + w, y + h)

    @classmethod
    def empty(cls) -> "Rect":
        return cls(0, 0, 0, 0)

    @classmethod
    def centered_on(cls, center: Point, width: int, height: int) -> "Rect":
        half_w = width // 2
        half_h = height // 2
        return cls(center.x - half_w, center.y - half_h, center.x + half_w, center.y + half_h)

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def center(self) -> Point:
        return Point(self.left + self.width // 2, self.top + self.height // 2)

    def clip(self, width: int, height: int) -> "Rect":
        """Intersect with the (0, 0, width, height) frame bounds."""
        return Rect(
            max(0, self.left),
            max(0, self.top),
            min(width, self.right),
            min(height, self.bottom),
        )


@dataclass
class DetectionResult:
    """Outcome of one match attempt. ``center`` is (0, 0) when nothing matched."""

    matched: bool = False
    center: Point = field(default_factory=lambda: Point(0, 0))
    score: float = 0.0

    @classmethod
    def not_found(cls, score: float = 0.0) -> "DetectionResult":
        return cls(matched=False, center=Point(0, 0), score=score)


def optional_rect(value: Optional[tuple]) -> Optional[Rect]:
    """Build a Rect from an ``(x, y, w, h)`` tuple, passing None through."""
    if value is None:
        return None
    x, y, w, h = (int(v) for v in value)
    return Rect.from_xywh(x, y, w, h)


__all__ = ["Point", "Rect", "DetectionResult", "optional_rect"]
