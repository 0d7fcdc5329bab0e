from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


def clamp01(v: float) -> float:
    return max(0.0, min(1.0, float(v)))


@dataclass(frozen=True)
class Rect:
    """
    Axis-aligned rectangle stored as top-left origin + size.

    Used both for normalized boxes ([0, 1] space) and pixel-space rectangles.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def max_y(self) -> float:
        return self.y + self.height

    @property
    def mid_x(self) -> float:
        return self.x + self.width / 2

    @property
    def mid_y(self) -> float:
        return self.y + self.height / 2

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @classmethod
    def from_center(cls, cx: float, cy: float, width: float, height: float) -> "Rect":
        return cls(cx - width / 2, cy - height / 2, width, height)

    def as_xywh(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.width, self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.min_x, self.min_y, self.max_x, self.max_y

    def clamped(self) -> "Rect":
        """Clamp every component into [0, 1] (normalized boxes only)."""
        return Rect(clamp01(self.x), clamp01(self.y), clamp01(self.width), clamp01(self.height))

    def intersects(self, other: "Rect") -> bool:
        # Edge contact is not an overlap.
        return (
            self.min_x < other.max_x
            and other.min_x < self.max_x
            and self.min_y < other.max_y
            and other.min_y < self.max_y
        )

    def intersection_area(self, other: "Rect") -> float:
        w = min(self.max_x, other.max_x) - max(self.min_x, other.min_x)
        h = min(self.max_y, other.max_y) - max(self.min_y, other.min_y)
        if w <= 0 or h <= 0:
            return 0.0
        return w * h

    def inset(self, dx: float, dy: float) -> "Rect":
        return Rect(self.x + dx, self.y + dy, max(0.0, self.width - 2 * dx), max(0.0, self.height - 2 * dy))

    def expanded(self, margin: float) -> "Rect":
        return Rect(self.x - margin, self.y - margin, self.width + 2 * margin, self.height + 2 * margin)

    def inside(self, width: float, height: float) -> bool:
        return self.min_x >= 0 and self.min_y >= 0 and self.max_x <= width and self.max_y <= height

    def to_pixels(self, size: Tuple[float, float]) -> "Rect":
        """
        Map a normalized rect onto a (width, height) target.
        Components are clamped to [0, 1] first.
        """

        w, h = size
        c = self.clamped()
        return Rect(c.x * w, c.y * h, c.width * w, c.height * h)


def iou(a: Rect, b: Rect) -> float:
    inter = a.intersection_area(b)
    union = a.area + b.area - inter
    if union <= 0:
        return 0.0
    return inter / union
