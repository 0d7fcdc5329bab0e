from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from .geometry import Rect


@dataclass(frozen=True)
class Detection:
    """
    Single decoded detection.

    `box` is normalized (top-left origin, every component in [0, 1]).
    `mask_coefficients` is only set when the model emits mask heads.
    """

    class_index: int
    confidence: float
    box: Rect
    mask_coefficients: Optional[Tuple[float, ...]] = None

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.box.as_xyxy()

    @property
    def has_mask(self) -> bool:
        return self.mask_coefficients is not None


@dataclass(frozen=True)
class LabelPosition:
    center: Tuple[float, float]
    box_rect: Rect


@dataclass(frozen=True)
class SegmentationResult:
    """
    Output of one processed frame.

    `mask` is an (H, W, 4) uint8 RGBA raster at prototype resolution, or None
    when the model produced no prototype tensor.
    """

    mask: Optional[np.ndarray]
    detections: Tuple[Detection, ...]
    inference_time: float
    fps: float

    @classmethod
    def empty(cls, inference_time: float = 0.0, fps: float = 0.0) -> "SegmentationResult":
        return cls(mask=None, detections=(), inference_time=inference_time, fps=fps)
