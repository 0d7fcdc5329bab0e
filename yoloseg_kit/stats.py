from dataclasses import dataclass
from typing import Sequence

from .classes import DEFAULT_CLASSES, ClassTable
from .geometry import Rect
from .types import Detection


@dataclass(frozen=True)
class DetectionStats:
    total: int
    disease: int
    healthy: int


def summarize_detections(detections: Sequence[Detection], classes: ClassTable = DEFAULT_CLASSES) -> DetectionStats:
    disease = sum(1 for d in detections if classes.is_disease(d.class_index))
    return DetectionStats(total=len(detections), disease=disease, healthy=len(detections) - disease)


def area_category(box_rect: Rect) -> str:
    """Coarse size of a pixel-space box: large / medium / small."""
    area = int(box_rect.width * box_rect.height)
    if area > 10000:
        return "large"
    if area > 5000:
        return "medium"
    return "small"
