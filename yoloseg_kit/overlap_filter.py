from typing import List, Sequence

from .classes import DEFAULT_CLASSES, ClassTable
from .types import Detection


def filter_disease_by_overlap(
    detections: Sequence[Detection],
    classes: ClassTable = DEFAULT_CLASSES,
    enabled: bool = True,
) -> List[Detection]:
    """
    Keep disease detections only when they overlap a plant structure (stem, spear, branch).

    Disease hits away from any plant are treated as background false positives.
    Everything that is not a disease class passes through unchanged.
    """

    if not enabled:
        return list(detections)

    plant_boxes = [d.box for d in detections if classes.is_plant(d.class_index)]

    return [
        d
        for d in detections
        if not classes.is_disease(d.class_index) or any(p.intersects(d.box) for p in plant_boxes)
    ]
