from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .types import Detection


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.5


def nms(boxes: np.ndarray, scores: np.ndarray, class_ids: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Per-class NumPy NMS. Expects boxes shape (N,4) in xyxy, scores and class_ids shape (N,).
    Returns indices of kept boxes in descending score order (ties keep input order).
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = np.maximum(0.0, x2 - x1) * np.maximum(0.0, y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep = []

    while order.size > 0:
        i = order[0]
        keep.append(i)
        rest = order[1:]

        xx1 = np.maximum(x1[i], x1[rest])
        yy1 = np.maximum(y1[i], y1[rest])
        xx2 = np.minimum(x2[i], x2[rest])
        yy2 = np.minimum(y2[i], y2[rest])

        w = np.maximum(0.0, xx2 - xx1)
        h = np.maximum(0.0, yy2 - yy1)
        inter = w * h
        union = areas[i] + areas[rest] - inter
        # Degenerate union counts as no overlap.
        iou = np.divide(inter, union, out=np.zeros_like(inter), where=union > 0)

        survives = (iou <= cfg.iou_threshold) | (class_ids[rest] != class_ids[i])
        order = rest[survives]

    return np.array(keep, dtype=np.int32)


def suppress_duplicates(detections: Sequence[Detection], cfg: NMSConfig = NMSConfig()) -> List[Detection]:
    """
    Drop lower-confidence duplicates of the same class. Cross-class overlap is never suppressed.
    """

    if not detections:
        return []

    boxes = np.array([d.as_xyxy() for d in detections], dtype=np.float64)
    scores = np.array([d.confidence for d in detections], dtype=np.float64)
    class_ids = np.array([d.class_index for d in detections], dtype=np.int64)

    keep_idx = nms(boxes, scores, class_ids, cfg)
    return [detections[int(i)] for i in keep_idx]
