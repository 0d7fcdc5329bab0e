from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .config import PipelineConfig
from .geometry import Rect
from .types import Detection

logger = logging.getLogger(__name__)

_Decoded = Tuple[np.ndarray, np.ndarray, np.ndarray, Optional[np.ndarray]]


class SegPostprocessor:
    """
    Decode YOLO segmentation exports (one image per call).

    Supported layout:
    - (1, 4 + C + P, A) or (4 + C + P, A): rows are [cx, cy, w, h, class_scores(C), mask_coeffs(P)]
      in reference-grid pixels, e.g. 42 x 8400 for 6 classes and 32 prototypes.
    - (1, 4 + C, A): detection-only export, no mask coefficients.

    Anything else is treated as "no usable output" and decodes to [].
    """

    def __init__(self, cfg: PipelineConfig = PipelineConfig()):
        self.cfg = cfg

    def decode(self, preds: np.ndarray) -> List[Detection]:
        decoded = self._decode(preds)
        if decoded is None:
            return []
        boxes, scores, class_ids, coeffs = decoded

        detections: List[Detection] = []
        for i, ((x, y, w, h), score, cls_id) in enumerate(zip(boxes, scores, class_ids)):
            detections.append(
                Detection(
                    class_index=int(cls_id),
                    confidence=float(score),
                    box=Rect(float(x), float(y), float(w), float(h)),
                    mask_coefficients=tuple(float(c) for c in coeffs[i]) if coeffs is not None else None,
                )
            )
        return detections

    # ------------------------------------------------------------------ #
    # Helper internal
    # ------------------------------------------------------------------ #
    def _decode(self, preds: np.ndarray) -> Optional[_Decoded]:
        """
        Decode to normalized xywh boxes, scores, class ids and optional (N, P) coefficients.
        Anchors are scanned in order and the first `max_detections` survivors are kept.
        """

        try:
            p = np.asarray(preds, dtype=np.float32)
        except (TypeError, ValueError):
            logger.warning("Detection output is not numeric; skipping frame")
            return None

        if p.ndim == 3:
            if p.shape[0] != 1:
                logger.warning("Batch > 1 is not supported (got shape %s)", p.shape)
                return None
            p = p[0]
        if p.ndim != 2:
            logger.warning("Unsupported detection output shape: %s", p.shape)
            return None

        num_features, num_anchors = p.shape
        num_classes = self.cfg.num_classes
        min_features = 4 + num_classes
        if num_features < min_features:
            logger.warning(
                "Detection output has %d rows, expected at least %d (4 box + %d classes)",
                num_features,
                min_features,
                num_classes,
            )
            return None
        if num_anchors == 0:
            return None

        class_scores = p[4:min_features, :]
        class_ids = np.argmax(class_scores, axis=0)
        scores = class_scores[class_ids, np.arange(num_anchors)]

        # Anchors with a NaN/inf box or score are never candidates.
        finite = np.isfinite(p[0:min_features, :]).all(axis=0)
        if not finite.all():
            logger.debug("Dropping %d anchors with non-finite box or score", int((~finite).sum()))

        # Early exit in anchor order, not a ranking.
        keep = np.flatnonzero(finite & (scores > self.cfg.confidence_threshold))[: self.cfg.max_detections]
        if keep.size == 0:
            return None

        # Convert cxcywh (grid pixels) -> normalized top-left xywh
        ref_w, ref_h = self.cfg.reference_size
        cx, cy, w_box, h_box = p[0:4, keep]
        boxes = np.stack(
            [(cx - w_box / 2) / ref_w, (cy - h_box / 2) / ref_h, w_box / ref_w, h_box / ref_h],
            axis=1,
        )
        boxes = np.clip(boxes, 0.0, 1.0)

        coeffs: Optional[np.ndarray] = None
        num_extra = num_features - min_features
        if num_extra > 0 and num_extra == self.cfg.num_mask_protos:
            coeffs = p[min_features:, keep].T
        elif num_extra > 0:
            logger.debug(
                "Ignoring %d trailing rows (expected %d mask coefficients)", num_extra, self.cfg.num_mask_protos
            )

        return boxes, scores[keep], class_ids[keep], coeffs


def decode_detections(preds: np.ndarray, cfg: PipelineConfig = PipelineConfig()) -> List[Detection]:
    return SegPostprocessor(cfg).decode(preds)


def split_outputs(
    outputs: Sequence[np.ndarray],
    cfg: PipelineConfig = PipelineConfig(),
) -> Tuple[Optional[np.ndarray], Optional[np.ndarray]]:
    """
    Pick the detection and prototype tensors out of the engine outputs by shape.

    Engines return auxiliary outputs in arbitrary order, so position is ignored:
    - detection: rank 3, batch 1, exactly 4 + C + P rows (preferred) or 4 + C rows
    - prototypes: rank 4, batch 1, exactly P channels
    Any other tensor is ignored.
    """

    seg_rows = 4 + cfg.num_classes + cfg.num_mask_protos
    box_rows = 4 + cfg.num_classes
    candidates = {}
    protos: Optional[np.ndarray] = None

    for out in outputs:
        shape = getattr(out, "shape", None)
        if shape is None:
            logger.debug("Ignoring output without a shape: %r", type(out))
            continue
        if len(shape) == 3 and shape[0] == 1 and shape[1] in (seg_rows, box_rows):
            candidates.setdefault(int(shape[1]), np.asarray(out))
        elif len(shape) == 4 and shape[0] == 1 and shape[1] == cfg.num_mask_protos and protos is None:
            protos = np.asarray(out)
        else:
            logger.debug("Ignoring output with shape %s", tuple(shape))

    detection = candidates.get(seg_rows)
    if detection is None:
        detection = candidates.get(box_rows)
    return detection, protos
