from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from .classes import DEFAULT_CLASSES, ClassTable
from .types import Detection

logger = logging.getLogger(__name__)

MASK_ALPHA = 160


@dataclass(frozen=True)
class PrototypeView:
    """
    Read-only (P, H, W) view over prototype mask channels.

    Storage may be padded or non-contiguous; indexing always goes through the
    array strides, never through a flat row-major offset.
    """

    data: np.ndarray

    @property
    def num_protos(self) -> int:
        return int(self.data.shape[0])

    @property
    def height(self) -> int:
        return int(self.data.shape[1])

    @property
    def width(self) -> int:
        return int(self.data.shape[2])

    @classmethod
    def from_array(cls, protos: np.ndarray) -> "PrototypeView":
        """
        Accepts (1, P, H, W) or (P, H, W). Raises ValueError for anything else.
        """

        arr = np.asarray(protos)
        if arr.ndim == 4:
            if arr.shape[0] != 1:
                raise ValueError(f"Batch > 1 is not supported (got shape {arr.shape})")
            arr = arr[0]
        if arr.ndim != 3:
            raise ValueError(f"Expected prototype shape (1, P, H, W) or (P, H, W), got {arr.shape}")
        return cls(arr)

    @classmethod
    def from_buffer(
        cls,
        buffer,
        shape: Sequence[int],
        strides: Sequence[int],
        dtype=np.float32,
    ) -> "PrototypeView":
        """
        Wrap a raw buffer with explicit per-axis element strides, e.g. a padded
        engine output with shape (1, 32, 160, 160) and strides (819840, 25620, 161, 1).
        """

        if len(shape) != len(strides):
            raise ValueError("shape and strides must have the same length")
        flat = np.frombuffer(buffer, dtype=dtype)
        if any(s <= 0 for s in shape):
            raise ValueError(f"Invalid prototype shape: {tuple(shape)}")
        if any(st < 0 for st in strides):
            raise ValueError("Negative strides are not supported")
        last = sum((s - 1) * st for s, st in zip(shape, strides))
        if last >= flat.size:
            raise ValueError(f"Buffer of {flat.size} elements is too small for shape {tuple(shape)}")

        itemsize = flat.dtype.itemsize
        view = np.lib.stride_tricks.as_strided(
            flat,
            shape=tuple(int(s) for s in shape),
            strides=tuple(int(st) * itemsize for st in strides),
            writeable=False,
        )
        return cls.from_array(view)


def _sigmoid(x: np.ndarray) -> np.ndarray:
    with np.errstate(over="ignore"):
        return 1.0 / (1.0 + np.exp(-x))


def synthesize_mask(
    protos,
    detections: Sequence[Detection],
    classes: ClassTable = DEFAULT_CLASSES,
    alpha: int = MASK_ALPHA,
) -> Optional[np.ndarray]:
    """
    Combine per-detection coefficients with the shared prototypes into one RGBA raster.

    For each detection the linear combination sum_j(coeff_j * proto_j) is evaluated
    only inside its own box (mapped to mask pixels), squashed with a sigmoid, and
    pixels with probability > 0.5 get the class color. Later detections overwrite
    earlier ones.

    Args:
        protos: `PrototypeView` or array shaped (1, P, H, W) / (P, H, W).
        detections: final detection list, iteration order decides overwrite order.

    Returns:
        (H, W, 4) uint8 RGBA, transparent where no mask was written, or None if the
        prototype tensor has an unusable shape.
    """

    if isinstance(protos, PrototypeView):
        view = protos
    else:
        try:
            view = PrototypeView.from_array(protos)
        except ValueError as exc:
            logger.warning("Skipping mask synthesis: %s", exc)
            return None

    mask_h, mask_w = view.height, view.width
    raster = np.zeros((mask_h, mask_w, 4), dtype=np.uint8)

    for det in detections:
        coeffs = det.mask_coefficients
        if coeffs is None or len(coeffs) != view.num_protos:
            continue
        descriptor = classes.get(det.class_index)
        if descriptor is None:
            logger.warning("Unknown class index %d; detection skipped for mask", det.class_index)
            continue

        box = det.box
        if not np.isfinite(box.as_xywh()).all():
            logger.warning("Non-finite box for class %d; detection skipped for mask", det.class_index)
            continue
        x0 = max(0, int(box.min_x * mask_w))
        y0 = max(0, int(box.min_y * mask_h))
        x1 = min(mask_w, int(box.max_x * mask_w))
        y1 = min(mask_h, int(box.max_y * mask_h))
        if x1 <= x0 or y1 <= y0:
            continue

        # Only the box region is evaluated.
        crop = view.data[:, y0:y1, x0:x1]
        logits = np.tensordot(np.asarray(coeffs, dtype=np.float32), crop, axes=(0, 0))
        hit = _sigmoid(logits) > 0.5

        r, g, b = descriptor.color
        region = raster[y0:y1, x0:x1]
        region[hit] = (r, g, b, alpha)

    return raster
