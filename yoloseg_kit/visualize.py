from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from .classes import DEFAULT_CLASSES, ClassTable
from .label_layout import DEFAULT_LABEL_SIZE, resolve_positions
from .types import Detection, LabelPosition

logger = logging.getLogger(__name__)


def _require_cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for drawing. Install with `pip install opencv-python`.") from e
    return cv2


def _check_bgr(image_bgr: np.ndarray) -> None:
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")


def _bgr(rgb: Tuple[int, int, int]) -> Tuple[int, int, int]:
    r, g, b = rgb
    return int(b), int(g), int(r)


def composite_mask(image_bgr: np.ndarray, mask_rgba: Optional[np.ndarray]) -> np.ndarray:
    """
    Burn the RGBA mask raster into a BGR frame and return a copy.

    The mask (prototype resolution, RGB order) is stretched to the frame size and
    alpha-blended. A missing mask returns an unmodified copy.
    """

    cv2 = _require_cv2()
    _check_bgr(image_bgr)

    out = image_bgr.copy()
    if mask_rgba is None:
        return out
    if mask_rgba.ndim != 3 or mask_rgba.shape[2] != 4:
        raise ValueError(f"Expected mask shape (H, W, 4), got {mask_rgba.shape}")

    h, w = out.shape[:2]
    if mask_rgba.shape[:2] != (h, w):
        mask_rgba = cv2.resize(mask_rgba, (w, h), interpolation=cv2.INTER_NEAREST)

    alpha = mask_rgba[:, :, 3:4].astype(np.float32) / 255.0
    color_bgr = mask_rgba[:, :, 2::-1].astype(np.float32)
    blended = out.astype(np.float32) * (1.0 - alpha) + color_bgr * alpha
    return np.clip(np.rint(blended), 0, 255).astype(np.uint8)


def draw_detections(
    image_bgr: np.ndarray,
    detections: Sequence[Detection],
    *,
    positions: Optional[Sequence[LabelPosition]] = None,
    classes: ClassTable = DEFAULT_CLASSES,
    label_size: Tuple[float, float] = DEFAULT_LABEL_SIZE,
    show_score: bool = True,
    box_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw boxes and labels on an OpenCV BGR image and return a copy.

    Args:
        image_bgr: input image in BGR (H, W, 3).
        detections: detections with normalized boxes.
        positions: precomputed label anchors for this image size; resolved here if omitted.
    """

    cv2 = _require_cv2()
    _check_bgr(image_bgr)

    out = image_bgr.copy()
    h, w = out.shape[:2]
    if positions is None:
        positions = resolve_positions(detections, (w, h), label_size=label_size, classes=classes)
    if len(positions) != len(detections):
        raise ValueError("positions must have one entry per detection")

    label_w, label_h = label_size
    for det, pos in zip(detections, positions):
        descriptor = classes.get(det.class_index)
        if descriptor is None:
            logger.warning("Unknown class index %d; detection not drawn", det.class_index)
            continue
        color = _bgr(descriptor.color)

        box = pos.box_rect
        x1, y1, x2, y2 = (int(round(v)) for v in box.as_xyxy())
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=box_thickness)

        cx, cy = pos.center
        # Leader line only when the label was moved off the box center.
        if abs(cx - box.mid_x) > 2 or abs(cy - box.mid_y) > 2:
            cv2.line(
                out,
                (int(round(box.mid_x)), int(round(box.mid_y))),
                (int(round(cx)), int(round(cy))),
                (255, 255, 255),
                thickness=1,
                lineType=cv2.LINE_AA,
            )

        lx1, ly1 = int(round(cx - label_w / 2)), int(round(cy - label_h / 2))
        lx2, ly2 = int(round(cx + label_w / 2)), int(round(cy + label_h / 2))
        cv2.rectangle(out, (lx1, ly1), (lx2, ly2), color, thickness=-1)

        lines = [descriptor.name]
        if show_score:
            lines.append(f"{int(det.confidence * 100)}%")
        line_h = label_h / (len(lines) + 1)
        for k, text in enumerate(lines, start=1):
            (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
            org = (int(round(cx - tw / 2)), int(round(ly1 + line_h * k + th / 2)))
            cv2.putText(
                out,
                text,
                org,
                cv2.FONT_HERSHEY_SIMPLEX,
                font_scale,
                (255, 255, 255),
                thickness=font_thickness,
                lineType=cv2.LINE_AA,
            )

    return out


def render_overlay(
    image_bgr: np.ndarray,
    mask_rgba: Optional[np.ndarray],
    detections: Sequence[Detection],
    *,
    classes: ClassTable = DEFAULT_CLASSES,
    show_score: bool = True,
) -> np.ndarray:
    """Mask burn-in followed by boxes and labels, as recorded frames show them."""
    out = composite_mask(image_bgr, mask_rgba)
    return draw_detections(out, detections, classes=classes, show_score=show_score)
