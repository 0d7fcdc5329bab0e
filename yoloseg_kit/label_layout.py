"""
Label placement for detection overlays (live preview and burned-in frames share it).

Greedy and order dependent: labels are placed top to bottom by box center, each
one either centered on its box or moved to the nearest free offset candidate.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

from .classes import DEFAULT_CLASSES, ClassTable
from .geometry import Rect
from .types import Detection, LabelPosition

Size = Tuple[float, float]

DEFAULT_LABEL_SIZE: Size = (100.0, 44.0)
DEFAULT_MARGIN = 4.0
NO_GO_INSET = 0.2
NEAR_FACTOR = 0.6


def convert_box(box: Rect, size: Size) -> Rect:
    """Normalized box -> pixel rect for a (width, height) target."""
    return box.to_pixels(size)


def label_rect(position: LabelPosition, label_size: Size = DEFAULT_LABEL_SIZE) -> Rect:
    cx, cy = position.center
    return Rect.from_center(cx, cy, label_size[0], label_size[1])


def candidate_offsets(label_size: Size = DEFAULT_LABEL_SIZE, margin: float = DEFAULT_MARGIN) -> List[Tuple[float, float]]:
    """
    Sixteen (dx, dy) offsets from the box center: a near tier then a far tier, each
    ordered right, left, up, down, up-right, up-left, down-right, down-left.
    """

    w, h = label_size
    tiers = (
        (NEAR_FACTOR * w / 2, NEAR_FACTOR * h / 2),
        (w + margin, h + margin),
    )
    offsets: List[Tuple[float, float]] = []
    for dx, dy in tiers:
        offsets.extend(
            [
                (dx, 0.0),
                (-dx, 0.0),
                (0.0, -dy),
                (0.0, dy),
                (dx, -dy),
                (-dx, -dy),
                (dx, dy),
                (-dx, dy),
            ]
        )
    return offsets


def no_go_regions(
    detections: Sequence[Detection],
    view_size: Size,
    classes: ClassTable = DEFAULT_CLASSES,
) -> List[Rect]:
    """Disease boxes in pixel space, shrunk by 20% on each side."""
    regions: List[Rect] = []
    for det in detections:
        if not classes.is_disease(det.class_index):
            continue
        r = convert_box(det.box, view_size)
        regions.append(r.inset(r.width * NO_GO_INSET, r.height * NO_GO_INSET))
    return regions


def _is_free(rect: Rect, no_go: Sequence[Rect], placed: Sequence[Rect]) -> bool:
    if any(rect.intersects(z) for z in no_go):
        return False
    return not any(rect.intersects(p) for p in placed)


def _place(
    box_rect: Rect,
    view_size: Size,
    label_size: Size,
    offsets: Sequence[Tuple[float, float]],
    no_go: Sequence[Rect],
    placed: Sequence[Rect],
) -> Rect:
    w, h = label_size
    cx, cy = box_rect.mid_x, box_rect.mid_y
    centered = Rect.from_center(cx, cy, w, h)
    if centered.inside(*view_size) and _is_free(centered, no_go, placed):
        return centered

    best: Optional[Rect] = None
    best_dist = math.inf
    for dx, dy in offsets:
        cand = Rect.from_center(cx + dx, cy + dy, w, h)
        if not cand.inside(*view_size) or not _is_free(cand, no_go, placed):
            continue
        dist = math.hypot(dx, dy)
        # Strict comparison keeps the earlier candidate on ties.
        if dist < best_dist:
            best, best_dist = cand, dist

    # Labels are never dropped; overlap is accepted as the last resort.
    return best if best is not None else centered


def resolve_positions(
    detections: Sequence[Detection],
    view_size: Size,
    label_size: Size = DEFAULT_LABEL_SIZE,
    margin: float = DEFAULT_MARGIN,
    classes: ClassTable = DEFAULT_CLASSES,
) -> List[LabelPosition]:
    """
    Compute one label anchor per detection, avoiding other labels and disease regions.

    Args:
        detections: final detection list (not modified).
        view_size: (width, height) of the render target in pixels.
        label_size: estimated (width, height) of a label.
        margin: extra spacing kept around already placed labels.

    Returns:
        `LabelPosition` list in the same order as `detections`.
    """

    if not detections:
        return []

    box_rects = [convert_box(d.box, view_size) for d in detections]
    no_go = no_go_regions(detections, view_size, classes)
    offsets = candidate_offsets(label_size, margin)

    # Stable sort: equal centers keep input order.
    order = sorted(range(len(detections)), key=lambda i: box_rects[i].mid_y)

    placed: List[Rect] = []
    labels: List[Optional[Rect]] = [None] * len(detections)
    for i in order:
        rect = _place(box_rects[i], view_size, label_size, offsets, no_go, placed)
        labels[i] = rect
        placed.append(rect.expanded(margin))

    return [
        LabelPosition(center=(label.mid_x, label.mid_y), box_rect=box)
        for label, box in zip(labels, box_rects)
    ]
