from typing import Tuple

import numpy as np


def scale_fill(image: np.ndarray, new_shape: Tuple[int, int] = (640, 640)) -> np.ndarray:
    """
    Stretch the image to exactly `new_shape` (width, height), ignoring aspect ratio.

    The segmentation exports are fed stretched frames, so normalized box
    coordinates map straight back onto the original frame without padding math.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for scale_fill(). Install with `pip install opencv-python`.") from e

    if isinstance(new_shape, int):
        new_shape = (new_shape, new_shape)

    h, w = image.shape[:2]
    new_w, new_h = new_shape
    if (w, h) == (new_w, new_h):
        return image
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_LINEAR)


def make_blob(image_bgr: np.ndarray, new_shape: Tuple[int, int] = (640, 640)) -> np.ndarray:
    """BGR (H, W, 3) uint8 -> RGB float32 NCHW blob in [0, 1]."""
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    img = scale_fill(image_bgr, new_shape)
    blob = img[:, :, ::-1].astype(np.float32) / 255.0
    return np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])
