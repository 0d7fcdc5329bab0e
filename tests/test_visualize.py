import unittest

import numpy as np

try:
    import cv2  # noqa: F401
except ImportError:  # pragma: no cover
    cv2 = None

from yoloseg_kit.geometry import Rect
from yoloseg_kit.label_layout import resolve_positions
from yoloseg_kit.preprocess import make_blob
from yoloseg_kit.types import Detection
from yoloseg_kit.visualize import composite_mask, draw_detections, render_overlay


@unittest.skipIf(cv2 is None, "opencv-python not installed")
class TestCompositeMask(unittest.TestCase):
    def test_none_mask_returns_copy(self) -> None:
        img = np.full((20, 30, 3), 7, dtype=np.uint8)
        out = composite_mask(img, None)
        self.assertIsNot(out, img)
        self.assertTrue(np.array_equal(out, img))

    def test_blend_and_resize(self) -> None:
        img = np.zeros((8, 8, 3), dtype=np.uint8)
        mask = np.zeros((4, 4, 4), dtype=np.uint8)
        mask[0, 0] = (255, 0, 0, 255)  # opaque red (RGB)
        out = composite_mask(img, mask)
        self.assertEqual(out.shape, (8, 8, 3))
        # BGR output
        self.assertEqual(tuple(out[0, 0]), (0, 0, 255))
        self.assertEqual(tuple(out[1, 1]), (0, 0, 255))
        self.assertFalse(out[4:, 4:].any())

    def test_partial_alpha(self) -> None:
        img = np.full((2, 2, 3), 100, dtype=np.uint8)
        mask = np.zeros((2, 2, 4), dtype=np.uint8)
        mask[..., :3] = 200
        mask[..., 3] = 160
        out = composite_mask(img, mask)
        expected = round(100 * (1 - 160 / 255) + 200 * 160 / 255)
        self.assertTrue((out == expected).all())

    def test_bad_mask_shape(self) -> None:
        with self.assertRaises(ValueError):
            composite_mask(np.zeros((4, 4, 3), dtype=np.uint8), np.zeros((4, 4), dtype=np.uint8))


@unittest.skipIf(cv2 is None, "opencv-python not installed")
class TestDrawDetections(unittest.TestCase):
    def test_draws_without_mutating_input(self) -> None:
        img = np.zeros((400, 400, 3), dtype=np.uint8)
        dets = [
            Detection(class_index=0, confidence=0.9, box=Rect(0.1, 0.1, 0.3, 0.3)),
            Detection(class_index=3, confidence=0.7, box=Rect(0.2, 0.2, 0.1, 0.1)),
        ]
        out = draw_detections(img, dets)
        self.assertFalse(img.any())
        self.assertTrue(out.any())

    def test_positions_must_match(self) -> None:
        img = np.zeros((100, 100, 3), dtype=np.uint8)
        det = Detection(class_index=0, confidence=0.9, box=Rect(0.1, 0.1, 0.3, 0.3))
        positions = resolve_positions([det], (100.0, 100.0))
        with self.assertRaises(ValueError):
            draw_detections(img, [det, det], positions=positions)

    def test_unknown_class_not_drawn(self) -> None:
        img = np.zeros((100, 100, 3), dtype=np.uint8)
        det = Detection(class_index=99, confidence=0.9, box=Rect(0.1, 0.1, 0.3, 0.3))
        with self.assertLogs("yoloseg_kit.visualize", level="WARNING"):
            out = draw_detections(img, [det])
        self.assertFalse(out.any())

    def test_render_overlay(self) -> None:
        img = np.zeros((64, 64, 3), dtype=np.uint8)
        mask = np.zeros((16, 16, 4), dtype=np.uint8)
        out = render_overlay(img, mask, [])
        self.assertTrue(np.array_equal(out, img))


@unittest.skipIf(cv2 is None, "opencv-python not installed")
class TestPreprocess(unittest.TestCase):
    def test_blob_layout(self) -> None:
        img = np.zeros((480, 360, 3), dtype=np.uint8)
        img[..., 2] = 255  # red in BGR
        blob = make_blob(img, (640, 640))
        self.assertEqual(blob.shape, (1, 3, 640, 640))
        self.assertEqual(blob.dtype, np.float32)
        self.assertTrue(np.allclose(blob[0, 0], 1.0))
        self.assertTrue(np.allclose(blob[0, 1:], 0.0))

    def test_rejects_non_bgr(self) -> None:
        with self.assertRaises(ValueError):
            make_blob(np.zeros((10, 10), dtype=np.uint8))


if __name__ == "__main__":
    unittest.main()
