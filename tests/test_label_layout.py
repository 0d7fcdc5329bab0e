import itertools
import unittest

from yoloseg_kit.geometry import Rect
from yoloseg_kit.label_layout import (
    DEFAULT_LABEL_SIZE,
    candidate_offsets,
    convert_box,
    label_rect,
    no_go_regions,
    resolve_positions,
)
from yoloseg_kit.types import Detection

VIEW = (1000.0, 1000.0)
MAIN_STEM, ASPARAGUS, BRANCH, BROWN_SPOT = range(4)


def _det(cls: int, x: float, y: float, w: float, h: float) -> Detection:
    return Detection(class_index=cls, confidence=0.8, box=Rect(x, y, w, h))


def _assert_disjoint(tc: unittest.TestCase, rects) -> None:
    for a, b in itertools.combinations(rects, 2):
        tc.assertFalse(a.intersects(b), f"{a} overlaps {b}")


class TestConvertBox(unittest.TestCase):
    def test_round_trip(self) -> None:
        r = convert_box(Rect(0.25, 0.25, 0.25, 0.25), VIEW)
        self.assertEqual(r.as_xywh(), (250.0, 250.0, 250.0, 250.0))

    def test_clamps_components(self) -> None:
        r = convert_box(Rect(-0.5, 0.5, 2.0, 0.1), (200.0, 100.0))
        self.assertEqual(r.x, 0.0)
        self.assertEqual(r.width, 200.0)
        self.assertAlmostEqual(r.y, 50.0)
        self.assertAlmostEqual(r.height, 10.0)


class TestResolvePositions(unittest.TestCase):
    def test_empty(self) -> None:
        self.assertEqual(resolve_positions([], VIEW), [])

    def test_far_apart_boxes_stay_centered(self) -> None:
        dets = [
            _det(MAIN_STEM, 0.05, 0.05, 0.2, 0.2),
            _det(ASPARAGUS, 0.7, 0.1, 0.2, 0.2),
            _det(BRANCH, 0.1, 0.7, 0.2, 0.2),
            _det(ASPARAGUS, 0.7, 0.7, 0.2, 0.2),
        ]
        positions = resolve_positions(dets, VIEW)
        self.assertEqual(len(positions), len(dets))
        for pos in positions:
            self.assertAlmostEqual(pos.center[0], pos.box_rect.mid_x)
            self.assertAlmostEqual(pos.center[1], pos.box_rect.mid_y)
        _assert_disjoint(self, [label_rect(p) for p in positions])

    def test_output_keeps_input_order(self) -> None:
        # Bottom box first in input; placement runs top-down but output order is unchanged.
        dets = [_det(MAIN_STEM, 0.1, 0.8, 0.1, 0.1), _det(ASPARAGUS, 0.6, 0.1, 0.1, 0.1)]
        positions = resolve_positions(dets, VIEW)
        self.assertEqual(positions[0].box_rect, convert_box(dets[0].box, VIEW))
        self.assertEqual(positions[1].box_rect, convert_box(dets[1].box, VIEW))

    def test_stacked_boxes_get_disjoint_labels(self) -> None:
        dets = [_det(ASPARAGUS, 0.45, 0.45, 0.1, 0.1) for _ in range(5)]
        positions = resolve_positions(dets, VIEW)
        rects = [label_rect(p) for p in positions]
        _assert_disjoint(self, rects)
        for r in rects:
            self.assertTrue(r.inside(*VIEW))
        # Top-down priority with ties in input order: first label stays centered, next goes up.
        self.assertEqual(positions[0].center, (500.0, 500.0))
        self.assertEqual(positions[1].center, (500.0, 452.0))
        self.assertEqual(positions[2].center, (500.0, 548.0))

    def test_label_kept_inside_target(self) -> None:
        det = _det(MAIN_STEM, 0.0, 0.0, 0.05, 0.05)
        pos = resolve_positions([det], VIEW)[0]
        self.assertTrue(label_rect(pos).inside(*VIEW))
        self.assertAlmostEqual(pos.center[0], 25.0 + 0.6 * DEFAULT_LABEL_SIZE[0] / 2)
        self.assertAlmostEqual(pos.center[1], 25.0)

    def test_labels_avoid_disease_regions(self) -> None:
        disease = _det(BROWN_SPOT, 0.5, 0.5, 0.05, 0.05)
        pos = resolve_positions([disease], VIEW)[0]
        zone = no_go_regions([disease], VIEW)[0]
        self.assertFalse(label_rect(pos).intersects(zone))
        self.assertAlmostEqual(pos.center[0], 525.0)
        self.assertAlmostEqual(pos.center[1], 477.0)

    def test_plant_label_moves_off_nearby_disease(self) -> None:
        plant = _det(MAIN_STEM, 0.4, 0.4, 0.2, 0.2)
        disease = _det(BROWN_SPOT, 0.48, 0.48, 0.04, 0.04)
        positions = resolve_positions([plant, disease], VIEW)
        zone = no_go_regions([plant, disease], VIEW)[0]
        for pos in positions:
            self.assertFalse(label_rect(pos).intersects(zone))
        _assert_disjoint(self, [label_rect(p) for p in positions])

    def test_no_candidate_falls_back_to_center(self) -> None:
        disease = _det(BROWN_SPOT, 0.2, 0.2, 0.6, 0.6)
        pos = resolve_positions([disease], VIEW)[0]
        self.assertAlmostEqual(pos.center[0], 500.0)
        self.assertAlmostEqual(pos.center[1], 500.0)

    def test_deterministic(self) -> None:
        dets = [_det(i % 4, 0.1 * (i % 7), 0.13 * (i % 5), 0.15, 0.1) for i in range(12)]
        self.assertEqual(resolve_positions(dets, VIEW), resolve_positions(dets, VIEW))

    def test_does_not_mutate_input(self) -> None:
        dets = [_det(ASPARAGUS, 0.45, 0.45, 0.1, 0.1), _det(BROWN_SPOT, 0.46, 0.46, 0.1, 0.1)]
        before = list(dets)
        resolve_positions(dets, VIEW)
        self.assertEqual(dets, before)


class TestCandidateOffsets(unittest.TestCase):
    def test_sixteen_near_then_far(self) -> None:
        offsets = candidate_offsets((100.0, 44.0), 4.0)
        self.assertEqual(len(offsets), 16)
        self.assertEqual(offsets[0], (30.0, 0.0))
        self.assertEqual(offsets[2], (0.0, -0.6 * 22.0))
        self.assertEqual(offsets[8], (104.0, 0.0))
        self.assertEqual(offsets[11], (0.0, 48.0))
        near = [abs(dx) + abs(dy) for dx, dy in offsets[:8]]
        far = [abs(dx) + abs(dy) for dx, dy in offsets[8:]]
        self.assertLess(max(near), min(far))


if __name__ == "__main__":
    unittest.main()
