from __future__ import annotations

import argparse
import time
from typing import Dict, List

import numpy as np

from yoloseg_kit import (
    PipelineConfig,
    decode_detections,
    filter_disease_by_overlap,
    resolve_positions,
    suppress_duplicates,
    synthesize_mask,
)


def _stage_line(name: str, values_s: List[float]) -> str:
    ms = np.asarray(values_s) * 1000.0
    p50, p90, p95 = np.percentile(ms, [50, 90, 95])
    return f"{name:>7}: n={ms.size} mean={ms.mean():.3f}ms p50={p50:.3f}ms p90={p90:.3f}ms p95={p95:.3f}ms"


def _synthetic_outputs(cfg: PipelineConfig, anchors: int, mask_size: int, seed: int):
    """Random (1, 4+C+P, A) detection tensor + (1, P, S, S) prototypes with a few confident anchors."""
    rng = np.random.default_rng(seed)
    ref_w, ref_h = cfg.reference_size
    rows = 4 + cfg.num_classes + cfg.num_mask_protos
    det = np.zeros((1, rows, anchors), dtype=np.float32)
    det[0, 0] = rng.uniform(0, ref_w, anchors)
    det[0, 1] = rng.uniform(0, ref_h, anchors)
    det[0, 2] = rng.uniform(10, 200, anchors)
    det[0, 3] = rng.uniform(10, 200, anchors)
    det[0, 4 : 4 + cfg.num_classes] = rng.uniform(0.0, 0.3, (cfg.num_classes, anchors))
    hot = rng.choice(anchors, size=min(anchors, 300), replace=False)
    det[0, 4 + rng.integers(0, cfg.num_classes, hot.size), hot] = rng.uniform(0.5, 1.0, hot.size)
    det[0, 4 + cfg.num_classes :] = rng.normal(0.0, 1.0, (cfg.num_mask_protos, anchors))
    protos = rng.normal(0.0, 1.0, (1, cfg.num_mask_protos, mask_size, mask_size)).astype(np.float32)
    return det, protos


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark segmentation post-processing stages on synthetic tensors.")
    parser.add_argument("--anchors", type=int, default=8400, help="Anchor count of the synthetic detection tensor.")
    parser.add_argument("--mask-size", type=int, default=160, help="Prototype resolution (square).")
    parser.add_argument("--conf", type=float, default=0.25, help="Confidence threshold.")
    parser.add_argument("--warmup", type=int, default=10, help="Warmup iterations to run but not record.")
    parser.add_argument("--repeats", type=int, default=100, help="Recorded iterations.")
    parser.add_argument("--seed", type=int, default=0)
    args = parser.parse_args()

    if args.anchors < 1:
        raise ValueError("--anchors must be >= 1")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")

    cfg = PipelineConfig(confidence_threshold=float(args.conf))
    det, protos = _synthetic_outputs(cfg, int(args.anchors), int(args.mask_size), int(args.seed))

    timings: Dict[str, List[float]] = {k: [] for k in ("decode", "nms", "filter", "mask", "layout")}
    for it in range(int(args.warmup) + int(args.repeats)):
        t0 = time.perf_counter()
        detections = decode_detections(det, cfg)
        t1 = time.perf_counter()
        detections = suppress_duplicates(detections)
        t2 = time.perf_counter()
        detections = filter_disease_by_overlap(detections, enabled=cfg.disease_overlap_only)
        t3 = time.perf_counter()
        synthesize_mask(protos, detections)
        t4 = time.perf_counter()
        resolve_positions(detections, (1080.0, 1920.0))
        t5 = time.perf_counter()

        if it < int(args.warmup):
            continue
        for key, dt in zip(timings, (t1 - t0, t2 - t1, t3 - t2, t4 - t3, t5 - t4)):
            timings[key].append(dt)

    for key, values in timings.items():
        print(_stage_line(key, values))
    print(f"final detections={len(detections)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
