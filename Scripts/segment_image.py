import argparse
import logging
from pathlib import Path

import cv2
import numpy as np

from yoloseg_kit import (
    DEFAULT_CLASSES,
    PipelineConfig,
    load_pipeline,
    load_pipeline_config,
    process_outputs,
    rate_fps,
    render_overlay,
    summarize_detections,
)


def _build_config(args: argparse.Namespace) -> PipelineConfig:
    cfg = load_pipeline_config(Path(args.config)) if args.config else PipelineConfig()
    if args.conf is not None:
        cfg = cfg.with_threshold(args.conf)
    if args.all_diseases:
        cfg = cfg.with_overlap_filter(False)
    return cfg


def _print_result(result) -> None:
    for det in result.detections:
        name = DEFAULT_CLASSES.get(det.class_index)
        label = name.name if name is not None else str(det.class_index)
        print(label, f"{det.confidence:.2f}", det.box.as_xywh())
    stats = summarize_detections(result.detections)
    print(f"Detections: {stats.total} (disease {stats.disease}, healthy {stats.healthy})")


def main() -> int:
    parser = argparse.ArgumentParser(description="Run asparagus segmentation and render masks + labels.")
    src = parser.add_mutually_exclusive_group()
    src.add_argument("--image", default=None, help="Path to an input image.")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument("--webcam", type=int, default=None, help="Webcam index (e.g., 0).")
    engine = parser.add_mutually_exclusive_group(required=True)
    engine.add_argument("--model", default=None, help="Path to an ONNX segmentation export.")
    engine.add_argument("--tensors", default=None, help="Saved model outputs (.npz) for a single --image.")
    parser.add_argument("--config", default=None, help="Pipeline config JSON (confidence_threshold, disease_overlap_only).")
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold override (0.1-0.9).")
    parser.add_argument("--all-diseases", action="store_true", help="Keep disease hits that touch no plant.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--show", action="store_true", help="Show a window with the overlay.")
    parser.add_argument("--out", default=None, help="Optional output path (image or video) to save the overlay.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = no limit).")
    parser.add_argument("--verbose", action="store_true", help="Debug logging.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    cfg = _build_config(args)

    if args.tensors is not None:
        if args.image is None:
            raise ValueError("--tensors requires --image")
        img = cv2.imread(args.image)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {args.image}")
        with np.load(args.tensors) as data:
            outputs = [data[k] for k in data.files]
        result = process_outputs(outputs, cfg)
        vis = render_overlay(img, result.mask, result.detections)
        if args.out and not cv2.imwrite(args.out, vis):
            raise RuntimeError(f"Failed to write output image: {args.out}")
        if args.show:
            cv2.imshow("segmentation", vis)
            cv2.waitKey(0)
            cv2.destroyAllWindows()
        _print_result(result)
        return 0

    onnx_providers = None
    if args.onnx_providers:
        onnx_providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]
    pipeline = load_pipeline(args.model, config=cfg, onnx_providers=onnx_providers)

    if args.image is not None:
        img = cv2.imread(args.image)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {args.image}")
        result = pipeline(img)
        if result is None:
            raise RuntimeError("Inference failed; see log output.")
        vis = render_overlay(img, result.mask, result.detections)
        if args.out and not cv2.imwrite(args.out, vis):
            raise RuntimeError(f"Failed to write output image: {args.out}")
        if args.show:
            cv2.imshow("segmentation", vis)
            cv2.waitKey(0)
            cv2.destroyAllWindows()
        _print_result(result)
        print(f"Inference: {result.inference_time * 1000:.1f} ms")
        return 0

    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")

    if args.video is not None:
        cap = cv2.VideoCapture(args.video)
        if not cap.isOpened():
            raise FileNotFoundError(f"Could not open video: {args.video}")
    else:
        cam_index = 0 if args.webcam is None else int(args.webcam)
        cap = cv2.VideoCapture(cam_index)
        if not cap.isOpened():
            raise RuntimeError(f"Could not open webcam index: {cam_index}")

    writer = None
    processed = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break

            pipeline(frame)
            # Burn in the latest published result, even if this frame was dropped.
            mask, detections = pipeline.snapshot()
            vis = render_overlay(frame, mask, detections)

            if args.out and writer is None:
                fps = cap.get(cv2.CAP_PROP_FPS)
                if fps is None or fps <= 0:
                    fps = 30.0
                h, w = vis.shape[:2]
                fourcc = cv2.VideoWriter_fourcc(*"mp4v")
                writer = cv2.VideoWriter(args.out, fourcc, fps, (w, h))
                if not writer.isOpened():
                    raise RuntimeError(f"Failed to open video writer: {args.out}")

            if writer is not None:
                writer.write(vis)

            if args.show:
                cv2.imshow("segmentation", vis)
                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord("q")):
                    break

            processed += 1
            if args.max_frames and processed >= args.max_frames:
                break
    finally:
        cap.release()
        if writer is not None:
            writer.release()
        if args.show:
            cv2.destroyAllWindows()

    summary = pipeline.metrics_summary()
    print(
        f"Frames: {processed}, avg {summary.average_fps:.1f} fps ({rate_fps(summary.average_fps)}), "
        f"avg inference {summary.average_inference_time * 1000:.1f} ms, dropped {pipeline.dropped_frames}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
