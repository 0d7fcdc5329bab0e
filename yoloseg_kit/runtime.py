from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

from .classes import DEFAULT_CLASSES, ClassTable
from .config import PipelineConfig
from .label_layout import DEFAULT_LABEL_SIZE, resolve_positions
from .masks import synthesize_mask
from .metrics import FrameClock, MetricsSummary, RollingMetrics
from .nms import NMSConfig, suppress_duplicates
from .overlap_filter import filter_disease_by_overlap
from .postprocess import decode_detections, split_outputs
from .preprocess import make_blob
from .types import Detection, LabelPosition, SegmentationResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
Outputs = Union[np.ndarray, Sequence[np.ndarray]]
InferFn = Callable[[np.ndarray], Outputs]


def process_outputs(
    outputs: Outputs,
    cfg: PipelineConfig = PipelineConfig(),
    classes: ClassTable = DEFAULT_CLASSES,
    inference_time: float = 0.0,
    fps: float = 0.0,
) -> SegmentationResult:
    """
    Raw engine outputs -> decode -> NMS -> disease overlap filter -> mask raster.

    Pure function of its arguments. Unusable outputs give an empty result instead of raising.
    """

    if isinstance(outputs, np.ndarray):
        outputs = [outputs]

    det_tensor, protos = split_outputs(outputs, cfg)
    if det_tensor is None:
        logger.warning("No usable detection tensor among %d output(s)", len(outputs))
        return SegmentationResult.empty(inference_time=inference_time, fps=fps)

    detections = decode_detections(det_tensor, cfg)
    detections = suppress_duplicates(detections, NMSConfig(iou_threshold=cfg.iou_threshold))
    detections = filter_disease_by_overlap(detections, classes, enabled=cfg.disease_overlap_only)

    mask = synthesize_mask(protos, detections, classes) if protos is not None else None
    if mask is not None:
        mask.flags.writeable = False

    return SegmentationResult(
        mask=mask,
        detections=tuple(detections),
        inference_time=inference_time,
        fps=fps,
    )


class SegmentationPipeline:
    """
    Plug-and-play pipeline: preprocess (scale-fill) -> inference -> post-process.

    Single flight: a frame arriving while another one is being processed is
    dropped (returns None), never queued. The config is read once per frame, so
    replacing `pipeline.config` mid-frame only affects the next frame.
    """

    def __init__(
        self,
        infer_fn: Optional[InferFn] = None,
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        config: PipelineConfig = PipelineConfig(),
        classes: ClassTable = DEFAULT_CLASSES,
        metrics_window: int = 30,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.classes = classes
        self.config = config
        self.metrics = RollingMetrics(metrics_window)
        self._clock = clock
        self._frame_clock = FrameClock(clock)
        self._busy = threading.Lock()
        self._dropped_lock = threading.Lock()
        self._dropped = 0
        self._result: Optional[SegmentationResult] = None

    @property
    def config(self) -> PipelineConfig:
        return self._config

    @config.setter
    def config(self, cfg: PipelineConfig) -> None:
        if not isinstance(cfg, PipelineConfig):
            raise TypeError("config must be a PipelineConfig")
        if cfg.num_classes > len(self.classes):
            logger.warning(
                "Model has %d classes but the class table only knows %d; extra classes get no mask or label",
                cfg.num_classes,
                len(self.classes),
            )
        self._config = cfg

    @property
    def current_result(self) -> Optional[SegmentationResult]:
        return self._result

    @property
    def dropped_frames(self) -> int:
        with self._dropped_lock:
            return self._dropped

    @property
    def is_processing(self) -> bool:
        return self._busy.locked()

    def metrics_summary(self) -> MetricsSummary:
        return self.metrics.summary()

    def snapshot(self) -> Tuple[Optional[np.ndarray], Tuple[Detection, ...]]:
        """Mask + detections of the last published frame, for burn-in compositing."""
        result = self._result
        if result is None:
            return None, ()
        return result.mask, result.detections

    def label_positions(
        self,
        view_size: Tuple[float, float],
        label_size: Tuple[float, float] = DEFAULT_LABEL_SIZE,
    ) -> List[LabelPosition]:
        result = self._result
        if result is None:
            return []
        return resolve_positions(result.detections, view_size, label_size=label_size, classes=self.classes)

    def process(self, outputs: Outputs, inference_time: float = 0.0) -> Optional[SegmentationResult]:
        """Post-process outputs produced elsewhere. Returns None when the frame was dropped."""
        if not self._busy.acquire(blocking=False):
            self._note_drop()
            return None
        try:
            return self._publish(outputs, inference_time, self._config)
        finally:
            self._busy.release()

    def __call__(self, image_bgr: np.ndarray) -> Optional[SegmentationResult]:
        if self._infer_fn is None:
            raise RuntimeError("Pipeline has no inference function; use process(outputs) instead.")
        if not self._busy.acquire(blocking=False):
            self._note_drop()
            return None
        try:
            cfg = self._config
            try:
                blob = make_blob(image_bgr, cfg.reference_size)
            except Exception:
                logger.exception("Frame could not be preprocessed; frame skipped")
                return None
            start = self._clock()
            try:
                outputs = self._infer_fn(blob)
            except Exception:
                logger.exception("Inference failed; frame skipped")
                return None
            inference_time = self._clock() - start
            return self._publish(outputs, inference_time, cfg)
        finally:
            self._busy.release()

    def _note_drop(self) -> None:
        with self._dropped_lock:
            self._dropped += 1
        logger.debug("Frame dropped: pipeline busy")

    def _publish(self, outputs: Outputs, inference_time: float, cfg: PipelineConfig) -> SegmentationResult:
        fps = self._frame_clock.tick()
        result = process_outputs(outputs, cfg, self.classes, inference_time=inference_time, fps=fps)
        self.metrics.append(fps, inference_time)
        self._result = result
        return result


def load_pipeline(
    model_path: PathLike,
    *,
    config: PipelineConfig = PipelineConfig(),
    classes: ClassTable = DEFAULT_CLASSES,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
) -> SegmentationPipeline:
    """
    Create a pipeline for an ONNX segmentation export on disk.

        pipe = load_pipeline("models/aspara-seg.onnx")
        result = pipe(frame_bgr)
    """

    resolved = Path(model_path).expanduser().resolve()
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Only ONNX exports are supported (got '{resolved.suffix}').")

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(providers=onnx_providers, input_name=onnx_input_name),
    )
    return SegmentationPipeline(
        ort_backend.infer,
        backend=ort_backend,
        backend_name="onnxruntime",
        config=config,
        classes=classes,
    )
