"""
Post-processing for YOLO segmentation exports on asparagus field footage.

Framework-agnostic: takes the NumPy tensors emitted by any inference engine
and produces de-duplicated, disease-filtered detections, an RGBA mask raster
and non-overlapping label anchors. OpenCV is only needed for preprocessing
and drawing.
"""

from .classes import ASPARAGUS_CLASSES, DEFAULT_CLASSES, ClassDescriptor, ClassTable
from .config import PipelineConfig, load_pipeline_config
from .geometry import Rect, iou
from .label_layout import convert_box, resolve_positions
from .masks import PrototypeView, synthesize_mask
from .metrics import RollingMetrics, rate_fps, rate_inference_time
from .nms import NMSConfig, nms, suppress_duplicates
from .overlap_filter import filter_disease_by_overlap
from .postprocess import SegPostprocessor, decode_detections, split_outputs
from .runtime import SegmentationPipeline, load_pipeline, process_outputs
from .stats import DetectionStats, area_category, summarize_detections
from .types import Detection, LabelPosition, SegmentationResult
from .visualize import composite_mask, draw_detections, render_overlay

__all__ = [
    "ASPARAGUS_CLASSES",
    "DEFAULT_CLASSES",
    "ClassDescriptor",
    "ClassTable",
    "PipelineConfig",
    "load_pipeline_config",
    "Rect",
    "iou",
    "convert_box",
    "resolve_positions",
    "PrototypeView",
    "synthesize_mask",
    "RollingMetrics",
    "rate_fps",
    "rate_inference_time",
    "NMSConfig",
    "nms",
    "suppress_duplicates",
    "filter_disease_by_overlap",
    "SegPostprocessor",
    "decode_detections",
    "split_outputs",
    "SegmentationPipeline",
    "load_pipeline",
    "process_outputs",
    "DetectionStats",
    "area_category",
    "summarize_detections",
    "Detection",
    "LabelPosition",
    "SegmentationResult",
    "composite_mask",
    "draw_detections",
    "render_overlay",
]
