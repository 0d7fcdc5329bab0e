from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Tuple

MIN_CONFIDENCE = 0.1
MAX_CONFIDENCE = 0.9


@dataclass(frozen=True)
class PipelineConfig:
    """
    Per-frame configuration snapshot.

    Only `confidence_threshold` and `disease_overlap_only` are meant to be
    changed at runtime; the rest describe the model export.
    """

    confidence_threshold: float = 0.25
    disease_overlap_only: bool = True
    iou_threshold: float = 0.5
    reference_size: Tuple[int, int] = (640, 640)
    max_detections: int = 100
    num_classes: int = 6
    num_mask_protos: int = 32

    def __post_init__(self) -> None:
        if not (MIN_CONFIDENCE <= self.confidence_threshold <= MAX_CONFIDENCE):
            raise ValueError(
                f"confidence_threshold must be in [{MIN_CONFIDENCE}, {MAX_CONFIDENCE}] "
                f"(got {self.confidence_threshold})"
            )
        if not (0.0 < self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be in (0, 1]")
        if self.reference_size[0] <= 0 or self.reference_size[1] <= 0:
            raise ValueError("reference_size must be positive")
        if self.max_detections <= 0:
            raise ValueError("max_detections must be > 0")
        if self.num_classes <= 0:
            raise ValueError("num_classes must be > 0")
        if self.num_mask_protos < 0:
            raise ValueError("num_mask_protos must be >= 0")

    def with_threshold(self, confidence_threshold: float) -> "PipelineConfig":
        return replace(self, confidence_threshold=float(confidence_threshold))

    def with_overlap_filter(self, enabled: bool) -> "PipelineConfig":
        return replace(self, disease_overlap_only=bool(enabled))


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_bool(payload: Dict[str, Any], key: str) -> bool:
    value = payload[key]
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean")
    return value


def load_pipeline_config(path: Path) -> PipelineConfig:
    """
    Load the user-settable options from a JSON object:

        {"confidence_threshold": 0.3, "disease_overlap_only": false}

    Model-export constants (iou, grid size, caps) are not settable here.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")

    allowed = {"confidence_threshold", "disease_overlap_only"}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    cfg = PipelineConfig()
    if "confidence_threshold" in payload:
        cfg = cfg.with_threshold(_require_number(payload, "confidence_threshold"))
    if "disease_overlap_only" in payload:
        cfg = cfg.with_overlap_filter(_require_bool(payload, "disease_overlap_only"))
    return cfg
