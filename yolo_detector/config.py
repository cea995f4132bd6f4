from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from .decode import OutputLayout
from .metadata import load_labels

_LAYOUTS = ("auto", OutputLayout.RAW.value, OutputLayout.FUSED.value)
_INPUT_ORDERS = ("rgb", "bgr")


@dataclass(frozen=True)
class DetectorConfig:
    """
    Settings fixed for the lifetime of a detector.

    - conf_threshold: detections scoring below are dropped
    - iou_threshold: boxes overlapping a better box of the same class above this are suppressed
    - pad_color: gray level (0-255) used for letterbox padding
    - num_threads: thread hint passed to the inference engine
    - labels: class names, index = class id
    - use_accelerator_if_available: try GPU/delegate first, fall back to CPU
    - output_layout: "auto" guesses fused vs raw from the output shape
    - input_order: channel order of images passed to `detect`
    - max_detections: optional cap applied after suppression
    """

    conf_threshold: float = 0.25
    iou_threshold: float = 0.7
    pad_color: int = 114
    num_threads: int = 4
    labels: Optional[Sequence[str]] = None
    use_accelerator_if_available: bool = True
    output_layout: str = "auto"
    input_order: str = "rgb"
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.conf_threshold <= 1.0:
            raise ValueError("conf_threshold must be within [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if isinstance(self.pad_color, bool) or not isinstance(self.pad_color, int) or not 0 <= self.pad_color <= 255:
            raise ValueError("pad_color must be an integer within [0, 255]")
        if isinstance(self.num_threads, bool) or not isinstance(self.num_threads, int) or self.num_threads < 1:
            raise ValueError("num_threads must be a positive integer")
        if self.output_layout not in _LAYOUTS:
            raise ValueError(f"output_layout must be one of {_LAYOUTS}")
        if self.input_order not in _INPUT_ORDERS:
            raise ValueError(f"input_order must be one of {_INPUT_ORDERS}")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1 if provided")
        if self.labels is not None:
            if isinstance(self.labels, str) or not all(isinstance(x, str) for x in self.labels):
                raise ValueError("labels must be a sequence of strings")
            object.__setattr__(self, "labels", tuple(self.labels))

    @property
    def layout_override(self) -> Optional[OutputLayout]:
        if self.output_layout == "auto":
            return None
        return OutputLayout(self.output_layout)

    def label_for(self, class_id: int) -> str:
        labels: Tuple[str, ...] = self.labels or ()  # type: ignore[assignment]
        if 0 <= class_id < len(labels):
            return labels[class_id]
        return "unknown"


def _number(payload: Dict[str, Any], key: str) -> Optional[float]:
    if key not in payload:
        return None
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _integer(payload: Dict[str, Any], key: str) -> Optional[int]:
    if key not in payload or payload[key] is None:
        return None
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def load_detector_config(path: Union[str, Path]) -> DetectorConfig:
    """
    Load a `DetectorConfig` from a JSON object.

    Keys mirror the dataclass fields, plus `labels_path` (resolved relative to
    the config file) as an alternative to an inline `labels` list.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detector config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector config must be a JSON object")

    allowed = {
        "conf_threshold",
        "iou_threshold",
        "pad_color",
        "num_threads",
        "labels",
        "labels_path",
        "use_accelerator_if_available",
        "output_layout",
        "input_order",
        "max_detections",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector config keys: {unknown}")
    if "labels" in payload and "labels_path" in payload:
        raise ValueError("Use either labels or labels_path, not both")

    kwargs: Dict[str, Any] = {}
    for key in ("conf_threshold", "iou_threshold"):
        value = _number(payload, key)
        if value is not None:
            kwargs[key] = value
    for key in ("pad_color", "num_threads", "max_detections"):
        value = _integer(payload, key)
        if value is not None:
            kwargs[key] = value

    accel = payload.get("use_accelerator_if_available", True)
    if not isinstance(accel, bool):
        raise ValueError("use_accelerator_if_available must be a boolean")
    kwargs["use_accelerator_if_available"] = accel

    for key in ("output_layout", "input_order"):
        if key in payload:
            if not isinstance(payload[key], str):
                raise ValueError(f"{key} must be a string")
            kwargs[key] = payload[key]

    if "labels" in payload:
        labels = payload["labels"]
        if not isinstance(labels, list):
            raise ValueError("labels must be a list of strings")
        kwargs["labels"] = labels
    elif "labels_path" in payload:
        labels_path = Path(payload["labels_path"])
        if not labels_path.is_absolute():
            labels_path = path.parent / labels_path
        kwargs["labels"] = load_labels(labels_path)

    return DetectorConfig(**kwargs)
