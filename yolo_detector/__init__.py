"""
YOLO detection post-processing: letterboxing, tensor encoding, decoding of
float/quantized raw and fused-NMS outputs, coordinate remapping and per-class
NMS.

The core only needs NumPy and OpenCV; inference runtimes (LiteRT, ONNX Runtime,
TorchScript) are optional and imported by their backends on demand.
"""

from .types import Candidates, DetectedBox, QuantizationParams, TensorSpec
from .errors import DetectorClosedError, DetectorError, InvalidImageError, ModelFormatError
from .letterbox import LetterboxResult, letterbox
from .encode import InputEncoder
from .decode import DecodeStrategy, OutputLayout, decode, dequantize, infer_output_layout
from .remap import remap_boxes, unletterbox
from .nms import NMSConfig, box_iou, nms, nms_per_class
from .postprocess import YoloPostConfig, YoloPostprocessor
from .metadata import ModelMetadata, inspect_model, load_labels
from .config import DetectorConfig, load_detector_config
from .detector import YoloDetector
from .runtime import create_backend, find_project_root, load_detector, resolve_path

__all__ = [
    "Candidates",
    "DetectedBox",
    "QuantizationParams",
    "TensorSpec",
    "DetectorError",
    "ModelFormatError",
    "InvalidImageError",
    "DetectorClosedError",
    "LetterboxResult",
    "letterbox",
    "InputEncoder",
    "DecodeStrategy",
    "OutputLayout",
    "decode",
    "dequantize",
    "infer_output_layout",
    "remap_boxes",
    "unletterbox",
    "NMSConfig",
    "box_iou",
    "nms",
    "nms_per_class",
    "YoloPostConfig",
    "YoloPostprocessor",
    "ModelMetadata",
    "inspect_model",
    "load_labels",
    "DetectorConfig",
    "load_detector_config",
    "YoloDetector",
    "create_backend",
    "find_project_root",
    "load_detector",
    "resolve_path",
]
