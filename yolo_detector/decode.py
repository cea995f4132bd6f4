"""
Decoders for the four YOLO output variants.

Layouts (per image, batch axis optional):
- raw   (C, N): rows 0..3 are normalized (cx, cy, w, h), rows 4.. are class scores
- fused (N, C): columns are normalized (x1, y1, x2, y2), score, class_id [, extra]

Either layout may be float or 8-bit quantized; quantized values are mapped
back to reals with `dequantize` before use.
"""

from enum import Enum
from typing import Callable, Dict, Optional, Sequence

import numpy as np

from .errors import ModelFormatError
from .types import Candidates, QuantizationParams

# Fused exports carry at most box(4) + score + class_id + one extra column.
MAX_FUSED_CHANNELS = 7


class OutputLayout(str, Enum):
    RAW = "raw"
    FUSED = "fused"


class DecodeStrategy(Enum):
    RAW_FLOAT = (OutputLayout.RAW, False)
    RAW_QUANTIZED = (OutputLayout.RAW, True)
    FUSED_FLOAT = (OutputLayout.FUSED, False)
    FUSED_QUANTIZED = (OutputLayout.FUSED, True)

    @property
    def layout(self) -> OutputLayout:
        return self.value[0]

    @property
    def quantized(self) -> bool:
        return self.value[1]

    @property
    def needs_nms(self) -> bool:
        return self.layout is OutputLayout.RAW

    @classmethod
    def select(cls, layout: OutputLayout, quantized: bool) -> "DecodeStrategy":
        return cls((OutputLayout(layout), bool(quantized)))


def infer_output_layout(shape: Sequence[int], max_fused_channels: int = MAX_FUSED_CHANNELS) -> OutputLayout:
    """
    Guess the output layout from a `[1, A, B]` shape.

    A small last axis (<= `max_fused_channels`) means one already-suppressed
    detection per row; anything else is treated as channels-first anchors.
    This is a convention of common exports, not a guarantee, so callers can
    override it (see `DetectorConfig.output_layout`).
    """
    if len(shape) != 3:
        raise ModelFormatError(f"Expected a rank-3 output tensor [1, A, B], got shape {tuple(shape)}")
    if int(shape[2]) <= max_fused_channels:
        return OutputLayout.FUSED
    return OutputLayout.RAW


def dequantize(raw, zero_point: int, scale: float) -> np.ndarray:
    """real = (raw - zero_point) * scale, computed in float32."""
    diff = np.asarray(raw, dtype=np.int32) - np.int32(zero_point)
    return diff.astype(np.float32) * np.float32(scale)


def _as_2d(preds: np.ndarray) -> np.ndarray:
    p = np.asarray(preds)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise ValueError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
        p = p[0]
    if p.ndim != 2:
        raise ValueError(f"Unsupported YOLO output shape: {p.shape}")
    return p


def _to_real(p: np.ndarray, quant: Optional[QuantizationParams]) -> np.ndarray:
    if quant is None:
        return p.astype(np.float32, copy=False)
    return dequantize(p, quant.zero_point, quant.scale)


def decode_raw(
    preds: np.ndarray,
    input_size: int,
    quant: Optional[QuantizationParams] = None,
) -> Candidates:
    """
    Decode a channels-first (C, N) tensor: best class per anchor, center-form
    boxes converted to corners in model-input pixels.

    Class scores sit in channels 4 .. C-2; the last channel is not a class.
    """
    p = _to_real(_as_2d(preds), quant)
    if p.shape[0] < 5:
        raise ValueError(f"Raw output needs at least 5 channels, got shape {p.shape}")
    num_classes = p.shape[0] - 5
    if p.shape[1] == 0 or num_classes == 0:
        return Candidates.empty()

    class_scores = p[4 : 4 + num_classes, :]
    class_ids = np.argmax(class_scores, axis=0)
    scores = class_scores[class_ids, np.arange(class_scores.shape[1])]

    cx, cy, w_box, h_box = p[0:4, :] * np.float32(input_size)
    boxes = np.stack([cx - w_box / 2, cy - h_box / 2, cx + w_box / 2, cy + h_box / 2], axis=1)

    return Candidates(boxes, scores, class_ids.astype(np.int64))


def decode_fused(
    preds: np.ndarray,
    input_size: int,
    quant: Optional[QuantizationParams] = None,
) -> Candidates:
    """
    Decode a rows-first (N, C) tensor of already-suppressed detections.

    The class id is dequantized (when applicable) before truncation toward
    zero; rows with a negative class id are dropped.
    """
    p = _to_real(_as_2d(preds), quant)
    if p.shape[1] < 6:
        raise ValueError(f"Fused output needs at least 6 columns, got shape {p.shape}")
    if p.shape[0] == 0:
        return Candidates.empty()

    boxes = p[:, 0:4] * np.float32(input_size)
    scores = p[:, 4]
    class_ids = np.trunc(p[:, 5]).astype(np.int64)

    valid = class_ids >= 0
    return Candidates(boxes[valid], scores[valid], class_ids[valid])


_DECODERS: Dict[OutputLayout, Callable[..., Candidates]] = {
    OutputLayout.RAW: decode_raw,
    OutputLayout.FUSED: decode_fused,
}


def decode(
    preds: np.ndarray,
    strategy: DecodeStrategy,
    input_size: int,
    quant: Optional[QuantizationParams] = None,
) -> Candidates:
    if strategy.quantized and quant is None:
        raise ValueError(f"{strategy.name} requires quantization parameters.")
    return _DECODERS[strategy.layout](preds, input_size, quant if strategy.quantized else None)
