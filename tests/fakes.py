from __future__ import annotations

from typing import Callable, List, Optional, Union

import numpy as np

from yolo_detector.backends.base import InferenceBackend
from yolo_detector.types import QuantizationParams, TensorSpec


class FakeBackend(InferenceBackend):
    """In-memory backend returning a canned output tensor."""

    name = "fake"

    def __init__(
        self,
        output: Union[np.ndarray, Callable[[np.ndarray], np.ndarray]],
        *,
        input_size: int = 640,
        input_dtype=np.float32,
        input_shape: Optional[tuple] = None,
        output_quant: Optional[QuantizationParams] = None,
        close_error: Optional[Exception] = None,
    ):
        self._output = output
        self.input_spec = TensorSpec(
            shape=input_shape or (1, input_size, input_size, 3),
            dtype=np.dtype(input_dtype),
        )
        probe = output if isinstance(output, np.ndarray) else output(np.zeros(self.input_spec.shape))
        self.output_spec = TensorSpec(shape=tuple(probe.shape), dtype=probe.dtype, quantization=output_quant)
        self.blobs: List[np.ndarray] = []
        self.blob_ids: List[int] = []
        self.close_calls = 0
        self._close_error = close_error

    def infer(self, blob: np.ndarray) -> np.ndarray:
        self.blobs.append(blob.copy())
        self.blob_ids.append(id(blob))
        if isinstance(self._output, np.ndarray):
            return self._output
        return self._output(blob)

    def close(self) -> None:
        self.close_calls += 1
        if self._close_error is not None:
            raise self._close_error


def raw_output(anchors: List[tuple], num_classes: int, pad_to: int = 16) -> np.ndarray:
    """
    Build a float (1, 5 + num_classes, N) tensor from
    (cx, cy, w, h, class_id, score) tuples in normalized units. The trailing
    channel after the class scores is left at zero.

    Zero-score anchors pad N up to `pad_to` so the shape reads as channels-first.
    """
    out = np.zeros((1, 5 + num_classes, max(len(anchors), pad_to)), dtype=np.float32)
    for i, (cx, cy, w, h, cls, score) in enumerate(anchors):
        out[0, 0:4, i] = (cx, cy, w, h)
        out[0, 4 + cls, i] = score
    return out


def fused_output(rows: List[tuple], pad_to: int = 0) -> np.ndarray:
    """Build a float (1, N, 6) tensor from (x1, y1, x2, y2, score, class_id) rows."""
    n = max(len(rows), pad_to)
    out = np.zeros((1, n, 6), dtype=np.float32)
    for i, row in enumerate(rows):
        out[0, i] = row
    return out


def quantize(values: np.ndarray, quant: QuantizationParams, dtype=np.uint8) -> np.ndarray:
    info = np.iinfo(dtype)
    q = np.round(np.asarray(values, dtype=np.float64) / quant.scale) + quant.zero_point
    return np.clip(q, info.min, info.max).astype(dtype)
