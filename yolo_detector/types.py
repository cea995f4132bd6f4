from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class DetectedBox:
    """
    One detection in original-image pixel coordinates.

    (x1, y1, x2, y2) are (left, top, right, bottom); x2 > x1 and y2 > y1.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    score: float
    class_id: int

    @property
    def box(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1


@dataclass(frozen=True)
class QuantizationParams:
    """Affine int <-> real mapping: real = (int - zero_point) * scale."""

    scale: float
    zero_point: int

    def __post_init__(self) -> None:
        if not self.scale > 0:
            raise ValueError(f"quantization scale must be > 0 (got {self.scale})")


@dataclass(frozen=True)
class TensorSpec:
    """
    Shape/dtype description of one backend tensor.

    `quantization` is set for integer tensors and None for float tensors.
    """

    shape: Tuple[int, ...]
    dtype: np.dtype
    quantization: Optional[QuantizationParams] = None

    @property
    def is_integer(self) -> bool:
        return np.dtype(self.dtype) in (np.dtype(np.int8), np.dtype(np.uint8))


class Candidates(NamedTuple):
    """Decoded, not yet remapped detections (parallel arrays, model-input pixels)."""

    boxes: np.ndarray  # (N, 4) xyxy
    scores: np.ndarray  # (N,)
    class_ids: np.ndarray  # (N,)

    @classmethod
    def empty(cls) -> "Candidates":
        return cls(
            np.zeros((0, 4), dtype=np.float32),
            np.zeros((0,), dtype=np.float32),
            np.zeros((0,), dtype=np.int64),
        )

    def select(self, idx: np.ndarray) -> "Candidates":
        return Candidates(self.boxes[idx], self.scores[idx], self.class_ids[idx])

    @property
    def count(self) -> int:
        return int(self.scores.shape[0])
