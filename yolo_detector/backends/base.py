from __future__ import annotations

import numpy as np

from ..types import TensorSpec


class InferenceBackend:
    """
    What the detector needs from an inference engine.

    - `input_spec`: NHWC `[1, S, S, 3]` description of the input tensor
    - `output_spec`: `[1, N, C]` or `[1, C, N]` description of the output tensor
    - `infer(blob)`: run synchronously; the returned array may be reused by the
      next call
    - `close()`: release engine resources
    """

    name: str = "base"
    input_spec: TensorSpec
    output_spec: TensorSpec

    def infer(self, blob: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def close(self) -> None:
        pass
