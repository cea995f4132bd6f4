from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np

from ..errors import ModelFormatError
from ..types import QuantizationParams, TensorSpec
from .base import InferenceBackend

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class LiteRTBackendConfig:
    """
    Configuration for LiteRT (TensorFlow Lite) inference.

    - num_threads: interpreter thread count
    - use_accelerator: try the GPU delegate first; the XNNPACK CPU path is used otherwise
    - gpu_delegate: shared library name/path of the GPU delegate
    """

    num_threads: int = 4
    use_accelerator: bool = True
    gpu_delegate: str = "libtensorflowlite_gpu_delegate.so"


def spec_from_details(details: Dict[str, Any]) -> TensorSpec:
    """
    Build a `TensorSpec` from one entry of `get_input_details()` /
    `get_output_details()`. A zero scale means the tensor is not quantized.
    """
    shape = tuple(int(x) for x in np.asarray(details["shape"]).tolist())
    dtype = np.dtype(details["dtype"])
    scale, zero_point = details.get("quantization", (0.0, 0))
    quant = None
    if dtype in (np.dtype(np.int8), np.dtype(np.uint8)) and scale:
        quant = QuantizationParams(scale=float(scale), zero_point=int(zero_point))
    return TensorSpec(shape=shape, dtype=dtype, quantization=quant)


class LiteRTBackend(InferenceBackend):
    """
    Minimal LiteRT interpreter runner.

    Expects an NHWC blob shaped like the model input, typically (1, S, S, 3).
    Returns the primary output as a NumPy array.
    """

    name = "litert"

    def __init__(self, model_path: PathLike, cfg: LiteRTBackendConfig = LiteRTBackendConfig()):
        try:
            from ai_edge_litert import interpreter as litert  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "ai-edge-litert is required for the LiteRT backend. Install it with `pip install ai-edge-litert`."
            ) from e

        self._litert = litert
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self._delegate: Optional[Any] = None
        self.device = "cpu"
        interpreter = None
        if cfg.use_accelerator:
            interpreter = self._try_gpu(cfg)
        if interpreter is None:
            try:
                interpreter = litert.Interpreter(model_path=str(self.model_path), num_threads=cfg.num_threads)
                interpreter.allocate_tensors()
            except (ValueError, RuntimeError) as e:
                raise ModelFormatError(f"Failed to load LiteRT model: {self.model_path}") from e
            logger.info("LiteRT running on CPU (XNNPACK) with %d threads", cfg.num_threads)

        self._interpreter = interpreter

        in_details = interpreter.get_input_details()
        out_details = interpreter.get_output_details()
        if not in_details or not out_details:
            raise ModelFormatError(f"LiteRT model has no inputs or outputs: {self.model_path}")
        self._input_index = in_details[0]["index"]
        self._output_index = out_details[0]["index"]
        self.input_spec = spec_from_details(in_details[0])
        self.output_spec = spec_from_details(out_details[0])

    def _try_gpu(self, cfg: LiteRTBackendConfig):
        litert = self._litert
        try:
            delegate = litert.load_delegate(cfg.gpu_delegate)
            interpreter = litert.Interpreter(
                model_path=str(self.model_path),
                num_threads=cfg.num_threads,
                experimental_delegates=[delegate],
            )
            # Delegates may only reject the graph once tensors are allocated.
            interpreter.allocate_tensors()
        except (ValueError, RuntimeError, OSError) as e:
            logger.warning("GPU delegate unavailable (%s); falling back to CPU", e)
            return None
        self._delegate = delegate
        self.device = "gpu"
        logger.info("LiteRT GPU delegate enabled")
        return interpreter

    def infer(self, blob: np.ndarray) -> np.ndarray:
        if self._interpreter is None:
            raise RuntimeError("LiteRT backend is closed.")
        self._interpreter.set_tensor(self._input_index, blob)
        self._interpreter.invoke()
        return self._interpreter.get_tensor(self._output_index)

    def close(self) -> None:
        self._interpreter = None
        self._delegate = None
