from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import ModelFormatError
from ..types import QuantizationParams, TensorSpec
from .base import InferenceBackend

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_ORT_DTYPES = {
    "tensor(float)": np.float32,
    "tensor(uint8)": np.uint8,
    "tensor(int8)": np.int8,
}


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers; None picks CUDA (if allowed and present) then CPU
    - input_name/output_name: override auto-selected I/O names if needed
    - num_threads: intra-op thread count
    - use_accelerator: prefer CUDAExecutionProvider when available
    - output_quantization: scale/zero-point for integer outputs (ORT does not expose them)
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    num_threads: int = 4
    use_accelerator: bool = True
    output_quantization: Optional[QuantizationParams] = None


def select_providers(
    available: Sequence[str],
    use_accelerator: bool,
    requested: Optional[Sequence[str]] = None,
) -> List[str]:
    if requested is not None:
        return list(requested)
    if use_accelerator:
        if "CUDAExecutionProvider" in available:
            return ["CUDAExecutionProvider", "CPUExecutionProvider"]
        logger.warning("CUDAExecutionProvider not available; falling back to CPU")
    return ["CPUExecutionProvider"]


def _static_shape(shape: Sequence[object], what: str) -> Tuple[int, ...]:
    if any(not isinstance(d, int) for d in shape):
        raise ModelFormatError(f"{what} has dynamic dimensions {list(shape)}; export the model with a fixed shape.")
    return tuple(int(d) for d in shape)  # type: ignore[arg-type]


def _dtype(ort_type: str, what: str) -> np.dtype:
    if ort_type not in _ORT_DTYPES:
        raise ModelFormatError(f"Unsupported {what} type: {ort_type}")
    return np.dtype(_ORT_DTYPES[ort_type])


class OnnxRuntimeBackend(InferenceBackend):
    """
    Minimal ONNX Runtime backend.

    Always presents an NHWC `[1, S, S, 3]` input to the detector; graphs that
    take NCHW input get the blob transposed inside `infer`.
    """

    name = "onnxruntime"

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        sess_opts.intra_op_num_threads = cfg.num_threads
        providers = select_providers(ort.get_available_providers(), cfg.use_accelerator, cfg.providers)
        try:
            self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)
        except Exception as e:
            raise ModelFormatError(f"Failed to load ONNX model: {self.model_path}") from e
        logger.info("ONNX Runtime session providers: %s", self.providers_in_use)

        model_in = self._find(self.session.get_inputs(), cfg.input_name)
        model_out = self._find(self.session.get_outputs(), cfg.output_name)
        self.input_name = model_in.name
        self.output_name = model_out.name

        in_shape = _static_shape(model_in.shape, "Model input")
        self.channels_first = len(in_shape) == 4 and in_shape[1] == 3 and in_shape[3] != 3
        if self.channels_first:
            in_shape = (in_shape[0], in_shape[2], in_shape[3], in_shape[1])
        in_dtype = _dtype(model_in.type, "input")

        out_shape = _static_shape(model_out.shape, "Model output")
        out_dtype = _dtype(model_out.type, "output")
        out_quant = None
        if out_dtype != np.float32:
            if cfg.output_quantization is None:
                raise ModelFormatError("Integer ONNX outputs need output_quantization in OnnxRuntimeBackendConfig")
            out_quant = cfg.output_quantization

        self.input_spec = TensorSpec(shape=in_shape, dtype=in_dtype)
        self.output_spec = TensorSpec(shape=out_shape, dtype=out_dtype, quantization=out_quant)

    @staticmethod
    def _find(args, name: Optional[str]):
        if name is None:
            return args[0]
        for arg in args:
            if arg.name == name:
                return arg
        raise ValueError(f"Tensor name {name!r} not found. Available: {[a.name for a in args]}")

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    def infer(self, blob: np.ndarray) -> np.ndarray:
        if self.session is None:
            raise RuntimeError("ONNX Runtime backend is closed.")
        if self.channels_first:
            blob = np.ascontiguousarray(np.transpose(blob, (0, 3, 1, 2)))
        outputs = self.session.run([self.output_name], {self.input_name: blob})
        return outputs[0]

    def close(self) -> None:
        self.session = None
