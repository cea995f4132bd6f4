from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..errors import ModelFormatError
from ..types import TensorSpec
from .base import InferenceBackend

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - input_size: square input size the model was exported with (TorchScript
      does not record it)
    - device: "cpu", "cuda", or None to pick CUDA when allowed and available
    - use_accelerator: allow CUDA when `device` is None
    - num_threads: CPU intra-op threads (`torch.set_num_threads`, process-wide)
    - half: cast input to float16 (only if the model expects it)
    - output_index: if the model returns multiple outputs, select this index
    """

    input_size: int = 640
    device: Optional[str] = None
    use_accelerator: bool = True
    num_threads: int = 4
    half: bool = False
    output_index: int = 0


class TorchScriptBackend(InferenceBackend):
    """
    Minimal TorchScript backend using `torch.jit.load`.

    Takes NHWC float32 blobs and feeds the model NCHW. The output shape is
    discovered with one probe run at construction.
    """

    name = "torchscript"

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        device = cfg.device
        if device is None:
            device = "cpu"
            if cfg.use_accelerator:
                if torch.cuda.is_available():
                    device = "cuda"
                else:
                    logger.warning("CUDA not available; falling back to CPU")
        self.device = torch.device(device)
        if self.device.type == "cpu":
            torch.set_num_threads(cfg.num_threads)
        self.half = cfg.half
        self.output_index = cfg.output_index

        try:
            model = torch.jit.load(str(self.model_path), map_location=self.device)
        except RuntimeError as e:
            raise ModelFormatError(f"Failed to load TorchScript model: {self.model_path}") from e
        model.eval()
        self.model = model
        logger.info("TorchScript model on %s", self.device)

        size = int(cfg.input_size)
        self.input_spec = TensorSpec(shape=(1, size, size, 3), dtype=np.dtype(np.float32))
        probe = self.infer(np.zeros(self.input_spec.shape, dtype=np.float32))
        self.output_spec = TensorSpec(shape=tuple(int(x) for x in probe.shape), dtype=np.dtype(np.float32))

    def infer(self, blob: np.ndarray) -> np.ndarray:
        torch = self._torch
        if self.model is None:
            raise RuntimeError("TorchScript backend is closed.")
        x = torch.as_tensor(blob, device=self.device).permute(0, 3, 1, 2)
        if self.half:
            x = x.half()
        else:
            x = x.float()
        x = x.contiguous()

        with torch.no_grad():
            y = self.model(x)

        if isinstance(y, (tuple, list)):
            y = y[self.output_index]

        if hasattr(y, "detach"):
            y = y.detach()
        return y.float().to("cpu").numpy()

    def close(self) -> None:
        self.model = None
