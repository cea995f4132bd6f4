from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence, Union

from .backends.base import InferenceBackend
from .config import DetectorConfig
from .detector import YoloDetector
from .types import QuantizationParams

PathLike = Union[str, Path]

_SUFFIX_BACKENDS = {
    ".tflite": "litert",
    ".onnx": "onnxruntime",
    ".torchscript": "torchscript",
    ".ts": "torchscript",
    ".pt": "torchscript",
}


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when models live next to the calling project (e.g. `A/models`).
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, else the project root.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def backend_for_path(path: PathLike) -> str:
    suffix = Path(path).suffix.lower()
    if suffix not in _SUFFIX_BACKENDS:
        raise ValueError(f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly.")
    return _SUFFIX_BACKENDS[suffix]


def create_backend(
    model_path: PathLike,
    backend: Optional[str] = None,
    *,
    num_threads: int = 4,
    use_accelerator: bool = True,
    gpu_delegate: Optional[str] = None,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_output_quantization: Optional[QuantizationParams] = None,
    torch_input_size: int = 640,
    torch_device: Optional[str] = None,
    torch_half: bool = False,
) -> InferenceBackend:
    """
    Open `model_path` with the named backend ("litert", "onnxruntime",
    "torchscript"), or the one implied by its extension.
    """
    chosen = (backend or backend_for_path(model_path)).lower()

    if chosen == "litert":
        from .backends.litert_backend import LiteRTBackend, LiteRTBackendConfig

        litert_cfg = LiteRTBackendConfig(num_threads=num_threads, use_accelerator=use_accelerator)
        if gpu_delegate is not None:
            litert_cfg = replace(litert_cfg, gpu_delegate=gpu_delegate)
        return LiteRTBackend(model_path, litert_cfg)

    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        return OnnxRuntimeBackend(
            model_path,
            OnnxRuntimeBackendConfig(
                providers=onnx_providers,
                num_threads=num_threads,
                use_accelerator=use_accelerator,
                output_quantization=onnx_output_quantization,
            ),
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        return TorchScriptBackend(
            model_path,
            TorchScriptBackendConfig(
                input_size=torch_input_size,
                device=torch_device,
                use_accelerator=use_accelerator,
                num_threads=num_threads,
                half=torch_half,
            ),
        )

    raise ValueError(f"Unsupported backend: {backend!r}")


def load_detector(
    model_path: PathLike,
    config: Optional[DetectorConfig] = None,
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    gpu_delegate: Optional[str] = None,
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_output_quantization: Optional[QuantizationParams] = None,
    torch_input_size: int = 640,
    torch_device: Optional[str] = None,
    torch_half: bool = False,
) -> YoloDetector:
    """
    Create a detector for a model on disk.

    Typical usage:
        with load_detector("models/yolov8n_int8.tflite", DetectorConfig(labels=names)) as det:
            boxes = det.detect(image)

    Args:
        model_path: path to the model file; relative paths resolve against the project root by default
        config: detector settings (thresholds, threads, accelerator use, labels)
        backend: "litert", "onnxruntime", "torchscript", or None to infer from extension
        root: base directory for resolving relative model paths ("auto" uses best-effort project root)
    """
    config = config if config is not None else DetectorConfig()
    resolved = resolve_path(model_path, root=root)
    engine = create_backend(
        resolved,
        backend,
        num_threads=config.num_threads,
        use_accelerator=config.use_accelerator_if_available,
        gpu_delegate=gpu_delegate,
        onnx_providers=onnx_providers,
        onnx_output_quantization=onnx_output_quantization,
        torch_input_size=torch_input_size,
        torch_device=torch_device,
        torch_half=torch_half,
    )
    return YoloDetector(engine, config)
