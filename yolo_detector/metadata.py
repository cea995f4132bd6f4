from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Union

import numpy as np

from .decode import DecodeStrategy, OutputLayout, infer_output_layout
from .errors import ModelFormatError
from .types import QuantizationParams, TensorSpec

LayoutPolicy = Callable[[Sequence[int]], OutputLayout]

_INPUT_DTYPES = (np.dtype(np.float32), np.dtype(np.int8), np.dtype(np.uint8))


@dataclass(frozen=True)
class ModelMetadata:
    """
    Everything the detector needs to know about a loaded model, resolved once
    from its input/output tensor descriptions.
    """

    input_size: int
    channels: int
    input_dtype: np.dtype
    num_anchors: int
    output_channels: int
    # Number of class-score channels for raw layouts; None for fused layouts.
    num_classes: Optional[int]
    layout: OutputLayout
    quantized: bool
    output_quantization: Optional[QuantizationParams] = None

    @property
    def fused_nms(self) -> bool:
        return self.layout is OutputLayout.FUSED

    @property
    def strategy(self) -> DecodeStrategy:
        return DecodeStrategy.select(self.layout, self.quantized)


def inspect_model(
    input_spec: TensorSpec,
    output_spec: TensorSpec,
    *,
    layout: Optional[OutputLayout] = None,
    layout_policy: LayoutPolicy = infer_output_layout,
) -> ModelMetadata:
    """
    Validate a model's tensors and derive its `ModelMetadata`.

    `layout` forces the output interpretation; otherwise `layout_policy`
    guesses it from the output shape. Raises `ModelFormatError` for anything
    the decoders cannot handle.
    """
    in_shape = tuple(int(x) for x in input_spec.shape)
    if len(in_shape) != 4 or in_shape[0] != 1:
        raise ModelFormatError(f"Expected input shape [1, S, S, 3], got {list(in_shape)}")
    _, in_h, in_w, channels = in_shape
    if in_h != in_w:
        raise ModelFormatError(f"YOLO model expects square input, got {in_h} x {in_w}")
    if channels != 3:
        raise ModelFormatError(f"Expected 3 input channels, got {channels}")

    in_dtype = np.dtype(input_spec.dtype)
    if in_dtype not in _INPUT_DTYPES:
        raise ModelFormatError(f"Unsupported input dtype: {in_dtype}")

    out_dtype = np.dtype(output_spec.dtype)
    if out_dtype not in _INPUT_DTYPES:
        raise ModelFormatError(f"Unsupported output dtype: {out_dtype}")
    if output_spec.is_integer and not input_spec.is_integer:
        raise ModelFormatError(f"Integer output ({out_dtype}) with a float input is not supported")

    quantized = input_spec.is_integer and output_spec.is_integer
    if quantized and output_spec.quantization is None:
        raise ModelFormatError("Quantized output tensor is missing its scale/zero-point")

    out_shape = tuple(int(x) for x in output_spec.shape)
    if len(out_shape) != 3 or out_shape[0] != 1:
        raise ModelFormatError(f"Expected output shape [1, N, C] or [1, C, N], got {list(out_shape)}")

    resolved = OutputLayout(layout) if layout is not None else layout_policy(out_shape)
    if resolved is OutputLayout.FUSED:
        num_anchors, output_channels = out_shape[1], out_shape[2]
    else:
        output_channels, num_anchors = out_shape[1], out_shape[2]

    if output_channels < 5:
        raise ModelFormatError(
            f"Invalid YOLO output channels: {output_channels}. "
            "Expected at least 5 for (x, y, w, h, confidence, ...classes)"
        )
    if resolved is OutputLayout.FUSED and output_channels < 6:
        raise ModelFormatError(f"Fused output needs a class-id column, got {output_channels} channels")

    return ModelMetadata(
        input_size=in_h,
        channels=channels,
        input_dtype=in_dtype,
        num_anchors=num_anchors,
        output_channels=output_channels,
        num_classes=output_channels - 5 if resolved is OutputLayout.RAW else None,
        layout=resolved,
        quantized=quantized,
        output_quantization=output_spec.quantization if quantized else None,
    )


def _parse_names_mapping(lines: List[str]) -> Dict[int, str]:
    names: Dict[int, str] = {}
    in_names = False
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue

        # Parse "id: label"
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            continue
        names[int(left)] = right
    return names


def load_labels(path: Union[str, Path]) -> List[str]:
    """
    Load class labels, index = class id.

    Two formats are accepted:

    - a `metadata.yaml`-style mapping as written by common YOLO exporters

        names:
          0: person
          1: bicycle

    - a plain text file with one label per line

    Gaps in a mapping are filled with "unknown".
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Labels file not found: {path}")
    lines = path.read_text(encoding="utf-8").splitlines()

    if any(line.strip() == "names:" for line in lines):
        names = _parse_names_mapping(lines)
        if not names:
            return []
        return [names.get(i, "unknown") for i in range(max(names) + 1)]

    return [line.strip() for line in lines if line.strip()]
