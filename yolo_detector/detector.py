from __future__ import annotations

import logging
from typing import List, Optional

import numpy as np

from .backends.base import InferenceBackend
from .config import DetectorConfig
from .decode import DecodeStrategy, infer_output_layout
from .encode import InputEncoder
from .errors import DetectorClosedError, InvalidImageError
from .letterbox import letterbox
from .metadata import LayoutPolicy, ModelMetadata, inspect_model
from .postprocess import YoloPostConfig, YoloPostprocessor
from .types import DetectedBox

logger = logging.getLogger(__name__)


class YoloDetector:
    """
    Letterbox -> encode -> inference -> decode -> remap -> (NMS) for one image
    at a time.

    The detector takes ownership of `backend` and of its own input buffer;
    call `close()` (or use it as a context manager) when done. One instance
    must not be shared between threads.
    """

    def __init__(
        self,
        backend: InferenceBackend,
        config: Optional[DetectorConfig] = None,
        *,
        layout_policy: LayoutPolicy = infer_output_layout,
    ):
        self.config = config if config is not None else DetectorConfig()
        self.backend: Optional[InferenceBackend] = backend
        self._closed = False

        try:
            self.metadata: ModelMetadata = inspect_model(
                backend.input_spec,
                backend.output_spec,
                layout=self.config.layout_override,
                layout_policy=layout_policy,
            )
        except Exception:
            self.close()
            raise

        meta = self.metadata
        self.strategy: DecodeStrategy = meta.strategy
        self._encoder = InputEncoder(meta.input_size, meta.input_dtype, meta.channels)
        self._post = YoloPostprocessor(
            YoloPostConfig(
                conf_threshold=self.config.conf_threshold,
                iou_threshold=self.config.iou_threshold,
                max_detections=self.config.max_detections,
            ),
            self.strategy,
            meta.input_size,
            meta.output_quantization,
        )

        labels = self.config.labels
        if labels is not None and meta.num_classes is not None and len(labels) != meta.num_classes:
            logger.warning("Model has %d classes but %d labels were given", meta.num_classes, len(labels))
        logger.debug(
            "Detector ready: backend=%s input=%d strategy=%s anchors=%d channels=%d",
            getattr(backend, "name", type(backend).__name__),
            meta.input_size,
            self.strategy.name,
            meta.num_anchors,
            meta.output_channels,
        )

    @property
    def input_size(self) -> int:
        return self.metadata.input_size

    @property
    def closed(self) -> bool:
        return self._closed

    def detect(self, image: np.ndarray) -> List[DetectedBox]:
        """
        Detect objects in one (H, W, 3|4) uint8 image.

        Returns boxes in the image's own pixel coordinates. Raises
        `InvalidImageError` for empty or malformed images.
        """
        if self._closed or self.backend is None:
            raise DetectorClosedError("Detector has been closed.")
        if image is None or not hasattr(image, "dtype"):
            raise InvalidImageError("image must be a NumPy array of shape (H, W, 3|4).")
        if image.dtype != np.uint8:
            raise InvalidImageError(f"Expected a uint8 image, got {image.dtype}")

        lb = letterbox(image, self.metadata.input_size, self.config.pad_color)
        canvas = lb.image
        if self.config.input_order == "bgr":
            canvas = canvas[:, :, ::-1]

        blob = self._encoder.encode(canvas)
        preds = self.backend.infer(blob)

        expected = self.backend.output_spec.shape
        if tuple(np.shape(preds)) != tuple(expected):
            raise RuntimeError(f"Backend returned shape {np.shape(preds)}, expected {tuple(expected)}")
        return self._post.process(preds, lb)

    __call__ = detect

    def get_label(self, class_id: int) -> str:
        return self.config.label_for(class_id)

    def close(self) -> None:
        """
        Release the backend. Safe to call more than once; release errors are
        logged, never raised.
        """
        if self._closed:
            return
        self._closed = True
        backend, self.backend = self.backend, None
        if backend is None:
            return
        try:
            backend.close()
        except Exception:
            logger.exception("Error while closing %s backend", getattr(backend, "name", "inference"))

    def __enter__(self) -> "YoloDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
