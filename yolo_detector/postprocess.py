from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .decode import DecodeStrategy, decode
from .letterbox import LetterboxResult
from .nms import NMSConfig, nms_per_class
from .remap import remap_boxes
from .types import Candidates, DetectedBox, QuantizationParams


@dataclass(frozen=True)
class YoloPostConfig:
    """
    Thresholds for YOLO post-processing.
    """

    conf_threshold: float = 0.25
    iou_threshold: float = 0.7
    # None keeps every detection that survives thresholding/suppression.
    max_detections: Optional[int] = None


class YoloPostprocessor:
    """
    Turns one raw output tensor into `DetectedBox`es in original-image pixels.

    The decode strategy is fixed at construction:

    - RAW_* layouts (C, N): decode -> threshold/remap -> per-class NMS
    - FUSED_* layouts (N, C): decode -> threshold/remap (the model already suppressed)
    """

    def __init__(
        self,
        cfg: YoloPostConfig,
        strategy: DecodeStrategy,
        input_size: int,
        quant: Optional[QuantizationParams] = None,
    ):
        if strategy.quantized and quant is None:
            raise ValueError(f"{strategy.name} requires quantization parameters.")
        self.cfg = cfg
        self.strategy = strategy
        self.input_size = int(input_size)
        self.quant = quant

    def process(self, preds: np.ndarray, lb: LetterboxResult) -> List[DetectedBox]:
        candidates = decode(preds, self.strategy, self.input_size, self.quant)
        candidates = remap_boxes(candidates, lb, self.cfg.conf_threshold)
        if candidates.count == 0:
            return []

        if self.strategy.needs_nms:
            keep = nms_per_class(
                candidates.boxes,
                candidates.scores,
                candidates.class_ids,
                NMSConfig(iou_threshold=self.cfg.iou_threshold, max_detections=self.cfg.max_detections),
            )
            candidates = candidates.select(keep)
        else:
            candidates = self._select_topk(candidates)

        return [
            DetectedBox(
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
                score=float(score),
                class_id=int(cls_id),
            )
            for (x1, y1, x2, y2), score, cls_id in zip(candidates.boxes, candidates.scores, candidates.class_ids)
        ]

    def _select_topk(self, candidates: Candidates) -> Candidates:
        if self.cfg.max_detections is None or candidates.count <= self.cfg.max_detections:
            return candidates
        top = np.argsort(-candidates.scores, kind="stable")[: self.cfg.max_detections]
        return candidates.select(np.sort(top))
