from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.7
    # None keeps every surviving box.
    max_detections: Optional[int] = None


def box_iou(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Intersection-over-union of two xyxy boxes; 0.0 when the union is empty.
    """
    inter_w = max(0.0, min(a[2], b[2]) - max(a[0], b[0]))
    inter_h = max(0.0, min(a[3], b[3]) - max(a[1], b[1]))
    inter = inter_w * inter_h
    union = (a[2] - a[0]) * (a[3] - a[1]) + (b[2] - b[0]) * (b[3] - b[1]) - inter
    if union <= 0:
        return 0.0
    return float(inter / union)


def _iou_one_to_many(box: np.ndarray, boxes: np.ndarray) -> np.ndarray:
    xx1 = np.maximum(box[0], boxes[:, 0])
    yy1 = np.maximum(box[1], boxes[:, 1])
    xx2 = np.minimum(box[2], boxes[:, 2])
    yy2 = np.minimum(box[3], boxes[:, 3])

    inter = np.maximum(0.0, xx2 - xx1) * np.maximum(0.0, yy2 - yy1)
    area = (box[2] - box[0]) * (box[3] - box[1])
    areas = (boxes[:, 2] - boxes[:, 0]) * (boxes[:, 3] - boxes[:, 1])
    union = area + areas - inter
    safe = np.where(union > 0, union, 1.0)
    return np.where(union > 0, inter / safe, 0.0)


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy NMS over one class. Expects boxes shape (N,4) in xyxy and scores
    shape (N,). Returns kept indices, highest score first; equal scores keep
    their input order.
    """
    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    order = np.argsort(-np.asarray(scores), kind="stable")
    keep: List[int] = []

    while order.size > 0:
        if cfg.max_detections is not None and len(keep) >= cfg.max_detections:
            break
        i = order[0]
        keep.append(int(i))

        iou = _iou_one_to_many(boxes[i], boxes[order[1:]])
        inds = np.where(iou <= cfg.iou_threshold)[0]
        order = order[inds + 1]

    return np.array(keep, dtype=np.int64)


def nms_per_class(
    boxes: np.ndarray,
    scores: np.ndarray,
    class_ids: np.ndarray,
    cfg: NMSConfig,
) -> np.ndarray:
    """
    Run `nms` independently for every class id.

    Classes are emitted in the order they first appear in the input; within a
    class, boxes come out by descending score. `max_detections` caps the merged
    result to the highest-scoring boxes without reordering them.
    """
    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)

    uniq, first_seen = np.unique(class_ids, return_index=True)
    kept: List[int] = []
    for cls in uniq[np.argsort(first_seen, kind="stable")]:
        idx = np.where(class_ids == cls)[0]
        keep_local = nms(boxes[idx], scores[idx], NMSConfig(iou_threshold=cfg.iou_threshold))
        kept.extend(idx[keep_local].tolist())

    kept_arr = np.array(kept, dtype=np.int64)
    if cfg.max_detections is not None and kept_arr.size > cfg.max_detections:
        top = np.argsort(-scores[kept_arr], kind="stable")[: cfg.max_detections]
        kept_arr = kept_arr[np.sort(top)]
    return kept_arr
