from typing import Tuple

import numpy as np

from .letterbox import LetterboxResult
from .types import Candidates


def unletterbox(
    boxes: np.ndarray,
    ratio: float,
    pad: Tuple[float, float],
    orig_size: Tuple[int, int],
) -> np.ndarray:
    """
    Map xyxy boxes from letterboxed model space back to the original image and
    clamp them to [0, width] x [0, height]. Returns a new array.
    """
    dw, dh = pad
    out = np.array(boxes, dtype=np.float64, copy=True).reshape(-1, 4)
    out[:, [0, 2]] = (out[:, [0, 2]] - dw) / ratio
    out[:, [1, 3]] = (out[:, [1, 3]] - dh) / ratio

    orig_w, orig_h = orig_size
    out[:, [0, 2]] = np.clip(out[:, [0, 2]], 0, orig_w)
    out[:, [1, 3]] = np.clip(out[:, [1, 3]], 0, orig_h)
    return out


def remap_boxes(candidates: Candidates, lb: LetterboxResult, conf_threshold: float) -> Candidates:
    """
    Drop candidates scoring below `conf_threshold`, move the rest into
    original-image space and drop any box left with zero or negative area.
    """
    keep = candidates.scores >= conf_threshold
    if not np.any(keep):
        return Candidates.empty()
    kept = candidates.select(keep)

    boxes = unletterbox(kept.boxes, lb.ratio, lb.pad, lb.orig_size)
    valid = (boxes[:, 2] > boxes[:, 0]) & (boxes[:, 3] > boxes[:, 1])
    return Candidates(boxes[valid], kept.scores[valid], kept.class_ids[valid])
