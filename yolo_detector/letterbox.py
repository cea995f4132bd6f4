from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import InvalidImageError


@dataclass(frozen=True)
class LetterboxResult:
    """
    Output of `letterbox()`.

    image: (size, size, 3) uint8 canvas holding the resized image
    ratio: uniform scale applied to the original image
    pad_x, pad_y: left/top padding in model pixels (right/bottom take the remainder)
    orig_size: (width, height) of the original image
    """

    image: np.ndarray
    ratio: float
    pad_x: float
    pad_y: float
    orig_size: Tuple[int, int]

    @property
    def pad(self) -> Tuple[float, float]:
        return self.pad_x, self.pad_y


def letterbox(image: np.ndarray, size: int = 640, pad_color: int = 114) -> LetterboxResult:
    """
    Resize `image` to fit a `size` x `size` square without distorting it, and
    pad the unused margin with a uniform gray `pad_color`.

    Accepts (H, W, 3) or (H, W, 4) uint8 arrays; an alpha channel is dropped.
    Channel order is preserved as given.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for letterbox(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape"):
        raise InvalidImageError("image must be a NumPy array of shape (H, W, 3|4).")
    if image.ndim != 3 or image.shape[2] not in (3, 4):
        raise InvalidImageError(f"Expected image shape (H, W, 3) or (H, W, 4), got {image.shape}")

    h, w = image.shape[:2]
    if w == 0 or h == 0:
        raise InvalidImageError(f"Image has zero size ({w}x{h}).")
    if size <= 0:
        raise ValueError(f"size must be > 0 (got {size})")

    if image.shape[2] == 4:
        image = image[:, :, :3]

    r = min(size / w, size / h)
    # Extreme aspect ratios can round a side to zero.
    resized_w = max(1, int(round(w * r)))
    resized_h = max(1, int(round(h * r)))

    dw = (size - resized_w) / 2
    dh = (size - resized_h) / 2

    if (w, h) != (resized_w, resized_h):
        image = cv2.resize(image, (resized_w, resized_h), interpolation=cv2.INTER_LINEAR)

    # Odd margins put the image at an integer offset up to half a pixel from
    # (dw, dh); boxes are remapped with the fractional pad, not this offset.
    top, bottom = int(round(dh - 0.1)), int(round(dh + 0.1))
    left, right = int(round(dw - 0.1)), int(round(dw + 0.1))
    color = (int(pad_color),) * 3
    padded = cv2.copyMakeBorder(
        np.ascontiguousarray(image), top, bottom, left, right, cv2.BORDER_CONSTANT, value=color
    )

    return LetterboxResult(image=padded, ratio=r, pad_x=dw, pad_y=dh, orig_size=(w, h))
