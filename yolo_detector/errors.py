"""
Exceptions raised by yolo_detector.

Each error also subclasses the builtin that callers would otherwise expect
(`ValueError` for bad models/images, `RuntimeError` for misuse), so plain
`except ValueError` handlers keep working.
"""


class DetectorError(Exception):
    """Base class for all yolo_detector errors."""


class ModelFormatError(DetectorError, ValueError):
    """
    Raised at construction when the model's tensors cannot be used.

    Examples: non-square input, fewer than 5 output channels, unsupported
    tensor rank or dtype, missing quantization parameters.
    """


class InvalidImageError(DetectorError, ValueError):
    """Raised by `detect` / `letterbox` for empty or malformed images."""


class DetectorClosedError(DetectorError, RuntimeError):
    """Raised when a detector is used after `close()`."""
