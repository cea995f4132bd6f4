from typing import Union

import numpy as np

_SUPPORTED = (np.dtype(np.float32), np.dtype(np.int8), np.dtype(np.uint8))


class InputEncoder:
    """
    Writes a letterboxed RGB canvas into the model's NHWC input buffer.

    - float32 models get (R, G, B) / 255 in [0, 1]
    - int8/uint8 models get the raw channel bytes, unnormalized; for int8 the
      byte pattern is stored as-is

    The (1, S, S, 3) buffer is allocated once and overwritten by every call, so
    the array returned by `encode` is only valid until the next call.
    """

    def __init__(self, input_size: int, dtype: Union[np.dtype, type] = np.float32, channels: int = 3):
        self.dtype = np.dtype(dtype)
        if self.dtype not in _SUPPORTED:
            raise ValueError(f"Unsupported input dtype: {self.dtype}")
        self.input_size = int(input_size)
        self.channels = int(channels)
        self._buffer = np.zeros((1, self.input_size, self.input_size, self.channels), dtype=self.dtype)

    @property
    def quantized(self) -> bool:
        return self.dtype != np.float32

    @property
    def nbytes(self) -> int:
        return int(self._buffer.nbytes)

    def encode(self, rgb: np.ndarray) -> np.ndarray:
        expected = (self.input_size, self.input_size, self.channels)
        if rgb.shape != expected or rgb.dtype != np.uint8:
            raise ValueError(f"Expected uint8 canvas of shape {expected}, got {rgb.dtype} {rgb.shape}")

        if self.quantized:
            self._buffer.view(np.uint8)[0] = rgb
        else:
            np.divide(rgb, 255.0, out=self._buffer[0], casting="unsafe")
        return self._buffer
