"""
Shared raster container passed between layers.
"""
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np


@dataclass(frozen=True)
class RasterImage:
    """
    Immutable image buffer.

    Pixels are either a BGR ``uint8`` array (OpenCV channel order) or a
    single-channel grayscale derivative. The array is marked read-only on
    construction; every transform must produce a new RasterImage.
    """
    pixels: np.ndarray

    def __post_init__(self):
        if self.pixels is None or self.pixels.ndim not in (2, 3) or self.pixels.size == 0:
            raise ValueError("RasterImage requires a non-empty 2D or 3D pixel array")
        frozen = np.ascontiguousarray(self.pixels)
        if frozen is self.pixels:
            frozen = frozen.copy()
        frozen.setflags(write=False)
        object.__setattr__(self, 'pixels', frozen)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def is_grayscale(self) -> bool:
        return self.pixels.ndim == 2

    @property
    def is_portrait(self) -> bool:
        return self.height >= self.width

    def to_bgr(self) -> np.ndarray:
        """Return a writable 3-channel BGR copy."""
        if self.is_grayscale:
            return cv2.cvtColor(self.pixels, cv2.COLOR_GRAY2BGR)
        return self.pixels.copy()

    def encode_jpeg(self, quality: int = 70) -> Optional[bytes]:
        ok, buffer = cv2.imencode('.jpg', self.pixels, [cv2.IMWRITE_JPEG_QUALITY, quality])
        if not ok:
            return None
        return buffer.tobytes()
