"""
Layer 2 — Image Normalizer
Turns any input image (uploaded file or live still) into an upright,
size-capped, portrait RasterImage.

Steps:
1. Orientation metadata correction (EXIF tag 0x0112)
2. Downscale so the long edge fits the cap
3. Force portrait (documents are always handled portrait)
"""
import logging
from dataclasses import dataclass
from typing import Optional

import cv2
import numpy as np

from ..error_handlers import ImageDecodeError
from ..raster import RasterImage
from .orientation import apply_orientation, read_orientation

logger = logging.getLogger(__name__)


@dataclass
class NormalizerConfig:
    """Configuration for image normalization."""
    max_long_edge: int = 1600                   # Cap for the longest side (pixels)
    resize_method: int = cv2.INTER_AREA         # Best for downscaling
    portrait_rotation: int = cv2.ROTATE_90_CLOCKWISE


class ImageNormalizer:
    """
    Normalizes document images before variant generation.

    Metadata problems are never fatal: the image is kept as decoded and
    only the resize/portrait steps are applied.
    """

    def __init__(self, config: Optional[NormalizerConfig] = None):
        self.config = config or NormalizerConfig()
        logger.info("ImageNormalizer initialized")
        logger.debug(f"  Max long edge: {self.config.max_long_edge}px")

    def normalize_bytes(self, data: bytes) -> RasterImage:
        """
        Normalize an encoded image (JPEG, PNG, ...).

        Args:
            data: Raw file bytes

        Returns:
            RasterImage: Upright BGR image, portrait, long edge capped

        Raises:
            ImageDecodeError: If the bytes cannot be decoded as an image
        """
        pixels = self._decode(data)
        logger.debug(f"Decoded image {pixels.shape[1]}x{pixels.shape[0]}")

        orientation = read_orientation(data)
        if orientation != 1:
            logger.debug(f"Applying orientation correction {orientation}")
            pixels = apply_orientation(pixels, orientation)

        return self._finish(pixels)

    def normalize_frame(self, frame: np.ndarray) -> RasterImage:
        """Normalize an already-decoded frame (live capture carries no metadata)."""
        if frame is None or frame.size == 0:
            raise ImageDecodeError(reason="empty frame")
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        return self._finish(frame)

    def _decode(self, data: bytes) -> np.ndarray:
        if not data:
            raise ImageDecodeError(reason="empty payload")

        buffer = np.frombuffer(data, dtype=np.uint8)
        # Orientation is applied by us, exactly once
        flags = cv2.IMREAD_COLOR | cv2.IMREAD_IGNORE_ORIENTATION
        pixels = cv2.imdecode(buffer, flags)
        if pixels is None:
            raise ImageDecodeError(reason="unsupported or corrupt image data")
        return pixels

    def _finish(self, pixels: np.ndarray) -> RasterImage:
        pixels = self._cap_size(pixels)
        pixels = self._force_portrait(pixels)
        return RasterImage(pixels)

    def _cap_size(self, pixels: np.ndarray) -> np.ndarray:
        h, w = pixels.shape[:2]
        long_edge = max(h, w)
        cap = self.config.max_long_edge

        if long_edge <= cap:
            return pixels

        scale = cap / long_edge
        new_w = max(1, int(round(w * scale)))
        new_h = max(1, int(round(h * scale)))
        resized = cv2.resize(pixels, (new_w, new_h), interpolation=self.config.resize_method)
        logger.debug(f"Downscaled: {w}x{h} -> {new_w}x{new_h}")
        return resized

    def _force_portrait(self, pixels: np.ndarray) -> np.ndarray:
        h, w = pixels.shape[:2]
        if w > h:
            logger.debug("Landscape input, rotating to portrait")
            return cv2.rotate(pixels, self.config.portrait_rotation)
        return pixels
