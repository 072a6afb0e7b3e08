"""
Layer 3 — Variant Generator
The true orientation and lighting of the source are unknown, so every
plausible correction is tried: 4 rotations x 3 filter passes.
"""
from dataclasses import dataclass
from typing import List

import cv2
import numpy as np

from ..raster import RasterImage

ANGLES = (0, 90, 180, 270)

# Per pass: threshold, gain above, gain below. Pass 1 is more aggressive on
# dark scans, pass 2 on washed-out ones.
FILTER_PASSES = (
    (128, 1.5, 0.5),
    (100, 1.5, 0.5),
    (160, 1.5, 0.5),
)

_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


@dataclass(frozen=True)
class OCRVariant:
    image: RasterImage
    angle: int
    filter_pass: int

    @property
    def label(self) -> str:
        return f"angle_{self.angle}_pass_{self.filter_pass + 1}"


def rotate(pixels: np.ndarray, angle: int) -> np.ndarray:
    """Rotate clockwise by a multiple of 90 degrees."""
    if angle == 0:
        return pixels
    return cv2.rotate(pixels, _ROTATIONS[angle])


def contrast_filter(pixels: np.ndarray, filter_pass: int) -> np.ndarray:
    """
    Grayscale, then push pixels above the pass threshold up and the rest
    down, giving a high-contrast, near-binary image.
    """
    threshold, gain_high, gain_low = FILTER_PASSES[filter_pass]
    if pixels.ndim == 3:
        b, g, r = cv2.split(pixels.astype(np.float32))
        gray = 0.11 * b + 0.59 * g + 0.3 * r
    else:
        gray = pixels.astype(np.float32)
    out = np.where(gray > threshold, np.minimum(255.0, gray * gain_high), gray * gain_low)
    return out.astype(np.uint8)


def generate_variants(image: RasterImage) -> List[OCRVariant]:
    """Return the 12 variants, ordered by angle then filter pass."""
    variants = []
    for angle in ANGLES:
        rotated = rotate(image.pixels, angle)
        for filter_pass in range(len(FILTER_PASSES)):
            variants.append(OCRVariant(
                image=RasterImage(contrast_filter(rotated, filter_pass)),
                angle=angle,
                filter_pass=filter_pass
            ))
    return variants
