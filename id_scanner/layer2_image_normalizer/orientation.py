"""
Layer 2 — EXIF orientation handling
Reads the orientation tag from the encoded header and applies the matching
pixel transform so the result is upright.
"""
import io
import logging

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

ORIENTATION_TAG = 0x0112


def _identity(p):
    return p


def _mirror_horizontal(p):
    return p[:, ::-1]


def _rotate_180(p):
    return p[::-1, ::-1]


def _mirror_vertical(p):
    return p[::-1, :]


def _transpose(p):
    return np.swapaxes(p, 0, 1)


def _rotate_90_cw(p):
    return np.rot90(p, k=-1)


def _transverse(p):
    return np.swapaxes(p, 0, 1)[::-1, ::-1]


def _rotate_90_ccw(p):
    return np.rot90(p, k=1)


# Orientation value -> transform that brings the stored pixels upright
ORIENTATION_TRANSFORMS = {
    1: _identity,
    2: _mirror_horizontal,
    3: _rotate_180,
    4: _mirror_vertical,
    5: _transpose,
    6: _rotate_90_cw,
    7: _transverse,
    8: _rotate_90_ccw,
}


def read_orientation(data: bytes) -> int:
    """
    Read the EXIF orientation value from encoded image bytes.

    Returns 1 (no correction) when the format carries no EXIF block, the tag
    is missing, or the header cannot be parsed.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            value = img.getexif().get(ORIENTATION_TAG, 1)
    except Exception as e:
        logger.warning(f"Could not read orientation metadata, assuming upright: {e}")
        return 1

    try:
        value = int(value)
    except (TypeError, ValueError):
        logger.warning(f"Unparseable orientation value {value!r}, assuming upright")
        return 1

    if value not in ORIENTATION_TRANSFORMS:
        logger.warning(f"Orientation value {value} out of range, assuming upright")
        return 1
    return value


def apply_orientation(pixels: np.ndarray, orientation: int) -> np.ndarray:
    """Apply the upright transform for ``orientation`` and return a contiguous copy."""
    transform = ORIENTATION_TRANSFORMS.get(orientation, _identity)
    return np.ascontiguousarray(transform(pixels))
