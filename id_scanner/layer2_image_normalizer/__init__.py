"""
Layer 2 — Image Normalizer
Orientation correction, size capping and portrait enforcement for every
image entering the recognition pipeline.
"""
from .normalizer import ImageNormalizer, NormalizerConfig
from .orientation import ORIENTATION_TRANSFORMS, apply_orientation, read_orientation

__all__ = [
    'ImageNormalizer',
    'NormalizerConfig',
    'ORIENTATION_TRANSFORMS',
    'apply_orientation',
    'read_orientation',
]
