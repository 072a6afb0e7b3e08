"""
Layer 1 — Auto-Capture
Live document framing: guide mapping, per-frame quality verdicts and
debounced auto-capture of a single still per attempt.
"""
from .auto_capture import (
    AutoCaptureController,
    AutoCaptureEngine,
    CaptureConfig,
    CaptureResult,
    CaptureState,
    StabilityCounter,
)
from .camera import CameraHandler, FrameSource
from .guide import FIT_CONTAIN, FIT_COVER, GuideRegion, Rect, map_guide_to_source
from .quality import (
    AnalyzerConfig,
    DetectionResult,
    EdgeGeometry,
    FrameAnalysis,
    FrameQualityAnalyzer,
    ValidationReason,
    ValidationState,
)

__all__ = [
    'AutoCaptureController',
    'AutoCaptureEngine',
    'CaptureConfig',
    'CaptureResult',
    'CaptureState',
    'StabilityCounter',
    'CameraHandler',
    'FrameSource',
    'FIT_CONTAIN',
    'FIT_COVER',
    'GuideRegion',
    'Rect',
    'map_guide_to_source',
    'AnalyzerConfig',
    'DetectionResult',
    'EdgeGeometry',
    'FrameAnalysis',
    'FrameQualityAnalyzer',
    'ValidationReason',
    'ValidationState',
]
