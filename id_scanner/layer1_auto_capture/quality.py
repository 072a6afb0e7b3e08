"""
Layer 1 — Frame Quality Analysis
Scores a single live frame, cropped to the on-screen guide, against
alignment, coverage and focus criteria. The verdict drives on-screen
guidance and feeds the auto-capture controller.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from .guide import GuideRegion, Rect, map_guide_to_source

logger = logging.getLogger(__name__)


class ValidationReason(str, Enum):
    NO_EDGES = 'no-edges'
    LANDSCAPE = 'landscape'
    TILT = 'tilt'
    OFF_CENTER = 'off-center'
    TOO_SMALL = 'too-small'
    TOO_LARGE = 'too-large'
    OUT_OF_FOCUS = 'out-of-focus'
    READY = 'ready'


@dataclass(frozen=True)
class ValidationState:
    """Verdict for one frame. ``guidance_key`` is the UI message key."""
    valid: bool
    reason: ValidationReason
    guidance_key: str

    @classmethod
    def of(cls, reason: ValidationReason) -> 'ValidationState':
        return cls(
            valid=reason is ValidationReason.READY,
            reason=reason,
            guidance_key=f"capture.guidance.{reason.value}"
        )

    def to_dict(self) -> Dict:
        return {
            'valid': self.valid,
            'reason': self.reason.value,
            'guidance_key': self.guidance_key
        }


@dataclass(frozen=True)
class EdgeGeometry:
    """Measurements taken from the edge map of the analysis image."""
    edge_count: int
    bbox: Rect                  # In analysis-image pixels
    coverage: float
    aspect_ratio: float         # bbox height / width
    tilt: float                 # Degrees from vertical
    offset_x: float             # Normalized by half-extent
    offset_y: float
    focus: float                # Laplacian variance


@dataclass(frozen=True)
class DetectionResult:
    """Detected document region for a `ready` frame, in source coordinates."""
    bbox: Rect
    tilt: float
    roi: Rect
    coverage: float
    focus: float

    def to_dict(self) -> Dict:
        return {
            'bbox': self.bbox.to_dict(),
            'tilt': round(self.tilt, 2),
            'roi': self.roi.to_dict(),
            'coverage': round(self.coverage, 4),
            'focus': round(self.focus, 2)
        }


@dataclass(frozen=True)
class FrameAnalysis:
    state: ValidationState
    detection: Optional[DetectionResult] = None
    geometry: Optional[EdgeGeometry] = None


@dataclass
class AnalyzerConfig:
    """Thresholds for live frame analysis."""
    analysis_width: int = 320           # Crop is resized to this width
    edge_floor: float = 40.0            # Minimum gradient threshold
    edge_mean_multiplier: float = 2.0   # Adaptive threshold = k * mean magnitude
    min_edge_fraction: float = 0.01     # Edge pixels / analysis area
    min_coverage: float = 0.55
    max_coverage: float = 0.94
    min_portrait_ratio: float = 1.0     # bbox height / width
    max_tilt_degrees: float = 9.0
    max_center_offset: float = 0.14
    min_focus: float = 60.0             # Laplacian variance
    tilt_sample_size: int = 4000


def compute_luma(image: np.ndarray) -> np.ndarray:
    """Weighted RGB sum (BT.601) as float32."""
    if image.ndim == 2:
        return image.astype(np.float32)
    b, g, r = cv2.split(image.astype(np.float32))
    return 0.114 * b + 0.587 * g + 0.299 * r


def gradient_magnitude(luma: np.ndarray) -> np.ndarray:
    """Sobel 3x3 magnitude; border pixels are zeroed (interior only)."""
    gx = cv2.Sobel(luma, cv2.CV_32F, 1, 0, ksize=3)
    gy = cv2.Sobel(luma, cv2.CV_32F, 0, 1, ksize=3)
    magnitude = cv2.magnitude(gx, gy)
    magnitude[0, :] = 0
    magnitude[-1, :] = 0
    magnitude[:, 0] = 0
    magnitude[:, -1] = 0
    return magnitude


def principal_axis_tilt(xs: np.ndarray, ys: np.ndarray) -> float:
    """
    Tilt of the dominant axis relative to vertical, from the second-moment
    matrix of the point cloud.
    """
    if xs.size < 2:
        return 0.0
    x = xs.astype(np.float64)
    y = ys.astype(np.float64)
    dx = x - x.mean()
    dy = y - y.mean()
    cxx = float(np.mean(dx * dx))
    cyy = float(np.mean(dy * dy))
    cxy = float(np.mean(dx * dy))
    angle = 0.5 * math.degrees(math.atan2(2.0 * cxy, cxx - cyy))
    return abs(90.0 - abs(angle))


class FrameQualityAnalyzer:
    """
    Real-time frame validator for the capture guide.

    Checks run in a fixed order and the first failure is reported:
    edges -> coverage -> orientation -> tilt -> centering -> focus.
    """

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or AnalyzerConfig()
        logger.debug("FrameQualityAnalyzer initialized")

    def analyze(self, frame: Optional[np.ndarray], guide: GuideRegion) -> FrameAnalysis:
        """
        Analyze one camera frame.

        Args:
            frame: BGR frame from the live source (None if no active frame)
            guide: On-screen guide region in viewport coordinates

        Returns:
            FrameAnalysis: Verdict, plus DetectionResult when ready
        """
        if frame is None or frame.size == 0:
            return FrameAnalysis(ValidationState.of(ValidationReason.NO_EDGES))

        h, w = frame.shape[:2]
        roi = map_guide_to_source(guide, (w, h))
        if roi is None:
            logger.debug("Guide maps to a degenerate source region")
            return FrameAnalysis(ValidationState.of(ValidationReason.NO_EDGES))

        x, y = int(roi.x), int(roi.y)
        crop = frame[y:y + int(roi.height), x:x + int(roi.width)]
        small = self._downscale(crop)

        luma = compute_luma(small)
        magnitude = gradient_magnitude(luma)
        threshold = max(self.config.edge_floor,
                        self.config.edge_mean_multiplier * float(magnitude.mean()))
        edges = magnitude > threshold

        state, geometry = self.evaluate(luma, edges)
        if not state.valid:
            return FrameAnalysis(state, geometry=geometry)

        scale_x = crop.shape[1] / small.shape[1]
        scale_y = crop.shape[0] / small.shape[0]
        b = geometry.bbox
        detection = DetectionResult(
            bbox=Rect(roi.x + b.x * scale_x, roi.y + b.y * scale_y,
                      b.width * scale_x, b.height * scale_y),
            tilt=geometry.tilt,
            roi=roi,
            coverage=geometry.coverage,
            focus=geometry.focus
        )
        return FrameAnalysis(state, detection=detection, geometry=geometry)

    def evaluate(self, luma: np.ndarray, edges: np.ndarray) -> Tuple[ValidationState, Optional[EdgeGeometry]]:
        """
        Apply the ordered checks to a luma image and its edge mask.

        Args:
            luma: Float luma image of the analysis region
            edges: Boolean edge mask of the same shape

        Returns:
            Tuple of (ValidationState, EdgeGeometry or None if no edges)
        """
        cfg = self.config
        height, width = edges.shape[:2]
        area = float(width * height)

        ys, xs = np.nonzero(edges)
        edge_count = int(xs.size)
        if edge_count == 0 or edge_count < cfg.min_edge_fraction * area:
            return ValidationState.of(ValidationReason.NO_EDGES), None

        x0, x1 = int(xs.min()), int(xs.max())
        y0, y1 = int(ys.min()), int(ys.max())
        bbox = Rect(x0, y0, x1 - x0 + 1, y1 - y0 + 1)
        coverage = bbox.area / area

        # Stride over row-major edge coordinates: stratified by row
        step = max(1, edge_count // cfg.tilt_sample_size)
        tilt = principal_axis_tilt(xs[::step], ys[::step])

        offset_x = abs((bbox.x + bbox.width / 2.0) - width / 2.0) / (width / 2.0)
        offset_y = abs((bbox.y + bbox.height / 2.0) - height / 2.0) / (height / 2.0)
        focus = float(cv2.Laplacian(luma.astype(np.float64), cv2.CV_64F).var())

        geometry = EdgeGeometry(
            edge_count=edge_count,
            bbox=bbox,
            coverage=coverage,
            aspect_ratio=bbox.height / bbox.width,
            tilt=tilt,
            offset_x=offset_x,
            offset_y=offset_y,
            focus=focus
        )

        if coverage < cfg.min_coverage:
            reason = ValidationReason.TOO_SMALL
        elif coverage > cfg.max_coverage:
            reason = ValidationReason.TOO_LARGE
        elif geometry.aspect_ratio < cfg.min_portrait_ratio:
            reason = ValidationReason.LANDSCAPE
        elif tilt > cfg.max_tilt_degrees:
            reason = ValidationReason.TILT
        elif offset_x > cfg.max_center_offset or offset_y > cfg.max_center_offset:
            reason = ValidationReason.OFF_CENTER
        elif focus < cfg.min_focus:
            reason = ValidationReason.OUT_OF_FOCUS
        else:
            reason = ValidationReason.READY

        logger.debug(
            f"Frame check: {reason.value} (coverage={coverage:.2f}, "
            f"ratio={geometry.aspect_ratio:.2f}, tilt={tilt:.1f}, focus={focus:.1f})"
        )
        return ValidationState.of(reason), geometry

    def _downscale(self, crop: np.ndarray) -> np.ndarray:
        h, w = crop.shape[:2]
        target_w = self.config.analysis_width
        target_h = max(1, int(round(h * target_w / w)))
        interpolation = cv2.INTER_AREA if w > target_w else cv2.INTER_LINEAR
        return cv2.resize(crop, (target_w, target_h), interpolation=interpolation)
