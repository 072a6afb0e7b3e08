"""
Layer 1 — Auto-Capture
Debounced auto-capture driven by frame quality verdicts.

Features:
- Periodic analysis of the live frame cropped to the on-screen guide
- Stability tracking: the document must stay `ready` for a minimum number
  of frames AND a minimum time before capturing
- Single capture per attempt, guarded by a capture-in-progress lock
- Session epochs so late verdicts from a closed session are ignored
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

import numpy as np

from ..error_handlers import (
    CameraNotInitializedError,
    CaptureTimeoutError,
    FrameCaptureError,
    SessionClosedError,
)
from ..progress import ProgressChannel, ensure_channel
from .camera import FrameSource
from .guide import GuideRegion, Rect
from .quality import DetectionResult, FrameQualityAnalyzer, ValidationState

logger = logging.getLogger(__name__)


class CaptureState(str, Enum):
    SCANNING = 'scanning'
    STABILIZING = 'stabilizing'
    TRIGGERED = 'triggered'


@dataclass
class CaptureConfig:
    """Configuration for the auto-capture loop."""
    tick_interval: float = 0.28         # Seconds between analysis ticks
    min_stable_frames: int = 3          # Consecutive `ready` verdicts
    min_stable_seconds: float = 0.75    # Time since first `ready`
    timeout_seconds: float = 30.0       # Give up (caller falls back to upload)
    crop_to_detection: bool = True      # Crop the still to the guide ROI
    crop_margin: float = 0.04           # Extra margin around the ROI


@dataclass
class StabilityCounter:
    started_at: Optional[float] = None
    frames: int = 0

    def reset(self):
        self.started_at = None
        self.frames = 0

    def elapsed(self, now: float) -> float:
        if self.started_at is None:
            return 0.0
        return now - self.started_at


@dataclass
class CaptureResult:
    """A still produced by the live path."""
    image: np.ndarray
    detection: Optional[DetectionResult]
    timestamp: str = ""
    metadata: Dict = field(default_factory=dict)

    def to_dict(self) -> Dict:
        result = {
            'timestamp': self.timestamp,
            'size': [int(self.image.shape[1]), int(self.image.shape[0])],
            'metadata': self.metadata
        }
        if self.detection:
            result['detection'] = self.detection.to_dict()
        return result


class AutoCaptureController:
    """
    State machine: scanning -> stabilizing -> triggered.

    A single good frame is not evidence of a stable document, so capture
    fires only after enough consecutive `ready` frames over enough time.
    """

    def __init__(self, config: Optional[CaptureConfig] = None):
        self.config = config or CaptureConfig()
        self.counter = StabilityCounter()
        self._state = CaptureState.SCANNING
        self._capture_in_flight = False
        self._epoch = 0

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def capture_in_flight(self) -> bool:
        return self._capture_in_flight

    def start_session(self) -> int:
        """Reset for a new camera session and return its epoch."""
        self._epoch += 1
        self._reset()
        logger.debug(f"Capture controller session {self._epoch} started")
        return self._epoch

    def end_session(self):
        """Invalidate the current epoch and clear lock and counters."""
        self._epoch += 1
        self._reset()

    def rearm(self):
        """Start a new attempt within the same session."""
        if self._capture_in_flight:
            return
        self._state = CaptureState.SCANNING
        self.counter.reset()

    def _reset(self):
        self._state = CaptureState.SCANNING
        self._capture_in_flight = False
        self.counter.reset()

    def observe(self, verdict: ValidationState, now: float, epoch: Optional[int] = None) -> bool:
        """
        Feed one analyzer verdict.

        Args:
            verdict: Result of analyzing the current frame
            now: Monotonic timestamp of the tick (seconds)
            epoch: Session epoch the verdict was computed for

        Returns:
            bool: True exactly once per attempt, when capture must be invoked
        """
        if epoch is not None and epoch != self._epoch:
            logger.debug(f"Ignoring verdict from stale session {epoch}")
            return False

        if self._capture_in_flight or self._state is CaptureState.TRIGGERED:
            return False

        if not verdict.valid:
            if self._state is CaptureState.STABILIZING:
                logger.debug(f"Stability lost ({verdict.reason.value}), back to scanning")
            self._state = CaptureState.SCANNING
            self.counter.reset()
            return False

        if self._state is CaptureState.SCANNING:
            self._state = CaptureState.STABILIZING
            self.counter.started_at = now
            self.counter.frames = 1
            return False

        self.counter.frames += 1
        cfg = self.config
        if (self.counter.frames >= cfg.min_stable_frames
                and self.counter.elapsed(now) > cfg.min_stable_seconds):
            self._state = CaptureState.TRIGGERED
            self._capture_in_flight = True
            logger.info(
                f"Document stable for {self.counter.frames} frames / "
                f"{self.counter.elapsed(now):.2f}s, triggering capture"
            )
            return True
        return False

    def capture_finished(self, success: bool):
        """Release the capture lock; a failed still returns to scanning."""
        self._capture_in_flight = False
        if not success:
            self._state = CaptureState.SCANNING
            self.counter.reset()


class AutoCaptureEngine:
    """
    Runs the periodic analysis loop on the caller's thread and returns the
    captured still. One engine per capture session.
    """

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        analyzer: Optional[FrameQualityAnalyzer] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or CaptureConfig()
        self.analyzer = analyzer or FrameQualityAnalyzer()
        self.controller = AutoCaptureController(self.config)
        self._clock = clock
        self._sleep = sleep
        self.last_verdict: Optional[ValidationState] = None
        logger.info("AutoCaptureEngine initialized")

    def capture_with_stability(
        self,
        source: FrameSource,
        guide: GuideRegion,
        epoch: int,
        is_closed: Callable[[], bool] = lambda: False,
        progress: Optional[ProgressChannel] = None,
    ) -> CaptureResult:
        """
        Analyze frames every tick until the controller triggers, then grab
        the still.

        Raises:
            SessionClosedError: Session torn down while waiting
            CaptureTimeoutError: No stable document before the timeout
            CameraNotInitializedError: Source not opened (and session still open)
        """
        cfg = self.config
        progress = ensure_channel(progress)
        deadline = self._clock() + cfg.timeout_seconds
        next_tick = self._clock()
        last_reason = None

        logger.info("Starting stability capture...")

        while True:
            if is_closed() or epoch != self.controller.epoch:
                raise SessionClosedError()

            now = self._clock()
            if now >= deadline:
                raise CaptureTimeoutError(cfg.timeout_seconds, last_reason.value if last_reason else None)

            analysis = self.analyzer.analyze(self._read_frame(source, is_closed), guide)
            self.last_verdict = analysis.state

            if analysis.state.reason is not last_reason:
                last_reason = analysis.state.reason
                progress.publish(f"guidance:{last_reason.value}",
                                 guidance_key=analysis.state.guidance_key)

            if self.controller.observe(analysis.state, now, epoch):
                progress.publish("capture_triggered")
                result = self._grab_still(source, analysis.detection, is_closed)
                if result is not None:
                    return result

            next_tick += cfg.tick_interval
            delay = next_tick - self._clock()
            if delay > 0:
                self._sleep(delay)
            else:
                next_tick = self._clock()

    def _get_frame(self, source: FrameSource, is_closed: Callable[[], bool]) -> np.ndarray:
        try:
            return source.get_frame()
        except CameraNotInitializedError:
            # close() released the camera under us
            if is_closed():
                raise SessionClosedError()
            raise

    def _read_frame(self, source: FrameSource, is_closed: Callable[[], bool]) -> Optional[np.ndarray]:
        try:
            return self._get_frame(source, is_closed)
        except FrameCaptureError as e:
            # A dropped frame is treated as "no frame" for this tick
            logger.debug(f"Frame read failed: {e.message}")
            return None

    def _grab_still(self, source: FrameSource, detection: Optional[DetectionResult],
                    is_closed: Callable[[], bool]) -> Optional[CaptureResult]:
        try:
            frame = self._get_frame(source, is_closed)
        except FrameCaptureError as e:
            logger.warning(f"Still capture failed, resuming scan: {e.message}")
            self.controller.capture_finished(success=False)
            return None

        self.controller.capture_finished(success=True)
        image = frame
        if self.config.crop_to_detection and detection is not None:
            image = self._crop(frame, detection.roi)

        h, w = image.shape[:2]
        logger.info(f"Still captured - {w}x{h}")
        return CaptureResult(
            image=image,
            detection=detection,
            timestamp=datetime.now().strftime("%Y%m%d_%H%M%S"),
            metadata={
                'mode': 'auto',
                'stable_frames': self.controller.counter.frames,
                'source_size': [int(frame.shape[1]), int(frame.shape[0])]
            }
        )

    def _crop(self, frame: np.ndarray, roi: Rect) -> np.ndarray:
        h, w = frame.shape[:2]
        mx = roi.width * self.config.crop_margin
        my = roi.height * self.config.crop_margin
        x0 = int(max(0, roi.x - mx))
        y0 = int(max(0, roi.y - my))
        x1 = int(min(w, roi.x + roi.width + mx))
        y1 = int(min(h, roi.y + roi.height + my))
        if x1 <= x0 or y1 <= y0:
            return frame
        return frame[y0:y1, x0:x1].copy()
