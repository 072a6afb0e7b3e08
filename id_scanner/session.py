"""
Live capture session.

A CaptureSession owns everything a live scan holds on to: the frame
source, the auto-capture engine (analyzer + controller) and the recognition
worker pool. close() releases all of it, once, on every exit path.
"""
import logging
import threading
from datetime import date
from enum import Enum
from typing import Dict, Optional

from .error_handlers import CameraError, SessionClosedError
from .layer1_auto_capture import (
    AnalyzerConfig,
    AutoCaptureEngine,
    CaptureConfig,
    CaptureResult,
    FrameQualityAnalyzer,
    FrameSource,
    GuideRegion,
)
from .layer3_recognition import OrchestratorConfig, RecognitionOrchestrator, TextRecognizer
from .progress import ProgressChannel

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    IDLE = 'idle'
    OPEN = 'open'
    CAPTURING = 'capturing'
    CAMERA_UNAVAILABLE = 'camera_unavailable'
    CLOSED = 'closed'


class CaptureSession:
    """
    Explicit owner of one live capture attempt.

    Usage:
        with CaptureSession(CameraHandler(2), recognizer) as session:
            result = scan_from_live_capture(session)
    """

    def __init__(
        self,
        source: FrameSource,
        recognizer: TextRecognizer,
        guide: Optional[GuideRegion] = None,
        capture_config: Optional[CaptureConfig] = None,
        analyzer_config: Optional[AnalyzerConfig] = None,
        orchestrator_config: Optional[OrchestratorConfig] = None,
        today: Optional[date] = None,
        engine: Optional[AutoCaptureEngine] = None,
    ):
        self.source = source
        self.recognizer = recognizer
        self.guide = guide
        self.engine = engine or AutoCaptureEngine(
            config=capture_config,
            analyzer=FrameQualityAnalyzer(analyzer_config)
        )
        self.orchestrator = RecognitionOrchestrator(recognizer, orchestrator_config, today=today)
        self.epoch = 0
        self.last_capture: Optional[CaptureResult] = None
        self._status = SessionStatus.IDLE
        self._closed = threading.Event()
        self._close_lock = threading.Lock()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def is_closed(self) -> bool:
        return self._closed.is_set()

    def open(self) -> 'CaptureSession':
        """
        Open the frame source and start a new controller epoch.

        Raises:
            SessionClosedError: If the session was already closed
            CameraError: If the camera is missing or busy (status becomes
                camera_unavailable; the caller should offer file upload)
        """
        if self.is_closed:
            raise SessionClosedError()

        try:
            self.source.open()
        except CameraError as e:
            self._status = SessionStatus.CAMERA_UNAVAILABLE
            logger.warning(f"Camera unavailable: {e.message}")
            raise

        if self.guide is None:
            width, height = self.source.get_resolution()
            self.guide = GuideRegion.for_source(width, height)

        self.epoch = self.engine.controller.start_session()
        self._status = SessionStatus.OPEN
        logger.info(f"Capture session {self.epoch} opened")
        return self

    def capture_still(self, progress: Optional[ProgressChannel] = None) -> CaptureResult:
        """
        Block until a stable document is captured.

        Raises:
            SessionClosedError: Session closed before or during the wait
            CaptureTimeoutError: No stable document in time
        """
        if self.is_closed:
            raise SessionClosedError()
        if self._status is not SessionStatus.OPEN:
            self.open()

        self.engine.controller.rearm()
        self._status = SessionStatus.CAPTURING
        try:
            self.last_capture = self.engine.capture_with_stability(
                self.source,
                self.guide,
                self.epoch,
                is_closed=self._closed.is_set,
                progress=progress
            )
            return self.last_capture
        finally:
            if not self.is_closed:
                self._status = SessionStatus.OPEN

    def close(self):
        """Stop the loop, cancel recognition and release the camera. Idempotent."""
        with self._close_lock:
            if self._closed.is_set():
                return
            self._closed.set()

        self.engine.controller.end_session()
        self.orchestrator.shutdown(cancel=True)
        try:
            self.source.release()
        finally:
            if self._status is not SessionStatus.CAMERA_UNAVAILABLE:
                self._status = SessionStatus.CLOSED
            logger.info(f"Capture session {self.epoch} closed")

    def to_dict(self) -> Dict:
        last = self.engine.last_verdict
        return {
            'status': self._status.value,
            'epoch': self.epoch,
            'camera_open': self.source.is_opened(),
            'capture_state': self.engine.controller.state.value,
            'guide': self.guide.rect.to_dict() if self.guide is not None else None,
            'last_verdict': last.to_dict() if last is not None else None,
            'last_capture': self.last_capture.to_dict() if self.last_capture is not None else None
        }

    def __enter__(self):
        try:
            return self.open()
        except Exception:
            self.close()
            raise

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
