"""
Document Scanner
Thin coordinator for the layered birth-date extraction pipeline.

Layer 1 -> live auto-capture (CaptureSession)
Layer 2 -> image normalization
Layer 3 -> variant recognition on a worker pool
Layer 4 -> consensus
"""
import logging
from datetime import date
from typing import Optional

from .layer1_auto_capture import FrameSource, GuideRegion
from .layer2_image_normalizer import ImageNormalizer, NormalizerConfig
from .layer3_recognition import (
    OrchestratorConfig,
    RecognitionOrchestrator,
    TesseractRecognizer,
    TextRecognizer,
)
from .layer4_consensus import ConsensusResolver, ExtractionResult
from .progress import ProgressChannel, ensure_channel
from .raster import RasterImage
from .session import CaptureSession

logger = logging.getLogger(__name__)


class DocumentScanner:
    """
    Coordinates the scanning pipeline across layers.
    Holds a lazily started worker pool for uploads; live sessions bring
    their own.
    """

    def __init__(
        self,
        recognizer: Optional[TextRecognizer] = None,
        normalizer_config: Optional[NormalizerConfig] = None,
        orchestrator_config: Optional[OrchestratorConfig] = None,
        today: Optional[date] = None,
    ):
        logger.info("Initializing DocumentScanner")
        self.recognizer = recognizer or TesseractRecognizer()
        self.orchestrator_config = orchestrator_config or OrchestratorConfig()
        self.today = today

        # Layer 2: Normalization
        self.normalizer = ImageNormalizer(normalizer_config)

        # Layer 3: Recognition
        self.orchestrator = RecognitionOrchestrator(self.recognizer, self.orchestrator_config, today=today)

        # Layer 4: Consensus
        self.resolver = ConsensusResolver(today=today)

        logger.info("DocumentScanner initialized successfully")

    def create_session(self, source: FrameSource, guide: Optional[GuideRegion] = None, **kwargs) -> CaptureSession:
        """
        Create a live capture session sharing this scanner's recognizer.
        The camera is opened when the session is entered as a context manager.
        """
        return CaptureSession(
            source,
            self.recognizer,
            guide=guide,
            orchestrator_config=self.orchestrator_config,
            today=self.today,
            **kwargs
        )

    def scan_from_file(self, data: bytes, progress: Optional[ProgressChannel] = None) -> ExtractionResult:
        """
        Extract the birth date from uploaded image bytes.

        Raises:
            ImageDecodeError: If the bytes are not a decodable image
        """
        progress = ensure_channel(progress)
        logger.info("=" * 60)
        logger.info(f"Starting file scan ({len(data)} bytes)")

        logger.info("[Layer 2] Normalizing uploaded image...")
        image = self.normalizer.normalize_bytes(data)
        logger.info(f"[Layer 2] Normalized - {image.width}x{image.height}")

        return self._recognize_and_resolve(image, self.orchestrator, progress)

    def scan_from_live_capture(self, session: CaptureSession,
                               progress: Optional[ProgressChannel] = None) -> ExtractionResult:
        """
        Wait for a stable document in the session, then extract.

        Raises:
            SessionClosedError: Session closed before or during the capture
            CaptureTimeoutError: No stable document before the timeout
        """
        progress = ensure_channel(progress)
        logger.info("=" * 60)
        logger.info("Starting live scan")

        logger.info("[Layer 1] Waiting for a stable document...")
        capture = session.capture_still(progress)
        logger.info(f"[Layer 1] Still captured at {capture.timestamp}")

        logger.info("[Layer 2] Normalizing captured still...")
        image = self.normalizer.normalize_frame(capture.image)
        logger.info(f"[Layer 2] Normalized - {image.width}x{image.height}")

        return self._recognize_and_resolve(image, session.orchestrator, progress)

    def _recognize_and_resolve(self, image: RasterImage, orchestrator: RecognitionOrchestrator,
                               progress: ProgressChannel) -> ExtractionResult:
        logger.info("[Layer 3] Recognizing variants...")
        samples = orchestrator.run(image, progress)
        logger.info(f"[Layer 3] {len(samples)} sample(s) with a plausible date")

        logger.info("[Layer 4] Resolving consensus...")
        result = self.resolver.resolve(samples)

        if result.birth_date is None:
            progress.publish("no_consensus")
            logger.info("[Pipeline] No consensus")
        else:
            progress.publish("consensus_reached", birth_date=result.birth_date,
                             confidence=result.confidence)
            logger.info(f"[Pipeline] Success! Birth date {result.birth_date}")
        logger.info("=" * 60)
        return result

    def shutdown(self):
        self.orchestrator.shutdown(cancel=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False


def scan_from_file(data: bytes, recognizer: Optional[TextRecognizer] = None,
                   progress: Optional[ProgressChannel] = None, **kwargs) -> ExtractionResult:
    """One-shot upload scan with a throwaway worker pool."""
    with DocumentScanner(recognizer, **kwargs) as scanner:
        return scanner.scan_from_file(data, progress)


def scan_from_live_capture(session: CaptureSession, progress: Optional[ProgressChannel] = None,
                           normalizer_config: Optional[NormalizerConfig] = None) -> ExtractionResult:
    """One-shot live scan using the session's recognizer and worker pool."""
    with DocumentScanner(session.recognizer, normalizer_config=normalizer_config,
                         today=session.orchestrator.today) as scanner:
        return scanner.scan_from_live_capture(session, progress)
