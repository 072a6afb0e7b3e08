"""
ID Scanner
Identity-document capture and birth-date extraction.
"""
from .error_handlers import (
    CameraError,
    CaptureTimeoutError,
    ImageDecodeError,
    RecognitionContractError,
    RecognitionEngineError,
    ScannerError,
    SessionClosedError,
)
from .layer1_auto_capture import CameraHandler, GuideRegion
from .layer3_recognition import DispatchPolicy, OrchestratorConfig, RecognitionOutput, TesseractRecognizer
from .layer4_consensus import DocumentType, ExtractionResult, ScanStatus
from .progress import ProgressChannel, ProgressEvent
from .raster import RasterImage
from .scanner import DocumentScanner, scan_from_file, scan_from_live_capture
from .session import CaptureSession, SessionStatus

__version__ = "1.0.0"

__all__ = [
    'CameraError',
    'CaptureTimeoutError',
    'ImageDecodeError',
    'RecognitionContractError',
    'RecognitionEngineError',
    'ScannerError',
    'SessionClosedError',
    'CameraHandler',
    'GuideRegion',
    'DispatchPolicy',
    'OrchestratorConfig',
    'RecognitionOutput',
    'TesseractRecognizer',
    'DocumentType',
    'ExtractionResult',
    'ScanStatus',
    'ProgressChannel',
    'ProgressEvent',
    'RasterImage',
    'DocumentScanner',
    'scan_from_file',
    'scan_from_live_capture',
    'CaptureSession',
    'SessionStatus',
]
