"""
Error Handling System
Every failure the scanner reports is a ScannerError carrying a stable
error code, a details dict and the HTTP status the API answers with.
"""
import logging

logger = logging.getLogger(__name__)


class ScannerError(Exception):
    """Base exception for scanner errors"""
    http_status = 422

    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


# Layer 1 Errors - Camera / capture session
class CameraError(ScannerError):
    """
    The live path cannot continue. Uploading a photo still works, so
    responses for this family point the client at the upload endpoint.
    """
    fallback = "/api/scan"

    def to_dict(self):
        data = super().to_dict()
        data["fallback"] = self.fallback
        return data


class CameraNotFoundError(CameraError):
    def __init__(self, camera_index):
        super().__init__(
            message=f"No camera at index {camera_index}",
            error_code="CAMERA_NOT_FOUND",
            details={"camera_index": camera_index}
        )


class CameraInitError(CameraError):
    """Device exists but refused to open (busy, permission denied)"""
    def __init__(self, camera_index, reason=None):
        super().__init__(
            message=f"Camera at index {camera_index} could not be opened",
            error_code="CAMERA_INIT_FAILED",
            details={"camera_index": camera_index, "reason": reason}
        )


class CameraNotInitializedError(CameraError):
    def __init__(self):
        super().__init__(
            message="Frames requested from a camera that was never opened",
            error_code="CAMERA_NOT_INITIALIZED"
        )


class FrameCaptureError(CameraError):
    def __init__(self):
        super().__init__(
            message="Camera returned no frame",
            error_code="FRAME_CAPTURE_FAILED"
        )


class CaptureTimeoutError(CameraError):
    """No stable, well-framed document within the capture window"""
    def __init__(self, timeout_seconds, last_reason=None):
        super().__init__(
            message=f"No stable document after {timeout_seconds}s",
            error_code="CAPTURE_TIMEOUT",
            details={"timeout_seconds": timeout_seconds, "last_reason": last_reason}
        )


class SessionClosedError(CameraError):
    def __init__(self):
        super().__init__(
            message="Capture session is closed",
            error_code="SESSION_CLOSED"
        )


# Layer 2 Errors - Image Processing
class ProcessingError(ScannerError):
    http_status = 400


class ImageDecodeError(ProcessingError):
    """Uploaded bytes are not a decodable image"""
    def __init__(self, reason=None):
        super().__init__(
            message="Could not decode image",
            error_code="INVALID_IMAGE",
            details={"reason": reason}
        )


# Layer 3 Errors - Recognition (per job, never pipeline-fatal)
class RecognitionError(ScannerError):
    http_status = 502


class RecognitionEngineError(RecognitionError):
    """Recognition engine unavailable, crashed or timed out"""
    def __init__(self, reason):
        super().__init__(
            message=f"Recognition engine failed: {reason}",
            error_code="RECOGNITION_ENGINE_FAILED",
            details={"reason": str(reason)}
        )


class RecognitionContractError(RecognitionError):
    """Engine returned a result of unknown shape"""
    def __init__(self, received):
        super().__init__(
            message="Recognition engine returned an unsupported result",
            error_code="RECOGNITION_CONTRACT_VIOLATION",
            details={"received_type": type(received).__name__}
        )


def handle_error(error, log_message=None):
    """
    Log an exception and build the API error response for it.

    Args:
        error: Exception that occurred
        log_message: Optional context logged before the error itself

    Returns:
        tuple: (JSON-serializable dict, HTTP status code)
    """
    if log_message:
        logger.error(log_message)

    if isinstance(error, ScannerError):
        logger.error(f"{error.error_code}: {error.message}")
        if error.details:
            logger.debug(f"Error details: {error.details}")
        return error.to_dict(), error.http_status

    logger.exception(f"Unexpected error: {error}")
    return {
        "success": False,
        "error": "An unexpected error occurred",
        "error_code": "UNEXPECTED_ERROR",
        "details": {"error_type": type(error).__name__}
    }, 500
