"""
ID Scanner Web Application / Birth-date Extraction Microservice
Thin HTTP shell over the layered scanning pipeline.

Provides REST API for:
- Birth-date extraction from uploaded document photos
- Live auto-capture from a local camera followed by extraction
"""
import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS

from .error_handlers import handle_error
from .layer1_auto_capture import CameraHandler, CaptureConfig
from .layer3_recognition import DispatchPolicy, OrchestratorConfig, TesseractRecognizer, default_worker_count
from .progress import ProgressChannel
from .scanner import DocumentScanner

# Configuration
CAMERA_INDEX = int(os.environ.get('CAMERA_INDEX', 0))
TESSERACT_LANG = os.environ.get('TESSERACT_LANG', 'por+eng')
TESSERACT_CMD = os.environ.get('TESSERACT_CMD')
OCR_MAX_WORKERS = int(os.environ.get('OCR_MAX_WORKERS', default_worker_count()))
OCR_JOB_TIMEOUT = float(os.environ.get('OCR_JOB_TIMEOUT', 20))
OCR_DISPATCH_POLICY = DispatchPolicy(os.environ.get('OCR_DISPATCH_POLICY', DispatchPolicy.EXHAUSTIVE.value))
CAPTURE_TIMEOUT = float(os.environ.get('CAPTURE_TIMEOUT', 30))
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()

# Setup logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for the capture front-end served from another origin
CORS(app, origins=["*"])

logger.info("Starting application initialization")

scanner = DocumentScanner(
    recognizer=TesseractRecognizer(lang=TESSERACT_LANG, tesseract_cmd=TESSERACT_CMD),
    orchestrator_config=OrchestratorConfig(
        max_workers=OCR_MAX_WORKERS,
        job_timeout=OCR_JOB_TIMEOUT,
        policy=OCR_DISPATCH_POLICY
    )
)


@app.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint for service discovery and load balancers"""
    return jsonify({
        "status": "healthy",
        "service": "id-scanner",
        "version": "1.0.0"
    })


@app.route("/api/status", methods=["GET"])
def api_status():
    """Get service configuration and endpoints"""
    return jsonify({
        "success": True,
        "camera_index": CAMERA_INDEX,
        "workers": scanner.orchestrator_config.max_workers,
        "dispatch_policy": scanner.orchestrator_config.policy.value,
        "endpoints": {
            "health": "/health",
            "scan": "/api/scan",
            "capture": "/api/capture"
        }
    })


@app.route("/api/scan", methods=["POST"])
def api_scan():
    """
    Extract the birth date from an uploaded document photo.

    Request:
        - multipart/form-data with 'image' field

    Response:
        {
            "success": true,
            "data": { ... ExtractionResult ... },
            "progress": ["initializing_4_workers", ...]
        }
    """
    logger.info("API scan request received")

    if 'image' not in request.files:
        return jsonify({
            "success": False,
            "error": "No image file provided",
            "error_code": "NO_IMAGE"
        }), 400

    image_file = request.files['image']

    if image_file.filename == '':
        return jsonify({
            "success": False,
            "error": "Empty filename",
            "error_code": "EMPTY_FILENAME"
        }), 400

    progress = ProgressChannel()
    try:
        result = scanner.scan_from_file(image_file.read(), progress)
    except Exception as e:
        payload, status = handle_error(e, "API scan failed")
        return jsonify(payload), status

    logger.info(f"API scan finished: {result.status.value}")
    return jsonify({
        "success": True,
        "data": result.to_dict(),
        "progress": progress.tokens()
    })


@app.route("/api/capture", methods=["POST"])
def api_capture():
    """
    Auto-capture from the local camera, then extract.

    Camera failures answer 422 with a "fallback" pointing at /api/scan.
    On success "session" carries the guide, last verdict and capture
    metadata of the closed session.
    """
    logger.info("API capture request received")
    progress = ProgressChannel()
    try:
        with scanner.create_session(
            CameraHandler(camera_index=CAMERA_INDEX),
            capture_config=CaptureConfig(timeout_seconds=CAPTURE_TIMEOUT)
        ) as session:
            result = scanner.scan_from_live_capture(session, progress)
    except Exception as e:
        payload, status = handle_error(e, "API capture failed")
        return jsonify(payload), status

    return jsonify({
        "success": True,
        "data": result.to_dict(),
        "session": session.to_dict(),
        "progress": progress.tokens()
    })


if __name__ == '__main__':
    logger.info("Flask server starting")
    app.run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
