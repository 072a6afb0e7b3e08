"""
Tests for the Flask application.
"""
import io
import json

import pytest

from conftest import FakeFrameSource, document_frame
from id_scanner import app as app_module
from id_scanner.error_handlers import (
    CaptureTimeoutError,
    ImageDecodeError,
    RecognitionEngineError,
    SessionClosedError,
    handle_error,
)
from id_scanner.scanner import DocumentScanner


@pytest.fixture
def client(monkeypatch, five_of_twelve_recognizer, today):
    """Flask test client with a scripted recognizer."""
    scanner = DocumentScanner(five_of_twelve_recognizer, today=today)
    monkeypatch.setattr(app_module, 'scanner', scanner)
    app_module.app.config['TESTING'] = True
    yield app_module.app.test_client()
    scanner.shutdown()


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_returns_ok(self, client):
        """Test /health returns healthy status."""
        response = client.get('/health')
        assert response.status_code == 200
        assert json.loads(response.data)['status'] == 'healthy'

    def test_status_lists_endpoints(self, client):
        """Test /api/status describes the service."""
        data = json.loads(client.get('/api/status').data)
        assert data['endpoints']['scan'] == '/api/scan'


class TestScanEndpoint:
    """Test upload scan endpoint."""

    def test_scan_requires_image(self, client):
        """Test /api/scan rejects requests without an image field."""
        response = client.post('/api/scan', data={}, content_type='multipart/form-data')
        assert response.status_code == 400
        assert json.loads(response.data)['error_code'] == 'NO_IMAGE'

    def test_scan_rejects_empty_filename(self, client):
        """Test /api/scan rejects an unnamed upload."""
        response = client.post(
            '/api/scan',
            data={'image': (io.BytesIO(b'abc'), '')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 400

    def test_scan_rejects_invalid_image(self, client):
        """Test undecodable uploads return INVALID_IMAGE."""
        response = client.post(
            '/api/scan',
            data={'image': (io.BytesIO(b'not an image'), 'id.jpg')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 400
        data = json.loads(response.data)
        assert data['success'] is False
        assert data['error_code'] == 'INVALID_IMAGE'

    def test_scan_success(self, client, document_jpeg):
        """Test a valid upload returns the extraction result."""
        response = client.post(
            '/api/scan',
            data={'image': (io.BytesIO(document_jpeg), 'id.jpg')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 200
        payload = json.loads(response.data)
        assert payload['success'] is True
        assert payload['data']['birth_date'] == '1990-02-15'
        assert payload['data']['document_type'] == 'id'
        assert payload['data']['sample_count'] == 5
        assert payload['progress'][-1] == 'consensus_reached'

    def test_scan_unexpected_error(self, client, monkeypatch, document_jpeg):
        """Test an unexpected failure answers 500 without leaking a traceback."""
        def explode(data, progress=None):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(app_module.scanner, 'scan_from_file', explode)
        response = client.post(
            '/api/scan',
            data={'image': (io.BytesIO(document_jpeg), 'id.jpg')},
            content_type='multipart/form-data'
        )
        assert response.status_code == 500
        data = json.loads(response.data)
        assert data['error_code'] == 'UNEXPECTED_ERROR'
        assert data['details']['error_type'] == 'RuntimeError'


class TestCaptureEndpoint:
    """Test live capture endpoint without a camera."""

    def test_camera_unavailable_points_to_upload(self, client, monkeypatch):
        """Test a missing camera answers 422 with the upload fallback."""
        source = FakeFrameSource(document_frame(), fail_open=True)
        monkeypatch.setattr(app_module, 'CameraHandler', lambda camera_index: source)

        response = client.post('/api/capture')

        assert response.status_code == 422
        data = json.loads(response.data)
        assert data['error_code'] == 'CAMERA_NOT_FOUND'
        assert data['fallback'] == '/api/scan'
        assert source.open_calls == 1

    def test_capture_returns_result_and_session(self, client, monkeypatch):
        """Test a live capture returns the extraction and the closed session summary."""
        source = FakeFrameSource(document_frame())
        monkeypatch.setattr(app_module, 'CameraHandler', lambda camera_index: source)

        response = client.post('/api/capture')

        assert response.status_code == 200
        payload = json.loads(response.data)
        assert payload['data']['birth_date'] == '1990-02-15'
        assert payload['session']['status'] == 'closed'
        assert payload['session']['last_capture']['metadata']['mode'] == 'auto'
        assert 'capture_triggered' in payload['progress']
        assert source.release_calls == 1


class TestHandleError:
    """Error response mapping."""

    def test_status_per_family(self):
        """Test each error family answers with its own status."""
        assert handle_error(ImageDecodeError())[1] == 400
        assert handle_error(CaptureTimeoutError(30))[1] == 422
        assert handle_error(RecognitionEngineError("boom"))[1] == 502
        assert handle_error(ValueError("x"))[1] == 500

    def test_only_camera_errors_carry_fallback(self):
        """Test the upload fallback is attached to camera failures only."""
        assert handle_error(SessionClosedError())[0]['fallback'] == '/api/scan'
        assert 'fallback' not in handle_error(ImageDecodeError())[0]
