"""
Pytest configuration and fixtures for ID scanner tests.
"""
import io
import threading
from datetime import date

import cv2
import numpy as np
import pytest
from PIL import Image

from id_scanner.error_handlers import CameraNotFoundError, RecognitionEngineError
from id_scanner.layer3_recognition import RecognitionOutput

TODAY = date(2024, 6, 1)


class FakeRecognizer:
    """
    Scripted recognizer. ``script`` is consumed in call order, one entry
    per call; an exception instance is raised, anything else is returned.
    Calls past the end of the script return ``default``.
    """

    def __init__(self, script=None, default=None, delay=0.0):
        self.script = list(script or [])
        self.default = default if default is not None else RecognitionOutput.ok("NO TEXT HERE", 10.0)
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def recognize(self, image):
        with self._lock:
            index = self.calls
            self.calls += 1
        if self.delay:
            threading.Event().wait(self.delay)
        entry = self.script[index] if index < len(self.script) else self.default
        if isinstance(entry, Exception):
            raise entry
        return entry


class FakeFrameSource:
    """In-memory frame source standing in for CameraHandler."""

    def __init__(self, frame, fail_open=False):
        self.frame = frame
        self.fail_open = fail_open
        self.opened = False
        self.open_calls = 0
        self.release_calls = 0

    def open(self):
        self.open_calls += 1
        if self.fail_open:
            raise CameraNotFoundError(7)
        self.opened = True
        return True

    def get_frame(self):
        return self.frame.copy()

    def get_resolution(self):
        return (self.frame.shape[1], self.frame.shape[0])

    def is_opened(self):
        return self.opened

    def release(self):
        self.release_calls += 1
        self.opened = False


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


def draw_outline(shape, x, y, width, height):
    """Boolean mask with a 1px rectangle outline."""
    mask = np.zeros(shape, dtype=bool)
    mask[y, x:x + width] = True
    mask[y + height - 1, x:x + width] = True
    mask[y:y + height, x] = True
    mask[y:y + height, x + width - 1] = True
    return mask


def document_frame(width=400, height=600):
    """Dark background with a bright, centred portrait card."""
    frame = np.full((height, width, 3), 20, dtype=np.uint8)
    card_w, card_h = int(width * 0.8), int(height * 0.85)
    x0, y0 = (width - card_w) // 2, (height - card_h) // 2
    cv2.rectangle(frame, (x0, y0), (x0 + card_w, y0 + card_h), (235, 235, 235), thickness=-1)
    return frame


def landscape_document_frame(width=640, height=360):
    """Landscape camera view of a portrait ID-1 card at 90% of the height."""
    frame = np.full((height, width, 3), 20, dtype=np.uint8)
    card_h = int(height * 0.9)
    card_w = int(card_h / 1.41)
    x0, y0 = (width - card_w) // 2, (height - card_h) // 2
    cv2.rectangle(frame, (x0, y0), (x0 + card_w, y0 + card_h), (235, 235, 235), thickness=-1)
    return frame


def rotated_card_frame(angle, width=400, height=600, card=(300, 440)):
    """Portrait card rotated by ``angle`` degrees about the frame centre."""
    frame = np.full((height, width, 3), 20, dtype=np.uint8)
    corners = cv2.boxPoints(((width / 2.0, height / 2.0), card, angle))
    cv2.fillPoly(frame, [np.round(corners).astype(np.int32)], (235, 235, 235))
    return frame


def encode_jpeg(pixels_bgr, quality=90):
    ok, buffer = cv2.imencode('.jpg', pixels_bgr, [cv2.IMWRITE_JPEG_QUALITY, quality])
    assert ok
    return buffer.tobytes()


def encode_with_orientation(pixels_rgb, orientation):
    """JPEG bytes carrying an EXIF orientation tag."""
    exif = Image.Exif()
    exif[0x0112] = orientation
    buf = io.BytesIO()
    Image.fromarray(pixels_rgb).save(buf, format='JPEG', quality=95, exif=exif.tobytes())
    return buf.getvalue()


def birth_date_hits(count, text="NASCIMENTO 15/02/1990"):
    return [RecognitionOutput.ok(text, 50.0 + i) for i in range(count)]


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def document_jpeg():
    return encode_jpeg(document_frame())


@pytest.fixture
def five_of_twelve_recognizer():
    """Five good reads, then engine failures and dateless noise."""
    script = birth_date_hits(5)
    script += [RecognitionEngineError("tesseract crashed")] * 3
    script += [RecognitionOutput.ok("@@ ### ..", 12.0)] * 4
    return FakeRecognizer(script)


@pytest.fixture
def garbage_recognizer():
    return FakeRecognizer(default=RecognitionOutput.ok("LOREM IPSUM 12", 40.0))


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def camera():
    return FakeFrameSource(document_frame())
