"""
Layer 1 — Camera Handler
Live video source for the capture session. Any object with ``open``,
``get_frame``, ``get_resolution`` and ``release`` can stand in for the
OpenCV-backed handler (tests use an in-memory source).
"""
import logging
import os
import sys
from typing import Optional, Protocol, Tuple

import cv2
import numpy as np

from ..error_handlers import (
    CameraInitError,
    CameraNotFoundError,
    CameraNotInitializedError,
    FrameCaptureError,
)

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def open(self) -> bool:
        ...

    def get_frame(self) -> np.ndarray:
        ...

    def get_resolution(self) -> Tuple[int, int]:
        ...

    def is_opened(self) -> bool:
        ...

    def release(self) -> None:
        ...


class CameraHandler:
    """
    OpenCV camera handler.
    Low buffer size so each analysis tick sees a fresh frame.
    """

    DEFAULT_CONFIG = {
        'width': 1920,
        'height': 1080,
        'fps': 30,
        'codec': 'MJPG',
        'buffer_size': 1,
    }

    def __init__(self, camera_index: int = 0, config: Optional[dict] = None):
        """
        Args:
            camera_index: OpenCV device index (e.g. 2 for /dev/video2)
            config: Optional configuration override
        """
        self.camera_index = camera_index
        self.config = {**self.DEFAULT_CONFIG, **(config or {})}
        self.camera: Optional[cv2.VideoCapture] = None
        self._is_initialized = False

        self.actual_width = 0
        self.actual_height = 0

        logger.info(f"CameraHandler created for device index {camera_index}")

    def _check_device_exists(self) -> bool:
        # Device nodes only exist on Linux; elsewhere let OpenCV decide
        if not sys.platform.startswith('linux'):
            return True
        device_path = f"/dev/video{self.camera_index}"
        exists = os.path.exists(device_path)
        if not exists:
            logger.error(f"Camera device not found: {device_path}")
        return exists

    def open(self) -> bool:
        """
        Open and configure the camera.

        Raises:
            CameraNotFoundError: If the device doesn't exist
            CameraInitError: If the device can't be opened (busy, permission denied)
        """
        if self._is_initialized and self.camera is not None:
            logger.debug("Camera already initialized")
            return True

        if not self._check_device_exists():
            raise CameraNotFoundError(self.camera_index)

        logger.info(f"Initializing camera at index {self.camera_index}")
        self.camera = cv2.VideoCapture(self.camera_index)

        if not self.camera.isOpened():
            self.camera.release()
            self.camera = None
            raise CameraInitError(self.camera_index, reason="Failed to open camera device")

        cfg = self.config
        self.camera.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*cfg['codec']))
        self.camera.set(cv2.CAP_PROP_FRAME_WIDTH, cfg['width'])
        self.camera.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg['height'])
        self.camera.set(cv2.CAP_PROP_FPS, cfg['fps'])
        self.camera.set(cv2.CAP_PROP_BUFFERSIZE, cfg['buffer_size'])

        self.actual_width = int(self.camera.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.actual_height = int(self.camera.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._is_initialized = True

        logger.info(f"Camera initialized: {self.actual_width}x{self.actual_height}")
        return True

    def get_frame(self) -> np.ndarray:
        """
        Read a single BGR frame.

        Raises:
            CameraNotInitializedError: If camera not opened
            FrameCaptureError: If the read fails
        """
        # release() may run on another thread; read the handle once
        camera = self.camera
        if not self._is_initialized or camera is None:
            raise CameraNotInitializedError()

        ret, frame = camera.read()
        if not ret or frame is None:
            raise FrameCaptureError()
        return frame

    def get_resolution(self) -> Tuple[int, int]:
        return (self.actual_width, self.actual_height)

    def is_opened(self) -> bool:
        return self._is_initialized and self.camera is not None and self.camera.isOpened()

    def release(self):
        """Release camera resources."""
        if self.camera is not None:
            self.camera.release()
            self.camera = None
        self._is_initialized = False
        logger.info("Camera released")

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
