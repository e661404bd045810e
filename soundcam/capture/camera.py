"""
Camera Capture Module
=====================

OpenCV camera capture exposed to the detector as a FrameSource.
Supports threaded capture for non-blocking operation.
"""

import cv2
import time
import threading
import logging
from dataclasses import dataclass
from typing import Optional, Tuple
from collections import deque

from ..core.types import FrameBuffer
from ..utils.logger import log_timing

logger = logging.getLogger(__name__)


class FrameSource:
    """What the zone detector reads frames from."""

    def get_latest_frame(self) -> Optional[FrameBuffer]:
        """Return the newest frame not yet handed out, or None if nothing new arrived."""
        raise NotImplementedError

    def dimensions(self) -> Tuple[int, int]:
        """Negotiated (width, height); (0, 0) until known."""
        raise NotImplementedError


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: int = 0
    width: int = 1280
    height: int = 720
    fps: int = 30
    buffer_size: int = 1  # Minimal buffering for low latency
    threaded: bool = True
    flip_horizontal: bool = True  # Mirror view, so "left" is the user's left
    warmup_frames: int = 5

    @classmethod
    def from_dict(cls, config: dict) -> "CameraConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            device_id=config.get("device_id", 0),
            width=config.get("width", 1280),
            height=config.get("height", 720),
            fps=config.get("fps", 30),
            buffer_size=config.get("buffer_size", 1),
            warmup_frames=config.get("warmup_frames", 5),
            flip_horizontal=config.get("flip_horizontal", True),
            threaded=config.get("threaded", True),
        )


class Camera(FrameSource):
    """
    Camera capture with optional background thread.

    In threaded mode the capture thread overwrites a single "latest frame"
    slot; readers always get the most recent frame and never a backlog.
    The application owns the camera. The detector only reads from it.

    Example:
        >>> with Camera(CameraConfig()) as camera:
        ...     frame = camera.get_latest_frame()
        ...     if frame:
        ...         process(frame.pixels)
    """

    def __init__(self, config: Optional[CameraConfig] = None):
        self.config = config or CameraConfig()
        self._cap: Optional[cv2.VideoCapture] = None
        self._frame_number = 0
        self._running = False
        self._dimensions: Tuple[int, int] = (0, 0)

        # Threading components
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._latest_frame: Optional[FrameBuffer] = None
        self._latest_bgr = None
        self._delivered_number = 0

        # Performance tracking
        self._capture_times = deque(maxlen=30)

    @log_timing
    def start(self) -> bool:
        """
        Open the device and start capture.

        Returns:
            True if camera started successfully
        """
        logger.info("Starting camera (device=%s, %dx%d@%dfps)",
                    self.config.device_id, self.config.width, self.config.height, self.config.fps)

        self._cap = cv2.VideoCapture(self.config.device_id)
        if not self._cap.isOpened():
            logger.error("Failed to open camera device %s", self.config.device_id)
            self._cap = None
            return False

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        self._cap.set(cv2.CAP_PROP_FPS, self.config.fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self.config.buffer_size)

        actual_width = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        actual_height = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info("Camera initialized: %dx%d@%.0ffps",
                    actual_width, actual_height, self._cap.get(cv2.CAP_PROP_FPS))

        # Warm up camera - let auto-exposure stabilize
        if self.config.warmup_frames > 0:
            logger.info("Warming up camera (%d frames)...", self.config.warmup_frames)
            for _ in range(self.config.warmup_frames):
                self._cap.read()

        self._running = True
        self._frame_number = 0
        self._delivered_number = 0

        if self.config.threaded:
            self._thread = threading.Thread(target=self._capture_loop, daemon=True)
            self._thread.start()
            logger.info("Started threaded capture")

        return True

    def stop(self) -> None:
        """Stop camera capture and release resources."""
        logger.info("Stopping camera...")
        self._running = False

        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

        if self._cap:
            self._cap.release()
            self._cap = None

        with self._lock:
            self._latest_frame = None
            self._latest_bgr = None
        logger.info("Camera stopped")

    def get_latest_frame(self) -> Optional[FrameBuffer]:
        """
        Return the newest frame if one arrived since the previous call.

        In threaded mode, reads the latest-frame slot.
        In synchronous mode, captures a new frame.
        """
        if not self._running:
            return None

        if not self.config.threaded:
            return self._capture_frame()

        with self._lock:
            frame = self._latest_frame
            if frame is None or frame.frame_number == self._delivered_number:
                return None
            self._delivered_number = frame.frame_number
            return frame

    def dimensions(self) -> Tuple[int, int]:
        with self._lock:
            return self._dimensions

    def latest_bgr(self):
        """Latest captured BGR image for display, or None."""
        with self._lock:
            return self._latest_bgr

    def _capture_frame(self) -> Optional[FrameBuffer]:
        """Capture a single frame from the camera."""
        if not self._cap:
            return None

        start_time = time.perf_counter()
        ret, image = self._cap.read()
        capture_time = time.perf_counter() - start_time

        if not ret or image is None:
            logger.warning("Failed to capture frame")
            return None

        if self.config.flip_horizontal:
            image = cv2.flip(image, 1)

        self._frame_number += 1
        self._capture_times.append(capture_time)

        frame = FrameBuffer.from_bgr(image, timestamp=time.monotonic(),
                                     frame_number=self._frame_number)
        with self._lock:
            if self._dimensions != frame.dimensions:
                if self._dimensions != (0, 0):
                    logger.warning("Camera resolution changed %s -> %s",
                                   self._dimensions, frame.dimensions)
                self._dimensions = frame.dimensions
            self._latest_bgr = image
        return frame

    def _capture_loop(self) -> None:
        """Background thread for continuous frame capture."""
        while self._running:
            frame = self._capture_frame()
            if frame:
                with self._lock:
                    self._latest_frame = frame
            else:
                time.sleep(0.001)

    @property
    def is_running(self) -> bool:
        """Check if camera is currently running."""
        return self._running

    @property
    def resolution(self) -> Tuple[int, int]:
        """Requested camera resolution."""
        return (self.config.width, self.config.height)

    @property
    def avg_capture_time_ms(self) -> float:
        """Get average frame capture time in milliseconds."""
        if not self._capture_times:
            return 0.0
        return (sum(self._capture_times) / len(self._capture_times)) * 1000

    def __enter__(self):
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.stop()
        return False
