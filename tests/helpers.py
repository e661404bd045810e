"""
Test doubles: in-memory frame source, frame builders and a manual clock.
"""

from collections import deque

import numpy as np

from soundcam.capture.camera import FrameSource
from soundcam.core.types import FrameBuffer


def solid_pixels(width: int, height: int, value: int = 255) -> np.ndarray:
    """RGBA pixel array filled with one grey level (alpha 255)."""
    pixels = np.full((height, width, 4), value, dtype=np.uint8)
    pixels[:, :, 3] = 255
    return pixels


def make_frame(pixels: np.ndarray, frame_number: int = 0) -> FrameBuffer:
    return FrameBuffer(pixels, timestamp=0.0, frame_number=frame_number)


class FakeFrameSource(FrameSource):
    """Frame source fed by tests.

    Queued frames are handed out once each. When the queue is empty the
    held frame (if any) is returned on every call, simulating a camera
    that keeps producing the same picture.
    """

    def __init__(self, width: int = 100, height: int = 100):
        self.size = (width, height)
        self._queue = deque()
        self.held = None
        self.calls = 0

    def push(self, pixels: np.ndarray) -> None:
        self._queue.append(make_frame(pixels, frame_number=len(self._queue) + 1))

    def hold(self, pixels: np.ndarray) -> None:
        self.held = make_frame(pixels)

    def get_latest_frame(self):
        self.calls += 1
        if self._queue:
            return self._queue.popleft()
        return self.held

    def dimensions(self):
        return self.size


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
