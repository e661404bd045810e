"""
Activation Signals
==================

Per-zone scalar signals that decide whether a zone is covered.

Two interchangeable strategies; a detector uses exactly one:

- BrightnessStrategy: mean perceived luminance of the zone drops below a
  threshold (a hand close to the lens darkens the region). Stateless.
- MotionDiffStrategy: fraction of sampled pixels whose colour changed
  since the previous frame exceeds a percentage. Needs the previous frame.

A zone with no sampled pixels has no signal and is never active.
"""

import logging
from typing import Optional

import numpy as np

from ..core.types import DetectionStrategy, FrameBuffer, Zone

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights for R, G, B
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float32)


def sample_region(frame: FrameBuffer, zone: Zone, stride: int = 1) -> np.ndarray:
    """Return the zone's RGB pixels sampled every `stride` pixels in both axes.

    The rectangle is clipped to the frame, so a zone computed for another
    frame size degrades to fewer (possibly zero) samples instead of failing.
    """
    rect = zone.rect
    x0 = max(rect.x, 0)
    y0 = max(rect.y, 0)
    x1 = min(rect.right, frame.width)
    y1 = min(rect.bottom, frame.height)
    if x1 <= x0 or y1 <= y0:
        return frame.pixels[0:0, 0:0, :3]
    return frame.pixels[y0:y1:stride, x0:x1:stride, :3]


def mean_luminance(region: np.ndarray) -> Optional[float]:
    """Mean perceived luminance of an RGB region, or None if it is empty."""
    if region.size == 0:
        return None
    return float((region.astype(np.float32) @ LUMA_WEIGHTS).mean())


def motion_percentage(current: np.ndarray, previous: np.ndarray,
                      detection_threshold: float) -> Optional[float]:
    """Percentage of pixels whose mean absolute RGB difference exceeds the threshold.

    Returns:
        0-100, or None if the regions are empty or differ in shape
    """
    if current.size == 0 or current.shape != previous.shape:
        return None
    diff = np.abs(current.astype(np.int16) - previous.astype(np.int16))
    moved = diff.mean(axis=2) > detection_threshold
    return float(moved.mean() * 100.0)


class ActivationStrategy:
    """Base interface for activation signal strategies."""

    strategy = None  # type: DetectionStrategy
    requires_previous = False

    def __init__(self, stride: int = 1):
        self.stride = max(1, int(stride))

    def signal(self, zone: Zone, current: FrameBuffer,
               previous: Optional[FrameBuffer] = None) -> Optional[float]:
        """Scalar signal for a zone, or None when it cannot be computed."""
        raise NotImplementedError

    def threshold_passed(self, value: float) -> bool:
        raise NotImplementedError

    def is_active(self, zone: Zone, current: FrameBuffer,
                  previous: Optional[FrameBuffer] = None) -> bool:
        value = self.signal(zone, current, previous)
        if value is None:
            return False
        return self.threshold_passed(value)


class BrightnessStrategy(ActivationStrategy):
    """Zone is covered when its mean luminance falls below `threshold`."""

    strategy = DetectionStrategy.BRIGHTNESS
    requires_previous = False

    def __init__(self, threshold: float = 80, stride: int = 1):
        super().__init__(stride)
        self.threshold = threshold

    def signal(self, zone, current, previous=None):
        return mean_luminance(sample_region(current, zone, self.stride))

    def threshold_passed(self, value: float) -> bool:
        return value < self.threshold

    def __repr__(self):
        return f"BrightnessStrategy(threshold={self.threshold}, stride={self.stride})"


class MotionDiffStrategy(ActivationStrategy):
    """Zone is active when more than `motion_threshold_percent` of sampled pixels moved.

    A pixel moved when its mean absolute R/G/B difference from the previous
    frame exceeds `detection_threshold`.
    """

    strategy = DetectionStrategy.MOTION
    requires_previous = True

    def __init__(self, detection_threshold: float = 30,
                 motion_threshold_percent: float = 15, stride: int = 4):
        super().__init__(stride)
        self.detection_threshold = detection_threshold
        self.motion_threshold_percent = motion_threshold_percent

    def signal(self, zone, current, previous=None):
        if previous is None:
            return None
        return motion_percentage(
            sample_region(current, zone, self.stride),
            sample_region(previous, zone, self.stride),
            self.detection_threshold,
        )

    def threshold_passed(self, value: float) -> bool:
        return value > self.motion_threshold_percent

    def __repr__(self):
        return (f"MotionDiffStrategy(detection_threshold={self.detection_threshold}, "
                f"motion_threshold_percent={self.motion_threshold_percent}, "
                f"stride={self.stride})")


def create_strategy(config) -> ActivationStrategy:
    """Build the strategy selected by a ZoneDetectorConfig."""
    if config.strategy is DetectionStrategy.BRIGHTNESS:
        return BrightnessStrategy(
            threshold=config.brightness_threshold,
            stride=config.pixel_sample_stride,
        )
    return MotionDiffStrategy(
        detection_threshold=config.detection_threshold,
        motion_threshold_percent=config.motion_threshold_percent,
        stride=config.pixel_sample_stride,
    )
