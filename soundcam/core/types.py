"""
Shared domain types for the SoundCam zone controller.

Centralizes enums, data classes, and type definitions used across modules
to eliminate circular imports and ensure type consistency.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Dict, Optional, Tuple

import cv2
import numpy as np


# =============================================================================
# Zone / Action Identifiers
# =============================================================================

class ZoneId(IntEnum):
    """The four trigger zones, one per playback action.

    Values double as indices into fixed-size per-zone state arrays and
    define the evaluation order inside a tick.
    """
    PREVIOUS = 0
    NEXT = 1
    PLAY = 2
    PAUSE = 3

    @property
    def action(self) -> "PlaybackAction":
        return PlaybackAction(self.name.lower())

    @property
    def label(self) -> str:
        return self.name.capitalize()


class PlaybackAction(Enum):
    """Discrete playback commands understood by the music player."""
    PREVIOUS = "previous"
    NEXT = "next"
    PLAY = "play"
    PAUSE = "pause"

    @classmethod
    def from_string(cls, name: str) -> Optional["PlaybackAction"]:
        """Convert an action name to a PlaybackAction, or None if unknown."""
        try:
            return cls(name.lower())
        except ValueError:
            return None


class Corner(Enum):
    """Frame corners a zone can be anchored to."""
    TOP_LEFT = "top-left"
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"
    BOTTOM_RIGHT = "bottom-right"

    @property
    def is_right(self) -> bool:
        return self in (Corner.TOP_RIGHT, Corner.BOTTOM_RIGHT)

    @property
    def is_bottom(self) -> bool:
        return self in (Corner.BOTTOM_LEFT, Corner.BOTTOM_RIGHT)


DEFAULT_CORNERS: Dict[ZoneId, Corner] = {
    ZoneId.PREVIOUS: Corner.TOP_LEFT,
    ZoneId.NEXT: Corner.TOP_RIGHT,
    ZoneId.PLAY: Corner.BOTTOM_LEFT,
    ZoneId.PAUSE: Corner.BOTTOM_RIGHT,
}


class DetectionStrategy(Enum):
    """Activation signal used by a detector instance."""
    MOTION = "motion"
    BRIGHTNESS = "brightness"


class TriggerMode(Enum):
    """How a held zone re-fires.

    REPEAT fires once per cooldown interval for as long as the zone stays
    covered. RISING_EDGE fires once per cover and re-arms on release.
    """
    REPEAT = "repeat"
    RISING_EDGE = "edge"


# =============================================================================
# Geometry
# =============================================================================

@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in frame pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def overlaps(self, other: "Rect") -> bool:
        return (
            self.x < other.right and other.x < self.right
            and self.y < other.bottom and other.y < self.bottom
        )


@dataclass(frozen=True)
class Zone:
    """One fixed trigger region of the frame."""
    id: ZoneId
    rect: Rect
    corner: Corner

    @property
    def action(self) -> PlaybackAction:
        return self.id.action


# =============================================================================
# Frames and Events
# =============================================================================

class FrameBuffer:
    """One sampled frame: row-major RGBA ``uint8`` pixels plus dimensions.

    Uses __slots__ since one is allocated per captured frame.
    """

    __slots__ = ("pixels", "timestamp", "frame_number")

    def __init__(self, pixels: np.ndarray, timestamp: float = 0.0, frame_number: int = 0):
        if pixels.ndim != 3 or pixels.shape[2] < 3:
            raise ValueError(
                "Frame pixels must be HxWxC with at least 3 channels, got shape %s"
                % (pixels.shape,)
            )
        self.pixels = pixels
        self.timestamp = timestamp
        self.frame_number = frame_number

    @classmethod
    def from_bgr(cls, image: np.ndarray, timestamp: float = 0.0,
                 frame_number: int = 0) -> "FrameBuffer":
        """Wrap an OpenCV BGR capture as an RGBA buffer."""
        return cls(cv2.cvtColor(image, cv2.COLOR_BGR2RGBA), timestamp, frame_number)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def dimensions(self) -> Tuple[int, int]:
        return (self.width, self.height)

    def resized(self, width: int, height: int) -> "FrameBuffer":
        """Return this frame scaled to (width, height), or self if it already matches."""
        if (width, height) == self.dimensions:
            return self
        pixels = cv2.resize(self.pixels, (width, height), interpolation=cv2.INTER_AREA)
        return FrameBuffer(pixels, self.timestamp, self.frame_number)

    def __repr__(self):
        return f"FrameBuffer({self.width}x{self.height}, #{self.frame_number})"


class ActivationState:
    """Per-zone debounce bookkeeping, owned by the detector for its lifetime."""

    __slots__ = ("last_trigger_ms", "currently_active")

    def __init__(self):
        self.last_trigger_ms: Optional[float] = None  # None = never fired
        self.currently_active: bool = False

    def reset(self):
        self.last_trigger_ms = None
        self.currently_active = False

    def __repr__(self):
        return f"ActivationState(last={self.last_trigger_ms}, active={self.currently_active})"


@dataclass(frozen=True)
class ActionEvent:
    """An emitted trigger for one zone. Consumed once by the playback side."""
    zone: ZoneId
    timestamp_ms: float

    @property
    def action(self) -> PlaybackAction:
        return self.zone.action
