"""Core domain types, errors, events, and tick scheduling."""
from .errors import ConfigurationError, SoundCamError
from .events import EventBus, Events
from .scheduler import FrameLoopScheduler, ManualScheduler, TickScheduler
from .types import (
    ActionEvent,
    ActivationState,
    Corner,
    DetectionStrategy,
    FrameBuffer,
    PlaybackAction,
    Rect,
    TriggerMode,
    Zone,
    ZoneId,
)

__all__ = [
    "ActionEvent",
    "ActivationState",
    "ConfigurationError",
    "Corner",
    "DetectionStrategy",
    "EventBus",
    "Events",
    "FrameBuffer",
    "FrameLoopScheduler",
    "ManualScheduler",
    "PlaybackAction",
    "Rect",
    "SoundCamError",
    "TickScheduler",
    "TriggerMode",
    "Zone",
    "ZoneId",
]
