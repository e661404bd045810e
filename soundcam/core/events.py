"""
Lightweight event bus for decoupled inter-module communication.

The detector and the music player publish here; presentation code
subscribes. Neither side holds a reference to the other.

Usage:
    bus = EventBus()
    bus.subscribe(Events.ZONE_TRIGGERED, overlay.on_zone_triggered)
    bus.emit(Events.ZONE_TRIGGERED, zone=ZoneId.NEXT, timestamp_ms=1200.0)
"""

import time
import logging
import threading
from collections import defaultdict
from typing import Callable

logger = logging.getLogger(__name__)


class EventBus:
    """Thread-safe publish/subscribe event bus.

    Dispatch is synchronous, in priority order. One bus per application,
    passed explicitly to the modules that need it.
    """

    def __init__(self, max_history: int = 100):
        self._listeners = defaultdict(list)  # event_name -> [(priority, callback)]
        self._lock = threading.Lock()
        self._event_history = []
        self._max_history = max_history

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0):
        """Register a listener for an event.

        Args:
            event_name: Event to listen for
            callback: Function to call. Receives **kwargs from emit().
            priority: Higher priority callbacks run first (default 0)
        """
        with self._lock:
            self._listeners[event_name].append((priority, callback))
            self._listeners[event_name].sort(key=lambda x: -x[0])
        logger.debug("Subscribed to '%s': %s (priority=%d)",
                     event_name, getattr(callback, "__name__", callback), priority)

    def unsubscribe(self, event_name: str, callback: Callable):
        """Remove a listener for an event."""
        with self._lock:
            self._listeners[event_name] = [
                (p, cb) for p, cb in self._listeners[event_name] if cb is not callback
            ]

    def emit(self, event_name: str, **kwargs):
        """Emit an event to all registered listeners.

        A failing listener is logged and skipped; the remaining listeners
        still run.
        """
        with self._lock:
            listeners = list(self._listeners.get(event_name, []))
            self._event_history.append({
                "event": event_name,
                "time": time.time(),
                "data_keys": list(kwargs.keys()),
            })
            if len(self._event_history) > self._max_history:
                self._event_history = self._event_history[-self._max_history:]

        for _priority, callback in listeners:
            try:
                callback(**kwargs)
            except Exception as e:
                logger.error("Event handler error [%s -> %s]: %s",
                             event_name, getattr(callback, "__name__", callback), e)

    def get_history(self, last_n: int = 10) -> list:
        """Get recent event history."""
        with self._lock:
            return self._event_history[-last_n:]


# =============================================================================
# Standard Event Names (constants to avoid typos)
# =============================================================================

class Events:
    """Standard event names used throughout the system."""

    # Detector events
    ZONE_TRIGGERED = "zone_triggered"
    ZONE_STATE_CHANGED = "zone_state_changed"
    LAYOUT_CHANGED = "layout_changed"
    DETECTOR_STARTED = "detector_started"
    DETECTOR_STOPPED = "detector_stopped"

    # Playback events
    TRACK_CHANGED = "track_changed"
    PLAYBACK_STATE_CHANGED = "playback_state_changed"

    # System events
    CAMERA_ERROR = "camera_error"
