"""
Zone Overlay
============

Draws the trigger zones, their live state, and playback status on the
camera image. All state arrives through the event bus; the detector never
calls into this module.
"""

import time
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from ..core.events import EventBus, Events
from ..core.types import Zone, ZoneId

logger = logging.getLogger(__name__)

# Icons drawn inside each zone
_ZONE_ICONS = {
    ZoneId.PREVIOUS: "|<<",
    ZoneId.NEXT: ">>|",
    ZoneId.PLAY: ">",
    ZoneId.PAUSE: "||",
}


@dataclass
class OverlayConfig:
    """Overlay settings. Colors are BGR."""
    show_zones: bool = True
    show_status: bool = True
    show_fps: bool = True
    zone_color: Tuple[int, int, int] = (200, 120, 40)
    active_color: Tuple[int, int, int] = (0, 200, 255)
    text_color: Tuple[int, int, int] = (255, 255, 255)
    fill_alpha: float = 0.2
    active_alpha: float = 0.6
    flash_duration: float = 0.5  # seconds a triggered zone stays highlighted
    font_scale: float = 0.6
    window_name: str = "SoundCam"

    @classmethod
    def from_dict(cls, config: dict) -> "OverlayConfig":
        """Create config from dictionary."""
        colors = config.get("colors", {})
        defaults = cls()
        return cls(
            show_zones=config.get("show_zones", True),
            show_status=config.get("show_status", True),
            show_fps=config.get("show_fps", True),
            zone_color=tuple(colors.get("zone", defaults.zone_color)),
            active_color=tuple(colors.get("active", defaults.active_color)),
            text_color=tuple(colors.get("text", defaults.text_color)),
            fill_alpha=config.get("fill_alpha", defaults.fill_alpha),
            active_alpha=config.get("active_alpha", defaults.active_alpha),
            flash_duration=config.get("flash_duration", defaults.flash_duration),
            font_scale=config.get("font_scale", defaults.font_scale),
            window_name=config.get("window_name", defaults.window_name),
        )


class ZoneOverlay:
    """Event-driven renderer for zone and playback state."""

    def __init__(self, event_bus: EventBus, config: Optional[OverlayConfig] = None,
                 clock=time.monotonic):
        self.config = config or OverlayConfig()
        self._clock = clock
        self._font = cv2.FONT_HERSHEY_SIMPLEX
        self._zones: Tuple[Zone, ...] = ()
        self._frame_size = (0, 0)
        self._active: Dict[ZoneId, bool] = {z: False for z in ZoneId}
        self._flash_until: Dict[ZoneId, float] = {}
        self._last_action = ""

        event_bus.subscribe(Events.LAYOUT_CHANGED, self.on_layout_changed)
        event_bus.subscribe(Events.ZONE_STATE_CHANGED, self.on_zone_state_changed)
        event_bus.subscribe(Events.ZONE_TRIGGERED, self.on_zone_triggered)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def on_layout_changed(self, zones=(), width=0, height=0, **_):
        self._zones = tuple(zones)
        self._frame_size = (width, height)

    def on_zone_state_changed(self, zone=None, active=False, **_):
        if zone is not None:
            self._active[zone] = bool(active)

    def on_zone_triggered(self, event=None, **_):
        if event is None:
            return
        self._flash_until[event.zone] = self._clock() + self.config.flash_duration
        self._last_action = event.action.value.capitalize()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def is_flashing(self, zone_id: ZoneId) -> bool:
        return self._flash_until.get(zone_id, 0.0) > self._clock()

    def is_active(self, zone_id: ZoneId) -> bool:
        return self._active[zone_id]

    def render(self, image: np.ndarray, status_line: str = "",
               fps: Optional[float] = None, mode: str = "") -> np.ndarray:
        """
        Draw zones and status onto a BGR image in place.

        Args:
            image: BGR image at the detector's frame size
            status_line: Now-playing text
            fps: Loop rate to display
            mode: Application mode label

        Returns:
            The same image, for chaining
        """
        if self.config.show_zones:
            self._draw_zones(image)
        if self.config.show_status:
            self._draw_status(image, status_line, mode)
        if self.config.show_fps and fps is not None:
            cv2.putText(image, f"FPS: {fps:.1f}", (image.shape[1] - 130, image.shape[0] - 15),
                        self._font, 0.5, self.config.text_color, 1)
        return image

    def _draw_zones(self, image: np.ndarray):
        overlay = image.copy()
        for zone in self._zones:
            r = zone.rect
            if r.area == 0:
                continue
            highlighted = self._active[zone.id] or self.is_flashing(zone.id)
            color = self.config.active_color if highlighted else self.config.zone_color
            alpha = self.config.active_alpha if highlighted else self.config.fill_alpha
            fill = overlay.copy()
            cv2.rectangle(fill, (r.x, r.y), (r.right, r.bottom), color, -1)
            cv2.addWeighted(fill, alpha, overlay, 1 - alpha, 0, overlay)
            cv2.rectangle(overlay, (r.x, r.y), (r.right, r.bottom), color, 2)

            cx, cy = r.x + r.width // 2, r.y + r.height // 2
            cv2.putText(overlay, _ZONE_ICONS[zone.id], (cx - 20, cy),
                        self._font, 1.0, self.config.text_color, 2)
            cv2.putText(overlay, zone.id.label, (cx - 30, cy + 30),
                        self._font, self.config.font_scale, self.config.text_color, 1)
        image[:] = overlay

    def _draw_status(self, image: np.ndarray, status_line: str, mode: str):
        h = image.shape[0]
        cv2.rectangle(image, (0, h - 60), (image.shape[1], h), (30, 30, 30), -1)
        if status_line:
            cv2.putText(image, status_line, (15, h - 35),
                        self._font, self.config.font_scale, self.config.text_color, 1)
        zones_text = "  ".join(
            f"{z.label}: {'Active' if self._active[z] else 'Inactive'}" for z in ZoneId
        )
        if self._last_action:
            zones_text += f"   Last: {self._last_action}"
        if mode:
            zones_text += f"   Mode: {mode.upper()}"
        cv2.putText(image, zones_text, (15, h - 12), self._font, 0.45, self.config.text_color, 1)
