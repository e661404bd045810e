"""Presentation layer: zone and playback overlay."""
from .overlay import OverlayConfig, ZoneOverlay

__all__ = ["OverlayConfig", "ZoneOverlay"]
