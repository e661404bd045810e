"""
SoundCam
========

Hand-over-the-corner playback control from a live camera feed.

Covering one of four corner zones of the camera image triggers
previous / next / play / pause on a music playlist.

Modules:
    - core: Shared types, errors, event bus, tick scheduling
    - detection: Zone layout, activation signals, zone detector
    - control: Per-zone debouncing and the music player
    - capture: Camera frame acquisition
    - visualization: Zone and playback overlay
    - utils: Configuration, logging, performance monitoring
"""

__version__ = "1.0.0"
