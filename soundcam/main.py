#!/usr/bin/env python3
"""
SoundCam - Main Application
===========================

Entry point for corner-zone playback control.
Wires camera -> zone detector -> music player, with the overlay fed
through the event bus.

Usage:
    soundcam                          # Motion detection, control mode
    soundcam --strategy brightness    # Cover-to-darken detection
    soundcam --mode demo              # Show detections, don't touch playback
    soundcam --config my_config.yaml
"""

import sys
import signal
import argparse
import logging

import cv2

from .capture.camera import Camera, CameraConfig
from .control.music_player import MusicPlayer, PlaylistConfig
from .core.errors import ConfigurationError
from .core.events import EventBus, Events
from .core.scheduler import FrameLoopScheduler
from .core.types import ActionEvent
from .detection.zone_detector import ZoneDetector, ZoneDetectorConfig
from .utils.config import Config
from .utils.logger import ZoneEventLogger, setup_logging
from .utils.performance import PerformanceMonitor
from .visualization.overlay import OverlayConfig, ZoneOverlay

logger = logging.getLogger(__name__)

MODES = ("control", "demo")


class SoundCamApplication:
    """
    Main application for SoundCam.

    Coordinates all components:
    - Camera capture
    - Zone detection (driven by a frame-loop scheduler)
    - Music playback
    - Overlay rendering and keyboard handling

    Modes:
    - control: Zone triggers drive the music player
    - demo: Zone triggers are shown but playback is left alone
    """

    def __init__(self, config: Config, mode: str = "control"):
        self._config = config
        self._mode = mode
        self._running = False

        self._bus = EventBus()

        self._camera = Camera(CameraConfig.from_dict(config.camera))
        self._scheduler = FrameLoopScheduler(
            target_fps=config.get("performance.target_fps", 30)
        )
        self._detector = ZoneDetector(
            self._camera,
            self._scheduler,
            ZoneDetectorConfig.from_dict(config.detection),
            event_bus=self._bus,
        )
        self._player = MusicPlayer(
            PlaylistConfig.from_dict(config.playlist, base_dir=config.base_dir),
            event_bus=self._bus,
        )
        self._overlay_config = OverlayConfig.from_dict(config.visualization)
        self._overlay = ZoneOverlay(self._bus, self._overlay_config)
        self._show_window = config.get("visualization.enabled", True)

        self._perf = PerformanceMonitor(
            window_size=config.get("performance.metrics_window", 100),
            target_fps=config.get("performance.target_fps", 30),
        )
        self._event_logger = ZoneEventLogger()

        self._bus.subscribe(Events.ZONE_TRIGGERED, self._event_logger.log_trigger)
        self._detector.add_callback(self._on_action)

        logger.info("SoundCamApplication initialized (mode=%s, %d tracks)",
                    mode, len(self._player.playlist))

    def _on_action(self, event: ActionEvent) -> None:
        if self._mode == "control":
            self._player.notify(event)

    def run(self) -> bool:
        """Open the camera and run until quit. Returns False if the camera failed."""
        if not self._camera.start():
            logger.error("Failed to open camera. Check connection and permissions.")
            self._bus.emit(Events.CAMERA_ERROR, device_id=self._camera.config.device_id)
            self._player.close()
            return False

        signal.signal(signal.SIGINT, self.handle_signal)
        signal.signal(signal.SIGTERM, self.handle_signal)

        self._running = True
        self._detector.start()
        try:
            self._scheduler.run(should_continue=lambda: self._running,
                                on_frame=self._on_frame)
        finally:
            self._shutdown()
        return True

    def _on_frame(self) -> None:
        """Per-round work after the detector tick: playback polling, rendering, keys."""
        self._perf.tick()
        with self._perf.measure("playback"):
            self._player.update()

        if self._show_window:
            image = self._camera.latest_bgr()
            if image is not None:
                with self._perf.measure("render"):
                    display = self._overlay.render(
                        image.copy(),
                        status_line=self._player.status_line,
                        fps=self._perf.fps,
                        mode=self._mode,
                    )
                    cv2.imshow(self._overlay_config.window_name, display)

        self._handle_key(cv2.waitKey(1) & 0xFF)

    def _handle_key(self, key: int) -> None:
        if key in (ord("q"), 27):
            self._running = False
        elif key == ord("m"):
            self._mode = "demo" if self._mode == "control" else "control"
            logger.info("Mode switched to: %s", self._mode)
        elif key == ord("p"):
            self._perf.print_report(self._detector, self._camera)
            logger.info("Triggers this session: %s", self._event_logger.counts or "none")

    def _shutdown(self) -> None:
        """Clean shutdown of all modules."""
        logger.info("Shutting down...")
        self._running = False
        self._detector.stop()
        self._camera.stop()
        self._player.close()
        if self._show_window:
            cv2.destroyAllWindows()
        self._perf.print_report(self._detector, self._camera)
        logger.info("Shutdown complete (%d zone triggers).", self._event_logger.total_triggers)

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, shutting down...", signum)
        self._running = False

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def detector(self) -> ZoneDetector:
        return self._detector

    @property
    def player(self) -> MusicPlayer:
        return self._player


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="SoundCam - control music by covering the corners of your camera view",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Zones (mirrored view):
  top-left      - Previous track
  top-right     - Next track
  bottom-left   - Play
  bottom-right  - Pause

Keyboard Controls:
  q/ESC     - Quit
  m         - Toggle control/demo mode
  p         - Print performance report
        """,
    )
    parser.add_argument("--config", "-c", default=None, help="Path to config.yaml")
    parser.add_argument("--mode", "-m", choices=MODES, default="control",
                        help="Operating mode")
    parser.add_argument("--camera", type=int, default=None, help="Camera device ID")
    parser.add_argument("--strategy", choices=["motion", "brightness"], default=None,
                        help="Zone activation signal")
    parser.add_argument("--trigger-mode", choices=["repeat", "edge"], default=None,
                        help="Fire repeatedly while held, or once per cover")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def build_overrides(args) -> dict:
    """Translate CLI flags into a config overlay."""
    overrides = {}
    if args.camera is not None:
        overrides.setdefault("camera", {})["device_id"] = args.camera
    if args.strategy is not None:
        overrides.setdefault("detection", {})["strategy"] = args.strategy
    if args.trigger_mode is not None:
        overrides.setdefault("detection", {})["trigger_mode"] = args.trigger_mode
    return overrides


def main(argv=None) -> int:
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)
    config.update(build_overrides(args))

    log_cfg = config.logging
    setup_logging(
        level="DEBUG" if args.debug else log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("=" * 50)
    logger.info("  SOUNDCAM")
    logger.info("  Mode: %s", args.mode)
    logger.info("=" * 50)

    try:
        app = SoundCamApplication(config, mode=args.mode)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    return 0 if app.run() else 1


if __name__ == "__main__":
    sys.exit(main())
