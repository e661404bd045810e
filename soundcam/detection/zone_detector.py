"""
Zone Detector
=============

The detection engine: samples the latest camera frame once per tick,
evaluates the four corner zones, debounces, and emits ActionEvents.

Per tick:
    1. Fetch the latest frame; skip the tick if none is ready.
    2. Recompute the zone layout if the frame dimensions changed.
    3. Evaluate each zone in ZoneId order with the active strategy.
    4. Debounce per zone and emit at most one event per zone.
    5. Keep the frame as "previous" (motion strategy only).
    6. Re-arm on the scheduler.

All state is touched only inside a tick, and a tick runs to completion
before the next one is scheduled, so no locking is needed here.
"""

import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..control.debouncer import ZoneDebouncer
from ..core.errors import ConfigurationError
from ..core.events import EventBus, Events
from ..core.scheduler import TickScheduler
from ..core.types import (
    DEFAULT_CORNERS,
    ActionEvent,
    ActivationState,
    Corner,
    DetectionStrategy,
    FrameBuffer,
    TriggerMode,
    Zone,
    ZoneId,
)
from .activation import ActivationStrategy, create_strategy
from .zone_layout import ZoneLayoutConfig, compute_zones, parse_corners

logger = logging.getLogger(__name__)

ActionCallback = Callable[[ActionEvent], None]

# Geometry and sampling defaults differ per strategy: brightness zones sit
# flush in the corners and read every pixel, motion zones are larger and
# sampled on a stride.
_STRATEGY_DEFAULTS = {
    DetectionStrategy.MOTION: {
        "zone_width_fraction": 0.25,
        "zone_height_fraction": 0.35,
        "margin_fraction": 0.05,
        "pixel_sample_stride": 4,
    },
    DetectionStrategy.BRIGHTNESS: {
        "zone_width_fraction": 0.2,
        "zone_height_fraction": 0.2,
        "margin_fraction": 0.0,
        "pixel_sample_stride": 1,
    },
}


def _parse_enum(enum_cls, value, name):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(f"{name} must be one of {choices}, got {value!r}") from None


def _check_range(name: str, value, low: float, high: Optional[float] = None):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if value < low or (high is not None and value > high):
        bounds = f"[{low}, {high}]" if high is not None else f">= {low}"
        raise ConfigurationError(f"{name} must be {bounds}, got {value!r}")


@dataclass
class ZoneDetectorConfig:
    """Detector configuration. Unset geometry fields take strategy defaults."""
    strategy: DetectionStrategy = DetectionStrategy.MOTION
    detection_threshold: float = 30         # per-pixel mean RGB diff, 0-255
    motion_threshold_percent: float = 15    # % of sampled pixels that moved
    brightness_threshold: float = 80        # mean luminance, 0-255
    cooldown_ms: float = 1000
    zone_width_fraction: Optional[float] = None
    zone_height_fraction: Optional[float] = None
    margin_fraction: Optional[float] = None
    pixel_sample_stride: Optional[int] = None
    trigger_mode: TriggerMode = TriggerMode.REPEAT
    corners: Dict[ZoneId, Corner] = field(default_factory=lambda: dict(DEFAULT_CORNERS))

    def __post_init__(self):
        self.strategy = _parse_enum(DetectionStrategy, self.strategy, "strategy")
        self.trigger_mode = _parse_enum(TriggerMode, self.trigger_mode, "trigger_mode")
        for name, default in _STRATEGY_DEFAULTS[self.strategy].items():
            if getattr(self, name) is None:
                setattr(self, name, default)

    @classmethod
    def from_dict(cls, config: dict) -> "ZoneDetectorConfig":
        """Create config from the `detection` section of the YAML config."""
        return cls(
            strategy=config.get("strategy", DetectionStrategy.MOTION),
            detection_threshold=config.get("detection_threshold", 30),
            motion_threshold_percent=config.get("motion_threshold_percent", 15),
            brightness_threshold=config.get("brightness_threshold", 80),
            cooldown_ms=config.get("cooldown_ms", 1000),
            zone_width_fraction=config.get("zone_width_fraction"),
            zone_height_fraction=config.get("zone_height_fraction"),
            margin_fraction=config.get("margin_fraction"),
            pixel_sample_stride=config.get("pixel_sample_stride"),
            trigger_mode=config.get("trigger_mode", TriggerMode.REPEAT),
            corners=parse_corners(config.get("corners")),
        )

    @property
    def layout(self) -> ZoneLayoutConfig:
        return ZoneLayoutConfig(
            zone_width_fraction=self.zone_width_fraction,
            zone_height_fraction=self.zone_height_fraction,
            margin_fraction=self.margin_fraction,
            corners=dict(self.corners),
        )

    def validate(self) -> None:
        """Raise ConfigurationError if any value is outside its documented range."""
        _check_range("detection_threshold", self.detection_threshold, 0, 255)
        _check_range("motion_threshold_percent", self.motion_threshold_percent, 0, 100)
        _check_range("brightness_threshold", self.brightness_threshold, 0, 255)
        _check_range("cooldown_ms", self.cooldown_ms, 0)
        for name in ("zone_width_fraction", "zone_height_fraction", "margin_fraction"):
            _check_range(name, getattr(self, name), 0)
        if isinstance(self.pixel_sample_stride, bool) or not isinstance(self.pixel_sample_stride, int):
            raise ConfigurationError(
                f"pixel_sample_stride must be an integer, got {self.pixel_sample_stride!r}"
            )
        _check_range("pixel_sample_stride", self.pixel_sample_stride, 1)
        self.layout.validate()


class ZoneDetector:
    """
    Corner-zone gesture detector driven by an injected tick scheduler.

    Example:
        >>> scheduler = ManualScheduler()
        >>> detector = ZoneDetector(camera, scheduler, ZoneDetectorConfig())
        >>> detector.add_callback(player.notify)
        >>> detector.start()
        >>> scheduler.run_pending()   # one tick
        >>> detector.stop()
    """

    def __init__(
        self,
        frame_source,
        scheduler: TickScheduler,
        config: Optional[ZoneDetectorConfig] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = frame_source
        self._scheduler = scheduler
        self._bus = event_bus
        self._clock = clock
        self._callbacks: List[ActionCallback] = []

        self._running = False
        self._handle: Optional[int] = None
        self._tick_count = 0
        self._skipped_ticks = 0
        self._event_count = 0

        self._apply_config(config or ZoneDetectorConfig())

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def _apply_config(self, config: ZoneDetectorConfig):
        config.validate()
        self.config = config
        self._strategy: ActivationStrategy = create_strategy(config)
        self._layout_config = config.layout
        self._debouncer = ZoneDebouncer(config.cooldown_ms, config.trigger_mode)
        self._zones: Tuple[Zone, ...] = ()
        self._dimensions = (0, 0)
        self._previous: Optional[FrameBuffer] = None
        logger.info("Zone detector configured: %r, cooldown=%sms, trigger=%s",
                    self._strategy, config.cooldown_ms, config.trigger_mode.value)

    def reconfigure(self, config: ZoneDetectorConfig):
        """Swap in a new configuration.

        The new config is validated before anything changes, so a rejected
        config leaves the running detector untouched. Zone state, cooldowns
        and the layout start fresh.

        Raises:
            ConfigurationError: if the config is invalid
        """
        config.validate()
        self._clear_visual_state()
        self._apply_config(config)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def add_callback(self, callback: ActionCallback) -> None:
        """Register a consumer notified with each emitted ActionEvent."""
        self._callbacks.append(callback)

    def remove_callback(self, callback: ActionCallback) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin ticking on the scheduler. No-op if already running."""
        if self._running:
            return
        self._running = True
        self._handle = self._scheduler.schedule(self._on_tick)
        logger.info("Zone detector started")
        self._emit(Events.DETECTOR_STARTED)

    def stop(self) -> None:
        """Stop ticking. Safe to call repeatedly or before start().

        Cancels the pending tick synchronously and releases the retained
        previous frame.
        """
        was_running = self._running
        self._running = False
        self._scheduler.cancel(self._handle)
        self._handle = None
        self._previous = None
        self._clear_visual_state()
        if was_running:
            logger.info("Zone detector stopped after %d ticks (%d skipped, %d events)",
                        self._tick_count, self._skipped_ticks, self._event_count)
            self._emit(Events.DETECTOR_STOPPED)

    def _on_tick(self) -> None:
        self._handle = None
        if not self._running:
            return
        self.tick()
        # A callback may have stopped or restarted the detector during the tick
        if self._running and self._handle is None:
            self._handle = self._scheduler.schedule(self._on_tick)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def tick(self, now_ms: Optional[float] = None) -> List[ActionEvent]:
        """Run one detection cycle.

        Args:
            now_ms: Monotonic timestamp in ms; read from the clock if omitted

        Returns:
            ActionEvents emitted this tick (empty when stopped or no frame)
        """
        if not self._running:
            return []

        frame = self._source.get_latest_frame()
        if frame is None:
            self._skipped_ticks += 1
            return []

        width, height = self._source.dimensions()
        if width <= 0 or height <= 0 or frame.width <= 0 or frame.height <= 0:
            self._skipped_ticks += 1
            logger.debug("Skipping tick: frame source reports %dx%d", width, height)
            return []

        if (width, height) != self._dimensions:
            self._update_layout(width, height)

        frame = frame.resized(width, height)
        if now_ms is None:
            now_ms = self._clock() * 1000.0
        self._tick_count += 1

        previous = self._previous if self._strategy.requires_previous else None
        events = []
        for zone in self._zones:
            is_active = self._strategy.is_active(zone, frame, previous)
            was_active = self._debouncer.state(zone.id).currently_active
            should_fire = self._debouncer.update(zone.id, is_active, now_ms)

            if is_active != was_active:
                self._emit(Events.ZONE_STATE_CHANGED, zone=zone.id, active=is_active)
            if should_fire:
                event = ActionEvent(zone=zone.id, timestamp_ms=now_ms)
                events.append(event)
                self._dispatch(event)
                if not self._running:
                    # Stopped from a callback: drop the rest of the tick
                    return events

        if self._strategy.requires_previous:
            self._previous = frame
        return events

    def _update_layout(self, width: int, height: int):
        self._dimensions = (width, height)
        self._zones = compute_zones(width, height, self._layout_config)
        # A frame of the old size cannot be diffed against the new one
        self._previous = None

        degenerate = [z.id.name for z in self._zones if z.rect.area == 0]
        if degenerate:
            logger.warning("Zones with zero area will never activate: %s", ", ".join(degenerate))
        logger.info("Zone layout computed for %dx%d", width, height)
        self._emit(Events.LAYOUT_CHANGED, zones=self._zones, width=width, height=height)

    def _dispatch(self, event: ActionEvent):
        self._event_count += 1
        logger.info("Zone triggered: %s -> %s", event.zone.name, event.action.value)
        for callback in list(self._callbacks):
            try:
                callback(event)
            except Exception as e:
                logger.error("Error in action callback %s: %s",
                             getattr(callback, "__name__", callback), e)
        self._emit(Events.ZONE_TRIGGERED, event=event)

    def _clear_visual_state(self):
        for zone_id in self._debouncer.active_zones:
            self._emit(Events.ZONE_STATE_CHANGED, zone=zone_id, active=False)
        self._debouncer.clear_active()

    def _emit(self, event_name: str, **kwargs):
        if self._bus is not None:
            self._bus.emit(event_name, **kwargs)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def zone_state(self, zone_id: ZoneId) -> ActivationState:
        return self._debouncer.state(zone_id)

    @property
    def zones(self) -> Tuple[Zone, ...]:
        return self._zones

    @property
    def strategy(self) -> ActivationStrategy:
        return self._strategy

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def has_previous_frame(self) -> bool:
        return self._previous is not None

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    @property
    def event_count(self) -> int:
        return self._event_count
