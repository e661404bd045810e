"""
Tests for Zone Detector
=======================
"""

import pytest

from soundcam.core.errors import ConfigurationError
from soundcam.core.events import Events
from soundcam.core.types import (
    ActionEvent,
    DetectionStrategy,
    PlaybackAction,
    TriggerMode,
    ZoneId,
)
from soundcam.detection.zone_detector import ZoneDetector, ZoneDetectorConfig

from .helpers import solid_pixels

# Brightness zones on a 100x100 frame: 20x20, flush in each corner
CORNER_SLICES = {
    ZoneId.PREVIOUS: (slice(0, 20), slice(0, 20)),
    ZoneId.NEXT: (slice(0, 20), slice(80, 100)),
    ZoneId.PLAY: (slice(80, 100), slice(0, 20)),
    ZoneId.PAUSE: (slice(80, 100), slice(80, 100)),
}


def covered(*zone_ids, width=100, height=100):
    """Bright frame with the given corner zones darkened."""
    pixels = solid_pixels(width, height, 255)
    for zone_id in zone_ids:
        rows, cols = CORNER_SLICES[zone_id]
        pixels[rows, cols, :3] = 0
    return pixels


class Recorder:
    """Collects bus payloads for one event name."""

    def __init__(self, bus, event_name):
        self.calls = []
        bus.subscribe(event_name, self)

    def __call__(self, **kwargs):
        self.calls.append(kwargs)


@pytest.fixture
def detector(source, scheduler, bus, clock):
    return ZoneDetector(source, scheduler, ZoneDetectorConfig(strategy="brightness"),
                        event_bus=bus, clock=clock)


@pytest.fixture
def motion_detector(source, scheduler, bus, clock):
    return ZoneDetector(source, scheduler, ZoneDetectorConfig(strategy="motion"),
                        event_bus=bus, clock=clock)


class TestDetectorConfig:
    """Configuration defaults and validation."""

    def test_motion_defaults(self):
        config = ZoneDetectorConfig()

        assert config.strategy is DetectionStrategy.MOTION
        assert config.cooldown_ms == 1000
        assert config.detection_threshold == 30
        assert config.motion_threshold_percent == 15
        assert (config.zone_width_fraction, config.zone_height_fraction) == (0.25, 0.35)
        assert config.margin_fraction == 0.05
        assert config.pixel_sample_stride == 4
        assert config.trigger_mode is TriggerMode.REPEAT

    def test_brightness_defaults(self):
        config = ZoneDetectorConfig(strategy="brightness")

        assert config.strategy is DetectionStrategy.BRIGHTNESS
        assert config.brightness_threshold == 80
        assert (config.zone_width_fraction, config.zone_height_fraction) == (0.2, 0.2)
        assert config.margin_fraction == 0.0
        assert config.pixel_sample_stride == 1

    def test_explicit_geometry_kept(self):
        config = ZoneDetectorConfig.from_dict({"strategy": "brightness", "zone_width_fraction": 0.3})

        assert config.zone_width_fraction == 0.3
        assert config.zone_height_fraction == 0.2

    def test_from_dict_trigger_mode_and_corners(self):
        config = ZoneDetectorConfig.from_dict({
            "trigger_mode": "edge",
            "corners": {"play": "bottom-right", "pause": "bottom-left"},
        })

        assert config.trigger_mode is TriggerMode.RISING_EDGE
        assert config.layout.corners[ZoneId.PLAY].value == "bottom-right"

    @pytest.mark.parametrize("raw", [
        {"cooldown_ms": -1},
        {"detection_threshold": 300},
        {"detection_threshold": -5},
        {"motion_threshold_percent": 101},
        {"brightness_threshold": "dark"},
        {"pixel_sample_stride": 0},
        {"pixel_sample_stride": 1.5},
        {"zone_width_fraction": 0.5},
        {"zone_height_fraction": 0.4, "margin_fraction": 0.2},
        {"strategy": "sonar"},
        {"trigger_mode": "sometimes"},
        {"corners": {"next": "top-left"}},
    ])
    def test_invalid_config_rejected(self, raw, source, scheduler):
        with pytest.raises(ConfigurationError):
            ZoneDetector(source, scheduler, ZoneDetectorConfig.from_dict(raw))

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            ZoneDetectorConfig(cooldown_ms=-10).validate()


class TestLifecycle:
    """start/stop and scheduler interaction."""

    def test_start_schedules_one_tick(self, detector, scheduler):
        detector.start()

        assert detector.is_running
        assert scheduler.pending_count == 1

    def test_start_twice_is_noop(self, detector, scheduler):
        detector.start()
        detector.start()

        assert scheduler.pending_count == 1

    def test_tick_rearms(self, detector, scheduler):
        detector.start()
        for _ in range(5):
            assert scheduler.run_pending() == 1

        assert scheduler.pending_count == 1
        assert detector.skipped_ticks == 5  # no frames yet

    def test_stop_cancels_pending_tick(self, detector, scheduler, source):
        source.hold(covered(ZoneId.PLAY))
        received = []
        detector.add_callback(received.append)
        detector.start()

        detector.stop()

        assert scheduler.pending_count == 0
        assert scheduler.run_pending() == 0
        assert received == []
        assert not detector.is_running

    def test_tick_after_stop_returns_nothing(self, detector, source):
        source.hold(covered(ZoneId.PLAY))
        detector.start()
        detector.stop()

        assert detector.tick() == []
        assert source.calls == 0

    def test_stop_is_idempotent(self, detector, bus):
        stopped = Recorder(bus, Events.DETECTOR_STOPPED)
        detector.stop()  # before start
        detector.start()
        detector.stop()
        detector.stop()

        assert len(stopped.calls) == 1

    def test_stop_from_callback_prevents_rearm(self, detector, scheduler, source):
        source.hold(covered(ZoneId.PAUSE))
        detector.add_callback(lambda event: detector.stop())
        detector.start()

        scheduler.run_pending()

        assert scheduler.pending_count == 0
        assert not detector.is_running

    def test_stop_from_callback_ends_tick(self, motion_detector, source):
        moved = solid_pixels(100, 100, 255)
        source.push(solid_pixels(100, 100, 0))
        source.push(moved)
        motion_detector.add_callback(lambda event: motion_detector.stop())
        motion_detector.start()
        motion_detector.tick(now_ms=0)

        events = motion_detector.tick(now_ms=100)

        assert [e.zone for e in events] == [ZoneId.PREVIOUS]
        assert not motion_detector.has_previous_frame
        assert not motion_detector.zone_state(ZoneId.NEXT).currently_active

    def test_restart_after_stop(self, detector, scheduler, source):
        source.hold(covered(ZoneId.NEXT))
        detector.start()
        detector.stop()
        detector.start()

        assert scheduler.pending_count == 1
        scheduler.run_pending()
        assert detector.event_count == 1

    def test_restart_from_callback_keeps_one_pending_tick(self, detector, scheduler, source):
        source.hold(covered(ZoneId.PLAY))
        restarts = []

        def restart(event):
            if not restarts:
                restarts.append(event)
                detector.stop()
                detector.start()

        detector.add_callback(restart)
        detector.start()

        scheduler.run_pending()
        assert detector.is_running
        assert scheduler.pending_count == 1

        detector.stop()
        assert scheduler.pending_count == 0
        assert scheduler.run_pending() == 0

    def test_stop_releases_previous_frame(self, motion_detector, source):
        source.hold(solid_pixels(100, 100, 0))
        motion_detector.start()
        motion_detector.tick(now_ms=0)
        assert motion_detector.has_previous_frame

        motion_detector.stop()

        assert not motion_detector.has_previous_frame

    def test_started_event(self, detector, bus):
        started = Recorder(bus, Events.DETECTOR_STARTED)
        detector.start()

        assert len(started.calls) == 1


class TestDetection:
    """Per-tick zone evaluation and event emission."""

    def test_covered_zone_fires_through_scheduler(self, detector, scheduler, source):
        received = []
        detector.add_callback(received.append)
        source.push(covered(ZoneId.PREVIOUS))
        detector.start()

        scheduler.run_pending()

        assert received == [ActionEvent(zone=ZoneId.PREVIOUS, timestamp_ms=0.0)]
        assert received[0].action is PlaybackAction.PREVIOUS

    def test_uncovered_frame_emits_nothing(self, detector, source):
        source.hold(covered())
        detector.start()

        assert all(detector.tick(now_ms=t) == [] for t in range(0, 5000, 250))

    def test_held_zone_repeats_once_per_cooldown(self, detector, source):
        source.hold(covered(ZoneId.NEXT))
        detector.start()

        events = [e for i in range(30) for e in detector.tick(now_ms=i * 100)]

        assert len(events) == 3
        assert [e.timestamp_ms for e in events] == [0, 1000, 2000]
        assert all(e.zone is ZoneId.NEXT for e in events)

    def test_events_spaced_by_cooldown(self, detector, source):
        source.hold(covered(ZoneId.PLAY))
        detector.start()
        now, times = 0.0, []
        for step in [0, 30, 970, 1, 500, 499, 2, 1000, 1500, 10, 990, 999, 1, 3000]:
            now += step
            times.extend(e.timestamp_ms for e in detector.tick(now_ms=now))

        assert len(times) > 1
        assert all(b - a >= 1000 for a, b in zip(times, times[1:]))

    def test_edge_mode_fires_once_per_cover(self, source, scheduler):
        config = ZoneDetectorConfig(strategy="brightness", trigger_mode="edge")
        detector = ZoneDetector(source, scheduler, config)
        source.hold(covered(ZoneId.NEXT))
        detector.start()

        events = [e for i in range(30) for e in detector.tick(now_ms=i * 100)]

        assert len(events) == 1

    def test_simultaneous_zones_fire_in_zone_order(self, detector, source):
        source.push(covered(ZoneId.PAUSE, ZoneId.PLAY))
        detector.start()

        events = detector.tick(now_ms=0)

        assert [e.zone for e in events] == [ZoneId.PLAY, ZoneId.PAUSE]

    def test_dark_frame_triggers_all_zones(self, detector, source):
        source.push(solid_pixels(100, 100, 0))
        detector.start()

        assert [e.zone for e in detector.tick(now_ms=0)] == list(ZoneId)

    def test_cooldown_uses_injected_clock(self, detector, source, clock):
        source.hold(covered(ZoneId.PREVIOUS))
        detector.start()

        assert len(detector.tick()) == 1
        clock.advance(0.5)
        assert detector.tick() == []
        clock.advance(0.5)
        events = detector.tick()
        assert [e.timestamp_ms for e in events] == [1000.0]

    def test_missing_frame_skips_tick(self, detector, source):
        detector.start()

        assert detector.tick(now_ms=0) == []
        assert detector.skipped_ticks == 1
        assert detector.tick_count == 0

    def test_unknown_dimensions_skip_tick(self, detector, source):
        source.size = (0, 0)
        source.hold(covered(ZoneId.PREVIOUS))
        detector.start()

        assert detector.tick(now_ms=0) == []
        assert detector.zones == ()
        assert detector.skipped_ticks == 1

    def test_zero_size_zones_never_fire(self, source, scheduler):
        config = ZoneDetectorConfig(strategy="brightness", zone_width_fraction=0.0)
        detector = ZoneDetector(source, scheduler, config)
        source.hold(solid_pixels(100, 100, 0))
        detector.start()

        events = [e for i in range(20) for e in detector.tick(now_ms=i * 1000)]

        assert events == []
        assert all(z.rect.area == 0 for z in detector.zones)


class TestLayout:
    """Zone layout follows the frame source dimensions."""

    def test_layout_computed_on_first_frame(self, detector, source, bus):
        layouts = Recorder(bus, Events.LAYOUT_CHANGED)
        source.hold(covered())
        detector.start()
        detector.tick(now_ms=0)
        detector.tick(now_ms=100)

        assert len(layouts.calls) == 1
        assert (layouts.calls[0]["width"], layouts.calls[0]["height"]) == (100, 100)
        assert detector.zones[ZoneId.NEXT].rect.x == 80

    def test_layout_recomputed_on_resize(self, detector, source, bus):
        layouts = Recorder(bus, Events.LAYOUT_CHANGED)
        source.hold(covered())
        detector.start()
        detector.tick(now_ms=0)

        source.size = (200, 100)
        source.hold(solid_pixels(200, 100, 255))
        detector.tick(now_ms=100)

        assert len(layouts.calls) == 2
        assert detector.zones[ZoneId.NEXT].rect.x == 160
        assert detector.zones[ZoneId.NEXT].rect.width == 40

    def test_resize_drops_previous_frame(self, motion_detector, source):
        source.hold(solid_pixels(100, 100, 0))
        motion_detector.start()
        motion_detector.tick(now_ms=0)

        source.size = (200, 100)
        source.hold(solid_pixels(200, 100, 255))
        events = motion_detector.tick(now_ms=100)

        # Frames of different sizes are never diffed
        assert events == []
        assert motion_detector.has_previous_frame

    def test_frame_scaled_to_source_dimensions(self, detector, source):
        source.size = (50, 50)
        source.hold(covered(ZoneId.PREVIOUS))  # 100x100 capture
        detector.start()

        events = detector.tick(now_ms=0)

        assert [e.zone for e in events] == [ZoneId.PREVIOUS]
        assert detector.zones[ZoneId.PREVIOUS].rect.width == 10


class TestMotionDetection:
    """Frame-difference detection through the detector."""

    def test_first_frame_only_primes(self, motion_detector, source):
        source.push(solid_pixels(100, 100, 0))
        motion_detector.start()

        assert motion_detector.tick(now_ms=0) == []
        assert motion_detector.has_previous_frame

    def test_motion_in_one_zone(self, motion_detector, source):
        moved = solid_pixels(100, 100, 0)
        moved[0:50, 0:40, :3] = 255  # covers the top-left zone (5..30, 5..40)
        source.push(solid_pixels(100, 100, 0))
        source.push(moved)
        motion_detector.start()

        motion_detector.tick(now_ms=0)
        events = motion_detector.tick(now_ms=100)

        assert [e.zone for e in events] == [ZoneId.PREVIOUS]

    def test_static_scene_never_fires(self, motion_detector, source):
        source.hold(solid_pixels(100, 100, 90))
        motion_detector.start()

        assert all(motion_detector.tick(now_ms=i * 500) == [] for i in range(10))


class TestObservers:
    """Callbacks and bus events."""

    def test_callback_error_does_not_stop_detection(self, detector, scheduler, source):
        received = []

        def broken(event):
            raise RuntimeError("consumer failed")

        detector.add_callback(broken)
        detector.add_callback(received.append)
        source.hold(covered(ZoneId.NEXT))
        detector.start()

        scheduler.run_pending()

        assert [e.zone for e in received] == [ZoneId.NEXT]
        assert scheduler.pending_count == 1

    def test_remove_callback(self, detector, source):
        received = []
        detector.add_callback(received.append)
        detector.remove_callback(received.append)
        source.hold(covered(ZoneId.NEXT))
        detector.start()
        detector.tick(now_ms=0)

        assert received == []
        assert detector.event_count == 1

    def test_triggered_event_on_bus(self, detector, source, bus):
        triggered = Recorder(bus, Events.ZONE_TRIGGERED)
        source.push(covered(ZoneId.PAUSE))
        detector.start()
        detector.tick(now_ms=0)

        assert triggered.calls[0]["event"].zone is ZoneId.PAUSE

    def test_state_changes_on_bus(self, detector, source, bus):
        changes = Recorder(bus, Events.ZONE_STATE_CHANGED)
        source.push(covered(ZoneId.PREVIOUS))
        source.push(covered(ZoneId.PREVIOUS))
        source.push(covered())
        detector.start()
        for t in (0, 100, 200):
            detector.tick(now_ms=t)

        assert [(c["zone"], c["active"]) for c in changes.calls] == [
            (ZoneId.PREVIOUS, True),
            (ZoneId.PREVIOUS, False),
        ]
        assert not detector.zone_state(ZoneId.PREVIOUS).currently_active

    def test_stop_clears_active_state(self, detector, source, bus):
        changes = Recorder(bus, Events.ZONE_STATE_CHANGED)
        source.hold(covered(ZoneId.PLAY))
        detector.start()
        detector.tick(now_ms=0)

        detector.stop()

        assert changes.calls[-1] == {"zone": ZoneId.PLAY, "active": False}
        assert detector.zone_state(ZoneId.PLAY).last_trigger_ms == 0


class TestReconfigure:

    def test_invalid_config_leaves_detector_untouched(self, detector, source):
        source.hold(covered(ZoneId.NEXT))
        detector.start()
        detector.tick(now_ms=0)
        before = detector.config

        with pytest.raises(ConfigurationError):
            detector.reconfigure(ZoneDetectorConfig(strategy="brightness", cooldown_ms=-1))

        assert detector.config is before
        assert detector.zones != ()
        assert detector.zone_state(ZoneId.NEXT).currently_active

    def test_switch_strategy(self, detector, source):
        source.hold(covered())
        detector.start()
        detector.tick(now_ms=0)

        detector.reconfigure(ZoneDetectorConfig(strategy="motion", cooldown_ms=250))

        assert detector.strategy.strategy is DetectionStrategy.MOTION
        assert detector.zones == ()
        detector.tick(now_ms=100)
        assert detector.zones[ZoneId.PREVIOUS].rect.width == 25
        assert detector.is_running


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
