"""
Frame-loop performance monitoring.

Tracks the rate at which the application loop actually runs against its
target, per-stage latency for the work done after each detector tick, and
(optionally) the detector's tick/skip/event counters and the camera's capture time.
"""

import time
import threading
import logging
from collections import deque
from contextlib import contextmanager

logger = logging.getLogger(__name__)

# Fraction of target_fps under which the loop is reported as lagging
_LAG_RATIO = 0.8


class PerformanceMonitor:
    """Rolling loop rate and stage latency for the detection loop."""

    def __init__(self, window_size=100, target_fps=30.0):
        self._window_size = window_size
        self._target_fps = target_fps
        self._lock = threading.Lock()

        self._intervals = deque(maxlen=window_size)
        self._last_tick = None
        self._stages = {}
        self._frame_count = 0
        self._lagging = False
        self._start_time = time.time()

    @contextmanager
    def measure(self, stage_name: str):
        """Time the enclosed block as one sample of `stage_name`, even if it raises."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            with self._lock:
                self._stages.setdefault(
                    stage_name, deque(maxlen=self._window_size)
                ).append(elapsed_ms)

    def tick(self):
        """Mark the end of one loop round."""
        now = time.perf_counter()
        with self._lock:
            if self._last_tick is not None:
                self._intervals.append(now - self._last_tick)
            self._last_tick = now
            self._frame_count += 1
        self._check_lag()

    def _check_lag(self):
        # Log on transitions only, not every frame
        if len(self._intervals) < self._window_size // 2 or self._target_fps <= 0:
            return
        lagging = self.fps < self._target_fps * _LAG_RATIO
        if lagging and not self._lagging:
            logger.warning("Loop running at %.1f fps, below target %.0f fps",
                           self.fps, self._target_fps)
        elif self._lagging and not lagging:
            logger.info("Loop back at %.1f fps", self.fps)
        self._lagging = lagging

    @property
    def fps(self) -> float:
        """Rolling average loop rate."""
        with self._lock:
            if len(self._intervals) < 2:
                return 0.0
            avg_interval = sum(self._intervals) / len(self._intervals)
        return 1.0 / avg_interval if avg_interval > 0 else 0.0

    @property
    def is_lagging(self) -> bool:
        return self._lagging

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def get_stage_latency(self, stage_name: str) -> float:
        """Average latency for a stage in ms (0.0 if never measured)."""
        with self._lock:
            times = self._stages.get(stage_name)
            if not times:
                return 0.0
            return sum(times) / len(times)

    def get_report(self, detector=None, camera=None) -> dict:
        """Snapshot of loop rate, stage latencies and, if given, detector and camera counters."""
        with self._lock:
            stages = list(self._stages)
        report = {
            "fps": round(self.fps, 1),
            "target_fps": self._target_fps,
            "total_frames": self._frame_count,
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "latencies_ms": {name: round(self.get_stage_latency(name), 2) for name in stages},
        }
        if detector is not None:
            report["detector"] = {
                "ticks": detector.tick_count,
                "skipped_ticks": detector.skipped_ticks,
                "events": detector.event_count,
            }
        if camera is not None:
            report["capture_ms"] = round(camera.avg_capture_time_ms, 2)
        return report

    def print_report(self, detector=None, camera=None):
        """Log a formatted performance report."""
        report = self.get_report(detector, camera)
        logger.info("=" * 50)
        logger.info("PERFORMANCE REPORT")
        logger.info("=" * 50)
        logger.info("FPS:            %.1f (target %.0f)", report["fps"], report["target_fps"])
        logger.info("Total Frames:   %d", report["total_frames"])
        logger.info("Uptime:         %.1fs", report["uptime_seconds"])
        for stage, latency in report["latencies_ms"].items():
            logger.info("  %-18s %7.2f ms", stage, latency)
        if "detector" in report:
            det = report["detector"]
            logger.info("Detector:       %d ticks, %d skipped, %d events",
                        det["ticks"], det["skipped_ticks"], det["events"])
        if "capture_ms" in report:
            logger.info("Camera capture: %.2f ms avg", report["capture_ms"])
        logger.info("=" * 50)

    def reset(self):
        """Reset all metrics."""
        with self._lock:
            self._intervals.clear()
            self._last_tick = None
            self._stages.clear()
            self._frame_count = 0
            self._lagging = False
            self._start_time = time.time()
