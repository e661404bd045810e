"""
Logging setup and zone event logging.
"""

import os
import logging
import logging.handlers
import time
from collections import deque
from functools import wraps


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure console (and optional rotating file) logging for the application."""
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-30s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(root_logger.level)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class ZoneEventLogger:
    """Logs triggered zones and keeps a short in-memory history for the session."""

    def __init__(self, max_history: int = 200):
        self.logger = logging.getLogger("zone_events")
        self._history = deque(maxlen=max_history)
        self._counts = {}

    def log_trigger(self, event=None, **_):
        """Record a ZONE_TRIGGERED event. Signature matches EventBus dispatch."""
        if event is None:
            return
        entry = {
            "time": time.time(),
            "zone": event.zone.name,
            "action": event.action.value,
            "timestamp_ms": event.timestamp_ms,
        }
        self._history.append(entry)
        self._counts[entry["action"]] = self._counts.get(entry["action"], 0) + 1
        self.logger.info("Zone: %-8s | Action: %-8s | t=%.0fms",
                         entry["zone"], entry["action"], event.timestamp_ms)

    def get_history(self, last_n=None):
        history = list(self._history)
        if last_n:
            return history[-last_n:]
        return history

    @property
    def counts(self) -> dict:
        return dict(self._counts)

    @property
    def total_triggers(self) -> int:
        return sum(self._counts.values())


def log_timing(func):
    """Decorator to log function execution time."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%s took %.2fms", func.__name__, elapsed)
        return result

    return wrapper
