"""Configuration, logging, and performance utilities."""
from .config import Config
from .logger import ZoneEventLogger, log_timing, setup_logging
from .performance import PerformanceMonitor

__all__ = ["Config", "PerformanceMonitor", "ZoneEventLogger", "log_timing", "setup_logging"]
