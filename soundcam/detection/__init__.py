"""Zone layout, activation signals, and the zone detector engine."""
from .activation import ActivationStrategy, BrightnessStrategy, MotionDiffStrategy, create_strategy
from .zone_detector import ZoneDetector, ZoneDetectorConfig
from .zone_layout import ZoneLayoutConfig, compute_zones

__all__ = [
    "ActivationStrategy",
    "BrightnessStrategy",
    "MotionDiffStrategy",
    "ZoneDetector",
    "ZoneDetectorConfig",
    "ZoneLayoutConfig",
    "compute_zones",
    "create_strategy",
]
