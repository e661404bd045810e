"""
Zone Layout
===========

Maps frame dimensions to the four fixed corner zones.

Zones are anchored to frame corners instead of following a tracked hand,
so no hand model or calibration is needed: covering a known region is
enough to trigger its action.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Tuple

from ..core.errors import ConfigurationError
from ..core.types import DEFAULT_CORNERS, Corner, Rect, Zone, ZoneId

logger = logging.getLogger(__name__)


@dataclass
class ZoneLayoutConfig:
    """Zone geometry as fractions of the frame size."""
    zone_width_fraction: float = 0.25
    zone_height_fraction: float = 0.35
    margin_fraction: float = 0.05
    corners: Dict[ZoneId, Corner] = field(default_factory=lambda: dict(DEFAULT_CORNERS))

    @classmethod
    def from_dict(cls, config: dict) -> "ZoneLayoutConfig":
        """Create config from dictionary (YAML parsed)."""
        defaults = cls()
        return cls(
            zone_width_fraction=config.get("zone_width_fraction", defaults.zone_width_fraction),
            zone_height_fraction=config.get("zone_height_fraction", defaults.zone_height_fraction),
            margin_fraction=config.get("margin_fraction", defaults.margin_fraction),
            corners=parse_corners(config.get("corners")),
        )

    def validate(self) -> None:
        """Reject geometry that could overlap or leave the frame.

        Raises:
            ConfigurationError: on any out-of-range value
        """
        for name in ("zone_width_fraction", "zone_height_fraction"):
            value = getattr(self, name)
            if not 0.0 <= value < 0.5:
                raise ConfigurationError(
                    f"{name} must be in [0, 0.5) so zones cannot overlap, got {value!r}"
                )
        if self.margin_fraction < 0:
            raise ConfigurationError(
                f"margin_fraction must be >= 0, got {self.margin_fraction!r}"
            )
        for name in ("zone_width_fraction", "zone_height_fraction"):
            if getattr(self, name) + self.margin_fraction > 0.5:
                raise ConfigurationError(
                    f"{name} + margin_fraction must be <= 0.5, got "
                    f"{getattr(self, name)!r} + {self.margin_fraction!r}"
                )

        missing = [z.name for z in ZoneId if z not in self.corners]
        if missing:
            raise ConfigurationError(f"No corner assigned to zones: {', '.join(missing)}")
        if len(set(self.corners[z] for z in ZoneId)) != len(ZoneId):
            raise ConfigurationError("Each zone must be assigned a distinct corner")


def parse_corners(raw) -> Dict[ZoneId, Corner]:
    """Parse a {"previous": "top-left", ...} mapping, filling gaps from the defaults.

    Raises:
        ConfigurationError: on an unknown zone or corner name
    """
    corners = dict(DEFAULT_CORNERS)
    if not raw:
        return corners
    for zone_name, corner_name in raw.items():
        try:
            zone_id = zone_name if isinstance(zone_name, ZoneId) else ZoneId[str(zone_name).upper()]
            corner = corner_name if isinstance(corner_name, Corner) else Corner(str(corner_name).lower())
        except (KeyError, ValueError):
            raise ConfigurationError(
                f"Invalid corner assignment {zone_name!r}: {corner_name!r}"
            ) from None
        corners[zone_id] = corner
    return corners


def compute_zones(frame_width: int, frame_height: int,
                  config: ZoneLayoutConfig) -> Tuple[Zone, ...]:
    """Compute the four corner zones for a frame size.

    Pure function of its inputs. Sizes and margins are floored to whole
    pixels, which keeps every zone inside the frame and the four zones
    pairwise disjoint whenever config.validate() passes.

    Args:
        frame_width: Frame width in pixels
        frame_height: Frame height in pixels
        config: Layout parameters

    Returns:
        Zones in ZoneId order, or an empty tuple when the frame size is unknown
    """
    if frame_width <= 0 or frame_height <= 0:
        return ()

    zone_w = int(frame_width * config.zone_width_fraction)
    zone_h = int(frame_height * config.zone_height_fraction)
    margin_x = int(frame_width * config.margin_fraction)
    margin_y = int(frame_height * config.margin_fraction)

    zones = []
    for zone_id in ZoneId:
        corner = config.corners[zone_id]
        x = frame_width - zone_w - margin_x if corner.is_right else margin_x
        y = frame_height - zone_h - margin_y if corner.is_bottom else margin_y
        zones.append(Zone(id=zone_id, rect=Rect(x, y, zone_w, zone_h), corner=corner))

    logger.debug("Computed zones for %dx%d: %s", frame_width, frame_height,
                 ", ".join(f"{z.id.name}@({z.rect.x},{z.rect.y},{z.rect.width}x{z.rect.height})"
                           for z in zones))
    return tuple(zones)
