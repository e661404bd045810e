"""
Per-zone cooldown debouncer.

Two trigger modes:
    - REPEAT: a zone that stays covered fires once per cooldown interval,
      for as long as it is held ("hold to skip" on next/previous).
    - RISING_EDGE: a zone fires once when it becomes covered and must be
      released before it can fire again. The cooldown still applies.

In both modes, being covered inside the cooldown only updates the visual
state; it never pushes the cooldown clock forward.
"""

import logging
from typing import List

from ..core.errors import ConfigurationError
from ..core.types import ActivationState, TriggerMode, ZoneId

logger = logging.getLogger(__name__)


class ZoneDebouncer:
    """Cooldown bookkeeping for the four zones, indexed by ZoneId."""

    def __init__(self, cooldown_ms: float = 1000, trigger_mode: TriggerMode = TriggerMode.REPEAT):
        if cooldown_ms < 0:
            raise ConfigurationError(f"cooldown_ms must be >= 0, got {cooldown_ms!r}")
        self._cooldown_ms = cooldown_ms
        self._trigger_mode = trigger_mode
        self._states: List[ActivationState] = [ActivationState() for _ in ZoneId]

    def update(self, zone_id: ZoneId, is_active: bool, now_ms: float) -> bool:
        """Record this tick's activation for a zone.

        Returns:
            True if an event must be emitted for the zone this tick
        """
        state = self._states[zone_id]
        was_active = state.currently_active
        state.currently_active = is_active

        if not is_active:
            return False
        if self._trigger_mode is TriggerMode.RISING_EDGE and was_active:
            return False
        if not self.cooldown_elapsed(zone_id, now_ms):
            if not was_active:
                logger.debug("Zone %s covered during cooldown, not firing", zone_id.name)
            return False

        state.last_trigger_ms = now_ms
        return True

    def cooldown_elapsed(self, zone_id: ZoneId, now_ms: float) -> bool:
        last = self._states[zone_id].last_trigger_ms
        return last is None or now_ms - last >= self._cooldown_ms

    def state(self, zone_id: ZoneId) -> ActivationState:
        return self._states[zone_id]

    def clear_active(self):
        """Drop visual-active flags, keeping trigger timestamps."""
        for state in self._states:
            state.currently_active = False

    def reset(self):
        """Clear all state."""
        for state in self._states:
            state.reset()

    @property
    def cooldown_ms(self) -> float:
        return self._cooldown_ms

    @property
    def trigger_mode(self) -> TriggerMode:
        return self._trigger_mode

    @property
    def active_zones(self) -> List[ZoneId]:
        return [z for z in ZoneId if self._states[z].currently_active]
