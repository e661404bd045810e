"""
Tick scheduling for the detection loop.

The detector never drives itself from a hard-coded global loop. It asks an
injected scheduler for its next tick once per frame and cancels the pending
handle on stop:

    handle = scheduler.schedule(self._on_tick)
    ...
    scheduler.cancel(handle)

ManualScheduler lets tests pump ticks synchronously. FrameLoopScheduler
adds a bounded-rate blocking loop for the desktop application, the
equivalent of a per-redraw callback.
"""

import time
import logging
from collections import OrderedDict
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TickScheduler:
    """Interface: run a callback on the next frame, with cancellation."""

    def schedule(self, callback: Callable[[], None]) -> int:
        raise NotImplementedError

    def cancel(self, handle: Optional[int]) -> None:
        raise NotImplementedError


class ManualScheduler(TickScheduler):
    """Queue of pending callbacks, run only when run_pending() is called.

    Callbacks scheduled while a round is running are deferred to the next
    round, so a callback that re-arms itself runs once per round.
    """

    def __init__(self):
        self._pending: "OrderedDict[int, Callable[[], None]]" = OrderedDict()
        self._next_handle = 1

    def schedule(self, callback: Callable[[], None]) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._pending[handle] = callback
        return handle

    def cancel(self, handle: Optional[int]) -> None:
        """Drop a pending callback. Unknown or already-run handles are ignored."""
        if handle is not None:
            self._pending.pop(handle, None)

    def run_pending(self) -> int:
        """Run every callback pending at call time.

        Returns:
            Number of callbacks executed
        """
        ran = 0
        for handle in list(self._pending.keys()):
            # May have been cancelled by an earlier callback this round
            callback = self._pending.pop(handle, None)
            if callback is None:
                continue
            callback()
            ran += 1
        return ran

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)


class FrameLoopScheduler(ManualScheduler):
    """Blocking frame loop that runs pending callbacks at up to target_fps.

    Slow rounds are never made up for: if a round overruns its frame interval
    the next one starts immediately and the effective rate simply drops.
    """

    def __init__(self, target_fps: float = 30.0):
        super().__init__()
        if target_fps <= 0:
            raise ValueError("target_fps must be positive, got %r" % target_fps)
        self._frame_interval = 1.0 / target_fps
        self._rounds = 0

    def run(self, should_continue: Callable[[], bool] = lambda: True,
            on_frame: Optional[Callable[[], None]] = None) -> int:
        """Pump callbacks until none are pending or should_continue() is false.

        Args:
            should_continue: Checked before every round
            on_frame: Called after each round (rendering, key handling)

        Returns:
            Number of rounds executed
        """
        rounds = 0
        while self.has_pending and should_continue():
            start = time.perf_counter()
            self.run_pending()
            if on_frame is not None:
                on_frame()
            rounds += 1

            remaining = self._frame_interval - (time.perf_counter() - start)
            if remaining > 0:
                time.sleep(remaining)

        self._rounds += rounds
        logger.debug("Frame loop exited after %d rounds", rounds)
        return rounds

    @property
    def total_rounds(self) -> int:
        return self._rounds
