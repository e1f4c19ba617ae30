"""One-second countdown with pause/resume.

A TimerEngine is the single answer to "is time currently advancing". The
focus round and the rest break each get their own instance; both are
governed by the same InterruptionCoordinator.

Every operation is total: calling one in the "wrong" state is a no-op,
never an exception, so a late or duplicated driver tick cannot corrupt
state. The only exception raised is for ``start`` with a non-positive
duration, which is a programming error.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from eggfocus.models import TimerState

logger = logging.getLogger(__name__)


class TimerEngine:
    def __init__(self, label: str = "focus") -> None:
        self.label = label
        self._state = TimerState()

    @property
    def state(self) -> TimerState:
        """Snapshot of the countdown; mutate only through the methods below."""
        return replace(self._state)

    @property
    def is_active(self) -> bool:
        return self._state.is_active

    @property
    def is_open(self) -> bool:
        return self._state.is_open

    @property
    def time_left(self) -> int:
        return self._state.time_left

    def start(self, duration_seconds: int) -> None:
        """Open and start a countdown of ``duration_seconds``.

        The first second counts as already elapsed, so a 60 second round
        shows 59 and reaches 0 after 59 ticks.
        """
        if duration_seconds <= 0:
            raise ValueError(f"Timer duration must be positive, got {duration_seconds}")
        self._state = TimerState(
            is_open=True,
            is_active=True,
            was_active_before_pause=False,
            time_left=duration_seconds - 1,
            total_time=duration_seconds,
        )
        logger.debug("%s timer started for %ss", self.label, duration_seconds)

    def tick(self) -> bool:
        """Advance one second. Returns True if the tick was accepted."""
        s = self._state
        if s.is_active and s.time_left > 0:
            s.time_left -= 1
            return True
        return False

    def pause(self) -> None:
        s = self._state
        if s.is_active:
            s.was_active_before_pause = True
            s.is_active = False
            logger.debug("%s timer paused at %ss", self.label, s.time_left)
        else:
            s.was_active_before_pause = False

    def resume(self) -> None:
        # A timer that finished or was stopped while paused stays inactive.
        s = self._state
        if not s.was_active_before_pause:
            return
        s.is_active = s.time_left > 0
        s.was_active_before_pause = False

    def stop(self) -> None:
        """Stop counting but keep the view open with its time fields."""
        self._state.is_active = False
        self._state.was_active_before_pause = False

    def cancel(self) -> None:
        self._state = TimerState()
