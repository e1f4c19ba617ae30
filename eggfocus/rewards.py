"""Coin rewards for focused time.

Base coins are a pure function of focused seconds, so recomputing them is
always safe. Bonus coins are rolled once, at settlement.
"""

from __future__ import annotations

import logging
import math
import random

from eggfocus.models import RewardState

logger = logging.getLogger(__name__)

COINS_PER_MINUTE = 5


def base_coins_for(focused_seconds: int, rate: int = COINS_PER_MINUTE) -> int:
    """ceil(minutes * rate), at least 1. Integer math keeps it exact."""
    coins = -(-focused_seconds * rate // 60)
    return max(1, coins)


def roll_bonus(focused_seconds: int, rng: random.Random) -> int:
    """Random bonus in [1, floor(minutes/2)] (or exactly 1 under two minutes)."""
    if focused_seconds <= 0:
        return 0
    minutes = focused_seconds / 60
    return max(0, math.floor(rng.random() * (minutes / 2)) + 1)


class RewardCalculator:
    def __init__(self, rng: random.Random | None = None, rate: int = COINS_PER_MINUTE) -> None:
        self._rng = rng or random.Random()
        self.rate = rate
        self.focused_seconds = 0
        self._state = RewardState()

    @property
    def state(self) -> RewardState:
        return RewardState(
            base_coins=self._state.base_coins,
            bonus_coins=self._state.bonus_coins,
            settled=self._state.settled,
        )

    @property
    def base_coins(self) -> int:
        return self._state.base_coins

    @property
    def bonus_coins(self) -> int:
        return self._state.bonus_coins

    def on_focused_second(self) -> int:
        """Credit one focused second and return the new base coins."""
        self.focused_seconds += 1
        return self.recompute()

    def recompute(self) -> int:
        if self.focused_seconds > 0:
            self._state.base_coins = base_coins_for(self.focused_seconds, self.rate)
        return self._state.base_coins

    def settle_bonus(self) -> int:
        """Fix the bonus for this session; later calls return the same value."""
        if self._state.settled:
            return self._state.bonus_coins
        if self.focused_seconds <= 0:
            logger.debug("Settling with no focused time; bonus is 0")
        self._state.bonus_coins = roll_bonus(self.focused_seconds, self._rng)
        self._state.settled = True
        return self._state.bonus_coins

    def reset(self) -> None:
        self.focused_seconds = 0
        self._state = RewardState()
