"""Multi-round session scheduling for EggFocus.

Turns one "focus for N minutes" request into a plan of rounds, drives the
focus and rest timers through it, and decides round -> rest -> round versus
round -> settlement. Rewards are accrued from the focused-second counter
only; elapsed time is never reconstructed from round arithmetic.

State machine::

    idle --create_session--> round(1) --exhausted--> rest --start_next_round--> round(2) ...
    round(last) --exhausted--> settlement --reset--> idle
    round(n) --finish_early--> settlement
    any --cancel--> idle (reward forfeited)
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable

from eggfocus.models import (
    CLOSED,
    REST,
    REST_FINISHED,
    ROUND_STARTED,
    SETTLEMENT,
    RewardState,
    SessionPlan,
    TimerState,
    Transition,
)
from eggfocus.rewards import RewardCalculator
from eggfocus.timer import TimerEngine
from eggfocus.workspace import now_local

logger = logging.getLogger(__name__)

PHASE_IDLE = "idle"
PHASE_ROUND = "round"
PHASE_REST = "rest"
PHASE_SETTLEMENT = "settlement"

DEFAULT_REST_SECONDS = 180


# ── Plan arithmetic ───────────────────────────────────────────


def minutes_to_seconds(minutes: float) -> int:
    """Whole seconds, rounding halves up. Raises for durations under a second."""
    if not math.isfinite(minutes) or minutes <= 0:
        raise ValueError(f"Duration must be a positive number of minutes, got {minutes!r}")
    seconds = math.floor(minutes * 60 + 0.5)
    if seconds < 1:
        raise ValueError(f"Duration of {minutes} minutes is shorter than one second")
    return int(seconds)


def plan_rounds(total_seconds: int, round_seconds: int) -> tuple[int, int]:
    """Return (total_rounds, last_round_seconds).

    Never truncates: a total that does not divide evenly gets one more,
    shorter, final round.
    """
    if total_seconds <= 0 or round_seconds <= 0:
        raise ValueError("Durations must be positive")
    total_rounds = -(-total_seconds // round_seconds)
    remainder = total_seconds % round_seconds
    return total_rounds, remainder if remainder > 0 else round_seconds


# ── Scheduler ─────────────────────────────────────────────────


class SessionScheduler:
    def __init__(
        self,
        timer: TimerEngine,
        rewards: RewardCalculator,
        rest_timer: TimerEngine | None = None,
        rest_duration_seconds: int = DEFAULT_REST_SECONDS,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        if rest_duration_seconds <= 0:
            raise ValueError("Rest duration must be positive")
        self.timer = timer
        self.rest_timer = rest_timer or TimerEngine("rest")
        self.rewards = rewards
        self.rest_duration_seconds = rest_duration_seconds
        self._clock = clock
        self._plan = SessionPlan()
        self._phase = PHASE_IDLE
        self._round_start_coins = 0
        self._rest_finished = False
        self._session_number = 0
        self._listeners: list[Callable[[Transition], None]] = []

    # -- read side --

    @property
    def plan(self) -> SessionPlan:
        return replace(self._plan)

    @property
    def phase(self) -> str:
        return self._phase

    @property
    def rewards_state(self) -> RewardState:
        return self.rewards.state

    @property
    def timer_state(self) -> TimerState:
        return self.timer.state

    @property
    def rest_finished(self) -> bool:
        return self._phase == PHASE_REST and self._rest_finished

    @property
    def session_number(self) -> int:
        """Increments with every created session."""
        return self._session_number

    def snapshot(self) -> dict[str, Any]:
        return {
            "phase": self._phase,
            "plan": self._plan.to_dict(),
            "timer": self.timer.state.to_dict(),
            "rest": self.rest_timer.state.to_dict(),
            "rewards": self.rewards.state.to_dict(),
        }

    def subscribe(self, listener: Callable[[Transition], None]) -> None:
        self._listeners.append(listener)

    # -- operations --

    def create_session(self, task_name: str, total_minutes: float, round_minutes: float) -> Transition:
        if not task_name or not task_name.strip():
            raise ValueError("Task name is required")
        total_seconds = minutes_to_seconds(total_minutes)
        round_seconds = minutes_to_seconds(round_minutes)
        total_rounds, last_round_seconds = plan_rounds(total_seconds, round_seconds)

        if self._plan.is_active:
            logger.warning("Replacing active session %r", self._plan.task_name)
            self.rest_timer.cancel()

        self.rewards.reset()
        self._session_number += 1
        self._plan = SessionPlan(
            task_name=task_name.strip(),
            is_active=True,
            session_start_time=self._clock(),
            round_duration_seconds=round_seconds,
            last_round_duration_seconds=last_round_seconds,
            total_rounds=total_rounds,
            current_round=1,
        )
        logger.info(
            "Session %r: %s round(s) %s",
            self._plan.task_name, total_rounds, self._plan.round_durations(),
        )
        self._start_round()
        return self._emit(ROUND_STARTED)

    def tick(self) -> Transition | None:
        """One wall-clock second from the host driver."""
        if self._phase == PHASE_ROUND:
            if self.timer.tick():
                self.rewards.on_focused_second()
                self._plan.total_focused_seconds = self.rewards.focused_seconds
            if self.timer.is_open and self.timer.time_left == 0:
                return self.complete_current_round()
            return None

        if self._phase == PHASE_REST:
            self.rest_timer.tick()
            if self.rest_timer.time_left == 0 and not self._rest_finished:
                self._rest_finished = True
                return self._emit(REST_FINISHED)
        return None

    def start_next_round(self) -> Transition | None:
        plan = self._plan
        if not plan.is_active or plan.current_round >= plan.total_rounds:
            logger.debug("start_next_round ignored (round %s of %s)", plan.current_round, plan.total_rounds)
            return None
        plan.current_round += 1
        self.rest_timer.cancel()
        self._start_round()
        return self._emit(ROUND_STARTED)

    def complete_current_round(self) -> Transition | None:
        plan = self._plan
        if not plan.is_active or self._phase != PHASE_ROUND:
            logger.debug("complete_current_round ignored in phase %s", self._phase)
            return None
        if self.timer.time_left > 0:
            logger.debug("complete_current_round ignored with %ss left", self.timer.time_left)
            return None
        plan.completed_rounds += 1
        round_coins = self.rewards.base_coins - self._round_start_coins
        self.timer.stop()

        if plan.is_last_round():
            self.rewards.recompute()
            self.rewards.settle_bonus()
            self._phase = PHASE_SETTLEMENT
            logger.info(
                "Session %r settled: %s base + %s bonus for %ss focused",
                plan.task_name, self.rewards.base_coins, self.rewards.bonus_coins,
                plan.total_focused_seconds,
            )
            return self._emit(SETTLEMENT, round_coins=round_coins)

        self.rest_timer.start(self.rest_duration_seconds)
        self._rest_finished = False
        self._phase = PHASE_REST
        logger.info("Round %s/%s complete, resting %ss", plan.current_round, plan.total_rounds,
                    self.rest_duration_seconds)
        return self._emit(REST, round_coins=round_coins)

    def finish_early(self) -> Transition | None:
        plan = self._plan
        if not plan.is_active or self._phase == PHASE_SETTLEMENT:
            logger.debug("finish_early ignored in phase %s", self._phase)
            return None
        round_coins = 0
        if self._phase == PHASE_ROUND:
            round_coins = self.rewards.base_coins - self._round_start_coins
        self.timer.stop()
        self.rest_timer.cancel()
        self.rewards.settle_bonus()
        self._phase = PHASE_SETTLEMENT
        logger.info("Session %r finished early after %ss focused", plan.task_name,
                    plan.total_focused_seconds)
        return self._emit(SETTLEMENT, round_coins=round_coins)

    def cancel(self) -> Transition:
        """Abandon the session. No reward is granted."""
        if self._plan.is_active:
            logger.info("Session %r cancelled", self._plan.task_name)
        self._clear()
        return self._emit(CLOSED, forfeited=True)

    def reset(self) -> Transition:
        """Clear a session whose reward the ledger has already recorded."""
        self._clear()
        return self._emit(CLOSED)

    # -- internals --

    def _start_round(self) -> None:
        self.timer.start(self._plan.duration_for_round(self._plan.current_round))
        self._round_start_coins = self.rewards.base_coins
        self._phase = PHASE_ROUND

    def _clear(self) -> None:
        self.timer.cancel()
        self.rest_timer.cancel()
        self.rewards.reset()
        self._plan = SessionPlan()
        self._phase = PHASE_IDLE
        self._round_start_coins = 0
        self._rest_finished = False

    def _emit(self, kind: str, round_coins: int = 0, forfeited: bool = False) -> Transition:
        plan = self._plan
        rewards = self.rewards.state
        transition = Transition(
            kind=kind,
            round=plan.current_round,
            total_rounds=plan.total_rounds,
            completed_rounds=plan.completed_rounds,
            round_coins=round_coins,
            base_coins=rewards.base_coins,
            bonus_coins=rewards.bonus_coins,
            focused_minutes=plan.focused_minutes(),
            forfeited=forfeited,
        )
        for listener in list(self._listeners):
            try:
                listener(transition)
            except Exception:
                logger.exception("Transition listener failed for %s", kind)
        return transition
