"""Host-facing glue: one object a UI drives for a whole EggFocus session.

The controller owns and wires the timers, reward calculator, scheduler and
prompt coordinator (nothing is looked up globally), applies the settings
snapshot, and turns user actions that need confirmation into awaitable
coroutines. Hosts call :meth:`tick` once per wall-clock second and render
``prompts.pending`` whenever it changes.
"""

from __future__ import annotations

import asyncio
import logging
import random
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

from eggfocus import auth, ledger
from eggfocus.hooks import run_hooks, transition_hook
from eggfocus.interruptions import InterruptionCoordinator
from eggfocus.models import (
    PROMPT_PIN,
    CoinRecord,
    ConfirmOptions,
    ExpenseDetail,
    IncomeDetail,
    Transition,
)
from eggfocus.rewards import RewardCalculator
from eggfocus.scheduler import PHASE_REST, PHASE_ROUND, PHASE_SETTLEMENT, SessionScheduler
from eggfocus.settings import Settings, load_settings, save_settings
from eggfocus.timer import TimerEngine
from eggfocus.workspace import now_local

logger = logging.getLogger(__name__)


class FocusController:
    def __init__(
        self,
        root: Path | None = None,
        settings: Settings | None = None,
        rng: random.Random | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        hooks_in_background: bool = True,
        clock: Callable[[], datetime] = now_local,
    ) -> None:
        self.root = root
        self.settings = settings or load_settings(root)
        self._clock = clock
        self._hooks_in_background = hooks_in_background

        self.focus_timer = TimerEngine("focus")
        self.rest_timer = TimerEngine("rest")
        self.rewards = RewardCalculator(rng)
        self.scheduler = SessionScheduler(
            self.focus_timer,
            self.rewards,
            rest_timer=self.rest_timer,
            rest_duration_seconds=self.settings.rest_duration_seconds,
            clock=clock,
        )
        self.prompts = InterruptionCoordinator([self.focus_timer, self.rest_timer], loop=loop)

        self.last_transition: Transition | None = None
        self.scheduler.subscribe(self._remember)
        self.scheduler.subscribe(transition_hook(root, background=hooks_in_background))

    def _remember(self, transition: Transition) -> None:
        self.last_transition = transition

    # ── Session ───────────────────────────────────────────────

    def start(self, task_name: str, option_minutes: float) -> Transition:
        """Start a session of ``option_minutes``, split by the round override.

        A prompt still pending from the previous session is declined, so its
        waiter never acts on the new one.
        """
        round_minutes = self.settings.round_minutes_for(option_minutes)
        transition = self.scheduler.create_session(task_name, option_minutes, round_minutes)
        if self.prompts.pending is not None:
            logger.info("Declining pending prompt %r for the new session",
                        self.prompts.pending.options.title)
            self.prompts.cancel()
        return transition

    def tick(self) -> Transition | None:
        return self.scheduler.tick()

    async def request_cancel(self) -> bool:
        if not self.scheduler.plan.is_active:
            return False
        session = self.scheduler.session_number
        ok = await self.prompts.request(ConfirmOptions(
            title="Give up?",
            message="Stop now? The coin factory shuts down and this session earns nothing.",
            confirm_label="Give up",
            cancel_label="Keep going",
            resume_on_confirm=False,
        ))
        if not ok or self.scheduler.session_number != session:
            return False
        self.scheduler.cancel()
        return True

    async def request_finish_early(self) -> bool:
        if self.scheduler.phase not in (PHASE_ROUND, PHASE_REST):
            return False
        session = self.scheduler.session_number
        ok = await self.prompts.request(ConfirmOptions(
            title="Finish early",
            message="Finish now and collect what you have earned so far?",
            confirm_label="Finish",
            cancel_label="Keep going",
            resume_on_confirm=False,
        ))
        if not ok or self.scheduler.session_number != session:
            return False
        return self.scheduler.finish_early() is not None

    async def request_skip_rest(self) -> bool:
        """End the break. Asks first if the rest countdown is still running."""
        if self.scheduler.phase != PHASE_REST:
            return False
        if not self.scheduler.rest_finished:
            session = self.scheduler.session_number
            ok = await self.prompts.request(ConfirmOptions(
                title="Skip the break?",
                message="A short rest helps the next round. Skip it anyway?",
                confirm_label="Skip",
                cancel_label="Keep resting",
            ))
            if not ok or self.scheduler.session_number != session or self.scheduler.phase != PHASE_REST:
                return False
        return self.scheduler.start_next_round() is not None

    def acknowledge_settlement(self) -> CoinRecord | None:
        """Hand the settled reward to the ledger as pending income, then reset."""
        if self.scheduler.phase != PHASE_SETTLEMENT:
            return None
        plan = self.scheduler.plan
        rewards = self.scheduler.rewards_state
        started = plan.session_start_time
        detail = IncomeDetail(
            task_name=plan.task_name,
            start_time=started.isoformat(timespec="seconds") if started else "",
            end_time=self._clock().isoformat(timespec="seconds"),
            focused_minutes=plan.focused_minutes(),
            base_coins=rewards.base_coins,
            bonus_coins=rewards.bonus_coins,
        )
        record = ledger.add_pending_income(detail, rewards.total(), self.root)
        self.scheduler.reset()
        return record

    # ── Ledger ────────────────────────────────────────────────

    async def confirm_record(self, record_id: str) -> bool:
        """Confirm pending income, behind the guardian PIN when one is set."""
        if auth.is_pin_set(self.root):
            ok = await self.prompts.request(ConfirmOptions(
                kind=PROMPT_PIN,
                title="Guardian PIN",
                message="Enter the 4-digit PIN to confirm these coins.",
                confirm_label="Confirm",
                verify=lambda pin: auth.verify_pin(pin, self.root),
            ))
            if not ok:
                return False
        record = ledger.confirm_record(record_id, self.root)
        self._fire("on_ledger_confirm", record.to_dict())
        return True

    async def delete_record(self, record_id: str) -> bool:
        ok = await self.prompts.request(ConfirmOptions(
            title="Invalid focus",
            message="Delete this record? It will not earn any coins.",
            confirm_label="Delete",
        ))
        if not ok:
            return False
        return ledger.delete_record(record_id, self.root)

    def redeem(self, item: str, cost: int) -> CoinRecord:
        return ledger.add_expense(ExpenseDetail(item=item), cost, self.root)

    def balance(self) -> int:
        return ledger.load_ledger(self.root).balance

    # ── Settings ──────────────────────────────────────────────

    def update_settings(self, settings: Settings) -> None:
        """Persist new settings; the rest length applies from the next break."""
        save_settings(settings, self.root)
        self.settings = settings
        self.scheduler.rest_duration_seconds = settings.rest_duration_seconds

    async def request_reset_settings(self) -> bool:
        ok = await self.prompts.request(ConfirmOptions(
            title="Restore defaults",
            message="Restore the default settings?",
            confirm_label="Restore",
        ))
        if ok:
            self.update_settings(Settings())
        return ok

    # ── Read side ─────────────────────────────────────────────

    def snapshot(self) -> dict[str, Any]:
        pending = self.prompts.pending
        return {
            **self.scheduler.snapshot(),
            "prompt": pending.options.to_dict() if pending else None,
            "lastTransition": self.last_transition.to_dict() if self.last_transition else None,
        }

    def _fire(self, hook_point: str, context: dict[str, Any]) -> None:
        if self._hooks_in_background:
            threading.Thread(
                target=run_hooks, args=(hook_point, context, self.root), daemon=True,
            ).start()
        else:
            run_hooks(hook_point, context, self.root)
