#!/usr/bin/env python3
"""EggFocus TUI — terminal focus timer powered by Textual."""

from __future__ import annotations

import logging
import sys

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, DataTable, Footer, Header, Input, Label, Static

from eggfocus import FocusController, configure_logging, load_ledger, records_by_date, workspace_root
from eggfocus.interruptions import ConfirmRequest
from eggfocus.models import PROMPT_PIN, REST, REST_FINISHED, SETTLEMENT, Transition
from eggfocus.scheduler import PHASE_IDLE, PHASE_REST, PHASE_ROUND, PHASE_SETTLEMENT

logger = logging.getLogger("eggfocus.tui")


CSS = """
#status { height: auto; padding: 1 2; border: round $accent; }
#options { height: auto; padding: 0 2; }
.section-title { text-style: bold; padding: 0 1; }
ConfirmScreen { align: center middle; }
#prompt-box { width: 60; height: auto; padding: 1 2; border: thick $error; background: $surface; }
#prompt-buttons { height: auto; margin-top: 1; }
"""


def format_clock(seconds: int) -> str:
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


# ── Prompt modal ───────────────────────────────────────────────


class ConfirmScreen(ModalScreen[None]):
    """Renders the coordinator's pending prompt; the coordinator owns the result."""

    def __init__(self, request: ConfirmRequest, controller: FocusController) -> None:
        super().__init__()
        self.request = request
        self.controller = controller

    def compose(self) -> ComposeResult:
        opts = self.request.options
        with Vertical(id="prompt-box"):
            yield Label(opts.title or "Notice", classes="section-title")
            yield Static(opts.message)
            if opts.kind == PROMPT_PIN:
                yield Input(placeholder="PIN", password=True, max_length=4, id="pin")
            with Horizontal(id="prompt-buttons"):
                yield Button(opts.confirm_label or "OK", variant="error", id="confirm")
                if opts.show_cancel_button:
                    yield Button(opts.cancel_label or "Cancel", id="cancel")

    @on(Button.Pressed, "#confirm")
    def _confirm(self) -> None:
        value = None
        if self.request.options.kind == PROMPT_PIN:
            value = self.query_one("#pin", Input).value
        self.controller.prompts.confirm(value)

    @on(Button.Pressed, "#cancel")
    def _cancel(self) -> None:
        self.controller.prompts.cancel()

    @on(Input.Submitted, "#pin")
    def _pin_submitted(self) -> None:
        self._confirm()


# ── Ledger ─────────────────────────────────────────────────────


class LedgerScreen(Screen[None]):
    """Coin records grouped by day; confirm or delete pending income."""

    BINDINGS = [
        Binding("y", "confirm_record", "Confirm"),
        Binding("x", "delete_record", "Invalid"),
        Binding("escape", "app.pop_screen", "Back"),
    ]

    def __init__(self, controller: FocusController) -> None:
        super().__init__()
        self.controller = controller

    def compose(self) -> ComposeResult:
        yield Header()
        yield Label("Coin records", classes="section-title")
        yield Static(id="ledger-summary")
        yield DataTable(id="ledger-table", cursor_type="row")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#ledger-table", DataTable)
        table.add_columns("Day", "Type", "Status", "Amount", "Detail")
        self.refresh_records()

    def refresh_records(self) -> None:
        data = load_ledger(self.controller.root)
        pending = sum(r.amount for r in data.records if r.type == "income" and r.status == "pending")
        self.query_one("#ledger-summary", Static).update(
            f"Balance: {data.balance}   Pending: {pending}"
        )
        table = self.query_one("#ledger-table", DataTable)
        table.clear()
        for day, records in records_by_date(data.records):
            for r in records:
                detail = r.detail.to_dict()
                label = detail.get("taskName") or detail.get("item", "")
                table.add_row(day, r.type, r.status, str(r.amount), label, key=r.id)

    def _selected_id(self) -> str | None:
        table = self.query_one("#ledger-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return row_key.value

    def action_confirm_record(self) -> None:
        record_id = self._selected_id()
        if record_id:
            self.run_worker(self._confirm(record_id), exclusive=True)

    def action_delete_record(self) -> None:
        record_id = self._selected_id()
        if record_id:
            self.run_worker(self._delete(record_id), exclusive=True)

    async def _confirm(self, record_id: str) -> None:
        if await self.controller.confirm_record(record_id):
            self.app.notify("Coins confirmed", title="Ledger")
        self.refresh_records()

    async def _delete(self, record_id: str) -> None:
        if await self.controller.delete_record(record_id):
            self.app.notify("Record removed", title="Ledger")
        self.refresh_records()


# ── Main app ───────────────────────────────────────────────────


class EggFocusApp(App):
    """EggFocus — multi-round focus timer."""

    TITLE = "EggFocus"
    CSS = CSS

    BINDINGS = [
        Binding("1", "select_option(0)", "Preset 1", show=False),
        Binding("2", "select_option(1)", "Preset 2", show=False),
        Binding("3", "select_option(2)", "Preset 3", show=False),
        Binding("4", "select_option(3)", "Preset 4", show=False),
        Binding("ctrl+s", "start", "Start"),
        Binding("c", "cancel_session", "Give up"),
        Binding("f", "finish_early", "Finish"),
        Binding("n", "next_round", "Next round"),
        Binding("a", "acknowledge", "Collect"),
        Binding("l", "show_ledger", "Ledger"),
        Binding("q", "quit_app", "Quit"),
    ]

    selected_option: reactive[int] = reactive(0)

    def __init__(self) -> None:
        super().__init__()
        self.controller = FocusController()
        self._prompt_screen: ConfirmScreen | None = None

    def check_action(self, action: str, parameters: tuple[object, ...]) -> bool | None:
        """Only offer the bindings that make sense in the current phase."""
        phase = self.controller.scheduler.phase
        if action == "start":
            return True if phase == PHASE_IDLE else None
        if action in ("cancel_session", "finish_early"):
            return True if phase in (PHASE_ROUND, PHASE_REST) else None
        if action == "next_round":
            return True if phase == PHASE_REST else None
        if action == "acknowledge":
            return True if phase == PHASE_SETTLEMENT else None
        return True

    def compose(self) -> ComposeResult:
        yield Header()
        yield Input(placeholder="What are you focusing on?", id="task-name")
        yield Static(id="options")
        yield Static(id="status")
        yield Footer()

    def on_mount(self) -> None:
        self.controller.prompts.subscribe(self._on_prompt_changed)
        self.set_interval(1.0, self._on_tick)
        self._refresh_status()

    # -- driver --

    def _on_tick(self) -> None:
        transition = self.controller.tick()
        if transition is not None:
            self._announce(transition)
            self.refresh_bindings()
        self._refresh_status()

    def _announce(self, t: Transition) -> None:
        if t.kind == REST:
            self.notify(f"Round {t.round}/{t.total_rounds} done (+{t.round_coins}). Take a break!",
                        title="Rest")
        elif t.kind == REST_FINISHED:
            self.notify("Break is over. Press n for the next round.", title="Rest")
        elif t.kind == SETTLEMENT:
            self.notify(f"{t.base_coins} coins + {t.bonus_coins} bonus. Press a to collect.",
                        title="Settlement")

    def _on_prompt_changed(self, request: ConfirmRequest | None) -> None:
        if self._prompt_screen is not None:
            if self.screen is self._prompt_screen:
                self.pop_screen()
            self._prompt_screen = None
        if request is not None:
            self._prompt_screen = ConfirmScreen(request, self.controller)
            self.push_screen(self._prompt_screen)

    # -- rendering --

    def _refresh_status(self) -> None:
        options = self.controller.settings.task_options
        parts = []
        for i, minutes in enumerate(options):
            marker = ">" if i == self.selected_option else " "
            parts.append(f"{marker}[{i + 1}] {minutes:g} min")
        self.query_one("#options", Static).update("   ".join(parts))

        sched = self.controller.scheduler
        plan = sched.plan
        rewards = sched.rewards_state
        phase = sched.phase
        if phase == PHASE_IDLE:
            text = f"Ready. Balance: {self.controller.balance()} coins"
        elif phase == PHASE_ROUND:
            timer = sched.timer_state
            paused = "" if timer.is_active else "  (paused)"
            text = (
                f"{plan.task_name}: round {plan.current_round}/{plan.total_rounds}"
                f"   {format_clock(timer.time_left)}{paused}\n"
                f"Coins so far: {rewards.base_coins}"
            )
        elif phase == PHASE_REST:
            rest = self.controller.rest_timer.state
            text = f"Break {format_clock(rest.time_left)} before round {plan.current_round + 1}"
        else:
            text = (
                f"Done! {plan.focused_minutes()} min focused\n"
                f"{rewards.base_coins} coins + {rewards.bonus_coins} bonus"
            )
        self.query_one("#status", Static).update(text)

    def watch_selected_option(self) -> None:
        self._refresh_status()

    # -- actions --

    def action_select_option(self, index: int) -> None:
        if index < len(self.controller.settings.task_options):
            self.selected_option = index

    def action_start(self) -> None:
        name = self.query_one("#task-name", Input).value
        minutes = self.controller.settings.task_options[self.selected_option]
        try:
            self.controller.start(name, minutes)
        except ValueError as e:
            self.notify(str(e), title="Cannot start", severity="warning")
            return
        self.refresh_bindings()
        self._refresh_status()

    def action_cancel_session(self) -> None:
        self.run_worker(self.controller.request_cancel(), exclusive=True)

    def action_finish_early(self) -> None:
        self.run_worker(self.controller.request_finish_early(), exclusive=True)

    def action_next_round(self) -> None:
        self.run_worker(self.controller.request_skip_rest(), exclusive=True)

    def action_acknowledge(self) -> None:
        record = self.controller.acknowledge_settlement()
        if record is not None:
            self.notify(f"{record.amount} coins waiting for confirmation", title="Saved")
        self.refresh_bindings()
        self._refresh_status()

    def action_show_ledger(self) -> None:
        self.push_screen(LedgerScreen(self.controller))

    def action_quit_app(self) -> None:
        if self.controller.scheduler.plan.is_active:
            logger.info("Quitting with an active session; its reward is forfeited")
        self.exit()


# ── Entry point ────────────────────────────────────────────────


def main() -> None:
    root = workspace_root()
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        print(f"Cannot create data directory {root}: {e}")
        print("Set EGGFOCUS_ROOT to a writable directory.")
        sys.exit(1)

    configure_logging(root)
    app = EggFocusApp()
    app.run()


if __name__ == "__main__":
    main()
