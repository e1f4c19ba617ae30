"""Typed dataclasses for the EggFocus data model.

All persisted models use from_dict/to_dict for JSON/YAML serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable


# ── Timer ─────────────────────────────────────────────────────


@dataclass
class TimerState:
    """A single countdown's own truth, in whole seconds."""

    is_open: bool = False
    is_active: bool = False
    was_active_before_pause: bool = False
    time_left: int = 0
    total_time: int = 0

    def progress(self) -> float:
        """Percentage of the countdown already elapsed."""
        if self.total_time == 0:
            return 0.0
        return (self.total_time - self.time_left) / self.total_time * 100

    def minutes_left(self) -> int:
        return self.time_left // 60

    def seconds_left(self) -> int:
        return self.time_left % 60

    def to_dict(self) -> dict[str, Any]:
        return {
            "isOpen": self.is_open,
            "isActive": self.is_active,
            "timeLeft": self.time_left,
            "totalTime": self.total_time,
        }


# ── Session plan ──────────────────────────────────────────────


@dataclass
class SessionPlan:
    task_name: str = ""
    is_active: bool = False
    session_start_time: datetime | None = None
    round_duration_seconds: int = 0
    last_round_duration_seconds: int = 0
    total_rounds: int = 0
    current_round: int = 0  # 1-indexed, 0 when inactive
    completed_rounds: int = 0
    total_focused_seconds: int = 0

    def is_last_round(self) -> bool:
        return self.total_rounds > 0 and self.current_round == self.total_rounds

    def duration_for_round(self, n: int) -> int:
        if n == self.total_rounds:
            return self.last_round_duration_seconds
        return self.round_duration_seconds

    def round_durations(self) -> list[int]:
        return [self.duration_for_round(n) for n in range(1, self.total_rounds + 1)]

    def focused_minutes(self) -> float:
        # Tenths of a minute, halves rounded up.
        return (self.total_focused_seconds + 3) // 6 / 10

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskName": self.task_name,
            "isActive": self.is_active,
            "sessionStartTime": (
                self.session_start_time.isoformat(timespec="seconds")
                if self.session_start_time else None
            ),
            "roundDurationSeconds": self.round_duration_seconds,
            "lastRoundDurationSeconds": self.last_round_duration_seconds,
            "totalRounds": self.total_rounds,
            "currentRound": self.current_round,
            "completedRounds": self.completed_rounds,
            "totalFocusedSeconds": self.total_focused_seconds,
        }


# ── Rewards ───────────────────────────────────────────────────


@dataclass
class RewardState:
    base_coins: int = 0
    bonus_coins: int = 0
    settled: bool = False  # bonus fixed for this session

    def total(self) -> int:
        return self.base_coins + self.bonus_coins

    def to_dict(self) -> dict[str, Any]:
        return {
            "baseCoins": self.base_coins,
            "bonusCoins": self.bonus_coins,
            "settled": self.settled,
        }


# ── Prompts ───────────────────────────────────────────────────


PROMPT_CONFIRM = "confirm"
PROMPT_PIN = "pin"


@dataclass
class ConfirmOptions:
    """What a blocking prompt shows, and whether it pauses the timers."""

    message: str = ""
    title: str = ""
    confirm_label: str = "OK"
    cancel_label: str = "Cancel"
    show_cancel_button: bool = True
    pause_timer: bool = True
    resume_on_confirm: bool = True  # False when confirming ends the session anyway
    kind: str = PROMPT_CONFIRM  # confirm, pin
    verify: Callable[[str], bool] | None = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "confirmLabel": self.confirm_label,
            "cancelLabel": self.cancel_label,
            "showCancelButton": self.show_cancel_button,
            "pauseTimer": self.pause_timer,
        }


# ── Transitions ───────────────────────────────────────────────


ROUND_STARTED = "round_started"
REST = "rest"
REST_FINISHED = "rest_finished"
SETTLEMENT = "settlement"
CLOSED = "closed"


@dataclass(frozen=True)
class Transition:
    """Envelope handed to presentation/ledger collaborators on every state change."""

    kind: str
    round: int = 0
    total_rounds: int = 0
    completed_rounds: int = 0
    round_coins: int = 0
    base_coins: int = 0
    bonus_coins: int = 0
    focused_minutes: float = 0.0
    forfeited: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "round": self.round,
            "totalRounds": self.total_rounds,
            "completedRounds": self.completed_rounds,
            "roundCoins": self.round_coins,
            "baseCoins": self.base_coins,
            "bonusCoins": self.bonus_coins,
            "focusedMinutes": self.focused_minutes,
            "forfeited": self.forfeited,
        }


# ── Ledger ────────────────────────────────────────────────────


@dataclass
class IncomeDetail:
    task_name: str = ""
    start_time: str = ""  # ISO 8601
    end_time: str = ""
    focused_minutes: float = 0.0
    base_coins: int = 0
    bonus_coins: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> IncomeDetail:
        return cls(
            task_name=str(d.get("taskName", d.get("task_name", ""))),
            start_time=str(d.get("startTime", d.get("start_time", ""))),
            end_time=str(d.get("endTime", d.get("end_time", ""))),
            focused_minutes=float(d.get("focusedMinutes", d.get("focused_minutes", 0.0))),
            base_coins=int(d.get("baseCoins", d.get("base_coins", 0))),
            bonus_coins=int(d.get("bonusCoins", d.get("bonus_coins", 0))),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskName": self.task_name,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "focusedMinutes": self.focused_minutes,
            "baseCoins": self.base_coins,
            "bonusCoins": self.bonus_coins,
        }


@dataclass
class ExpenseDetail:
    item: str = ""
    note: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ExpenseDetail:
        return cls(item=str(d.get("item", "")), note=str(d.get("note", "")))

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"item": self.item}
        if self.note:
            d["note"] = self.note
        return d


@dataclass
class CoinRecord:
    id: str = ""
    type: str = "income"  # income, expense
    status: str = "pending"  # pending, confirmed
    amount: int = 0
    created_at: str = ""  # ISO 8601
    confirmed_at: str | None = None
    detail: IncomeDetail | ExpenseDetail = field(default_factory=IncomeDetail)

    @property
    def day(self) -> str:
        return self.created_at[:10]

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CoinRecord:
        if not d or not isinstance(d, dict):
            return cls()
        rtype = str(d.get("type", "income"))
        raw_detail = d.get("detail") or {}
        detail: IncomeDetail | ExpenseDetail
        if rtype == "expense":
            detail = ExpenseDetail.from_dict(raw_detail)
        else:
            detail = IncomeDetail.from_dict(raw_detail)
        return cls(
            id=str(d.get("id", "")),
            type=rtype,
            status=str(d.get("status", "pending")),
            amount=int(d.get("amount", 0)),
            created_at=str(d.get("createdAt", d.get("created_at", ""))),
            confirmed_at=d.get("confirmedAt", d.get("confirmed_at")),
            detail=detail,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "status": self.status,
            "amount": self.amount,
            "createdAt": self.created_at,
            "confirmedAt": self.confirmed_at,
            "detail": self.detail.to_dict(),
        }


@dataclass
class Ledger:
    balance: int = 0
    records: list[CoinRecord] = field(default_factory=list)  # newest first

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Ledger:
        if not d or not isinstance(d, dict):
            return cls()
        return cls(
            balance=int(d.get("balance", 0) or 0),
            records=[CoinRecord.from_dict(r) for r in (d.get("records") or [])],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance": self.balance,
            "records": [r.to_dict() for r in self.records],
        }
