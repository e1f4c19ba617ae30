"""Coin ledger: pending income, confirmations and expenses.

Settled sessions land here as *pending* income. A guardian confirms them,
which credits the balance, or deletes them as invalid focus. Redemptions
are recorded as already-confirmed expenses.
"""

from __future__ import annotations

import logging
import secrets
import string
import time
from pathlib import Path

from eggfocus.fileio import read_json, write_json_atomic
from eggfocus.models import CoinRecord, ExpenseDetail, IncomeDetail, Ledger
from eggfocus.workspace import ledger_path, now_local

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def generate_record_id() -> str:
    """``<epoch-ms>-<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


def _now_str() -> str:
    return now_local().isoformat(timespec="seconds")


def load_ledger(root: Path | None = None) -> Ledger:
    return Ledger.from_dict(read_json(ledger_path(root)))


def save_ledger(ledger: Ledger, root: Path | None = None) -> None:
    write_json_atomic(ledger_path(root), ledger.to_dict())


def find_record(ledger: Ledger, record_id: str) -> CoinRecord | None:
    for r in ledger.records:
        if r.id == record_id:
            return r
    return None


# ── Mutations ─────────────────────────────────────────────────


def add_pending_income(detail: IncomeDetail, amount: int, root: Path | None = None) -> CoinRecord:
    """Record a settled session awaiting guardian confirmation."""
    ledger = load_ledger(root)
    record = CoinRecord(
        id=generate_record_id(),
        type="income",
        status="pending",
        amount=amount,
        created_at=_now_str(),
        detail=detail,
    )
    ledger.records.insert(0, record)
    save_ledger(ledger, root)
    logger.info("Pending income %s: %s coins for %r", record.id, amount, detail.task_name)
    return record


def add_expense(detail: ExpenseDetail, amount: int, root: Path | None = None) -> CoinRecord:
    """Spend coins from the balance. Raises ValueError if it cannot cover it."""
    if amount <= 0:
        raise ValueError(f"Expense amount must be positive, got {amount}")
    ledger = load_ledger(root)
    if ledger.balance < amount:
        raise ValueError(f"Insufficient balance: {ledger.balance} < {amount}")
    now = _now_str()
    record = CoinRecord(
        id=generate_record_id(),
        type="expense",
        status="confirmed",
        amount=amount,
        created_at=now,
        confirmed_at=now,
        detail=detail,
    )
    ledger.records.insert(0, record)
    ledger.balance -= amount
    save_ledger(ledger, root)
    logger.info("Expense %s: %s coins for %r", record.id, amount, detail.item)
    return record


def confirm_record(record_id: str, root: Path | None = None) -> CoinRecord:
    """Confirm pending income and credit the balance. Idempotent."""
    ledger = load_ledger(root)
    record = find_record(ledger, record_id)
    if record is None:
        raise KeyError(record_id)
    if record.type == "income" and record.status == "pending":
        record.status = "confirmed"
        record.confirmed_at = _now_str()
        ledger.balance += record.amount
        save_ledger(ledger, root)
        logger.info("Confirmed %s (+%s)", record_id, record.amount)
    return record


def delete_record(record_id: str, root: Path | None = None) -> bool:
    """Drop a record. Only pending income can be deleted."""
    ledger = load_ledger(root)
    record = find_record(ledger, record_id)
    if record is None or record.status != "pending":
        return False
    ledger.records.remove(record)
    save_ledger(ledger, root)
    logger.info("Deleted pending record %s", record_id)
    return True


# ── Queries ───────────────────────────────────────────────────


def pending_records(ledger: Ledger) -> list[CoinRecord]:
    return [r for r in ledger.records if r.type == "income" and r.status == "pending"]


def income_records(ledger: Ledger) -> list[CoinRecord]:
    return [r for r in ledger.records if r.type == "income" and r.status == "confirmed"]


def expense_records(ledger: Ledger) -> list[CoinRecord]:
    return [r for r in ledger.records if r.type == "expense"]


def pending_total(ledger: Ledger) -> int:
    return sum(r.amount for r in pending_records(ledger))


def records_by_date(records: list[CoinRecord]) -> list[tuple[str, list[CoinRecord]]]:
    """Group records by creation day, newest day first."""
    grouped: dict[str, list[CoinRecord]] = {}
    for r in records:
        grouped.setdefault(r.day, []).append(r)
    return sorted(grouped.items(), key=lambda kv: kv[0], reverse=True)
