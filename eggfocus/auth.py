"""Guardian PIN protecting ledger confirmations."""

from __future__ import annotations

import hashlib
import secrets
from pathlib import Path

from eggfocus.fileio import read_json, write_json_atomic
from eggfocus.workspace import auth_path

PIN_LENGTH = 4


def _hash(pin: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{pin}".encode("utf-8")).hexdigest()


def validate_pin(pin: str) -> None:
    if len(pin) != PIN_LENGTH or not pin.isdigit():
        raise ValueError(f"PIN must be exactly {PIN_LENGTH} digits")


def is_pin_set(root: Path | None = None) -> bool:
    return bool(read_json(auth_path(root)).get("pinHash"))


def set_pin(pin: str, root: Path | None = None) -> None:
    validate_pin(pin)
    salt = secrets.token_hex(8)
    write_json_atomic(auth_path(root), {"pinHash": _hash(pin, salt), "salt": salt})


def verify_pin(pin: str, root: Path | None = None) -> bool:
    data = read_json(auth_path(root))
    expected = data.get("pinHash")
    if not expected:
        return False
    actual = _hash(pin, str(data.get("salt", "")))
    return secrets.compare_digest(actual.encode("utf-8"), str(expected).encode("utf-8"))


def clear_pin(root: Path | None = None) -> None:
    write_json_atomic(auth_path(root), {})
