"""Data root, path helpers and logging setup for EggFocus."""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def workspace_root() -> Path:
    """Get the data root (holds settings.yaml, ledger.json, ...)."""
    return Path(
        os.environ.get("EGGFOCUS_ROOT", str(Path.home() / ".eggfocus"))
    ).expanduser().resolve()


def local_timezone() -> ZoneInfo:
    """Timezone used to stamp sessions and group ledger records by day."""
    name = os.environ.get("EGGFOCUS_TZ", "")
    if name:
        try:
            return ZoneInfo(name)
        except (KeyError, ValueError):
            logging.getLogger(__name__).warning("Unknown timezone %r, using UTC", name)
    return ZoneInfo("UTC")


def now_local() -> datetime:
    return datetime.now(local_timezone())


# ── Path helpers ──────────────────────────────────────────────

def settings_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "settings.yaml"


def ledger_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "ledger.json"


def auth_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "auth.json"


def hooks_config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "hooks.yaml"


def log_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "eggfocus.log"


# ── Logging ───────────────────────────────────────────────────

def configure_logging(
    root: Path | None = None,
    level: str | None = None,
    to_file: bool = True,
) -> None:
    """Install root handlers for a host process.

    The Textual host owns the terminal, so it logs to ``<root>/eggfocus.log``;
    the web host passes ``to_file=False`` and logs to stderr.
    """
    level_name = (level or os.environ.get("EGGFOCUS_LOG_LEVEL", DEFAULT_LOG_LEVEL)).upper()
    if to_file:
        path = log_path(root)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(path, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, level_name, logging.INFO))
