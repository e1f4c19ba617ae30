"""EggFocus core library — multi-round focus sessions with coin rewards.

Public API re-exports for convenient imports:
    from eggfocus import FocusController, SessionScheduler, TimerEngine, ...
"""

# Workspace & paths
from eggfocus.workspace import (
    workspace_root,
    now_local,
    settings_path,
    ledger_path,
    auth_path,
    hooks_config_path,
    configure_logging,
)

# File I/O
from eggfocus.fileio import (
    read_json,
    read_yaml,
    write_json_atomic,
    write_yaml_atomic,
)

# Engine
from eggfocus.timer import TimerEngine
from eggfocus.rewards import RewardCalculator, base_coins_for, roll_bonus
from eggfocus.interruptions import ConfirmRequest, InterruptionCoordinator
from eggfocus.scheduler import SessionScheduler, minutes_to_seconds, plan_rounds

# Settings, ledger, hooks
from eggfocus.settings import Settings, load_settings, save_settings, validate_settings
from eggfocus.ledger import (
    load_ledger,
    add_pending_income,
    add_expense,
    confirm_record,
    delete_record,
    pending_records,
    income_records,
    expense_records,
    pending_total,
    records_by_date,
)
from eggfocus.hooks import run_hooks, load_hooks_config, transition_hook

# Host glue
from eggfocus.controller import FocusController

# Models
from eggfocus.models import (
    TimerState,
    SessionPlan,
    RewardState,
    ConfirmOptions,
    Transition,
    CoinRecord,
    IncomeDetail,
    ExpenseDetail,
    Ledger,
)
