"""Plugin/hook system for EggFocus.

Hooks run shell commands when a session changes state, e.g. to play a
sound or post a notification. Configured via hooks.yaml in the data root.

Hook points:
- on_session_start, on_round_complete, on_rest_finished
- on_settlement, on_cancel
- on_ledger_confirm
"""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from pathlib import Path
from typing import Any, Callable

from eggfocus.fileio import read_yaml
from eggfocus.models import CLOSED, REST, REST_FINISHED, ROUND_STARTED, SETTLEMENT, Transition
from eggfocus.workspace import hooks_config_path, workspace_root

logger = logging.getLogger(__name__)

VALID_HOOK_POINTS = {
    "on_session_start",
    "on_round_complete",
    "on_rest_finished",
    "on_settlement",
    "on_cancel",
    "on_ledger_confirm",
}

DEFAULT_TIMEOUT = 30


def load_hooks_config(root: Path | None = None) -> dict[str, Any]:
    """Load hooks configuration from hooks.yaml."""
    path = hooks_config_path(root)
    if not path.exists():
        return {}
    return read_yaml(path)


def run_hooks(
    hook_point: str,
    context: dict[str, Any],
    root: Path | None = None,
) -> list[dict[str, Any]]:
    """Run all hooks registered for a given hook point.

    Context is passed as JSON via stdin to each hook subprocess.
    Returns list of results with stdout/stderr and exit codes.
    """
    if hook_point not in VALID_HOOK_POINTS:
        logger.debug("Unknown hook point %s", hook_point)
        return []

    if root is None:
        root = workspace_root()

    hooks = load_hooks_config(root).get(hook_point, [])
    if not hooks or not isinstance(hooks, list):
        return []

    results = []
    context_json = json.dumps({"hookPoint": hook_point, **context}, ensure_ascii=False)

    for hook in hooks:
        if isinstance(hook, str):
            command = hook
            timeout = DEFAULT_TIMEOUT
        elif isinstance(hook, dict):
            command = hook.get("command", "")
            timeout = hook.get("timeout", DEFAULT_TIMEOUT)
        else:
            continue

        if not command:
            continue

        result: dict[str, Any] = {"command": command, "hook_point": hook_point}
        try:
            proc = subprocess.run(
                command,
                shell=True,
                input=context_json,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(root),
            )
            result["exit_code"] = proc.returncode
            result["stdout"] = proc.stdout[:4096]
            result["stderr"] = proc.stderr[:4096]
            if proc.returncode != 0:
                logger.warning("Hook %r exited %s", command, proc.returncode)
        except subprocess.TimeoutExpired:
            result["exit_code"] = -1
            result["error"] = f"Hook timed out after {timeout}s"
            logger.warning("Hook %r timed out after %ss", command, timeout)
        except OSError as e:
            result["exit_code"] = -1
            result["error"] = str(e)
            logger.warning("Hook %r failed: %s", command, e)

        results.append(result)

    return results


def hook_point_for(transition: Transition) -> str | None:
    if transition.kind == ROUND_STARTED:
        return "on_session_start" if transition.round == 1 else None
    if transition.kind == REST:
        return "on_round_complete"
    if transition.kind == REST_FINISHED:
        return "on_rest_finished"
    if transition.kind == SETTLEMENT:
        return "on_settlement"
    if transition.kind == CLOSED and transition.forfeited:
        return "on_cancel"
    return None


def transition_hook(
    root: Path | None = None,
    background: bool = True,
) -> Callable[[Transition], None]:
    """Scheduler listener that runs the hooks mapped to each transition.

    With ``background`` the subprocesses run on a daemon thread so a slow
    hook never holds up the one-second driver.
    """
    def _listener(transition: Transition) -> None:
        point = hook_point_for(transition)
        if point is None:
            return
        if background:
            threading.Thread(
                target=run_hooks,
                args=(point, transition.to_dict(), root),
                name=f"hook-{point}",
                daemon=True,
            ).start()
        else:
            run_hooks(point, transition.to_dict(), root)
    return _listener
