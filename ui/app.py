"""EggFocus web API — JSON front end over one in-process FocusController.

A background task started in the lifespan ticks the controller once per
second. Actions that need confirmation (give up, finish early, skip rest,
ledger confirm/delete, reset settings) start an asyncio task that waits on
the prompt coordinator; the client then answers via /api/prompt/*.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import secrets
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Coroutine

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from eggfocus import (
    FocusController,
    Settings,
    configure_logging,
    load_ledger,
    pending_total,
    records_by_date,
    validate_settings,
)
from eggfocus import auth
from eggfocus.ledger import find_record
from eggfocus.scheduler import PHASE_REST

logger = logging.getLogger("eggfocus.web")

ACTION_TIMEOUT = 1.0


def _tick_interval() -> float:
    try:
        return float(os.environ.get("EGGFOCUS_TICK_SECONDS", "1.0"))
    except ValueError:
        return 1.0


async def _drive(controller: FocusController, interval: float) -> None:
    """One-second wall-clock driver; keeps running while prompts are pending."""
    while True:
        await asyncio.sleep(interval)
        try:
            controller.tick()
        except Exception:
            logger.exception("Tick failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if not logging.getLogger().handlers:
        configure_logging(to_file=False)
    app.state.controller = FocusController()
    app.state.actions = set()
    interval = _tick_interval()
    driver = asyncio.create_task(_drive(app.state.controller, interval)) if interval > 0 else None
    app.state.manual_ticks = driver is None
    yield
    if driver is not None:
        driver.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await driver


app = FastAPI(title="EggFocus", version="0.1.0", lifespan=lifespan)


# ── Auth ──────────────────────────────────────────────────────

security = HTTPBasic(auto_error=False)


def get_current_user(credentials: HTTPBasicCredentials | None = Depends(security)) -> str:
    expected_username = os.environ.get("EGGFOCUS_USERNAME", "")
    expected_password = os.environ.get("EGGFOCUS_PASSWORD", "")

    if not expected_username or not expected_password:
        return "guest"

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )

    correct_username = secrets.compare_digest(credentials.username.encode("utf-8"), expected_username.encode("utf-8"))
    correct_password = secrets.compare_digest(credentials.password.encode("utf-8"), expected_password.encode("utf-8"))

    if not (correct_username and correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )

    return credentials.username


def get_controller(request: Request) -> FocusController:
    return request.app.state.controller


# ── Action plumbing ───────────────────────────────────────────


async def _start_action(request: Request, coro: Coroutine[Any, Any, bool]) -> None:
    """Run a confirm-gated action in the background and let it raise its prompt."""
    actions: set[asyncio.Task[bool]] = request.app.state.actions
    task = asyncio.create_task(coro)
    actions.add(task)
    task.add_done_callback(actions.discard)
    await asyncio.sleep(0)


async def _settle_actions(request: Request) -> None:
    actions: set[asyncio.Task[bool]] = request.app.state.actions
    if actions:
        await asyncio.wait(list(actions), timeout=ACTION_TIMEOUT)


# ── Session ───────────────────────────────────────────────────


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/api/state")
async def api_state(controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    return controller.snapshot()


@app.post("/api/session")
async def api_start_session(
    payload: dict[str, Any] = Body(...),
    controller: FocusController = Depends(get_controller),
    username: str = Depends(get_current_user),
) -> dict[str, Any]:
    """Start a session: {"taskName": str, "minutes": number}."""
    try:
        minutes = float(payload.get("minutes", 0))
        transition = controller.start(str(payload.get("taskName", "")), minutes)
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"ok": True, "transition": transition.to_dict(), "state": controller.snapshot()}


@app.post("/api/tick")
async def api_tick(request: Request, controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Advance one second by hand; only allowed when the background driver is off."""
    if not request.app.state.manual_ticks:
        raise HTTPException(status_code=409, detail="Ticks are driven by the server clock")
    transition = controller.tick()
    return {"transition": transition.to_dict() if transition else None, "state": controller.snapshot()}


@app.post("/api/session/cancel")
async def api_cancel_session(request: Request, controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    if not controller.scheduler.plan.is_active:
        raise HTTPException(status_code=409, detail="No active session")
    await _start_action(request, controller.request_cancel())
    return controller.snapshot()


@app.post("/api/session/finish")
async def api_finish_early(request: Request, controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    if not controller.scheduler.plan.is_active:
        raise HTTPException(status_code=409, detail="No active session")
    await _start_action(request, controller.request_finish_early())
    return controller.snapshot()


@app.post("/api/rest/skip")
async def api_skip_rest(request: Request, controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    if controller.scheduler.phase != PHASE_REST:
        raise HTTPException(status_code=409, detail="Not resting")
    await _start_action(request, controller.request_skip_rest())
    if controller.prompts.pending is None:
        await _settle_actions(request)
    return controller.snapshot()


@app.post("/api/settlement/ack")
async def api_acknowledge(controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    record = controller.acknowledge_settlement()
    if record is None:
        raise HTTPException(status_code=409, detail="Nothing to settle")
    return {"ok": True, "record": record.to_dict(), "state": controller.snapshot()}


# ── Prompts ───────────────────────────────────────────────────


@app.get("/api/prompt")
async def api_prompt(controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    pending = controller.prompts.pending
    return {"prompt": pending.options.to_dict() if pending else None}


@app.post("/api/prompt/confirm")
async def api_prompt_confirm(
    request: Request,
    payload: dict[str, Any] = Body(default={}),
    controller: FocusController = Depends(get_controller),
    username: str = Depends(get_current_user),
) -> dict[str, Any]:
    if controller.prompts.pending is None:
        raise HTTPException(status_code=409, detail="No pending prompt")
    pin = payload.get("pin")
    controller.prompts.confirm(str(pin) if pin is not None else None)
    await _settle_actions(request)
    return controller.snapshot()


@app.post("/api/prompt/cancel")
async def api_prompt_cancel(request: Request, controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    if controller.prompts.pending is None:
        raise HTTPException(status_code=409, detail="No pending prompt")
    controller.prompts.cancel()
    await _settle_actions(request)
    return controller.snapshot()


# ── Ledger ────────────────────────────────────────────────────


@app.get("/api/ledger")
async def api_ledger(controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    data = load_ledger(controller.root)
    return {
        "balance": data.balance,
        "pendingTotal": pending_total(data),
        "days": [
            {"date": day, "records": [r.to_dict() for r in records]}
            for day, records in records_by_date(data.records)
        ],
    }


@app.post("/api/ledger/{record_id}/confirm")
async def api_ledger_confirm(record_id: str, request: Request, controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    if find_record(load_ledger(controller.root), record_id) is None:
        raise HTTPException(status_code=404, detail=f"Record not found: {record_id}")
    await _start_action(request, controller.confirm_record(record_id))
    if controller.prompts.pending is None:
        await _settle_actions(request)
    return {"balance": controller.balance(), "state": controller.snapshot()}


@app.delete("/api/ledger/{record_id}")
async def api_ledger_delete(record_id: str, request: Request, controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    if find_record(load_ledger(controller.root), record_id) is None:
        raise HTTPException(status_code=404, detail=f"Record not found: {record_id}")
    await _start_action(request, controller.delete_record(record_id))
    return controller.snapshot()


@app.post("/api/ledger/redeem")
async def api_redeem(payload: dict[str, Any] = Body(...), controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Spend coins: {"item": str, "cost": int}."""
    try:
        record = controller.redeem(str(payload.get("item", "")), int(payload.get("cost", 0)))
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "record": record.to_dict(), "balance": controller.balance()}


# ── Settings & PIN ────────────────────────────────────────────


@app.get("/api/settings")
async def api_get_settings(controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    return controller.settings.to_dict()


@app.put("/api/settings")
async def api_put_settings(payload: dict[str, Any] = Body(...), controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    merged = {**controller.settings.to_dict(), **payload}
    errors = validate_settings(merged)
    if errors:
        raise HTTPException(status_code=422, detail=errors)
    controller.update_settings(Settings.from_dict(merged))
    return controller.settings.to_dict()


@app.post("/api/settings/reset")
async def api_reset_settings(request: Request, controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    await _start_action(request, controller.request_reset_settings())
    return controller.snapshot()


@app.put("/api/pin")
async def api_set_pin(payload: dict[str, Any] = Body(...), controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    """Set or change the guardian PIN: {"pin": "1234", "currentPin": "..."}."""
    if auth.is_pin_set(controller.root) and not auth.verify_pin(str(payload.get("currentPin", "")), controller.root):
        raise HTTPException(status_code=403, detail="Current PIN is incorrect")
    try:
        auth.set_pin(str(payload.get("pin", "")), controller.root)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"ok": True}


@app.delete("/api/pin")
async def api_clear_pin(payload: dict[str, Any] = Body(default={}), controller: FocusController = Depends(get_controller), username: str = Depends(get_current_user)) -> dict[str, Any]:
    if auth.is_pin_set(controller.root) and not auth.verify_pin(str(payload.get("currentPin", "")), controller.root):
        raise HTTPException(status_code=403, detail="Current PIN is incorrect")
    auth.clear_pin(controller.root)
    return {"ok": True}
