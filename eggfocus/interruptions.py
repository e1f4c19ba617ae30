"""Blocking yes/no and PIN prompts that pause accrual while pending.

The coordinator is the only component allowed to pause or resume timers on
behalf of a prompt. When the prompt resolves, it resumes the timers *it*
paused and no others. A prompt whose confirmation ends the session sets
``resume_on_confirm=False``; then only a decline resumes, so no second
accrues between the answer and the caller acting on it.

At most one prompt is pending. A new request pre-empts the old one, which
resolves to False; callers treat that the same as the user declining.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from eggfocus.models import PROMPT_PIN, ConfirmOptions
from eggfocus.timer import TimerEngine

logger = logging.getLogger(__name__)


@dataclass
class ConfirmRequest:
    options: ConfirmOptions
    future: asyncio.Future[bool]
    paused: list[TimerEngine] = field(default_factory=list)


class InterruptionCoordinator:
    def __init__(
        self,
        timers: Iterable[TimerEngine],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._timers = list(timers)
        self._loop = loop
        self._pending: ConfirmRequest | None = None
        self._listeners: list[Callable[[ConfirmRequest | None], None]] = []

    @property
    def pending(self) -> ConfirmRequest | None:
        return self._pending

    def subscribe(self, listener: Callable[[ConfirmRequest | None], None]) -> None:
        """Call ``listener`` whenever the pending prompt is installed or cleared."""
        self._listeners.append(listener)

    def request(self, options: ConfirmOptions | None = None) -> asyncio.Future[bool]:
        options = options or ConfirmOptions()
        if self._pending is not None:
            logger.debug("Prompt %r superseded by %r", self._pending.options.title, options.title)
            self._resolve(False, notify=False)

        loop = self._loop or asyncio.get_running_loop()
        req = ConfirmRequest(options=options, future=loop.create_future())
        if options.pause_timer:
            for timer in self._timers:
                if timer.is_active:
                    timer.pause()
                    req.paused.append(timer)
        self._pending = req
        self._notify()
        return req.future

    def confirm(self, value: str | None = None) -> None:
        """Accept the pending prompt. PIN prompts resolve to whether ``value`` verifies."""
        req = self._pending
        if req is None:
            logger.debug("confirm() with no pending prompt")
            return
        if req.options.kind == PROMPT_PIN:
            verify = req.options.verify
            result = bool(value) and verify is not None and verify(value)
        else:
            result = True
        self._resolve(result)

    def cancel(self) -> None:
        if self._pending is None:
            logger.debug("cancel() with no pending prompt")
            return
        self._resolve(False)

    def _resolve(self, result: bool, notify: bool = True) -> None:
        req = self._pending
        assert req is not None
        self._pending = None
        if not req.future.done():
            req.future.set_result(result)
        if not result or req.options.resume_on_confirm:
            for timer in req.paused:
                timer.resume()
        if notify:
            self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._pending)
            except Exception:
                logger.exception("Prompt listener failed")
