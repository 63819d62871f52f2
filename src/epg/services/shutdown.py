"""
epg.services.shutdown

Signal-driven shutdown coordination.

Responsibilities:
- Race the serve loop against termination signals (first one wins).
- Keep termination signals captured until teardown has finished.
- Drain the HTTP listener, then tear the engine down exactly once.
- Surface a teardown failure as the final error.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

from epg.observability.logging import get_logger

log = get_logger(__name__)

Trigger = Callable[[], Awaitable[Any]]


class Servable(Protocol):
    should_exit: bool

    async def serve(self) -> None: ...


def default_signals() -> list[signal.Signals]:
    signals = [signal.SIGINT]
    if hasattr(signal, "SIGTERM"):
        signals.append(signal.SIGTERM)
    return signals


class SignalCapture:
    """
    Owns the process handlers for a set of termination signals.

    The first delivery resolves `wait()`; later deliveries are logged and
    ignored. Handlers stay installed until `remove()`, so a repeated Ctrl+C
    during the drain cannot fall through to the default action and kill the
    process before the engine is stopped.
    """

    def __init__(self, signals: Sequence[signal.Signals]) -> None:
        self._signals = list(signals)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._received = asyncio.Event()
        self._first: signal.Signals | None = None
        self._loop_handlers: list[signal.Signals] = []
        self._previous: dict[signal.Signals, Any] = {}

    @property
    def received(self) -> signal.Signals | None:
        return self._first

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        for sig in self._signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except NotImplementedError:
                # Event loops without signal support only deliver Ctrl+C;
                # any other signal is simply never observed.
                if sig is signal.SIGINT:
                    self._previous[sig] = signal.signal(sig, self._threadsafe_handler(loop))
                continue
            self._loop_handlers.append(sig)

    def remove(self) -> None:
        if self._loop is not None:
            for sig in self._loop_handlers:
                self._loop.remove_signal_handler(sig)
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)
        self._loop_handlers.clear()
        self._previous.clear()
        self._loop = None

    def _threadsafe_handler(self, loop: asyncio.AbstractEventLoop) -> Callable[[int, Any], None]:
        def handler(signum: int, _frame: Any) -> None:
            loop.call_soon_threadsafe(self._on_signal, signal.Signals(signum))

        return handler

    def _on_signal(self, sig: signal.Signals) -> None:
        if self._first is not None:
            log.warning("signal_ignored", signal=sig.name, shutdown_trigger=self._first.name)
            return
        self._first = sig
        self._received.set()

    async def wait(self) -> signal.Signals:
        await self._received.wait()
        assert self._first is not None
        return self._first


class ShutdownCoordinator:
    """
    Runs the server until a trigger fires, then drains it and tears down.

    The serve loop and each trigger run as separate tasks combined with
    FIRST_COMPLETED; whichever finishes first retires the others, so exactly
    one shutdown sequence runs.

    Without explicit triggers the coordinator captures `signals` (SIGINT and
    SIGTERM by default) for the whole of `run()`, teardown included.
    """

    def __init__(
        self,
        *,
        server: Servable,
        teardown: Callable[[], Awaitable[None]],
        triggers: Sequence[Trigger] | None = None,
        signals: Sequence[signal.Signals] | None = None,
    ) -> None:
        self._server = server
        self._teardown = teardown
        self._capture: SignalCapture | None = None
        if triggers is None:
            self._capture = SignalCapture(signals if signals is not None else default_signals())
            triggers = [self._capture.wait]
        self._triggers = list(triggers)
        self._teardown_started = False

    async def run(self) -> None:
        if self._capture is not None:
            self._capture.install(asyncio.get_running_loop())
        try:
            await self._run()
        finally:
            if self._capture is not None:
                self._capture.remove()

    async def _run(self) -> None:
        serve_task = asyncio.create_task(self._server.serve(), name="epg-serve")
        watchers = [
            asyncio.create_task(trigger(), name=f"epg-shutdown-trigger-{i}")
            for i, trigger in enumerate(self._triggers)
        ]

        try:
            done, _ = await asyncio.wait(
                {serve_task, *watchers},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for watcher in watchers:
                watcher.cancel()
            await asyncio.gather(*watchers, return_exceptions=True)

        try:
            if serve_task not in done:
                fired = next(w for w in watchers if w in done)
                log.info("shutdown_requested", trigger=_describe_trigger(fired))
                # uvicorn stops accepting, then waits for in-flight requests.
                self._server.should_exit = True
            else:
                log.warning("server_exited")
            await serve_task
            log.info("drain_complete")
        finally:
            await self._teardown_once()

    async def _teardown_once(self) -> None:
        if self._teardown_started:
            return
        self._teardown_started = True
        await self._teardown()


def _describe_trigger(task: asyncio.Task) -> str:
    if task.cancelled() or task.exception() is not None:
        return task.get_name()
    result = task.result()
    if isinstance(result, signal.Signals):
        return result.name
    return task.get_name()


# --- Module Notes -----------------------------------------------------------
# There is no drain timeout; uvicorn's graceful shutdown decides when serving ends.
