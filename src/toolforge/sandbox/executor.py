"""Sandboxed snippet execution on an embedded QuickJS engine.

Every call builds a fresh ``quickjs.Context`` (its own runtime, heap and
globals), installs the prelude, evaluates the snippet, invokes its
function once and tears everything down. Nothing survives between calls.

The engine runs on a worker thread. CPU-bound snippets are stopped by
the engine's time limit. Asynchronous work is driven by a host loop
that checks the deadline between steps: it runs promise jobs, forwards
queued ``console`` lines to logging, performs queued ``fetch`` requests
with httpx and fires timers. The engine never calls into Python, so the
time limit stays in force for every step. An outer ``asyncio.wait_for``
backs both up.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import threading
import time
from collections.abc import Sequence
from contextlib import ExitStack
from typing import TYPE_CHECKING, Any

import quickjs

from toolforge.config.schema import ToolforgeConfig
from toolforge.core.errors import (
    ExecutionTimeoutError,
    SandboxError,
    SandboxSetupError,
    SnippetParseError,
    SnippetThrewError,
)
from toolforge.sandbox.capabilities import ConsoleCapability, FetchCapability
from toolforge.sandbox.prelude import (
    DRAIN_CONSOLE,
    DRAIN_FETCH,
    FIRE_NEXT_TIMER,
    NEXT_TIMER_DELAY,
    OUTCOME,
    build_invocation,
    build_prelude,
    build_settlement,
)
from toolforge.tools.base import ExecutionResult
from toolforge.tools.signature import strip_type_annotations

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")
_JS_ERROR = re.compile(r"^(?P<name>[A-Za-z]*Error): ?(?P<message>.*)$")
_INTERRUPTED = "interrupted"
_SETUP_SECONDS = 1.0


class SandboxExecutor:
    """Runs tool snippets in isolated, time- and memory-bounded contexts.

    Holds only configuration; each :meth:`execute` call owns its own
    engine context, HTTP client and cancel event, so one executor can
    serve concurrent calls.
    """

    def __init__(
        self,
        config: ToolforgeConfig | None = None,
        *,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._config = config or ToolforgeConfig()
        self._transport = transport

    @property
    def config(self) -> ToolforgeConfig:
        return self._config

    async def execute(
        self,
        code: str,
        function_name: str | None,
        args: Sequence[Any],
        *,
        timeout_ms: int | None = None,
        label: str = "tool",
    ) -> ExecutionResult:
        """Invoke *function_name* from *code* once with *args*.

        Never raises for snippet or sandbox failures; they come back as a
        failed :class:`ExecutionResult`. Cancelling the awaiting task stops
        the engine loop and propagates ``CancelledError``.
        """
        sandbox = self._config.sandbox
        timeout_ms = timeout_ms or sandbox.timeout_ms
        cancelled = threading.Event()
        start = time.monotonic()

        def elapsed() -> float:
            return (time.monotonic() - start) * 1000

        try:
            value = await asyncio.wait_for(
                asyncio.to_thread(
                    self._run, code, function_name, list(args), timeout_ms, cancelled, label
                ),
                timeout=(timeout_ms + sandbox.timeout_grace_ms) / 1000,
            )
        except TimeoutError:
            cancelled.set()
            err = ExecutionTimeoutError(timeout_ms)
            return ExecutionResult.failure(err.kind, str(err), elapsed_ms=elapsed())
        except asyncio.CancelledError:
            cancelled.set()
            raise
        except SandboxError as exc:
            return ExecutionResult.failure(exc.kind, str(exc), elapsed_ms=elapsed())
        except Exception as exc:
            logger.exception("Unexpected sandbox failure in %s", label)
            return ExecutionResult.failure(
                SandboxSetupError.kind, f"Sandbox failure: {exc}", elapsed_ms=elapsed()
            )
        return ExecutionResult.success(value, elapsed_ms=elapsed())

    # ── Worker thread ─────────────────────────────────────────

    def _run(
        self,
        code: str,
        function_name: str | None,
        args: list[Any],
        timeout_ms: int,
        cancelled: threading.Event,
        label: str,
    ) -> Any:
        deadline = time.monotonic() + timeout_ms / 1000
        source = self._prepare_source(code, function_name)
        assert function_name is not None

        console = ConsoleCapability(label)
        with ExitStack() as stack:
            fetch = None
            if self._config.fetch.enabled:
                fetch = stack.enter_context(
                    FetchCapability(
                        self._config.fetch, deadline=deadline, transport=self._transport
                    )
                )
            context = self._new_context(fetch_enabled=fetch is not None)
            try:
                self._eval(context, source, deadline, timeout_ms, compiling=True)
                kind = self._eval(context, f"typeof {function_name}", deadline, timeout_ms)
                if kind != "function":
                    msg = f"Function {function_name!r} is not defined by the tool code"
                    raise SnippetParseError(msg)

                self._eval(context, build_invocation(function_name, args), deadline, timeout_ms)
                outcome = self._drive(context, console, fetch, deadline, timeout_ms, cancelled)
            finally:
                self._flush_console(context, console)

        return self._decode(outcome, deadline, timeout_ms)

    def _prepare_source(self, code: str, function_name: str | None) -> str:
        limit = self._config.sandbox.max_code_bytes
        if len(code.encode()) > limit:
            msg = f"Tool code exceeds {limit} bytes"
            raise SnippetParseError(msg)
        if not function_name:
            msg = "Could not extract function name from code"
            raise SnippetParseError(msg)
        if not _IDENTIFIER.match(function_name):
            msg = f"Invalid function name: {function_name!r}"
            raise SnippetParseError(msg)
        return strip_type_annotations(code)

    def _new_context(self, *, fetch_enabled: bool) -> quickjs.Context:
        try:
            context = quickjs.Context()
            context.set_memory_limit(self._config.sandbox.memory_limit_mb * 1024 * 1024)
            context.set_time_limit(_SETUP_SECONDS)
            context.eval(build_prelude(fetch=fetch_enabled))
        except (quickjs.JSException, MemoryError, TypeError) as exc:
            msg = f"Could not initialise sandbox: {exc}"
            raise SandboxSetupError(msg) from exc
        return context

    def _eval(
        self,
        context: quickjs.Context,
        script: str,
        deadline: float,
        timeout_ms: int,
        *,
        compiling: bool = False,
    ) -> Any:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ExecutionTimeoutError(timeout_ms)
        context.set_time_limit(remaining)
        try:
            return context.eval(script)
        except quickjs.JSException as exc:
            raise _classify(exc, timeout_ms, compiling=compiling) from exc

    def _drive(
        self,
        context: quickjs.Context,
        console: ConsoleCapability,
        fetch: FetchCapability | None,
        deadline: float,
        timeout_ms: int,
        cancelled: threading.Event,
    ) -> str:
        """Run promise jobs, fetch requests and timers until the invocation settles."""
        while True:
            if cancelled.is_set():
                raise ExecutionTimeoutError(timeout_ms)
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ExecutionTimeoutError(timeout_ms)

            context.set_time_limit(remaining)
            try:
                if context.execute_pending_job():
                    continue
            except quickjs.JSException as exc:
                raise _classify(exc, timeout_ms) from exc

            self._flush_console(context, console)
            outcome = self._eval(context, OUTCOME, deadline, timeout_ms)
            if outcome is not None:
                return str(outcome)

            if fetch is not None and self._serve_fetch(context, fetch, deadline, timeout_ms):
                continue

            delay_ms = self._eval(context, NEXT_TIMER_DELAY, deadline, timeout_ms)
            if delay_ms < 0:
                msg = "Function returned a promise that never settles"
                raise SnippetThrewError(msg)
            wait = min(delay_ms / 1000, deadline - time.monotonic())
            if wait > 0 and cancelled.wait(wait):
                raise ExecutionTimeoutError(timeout_ms)
            self._eval(context, FIRE_NEXT_TIMER, deadline, timeout_ms)

    def _serve_fetch(
        self,
        context: quickjs.Context,
        fetch: FetchCapability,
        deadline: float,
        timeout_ms: int,
    ) -> bool:
        """Perform queued ``fetch`` requests on the host; False if none were queued."""
        requests = json.loads(self._eval(context, DRAIN_FETCH, deadline, timeout_ms))
        for request in requests:
            reply = fetch.perform(request)
            self._eval(context, build_settlement(request["id"], reply), deadline, timeout_ms)
        return bool(requests)

    def _flush_console(self, context: quickjs.Context, console: ConsoleCapability) -> None:
        # Runs after failures too, so it gets its own small budget.
        context.set_time_limit(_SETUP_SECONDS)
        try:
            lines = [
                (str(level), str(message))
                for level, message in json.loads(context.eval(DRAIN_CONSOLE))
            ]
        except (quickjs.JSException, ValueError, TypeError) as exc:
            logger.debug("Could not drain console output: %s", exc)
            return
        for level, message in lines:
            console(level, message)

    def _decode(self, outcome: str, deadline: float, timeout_ms: int) -> Any:
        data = json.loads(outcome)
        if data.get("ok"):
            return data.get("value")

        name = data.get("name")
        message = data.get("message", "")
        if name == "InternalError" and message == _INTERRUPTED:
            raise ExecutionTimeoutError(timeout_ms)
        if time.monotonic() >= deadline:
            raise ExecutionTimeoutError(timeout_ms)
        text = f"{name}: {message}" if name else message
        raise SnippetThrewError(text, error_name=name)


def _classify(
    exc: quickjs.JSException, timeout_ms: int, *, compiling: bool = False
) -> SandboxError:
    """Map an engine exception to the failure taxonomy."""
    first_line = str(exc).strip().splitlines()[0] if str(exc).strip() else ""
    match = _JS_ERROR.match(first_line)
    name = match.group("name") if match else None
    message = match.group("message") if match else first_line

    if name == "InternalError" and message == _INTERRUPTED:
        return ExecutionTimeoutError(timeout_ms)
    if name == "InternalError" and "out of memory" in message:
        return SnippetThrewError("Memory limit exceeded", error_name=name)
    if compiling and name == "SyntaxError":
        return SnippetParseError(f"SyntaxError: {message}")
    return SnippetThrewError(first_line or "Unknown error", error_name=name)
