"""Routes run requests to the local sandbox, the preview surface or the remote service."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

import httpx

from ..errors import EvaluationError
from .remote import RemoteExecutionClient, runtime_for
from .sandbox import JavaScriptEvaluator, LocalEvaluator, OutputCollector

__all__ = [
    "EXECUTION_FAILED",
    "LOCAL_LANGUAGES",
    "MARKUP_LANGUAGES",
    "NO_OUTPUT",
    "PREVIEW_UPDATED",
    "ExecutionDispatcher",
    "ExecutionResult",
    "ExecutionStrategy",
    "PreviewSink",
    "strategy_for",
]

LOGGER = logging.getLogger(__name__)

LOCAL_LANGUAGES: frozenset[str] = frozenset({"javascript"})
MARKUP_LANGUAGES: frozenset[str] = frozenset({"html"})
NO_OUTPUT = "No output (use console.log)"
PREVIEW_UPDATED = "Preview updated"
EXECUTION_FAILED = "Execution failed"

PreviewSink = Callable[[str], None]


class ExecutionStrategy(str, Enum):
    LOCAL = "local"
    PREVIEW = "preview"
    REMOTE = "remote"


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    """Outcome of a single run; never merged with an earlier one."""

    output: str = ""
    error: str = ""
    strategy: ExecutionStrategy = ExecutionStrategy.REMOTE
    preview: str | None = None

    @property
    def ok(self) -> bool:
        return not self.error


def strategy_for(language: str) -> ExecutionStrategy:
    normalized = (language or "").strip().lower()
    if normalized in LOCAL_LANGUAGES:
        return ExecutionStrategy.LOCAL
    if normalized in MARKUP_LANGUAGES:
        return ExecutionStrategy.PREVIEW
    return ExecutionStrategy.REMOTE


class ExecutionDispatcher:
    """Produces an :class:`ExecutionResult` for ``(source, language)``.

    Failures of any strategy are reported inside the result; ``dispatch`` does
    not raise for user-code faults or service outages and never retries.
    """

    def __init__(
        self,
        *,
        remote: RemoteExecutionClient | None = None,
        evaluator: LocalEvaluator | None = None,
        preview_sink: PreviewSink | None = None,
    ) -> None:
        self._remote = remote
        self._evaluator = evaluator or JavaScriptEvaluator()
        self._preview_sink = preview_sink

    def set_preview_sink(self, sink: PreviewSink | None) -> None:
        self._preview_sink = sink

    async def dispatch(self, source: str, language: str) -> ExecutionResult:
        strategy = strategy_for(language)
        LOGGER.debug("Dispatching %s run via %s", language, strategy.value)
        if strategy is ExecutionStrategy.LOCAL:
            return await self._run_local(source)
        if strategy is ExecutionStrategy.PREVIEW:
            return self._render_preview(source)
        return await self._run_remote(source, language)

    async def _run_local(self, source: str) -> ExecutionResult:
        lines, error = await asyncio.to_thread(self._evaluate_in_worker, source)
        output = "\n".join(lines)
        if error:
            return ExecutionResult(output=output, error=error, strategy=ExecutionStrategy.LOCAL)
        return ExecutionResult(output=output or NO_OUTPUT, strategy=ExecutionStrategy.LOCAL)

    def _evaluate_in_worker(self, source: str) -> tuple[tuple[str, ...], str]:
        """Evaluate on the worker thread into a collector that never leaves it.

        A cancelled run abandons the thread; the evaluator keeps writing into
        its own open collector and the lines are simply dropped.
        """
        with OutputCollector() as sink:
            try:
                self._evaluator.evaluate(source, sink)
            except EvaluationError as exc:
                return sink.lines, exc.message
            except Exception as exc:
                LOGGER.exception("Local evaluator crashed")
                return sink.lines, f"{type(exc).__name__}: {exc}"
        return sink.lines, ""

    def _render_preview(self, source: str) -> ExecutionResult:
        if self._preview_sink is not None:
            try:
                self._preview_sink(source)
            except Exception:
                LOGGER.exception("Preview sink failed")
                return ExecutionResult(
                    error="Preview failed",
                    strategy=ExecutionStrategy.PREVIEW,
                    preview=source,
                )
        return ExecutionResult(output=PREVIEW_UPDATED, strategy=ExecutionStrategy.PREVIEW, preview=source)

    async def _run_remote(self, source: str, language: str) -> ExecutionResult:
        if self._remote is None:
            LOGGER.warning("Remote execution requested for %s but no service is configured", language)
            return ExecutionResult(error=EXECUTION_FAILED, strategy=ExecutionStrategy.REMOTE)
        runtime = runtime_for(language)
        try:
            response = await self._remote.execute(source, runtime)
        except (httpx.HTTPError, ValueError) as exc:
            LOGGER.warning("Remote execution (%s) failed: %s", runtime, exc)
            return ExecutionResult(error=EXECUTION_FAILED, strategy=ExecutionStrategy.REMOTE)
        return ExecutionResult(output=response.output, error=response.error, strategy=ExecutionStrategy.REMOTE)
