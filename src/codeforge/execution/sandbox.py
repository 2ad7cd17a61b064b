"""Local evaluation of JavaScript inside an isolated V8 context."""

from __future__ import annotations

import contextlib
import json
import logging
from typing import Protocol, runtime_checkable

from py_mini_racer import JSEvalException, JSTimeoutException, MiniRacer

from ..errors import EvaluationError

__all__ = ["OutputSink", "OutputCollector", "LocalEvaluator", "JavaScriptEvaluator"]

LOGGER = logging.getLogger(__name__)

# Console methods are rebound inside the fresh context only; the source is
# compiled with ``new Function`` so syntax errors surface as caught errors.
# Every builtin the harness touches is bound before user code runs and the
# report is assembled from primitive strings, so a program that reassigns
# ``JSON`` or patches prototypes still reports what it printed. Only
# ``log`` and ``info`` count as standard output.
_HARNESS = """
(function (source) {
  var quote = JSON.stringify;
  var toArray = Function.prototype.call.bind(Array.prototype.slice);
  var joinWith = Function.prototype.call.bind(Array.prototype.join);
  var toText = String;
  var lines = [];
  var capture = function () {
    lines[lines.length] = quote(joinWith(toArray(arguments), " "));
  };
  var discard = function () {};
  globalThis.console = { log: capture, info: capture, debug: discard, warn: discard, error: discard };
  var failed = false;
  var error = "";
  try {
    new Function(source)();
  } catch (err) {
    failed = true;
    try {
      error = toText(err);
    } catch (unprintable) {
      error = "Uncaught exception";
    }
  }
  return '{"lines":[' + joinWith(lines, ",") + '],"failed":' + (failed ? "true" : "false") +
    ',"error":' + quote(error) + "}";
})(%s)
"""


@runtime_checkable
class OutputSink(Protocol):
    """Destination for lines printed by evaluated code."""

    def write(self, line: str) -> None:
        ...


class OutputCollector:
    """Ordered, single-use buffer of output lines.

    Used as a context manager; once the block exits the collector is sealed
    and further writes raise ``RuntimeError``.
    """

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._closed = False

    def write(self, line: str) -> None:
        if self._closed:
            raise RuntimeError("Output collector is closed")
        self._lines.append(str(line))

    @property
    def lines(self) -> tuple[str, ...]:
        return tuple(self._lines)

    @property
    def text(self) -> str:
        return "\n".join(self._lines)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True

    def __enter__(self) -> "OutputCollector":
        return self

    def __exit__(self, *_exc_info: object) -> None:
        self.close()


@runtime_checkable
class LocalEvaluator(Protocol):
    """Evaluates source in-process, writing printed lines to ``sink``.

    Implementations raise :class:`EvaluationError` when the code throws; lines
    written before the failure stay in the sink.
    """

    def evaluate(self, source: str, sink: OutputSink) -> None:
        ...


class JavaScriptEvaluator:
    """Runs JavaScript in a brand-new V8 isolate per call."""

    def __init__(self, *, timeout_seconds: float = 5.0) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._timeout_seconds = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    def evaluate(self, source: str, sink: OutputSink) -> None:
        script = _HARNESS % json.dumps(source)
        with contextlib.closing(MiniRacer()) as context:
            try:
                raw = context.eval(script, timeout_sec=self._timeout_seconds)
            except JSTimeoutException as exc:
                raise EvaluationError(
                    f"Execution timed out after {self._timeout_seconds:g} seconds"
                ) from exc
            except JSEvalException as exc:
                LOGGER.debug("JavaScript harness failed", exc_info=True)
                raise EvaluationError(str(exc) or "JavaScript evaluation failed") from exc

        report = _decode_report(raw)
        for line in report.get("lines") or []:
            sink.write(str(line))
        if report.get("failed"):
            raise EvaluationError(str(report.get("error") or "Uncaught exception"))


def _decode_report(raw: object) -> dict:
    if not isinstance(raw, str):
        raise EvaluationError("Sandbox returned an unexpected result")
    try:
        report = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise EvaluationError("Sandbox returned an unreadable result") from exc
    if not isinstance(report, dict):
        raise EvaluationError("Sandbox returned an unexpected result")
    return report
