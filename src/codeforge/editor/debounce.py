"""Single-slot deferred callback used for autosave."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

__all__ = ["DebounceTimer"]

LOGGER = logging.getLogger(__name__)


class DebounceTimer:
    """Runs ``callback`` once ``delay`` seconds after the most recent :meth:`arm`.

    At most one handle is outstanding: arming cancels the previous handle
    before scheduling a new one, so bursts of activity collapse into a single
    invocation.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self._delay = delay
        self._callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()

    def _fire(self) -> None:
        self._handle = None
        try:
            self._callback()
        except Exception:
            LOGGER.exception("Debounced callback failed")
