"""Event bus used by the editing session to notify interested components.

Handlers run synchronously on the event loop thread in registration order.
Bound methods are held weakly so a discarded listener never keeps its owner
alive; plain functions and lambdas are held strongly.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, DefaultDict, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")
Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all session events."""


@dataclass(slots=True)
class ProjectLoaded(Event):
    """A project was opened for editing."""

    project_id: str
    language: str


@dataclass(slots=True)
class BufferEdited(Event):
    """The buffer changed; ``dirty`` reflects the comparison with the stored copy."""

    project_id: str
    dirty: bool


@dataclass(slots=True)
class SaveStarted(Event):
    project_id: str


@dataclass(slots=True)
class ProjectSaved(Event):
    """A save reached the project store.

    Attributes:
        project_id: The project that was written.
        updated_at: ISO-8601 timestamp reported by the store.
    """

    project_id: str
    updated_at: str


@dataclass(slots=True)
class SaveFailed(Event):
    project_id: str
    error: str


@dataclass(slots=True)
class RunCompleted(Event):
    """A run finished; output and error are the normalized result texts."""

    project_id: str
    strategy: str
    output: str
    error: str


@dataclass(slots=True)
class SessionClosed(Event):
    project_id: str


class EventBus:
    """A typed publish-subscribe bus.

    Example::

        bus = EventBus()
        bus.subscribe(ProjectSaved, lambda event: print(event.project_id))
        bus.publish(ProjectSaved(project_id="p1", updated_at="..."))

    Not thread-safe; publish from the event loop thread only.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._handlers[event_type].append(_HandlerRef.create(handler))
        logger.debug("Subscribed %s to %s", _handler_name(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""

        handlers = self._handlers.get(event_type)
        if not handlers:
            return
        for index, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(index)
                return

    def publish(self, event: Event) -> None:
        """Deliver ``event`` to every live handler.

        A handler that raises is logged and does not stop delivery to the rest.
        """

        event_type = type(event)
        handlers = self._handlers.get(event_type)
        if not handlers:
            return

        live: list[_HandlerRef] = []
        for handler_ref in list(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                continue
            live.append(handler_ref)
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised for event %s", _handler_name(handler), event_type.__name__
                )
        # Drop references whose owners were garbage collected.
        if len(live) != len(handlers):
            handlers[:] = [ref for ref in handlers if ref.resolve() is not None]

    def clear(self) -> None:
        self._handlers.clear()

    def handler_count(self, event_type: type[Event] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> "_HandlerRef":
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        return resolved is not None and resolved == handler


def _handler_name(handler: Handler) -> str:
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__name__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "ProjectLoaded",
    "BufferEdited",
    "SaveStarted",
    "ProjectSaved",
    "SaveFailed",
    "RunCompleted",
    "SessionClosed",
]
