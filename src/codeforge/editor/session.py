"""Editing session for the project currently open in the editor.

The controller owns the only mutable copy of the buffer. Edits arm a single
debounce timer; when it elapses (or the user saves explicitly) the buffer is
written to the project store. A ``pending`` latch keeps saves from
overlapping, and every asynchronous completion checks that it still belongs
to the session that started it, so switching projects never lets a late
result leak into the newly opened one.

Running code is independent of saving: :meth:`SessionController.run` reads the
buffer and never touches ``dirty``, ``pending`` or the stored project.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from ..errors import ProjectNotFoundError
from ..execution.dispatcher import ExecutionDispatcher, ExecutionResult
from ..projects.models import Project
from ..projects.store import ProjectStore
from ..utils import file_io
from .debounce import DebounceTimer
from .events import (
    BufferEdited,
    EventBus,
    ProjectLoaded,
    ProjectSaved,
    RunCompleted,
    SaveFailed,
    SaveStarted,
    SessionClosed,
)
from .formatting import format_source
from .modes import ModeLoader

__all__ = ["DEFAULT_AUTOSAVE_DELAY", "EditSession", "SaveStatus", "SessionController"]

LOGGER = logging.getLogger(__name__)
DEFAULT_AUTOSAVE_DELAY = 3.0


class SaveStatus(str, Enum):
    """Indicator shown next to the save button."""

    SAVED = "Saved"
    UNSAVED = "Unsaved Changes"
    SAVING = "Saving..."


@dataclass(slots=True, eq=False)
class EditSession:
    """Mutable editing state for one open project.

    ``project`` is the snapshot last fetched or last successfully saved;
    ``dirty`` is true whenever ``buffer`` differs from ``project.code``.
    """

    project: Project
    buffer: str
    dirty: bool = False
    pending: bool = False
    last_error: str | None = None

    @classmethod
    def open(cls, project: Project) -> "EditSession":
        return cls(project=project, buffer=project.code)


class SessionController:
    """Keeps the open project's buffer in sync with the project store."""

    def __init__(
        self,
        store: ProjectStore,
        dispatcher: ExecutionDispatcher,
        *,
        bus: EventBus | None = None,
        mode_loader: ModeLoader | None = None,
        autosave_delay: float = DEFAULT_AUTOSAVE_DELAY,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._bus = bus or EventBus()
        self._mode_loader = mode_loader
        self._timer = DebounceTimer(autosave_delay, self._on_autosave_due, loop=loop)
        self._session: EditSession | None = None
        self._tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # State accessors
    # ------------------------------------------------------------------
    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def session(self) -> EditSession | None:
        return self._session

    @property
    def is_open(self) -> bool:
        return self._session is not None

    @property
    def project(self) -> Project:
        return self._require_session().project

    @property
    def buffer(self) -> str:
        return self._require_session().buffer

    @property
    def dirty(self) -> bool:
        return self._require_session().dirty

    @property
    def pending(self) -> bool:
        return self._require_session().pending

    @property
    def last_error(self) -> str | None:
        return self._require_session().last_error

    @property
    def autosave_armed(self) -> bool:
        return self._timer.armed

    @property
    def status(self) -> SaveStatus:
        session = self._require_session()
        if session.pending:
            return SaveStatus.SAVING
        return SaveStatus.UNSAVED if session.dirty else SaveStatus.SAVED

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def load_project(self, project: Project) -> None:
        """Start a fresh session for ``project``, discarding the previous one.

        Callers pass a freshly fetched snapshot. Any armed autosave of the
        previous session is cancelled; a save already in flight is left to
        finish and its result is dropped.
        """

        self._timer.cancel()
        previous = self._session
        self._session = EditSession.open(project)
        if previous is not None and previous.dirty:
            LOGGER.info("Discarding unsaved changes in %s", previous.project.id)
        LOGGER.debug("Loaded project %s (%s)", project.id, project.language)
        self._request_mode(project.language)
        self._bus.publish(ProjectLoaded(project_id=project.id, language=project.language))

    def close(self) -> None:
        """End the session (navigating away or logging out)."""

        self._timer.cancel()
        session, self._session = self._session, None
        if session is not None:
            self._bus.publish(SessionClosed(project_id=session.project.id))

    async def aclose(self) -> None:
        self.close()
        tasks = [task for task in self._tasks if not task.done()]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------
    def edit(self, new_text: str) -> None:
        session = self._require_session()
        session.buffer = new_text
        session.dirty = new_text != session.project.code
        if session.dirty:
            self._timer.arm()
        else:
            self._timer.cancel()
        self._bus.publish(BufferEdited(project_id=session.project.id, dirty=session.dirty))

    def clear(self) -> None:
        self.edit("")

    def format(self) -> str:
        """Reformat the buffer in place and return the new text.

        Raises:
            FormatError: when the language has no formatter or the buffer does not parse.
        """

        session = self._require_session()
        formatted = format_source(session.buffer, session.project.language)
        if formatted != session.buffer:
            self.edit(formatted)
        return formatted

    def export(self, directory: Path | str) -> Path:
        """Write the buffer to ``directory`` as ``<name>.<ext>`` and return the path."""

        session = self._require_session()
        filename = file_io.export_filename(session.project.name, session.project.language)
        return file_io.write_text(Path(directory) / filename, session.buffer)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    async def save(self) -> bool:
        """Write the buffer to the store.

        Does nothing while another save is in flight or when the buffer is
        clean. Failures are recorded in ``last_error`` and leave the session
        dirty; they are not retried. Returns ``True`` when a save was applied
        to the current session.
        """

        session = self._session
        if session is None or session.pending or not session.dirty:
            return False

        snapshot = session.buffer
        project_id = session.project.id
        session.pending = True
        session.last_error = None
        self._timer.cancel()
        self._bus.publish(SaveStarted(project_id=project_id))
        try:
            stored = await self._store.update(project_id, {"code": snapshot})
        except Exception as exc:
            session.last_error = _describe_failure(exc)
            if self._session is session:
                LOGGER.warning("Saving %s failed: %s", project_id, session.last_error)
                self._bus.publish(SaveFailed(project_id=project_id, error=session.last_error))
            return False
        finally:
            session.pending = False

        session.project = replace(stored, code=snapshot)
        session.dirty = session.buffer != snapshot
        if self._session is not session:
            LOGGER.debug("Save of %s finished after the session changed; ignoring result", project_id)
            return False

        LOGGER.debug("Saved %s (%d characters)", project_id, len(snapshot))
        if session.dirty and not self._timer.armed:
            # Edits made while the request was in flight still need a save.
            self._timer.arm()
        self._bus.publish(
            ProjectSaved(project_id=project_id, updated_at=session.project.updated_at.isoformat())
        )
        return True

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    async def run(self) -> ExecutionResult:
        """Run the current buffer; may overlap a pending save."""

        session = self._require_session()
        result = await self._dispatcher.dispatch(session.buffer, session.project.language)
        if self._session is session:
            self._bus.publish(
                RunCompleted(
                    project_id=session.project.id,
                    strategy=result.strategy.value,
                    output=result.output,
                    error=result.error,
                )
            )
        return result

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _on_autosave_due(self) -> None:
        if self._session is None:
            return
        self._spawn(self.save())

    def _request_mode(self, language: str) -> None:
        if self._mode_loader is None:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            LOGGER.debug("No running loop; skipping syntax mode load for %s", language)
            return
        self._spawn(self._mode_loader.load(language))

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _require_session(self) -> EditSession:
        if self._session is None:
            raise RuntimeError("No project is open")
        return self._session


def _describe_failure(exc: Exception) -> str:
    if isinstance(exc, ProjectNotFoundError):
        return "Project no longer exists"
    return str(exc) or type(exc).__name__
