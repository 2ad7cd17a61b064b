"""Project list management around the editing session."""

from __future__ import annotations

import asyncio
import logging

from ..errors import CodeForgeError, ProjectLoadError
from ..projects.models import NEW_PROJECT_CODE, Language, Project
from ..projects.store import ProjectStore
from .events import EventBus, ProjectSaved
from .session import SessionController

__all__ = ["ProjectBrowser"]

LOGGER = logging.getLogger(__name__)


class ProjectBrowser:
    """Lists, creates, deletes and opens the signed-in user's projects.

    Opening always re-fetches from the store so the session starts from the
    latest saved copy. Saves published on the bus schedule a background
    refresh of the list; hold a reference to the browser for as long as
    those refreshes are wanted.
    """

    def __init__(
        self,
        store: ProjectStore,
        controller: SessionController,
        *,
        bus: EventBus | None = None,
    ) -> None:
        self._store = store
        self._controller = controller
        self._bus = bus or controller.bus
        self._projects: list[Project] = []
        self._refreshes: set[asyncio.Task] = set()
        self._bus.subscribe(ProjectSaved, self._on_project_saved)

    @property
    def projects(self) -> tuple[Project, ...]:
        return tuple(self._projects)

    @property
    def controller(self) -> SessionController:
        return self._controller

    def find(self, project_id: str) -> Project | None:
        return next((project for project in self._projects if project.id == project_id), None)

    async def refresh(self) -> bool:
        """Reload the list; on failure the previous list is kept."""

        try:
            projects = await self._store.fetch_all()
        except CodeForgeError as exc:
            LOGGER.warning("Failed to fetch projects: %s", exc)
            return False
        self._projects = sorted(projects, key=lambda project: project.updated_at, reverse=True)
        return True

    async def create(self, name: str, language: str) -> Project:
        title = (name or "").strip()
        if not title:
            raise ValueError("Project name is required")
        language_id = Language(language.strip().lower()).value
        project = await self._store.create(title, language_id, NEW_PROJECT_CODE)
        LOGGER.info("Created project %s (%s)", project.id, language_id)
        await self.refresh()
        return project

    async def delete(self, project_id: str) -> None:
        await self._store.delete(project_id)
        session = self._controller.session
        if session is not None and session.project.id == project_id:
            self._controller.close()
        LOGGER.info("Deleted project %s", project_id)
        await self.refresh()

    async def open(self, project_id: str) -> Project:
        """Fetch the latest copy of ``project_id`` and load it into the session.

        Raises:
            ProjectLoadError: when the list cannot be fetched or does not contain
                the project. The current session is left as it was.
        """

        try:
            projects = await self._store.fetch_all()
        except CodeForgeError as exc:
            raise ProjectLoadError(f"Failed to load project: {exc}") from exc
        self._projects = sorted(projects, key=lambda project: project.updated_at, reverse=True)
        project = self.find(project_id)
        if project is None:
            raise ProjectLoadError("Project not found")
        self._controller.load_project(project)
        return project

    def logout(self) -> None:
        self._controller.close()
        self._projects = []

    async def aclose(self) -> None:
        pending = [task for task in self._refreshes if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _on_project_saved(self, event: ProjectSaved) -> None:
        LOGGER.debug("Refreshing project list after save of %s", event.project_id)
        task = asyncio.get_running_loop().create_task(self.refresh())
        self._refreshes.add(task)
        task.add_done_callback(self._refreshes.discard)
