"""Project store interface and the in-process implementation."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Mapping, MutableMapping, Protocol, runtime_checkable

from ..errors import ProjectNotFoundError, ProjectStoreError
from .models import DEFAULT_CODE, Project

__all__ = ["ProjectStore", "InMemoryProjectStore", "UPDATABLE_FIELDS"]

LOGGER = logging.getLogger(__name__)

# Fields a client may change through ``update``; ownership and identity are fixed.
UPDATABLE_FIELDS: frozenset[str] = frozenset({"name", "code"})


@runtime_checkable
class ProjectStore(Protocol):
    """Persistence boundary for projects owned by one authenticated user."""

    async def fetch_all(self) -> list[Project]:
        """Return the caller's projects, most recently updated first."""

    async def create(self, name: str, language: str, code: str = DEFAULT_CODE) -> Project:
        """Create a project for the caller and return the stored snapshot."""

    async def update(self, project_id: str, fields: Mapping[str, Any]) -> Project:
        """Apply ``fields`` and return the stored snapshot.

        Raises:
            ProjectNotFoundError: if the project is missing or owned by someone else.
        """

    async def delete(self, project_id: str) -> None:
        """Delete the project.

        Raises:
            ProjectNotFoundError: if the project is missing or owned by someone else.
        """


class InMemoryProjectStore:
    """Project store kept in a dictionary, scoped to ``user_id``.

    Several stores can share ``records`` to model multiple users talking to the
    same backend; each one only ever sees its own projects.
    """

    def __init__(
        self,
        user_id: str = "local",
        *,
        records: MutableMapping[str, Project] | None = None,
    ) -> None:
        if not user_id:
            raise ValueError("user_id is required")
        self._user_id = user_id
        self._records: MutableMapping[str, Project] = records if records is not None else {}
        self._lock = asyncio.Lock()

    @property
    def user_id(self) -> str:
        return self._user_id

    async def fetch_all(self) -> list[Project]:
        owned = [project for project in self._records.values() if project.user == self._user_id]
        owned.sort(key=lambda project: project.updated_at, reverse=True)
        return owned

    async def create(self, name: str, language: str, code: str = DEFAULT_CODE) -> Project:
        if not name:
            raise ProjectStoreError("Project name is required")
        now = _utcnow()
        project = Project(
            id=uuid.uuid4().hex,
            user=self._user_id,
            name=name,
            language=language,
            code=DEFAULT_CODE if code is None else code,
            created_at=now,
            updated_at=now,
        )
        async with self._lock:
            self._records[project.id] = project
        LOGGER.debug("Created project %s (%s) for %s", project.id, language, self._user_id)
        return project

    async def update(self, project_id: str, fields: Mapping[str, Any]) -> Project:
        async with self._lock:
            current = self._owned(project_id)
            changes = {key: str(value) for key, value in fields.items() if key in UPDATABLE_FIELDS}
            ignored = sorted(set(fields) - UPDATABLE_FIELDS)
            if ignored:
                LOGGER.debug("Ignoring immutable project fields %s", ignored)
            updated = replace(current, updated_at=_utcnow(), **changes)
            self._records[project_id] = updated
        return updated

    async def delete(self, project_id: str) -> None:
        async with self._lock:
            self._owned(project_id)
            del self._records[project_id]
        LOGGER.debug("Deleted project %s", project_id)

    def _owned(self, project_id: str) -> Project:
        project = self._records.get(project_id)
        if project is None or project.user != self._user_id:
            raise ProjectNotFoundError(project_id)
        return project


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)
