"""Project store backed by the REST backend."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..errors import ProjectNotFoundError, ProjectStoreError
from ..services.api import ApiClient
from .models import DEFAULT_CODE, Project

__all__ = ["HttpProjectStore"]

LOGGER = logging.getLogger(__name__)


class HttpProjectStore:
    """:class:`~codeforge.projects.store.ProjectStore` speaking to ``/projects``.

    The bearer token on the :class:`ApiClient` identifies the user, so every
    call is implicitly scoped to that user's projects.
    """

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def fetch_all(self) -> list[Project]:
        try:
            payload = await self._api.read("/projects")
        except (httpx.HTTPError, ValueError) as exc:
            raise _store_error("fetch projects", exc) from exc
        if not isinstance(payload, list):
            raise ProjectStoreError("Unexpected project list payload")
        projects = [_decode(item) for item in payload]
        projects.sort(key=lambda project: project.updated_at, reverse=True)
        return projects

    async def create(self, name: str, language: str, code: str = DEFAULT_CODE) -> Project:
        body = {"name": name, "language": language, "code": code}
        try:
            payload = await self._api.write("POST", "/projects", body)
        except (httpx.HTTPError, ValueError) as exc:
            raise _store_error("create project", exc) from exc
        return _decode(payload)

    async def update(self, project_id: str, fields: Mapping[str, Any]) -> Project:
        try:
            payload = await self._api.write("PUT", f"/projects/{project_id}", fields)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == httpx.codes.NOT_FOUND:
                raise ProjectNotFoundError(project_id) from exc
            raise _store_error("update project", exc) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise _store_error("update project", exc) from exc
        return _decode(payload)

    async def delete(self, project_id: str) -> None:
        try:
            await self._api.write("DELETE", f"/projects/{project_id}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == httpx.codes.NOT_FOUND:
                raise ProjectNotFoundError(project_id) from exc
            raise _store_error("delete project", exc) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise _store_error("delete project", exc) from exc


def _decode(payload: Any) -> Project:
    if not isinstance(payload, Mapping):
        raise ProjectStoreError("Unexpected project payload")
    try:
        return Project.from_payload(payload)
    except ValueError as exc:
        raise ProjectStoreError(str(exc)) from exc


def _store_error(action: str, exc: Exception) -> ProjectStoreError:
    if isinstance(exc, httpx.HTTPStatusError):
        detail = f"status {exc.response.status_code}"
    else:
        detail = type(exc).__name__
    LOGGER.warning("Unable to %s: %s", action, detail)
    return ProjectStoreError(f"Unable to {action} ({detail})")
