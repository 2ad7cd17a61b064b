"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from codeforge.projects.models import Project
from codeforge.projects.store import InMemoryProjectStore

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_project(
    project_id: str = "p1",
    *,
    user: str = "alice",
    name: str = "Scratch",
    language: str = "javascript",
    code: str = "let x = 1;",
    minutes: int = 0,
) -> Project:
    stamp = EPOCH + timedelta(minutes=minutes)
    return Project(
        id=project_id,
        user=user,
        name=name,
        language=language,
        code=code,
        created_at=stamp,
        updated_at=stamp,
    )


class GatedStore:
    """Wraps an :class:`InMemoryProjectStore` and holds ``update`` until released.

    Example::

        store = GatedStore(inner)
        task = asyncio.create_task(controller.save())
        ...
        store.release()
    """

    def __init__(self, inner: InMemoryProjectStore) -> None:
        self.inner = inner
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.fail_with: Exception | None = None
        self._gate = asyncio.Event()
        self._gate.set()

    def hold(self) -> None:
        self._gate.clear()

    def release(self) -> None:
        self._gate.set()

    async def fetch_all(self) -> list[Project]:
        return await self.inner.fetch_all()

    async def create(self, name: str, language: str, code: str = "// Start coding...") -> Project:
        return await self.inner.create(name, language, code)

    async def update(self, project_id: str, fields: Mapping[str, Any]) -> Project:
        self.updates.append((project_id, dict(fields)))
        await self._gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return await self.inner.update(project_id, fields)

    async def delete(self, project_id: str) -> None:
        await self.inner.delete(project_id)


class EchoEvaluator:
    """Local evaluator stub that prints each source line back."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def evaluate(self, source: str, sink: Any) -> None:
        self.calls.append(source)
        for line in source.splitlines():
            sink.write(line)
