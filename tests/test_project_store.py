"""Tests for the in-memory and HTTP project stores."""

from __future__ import annotations

import json

import httpx
import pytest

from codeforge.errors import ProjectNotFoundError, ProjectStoreError
from codeforge.projects.http_store import HttpProjectStore
from codeforge.projects.models import DEFAULT_CODE
from codeforge.projects.store import InMemoryProjectStore, ProjectStore
from codeforge.services.api import ApiClient, ApiSettings


def _api(handler, *, token: str = "jwt") -> ApiClient:
    settings = ApiSettings(base_url="http://backend.test/api", token=token, retry_min_seconds=0, retry_max_seconds=0)
    return ApiClient(settings, transport=httpx.MockTransport(handler))


def _payload(project_id: str, *, updated: str, code: str = "x", user: str = "u1") -> dict:
    return {
        "_id": project_id,
        "user": user,
        "name": f"Project {project_id}",
        "language": "javascript",
        "code": code,
        "createdAt": "2024-01-01T00:00:00.000Z",
        "updatedAt": updated,
    }


class TestInMemoryProjectStore:
    def test_satisfies_protocol(self, memory_store: InMemoryProjectStore) -> None:
        assert isinstance(memory_store, ProjectStore)

    @pytest.mark.asyncio
    async def test_fetch_all_is_scoped_and_newest_first(self, memory_store: InMemoryProjectStore) -> None:
        projects = await memory_store.fetch_all()

        assert [project.id for project in projects] == ["p2", "p1"]

    @pytest.mark.asyncio
    async def test_create_assigns_owner_and_default_code(self, memory_store: InMemoryProjectStore) -> None:
        project = await memory_store.create("New", "go")

        assert project.user == "alice"
        assert project.code == DEFAULT_CODE
        assert (await memory_store.fetch_all())[0].id == project.id

    @pytest.mark.asyncio
    async def test_create_requires_name(self, memory_store: InMemoryProjectStore) -> None:
        with pytest.raises(ProjectStoreError):
            await memory_store.create("", "go")

    @pytest.mark.asyncio
    async def test_update_changes_code_and_timestamp(self, memory_store: InMemoryProjectStore, records) -> None:
        before = records["p1"].updated_at

        updated = await memory_store.update("p1", {"code": "let b = 2;", "language": "python", "user": "bob"})

        assert updated.code == "let b = 2;"
        assert updated.language == "javascript"
        assert updated.user == "alice"
        assert updated.updated_at > before

    @pytest.mark.asyncio
    async def test_foreign_projects_look_missing(self, memory_store: InMemoryProjectStore) -> None:
        with pytest.raises(ProjectNotFoundError):
            await memory_store.update("p3", {"code": "mine now"})
        with pytest.raises(ProjectNotFoundError):
            await memory_store.delete("p3")

    @pytest.mark.asyncio
    async def test_delete_removes_project(self, memory_store: InMemoryProjectStore) -> None:
        await memory_store.delete("p1")

        assert [project.id for project in await memory_store.fetch_all()] == ["p2"]
        with pytest.raises(ProjectNotFoundError):
            await memory_store.delete("p1")


class TestHttpProjectStore:
    @pytest.mark.asyncio
    async def test_fetch_all_decodes_and_sorts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/projects"
            assert request.headers["Authorization"] == "Bearer jwt"
            return httpx.Response(
                200,
                json=[
                    _payload("old", updated="2024-01-01T00:00:00.000Z"),
                    _payload("new", updated="2024-02-01T00:00:00.000Z"),
                ],
            )

        api = _api(handler)
        projects = await HttpProjectStore(api).fetch_all()
        await api.aclose()

        assert [project.id for project in projects] == ["new", "old"]
        assert projects[0].updated_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_fetch_all_retries_transport_errors(self) -> None:
        attempts: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            if len(attempts) < 2:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json=[])

        api = _api(handler)
        assert await HttpProjectStore(api).fetch_all() == []
        await api.aclose()

        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_update_puts_fields_once(self) -> None:
        seen: list[tuple[str, dict]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            seen.append((request.method, body))
            return httpx.Response(200, json=_payload("p1", updated="2024-03-01T00:00:00.000Z", code=body["code"]))

        api = _api(handler)
        project = await HttpProjectStore(api).update("p1", {"code": "saved"})
        await api.aclose()

        assert seen == [("PUT", {"code": "saved"})]
        assert project.code == "saved"

    @pytest.mark.asyncio
    async def test_update_missing_project_raises_not_found(self) -> None:
        api = _api(lambda request: httpx.Response(404, json={"message": "Project not found"}))

        with pytest.raises(ProjectNotFoundError):
            await HttpProjectStore(api).update("gone", {"code": "x"})
        await api.aclose()

    @pytest.mark.asyncio
    async def test_server_errors_become_store_errors(self) -> None:
        calls: list[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(1)
            return httpx.Response(500, json={"message": "Server error"})

        api = _api(handler)
        with pytest.raises(ProjectStoreError, match="status 500"):
            await HttpProjectStore(api).update("p1", {"code": "x"})
        await api.aclose()

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_create_posts_project(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert request.method == "POST"
            return httpx.Response(
                201,
                json={**_payload("fresh", updated="2024-03-01T00:00:00.000Z"), "name": body["name"]},
            )

        api = _api(handler)
        project = await HttpProjectStore(api).create("Demo", "javascript", "// Start coding...\n")
        await api.aclose()

        assert project.id == "fresh"
        assert project.name == "Demo"

    @pytest.mark.asyncio
    async def test_delete_accepts_message_body(self) -> None:
        api = _api(lambda request: httpx.Response(200, json={"message": "Project deleted"}))

        await HttpProjectStore(api).delete("p1")
        await api.aclose()

    @pytest.mark.asyncio
    async def test_malformed_list_is_store_error(self) -> None:
        api = _api(lambda request: httpx.Response(200, json={"projects": []}))

        with pytest.raises(ProjectStoreError):
            await HttpProjectStore(api).fetch_all()
        await api.aclose()
