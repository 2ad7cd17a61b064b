"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from codeforge.editor.events import EventBus
from codeforge.execution.dispatcher import ExecutionDispatcher
from codeforge.projects.store import InMemoryProjectStore
from codeforge.services.settings import SecretVault, SettingsStore
from codeforge.utils import logging as logging_utils

from tests.helpers import EchoEvaluator, GatedStore, make_project


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    for name in (
        "CODEFORGE_API_BASE_URL",
        "CODEFORGE_AUTH_TOKEN",
        "CODEFORGE_EXECUTION_URL",
        "CODEFORGE_EXECUTION_CLIENT_ID",
        "CODEFORGE_EXECUTION_CLIENT_SECRET",
        "CODEFORGE_DEBUG_LOGGING",
        "CODEFORGE_AUTOSAVE_DELAY",
        "CODEFORGE_REQUEST_TIMEOUT",
        "CODEFORGE_EXECUTION_TIMEOUT",
        "CODEFORGE_LOCAL_TIMEOUT",
        "CODEFORGE_SETTINGS_PATH",
        "CODEFORGE_DEBUG",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CODEFORGE_LOG_DIR", str(tmp_path / "logs"))
    yield
    logging_utils.reset_logging()


@pytest.fixture
def records() -> dict:
    first = make_project("p1", name="First", code="let a = 1;", minutes=1)
    second = make_project("p2", name="Second", language="python", code="print('hi')", minutes=2)
    foreign = make_project("p3", user="bob", name="Bob's", minutes=3)
    return {project.id: project for project in (first, second, foreign)}


@pytest.fixture
def memory_store(records: dict) -> InMemoryProjectStore:
    return InMemoryProjectStore("alice", records=records)


@pytest.fixture
def gated_store(memory_store: InMemoryProjectStore) -> GatedStore:
    return GatedStore(memory_store)


@pytest.fixture
def evaluator() -> EchoEvaluator:
    return EchoEvaluator()


@pytest.fixture
def dispatcher(evaluator: EchoEvaluator) -> ExecutionDispatcher:
    return ExecutionDispatcher(evaluator=evaluator)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def settings_store(tmp_path: Path) -> SettingsStore:
    path = tmp_path / "settings.json"
    return SettingsStore(path, vault=SecretVault(key_path=tmp_path / "settings.key"))
