"""Tests for project models."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from codeforge.projects.models import DEFAULT_CODE, Language, Project, language_label


def test_language_labels() -> None:
    assert Language.CPP.label == "C++"
    assert Language("javascript") is Language.JAVASCRIPT
    assert len(Language) == 9


def test_language_label_falls_back_to_raw_id() -> None:
    assert language_label("cpp") == "C++"
    assert language_label("cobol") == "cobol"


def test_from_payload_reads_backend_document() -> None:
    project = Project.from_payload(
        {
            "_id": "abc",
            "user": {"_id": "u1", "username": "ada"},
            "name": "Demo",
            "language": "python",
            "code": "print(1)",
            "createdAt": "2024-01-01T10:00:00.000Z",
            "updatedAt": "2024-01-02T10:00:00.000Z",
        }
    )

    assert project.id == "abc"
    assert project.user == "u1"
    assert project.updated_at == datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


def test_from_payload_defaults() -> None:
    project = Project.from_payload({"id": "abc", "user": "u1", "name": "Empty"})

    assert project.language == "javascript"
    assert project.code == DEFAULT_CODE


def test_from_payload_requires_id() -> None:
    with pytest.raises(ValueError):
        Project.from_payload({"name": "No id"})

