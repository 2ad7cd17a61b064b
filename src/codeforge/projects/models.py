"""Dataclasses describing persisted projects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

__all__ = [
    "DEFAULT_CODE",
    "NEW_PROJECT_CODE",
    "Language",
    "Project",
    "language_label",
]

# Placeholder stored by the backend when a project is created without code.
DEFAULT_CODE = "// Start coding..."
# Placeholder sent by the project list when creating a project.
NEW_PROJECT_CODE = "// Start coding...\n"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Language(str, Enum):
    """Languages a project can be created with."""

    JAVASCRIPT = "javascript"
    PYTHON = "python"
    JAVA = "java"
    HTML = "html"
    CSS = "css"
    CPP = "cpp"
    C = "c"
    GO = "go"
    RUBY = "ruby"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS: dict[Language, str] = {
    Language.JAVASCRIPT: "JavaScript",
    Language.PYTHON: "Python",
    Language.JAVA: "Java",
    Language.HTML: "HTML",
    Language.CSS: "CSS",
    Language.CPP: "C++",
    Language.C: "C",
    Language.GO: "Go",
    Language.RUBY: "Ruby",
}


def language_label(value: str) -> str:
    """Display name for a language id; ids written by other clients are shown as-is."""

    try:
        return Language(value).label
    except ValueError:
        return value


@dataclass(slots=True, frozen=True)
class Project:
    """Snapshot of a project as last seen in the project store.

    ``language`` is kept as the raw identifier so that values written by other
    clients survive a round trip; it is never changed after creation.
    """

    id: str
    user: str
    name: str
    language: str = Language.JAVASCRIPT.value
    code: str = DEFAULT_CODE
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Project":
        """Build a project from the REST backend's JSON document."""

        project_id = payload.get("_id") or payload.get("id")
        if not project_id:
            raise ValueError("Project payload is missing an id")
        user = payload.get("user")
        if isinstance(user, Mapping):
            user = user.get("_id") or user.get("id")
        created = _parse_timestamp(payload.get("createdAt") or payload.get("created_at"))
        updated = _parse_timestamp(payload.get("updatedAt") or payload.get("updated_at"))
        code = payload.get("code")
        return cls(
            id=str(project_id),
            user=str(user or ""),
            name=str(payload.get("name") or ""),
            language=str(payload.get("language") or Language.JAVASCRIPT.value),
            code=DEFAULT_CODE if code is None else str(code),
            created_at=created or _utcnow(),
            updated_at=updated or created or _utcnow(),
        )


def _parse_timestamp(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    # Mongo serializes with a trailing "Z" which older fromisoformat rejects.
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
