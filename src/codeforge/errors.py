"""Exception hierarchy shared by the CodeForge services."""

from __future__ import annotations

__all__ = [
    "CodeForgeError",
    "ProjectStoreError",
    "ProjectNotFoundError",
    "ProjectLoadError",
    "AuthenticationError",
    "EvaluationError",
    "FormatError",
]


class CodeForgeError(Exception):
    """Base class for errors raised by CodeForge components."""


class ProjectStoreError(CodeForgeError):
    """Raised when the project store cannot complete a request."""


class ProjectNotFoundError(ProjectStoreError):
    """Raised when a project id is unknown or not owned by the caller.

    Stores never distinguish "forbidden" from "missing".
    """

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class ProjectLoadError(CodeForgeError):
    """Raised when a project could not be fetched for editing."""


class AuthenticationError(CodeForgeError):
    """Raised when the backend rejects credentials or a token."""


class EvaluationError(CodeForgeError):
    """Raised by a local evaluator when user code throws."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class FormatError(CodeForgeError):
    """Raised when the buffer cannot be reformatted."""
