"""Editing session, project list and editor-side helpers."""

from .events import EventBus
from .session import EditSession, SaveStatus, SessionController
from .workspace import ProjectBrowser

__all__ = ["EditSession", "EventBus", "ProjectBrowser", "SaveStatus", "SessionController"]
