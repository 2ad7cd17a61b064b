"""Project models and stores."""

from .models import Language, Project
from .store import InMemoryProjectStore, ProjectStore

__all__ = ["InMemoryProjectStore", "Language", "Project", "ProjectStore"]
