"""Service layer helpers (settings, backend API, authentication)."""

from .settings import Settings, SettingsStore

__all__ = ["Settings", "SettingsStore"]
