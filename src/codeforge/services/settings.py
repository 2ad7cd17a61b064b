"""Settings dataclasses and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "SECRET_FIELDS",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".codeforge"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_CIPHERTEXT_SUFFIX = "_ciphertext"
SECRET_FIELDS: tuple[str, ...] = ("auth_token", "execution_client_secret")
_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEFORGE_API_BASE_URL": "api_base_url",
    "CODEFORGE_AUTH_TOKEN": "auth_token",
    "CODEFORGE_EXECUTION_URL": "execution_url",
    "CODEFORGE_EXECUTION_CLIENT_ID": "execution_client_id",
    "CODEFORGE_EXECUTION_CLIENT_SECRET": "execution_client_secret",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEFORGE_DEBUG_LOGGING": "debug_logging",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "CODEFORGE_AUTOSAVE_DELAY": "autosave_delay",
    "CODEFORGE_REQUEST_TIMEOUT": "request_timeout",
    "CODEFORGE_EXECUTION_TIMEOUT": "execution_timeout",
    "CODEFORGE_LOCAL_TIMEOUT": "local_timeout_seconds",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    api_base_url: str = "http://localhost:5000/api"
    auth_token: str = ""
    execution_url: str = "https://api.jdoodle.com/v1/execute"
    execution_client_id: str = ""
    execution_client_secret: str = ""
    execution_version_index: str = "0"
    request_timeout: float = 30.0
    execution_timeout: float = 30.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    autosave_delay: float = 3.0
    local_timeout_seconds: float = 5.0
    last_project_id: str | None = None
    debug_logging: bool = False


class SecretProvider(ABC):
    """Interface for encrypting and decrypting sensitive strings."""

    name: str = "unknown"

    @abstractmethod
    def encrypt(self, secret: str) -> str:
        """Return an encoded representation of ``secret`` suitable for storage."""

    @abstractmethod
    def decrypt(self, token: str) -> str:
        """Return the plaintext representation of ``token``."""


class FernetSecretProvider(SecretProvider):
    """Secret provider that uses a symmetric Fernet key stored on disk."""

    name = "fernet"

    def __init__(self, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        token = self._get_fernet().encrypt(secret.encode("utf-8"))
        return token.decode("ascii")

    def decrypt(self, token: str) -> str:
        raw = self._get_fernet().decrypt(token.encode("ascii"))
        return raw.decode("utf-8")

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SecretVault:
    """Encrypts and decrypts secrets stored inside the settings file."""

    def __init__(self, *, key_path: Path | None = None, provider: SecretProvider | None = None) -> None:
        self._provider = provider or FernetSecretProvider(key_path)

    @property
    def strategy(self) -> str:
        return self._provider.name

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        return f"{self._provider.name}:{self._provider.encrypt(secret)}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if not payload or prefix != self._provider.name:
            raise ValueError(f"Secret was not produced by the {self._provider.name} backend")
        try:
            return self._provider.decrypt(payload)
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying CLI/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            secrets = {name: self._decrypt_secret(payload, name) for name in SECRET_FIELDS}
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()
            settings = replace(settings, **{key: value for key, value in secrets.items() if value})
            if payload.get("version") != _SETTINGS_VERSION:
                LOGGER.debug("Settings file %s has version %s", self._path, payload.get("version"))

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        body = json.dumps(self._serialize(settings), indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(self._path)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        data = asdict(settings)
        for name in SECRET_FIELDS:
            plaintext = data.pop(name, "") or ""
            if plaintext:
                data[name + _CIPHERTEXT_SUFFIX] = self._vault.encrypt(plaintext)
        data["version"] = _SETTINGS_VERSION
        data["secret_backend"] = self._vault.strategy
        return data

    def _decrypt_secret(self, payload: Dict[str, Any], name: str) -> str:
        ciphertext = payload.pop(name + _CIPHERTEXT_SUFFIX, None)
        legacy_plaintext = payload.pop(name, None)
        if ciphertext:
            try:
                return self._vault.decrypt(ciphertext)
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt %s: %s", name, exc)
                return ""
        if legacy_plaintext:
            LOGGER.info("Found plaintext %s in %s; it will be encrypted on next save.", name, self._path)
            return str(legacy_plaintext)
        return ""

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        return data

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {field.name for field in fields(Settings)}
        filtered = {key: value for key, value in overrides.items() if key in allowed and value is not None}
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid float", env_name, value)
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {field.name for field in fields(Settings)} - set(SECRET_FIELDS)
    return {key: value for key, value in payload.items() if key in allowed}


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
