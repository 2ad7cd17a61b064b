"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from codeforge.services.settings import SecretVault, Settings, SettingsStore, redact_secret


def test_load_returns_defaults_when_file_missing(settings_store: SettingsStore) -> None:
    assert settings_store.load() == Settings()


def test_save_and_load_roundtrip(settings_store: SettingsStore) -> None:
    original = Settings(
        api_base_url="https://forge.example/api",
        auth_token="jwt-token-value",
        execution_client_id="client",
        execution_client_secret="runner-secret",
        autosave_delay=1.5,
        max_retries=5,
        debug_logging=True,
        last_project_id="p1",
    )

    settings_store.save(original)
    reloaded = SettingsStore(settings_store.path, vault=settings_store.vault).load()

    assert reloaded == original


def test_secrets_are_encrypted_at_rest(settings_store: SettingsStore) -> None:
    settings_store.save(Settings(auth_token="jwt-token-value", execution_client_secret="runner-secret"))

    payload = json.loads(settings_store.path.read_text(encoding="utf-8"))

    assert "auth_token" not in payload
    assert "execution_client_secret" not in payload
    assert payload["auth_token_ciphertext"].startswith("fernet:")
    assert "jwt-token-value" not in settings_store.path.read_text(encoding="utf-8")
    assert payload["secret_backend"] == "fernet"


def test_legacy_plaintext_secret_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"auth_token": "legacy", "autosave_delay": 2.0}), encoding="utf-8")

    settings = SettingsStore(path, vault=SecretVault(key_path=tmp_path / "key")).load()

    assert settings.auth_token == "legacy"
    assert settings.autosave_delay == 2.0


def test_undecryptable_secret_is_dropped(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"auth_token_ciphertext": "fernet:not-a-token"}), encoding="utf-8")

    settings = SettingsStore(path, vault=SecretVault(key_path=tmp_path / "key")).load()

    assert settings.auth_token == ""


def test_invalid_json_falls_back_to_defaults(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    assert SettingsStore(path, vault=SecretVault(key_path=tmp_path / "key")).load() == Settings()


def test_unknown_fields_are_ignored(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    payload = {"execution_version_index": "4", "font_size": 18, "theme": "github"}
    path.write_text(json.dumps(payload), encoding="utf-8")

    settings = SettingsStore(path, vault=SecretVault(key_path=tmp_path / "key")).load()

    assert settings.execution_version_index == "4"
    assert not hasattr(settings, "theme")


def test_cli_overrides_apply_on_load(settings_store: SettingsStore) -> None:
    settings = settings_store.load(overrides={"autosave_delay": 0.5, "max_retries": 1})

    assert settings.autosave_delay == 0.5
    assert settings.max_retries == 1


def test_environment_overrides_win(settings_store: SettingsStore, monkeypatch: pytest.MonkeyPatch) -> None:
    settings_store.save(Settings(api_base_url="https://saved.example/api"))
    monkeypatch.setenv("CODEFORGE_API_BASE_URL", "https://env.example/api")
    monkeypatch.setenv("CODEFORGE_AUTOSAVE_DELAY", "4.5")
    monkeypatch.setenv("CODEFORGE_DEBUG_LOGGING", "yes")

    settings = settings_store.load()

    assert settings.api_base_url == "https://env.example/api"
    assert settings.autosave_delay == 4.5
    assert settings.debug_logging is True


def test_vault_rejects_foreign_prefix(tmp_path: Path) -> None:
    vault = SecretVault(key_path=tmp_path / "key")

    with pytest.raises(ValueError):
        vault.decrypt("other:payload")


def test_vault_roundtrip_and_key_reuse(tmp_path: Path) -> None:
    key_path = tmp_path / "key"
    token = SecretVault(key_path=key_path).encrypt("hunter2")

    assert SecretVault(key_path=key_path).decrypt(token) == "hunter2"
    assert SecretVault(key_path=key_path).encrypt("") == ""


def test_redact_secret() -> None:
    assert redact_secret("") == ""
    assert redact_secret("abc") == "***"
    assert redact_secret("abcdefgh") == "ab****gh"
