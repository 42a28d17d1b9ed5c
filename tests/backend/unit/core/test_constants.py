"""Tests for settings validation and derived values."""

from __future__ import annotations

import pytest

from pydantic import ValidationError

from core import constants
from core.constants import AGENTS, DEFAULT_AGENT, Settings, clear_settings_cache, reload_settings


def _settings(**overrides: object) -> Settings:
    values: dict[str, object] = {"openai_api_key": "sk-test-1234567890", "app_env": "test"}
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


class TestSettings:
    def test_default_agent_is_known(self) -> None:
        assert DEFAULT_AGENT in AGENTS

    def test_openai_requires_key(self) -> None:
        with pytest.raises(ValidationError, match="openai_api_key is required"):
            _settings(openai_api_key=None)

    def test_openrouter_uses_its_key_and_base_url(self) -> None:
        settings = _settings(api_provider="OpenRouter", openrouter_api_key="or-test-1234567890")

        assert settings.api_provider == "openrouter"
        assert settings.model_api_key == "or-test-1234567890"
        assert settings.model_base_url is not None
        assert settings.model_base_url.startswith("https://openrouter.ai/api/v1")

    def test_openai_has_no_base_url_override(self) -> None:
        settings = _settings()

        assert settings.model_api_key == "sk-test-1234567890"
        assert settings.model_base_url is None

    def test_webhook_url_per_agent(self) -> None:
        settings = _settings(datasteward_webhook_url="https://hooks.example.com/ds")

        assert settings.webhook_url_for("data-steward") == "https://hooks.example.com/ds"
        assert settings.webhook_url_for("contract-reader") is None
        assert settings.webhook_url_for("sales-bot") is None

    def test_step_cap_must_be_positive(self) -> None:
        with pytest.raises(ValidationError, match="max_chat_steps"):
            _settings(max_chat_steps=0)

    def test_production_rejects_default_jwt_secret(self) -> None:
        with pytest.raises(ValidationError, match="jwt_secret must be changed"):
            _settings(app_env="production")

    def test_production_rejects_localhost_bypass(self) -> None:
        with pytest.raises(ValidationError, match="allow_localhost_noauth"):
            _settings(app_env="production", jwt_secret="a-real-production-secret", allow_localhost_noauth=True)

    def test_invalid_app_env(self) -> None:
        with pytest.raises(ValidationError, match="app_env must be"):
            _settings(app_env="staging")


class TestSettingsManager:
    def test_reload_settings_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env-1234567890")
        monkeypatch.setenv("APP_ENV", "test")
        monkeypatch.setenv("MAX_CHAT_STEPS", "4")

        settings = reload_settings()

        assert settings.max_chat_steps == 4
        assert constants._settings_manager._instance is settings

    def test_clear_settings_cache(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env-1234567890")
        monkeypatch.setenv("APP_ENV", "test")
        reload_settings()

        clear_settings_cache()

        assert constants._settings_manager._instance is None
