"""Tests for environment-driven settings."""
from __future__ import annotations

import pytest

from src.shared.config import OracleSettings, SharedConfig


class TestSharedConfig:
    def test_default_values(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        config = SharedConfig()
        assert config.log_level == "info"

    def test_env_override_log_level(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        config = SharedConfig()
        assert config.log_level == "debug"


class TestOracleSettings:
    def test_default_values(self, monkeypatch: pytest.MonkeyPatch):
        for name in (
            "ANTHROPIC_API_KEY",
            "TRACEABILITY_ORACLE_URL",
            "TRACEABILITY_ORACLE_MAX_TOKENS",
            "TRACEABILITY_ORACLE_TIMEOUT",
        ):
            monkeypatch.delenv(name, raising=False)
        settings = OracleSettings()
        assert settings.api_key == ""
        assert settings.base_url == "https://api.anthropic.com"
        assert settings.max_tokens == 1024
        assert settings.request_timeout == 60.0

    def test_inherits_shared_defaults(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert OracleSettings().log_level == "info"

    def test_env_override_api_key(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        assert OracleSettings().api_key == "sk-test"

    def test_env_override_numbers(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TRACEABILITY_ORACLE_MAX_TOKENS", "2048")
        monkeypatch.setenv("TRACEABILITY_ORACLE_TIMEOUT", "5.5")
        settings = OracleSettings()
        assert settings.max_tokens == 2048
        assert settings.request_timeout == 5.5

    def test_env_override_model_and_url(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TRACEABILITY_ORACLE_MODEL", "local-model")
        monkeypatch.setenv("TRACEABILITY_ORACLE_URL", "http://localhost:9000")
        settings = OracleSettings()
        assert settings.model == "local-model"
        assert settings.base_url == "http://localhost:9000"

    def test_provider_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for name in ("TRACEABILITY_ORACLE_PROVIDER", "OPENAI_API_KEY", "TRACEABILITY_OPENAI_URL"):
            monkeypatch.delenv(name, raising=False)
        settings = OracleSettings()
        assert settings.provider == "anthropic"
        assert settings.openai_api_key == ""
        assert settings.openai_base_url == "https://api.openai.com"

    def test_env_selects_openai(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("TRACEABILITY_ORACLE_PROVIDER", "openai")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        monkeypatch.setenv("TRACEABILITY_OPENAI_MODEL", "gpt-test")
        settings = OracleSettings()
        assert settings.provider == "openai"
        assert settings.openai_api_key == "sk-openai"
        assert settings.openai_model == "gpt-test"
