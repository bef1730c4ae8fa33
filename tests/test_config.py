"""
Tests for termalime.config
"""

import pytest
from pydantic import ValidationError

from termalime.config import (
    CONTEXT_MAX_LINES,
    SNAPSHOT_MAX_BYTES,
    TermalimeSettings,
    get_settings,
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "TERMALIME_OLLAMA_BASE_URL",
        "TERMALIME_LOG_LEVEL",
        "TERMALIME_CHAT_MODEL",
        "TERMALIME_PREFLIGHT_MODEL",
        "TERMALIME_SNAPSHOT_MAX_BYTES",
        "TERMALIME_CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestTermalimeSettings:
    """Defaults and environment overrides"""

    def test_defaults(self, clean_env):
        settings = TermalimeSettings()

        assert settings.ollama_base_url == "http://127.0.0.1:11434"
        assert settings.ollama_timeout == 30
        assert settings.preflight_model == "gemma3:270m"
        assert settings.snapshot_max_bytes == SNAPSHOT_MAX_BYTES == 16384
        assert settings.context_default_lines == 200
        assert settings.context_max_lines == CONTEXT_MAX_LINES == 400
        assert settings.reader_chunk_size == 4096
        assert settings.suspicion_threshold == 10

    def test_environment_override(self, clean_env):
        clean_env.setenv("TERMALIME_OLLAMA_BASE_URL", "http://10.0.0.5:11434/")
        clean_env.setenv("TERMALIME_CHAT_MODEL", "mistral")
        clean_env.setenv("TERMALIME_CORS_ORIGINS", '["http://localhost:9999"]')

        settings = TermalimeSettings()

        assert settings.ollama_base_url == "http://10.0.0.5:11434"
        assert settings.chat_model == "mistral"
        assert settings.cors_origins == ["http://localhost:9999"]

    def test_log_level_is_normalized(self, clean_env):
        clean_env.setenv("TERMALIME_LOG_LEVEL", "debug")
        assert TermalimeSettings().log_level == "DEBUG"

    def test_invalid_log_level(self, clean_env):
        clean_env.setenv("TERMALIME_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            TermalimeSettings()

    def test_sizes_must_be_positive(self, clean_env):
        clean_env.setenv("TERMALIME_SNAPSHOT_MAX_BYTES", "0")
        with pytest.raises(ValidationError):
            TermalimeSettings()

    def test_get_settings_is_cached(self, clean_env):
        assert get_settings() is get_settings()
