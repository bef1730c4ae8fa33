"""
Unified Configuration Management for Termalime

Consolidates all configuration into a single source of truth using Pydantic BaseSettings.
All settings can be overridden via environment variables with TERMALIME_ prefix.

Usage:
    from termalime.config import get_settings

    settings = get_settings()
    print(settings.ollama_base_url)
    print(settings.snapshot_max_bytes)
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ===== Fixed Defaults =====

OLLAMA_BASE_URL = "http://127.0.0.1:11434"
"""Local model server address"""

OLLAMA_TIMEOUT = 30
"""Request timeout for model server calls (seconds)"""

DEFAULT_CHAT_MODEL = "llama3"
"""Model used by the assistant chat when none is requested"""

DEFAULT_PREFLIGHT_MODEL = "gemma3:270m"
"""Model used for command risk analysis when none is requested"""

READER_CHUNK_SIZE = 4 * 1024  # 4 KB
"""Bytes requested per PTY read"""

SNAPSHOT_MAX_BYTES = 16 * 1024  # 16 KB
"""Maximum bytes of recent output kept per session"""

CONTEXT_DEFAULT_LINES = 200
"""Lines returned by get_terminal_context when the caller does not ask"""

CONTEXT_MAX_LINES = 400
"""Hard upper bound for get_terminal_context"""

SUSPICION_THRESHOLD = 10
"""Commands scoring below this never reach the model"""


class TermalimeSettings(BaseSettings):
    """
    Unified configuration for Termalime

    All settings can be overridden via environment variables with TERMALIME_ prefix.
    Example: TERMALIME_OLLAMA_BASE_URL=http://10.0.0.5:11434
    """

    model_config = SettingsConfigDict(
        env_prefix="TERMALIME_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============================================
    # SYSTEM SETTINGS
    # ============================================

    environment: Literal["development", "production", "testing"] = Field(
        default="development",
        description="Application environment"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # API SERVER SETTINGS
    # ============================================

    api_host: str = Field(
        default="127.0.0.1",
        description="API server host"
    )

    api_port: int = Field(
        default=8765,
        description="API server port"
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "tauri://localhost",
            "http://tauri.localhost",
            "http://localhost:1420",  # Tauri dev server
            "http://127.0.0.1:1420",
        ],
        description="Origins allowed to call the API (JSON list in the environment)"
    )

    # ============================================
    # MODEL SERVER SETTINGS
    # ============================================

    ollama_base_url: str = Field(
        default=OLLAMA_BASE_URL,
        description="Base URL of the local model server"
    )

    ollama_timeout: float = Field(
        default=OLLAMA_TIMEOUT,
        description="Request timeout for model server calls in seconds"
    )

    chat_model: str = Field(
        default=DEFAULT_CHAT_MODEL,
        description="Default model for assistant chat"
    )

    preflight_model: str = Field(
        default=DEFAULT_PREFLIGHT_MODEL,
        description="Default model for command risk analysis"
    )

    suspicion_threshold: int = Field(
        default=SUSPICION_THRESHOLD,
        description="Minimum heuristic score that triggers a model-backed check"
    )

    # ============================================
    # TERMINAL SETTINGS
    # ============================================

    default_shell: Optional[str] = Field(
        default=None,
        description="Shell to spawn (falls back to $SHELL, then /bin/bash)"
    )

    reader_chunk_size: int = Field(
        default=READER_CHUNK_SIZE,
        description="Bytes requested per PTY read"
    )

    snapshot_max_bytes: int = Field(
        default=SNAPSHOT_MAX_BYTES,
        description="Bytes of recent output kept per session for assistant context"
    )

    context_default_lines: int = Field(
        default=CONTEXT_DEFAULT_LINES,
        description="Default number of lines returned as terminal context"
    )

    context_max_lines: int = Field(
        default=CONTEXT_MAX_LINES,
        description="Maximum number of lines returned as terminal context"
    )

    registry_lock_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for the session registry lock"
    )

    session_close_timeout: float = Field(
        default=2.0,
        description="Seconds to wait for a shell to exit before killing it"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level"""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("ollama_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("reader_chunk_size", "snapshot_max_bytes", "context_max_lines")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v


@lru_cache
def get_settings() -> TermalimeSettings:
    """
    Get cached settings instance (singleton pattern)

    Returns:
        TermalimeSettings: Application settings
    """
    return TermalimeSettings()
