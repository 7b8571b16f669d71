"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file)
once at startup.
"""

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

_NON_DIGITS = re.compile(r"\D")


def normalize_caller(number: str) -> str:
    """Reduce a phone number to its digits (Plivo omits the leading +)."""
    return _NON_DIGITS.sub("", number or "")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # Public addressing
    # ==========================================================================
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Externally reachable base URL used in webhook and media links",
    )

    # ==========================================================================
    # Access control
    # ==========================================================================
    allowed_callers: str = Field(
        default="",
        description="Comma-separated caller numbers allowed to use the bot",
    )

    # ==========================================================================
    # Conversational AI
    # ==========================================================================
    groq_api_keys: SecretStr = Field(
        default=SecretStr(""),
        description="Comma-separated Groq API keys, tried in order",
    )
    groq_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Groq chat model",
    )
    ai_system_prompt: str = Field(
        default=(
            "You are a helpful phone assistant. Keep answers short. "
            "If the user asks for music, tell them to press pound."
        ),
        description="System prompt for the phone assistant",
    )
    ai_timeout_seconds: float = Field(
        default=8.0,
        description="Per-credential timeout for AI requests",
    )

    # ==========================================================================
    # Media acquisition
    # ==========================================================================
    media_dir: str = Field(
        default="/tmp/dialtune",
        description="Local ephemeral storage for downloaded and trimmed audio",
    )
    media_min_bytes: int = Field(
        default=20_000,
        description="Smallest downloaded file accepted as a real track",
    )
    slice_min_bytes: int = Field(
        default=4_096,
        description="Smallest trimmed file accepted as a valid resume slice",
    )
    media_retention_seconds: float = Field(
        default=1800.0,
        description="How long a produced media file is kept after its last play",
    )
    ytdlp_binary: str = Field(default="yt-dlp", description="yt-dlp executable")
    ffmpeg_binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    ytdlp_timeout_seconds: float = Field(
        default=40.0,
        description="Kill a yt-dlp attempt after this many seconds",
    )
    ffmpeg_timeout_seconds: float = Field(
        default=20.0,
        description="Kill an ffmpeg trim after this many seconds",
    )
    max_track_seconds: int = Field(
        default=900,
        description="Duration filter for the first (filtered) search attempt",
    )

    # ==========================================================================
    # Call flow
    # ==========================================================================
    wait_budget_seconds: float = Field(
        default=60.0,
        description="Maximum time a call keeps polling a media job",
    )
    poll_interval_seconds: int = Field(
        default=3,
        description="Pause between media job polls",
    )
    input_timeout_seconds: int = Field(
        default=5,
        description="How long to wait for caller input on each prompt",
    )
    session_idle_seconds: float = Field(
        default=3600.0,
        description="Forget a call with no webhook for this long (lost hangup)",
    )
    speak_voice: str = Field(default="WOMAN", description="Plivo Speak voice")
    speak_language: str = Field(default="en-US", description="Plivo Speak language")

    # ==========================================================================
    # Telephony security
    # ==========================================================================
    plivo_auth_token: SecretStr | None = Field(
        default=None,
        description="Plivo Auth Token, used to validate webhook signatures",
    )
    verify_plivo_signature: bool = Field(
        default=False,
        description="Reject IVR webhooks without a valid X-Plivo-Signature-V3",
    )

    # ==========================================================================
    # Diagnostics
    # ==========================================================================
    diagnostics_password_hash: str = Field(
        default="",
        description="bcrypt hash of the diagnostics password (empty disables the view)",
    )
    log_buffer_lines: int = Field(
        default=500,
        description="Number of recent log lines kept for the diagnostics view",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def allowed_caller_set(self) -> frozenset[str]:
        """Allow-listed callers, normalized to digits."""
        numbers = (normalize_caller(n) for n in self.allowed_callers.split(","))
        return frozenset(n for n in numbers if n)

    @property
    def groq_key_list(self) -> list[str]:
        """Groq API keys in the order they should be tried."""
        raw = self.groq_api_keys.get_secret_value()
        return [k.strip() for k in raw.split(",") if k.strip()]

    @property
    def media_path(self) -> Path:
        return Path(self.media_dir)

    def is_allowed_caller(self, number: str) -> bool:
        normalized = normalize_caller(number)
        return bool(normalized) and normalized in self.allowed_caller_set


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Use dependency injection in FastAPI:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
