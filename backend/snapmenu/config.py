"""
SnapMenu Backend — Application Configuration
==============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before app starts.

Groups:
    - Google Gemini:   extraction model, key, and request timeout
    - Share links:     base address, query key, QR advisory length, decode cap
    - Uploads:         image count and per-image size limits
    - Server / CORS / logging
    - Resilience:      tenacity retry, circuit breaker, rate limiting
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have development defaults. Production deployments must
    set GEMINI_API_KEY, SHARE_BASE_URL and CORS_ORIGINS.
    """

    # ── Google Gemini ─────────────────────────────────────────────────────
    # How to obtain a key: https://aistudio.google.com/app/apikey
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key for menu extraction"
    )

    # Model used for structured extraction (JSON mode with response schema)
    gemini_model: str = Field(default="gemini-2.5-flash")

    # Seconds to wait for a single generate_content call
    gemini_timeout: int = Field(default=90, ge=10, le=600)

    # ── Share Links ───────────────────────────────────────────────────────
    # What: Public address of the menu viewer; the token is appended to it
    share_base_url: str = Field(default="http://localhost:3000/")

    # What: The single recognized query parameter carrying the token
    share_param: str = Field(default="m", min_length=1, max_length=16)

    # What: Address length above which dense QR codes stop scanning reliably
    # Advisory only: long addresses are still returned, just flagged
    qr_advisory_length: int = Field(default=2500, ge=100, le=10_000)

    # What: Tokens longer than this are rejected before decompression
    # A QR code holds at most 2953 bytes; lz-string output can grow
    # quadratically in token length, so untrusted links are capped near that
    max_token_length: int = Field(default=4_096, ge=1_024, le=8_192)

    # ── Uploads ───────────────────────────────────────────────────────────
    # What: Maximum number of menu pages per extraction request
    max_images: int = Field(default=10, ge=1, le=50)

    # What: Maximum size of a single image in bytes
    # Default: 10MB = 10 * 1024 * 1024 = 10485760
    max_file_size: int = Field(default=10_485_760, ge=1_048_576, le=52_428_800)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Format: Comma-separated URLs (parsed by property below)
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Retry Configuration ───────────────────────────────────────────────
    # Tenacity settings for Gemini API calls (exponential backoff + jitter)
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: int = Field(default=2, ge=1, le=30)
    retry_max_wait: int = Field(default=10, ge=5, le=120)

    # ── Circuit Breaker ───────────────────────────────────────────────────
    # After N consecutive failures, stop calling Gemini for M seconds
    cb_failure_threshold: int = Field(default=5, ge=2, le=20)
    cb_recovery_timeout: int = Field(default=60, ge=10, le=300)

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # Per-IP sliding window, applied to extraction requests only
    rate_limit_requests: int = Field(default=30, ge=1, le=10000)
    rate_limit_window: int = Field(default=3600, ge=60, le=86400)  # seconds

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that critical settings are configured.
        When:  Called during app startup (lifespan).
        How:   Collects every problem and raises one ValueError listing them.
        """
        errors = []
        if not self.gemini_api_key or self.gemini_api_key == "your_gemini_api_key_here":
            errors.append(
                "GEMINI_API_KEY is not set. Menu extraction will fail. "
                "Get a free key at https://aistudio.google.com/app/apikey"
            )
        if not self.share_base_url.startswith(("http://", "https://")):
            errors.append(
                f"SHARE_BASE_URL '{self.share_base_url}' must be an absolute http(s) URL."
            )
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported throughout the application
settings = Settings()
