"""
NoteDrop Backend — Application Configuration
=============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by every module that needs configuration values.
When:  Loaded once at module import time; validated before app starts.

Required in production:
    GITHUB_REPO_OWNER, GITHUB_REPO_NAME, GITHUB_TOKEN, NOTES_POST_PASSWORD
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development except the
    repository coordinates and the two secrets, which default to empty
    and are reported by validate_required_for_production().
    """

    # ── Document Repository ───────────────────────────────────────────────
    # What: Where notes.json lives. The branch and path together name the
    # single shared document every request reads and rewrites.
    github_api_url: str = Field(default="https://api.github.com")
    github_repo_owner: str = Field(default="")
    github_repo_name: str = Field(default="")
    github_branch: str = Field(default="main")
    github_token: str = Field(default="", description="Token for the contents API")
    notes_document_path: str = Field(default="notes.json")
    commit_message: str = Field(default="Update notes")

    # GitHub rejects API calls without a User-Agent header
    user_agent: str = Field(default="NoteDrop/1.0")

    # Seconds for a single read or write against the contents API
    document_timeout: float = Field(default=10.0, gt=0, le=120)

    # ── Submission Secret ─────────────────────────────────────────────────
    notes_post_password: str = Field(
        default="",
        description="Shared secret required to submit a note",
    )

    # ── Transformation Services ───────────────────────────────────────────
    obfuscator_url: str = Field(
        default="https://broken-pine-ac7f.hiplitehehe.workers.dev/api/obfuscate"
    )
    filter_url: str = Field(default="https://tiny-river-0235.hiplitehehe.workers.dev/")
    transform_timeout: float = Field(default=5.0, gt=0, le=60)

    # Comma-separated substrings that mark content as script-like
    script_markers: str = Field(default="game,script")

    @property
    def script_markers_list(self) -> List[str]:
        """Splits the comma-separated markers, dropping blanks."""
        return [m.strip() for m in self.script_markers.split(",") if m.strip()]

    # ── Visibility Gate ───────────────────────────────────────────────────
    visibility_marker: str = Field(default="roblox", min_length=1)
    redaction_placeholder: str = Field(default="Content hidden", min_length=1)

    # ── Retry Configuration ───────────────────────────────────────────────
    # What: Tenacity settings for document reads that hit a TransientError.
    # Writes are never retried by the client; see conflict_retry_attempts.
    fetch_retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_min_wait: float = Field(default=0.5, ge=0, le=30)
    retry_max_wait: float = Field(default=4.0, ge=0, le=120)

    # What: Extra reload-and-reapply rounds after a lost conditional write.
    # 0 surfaces every conflict to the submitter unchanged.
    conflict_retry_attempts: int = Field(default=0, ge=0, le=5)

    # ── CORS ──────────────────────────────────────────────────────────────
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

    # ── Rate Limiting ─────────────────────────────────────────────────────
    # What: Per-IP sliding window applied to note submissions only
    rate_limit_requests: int = Field(default=30, ge=1, le=10000)
    rate_limit_window: int = Field(default=3600, ge=1, le=86400)  # seconds

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that the repository and secrets are configured.
        When:  Called during app startup (lifespan).
        Raises ValueError listing every missing value.
        """
        errors = []
        if not self.github_repo_owner or not self.github_repo_name:
            errors.append("GITHUB_REPO_OWNER and GITHUB_REPO_NAME must both be set.")
        if not self.github_token:
            errors.append("GITHUB_TOKEN is not set; the contents API will reject writes.")
        if not self.notes_post_password:
            errors.append("NOTES_POST_PASSWORD is not set; every submission will be refused.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported throughout the application
settings = Settings()
