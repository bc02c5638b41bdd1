"""
Sol Configuration
=================
All environment variables in one place. Pydantic Settings validates
types at startup so a missing or malformed value fails on boot.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file."""

    # --- Supabase ---
    supabase_url: str = "http://localhost:54321"
    supabase_service_key: str = ""  # service_role key for backend operations
    supabase_anon_key: str = ""  # used only for password sign-in / refresh

    # --- Anthropic / Claude API ---
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    # Analysis, recommendation and summary replies are small JSON documents
    anthropic_max_tokens: int = 1024

    # --- App settings ---
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000"]

    # --- Feature flags ---
    # Kill switch: if False, skip the Claude API and always use the
    # rule-based analysis and recommendations.
    enable_ai_analysis: bool = True

    # --- Avatars ---
    avatar_bucket: str = "avatars"
    avatar_max_bytes: int = 5 * 1024 * 1024

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
