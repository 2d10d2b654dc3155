"""Application settings using Pydantic BaseSettings for environment variable management."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from grantflow.exceptions import ConfigurationError


class Settings(BaseSettings):
    """
    Global application settings loaded from environment variables.

    Attributes:
        gemini_api_key: Google Gemini API key used for cross-reference checks
        gemini_model: Gemini model with Google Search grounding support
        max_rpm: Maximum requests per minute to the model API
        max_tpm: Maximum tokens per minute to the model API
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Log output format (json for production, console for dev)
        supabase_url: Base URL of the hosted grant store
        supabase_service_role_key: Service role key (preferred)
        supabase_anon_key: Anonymous key (fallback)
        cron_secret: Shared secret for the scheduled batch trigger
        app_password: Shared secret for on-demand single-grant verification
        dev_mode: Allow the batch trigger without a cron secret
        project_context: Free-text description of the tracked project
        freshness_window_days: Age after which a verification is stale
        batch_budget_seconds: Wall-clock budget for one batch run
        inter_call_delay_seconds: Pause between grants in a batch
        url_timeout_seconds: Timeout for the official URL request
        crossref_timeout_seconds: Deadline for the cross-reference call (all attempts)
        store_path: JSON file backing the in-memory store
    """

    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key"
    )
    gemini_model: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model identifier (must support search grounding)"
    )
    max_rpm: int = Field(
        default=15,
        description="Maximum requests per minute (free tier limit)"
    )
    max_tpm: int = Field(
        default=1_000_000,
        description="Maximum tokens per minute"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )
    log_format: str = Field(
        default="json",
        description="Log output format: json or console"
    )
    supabase_url: str = Field(
        default="",
        description="Supabase project URL (PostgREST lives under /rest/v1)"
    )
    supabase_service_role_key: str = Field(
        default="",
        description="Supabase service role key"
    )
    supabase_anon_key: str = Field(
        default="",
        description="Supabase anon key, used when no service role key is set"
    )
    cron_secret: str = Field(
        default="",
        description="Bearer secret for the scheduled verify-all trigger"
    )
    app_password: str = Field(
        default="",
        description="x-app-password value for on-demand verification"
    )
    dev_mode: bool = Field(
        default=False,
        description="Allow verify-all without a cron secret"
    )
    project_context: str = Field(
        default="",
        description="Project description passed to the cross-reference model"
    )
    freshness_window_days: int = Field(
        default=7,
        description="Days before a verification is considered stale"
    )
    batch_budget_seconds: float = Field(
        default=270.0,
        description="Wall-clock budget per batch (hard ceiling is 300s)"
    )
    inter_call_delay_seconds: float = Field(
        default=1.0,
        description="Delay between grants in a batch"
    )
    url_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for the official URL request"
    )
    crossref_timeout_seconds: float = Field(
        default=25.0,
        description="Deadline for the cross-reference call, retries included"
    )
    store_path: Optional[str] = Field(
        default=None,
        description="JSON persistence path for the in-memory store"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def supabase_key(self) -> str:
        """Service role key if set, otherwise the anon key."""
        return self.supabase_service_role_key or self.supabase_anon_key

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    def require(self, *names: str) -> None:
        """
        Ensure the named settings are non-empty.

        Args:
            *names: Attribute names to check (properties allowed)

        Raises:
            ConfigurationError: Listing every missing setting
        """
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError([name.upper() for name in missing])


# Singleton instance - import this throughout the application
settings = Settings()
