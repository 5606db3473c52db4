"""
Configuration Management for the Tutor Gateway

Deployment settings come from the environment (and an optional .env file)
through pydantic-settings. Fixed policy limits live in GatewayConfig.

Usage:
    from tutor_gateway.config import settings

    api_key = settings.openrouter_api_key
    log_level = settings.log_level
"""

from typing import Literal, Optional
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
Environment = Literal["development", "production", "testing"]


class Settings(BaseSettings):
    """
    Deployment settings for the gateway.

    Example .env:
        OPENROUTER_API_KEY=sk-or-...
        APP_BASE_URL=https://elevated.chat
        LOG_LEVEL=INFO

    Attributes:
        openrouter_api_key: Upstream API key. Also read from
            VITE_OPENROUTER_API_KEY for deployments sharing the SPA env file.
        openrouter_base_url: OpenAI-compatible base URL of the provider
        app_base_url: Sent as HTTP-Referer on outbound model calls
        app_title: Sent as X-Title on outbound model calls

        primary_model: Model tried first
        fallback_model: Model tried once after the primary fails
        llm_temperature: Sampling temperature for tutor replies
        llm_timeout_seconds: Request timeout for a single model attempt

        learner_rate_limit: Requests per window per learner
        ip_rate_limit: Requests per window per client IP
        rate_limit_window_seconds: Sliding window length

        sentry_dsn: Exception tracking DSN (disabled when unset)
        supabase_url: Data store URL for learner context (in-memory when unset)
        supabase_service_role_key: Service key for the data store
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ===========================================
    # Upstream Provider
    # ===========================================
    openrouter_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENROUTER_API_KEY", "VITE_OPENROUTER_API_KEY"),
    )
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    app_base_url: str = "https://elevated.chat"
    app_title: str = "ElevatED"

    # ===========================================
    # LLM Configuration
    # ===========================================
    primary_model: str = Field(
        default="mistralai/mistral-7b-instruct:free",
        validation_alias=AliasChoices("TUTOR_PRIMARY_MODEL", "PRIMARY_MODEL"),
    )
    fallback_model: str = Field(
        default="mistralai/mistral-7b-instruct:free",
        validation_alias=AliasChoices("TUTOR_FALLBACK_MODEL", "FALLBACK_MODEL"),
    )
    llm_temperature: float = 0.4
    llm_timeout_seconds: float = Field(default=12.0, ge=3.0)

    # ===========================================
    # Rate Limits
    # ===========================================
    learner_rate_limit: int = 12
    ip_rate_limit: int = 30
    rate_limit_window_seconds: int = 5 * 60

    # ===========================================
    # Environment
    # ===========================================
    env: Environment = "development"
    debug: bool = True

    # ===========================================
    # Logging Configuration
    # ===========================================
    log_level: LogLevel = "INFO"
    log_to_file: bool = False
    log_file_path: str = "logs/tutor_gateway.log"
    log_format: Literal["json", "text"] = "json"

    # ===========================================
    # Collaborators
    # ===========================================
    sentry_dsn: Optional[str] = None
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None

    # ===========================================
    # Server Configuration
    # ===========================================
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env == "production"


class GatewayConfig:
    """
    Fixed limits of the tutor gateway.

    These are policy constants rather than deployment settings, so they are
    not read from the environment.
    """

    MAX_PROMPT_CHARS = 1200
    MAX_SYSTEM_PROMPT_CHARS = 1400
    MAX_KNOWLEDGE_CHARS = 3200
    MAX_RESPONSE_CHARS = 1600
    MAX_LEARNER_CONTEXT_CHARS = 1600

    # Learners under this grade get the stricter social-topic checks
    TEEN_GRADE_THRESHOLD = 13

    REDACTION_MARKER = "[redacted]"
    GUARDRAIL_MODEL = "guardrail"

    # Ops metrics retention
    OPS_MAX_EVENTS = 1000
    OPS_RETAIN_SECONDS = 24 * 60 * 60


@lru_cache()
def get_settings() -> Settings:
    """
    Settings loaded once per process.

    Returns:
        Cached Settings instance
    """
    return Settings()


# Module-level instance for import-time users (logging, run.py)
settings = get_settings()
