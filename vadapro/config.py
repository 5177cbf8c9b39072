"""
Configuration management using Pydantic Settings.

All settings loaded from environment variables (.env file).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Gemini API
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    provider_timeout_seconds: float = 60.0

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5050
    api_reload: bool = True

    # CORS
    cors_origins: str = "*"  # Comma-separated list or "*"

    # Logging
    log_level: str = "INFO"

    # Rate Limiting (process-wide, not per organization)
    requests_per_minute: int = 10
    requests_per_day: int = 250
    max_tokens_per_minute: int = 250_000
    rate_limit_max_users: int = 10_000
    rate_limit_idle_ttl_seconds: float = 24 * 60 * 60

    # Daily limits reset at midnight in this IANA zone (e.g. "Europe/Amsterdam")
    timezone: str = "UTC"

    # Queue
    max_queue_size: int = 100
    queue_drain_interval_seconds: float = 5.0
    tick_interval_seconds: float = 1.0

    # Monitoring
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = 0.1
    otel_exporter_endpoint: str = ""
    otel_service_name: str = "vadapro-ai-gateway"

    # Environment
    environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"


# Global settings instance
settings = Settings()
