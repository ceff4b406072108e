"""Gateway configuration management using Pydantic Settings."""

from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Gateway settings loaded from environment variables."""

    # Application Settings
    app_name: str = Field(default="Oneline API Gateway", alias="APP_NAME")
    app_version: str = Field(default="2.0.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="", alias="LOG_FORMAT")

    # CORS Settings
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    # Persistence (reference collaborators)
    database_url: str = Field(default="sqlite:///./gateway.db", alias="DATABASE_URL")

    # Credentials
    api_key_prefix: str = Field(default="oline", alias="API_KEY_PREFIX")

    # Rate limiting (per key, per request class)
    rate_limit_read_per_minute: int = Field(default=120, alias="RATE_LIMIT_READ_PER_MINUTE")
    rate_limit_write_per_minute: int = Field(default=60, alias="RATE_LIMIT_WRITE_PER_MINUTE")
    rate_limit_window_seconds: float = Field(default=60.0, alias="RATE_LIMIT_WINDOW_SECONDS")
    rate_limit_storage_uri: str = Field(default="memory://", alias="RATE_LIMIT_STORAGE_URI")

    # Pre-auth throttle (per client address)
    preauth_rate_limit: str = Field(default="600/minute", alias="PREAUTH_RATE_LIMIT")
    preauth_rate_limit_enabled: bool = Field(default=True, alias="PREAUTH_RATE_LIMIT_ENABLED")

    # Streaming sessions
    session_timeout_seconds: float = Field(default=300.0, alias="SESSION_TIMEOUT_SECONDS")
    heartbeat_interval_seconds: float = Field(default=30.0, alias="HEARTBEAT_INTERVAL_SECONDS")
    revalidation_interval_seconds: float = Field(default=30.0, alias="REVALIDATION_INTERVAL_SECONDS")
    max_tool_calls_per_session: int = Field(default=20, alias="MAX_TOOL_CALLS_PER_SESSION")
    mcp_public_base_path: str = Field(default="/mcp", alias="MCP_PUBLIC_BASE_PATH")
    mcp_server_name: str = Field(default="oneline-mcp", alias="MCP_SERVER_NAME")

    # Tool guardrails
    summarize_max_days: int = Field(default=30, alias="SUMMARIZE_MAX_DAYS")
    summarize_max_tokens: int = Field(default=4096, alias="SUMMARIZE_MAX_TOKENS")
    summarize_cost_ceiling_usd: float = Field(default=0.05, alias="SUMMARIZE_COST_CEILING_USD")

    # Collaborator boundaries
    collaborator_timeout_seconds: float = Field(default=10.0, alias="COLLABORATOR_TIMEOUT_SECONDS")
    audit_drain_timeout_seconds: float = Field(default=5.0, alias="AUDIT_DRAIN_TIMEOUT_SECONDS")

    # Observability
    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")

    # Server Settings
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8000, alias="PORT")

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def resolved_log_format(self) -> str:
        """json in production, text when DEBUG is on, unless LOG_FORMAT says otherwise."""
        if self.log_format:
            return self.log_format.lower()
        return "text" if self.debug else "json"

    class Config:
        """Pydantic config."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True


# Global settings instance
settings = Settings()
