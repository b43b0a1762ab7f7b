"""
Configuration management using Pydantic Settings.
Loads settings from environment variables and .env files.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class InferenceSettings(BaseSettings):
    """Inference service (OpenAI-compatible chat completions) settings."""

    model_config = SettingsConfigDict(env_prefix="INFERENCE_")

    endpoint: str = Field(
        default="http://localhost:8080/openai",
        description="Base URL of the chat completions service",
    )
    api_key: str = Field(default="", description="API key sent as 'api-key' and bearer token")
    deployment: str = Field(default="gpt-4o", description="Deployment / model name")
    api_version: str = Field(default="2024-02-15-preview", description="api-version query parameter")
    chat_path: str = Field(
        default="/deployments/{deployment}/chat/completions",
        description="Chat completions path relative to the endpoint",
    )
    max_tokens: int = Field(default=4000, description="Max tokens per completion")
    temperature: float = Field(default=0.1, description="Sampling temperature")
    timeout: float = Field(default=120.0, description="Request timeout in seconds")
    max_retries: int = Field(default=3, description="Retries after a rate-limited attempt")
    retry_base_delay: float = Field(
        default=1.0, description="Base backoff in seconds, multiplied by the attempt number"
    )


class PipelineSettings(BaseSettings):
    """Job pipeline configuration."""

    model_config = SettingsConfigDict(env_prefix="PIPELINE_")

    batch_size: int = Field(default=5, ge=1, description="Modules analyzed concurrently per batch")
    batch_cooldown_seconds: float = Field(
        default=1.0, ge=0.0, description="Pause between batches"
    )
    human_review_threshold: float = Field(
        default=0.65,
        ge=0.0,
        le=1.0,
        description="Confidence below which a module is flagged for human review",
    )
    related_top_k: int = Field(default=3, ge=0, description="Related modules fetched for context")
    worker_count: int = Field(default=2, ge=1, description="Stage queue workers")
    queue_maxsize: int = Field(default=100, ge=0, description="Stage queue capacity (0 = unbounded)")


class ChunkerSettings(BaseSettings):
    """Source chunking configuration."""

    model_config = SettingsConfigDict(env_prefix="CHUNKER_")

    max_chunk_lines: int = Field(default=150, ge=1, description="Line cap for paragraph/fallback chunks")
    boundary_pattern: Optional[str] = Field(
        default=None, description="Override regex for brace-language definition boundaries"
    )
    paragraph_pattern: Optional[str] = Field(
        default=None, description="Override regex for paragraph-start markers"
    )


class JobStoreSettings(BaseSettings):
    """Job persistence configuration."""

    model_config = SettingsConfigDict(env_prefix="JOB_STORE_")

    backend: str = Field(default="memory", description="Job store backend (memory/redis)")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    key_prefix: str = Field(default="legacylens:", description="Prefix for job keys")
    max_update_attempts: int = Field(
        default=5, ge=1, description="Read-modify-write attempts before giving up on conflicts"
    )

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = {"memory", "redis"}
        if v.lower() not in allowed:
            raise ValueError(f"backend must be one of {allowed}")
        return v.lower()


class GitHubSettings(BaseSettings):
    """GitHub ingestion configuration."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_")

    api_url: str = Field(default="https://api.github.com", description="GitHub REST API base URL")
    token: Optional[str] = Field(default=None, description="Optional token for private repos and rate limits")
    timeout: float = Field(default=60.0, description="Request timeout in seconds")


class SecuritySettings(BaseSettings):
    """Security configuration."""

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS allowed origins",
    )


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="legacylens", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/staging/production)")
    debug: bool = Field(default=True, description="Debug mode")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Sub-settings
    inference: InferenceSettings = Field(default_factory=InferenceSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    chunker: ChunkerSettings = Field(default_factory=ChunkerSettings)
    job_store: JobStoreSettings = Field(default_factory=JobStoreSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v.lower() not in allowed:
            raise ValueError(f"app_env must be one of {allowed}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v.upper()

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.app_env == "development"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Convenience function for accessing settings
settings = get_settings()
