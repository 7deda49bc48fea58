from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./summarizer_gateway.db"

    # Redis (optional key lookup cache)
    redis_url: str = "redis://localhost:6379"

    # Language model; without an API key every summary is the fallback
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    llm_temperature: float = Field(0.7, ge=0.0, le=2.0)
    llm_timeout_seconds: float = Field(30.0, gt=0)

    # GitHub
    github_api_url: str = "https://api.github.com"
    github_token: Optional[str] = None
    github_timeout_seconds: float = Field(15.0, gt=0)
    readme_max_chars: int = Field(4000, gt=0)

    # Quotas
    default_rate_limit: int = Field(1000, gt=0)
    demo_request_limit: int = Field(5, ge=0)
    demo_require_token: bool = False

    # Security
    secret_key: str = "change-this-secret-key-in-production"
    api_key_prefix: str = "rsk_"
    admin_token: Optional[str] = None

    # Server Settings
    debug: bool = False
    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("github_api_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def uses_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
