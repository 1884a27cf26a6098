from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite:///./content_api.db"

    # Redis (optional key lookup cache)
    redis_url: Optional[str] = None
    key_cache_ttl: int = 3600

    # Public API
    api_root: str = "/public-api"
    api_name: str = "Content Public API"
    api_version: str = "1.0.0"
    default_daily_limit: int = 100
    default_page_size: int = 10
    max_page_size: int = 50
    strict_routing: bool = False

    # Security
    admin_token: Optional[str] = None
    api_key_prefix: str = "cpk_"

    # Server Settings
    debug: bool = False
    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 8000

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
