"""
Configuration settings for Username Search Service
"""
from pydantic_settings import BaseSettings
from typing import List, Optional

from .domain.models import RateLimitConfig
from .key_rotation import resolve_api_keys


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Username Search Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development | production | test
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Site identity forwarded to OpenRouter
    SITE_URL: str = "https://whatismyname.org"
    SITE_TITLE: str = "whatismyname"

    # Redis (for shared rate limit counters)
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 2
    REDIS_PASSWORD: str = ""
    REDIS_ENABLED: bool = False

    # WhatsMyName
    WHATSMYNAME_API_KEY: Optional[str] = None
    WHATSMYNAME_API_URL: str = "https://api.whatsmynameapp.org/api/v1/search"
    WHATSMYNAME_TIMEOUT: float = 60.0

    # Google Custom Search
    GOOGLE_CUSTOM_SEARCH_API_KEYS: Optional[str] = None  # comma/whitespace separated
    GOOGLE_CUSTOM_SEARCH_API_KEY: Optional[str] = None
    GOOGLE_CUSTOM_SEARCH_CX: Optional[str] = None
    GOOGLE_SEARCH_API_URL: str = "https://www.googleapis.com/customsearch/v1"
    GOOGLE_TIMEOUT: float = 30.0  # per key attempt
    GOOGLE_CACHE_MAX_AGE: int = 900
    GOOGLE_CACHE_STALE_WHILE_REVALIDATE: int = 1800

    # OpenRouter
    OPENROUTER_API_KEY: Optional[str] = None
    OPENROUTER_MODEL: str = "deepseek/deepseek-chat-v3.1:free"
    OPENROUTER_API_URL: str = "https://openrouter.ai/api/v1/chat/completions"
    OPENROUTER_TIMEOUT: float = 60.0
    OPENROUTER_TEMPERATURE: float = 0.7
    OPENROUTER_MAX_TOKENS: int = 2000

    # Rate Limiting (window in milliseconds)
    RATE_LIMIT_WHATSMYNAME_MAX_REQUESTS: int = 10
    RATE_LIMIT_WHATSMYNAME_INTERVAL_MS: int = 10000
    RATE_LIMIT_GOOGLE_MAX_REQUESTS: int = 5  # low upstream quota
    RATE_LIMIT_GOOGLE_INTERVAL_MS: int = 10000
    RATE_LIMIT_AI_MAX_REQUESTS: int = 3
    RATE_LIMIT_AI_INTERVAL_MS: int = 10000
    RATE_LIMIT_HEALTH_MAX_REQUESTS: int = 100
    RATE_LIMIT_HEALTH_INTERVAL_MS: int = 60000

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def google_api_keys(self) -> tuple:
        """Configured Google keys, multi-key variable first"""
        return resolve_api_keys(
            self.GOOGLE_CUSTOM_SEARCH_API_KEYS,
            self.GOOGLE_CUSTOM_SEARCH_API_KEY,
        )

    def rate_limit_config(self, route: str) -> RateLimitConfig:
        """Rate limit policy for an endpoint class (whatsmyname, google, ai, health)"""
        prefix = f"RATE_LIMIT_{route.upper()}"
        return RateLimitConfig(
            interval_ms=getattr(self, f"{prefix}_INTERVAL_MS"),
            max_requests=getattr(self, f"{prefix}_MAX_REQUESTS"),
        )

    def service_configured(self, service: str) -> bool:
        """Check whether credentials for an upstream service are present"""
        if service == "whatsmyname":
            return bool(self.WHATSMYNAME_API_KEY)
        if service == "google":
            return bool(self.google_api_keys) and bool(self.GOOGLE_CUSTOM_SEARCH_CX)
        if service == "openrouter":
            return bool(self.OPENROUTER_API_KEY)
        return False


settings = Settings()


def get_settings() -> Settings:
    """Dependency for getting settings instance"""
    return settings


