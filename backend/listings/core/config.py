"""
Application configuration
"""

from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict

from listings.core.exceptions import ConfigurationException


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # API Settings
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Listings Search"

    # CORS Settings
    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"
    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Database Settings
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "listings"
    POSTGRES_PASSWORD: str = "password"
    POSTGRES_DB: str = "listings_db"
    DATABASE_URL: Optional[str] = None
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_ECHO: bool = False

    # Storage calls slower than this (seconds) count as a storage failure
    QUERY_TIMEOUT: float = 10.0

    # Cache Settings
    REDIS_URL: str = ""  # Empty means the in-process memory cache
    ENABLE_CACHE: bool = True
    CACHE_TTL_SECONDS: int = 300
    CACHE_MAX_ENTRIES: int = 1000  # Memory cache only

    # Pagination
    LISTING_PAGE_SIZE: int = 12
    PROPERTY_TYPE_PAGE_SIZE: int = 9

    # Shared secrets
    REVALIDATE_SECRET: str = "change_me"
    ADMIN_API_KEY: str = "change_me"
    API_KEY_HEADER: str = "X-API-KEY"

    # Environment
    ENVIRONMENT: str = "development"  # development, staging, production

    @property
    def get_database_url(self) -> str:
        """
        Construct database URL from components if not explicitly provided
        """
        if self.DATABASE_URL:
            url = self.DATABASE_URL
        elif not all([self.POSTGRES_SERVER, self.POSTGRES_USER, self.POSTGRES_DB]):
            # Default to SQLite for development if PostgreSQL settings not provided
            url = "sqlite+aiosqlite:///./listings.db"
        else:
            password_str = f":{self.POSTGRES_PASSWORD}" if self.POSTGRES_PASSWORD else ""
            url = f"postgresql://{self.POSTGRES_USER}{password_str}@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"

        # Convert standard PostgreSQL URL to async format
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    def check_secrets(self) -> None:
        """
        Refuse to run production with placeholder secrets
        """
        if self.ENVIRONMENT != "production":
            return
        unset = [
            name for name in ("REVALIDATE_SECRET", "ADMIN_API_KEY")
            if getattr(self, name) in ("", "change_me")
        ]
        if unset:
            raise ConfigurationException(
                "Secrets must be set in production",
                error_code="INSECURE_SECRETS",
                details={"settings": unset},
            )

    def get_cors_origins(self) -> List[str]:
        """Return the list of allowed CORS origins"""
        if self.BACKEND_CORS_ORIGINS:
            origins = [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]
            return origins if origins else self.CORS_ORIGINS
        return self.CORS_ORIGINS


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance
    """
    return Settings()
