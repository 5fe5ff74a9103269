"""
Configuration settings for Task & Tag Service.
"""
import os
from typing import List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Settings:
    """Application settings"""

    # Service information
    service_name: str = os.getenv("SERVICE_NAME", "task_tag_service")
    service_version: str = "1.0.0"
    debug: bool = os.getenv("DEBUG", "False").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Database configuration
    database_url: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./tasks.db")

    # API configuration
    api_prefix: str = os.getenv("API_PREFIX", "/api")
    max_page_size: int = int(os.getenv("MAX_PAGE_SIZE", "100"))
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    autocomplete_limit: int = int(os.getenv("AUTOCOMPLETE_LIMIT", "10"))
    cors_origins: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    # Security
    secret_key: str = os.getenv(
        "SECRET_KEY",
        "task-tag-service-secret-key-change-in-production"
    )
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get settings instance."""
    return settings
