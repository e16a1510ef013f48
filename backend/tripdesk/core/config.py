"""
Core configuration module for the TripDesk travel marketplace backend.
Settings are read from environment variables (or a local .env file).
"""

from pydantic_settings import BaseSettings
from typing import List
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Defaults target a local SQLite database so the service starts out of the box.
    """

    # Application
    app_name: str = "TripDesk Travel Marketplace"
    app_version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False

    # Database
    database_url: str = "sqlite:///./tripdesk.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20
    database_pool_recycle: int = 1800  # Recycle connections after 30 min
    database_pool_pre_ping: bool = True

    # API Configuration
    api_prefix: str = "/api/v1"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 2

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    # CORS
    cors_origins: list = ["http://localhost:3000", "http://127.0.0.1:3000"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
    cors_allow_headers: list = ["Content-Type", "Accept", "Authorization", "X-Request-ID"]

    # Rate limiting (slowapi)
    rate_limit_enabled: bool = True

    # Pagination
    default_page_size: int = 12
    max_page_size: int = 100

    # Recommendations
    recommendation_limit: int = 10
    recommendation_budget_share: float = 0.3

    # Agent commission applied to finalized itineraries and confirmed booking requests
    default_commission_percentage: float = 10.0

    # Lead statuses counted as "active" on the agent dashboard
    active_lead_statuses: List[str] = ["NEW", "CONTACTED", "QUOTED"]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()
