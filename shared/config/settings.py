"""
Application settings and configuration.
"""

from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings
from dotenv import find_dotenv
from pydantic import ConfigDict

# Find .env file automatically
ENV_FILE = find_dotenv(usecwd=True) or ".env"

class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Application
    api_title: str = "VendorPay Client"
    api_description: str = "Invoice approval client with optimistic cache synchronization"
    api_version: str = "1.0"
    environment: str = "development"
    debug: bool = False

    #Logging Configuration
    log_level: str = "INFO"
    log_file: str = "logs/vendorpay-client.log"
    log_to_console: bool = True

    # Remote API
    api_client_type: str = "http"  # Options: in_memory, http
    api_base_url: str = "http://localhost:5001/api"
    api_timeout_seconds: float = 30.0

    # Query cache
    invoice_stale_time_seconds: float = 60.0
    vendor_stale_time_seconds: float = 300.0
    await_refetch_on_settle: bool = True

    # Notifications
    notification_history_size: int = 50
    
    # View layer
    view_host: str = "0.0.0.0"
    view_port: int = 8000
    view_reload: bool = True
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    
    model_config = ConfigDict(
        str_max_length=200,
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.
    
    Returns:
        Settings instance
    """
    return Settings()

settings = get_settings()
