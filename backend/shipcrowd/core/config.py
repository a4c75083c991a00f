"""
Centralized application configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_TITLE: str = "Shipcrowd API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Shipping platform backend - WooCommerce order synchronization"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = ""

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:3000,https://yourdomain.com" or '["http://localhost:3000"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000,http://localhost:3001"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Public URLs
    APP_URL: str = "https://api.shipcrowd.com"
    FRONTEND_URL: str = "https://shipcrowd.com"

    # Security
    AUTH_SECRET: str = ""
    CREDENTIALS_ENCRYPTION_KEY: str = ""
    SYNC_API_KEY: str = ""

    # WooCommerce
    WOOCOMMERCE_API_VERSION: str = "wc/v3"
    WOOCOMMERCE_PAGE_SIZE: int = 100
    WOOCOMMERCE_TIMEOUT: float = 30.0
    WOOCOMMERCE_RECENT_SYNC_HOURS: int = 24

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
