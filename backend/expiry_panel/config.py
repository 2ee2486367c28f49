"""
VPS Expiry Panel - Configuration
"""
from pydantic_settings import BaseSettings
from typing import Optional, List, Dict
from functools import lru_cache


# Embedded secrets. Filled in when a deployment bakes credentials into the
# build instead of using environment variables. Keys mirror the env names.
CODE_CONSTANTS: Dict[str, str] = {
    "PASS": "",
    "TG_TOKEN": "",
    "TG_ID": "",
}


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # App Info
    APP_NAME: str = "VPS Expiry Panel"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # API Settings
    API_V1_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Security
    SECRET_KEY: str = "CHANGE_THIS_IN_PRODUCTION_USE_OPENSSL_RAND_HEX_32"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    # Key-value store (empty URL = storage not configured)
    STORAGE_URL: str = "sqlite:///./expiry_panel.db"
    STORAGE_ECHO: bool = False

    # Expiry sweep
    SCHEDULER_ENABLED: bool = True
    EXPIRY_CHECK_INTERVAL: int = 60 * 60 * 12  # seconds
    DEFAULT_NOTIFY_DAYS: int = 14

    # External secrets
    PASS: Optional[str] = None
    TG_TOKEN: Optional[str] = None
    TG_ID: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra fields from .env file

    def external_env(self) -> Dict[str, str]:
        """Environment-tier secrets as a plain lookup table"""
        return {
            "PASS": self.PASS or "",
            "TG_TOKEN": self.TG_TOKEN or "",
            "TG_ID": self.TG_ID or "",
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
