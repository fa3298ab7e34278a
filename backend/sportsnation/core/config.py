"""
Centralized application configuration

All settings are read from the environment (or the .env file next to the
backend) through pydantic-settings.
"""
import json
from functools import lru_cache
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


PATHAO_PRODUCTION_URL = "https://api-hermes.pathao.com"
PATHAO_SANDBOX_URL = "https://courier-api-sandbox.pathao.com"


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    API_TITLE: str = "Sports Nation BD API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Courier, OTP and analytics backend for Sports Nation BD"
    LOG_LEVEL: str = "INFO"

    # Database (optional: analytics falls back to zero data without it)
    DATABASE_URL: Optional[str] = None

    # Auth
    AUTH_SECRET: Optional[str] = None

    # CORS - Can be string (comma-separated) or JSON array
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000"

    # Store
    STORE_NAME: str = "Sports Nation BD"
    SUPPORT_PHONE: str = "+880 1234 567890"

    # Pathao courier
    PATHAO_ENVIRONMENT: str = "sandbox"
    PATHAO_BASE_URL: str = PATHAO_PRODUCTION_URL
    PATHAO_CLIENT_ID: str = ""
    PATHAO_CLIENT_SECRET: str = ""
    PATHAO_USERNAME: str = ""
    PATHAO_PASSWORD: str = ""
    PATHAO_SANDBOX_BASE_URL: str = PATHAO_SANDBOX_URL
    PATHAO_SANDBOX_CLIENT_ID: str = ""
    PATHAO_SANDBOX_CLIENT_SECRET: str = ""
    PATHAO_SANDBOX_USERNAME: str = ""
    PATHAO_SANDBOX_PASSWORD: str = ""
    PATHAO_STORE_ID: Optional[int] = None
    PATHAO_MOCK_MODE: bool = False
    PATHAO_WEBHOOK_SECRET: str = ""
    PATHAO_TIMEOUT: float = 30.0

    # SMS
    SMS_PROVIDER: str = "bulksmsbd"
    SMS_API_KEY: str = ""
    SMS_SENDER_ID: str = "SPORTSBD"
    SMS_BASE_URL: Optional[str] = None
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""

    # Email
    EMAIL_PROVIDER: str = "brevo"
    EMAIL_FROM_ADDRESS: str = "noreply@sportsnationbd.com"
    EMAIL_FROM_NAME: str = "Sports Nation BD"
    BREVO_API_KEY: str = ""
    SENDGRID_API_KEY: str = ""
    MAILGUN_API_KEY: str = ""
    MAILGUN_DOMAIN: str = ""

    # OTP
    OTP_LENGTH: int = 6
    OTP_TTL_MINUTES: int = 10
    OTP_RESEND_COOLDOWN_SECONDS: int = 60
    OTP_MAX_ATTEMPTS: int = 3

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_pathao_production(self) -> bool:
        return self.PATHAO_ENVIRONMENT == "production"

    def get_pathao_credentials(self) -> Dict[str, str]:
        """
        Resolve base URL and credentials for the active Pathao environment

        Returns:
            Dict with base_url, client_id, client_secret, username, password, environment
        """
        if self.is_pathao_production:
            return {
                "environment": "production",
                "base_url": self.PATHAO_BASE_URL,
                "client_id": self.PATHAO_CLIENT_ID,
                "client_secret": self.PATHAO_CLIENT_SECRET,
                "username": self.PATHAO_USERNAME,
                "password": self.PATHAO_PASSWORD,
            }
        return {
            "environment": "sandbox",
            "base_url": self.PATHAO_SANDBOX_BASE_URL,
            "client_id": self.PATHAO_SANDBOX_CLIENT_ID,
            "client_secret": self.PATHAO_SANDBOX_CLIENT_SECRET,
            "username": self.PATHAO_SANDBOX_USERNAME,
            "password": self.PATHAO_SANDBOX_PASSWORD,
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
