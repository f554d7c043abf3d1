"""Application settings using Pydantic for environment-based configuration."""
from functools import lru_cache
from typing import List, Optional, Set

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Stripe Configuration
    stripe_secret_key: str = Field(..., description="Stripe secret API key (sk_test_...)")
    stripe_webhook_secret: str = Field(..., description="Stripe webhook signing secret")
    stripe_api_version: str = Field(default="2023-10-16", description="Stripe API version")
    currency: str = Field(default="inr", description="Checkout currency (ISO 4217, lowercase)")
    webhook_tolerance_seconds: int = Field(
        default=300, description="Max age of a signed webhook timestamp (seconds)"
    )

    # Checkout redirect URLs
    public_base_url: str = Field(
        default="http://localhost:3000", description="Storefront origin used for redirects"
    )
    checkout_success_path: str = Field(
        default="/payment-success.html?session_id={CHECKOUT_SESSION_ID}",
        description="Path Stripe redirects to after a successful payment",
    )
    checkout_cancel_path: str = Field(
        default="/payment-cancel.html", description="Path Stripe redirects to on cancel"
    )

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./storefront.db", description="SQLAlchemy async database URL"
    )
    database_pool_size: int = Field(default=10, description="Database connection pool size")
    database_max_overflow: int = Field(default=20, description="Max database connection overflow")
    database_echo: bool = Field(default=False, description="Echo SQL queries (debug)")

    # Firebase Authentication
    firebase_credentials_path: Optional[str] = Field(
        default=None, description="Service account JSON (application default credentials if unset)"
    )
    firebase_project_id: Optional[str] = Field(default=None, description="Firebase project id")

    # Administration
    admin_uids: str = Field(
        default="", description="Privileged identity ids (comma-separated)"
    )
    identity_page_size: int = Field(
        default=1000, description="Max identities returned by one listing call"
    )

    # Email Configuration
    smtp_host: str = Field(default="localhost", description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_username: Optional[str] = Field(default=None, description="SMTP login")
    smtp_password: Optional[str] = Field(default=None, description="SMTP password or app key")
    smtp_use_tls: bool = Field(default=True, description="Upgrade the SMTP session with STARTTLS")
    smtp_timeout_seconds: float = Field(default=10.0, description="SMTP socket timeout")
    store_name: str = Field(default="Knit & Purl", description="Store name used in emails")
    email_from: str = Field(
        default='"Knit & Purl" <noreply@yourdomain.com>', description="Sender address"
    )

    # Application Configuration
    app_name: str = Field(default="storefront", description="Application name")
    app_env: str = Field(default="development", description="Environment (development/production)")
    log_level: str = Field(default="INFO", description="Logging level")
    debug: bool = Field(default=False, description="Debug mode")

    # API Configuration
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=2, description="Number of API workers")
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="CORS allowed origins (comma-separated)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("stripe_secret_key")
    @classmethod
    def validate_stripe_key(cls, v: str) -> str:
        """Validate that the Stripe secret key is a test or live key."""
        if not v.startswith("sk_test_") and not v.startswith("sk_live_"):
            raise ValueError(
                "Invalid Stripe secret key format. Must start with 'sk_test_' or 'sk_live_'"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if len(v) != 3:
            raise ValueError("Currency must be 3-letter code")
        return v.lower()

    def get_allowed_origins_list(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    def get_admin_uids(self) -> Set[str]:
        """Parse the privileged identity ids from comma-separated string."""
        return {uid.strip() for uid in self.admin_uids.split(",") if uid.strip()}

    def checkout_urls(self, origin: Optional[str] = None) -> tuple[str, str]:
        """
        Build the success and cancel redirect URLs for a checkout session.

        Args:
            origin: Request origin; falls back to ``public_base_url``

        Returns:
            tuple[str, str]: (success_url, cancel_url)
        """
        base = (origin or self.public_base_url).rstrip("/")
        return base + self.checkout_success_path, base + self.checkout_cancel_path

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env.lower() == "production"

    @property
    def is_test_mode(self) -> bool:
        """Check if using Stripe test mode."""
        return self.stripe_secret_key.startswith("sk_test_")


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
