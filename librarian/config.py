"""
Configuration module for the Librarian recommendations backend.

Loads environment variables and validates required settings.
"""
import os
from typing import List
from dotenv import load_dotenv

# Load .env file
load_dotenv()


def _get_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings loaded from environment variables."""

    # Supabase Configuration (catalog store + identity provider)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_PUBLISHABLE_KEY: str = os.getenv("SUPABASE_PUBLISHABLE_KEY", "")
    BOOKS_TABLE_NAME: str = os.getenv("BOOKS_TABLE_NAME", "book")

    # JWT Verification - JWKS URL is derived from SUPABASE_URL
    # Format: https://<project-id>.supabase.co/auth/v1/.well-known/jwks.json
    @property
    def SUPABASE_JWKS_URL(self) -> str:
        """Get the JWKS URL for JWT verification."""
        if not self.SUPABASE_URL:
            return ""
        return f"{self.SUPABASE_URL}/auth/v1/.well-known/jwks.json"

    # Google Gemini API
    GOOGLE_API_KEY: str = os.getenv("GOOGLE_API_KEY", "")

    # Recommendation pipeline
    # Flash-Lite is the cost-optimized Gemini text model
    RECOMMENDATION_MODEL: str = os.getenv("RECOMMENDATION_MODEL", "gemini-2.5-flash-lite")
    RECOMMENDATION_MAX_OUTPUT_TOKENS: int = int(os.getenv("RECOMMENDATION_MAX_OUTPUT_TOKENS", "1000"))
    RECOMMENDATION_TIMEOUT_SECONDS: float = float(os.getenv("RECOMMENDATION_TIMEOUT_SECONDS", "25"))
    RECOMMENDATION_MAX_QUERY_LENGTH: int = int(os.getenv("RECOMMENDATION_MAX_QUERY_LENGTH", "1000"))
    RECOMMENDATION_MAX_RESULTS: int = int(os.getenv("RECOMMENDATION_MAX_RESULTS", "3"))
    RECOMMENDATION_MAX_CATALOG_ITEMS: int = int(os.getenv("RECOMMENDATION_MAX_CATALOG_ITEMS", "500"))
    RECOMMENDATION_REQUIRE_CATALOG_MATCH: bool = _get_bool("RECOMMENDATION_REQUIRE_CATALOG_MATCH")
    RATE_LIMIT_RETRY_AFTER_SECONDS: int = int(os.getenv("RATE_LIMIT_RETRY_AFTER_SECONDS", "60"))

    # Application Settings
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS Settings (only enforced in production, see main._get_cors_origins)
    CORS_ALLOWED_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
        if origin.strip()
    ]

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all required settings are configured.

        Raises:
            ValueError: If any required setting is missing or out of range.
        """
        required_settings = {
            "SUPABASE_URL": cls.SUPABASE_URL,
            "GOOGLE_API_KEY": cls.GOOGLE_API_KEY,
        }

        missing = [key for key, value in required_settings.items() if not value]

        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}. "
                "Please check your .env file."
            )

        if cls.RECOMMENDATION_MAX_RESULTS < 1:
            raise ValueError("RECOMMENDATION_MAX_RESULTS must be at least 1")
        if cls.RECOMMENDATION_MAX_QUERY_LENGTH < 1:
            raise ValueError("RECOMMENDATION_MAX_QUERY_LENGTH must be at least 1")

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment."""
        return cls.ENVIRONMENT.lower() == "development"


# Create a singleton instance
settings = Settings()

# Validate settings on module import (will fail fast if misconfigured)
# Skip validation during tests or when importing for introspection
if os.getenv("VALIDATE_CONFIG", "true").lower() == "true":
    try:
        settings.validate()
    except ValueError as e:
        # In development, warn but don't crash
        if settings.is_development():
            print(f"⚠️  Warning: {e}")
            print("   The app may not work correctly until you configure your .env file.")
        else:
            # In production or staging, fail immediately
            raise
