"""
Runtime Environment Validation Module

This module validates all required environment variables at application startup.
If validation fails, the application will refuse to start (hard fail).
"""

import os
import sys
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProductionSettings(BaseSettings):
    """
    Strict validation schema for environment variables.

    All required fields MUST be present and valid, or the application will not start.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",  # Fail on unknown keys in the .env file
    )

    # ========================================================================
    # CRITICAL: Database Configuration
    # ========================================================================
    database_url: str

    # ========================================================================
    # CRITICAL: Firebase Authentication
    # ========================================================================
    firebase_project_id: str
    google_application_credentials: Optional[str] = None
    auth_cookie_name: str = "accessToken"

    # ========================================================================
    # CRITICAL: Signature Storage Provider
    # ========================================================================
    storage_provider: str

    gcs_bucket_name: Optional[str] = None
    gcs_project_id: Optional[str] = None

    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: Optional[str] = None
    s3_bucket_name: Optional[str] = None
    max_upload_size_mb: int = 5

    # ========================================================================
    # Application Configuration
    # ========================================================================
    app_name: str = "Leasehold"
    debug: bool = False
    api_v1_prefix: str = "/v1"

    # ========================================================================
    # CRITICAL: CORS Configuration
    # ========================================================================
    allowed_origins: str

    # ========================================================================
    # Optional: External Capabilities
    # ========================================================================
    payments_api_url: Optional[str] = None
    payments_api_key: Optional[str] = None
    events_api_url: Optional[str] = None

    # ========================================================================
    # Optional: Lease Workflow Conventions
    # ========================================================================
    renewal_window_days: int = 60
    renewal_response_days: int = 30
    deposit_return_tolerance_cents: int = 100
    expiring_soon_days: int = 30


def validate_environment() -> ProductionSettings:
    """
    Validate all required environment variables at startup.

    If validation fails, the application will exit with code 1.
    """

    try:
        settings = ProductionSettings()

        # 1. CORS: Ensure wildcard is not used in production
        if not settings.debug:
            origins = [o.strip() for o in settings.allowed_origins.split(",")]
            if "*" in origins:
                print(
                    "❌ FATAL: Wildcard CORS origin (*) detected in production mode.",
                    file=sys.stderr
                )
                sys.exit(1)

        # 2. Storage Provider: Validate provider-specific configuration
        if settings.storage_provider == "gcs":
            if not settings.gcs_bucket_name or not settings.gcs_project_id:
                print(
                    "❌ FATAL: GCS_BUCKET_NAME and GCS_PROJECT_ID required when STORAGE_PROVIDER=gcs",
                    file=sys.stderr
                )
                sys.exit(1)
        elif settings.storage_provider == "s3":
            if not settings.s3_bucket_name or not settings.aws_access_key_id or not settings.aws_secret_access_key:
                print(
                    "❌ FATAL: S3_BUCKET_NAME, AWS_ACCESS_KEY_ID, and AWS_SECRET_ACCESS_KEY required when STORAGE_PROVIDER=s3",
                    file=sys.stderr
                )
                sys.exit(1)
        else:
            print(
                f"❌ FATAL: Invalid STORAGE_PROVIDER '{settings.storage_provider}'. Must be 'gcs' or 's3'.",
                file=sys.stderr
            )
            sys.exit(1)

        # 3. Firebase: Validate credentials path exists (if provided)
        if settings.google_application_credentials:
            if not os.path.exists(settings.google_application_credentials):
                print(
                    f"❌ FATAL: Firebase credentials file not found: {settings.google_application_credentials}",
                    file=sys.stderr
                )
                sys.exit(1)

        # 4. Database URL: PostgreSQL in production, SQLite allowed in debug
        if not settings.database_url.startswith("postgresql"):
            if not (settings.debug and settings.database_url.startswith("sqlite")):
                print(
                    "❌ FATAL: DATABASE_URL must be a PostgreSQL connection string (postgresql+asyncpg://)",
                    file=sys.stderr
                )
                sys.exit(1)

        # 5. Workflow conventions must be positive
        if settings.renewal_window_days <= 0 or settings.renewal_response_days <= 0:
            print(
                "❌ FATAL: RENEWAL_WINDOW_DAYS and RENEWAL_RESPONSE_DAYS must be positive",
                file=sys.stderr
            )
            sys.exit(1)
        if settings.deposit_return_tolerance_cents < 0:
            print("❌ FATAL: DEPOSIT_RETURN_TOLERANCE_CENTS cannot be negative", file=sys.stderr)
            sys.exit(1)

        print("✅ Environment validation passed")
        print(f"   App: {settings.app_name}")
        print(f"   Debug: {settings.debug}")
        print(f"   Storage: {settings.storage_provider}")
        print(f"   Payments: {settings.payments_api_url or 'disabled'}")

        return settings

    except ValidationError as e:
        print("❌ FATAL: Environment validation failed", file=sys.stderr)
        print("\nMissing or invalid environment variables:", file=sys.stderr)
        for error in e.errors():
            field = " -> ".join(str(loc) for loc in error["loc"])
            msg = error["msg"]
            print(f"   • {field}: {msg}", file=sys.stderr)

        print("\nThe application cannot start with invalid configuration.", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    validate_environment()
    print("\n✅ All environment variables are valid!")
